import os
import tempfile
from datetime import datetime, timedelta

# Settings are read once and cached, so the test environment has to be in place before cvup is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="cvup-media-")
os.environ["AZURE_STORAGE_CONNECTION_STRING"] = ""
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cvup import models
from cvup.database import Base, get_db
from cvup.main import app
from cvup.oauth_token import reset_token_cache

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_token_cache():
    reset_token_cache()
    yield
    reset_token_cache()


@pytest.fixture
def make_profile(db):
    def _make(**kwargs):
        kwargs.setdefault("full_name", "Test User")
        kwargs.setdefault("email", f"user{db.query(models.Profile).count()}@example.com")
        profile = models.Profile(**kwargs)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile
    return _make


@pytest.fixture
def make_session(db, make_profile):
    def _make(**kwargs):
        if "created_by" not in kwargs:
            kwargs["created_by"] = make_profile(full_name="Instructor").id
        start = kwargs.pop("start_time", datetime(2030, 5, 1, 10, 0))
        kwargs.setdefault("end_time", start + timedelta(hours=1))
        kwargs.setdefault("title", "Resume Workshop")
        kwargs.setdefault("capacity", 10)
        kwargs.setdefault("status", "scheduled")
        sess = models.TrainingSession(start_time=start, date=start.date(), **kwargs)
        db.add(sess)
        db.commit()
        db.refresh(sess)
        return sess
    return _make
