from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def now():
    # naive UTC, matching what gets stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid4())


class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String, primary_key=True, index=True, default=new_id)
    email = Column(String, index=True)
    full_name = Column(String, nullable=False)
    title = Column(String)
    bio = Column(Text)
    avatar_url = Column(String)
    role = Column(String, default="user")
    role_id = Column(Integer, ForeignKey("roles.id"))
    status = Column(String, default="active")
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class TrainingSession(Base):
    __tablename__ = "training_sessions"
    id = Column(String, primary_key=True, index=True, default=new_id)
    created_by = Column(String, ForeignKey("profiles.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    date = Column(Date)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    instructor_id = Column(String, ForeignKey("profiles.id"))
    type = Column(String, default="webinar")
    location = Column(String)
    capacity = Column(Integer, default=20, nullable=False)
    enrolled = Column(Integer, default=0, nullable=False)
    status = Column(String, default="scheduled", nullable=False)
    meet_link = Column(String)
    zoom_meeting_id = Column(String, index=True)
    zoom_meeting_uuid = Column(String)
    zoom_join_url = Column(String)
    zoom_password = Column(String)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)

    creator = relationship("Profile", foreign_keys=[created_by])
    participants = relationship("SessionParticipant", back_populates="session", cascade="all, delete-orphan")
    recordings = relationship("SessionRecording", back_populates="session", cascade="all, delete-orphan")

    @property
    def duration_seconds(self):
        if not self.start_time or not self.end_time:
            return None
        return int((self.end_time - self.start_time).total_seconds())

    @property
    def instructor_name(self):
        if self.creator and self.creator.full_name:
            return self.creator.full_name
        return "Unknown Instructor"


class SessionParticipant(Base):
    __tablename__ = "session_participants"
    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_participant_session_user"),
        UniqueConstraint("session_id", "zoom_participant_uuid", name="uq_participant_session_zoom_uuid"),
    )
    id = Column(String, primary_key=True, index=True, default=new_id)
    session_id = Column(String, ForeignKey("training_sessions.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("profiles.id"))
    name = Column(String)
    email = Column(String)
    zoom_meeting_id = Column(String)
    zoom_participant_uuid = Column(String)
    zoom_user_id = Column(String)
    attendance_percentage = Column(Float)
    join_time = Column(DateTime)
    leave_time = Column(DateTime)
    duration_seconds = Column(Integer)
    attentiveness_score = Column(Float)
    status = Column(String, default="registered", nullable=False)
    notified = Column(Boolean, default=False, nullable=False)
    feedback = Column(Text)
    rating = Column(Integer)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)

    session = relationship("TrainingSession", back_populates="participants")
    user = relationship("Profile")

    @property
    def user_name(self):
        if self.user and self.user.full_name:
            return self.user.full_name
        return self.name or "Unknown User"


class SessionRecording(Base):
    __tablename__ = "session_recordings"
    __table_args__ = (
        UniqueConstraint("session_id", "zoom_recording_id", name="uq_recording_session_zoom_file"),
    )
    id = Column(String, primary_key=True, index=True, default=new_id)
    session_id = Column(String, ForeignKey("training_sessions.id"), nullable=False, index=True)
    zoom_meeting_id = Column(String)
    zoom_recording_id = Column(String)
    title = Column(String, nullable=False)
    date = Column(Date)
    start_time = Column(DateTime)
    end_time = Column(DateTime)
    duration_seconds = Column(Integer)
    thumbnail_url = Column(String)
    file_size_bytes = Column(Integer, default=0)
    views = Column(Integer, default=0, nullable=False)
    download_url = Column(String)
    play_url = Column(String)
    share_url = Column(String)
    storage_path = Column(String)
    recording_type = Column(String)
    password = Column(String)
    created_at = Column(DateTime, default=now)

    session = relationship("TrainingSession", back_populates="recordings")


class UserExtension(Base):
    __tablename__ = "user_extensions"
    __table_args__ = (UniqueConstraint("user_id", "extension_id", name="uq_user_extension"),)
    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    extension_id = Column(String, nullable=False)
    version = Column(String, nullable=False)
    settings = Column(JSON, default=dict)
    last_registered_at = Column(DateTime, default=now)


# --- Learning management -----------------------------------------------------

class Course(Base):
    __tablename__ = "courses"
    id = Column(String, primary_key=True, index=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    thumbnail_url = Column(String)
    duration = Column(String)
    level = Column(String)
    category = Column(String)
    instructor_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)

    instructor = relationship("Profile")
    contents = relationship(
        "CourseContent", back_populates="course", cascade="all, delete-orphan",
        order_by="CourseContent.sequence_order",
    )

    @property
    def instructor_name(self):
        return self.instructor.full_name if self.instructor else "Unknown"


class CourseContent(Base):
    __tablename__ = "course_content"
    id = Column(String, primary_key=True, index=True, default=new_id)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    content_type = Column(String, nullable=False)
    content_url = Column(String)
    content_data = Column(JSON)
    duration = Column(String)
    sequence_order = Column(Integer, default=0, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)

    course = relationship("Course", back_populates="contents")


class CourseEnrollment(Base):
    __tablename__ = "course_enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),)
    id = Column(String, primary_key=True, index=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False)
    enrollment_date = Column(DateTime, default=now)
    completion_date = Column(DateTime)
    progress = Column(Integer, default=0, nullable=False)
    status = Column(String, default="enrolled", nullable=False)
    last_accessed_at = Column(DateTime)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class CourseProgress(Base):
    __tablename__ = "course_progress"
    __table_args__ = (UniqueConstraint("user_id", "content_id", name="uq_progress_user_content"),)
    id = Column(String, primary_key=True, index=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False)
    content_id = Column(String, ForeignKey("course_content.id"), nullable=False)
    completion_status = Column(String, default="not_started", nullable=False)
    progress = Column(Integer, default=0, nullable=False)
    last_position = Column(Integer, default=0, nullable=False)
    quiz_score = Column(Float)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class Certificate(Base):
    __tablename__ = "certificates"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_certificate_user_course"),)
    id = Column(String, primary_key=True, index=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False)
    issue_date = Column(DateTime, default=now)
    certificate_url = Column(String)
    certificate_data = Column(JSON, default=dict)
    is_valid = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


# --- Career tools ------------------------------------------------------------

class CVTemplate(Base):
    __tablename__ = "cv_templates"
    id = Column(String, primary_key=True, index=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text)
    thumbnail_url = Column(String)
    is_premium = Column(Boolean, default=False, nullable=False)
    is_popular = Column(Boolean, default=False, nullable=False)
    category = Column(String)
    structure = Column(JSON)
    created_at = Column(DateTime, default=now)


class UserCV(Base):
    __tablename__ = "user_cvs"
    id = Column(String, primary_key=True, index=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    template_id = Column(String, ForeignKey("cv_templates.id"))
    title = Column(String, nullable=False)
    content = Column(JSON, default=dict)
    is_public = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=now)
    last_updated = Column(DateTime, default=now, onupdate=now)


class LinkedInProfile(Base):
    __tablename__ = "linkedin_profiles"
    id = Column(String, primary_key=True, index=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, unique=True)
    profile_url = Column(String)
    headline = Column(String)
    summary = Column(Text)
    skills = Column(JSON, default=list)
    experience = Column(JSON, default=list)
    education = Column(JSON, default=list)
    profile_score = Column(Integer, default=0)
    last_updated = Column(DateTime, default=now, onupdate=now)


class LinkedInOptimization(Base):
    __tablename__ = "linkedin_optimizations"
    id = Column(String, primary_key=True, default=new_id)
    category = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    impact = Column(String, default="medium")
    implementation_guide = Column(Text)


class LinkedInContentIdea(Base):
    __tablename__ = "linkedin_content_ideas"
    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    category = Column(String, index=True)
    template = Column(Text)
    examples = Column(JSON, default=list)


class InterviewQuestion(Base):
    __tablename__ = "interview_questions"
    id = Column(String, primary_key=True, index=True, default=new_id)
    category = Column(String, nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer_guide = Column(Text)
    difficulty = Column(String)
    tags = Column(JSON, default=list)
    created_at = Column(DateTime, default=now)


class MockInterview(Base):
    __tablename__ = "mock_interviews"
    id = Column(String, primary_key=True, index=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    category = Column(String, index=True)
    duration = Column(Integer)
    question_ids = Column(JSON, default=list)
    tags = Column(JSON, default=list)


class UserInterviewSession(Base):
    __tablename__ = "user_interview_sessions"
    id = Column(String, primary_key=True, index=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    mock_interview_id = Column(String, ForeignKey("mock_interviews.id"), nullable=False)
    started_at = Column(DateTime, default=now)
    completed_at = Column(DateTime)
    score = Column(Float)
    feedback = Column(JSON)
    recording_url = Column(String)
