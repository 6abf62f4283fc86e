from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load the .env file sitting next to this package
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)


class Settings(BaseSettings):
    # Database
    database_url: str = Field("sqlite:///./cvup.db", validation_alias="DATABASE_URL")

    # Zoom, Server-to-Server OAuth (preferred)
    zoom_client_id: str = Field("", validation_alias=AliasChoices("ZOOM_CLIENT_ID", "client_id_Zoom"))
    zoom_client_secret: str = Field("", validation_alias=AliasChoices("ZOOM_CLIENT_SECRET", "secret_zoom"))
    zoom_account_id: str = Field("", validation_alias="ZOOM_ACCOUNT_ID")
    # Zoom, legacy JWT app
    zoom_api_key: str = Field("", validation_alias="ZOOM_API_KEY")
    zoom_api_secret: str = Field("", validation_alias="ZOOM_API_SECRET")

    zoom_api_base_url: str = Field("https://api.zoom.us/v2", validation_alias="ZOOM_API_BASE_URL")
    zoom_oauth_url: str = Field("https://zoom.us/oauth/token", validation_alias="ZOOM_OAUTH_URL")
    zoom_user_id: str = Field("me", validation_alias="ZOOM_USER_ID")

    # Recording storage
    azure_storage_connection_string: str = Field("", validation_alias="AZURE_STORAGE_CONNECTION_STRING")
    recordings_container: str = Field("session-recordings", validation_alias="RECORDINGS_CONTAINER")
    media_root: str = Field("media", validation_alias="MEDIA_ROOT")

    # Email
    smtp_host: str = Field("", validation_alias="SMTP_HOST")
    smtp_port: int = Field(587, validation_alias="SMTP_PORT")
    smtp_user: str = Field("", validation_alias="SMTP_USER")
    smtp_pass: str = Field("", validation_alias="SMTP_PASS")
    email_from: str = Field("no-reply@cvup.local", validation_alias="EMAIL_FROM")

    # Server
    cors_origins: List[str] = Field(["http://localhost:3000"], validation_alias="CORS_ORIGINS")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @property
    def has_s2s_credentials(self) -> bool:
        return bool(self.zoom_client_id and self.zoom_client_secret and self.zoom_account_id)

    @property
    def has_jwt_credentials(self) -> bool:
        return bool(self.zoom_api_key and self.zoom_api_secret)

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
