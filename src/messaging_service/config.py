from enum import Enum
from typing import List, Optional

from pydantic import Field, PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Configuration settings for the Messaging Service.

    Loads from a .env file and environment variables.

    All environment variables are prefixed with MESSAGING_SERVICE_
    to avoid conflicts with other services.
    """

    model_config = SettingsConfigDict(
        env_file=".env.dev",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- GENERAL APP SETTINGS ---
    PROJECT_NAME: str = "Alumni Messaging Service"
    DEBUG: bool = Field(False, alias="MESSAGING_SERVICE_DEBUG")
    ENVIRONMENT: Environment = Field(
        Environment.DEVELOPMENT, alias="MESSAGING_SERVICE_ENVIRONMENT"
    )
    LOGGING_LEVEL: str = Field("INFO", alias="MESSAGING_SERVICE_LOGGING_LEVEL")
    ROOT_PATH: str = Field("", alias="MESSAGING_SERVICE_ROOT_PATH")

    # --- DATABASE SETTINGS ---
    DATABASE_URL: str = Field(..., alias="MESSAGING_SERVICE_DATABASE_URL")

    # --- CORS SETTINGS ---
    CORS_ALLOW_ORIGINS: List[str] = Field(
        ["*"], alias="MESSAGING_SERVICE_CORS_ALLOW_ORIGINS"
    )

    # --- JWT Settings for user tokens ---
    # These MUST match the values used by the auth service to sign the tokens.
    USER_JWT_SECRET_KEY: str = Field(..., alias="MESSAGING_SERVICE_USER_JWT_SECRET_KEY")
    USER_JWT_ALGORITHM: str = Field(
        "HS256", alias="MESSAGING_SERVICE_USER_JWT_ALGORITHM"
    )
    USER_JWT_ISSUER: Optional[str] = Field(
        None, alias="MESSAGING_SERVICE_USER_JWT_ISSUER"
    )
    USER_JWT_AUDIENCE: Optional[str] = Field(
        None, alias="MESSAGING_SERVICE_USER_JWT_AUDIENCE"
    )

    # --- ATTACHMENT STORAGE ---
    UPLOAD_DIR: str = Field("uploads", alias="MESSAGING_SERVICE_UPLOAD_DIR")
    UPLOAD_URL_PREFIX: str = Field("/uploads", alias="MESSAGING_SERVICE_UPLOAD_URL_PREFIX")
    MAX_ATTACHMENTS: int = Field(10, alias="MESSAGING_SERVICE_MAX_ATTACHMENTS")
    MAX_UPLOAD_SIZE_BYTES: int = Field(
        25 * 1024 * 1024,  # 25MB
        alias="MESSAGING_SERVICE_MAX_UPLOAD_SIZE_BYTES",
    )
    ALLOWED_MEDIA_TYPES: List[str] = Field(
        [
            "image/jpeg",
            "image/png",
            "image/gif",
            "video/mp4",
            "video/mpeg",
            "video/quicktime",
        ],
        alias="MESSAGING_SERVICE_ALLOWED_MEDIA_TYPES",
    )

    # --- DELIVERY POLICY ---
    ECHO_TO_SENDER: bool = Field(
        False,
        alias="MESSAGING_SERVICE_ECHO_TO_SENDER",
        description="Also push new messages to the sender's own live connections.",
    )
    SERIALIZE_CONVERSATION_SENDS: bool = Field(
        False,
        alias="MESSAGING_SERVICE_SERIALIZE_CONVERSATION_SENDS",
        description="Hold a per-conversation lock around persist and dispatch.",
    )

    # --- RATE LIMITING ---
    RATE_LIMIT_ENABLED: bool = Field(True, alias="MESSAGING_SERVICE_RATE_LIMIT_ENABLED")
    GENERAL_RATE_LIMIT: str = Field(
        "200/minute", alias="MESSAGING_SERVICE_GENERAL_RATE_LIMIT"
    )
    SEND_MESSAGE_RATE_LIMIT: str = Field(
        "60/minute", alias="MESSAGING_SERVICE_SEND_MESSAGE_RATE_LIMIT"
    )

    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    def is_development(self) -> bool:
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        return self.ENVIRONMENT == Environment.TESTING

    @field_validator("DATABASE_URL", mode="after")
    def validate_db_url(cls, v: PostgresDsn) -> str:
        """Ensures a PostgreSQL database URL uses the psycopg driver."""
        return str(v).replace("postgresql://", "postgresql+psycopg://")


settings = Settings()
