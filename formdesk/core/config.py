"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: major.minor.patch)
    VERSION: str = "0.1.0"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./formdesk.db"
    DB_ECHO: bool = False

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"

    # File storage: "local" or "s3"
    STORAGE_BACKEND: str = "local"
    LOCAL_STORAGE_PATH: str = "/tmp/formdesk-uploads"
    S3_BUCKET: str = "formdesk-uploads"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # Upload policy for public submissions
    MAX_UPLOAD_FILES: int = 10
    MAX_UPLOAD_FILE_SIZE_BYTES: int = 5 * 1024 * 1024  # 5 MB
    ALLOWED_UPLOAD_MIME_TYPES: str = (
        "image/jpeg,image/png,image/gif,application/pdf,application/msword,"
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document,"
        "text/plain,application/vnd.ms-excel,"
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

    # Rate limiting (requests per minute, per client IP)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PUBLIC_SUBMIT: int = 30

    # Dashboard
    RECENT_SUBMISSION_DAYS: int = 7

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Return list of valid secrets (current first, then previous)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def allowed_upload_mime_types(self) -> set[str]:
        return {
            m.strip().lower()
            for m in self.ALLOWED_UPLOAD_MIME_TYPES.split(",")
            if m.strip()
        }


settings = Settings()
