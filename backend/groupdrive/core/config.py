from typing import List, Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

MIB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Group Drive API"
    LOG_LEVEL: str = "INFO"

    # Database. DATABASE_URL wins over the POSTGRES_* parts when set.
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "groupdrive"

    # Auth
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    IS_PRODUCTION: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173"]

    # Byte storage
    STORAGE_BACKEND: str = "local"  # "local" or "s3"
    UPLOAD_DIR: str = "uploads"
    UPLOAD_TEMP_DIR: str = "uploads/temp"
    AWS_S3_BUCKET_NAME: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_ENDPOINT_URL: Optional[str] = None
    AWS_REGION: Optional[str] = None

    # Uploads
    MAX_CHUNK_SIZE: int = 5 * MIB
    MAX_FILE_SIZE: int = 2 * 1024 * MIB
    UPLOAD_SESSION_TTL_SECONDS: int = 24 * 60 * 60
    COMPLETED_UPLOAD_RETENTION_SECONDS: int = 10 * 60
    EARLY_CHUNK_GRACE_SECONDS: int = 60

    # Public links
    PUBLIC_BASE_URL: Optional[str] = None
    PUBLIC_LINK_STORE: str = "database"  # "database" or "memory"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CHUNK_SWEEP_INTERVAL_SECONDS: int = 60 * 60

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str) and not value.startswith("["):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("STORAGE_BACKEND", "PUBLIC_LINK_STORE", mode="before")
    @classmethod
    def lower_case(cls, value):
        return value.lower() if isinstance(value, str) else value

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
