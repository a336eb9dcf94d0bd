from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    APP_NAME: str = "audiolink"
    ENV: Literal["local", "dev", "prod"] = "local"
    API_PREFIX: str = "/api"

    # DB
    DATABASE_DSN: str = "sqlite+aiosqlite:///./audiolink.db"
    DB_MANAGE: Literal["create_all", "migrations"] = "create_all"

    # Object storage provider
    OBJECT_STORAGE_PROVIDER: Literal["local", "s3"] = "local"

    # Local storage
    LOCAL_STORAGE_ROOT: str = "./uploads"

    # S3/MinIO
    S3_ENDPOINT_URL: str | None = None  # e.g. http://127.0.0.1:9000 for MinIO
    S3_REGION: str = "us-east-1"
    S3_BUCKET: str = "audiolink-media"
    S3_ACCESS_KEY: str | None = None
    S3_SECRET_KEY: str | None = None

    EVENT_BUS_PROVIDER: str = "noop"  # noop | redis
    REDIS_URL: str | None = None
    REDIS_STREAM: str | None = None  # default "audiolink.events" if None
    REDIS_STREAM_MAXLEN: int = 10000

    # Uploads / downloads
    MAX_UPLOAD_BYTES: int = 100 * 1024 * 1024
    STREAM_CHUNK_SIZE: int = 64 * 1024
    PUBLIC_BASE_URL: str | None = None  # e.g. https://audio.example.com, else taken from the request

    # Reconciliation: orphan blobs younger than this may belong to an upload still in flight
    ORPHAN_GRACE_SECONDS: int = 3600

    @field_validator("DATABASE_DSN")
    @classmethod
    def _must_be_async(cls, v: str):
        if "+asyncpg" not in v and "+aiosqlite" not in v:
            raise ValueError("DATABASE_DSN must use an async driver (postgresql+asyncpg:// or sqlite+aiosqlite://)")
        return v

    @field_validator("MAX_UPLOAD_BYTES", "STREAM_CHUNK_SIZE")
    @classmethod
    def _positive(cls, v: int):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("ORPHAN_GRACE_SECONDS")
    @classmethod
    def _not_negative(cls, v: int):
        if v < 0:
            raise ValueError("must not be negative")
        return v

settings = Settings()
