from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database (sqlite+aiosqlite:// for local, postgresql+asyncpg:// for managed)
    DATABASE_URL: str = "sqlite+aiosqlite:///./local_storage/db.sqlite"
    DATABASE_POOL_SIZE: int = 5

    # Object storage
    STORAGE_BACKEND: str = "local"
    STORAGE_LOCAL_PATH: str = "local_storage/objects"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET: str = "damage-assessor-uploads"
    S3_ENDPOINT_URL: str = ""

    # HTTP
    ALLOWED_ORIGINS: str = "*"
    API_BASE_URL: str = "http://localhost:8787/api"
    API_TIMEOUT_SECONDS: float = 30.0

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
