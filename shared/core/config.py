import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Always load .env from root
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
load_dotenv(os.path.join(BASE_DIR, ".env"))


class Settings(BaseSettings):
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Full URL wins over the individual DB_* parts
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")
    DB_USER: str | None = os.getenv("DB_USER")
    DB_PASS: str | None = os.getenv("DB_PASS")
    DB_HOST: str | None = os.getenv("DB_HOST", "localhost")
    DB_PORT: str | None = os.getenv("DB_PORT", "5432")
    LEASING_DB_NAME: str | None = os.getenv("LEASING_DB_NAME", "leasing")

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30

    # Lease engine
    LEASE_TIMEZONE: str = "Africa/Kigali"
    LEASE_LOCK_TIMEOUT_MS: int = 5000
    LEASE_TX_RETRIES: int = 3

    # Expiry sweep (daily by default)
    LEASE_SWEEP_ENABLED: bool = True
    LEASE_SWEEP_INTERVAL_SECONDS: int = 86400
    LEASE_SWEEP_RUN_ON_START: bool = True

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()


def get_database_url(config: Settings = settings) -> str:
    if config.DATABASE_URL:
        return config.DATABASE_URL
    return (
        f"postgresql+psycopg2://{config.DB_USER}:{config.DB_PASS}@{config.DB_HOST}:{config.DB_PORT}/{config.LEASING_DB_NAME}"
    )


LEASING_DATABASE_URL = get_database_url()
