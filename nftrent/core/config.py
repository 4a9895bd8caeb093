import os
from enum import StrEnum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


ENVIRONMENT = os.getenv("RENDER_ENV", Environment.DEVELOPMENT)


class Settings(BaseSettings):
    app_name: str = "NFT Rent - API"
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "nftrent"
    db_host: str = "localhost"
    db_port: int = 5432
    # full SQLAlchemy URL, takes precedence over the db_* fields when set
    database_url: str | None = None
    render_env: str = ENVIRONMENT

    firebase_credentials_path: str = "nftrent-service-account.json"
    log_level: str = "INFO"

    # accept escrow calls that were only simulated (no program deployed)
    allow_simulated_escrow: bool = True
    overdue_sweep_minutes: int = 10

    model_config = SettingsConfigDict(
        env_file=".env" if ENVIRONMENT != Environment.PRODUCTION else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )


config = Settings()
