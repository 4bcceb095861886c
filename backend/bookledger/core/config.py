from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "BookLedger"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    secret_key: str = "change-this-secret-key"
    access_token_expire_minutes: int = 60

    database_url: str = "postgresql+psycopg2://bookledger:bookledger@db:5432/bookledger"
    cors_origins: str = "http://localhost:3000"

    donation_target_rate: float = 0.03
    allocation_policy: str = "manual"

    receipt_max_size_mb: int = 5
    storage_url: str = ""
    storage_api_key: str = ""
    storage_timeout_seconds: float = 15
    expense_receipt_bucket: str = "receipts"
    donation_receipt_bucket: str = "donation-receipts"

    seed_owner_email: str = ""
    seed_owner_password: str = ""
    seed_owner_name: str = "Owner"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
