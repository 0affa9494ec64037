"""Configuration settings for the gateway."""
from typing import Dict
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FINGUARD_",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Finguard Gateway API"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "sqlite:///./finguard.db"

    # Account-aggregation provider
    provider_adapter: str = "mock"
    provider_client_id: str = ""
    provider_secret: str = ""
    provider_env: str = "sandbox"
    provider_version: str = "2020-09-14"
    http_timeout_seconds: float = 30.0

    # Sliding-window rate limiting (requests per window)
    rate_window_ms: int = 60_000
    endpoint_rate_limits: Dict[str, int] = Field(
        default_factory=lambda: {
            "/transactions/get": 30,
            "/accounts/get": 15,
            "/accounts/balance/get": 5,
            "/item/get": 15,
            "/institutions/get_by_id": 50,
        }
    )
    default_endpoint_limit: int = 30
    operation_rate_limits: Dict[str, int] = Field(
        default_factory=lambda: {
            "transactions": 100,
            "accounts": 50,
            "auth": 10,
            "sync": 30,
        }
    )
    default_operation_limit: int = 100
    slot_max_wait_ms: int = 30_000
    slot_poll_interval_ms: int = 1_000

    # Retry policy for provider-side rate limiting
    max_retries: int = 3
    retry_base_delay_ms: int = 1_000

    # Heuristics and quotas
    suspicious_amount: float = 100_000
    monthly_transaction_cap: int = 2_000
    max_items: int = 100
    max_accounts_per_item: int = 20

    # Development/test override: accept future-dated transactions
    allow_future_dates: bool = False


settings = Settings()
