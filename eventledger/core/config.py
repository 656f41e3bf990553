from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Storage
    DATABASE_URL: str = "sqlite:///./eventledger.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Admission
    PENDING_BOOKING_TTL_MINUTES: int = 30
    REQUIRE_FUTURE_EVENTS: bool = True
    EVENT_LOCK_TIMEOUT_SECONDS: int = 10
    EVENT_LOCK_BLOCKING_TIMEOUT_SECONDS: int = 5
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_MAX_WAIT_SECONDS: float = 1.0

    # Reporting
    STATS_CACHE_TTL_SECONDS: int = 15

    # Background work
    RECLAIM_INTERVAL_SECONDS: int = 60
    RECLAIM_BATCH_SIZE: int = 500

    # Payment provider
    PAYMENT_WEBHOOK_SECRET: str = "dev-webhook-secret"
    CHECKOUT_SUCCESS_URL: str = "http://localhost:8000/checkout/success"
    CHECKOUT_CANCEL_URL: str = "http://localhost:8000/checkout/cancel"

    LOG_LEVEL: str = "INFO"


settings = Settings()
