from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./marketplace.db"

    # Email / SMTP
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASS: str | None = None
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT: int = 30
    EMAIL_SENDER: str = "no-reply@marketplace.local"
    EMAIL_SENDER_NAME: str = "eCommerce Marketplace"
    EMAIL_MAX_ATTEMPTS: int = 5

    # Links in outgoing email point here
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Checkout / confirmation
    TOKEN_TTL_HOURS: int = 24
    SHIPPING_FLAT_RATE: Decimal = Decimal("0.00")

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow"
    )


settings = Settings()
