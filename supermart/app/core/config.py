from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./supermart.db"
    SECRET_KEY: str = "dev-insecure-key-change-in-production"
    # One working shift
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # CORS origins, JSON list in the environment
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Account lockout
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 15

    # Loyalty: the Nth completed purchase (and every one after it) earns the discount
    LOYALTY_PURCHASE_THRESHOLD: int = 10
    LOYALTY_DISCOUNT_PERCENT: Decimal = Decimal("2")

    BILL_NUMBER_PREFIX: str = "BILL"

    LOG_LEVEL: str = "INFO"


settings = Settings()
