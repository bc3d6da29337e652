from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SERVICE_NAME: str = "Walletfund BFF"
    DEBUG: bool = False

    # Logging levels
    LOG_LEVEL: str = "INFO"

    # Remote bills API
    API_BASE_URL: str = "https://test.eyzmo.com/api/v1"
    API_TIMEOUT_SECONDS: float = 30

    # Deposit / reconciliation
    DEPOSIT_MIN_AMOUNT: float = 100
    DEPOSIT_STATUS_MIN_INTERVAL_SECONDS: float = 50
    DEPOSIT_POLL_INTERVAL_SECONDS: float = 3
    DEPOSIT_POLL_MAX_TICKS: int = 60
    DEPOSIT_HARD_TIMEOUT_SECONDS: float = 210
    DEPOSIT_RESULT_RETENTION: int = 500

    # Any URL containing one of these is still the hosted checkout
    CHECKOUT_URL_MARKERS: List[str] = ["paystack.com", "checkout"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
