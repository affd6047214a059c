"""Application configuration."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Loads and validates application settings from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    BOT_TOKEN: str = "YOUR_TELEGRAM_BOT_TOKEN"
    ALLOWED_USER_IDS: list[int] = []
    LOG_LEVEL: str = "INFO"

    # Local store
    BILLS_STORAGE_KEY: str = "elecBills"
    SETTINGS_STORAGE_KEY: str = "elecSettings"
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024

    # Undo
    UNDO_HISTORY_SIZE: int = 10
    UNDO_EXPIRY_SECONDS: float = 10.0

    # Cloud backup
    BACKUP_API_URL: str = "https://jsonhosting.com/api/json"
    BACKUP_TIMEOUT_SECONDS: float = 10.0

    # CSV interchange
    CSV_MAX_FILE_BYTES: int = 5 * 1024 * 1024
    CSV_MIN_COLUMNS: int = 9

    # Sanity limits for imported values
    MAX_AMOUNT: Decimal = Decimal("1000000")
    MAX_KWH: Decimal = Decimal("100000")
    MAX_READING: Decimal = Decimal("1000000")


settings = Settings()
