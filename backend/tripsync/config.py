import secrets

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    STORAGE_FOLDER: str = "storage"
    SQLITE_FILE: str = "storage/tripsync.sqlite"
    RECEIPTS_FOLDER: str = "storage/receipts"

    SECRET_KEY: str = secrets.token_hex(32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 1440

    REGISTER_ENABLE: bool = True
    DEFAULT_CURRENCY: str = "USD"

    RECEIPT_MAX_SIZE: int = 10 * 1024 * 1024
    RECEIPT_MAX_FILES: int = 5
    RECEIPT_ALLOWED_TYPES: list[str] = ["image/jpeg", "image/png", "image/webp", "application/pdf"]

    WS_MAX_PENDING: int = 100
    BULK_DELETE_MAX: int = 50
    TRIPS_PAGE_MAX: int = 50

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
