import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    DB_PATH: str = os.getenv("DB_PATH", "./exchange_desk.db")
    DB_TIMEOUT_SECONDS: float = float(os.getenv("DB_TIMEOUT_SECONDS", "10"))

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    UPLOAD_URL_PREFIX: str = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(3 * 1024 * 1024)))

    LOCAL_CURRENCY: str = os.getenv("LOCAL_CURRENCY", "TRY")
    TRANSACTION_CODE_PREFIX: str = os.getenv("TRANSACTION_CODE_PREFIX", "TRX")
    TRANSACTION_CODE_LENGTH: int = int(os.getenv("TRANSACTION_CODE_LENGTH", "12"))
    AMOUNT_TOLERANCE: str = os.getenv("AMOUNT_TOLERANCE", "0.01")
    # processing -> pending is a regression; off unless explicitly enabled
    ALLOW_PROCESSING_TO_PENDING: bool = _env_bool("ALLOW_PROCESSING_TO_PENDING", "false")

    DEFAULT_RATE_PAIR: str = os.getenv("DEFAULT_RATE_PAIR", "USD_TRY")
    DEFAULT_RATE: str = os.getenv("DEFAULT_RATE", "35.42")
    DEFAULT_COMMISSION_RATE: str = os.getenv("DEFAULT_COMMISSION_RATE", "0.0235")

    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
