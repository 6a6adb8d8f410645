from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # project root
ENV_PATH = BASE_DIR / ".env"

# Load .env into the process environment before Settings reads it
load_dotenv(dotenv_path=ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
    )

    DATABASE_URL: str

    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    JWT_ACCESS_MINUTES: int = 60
    JWT_VERIFY_HOURS: int = 24

    BCRYPT_ROUNDS: int = 12

    # Referral rewards
    REFERRAL_POINTS: int = 10_000
    REFERRAL_COUPON_DISCOUNT: int = 10
    REWARD_VALIDITY_MONTHS: int = 3
    REDEMPTION_EXPIRY_DAYS: int = 90
    REFERRAL_TRIGGER: Literal["registration", "verification"] = "registration"

    # Dev convenience: create tables on startup (production schema is managed outside the app)
    AUTO_CREATE_TABLES: bool = False

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


settings = Settings()
