from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "SmartSpend Backend"
    ENV: str = "dev"

    # apps/backend/db.sqlite3 as an absolute path so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "UTC"

    # Gemini (receipt scanning + monthly insights)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # Outgoing mail
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "SmartSpend <onboarding@smartspend.local>"

    BUDGET_ALERT_THRESHOLD: float = 80.0
    # 0 disables the per-user limiter
    RATE_LIMIT_PER_MINUTE: int = 0
    RECENT_TRANSACTIONS_LIMIT: int = 20

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="SMARTSPEND_", case_sensitive=False)


settings = Settings()
