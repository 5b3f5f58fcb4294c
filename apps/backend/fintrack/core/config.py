from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "FinTrack Backend"
    ENV: str = "dev"

    # SQLite file next to the backend so the path does not depend on the CWD
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "Asia/Kolkata"
    LOG_LEVEL: str = "INFO"

    # Transactions may be edited or deleted only within this many hours of creation
    EDIT_WINDOW_HOURS: int = 12
    DEFAULT_CURRENCY: str = "INR"
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 500

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="FINTRACK_", case_sensitive=False)


settings = Settings()
