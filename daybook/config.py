from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from daybook.domain.enums import MonthOverflowPolicy


PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str
    timezone: str = "UTC"
    log_level: str = "INFO"
    log_dir: str = "logs"
    recurrence_horizon_days: int = 365
    occurrence_limit: int = 100
    month_overflow: MonthOverflowPolicy = MonthOverflowPolicy.ROLLOVER


def load_settings() -> Settings:
    load_env()

    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

    return Settings(
        database_url=database_url,
        timezone=os.getenv("DAYBOOK_TIMEZONE", "UTC").strip() or "UTC",
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        recurrence_horizon_days=int(os.getenv("RECURRENCE_HORIZON_DAYS", "365")),
        occurrence_limit=int(os.getenv("OCCURRENCE_LIMIT", "100")),
        month_overflow=MonthOverflowPolicy(os.getenv("MONTH_OVERFLOW", "rollover").strip().lower()),
    )
