"""
Runtime configuration, read from the environment (and backend/.env).
"""
import os
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    database_url: str = "sqlite:///focus.db"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    timezone: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("FOCUS_DATABASE_URL") or cls.database_url,
            cors_origins=_split_csv(os.getenv("FOCUS_CORS_ORIGINS", "http://localhost:3000")),
            timezone=(os.getenv("FOCUS_TIMEZONE") or "").strip() or None,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
            log_file=os.getenv("LOG_FILE") or None,
        )

    def tz(self) -> tzinfo:
        """Zone used for day/week boundaries. Defaults to the server's local zone."""
        if self.timezone:
            return ZoneInfo(self.timezone)
        return datetime.now().astimezone().tzinfo
