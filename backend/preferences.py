"""
User-owned settings the focus engine reads: productivity goals, the blocked
site list, the extension API key and the task tracker's daily counts.
"""
import logging
import re
import secrets
from datetime import date
from typing import Optional

from sqlmodel import Session, select

from models import DailyTaskProgress, ProductivityGoals, ProductivitySnapshot, UserConfig

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def normalize_site(site: str) -> str:
    """'https://www.Example.com/feed' -> 'example.com'"""
    site = _SCHEME.sub("", site.strip().lower())
    if site.startswith("www."):
        site = site[4:]
    return site.split("/")[0].split("?")[0].split("#")[0]


def normalize_sites(sites: list[str]) -> list[str]:
    seen: list[str] = []
    for site in sites:
        domain = normalize_site(site)
        if domain and domain not in seen:
            seen.append(domain)
    return seen


def new_extension_api_key() -> str:
    return f"ext_{secrets.token_urlsafe(24)}"


class UserConfigRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[UserConfig]:
        return self.db.get(UserConfig, user_id)

    def _get_or_create(self, user_id: str) -> UserConfig:
        config = self.get(user_id)
        if config is None:
            config = UserConfig(user_id=user_id, blocked_sites=[])
        return config

    def _save(self, config: UserConfig) -> UserConfig:
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        return config

    def get_goals(self, user_id: str) -> Optional[ProductivityGoals]:
        config = self.get(user_id)
        if config is None:
            return None
        return ProductivityGoals(
            daily_focus_goal=config.daily_focus_goal or 0,
            daily_breaks_goal=config.daily_breaks_goal or 0,
            daily_task_goal=config.daily_task_goal or 0,
            productivity_target=config.productivity_target or 0,
        )

    def set_goals(self, user_id: str, goals: ProductivityGoals) -> ProductivityGoals:
        config = self._get_or_create(user_id)
        config.daily_focus_goal = goals.daily_focus_goal
        config.daily_breaks_goal = goals.daily_breaks_goal
        config.daily_task_goal = goals.daily_task_goal
        config.productivity_target = goals.productivity_target
        self._save(config)
        return self.get_goals(user_id)

    def get_blocked_sites(self, user_id: str) -> list[str]:
        config = self.get(user_id)
        return list(config.blocked_sites or []) if config else []

    def set_blocked_sites(self, user_id: str, sites: list[str]) -> list[str]:
        config = self._get_or_create(user_id)
        # reassign so the JSON column is marked dirty
        config.blocked_sites = normalize_sites(sites)
        self._save(config)
        return list(config.blocked_sites)

    def get_api_key(self, user_id: str) -> Optional[str]:
        config = self.get(user_id)
        return config.extension_api_key if config else None

    def generate_api_key(self, user_id: str) -> str:
        """Issue a fresh extension key. Any previous key stops working."""
        config = self._get_or_create(user_id)
        config.extension_api_key = new_extension_api_key()
        self._save(config)
        logger.info("issued new extension API key for user %s", user_id)
        return config.extension_api_key

    def user_for_api_key(self, api_key: str) -> Optional[str]:
        statement = select(UserConfig).where(UserConfig.extension_api_key == api_key)
        config = self.db.exec(statement).first()
        return config.user_id if config else None

    def get_task_progress(self, user_id: str, day: date) -> Optional[DailyTaskProgress]:
        return self.db.get(DailyTaskProgress, (user_id, day))

    def set_task_progress(self, user_id: str, day: date, completed: int, total: int) -> DailyTaskProgress:
        progress = self.get_task_progress(user_id, day) or DailyTaskProgress(user_id=user_id, day=day)
        progress.tasks_completed = completed
        progress.tasks_total = total
        self.db.add(progress)
        self.db.commit()
        self.db.refresh(progress)
        return progress

    def save_snapshot(self, user_id: str, today: dict, this_week: dict, computed_at) -> ProductivitySnapshot:
        """Latest totals for the dashboard's productivity card."""
        snapshot = self.db.get(ProductivitySnapshot, user_id) or ProductivitySnapshot(user_id=user_id)
        snapshot.today = today
        snapshot.this_week = this_week
        snapshot.computed_at = computed_at
        self.db.add(snapshot)
        self.db.commit()
        return snapshot

    def get_snapshot(self, user_id: str) -> Optional[ProductivitySnapshot]:
        return self.db.get(ProductivitySnapshot, user_id)
