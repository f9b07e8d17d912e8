"""Daily reminder times.

Only the schedule is kept here: a list of HH:MM times with per-time enable
flags, plus a global on/off switch. Delivering notifications is left to
whatever runs `kakeibo remind next` (cron, a desktop notifier, ...).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kakeibo.database.repository import Repository

logger = logging.getLogger(__name__)

TIMES_KEY = "notificationTimes"
ENABLED_KEY = "isNotificationEnabled"
REQUEST_ID_PREFIX = "dailyExpenseReminder_"

REMINDER_TITLE = "支出の記録"
REMINDER_BODY = "今日の支出記録を忘れていませんか？💰"


@dataclass
class ReminderTime:
    hour: int
    minute: int
    is_enabled: bool = True

    def __post_init__(self):
        if not 0 <= self.hour <= 23 or not 0 <= self.minute <= 59:
            raise ValueError(f"Invalid reminder time {self.hour}:{self.minute}")

    @property
    def display_time(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    @classmethod
    def parse(cls, text: str) -> ReminderTime:
        """Parse 'HH:MM'.

        Raises:
            ValueError: If the text is not a valid time of day.
        """
        try:
            hour_text, minute_text = text.strip().split(":")
            return cls(int(hour_text), int(minute_text))
        except ValueError as e:
            raise ValueError(f"Invalid time '{text}' (expected HH:MM)") from e


def _default_times(defaults: list[str] | None) -> list[ReminderTime]:
    return [ReminderTime.parse(t) for t in (defaults or ["20:00"])]


class ReminderSettings:
    """Reminder schedule persisted in the settings table.

    Index-based operations ignore out-of-range indexes and return False.
    """

    def __init__(self, repo: Repository, default_times: list[str] | None = None):
        self.repo = repo
        self.default_times = default_times
        self.enabled: bool = bool(repo.get_setting(ENABLED_KEY, False))
        self.times = self._load_times()

    def _load_times(self) -> list[ReminderTime]:
        raw = self.repo.get_setting(TIMES_KEY)
        if raw is not None:
            try:
                return [
                    ReminderTime(t["hour"], t["minute"], bool(t.get("is_enabled", True)))
                    for t in raw
                ]
            except (KeyError, TypeError, ValueError):
                logger.warning("Resetting unreadable reminder times in setting '%s'", TIMES_KEY)
        times = _default_times(self.default_times)
        self._save(times)
        return times

    def _save(self, times: list[ReminderTime] | None = None) -> None:
        times = self.times if times is None else times
        self.repo.set_setting(TIMES_KEY, [
            {"hour": t.hour, "minute": t.minute, "is_enabled": t.is_enabled}
            for t in times
        ])

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self.times)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        self.repo.set_setting(ENABLED_KEY, enabled)
        logger.info("Reminders %s", "enabled" if enabled else "disabled")

    def add_time(self, hour: int, minute: int) -> ReminderTime:
        time = ReminderTime(hour, minute)
        self.times.append(time)
        self._save()
        return time

    def remove_time(self, index: int) -> bool:
        if not self._in_range(index):
            return False
        del self.times[index]
        self._save()
        return True

    def toggle_time(self, index: int) -> bool:
        if not self._in_range(index):
            return False
        self.times[index].is_enabled = not self.times[index].is_enabled
        self._save()
        return True

    def update_time(self, index: int, hour: int, minute: int) -> bool:
        if not self._in_range(index):
            return False
        self.times[index] = ReminderTime(hour, minute, self.times[index].is_enabled)
        self._save()
        return True

    def reset_to_default(self) -> None:
        self.times = _default_times(self.default_times)
        self._save()

    @property
    def enabled_times(self) -> list[ReminderTime]:
        return [t for t in self.times if t.is_enabled]

    def request_identifiers(self) -> list[tuple[str, ReminderTime]]:
        """(identifier, time) for each enabled time, numbered among enabled times only."""
        return [
            (f"{REQUEST_ID_PREFIX}{i}", t) for i, t in enumerate(self.enabled_times)
        ]

    def next_due(self, now: datetime | None = None) -> datetime | None:
        """The next reminder strictly after now, or None when nothing is scheduled."""
        if not self.enabled or not self.enabled_times:
            return None
        now = now or datetime.now()
        candidates = []
        for t in self.enabled_times:
            due = now.replace(hour=t.hour, minute=t.minute, second=0, microsecond=0)
            if due <= now:
                due += timedelta(days=1)
            candidates.append(due)
        return min(candidates)
