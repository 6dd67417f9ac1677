"""
Streak Tracker — consecutive-day logging per habit category.

One storage key holds {category: record} for every category that has ever
been logged. A record is created the first time its category is logged.

Day rules for log_activity(category, today):
  last == today              → no change (re-log on the same day)
  last == today - 1          → current + 1
  every day in between frozen → current + 1 (see core/streak_recovery.py)
  never logged               → 1
  anything else              → 1 (streak broken)
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from loguru import logger

import config
from core.era_calendar import day_key, days_between, shift_day, utcnow
from db.storage import KeyValueStore, Loaded, load_json, save_json

CATEGORY_LABELS = {
    "sleep":      "sleep tracking",
    "meditation": "meditation",
    "nutrition":  "meal logging",
    "workout":    "workout",
    "journal":    "journaling",
    "tasks":      "task completion",
}


@dataclass
class StreakRecord:
    current_streak: int = 0
    longest_streak: int = 0
    last_log_date: str = ""
    total_logs: int = 0

    def to_json(self) -> dict:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastLogDate":   self.last_log_date,
            "totalLogs":     self.total_logs,
        }

    @classmethod
    def from_json(cls, data: dict) -> "StreakRecord":
        """Raises TypeError / ValueError on wrongly typed fields or a bad lastLogDate."""
        last = str(data.get("lastLogDate") or "")
        if last:
            date.fromisoformat(last)
        return cls(
            current_streak=int(data.get("currentStreak", 0)),
            longest_streak=int(data.get("longestStreak", 0)),
            last_log_date=last,
            total_logs=int(data.get("totalLogs", 0)),
        )


def check_category(category: str) -> str:
    if category not in config.STREAK_CATEGORIES:
        raise ValueError(
            f"Unknown streak category '{category}' "
            f"(expected one of: {', '.join(config.STREAK_CATEGORIES)})"
        )
    return category


# ── Milestones ────────────────────────────────────────────────────────────────

def is_milestone(streak: int) -> bool:
    return streak in config.STREAK_MILESTONES


def next_milestone(streak: int) -> int:
    """Smallest milestone above streak; the top milestone once it is passed."""
    for m in config.STREAK_MILESTONES:
        if m > streak:
            return m
    return config.STREAK_MILESTONES[-1]


def streak_badge(streak: int) -> str:
    if streak == 0:
        return "⚪"
    if streak < 7:
        return "🔥"
    if streak < 30:
        return "🔥🔥"
    if streak < 90:
        return "🔥🔥🔥"
    return "🔥🔥🔥🔥"


def streak_message(streak: int, category: str) -> str:
    if streak == 0:
        return f"Start your {category} streak today!"

    label = CATEGORY_LABELS.get(category, category)
    if streak == 1:
        return f"Great start! Keep going with {label}"
    if streak < 7:
        return f"{streak} days of {label}! Keep it up!"
    if streak == 7:
        return "🎉 One week streak! You're building a habit!"
    if streak < 30:
        return f"{streak} days strong! Don't break the chain!"
    if streak == 30:
        return "🎉 30-day streak! This is a real habit now!"
    if streak < 90:
        return f"{streak} days! You're unstoppable!"
    if streak == 90:
        return f"🎉 90 days! You're a {label} master!"
    return f"{streak} days! Legendary streak! 🏆"


# ── Tracker ───────────────────────────────────────────────────────────────────

class StreakTracker:
    """
    Owns the streaks key. `recovery` is the freeze subsystem consulted for
    gaps; without it any gap of two or more days breaks the streak.
    """

    def __init__(self, store: KeyValueStore, recovery=None,
                 clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._recovery = recovery
        self._clock = clock
        self.last_read: Optional[Loaded] = None

    def _today(self) -> str:
        return day_key(self._clock())

    def _load(self, strict: bool = False) -> dict:
        self.last_read = load_json(self._store, config.STREAKS_KEY, {}, strict=strict)
        data = self.last_read.value
        if not isinstance(data, dict):
            logger.warning(f"Streak data is a {type(data).__name__}, expected an object — using defaults")
            self.last_read = Loaded({}, degraded=True, error="not a JSON object")
            return {}
        return data

    def _record(self, category: str, raw) -> StreakRecord:
        if raw is None:
            return StreakRecord()
        if isinstance(raw, dict):
            try:
                return StreakRecord.from_json(raw)
            except (TypeError, ValueError) as e:
                error = str(e)
        else:
            error = f"record is a {type(raw).__name__}"
        logger.warning(f"{category}: malformed streak record ({error}) — using defaults")
        self.last_read = Loaded(self.last_read.value, degraded=True, error=error)
        return StreakRecord()

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_streak(self, category: str) -> StreakRecord:
        check_category(category)
        return self._record(category, self._load().get(category))

    def get_all_streaks(self) -> dict[str, StreakRecord]:
        """Every logged category; never-logged categories are absent."""
        return {k: self._record(k, v) for k, v in self._load().items()}

    def at_risk(self, today: Optional[str] = None) -> list[str]:
        """Categories logged yesterday but not yet today."""
        today = today or self._today()
        yesterday = shift_day(today, -1)
        return [k for k, rec in self.get_all_streaks().items()
                if rec.last_log_date == yesterday and rec.current_streak > 0]

    # ── Mutation ──────────────────────────────────────────────────────────────

    def _gap_frozen(self, last: str, today: str) -> bool:
        """
        True when every day strictly between last and today is frozen.
        Raises StorageError if the freeze history cannot be read.
        """
        if self._recovery is None:
            return False
        frozen = self._recovery.frozen_days(strict=True)
        gap = days_between(last, today)
        return all(shift_day(last, i) in frozen for i in range(1, gap))

    def log_activity(self, category: str, today: Optional[str] = None) -> StreakRecord:
        """
        Record one activity for `category` on `today` (day key, defaults to the clock).

        Raises StorageError if the streaks or the freeze history cannot be
        read, or the updated record cannot be written. Nothing is written then.
        """
        check_category(category)
        today = today or self._today()

        with self._store.lock(config.STREAKS_KEY):
            streaks = self._load(strict=True)
            rec = self._record(category, streaks.get(category))
            last = rec.last_log_date

            if last == today:
                return rec

            if last and last > today:
                logger.warning(
                    f"{category}: log for {today} is before last log {last} — ignored"
                )
                return rec

            if last == shift_day(today, -1):
                current = rec.current_streak + 1
            elif last == "":
                current = 1
            elif self._gap_frozen(last, today):
                current = rec.current_streak + 1
                logger.info(f"{category}: gap {last} → {today} covered by freeze — streak kept")
            else:
                current = 1
                logger.info(f"{category}: streak of {rec.current_streak} broken ({last} → {today})")

            rec = StreakRecord(
                current_streak=current,
                longest_streak=max(rec.longest_streak, current),
                last_log_date=today,
                total_logs=rec.total_logs + 1,
            )
            streaks[category] = rec.to_json()
            save_json(self._store, config.STREAKS_KEY, streaks)

        if is_milestone(current):
            logger.info(f"{category}: {current}-day milestone reached")
        else:
            logger.debug(f"{category}: streak {current} (next milestone {next_milestone(current)})")
        return rec
