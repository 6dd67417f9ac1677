"""
Streak Recovery — a monthly budget of streak freezes.

A freeze marks one day so that StreakTracker does not see it as a missed day.
The budget (FREEZES_PER_MONTH, default 1) resets when the calendar month of
"now" differs from the stored period key.

Note: can_freeze() writes the month rollover back to storage as soon as it
notices it, so even a pure "can I?" query may persist state.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

import config
from core.era_calendar import day_key, next_period_start, period_key, utcnow
from db.storage import KeyValueStore, Loaded, StorageError, load_json, save_json


@dataclass
class RecoveryState:
    freezes_used: int = 0
    last_freeze_date: Optional[str] = None
    # Stored entries as read, including any without a "date"; readers filter.
    freeze_history: list = field(default_factory=list)
    current_period_start: str = ""

    def to_json(self) -> dict:
        return {
            "freezesUsed":        self.freezes_used,
            "lastFreezeDate":     self.last_freeze_date,
            "freezeHistory":      list(self.freeze_history),
            "currentPeriodStart": self.current_period_start,
        }

    @classmethod
    def from_json(cls, data: dict) -> "RecoveryState":
        """Raises TypeError / ValueError on wrongly typed fields."""
        history = data.get("freezeHistory")
        if history is None:
            history = []
        if not isinstance(history, list):
            raise TypeError(f"freezeHistory is a {type(history).__name__}, expected a list")
        last = data.get("lastFreezeDate")
        return cls(
            freezes_used=int(data.get("freezesUsed", 0)),
            last_freeze_date=None if last is None else str(last),
            freeze_history=list(history),
            current_period_start=str(data.get("currentPeriodStart", "")),
        )

    def dated_entries(self) -> list[dict]:
        return [h for h in self.freeze_history if isinstance(h, dict) and "date" in h]


@dataclass
class FreezeCheck:
    allowed: bool
    remaining: int
    reason: Optional[str] = None


@dataclass
class FreezeResult:
    success: bool
    message: str


@dataclass
class FreezeStats:
    total_freezes_used: int
    freezes_this_month: int
    freezes_remaining: int
    last_freeze_date: Optional[str]
    next_reset_date: str


QUOTA_EXHAUSTED = "You've used your freeze for this month"
ALREADY_FROZEN  = "Streak already frozen for today"
FROZEN_OK       = "Streak frozen successfully! Your streak is protected for today."
FREEZE_FAILED   = "Failed to freeze streak. Please try again."


class StreakRecovery:
    """Owns the streak_recovery key."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utcnow,
                 quota: int = config.FREEZES_PER_MONTH):
        self._store = store
        self._clock = clock
        self.quota = quota
        self.last_read: Optional[Loaded] = None

    # ── Persistence ───────────────────────────────────────────────────────────

    def load(self, now: Optional[datetime] = None, strict: bool = False) -> RecoveryState:
        """
        Read the state. Malformed content degrades to a fresh state for the
        current month. A read failure does too, unless strict=True, in which
        case StorageError is raised.
        """
        self.last_read = load_json(self._store, config.STREAK_RECOVERY_KEY, None, strict=strict)
        data = self.last_read.value
        if isinstance(data, dict):
            try:
                return RecoveryState.from_json(data)
            except (TypeError, ValueError) as e:
                logger.warning(f"Streak recovery data has bad fields ({e}) — using defaults")
                self.last_read = Loaded(None, degraded=True, error=str(e))
        elif data is not None:
            logger.warning("Streak recovery data is not an object — using defaults")
            self.last_read = Loaded(None, degraded=True, error="not a JSON object")
        return RecoveryState(current_period_start=period_key(now or self._clock()))

    def save(self, state: RecoveryState):
        save_json(self._store, config.STREAK_RECOVERY_KEY, state.to_json())

    def _rollover(self, state: RecoveryState, now: datetime):
        """Reset the counter when the month changed. Persists. Raises StorageError."""
        current = period_key(now)
        if state.current_period_start != current:
            logger.info(
                f"Freeze period rolled over {state.current_period_start or '-'} → {current}"
            )
            state.freezes_used = 0
            state.current_period_start = current
            self.save(state)

    def _check(self, state: RecoveryState, now: datetime) -> FreezeCheck:
        remaining = max(self.quota - state.freezes_used, 0)

        if state.freezes_used >= self.quota:
            return FreezeCheck(allowed=False, remaining=0, reason=QUOTA_EXHAUSTED)

        if state.last_freeze_date == day_key(now):
            return FreezeCheck(allowed=False, remaining=remaining, reason=ALREADY_FROZEN)

        return FreezeCheck(allowed=True, remaining=remaining)

    # ── Queries ───────────────────────────────────────────────────────────────

    def can_freeze(self, now: Optional[datetime] = None) -> FreezeCheck:
        """Raises StorageError only if the month rollover cannot be written."""
        now = now or self._clock()
        with self._store.lock(config.STREAK_RECOVERY_KEY):
            state = self.load(now)
            self._rollover(state, now)
        return self._check(state, now)

    def frozen_days(self, strict: bool = False) -> set[str]:
        return {h["date"] for h in self.load(strict=strict).dated_entries()}

    def is_frozen(self, day: str) -> bool:
        """True if `day` (YYYY-MM-DD) was ever frozen. Works for any past day."""
        return day in self.frozen_days()

    def freeze_history(self) -> list[dict]:
        """Newest first. Storage order is left untouched."""
        return sorted(self.load().dated_entries(), key=lambda h: str(h["date"]), reverse=True)

    def freeze_stats(self, now: Optional[datetime] = None) -> FreezeStats:
        now = now or self._clock()
        check = self.can_freeze(now)
        state = self.load(now)
        return FreezeStats(
            total_freezes_used=len(state.dated_entries()),
            freezes_this_month=state.freezes_used,
            freezes_remaining=check.remaining,
            last_freeze_date=state.last_freeze_date,
            next_reset_date=next_period_start(now),
        )

    # ── Mutation ──────────────────────────────────────────────────────────────

    def freeze(self, reason: Optional[str] = None, now: Optional[datetime] = None) -> FreezeResult:
        """
        Spend one freeze on today. Denials and storage failures come back as
        FreezeResult(success=False); nothing is raised for either.

        The state that is checked is the state that is written. If it cannot
        be read, nothing is written.
        """
        now = now or self._clock()
        with self._store.lock(config.STREAK_RECOVERY_KEY):
            try:
                state = self.load(now, strict=True)
                self._rollover(state, now)
            except StorageError as e:
                logger.error(f"Failed to freeze streak: {e}")
                return FreezeResult(success=False, message=FREEZE_FAILED)

            check = self._check(state, now)
            if not check.allowed:
                logger.info(f"Freeze denied: {check.reason}")
                return FreezeResult(success=False, message=check.reason)

            today = day_key(now)
            state.freezes_used += 1
            state.last_freeze_date = today
            entry = {"date": today}
            if reason:
                entry["reason"] = reason
            state.freeze_history.append(entry)

            try:
                self.save(state)
            except StorageError as e:
                logger.error(f"Failed to freeze streak: {e}")
                return FreezeResult(success=False, message=FREEZE_FAILED)

        logger.info(f"Streak frozen for {today} ({state.freezes_used}/{self.quota} this month)")
        return FreezeResult(success=True, message=FROZEN_OK)
