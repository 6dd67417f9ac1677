"""
Energy History — daily energy scores and trend classification.

One entry per day key, kept for ENERGY_HISTORY_DAYS and sorted oldest first.
Scores come from outside this module (the daily energy model); this module
only stores them and summarizes the recent window:
  - Medium (mean) of user / environmental energy
  - Trend label: improving | stable | declining (second half vs first half)
  - Slope: least-squares slope of user energy per day
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Literal, Optional, Sequence

import numpy as np
from loguru import logger

import config
from core.era_calendar import day_key, shift_day, utcnow
from db.storage import KeyValueStore, Loaded, load_json, save_json

Alignment = Literal["strong", "moderate", "challenging"]
Trend = Literal["improving", "stable", "declining"]

ALIGNMENTS = ("strong", "moderate", "challenging")


def classify_trend(scores: Sequence[float], threshold: float = config.TREND_THRESHOLD) -> Trend:
    """
    Compare the mean of the second half against the mean of the first half.
    With an odd count the middle score belongs to the second half.
    Fewer than two scores is "stable".
    """
    if len(scores) < 2:
        return "stable"
    mid = len(scores) // 2
    diff = float(np.mean(scores[mid:])) - float(np.mean(scores[:mid]))
    if diff > threshold:
        return "improving"
    if diff < -threshold:
        return "declining"
    return "stable"


def slope(scores: Sequence[float]) -> Optional[float]:
    """
    Compute slope of the score series.
    With >=3 points: uses linear regression slope (more robust).
    With 2 points:   simple delta (current - previous).
    With <2 points:  None (not enough data).
    """
    if len(scores) < 2:
        return None
    if len(scores) >= 3:
        x = np.arange(len(scores), dtype=float)
        return float(np.polyfit(x, list(scores), 1)[0])
    return float(scores[-1] - scores[-2])


@dataclass
class EnergyEntry:
    date: str
    user_energy: float
    environmental_energy: float
    alignment: Alignment

    def to_json(self) -> dict:
        return {
            "date":                     self.date,
            "userEnergyScore":          self.user_energy,
            "environmentalEnergyScore": self.environmental_energy,
            "alignment":                self.alignment,
        }

    @classmethod
    def from_json(cls, data: dict) -> "EnergyEntry":
        return cls(
            date=str(data["date"])[:10],
            user_energy=float(data.get("userEnergyScore", 0)),
            environmental_energy=float(data.get("environmentalEnergyScore", 0)),
            alignment=data.get("alignment", "moderate"),
        )


@dataclass
class EnergyTrend:
    average_user_energy: float
    average_environmental_energy: float
    trend: Trend
    slope: Optional[float]
    strong_days: int
    moderate_days: int
    challenging_days: int
    days_recorded: int


class EnergyHistory:
    """Owns the energy_history key."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utcnow,
                 retention_days: int = config.ENERGY_HISTORY_DAYS):
        self._store = store
        self._clock = clock
        self.retention_days = retention_days
        self.last_read: Optional[Loaded] = None

    # ── Persistence ───────────────────────────────────────────────────────────

    def entries(self, strict: bool = False) -> list[EnergyEntry]:
        """Raises StorageError on a failed read only when strict=True."""
        self.last_read = load_json(self._store, config.ENERGY_HISTORY_KEY, [], strict=strict)
        raw = self.last_read.value
        if not isinstance(raw, list):
            logger.warning("Energy history is not a list — starting fresh")
            self.last_read = Loaded([], degraded=True, error="not a JSON array")
            return []
        out = []
        for item in raw:
            try:
                out.append(EnergyEntry.from_json(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed energy entry {item!r}: {e}")
        return out

    # ── Mutation ──────────────────────────────────────────────────────────────

    def record(self, user_energy: float, environmental_energy: float,
               alignment: Alignment, day: Optional[str] = None) -> EnergyEntry:
        """
        Insert or replace the entry for `day` (defaults to today) and prune old days.
        Raises StorageError if the history cannot be read or written.
        """
        if alignment not in ALIGNMENTS:
            raise ValueError(f"alignment must be one of {ALIGNMENTS}, got '{alignment}'")
        today = day_key(self._clock())
        day = day or today
        entry = EnergyEntry(day, float(user_energy), float(environmental_energy), alignment)

        with self._store.lock(config.ENERGY_HISTORY_KEY):
            by_day = {e.date: e for e in self.entries(strict=True)}
            by_day[day] = entry
            cutoff = shift_day(today, -self.retention_days)
            kept = sorted((e for e in by_day.values() if e.date >= cutoff), key=lambda e: e.date)
            save_json(self._store, config.ENERGY_HISTORY_KEY, [e.to_json() for e in kept])

        logger.debug(f"Energy recorded for {day}: user={user_energy} env={environmental_energy} ({alignment})")
        return entry

    # ── Queries ───────────────────────────────────────────────────────────────

    def recent(self, days: int = config.TREND_WINDOW_DAYS) -> list[EnergyEntry]:
        cutoff = shift_day(day_key(self._clock()), -days)
        return [e for e in self.entries() if e.date >= cutoff]

    def trend(self, days: int = config.TREND_WINDOW_DAYS) -> EnergyTrend:
        window = self.recent(days)
        if not window:
            return EnergyTrend(0.0, 0.0, "stable", None, 0, 0, 0, 0)

        user = [e.user_energy for e in window]
        env = [e.environmental_energy for e in window]
        return EnergyTrend(
            average_user_energy=float(np.mean(user)),
            average_environmental_energy=float(np.mean(env)),
            trend=classify_trend(user),
            slope=slope(user),
            strong_days=sum(1 for e in window if e.alignment == "strong"),
            moderate_days=sum(1 for e in window if e.alignment == "moderate"),
            challenging_days=sum(1 for e in window if e.alignment == "challenging"),
            days_recorded=len(window),
        )
