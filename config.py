"""
Central configuration for Energy Today.
All tunable parameters live here. Loaded from environment where applicable.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Calendar eras ─────────────────────────────────────────────────────────────
# Buddhist Era (BE) = Common Era (CE) + 543.
# Any year above the threshold is taken to be a BE year and shifted down once
# before date arithmetic. 2100 leaves room for every realistic CE birth year
# while sitting well below the current BE year (~2569).
ERA_OFFSET         = 543
HIGH_ERA_THRESHOLD = 2100

# ── Pythagorean Chart ─────────────────────────────────────────────────────────
PYTHAGOREAN_MAP = {
    'a': 1, 'b': 2, 'c': 3, 'd': 4, 'e': 5, 'f': 6, 'g': 7, 'h': 8, 'i': 9,
    'j': 1, 'k': 2, 'l': 3, 'm': 4, 'n': 5, 'o': 6, 'p': 7, 'q': 8, 'r': 9,
    's': 1, 't': 2, 'u': 3, 'v': 4, 'w': 5, 'x': 6, 'y': 7, 'z': 8,
}
VOWELS         = frozenset("aeiou")
MASTER_NUMBERS = frozenset({11, 22, 33})

# ── Streaks ───────────────────────────────────────────────────────────────────
# Closed set of habit categories. Adding one here also needs a label in
# core.streaks.CATEGORY_LABELS.
STREAK_CATEGORIES = ("sleep", "meditation", "nutrition", "workout", "journal", "tasks")
STREAK_MILESTONES = (7, 14, 30, 60, 90, 180, 365)

# ── Streak freezes ────────────────────────────────────────────────────────────
# One freeze per calendar month. The counter resets when the month key
# (YYYY-MM, CE) of "now" differs from the stored period.
FREEZES_PER_MONTH = int(os.getenv("FREEZES_PER_MONTH", "1"))

# ── Energy history ────────────────────────────────────────────────────────────
ENERGY_HISTORY_DAYS = int(os.getenv("ENERGY_HISTORY_DAYS", "90"))
TREND_WINDOW_DAYS   = int(os.getenv("TREND_WINDOW_DAYS", "30"))
# Second-half mean minus first-half mean must exceed this (in score points)
# to call the trend improving / declining.
TREND_THRESHOLD     = float(os.getenv("TREND_THRESHOLD", "5.0"))

# ── Storage ───────────────────────────────────────────────────────────────────
# DATABASE_URL set   → Postgres kv_store table (scoped by USER_ID)
# DATABASE_URL unset → single JSON document at DATA_PATH
DATABASE_URL = os.getenv("DATABASE_URL")
USER_ID      = os.getenv("USER_ID", "default")
DATA_PATH    = os.getenv("DATA_PATH", "data/energy_today.json")

STREAKS_KEY         = "energy_today:streaks"
STREAK_RECOVERY_KEY = "energy_today:streak_recovery"
ENERGY_HISTORY_KEY  = "energy_today:energy_history"

# ── Daily digest (main.py watch) ──────────────────────────────────────────────
DIGEST_HOUR_UTC = int(os.getenv("DIGEST_HOUR_UTC", "20"))

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR   = os.getenv("LOG_DIR", "logs")
