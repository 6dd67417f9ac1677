"""
Era Calendar — Buddhist Era / Common Era normalization and day keys.

Provides:
  - BE ⇄ CE year conversion (BE = CE + 543)
  - Flexible date parsing with BE year detection
  - Dual-era display strings (en / th)
  - Canonical day keys (YYYY-MM-DD) and period keys (YYYY-MM) from a UTC clock

Day and period keys are plain strings: the fixed-width format sorts
lexicographically in calendar order, so streak and freeze code compares them
directly.
"""
import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple, NewType, Optional, Union

from dateutil.parser import parse as parse_date
from loguru import logger

import config

LowEraYear  = NewType("LowEraYear", int)    # Common Era
HighEraYear = NewType("HighEraYear", int)   # Buddhist Era

THAI_MONTHS = (
    "มกราคม", "กุมภาพันธ์", "มีนาคม", "เมษายน", "พฤษภาคม", "มิถุนายน",
    "กรกฎาคม", "สิงหาคม", "กันยายน", "ตุลาคม", "พฤศจิกายน", "ธันวาคม",
)

_ISO_DATE   = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DMY_SLASH  = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_DASH   = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")


# ── Era conversion ────────────────────────────────────────────────────────────

def is_high_era(year: int) -> bool:
    return year > config.HIGH_ERA_THRESHOLD


def to_low_era(year: HighEraYear) -> LowEraYear:
    return LowEraYear(year - config.ERA_OFFSET)


def to_high_era(year: LowEraYear) -> HighEraYear:
    return HighEraYear(year + config.ERA_OFFSET)


def normalize_year(year: int) -> LowEraYear:
    """
    Return the CE year for a raw year that may be BE.

    Not idempotent in principle: call it once per raw value, never on a year
    that has already been normalized.

    Example:  2567 → 2024,  2024 → 2024
    """
    if is_high_era(year):
        return to_low_era(HighEraYear(year))
    return LowEraYear(year)


# ── Parsing ───────────────────────────────────────────────────────────────────

def parse_flexible_date(text: str) -> date:
    """
    Parse a user-entered date, converting BE years to CE.

    Tried in order:  YYYY-MM-DD,  DD/MM/YYYY,  DD-MM-YYYY
    Anything else goes to dateutil with no era normalization.

    Raises ValueError for impossible dates (e.g. 30/02/2024) and for text
    dateutil cannot read either.
    """
    text = text.strip()

    m = _ISO_DATE.match(text)
    if m:
        year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3))
        return date(normalize_year(year), month, day)

    for pattern in (_DMY_SLASH, _DMY_DASH):
        m = pattern.match(text)
        if m:
            day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
            return date(normalize_year(year), month, day)

    logger.debug(f"'{text}' matched no literal pattern — generic parse, no era normalization")
    try:
        return parse_date(text).date()
    except OverflowError as e:
        raise ValueError(f"Cannot parse date '{text}': {e}") from e


def normalize_date_string(text: str) -> str:
    """Strip the time part of an ISO timestamp: '1969-03-24T04:23:00Z' → '1969-03-24'."""
    if "T" in text:
        return text.split("T")[0]
    return text


# ── Display ───────────────────────────────────────────────────────────────────

def format_dual_era(d: date, locale: str = "en") -> str:
    """
    Render a date with both era years.

      en:  January 15, 2024 (2567 BE)
      th:  15 มกราคม 2567 (2024 ค.ศ.)
    """
    ce_year = d.year
    be_year = to_high_era(LowEraYear(ce_year))

    if locale == "th":
        return f"{d.day} {THAI_MONTHS[d.month - 1]} {be_year} ({ce_year} ค.ศ.)"

    return f"{calendar.month_name[d.month]} {d.day}, {ce_year} ({be_year} BE)"


class CurrentYears(NamedTuple):
    low: LowEraYear
    high: HighEraYear


def current_years(now: Optional[datetime] = None) -> CurrentYears:
    ce = LowEraYear((now or utcnow()).year)
    return CurrentYears(low=ce, high=to_high_era(ce))


# ── Clock and keys ────────────────────────────────────────────────────────────

def utcnow() -> datetime:
    """The shared clock. Subsystems take a `clock` argument defaulting to this."""
    return datetime.now(timezone.utc)


Moment = Union[datetime, date]


def _as_utc_date(moment: Moment) -> date:
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date()
    return moment


def day_key(moment: Moment) -> str:
    """Canonical day string YYYY-MM-DD of a UTC-normalized instant."""
    return _as_utc_date(moment).isoformat()


def period_key(moment: Moment) -> str:
    """Canonical month key YYYY-MM."""
    d = _as_utc_date(moment)
    return f"{d.year:04d}-{d.month:02d}"


def next_period_start(moment: Moment) -> str:
    """Day key of the first day of the following month."""
    d = _as_utc_date(moment)
    if d.month == 12:
        return date(d.year + 1, 1, 1).isoformat()
    return date(d.year, d.month + 1, 1).isoformat()


def shift_day(key: str, days: int) -> str:
    return (date.fromisoformat(key) + timedelta(days=days)).isoformat()


def days_between(start_key: str, end_key: str) -> int:
    """end - start in whole days."""
    return (date.fromisoformat(end_key) - date.fromisoformat(start_key)).days
