"""
Numerology Engine — Pythagorean system calculations.

Provides:
  - Digital root / master-number reduction
  - Name numbers: Expression (all letters), Soul Urge (vowels), Personality (consonants)
  - Life Path, Personal Year and Universal Day numbers from dates
  - Meaning text for each name number
"""
from dataclasses import asdict, dataclass
from datetime import date
from typing import Literal, Union

import config
from core.era_calendar import parse_flexible_date

NamePart = Literal["all", "vowels", "consonants"]


def digital_root(n: int) -> int:
    """Reduce any integer to a single digit (1–9) via repeated digit summation."""
    n = abs(n)
    while n > 9:
        n = sum(int(d) for d in str(n))
    return n


def reduce_number(n: int) -> int:
    """
    Like digital_root, but stop as soon as a master number (11, 22, 33) appears.

    Example:  29 → 11 (kept),  44 → 8,  0 → 0
    """
    n = abs(n)
    while n > 9 and n not in config.MASTER_NUMBERS:
        n = sum(int(d) for d in str(n))
    return n


def clean_name(name: str) -> str:
    """Uppercase, keep A–Z only, return lowercased for PYTHAGOREAN_MAP lookups."""
    return "".join(ch for ch in name.upper() if "A" <= ch <= "Z").lower()


def name_value(name: str, part: NamePart = "all") -> int:
    """
    Reduced Pythagorean value of a name.

    Example — JOHN SMITH:
      all        1+6+8+5+1+4+9+2+8 = 44 → 8
      vowels     O=6, I=9 = 15 → 6
      consonants 29 → 11 (master)
    """
    total = 0
    for ch in clean_name(name):
        is_vowel = ch in config.VOWELS
        if part == "vowels" and not is_vowel:
            continue
        if part == "consonants" and is_vowel:
            continue
        total += config.PYTHAGOREAN_MAP[ch]
    return reduce_number(total)


# ── Meanings ──────────────────────────────────────────────────────────────────

EXPRESSION_MEANINGS = {
    1: "Natural leader and pioneer. You're meant to innovate and inspire others with your independence and originality.",
    2: "Diplomat and peacemaker. Your purpose is to bring harmony, cooperation, and balance to relationships and situations.",
    3: "Creative communicator. You're here to express yourself artistically and bring joy, optimism, and inspiration to the world.",
    4: "Builder and organizer. Your mission is to create stable foundations, systems, and structures that endure.",
    5: "Freedom seeker and adventurer. You're meant to experience life fully, adapt to change, and share your discoveries.",
    6: "Nurturer and harmonizer. Your purpose is to care for others, create beauty, and bring balance to home and community.",
    7: "Seeker of truth. You're here to analyze, understand deeper meanings, and share wisdom and spiritual insights.",
    8: "Master of the material world. Your mission is to achieve success, manage resources wisely, and empower others.",
    9: "Humanitarian and idealist. You're meant to serve humanity, practice compassion, and inspire positive change.",
    11: "Master intuitive. You're here to inspire others through spiritual insight, idealism, and visionary leadership.",
    22: "Master builder. Your purpose is to turn grand visions into reality and create lasting impact on a large scale.",
    33: "Master teacher. You're meant to uplift humanity through selfless service, healing, and spiritual guidance.",
}

SOUL_URGE_MEANINGS = {
    1: "You desire independence, leadership, and the freedom to pursue your own path without interference.",
    2: "You crave harmony, partnership, and deep emotional connections. Peace and cooperation fulfill you.",
    3: "You long to express yourself creatively, socially, and joyfully. Self-expression is your soul's need.",
    4: "You desire security, order, and tangible results. Building something lasting brings you deep satisfaction.",
    5: "You crave freedom, variety, and new experiences. Adventure and change energize your soul.",
    6: "You desire to nurture, create harmony, and take responsibility for loved ones. Service fulfills you.",
    7: "You long for understanding, solitude, and spiritual truth. Inner wisdom and analysis satisfy your soul.",
    8: "You desire achievement, recognition, and material success. Power and accomplishment drive you.",
    9: "You crave to make a difference, help humanity, and live according to high ideals. Compassion fulfills you.",
    11: "You desire to inspire and enlighten others. Spiritual insight and idealistic visions drive your soul.",
    22: "You long to manifest grand visions into reality. Building something of lasting significance fulfills you.",
    33: "You desire to heal and uplift humanity. Selfless service and spiritual teaching satisfy your soul.",
}

PERSONALITY_MEANINGS = {
    1: "Others see you as confident, independent, and a natural leader. You project strength and originality.",
    2: "You appear gentle, diplomatic, and approachable. Others see you as a peacemaker and good listener.",
    3: "You come across as charming, creative, and sociable. People see you as fun, expressive, and optimistic.",
    4: "Others perceive you as reliable, practical, and grounded. You project stability and trustworthiness.",
    5: "You appear dynamic, adventurous, and free-spirited. People see you as exciting and unpredictable.",
    6: "You come across as warm, responsible, and caring. Others see you as nurturing and harmonious.",
    7: "Others perceive you as mysterious, intellectual, and reserved. You project depth and wisdom.",
    8: "You appear powerful, ambitious, and successful. People see you as authoritative and capable.",
    9: "You come across as compassionate, idealistic, and worldly. Others see you as humanitarian and wise.",
    11: "Others perceive you as inspiring, intuitive, and visionary. You project spiritual insight and idealism.",
    22: "You appear as a master builder with grand visions. People see you as capable of achieving the impossible.",
    33: "You come across as a spiritual teacher and healer. Others see you as selfless and deeply compassionate.",
}

EXPRESSION_FALLBACK  = "Unique expression path."
SOUL_URGE_FALLBACK   = "Unique soul desire."
PERSONALITY_FALLBACK = "Unique outer personality."


@dataclass(frozen=True)
class NumerologyProfile:
    expression_number: int
    expression_meaning: str
    soul_urge_number: int
    soul_urge_meaning: str
    personality_number: int
    personality_meaning: str

    def as_dict(self) -> dict:
        return asdict(self)


def analyze_name(full_name: str) -> NumerologyProfile:
    """
    Compute the three name numbers for a full name.

    A name with no letters in a group (e.g. "Lynn" has no vowels) sums to 0;
    0 is returned as-is and gets the fallback meaning.
    """
    expression  = name_value(full_name, "all")
    soul_urge   = name_value(full_name, "vowels")
    personality = name_value(full_name, "consonants")

    return NumerologyProfile(
        expression_number=expression,
        expression_meaning=EXPRESSION_MEANINGS.get(expression, EXPRESSION_FALLBACK),
        soul_urge_number=soul_urge,
        soul_urge_meaning=SOUL_URGE_MEANINGS.get(soul_urge, SOUL_URGE_FALLBACK),
        personality_number=personality,
        personality_meaning=PERSONALITY_MEANINGS.get(personality, PERSONALITY_FALLBACK),
    )


# ── Date numbers ──────────────────────────────────────────────────────────────

BirthDate = Union[date, str]


def _as_date(birth: BirthDate) -> date:
    if isinstance(birth, str):
        return parse_flexible_date(birth)
    return birth


def life_path_number(birth: BirthDate) -> int:
    """
    Life Path Number: day + month + year, reduced (master numbers kept).

    Example — 1969-03-24:
      24 + 3 + 1969 = 1996 → 25 → 7
    Text input goes through parse_flexible_date, so "24/03/2512" (BE) gives the same.
    """
    d = _as_date(birth)
    return reduce_number(d.day + d.month + d.year)


def personal_year_number(birth: BirthDate, year: int) -> int:
    """Personal Year: birth day + birth month + the given CE year, reduced."""
    d = _as_date(birth)
    return reduce_number(d.day + d.month + year)


def universal_day_number(d: date) -> int:
    """
    Universal Day Number (UDN) for a given date: digital root of YYYYMMDD.

    Example — Feb 23, 2026:
      2+0+2+6+0+2+2+3 = 17 → 1+7 = 8
    """
    raw = f"{d.year:04d}{d.month:02d}{d.day:02d}"
    return digital_root(sum(int(ch) for ch in raw))


def full_numerology_report(full_name: str, birth: BirthDate, today: date) -> dict:
    """
    Name profile plus date numbers for one person on a given day.

    Returns a dict suitable for logging and display.
    """
    profile = analyze_name(full_name)
    report = profile.as_dict()
    report.update({
        "name": full_name,
        "birth_date": _as_date(birth).isoformat(),
        "today": today.isoformat(),
        "life_path_number": life_path_number(birth),
        "personal_year_number": personal_year_number(birth, today.year),
        "universal_day_number": universal_day_number(today),
    })
    return report
