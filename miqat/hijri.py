"""Tabular Hijri calendar and a coarse moon phase estimate.

The conversion goes through the Julian Day Number. It uses the arithmetic
(civil) Islamic calendar with epoch JD 1948439.5, so dates may differ by a day
from sighting-based calendars.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

HIJRI_EPOCH = 1948439.5
SYNODIC_MONTH = 29.53
KNOWN_NEW_MOON = datetime(2000, 1, 6, 18, 14)

MONTH_NAMES = [
    "Muharram",
    "Safar",
    "Rabi al-Awwal",
    "Rabi al-Thani",
    "Jumada al-Awwal",
    "Jumada al-Thani",
    "Rajab",
    "Sha'ban",
    "Ramadan",
    "Shawwal",
    "Dhu al-Qi'dah",
    "Dhu al-Hijjah",
]

SPECIAL_DATES = {
    (1, 1): "Islamic New Year",
    (10, 1): "Day of Ashura",
    (12, 3): "Mawlid al-Nabi",
    (27, 7): "Laylat al-Miraj",
    (15, 8): "Laylat al-Bara'at",
    (1, 9): "First day of Ramadan",
    (27, 9): "Laylat al-Qadr",
    (1, 10): "Eid al-Fitr",
    (8, 12): "Day of Arafah",
    (10, 12): "Eid al-Adha",
}


class MoonPhase(Enum):
    NEW_MOON = (0, "New Moon", "🌑")
    WAXING_CRESCENT = (1, "Waxing Crescent", "🌒")
    FIRST_QUARTER = (2, "First Quarter", "🌓")
    WAXING_GIBBOUS = (3, "Waxing Gibbous", "🌔")
    FULL_MOON = (4, "Full Moon", "🌕")
    WANING_GIBBOUS = (5, "Waning Gibbous", "🌖")
    LAST_QUARTER = (6, "Last Quarter", "🌗")
    WANING_CRESCENT = (7, "Waning Crescent", "🌘")

    def __init__(self, index, label, icon):
        self.index = index
        self.label = label
        self.icon = icon

    @classmethod
    def from_index(cls, index):
        for phase in cls:
            if phase.index == index % 8:
                return phase
        raise ValueError(index)


@dataclass(frozen=True)
class HijriDate:
    year: int
    month: int
    day: int

    @property
    def month_name(self):
        return MONTH_NAMES[self.month - 1]

    def __str__(self):
        return format_hijri(self)


def gregorian_to_jd(day):
    a = (14 - day.month) // 12
    y = day.year + 4800 - a
    m = day.month + 12 * a - 3
    return day.day + (153 * m + 2) // 5 + 365 * y + y // 4 - y // 100 + y // 400 - 32045


def hijri_to_jd(year, month, day):
    month_part = math.ceil(29.5 * (month - 1))
    year_part = (year - 1) * 354 + math.floor((3 + 11 * year) / 30)
    return HIJRI_EPOCH + year_part + month_part + day - 1


def jd_to_hijri(jd):
    jd = math.floor(jd) + 0.5
    year = math.floor((30 * (jd - HIJRI_EPOCH) + 10646) / 10631)
    if jd < hijri_to_jd(year, 1, 1):
        year -= 1
    elif jd >= hijri_to_jd(year + 1, 1, 1):
        year += 1
    month = math.ceil((jd - (29 + hijri_to_jd(year, 1, 1))) / 29.5) + 1
    month = max(1, min(12, month))
    day = jd - hijri_to_jd(year, month, 1) + 1
    return HijriDate(int(year), int(month), int(day))


def to_hijri(day):
    if isinstance(day, datetime):
        day = day.date()
    return jd_to_hijri(gregorian_to_jd(day))


def from_hijri(hijri):
    # to_hijri maps civil JDN n to n + 0.5. JDN 1721426 is ordinal 1.
    jdn = math.floor(hijri_to_jd(hijri.year, hijri.month, hijri.day))
    return date.fromordinal(int(jdn) - 1721425)


def days_in_hijri_month(year, month):
    start = hijri_to_jd(year, month, 1)
    end = hijri_to_jd(year + 1, 1, 1) if month == 12 else hijri_to_jd(year, month + 1, 1)
    return int(end - start)


def moon_phase(when):
    if not isinstance(when, datetime):
        when = datetime(when.year, when.month, when.day)
    if when.tzinfo is not None:
        when = when.replace(tzinfo=None) - (when.utcoffset() or timedelta(0))
    days = (when - KNOWN_NEW_MOON).total_seconds() / 86400.0
    fraction = (days % SYNODIC_MONTH) / SYNODIC_MONTH
    return MoonPhase.from_index(round(fraction * 8) % 8)


def special_occasion(hijri):
    return SPECIAL_DATES.get((hijri.day, hijri.month))


def format_hijri(hijri):
    return f"{hijri.day} {hijri.month_name} {hijri.year} AH"
