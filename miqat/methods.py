import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class Method(Enum):
    MUSLIM_WORLD_LEAGUE = "MuslimWorldLeague"
    EGYPTIAN = "Egyptian"
    KARACHI = "Karachi"
    UMM_AL_QURA = "UmmAlQura"
    DUBAI = "Dubai"
    MOONSIGHTING_COMMITTEE = "MoonsightingCommittee"
    NORTH_AMERICA = "NorthAmerica"
    KUWAIT = "Kuwait"
    QATAR = "Qatar"
    TEHRAN = "Tehran"


class Madhab(Enum):
    STANDARD = "Standard"
    HANAFI = "Hanafi"

    @property
    def shadow_factor(self):
        return 2 if self is Madhab.HANAFI else 1

    @property
    def school_code(self):
        return 1 if self is Madhab.HANAFI else 0

    @classmethod
    def from_name(cls, name):
        if isinstance(name, cls):
            return name
        key = (name or "").strip().lower()
        if key == "hanafi":
            return cls.HANAFI
        if key not in {"", "standard", "shafi", "maliki", "hanbali"}:
            logger.warning("Unknown madhab %r, using Standard", name)
        return cls.STANDARD


class PrayerKind(Enum):
    TAHAJJUD = "Tahajjud"
    SUHOOR = "Suhoor"
    FAJR = "Fajr"
    SUNRISE = "Sunrise"
    ISHRAQ = "Ishraq"
    DHUHR = "Dhuhr"
    ASR = "Asr"
    MAGHRIB = "Maghrib"
    ISHA = "Isha"

    @classmethod
    def from_name(cls, name):
        for kind in cls:
            if kind.value.lower() == name.strip().lower():
                return kind
        raise ValueError(f"Unknown prayer: {name}")


CANONICAL = (
    PrayerKind.FAJR,
    PrayerKind.SUNRISE,
    PrayerKind.DHUHR,
    PrayerKind.ASR,
    PrayerKind.MAGHRIB,
    PrayerKind.ISHA,
)

PRAYER_ORDER = [
    PrayerKind.FAJR,
    PrayerKind.DHUHR,
    PrayerKind.ASR,
    PrayerKind.MAGHRIB,
    PrayerKind.ISHA,
]


@dataclass(frozen=True)
class CalculationMethod:
    """Angle and interval parameters of one named method.

    Angles are degrees below the horizon. An angle of 0 means the event is
    driven by an interval (minutes) or, for Maghrib, by sunset.
    """

    key: Method
    name: str
    fajr_angle: float
    isha_angle: float = 0.0
    isha_interval: float = 0.0
    maghrib_angle: float = 0.0
    maghrib_interval: float = 0.0
    dhuhr_minutes: float = 0.0
    api_code: int = 3
    adjust_high_lats: bool = False

    def __post_init__(self):
        if (self.isha_angle > 0) == (self.isha_interval > 0):
            raise ValueError(f"{self.name}: set exactly one of isha_angle and isha_interval")


METHODS = {
    Method.MUSLIM_WORLD_LEAGUE: CalculationMethod(
        Method.MUSLIM_WORLD_LEAGUE, "Muslim World League", 18, isha_angle=17, api_code=3
    ),
    Method.EGYPTIAN: CalculationMethod(
        Method.EGYPTIAN, "Egyptian General Authority", 19.5, isha_angle=17.5, api_code=5
    ),
    Method.KARACHI: CalculationMethod(
        Method.KARACHI, "University of Islamic Sciences, Karachi", 18, isha_angle=18, api_code=1
    ),
    Method.UMM_AL_QURA: CalculationMethod(
        Method.UMM_AL_QURA, "Umm al-Qura", 18.5, isha_interval=90, api_code=4
    ),
    Method.DUBAI: CalculationMethod(
        Method.DUBAI, "Dubai", 18.2, isha_angle=18.2, api_code=8
    ),
    Method.MOONSIGHTING_COMMITTEE: CalculationMethod(
        Method.MOONSIGHTING_COMMITTEE, "Moonsighting Committee", 18, isha_angle=18, api_code=15
    ),
    Method.NORTH_AMERICA: CalculationMethod(
        Method.NORTH_AMERICA, "Islamic Society of North America", 15, isha_angle=15, api_code=2
    ),
    Method.KUWAIT: CalculationMethod(
        Method.KUWAIT, "Kuwait", 18, isha_angle=17.5, api_code=9
    ),
    Method.QATAR: CalculationMethod(
        Method.QATAR, "Qatar", 18, isha_interval=90, api_code=10
    ),
    Method.TEHRAN: CalculationMethod(
        Method.TEHRAN, "University of Tehran", 17.7, isha_angle=14, maghrib_angle=4.5, api_code=7
    ),
}

DEFAULT_METHOD = Method.MUSLIM_WORLD_LEAGUE


def find_method(name):
    """Return the Method for `name` (enum, key or case-insensitive key), or None."""
    if isinstance(name, Method):
        return name
    if isinstance(name, CalculationMethod):
        return name.key
    key = (name or "").strip().lower()
    for method in Method:
        if method.value.lower() == key or method.name.lower() == key:
            return method
    return None


def get_method(name):
    if isinstance(name, CalculationMethod):
        return name
    if not name:
        return METHODS[DEFAULT_METHOD]
    method = find_method(name)
    if method is None:
        logger.warning("Unknown calculation method %r, using %s", name, DEFAULT_METHOD.value)
        method = DEFAULT_METHOD
    return METHODS[method]


def api_method_code(name):
    return get_method(name).api_code
