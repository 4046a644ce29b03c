import math
from collections import namedtuple
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional

from .methods import CANONICAL, Madhab, PrayerKind, get_method

RISE_SET_ANGLE = 0.833

SolarPosition = namedtuple("SolarPosition", ["jd", "equation_of_time", "declination"])


class InvalidCoordinate(ValueError):
    pass


class Crossing(Enum):
    """Which side of the horizon the target angle is measured on.

    DESCENDING: the sun is `angle` degrees below the horizon (twilight,
    sunrise, sunset). ASCENDING: the sun is `angle` degrees above it (Asr).
    """

    ASCENDING = "ascending"
    DESCENDING = "descending"


class Source(Enum):
    LOCAL = "local"
    REMOTE = "remote"


def _dtr(d):
    return (d * math.pi) / 180.0


def _rtd(r):
    return (r * 180.0) / math.pi


def _fix_angle(a):
    return a - 360.0 * math.floor(a / 360.0)


def _fix_hour(h):
    return h - 24.0 * math.floor(h / 24.0)


def julian_date(y, m, d):
    if m <= 2:
        y -= 1
        m += 12
    a = math.floor(y / 100)
    b = 2 - a + math.floor(a / 4)
    return math.floor(365.25 * (y + 4716)) + math.floor(30.6001 * (m + 1)) + d + b - 1524.5


def sun_position(jd):
    d = jd - 2451545.0
    g = _fix_angle(357.529 + 0.98560028 * d)
    q = _fix_angle(280.459 + 0.98564736 * d)
    L = _fix_angle(q + 1.915 * math.sin(_dtr(g)) + 0.020 * math.sin(_dtr(2 * g)))
    e = 23.439 - 0.00000036 * d
    ra = _rtd(math.atan2(math.cos(_dtr(e)) * math.sin(_dtr(L)), math.cos(_dtr(L)))) / 15.0
    ra = _fix_hour(ra)
    eqt = q / 15.0 - ra
    decl = _rtd(math.asin(math.sin(_dtr(e)) * math.sin(_dtr(L))))
    return decl, eqt


def solar_ephemeris(day):
    """Julian Day, equation of time (hours) and declination (degrees) at 0h UT."""
    jd = julian_date(day.year, day.month, day.day)
    decl, eqt = sun_position(jd)
    return SolarPosition(jd, eqt, decl)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def __post_init__(self):
        lat, lng = validate_coordinates(self.lat, self.lng)
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lng", lng)


def validate_coordinates(lat, lng):
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        raise InvalidCoordinate(f"Coordinates must be numbers: {lat!r}, {lng!r}") from None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinate(f"Coordinates must be finite: {lat}, {lng}")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinate(f"Longitude out of range: {lng}")
    return lat, lng


def solar_transit(day, coords, position=None):
    pos = position or solar_ephemeris(day)
    return _fix_hour(12 + pos.equation_of_time - coords.lng / 15.0)


def sun_angle_time(day, angle, coords, direction=Crossing.DESCENDING, after_transit=False, position=None):
    """UTC decimal hour at which the sun crosses `angle`, or None if it never does.

    `after_transit` picks the afternoon root of the hour angle; otherwise the
    morning one is returned.
    """
    pos = position or solar_ephemeris(day)
    decl = pos.declination
    if abs(coords.lat - decl) > 90.0:
        return None
    elevation = angle if direction is Crossing.ASCENDING else -angle
    numerator = math.sin(_dtr(elevation)) - math.sin(_dtr(decl)) * math.sin(_dtr(coords.lat))
    denominator = math.cos(_dtr(decl)) * math.cos(_dtr(coords.lat))
    if denominator == 0:
        return None
    x = numerator / denominator
    if x < -1.0 or x > 1.0:
        return None
    theta = _rtd(math.acos(x))
    hour_angle = theta if after_transit else 360.0 - theta
    return _fix_hour(12 + hour_angle / 15.0 + pos.equation_of_time - coords.lng / 15.0)


def asr_angle(lat, decl, madhab):
    factor = Madhab.from_name(madhab).shadow_factor
    return _rtd(math.atan(1.0 / (factor + math.tan(_dtr(abs(lat - decl))))))


def tz_hours_for_day(day, tzinfo):
    dt = datetime(day.year, day.month, day.day, 0, 0, 0, tzinfo=tzinfo)
    offset = dt.utcoffset()
    return offset.total_seconds() / 3600.0 if offset else 0.0


def hours_to_datetime(day, hours, tzinfo):
    base = datetime(day.year, day.month, day.day, tzinfo=tzinfo)
    return base + timedelta(seconds=round(hours * 3600))


@dataclass(frozen=True)
class PrayerSchedule:
    day: date
    coords: Coordinates
    method: object
    madhab: Madhab
    times: Dict[PrayerKind, Optional[datetime]]
    source: Source = Source.LOCAL
    fetched_at: Optional[datetime] = None

    def __getitem__(self, kind):
        return self.times[kind]

    def get(self, kind, default=None):
        return self.times.get(kind, default)

    def items(self):
        return self.times.items()

    def to_dict(self):
        return {kind.value: (dt.isoformat() if dt else None) for kind, dt in self.times.items()}


def derive_supplementary(times, suhoor_minutes=20, ishraq_minutes=20):
    """Return `times` (canonical entries) extended with Tahajjud, Suhoor and Ishraq."""
    fajr = times.get(PrayerKind.FAJR)
    sunrise = times.get(PrayerKind.SUNRISE)
    isha = times.get(PrayerKind.ISHA)

    tahajjud = None
    if fajr is not None and isha is not None:
        next_fajr = fajr if fajr > isha else fajr + timedelta(days=1)
        tahajjud = isha + (next_fajr - isha) / 2

    derived = {
        PrayerKind.TAHAJJUD: tahajjud,
        PrayerKind.SUHOOR: fajr - timedelta(minutes=suhoor_minutes) if fajr is not None else None,
        PrayerKind.ISHRAQ: sunrise + timedelta(minutes=ishraq_minutes) if sunrise is not None else None,
    }
    derived.update({kind: times.get(kind) for kind in CANONICAL})
    return {kind: derived[kind] for kind in PrayerKind}


class PrayTimes:
    def __init__(self, method=None, madhab=Madhab.STANDARD, dhuhr_minutes=None, adjustments=None,
                 suhoor_minutes=20, ishraq_minutes=20):
        self.method = get_method(method)
        self.madhab = Madhab.from_name(madhab)
        self.dhuhr_minutes = self.method.dhuhr_minutes if dhuhr_minutes is None else dhuhr_minutes
        self.adjustments = {}
        for key, minutes in (adjustments or {}).items():
            kind = key if isinstance(key, PrayerKind) else PrayerKind.from_name(key)
            self.adjustments[kind] = minutes
        self.suhoor_minutes = suhoor_minutes
        self.ishraq_minutes = ishraq_minutes

    def get_times(self, day, coords, tzinfo=None):
        tzinfo = tzinfo or timezone.utc
        pos = solar_ephemeris(day)
        times = self._compute_times(day, coords, pos)
        times = self._adjust_times(times, tz_hours_for_day(day, tzinfo))
        times = self._place_times(day, times, tzinfo)
        return PrayerSchedule(
            day=day,
            coords=coords,
            method=self.method,
            madhab=self.madhab,
            times=derive_supplementary(times, self.suhoor_minutes, self.ishraq_minutes),
        )

    def _compute_times(self, day, coords, pos):
        method = self.method
        fajr = sun_angle_time(day, method.fajr_angle, coords, Crossing.DESCENDING, False, pos)
        sunrise = sun_angle_time(day, RISE_SET_ANGLE, coords, Crossing.DESCENDING, False, pos)
        dhuhr = _fix_hour(solar_transit(day, coords, pos) + self.dhuhr_minutes / 60.0)

        asr = None
        if abs(coords.lat - pos.declination) <= 90.0:
            angle = asr_angle(coords.lat, pos.declination, self.madhab)
            asr = sun_angle_time(day, angle, coords, Crossing.ASCENDING, True, pos)

        if method.maghrib_interval > 0:
            sunset = sun_angle_time(day, RISE_SET_ANGLE, coords, Crossing.DESCENDING, True, pos)
            maghrib = _fix_hour(sunset + method.maghrib_interval / 60.0) if sunset is not None else None
        else:
            maghrib_angle = method.maghrib_angle if method.maghrib_angle > 0 else RISE_SET_ANGLE
            maghrib = sun_angle_time(day, maghrib_angle, coords, Crossing.DESCENDING, True, pos)

        if method.isha_angle > 0:
            isha = sun_angle_time(day, method.isha_angle, coords, Crossing.DESCENDING, True, pos)
        elif maghrib is not None:
            isha = _fix_hour(maghrib + method.isha_interval / 60.0)
        else:
            isha = None

        return {
            PrayerKind.FAJR: fajr,
            PrayerKind.SUNRISE: sunrise,
            PrayerKind.DHUHR: dhuhr,
            PrayerKind.ASR: asr,
            PrayerKind.MAGHRIB: maghrib,
            PrayerKind.ISHA: isha,
        }

    def _adjust_times(self, times, tz_hours):
        adjusted = {}
        for kind, value in times.items():
            if value is None:
                adjusted[kind] = None
                continue
            value += tz_hours + self.adjustments.get(kind, 0) / 60.0
            adjusted[kind] = _fix_hour(value)
        return adjusted

    def _place_times(self, day, times, tzinfo):
        # Crossings normalized past local midnight belong to the neighbouring day.
        dhuhr = times[PrayerKind.DHUHR]
        placed = {}
        for kind, value in times.items():
            if value is None:
                placed[kind] = None
                continue
            target = day
            if kind in (PrayerKind.FAJR, PrayerKind.SUNRISE) and value > dhuhr:
                target = day - timedelta(days=1)
            elif kind in (PrayerKind.ASR, PrayerKind.MAGHRIB, PrayerKind.ISHA) and value < dhuhr:
                target = day + timedelta(days=1)
            placed[kind] = hours_to_datetime(target, value, tzinfo)
        return placed


def build_schedule(day, coords, method=None, madhab=Madhab.STANDARD, tzinfo=None, **options):
    return PrayTimes(method, madhab, **options).get_times(day, coords, tzinfo)
