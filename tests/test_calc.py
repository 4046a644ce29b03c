from datetime import date, datetime, timedelta, timezone

import pytest

from miqat.calc import (
    Coordinates,
    Crossing,
    InvalidCoordinate,
    PrayTimes,
    RISE_SET_ANGLE,
    build_schedule,
    julian_date,
    solar_ephemeris,
    solar_transit,
    sun_angle_time,
)
from miqat.methods import Madhab, Method, PrayerKind
from miqat.reconcile import cache_key

MAKKAH = Coordinates(lat=21.3891, lng=39.8579)
EQUINOX = date(2024, 3, 20)
RIYADH_TIME = timezone(timedelta(hours=3))

CANONICAL_ORDER = [
    PrayerKind.FAJR,
    PrayerKind.SUNRISE,
    PrayerKind.ISHRAQ,
    PrayerKind.DHUHR,
    PrayerKind.ASR,
    PrayerKind.MAGHRIB,
    PrayerKind.ISHA,
]


def test_julian_date_of_j2000_midnight() -> None:
    assert julian_date(2000, 1, 1) == 2451544.5


def test_julian_date_january_uses_previous_year() -> None:
    assert julian_date(2024, 1, 1) == julian_date(2023, 12, 31) + 1


def test_ephemeris_near_equinox() -> None:
    pos = solar_ephemeris(EQUINOX)

    assert pos.jd == 2460389.5
    assert abs(pos.declination) < 0.5
    assert -0.2 < pos.equation_of_time < -0.05


def test_ephemeris_declination_at_solstices() -> None:
    assert solar_ephemeris(date(2024, 6, 21)).declination == pytest.approx(23.44, abs=0.1)
    assert solar_ephemeris(date(2024, 12, 21)).declination == pytest.approx(-23.44, abs=0.1)


def test_coordinates_reject_out_of_range() -> None:
    with pytest.raises(InvalidCoordinate):
        Coordinates(lat=91, lng=0)
    with pytest.raises(InvalidCoordinate):
        Coordinates(lat=0, lng=-180.5)
    with pytest.raises(ValueError):
        Coordinates(lat=float("nan"), lng=0)
    with pytest.raises(InvalidCoordinate):
        Coordinates(lat="north", lng=0)


def test_coordinates_store_floats() -> None:
    coords = Coordinates(lat="21.4", lng="39.8")

    assert isinstance(coords.lat, float)
    assert isinstance(coords.lng, float)
    assert build_schedule(EQUINOX, coords)[PrayerKind.DHUHR] is not None
    assert cache_key(EQUINOX, Coordinates(21, 39), None, None) == cache_key(EQUINOX, Coordinates(21.0, 39.0), None, None)


def test_sun_angle_time_morning_before_transit() -> None:
    transit = solar_transit(EQUINOX, MAKKAH)
    sunrise = sun_angle_time(EQUINOX, RISE_SET_ANGLE, MAKKAH, Crossing.DESCENDING, after_transit=False)
    sunset = sun_angle_time(EQUINOX, RISE_SET_ANGLE, MAKKAH, Crossing.DESCENDING, after_transit=True)

    assert sunrise < transit < sunset
    assert transit - sunrise == pytest.approx(sunset - transit, abs=1e-9)
    assert sunset - sunrise == pytest.approx(12.1, abs=0.1)


def test_sun_angle_time_unreachable_when_sun_too_far() -> None:
    polar = Coordinates(lat=80, lng=0)

    assert sun_angle_time(date(2024, 12, 21), 18, polar, Crossing.DESCENDING) is None


def test_makkah_equinox_scenario() -> None:
    schedule = build_schedule(EQUINOX, MAKKAH, Method.MUSLIM_WORLD_LEAGUE, Madhab.STANDARD, RIYADH_TIME)

    dhuhr = schedule[PrayerKind.DHUHR]
    assert datetime(2024, 3, 20, 12, 5, tzinfo=RIYADH_TIME) <= dhuhr <= datetime(2024, 3, 20, 12, 20, tzinfo=RIYADH_TIME)
    times = [schedule[kind] for kind in CANONICAL_ORDER]
    assert all(t is not None for t in times)
    assert times == sorted(times)
    assert len(set(times)) == len(times)
    assert all(t.date() == EQUINOX for t in times)


def test_schedule_has_every_prayer_kind_in_order() -> None:
    schedule = build_schedule(EQUINOX, MAKKAH)

    assert list(schedule.times) == list(PrayerKind)
    assert schedule.method.key is Method.MUSLIM_WORLD_LEAGUE


def test_dhuhr_is_transit_plus_offset() -> None:
    base = build_schedule(EQUINOX, MAKKAH)
    shifted = build_schedule(EQUINOX, MAKKAH, dhuhr_minutes=5)

    expected = datetime(2024, 3, 20, tzinfo=timezone.utc) + timedelta(hours=solar_transit(EQUINOX, MAKKAH))
    assert abs(base[PrayerKind.DHUHR] - expected) <= timedelta(seconds=1)
    assert abs(shifted[PrayerKind.DHUHR] - base[PrayerKind.DHUHR] - timedelta(minutes=5)) <= timedelta(seconds=1)


@pytest.mark.parametrize("coords", [MAKKAH, Coordinates(51.5074, -0.1278), Coordinates(-33.9249, 18.4241)])
def test_hanafi_asr_is_later(coords) -> None:
    standard = build_schedule(date(2024, 7, 1), coords, madhab=Madhab.STANDARD)
    hanafi = build_schedule(date(2024, 7, 1), coords, madhab=Madhab.HANAFI)

    assert hanafi[PrayerKind.ASR] > standard[PrayerKind.ASR]
    assert hanafi[PrayerKind.DHUHR] == standard[PrayerKind.DHUHR]


def test_high_latitude_summer_has_no_twilight() -> None:
    schedule = build_schedule(date(2024, 6, 21), Coordinates(65.0, 25.0))

    assert schedule[PrayerKind.FAJR] is None
    assert schedule[PrayerKind.ISHA] is None
    assert schedule[PrayerKind.SUHOOR] is None
    assert schedule[PrayerKind.TAHAJJUD] is None
    for kind in (PrayerKind.SUNRISE, PrayerKind.DHUHR, PrayerKind.ASR, PrayerKind.MAGHRIB, PrayerKind.ISHRAQ):
        assert schedule[kind] is not None


def test_polar_night_keeps_only_dhuhr() -> None:
    schedule = build_schedule(date(2024, 12, 21), Coordinates(80.0, 15.0))

    assert schedule[PrayerKind.DHUHR] is not None
    assert [kind for kind, t in schedule.items() if t is not None] == [PrayerKind.DHUHR]


def test_isha_interval_method() -> None:
    schedule = build_schedule(EQUINOX, MAKKAH, Method.UMM_AL_QURA)

    gap = schedule[PrayerKind.ISHA] - schedule[PrayerKind.MAGHRIB]
    assert abs(gap - timedelta(minutes=90)) <= timedelta(seconds=1)


def test_maghrib_angle_method_is_after_sunset() -> None:
    tehran = build_schedule(EQUINOX, MAKKAH, Method.TEHRAN)
    mwl = build_schedule(EQUINOX, MAKKAH, Method.MUSLIM_WORLD_LEAGUE)

    assert tehran[PrayerKind.MAGHRIB] > mwl[PrayerKind.MAGHRIB]


def test_unknown_method_falls_back_to_default() -> None:
    schedule = build_schedule(EQUINOX, MAKKAH, "NoSuchMethod")

    assert schedule.method.key is Method.MUSLIM_WORLD_LEAGUE


def test_supplementary_times() -> None:
    schedule = build_schedule(EQUINOX, MAKKAH, tzinfo=RIYADH_TIME)
    fajr = schedule[PrayerKind.FAJR]
    isha = schedule[PrayerKind.ISHA]

    assert schedule[PrayerKind.SUHOOR] == fajr - timedelta(minutes=20)
    assert schedule[PrayerKind.ISHRAQ] == schedule[PrayerKind.SUNRISE] + timedelta(minutes=20)
    assert schedule[PrayerKind.TAHAJJUD] == isha + (fajr + timedelta(days=1) - isha) / 2
    assert isha < schedule[PrayerKind.TAHAJJUD] < fajr + timedelta(days=1)


def test_adjustments_shift_canonical_times() -> None:
    base = PrayTimes().get_times(EQUINOX, MAKKAH)
    adjusted = PrayTimes(adjustments={"asr": 10, "fajr": -5}).get_times(EQUINOX, MAKKAH)

    assert abs(adjusted[PrayerKind.ASR] - base[PrayerKind.ASR] - timedelta(minutes=10)) <= timedelta(seconds=1)
    assert abs(adjusted[PrayerKind.FAJR] - base[PrayerKind.FAJR] + timedelta(minutes=5)) <= timedelta(seconds=1)
    assert adjusted[PrayerKind.SUHOOR] == adjusted[PrayerKind.FAJR] - timedelta(minutes=20)


def test_isha_after_local_midnight_moves_to_next_day() -> None:
    far_east_clock = timezone(timedelta(hours=8))
    schedule = build_schedule(EQUINOX, MAKKAH, tzinfo=far_east_clock)

    assert schedule[PrayerKind.ISHA].date() == EQUINOX + timedelta(days=1)
    assert schedule[PrayerKind.MAGHRIB] < schedule[PrayerKind.ISHA]
    assert schedule[PrayerKind.FAJR].date() == EQUINOX


def test_to_dict_serializes_nulls() -> None:
    schedule = build_schedule(date(2024, 6, 21), Coordinates(65.0, 25.0))
    data = schedule.to_dict()

    assert data["Fajr"] is None
    assert data["Dhuhr"].startswith("2024-06-21T")
