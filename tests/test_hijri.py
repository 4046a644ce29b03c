from datetime import date, datetime, timedelta, timezone

import pytest

from miqat.hijri import (
    HijriDate,
    MoonPhase,
    days_in_hijri_month,
    format_hijri,
    from_hijri,
    gregorian_to_jd,
    hijri_to_jd,
    jd_to_hijri,
    moon_phase,
    special_occasion,
    to_hijri,
)


def test_gregorian_to_jd() -> None:
    assert gregorian_to_jd(date(2000, 1, 1)) == 2451545
    assert gregorian_to_jd(date(2024, 3, 20)) == 2460390


def test_known_hijri_date() -> None:
    hijri = to_hijri(date(2024, 3, 20))

    assert hijri == HijriDate(1445, 9, 11)
    assert hijri.month_name == "Ramadan"
    assert format_hijri(hijri) == "11 Ramadan 1445 AH"


def test_to_hijri_accepts_datetime() -> None:
    assert to_hijri(datetime(2024, 3, 20, 23, 59)) == HijriDate(1445, 9, 11)


def test_round_trip_within_a_day() -> None:
    start = date(1990, 1, 1)
    for offset in range(0, 365 * 40, 17):
        day = start + timedelta(days=offset)
        jd = gregorian_to_jd(day)
        hijri = jd_to_hijri(jd)
        assert 1 <= hijri.month <= 12
        assert 1 <= hijri.day <= 30
        assert abs(hijri_to_jd(hijri.year, hijri.month, hijri.day) - jd) < 1


def test_from_hijri_restores_gregorian() -> None:
    for day in (date(2024, 3, 20), date(2000, 1, 1), date(2023, 7, 19)):
        assert from_hijri(to_hijri(day)) == day


def test_consecutive_days_advance_by_one() -> None:
    first = to_hijri(date(2024, 3, 10))
    second = to_hijri(date(2024, 3, 11))

    assert (second.month, second.day) in {(first.month, first.day + 1), (first.month % 12 + 1, 1)}


def test_days_in_hijri_month() -> None:
    assert days_in_hijri_month(1445, 1) == 30
    assert days_in_hijri_month(1445, 2) == 29
    assert days_in_hijri_month(1445, 12) == 30


def test_special_occasion_exact_match_only() -> None:
    assert special_occasion(HijriDate(1445, 9, 1)) == "First day of Ramadan"
    assert special_occasion(HijriDate(1445, 12, 10)) == "Eid al-Adha"
    assert special_occasion(HijriDate(1445, 9, 2)) is None


def test_moon_phase_full_and_new() -> None:
    assert moon_phase(date(2024, 3, 25)) is MoonPhase.FULL_MOON
    assert moon_phase(date(2024, 4, 8)) is MoonPhase.NEW_MOON
    assert moon_phase(date(2024, 3, 20)) is MoonPhase.WAXING_GIBBOUS


def test_moon_phase_before_epoch_and_aware_input() -> None:
    assert isinstance(moon_phase(date(1990, 1, 1)), MoonPhase)
    aware = datetime(2024, 3, 25, 3, 0, tzinfo=timezone(timedelta(hours=3)))
    assert moon_phase(aware) is MoonPhase.FULL_MOON


def test_moon_phase_from_index_wraps() -> None:
    assert MoonPhase.from_index(8) is MoonPhase.NEW_MOON
    assert MoonPhase.FULL_MOON.label == "Full Moon"
    with pytest.raises(ValueError):
        MoonPhase.from_index(1.5)
