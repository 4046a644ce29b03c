import json
import logging
import re
import socket
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timedelta, timezone

from .calc import PrayerSchedule, Source, derive_supplementary, hours_to_datetime
from .methods import Madhab, PrayerKind, get_method

logger = logging.getLogger(__name__)

API_BASE = "https://api.aladhan.com/v1/timings"
USER_AGENT = "miqat/1.0"

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})")

_REMOTE_KEYS = {
    PrayerKind.FAJR: "Fajr",
    PrayerKind.SUNRISE: "Sunrise",
    PrayerKind.DHUHR: "Dhuhr",
    PrayerKind.ASR: "Asr",
    PrayerKind.MAGHRIB: "Maghrib",
    PrayerKind.ISHA: "Isha",
}


class RemoteUnavailable(Exception):
    pass


def fetch_json(url, timeout=6):
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            status = getattr(resp, "status", 200)
            if status != 200:
                raise RemoteUnavailable(f"API returned status {status}")
            return json.load(resp)
    except urllib.error.HTTPError as exc:
        raise RemoteUnavailable(f"API returned status {exc.code}") from exc
    except (urllib.error.URLError, socket.timeout, TimeoutError) as exc:
        raise RemoteUnavailable(f"API request failed: {exc}") from exc
    except ValueError as exc:
        raise RemoteUnavailable(f"API returned invalid JSON: {exc}") from exc


def parse_clock(value):
    """Hours as a float from "HH:MM", ignoring any " (TZ)" suffix."""
    match = _TIME_RE.match(value or "")
    if not match:
        raise RemoteUnavailable(f"Malformed time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise RemoteUnavailable(f"Malformed time: {value!r}")
    return hours + minutes / 60.0


def build_url(day, coords, method_code, school_code, base=API_BASE):
    params = {
        "latitude": coords.lat,
        "longitude": coords.lng,
        "method": method_code,
        "school": school_code,
    }
    return f"{base}/{day.strftime('%d-%m-%Y')}?{urllib.parse.urlencode(params)}"


def schedule_from_payload(payload, day, coords, method, madhab, tzinfo=None,
                          suhoor_minutes=20, ishraq_minutes=20, fetched_at=None):
    tzinfo = tzinfo or timezone.utc
    if not isinstance(payload, dict):
        raise RemoteUnavailable("Invalid API response format")
    if payload.get("code", 200) != 200:
        raise RemoteUnavailable(f"API returned code {payload.get('code')}")
    timings = (payload.get("data") or {}).get("timings")
    if not isinstance(timings, dict):
        raise RemoteUnavailable("Invalid API response format")

    times = {}
    for kind, key in _REMOTE_KEYS.items():
        if key not in timings:
            if kind is PrayerKind.SUNRISE:
                continue
            raise RemoteUnavailable(f"Missing {key} in API response")
        times[kind] = hours_to_datetime(day, parse_clock(timings[key]), tzinfo)

    if PrayerKind.SUNRISE not in times:
        # Estimated as halfway between Fajr and Dhuhr.
        fajr, dhuhr = times[PrayerKind.FAJR], times[PrayerKind.DHUHR]
        times[PrayerKind.SUNRISE] = fajr + (dhuhr - fajr) / 2

    isha = times[PrayerKind.ISHA]
    if isha < times[PrayerKind.DHUHR]:
        times[PrayerKind.ISHA] = isha + timedelta(days=1)

    return PrayerSchedule(
        day=day,
        coords=coords,
        method=method,
        madhab=madhab,
        times=derive_supplementary(times, suhoor_minutes, ishraq_minutes),
        source=Source.REMOTE,
        fetched_at=fetched_at,
    )


class AladhanClient:
    """Remote schedule source backed by api.aladhan.com."""

    def __init__(self, timeout=6, base_url=API_BASE):
        self.timeout = timeout
        self.base_url = base_url

    def fetch_json(self, url):
        return fetch_json(url, timeout=self.timeout)

    def fetch_schedule(self, day, coords, method, madhab, tzinfo=None, fetched_at=None, **options):
        method = get_method(method)
        madhab = Madhab.from_name(madhab)
        url = build_url(day, coords, method.api_code, madhab.school_code, self.base_url)
        logger.info("Fetching prayer times from %s", url)
        payload = self.fetch_json(url)
        return schedule_from_payload(
            payload,
            day,
            coords,
            method,
            madhab,
            tzinfo,
            fetched_at=fetched_at or datetime.now(timezone.utc),
            **options,
        )
