from datetime import datetime, timedelta

try:
    from zoneinfo import ZoneInfo
except Exception:  # pragma: no cover
    ZoneInfo = None

from .config import builder_options, coords_from_config, current_location
from .hijri import format_hijri, moon_phase, special_occasion, to_hijri
from .methods import PrayerKind
from .qibla import compass_point, qibla_direction
from .reconcile import ScheduleReconciler
from .remote import AladhanClient


def get_timezone(tz_name):
    if tz_name and ZoneInfo:
        return ZoneInfo(tz_name)
    return datetime.now().astimezone().tzinfo


def format_time(dt, format_24h):
    if dt is None:
        return "--:--"
    if format_24h:
        return dt.strftime("%H:%M")
    return dt.strftime("%I:%M %p").lstrip("0")


def format_countdown(delta):
    total_minutes = int(delta.total_seconds() // 60)
    if total_minutes < 0:
        total_minutes = 0
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h{minutes:02d}"
    return f"{minutes}m"


def build_reconciler(config):
    return ScheduleReconciler(
        remote=AladhanClient(timeout=config.get("api_timeout", 6)),
        use_remote=config.get("use_api", True),
        throttle=timedelta(seconds=config.get("api_throttle_seconds", 300)),
        max_entries=config.get("cache_size", 32),
        method=config.get("method"),
        madhab=config.get("madhab"),
        **builder_options(config),
    )


def calendar_lines(day, coords):
    hijri = to_hijri(day)
    phase = moon_phase(day)
    lines = [f"{format_hijri(hijri)} {phase.icon} {phase.label}"]
    occasion = special_occasion(hijri)
    if occasion:
        lines.append(occasion)
    bearing = qibla_direction(coords)
    lines.append(f"Qibla {bearing:.1f}° {compass_point(bearing)}")
    return lines


def build_tooltip(schedule, location_label, format_24h, kinds=None):
    method_name = schedule.method.name
    lines = [f"{location_label} ({method_name}, Asr: {schedule.madhab.value})"]
    for kind in kinds or list(PrayerKind):
        lines.append(f"{kind.value} {format_time(schedule.get(kind), format_24h)}")
    lines.extend(calendar_lines(schedule.day, schedule.coords))
    return "\n".join(lines)


def next_prayer(reconciler, now, coords, tzinfo):
    """Next event of today, rolling over to tomorrow's schedule after the last one."""
    today = now.date()
    today_schedule = reconciler.get_schedule(today, coords, tzinfo=tzinfo, now=now)
    upcoming = reconciler.next_event(now)
    if upcoming is not None:
        return today_schedule, upcoming
    reconciler.get_schedule(today + timedelta(days=1), coords, tzinfo=tzinfo, now=now)
    return today_schedule, reconciler.next_event(now)


def render_waybar(config, now=None, reconciler=None):
    location_key, loc = current_location(config)
    coords = coords_from_config(loc)
    tzinfo = get_timezone(loc.get("tz") or config.get("default_tz"))
    now = now or datetime.now(tzinfo)
    reconciler = reconciler or build_reconciler(config)

    schedule, upcoming = next_prayer(reconciler, now, coords, tzinfo)
    format_24h = config.get("time_format", "24h") == "24h"

    if upcoming is None:
        text = "Prayer --:--"
    else:
        next_kind, next_dt = upcoming
        display_format = config.get("display", {}).get("format", "{next_name} {next_time} - {countdown}")
        text = display_format.format(
            next_name=next_kind.value,
            next_time=format_time(next_dt, format_24h),
            countdown=format_countdown(next_dt - now),
        )

    location_label = loc.get("label") or location_key
    return {
        "text": text,
        "tooltip": build_tooltip(schedule, location_label, format_24h),
        "class": f"miqat-{schedule.source.value}",
    }


def render_schedule(config, day=None, reconciler=None):
    location_key, loc = current_location(config)
    coords = coords_from_config(loc)
    tzinfo = get_timezone(loc.get("tz") or config.get("default_tz"))
    day = day or datetime.now(tzinfo).date()
    reconciler = reconciler or build_reconciler(config)
    schedule = reconciler.get_schedule(day, coords, tzinfo=tzinfo)
    format_24h = config.get("time_format", "24h") == "24h"

    lines = [
        f"{loc.get('label') or location_key} - {day.isoformat()}",
        f"{schedule.method.name}, Asr: {schedule.madhab.value}, source: {schedule.source.value}",
    ]
    for kind, instant in schedule.items():
        status = ""
        if day == datetime.now(tzinfo).date():
            status = reconciler.countdown(kind)
        lines.append(f"{kind.value:<9} {format_time(instant, format_24h):>8}  {status}".rstrip())
    lines.extend(calendar_lines(day, coords))
    return "\n".join(lines)
