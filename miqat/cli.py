import argparse
import json
import logging
import sys
from datetime import date, datetime

from .config import CONFIG_PATH, coords_from_config, current_location, load_config, save_config
from .hijri import format_hijri, moon_phase, special_occasion, to_hijri
from .methods import METHODS, Madhab, PrayerKind, find_method
from .qibla import describe_qibla, qibla_direction
from .render import build_reconciler, get_timezone, render_schedule, render_waybar


def configure_logging(config, verbose):
    level = logging.DEBUG if verbose else getattr(logging, str(config.get("log_level", "WARNING")).upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _parse_day(value):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value}") from None


def handle_cli(args):
    config_path = args.config or CONFIG_PATH
    config = load_config(config_path)
    configure_logging(config, args.verbose)
    if args.no_api:
        config["use_api"] = False

    if args.list_methods:
        for key, method in METHODS.items():
            print(f"{key.value}: {method.name}")
        return 0

    if args.list_locations:
        for name, loc in config.get("locations", {}).items():
            label = loc.get("label") or name
            tz = loc.get("tz", "local")
            print(f"{name}: {label} ({loc.get('lat')}, {loc.get('lng')}) [{tz}]")
        return 0

    if args.use_location:
        if args.use_location not in config.get("locations", {}):
            raise ValueError(f"Unknown location: {args.use_location}")
        coords_from_config(config["locations"][args.use_location])
        config["location"] = args.use_location
        save_config(config, config_path)
        return 0

    if args.set_method:
        method = find_method(args.set_method)
        if method is None:
            raise ValueError(f"Unknown method: {args.set_method}")
        config["method"] = method.value
        save_config(config, config_path)
        return 0

    if args.set_madhab:
        config["madhab"] = Madhab.from_name(args.set_madhab).value
        save_config(config, config_path)
        return 0

    if args.set_offset:
        prayer, minutes = args.set_offset
        prayer_key = PrayerKind.from_name(prayer).value.lower()
        if prayer_key not in config.get("adjustments", {}):
            raise ValueError(f"Unknown prayer for offset: {prayer}")
        config["adjustments"][prayer_key] = int(minutes)
        save_config(config, config_path)
        return 0

    if args.set_location:
        if args.lat is None or args.lng is None:
            raise ValueError("--set-location requires --lat and --lng")
        loc = {
            "lat": float(args.lat),
            "lng": float(args.lng),
            "tz": args.tz or config.get("default_tz"),
            "label": args.set_location
        }
        coords_from_config(loc)
        config.setdefault("locations", {})[args.set_location] = loc
        config["location"] = args.set_location
        save_config(config, config_path)
        return 0

    day = _parse_day(args.date)

    if args.qibla:
        _, loc = current_location(config)
        coords = coords_from_config(loc)
        print(f"{qibla_direction(coords):.2f}° from North ({describe_qibla(coords)})")
        return 0

    if args.hijri:
        _, loc = current_location(config)
        day = day or datetime.now(get_timezone(loc.get("tz") or config.get("default_tz"))).date()
        hijri = to_hijri(day)
        phase = moon_phase(day)
        print(f"{format_hijri(hijri)} {phase.icon} {phase.label}")
        occasion = special_occasion(hijri)
        if occasion:
            print(occasion)
        return 0

    if args.waybar:
        payload = render_waybar(config)
        print(json.dumps(payload, ensure_ascii=True))
        return 0

    if args.today or day:
        print(render_schedule(config, day, build_reconciler(config)))
        return 0

    return 0


def build_arg_parser():
    parser = argparse.ArgumentParser(description="Prayer times, Qibla and Hijri calendar")
    parser.add_argument("--waybar", action="store_true", help="Output Waybar JSON payload")
    parser.add_argument("--today", action="store_true", help="Print the full schedule")
    parser.add_argument("--date", help="Date for --today/--hijri (YYYY-MM-DD)")
    parser.add_argument("--qibla", action="store_true", help="Print the Qibla bearing")
    parser.add_argument("--hijri", action="store_true", help="Print the Hijri date and moon phase")
    parser.add_argument("--list-methods", action="store_true", help="List calculation methods")
    parser.add_argument("--list-locations", action="store_true", help="List locations from config")
    parser.add_argument("--use-location", help="Switch to a saved location")
    parser.add_argument("--set-location", help="Add or update a location and set it active")
    parser.add_argument("--lat", help="Latitude for --set-location")
    parser.add_argument("--lng", help="Longitude for --set-location")
    parser.add_argument("--tz", help="IANA time zone for --set-location (optional)")
    parser.add_argument("--set-method", help="Set calculation method")
    parser.add_argument("--set-madhab", help="Set madhab for Asr (Standard or Hanafi)")
    parser.add_argument("--set-offset", nargs=2, metavar=("PRAYER", "MIN"), help="Set prayer offset in minutes")
    parser.add_argument("--config", help="Path to the JSON config file")
    parser.add_argument("--no-api", action="store_true", help="Skip the remote API and calculate locally")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return parser


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        return handle_cli(args)
    except Exception as exc:
        if args.waybar:
            payload = {
                "text": "Prayer?",
                "tooltip": str(exc),
                "class": "miqat-error"
            }
            print(json.dumps(payload, ensure_ascii=True))
            return 0
        print(f"Error: {exc}", file=sys.stderr)
        return 1
