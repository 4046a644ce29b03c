import copy
import json
import os

from .calc import Coordinates

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".config", "miqat")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.json")

DEFAULT_CONFIG = {
    "location": None,
    "locations": {},
    "default_tz": None,
    "method": "MuslimWorldLeague",
    "madhab": "Standard",
    "dhuhr_minutes": 0,
    "suhoor_minutes": 20,
    "ishraq_minutes": 20,
    "adjustments": {
        "fajr": 0,
        "sunrise": 0,
        "dhuhr": 0,
        "asr": 0,
        "maghrib": 0,
        "isha": 0
    },
    "use_api": True,
    "api_timeout": 6,
    "api_throttle_seconds": 300,
    "cache_size": 32,
    "time_format": "24h",
    "log_level": "WARNING",
    "display": {
        "format": "{next_name} {next_time} - {countdown}"
    }
}


def load_config(path=CONFIG_PATH):
    if not os.path.exists(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(DEFAULT_CONFIG, f, indent=2)
        return copy.deepcopy(DEFAULT_CONFIG)
    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)
    for key, value in DEFAULT_CONFIG.items():
        config.setdefault(key, copy.deepcopy(value))
    return config


def save_config(config, path=CONFIG_PATH):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)


def current_location(config):
    location_key = config.get("location")
    locations = config.get("locations", {})
    if not location_key or location_key not in locations:
        raise ValueError("No location configured (use --set-location NAME --lat LAT --lng LNG)")
    return location_key, locations[location_key]


def coords_from_config(loc):
    if loc.get("lat") is None or loc.get("lng") is None:
        raise ValueError("Location has no coordinates")
    return Coordinates(lat=float(loc["lat"]), lng=float(loc["lng"]))


def builder_options(config):
    return {
        "dhuhr_minutes": config.get("dhuhr_minutes", 0),
        "adjustments": config.get("adjustments", {}),
        "suhoor_minutes": config.get("suhoor_minutes", 20),
        "ishraq_minutes": config.get("ishraq_minutes", 20),
    }
