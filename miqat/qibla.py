import math

from .calc import Coordinates, _dtr, _rtd

KAABA = Coordinates(lat=21.4225, lng=39.8262)

_COMPASS_POINTS = [
    "North",
    "Northeast",
    "East",
    "Southeast",
    "South",
    "Southwest",
    "West",
    "Northwest",
]


def qibla_direction(coords):
    """Initial great-circle bearing from `coords` to the Kaaba, clockwise from true north.

    At the Kaaba itself both atan2 arguments are zero and the bearing is 0.
    """
    lat = _dtr(coords.lat)
    delta_lng = _dtr(KAABA.lng - coords.lng)
    y = math.sin(delta_lng)
    x = math.cos(lat) * math.tan(_dtr(KAABA.lat)) - math.sin(lat) * math.cos(delta_lng)
    if abs(x) < 1e-12 and abs(y) < 1e-12:
        return 0.0
    return (_rtd(math.atan2(y, x)) + 360.0) % 360.0


def relative_bearing(qibla, heading):
    return (360.0 + qibla - heading) % 360.0


def compass_point(degrees):
    index = int(((degrees % 360.0) + 22.5) // 45.0) % 8
    return _COMPASS_POINTS[index]


def describe_qibla(coords, heading=0.0):
    bearing = relative_bearing(qibla_direction(coords), heading)
    return f"{round(bearing) % 360}° {compass_point(bearing)}"
