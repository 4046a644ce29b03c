import logging
from collections import OrderedDict
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from enum import Enum

from .calc import PrayTimes, Source
from .methods import Madhab, get_method
from .remote import RemoteUnavailable

logger = logging.getLogger(__name__)

PASSED = "Passed today"
DEFAULT_THROTTLE = timedelta(minutes=5)


class SlotState(Enum):
    EMPTY = "empty"
    FETCHING = "fetching"
    READY = "ready"


def cache_key(day, coords, method, madhab):
    method = get_method(method)
    madhab = Madhab.from_name(madhab)
    return f"{day.isoformat()}|{coords.lat}|{coords.lng}|{method.key.value}|{madhab.value}"


def format_remaining(delta):
    total = max(0, int(delta.total_seconds()))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    return f"{minutes}m {seconds}s"


def next_event(schedule, now):
    """(kind, instant) of the closest entry strictly after `now`, or None.

    On equal instants the entry that comes first in the schedule wins.
    """
    best = None
    for kind, instant in schedule.items():
        if instant is None:
            continue
        diff = instant - now
        if diff > timedelta(0) and (best is None or diff < best[1] - now):
            best = (kind, instant)
    return best


class ScheduleReconciler:
    """Chooses between a remote schedule and the local calculation, with a cache.

    One slot is kept per (date, coordinates, method, madhab). A slot filled
    from the local calculation is retried remotely once the throttle window
    has passed; a remote slot is kept until it is invalidated or evicted.
    """

    def __init__(self, remote=None, use_remote=True, throttle=DEFAULT_THROTTLE, max_entries=32,
                 clock=None, method=None, madhab=Madhab.STANDARD, **builder_options):
        self.remote = remote
        self.use_remote = use_remote
        self.throttle = throttle
        self.max_entries = max_entries
        self.clock = clock
        self.method = get_method(method)
        self.madhab = Madhab.from_name(madhab)
        self.builder_options = builder_options
        self.last_remote_attempt = None
        self.schedule = None
        self.next_prayer = None
        self._cache = OrderedDict()
        self._states = {}

    def now(self):
        return self.clock() if self.clock else datetime.now(timezone.utc)

    @property
    def remote_enabled(self):
        return self.use_remote and self.remote is not None

    def state(self, key):
        return self._states.get(key, SlotState.EMPTY)

    def cached(self, key):
        return self._cache.get(key)

    def __len__(self):
        return len(self._cache)

    def get_schedule(self, day, coords, method=None, madhab=None, tzinfo=None, now=None):
        method = get_method(method or self.method)
        madhab = Madhab.from_name(madhab or self.madhab)
        key = cache_key(day, coords, method, madhab)
        now = now or self.now()

        entry = self._cache.get(key)
        if entry is not None and not self._should_retry_remote(entry, now):
            logger.debug("Using cached prayer times for %s", key)
            self._set_current(entry, now)
            return entry

        schedule = None
        if self.remote_enabled:
            if self._throttle_elapsed(now):
                schedule = self._fetch_remote(key, day, coords, method, madhab, tzinfo, now)
            else:
                logger.debug("Remote fetch throttled, using local calculation for %s", key)

        if schedule is None:
            if entry is not None:
                self._states[key] = SlotState.READY
                self._set_current(entry, now)
                return entry
            schedule = self._compute_local(day, coords, method, madhab, tzinfo, now)

        self._store(key, schedule)
        self._set_current(schedule, now)
        return schedule

    def _should_retry_remote(self, entry, now):
        # Unlike other hits, a LOCAL entry is not final: it may be upgraded once the throttle allows.
        return entry.source is Source.LOCAL and self.remote_enabled and self._throttle_elapsed(now)

    def _throttle_elapsed(self, now):
        return self.last_remote_attempt is None or now - self.last_remote_attempt >= self.throttle

    def _fetch_remote(self, key, day, coords, method, madhab, tzinfo, now):
        self.last_remote_attempt = now
        self._states[key] = SlotState.FETCHING
        options = {
            name: self.builder_options[name]
            for name in ("suhoor_minutes", "ishraq_minutes")
            if name in self.builder_options
        }
        try:
            return self.remote.fetch_schedule(day, coords, method, madhab, tzinfo, fetched_at=now, **options)
        except RemoteUnavailable as exc:
            logger.warning("Remote prayer times unavailable, falling back to local calculation: %s", exc)
        except Exception:
            logger.exception("Remote prayer times failed, falling back to local calculation")
        return None

    def _compute_local(self, day, coords, method, madhab, tzinfo, now):
        schedule = PrayTimes(method, madhab, **self.builder_options).get_times(day, coords, tzinfo)
        return replace(schedule, fetched_at=now)

    def _store(self, key, schedule):
        self._cache[key] = schedule
        self._cache.move_to_end(key)
        self._states[key] = SlotState.READY
        while len(self._cache) > self.max_entries:
            evicted, _ = self._cache.popitem(last=False)
            self._states.pop(evicted, None)
            logger.debug("Evicted cached prayer times for %s", evicted)

    def _set_current(self, schedule, now):
        self.schedule = schedule
        self.next_prayer = next_event(schedule, now)

    def next_event(self, now=None):
        if self.schedule is None:
            return None
        return next_event(self.schedule, now or self.now())

    def is_next_prayer(self, kind, now=None):
        upcoming = self.next_event(now)
        return upcoming is not None and upcoming[0] is kind

    def countdown(self, kind, now=None):
        if self.schedule is None:
            return ""
        instant = self.schedule.get(kind)
        if instant is None:
            return ""
        diff = instant - (now or self.now())
        if diff < timedelta(0):
            return PASSED
        return format_remaining(diff)

    def invalidate(self, day=None, coords=None, method=None, madhab=None):
        method = get_method(method) if method is not None else None
        madhab = Madhab.from_name(madhab) if madhab is not None else None
        removed = 0
        for key, entry in list(self._cache.items()):
            if day is not None and entry.day != day:
                continue
            if coords is not None and entry.coords != coords:
                continue
            if method is not None and entry.method.key is not method.key:
                continue
            if madhab is not None and entry.madhab is not madhab:
                continue
            del self._cache[key]
            self._states.pop(key, None)
            removed += 1
        return removed

    def clear(self):
        self._cache.clear()
        self._states.clear()
        self.last_remote_attempt = None
        self.schedule = None
        self.next_prayer = None

    def set_method(self, method):
        self.method = get_method(method)
        self.clear()

    def set_madhab(self, madhab):
        self.madhab = Madhab.from_name(madhab)
        self.clear()

    def set_use_remote(self, use_remote):
        self.use_remote = use_remote
