"""
Calendar-date grouping of logs for the history and today's-summary views.

Dates are compared on local year/month/day, never on elapsed time: a log at
23:59 and one at 00:01 the next local day land in different buckets. "Local"
is the zone passed in, or the server's zone when none is given.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import db
from .errors import ValidationError
from .models import DailyLog, LogMethod
from .records import logs_from_documents

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryView:
    day: date
    logs: Tuple[DailyLog, ...]
    marked_dates: Tuple[date, ...]


def resolve_tz(name: Optional[str]) -> Optional[tzinfo]:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError("tz", f"unknown time zone {name!r}") from None


def today(tz: Optional[tzinfo] = None) -> date:
    return datetime.now(tz).date()


def local_date(ts: Optional[datetime], tz: Optional[tzinfo] = None) -> date:
    # a write whose server timestamp has not resolved yet counts as "now"
    if ts is None:
        ts = datetime.now(timezone.utc)
    if ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(tz).date()


def _newest_first_key(log: DailyLog) -> float:
    if log.timestamp is None:
        return float("inf")
    return log.timestamp.timestamp()


def newest_first(logs: Iterable[DailyLog]) -> List[DailyLog]:
    return sorted(logs, key=_newest_first_key, reverse=True)


def logs_for_date(
    logs: Iterable[DailyLog], day: date, tz: Optional[tzinfo] = None
) -> List[DailyLog]:
    return newest_first(log for log in logs if local_date(log.timestamp, tz) == day)


def dates_with_logs(logs: Iterable[DailyLog], tz: Optional[tzinfo] = None) -> List[date]:
    return sorted({local_date(log.timestamp, tz) for log in logs})


def todays_summary(
    logs: Iterable[DailyLog], day: date, tz: Optional[tzinfo] = None
) -> List[DailyLog]:
    """Cell-count logs of one day; reagent logs never appear in the summary."""
    return [log for log in logs_for_date(logs, day, tz) if log.method is not LogMethod.REAGENT]


def month_calendar(
    logs: Iterable[DailyLog], year: int, month: int, tz: Optional[tzinfo] = None
) -> List[int]:
    """Days of the given month that carry at least one log."""
    return [d.day for d in dates_with_logs(logs, tz) if d.year == year and d.month == month]


def recent_types(logs: Iterable[DailyLog], limit: int = 10) -> List[str]:
    seen: List[str] = []
    for log in newest_first(logs):
        t = (log.type or "").strip()
        if t and t not in seen:
            seen.append(t)
            if len(seen) >= limit:
                break
    return seen


def build_history_view(
    logs: Sequence[DailyLog], day: date, tz: Optional[tzinfo] = None
) -> HistoryView:
    return HistoryView(
        day=day,
        logs=tuple(logs_for_date(logs, day, tz)),
        marked_dates=tuple(dates_with_logs(logs, tz)),
    )


class LogFeed:
    """
    Live history view over one log collection.

    Each store snapshot is kept as an immutable tuple and the view is
    recomputed from it whenever a snapshot or a new reference date arrives.
    Firestore delivers snapshots on its own thread. Views reach the listener
    under the lock, so they arrive in the order they were computed.
    """

    def __init__(
        self,
        day: date,
        listener: Callable[[HistoryView], None],
        tz: Optional[tzinfo] = None,
        exclude_methods: Iterable[LogMethod] = (),
    ):
        self._lock = threading.RLock()
        self._listener = listener
        self._tz = tz
        self._exclude = frozenset(exclude_methods)
        self._snapshot: Tuple[DailyLog, ...] = ()
        self._day = day
        self._watch = None
        self.view = build_history_view(self._snapshot, day, tz)

    @property
    def snapshot(self) -> Tuple[DailyLog, ...]:
        return self._snapshot

    def on_documents(self, docs: List[db.Document]) -> None:
        logs = tuple(
            log for log in logs_from_documents(docs) if log.method not in self._exclude
        )
        with self._lock:
            self._snapshot = logs
            self._listener(self._recompute())

    def set_day(self, day: date) -> None:
        with self._lock:
            self._day = day
            self._listener(self._recompute())

    def _recompute(self) -> HistoryView:
        self.view = build_history_view(self._snapshot, self._day, self._tz)
        return self.view

    def attach(self, watch) -> None:
        self._watch = watch

    def close(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None
            logger.info("log feed closed")


def subscribe_history(
    user_id: str,
    day: date,
    listener: Callable[[HistoryView], None],
    tz: Optional[tzinfo] = None,
    collection: str = db.DAILY_LOGS,
    exclude_methods: Iterable[LogMethod] = (),
) -> LogFeed:
    feed = LogFeed(day, listener, tz=tz, exclude_methods=exclude_methods)
    feed.attach(db.watch_collection(user_id, collection, feed.on_documents))
    return feed
