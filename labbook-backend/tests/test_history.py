import threading
import time
from datetime import date, datetime, timedelta, timezone

import pytest

from labbook import db, history
from labbook.errors import ValidationError
from labbook.models import DailyLog, LogMethod

SEOUL = timezone(timedelta(hours=9))


def make_log(log_id, ts, method=LogMethod.HEMOCYTOMETER, **fields):
    return DailyLog(id=log_id, method=method, timestamp=ts, **fields)


def test_midnight_boundary_splits_days():
    late = make_log("a", datetime(2024, 1, 5, 23, 59, tzinfo=SEOUL))
    early = make_log("b", datetime(2024, 1, 6, 0, 1, tzinfo=SEOUL))
    logs = [late, early]

    assert [l.id for l in history.logs_for_date(logs, date(2024, 1, 5), SEOUL)] == ["a"]
    assert [l.id for l in history.logs_for_date(logs, date(2024, 1, 6), SEOUL)] == ["b"]
    assert history.dates_with_logs(logs, SEOUL) == [date(2024, 1, 5), date(2024, 1, 6)]


def test_same_day_grouped_newest_first():
    logs = [
        make_log("morning", datetime(2024, 1, 5, 0, 0, tzinfo=SEOUL)),
        make_log("night", datetime(2024, 1, 5, 23, 0, tzinfo=SEOUL)),
        make_log("noon", datetime(2024, 1, 5, 12, 0, tzinfo=SEOUL)),
    ]
    ids = [l.id for l in history.logs_for_date(logs, date(2024, 1, 5), SEOUL)]
    assert ids == ["night", "noon", "morning"]


def test_grouping_uses_local_zone_not_utc():
    # 2024-01-05 20:00 UTC is already 2024-01-06 in Seoul
    log = make_log("a", datetime(2024, 1, 5, 20, 0, tzinfo=timezone.utc))
    assert history.local_date(log.timestamp, SEOUL) == date(2024, 1, 6)
    assert history.local_date(log.timestamp, timezone.utc) == date(2024, 1, 5)


def test_naive_timestamps_are_taken_as_local():
    assert history.local_date(datetime(2024, 1, 5, 23, 59), SEOUL) == date(2024, 1, 5)


def test_todays_summary_skips_reagents():
    day = date(2024, 3, 1)
    logs = [
        make_log("cells", datetime(2024, 3, 1, 9, tzinfo=SEOUL)),
        make_log("tris", datetime(2024, 3, 1, 10, tzinfo=SEOUL), method=LogMethod.REAGENT),
        make_log("yesterday", datetime(2024, 2, 29, 10, tzinfo=SEOUL)),
    ]
    assert [l.id for l in history.todays_summary(logs, day, SEOUL)] == ["cells"]


def test_month_calendar_marks_days():
    logs = [
        make_log("a", datetime(2024, 2, 3, 9, tzinfo=SEOUL)),
        make_log("b", datetime(2024, 2, 3, 18, tzinfo=SEOUL)),
        make_log("c", datetime(2024, 2, 29, 9, tzinfo=SEOUL)),
        make_log("d", datetime(2024, 3, 1, 9, tzinfo=SEOUL)),
    ]
    assert history.month_calendar(logs, 2024, 2, SEOUL) == [3, 29]


def test_recent_types():
    logs = [
        make_log("a", datetime(2024, 1, 1, tzinfo=SEOUL), type="GFP"),
        make_log("b", datetime(2024, 1, 2, tzinfo=SEOUL), type="mCherry"),
        make_log("c", datetime(2024, 1, 3, tzinfo=SEOUL), type="GFP"),
        make_log("d", datetime(2024, 1, 4, tzinfo=SEOUL), type=""),
    ]
    assert history.recent_types(logs) == ["GFP", "mCherry"]
    assert history.recent_types(logs, limit=1) == ["GFP"]


def test_resolve_tz():
    assert history.resolve_tz(None) is None
    assert history.resolve_tz("Asia/Seoul").utcoffset(datetime(2024, 1, 1)) == timedelta(hours=9)
    with pytest.raises(ValidationError):
        history.resolve_tz("Mars/Olympus")


class TestLogFeed:
    def test_recomputes_on_snapshot_and_day_change(self):
        views = []
        feed = history.LogFeed(date(2024, 1, 5), views.append, tz=SEOUL)
        feed.on_documents([
            ("a", {"method": "Hemocytometer", "timestamp": datetime(2024, 1, 5, 10, tzinfo=SEOUL)}),
            ("b", {"method": "Hemocytometer", "timestamp": datetime(2024, 1, 6, 10, tzinfo=SEOUL)}),
        ])
        assert [l.id for l in views[-1].logs] == ["a"]
        assert views[-1].marked_dates == (date(2024, 1, 5), date(2024, 1, 6))

        feed.set_day(date(2024, 1, 6))
        assert [l.id for l in views[-1].logs] == ["b"]
        assert len(feed.snapshot) == 2
        assert isinstance(feed.snapshot, tuple)

    def test_live_subscription_through_store(self, store):
        views = []
        feed = history.subscribe_history(
            "user-1", date(2024, 1, 5), views.append, tz=SEOUL,
            exclude_methods=[LogMethod.REAGENT],
        )
        assert views[-1].logs == ()

        store.clock = datetime(2024, 1, 5, 3, tzinfo=timezone.utc)
        db.create_document("user-1", db.DAILY_LOGS, {"method": "Hemocytometer", "timestamp": db.SERVER_TIMESTAMP})
        db.create_document("user-1", db.DAILY_LOGS, {"method": "Reagent", "timestamp": db.SERVER_TIMESTAMP})
        assert len(views[-1].logs) == 1

        feed.close()
        db.create_document("user-1", db.DAILY_LOGS, {"method": "Hemocytometer", "timestamp": db.SERVER_TIMESTAMP})
        assert len(views[-1].logs) == 1
        assert store.watches == {}

    def test_unreadable_document_is_skipped(self, caplog):
        views = []
        feed = history.LogFeed(date(2024, 1, 5), views.append, tz=SEOUL)
        feed.on_documents([
            ("a", {"method": "Hemocytometer", "timestamp": datetime(2024, 1, 5, 10, tzinfo=SEOUL)}),
            ("x", {"method": "Flow Cytometer", "timestamp": datetime(2024, 1, 5, 11, tzinfo=SEOUL)}),
        ])
        assert [l.id for l in views[-1].logs] == ["a"]
        assert "skipping unreadable log x" in caplog.text

    def test_concurrent_delivery_ends_on_latest_view(self):
        views = []
        delivering = threading.Event()

        def slow_listener(view):
            if view.day == date(2024, 1, 5) and view.logs:
                delivering.set()
                time.sleep(0.2)
            views.append(view)

        feed = history.LogFeed(date(2024, 1, 5), slow_listener, tz=SEOUL)
        docs = [
            ("a", {"method": "Hemocytometer", "timestamp": datetime(2024, 1, 5, 10, tzinfo=SEOUL)}),
            ("b", {"method": "Hemocytometer", "timestamp": datetime(2024, 1, 6, 10, tzinfo=SEOUL)}),
        ]
        watcher = threading.Thread(target=feed.on_documents, args=(docs,))
        watcher.start()
        assert delivering.wait(2)
        feed.set_day(date(2024, 1, 6))
        watcher.join()

        assert [v.day for v in views] == [date(2024, 1, 5), date(2024, 1, 6)]
        assert [l.id for l in views[-1].logs] == ["b"]

    def test_listener_may_change_day(self):
        views = []
        feed = None

        def listener(view):
            views.append(view)
            if view.day == date(2024, 1, 5):
                feed.set_day(date(2024, 1, 6))

        feed = history.LogFeed(date(2024, 1, 5), listener, tz=SEOUL)
        feed.on_documents([])
        assert views[-1].day == date(2024, 1, 6)
