import threading
import time

import pytest

from devhive.config import load_config
from devhive.errors import StorageBusyError
from devhive.services.base import ServiceContext
from devhive.services.watcher import EventWatcher, is_relevant_to


def _watcher(db) -> EventWatcher:
    return EventWatcher(ServiceContext(config=load_config(), db=db))


def test_follow_skips_history_and_yields_new_events(sprint_db) -> None:
    watcher = _watcher(sprint_db)
    seen = []

    def produce() -> None:
        time.sleep(0.1)
        sprint_db.update_worker_status("fe", "working")
        sprint_db.update_worker_task("be", "api")

    producer = threading.Thread(target=produce)
    producer.start()
    for event in watcher.follow(interval=0.02, timeout=3):
        seen.append(event)
        if len(seen) == 2:
            watcher.close()
    producer.join()

    assert [e.event_type for e in seen] == ["worker_status_changed", "worker_task_updated"]
    assert watcher.cursor == seen[-1].id


def test_follow_from_explicit_cursor_replays(sprint_db) -> None:
    watcher = _watcher(sprint_db)
    events = list(watcher.follow(after_id=0, interval=0.01, timeout=0.1))
    assert [e.id for e in events] == [1, 2, 3]


def test_follow_stops_promptly_when_cancelled(sprint_db) -> None:
    stop = threading.Event()
    watcher = EventWatcher(ServiceContext(config=load_config(), db=sprint_db), stop=stop)
    threading.Timer(0.1, stop.set).start()

    started = time.monotonic()
    assert list(watcher.follow(interval=30)) == []
    assert time.monotonic() - started < 5


def test_follow_honours_timeout(sprint_db) -> None:
    started = time.monotonic()
    assert list(_watcher(sprint_db).follow(interval=0.05, timeout=0.2)) == []
    assert time.monotonic() - started < 5


def test_follow_type_prefix(sprint_db) -> None:
    sprint_db.send_message("be", "fe", content="x")
    sprint_db.update_worker_status("fe", "working")
    events = list(_watcher(sprint_db).follow(after_id=0, type_prefix="message", interval=0.01, timeout=0.1))
    assert [e.event_type for e in events] == ["message_sent"]


def test_follow_hides_other_workers_direct_messages(sprint_db) -> None:
    sprint_db.register_worker("qa", "S1", "feat/qa")
    sprint_db.send_message("be", "qa", content="not for fe")
    sprint_db.send_message("be", "fe", content="for fe")
    sprint_db.broadcast_message("pm", "info", None, "all")

    watcher = _watcher(sprint_db)
    events = list(watcher.follow(after_id=4, worker="fe", interval=0.01, timeout=0.1))
    assert [(e.event_type, e.data.get("to")) for e in events] == [
        ("message_sent", "fe"),
        ("message_broadcast", None),
    ]
    # hidden events still advance the cursor
    assert watcher.cursor == 7


def test_is_relevant_to() -> None:
    from devhive.models.domain import Event

    direct = Event(id=1, event_type="message_sent", created_at="t", worker="be", data={"to": "fe"})
    assert is_relevant_to(direct, "fe")
    # the sender does not see its own direct message
    assert not is_relevant_to(direct, "be")
    assert not is_relevant_to(direct, "qa")
    assert is_relevant_to(direct, None)


def test_busy_poll_is_retried(sprint_db, monkeypatch) -> None:
    real = sprint_db.get_events_since
    calls = {"n": 0}

    def flaky(last_id, type_prefix=None, limit=None):
        calls["n"] += 1
        if calls["n"] == 1:
            raise StorageBusyError("busy")
        return real(last_id, type_prefix=type_prefix, limit=limit)

    monkeypatch.setattr(sprint_db, "get_events_since", flaky)
    events = list(_watcher(sprint_db).follow(after_id=0, interval=0.01, timeout=0.3))
    assert [e.id for e in events] == [1, 2, 3]
    assert calls["n"] >= 2


def test_follow_rejects_non_positive_interval(sprint_db) -> None:
    from devhive.errors import ValidationError

    watcher = _watcher(sprint_db)
    for bad in (0, -1.5):
        with pytest.raises(ValidationError):
            watcher.follow(interval=bad, timeout=0.3)
    assert watcher.cursor is None
