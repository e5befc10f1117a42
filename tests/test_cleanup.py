import sqlite3

import pytest

from devhive.errors import ValidationError

OLD = "2000-01-01T00:00:00.000000+00:00"


def _age(db, sql: str) -> None:
    conn = sqlite3.connect(db.db_path)
    conn.execute(sql)
    conn.commit()
    conn.close()


def _count(db, table: str) -> int:
    conn = sqlite3.connect(db.db_path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()


def test_dry_run_counts_then_delete_removes_same_count(sprint_db) -> None:
    _age(sprint_db, f"UPDATE events SET created_at = '{OLD}' WHERE id <= 2")
    total = _count(sprint_db, "events")

    would = sprint_db.cleanup_old_events(30, dry_run=True)
    assert would == 2
    assert _count(sprint_db, "events") == total

    deleted = sprint_db.cleanup_old_events(30)
    assert deleted == would
    assert _count(sprint_db, "events") == total - 2
    assert sprint_db.cleanup_old_events(30) == 0


def test_recent_events_are_kept(sprint_db) -> None:
    assert sprint_db.cleanup_old_events(1) == 0
    assert sprint_db.cleanup_old_events(0, dry_run=True) == 3


def test_cursor_stays_monotonic_after_purge(sprint_db) -> None:
    _age(sprint_db, f"UPDATE events SET created_at = '{OLD}'")
    assert sprint_db.cleanup_old_events(30) == 3
    sprint_db.update_worker_task("fe", "after purge")
    assert sprint_db.get_events_since(0)[0].id == 4


def test_only_old_read_messages_are_purged(sprint_db) -> None:
    read_old = sprint_db.send_message("be", "fe", content="read long ago")
    unread_old = sprint_db.send_message("be", "fe", content="never read")
    read_recent = sprint_db.send_message("be", "fe", content="read today")
    sprint_db.mark_message_read(read_old)
    sprint_db.mark_message_read(read_recent)
    _age(sprint_db, f"UPDATE messages SET created_at = '{OLD}'")
    _age(sprint_db, f"UPDATE messages SET read_at = '{OLD}' WHERE id = {read_old}")

    assert sprint_db.cleanup_old_messages(7, dry_run=True) == 1
    assert _count(sprint_db, "messages") == 3
    assert sprint_db.cleanup_old_messages(7) == 1

    assert sprint_db.get_message(read_old) is None
    assert sprint_db.get_message(read_recent) is not None
    assert [m.id for m in sprint_db.get_unread_messages("fe")] == [unread_old]


def test_negative_days_rejected(db) -> None:
    with pytest.raises(ValidationError):
        db.cleanup_old_events(-1)
    with pytest.raises(ValidationError):
        db.cleanup_old_messages(-5, dry_run=True)
