import sqlite3

import pytest

from devhive.errors import DevHiveError, ValidationError


def test_send_message_counts_as_unread(sprint_db) -> None:
    ids = [sprint_db.send_message("be", "fe", "info", None, f"note {i}") for i in range(3)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 3

    assert sprint_db.get_worker("fe").unread_messages == 3
    unread = sprint_db.get_unread_messages("fe")
    assert [m.content for m in unread] == ["note 0", "note 1", "note 2"]
    assert all(m.from_worker == "be" and m.read_at is None for m in unread)

    assert sprint_db.mark_all_read("fe") == 3
    assert sprint_db.get_unread_messages("fe") == []
    assert sprint_db.get_worker("fe").unread_messages == 0
    assert sprint_db.mark_all_read("fe") == 0


def test_unread_listing_and_worker_count_agree(sprint_db) -> None:
    sprint_db.send_message("pm", "be", "request", "schema", "add users table")
    sprint_db.send_message("fe", "be", content="ping")
    first = sprint_db.get_unread_messages("be")[0]
    sprint_db.mark_message_read(first.id)

    unread = sprint_db.get_unread_messages("be")
    assert len(unread) == sprint_db.get_worker("be").unread_messages == 1
    assert unread[0].content == "ping"
    assert unread[0].message_type == "info"


def test_mark_message_read_is_idempotent(sprint_db) -> None:
    message_id = sprint_db.send_message("be", "fe", content="hello")
    assert sprint_db.mark_message_read(message_id) is True
    read_at = sprint_db.get_message(message_id).read_at
    assert read_at is not None

    assert sprint_db.mark_message_read(message_id) is False
    assert sprint_db.get_message(message_id).read_at == read_at
    assert sprint_db.mark_message_read(99999) is False


def test_messages_to_unregistered_names_are_kept(sprint_db) -> None:
    sprint_db.send_message("fe", "pm", subject="done", content="ready for review")
    assert [m.subject for m in sprint_db.get_unread_messages("pm")] == ["done"]


def test_broadcast_from_outside_sender_reaches_every_worker(sprint_db) -> None:
    delivered = sprint_db.broadcast_message("pm", "info", "standup", "status please")
    assert delivered == 2
    assert len(sprint_db.get_unread_messages("fe")) == 1
    assert len(sprint_db.get_unread_messages("be")) == 1
    assert sprint_db.get_unread_messages("pm") == []


def test_broadcast_never_addresses_sender(sprint_db) -> None:
    delivered = sprint_db.broadcast_message("fe", "blocker", None, "api is down")
    assert delivered == 1
    assert sprint_db.get_unread_messages("fe") == []
    assert [m.content for m in sprint_db.get_unread_messages("be")] == ["api is down"]


def test_broadcast_only_reaches_active_sprint(sprint_db) -> None:
    sprint_db.complete_sprint()
    sprint_db.create_sprint("S2")
    sprint_db.register_worker("qa", "S2", "feat/qa")
    assert sprint_db.broadcast_message("pm", "info", None, "hi") == 1
    assert sprint_db.get_unread_messages("fe") == []


def test_broadcast_without_active_sprint_delivers_nothing(db) -> None:
    assert db.broadcast_message("pm", "info", None, "anyone?") == 0


def test_broadcast_is_all_or_nothing(sprint_db) -> None:
    conn = sqlite3.connect(sprint_db.db_path)
    conn.execute(
        """
        CREATE TRIGGER reject_fe BEFORE INSERT ON messages
        WHEN NEW.to_worker = 'fe'
        BEGIN SELECT RAISE(ABORT, 'delivery refused'); END
        """
    )
    conn.commit()
    conn.close()

    with pytest.raises(DevHiveError):
        sprint_db.broadcast_message("pm", "info", None, "partial?")
    # "be" sorts first and would have been written before the failure
    assert sprint_db.get_unread_messages("be") == []


def test_send_requires_sender_and_recipient(sprint_db) -> None:
    with pytest.raises(ValidationError):
        sprint_db.send_message("", "fe", content="x")
    with pytest.raises(ValidationError):
        sprint_db.send_message("be", " ", content="x")
