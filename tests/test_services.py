import json
import logging

import pytest

from devhive.config import load_config
from devhive.errors import NotFoundError, ValidationError
from devhive.services.base import ServiceContext


def _context(db) -> ServiceContext:
    return ServiceContext(config=load_config(), db=db, project="demo")


# Roles

def test_builtin_role_oracle() -> None:
    from devhive.services.roles import BUILTIN_ROLES, is_builtin_role, list_builtin_roles

    assert is_builtin_role("frontend")
    assert not is_builtin_role("designer")
    assert not is_builtin_role(None)
    assert [name for name, _ in list_builtin_roles()] == sorted(BUILTIN_ROLES)


def test_resolve_role_prefers_catalog(db) -> None:
    from devhive.services.roles import resolve_role

    assert resolve_role(db, "backend") == "builtin"
    db.create_role("backend", role_file="custom.md")
    assert resolve_role(db, "backend") == "catalog"
    assert resolve_role(db, "designer") is None
    assert resolve_role(db, "") is None


# Workers

def test_worker_service_registers_into_active_sprint(db) -> None:
    from devhive.services.workers import WorkerService

    service = WorkerService(_context(db))
    with pytest.raises(ValidationError):
        service.register("fe", "feat/ui")

    db.create_sprint("S1")
    worker = service.register("fe", "feat/ui", role_name="frontend")
    assert worker.sprint_id == "S1"
    assert worker.role_name == "frontend"

    with pytest.raises(ValidationError):
        service.register("qa", "feat/qa", role_name="designer")
    assert db.get_worker("qa") is None


def test_worker_service_flags_unusual_transitions(sprint_db, caplog) -> None:
    from devhive.services.workers import WorkerService

    service = WorkerService(_context(sprint_db))
    assert service.set_status("fe", "working") is True
    sprint_db.update_worker_status("fe", "completed")
    with caplog.at_level(logging.WARNING):
        assert service.set_status("fe", "working") is False
    assert sprint_db.get_worker("fe").status == "working"
    assert any("Unusual worker status transition" in r.getMessage() for r in caplog.records)

    with pytest.raises(NotFoundError):
        service.set_status("ghost", "working")


# Reporting

def test_summarize_workers(sprint_db) -> None:
    from devhive.services.reporting import summarize_workers

    sprint_db.update_worker_status("fe", "working")
    summary = summarize_workers(sprint_db.list_workers())
    assert summary == {
        "blocked": 0,
        "completed": 0,
        "error": 0,
        "pending": 1,
        "working": 1,
        "total": 2,
    }


def test_attention_needed(sprint_db) -> None:
    from devhive.services.reporting import attention_needed

    sprint_db.update_worker_session_state("be", "waiting_permission")
    assert [w.name for w in attention_needed(sprint_db.list_workers())] == ["be"]


def test_report_for_completed_sprint(sprint_db) -> None:
    from devhive.services.reporting import SprintReportService

    sprint_db.report_worker_error("be", "flaky")
    sprint_db.complete_sprint()

    service = SprintReportService(_context(sprint_db))
    with pytest.raises(NotFoundError):
        service.build_report()
    with pytest.raises(NotFoundError):
        service.build_report("S404")

    report = service.build_report("S1")
    assert report["sprint"]["status"] == "completed"
    assert report["summary"]["completed"] == 2
    assert report["total_errors"] == 1
    assert report["event_counts"]["sprint_completed"] == 1
    assert sorted(w["name"] for w in report["workers"]) == ["be", "fe"]


# Logging

def test_log_extra_drops_none() -> None:
    from devhive.logging import log_extra

    assert log_extra(worker="fe", sprint_id=None, count=0) == {"worker": "fe", "count": 0}


def test_json_formatter_includes_context_and_redacts() -> None:
    from devhive.logging import ContextFilter, JsonFormatter, log_context

    record = logging.LogRecord("devhive.test", logging.INFO, __file__, 1, "hello", (), None)
    record.api_token = "s3cret"
    with log_context(project="shop", worker="fe"):
        ContextFilter().filter(record)
    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "hello"
    assert data["project"] == "shop"
    assert data["worker"] == "fe"
    assert data["sprint_id"] == "-"
    assert data["api_token"] == "[REDACTED]"


def test_service_log_extra_carries_project(sprint_db) -> None:
    from devhive.services.base import Service

    service = Service(_context(sprint_db))
    assert service.log_extra(worker="fe", note=None) == {"project": "demo", "worker": "fe"}


# Messaging

def test_request_reaches_pm_inbox(sprint_db) -> None:
    from devhive.services.messaging import MessagingService

    service = MessagingService(_context(sprint_db))
    message_id = service.request("fe", "review", "navbar ready")

    inbox = service.inbox()
    assert [m.id for m in inbox] == [message_id]
    assert inbox[0].from_worker == "fe"
    assert inbox[0].message_type == "review"
    assert inbox[0].subject == "👀 Review Request"
    assert sprint_db.get_worker("fe").status == "pending"


def test_unblock_request_marks_worker_blocked(sprint_db) -> None:
    from devhive.services.messaging import MessagingService

    sprint_db.update_worker_status("be", "working")
    MessagingService(_context(sprint_db)).request("be", "unblock", "waiting on schema")

    assert sprint_db.get_worker("be").status == "blocked"
    assert [e.event_type for e in sprint_db.get_recent_events(limit=2)] == [
        "worker_status_changed",
        "message_sent",
    ]


def test_request_validation(sprint_db) -> None:
    from devhive.services.messaging import MessagingService

    service = MessagingService(_context(sprint_db))
    with pytest.raises(ValidationError):
        service.request("fe", "coffee")
    with pytest.raises(NotFoundError):
        service.request("ghost", "unblock")
    assert service.inbox() == []


def test_reply_requires_registered_worker(sprint_db) -> None:
    from devhive.services.messaging import MessagingService

    service = MessagingService(_context(sprint_db))
    with pytest.raises(NotFoundError):
        service.reply("ghost", "hello")
    service.reply("fe", "approved")
    unread = sprint_db.get_unread_messages("fe")
    assert [(m.from_worker, m.message_type, m.content) for m in unread] == [("pm", "reply", "approved")]


def test_mailbox_marks_read_and_lists_history(sprint_db) -> None:
    from devhive.services.messaging import MessagingService

    service = MessagingService(_context(sprint_db))
    service.report("fe", "login form done")
    service.report("be", "api half done")

    first = service.inbox(mark_read=True)
    assert [m.content for m in first] == ["login form done", "api half done"]
    assert all(m.read_at is None for m in first)
    assert service.inbox() == []

    history = service.inbox(include_read=True)
    assert [m.content for m in history] == ["login form done", "api half done"]
    assert all(m.is_read for m in history)


def test_list_messages_keeps_newest(sprint_db) -> None:
    for n in range(5):
        sprint_db.send_message("be", "fe", content=f"m{n}")
    assert [m.content for m in sprint_db.list_messages("fe", limit=3)] == ["m2", "m3", "m4"]


def test_log_context_is_scoped() -> None:
    from devhive.logging import get_log_context, log_context

    with log_context(project="shop", worker=None):
        assert get_log_context() == {"project": "shop"}
        with log_context(worker="fe"):
            assert get_log_context() == {"project": "shop", "worker": "fe"}
        assert get_log_context() == {"project": "shop"}
    assert get_log_context() == {}
