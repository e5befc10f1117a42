"""
DevHive Event Catalog

Typed payloads for every event the coordination store appends. Each event
kind is one frozen dataclass; serialization to the JSON ``data`` column
happens in one place (``encode_payload``) and ``decode_payload`` turns a
stored row back into its typed record.
"""

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Type


class EventType:
    """Event type names as stored in events.event_type."""
    SPRINT_CREATED = "sprint_created"
    SPRINT_COMPLETED = "sprint_completed"
    WORKER_REGISTERED = "worker_registered"
    WORKER_STATUS_CHANGED = "worker_status_changed"
    WORKER_TASK_UPDATED = "worker_task_updated"
    WORKER_SESSION_CHANGED = "worker_session_changed"
    WORKER_PROGRESS_UPDATED = "worker_progress_updated"
    WORKER_ERROR = "worker_error"
    WORKER_REMOVED = "worker_removed"
    MESSAGE_SENT = "message_sent"
    MESSAGE_BROADCAST = "message_broadcast"


@dataclass(frozen=True)
class EventPayload:
    """Base for typed event payloads."""

    event_type: ClassVar[str] = ""
    # dataclass field name -> JSON key, where they differ
    json_keys: ClassVar[Dict[str, str]] = {}

    def to_data(self) -> Dict[str, Any]:
        return {self.json_keys.get(f.name, f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "EventPayload":
        kwargs = {}
        for f in fields(cls):
            key = cls.json_keys.get(f.name, f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(**kwargs)


@dataclass(frozen=True)
class SprintCreated(EventPayload):
    event_type: ClassVar[str] = EventType.SPRINT_CREATED
    sprint_id: str = ""


@dataclass(frozen=True)
class SprintCompleted(EventPayload):
    event_type: ClassVar[str] = EventType.SPRINT_COMPLETED
    sprint_id: str = ""


@dataclass(frozen=True)
class WorkerRegistered(EventPayload):
    """``role`` is null (not an empty string) when the worker has no role."""

    event_type: ClassVar[str] = EventType.WORKER_REGISTERED
    branch: str = ""
    role: Optional[str] = None


@dataclass(frozen=True)
class WorkerStatusChanged(EventPayload):
    event_type: ClassVar[str] = EventType.WORKER_STATUS_CHANGED
    status: str = ""


@dataclass(frozen=True)
class WorkerTaskUpdated(EventPayload):
    event_type: ClassVar[str] = EventType.WORKER_TASK_UPDATED
    task: str = ""


@dataclass(frozen=True)
class WorkerSessionChanged(EventPayload):
    event_type: ClassVar[str] = EventType.WORKER_SESSION_CHANGED
    session_state: str = ""


@dataclass(frozen=True)
class WorkerProgressUpdated(EventPayload):
    event_type: ClassVar[str] = EventType.WORKER_PROGRESS_UPDATED
    progress: int = 0
    activity: Optional[str] = None


@dataclass(frozen=True)
class WorkerErrorReported(EventPayload):
    event_type: ClassVar[str] = EventType.WORKER_ERROR
    message: str = ""


@dataclass(frozen=True)
class WorkerRemoved(EventPayload):
    event_type: ClassVar[str] = EventType.WORKER_REMOVED


@dataclass(frozen=True)
class MessageSent(EventPayload):
    event_type: ClassVar[str] = EventType.MESSAGE_SENT
    json_keys: ClassVar[Dict[str, str]] = {"to_worker": "to", "message_type": "type"}
    to_worker: str = ""
    message_type: str = ""


@dataclass(frozen=True)
class MessageBroadcast(EventPayload):
    event_type: ClassVar[str] = EventType.MESSAGE_BROADCAST
    json_keys: ClassVar[Dict[str, str]] = {"message_type": "type"}
    message_type: str = ""
    count: int = 0


PAYLOAD_TYPES: Dict[str, Type[EventPayload]] = {
    cls.event_type: cls
    for cls in (
        SprintCreated,
        SprintCompleted,
        WorkerRegistered,
        WorkerStatusChanged,
        WorkerTaskUpdated,
        WorkerSessionChanged,
        WorkerProgressUpdated,
        WorkerErrorReported,
        WorkerRemoved,
        MessageSent,
        MessageBroadcast,
    )
}


def encode_payload(payload: EventPayload) -> Dict[str, Any]:
    return payload.to_data()


def decode_payload(event_type: str, data: Optional[Dict[str, Any]]) -> Optional[EventPayload]:
    """Rebuild the typed payload for a stored event; None for unknown types."""
    cls = PAYLOAD_TYPES.get(event_type)
    if cls is None:
        return None
    return cls.from_data(data or {})
