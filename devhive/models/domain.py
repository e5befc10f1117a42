"""
DevHive Domain Models

Data classes for the coordination store entities. Used for data transfer
between the store, the services and the CLI.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from devhive.events_catalog import EventPayload, decode_payload


# Status Constants

class SprintStatus:
    """Sprint status values."""
    ACTIVE = "active"
    COMPLETED = "completed"

    ALL: FrozenSet[str] = frozenset({ACTIVE, COMPLETED})


class WorkerStatus:
    """Worker lifecycle status values."""
    PENDING = "pending"
    WORKING = "working"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    ERROR = "error"

    ALL: FrozenSet[str] = frozenset({PENDING, WORKING, COMPLETED, BLOCKED, ERROR})

    # Expected moves; "completed" is reachable from anywhere.
    TRANSITIONS: Dict[str, FrozenSet[str]] = {
        PENDING: frozenset({WORKING, COMPLETED}),
        WORKING: frozenset({COMPLETED, BLOCKED, ERROR}),
        BLOCKED: frozenset({WORKING, COMPLETED}),
        ERROR: frozenset({WORKING, COMPLETED}),
        COMPLETED: frozenset({COMPLETED}),
    }

    @classmethod
    def is_expected_transition(cls, current: str, new: str) -> bool:
        if current == new:
            return True
        return new in cls.TRANSITIONS.get(current, frozenset())


class SessionState:
    """Interactive session state of a worker's agent process."""
    RUNNING = "running"
    WAITING_PERMISSION = "waiting_permission"
    IDLE = "idle"
    STOPPED = "stopped"

    ALL: FrozenSet[str] = frozenset({RUNNING, WAITING_PERMISSION, IDLE, STOPPED})


class MessageType:
    """Conventional message types; the store accepts any non-empty string."""
    INFO = "info"
    HELP = "help"
    REVIEW = "review"
    UNBLOCK = "unblock"
    CLARIFY = "clarify"
    REPORT = "report"
    REPLY = "reply"
    BROADCAST = "broadcast"


# Core Domain Models

@dataclass
class Role:
    """A reusable role definition referenced by workers."""
    name: str
    created_at: str
    description: Optional[str] = None
    role_file: Optional[str] = None
    args: Optional[str] = None


@dataclass
class Sprint:
    """A bounded unit of coordinated work."""
    id: str
    status: str
    started_at: str
    config_file: Optional[str] = None
    project_path: Optional[str] = None
    completed_at: Optional[str] = None


@dataclass
class Worker:
    """A participant process bound to a sprint, branch and optional role."""
    name: str
    sprint_id: str
    branch: str
    status: str
    updated_at: str
    role_name: Optional[str] = None
    role_file: Optional[str] = None
    worktree_path: Optional[str] = None
    session_state: str = SessionState.STOPPED
    current_task: Optional[str] = None
    progress: int = 0
    activity: Optional[str] = None
    last_commit: Optional[str] = None
    error_count: int = 0
    last_error: Optional[str] = None
    unread_messages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Message:
    """A directed message; broadcasts are stored as one row per recipient."""
    id: int
    from_worker: str
    to_worker: str
    message_type: str
    content: str
    created_at: str
    subject: Optional[str] = None
    read_at: Optional[str] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


@dataclass
class Event:
    """An immutable audit / change-notification record."""
    id: int
    event_type: str
    created_at: str
    worker: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def payload(self) -> Optional[EventPayload]:
        """Typed payload for known event types, None otherwise."""
        return decode_payload(self.event_type, self.data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
