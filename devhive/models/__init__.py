"""
DevHive Models

Typed domain objects shared by the store, services and CLI.
"""

from devhive.models.domain import (
    # Status Constants
    SprintStatus,
    WorkerStatus,
    SessionState,
    MessageType,
    # Core Models
    Role,
    Sprint,
    Worker,
    Message,
    Event,
)

__all__ = [
    "SprintStatus",
    "WorkerStatus",
    "SessionState",
    "MessageType",
    "Role",
    "Sprint",
    "Worker",
    "Message",
    "Event",
]
