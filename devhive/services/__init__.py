"""
DevHive Services

Business logic layered over the coordination store.
"""

from devhive.services.base import Service, ServiceContext
from devhive.services.messaging import PM_NAME, MessagingService
from devhive.services.reporting import SprintReportService, attention_needed, summarize_workers
from devhive.services.roles import BUILTIN_ROLES, is_builtin_role, resolve_role
from devhive.services.watcher import EventWatcher, is_relevant_to
from devhive.services.workers import WorkerService

__all__ = [
    "Service",
    "ServiceContext",
    "MessagingService",
    "PM_NAME",
    "SprintReportService",
    "attention_needed",
    "summarize_workers",
    "BUILTIN_ROLES",
    "is_builtin_role",
    "resolve_role",
    "EventWatcher",
    "is_relevant_to",
    "WorkerService",
]
