"""
DevHive Service Base

Service base class and the ServiceContext that carries the explicit store
handle, configuration and logging context to every service.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from devhive.config import Config
from devhive.db.database import CoordinationStore
from devhive.logging import get_logger


@dataclass
class ServiceContext:
    """
    Shared dependencies for services.

    Attributes:
        config: Process configuration
        db: The coordination store handle (never a module global)
        project: Project name the store belongs to, when known
    """
    config: Config
    db: CoordinationStore
    project: Optional[str] = None


class Service:
    """
    Base class for DevHive services.

    Example:
        class MyService(Service):
            def do_something(self) -> None:
                self.logger.info("Doing something", extra=self.log_extra(worker="fe"))
    """

    def __init__(self, context: ServiceContext) -> None:
        self.context = context
        self.config = context.config
        self.db = context.db
        self.logger = get_logger(self.__class__.__name__)

    def log_extra(
        self,
        *,
        sprint_id: Optional[str] = None,
        worker: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        """Structured-logging extras; the context project is included by default."""
        payload: Dict[str, Any] = {}
        if self.context.project is not None:
            payload["project"] = self.context.project
        if sprint_id is not None:
            payload["sprint_id"] = sprint_id
        if worker is not None:
            payload["worker"] = worker
        payload.update({k: v for k, v in extra.items() if v is not None})
        return payload
