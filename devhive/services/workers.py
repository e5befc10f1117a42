"""
Worker lifecycle service.

Thin layer over the store for callers that want role resolution at
registration and a heads-up when a status move is outside the usual
lifecycle. The store itself only validates enum membership.
"""

from typing import Optional

from devhive.errors import ValidationError
from devhive.models.domain import Worker, WorkerStatus
from devhive.services.base import Service
from devhive.services.roles import SOURCE_BUILTIN, resolve_role


class WorkerService(Service):
    """Registration and status updates with role resolution."""

    def register(
        self,
        name: str,
        branch: str,
        role_name: Optional[str] = None,
        worktree_path: Optional[str] = None,
        sprint_id: Optional[str] = None,
    ) -> Worker:
        """
        Register ``name`` in ``sprint_id`` (default: the active sprint).

        Built-in role templates are accepted without a catalog row.
        """
        if sprint_id is None:
            sprint = self.db.get_active_sprint()
            if sprint is None:
                raise ValidationError("No active sprint; start one with 'devhive init <sprint-id>'")
            sprint_id = sprint.id
        source = resolve_role(self.db, role_name)
        if role_name and source is None:
            raise ValidationError(
                f"Role '{role_name}' not found; create it with 'devhive role create {role_name}' "
                "or use a built-in role (devhive role list --builtin)",
                metadata={"role": role_name},
            )
        worker = self.db.register_worker(
            name,
            sprint_id,
            branch,
            role_name=role_name,
            worktree_path=worktree_path,
            role_verified=source == SOURCE_BUILTIN,
        )
        self.logger.info(
            "Registered worker",
            extra=self.log_extra(sprint_id=sprint_id, worker=name, role_source=source),
        )
        return worker

    def set_status(
        self,
        name: str,
        status: str,
        task: Optional[str] = None,
        commit: Optional[str] = None,
    ) -> bool:
        """
        Update a worker's status. Returns False when the move is outside the
        usual lifecycle (it is still applied).
        """
        current = self.db.get_worker(name)
        expected = current is None or WorkerStatus.is_expected_transition(current.status, status)
        self.db.update_worker_status(name, status, task=task, commit=commit)
        if not expected:
            self.logger.warning(
                "Unusual worker status transition",
                extra=self.log_extra(worker=name, from_status=current.status, to_status=status),
            )
        return expected
