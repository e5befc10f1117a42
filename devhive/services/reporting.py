"""
Sprint reporting.

Summaries over workers and events used by `devhive status` and
`devhive sprint report`.
"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from devhive.errors import NotFoundError
from devhive.models.domain import Event, SessionState, Worker, WorkerStatus
from devhive.services.base import Service


def summarize_workers(workers: Iterable[Worker]) -> Dict[str, int]:
    """Count workers per status; every status is present, plus "total"."""
    counts = Counter(w.status for w in workers)
    summary = {status: counts.get(status, 0) for status in sorted(WorkerStatus.ALL)}
    summary["total"] = sum(counts.values())
    return summary


def attention_needed(workers: Iterable[Worker]) -> List[Worker]:
    """Workers whose session is waiting on a human."""
    return [w for w in workers if w.session_state == SessionState.WAITING_PERMISSION]


def count_events(events: Iterable[Event]) -> Dict[str, int]:
    return dict(sorted(Counter(e.event_type for e in events).items()))


class SprintReportService(Service):
    """Builds a report for the active sprint, or a named one."""

    recent_event_limit = 100

    def build_report(self, sprint_id: Optional[str] = None) -> Dict[str, Any]:
        if sprint_id is None:
            sprint = self.db.get_active_sprint()
            if sprint is None:
                raise NotFoundError("No active sprint; pass a sprint id to report on a completed one")
        else:
            sprint = self.db.get_sprint(sprint_id)
            if sprint is None:
                raise NotFoundError(f"Sprint '{sprint_id}' not found", metadata={"sprint_id": sprint_id})

        workers = self.db.list_workers(sprint_id=sprint.id)
        names = {w.name for w in workers}
        events = [
            e for e in self.db.get_recent_events(limit=self.recent_event_limit)
            if e.worker is None or e.worker in names
        ]
        self.logger.debug(
            "Built sprint report",
            extra=self.log_extra(sprint_id=sprint.id, workers=len(workers), events=len(events)),
        )
        return {
            "sprint": {
                "id": sprint.id,
                "status": sprint.status,
                "started_at": sprint.started_at,
                "completed_at": sprint.completed_at,
                "config_file": sprint.config_file,
                "project_path": sprint.project_path,
            },
            "summary": summarize_workers(workers),
            "workers": [w.to_dict() for w in workers],
            "attention": [w.name for w in attention_needed(workers)],
            "event_counts": count_events(events),
            "total_errors": sum(w.error_count for w in workers),
        }
