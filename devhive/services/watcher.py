"""
Event tailing.

Cursor-based follow loop over the event log. The loop sleeps on a
``threading.Event`` so a caller can stop it immediately from another thread
or a signal handler, and an optional timeout bounds the total run time.
"""

import threading
import time
from typing import Iterator, Optional

from devhive.errors import StorageBusyError, ValidationError
from devhive.events_catalog import EventType
from devhive.models.domain import Event
from devhive.services.base import Service


def is_relevant_to(event: Event, worker: Optional[str]) -> bool:
    """A worker only sees the direct messages addressed to it."""
    if not worker or event.event_type != EventType.MESSAGE_SENT:
        return True
    return event.data.get("to") == worker


class EventWatcher(Service):
    """Follows the event log from a cursor."""

    batch_size = 200

    def __init__(self, context, stop: Optional[threading.Event] = None) -> None:
        super().__init__(context)
        self.stop = stop or threading.Event()
        self.cursor: Optional[int] = None

    def follow(
        self,
        *,
        interval: Optional[float] = None,
        type_prefix: Optional[str] = None,
        after_id: Optional[int] = None,
        timeout: Optional[float] = None,
        worker: Optional[str] = None,
    ) -> Iterator[Event]:
        """
        Yield events newer than ``after_id`` (default: the current last id,
        so history is not replayed) until stopped or timed out.

        ``self.cursor`` always holds the id of the last event yielded.
        Raises ValidationError up front for a non-positive interval.
        """
        interval = self.config.watch_interval_seconds if interval is None else float(interval)
        if not interval > 0:
            raise ValidationError(f"Watch interval must be positive, got {interval}")
        return self._poll(interval, type_prefix, after_id, timeout, worker)

    def _poll(
        self,
        interval: float,
        type_prefix: Optional[str],
        after_id: Optional[int],
        timeout: Optional[float],
        worker: Optional[str],
    ) -> Iterator[Event]:
        self.cursor = self.db.get_last_event_id() if after_id is None else int(after_id)
        deadline = None if timeout is None else time.monotonic() + timeout
        self.logger.debug(
            "Watching events",
            extra=self.log_extra(worker=worker, cursor=self.cursor, type_prefix=type_prefix),
        )
        while not self.stop.is_set():
            try:
                events = self.db.get_events_since(self.cursor, type_prefix=type_prefix, limit=self.batch_size)
            except StorageBusyError as exc:
                self.logger.warning("Event poll skipped, store busy", extra=self.log_extra(error=str(exc)))
                events = []
            for event in events:
                self.cursor = event.id
                if is_relevant_to(event, worker):
                    yield event
                if self.stop.is_set():
                    return
            wait = interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return
                wait = min(wait, remaining)
            if len(events) >= self.batch_size:
                # backlog left, poll again right away
                continue
            if self.stop.wait(wait):
                return

    def close(self) -> None:
        self.stop.set()
