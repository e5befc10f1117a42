"""
Worker / PM messaging.

The conversation between workers and the project manager rides on the
ordinary message bus: workers raise requests and progress reports to the
``pm`` mailbox, and the PM reads its inbox and replies to one worker.
"""

from typing import List, Optional

from devhive.errors import NotFoundError, ValidationError
from devhive.models.domain import Message, MessageType, WorkerStatus
from devhive.services.base import Service

PM_NAME = "pm"

REQUEST_SUBJECTS = {
    MessageType.HELP: "🆘 Help Request",
    MessageType.REVIEW: "👀 Review Request",
    MessageType.UNBLOCK: "🚫 Unblock Request",
    MessageType.CLARIFY: "❓ Clarification Request",
}
REPORT_SUBJECT = "📋 Progress Report"
REPLY_SUBJECT = "💬 PM Reply"

MESSAGE_ICONS = {
    MessageType.HELP: "🆘",
    MessageType.REVIEW: "👀",
    MessageType.UNBLOCK: "🚫",
    MessageType.CLARIFY: "❓",
    MessageType.REPORT: "📋",
    MessageType.REPLY: "💬",
    MessageType.BROADCAST: "📢",
    MessageType.INFO: "ℹ",
}


def message_icon(message_type: str) -> str:
    return MESSAGE_ICONS.get(message_type, "📨")


class MessagingService(Service):
    """Requests, reports and replies between workers and the PM."""

    def request(self, worker: str, kind: str, content: str = "") -> int:
        """
        Send a typed request from ``worker`` to the PM.

        An ``unblock`` request also marks the worker blocked, so the worker
        must be registered for that kind.
        """
        subject = REQUEST_SUBJECTS.get(kind)
        if subject is None:
            valid = ", ".join(sorted(REQUEST_SUBJECTS))
            raise ValidationError(f"Invalid request type '{kind}' (valid: {valid})", metadata={"kind": kind})
        if kind == MessageType.UNBLOCK and self.db.get_worker(worker) is None:
            raise NotFoundError(f"Worker '{worker}' not found", metadata={"worker": worker})

        message_id = self.db.send_message(worker, PM_NAME, kind, subject, content)
        if kind == MessageType.UNBLOCK:
            self.db.update_worker_status(worker, WorkerStatus.BLOCKED)
        self.logger.info("Request sent to PM", extra=self.log_extra(worker=worker, kind=kind, message_id=message_id))
        return message_id

    def report(self, worker: str, content: str) -> int:
        if not content or not content.strip():
            raise ValidationError("Report must not be empty")
        return self.db.send_message(worker, PM_NAME, MessageType.REPORT, REPORT_SUBJECT, content)

    def reply(self, to_worker: str, content: str) -> int:
        """Send a PM reply to one registered worker."""
        if self.db.get_worker(to_worker) is None:
            raise NotFoundError(f"Worker '{to_worker}' not found", metadata={"worker": to_worker})
        return self.db.send_message(PM_NAME, to_worker, MessageType.REPLY, REPLY_SUBJECT, content)

    def mailbox(
        self,
        owner: str,
        *,
        include_read: bool = False,
        mark_read: bool = False,
        limit: int = 50,
    ) -> List[Message]:
        """
        Messages addressed to ``owner`` (unread only unless ``include_read``),
        oldest first. With ``mark_read`` the unread ones are marked read after
        they are fetched, so the returned rows still show them as new.
        """
        if include_read:
            messages = self.db.list_messages(owner, limit=limit)
        else:
            messages = self.db.get_unread_messages(owner)
        if mark_read and any(not m.is_read for m in messages):
            self.db.mark_all_read(owner)
        return messages

    def inbox(self, *, include_read: bool = False, mark_read: bool = False) -> List[Message]:
        return self.mailbox(PM_NAME, include_read=include_read, mark_read=mark_read)


def sender_or_pm(worker: Optional[str]) -> str:
    return worker or PM_NAME
