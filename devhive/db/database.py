"""
DevHive Coordination Store

SQLite-backed state shared by every process working on a project: sprints,
roles, workers, messages and the append-only event log.

Each call opens a short-lived connection in WAL mode with a busy timeout.
Mutations commit in one transaction and then append their event in a
separate, best-effort write.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Union

from devhive.db.schema import INDEXES_SQLITE, SCHEMA_SQLITE, apply_migrations, demote_extra_active_sprints
from devhive.errors import (
    ConflictError,
    DevHiveError,
    NotFoundError,
    StorageBusyError,
    StorageError,
    ValidationError,
    is_busy_error,
)
from devhive.events_catalog import (
    EventPayload,
    MessageBroadcast,
    MessageSent,
    SprintCompleted,
    SprintCreated,
    WorkerErrorReported,
    WorkerProgressUpdated,
    WorkerRegistered,
    WorkerRemoved,
    WorkerSessionChanged,
    WorkerStatusChanged,
    WorkerTaskUpdated,
    encode_payload,
)
from devhive.logging import get_logger, log_extra
from devhive.models.domain import (
    Event,
    Message,
    Role,
    SessionState,
    Sprint,
    SprintStatus,
    Worker,
    WorkerStatus,
)

logger = get_logger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000
MAX_EVENT_LIMIT = 1000

_UNSET = object()

_WORKER_SELECT = """
    SELECT
        w.name, w.sprint_id, w.branch, w.role_name, r.role_file AS role_file,
        w.worktree_path, w.status, w.session_state, w.current_task, w.progress,
        w.activity, w.last_commit, w.error_count, w.last_error, w.updated_at,
        (SELECT COUNT(*) FROM messages m
            WHERE m.to_worker = w.name AND m.read_at IS NULL) AS unread_messages
    FROM workers w
    LEFT JOIN roles r ON r.name = w.role_name
"""

_ACTIVE_SPRINT_ID = (
    "(SELECT id FROM sprints WHERE status = 'active' ORDER BY started_at DESC, rowid DESC LIMIT 1)"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _require_text(value: Optional[str], what: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{what} must not be empty")
    return str(value)


class CoordinationStore(Protocol):
    """Command/query surface the services and CLI rely on."""

    def init_schema(self) -> None: ...

    # Sprints
    def create_sprint(self, sprint_id: str, config_file: Optional[str] = None, project_path: Optional[str] = None) -> Sprint: ...
    def get_active_sprint(self) -> Optional[Sprint]: ...
    def get_sprint(self, sprint_id: str) -> Optional[Sprint]: ...
    def list_sprints(self) -> List[Sprint]: ...
    def complete_sprint(self) -> Sprint: ...

    # Roles
    def create_role(self, name: str, description: Optional[str] = None, role_file: Optional[str] = None, args: Optional[str] = None) -> Role: ...
    def get_role(self, name: str) -> Optional[Role]: ...
    def list_roles(self) -> List[Role]: ...
    def update_role(self, name: str, **kwargs: Any) -> Role: ...
    def delete_role(self, name: str) -> None: ...

    # Workers
    def register_worker(
        self,
        name: str,
        sprint_id: str,
        branch: str,
        role_name: Optional[str] = None,
        worktree_path: Optional[str] = None,
        *,
        role_verified: bool = False,
    ) -> Worker: ...
    def update_worker_status(self, name: str, status: str, task: Optional[str] = None, commit: Optional[str] = None) -> None: ...
    def update_worker_task(self, name: str, task: str) -> None: ...
    def update_worker_session_state(self, name: str, state: str) -> None: ...
    def update_worker_progress(self, name: str, progress: int, activity: Optional[str] = None) -> None: ...
    def report_worker_error(self, name: str, message: str) -> None: ...
    def get_worker(self, name: str) -> Optional[Worker]: ...
    def list_workers(self, sprint_id: Optional[str] = None) -> List[Worker]: ...
    def list_worker_names(self) -> List[str]: ...
    def delete_worker(self, name: str) -> None: ...

    # Messages
    def send_message(self, from_worker: str, to_worker: str, message_type: str = "info", subject: Optional[str] = None, content: str = "") -> int: ...
    def broadcast_message(self, from_worker: str, message_type: str, subject: Optional[str], content: str) -> int: ...
    def get_message(self, message_id: int) -> Optional[Message]: ...
    def get_unread_messages(self, worker: str) -> List[Message]: ...
    def list_messages(self, worker: str, limit: int = 50) -> List[Message]: ...
    def mark_message_read(self, message_id: int) -> bool: ...
    def mark_all_read(self, worker: str) -> int: ...

    # Events
    def get_recent_events(self, limit: int = 50, event_type: Optional[str] = None, worker: Optional[str] = None) -> List[Event]: ...
    def get_events_since(self, last_id: int, type_prefix: Optional[str] = None, limit: Optional[int] = None) -> List[Event]: ...
    def get_last_event_id(self) -> int: ...

    # Retention
    def cleanup_old_events(self, days: int, dry_run: bool = False) -> int: ...
    def cleanup_old_messages(self, days: int, dry_run: bool = False) -> int: ...


class SQLiteDatabase:
    """
    SQLite-backed coordination store for one project.

    Construct once per process and pass the handle to whatever needs it;
    several instances on different files can coexist (tests rely on this).
    """

    def __init__(self, db_path: Union[str, Path], busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = int(busy_timeout_ms)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Cannot create state directory {self.db_path.parent}: {exc}",
                metadata={"db_path": str(self.db_path)},
            ) from exc

    # ------------------------------------------------------------------
    # Connections and transactions
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise StorageError(
                f"Cannot open state database {self.db_path}: {exc}",
                metadata={"db_path": str(self.db_path)},
            ) from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as exc:
            conn.close()
            raise self._translate(exc) from exc
        return conn

    def _translate(self, exc: sqlite3.Error) -> DevHiveError:
        """Map a sqlite3 error onto the DevHive taxonomy."""
        text = str(exc)
        meta = {"db_path": str(self.db_path), "sqlite_error": text}
        if isinstance(exc, sqlite3.IntegrityError):
            if "UNIQUE" in text:
                return ConflictError(f"Duplicate entry rejected: {text}", metadata=meta)
            return ValidationError(f"Invalid value rejected by the store: {text}", metadata=meta)
        if is_busy_error(exc):
            return StorageBusyError(
                f"State database {self.db_path} is busy (another process holds the write lock); try again",
                metadata=meta,
            )
        return StorageError(f"State database error on {self.db_path}: {text}", metadata=meta)

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.rollback()

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Run a block in one transaction.

        ``immediate`` takes the write lock up front, for check-then-write
        blocks that must not interleave with another writer.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            self._rollback(conn)
            raise self._translate(exc) from exc
        except Exception:
            self._rollback(conn)
            raise
        finally:
            conn.close()

    @contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
        except sqlite3.Error as exc:
            raise self._translate(exc) from exc
        finally:
            conn.close()

    def _fetchone(self, query: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
        with self._reading() as conn:
            return conn.execute(query, tuple(params)).fetchone()

    def _fetchall(self, query: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with self._reading() as conn:
            return conn.execute(query, tuple(params)).fetchall()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def init_schema(self) -> None:
        """Apply the base schema, missing column migrations, then indexes."""
        try:
            with self._reading() as conn:
                conn.executescript(SCHEMA_SQLITE)
            with self._transaction(immediate=True) as conn:
                applied = apply_migrations(conn)
                demoted = demote_extra_active_sprints(conn, _now())
            with self._reading() as conn:
                conn.executescript(INDEXES_SQLITE)
        except DevHiveError as exc:
            raise StorageError(
                f"Failed to initialise state database {self.db_path}: {exc}",
                metadata={"db_path": str(self.db_path)},
                retryable=False,
            ) from exc
        if applied:
            logger.info(
                "Applied schema migrations",
                extra=log_extra(db_path=str(self.db_path), migrations=applied),
            )
        if demoted:
            logger.warning(
                "Completed extra active sprints left by an older store",
                extra=log_extra(db_path=str(self.db_path), sprints=demoted),
            )

    # ------------------------------------------------------------------
    # Row converters
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_json(value: Any) -> Dict[str, Any]:
        if value is None:
            return {}
        if isinstance(value, dict):
            return value
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @staticmethod
    def _row_to_sprint(row: sqlite3.Row) -> Sprint:
        return Sprint(
            id=row["id"],
            status=row["status"],
            started_at=row["started_at"],
            config_file=row["config_file"],
            project_path=row["project_path"],
            completed_at=row["completed_at"],
        )

    @staticmethod
    def _row_to_role(row: sqlite3.Row) -> Role:
        return Role(
            name=row["name"],
            created_at=row["created_at"],
            description=row["description"],
            role_file=row["role_file"],
            args=row["args"],
        )

    @staticmethod
    def _row_to_worker(row: sqlite3.Row) -> Worker:
        return Worker(
            name=row["name"],
            sprint_id=row["sprint_id"],
            branch=row["branch"],
            status=row["status"],
            updated_at=row["updated_at"],
            role_name=row["role_name"],
            role_file=row["role_file"],
            worktree_path=row["worktree_path"],
            session_state=row["session_state"] or SessionState.STOPPED,
            current_task=row["current_task"],
            progress=row["progress"] or 0,
            activity=row["activity"],
            last_commit=row["last_commit"],
            error_count=row["error_count"] or 0,
            last_error=row["last_error"],
            unread_messages=row["unread_messages"] or 0,
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            from_worker=row["from_worker"],
            to_worker=row["to_worker"],
            message_type=row["message_type"],
            content=row["content"],
            created_at=row["created_at"],
            subject=row["subject"],
            read_at=row["read_at"],
        )

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            id=row["id"],
            event_type=row["event_type"],
            created_at=row["created_at"],
            worker=row["worker"],
            data=self._parse_json(row["data"]),
        )

    # ------------------------------------------------------------------
    # Event appends
    # ------------------------------------------------------------------

    def _append_event(self, payload: EventPayload, worker: Optional[str] = None) -> Optional[int]:
        """
        Append one event after the mutation it describes has committed.

        A failure here is logged and swallowed: the committed change stands
        even when its audit row could not be written.
        """
        try:
            with self._transaction() as conn:
                cur = conn.execute(
                    "INSERT INTO events (event_type, worker, data, created_at) VALUES (?, ?, ?, ?)",
                    (payload.event_type, worker, json.dumps(encode_payload(payload)), _now()),
                )
                event_id = cur.lastrowid
        except DevHiveError as exc:
            logger.warning(
                "Failed to append event",
                extra=log_extra(worker=worker, event_type=payload.event_type, error=str(exc)),
            )
            return None
        return event_id

    # ------------------------------------------------------------------
    # Sprints
    # ------------------------------------------------------------------

    def create_sprint(
        self,
        sprint_id: str,
        config_file: Optional[str] = None,
        project_path: Optional[str] = None,
    ) -> Sprint:
        _require_text(sprint_id, "Sprint id")
        started_at = _now()
        with self._transaction(immediate=True) as conn:
            active = conn.execute(
                "SELECT id FROM sprints WHERE status = ? LIMIT 1", (SprintStatus.ACTIVE,)
            ).fetchone()
            if active is not None:
                raise ConflictError(
                    f"Sprint '{active['id']}' is still active; complete it before starting '{sprint_id}'",
                    metadata={"active_sprint": active["id"], "sprint_id": sprint_id},
                )
            if conn.execute("SELECT 1 FROM sprints WHERE id = ?", (sprint_id,)).fetchone() is not None:
                raise ConflictError(
                    f"Sprint '{sprint_id}' already exists; choose a new sprint id",
                    metadata={"sprint_id": sprint_id},
                )
            conn.execute(
                """
                INSERT INTO sprints (id, config_file, project_path, status, started_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (sprint_id, config_file, project_path, SprintStatus.ACTIVE, started_at),
            )
        logger.info("Sprint created", extra=log_extra(sprint_id=sprint_id))
        self._append_event(SprintCreated(sprint_id=sprint_id))
        return Sprint(
            id=sprint_id,
            status=SprintStatus.ACTIVE,
            started_at=started_at,
            config_file=config_file,
            project_path=project_path,
        )

    def get_active_sprint(self) -> Optional[Sprint]:
        row = self._fetchone(
            "SELECT * FROM sprints WHERE status = ? ORDER BY started_at DESC, rowid DESC LIMIT 1",
            (SprintStatus.ACTIVE,),
        )
        return self._row_to_sprint(row) if row else None

    def get_sprint(self, sprint_id: str) -> Optional[Sprint]:
        row = self._fetchone("SELECT * FROM sprints WHERE id = ?", (sprint_id,))
        return self._row_to_sprint(row) if row else None

    def list_sprints(self) -> List[Sprint]:
        rows = self._fetchall("SELECT * FROM sprints ORDER BY started_at DESC, rowid DESC")
        return [self._row_to_sprint(row) for row in rows]

    def complete_sprint(self) -> Sprint:
        """Complete the active sprint and every worker in it, in one transaction."""
        completed_at = _now()
        with self._transaction(immediate=True) as conn:
            row = conn.execute(
                "SELECT * FROM sprints WHERE status = ? ORDER BY started_at DESC, rowid DESC LIMIT 1",
                (SprintStatus.ACTIVE,),
            ).fetchone()
            if row is None:
                raise NotFoundError("No active sprint to complete; start one with 'devhive init <sprint-id>'")
            sprint = self._row_to_sprint(row)
            cur = conn.execute(
                "UPDATE workers SET status = ?, updated_at = ? WHERE sprint_id = ?",
                (WorkerStatus.COMPLETED, completed_at, sprint.id),
            )
            workers_completed = cur.rowcount
            conn.execute(
                "UPDATE sprints SET status = ?, completed_at = ? WHERE id = ?",
                (SprintStatus.COMPLETED, completed_at, sprint.id),
            )
        sprint.status = SprintStatus.COMPLETED
        sprint.completed_at = completed_at
        logger.info(
            "Sprint completed",
            extra=log_extra(sprint_id=sprint.id, workers_completed=workers_completed),
        )
        self._append_event(SprintCompleted(sprint_id=sprint.id))
        return sprint

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(
        self,
        name: str,
        description: Optional[str] = None,
        role_file: Optional[str] = None,
        args: Optional[str] = None,
    ) -> Role:
        _require_text(name, "Role name")
        created_at = _now()
        with self._transaction(immediate=True) as conn:
            if conn.execute("SELECT 1 FROM roles WHERE name = ?", (name,)).fetchone() is not None:
                raise ConflictError(
                    f"Role '{name}' already exists; use 'devhive role update {name}' to change it",
                    metadata={"role": name},
                )
            conn.execute(
                "INSERT INTO roles (name, description, role_file, args, created_at) VALUES (?, ?, ?, ?, ?)",
                (name, description, role_file, args, created_at),
            )
        logger.debug("Role created", extra=log_extra(role=name))
        return Role(name=name, created_at=created_at, description=description, role_file=role_file, args=args)

    def get_role(self, name: str) -> Optional[Role]:
        row = self._fetchone("SELECT * FROM roles WHERE name = ?", (name,))
        return self._row_to_role(row) if row else None

    def list_roles(self) -> List[Role]:
        return [self._row_to_role(row) for row in self._fetchall("SELECT * FROM roles ORDER BY name")]

    def update_role(
        self,
        name: str,
        *,
        description: Any = _UNSET,
        role_file: Any = _UNSET,
        args: Any = _UNSET,
    ) -> Role:
        """Update the given fields of a role; fields left unset keep their value."""
        updates: List[str] = []
        params: List[Any] = []
        for column, value in (("description", description), ("role_file", role_file), ("args", args)):
            if value is _UNSET:
                continue
            updates.append(f"{column} = ?")
            params.append(value)
        with self._transaction() as conn:
            if updates:
                cur = conn.execute(f"UPDATE roles SET {', '.join(updates)} WHERE name = ?", (*params, name))
                found = cur.rowcount > 0
            else:
                found = conn.execute("SELECT 1 FROM roles WHERE name = ?", (name,)).fetchone() is not None
            if not found:
                raise NotFoundError(f"Role '{name}' not found", metadata={"role": name})
            row = conn.execute("SELECT * FROM roles WHERE name = ?", (name,)).fetchone()
        return self._row_to_role(row)

    def delete_role(self, name: str) -> None:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM roles WHERE name = ?", (name,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Role '{name}' not found", metadata={"role": name})
        logger.debug("Role deleted", extra=log_extra(role=name))

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def register_worker(
        self,
        name: str,
        sprint_id: str,
        branch: str,
        role_name: Optional[str] = None,
        worktree_path: Optional[str] = None,
        *,
        role_verified: bool = False,
    ) -> Worker:
        """
        Register a worker, or re-register an existing one.

        Re-registration overwrites sprint, branch, role and worktree and
        resets status to pending. ``role_verified`` means the caller already
        resolved ``role_name`` (e.g. to a built-in template), so the catalog
        lookup is skipped.
        """
        _require_text(name, "Worker name")
        _require_text(sprint_id, "Sprint id")
        _require_text(branch, "Branch")
        role_name = role_name or None
        worktree_path = worktree_path or None
        updated_at = _now()
        with self._transaction(immediate=True) as conn:
            if conn.execute("SELECT 1 FROM sprints WHERE id = ?", (sprint_id,)).fetchone() is None:
                raise ValidationError(
                    f"Sprint '{sprint_id}' does not exist; start it with 'devhive init {sprint_id}'",
                    metadata={"sprint_id": sprint_id},
                )
            if role_name and not role_verified:
                if conn.execute("SELECT 1 FROM roles WHERE name = ?", (role_name,)).fetchone() is None:
                    raise ValidationError(
                        f"Role '{role_name}' not found; create it with 'devhive role create {role_name}'",
                        metadata={"role": role_name},
                    )
            conn.execute(
                """
                INSERT INTO workers (name, sprint_id, branch, role_name, worktree_path, status, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    sprint_id = excluded.sprint_id,
                    branch = excluded.branch,
                    role_name = excluded.role_name,
                    worktree_path = excluded.worktree_path,
                    status = excluded.status,
                    updated_at = excluded.updated_at
                """,
                (name, sprint_id, branch, role_name, worktree_path, WorkerStatus.PENDING, updated_at),
            )
            row = conn.execute(f"{_WORKER_SELECT} WHERE w.name = ?", (name,)).fetchone()
        logger.info(
            "Worker registered",
            extra=log_extra(worker=name, sprint_id=sprint_id, branch=branch, role=role_name),
        )
        self._append_event(WorkerRegistered(branch=branch, role=role_name), worker=name)
        return self._row_to_worker(row)

    def _update_worker(self, name: str, fields: Dict[str, Any]) -> None:
        assignments = ", ".join(f"{column} = ?" for column in fields)
        with self._transaction() as conn:
            cur = conn.execute(
                f"UPDATE workers SET {assignments}, updated_at = ? WHERE name = ?",
                (*fields.values(), _now(), name),
            )
            if cur.rowcount == 0:
                raise NotFoundError(
                    f"Worker '{name}' not found; register it with 'devhive worker register'",
                    metadata={"worker": name},
                )

    def update_worker_status(
        self,
        name: str,
        status: str,
        task: Optional[str] = None,
        commit: Optional[str] = None,
    ) -> None:
        if status not in WorkerStatus.ALL:
            raise ValidationError(
                f"Invalid worker status '{status}'; expected one of: {', '.join(sorted(WorkerStatus.ALL))}",
                metadata={"worker": name, "status": status},
            )
        fields: Dict[str, Any] = {"status": status}
        if task is not None:
            fields["current_task"] = task
        if commit is not None:
            fields["last_commit"] = commit
        self._update_worker(name, fields)
        logger.debug("Worker status changed", extra=log_extra(worker=name, status=status))
        self._append_event(WorkerStatusChanged(status=status), worker=name)

    def update_worker_task(self, name: str, task: str) -> None:
        self._update_worker(name, {"current_task": task})
        self._append_event(WorkerTaskUpdated(task=task), worker=name)

    def update_worker_session_state(self, name: str, state: str) -> None:
        if state not in SessionState.ALL:
            raise ValidationError(
                f"Invalid session state '{state}'; expected one of: {', '.join(sorted(SessionState.ALL))}",
                metadata={"worker": name, "session_state": state},
            )
        self._update_worker(name, {"session_state": state})
        self._append_event(WorkerSessionChanged(session_state=state), worker=name)

    def update_worker_progress(self, name: str, progress: int, activity: Optional[str] = None) -> None:
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise ValidationError(
                f"Progress must be an integer between 0 and 100, got {progress!r}",
                metadata={"worker": name, "progress": progress},
            )
        self._update_worker(name, {"progress": progress, "activity": activity or None})
        self._append_event(WorkerProgressUpdated(progress=progress, activity=activity or None), worker=name)

    def report_worker_error(self, name: str, message: str) -> None:
        with self._transaction() as conn:
            cur = conn.execute(
                """
                UPDATE workers
                SET status = ?, error_count = error_count + 1, last_error = ?, updated_at = ?
                WHERE name = ?
                """,
                (WorkerStatus.ERROR, message, _now(), name),
            )
            if cur.rowcount == 0:
                raise NotFoundError(
                    f"Worker '{name}' not found; register it with 'devhive worker register'",
                    metadata={"worker": name},
                )
        logger.warning("Worker reported error", extra=log_extra(worker=name, error=message))
        self._append_event(WorkerErrorReported(message=message), worker=name)

    def get_worker(self, name: str) -> Optional[Worker]:
        row = self._fetchone(f"{_WORKER_SELECT} WHERE w.name = ?", (name,))
        return self._row_to_worker(row) if row else None

    def list_workers(self, sprint_id: Optional[str] = None) -> List[Worker]:
        """Workers of ``sprint_id``, or of the active sprint when omitted, ordered by name."""
        if sprint_id is None:
            rows = self._fetchall(f"{_WORKER_SELECT} WHERE w.sprint_id = {_ACTIVE_SPRINT_ID} ORDER BY w.name")
        else:
            rows = self._fetchall(f"{_WORKER_SELECT} WHERE w.sprint_id = ? ORDER BY w.name", (sprint_id,))
        return [self._row_to_worker(row) for row in rows]

    def list_worker_names(self) -> List[str]:
        rows = self._fetchall(
            f"SELECT name FROM workers WHERE sprint_id = {_ACTIVE_SPRINT_ID} ORDER BY name"
        )
        return [row["name"] for row in rows]

    def delete_worker(self, name: str) -> None:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM workers WHERE name = ?", (name,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Worker '{name}' not found", metadata={"worker": name})
        logger.info("Worker removed", extra=log_extra(worker=name))
        self._append_event(WorkerRemoved(), worker=name)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(
        self,
        from_worker: str,
        to_worker: str,
        message_type: str = "info",
        subject: Optional[str] = None,
        content: str = "",
    ) -> int:
        _require_text(from_worker, "Sender")
        _require_text(to_worker, "Recipient")
        _require_text(message_type, "Message type")
        with self._transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO messages (from_worker, to_worker, message_type, subject, content, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (from_worker, to_worker, message_type, subject or None, content or "", _now()),
            )
            message_id = int(cur.lastrowid)
        logger.debug(
            "Message sent",
            extra=log_extra(worker=from_worker, to_worker=to_worker, message_type=message_type, message_id=message_id),
        )
        self._append_event(MessageSent(to_worker=to_worker, message_type=message_type), worker=from_worker)
        return message_id

    def broadcast_message(
        self,
        from_worker: str,
        message_type: str,
        subject: Optional[str],
        content: str,
    ) -> int:
        """
        Deliver one copy to every worker of the active sprint except the sender.

        All copies are written in one transaction: either every recipient
        gets the message or none does. Returns the number delivered.
        """
        _require_text(from_worker, "Sender")
        _require_text(message_type, "Message type")
        created_at = _now()
        with self._transaction(immediate=True) as conn:
            recipients = [
                row["name"]
                for row in conn.execute(
                    f"SELECT name FROM workers WHERE sprint_id = {_ACTIVE_SPRINT_ID} AND name != ? ORDER BY name",
                    (from_worker,),
                ).fetchall()
            ]
            conn.executemany(
                """
                INSERT INTO messages (from_worker, to_worker, message_type, subject, content, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [(from_worker, to, message_type, subject or None, content or "", created_at) for to in recipients],
            )
        logger.debug(
            "Message broadcast",
            extra=log_extra(worker=from_worker, message_type=message_type, count=len(recipients)),
        )
        self._append_event(MessageBroadcast(message_type=message_type, count=len(recipients)), worker=from_worker)
        return len(recipients)

    def get_message(self, message_id: int) -> Optional[Message]:
        row = self._fetchone("SELECT * FROM messages WHERE id = ?", (message_id,))
        return self._row_to_message(row) if row else None

    def get_unread_messages(self, worker: str) -> List[Message]:
        rows = self._fetchall(
            """
            SELECT * FROM messages
            WHERE to_worker = ? AND read_at IS NULL
            ORDER BY created_at ASC, id ASC
            """,
            (worker,),
        )
        return [self._row_to_message(row) for row in rows]

    def list_messages(self, worker: str, limit: int = 50) -> List[Message]:
        """The newest ``limit`` messages addressed to ``worker``, read or not, oldest first."""
        limit = max(1, min(int(limit), MAX_EVENT_LIMIT))
        rows = self._fetchall(
            """
            SELECT * FROM (
                SELECT * FROM messages WHERE to_worker = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
            ) ORDER BY created_at ASC, id ASC
            """,
            (worker, limit),
        )
        return [self._row_to_message(row) for row in rows]

    def mark_message_read(self, message_id: int) -> bool:
        """Mark one message read. Already-read or unknown ids are a no-op (returns False)."""
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE messages SET read_at = ? WHERE id = ? AND read_at IS NULL",
                (_now(), message_id),
            )
            return cur.rowcount > 0

    def mark_all_read(self, worker: str) -> int:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE messages SET read_at = ? WHERE to_worker = ? AND read_at IS NULL",
                (_now(), worker),
            )
            return cur.rowcount

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def get_recent_events(
        self,
        limit: int = 50,
        event_type: Optional[str] = None,
        worker: Optional[str] = None,
    ) -> List[Event]:
        """Newest events first, optionally filtered by exact type and worker."""
        limit = max(1, min(int(limit), MAX_EVENT_LIMIT))
        where: List[str] = []
        params: List[Any] = []
        if event_type:
            where.append("event_type = ?")
            params.append(event_type)
        if worker:
            where.append("worker = ?")
            params.append(worker)
        clause = f"WHERE {' AND '.join(where)}" if where else ""
        rows = self._fetchall(
            f"SELECT * FROM events {clause} ORDER BY id DESC LIMIT ?",
            (*params, limit),
        )
        return [self._row_to_event(row) for row in rows]

    def get_events_since(
        self,
        last_id: int,
        type_prefix: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Event]:
        """
        Events with id greater than ``last_id``, oldest first.

        ``type_prefix`` is matched literally against the start of the event
        type, so "worker_" selects every worker event.
        """
        where = ["id > ?"]
        params: List[Any] = [int(last_id)]
        if type_prefix:
            where.append("substr(event_type, 1, ?) = ?")
            params.extend([len(type_prefix), type_prefix])
        query = f"SELECT * FROM events WHERE {' AND '.join(where)} ORDER BY id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(max(1, int(limit)))
        return [self._row_to_event(row) for row in self._fetchall(query, params)]

    def get_last_event_id(self) -> int:
        row = self._fetchone("SELECT COALESCE(MAX(id), 0) AS last_id FROM events")
        return int(row["last_id"]) if row else 0

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    @staticmethod
    def _cutoff(days: int) -> str:
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise ValidationError(f"Retention days must be a non-negative integer, got {days!r}")
        return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat(timespec="microseconds")

    def _purge(self, table: str, condition: str, days: int, dry_run: bool) -> int:
        cutoff = self._cutoff(days)
        with self._transaction(immediate=not dry_run) as conn:
            count = conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {condition}", (cutoff,)).fetchone()[0]
            if not dry_run and count:
                conn.execute(f"DELETE FROM {table} WHERE {condition}", (cutoff,))
        logger.info(
            "Retention cleanup",
            extra=log_extra(table=table, days=days, dry_run=dry_run, count=count),
        )
        return int(count)

    def cleanup_old_events(self, days: int, dry_run: bool = False) -> int:
        """Delete events older than ``days``; with ``dry_run`` only count them."""
        return self._purge("events", "created_at < ?", days, dry_run)

    def cleanup_old_messages(self, days: int, dry_run: bool = False) -> int:
        """Delete read messages whose read_at is older than ``days``. Unread ones are always kept."""
        return self._purge("messages", "read_at IS NOT NULL AND read_at < ?", days, dry_run)


def open_database(db_path: Union[str, Path], busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> SQLiteDatabase:
    """Open (creating if needed) and migrate the store at ``db_path``."""
    db = SQLiteDatabase(db_path, busy_timeout_ms=busy_timeout_ms)
    db.init_schema()
    return db


def get_database(project: Optional[str] = None, db_path: Optional[Union[str, Path]] = None) -> SQLiteDatabase:
    """Open the store for a project using the process configuration."""
    from devhive.config import get_config, resolve_db_path

    config = get_config()
    path = resolve_db_path(project=project, db_path=Path(db_path) if db_path else None, config=config)
    return open_database(path, busy_timeout_ms=config.busy_timeout_ms)
