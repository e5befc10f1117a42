import pytest

from devhive.errors import ConflictError, NotFoundError, ValidationError


# Sprints

def test_create_sprint_returns_active_sprint(db) -> None:
    sprint = db.create_sprint("S1", config_file="devhive.yaml", project_path="/src/app")
    assert sprint.id == "S1"
    assert sprint.status == "active"
    assert sprint.completed_at is None

    active = db.get_active_sprint()
    assert active is not None
    assert active.id == "S1"
    assert active.config_file == "devhive.yaml"
    assert active.project_path == "/src/app"
    assert active.started_at == sprint.started_at


def test_second_active_sprint_is_rejected(db) -> None:
    db.create_sprint("S1")
    with pytest.raises(ConflictError) as excinfo:
        db.create_sprint("S2")
    assert "S1" in str(excinfo.value)
    assert db.get_active_sprint().id == "S1"
    assert db.get_sprint("S2") is None


def test_sprint_id_cannot_be_reused(db) -> None:
    db.create_sprint("S1")
    db.complete_sprint()
    with pytest.raises(ConflictError):
        db.create_sprint("S1")


def test_no_active_sprint_is_absent_not_error(db) -> None:
    assert db.get_active_sprint() is None
    assert db.list_workers() == []


def test_complete_sprint_completes_all_its_workers(db) -> None:
    db.create_sprint("S1")
    db.register_worker("fe", "S1", "feat/ui")
    db.register_worker("be", "S1", "feat/api")
    db.update_worker_status("fe", "working")
    db.update_worker_status("be", "blocked")

    completed = db.complete_sprint()

    assert completed.id == "S1"
    assert completed.status == "completed"
    assert completed.completed_at is not None
    stored = db.get_sprint("S1")
    assert stored.status == "completed"
    assert stored.completed_at == completed.completed_at
    assert db.get_worker("fe").status == "completed"
    assert db.get_worker("be").status == "completed"
    assert db.get_active_sprint() is None


def test_complete_sprint_leaves_other_sprints_workers_alone(db) -> None:
    db.create_sprint("S1")
    db.register_worker("old", "S1", "feat/old")
    db.update_worker_status("old", "blocked")
    db.complete_sprint()
    db.update_worker_status("old", "blocked")

    db.create_sprint("S2")
    db.register_worker("new", "S2", "feat/new")
    db.complete_sprint()

    assert db.get_worker("old").status == "blocked"
    assert db.get_worker("new").status == "completed"


def test_complete_without_active_sprint_fails(db) -> None:
    with pytest.raises(NotFoundError):
        db.complete_sprint()


def test_new_sprint_after_completion(db) -> None:
    db.create_sprint("S1")
    db.complete_sprint()
    db.create_sprint("S2")
    assert db.get_active_sprint().id == "S2"
    assert [s.id for s in db.list_sprints()] == ["S2", "S1"]


def test_empty_sprint_id_is_rejected(db) -> None:
    with pytest.raises(ValidationError):
        db.create_sprint("  ")


# Roles

def test_role_crud(db) -> None:
    role = db.create_role("backend", description="APIs", role_file="roles/backend.md", args="--model fast")
    assert role.name == "backend"
    assert role.created_at

    fetched = db.get_role("backend")
    assert fetched.description == "APIs"
    assert fetched.role_file == "roles/backend.md"
    assert fetched.args == "--model fast"

    updated = db.update_role("backend", description="APIs and jobs")
    assert updated.description == "APIs and jobs"
    assert updated.role_file == "roles/backend.md"
    assert updated.args == "--model fast"

    cleared = db.update_role("backend", args=None)
    assert cleared.args is None

    db.delete_role("backend")
    assert db.get_role("backend") is None


def test_duplicate_role_is_conflict(db) -> None:
    db.create_role("docs")
    with pytest.raises(ConflictError):
        db.create_role("docs")


def test_list_roles_is_sorted_by_name(db) -> None:
    for name in ("test", "backend", "docs"):
        db.create_role(name)
    assert [r.name for r in db.list_roles()] == ["backend", "docs", "test"]


def test_missing_role_read_is_absent(db) -> None:
    assert db.get_role("ghost") is None


def test_update_and_delete_missing_role_fail(db) -> None:
    with pytest.raises(NotFoundError):
        db.update_role("ghost", description="x")
    with pytest.raises(NotFoundError):
        db.update_role("ghost")
    with pytest.raises(NotFoundError):
        db.delete_role("ghost")


def test_role_operations_do_not_emit_events(db) -> None:
    db.create_role("backend")
    db.update_role("backend", description="x")
    db.delete_role("backend")
    assert db.get_last_event_id() == 0


def test_stores_are_isolated(tmp_path) -> None:
    from devhive.db.database import open_database

    one = open_database(tmp_path / "one" / "state.db")
    two = open_database(tmp_path / "two" / "state.db")
    one.create_sprint("S1")
    assert two.get_active_sprint() is None
    two.create_sprint("S1")
    assert one.get_active_sprint().id == two.get_active_sprint().id == "S1"
