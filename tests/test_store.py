"""Tests for persistence collaborators and password hashing."""

from __future__ import annotations

import json

import pytest

from taskflow.gateway import (
    DuplicateUserError,
    InMemoryTaskStore,
    InvalidRecordError,
    JsonFileTaskStore,
    Argon2PasswordHasher,
    StoreError,
)

pytestmark = pytest.mark.gateway

LEAD = {
    "email": "lead@example.com",
    "password": "opaque-hash",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "role": "teamLead",
}


def test_create_user_hides_password(store):
    public = store.create_user(LEAD)
    assert public == {
        "email": "lead@example.com",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "role": "teamLead",
    }
    assert store.get_user_by_email("lead@example.com")["password"] == "opaque-hash"
    assert store.list_users() == [public]


def test_duplicate_user_rejected(store):
    store.create_user(LEAD)
    with pytest.raises(DuplicateUserError):
        store.create_user(LEAD)


def test_invalid_role_rejected(store):
    with pytest.raises(InvalidRecordError, match="role"):
        store.create_user({**LEAD, "role": "admin"})


def test_create_task_defaults(store):
    task_id = store.create_task({"title": "Write report", "assignedTo": "m@example.com"})
    task = store.get_tasks()[0]

    assert task_id == 1
    assert task["id"] == 1
    assert task["status"] == "Pending"
    assert task["priority"] == "Medium"
    assert task["edited"] is False
    assert task["createdAt"]


def test_task_ids_are_sequential(store):
    assert [store.create_task({"title": t}) for t in ("a", "b", "c")] == [1, 2, 3]


def test_create_task_validates(store):
    with pytest.raises(InvalidRecordError):
        store.create_task({})
    with pytest.raises(InvalidRecordError, match="priority"):
        store.create_task({"title": "x", "priority": "Urgent"})


def test_update_and_delete(store):
    task_id = store.create_task({"title": "x"})

    assert store.update_task(task_id, {"status": "In Progress", "edited": True})
    assert store.get_tasks()[0]["status"] == "In Progress"
    assert not store.update_task(99, {"status": "Completed"})

    with pytest.raises(InvalidRecordError):
        store.update_task(task_id, {"owner": "someone"})

    assert store.delete_task(task_id)
    assert not store.delete_task(task_id)
    assert store.get_tasks() == []


def test_queries(store):
    store.create_task({"title": "Foo", "assignedTo": "a@example.com"})
    store.create_task({"title": "Foo", "assignedTo": "b@example.com"})
    store.create_task({"title": "Bar", "assignedTo": "a@example.com"})

    assert [t["id"] for t in store.find_tasks_by_title("Foo")] == [1, 2]
    assert [t["id"] for t in store.get_tasks_by_user("a@example.com")] == [1, 3]


def test_returned_records_are_copies(store):
    store.create_task({"title": "x"})
    store.get_tasks()[0]["title"] = "changed"
    assert store.get_tasks()[0]["title"] == "x"


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "data" / "store.json"
    first = JsonFileTaskStore(path)
    first.create_user(LEAD)
    first.create_task({"title": "Persisted"})

    second = JsonFileTaskStore(path)
    assert second.get_user_by_email("lead@example.com")["firstName"] == "Ada"
    assert second.get_tasks()[0]["title"] == "Persisted"
    assert second.create_task({"title": "Next"}) == 2

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["next_id"] == 3
    assert not list(path.parent.glob(".*.tmp"))


def test_json_store_rejects_corrupt_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError, match="Corrupt"):
        JsonFileTaskStore(path)


def test_json_store_write_failure_is_store_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = JsonFileTaskStore(blocker / "store.json")

    with pytest.raises(StoreError, match="Failed to write"):
        store.create_task({"title": "Lost"})


def test_json_store_failed_write_rolls_back(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileTaskStore(path)
    store.create_user(LEAD)
    task_id = store.create_task({"title": "Kept"})

    # A directory at the target path makes every later replace fail
    path.unlink()
    path.mkdir()

    with pytest.raises(StoreError):
        store.create_task({"title": "Lost"})
    with pytest.raises(StoreError):
        store.create_user({**LEAD, "email": "member@example.com", "role": "teamMember"})
    with pytest.raises(StoreError):
        store.update_task(task_id, {"status": "Completed"})
    with pytest.raises(StoreError):
        store.update_user("lead@example.com", {"firstName": "Grace"})
    with pytest.raises(StoreError):
        store.delete_task(task_id)

    assert [t["title"] for t in store.get_tasks()] == ["Kept"]
    assert store.get_tasks()[0]["status"] == "Pending"
    assert store.get_user_by_email("member@example.com") is None
    assert store.get_user_by_email("lead@example.com")["firstName"] == "Ada"

    path.rmdir()
    assert store.create_task({"title": "Next"}) == task_id + 1


def test_failed_commit_keeps_memory_unchanged(monkeypatch):
    store = InMemoryTaskStore()
    store.create_task({"title": "Kept"})

    def refuse():
        raise StoreError("disk full")

    monkeypatch.setattr(store, "_commit", refuse)

    with pytest.raises(StoreError, match="disk full"):
        store.create_user(LEAD)
    with pytest.raises(StoreError, match="disk full"):
        store.create_task({"title": "Lost"})

    monkeypatch.undo()
    assert store.get_user_by_email("lead@example.com") is None
    assert store.create_task({"title": "Next"}) == 2


def test_update_user_patches_profile(store):
    store.create_user(LEAD)

    public = store.update_user(
        "lead@example.com", {"firstName": "Grace", "profilePic": "data:image/png;base64,AA"}
    )

    assert public == {
        "email": "lead@example.com",
        "firstName": "Grace",
        "lastName": "Lovelace",
        "role": "teamLead",
        "profilePic": "data:image/png;base64,AA",
    }
    assert store.get_user_by_email("lead@example.com")["password"] == "opaque-hash"
    assert store.list_users() == [public]


def test_update_user_unknown_email_or_field(store):
    assert store.update_user("ghost@example.com", {"firstName": "Boo"}) is None

    store.create_user(LEAD)
    with pytest.raises(InvalidRecordError, match="profile fields"):
        store.update_user("lead@example.com", {"role": "teamMember"})
    assert store.get_user_by_email("lead@example.com")["role"] == "teamLead"


def test_argon2_hasher_round_trip(hasher):
    stored = hasher.hash("s3cret")

    assert stored.startswith("$argon2id$")
    assert hasher.verify("s3cret", stored)
    assert not hasher.verify("wrong", stored)
    assert not hasher.verify("", stored)
    assert hasher.hash("s3cret") != stored


@pytest.mark.parametrize("stored", ["", "plain", "$argon2id$garbage", "scrypt:00:00"])
def test_argon2_hasher_rejects_malformed(stored):
    hasher = Argon2PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)
    assert not hasher.verify("s3cret", stored)



def test_store_is_abstract():
    from taskflow.gateway import TaskStore

    with pytest.raises(TypeError):
        TaskStore()
    assert isinstance(InMemoryTaskStore(), TaskStore)
