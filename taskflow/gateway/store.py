"""Persistence collaborator for users and tasks.

The machine never calls a store. The request gateway does, and only passes
the outcome (a created task with its id, a list of tasks) inside events.
"""

from __future__ import annotations

import copy
import json
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from taskflow.fsm.states import Priority, Role, TaskStatus
from taskflow.utils.atomic import AtomicWriteError, atomic_write_json
from taskflow.utils.logging import get_logger

logger = get_logger("gateway.store")

# Fields of a user record that may leave the store
PUBLIC_USER_FIELDS = ("email", "firstName", "lastName", "role")

# Fields a user may change through a profile update
PROFILE_FIELDS = ("firstName", "lastName", "profilePic")

TASK_FIELDS = (
    "title",
    "description",
    "priority",
    "status",
    "assignedTo",
    "dueDate",
    "createdAt",
    "edited",
)


class StoreError(Exception):
    """Persistence operation failed."""

    pass


class DuplicateUserError(StoreError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"User already exists: {email}")


class TaskNotFoundError(StoreError):
    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__("Task not found")


class InvalidRecordError(StoreError):
    pass


def public_user(record: dict[str, Any]) -> dict[str, Any]:
    """User record without credentials; ``profilePic`` only when one is set."""
    public = {key: record.get(key) for key in PUBLIC_USER_FIELDS}
    if record.get("profilePic"):
        public["profilePic"] = record["profilePic"]
    return public


def _check_enum(enum_cls: type, field: str, value: Any) -> None:
    allowed = [member.value for member in enum_cls]
    if value not in allowed:
        raise InvalidRecordError(f"Invalid {field} {value!r}; expected one of {allowed}")


class TaskStore(ABC):
    """Request/response persistence operations over plain records."""

    @abstractmethod
    def create_user(self, record: dict[str, Any]) -> dict[str, Any]:
        """Store a user (password already hashed); returns the public record."""

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[dict[str, Any]]:
        """Full user record including the password hash, or None."""

    @abstractmethod
    def list_users(self) -> list[dict[str, Any]]:
        """Public records of every user."""

    @abstractmethod
    def update_user(self, email: str, fields: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Patch profile fields; returns the public record, or None if no user has this email."""

    @abstractmethod
    def create_task(self, task: dict[str, Any]) -> int:
        """Store a task; returns its id."""

    @abstractmethod
    def update_task(self, task_id: Any, fields: dict[str, Any]) -> bool:
        """Patch a task; False if no task has this id."""

    @abstractmethod
    def delete_task(self, task_id: Any) -> bool:
        """Delete a task; False if no task has this id."""

    @abstractmethod
    def get_tasks(self) -> list[dict[str, Any]]:
        """Every task, oldest first."""

    @abstractmethod
    def get_tasks_by_user(self, email: str) -> list[dict[str, Any]]:
        """Tasks assigned to ``email``."""

    @abstractmethod
    def find_tasks_by_title(self, title: str) -> list[dict[str, Any]]:
        """Tasks whose title equals ``title`` exactly."""


class InMemoryTaskStore(TaskStore):
    """Dict-backed store with sequential integer task ids."""

    def __init__(self) -> None:
        self._users: dict[str, dict[str, Any]] = {}
        self._tasks: dict[int, dict[str, Any]] = {}
        self._next_id = 1

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Apply a mutation and commit it; a failed commit undoes the mutation."""
        users = copy.deepcopy(self._users)
        tasks = copy.deepcopy(self._tasks)
        next_id = self._next_id
        try:
            yield
            self._commit()
        except StoreError:
            self._users, self._tasks, self._next_id = users, tasks, next_id
            raise

    def create_user(self, record: dict[str, Any]) -> dict[str, Any]:
        email = record.get("email")
        if not email:
            raise InvalidRecordError("User requires an email")
        if email in self._users:
            raise DuplicateUserError(email)
        _check_enum(Role, "role", record.get("role"))

        stored = {
            "email": email,
            "password": record.get("password"),
            "firstName": record.get("firstName"),
            "lastName": record.get("lastName"),
            "role": record.get("role"),
            "profilePic": record.get("profilePic"),
        }
        with self._transaction():
            self._users[email] = stored
        logger.debug("user_created", email=email, role=stored["role"])
        return public_user(stored)

    def get_user_by_email(self, email: str) -> Optional[dict[str, Any]]:
        record = self._users.get(email)
        return dict(record) if record else None

    def list_users(self) -> list[dict[str, Any]]:
        return [public_user(record) for record in self._users.values()]

    def update_user(self, email: str, fields: dict[str, Any]) -> Optional[dict[str, Any]]:
        record = self._users.get(email)
        if record is None:
            return None

        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise InvalidRecordError(f"Unknown profile fields: {sorted(unknown)}")

        with self._transaction():
            self._users[email] = {**record, **fields}
        logger.debug("user_updated", email=email, fields=sorted(fields))
        return public_user(self._users[email])

    def create_task(self, task: dict[str, Any]) -> int:
        if not task.get("title"):
            raise InvalidRecordError("Task requires a title")

        stored = {
            "title": task["title"],
            "description": task.get("description", ""),
            "priority": task.get("priority", Priority.MEDIUM.value),
            "status": task.get("status", TaskStatus.PENDING.value),
            "assignedTo": task.get("assignedTo"),
            "dueDate": task.get("dueDate"),
            "createdAt": task.get("createdAt") or datetime.now(timezone.utc).isoformat(),
            "edited": bool(task.get("edited", False)),
        }
        _check_enum(Priority, "priority", stored["priority"])
        _check_enum(TaskStatus, "status", stored["status"])

        with self._transaction():
            task_id = self._next_id
            self._next_id += 1
            self._tasks[task_id] = {"id": task_id, **stored}
        logger.debug("task_created", task_id=task_id, assigned_to=stored["assignedTo"])
        return task_id

    def update_task(self, task_id: Any, fields: dict[str, Any]) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False

        unknown = set(fields) - set(TASK_FIELDS)
        if unknown:
            raise InvalidRecordError(f"Unknown task fields: {sorted(unknown)}")
        if "status" in fields:
            _check_enum(TaskStatus, "status", fields["status"])
        if "priority" in fields:
            _check_enum(Priority, "priority", fields["priority"])

        with self._transaction():
            self._tasks[task_id] = {**task, **fields}
        return True

    def delete_task(self, task_id: Any) -> bool:
        if task_id not in self._tasks:
            return False
        with self._transaction():
            del self._tasks[task_id]
        return True

    def get_tasks(self) -> list[dict[str, Any]]:
        return [dict(task) for task in self._tasks.values()]

    def get_tasks_by_user(self, email: str) -> list[dict[str, Any]]:
        return [dict(task) for task in self._tasks.values() if task.get("assignedTo") == email]

    def find_tasks_by_title(self, title: str) -> list[dict[str, Any]]:
        return [dict(task) for task in self._tasks.values() if task.get("title") == title]

    def _commit(self) -> None:
        """Hook called after every mutation; a StoreError rolls the mutation back."""


class JsonFileTaskStore(InMemoryTaskStore):
    """In-memory store persisted to one JSON file after every mutation."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.debug("no_existing_store", path=str(self.path))
            return

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt store file {self.path}: {e}") from e

        self._users = {user["email"]: user for user in data.get("users", [])}
        self._tasks = {task["id"]: task for task in data.get("tasks", [])}
        self._next_id = data.get("next_id", max(self._tasks, default=0) + 1)
        logger.info(
            "store_loaded",
            path=str(self.path),
            users=len(self._users),
            tasks=len(self._tasks),
        )

    def _commit(self) -> None:
        try:
            atomic_write_json(
                self.path,
                {
                    "saved_at": datetime.now(timezone.utc).isoformat(),
                    "next_id": self._next_id,
                    "users": list(self._users.values()),
                    "tasks": list(self._tasks.values()),
                },
            )
        except AtomicWriteError as e:
            raise StoreError(str(e)) from e
