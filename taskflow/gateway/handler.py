"""Request handling: turns client requests into machine events.

All I/O happens here, before an event is sent. A persistence failure becomes
a *_ERROR event (or just an error response), and every response carries the
authoritative state value and context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from taskflow.fsm.actions import normalize_status
from taskflow.fsm.context import Event
from taskflow.fsm.interpreter import EventLike, Snapshot
from taskflow.fsm.states import NAVIGATION_EVENTS, AppEvent, TaskStatus
from taskflow.gateway.passwords import PasswordHasher
from taskflow.gateway.store import (
    DuplicateUserError,
    StoreError,
    TaskNotFoundError,
    TaskStore,
    public_user,
)
from taskflow.utils.logging import get_logger, new_request_id, set_request_id

logger = get_logger("gateway.handler")

INVALID_CREDENTIALS = "Invalid credentials"
USER_EXISTS = "User already exists"

# Upper bound on the encoded profile picture
MAX_PROFILE_PIC_SIZE = 5 * 1024 * 1024


class Machine(Protocol):
    """Anything with the interpreter surface: Interpreter or ReplicatedMachine."""

    def send(self, event: EventLike, **payload: Any) -> Snapshot: ...

    def snapshot(self) -> Snapshot: ...


@dataclass
class GatewayResponse:
    """Transport-neutral response: an HTTP-like status and a JSON body."""

    status: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status < 400

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "body": self.body}


class EventGateway:
    """
    Owns the authoritative machine for the request-handling layer.

    ``handle(type, data)`` mirrors one POST of ``{type, data}``;
    ``refresh(entity)`` mirrors a state fetch that reloads a collection.
    ``UPDATE_PROFILE`` and ``GET_PROFILE`` answer the profile page.
    """

    def __init__(self, machine: Machine, store: TaskStore, hasher: PasswordHasher) -> None:
        self.machine = machine
        self.store = store
        self.hasher = hasher
        self._handlers = {
            "SIGNUP": self._signup,
            "LOGIN": self._login,
            AppEvent.SUBMIT_TASK.value: self._submit_task,
            AppEvent.MARK_AS_COMPLETED.value: self._mark_completed,
            "UPDATE_TASK_STATUS": self._update_task_status,
            AppEvent.DELETE_TASK.value: self._delete_task,
            "UPDATE_PROFILE": self._update_profile,
            "GET_PROFILE": self._get_profile,
        }

    def handle(
        self,
        event_type: str,
        data: Optional[Mapping[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> GatewayResponse:
        """
        Process one client request.

        Args:
            event_type: Request type (``SIGNUP``, ``LOGIN``, ``SUBMIT_TASK``, navigation, ...)
            data: Request data
            request_id: Correlates log lines; generated if omitted

        Returns:
            GatewayResponse; 400 for unknown request types, 500 ``FSM error``
            when a request fails unexpectedly
        """
        set_request_id(request_id or new_request_id())
        logger.info("event_received", event_type=event_type)

        try:
            handler = self._handlers.get(event_type)
            if handler is not None:
                return handler(dict(data or {}))

            if event_type in NAVIGATION_EVENTS:
                self.machine.send(Event(event_type))
                return self._respond(200)
        except Exception as e:
            logger.exception("request_crashed", event_type=event_type, error=str(e))
            return self._respond(500, error="FSM error", message=str(e))

        logger.warning("unknown_event_type", event_type=event_type)
        return self._respond(400, error="Unknown event type")

    def refresh(self, entity: Optional[str] = None, request_id: Optional[str] = None) -> GatewayResponse:
        """Reload users (``entity="users"``) or tasks into the machine."""
        set_request_id(request_id or new_request_id())

        try:
            if entity == "users":
                users = self.store.list_users()
                self.machine.send(Event.of(AppEvent.LOAD_USERS.value, users=users))
                return self._respond(200, users=users)

            tasks = self.store.get_tasks()
            self.machine.send(Event.of(AppEvent.LOAD_TASKS.value, tasks=tasks))
            return self._respond(200)

        except StoreError as e:
            logger.error("refresh_failed", entity=entity or "tasks", error=str(e))
            return self._respond(500, error="FSM state error")

    # Request handlers ------------------------------------------------------

    def _signup(self, data: dict[str, Any]) -> GatewayResponse:
        try:
            if self.store.get_user_by_email(data.get("email", "")):
                return self._fail(AppEvent.SIGNUP_ERROR, USER_EXISTS, 400)

            record = {**data, "password": self.hasher.hash(data.get("password", ""))}
            user = self.store.create_user(record)
        except DuplicateUserError:
            return self._fail(AppEvent.SIGNUP_ERROR, USER_EXISTS, 400)
        except StoreError as e:
            return self._fail(AppEvent.SIGNUP_ERROR, str(e), 500)

        self.machine.send(Event.of(AppEvent.SIGNUP_SUCCESS.value, user=user))
        logger.info("signup_succeeded", email=user["email"], role=user["role"])
        return self._respond(200, success=True)

    def _login(self, data: dict[str, Any]) -> GatewayResponse:
        try:
            record = self.store.get_user_by_email(data.get("email", ""))
            if record is None or not self.hasher.verify(
                data.get("password", ""), record.get("password") or ""
            ):
                return self._fail(AppEvent.LOGIN_ERROR, INVALID_CREDENTIALS, 401)

            tasks = self.store.get_tasks()
        except StoreError as e:
            return self._fail(AppEvent.LOGIN_ERROR, str(e), 500)

        self.machine.send(Event.of(AppEvent.LOGIN_SUCCESS.value, user=public_user(record)))
        self.machine.send(Event.of(AppEvent.LOAD_TASKS.value, tasks=tasks))
        logger.info("login_succeeded", email=record["email"], tasks=len(tasks))
        return self._respond(200, success=True)

    def _submit_task(self, data: dict[str, Any]) -> GatewayResponse:
        task = dict(data.get("task") or {})
        try:
            task_id = self.store.create_task(task)
        except StoreError as e:
            return self._fail(AppEvent.TASK_ERROR, str(e), 500)

        new_task = {**task, "id": task_id}
        self.machine.send(Event.of(AppEvent.SUBMIT_TASK.value, task=new_task))
        return self._respond(200, success=True, task=dict(new_task))

    def _mark_completed(self, data: dict[str, Any]) -> GatewayResponse:
        task_id = data.get("taskId")
        try:
            if not self.store.update_task(task_id, {"status": TaskStatus.COMPLETED.value}):
                raise TaskNotFoundError(task_id)
        except StoreError as e:
            return self._error(e)

        self.machine.send(Event.of(AppEvent.MARK_AS_COMPLETED.value, taskId=task_id))
        return self._respond(200, success=True)

    def _update_task_status(self, data: dict[str, Any]) -> GatewayResponse:
        title = data.get("taskTitle")
        new_status = data.get("newStatus")
        try:
            matches = self.store.find_tasks_by_title(title)
            if not matches:
                raise TaskNotFoundError(title)

            self.store.update_task(
                matches[0]["id"],
                {"status": normalize_status(new_status), "edited": True},
            )
        except StoreError as e:
            return self._fail(
                AppEvent.UPDATE_TASK_STATUS_ERROR,
                str(e),
                404 if isinstance(e, TaskNotFoundError) else 500,
            )

        self.machine.send(
            Event.of(
                AppEvent.UPDATE_TASK_STATUS_SUCCESS.value,
                taskTitle=title,
                newStatus=new_status,
            )
        )
        return self._respond(200, success=True, message="Task status updated successfully")

    def _delete_task(self, data: dict[str, Any]) -> GatewayResponse:
        task_id = data.get("taskId")
        try:
            if not self.store.delete_task(task_id):
                raise TaskNotFoundError(task_id)
        except StoreError as e:
            return self._error(e)

        self.machine.send(Event.of(AppEvent.DELETE_TASK.value, taskId=task_id))
        return self._respond(200, success=True)

    def _update_profile(self, data: dict[str, Any]) -> GatewayResponse:
        email = data.get("email")
        if not email:
            return self._respond(400, error="Missing email")
        password = data.get("password")
        if not password:
            return self._respond(400, error="Password is required to confirm changes")

        profile_pic = data.get("profilePic")
        if profile_pic:
            if len(profile_pic) > MAX_PROFILE_PIC_SIZE:
                return self._respond(
                    400, error="Profile picture is too large. Maximum size is 5MB."
                )
            if profile_pic.startswith("data:image/") and not profile_pic.partition(",")[2]:
                return self._respond(400, error="Invalid image format")

        try:
            record = self.store.get_user_by_email(email)
            if record is None:
                return self._respond(404, error="User not found")
            if not self.hasher.verify(password, record.get("password") or ""):
                return self._respond(401, error="Invalid password")

            # A username, when sent, replaces the first name
            fields = {
                "firstName": data.get("username") or data.get("firstName"),
                "lastName": data.get("lastName"),
                "profilePic": profile_pic,
            }
            user = self.store.update_user(
                email, {key: value for key, value in fields.items() if value is not None}
            )
        except StoreError as e:
            logger.error("profile_update_failed", email=email, error=str(e))
            return self._respond(500, error="Profile update failed", message=str(e))

        self.machine.send(
            Event.of(
                AppEvent.SAVE_PROFILE.value,
                profileData={
                    "firstName": user.get("firstName"),
                    "lastName": user.get("lastName"),
                    "profilePic": user.get("profilePic"),
                },
            )
        )
        logger.info("profile_updated", email=email)
        return self._respond(200, user=user, message="Profile updated successfully!")

    def _get_profile(self, data: dict[str, Any]) -> GatewayResponse:
        email = data.get("email")
        if not email:
            return self._respond(400, error="Missing email")
        try:
            record = self.store.get_user_by_email(email)
        except StoreError as e:
            logger.error("profile_fetch_failed", email=email, error=str(e))
            return self._respond(500, error="Profile fetch failed")
        return self._respond(200, user=public_user(record) if record else None)

    # Responses -------------------------------------------------------------

    def _fail(self, event: AppEvent, message: str, status: int) -> GatewayResponse:
        """Send a domain-error event and answer with the same message."""
        self.machine.send(Event.of(event.value, error=message))
        logger.warning("request_failed", error_event=event.value, error=message, status=status)
        return self._respond(status, error=message)

    def _error(self, error: StoreError) -> GatewayResponse:
        """Answer without an event; the machine has no error event for this request."""
        status = 404 if isinstance(error, TaskNotFoundError) else 500
        logger.warning("request_failed", error=str(error), status=status)
        return self._respond(status, error=str(error))

    def _respond(self, status: int, **extra: Any) -> GatewayResponse:
        snapshot = self.machine.snapshot()
        body = {"state": snapshot.value, "context": snapshot.context.to_dict(), **extra}
        return GatewayResponse(status=status, body=body)
