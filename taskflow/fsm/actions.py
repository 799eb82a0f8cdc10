"""Context-mutation actions bound to (state, event) pairs.

Each action is a pure function ``(context, event) -> patch``. Actions never do
I/O: persistence happens before the event is sent, and the payload already
carries the outcome (for example the created task with its stored id).
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from taskflow.fsm.context import Context, Event
from taskflow.fsm.states import Action, TaskStatus

# Status literal sent by the status dropdown in the task lists
IN_PROGRESS_ALIAS = "inProgress"


def normalize_status(value: Any) -> Any:
    """Map the client alias ``inProgress`` to ``In Progress``; pass anything else through."""
    if value == IN_PROGRESS_ALIAS:
        return TaskStatus.IN_PROGRESS.value
    return value


def set_user(context: Context, event: Event) -> dict[str, Any]:
    return {"user": event.get("user")}


def clear_error(context: Context, event: Event) -> dict[str, Any]:
    return {"error": None}


def set_error(context: Context, event: Event) -> dict[str, Any]:
    return {"error": event.get("error")}


def replace_tasks(context: Context, event: Event) -> dict[str, Any]:
    return {"tasks": list(event.get("tasks") or [])}


def replace_users(context: Context, event: Event) -> dict[str, Any]:
    return {"users": list(event.get("users") or [])}


def reset_session(context: Context, event: Event) -> dict[str, Any]:
    """Forget everything tied to the logged-in user."""
    return {
        "user": None,
        "tasks": [],
        "users": [],
        "current_task": None,
        "error": None,
    }


def append_task(context: Context, event: Event) -> dict[str, Any]:
    return {
        "tasks": [*context.tasks, event.get("task")],
        "current_task": None,
    }


def set_current_task(context: Context, event: Event) -> dict[str, Any]:
    return {"current_task": event.get("task")}


def remove_task(context: Context, event: Event) -> dict[str, Any]:
    task_id = event.get("taskId")
    return {"tasks": [task for task in context.tasks if task.get("id") != task_id]}


def update_status_by_title(context: Context, event: Event) -> dict[str, Any]:
    """
    Set status and the edited flag on every task whose title matches.

    Matching is by title, so tasks sharing a title are all updated.
    """
    title = event.get("taskTitle")
    status = normalize_status(event.get("newStatus"))
    return {
        "tasks": [
            {**task, "status": status, "edited": True}
            if task.get("title") == title
            else task
            for task in context.tasks
        ]
    }


def mark_completed(context: Context, event: Event) -> dict[str, Any]:
    task_id = event.get("taskId")
    return {
        "tasks": [
            {**task, "status": TaskStatus.COMPLETED.value}
            if task.get("id") == task_id
            else task
            for task in context.tasks
        ]
    }


def merge_profile(context: Context, event: Event) -> dict[str, Any]:
    """Shallow-merge ``profileData`` into the current user."""
    profile = event.get("profileData") or {}
    return {"user": {**(context.user or {}), **profile}}


def run_actions(context: Context, event: Event, actions: Iterable[Action]) -> Context:
    """Apply actions in declaration order; each sees the previous one's result."""
    for action in actions:
        patch: Mapping[str, Any] = action(context, event)
        context = context.apply(patch)
    return context
