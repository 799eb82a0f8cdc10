"""Tests for the pure context actions."""

from __future__ import annotations

import copy

import pytest

from taskflow.fsm import Context, Event, normalize_status
from taskflow.fsm import actions

pytestmark = pytest.mark.fsm


@pytest.mark.parametrize(
    ("raw", "expected"),
    (
        ("inProgress", "In Progress"),
        ("Completed", "Completed"),
        ("Pending", "Pending"),
        ("in progress", "in progress"),
        (None, None),
    ),
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) == expected


def test_actions_do_not_mutate_context(busy_context):
    before = copy.deepcopy(busy_context.to_dict())
    event = Event.of(
        "ANY",
        taskId=1,
        taskTitle="Write report",
        newStatus="inProgress",
        task={"id": 9, "title": "New"},
        profileData={"firstName": "Grace"},
    )

    for action in (
        actions.append_task,
        actions.remove_task,
        actions.update_status_by_title,
        actions.mark_completed,
        actions.merge_profile,
        actions.reset_session,
    ):
        action(busy_context, event)

    assert busy_context.to_dict() == before


def test_append_task_clears_current_task(busy_context):
    patch = actions.append_task(busy_context, Event.of("SUBMIT_TASK", task={"id": 3, "title": "X"}))
    assert patch["tasks"][-1] == {"id": 3, "title": "X"}
    assert len(patch["tasks"]) == len(busy_context.tasks) + 1
    assert patch["current_task"] is None


def test_remove_task_drops_only_matching_ids(busy_context):
    patch = actions.remove_task(busy_context, Event.of("DELETE_TASK", taskId=2))
    assert [task["id"] for task in patch["tasks"]] == [1]

    patch = actions.remove_task(busy_context, Event.of("DELETE_TASK", taskId=42))
    assert patch["tasks"] == busy_context.tasks


def test_update_status_matches_every_duplicate_title():
    context = Context(tasks=[
        {"id": 1, "title": "Foo", "status": "Pending"},
        {"id": 2, "title": "Foo", "status": "Pending"},
        {"id": 3, "title": "Bar", "status": "Pending"},
    ])
    patch = actions.update_status_by_title(
        context, Event.of("UPDATE_TASK_STATUS_SUCCESS", taskTitle="Foo", newStatus="inProgress")
    )

    assert [task["status"] for task in patch["tasks"]] == ["In Progress", "In Progress", "Pending"]
    assert [task.get("edited") for task in patch["tasks"]] == [True, True, None]


def test_mark_completed_by_id(busy_context):
    patch = actions.mark_completed(busy_context, Event.of("MARK_AS_COMPLETED", taskId=1))
    assert patch["tasks"][0]["status"] == "Completed"
    assert patch["tasks"][1] == busy_context.tasks[1]


def test_merge_profile_is_one_level_deep(busy_context):
    patch = actions.merge_profile(
        busy_context, Event.of("SAVE_PROFILE", profileData={"firstName": "Grace", "title": "Eng"})
    )
    assert patch["user"] == {**busy_context.user, "firstName": "Grace", "title": "Eng"}


def test_merge_profile_without_user():
    patch = actions.merge_profile(Context(), Event.of("SAVE_PROFILE", profileData={"firstName": "Grace"}))
    assert patch["user"] == {"firstName": "Grace"}


def test_run_actions_in_declaration_order():
    context = actions.run_actions(
        Context(error="old"),
        Event.of("SIGNUP_SUCCESS", user={"email": "a@b.com"}),
        (actions.set_user, actions.clear_error),
    )
    assert context.user == {"email": "a@b.com"}
    assert context.error is None


def test_context_apply_rejects_unknown_fields():
    with pytest.raises(KeyError, match="bogus"):
        Context().apply({"bogus": 1})


def test_context_wire_round_trip_keys(busy_context):
    wire = busy_context.to_dict()
    assert set(wire) == {"user", "tasks", "users", "currentTask", "error"}
    assert Context.from_dict(wire) == busy_context
    assert Context.from_dict(None) == Context.empty()


def test_event_from_dict_forms():
    flat = Event.from_dict({"type": "SUBMIT_TASK", "task": {"id": 1}})
    nested = Event.from_dict({"type": "SUBMIT_TASK", "payload": {"task": {"id": 1}}})
    assert flat == nested
    assert flat.get("task") == {"id": 1}

    with pytest.raises(ValueError):
        Event.from_dict({"task": {}})
