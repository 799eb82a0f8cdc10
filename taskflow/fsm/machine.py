"""The taskManagement machine definition shared by every interpreter instance."""

from __future__ import annotations

from typing import Mapping

from taskflow.fsm import actions as act
from taskflow.fsm.context import Context, Event
from taskflow.fsm.states import (
    Action,
    AppEvent,
    AppState,
    Guard,
    MachineDefinition,
    NestedRegion,
    StateNode,
    TransitionSpec,
)

MACHINE_ID = "taskManagement"


def has_record(key: str) -> Guard:
    """Guard passing only when the payload carries a record under ``key``."""

    def guard(context: Context, event: Event) -> bool:
        return isinstance(event.get(key), Mapping)

    guard.__name__ = f"has_record_{key}"
    return guard


def has_records(key: str) -> Guard:
    """Guard passing only when ``key`` holds a list of records."""

    def guard(context: Context, event: Event) -> bool:
        value = event.get(key)
        return isinstance(value, (list, tuple)) and all(
            isinstance(item, Mapping) for item in value
        )

    guard.__name__ = f"has_records_{key}"
    return guard


def go(target: AppState) -> tuple[TransitionSpec, ...]:
    return (TransitionSpec(target=target.value),)


def do(
    *actions: Action,
    target: AppState | None = None,
    guard: Guard | None = None,
) -> tuple[TransitionSpec, ...]:
    return (
        TransitionSpec(
            target=target.value if target is not None else None,
            actions=tuple(actions),
            guard=guard,
        ),
    )


def _navigation(*targets: AppState) -> dict[str, tuple[TransitionSpec, ...]]:
    events = {
        AppState.DASHBOARD: AppEvent.GO_TO_DASHBOARD,
        AppState.ASSIGN_TASK: AppEvent.GO_TO_ASSIGN_TASK,
        AppState.PENDING_TASKS: AppEvent.GO_TO_PENDING_TASKS,
        AppState.COMPLETED_TASKS: AppEvent.GO_TO_COMPLETED_TASKS,
        AppState.PROFILE_SETTINGS: AppEvent.GO_TO_PROFILE_SETTINGS,
    }
    return {events[target].value: go(target) for target in targets}


def _task_updates() -> dict[str, tuple[TransitionSpec, ...]]:
    # Shared by the pending and completed lists
    return {
        AppEvent.DELETE_TASK.value: do(act.remove_task),
        AppEvent.UPDATE_TASK_STATUS_SUCCESS.value: do(act.update_status_by_title),
        AppEvent.UPDATE_TASK_STATUS_ERROR.value: do(act.set_error),
    }


def build_task_machine() -> MachineDefinition:
    """
    Build the taskManagement definition.

    Both the authoritative and the mirror interpreter are constructed from
    the result of this function, so they share one transition table.
    """
    login_success = do(act.set_user, act.clear_error, target=AppState.DASHBOARD)

    states = {
        AppState.SIGNUP.value: StateNode(
            name=AppState.SIGNUP.value,
            on={
                AppEvent.SIGNUP_SUCCESS.value: do(act.set_user, act.clear_error, target=AppState.LOGIN),
                AppEvent.SIGNUP_ERROR.value: do(act.set_error),
                AppEvent.LOGIN_SUCCESS.value: login_success,
                AppEvent.LOGIN_ERROR.value: do(act.set_error),
                AppEvent.GO_TO_LOGIN.value: go(AppState.LOGIN),
            },
        ),
        AppState.LOGIN.value: StateNode(
            name=AppState.LOGIN.value,
            on={
                AppEvent.LOGIN_SUCCESS.value: login_success,
                AppEvent.LOGIN_ERROR.value: do(act.set_error),
                AppEvent.GO_TO_SIGNUP.value: go(AppState.SIGNUP),
            },
        ),
        AppState.DASHBOARD.value: StateNode(
            name=AppState.DASHBOARD.value,
            on={
                **_navigation(
                    AppState.ASSIGN_TASK,
                    AppState.PENDING_TASKS,
                    AppState.COMPLETED_TASKS,
                    AppState.PROFILE_SETTINGS,
                ),
                AppEvent.LOAD_TASKS.value: do(act.replace_tasks, guard=has_records("tasks")),
                AppEvent.LOAD_USERS.value: do(act.replace_users, guard=has_records("users")),
                AppEvent.LOGOUT.value: do(act.reset_session, target=AppState.LOGIN),
            },
            nested=NestedRegion(initial="idle", states=("idle", "loading")),
        ),
        AppState.ASSIGN_TASK.value: StateNode(
            name=AppState.ASSIGN_TASK.value,
            on={
                AppEvent.SUBMIT_TASK.value: do(act.append_task, guard=has_record("task")),
                AppEvent.TASK_ERROR.value: do(act.set_error),
                **_navigation(
                    AppState.DASHBOARD,
                    AppState.PENDING_TASKS,
                    AppState.COMPLETED_TASKS,
                    AppState.PROFILE_SETTINGS,
                ),
            },
        ),
        AppState.PENDING_TASKS.value: StateNode(
            name=AppState.PENDING_TASKS.value,
            on={
                AppEvent.EDIT_TASK.value: do(act.set_current_task, guard=has_record("task")),
                **_task_updates(),
                AppEvent.MARK_AS_COMPLETED.value: do(act.mark_completed),
                **_navigation(
                    AppState.DASHBOARD,
                    AppState.ASSIGN_TASK,
                    AppState.COMPLETED_TASKS,
                    AppState.PROFILE_SETTINGS,
                ),
            },
        ),
        AppState.COMPLETED_TASKS.value: StateNode(
            name=AppState.COMPLETED_TASKS.value,
            on={
                **_task_updates(),
                **_navigation(
                    AppState.DASHBOARD,
                    AppState.ASSIGN_TASK,
                    AppState.PENDING_TASKS,
                    AppState.PROFILE_SETTINGS,
                ),
            },
        ),
        AppState.PROFILE_SETTINGS.value: StateNode(
            name=AppState.PROFILE_SETTINGS.value,
            on={
                AppEvent.SAVE_PROFILE.value: do(act.merge_profile, guard=has_record("profileData")),
                **_navigation(
                    AppState.DASHBOARD,
                    AppState.ASSIGN_TASK,
                    AppState.PENDING_TASKS,
                    AppState.COMPLETED_TASKS,
                ),
            },
        ),
    }

    return MachineDefinition(
        id=MACHINE_ID,
        initial=AppState.SIGNUP.value,
        states=states,
    )
