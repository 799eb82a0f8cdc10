"""FSM definition types for the task-management machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from taskflow.fsm.context import Context, Event

# (context, event) -> partial context patch
Action = Callable[[Context, Event], Mapping[str, Any]]
Guard = Callable[[Context, Event], bool]

INIT_EVENT = "taskflow.init"
# Stands in for input that could not be read as an event
MALFORMED_EVENT = "taskflow.malformed"


class AppState(str, Enum):
    """Top-level states of the user journey."""

    SIGNUP = "signup"
    LOGIN = "login"
    DASHBOARD = "dashboard"
    ASSIGN_TASK = "assignTask"
    PENDING_TASKS = "pendingTasks"
    COMPLETED_TASKS = "completedTasks"
    PROFILE_SETTINGS = "profileSettings"


class AppEvent(str, Enum):
    """Events understood by the machine or accepted from clients."""

    # Authentication outcomes
    SIGNUP_SUCCESS = "SIGNUP_SUCCESS"
    SIGNUP_ERROR = "SIGNUP_ERROR"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_ERROR = "LOGIN_ERROR"

    # Collection loads
    LOAD_TASKS = "LOAD_TASKS"
    LOAD_USERS = "LOAD_USERS"

    # Task outcomes
    SUBMIT_TASK = "SUBMIT_TASK"
    TASK_ERROR = "TASK_ERROR"
    EDIT_TASK = "EDIT_TASK"
    DELETE_TASK = "DELETE_TASK"
    UPDATE_TASK_STATUS_SUCCESS = "UPDATE_TASK_STATUS_SUCCESS"
    UPDATE_TASK_STATUS_ERROR = "UPDATE_TASK_STATUS_ERROR"
    MARK_AS_COMPLETED = "MARK_AS_COMPLETED"

    # Profile
    SAVE_PROFILE = "SAVE_PROFILE"

    # Navigation handled by the machine
    GO_TO_LOGIN = "GO_TO_LOGIN"
    GO_TO_SIGNUP = "GO_TO_SIGNUP"
    GO_TO_DASHBOARD = "GO_TO_DASHBOARD"
    GO_TO_ASSIGN_TASK = "GO_TO_ASSIGN_TASK"
    GO_TO_PENDING_TASKS = "GO_TO_PENDING_TASKS"
    GO_TO_COMPLETED_TASKS = "GO_TO_COMPLETED_TASKS"
    GO_TO_PROFILE_SETTINGS = "GO_TO_PROFILE_SETTINGS"
    LOGOUT = "LOGOUT"

    # Bare navigation sent by clients; only some states react to them
    ASSIGN_TASK = "ASSIGN_TASK"
    VIEW_ALL_TASKS = "VIEW_ALL_TASKS"
    VIEW_PENDING = "VIEW_PENDING"
    VIEW_COMPLETED = "VIEW_COMPLETED"
    PROFILE = "PROFILE"
    GO_BACK = "GO_BACK"
    CANCEL = "CANCEL"


NAVIGATION_EVENTS: frozenset[str] = frozenset({
    AppEvent.ASSIGN_TASK.value,
    AppEvent.VIEW_ALL_TASKS.value,
    AppEvent.VIEW_PENDING.value,
    AppEvent.VIEW_COMPLETED.value,
    AppEvent.PROFILE.value,
    AppEvent.LOGOUT.value,
    AppEvent.GO_BACK.value,
    AppEvent.CANCEL.value,
    AppEvent.GO_TO_LOGIN.value,
    AppEvent.GO_TO_SIGNUP.value,
    AppEvent.GO_TO_DASHBOARD.value,
    AppEvent.GO_TO_ASSIGN_TASK.value,
    AppEvent.GO_TO_PENDING_TASKS.value,
    AppEvent.GO_TO_COMPLETED_TASKS.value,
    AppEvent.GO_TO_PROFILE_SETTINGS.value,
})


class Role(str, Enum):
    TEAM_LEAD = "teamLead"
    TEAM_MEMBER = "teamMember"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class DefinitionError(Exception):
    """Machine definition violates a structural invariant."""

    def __init__(self, machine_id: str, message: str) -> None:
        self.machine_id = machine_id
        super().__init__(f"Invalid machine '{machine_id}': {message}")


@dataclass(frozen=True)
class TransitionSpec:
    """
    What happens when a state handles an event.

    A spec without a target is an internal transition: actions run, the state
    stays. A spec with a guard applies only when the guard returns True.
    """

    target: Optional[str] = None
    actions: tuple[Action, ...] = ()
    guard: Optional[Guard] = None

    def applies(self, context: Context, event: Event) -> bool:
        return self.guard is None or bool(self.guard(context, event))


@dataclass(frozen=True)
class NestedRegion:
    """Child states with no externally reachable transitions."""

    initial: str
    states: tuple[str, ...]


@dataclass(frozen=True)
class StateNode:
    """A state and its event table."""

    name: str
    on: Mapping[str, tuple[TransitionSpec, ...]] = field(default_factory=dict)
    nested: Optional[NestedRegion] = None

    @property
    def events(self) -> tuple[str, ...]:
        return tuple(self.on)


@dataclass(frozen=True)
class MachineDefinition:
    """
    Declarative description of a machine.

    Validated on construction, so an instance that exists is structurally sound.
    """

    id: str
    initial: str
    states: Mapping[str, StateNode]

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check the structural invariants.

        Raises:
            DefinitionError: If any invariant is violated
        """
        if self.initial not in self.states:
            raise DefinitionError(self.id, f"initial state '{self.initial}' is not defined")

        for key, node in self.states.items():
            if node.name != key:
                raise DefinitionError(
                    self.id, f"state key '{key}' does not match node name '{node.name}'"
                )

            for event_type, specs in node.on.items():
                if not specs:
                    raise DefinitionError(
                        self.id, f"{key}.{event_type} has no transition specs"
                    )
                for spec in specs:
                    if spec.target is not None and spec.target not in self.states:
                        raise DefinitionError(
                            self.id,
                            f"{key}.{event_type} targets unknown state '{spec.target}'",
                        )

            if node.nested is not None and node.nested.initial not in node.nested.states:
                raise DefinitionError(
                    self.id,
                    f"nested initial '{node.nested.initial}' of '{key}' is not one of "
                    f"{list(node.nested.states)}",
                )

    def node(self, state: str) -> StateNode:
        return self.states[state]

    def events_for(self, state: str) -> tuple[str, ...]:
        """Events the given state handles."""
        return self.states[state].events

    def all_events(self) -> tuple[str, ...]:
        """Every event handled by at least one state, in first-seen order."""
        seen: dict[str, None] = {}
        for node in self.states.values():
            for event_type in node.on:
                seen.setdefault(event_type, None)
        return tuple(seen)

    def transition_for(
        self,
        state: str,
        event: Event,
        context: Context,
    ) -> Optional[TransitionSpec]:
        """Pick the first applicable spec for ``event`` in ``state``, or None."""
        specs = self.states[state].on.get(event.type, ())
        for spec in specs:
            if spec.applies(context, event):
                return spec
        return None
