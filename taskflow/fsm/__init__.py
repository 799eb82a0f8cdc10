"""FSM-driven application state for the task manager.

One declarative machine models the whole user journey:

    signup <-> login -> dashboard -> assignTask / pendingTasks /
                            ^        completedTasks / profileSettings
                            |                 |
                            +---- GO_TO_* ----+
    dashboard --LOGOUT--> login (context reset)

The same definition is interpreted twice: once by the request-handling layer
(authoritative) and once as a mirror for the presentation layer. Events a
state does not handle are ignored, and domain failures (bad credentials,
missing task) arrive as *_ERROR events that set ``context.error``.
"""

from taskflow.fsm.actions import normalize_status
from taskflow.fsm.context import Context, Event
from taskflow.fsm.inspector import StateLogger, attach_state_logger, describe_structure
from taskflow.fsm.interpreter import (
    Interpreter,
    InterpreterStateError,
    InterpreterStatus,
    Snapshot,
)
from taskflow.fsm.machine import MACHINE_ID, build_task_machine
from taskflow.fsm.mirror import ReplicatedMachine, SyncMode
from taskflow.fsm.states import (
    INIT_EVENT,
    MALFORMED_EVENT,
    NAVIGATION_EVENTS,
    AppEvent,
    AppState,
    DefinitionError,
    MachineDefinition,
    NestedRegion,
    Priority,
    Role,
    StateNode,
    TaskStatus,
    TransitionSpec,
)

__all__ = [
    # Definition
    "AppEvent",
    "AppState",
    "DefinitionError",
    "INIT_EVENT",
    "MALFORMED_EVENT",
    "MachineDefinition",
    "NAVIGATION_EVENTS",
    "NestedRegion",
    "Priority",
    "Role",
    "StateNode",
    "TaskStatus",
    "TransitionSpec",
    "MACHINE_ID",
    "build_task_machine",
    # Values
    "Context",
    "Event",
    "normalize_status",
    # Runtime
    "Interpreter",
    "InterpreterStateError",
    "InterpreterStatus",
    "Snapshot",
    "ReplicatedMachine",
    "SyncMode",
    # Diagnostics
    "StateLogger",
    "attach_state_logger",
    "describe_structure",
]
