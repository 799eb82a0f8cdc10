"""Transition logging and machine structure description."""

from __future__ import annotations

from typing import Any, Optional

from taskflow.fsm.context import Context, Event
from taskflow.fsm.interpreter import Interpreter, Snapshot
from taskflow.fsm.states import INIT_EVENT, MachineDefinition
from taskflow.utils.logging import get_logger


def summarize_context(context: Context) -> dict[str, Any]:
    """Small log-safe view of a context (no task bodies)."""
    return {
        "user": context.user.get("email") if context.user else None,
        "tasks": len(context.tasks),
        "users": len(context.users),
        "current_task": context.current_task.get("id") if context.current_task else None,
        "error": context.error,
    }


class StateLogger:
    """Observer that logs every start and transition of an interpreter."""

    def __init__(self, instance: str = "authoritative", logger: Any = None) -> None:
        self.instance = instance
        self.logger = logger or get_logger("fsm.inspector")

    def __call__(self, snapshot: Snapshot, event: Event) -> None:
        if event.type == INIT_EVENT:
            self.logger.info(
                "fsm_started",
                instance=self.instance,
                state=snapshot.value,
                context=summarize_context(snapshot.context),
            )
            return

        if not snapshot.changed:
            self.logger.debug(
                "event_ignored",
                instance=self.instance,
                state=snapshot.value,
                event_type=event.type,
            )
            return

        self.logger.info(
            "state_transition",
            instance=self.instance,
            previous_state=snapshot.previous,
            state=snapshot.value,
            event_type=event.type,
            context=summarize_context(snapshot.context),
        )
        if snapshot.next_events:
            self.logger.debug(
                "available_events",
                instance=self.instance,
                events=list(snapshot.next_events),
            )


def attach_state_logger(interpreter: Interpreter, logger: Optional[Any] = None):
    """Subscribe a StateLogger; returns the unsubscribe callable."""
    return interpreter.subscribe(StateLogger(instance=interpreter.name, logger=logger))


def describe_structure(definition: MachineDefinition) -> dict[str, Any]:
    """
    Describe states, handled events, targets and nested states.

    Returns:
        ``{"id", "initial", "states": {name: {"events", "targets", "nested"}}}``
    """
    states: dict[str, Any] = {}
    for name, node in definition.states.items():
        targets = {
            event_type: specs[0].target
            for event_type, specs in node.on.items()
            if specs[0].target is not None
        }
        states[name] = {
            "events": list(node.events),
            "targets": targets,
            "nested": list(node.nested.states) if node.nested else [],
        }

    return {
        "id": definition.id,
        "initial": definition.initial,
        "states": states,
    }
