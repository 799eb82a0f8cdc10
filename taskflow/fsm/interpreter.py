"""Interpreter runtime: drives one instance of a machine definition."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Callable, Mapping, Optional, Union

from taskflow.fsm.actions import run_actions
from taskflow.fsm.context import Context, Event
from taskflow.fsm.states import INIT_EVENT, MALFORMED_EVENT, MachineDefinition
from taskflow.utils.logging import get_logger

logger = get_logger("fsm.interpreter")

EventLike = Union[Event, str, Mapping[str, Any]]


class InterpreterStatus(Enum):
    NOT_STARTED = auto()
    RUNNING = auto()
    DISPOSED = auto()


class InterpreterStateError(Exception):
    """Interpreter used outside its start/dispose lifecycle."""

    def __init__(self, name: str, status: InterpreterStatus, operation: str) -> None:
        self.name = name
        self.status = status
        super().__init__(
            f"Cannot {operation} interpreter '{name}' while {status.name}"
        )


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of an interpreter's (state, context) pair."""

    state: str
    context: Context
    substate: Optional[str] = None
    event: Optional[Event] = None
    changed: bool = False
    previous: Optional[str] = None
    next_events: tuple[str, ...] = ()

    @property
    def value(self) -> Union[str, dict[str, str]]:
        """State value: ``"login"`` or ``{"dashboard": "idle"}`` for nested states."""
        if self.substate is None:
            return self.state
        return {self.state: self.substate}

    def matches(self, state: str) -> bool:
        """Match ``"dashboard"`` or ``"dashboard.idle"``."""
        if "." in state:
            parent, child = state.split(".", 1)
            return self.state == parent and self.substate == child
        return self.state == state

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.value,
            "context": self.context.to_dict(),
        }


Observer = Callable[[Snapshot, Event], None]


@dataclass
class InterpreterStats:
    """Counts of events seen by one interpreter."""

    received: int = 0
    handled: int = 0
    ignored: int = 0
    observer_errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "received": self.received,
            "handled": self.handled,
            "ignored": self.ignored,
            "observer_errors": self.observer_errors,
        }


class Interpreter:
    """
    Runs one machine instance.

    Holds exactly one (state, context) pair. ``send`` runs to completion under
    a lock: look up the transition, run its actions, move state, notify
    observers. Events the current state does not handle leave the pair
    untouched and never raise.

    Lifecycle: construct -> start() -> send()* -> dispose().
    """

    def __init__(
        self,
        definition: MachineDefinition,
        context: Optional[Context] = None,
        name: str = "authoritative",
    ) -> None:
        """
        Initialize the interpreter.

        Args:
            definition: Validated machine definition
            context: Initial context snapshot (defaults to an empty context)
            name: Instance name used in logs
        """
        self.definition = definition
        self.name = name
        self.status = InterpreterStatus.NOT_STARTED
        self.stats = InterpreterStats()

        self._state = definition.initial
        self._substate: Optional[str] = None
        self._context = context.copy() if context is not None else Context.empty()
        self._last: Optional[Snapshot] = None
        self._observers: list[Observer] = []
        self._lock = threading.RLock()

    @property
    def started(self) -> bool:
        return self.status is InterpreterStatus.RUNNING

    def start(self) -> Snapshot:
        """
        Enter the initial state and notify observers with the init event.

        Calling start() on a running interpreter is a no-op.
        """
        with self._lock:
            if self.status is InterpreterStatus.RUNNING:
                logger.warning("interpreter_already_started", instance=self.name)
                return self.snapshot()
            if self.status is InterpreterStatus.DISPOSED:
                raise InterpreterStateError(self.name, self.status, "start")

            init = Event(INIT_EVENT)
            self._enter(self.definition.initial)
            self.status = InterpreterStatus.RUNNING
            self._last = self._build_snapshot(event=init, changed=True, previous=None)

            logger.debug(
                "interpreter_started",
                instance=self.name,
                machine=self.definition.id,
                state=self._state,
            )
            return self._publish(init)

    def send(self, event: EventLike, **payload: Any) -> Snapshot:
        """
        Deliver one event and return the resulting snapshot.

        Input that cannot be read as an event, an event the current state does
        not handle, and a payload the transition cannot apply all leave the
        (state, context) pair untouched and return ``changed=False``.

        Args:
            event: Event, bare event type, or ``{"type": ..., ...}`` dict
            **payload: Extra payload fields merged into the event

        Returns:
            Snapshot after the event

        Raises:
            InterpreterStateError: If the interpreter is not running
        """
        try:
            evt = Event.coerce(event, **payload)
            rejected = None
        except ValueError as e:
            evt = Event(MALFORMED_EVENT)
            rejected = str(e)

        with self._lock:
            if self.status is not InterpreterStatus.RUNNING:
                raise InterpreterStateError(self.name, self.status, "send to")

            self.stats.received += 1
            previous = self._state

            if rejected is not None:
                logger.warning("event_rejected", instance=self.name, error=rejected)
                return self._absorb(evt, previous)

            spec = self.definition.transition_for(self._state, evt, self._context)
            if spec is None:
                return self._absorb(evt, previous)

            try:
                context = run_actions(self._context, evt, spec.actions)
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(
                    "event_absorbed",
                    instance=self.name,
                    event_type=evt.type,
                    state=self._state,
                    error=str(e),
                )
                return self._absorb(evt, previous)

            # Payload objects stay with the sender
            self._context = context.copy()
            if spec.target is not None:
                self._enter(spec.target)

            self.stats.handled += 1
            self._last = self._build_snapshot(event=evt, changed=True, previous=previous)
            return self._publish(evt)

    def snapshot(self) -> Snapshot:
        """Current (state, context) view; changing it does not affect the interpreter."""
        with self._lock:
            if self._last is None:
                self._last = self._build_snapshot(event=None, changed=False, previous=None)
            return self._view(self._last)

    current_snapshot = snapshot

    def can(self, event_type: str) -> bool:
        """Check whether the current state handles ``event_type``."""
        with self._lock:
            return event_type in self.definition.events_for(self._state)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer called after every start/send.

        Returns:
            Callable that removes the observer
        """
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def restore(self, snapshot: Snapshot | Mapping[str, Any]) -> Snapshot:
        """
        Replace (state, context) wholesale, without running actions.

        Accepts a Snapshot or its ``to_dict()`` form. Observers are not notified.

        Raises:
            KeyError: If the snapshot names a state or substate this definition lacks
        """
        if isinstance(snapshot, Snapshot):
            state, substate, context = snapshot.state, snapshot.substate, snapshot.context
        else:
            value = snapshot["state"]
            if isinstance(value, Mapping):
                if len(value) != 1:
                    raise KeyError(f"Expected one parent state, got {dict(value)}")
                state, substate = next(iter(value.items()))
            else:
                state, substate = value, None
            context = Context.from_dict(snapshot.get("context"))

        with self._lock:
            if self.status is InterpreterStatus.DISPOSED:
                raise InterpreterStateError(self.name, self.status, "restore")
            if state not in self.definition.states:
                raise KeyError(f"Unknown state for machine '{self.definition.id}': {state}")

            nested = self.definition.node(state).nested
            if nested is None:
                if substate is not None:
                    raise KeyError(f"State '{state}' has no substate '{substate}'")
            elif substate is None:
                substate = nested.initial
            elif substate not in nested.states:
                raise KeyError(
                    f"Unknown substate of '{state}': {substate}; expected one of {list(nested.states)}"
                )

            previous = self._state
            self._state = state
            self._substate = substate
            self._context = context.copy()
            self._last = self._build_snapshot(event=None, changed=True, previous=previous)
            logger.debug("interpreter_restored", instance=self.name, state=state)
            return self._view(self._last)

    def dispose(self) -> None:
        """Stop accepting events and drop observers."""
        with self._lock:
            if self.status is InterpreterStatus.DISPOSED:
                return
            self._observers.clear()
            self.status = InterpreterStatus.DISPOSED
            logger.debug("interpreter_disposed", instance=self.name)

    def _enter(self, state: str) -> None:
        self._state = state
        nested = self.definition.node(state).nested
        self._substate = nested.initial if nested is not None else None

    def _build_snapshot(
        self,
        event: Optional[Event],
        changed: bool,
        previous: Optional[str],
    ) -> Snapshot:
        return Snapshot(
            state=self._state,
            substate=self._substate,
            context=self._context,
            event=event,
            changed=changed,
            previous=previous,
            next_events=self.definition.events_for(self._state),
        )

    def _view(self, snapshot: Snapshot) -> Snapshot:
        return replace(snapshot, context=snapshot.context.copy())

    def _publish(self, event: Event) -> Snapshot:
        view = self._view(self._last)
        self._notify(view, event)
        return view

    def _absorb(self, event: Event, previous: str) -> Snapshot:
        self.stats.ignored += 1
        self._last = self._build_snapshot(event=event, changed=False, previous=previous)
        return self._publish(event)

    def _notify(self, snapshot: Snapshot, event: Event) -> None:
        for observer in list(self._observers):
            try:
                observer(snapshot, event)
            except Exception as e:
                # An observer cannot fail a transition
                self.stats.observer_errors += 1
                logger.error(
                    "observer_failed",
                    instance=self.name,
                    event_type=event.type,
                    error=str(e),
                )
