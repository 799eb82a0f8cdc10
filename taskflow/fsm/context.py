"""Context and event value types carried through the task-management machine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional

# Python attribute name -> wire key used in API responses
_WIRE_KEYS = {
    "user": "user",
    "tasks": "tasks",
    "users": "users",
    "current_task": "currentTask",
    "error": "error",
}


@dataclass(frozen=True)
class Context:
    """
    Application data carried across every state.

    Every field always holds a value: either the last one assigned or an
    explicit empty default. Instances are never mutated; actions produce
    patches and ``apply`` returns a new Context.
    """

    user: Optional[dict[str, Any]] = None
    tasks: list[dict[str, Any]] = field(default_factory=list)
    users: list[dict[str, Any]] = field(default_factory=list)
    current_task: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def empty(cls) -> Context:
        return cls()

    def apply(self, patch: Mapping[str, Any]) -> Context:
        """
        Return a new Context with whole-field replacement from ``patch``.

        Raises:
            KeyError: If the patch names a field the context does not have
        """
        unknown = set(patch) - set(_WIRE_KEYS)
        if unknown:
            raise KeyError(f"Unknown context fields: {sorted(unknown)}")
        if not patch:
            return self
        return replace(self, **patch)

    def copy(self) -> Context:
        """Deep copy: no list or record is shared with the original."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape shared with the presentation layer."""
        return {
            _WIRE_KEYS[f.name]: getattr(self, f.name) for f in fields(self)
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Context:
        """Create from a wire or attribute-keyed dictionary."""
        data = data or {}
        current_task = data.get("currentTask", data.get("current_task"))
        return cls(
            user=data.get("user"),
            tasks=list(data.get("tasks") or []),
            users=list(data.get("users") or []),
            current_task=current_task,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class Event:
    """A named, payload-bearing message sent to an interpreter."""

    type: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, type: str, **payload: Any) -> Event:
        return cls(type=type, payload=dict(payload))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        """
        Create from ``{"type": ..., "payload": {...}}`` or the flat form
        ``{"type": ..., "task": {...}}`` used by the browser client.

        Raises:
            ValueError: If ``type`` is missing or not a string
        """
        event_type = data.get("type")
        if not isinstance(event_type, str) or not event_type:
            raise ValueError(f"Event requires a non-empty string 'type', got {event_type!r}")

        if isinstance(data.get("payload"), Mapping):
            payload = dict(data["payload"])
        else:
            payload = {k: v for k, v in data.items() if k != "type"}
        return cls(type=event_type, payload=payload)

    @classmethod
    def coerce(cls, event: Event | str | Mapping[str, Any], **payload: Any) -> Event:
        """
        Accept an Event, a bare event name, or a dict.

        Raises:
            ValueError: If ``event`` is none of these, or a dict without a type
        """
        if isinstance(event, Event):
            if payload:
                return cls(type=event.type, payload={**event.payload, **payload})
            return event
        if isinstance(event, str):
            return cls.of(event, **payload)
        if not isinstance(event, Mapping):
            raise ValueError(f"Cannot interpret {type(event).__name__} as an event")
        coerced = cls.from_dict(event)
        if payload:
            return cls(type=coerced.type, payload={**coerced.payload, **payload})
        return coerced

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": dict(self.payload)}
