"""Authoritative and mirror interpreters kept in step.

Two interpreters are built from the same definition factory:

    request ──> authoritative.send(event) ──> response snapshot
                        │
                        └─ REPLAY:   mirror.send(event)      (same event stream)
                           SNAPSHOT: mirror.restore(snapshot) (wholesale copy)

REPLAY has no reconciliation: an event that reaches only one side leaves the
two diverged until a full reload (LOAD_TASKS / LOAD_USERS) or ``resync()``.
Only one authoritative process is supported; this is not a replication
protocol for horizontally scaled servers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional

from taskflow.fsm.context import Context
from taskflow.fsm.interpreter import EventLike, Interpreter, Observer, Snapshot
from taskflow.fsm.states import MachineDefinition
from taskflow.utils.logging import get_logger

logger = get_logger("fsm.mirror")


class SyncMode(str, Enum):
    REPLAY = "replay"
    SNAPSHOT = "snapshot"


class ReplicatedMachine:
    """
    Pair of interpreters: one authoritative, one mirror.

    Exposes the same ``start``/``send``/``snapshot`` surface as a single
    Interpreter, so request handlers can take either.
    """

    def __init__(
        self,
        definition_factory: Callable[[], MachineDefinition],
        mode: SyncMode | str = SyncMode.REPLAY,
        initial_context: Optional[Context] = None,
    ) -> None:
        """
        Initialize both instances.

        Args:
            definition_factory: Builds the shared definition; called once per instance
            mode: How the mirror follows the authoritative instance
            initial_context: Context both instances start from
        """
        self.mode = SyncMode(mode)
        self.authoritative = Interpreter(
            definition_factory(), context=initial_context, name="authoritative"
        )
        self.mirror = Interpreter(
            definition_factory(), context=initial_context, name="mirror"
        )

    def start(self) -> Snapshot:
        self.mirror.start()
        return self.authoritative.start()

    def send(self, event: EventLike, **payload: Any) -> Snapshot:
        """Send to the authoritative instance, then bring the mirror along."""
        snapshot = self.authoritative.send(event, **payload)

        if self.mode is SyncMode.SNAPSHOT:
            self.mirror.restore(snapshot)
        else:
            # Replay the event as the authoritative side received it
            self.mirror.send(snapshot.event)

        return snapshot

    def send_authoritative_only(self, event: EventLike, **payload: Any) -> Snapshot:
        """Deliver an event without forwarding it; the instances may diverge."""
        snapshot = self.authoritative.send(event, **payload)
        logger.warning(
            "mirror_skipped",
            event_type=snapshot.event.type if snapshot.event else None,
            mode=self.mode.value,
        )
        return snapshot

    def snapshot(self) -> Snapshot:
        return self.authoritative.snapshot()

    def mirror_snapshot(self) -> Snapshot:
        return self.mirror.snapshot()

    def diverged(self) -> bool:
        """Compare state value and context of the two instances."""
        ours = self.authoritative.snapshot()
        theirs = self.mirror.snapshot()
        return ours.value != theirs.value or ours.context != theirs.context

    def resync(self) -> Snapshot:
        """Copy the authoritative snapshot onto the mirror."""
        snapshot = self.authoritative.snapshot()
        self.mirror.restore(snapshot)
        logger.info("mirror_resynced", state=snapshot.value)
        return snapshot

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Observe the authoritative instance."""
        return self.authoritative.subscribe(observer)

    def dispose(self) -> None:
        self.authoritative.dispose()
        self.mirror.dispose()
