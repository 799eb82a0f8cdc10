"""Wiring: build the machine pair, store and gateway from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from taskflow.config.settings import AppConfig
from taskflow.fsm.inspector import attach_state_logger
from taskflow.fsm.machine import build_task_machine
from taskflow.fsm.mirror import ReplicatedMachine
from taskflow.gateway.handler import EventGateway
from taskflow.gateway.passwords import Argon2PasswordHasher
from taskflow.gateway.store import InMemoryTaskStore, JsonFileTaskStore, TaskStore


@dataclass
class App:
    """One process worth of collaborators."""

    config: AppConfig
    machine: ReplicatedMachine
    store: TaskStore
    gateway: EventGateway

    def close(self) -> None:
        self.machine.dispose()


def build_store(config: AppConfig, path: Optional[Path] = None) -> TaskStore:
    """JSON store when a path is given or configured, in-memory otherwise."""
    store_path = path or (config.store.path if config.store.backend == "json" else None)
    if store_path is not None:
        return JsonFileTaskStore(store_path)
    return InMemoryTaskStore()


def create_app(config: Optional[AppConfig] = None, store_path: Optional[Path] = None) -> App:
    """
    Construct and start the machine pair and the gateway that owns it.

    Args:
        config: Application configuration (defaults used if omitted)
        store_path: Override the configured store with a JSON file

    Returns:
        Started App
    """
    config = config or AppConfig()

    machine = ReplicatedMachine(build_task_machine, mode=config.machine.sync_mode)
    if config.machine.log_transitions:
        attach_state_logger(machine.authoritative)
        attach_state_logger(machine.mirror)
    machine.start()

    store = build_store(config, store_path)
    hasher = Argon2PasswordHasher(
        time_cost=config.security.time_cost,
        memory_cost=config.security.memory_cost,
        parallelism=config.security.parallelism,
    )
    gateway = EventGateway(machine, store, hasher)

    return App(config=config, machine=machine, store=store, gateway=gateway)
