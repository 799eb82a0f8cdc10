"""Shared fixtures for taskflow tests."""

from __future__ import annotations

import pytest

from taskflow.fsm import (
    Context,
    Interpreter,
    ReplicatedMachine,
    build_task_machine,
)
from taskflow.gateway import EventGateway, InMemoryTaskStore, Argon2PasswordHasher


@pytest.fixture
def definition():
    return build_task_machine()


@pytest.fixture
def interpreter(definition):
    machine = Interpreter(definition)
    machine.start()
    yield machine
    machine.dispose()


@pytest.fixture
def replicated():
    machine = ReplicatedMachine(build_task_machine)
    machine.start()
    yield machine
    machine.dispose()


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def hasher():
    # Minimal Argon2 cost keeps the suite fast
    return Argon2PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def gateway(replicated, store, hasher):
    return EventGateway(replicated, store, hasher)


@pytest.fixture
def busy_context():
    """Context with every field populated."""
    return Context(
        user={"email": "lead@example.com", "firstName": "Ada", "lastName": "L", "role": "teamLead"},
        tasks=[
            {"id": 1, "title": "Write report", "status": "Pending", "edited": False},
            {"id": 2, "title": "Review PR", "status": "In Progress", "edited": False},
        ],
        users=[{"email": "member@example.com", "role": "teamMember"}],
        current_task={"id": 1, "title": "Write report"},
        error="previous failure",
    )

