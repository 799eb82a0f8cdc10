"""Request handling, persistence and password collaborators around the machine."""

from taskflow.gateway.handler import EventGateway, GatewayResponse
from taskflow.gateway.passwords import PasswordHasher, Argon2PasswordHasher
from taskflow.gateway.store import (
    DuplicateUserError,
    InMemoryTaskStore,
    InvalidRecordError,
    JsonFileTaskStore,
    StoreError,
    TaskNotFoundError,
    TaskStore,
)

__all__ = [
    "EventGateway",
    "GatewayResponse",
    "PasswordHasher",
    "Argon2PasswordHasher",
    "TaskStore",
    "InMemoryTaskStore",
    "JsonFileTaskStore",
    "StoreError",
    "DuplicateUserError",
    "InvalidRecordError",
    "TaskNotFoundError",
]
