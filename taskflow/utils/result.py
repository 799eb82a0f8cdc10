"""Result type for explicit error handling at the configuration and CLI edge.

Inside the state machine, domain failures travel as events. Loading files and
configuration can fail in ordinary ways, and those paths return a Result so
the caller has to look at the failure instead of catching a broad exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar, Union

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


class ResultError(Exception):
    """Raised when unwrapping a Result fails."""

    pass


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Represents a successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the success value."""
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise ResultError(f"Called unwrap_err on Ok value: {self.value}")


@dataclass(frozen=True)
class Err(Generic[E]):
    """Represents an error result."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise ResultError(f"Called unwrap on Err value: {self.error}")

    def unwrap_err(self) -> E:
        """Get the error value."""
        return self.error


Result = Union[Ok[T], Err[E]]


@dataclass(frozen=True)
class ConfigError:
    """Error in configuration."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"Config error in '{self.field}': {self.message}"


@dataclass(frozen=True)
class InputError:
    """Error reading an events or requests file."""

    path: str
    message: str
    line: int | None = None

    def __str__(self) -> str:
        if self.line is not None:
            return f"{self.path}:{self.line}: {self.message}"
        return f"{self.path}: {self.message}"


class ExitCode:
    """Exit codes for CLI."""

    SUCCESS = 0
    GENERAL_ERROR = 1

    # Input errors (10-19)
    CONFIG_INVALID = 10
    INPUT_INVALID = 11

    # Replication errors (20-29)
    MIRROR_DIVERGED = 20
