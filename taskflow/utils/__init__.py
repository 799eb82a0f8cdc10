"""Utility modules for taskflow."""

from taskflow.utils.atomic import AtomicWriteError, atomic_write_json
from taskflow.utils.logging import (
    configure_logging,
    get_logger,
    new_request_id,
    set_request_id,
)
from taskflow.utils.result import (
    ConfigError,
    Err,
    ExitCode,
    InputError,
    Ok,
    Result,
    ResultError,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "new_request_id",
    "set_request_id",
    # Atomic writes
    "AtomicWriteError",
    "atomic_write_json",
    # Result
    "Ok",
    "Err",
    "Result",
    "ResultError",
    "ConfigError",
    "InputError",
    "ExitCode",
]
