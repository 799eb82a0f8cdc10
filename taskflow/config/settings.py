"""Centralized configuration for taskflow.

Configuration is loaded from YAML (``config/taskflow.yaml``) and validated at
startup. Missing files fall back to the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from taskflow.utils.result import ConfigError, Err, Ok, Result

CONFIG_FILE = "taskflow.yaml"
LOG_LEVEL_ENV = "TASKFLOW_LOG_LEVEL"

SYNC_MODES = ("replay", "snapshot")
STORE_BACKENDS = ("memory", "json")
LOG_LEVELS = ("debug", "info", "warn", "warning", "error")
LOG_FORMATS = ("json", "text")


@dataclass
class MachineConfig:
    """Interpreter settings."""

    sync_mode: str = "replay"
    log_transitions: bool = True


@dataclass
class StoreConfig:
    """Persistence collaborator settings."""

    backend: str = "memory"
    path: Optional[Path] = None


@dataclass
class SecurityConfig:
    """Argon2id cost parameters for password hashes."""

    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 4


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "json"


@dataclass
class AppConfig:
    """Complete application configuration."""

    machine: MachineConfig = field(default_factory=MachineConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> Result["AppConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message=f"Expected a mapping at top level, got {type(data).__name__}",
            ))

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["AppConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        try:
            machine_data = data.get("machine") or {}
            machine = MachineConfig(
                sync_mode=str(machine_data.get("sync_mode", "replay")).lower(),
                log_transitions=bool(machine_data.get("log_transitions", True)),
            )

            store_data = data.get("store") or {}
            store_path = store_data.get("path")
            store = StoreConfig(
                backend=str(store_data.get("backend", "memory")).lower(),
                path=Path(store_path) if store_path else None,
            )

            security_data = data.get("security") or {}
            security = SecurityConfig(
                time_cost=int(security_data.get("time_cost", 3)),
                memory_cost=int(security_data.get("memory_cost", 65536)),
                parallelism=int(security_data.get("parallelism", 4)),
            )

            logging_data = data.get("logging") or {}
            logging_config = LoggingConfig(
                level=str(logging_data.get("level", "info")).lower(),
                format=str(logging_data.get("format", "json")).lower(),
            )
        except (TypeError, ValueError, AttributeError) as e:
            return Err(ConfigError(
                field="unknown",
                message=f"Failed to parse configuration: {e}",
            ))

        return Ok(cls(
            machine=machine,
            store=store,
            security=security,
            logging=logging_config,
        ))

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if self.machine.sync_mode not in SYNC_MODES:
            return Err(ConfigError(
                field="machine.sync_mode",
                message=f"Must be one of {list(SYNC_MODES)}, got {self.machine.sync_mode!r}",
            ))

        if self.store.backend not in STORE_BACKENDS:
            return Err(ConfigError(
                field="store.backend",
                message=f"Must be one of {list(STORE_BACKENDS)}, got {self.store.backend!r}",
            ))
        if self.store.backend == "json" and self.store.path is None:
            return Err(ConfigError(
                field="store.path",
                message="Required when store.backend is 'json'",
            ))

        for name, value in [
            ("time_cost", self.security.time_cost),
            ("parallelism", self.security.parallelism),
        ]:
            if value < 1:
                return Err(ConfigError(
                    field=f"security.{name}",
                    message=f"Must be at least 1, got {value}",
                ))
        # Argon2 needs at least 8 KiB of memory per lane
        min_memory = 8 * self.security.parallelism
        if self.security.memory_cost < min_memory:
            return Err(ConfigError(
                field="security.memory_cost",
                message=f"Must be at least {min_memory} KiB, got {self.security.memory_cost}",
            ))

        if self.logging.level not in LOG_LEVELS:
            return Err(ConfigError(
                field="logging.level",
                message=f"Must be one of {list(LOG_LEVELS)}, got {self.logging.level!r}",
            ))
        if self.logging.format not in LOG_FORMATS:
            return Err(ConfigError(
                field="logging.format",
                message=f"Must be one of {list(LOG_FORMATS)}, got {self.logging.format!r}",
            ))

        return Ok(None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "machine": {
                "sync_mode": self.machine.sync_mode,
                "log_transitions": self.machine.log_transitions,
            },
            "store": {
                "backend": self.store.backend,
                "path": str(self.store.path) if self.store.path else None,
            },
            "security": {
                "time_cost": self.security.time_cost,
                "memory_cost": self.security.memory_cost,
                "parallelism": self.security.parallelism,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
        }


def load_config(config_dir: Path = None) -> Result[AppConfig, ConfigError]:
    """
    Load configuration from the standard location.

    Reads ``<config_dir>/taskflow.yaml`` when present, then applies the
    ``TASKFLOW_LOG_LEVEL`` environment override and validates.

    Args:
        config_dir: Configuration directory (defaults to ./config)

    Returns:
        Result with loaded config or error
    """
    if config_dir is None:
        config_dir = Path("./config")

    config_path = Path(config_dir) / CONFIG_FILE
    if config_path.exists():
        result = AppConfig.from_yaml(config_path)
        if result.is_err():
            return result
        config = result.unwrap()
    else:
        config = AppConfig()

    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        config.logging.level = env_level.lower()

    validation_result = config.validate()
    if validation_result.is_err():
        return Err(validation_result.unwrap_err())

    return Ok(config)
