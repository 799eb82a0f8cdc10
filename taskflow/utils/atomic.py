"""Crash-safe replacement of JSON snapshot files."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from taskflow.utils.logging import get_logger

logger = get_logger("utils.atomic")


class AtomicWriteError(Exception):
    """A snapshot file could not be replaced."""

    def __init__(self, path: Path, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")


def atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    """
    Replace ``path`` with the JSON encoding of ``data``.

    The document is written and fsynced in a sibling temp file, then moved
    over the target, so readers see either the old file or the new one.

    Raises:
        AtomicWriteError: If encoding, writing or the final rename fails
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise AtomicWriteError(path, e) from e

    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        temp_path = Path(tmp.name)
        try:
            json.dump(data, tmp, indent=indent, default=str)
            tmp.flush()
            os.fsync(tmp.fileno())
        except (OSError, TypeError, ValueError) as e:
            tmp.close()
            temp_path.unlink(missing_ok=True)
            logger.error("snapshot_write_failed", path=str(path), error=str(e))
            raise AtomicWriteError(path, e) from e

    try:
        os.replace(temp_path, path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        logger.error("snapshot_replace_failed", path=str(path), error=str(e))
        raise AtomicWriteError(path, e) from e

    logger.debug("snapshot_written", path=str(path), bytes=path.stat().st_size)
