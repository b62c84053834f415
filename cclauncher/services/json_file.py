"""Locked, atomic JSON file access shared by the stores."""

import fcntl
import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from cclauncher.exceptions import StoreError
from cclauncher.logging_config import get_logger

logger = get_logger(__name__)


@contextmanager
def acquire_lock(file_handle, operation: str = "read"):
    """Hold a shared (read) or exclusive (write) flock on an open file."""
    lock_type = fcntl.LOCK_EX if operation == "write" else fcntl.LOCK_SH
    fcntl.flock(file_handle.fileno(), lock_type)
    try:
        yield
    finally:
        try:
            fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            logger.debug(f"Error releasing lock: {e}")


def read_json(path: Path) -> Any:
    """Load a JSON document.

    Raises:
        StoreError: reason "read" if the file cannot be read or parsed
    """
    try:
        with open(path, "r") as f:
            with acquire_lock(f, operation="read"):
                return json.load(f)
    except json.JSONDecodeError as e:
        raise StoreError("read", f"Invalid JSON in {path}: {e}")
    except OSError as e:
        raise StoreError("read", f"Failed to read {path}: {e}")


def write_json(path: Path, data: Any) -> None:
    """Write a JSON document atomically (temp file, then rename).

    Raises:
        StoreError: reason "write" on any filesystem error
    """
    temp_file = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_file, "w") as f:
            with acquire_lock(f, operation="write"):
                json.dump(data, f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
        os.replace(temp_file, path)
    except OSError as e:
        raise StoreError("write", f"Failed to write {path}: {e}")
    finally:
        if temp_file.exists():
            try:
                temp_file.unlink()
            except OSError:
                pass
