"""
Filesystem helpers shared by the artifact stores.

Every artifact is published atomically: the JSON document is written to a
temporary file in the destination directory, flushed and fsynced, then moved
into place with ``os.replace``. Readers of the directory therefore see either
the complete file or nothing.

routelens/src/routelens/filesystem.py
"""

import json
import logging
import os
import re
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

__all__ = [
    "TEMP_PREFIX",
    "atomic_write_json",
    "ensure_directory",
    "iso_timestamp",
    "publish_json",
    "reset_directory",
    "safe_name",
    "safe_timestamp",
    "unique_path",
    "walk_up_for_config",
]

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".routelens-"
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def walk_up_for_config(start_path: Path) -> Optional[Path]:
    """Return the nearest directory at or above ``start_path`` holding a pyproject.toml."""
    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    for candidate in [current, *current.parents]:
        if (candidate / "pyproject.toml").is_file():
            return candidate
    return None


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def safe_timestamp(timestamp: Optional[str] = None) -> str:
    """Make an ISO timestamp filesystem-legal by replacing ``:`` and ``.`` with ``-``."""
    return re.sub(r"[:.]", "-", timestamp or iso_timestamp())


def safe_name(name: str, fallback: str = "unknown") -> str:
    """Reduce a handler name to characters that are legal in file names."""
    cleaned = _UNSAFE_NAME_CHARS.sub("_", name or "").strip("._")
    return cleaned or fallback


def ensure_directory(directory: Path) -> Path:
    """Create ``directory`` (and parents) if needed. Safe to call repeatedly."""
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def reset_directory(directory: Path) -> Path:
    """Remove ``directory`` with its contents and recreate it empty."""
    if directory.exists():
        logger.debug(f"Clearing directory {directory}")
        shutil.rmtree(directory)
    return ensure_directory(directory)


def unique_path(directory: Path, stem: str, suffix: str = ".json") -> Path:
    """First non-existing ``stem[_N]suffix`` path inside ``directory``."""
    candidate = directory / f"{stem}{suffix}"
    counter = 2
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return candidate


def atomic_write_json(path: Path, data: Any) -> Path:
    """Serialize ``data`` to ``path`` so that no partial file is ever observable.

    Raises:
        OSError: If the directory cannot be created or the write fails. The
            temporary file is removed before the error propagates.
    """
    ensure_directory(path.parent)
    fd, temp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=".tmp", dir=path.parent)
    try:
        with open(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise
    return path


def publish_json(directory: Path, stem: str, data: Any) -> Path:
    """Atomically write ``data`` under a name that does not clash with existing files."""
    ensure_directory(directory)
    return atomic_write_json(unique_path(directory, stem), data)
