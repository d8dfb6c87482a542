"""
Atomic file persistence.

Every write lands in a temp file beside the target and is renamed over it,
so readers see either the old file or the new one, never a partial write.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

DIR_MODE = 0o700
FILE_MODE = 0o600

PathLike = Union[str, Path]


class ReadStatus(Enum):
    """Outcome of reading a persisted JSON document."""
    OK = "ok"
    ABSENT = "absent"
    CORRUPT = "corrupt"


@dataclass(frozen=True)
class ReadResult:
    """Parsed content, or the reason there is none."""
    status: ReadStatus
    value: Any = None
    reason: Optional[str] = None


def ensure_dir(path: PathLike) -> Path:
    """Create a directory (and parents) with owner-only permissions."""
    directory = Path(path)
    directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
    return directory


def write_bytes(path: PathLike, data: bytes) -> None:
    """Atomically replace ``path`` with ``data``.

    Args:
        path: Target file path
        data: Complete new file content

    Raises:
        OSError: If the directory cannot be created or the write fails.
            The temp file is removed before the error propagates.
    """
    target = Path(path)
    ensure_dir(target.parent)

    fd, temp_name = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), FILE_MODE)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_name, target)
        logger.debug("Wrote %d bytes to %s", len(data), target)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


def write_json(path: PathLike, payload: Any) -> None:
    """Serialize ``payload`` as indented JSON and write it atomically."""
    text = json.dumps(payload, indent=2)
    write_bytes(path, text.encode("utf-8"))


def read_json(path: PathLike) -> ReadResult:
    """Read and parse a JSON file without raising.

    Returns:
        ReadResult with status OK and the parsed value, ABSENT when the
        file does not exist, or CORRUPT when it cannot be read or parsed.
    """
    source = Path(path)
    try:
        raw = source.read_bytes()
    except FileNotFoundError:
        return ReadResult(ReadStatus.ABSENT)
    except OSError as e:
        return ReadResult(ReadStatus.CORRUPT, reason=f"unreadable: {e}")

    try:
        return ReadResult(ReadStatus.OK, value=json.loads(raw.decode("utf-8")))
    except (UnicodeDecodeError, ValueError) as e:
        return ReadResult(ReadStatus.CORRUPT, reason=f"invalid JSON: {e}")
