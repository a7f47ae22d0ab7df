"""
Atomic file-write utilities.

Result and bundle files are written to a temporary file in the destination
directory and moved into place with ``os.replace()`` (POSIX rename
guarantee), so a reader never sees a partially written file.
"""

from __future__ import annotations

import json
import math
import os
import tempfile
from typing import Any


def _atomic_write(path: str | os.PathLike, payload: str | bytes) -> None:
    path = os.fspath(path)
    dir_path = os.path.dirname(path) or "."
    mode = "wb" if isinstance(payload, bytes) else "w"
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode=mode, dir=dir_path, suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = tmp.name
            tmp.write(payload)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def to_jsonable(value: Any) -> Any:
    """Recursively replace non-finite floats with None and numpy scalars with Python ones."""
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if hasattr(value, 'item') and callable(value.item) and getattr(value, 'ndim', None) == 0:
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as strict JSON (NaN → null) atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path.
    data:
        JSON-serializable object; numpy scalars and non-finite floats are
        converted first.
    indent:
        JSON indentation (default 2).
    """
    _atomic_write(path, json.dumps(to_jsonable(data), indent=indent, allow_nan=False))


def atomic_write_text(path: str | os.PathLike, content: str) -> None:
    """Write *content* as text atomically via temp-file + rename."""
    _atomic_write(path, content)


def atomic_write_bytes(path: str | os.PathLike, content: bytes) -> None:
    """Write binary *content* atomically via temp-file + rename."""
    _atomic_write(path, content)
