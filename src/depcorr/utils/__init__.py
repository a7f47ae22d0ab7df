"""Utility modules for dependency analysis."""

from depcorr.utils.fileio import (
    atomic_write_bytes,
    atomic_write_json,
    atomic_write_text,
)

__all__ = [
    # Atomic file-write utilities
    'atomic_write_bytes',
    'atomic_write_json',
    'atomic_write_text',
]
