"""Shared argparse type validators for CLI parameter bounds checking.

These validators produce clear error messages when users pass invalid
values (e.g., ``--p-threshold 2.0``, ``--min-n -5``).  They are
intended to be used as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse


def _non_negative_int(value: str) -> int:
    """argparse type for integers >= 0."""
    ivalue = int(value)
    if ivalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative integer")
    return ivalue


def _p_threshold(value: str) -> float:
    """argparse type for significance thresholds in the half-open interval (0, 1]."""
    fvalue = float(value)
    if not (0 < fvalue <= 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid p-value threshold (must be in (0, 1])"
        )
    return fvalue


def _positive_float(value: str) -> float:
    """argparse type for positive floats (> 0)."""
    fvalue = float(value)
    if not fvalue > 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive float")
    return fvalue


def _non_negative_float(value: str) -> float:
    """argparse type for floats >= 0."""
    fvalue = float(value)
    if not fvalue >= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative float")
    return fvalue
