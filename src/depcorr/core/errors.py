"""
Exception taxonomy for the dependency analysis engine.

Four failure classes exist, each handled at a different level:

1. DecodeError: the compressed matrix does not match its metadata. Fatal to
   data load; nothing can be analysed.
2. ValidationError: a caller request is unusable (no genes, too few cell
   lines after filtering, out-of-range thresholds). The request is rejected
   before any computation starts.
3. InsufficientSamplesError: a mutation group is too small to test. Per-pair
   and per-gene shortfalls inside a sweep never raise; they are reported as
   NaN / 1.0 sentinels and the batch continues.
4. AnalysisCancelled: a cooperative cancellation or timeout fired between
   outer-loop iterations.

"No edge survived the thresholds" is deliberately *not* an exception; see
``SweepResult.empty``.
"""

from __future__ import annotations

__all__ = [
    'DepcorrError',
    'DecodeError',
    'ValidationError',
    'InsufficientSamplesError',
    'AnalysisCancelled',
    'raise_if_stopped',
]


class DepcorrError(Exception):
    """Base class for all errors raised by depcorr."""
    pass


class DecodeError(DepcorrError):
    """Raised when a compressed dependency matrix cannot be decoded."""
    pass


class ValidationError(DepcorrError, ValueError):
    """Raised when an analysis request is rejected before computation."""
    pass


class InsufficientSamplesError(DepcorrError):
    """Raised when a mutation dosage group has too few cell lines to test."""

    def __init__(self, message: str, n_wt: int = 0, n_mut: int = 0):
        super().__init__(message)
        self.n_wt = n_wt
        self.n_mut = n_mut


class AnalysisCancelled(DepcorrError):
    """Raised when a running analysis is cancelled or exceeds its deadline."""
    pass


def raise_if_stopped(should_stop, context: str = "analysis") -> None:
    """Raise AnalysisCancelled if the cooperative stop callable says so."""
    if should_stop is not None and should_stop():
        raise AnalysisCancelled(f"{context} cancelled")
