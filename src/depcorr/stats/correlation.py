"""
Pairwise Pearson correlation with OLS slope over a dependency matrix.

Two genes are compared over the cell lines where *both* have a value
(pairwise exclusion); a cell line missing for one pair can still count for
another, so no row or column is ever dropped globally.

For the n valid pairs:

    Sxx = Σx² - (Σx)²/n      Syy = Σy² - (Σy)²/n      Sxy = Σxy - ΣxΣy/n

    r     = Sxy / sqrt(Sxx · Syy)
    slope = Sxy / Sxx                    (OLS regression of y on x)

Degenerate cases never raise:
    - fewer than 3 valid pairs → (NaN, NaN, n=0)
    - constant x or constant y → r and slope NaN (undefined, not zero)

Sweep modes:
    - ``within-list``: every unordered pair of the query genes, once
    - ``expand``: every query gene against every gene in the matrix. A partner
      that is itself a query gene earlier in the list was already paired with
      this one and is skipped, so each unordered pair is evaluated once.

Expand mode is the expensive path (query genes × ~18k partners); each query
gene is correlated against chunks of partner rows with masked numpy sums
instead of a Python loop per pair.

Examples:
    >>> pearson_with_slope([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
    PearsonResult(correlation=1.0, slope=2.0, n=5)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence

import numpy as np
from tqdm import tqdm

from depcorr.core.dependency_matrix import DependencyMatrix
from depcorr.core.errors import ValidationError, raise_if_stopped
from depcorr.core.filters import CellLineSubset

__all__ = [
    'PearsonResult',
    'CorrelationEdge',
    'SweepResult',
    'SweepMode',
    'pearson_with_slope',
    'pearson_with_slope_many',
    'sweep',
    'MIN_VALID_PAIRS',
]

logger = logging.getLogger(__name__)

MIN_VALID_PAIRS = 3

# Sums of squares at or below this fraction of Σv² are treated as zero
# (constant vectors whose mean is not exactly representable)
_DEGENERATE_RTOL = 1e-12

# Partner rows per vectorized block in expand mode
_EXPAND_CHUNK_SIZE = 2000

REPORT_DECIMALS = 3


class SweepMode:
    WITHIN_LIST = "within-list"
    EXPAND = "expand"

    CHOICES = (WITHIN_LIST, EXPAND)


@dataclass(frozen=True)
class PearsonResult:
    correlation: float
    slope: float
    n: int


@dataclass(frozen=True)
class CorrelationEdge:
    """
    Surviving correlation between two genes.

    Undirected: (A, B) and (B, A) are the same edge, see :attr:`key`.
    ``correlation`` and ``slope`` are rounded for reporting; ``cluster`` is 0
    until cluster assignment.
    """

    gene_a: str
    gene_b: str
    correlation: float
    slope: float
    n: int
    cluster: int = 0

    @property
    def key(self) -> frozenset:
        return frozenset((self.gene_a, self.gene_b))

    def with_cluster(self, cluster: int) -> CorrelationEdge:
        return replace(self, cluster=cluster)

    def to_dict(self) -> dict:
        return {
            'gene_a': self.gene_a,
            'gene_b': self.gene_b,
            'correlation': self.correlation,
            'slope': self.slope,
            'n': self.n,
            'cluster': self.cluster,
        }


@dataclass(frozen=True)
class SweepResult:
    """
    Outcome of a correlation sweep.

    An empty edge list is a normal outcome: ``empty`` is True and ``message``
    explains which cutoff nothing passed.
    """

    edges: tuple[CorrelationEdge, ...]
    mode: str
    cutoff: float
    n_cell_lines: int
    n_pairs_tested: int = 0

    @property
    def empty(self) -> bool:
        return len(self.edges) == 0

    @property
    def message(self) -> Optional[str]:
        if self.empty:
            return f"No correlations found above cutoff of {self.cutoff}"
        return None

    def __len__(self) -> int:
        return len(self.edges)


def _finish(
    n: np.ndarray,
    sx: np.ndarray,
    sy: np.ndarray,
    sxx: np.ndarray,
    syy: np.ndarray,
    sxy: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Correlation and slope from raw sums (arrays of equal shape)."""
    with np.errstate(divide='ignore', invalid='ignore'):
        ss_x = sxx - sx * sx / n
        ss_y = syy - sy * sy / n
        sp = sxy - sx * sy / n

        x_degenerate = ss_x <= _DEGENERATE_RTOL * sxx
        y_degenerate = ss_y <= _DEGENERATE_RTOL * syy

        correlation = sp / np.sqrt(ss_x * ss_y)
        correlation = np.where(x_degenerate | y_degenerate, np.nan, correlation)
        correlation = np.clip(correlation, -1.0, 1.0)

        slope = np.where(x_degenerate | y_degenerate, np.nan, sp / ss_x)

    too_few = n < MIN_VALID_PAIRS
    correlation = np.where(too_few, np.nan, correlation)
    slope = np.where(too_few, np.nan, slope)
    return correlation, slope


def pearson_with_slope(x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray) -> PearsonResult:
    """
    Pearson r and OLS slope of y on x over pairs where both are present.

    Never raises: degenerate input yields NaN (see module docstring).
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same length, got {x.shape} and {y.shape}")

    valid = ~(np.isnan(x) | np.isnan(y))
    n = int(valid.sum())
    if n < MIN_VALID_PAIRS:
        return PearsonResult(correlation=float('nan'), slope=float('nan'), n=0)

    xv = x[valid]
    yv = y[valid]
    correlation, slope = _finish(
        np.float64(n), xv.sum(), yv.sum(), (xv * xv).sum(), (yv * yv).sum(), (xv * yv).sum()
    )
    return PearsonResult(correlation=float(correlation), slope=float(slope), n=n)


def pearson_with_slope_many(
    x: np.ndarray,
    block: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorized :func:`pearson_with_slope` of one vector against many.

    Args:
        x: Query vector, shape (m,)
        block: Partner rows, shape (k, m)

    Returns:
        (correlation, slope, n) arrays of shape (k,); n is 0 where fewer than
        3 valid pairs exist
    """
    x = np.asarray(x, dtype=np.float64)
    block = np.asarray(block, dtype=np.float64)

    valid = ~np.isnan(block) & ~np.isnan(x)[np.newaxis, :]
    xm = np.where(valid, x[np.newaxis, :], 0.0)
    ym = np.where(valid, block, 0.0)

    n = valid.sum(axis=1)
    correlation, slope = _finish(
        n.astype(np.float64),
        xm.sum(axis=1),
        ym.sum(axis=1),
        (xm * xm).sum(axis=1),
        (ym * ym).sum(axis=1),
        (xm * ym).sum(axis=1),
    )
    n = np.where(n < MIN_VALID_PAIRS, 0, n)
    return correlation, slope, n


def _survives(correlation, slope, n, cutoff: float, min_n: int, min_slope_abs: float):
    # NaN fails every comparison
    with np.errstate(invalid='ignore'):
        return (
            (n >= min_n)
            & (np.abs(correlation) >= cutoff)
            & (np.abs(slope) >= min_slope_abs)
        )


def _edge(gene_a: str, gene_b: str, correlation: float, slope: float, n: int) -> CorrelationEdge:
    return CorrelationEdge(
        gene_a=gene_a,
        gene_b=gene_b,
        correlation=round(float(correlation), REPORT_DECIMALS),
        slope=round(float(slope), REPORT_DECIMALS),
        n=int(n),
    )


def _iterate(items, progress: bool, desc: str):
    if progress:
        return tqdm(items, desc=desc, unit="gene")
    return items


def _sweep_within_list(
    data: np.ndarray,
    rows: list[int],
    symbols: tuple[str, ...],
    cutoff: float,
    min_n: int,
    min_slope_abs: float,
    should_stop: Optional[Callable[[], bool]],
    progress: bool,
) -> tuple[list[CorrelationEdge], int]:
    edges = []
    n_tested = 0
    for i in _iterate(range(len(rows)), progress, "Correlating gene list"):
        raise_if_stopped(should_stop, "correlation sweep")
        x = data[rows[i]]
        for j in range(i + 1, len(rows)):
            result = pearson_with_slope(x, data[rows[j]])
            n_tested += 1
            if _survives(result.correlation, result.slope, result.n, cutoff, min_n, min_slope_abs):
                edges.append(_edge(
                    symbols[rows[i]], symbols[rows[j]], result.correlation, result.slope, result.n
                ))
    return edges, n_tested


def _sweep_expand(
    data: np.ndarray,
    rows: list[int],
    symbols: tuple[str, ...],
    cutoff: float,
    min_n: int,
    min_slope_abs: float,
    should_stop: Optional[Callable[[], bool]],
    progress: bool,
    chunk_size: int,
) -> tuple[list[CorrelationEdge], int]:
    n_genes = data.shape[0]

    # Position of each matrix row in the query list (n_genes if not queried)
    list_rank = np.full(n_genes, len(rows), dtype=np.intp)
    list_rank[rows] = np.arange(len(rows))

    edges = []
    n_tested = 0
    for i in _iterate(range(len(rows)), progress, "Expanding gene list"):
        raise_if_stopped(should_stop, "correlation sweep")
        query_row = rows[i]
        x = data[query_row]

        for start in range(0, n_genes, chunk_size):
            raise_if_stopped(should_stop, "correlation sweep")
            stop = min(start + chunk_size, n_genes)
            # Self and earlier query genes already evaluated this pair
            partners = np.arange(start, stop)[list_rank[start:stop] > i]
            if len(partners) == 0:
                continue

            correlation, slope, n = pearson_with_slope_many(x, data[partners])
            n_tested += len(partners)
            keep = _survives(correlation, slope, n, cutoff, min_n, min_slope_abs)
            for k in np.flatnonzero(keep):
                edges.append(_edge(
                    symbols[query_row], symbols[partners[k]], correlation[k], slope[k], n[k]
                ))
    return edges, n_tested


def sweep(
    matrix: DependencyMatrix,
    genes: Sequence[str],
    mode: str = SweepMode.WITHIN_LIST,
    subset: Optional[CellLineSubset] = None,
    correlation_cutoff: float = 0.5,
    min_n: int = 0,
    min_slope_abs: float = 0.0,
    should_stop: Optional[Callable[[], bool]] = None,
    progress: bool = False,
    chunk_size: int = _EXPAND_CHUNK_SIZE,
) -> SweepResult:
    """
    Correlate query genes and keep edges passing every threshold.

    An edge survives when ``n >= min_n`` and ``|r| >= correlation_cutoff``
    and ``|slope| >= min_slope_abs``. Thresholds apply to unrounded values;
    reported values are rounded to 3 decimals.

    Args:
        matrix: Dependency matrix
        genes: Query gene symbols (resolved case-insensitively, in list order)
        mode: ``"within-list"`` or ``"expand"``
        subset: Cell-line columns to use (all if None)
        correlation_cutoff: Minimum |r|
        min_n: Minimum number of valid paired cell lines
        min_slope_abs: Minimum |slope|
        should_stop: Checked per query gene, and per partner chunk in
            expand mode; True raises AnalysisCancelled
        progress: Show a tqdm progress bar
        chunk_size: Partner rows per vectorized block (expand mode)

    Returns:
        SweepResult, possibly empty

    Raises:
        ValidationError: unknown mode or unknown gene symbol
        AnalysisCancelled: ``should_stop`` returned True
    """
    if mode not in SweepMode.CHOICES:
        raise ValidationError(f"Unknown correlation mode {mode!r} (choose from {', '.join(SweepMode.CHOICES)})")

    rows = []
    for gene in genes:
        position = matrix.gene_index.get(gene)
        if position is None:
            raise ValidationError(f"Gene not in dependency matrix: {gene!r}")
        if position not in rows:
            rows.append(position)

    columns = None if subset is None else subset.indices
    symbols = matrix.genes
    if mode == SweepMode.WITHIN_LIST:
        # Query rows only, restricted to the subset columns
        if columns is None:
            data = matrix.data[rows]
        else:
            data = matrix.data[np.ix_(rows, columns)]
        symbols = tuple(symbols[position] for position in rows)
        rows = list(range(len(rows)))
    else:
        data = matrix.columns(columns)

    logger.debug(
        f"Sweep [{mode}] over {len(rows)} query genes × {data.shape[1]} cell lines "
        f"(|r| ≥ {correlation_cutoff}, n ≥ {min_n}, |slope| ≥ {min_slope_abs})"
    )

    if mode == SweepMode.WITHIN_LIST:
        edges, n_tested = _sweep_within_list(
            data, rows, symbols, correlation_cutoff, min_n, min_slope_abs, should_stop, progress
        )
    else:
        edges, n_tested = _sweep_expand(
            data, rows, symbols, correlation_cutoff, min_n, min_slope_abs,
            should_stop, progress, chunk_size,
        )

    result = SweepResult(
        edges=tuple(edges),
        mode=mode,
        cutoff=correlation_cutoff,
        n_cell_lines=int(data.shape[1]),
        n_pairs_tested=n_tested,
    )
    if result.empty:
        logger.info(result.message)
    else:
        logger.info(f"{len(edges)} of {n_tested} gene pairs passed the thresholds")
    return result
