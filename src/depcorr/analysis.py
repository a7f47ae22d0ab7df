"""
Analysis session: validate a request, run it, and assemble the result.

An ``AnalysisSession`` wraps one loaded ``Dataset`` and is created once per
process. Every call to :meth:`AnalysisSession.run` allocates its own working
state and only reads the shared matrix, so concurrent requests need no locks.

Request flow:

    AnalysisRequest
        → gene symbols resolved case-insensitively (unknown symbols dropped)
        → cell-line filters resolved to a CellLineSubset
        → correlation sweep → clusters → per-gene summaries
          or differential scan → significant genes
        → CorrelationAnalysis / DifferentialAnalysis

Example:
    >>> session = AnalysisSession(load_dataset(Path("web_data")))
    >>> result = session.run(AnalysisRequest(genes=["KRAS", "NRAS", "BRAF"],
    ...                                      mode="within-list", correlation_cutoff=0.3))
    >>> result.message or f"{len(result.edges)} edges"
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import pandas as pd

from depcorr.core.errors import AnalysisCancelled, ValidationError
from depcorr.core.filters import CellLineSubset, DosageLevel, FilterResolver
from depcorr.io.loaders import Dataset
from depcorr.network.clusters import assign_clusters
from depcorr.stats.correlation import CorrelationEdge, SweepMode, sweep
from depcorr.stats.descriptive import GeneSummary, is_filtered, summaries_to_frame, summarize_genes
from depcorr.stats.differential import DifferentialScan, DifferentialTester, GeneDifferential

__all__ = [
    'AnalysisRequest',
    'AnalysisSession',
    'CorrelationAnalysis',
    'DifferentialAnalysis',
    'Deadline',
    'MIN_CELL_LINES',
    'DIFFERENTIAL_MODE',
]

logger = logging.getLogger(__name__)

# Fewest cell lines a filtered run may use
MIN_CELL_LINES = 10

DIFFERENTIAL_MODE = "differential"
MODES = SweepMode.CHOICES + (DIFFERENTIAL_MODE,)


class Deadline:
    """
    Wall-clock limit usable as a ``should_stop`` callable.

    Calling the instance returns True once ``seconds`` have elapsed; with
    ``seconds=None`` it never expires.
    """

    def __init__(self, seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._start = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._start

    def expired(self) -> bool:
        return self.seconds is not None and self.elapsed > self.seconds

    def __call__(self) -> bool:
        return self.expired()


@dataclass
class AnalysisRequest:
    """
    One analysis as submitted by a caller.

    ``genes`` is ignored in differential mode. ``filter_hotspot_gene`` and
    ``filter_dosage`` narrow the cell lines; ``hotspot_gene`` defines the
    groups of a differential scan.
    """

    genes: Sequence[str] = ()
    mode: str = SweepMode.WITHIN_LIST
    correlation_cutoff: float = 0.5
    min_n: int = 50
    min_slope_abs: float = 0.0
    lineage: Optional[str] = None
    sub_lineage: Optional[str] = None
    filter_hotspot_gene: Optional[str] = None
    filter_dosage: DosageLevel | str = DosageLevel.ANY
    hotspot_gene: Optional[str] = None
    p_threshold: float = 0.05
    timeout: Optional[float] = None


@dataclass(frozen=True)
class CorrelationAnalysis:
    """
    Result of a within-list or expand run.

    ``edges`` are deduplicated and carry cluster labels; ``genes`` holds the
    descriptive statistics of every gene in a cluster. An empty run has no
    edges and a ``message`` naming the cutoff.
    """

    mode: str
    gene_list: tuple[str, ...]
    edges: tuple[CorrelationEdge, ...]
    genes: tuple[GeneSummary, ...]
    cutoff: float
    n_cell_lines: int
    is_filtered: bool
    filter_description: str = "All cell lines"
    unknown_genes: tuple[str, ...] = ()
    message: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def empty(self) -> bool:
        return len(self.edges) == 0

    @property
    def n_clusters(self) -> int:
        return len({g.cluster for g in self.genes})

    def edges_frame(self) -> pd.DataFrame:
        columns = ['gene_a', 'gene_b', 'correlation', 'slope', 'n', 'cluster']
        return pd.DataFrame([e.to_dict() for e in self.edges], columns=columns)

    def genes_frame(self) -> pd.DataFrame:
        return summaries_to_frame(self.genes)

    def summary(self) -> dict:
        return {
            'mode': self.mode,
            'gene_list': list(self.gene_list),
            'unknown_genes': list(self.unknown_genes),
            'cutoff': self.cutoff,
            'n_cell_lines': self.n_cell_lines,
            'is_filtered': self.is_filtered,
            'filter': self.filter_description,
            'n_edges': len(self.edges),
            'n_genes': len(self.genes),
            'n_clusters': self.n_clusters,
            'message': self.message,
            'elapsed_seconds': round(self.elapsed_seconds, 3),
        }


@dataclass(frozen=True)
class DifferentialAnalysis:
    """Result of a differential run: significant genes plus the full scan."""

    scan: DifferentialScan
    significant: tuple[GeneDifferential, ...]
    p_threshold: float
    n_cell_lines: int
    is_filtered: bool
    filter_description: str = "All cell lines"
    elapsed_seconds: float = 0.0

    @property
    def hotspot_gene(self) -> str:
        return self.scan.hotspot_gene

    @property
    def n_wt(self) -> int:
        return self.scan.n_wt

    @property
    def n_mut(self) -> int:
        return self.scan.n_mut

    @property
    def n_2(self) -> int:
        return self.scan.n_2

    @property
    def all_results(self) -> tuple[GeneDifferential, ...]:
        return self.scan.results

    def summary(self) -> dict:
        return {
            'mode': DIFFERENTIAL_MODE,
            'hotspot_gene': self.hotspot_gene,
            'p_threshold': self.p_threshold,
            'min_n': self.scan.min_n,
            'n_cell_lines': self.n_cell_lines,
            'is_filtered': self.is_filtered,
            'filter': self.filter_description,
            'n_wt': self.n_wt,
            'n_mut': self.n_mut,
            'n_2': self.n_2,
            'n_tested': len(self.scan),
            'n_skipped': self.scan.n_skipped,
            'n_significant': len(self.significant),
            'elapsed_seconds': round(self.elapsed_seconds, 3),
        }


def _check_thresholds(request: AnalysisRequest) -> None:
    cutoff = request.correlation_cutoff
    if cutoff is None or math.isnan(cutoff) or cutoff <= 0:
        raise ValidationError(f"correlation_cutoff must be > 0, got {cutoff}")
    if request.min_n < 0:
        raise ValidationError(f"min_n must be >= 0, got {request.min_n}")
    if request.min_slope_abs < 0 or math.isnan(request.min_slope_abs):
        raise ValidationError(f"min_slope_abs must be >= 0, got {request.min_slope_abs}")
    if not (0 < request.p_threshold <= 1):
        raise ValidationError(f"p_threshold must be in (0, 1], got {request.p_threshold}")
    if request.timeout is not None and request.timeout <= 0:
        raise ValidationError(f"timeout must be > 0 seconds, got {request.timeout}")


class AnalysisSession:
    """
    Shared, read-only handle over a loaded dataset.

    Args:
        dataset: Matrix and annotations from :func:`depcorr.io.loaders.load_dataset`
        progress: Show tqdm progress bars during sweeps and scans
    """

    def __init__(self, dataset: Dataset, progress: bool = False):
        self.dataset = dataset
        self.matrix = dataset.matrix
        self.annotations = dataset.annotations
        self.resolver = FilterResolver(self.matrix.cell_lines, self.annotations)
        self.tester = DifferentialTester(self.matrix, self.annotations)
        self.progress = progress

    def resolve_genes(self, genes: Sequence[str]) -> tuple[list[str], list[str]]:
        """
        Map symbols to their stored spelling, case-insensitively.

        Returns:
            (known genes in first-seen order without duplicates, unknown symbols)
        """
        known: list[str] = []
        unknown: list[str] = []
        for raw in genes:
            symbol = str(raw).strip()
            if not symbol:
                continue
            if symbol in self.matrix.gene_index:
                canonical = self.matrix.gene_index.canonical(symbol)
                if canonical not in known:
                    known.append(canonical)
            elif symbol not in unknown:
                unknown.append(symbol)
        if unknown:
            logger.warning(f"Ignoring {len(unknown)} genes not in the dependency matrix: {', '.join(unknown)}")
        return known, unknown

    def resolve_subset(self, request: AnalysisRequest) -> CellLineSubset:
        subset = self.resolver.resolve(
            lineage=request.lineage,
            sub_lineage=request.sub_lineage,
            hotspot_gene=request.filter_hotspot_gene,
            dosage=request.filter_dosage,
        )
        if len(subset) < MIN_CELL_LINES:
            raise ValidationError(
                f"Too few cell lines match the filter ({len(subset)} < {MIN_CELL_LINES}): "
                f"{subset.description}"
            )
        return subset

    def run(
        self,
        request: AnalysisRequest,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> CorrelationAnalysis | DifferentialAnalysis:
        """
        Validate and execute one request.

        Args:
            request: What to compute
            should_stop: Extra cancellation callable, checked together with
                the request's timeout

        Raises:
            ValidationError: request rejected before computation
            InsufficientSamplesError: differential groups too small
            AnalysisCancelled: cancelled or timed out
        """
        if request.mode not in MODES:
            raise ValidationError(f"Unknown mode {request.mode!r} (choose from {', '.join(MODES)})")
        _check_thresholds(request)

        deadline = Deadline(request.timeout)

        def stop() -> bool:
            if deadline.expired():
                raise AnalysisCancelled(f"Analysis exceeded timeout of {request.timeout}s")
            return should_stop is not None and bool(should_stop())

        if request.mode == DIFFERENTIAL_MODE:
            return self._run_differential(request, stop, deadline)
        return self._run_correlation(request, stop, deadline)

    def _run_correlation(
        self,
        request: AnalysisRequest,
        stop: Callable[[], bool],
        deadline: Deadline,
    ) -> CorrelationAnalysis:
        genes, unknown = self.resolve_genes(request.genes)
        if not genes:
            raise ValidationError("Please enter at least one valid gene")
        if request.mode == SweepMode.WITHIN_LIST and len(genes) < 2:
            raise ValidationError("Within-list mode requires at least 2 genes")

        subset = self.resolve_subset(request)
        logger.info(
            f"Correlating {len(genes)} genes [{request.mode}] over {len(subset)} cell lines "
            f"({subset.description})"
        )

        result = sweep(
            self.matrix,
            genes,
            mode=request.mode,
            subset=subset,
            correlation_cutoff=request.correlation_cutoff,
            min_n=request.min_n,
            min_slope_abs=request.min_slope_abs,
            should_stop=stop,
            progress=self.progress,
        )

        filtered = is_filtered(subset, self.matrix.n_cell_lines)
        if result.empty:
            return CorrelationAnalysis(
                mode=request.mode,
                gene_list=tuple(genes),
                edges=(),
                genes=(),
                cutoff=request.correlation_cutoff,
                n_cell_lines=len(subset),
                is_filtered=filtered,
                filter_description=subset.description,
                unknown_genes=tuple(unknown),
                message=result.message,
                elapsed_seconds=deadline.elapsed,
            )

        # Undirected: (A, B) and (B, A) are one edge
        seen = set()
        edges = []
        for edge in result.edges:
            if edge.key not in seen:
                seen.add(edge.key)
                edges.append(edge)

        clusters = assign_clusters(edges)
        summaries = summarize_genes(
            self.matrix,
            clusters.genes,
            subset,
            gene_list=genes,
            clusters=clusters.labels,
        )
        logger.info(
            f"{len(clusters.edges)} correlations, {len(clusters.genes)} genes in "
            f"{clusters.n_clusters} clusters"
        )

        return CorrelationAnalysis(
            mode=request.mode,
            gene_list=tuple(genes),
            edges=clusters.edges,
            genes=tuple(summaries),
            cutoff=request.correlation_cutoff,
            n_cell_lines=len(subset),
            is_filtered=filtered,
            filter_description=subset.description,
            unknown_genes=tuple(unknown),
            elapsed_seconds=deadline.elapsed,
        )

    def _run_differential(
        self,
        request: AnalysisRequest,
        stop: Callable[[], bool],
        deadline: Deadline,
    ) -> DifferentialAnalysis:
        if not request.hotspot_gene:
            raise ValidationError("Please select a hotspot mutation")
        if not self.annotations.has_hotspot(request.hotspot_gene):
            raise ValidationError(f"No mutation data for hotspot gene {request.hotspot_gene!r}")

        subset = self.resolve_subset(request)
        scan = self.tester.scan(
            request.hotspot_gene,
            subset=subset,
            min_n=request.min_n,
            should_stop=stop,
            progress=self.progress,
        )
        significant = scan.significant(request.p_threshold)
        logger.info(
            f"Mutation analysis complete: {len(significant)} genes with p < {request.p_threshold}"
        )

        return DifferentialAnalysis(
            scan=scan,
            significant=tuple(significant),
            p_threshold=request.p_threshold,
            n_cell_lines=len(subset),
            is_filtered=is_filtered(subset, self.matrix.n_cell_lines),
            filter_description=subset.description,
            elapsed_seconds=deadline.elapsed,
        )
