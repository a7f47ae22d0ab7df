"""
Hotspot-mutation differential dependency analysis.

For one hotspot gene, the selected cell lines are partitioned by mutation
dosage:

    WT      dosage 0
    1-copy  dosage 1
    2-copy  dosage ≥ 2
    mutant  1-copy ∪ 2-copy

and every gene in the matrix is tested for a shift in dependency between
groups with Welch's unequal-variance t-test:

    t  = (mean₁ - mean₂) / sqrt(v₁/n₁ + v₂/n₂)
    df = (v₁/n₁ + v₂/n₂)² / [ (v₁/n₁)²/(n₁-1) + (v₂/n₂)²/(n₂-1) ]

with sample variances (divisor n-1) and the Welch-Satterthwaite df. Two
comparisons are made per gene: WT vs mutant (``p_mut``) and WT vs 2-copy
(``p_2``, only when the 2-copy group has at least 3 valid values).
Reported differences are ``mutant_mean - wt_mean``.

Missing-data policy:
    - Group sizes are counted per gene over non-missing values
    - A gene with fewer than ``min_n`` valid WT values or fewer than 3 valid
      mutant values is skipped; the scan continues
    - The whole scan is refused (InsufficientSamplesError) only when the
      WT or mutant *cell-line* groups have fewer than 3 members

Multiple testing:
    Benjamini-Hochberg q-values are attached for both comparisons across the
    genes actually tested (statsmodels ``multipletests``), NaN-safe.

Performance:
    Group moments are computed for all genes at once from masked column
    blocks; only the p-value is evaluated per gene.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Callable, Literal, Optional, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from tqdm import tqdm

from depcorr.core.annotations import CellLineAnnotations
from depcorr.core.dependency_matrix import DependencyMatrix
from depcorr.core.errors import InsufficientSamplesError, ValidationError, raise_if_stopped
from depcorr.core.filters import CellLineSubset
from depcorr.stats.distributions import t_two_tailed_p

__all__ = [
    'WelchResult',
    'GroupStats',
    'GeneDifferential',
    'DifferentialScan',
    'DifferentialTester',
    'GeneEffectDistribution',
    'welch_t_test',
    'fdr_correction',
    'MIN_GROUP_SIZE',
]

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 3


@dataclass(frozen=True)
class WelchResult:
    t: float
    df: float
    p: float


@dataclass(frozen=True)
class GroupStats:
    """Valid-value count, mean and sample variance (n-1) of one dosage group."""

    n: int
    mean: float
    variance: float

    @classmethod
    def of(cls, values: Sequence[float] | np.ndarray) -> GroupStats:
        values = np.asarray(values, dtype=np.float64)
        values = values[~np.isnan(values)]
        n = len(values)
        if n == 0:
            return cls(n=0, mean=float('nan'), variance=float('nan'))
        mean = float(values.mean())
        variance = float(values.var(ddof=1)) if n >= 2 else 0.0
        return cls(n=n, mean=mean, variance=variance)


def _welch_from_moments(n1: int, m1: float, v1: float, n2: int, m2: float, v2: float) -> WelchResult:
    if n1 < 2 or n2 < 2:
        return WelchResult(t=float('nan'), df=float('nan'), p=1.0)

    a = v1 / n1
    b = v2 / n2
    se = math.sqrt(a + b)
    if se == 0:
        return WelchResult(t=0.0, df=float(n1 + n2 - 2), p=1.0)

    t = (m1 - m2) / se
    df = (a + b) ** 2 / (a * a / (n1 - 1) + b * b / (n2 - 1))
    return WelchResult(t=t, df=df, p=t_two_tailed_p(t, df))


def welch_t_test(group1: Sequence[float] | np.ndarray, group2: Sequence[float] | np.ndarray) -> WelchResult:
    """
    Welch's t-test of group1 against group2 (missing values ignored).

    Returns:
        WelchResult; ``(nan, nan, 1.0)`` if either group has fewer than 2
        values, ``(0, n1+n2-2, 1.0)`` if the standard error is exactly zero
    """
    g1 = GroupStats.of(group1)
    g2 = GroupStats.of(group2)
    return _welch_from_moments(g1.n, g1.mean, g1.variance, g2.n, g2.mean, g2.variance)


def fdr_correction(
    pvalues: NDArray[np.float64],
    method: Literal["BH", "BY", "bonferroni"] = "BH",
    alpha: float = 0.05,
) -> NDArray[np.float64]:
    """
    Multiple testing correction; NaN p-values stay NaN and are not counted.

    Args:
        pvalues: Array of raw p-values.
        method: "BH" (Benjamini-Hochberg), "BY" or "bonferroni".
        alpha: Significance threshold.

    Returns:
        Array of adjusted p-values.
    """
    from statsmodels.stats.multitest import multipletests

    pvalues = np.asarray(pvalues, dtype=np.float64)
    valid_mask = ~np.isnan(pvalues)
    adj_pvals = np.full_like(pvalues, np.nan)

    if not np.any(valid_mask):
        return adj_pvals

    method_map = {"BH": "fdr_bh", "BY": "fdr_by", "bonferroni": "bonferroni"}
    _, adj_pvals[valid_mask], _, _ = multipletests(
        pvalues[valid_mask],
        alpha=alpha,
        method=method_map.get(method, method),
    )

    return adj_pvals


@dataclass(frozen=True)
class GeneDifferential:
    """
    Differential dependency of one gene between dosage groups.

    ``p_2`` is 1.0 and ``mean_2``/``diff_2`` are NaN when fewer than 3 valid
    2-copy values exist; ``q_2`` is then NaN.
    """

    gene: str
    n_wt: int
    mean_wt: float
    n_mut: int
    mean_mut: float
    diff_mut: float
    t_mut: float
    df_mut: float
    p_mut: float
    n_2: int
    mean_2: float
    diff_2: float
    p_2: float
    q_mut: float = float('nan')
    q_2: float = float('nan')

    @property
    def tested_two_copy(self) -> bool:
        return not math.isnan(self.mean_2)

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass(frozen=True)
class DifferentialScan:
    """
    All per-gene results of one hotspot scan plus cell-line group sizes.

    ``n_wt``/``n_mut``/``n_2`` count cell lines in each dosage group (before
    per-gene missing-value exclusion).
    """

    hotspot_gene: str
    results: tuple[GeneDifferential, ...]
    n_wt: int
    n_mut: int
    n_2: int
    n_skipped: int = 0
    min_n: int = 0
    description: str = "All cell lines"

    def __len__(self) -> int:
        return len(self.results)

    def significant(self, p_threshold: float) -> list[GeneDifferential]:
        """Genes with ``p_mut`` or ``p_2`` below ``p_threshold``, by ascending ``p_mut``."""
        hits = [r for r in self.results if r.p_mut < p_threshold or r.p_2 < p_threshold]
        return sorted(hits, key=lambda r: r.p_mut)

    def get(self, gene: str) -> Optional[GeneDifferential]:
        key = gene.upper()
        for r in self.results:
            if r.gene.upper() == key:
                return r
        return None

    def to_dataframe(self, results: Optional[Sequence[GeneDifferential]] = None) -> pd.DataFrame:
        rows = self.results if results is None else results
        columns = list(GeneDifferential.__dataclass_fields__)
        return pd.DataFrame([r.to_dict() for r in rows], columns=columns)


@dataclass(frozen=True)
class GeneEffectDistribution:
    """
    Per-cell-line gene effects of one gene split by hotspot dosage.

    Attributes:
        points: DataFrame with cell_line, name, lineage, gene_effect, dosage
            (0, 1 or 2 for 2+); missing gene effects are excluded
        means: dosage group ("0", "1", "2") → mean gene effect (NaN if empty)
    """

    gene: str
    hotspot_gene: str
    points: pd.DataFrame
    means: dict = field(default_factory=dict)

    def counts(self) -> dict[str, int]:
        return {
            level: int((self.points['dosage'] == int(level)).sum())
            for level in ("0", "1", "2")
        }


def _group_moments(block: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-row valid count, mean and sample variance of a genes × cells block."""
    valid = ~np.isnan(block)
    n = valid.sum(axis=1)
    filled = np.where(valid, block, 0.0)
    with np.errstate(divide='ignore', invalid='ignore'):
        mean = filled.sum(axis=1) / n
        centered = np.where(valid, block - mean[:, np.newaxis], 0.0)
        variance = (centered * centered).sum(axis=1) / (n - 1)
    variance = np.where(n >= 2, variance, 0.0)
    return n, mean, variance


class DifferentialTester:
    """
    Welch-test every gene between hotspot dosage groups.

    Args:
        matrix: Dependency matrix (read-only, shared)
        annotations: Mutation table supplying hotspot dosage

    Example:
        >>> tester = DifferentialTester(dataset.matrix, dataset.annotations)
        >>> scan = tester.scan("KRAS", min_n=20)
        >>> top = scan.significant(0.05)[:10]
    """

    def __init__(self, matrix: DependencyMatrix, annotations: CellLineAnnotations):
        self.matrix = matrix
        self.annotations = annotations

    def dosage(self, hotspot_gene: str) -> np.ndarray:
        if not self.annotations.has_hotspot(hotspot_gene):
            raise ValidationError(f"No mutation data for hotspot gene {hotspot_gene!r}")
        return self.annotations.dosage_vector(hotspot_gene, self.matrix.cell_lines)

    def partition(
        self,
        hotspot_gene: str,
        subset: Optional[CellLineSubset] = None,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Column indices of the WT, 1-copy and 2-copy groups within ``subset``."""
        if subset is None:
            subset = CellLineSubset.everything(self.matrix.n_cell_lines)
        dosage = self.dosage(hotspot_gene)[subset.indices]
        wt = subset.indices[dosage == 0]
        one = subset.indices[dosage == 1]
        two = subset.indices[dosage >= 2]
        return wt, one, two

    def scan(
        self,
        hotspot_gene: str,
        subset: Optional[CellLineSubset] = None,
        min_n: int = 20,
        should_stop: Optional[Callable[[], bool]] = None,
        progress: bool = False,
    ) -> DifferentialScan:
        """
        Test every gene for a dependency shift between dosage groups.

        Args:
            hotspot_gene: Gene whose hotspot mutation defines the groups
            subset: Cell lines to use (all if None)
            min_n: Minimum valid WT values for a gene to be tested
            should_stop: Checked once per gene; True raises AnalysisCancelled
            progress: Show a tqdm progress bar

        Raises:
            ValidationError: no mutation data for ``hotspot_gene``
            InsufficientSamplesError: WT or mutant group has < 3 cell lines
            AnalysisCancelled: ``should_stop`` returned True
        """
        wt, one, two = self.partition(hotspot_gene, subset)
        mutant = np.concatenate([one, two])
        if len(wt) < MIN_GROUP_SIZE or len(mutant) < MIN_GROUP_SIZE:
            raise InsufficientSamplesError(
                f"Not enough cell lines: WT={len(wt)}, Mutated={len(mutant)}",
                n_wt=len(wt),
                n_mut=len(mutant),
            )

        data = self.matrix.data
        n_wt, mean_wt, var_wt = _group_moments(data[:, wt])
        n_mut, mean_mut, var_mut = _group_moments(data[:, mutant])
        n_two, mean_two, var_two = _group_moments(data[:, two])

        genes = self.matrix.genes
        results = []
        n_skipped = 0
        iterator = range(self.matrix.n_genes)
        if progress:
            iterator = tqdm(iterator, desc=f"Testing {hotspot_gene} dosage groups", unit="gene")

        for g in iterator:
            raise_if_stopped(should_stop, "differential scan")
            if n_wt[g] < min_n or n_mut[g] < MIN_GROUP_SIZE:
                n_skipped += 1
                continue

            test_mut = _welch_from_moments(
                int(n_wt[g]), mean_wt[g], var_wt[g], int(n_mut[g]), mean_mut[g], var_mut[g]
            )

            mean_2 = diff_2 = float('nan')
            p_2 = 1.0
            if n_two[g] >= MIN_GROUP_SIZE:
                mean_2 = float(mean_two[g])
                diff_2 = mean_2 - float(mean_wt[g])
                p_2 = _welch_from_moments(
                    int(n_wt[g]), mean_wt[g], var_wt[g], int(n_two[g]), mean_two[g], var_two[g]
                ).p

            results.append(GeneDifferential(
                gene=genes[g],
                n_wt=int(n_wt[g]),
                mean_wt=float(mean_wt[g]),
                n_mut=int(n_mut[g]),
                mean_mut=float(mean_mut[g]),
                diff_mut=float(mean_mut[g] - mean_wt[g]),
                t_mut=float(test_mut.t),
                df_mut=float(test_mut.df),
                p_mut=float(test_mut.p),
                n_2=int(n_two[g]),
                mean_2=mean_2,
                diff_2=diff_2,
                p_2=float(p_2),
            ))

        results = self._attach_q_values(results)

        if n_skipped:
            logger.warning(
                f"Skipped {n_skipped:,} genes with < {min_n} valid WT or < {MIN_GROUP_SIZE} "
                f"valid mutant values"
            )
        logger.info(
            f"{hotspot_gene}: tested {len(results):,} genes "
            f"(WT={len(wt)}, mutant={len(mutant)}, 2-copy={len(two)})"
        )

        return DifferentialScan(
            hotspot_gene=hotspot_gene,
            results=tuple(results),
            n_wt=len(wt),
            n_mut=len(mutant),
            n_2=len(two),
            n_skipped=n_skipped,
            min_n=min_n,
            description=subset.description if subset is not None else "All cell lines",
        )

    @staticmethod
    def _attach_q_values(results: list[GeneDifferential]) -> list[GeneDifferential]:
        if not results:
            return results
        p_mut = np.array([r.p_mut for r in results])
        p_2 = np.array([r.p_2 if r.tested_two_copy else np.nan for r in results])
        q_mut = fdr_correction(p_mut)
        q_2 = fdr_correction(p_2)
        return [
            replace(r, q_mut=float(q_mut[i]), q_2=float(q_2[i]))
            for i, r in enumerate(results)
        ]

    def gene_effect_distribution(
        self,
        gene: str,
        hotspot_gene: str,
        subset: Optional[CellLineSubset] = None,
    ) -> GeneEffectDistribution:
        """Gene effects of ``gene`` per cell line, grouped by ``hotspot_gene`` dosage."""
        if subset is None:
            subset = CellLineSubset.everything(self.matrix.n_cell_lines)
        canonical = self.matrix.gene_index.canonical(gene)
        columns = subset.indices
        values = self.matrix.row_for(gene)[columns]
        dosage = np.minimum(self.dosage(hotspot_gene)[columns], 2)
        cell_lines = self.matrix.cell_lines[columns]

        keep = ~np.isnan(values)
        cell_lines = cell_lines[keep]
        points = pd.DataFrame({
            'cell_line': cell_lines,
            'name': [self.annotations.name_of(cl) for cl in cell_lines],
            'lineage': [self.annotations.lineage_of(cl) for cl in cell_lines],
            'gene_effect': values[keep],
            'dosage': dosage[keep],
        })

        means = {}
        for level in (0, 1, 2):
            group = points.loc[points['dosage'] == level, 'gene_effect']
            means[str(level)] = float(group.mean()) if len(group) else float('nan')

        return GeneEffectDistribution(
            gene=canonical,
            hotspot_gene=hotspot_gene,
            points=points,
            means=means,
        )
