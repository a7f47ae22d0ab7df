"""
Per-gene descriptive statistics for correlation results.

For every gene in a cluster, mean and standard deviation of its dependency
scores are reported twice: over the whole cell-line population and over the
filtered subset the run used. SD uses the population divisor n, and reported
values are rounded to 2 decimals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from depcorr.core.dependency_matrix import DependencyMatrix
from depcorr.core.filters import CellLineSubset

__all__ = ['GeneSummary', 'summarize_genes', 'summaries_to_frame', 'mean_sd', 'is_filtered']

logger = logging.getLogger(__name__)

REPORT_DECIMALS = 2


@dataclass(frozen=True)
class GeneSummary:
    gene: str
    cluster: int
    mean_all: float
    sd_all: float
    n_all: int
    mean_filtered: float
    sd_filtered: float
    n_filtered: int
    in_gene_list: bool

    def to_dict(self) -> dict:
        return {
            'gene': self.gene,
            'cluster': self.cluster,
            'mean_all': self.mean_all,
            'sd_all': self.sd_all,
            'n_all': self.n_all,
            'mean_filtered': self.mean_filtered,
            'sd_filtered': self.sd_filtered,
            'n_filtered': self.n_filtered,
            'in_gene_list': self.in_gene_list,
        }


def mean_sd(values: np.ndarray) -> tuple[float, float, int]:
    """Mean, population SD and count of the non-missing values (NaN if none)."""
    values = np.asarray(values, dtype=np.float64)
    valid = values[~np.isnan(values)]
    if len(valid) == 0:
        return float('nan'), float('nan'), 0
    return float(valid.mean()), float(valid.std(ddof=0)), len(valid)


def is_filtered(subset: CellLineSubset, n_cell_lines: int) -> bool:
    """True when the subset is strictly smaller than the full population."""
    return len(subset) < n_cell_lines


def _round(value: float) -> float:
    return round(value, REPORT_DECIMALS) if np.isfinite(value) else float('nan')


def summarize_genes(
    matrix: DependencyMatrix,
    genes: Iterable[str],
    subset: CellLineSubset,
    gene_list: Iterable[str] = (),
    clusters: Optional[Mapping[str, int]] = None,
) -> list[GeneSummary]:
    """
    Descriptive statistics for ``genes`` in the order given.

    Args:
        matrix: Dependency matrix
        genes: Genes to summarize (typically cluster members)
        subset: Cell lines used by the run
        gene_list: The user's query genes (sets ``in_gene_list``)
        clusters: gene → cluster label (0 if absent)
    """
    query = {g.upper() for g in gene_list}
    clusters = clusters or {}

    summaries = []
    for gene in genes:
        row = matrix.row_for(gene)
        mean_all, sd_all, n_all = mean_sd(row)
        mean_f, sd_f, n_f = mean_sd(row[subset.indices])
        summaries.append(GeneSummary(
            gene=gene,
            cluster=int(clusters.get(gene, 0)),
            mean_all=_round(mean_all),
            sd_all=_round(sd_all),
            n_all=n_all,
            mean_filtered=_round(mean_f),
            sd_filtered=_round(sd_f),
            n_filtered=n_f,
            in_gene_list=gene.upper() in query,
        ))

    logger.debug(f"Summarized {len(summaries)} genes over {len(subset)} cell lines")
    return summaries


def summaries_to_frame(summaries: Iterable[GeneSummary]) -> pd.DataFrame:
    columns = list(GeneSummary.__dataclass_fields__)
    return pd.DataFrame([s.to_dict() for s in summaries], columns=columns)
