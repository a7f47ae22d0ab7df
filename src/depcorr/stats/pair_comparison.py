"""
Inspection of a single gene pair: per-cell-line points and stratified fits.

Once a correlation edge looks interesting, the pair is broken down several
ways to see whether the relationship is driven by one lineage or by a
hotspot mutation:

- ``by_lineage``: r, slope and moments per lineage
- ``by_dosage``: r, slope, mean and median per dosage group of one hotspot
- ``lineage_mutation_comparison``: within each lineage, WT (dosage 0) vs
  2+ copies (dosage 1 excluded)
- ``hotspot_comparison``: the same WT vs 2+ contrast for every hotspot gene

Correlation differences are tested with Fisher's z transform:

    z_i   = atanh(r_i)
    z     = (z_mut - z_wt) / sqrt(1/(n_wt - 3) + 1/(n_mut - 3))
    p     = 2 · (1 - Φ(|z|))

The slope-difference p-value reported next to it is ``min(1, 2·p_r)``, a
rough proxy rather than a test of slopes; rows carry
``slope_p_is_heuristic=True`` so downstream code can label it.

Degenerate inputs never raise: a group of exactly 3 (n-3 = 0) has infinite
standard error, so z = 0 and p = 1; |r| = 1 yields an infinite z and p of
0 or NaN.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
import pandas as pd

from depcorr.core.annotations import EXCLUDED_HOTSPOT_GENES, CellLineAnnotations
from depcorr.core.dependency_matrix import DependencyMatrix
from depcorr.core.filters import CellLineSubset
from depcorr.stats.correlation import pearson_with_slope
from depcorr.stats.distributions import normal_cdf

__all__ = [
    'pair_points',
    'by_lineage',
    'by_dosage',
    'fisher_z_difference',
    'lineage_mutation_comparison',
    'hotspot_comparison',
    'MIN_POINTS',
]

logger = logging.getLogger(__name__)

MIN_POINTS = 3
UNKNOWN_LINEAGE = "Unknown"

_COMPARISON_COLUMNS = [
    'n_wt', 'r_wt', 'slope_wt', 'n_mut', 'r_mut', 'slope_mut',
    'delta_r', 'p_delta_r', 'delta_slope', 'p_delta_slope', 'slope_p_is_heuristic',
]


def pair_points(
    matrix: DependencyMatrix,
    annotations: CellLineAnnotations,
    x_gene: str,
    y_gene: str,
    subset: Optional[CellLineSubset] = None,
    hotspot_gene: Optional[str] = None,
) -> pd.DataFrame:
    """
    Cell lines where both genes have a value.

    Returns:
        DataFrame with cell_line, name, lineage, x, y and, when
        ``hotspot_gene`` is given, its integer ``dosage``
    """
    columns = (
        subset.indices if subset is not None else np.arange(matrix.n_cell_lines)
    )
    x = matrix.row_for(x_gene)[columns]
    y = matrix.row_for(y_gene)[columns]
    keep = ~(np.isnan(x) | np.isnan(y))
    cell_lines = matrix.cell_lines[columns][keep]

    points = pd.DataFrame({
        'cell_line': cell_lines,
        'name': [annotations.name_of(cl) for cl in cell_lines],
        'lineage': [annotations.lineage_of(cl) for cl in cell_lines],
        'x': x[keep],
        'y': y[keep],
    })
    if hotspot_gene:
        points['dosage'] = annotations.dosage_vector(hotspot_gene, cell_lines)

    logger.debug(f"{x_gene} vs {y_gene}: {len(points)} paired cell lines")
    return points


def by_lineage(points: pd.DataFrame) -> pd.DataFrame:
    """
    Per-lineage fit for lineages with at least 3 points, by r descending.

    SDs use the population divisor n. Unannotated cell lines are pooled as
    ``"Unknown"``.
    """
    lineage = points['lineage'].replace('', UNKNOWN_LINEAGE)
    rows = []
    for name, group in points.groupby(lineage, sort=True):
        if len(group) < MIN_POINTS:
            continue
        fit = pearson_with_slope(group['x'].to_numpy(), group['y'].to_numpy())
        rows.append({
            'lineage': name,
            'n': len(group),
            'correlation': fit.correlation,
            'slope': fit.slope,
            'mean_x': group['x'].mean(),
            'sd_x': group['x'].std(ddof=0),
            'mean_y': group['y'].mean(),
            'sd_y': group['y'].std(ddof=0),
        })

    columns = ['lineage', 'n', 'correlation', 'slope', 'mean_x', 'sd_x', 'mean_y', 'sd_y']
    table = pd.DataFrame(rows, columns=columns)
    return table.sort_values('correlation', ascending=False, kind='stable').reset_index(drop=True)


def by_dosage(points: pd.DataFrame) -> pd.DataFrame:
    """Fit per hotspot dosage group (WT, 1, 2+) and over all points."""
    if 'dosage' not in points:
        raise ValueError("points carry no dosage column; pass hotspot_gene to pair_points")

    groups = [
        ('0', points[points['dosage'] == 0]),
        ('1', points[points['dosage'] == 1]),
        ('2', points[points['dosage'] >= 2]),
        ('all', points),
    ]
    rows = []
    for level, group in groups:
        fit = pearson_with_slope(group['x'].to_numpy(), group['y'].to_numpy())
        rows.append({
            'dosage': level,
            'n': len(group),
            'correlation': fit.correlation,
            'slope': fit.slope,
            'mean_x': group['x'].mean() if len(group) else float('nan'),
            'median_x': group['x'].median() if len(group) else float('nan'),
            'mean_y': group['y'].mean() if len(group) else float('nan'),
            'median_y': group['y'].median() if len(group) else float('nan'),
        })
    return pd.DataFrame(rows)


def fisher_z_difference(r_wt: float, n_wt: int, r_mut: float, n_mut: int) -> tuple[float, float]:
    """
    Fisher z statistic and two-tailed p for ``r_mut - r_wt``.

    A group of exactly 3 has an infinite standard error, giving z = 0 and
    p = 1. Returns NaN for groups smaller than 3; infinities from |r| = 1
    are propagated.
    """
    if n_wt < 3 or n_mut < 3:
        return float('nan'), float('nan')
    with np.errstate(divide='ignore', invalid='ignore'):
        z_wt = np.arctanh(np.float64(r_wt))
        z_mut = np.arctanh(np.float64(r_mut))
        variance = np.float64(1.0) / (n_wt - 3) + np.float64(1.0) / (n_mut - 3)
        z = float((z_mut - z_wt) / np.sqrt(variance))
    if math.isnan(z):
        return z, float('nan')
    return z, 2.0 * (1.0 - normal_cdf(abs(z)))


def _compare(wt: pd.DataFrame, mut: pd.DataFrame) -> dict:
    wt_fit = pearson_with_slope(wt['x'].to_numpy(), wt['y'].to_numpy())
    mut_fit = pearson_with_slope(mut['x'].to_numpy(), mut['y'].to_numpy())
    _, p_r = fisher_z_difference(wt_fit.correlation, len(wt), mut_fit.correlation, len(mut))
    return {
        'n_wt': len(wt),
        'r_wt': wt_fit.correlation,
        'slope_wt': wt_fit.slope,
        'n_mut': len(mut),
        'r_mut': mut_fit.correlation,
        'slope_mut': mut_fit.slope,
        'delta_r': mut_fit.correlation - wt_fit.correlation,
        'p_delta_r': p_r,
        'delta_slope': mut_fit.slope - wt_fit.slope,
        'p_delta_slope': min(1.0, 2.0 * p_r) if not math.isnan(p_r) else float('nan'),
        'slope_p_is_heuristic': True,
    }


def _sorted_by_p(rows: list[dict], key_column: str) -> pd.DataFrame:
    table = pd.DataFrame(rows, columns=[key_column] + _COMPARISON_COLUMNS)
    return table.sort_values('p_delta_r', kind='stable', na_position='last').reset_index(drop=True)


def lineage_mutation_comparison(points: pd.DataFrame) -> pd.DataFrame:
    """
    Within each lineage, WT (dosage 0) vs 2+ copies; 1-copy lines excluded.

    Lineages need at least 3 points in both groups. Sorted by ``p_delta_r``.
    """
    if 'dosage' not in points:
        raise ValueError("points carry no dosage column; pass hotspot_gene to pair_points")

    rows = []
    annotated = points[points['lineage'] != '']
    for lineage, group in annotated.groupby('lineage', sort=True):
        wt = group[group['dosage'] == 0]
        mut = group[group['dosage'] >= 2]
        if len(wt) < MIN_POINTS or len(mut) < MIN_POINTS:
            continue
        rows.append({'lineage': lineage, **_compare(wt, mut)})
    return _sorted_by_p(rows, 'lineage')


def hotspot_comparison(points: pd.DataFrame, annotations: CellLineAnnotations) -> pd.DataFrame:
    """
    WT vs 2+ comparison of the pair for every hotspot gene.

    Highly polymorphic HLA loci are excluded. Sorted by ``p_delta_r``.
    """
    rows = []
    cell_lines = points['cell_line'].tolist()
    for gene in annotations.hotspot_genes:
        if gene in EXCLUDED_HOTSPOT_GENES:
            continue
        dosage = annotations.dosage_vector(gene, cell_lines)
        wt = points[dosage == 0]
        mut = points[dosage >= 2]
        if len(wt) < MIN_POINTS or len(mut) < MIN_POINTS:
            continue
        rows.append({'hotspot_gene': gene, **_compare(wt, mut)})
    return _sorted_by_p(rows, 'hotspot_gene')
