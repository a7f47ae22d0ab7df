"""
CSV/JSON/GraphML writers for analysis results.

Each analysis writes a small directory of plain files that a rendering layer
(or a spreadsheet) can pick up directly:

    correlate     correlations.csv, genes.csv, network.graphml, summary.json
    differential  differential.csv (significant), differential_all.csv, summary.json
    inspect       points.csv, by_lineage.csv, by_dosage.csv,
                  lineage_comparison.csv, hotspot_comparison.csv

CSVs are written through pandas; JSON summaries go through the atomic
writer so a crashed run never leaves a truncated summary behind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

import pandas as pd

from depcorr.analysis import CorrelationAnalysis, DifferentialAnalysis
from depcorr.network.graph import to_networkx, write_graphml
from depcorr.utils.fileio import atomic_write_json, atomic_write_text

__all__ = [
    'write_frame',
    'write_correlation_results',
    'write_differential_results',
    'write_inspection_results',
]

logger = logging.getLogger(__name__)


def write_frame(df: pd.DataFrame, path: Path, float_format: str = '%.6g') -> Path:
    """Write a DataFrame as CSV without its index."""
    path = Path(path)
    atomic_write_text(path, df.to_csv(index=False, float_format=float_format))
    logger.debug(f"Wrote {len(df)} rows to {path}")
    return path


def write_correlation_results(result: CorrelationAnalysis, output_dir: Path) -> dict[str, Path]:
    """
    Write a correlation analysis.

    The GraphML network is skipped when no edge survived.

    Returns:
        Mapping of output name → path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        'correlations': write_frame(result.edges_frame(), output_dir / "correlations.csv"),
        'genes': write_frame(result.genes_frame(), output_dir / "genes.csv"),
    }
    if not result.empty:
        G = to_networkx(result.edges, result.genes)
        paths['network'] = write_graphml(G, output_dir / "network.graphml")

    summary_path = output_dir / "summary.json"
    atomic_write_json(summary_path, result.summary())
    paths['summary'] = summary_path

    logger.info(f"Results written to {output_dir}")
    return paths


def write_differential_results(result: DifferentialAnalysis, output_dir: Path) -> dict[str, Path]:
    """Write significant and full differential tables plus a summary."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    scan = result.scan
    paths = {
        'significant': write_frame(
            scan.to_dataframe(result.significant), output_dir / "differential.csv"
        ),
        'all': write_frame(scan.to_dataframe(), output_dir / "differential_all.csv"),
    }
    summary_path = output_dir / "summary.json"
    atomic_write_json(summary_path, result.summary())
    paths['summary'] = summary_path

    logger.info(f"Results written to {output_dir}")
    return paths


def write_inspection_results(tables: Mapping[str, pd.DataFrame], output_dir: Path) -> dict[str, Path]:
    """Write each inspection table as ``{name}.csv``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        name: write_frame(df, output_dir / f"{name}.csv")
        for name, df in tables.items()
    }
    logger.info(f"Results written to {output_dir}")
    return paths
