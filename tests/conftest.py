"""
Pytest configuration and shared fixtures.

This module provides a synthetic dependency dataset with known structure:

- 60 cell lines: Lung (0-19, sub-lineages NSCLC 0-11 / SCLC 12-19),
  Breast (20-39), Skin (40-54), unannotated (55-59)
- KRAS hotspot dosage by position i % 4: 0,1 → WT, 2 → 1 copy, 3 → 2 copies
  (30 WT, 15 one-copy, 15 two-copy)
- TP53 hotspot: i % 5 == 0 → 2 copies, i % 5 == 1 → 1 copy
- HLA-A hotspot: i % 2 == 0 → 2 copies
- Module A (MOD_A1..MOD_A4) tightly correlated, NEG_A1 anti-correlated with
  it, module B (MOD_B1..MOD_B3) independent of A
- KRAS_DEP: dependency ~1.0 stronger in KRAS-mutant lines
- CONST: constant, SPARSE: only 2 values, N01..N20: independent noise
"""

import numpy as np
import pytest

from depcorr.analysis import AnalysisSession
from depcorr.core.annotations import CellLineAnnotations
from depcorr.core.dependency_matrix import DependencyMatrix
from depcorr.io.loaders import Dataset, write_dataset

N_CELL_LINES = 60
MODULE_A = ["MOD_A1", "MOD_A2", "MOD_A3", "MOD_A4"]
MODULE_B = ["MOD_B1", "MOD_B2", "MOD_B3"]
NOISE_GENES = [f"N{i:02d}" for i in range(1, 21)]


def cell_line_ids(n: int = N_CELL_LINES) -> list:
    return [f"ACH-{i:06d}" for i in range(1, n + 1)]


def kras_dosage(i: int) -> int:
    return {0: 0, 1: 0, 2: 1, 3: 2}[i % 4]


def generate_synthetic_dependency_data(seed: int = 42) -> Dataset:
    """
    Generate a small dependency dataset with planted structure.

    Values are kept on the 0.001 grid so that a write/load round trip
    through the quantized codec reproduces them exactly.
    """
    rng = np.random.RandomState(seed)
    n = N_CELL_LINES
    cell_lines = cell_line_ids(n)

    rows = {}
    rows["KRAS"] = rng.normal(-0.3, 0.3, n)
    rows["TP53"] = rng.normal(-0.2, 0.3, n)

    pattern_a = rng.randn(n)
    for gene in MODULE_A:
        rows[gene] = -0.5 + 0.3 * (pattern_a + 0.1 * rng.randn(n))
    rows["NEG_A1"] = -0.5 - 0.3 * (pattern_a + 0.1 * rng.randn(n))

    pattern_b = rng.randn(n)
    for gene in MODULE_B:
        rows[gene] = -0.2 + 0.25 * (pattern_b + 0.1 * rng.randn(n))

    mutant = np.array([kras_dosage(i) >= 1 for i in range(n)])
    rows["KRAS_DEP"] = -0.3 + 0.15 * rng.randn(n) - 1.0 * mutant
    rows["CONST"] = np.full(n, -0.25)
    sparse = np.full(n, np.nan)
    sparse[[0, 1]] = [-0.1, -0.2]
    rows["SPARSE"] = sparse

    for gene in NOISE_GENES:
        rows[gene] = rng.normal(-0.1, 0.3, n)

    data = np.vstack(list(rows.values()))
    data = np.round(data, 3)

    # Scattered missing values
    a3 = list(rows).index("MOD_A3")
    data[a3, [5, 17, 29, 41, 53]] = np.nan
    b2 = list(rows).index("MOD_B2")
    data[b2, [2, 22, 44]] = np.nan

    matrix = DependencyMatrix(data, genes=list(rows), cell_lines=cell_lines)

    lineage = {}
    sub_lineage = {}
    for i, cl in enumerate(cell_lines):
        if i < 20:
            lineage[cl] = "Lung"
            sub_lineage[cl] = "NSCLC" if i < 12 else "SCLC"
        elif i < 40:
            lineage[cl] = "Breast"
        elif i < 55:
            lineage[cl] = "Skin"

    mutations = {
        "KRAS": {cl: kras_dosage(i) for i, cl in enumerate(cell_lines) if kras_dosage(i)},
        "TP53": {
            cl: {0: 2, 1: 1}[i % 5] for i, cl in enumerate(cell_lines) if i % 5 in (0, 1)
        },
        "HLA-A": {cl: 2 for i, cl in enumerate(cell_lines) if i % 2 == 0},
    }

    annotations = CellLineAnnotations(
        lineage=lineage,
        sub_lineage=sub_lineage,
        display_name={cl: f"LINE{i + 1}" for i, cl in enumerate(cell_lines)},
        mutations=mutations,
    )
    return Dataset(matrix=matrix, annotations=annotations, metadata={'release': 'synthetic'})


@pytest.fixture
def synthetic_dataset():
    return generate_synthetic_dependency_data()


@pytest.fixture
def dataset_dir(tmp_path, synthetic_dataset):
    """Synthetic dataset written as a bundle directory."""
    return write_dataset(tmp_path / "web_data", synthetic_dataset)


@pytest.fixture
def session(synthetic_dataset):
    return AnalysisSession(synthetic_dataset)
