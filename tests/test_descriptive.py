"""
Tests for per-gene descriptive statistics.
"""

import numpy as np
import pytest

from depcorr.core.filters import CellLineSubset, FilterResolver
from depcorr.stats.descriptive import is_filtered, mean_sd, summaries_to_frame, summarize_genes


class TestMeanSd:

    def test_population_sd(self):
        mean, sd, n = mean_sd(np.array([1.0, 2.0, 3.0, 4.0]))
        assert mean == pytest.approx(2.5)
        assert sd == pytest.approx(np.sqrt(1.25))
        assert n == 4

    def test_ignores_missing(self):
        mean, sd, n = mean_sd(np.array([np.nan, 2.0, 4.0]))
        assert (mean, sd, n) == (3.0, 1.0, 2)

    def test_all_missing(self):
        mean, sd, n = mean_sd(np.array([np.nan, np.nan]))
        assert np.isnan(mean) and np.isnan(sd)
        assert n == 0


class TestSummarizeGenes:

    @pytest.fixture
    def lung(self, synthetic_dataset):
        resolver = FilterResolver(synthetic_dataset.matrix.cell_lines, synthetic_dataset.annotations)
        return resolver.resolve(lineage="Lung")

    def test_all_and_filtered(self, synthetic_dataset, lung):
        matrix = synthetic_dataset.matrix
        (summary,) = summarize_genes(matrix, ["MOD_A3"], lung, gene_list=["mod_a3"], clusters={"MOD_A3": 2})

        row = matrix.row_for("MOD_A3")
        assert summary.n_all == 55
        assert summary.n_filtered == 18
        assert summary.mean_all == round(float(np.nanmean(row)), 2)
        assert summary.sd_all == round(float(np.nanstd(row)), 2)
        assert summary.mean_filtered == round(float(np.nanmean(row[:20])), 2)
        assert summary.cluster == 2
        assert summary.in_gene_list

    def test_constant_gene(self, synthetic_dataset):
        everything = CellLineSubset.everything(synthetic_dataset.matrix.n_cell_lines)
        (summary,) = summarize_genes(synthetic_dataset.matrix, ["CONST"], everything)
        assert summary.mean_all == -0.25
        assert summary.sd_all == 0.0
        assert not summary.in_gene_list
        assert summary.cluster == 0

    def test_empty_subset_gives_nan(self, synthetic_dataset):
        resolver = FilterResolver(synthetic_dataset.matrix.cell_lines, synthetic_dataset.annotations)
        (summary,) = summarize_genes(synthetic_dataset.matrix, ["KRAS"], resolver.resolve(lineage="Bone"))
        assert np.isnan(summary.mean_filtered)
        assert summary.n_filtered == 0

    def test_frame_columns(self, synthetic_dataset, lung):
        frame = summaries_to_frame(summarize_genes(synthetic_dataset.matrix, ["KRAS", "TP53"], lung))
        assert list(frame["gene"]) == ["KRAS", "TP53"]
        assert "sd_filtered" in frame.columns

    def test_is_filtered(self, lung):
        assert is_filtered(lung, 60)
        assert not is_filtered(CellLineSubset.everything(60), 60)
