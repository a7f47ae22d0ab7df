"""
Tests for cell-line filter resolution.
"""

import numpy as np
import pytest

from depcorr.core.errors import ValidationError
from depcorr.core.filters import CellLineSubset, DosageLevel, FilterResolver


@pytest.fixture
def resolver(synthetic_dataset):
    return FilterResolver(synthetic_dataset.matrix.cell_lines, synthetic_dataset.annotations)


class TestDosageLevel:
    """Parsing and masking of dosage constraints."""

    @pytest.mark.parametrize("text,expected", [
        (None, DosageLevel.ANY),
        ("all", DosageLevel.ANY),
        ("0", DosageLevel.WILD_TYPE),
        ("1", DosageLevel.ONE_COPY),
        ("2", DosageLevel.TWO_COPY),
        ("1+2", DosageLevel.MUTANT),
        ("mutant", DosageLevel.MUTANT),
        (DosageLevel.TWO_COPY, DosageLevel.TWO_COPY),
    ])
    def test_parse(self, text, expected):
        assert DosageLevel.parse(text) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValidationError, match="Unknown dosage level"):
            DosageLevel.parse("3")

    def test_two_copy_includes_higher(self):
        dosage = np.array([0, 1, 2, 3])
        assert DosageLevel.TWO_COPY.mask(dosage).tolist() == [False, False, True, True]
        assert DosageLevel.MUTANT.mask(dosage).tolist() == [False, True, True, True]


class TestFilterResolver:
    """Constraint resolution against the synthetic annotations."""

    def test_no_constraints_is_everything(self, resolver):
        subset = resolver.resolve()
        assert len(subset) == 60
        assert not subset.filtered
        assert subset.description == "All cell lines"

    def test_dosage_without_hotspot_is_not_a_constraint(self, resolver):
        subset = resolver.resolve(dosage="1+2")
        assert not subset.filtered
        assert len(subset) == 60

    def test_hotspot_with_any_dosage_is_not_a_constraint(self, resolver):
        assert not resolver.resolve(hotspot_gene="KRAS").filtered

    def test_lineage(self, resolver):
        subset = resolver.resolve(lineage="Lung")
        assert subset.filtered
        assert subset.indices.tolist() == list(range(20))
        assert subset.description == "Lineage: Lung"

    def test_sub_lineage(self, resolver):
        subset = resolver.resolve(lineage="Lung", sub_lineage="SCLC")
        assert subset.indices.tolist() == list(range(12, 20))

    @pytest.mark.parametrize("dosage,expected", [
        ("0", 30),
        ("1", 15),
        ("2", 15),
        ("1+2", 30),
    ])
    def test_hotspot_dosage(self, resolver, dosage, expected):
        subset = resolver.resolve(hotspot_gene="KRAS", dosage=dosage)
        assert len(subset) == expected
        assert subset.filtered

    def test_constraints_are_anded(self, resolver):
        subset = resolver.resolve(lineage="Skin", hotspot_gene="KRAS", dosage="2")
        assert subset.indices.tolist() == [43, 47, 51]
        assert subset.description == "Lineage: Skin | KRAS: 2"

    def test_indices_sorted(self, resolver):
        indices = resolver.resolve(hotspot_gene="TP53", dosage="1+2").indices
        assert np.all(np.diff(indices) > 0)

    def test_no_match_is_empty_not_everything(self, resolver):
        subset = resolver.resolve(lineage="Bone")
        assert subset.filtered
        assert subset.is_empty
        assert len(subset) == 0

    def test_unknown_hotspot_raises(self, resolver):
        with pytest.raises(ValidationError, match="No mutation data"):
            resolver.resolve(hotspot_gene="BRAF", dosage="1+2")


class TestFilterCounts:
    """Counts shown next to filter choices."""

    def test_lineage_counts_exclude_unannotated(self, resolver):
        assert resolver.lineage_counts() == {"Breast": 20, "Lung": 20, "Skin": 15}

    def test_sub_lineage_counts(self, resolver):
        assert resolver.sub_lineage_counts("Lung") == {"NSCLC": 12, "SCLC": 8}
        assert resolver.sub_lineage_counts("Breast") == {}

    def test_dosage_counts(self, resolver):
        assert resolver.dosage_counts("KRAS") == {"all": 60, "0": 30, "1": 15, "2": 15, "1+2": 30}
        assert resolver.dosage_counts("KRAS", lineage="Lung") == {
            "all": 20, "0": 10, "1": 5, "2": 5, "1+2": 10,
        }

    def test_mutated_counts(self, resolver):
        assert resolver.mutated_counts() == {"HLA-A": 30, "KRAS": 30, "TP53": 24}


class TestCellLineSubset:

    def test_everything(self):
        subset = CellLineSubset.everything(5)
        assert subset.indices.tolist() == [0, 1, 2, 3, 4]
        assert not subset.narrows
        assert not subset.filtered
