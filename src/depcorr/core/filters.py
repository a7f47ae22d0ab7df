"""
Cell-line filtering by lineage, sub-lineage and hotspot mutation dosage.

Turns user-selected constraints into a concrete, ordered set of matrix
columns. All constraints combine with logical AND.

Two outcomes must never be confused:

- No narrowing constraint given → the full cell-line population
  (``CellLineSubset.filtered`` is False)
- Constraints given but nothing matches → a legitimately empty subset
  (``filtered`` is True, ``len(subset) == 0``)

The second case propagates to the caller, which decides whether the subset
is large enough to analyse. It never silently falls back to "all".

Examples:
    >>> resolver = FilterResolver(matrix.cell_lines, annotations)
    >>> subset = resolver.resolve(lineage="Lung", hotspot_gene="KRAS",
    ...                           dosage=DosageLevel.MUTANT)
    >>> len(subset), subset.filtered
    (42, True)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from depcorr.core.annotations import CellLineAnnotations
from depcorr.core.errors import ValidationError

__all__ = ['DosageLevel', 'CellLineSubset', 'FilterResolver']

logger = logging.getLogger(__name__)


class DosageLevel(Enum):
    """Hotspot dosage constraint. Values are the CLI spellings."""

    ANY = "all"
    WILD_TYPE = "0"
    ONE_COPY = "1"
    TWO_COPY = "2"
    MUTANT = "1+2"

    @classmethod
    def parse(cls, value: str | DosageLevel | None) -> DosageLevel:
        """Accept an enum member, a CLI spelling, or None (→ ANY)."""
        if value is None:
            return cls.ANY
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        aliases = {
            'any': cls.ANY, 'all': cls.ANY,
            'wt': cls.WILD_TYPE, 'wild-type': cls.WILD_TYPE,
            'mutant': cls.MUTANT, 'mutated': cls.MUTANT,
        }
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ValidationError(f"Unknown dosage level {value!r} (choose from {choices})")

    def mask(self, dosage: np.ndarray) -> np.ndarray:
        """Boolean mask of ``dosage`` values satisfying this level."""
        if self is DosageLevel.ANY:
            return np.ones(len(dosage), dtype=bool)
        if self is DosageLevel.WILD_TYPE:
            return dosage == 0
        if self is DosageLevel.ONE_COPY:
            return dosage == 1
        if self is DosageLevel.TWO_COPY:
            return dosage >= 2
        return dosage >= 1


@dataclass(frozen=True)
class CellLineSubset:
    """
    Ordered column indices selected for one analysis run.

    Attributes:
        indices: Sorted column indices (int array, may be empty)
        n_total: Number of cell lines in the full population
        filtered: True if any narrowing constraint was applied
        description: Human-readable summary of the constraints
    """

    indices: np.ndarray
    n_total: int
    filtered: bool = False
    description: str = "All cell lines"

    def __len__(self) -> int:
        return len(self.indices)

    @property
    def is_empty(self) -> bool:
        return len(self.indices) == 0

    @property
    def narrows(self) -> bool:
        """True if the subset is strictly smaller than the full population."""
        return len(self.indices) < self.n_total

    @classmethod
    def everything(cls, n_total: int) -> CellLineSubset:
        return cls(indices=np.arange(n_total, dtype=np.intp), n_total=n_total)


class FilterResolver:
    """
    Resolve lineage/sub-lineage/hotspot constraints to column indices.

    Args:
        cell_lines: Column identifiers of the dependency matrix (in order)
        annotations: Lineage and mutation tables
    """

    def __init__(self, cell_lines: Sequence[str] | pd.Index, annotations: CellLineAnnotations):
        self.cell_lines = pd.Index(cell_lines)
        self.annotations = annotations
        self._lineages = annotations.lineage_vector(self.cell_lines)
        self._sub_lineages = annotations.sub_lineage_vector(self.cell_lines)

    @property
    def n_total(self) -> int:
        return len(self.cell_lines)

    def _mask(
        self,
        lineage: Optional[str],
        sub_lineage: Optional[str],
        hotspot_gene: Optional[str],
        dosage: DosageLevel,
    ) -> np.ndarray:
        mask = np.ones(self.n_total, dtype=bool)
        if lineage:
            mask &= self._lineages == lineage
        if sub_lineage:
            mask &= self._sub_lineages == sub_lineage
        if hotspot_gene and dosage is not DosageLevel.ANY:
            if not self.annotations.has_hotspot(hotspot_gene):
                raise ValidationError(f"No mutation data for hotspot gene {hotspot_gene!r}")
            mask &= dosage.mask(self.annotations.dosage_vector(hotspot_gene, self.cell_lines))
        return mask

    def resolve(
        self,
        lineage: Optional[str] = None,
        sub_lineage: Optional[str] = None,
        hotspot_gene: Optional[str] = None,
        dosage: DosageLevel | str | None = DosageLevel.ANY,
    ) -> CellLineSubset:
        """
        Columns satisfying every given constraint.

        Args:
            lineage: Keep only cell lines of this lineage
            sub_lineage: Keep only cell lines of this sub-lineage
            hotspot_gene: Gene whose hotspot dosage is constrained
            dosage: Required dosage of ``hotspot_gene``; ANY disables the constraint

        Returns:
            CellLineSubset; empty (with ``filtered=True``) if constraints match nothing

        Raises:
            ValidationError: unknown hotspot gene with a non-ANY dosage, or bad dosage
        """
        dosage = DosageLevel.parse(dosage)
        narrowing = bool(lineage) or bool(sub_lineage) or (
            bool(hotspot_gene) and dosage is not DosageLevel.ANY
        )
        if not narrowing:
            return CellLineSubset.everything(self.n_total)

        mask = self._mask(lineage, sub_lineage, hotspot_gene, dosage)
        indices = np.flatnonzero(mask).astype(np.intp)

        parts = []
        if lineage:
            parts.append(f"Lineage: {lineage}")
        if sub_lineage:
            parts.append(f"Sub-lineage: {sub_lineage}")
        if hotspot_gene and dosage is not DosageLevel.ANY:
            parts.append(f"{hotspot_gene}: {dosage.value}")
        description = " | ".join(parts)

        logger.debug(f"Filter [{description}] kept {len(indices)}/{self.n_total} cell lines")
        return CellLineSubset(
            indices=indices,
            n_total=self.n_total,
            filtered=True,
            description=description,
        )

    # -- Counts shown next to filter choices ---------------------------------

    def lineage_counts(self) -> dict[str, int]:
        """Cell lines per lineage (unannotated lines excluded), sorted by name."""
        counts = pd.Series(self._lineages[self._lineages != '']).value_counts()
        return {k: int(counts[k]) for k in sorted(counts.index)}

    def sub_lineage_counts(self, lineage: Optional[str] = None) -> dict[str, int]:
        mask = self._sub_lineages != ''
        if lineage:
            mask &= self._lineages == lineage
        counts = pd.Series(self._sub_lineages[mask]).value_counts()
        return {k: int(counts[k]) for k in sorted(counts.index)}

    def dosage_counts(
        self,
        hotspot_gene: str,
        lineage: Optional[str] = None,
        sub_lineage: Optional[str] = None,
    ) -> dict[str, int]:
        """
        Number of cell lines per dosage level of ``hotspot_gene``.

        Returns:
            ``{"all": n, "0": n0, "1": n1, "2": n2, "1+2": n1 + n2}``
        """
        if not self.annotations.has_hotspot(hotspot_gene):
            raise ValidationError(f"No mutation data for hotspot gene {hotspot_gene!r}")
        mask = self._mask(lineage, sub_lineage, None, DosageLevel.ANY)
        dosage = self.annotations.dosage_vector(hotspot_gene, self.cell_lines)[mask]
        n0 = int(np.sum(dosage == 0))
        n1 = int(np.sum(dosage == 1))
        n2 = int(np.sum(dosage >= 2))
        return {
            DosageLevel.ANY.value: n0 + n1 + n2,
            DosageLevel.WILD_TYPE.value: n0,
            DosageLevel.ONE_COPY.value: n1,
            DosageLevel.TWO_COPY.value: n2,
            DosageLevel.MUTANT.value: n1 + n2,
        }

    def mutated_counts(
        self,
        lineage: Optional[str] = None,
        sub_lineage: Optional[str] = None,
    ) -> dict[str, int]:
        """Mutated (dosage ≥ 1) cell lines per hotspot gene within the lineage filters."""
        mask = self._mask(lineage, sub_lineage, None, DosageLevel.ANY)
        return {
            gene: int(np.sum(self.annotations.dosage_vector(gene, self.cell_lines)[mask] >= 1))
            for gene in self.annotations.hotspot_genes
        }
