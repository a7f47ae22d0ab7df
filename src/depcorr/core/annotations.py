"""
Cell-line annotations: lineage labels and hotspot mutation dosage.

Two lookup tables accompany the dependency matrix:

- Lineage table: cell-line id → lineage (cancer type) and optional
  sub-lineage, plus a display name
- Hotspot mutation table: hotspot gene → {cell-line id → dosage}, where
  dosage is 0 (wild-type), 1, or 2+ copies. Absent entries mean wild-type.

Both are consumed by the filter resolver and the differential tester and are
never mutated after load.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

__all__ = ['CellLineAnnotations', 'EXCLUDED_HOTSPOT_GENES']

# Highly polymorphic loci that swamp hotspot comparisons
EXCLUDED_HOTSPOT_GENES = ('HLA-A', 'HLA-B')


@dataclass(frozen=True)
class CellLineAnnotations:
    """
    Read-only lineage and mutation annotations keyed by cell-line id.

    Attributes:
        lineage: cell-line id → lineage label
        sub_lineage: cell-line id → sub-lineage label
        display_name: cell-line id → human-readable name
        mutations: hotspot gene → {cell-line id → dosage}
    """

    lineage: Mapping[str, str] = field(default_factory=dict)
    sub_lineage: Mapping[str, str] = field(default_factory=dict)
    display_name: Mapping[str, str] = field(default_factory=dict)
    mutations: Mapping[str, Mapping[str, int]] = field(default_factory=dict)

    @property
    def hotspot_genes(self) -> list[str]:
        """Hotspot genes with mutation data, sorted."""
        return sorted(self.mutations)

    def has_hotspot(self, gene: str) -> bool:
        return gene in self.mutations

    def lineage_of(self, cell_line: str) -> str:
        return self.lineage.get(cell_line, '')

    def name_of(self, cell_line: str) -> str:
        return self.display_name.get(cell_line, cell_line)

    def lineage_vector(self, cell_lines: Sequence[str]) -> np.ndarray:
        """Lineage label per cell line ('' when unannotated), as an object array."""
        return np.array([self.lineage.get(cl, '') for cl in cell_lines], dtype=object)

    def sub_lineage_vector(self, cell_lines: Sequence[str]) -> np.ndarray:
        return np.array([self.sub_lineage.get(cl, '') for cl in cell_lines], dtype=object)

    def dosage_vector(self, gene: str, cell_lines: Sequence[str]) -> np.ndarray:
        """
        Integer dosage of ``gene``'s hotspot mutation per cell line.

        Raises:
            KeyError: if ``gene`` has no mutation data
        """
        table = self.mutations[gene]
        return np.array([int(table.get(cl, 0) or 0) for cl in cell_lines], dtype=np.int64)

    def to_frame(self, cell_lines: Sequence[str]) -> pd.DataFrame:
        """Annotation table indexed by ``cell_lines`` (for export)."""
        index = pd.Index(cell_lines, name='cell_line')
        return pd.DataFrame({
            'name': [self.name_of(cl) for cl in cell_lines],
            'lineage': self.lineage_vector(cell_lines),
            'sub_lineage': self.sub_lineage_vector(cell_lines),
        }, index=index)

    @classmethod
    def from_records(
        cls,
        cell_line_metadata: Optional[Mapping] = None,
        mutations: Optional[Mapping] = None,
    ) -> CellLineAnnotations:
        """
        Build annotations from the JSON records of a dataset bundle.

        Args:
            cell_line_metadata: ``{"lineage": {...}, "lineageSubtype": {...},
                "strippedCellLineName": {...}}`` (all keys optional)
            mutations: ``{"geneData": {gene: {"mutations": {cell_line: dosage}}}}``
        """
        cell_line_metadata = cell_line_metadata or {}
        names = dict(cell_line_metadata.get('cellLineName') or {})
        names.update({
            k: v for k, v in (cell_line_metadata.get('strippedCellLineName') or {}).items() if v
        })

        gene_data = (mutations or {}).get('geneData') or {}
        mutation_tables = {
            gene: {cl: int(level) for cl, level in (entry.get('mutations') or {}).items()}
            for gene, entry in gene_data.items()
        }

        return cls(
            lineage=dict(cell_line_metadata.get('lineage') or {}),
            sub_lineage=dict(cell_line_metadata.get('lineageSubtype') or {}),
            display_name=names,
            mutations=mutation_tables,
        )

    def to_records(self) -> tuple[dict, dict]:
        """Inverse of :meth:`from_records`."""
        cell_line_metadata = {
            'lineage': dict(self.lineage),
            'lineageSubtype': dict(self.sub_lineage),
            'strippedCellLineName': dict(self.display_name),
        }
        mutations = {
            'genes': self.hotspot_genes,
            'geneData': {
                gene: {'mutations': {cl: int(v) for cl, v in table.items() if v}}
                for gene, table in self.mutations.items()
            },
        }
        return cell_line_metadata, mutations
