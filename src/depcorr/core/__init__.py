"""
Core data structures for dependency-matrix analysis.

1. DependencyMatrix / GeneIndex: read-only gene × cell-line matrix with
   case-insensitive gene lookup
2. CellLineAnnotations: lineage labels and hotspot mutation dosage
3. FilterResolver / CellLineSubset: lineage and dosage constraints resolved
   to matrix columns
4. Error taxonomy rooted at DepcorrError

Examples:
    >>> from depcorr.core import DependencyMatrix, FilterResolver
    >>>
    >>> resolver = FilterResolver(matrix.cell_lines, annotations)
    >>> subset = resolver.resolve(lineage="Lung")
"""

from depcorr.core.annotations import CellLineAnnotations
from depcorr.core.dependency_matrix import DependencyMatrix, GeneIndex
from depcorr.core.filters import CellLineSubset, DosageLevel, FilterResolver

__all__ = [
    'CellLineAnnotations',
    'DependencyMatrix',
    'GeneIndex',
    'CellLineSubset',
    'DosageLevel',
    'FilterResolver',
]
