"""
Core data structure for genome-scale CRISPR dependency matrices.

DependencyMatrix couples the dense gene-effect table with its two immutable
index tables: gene symbol → row and cell-line identifier → column.

Biological Context:
    A CRISPR knockout screen across a panel of cancer cell lines yields one
    gene-effect (dependency) score per gene per cell line:
    - Rows = genes (thousands to ~18,000)
    - Columns = cell lines (hundreds to low thousands)
    - Values = gene-effect scores, roughly -2..+1; more negative means the
      cell line depends more strongly on the gene
    - Missing values are common (genes not screened in every line) and are
      stored as NaN

Engineering Design:
    - Loaded once per process, never mutated afterwards: the numpy buffer is
      flagged read-only so accidental writes raise instead of corrupting
      shared state
    - Row access returns views; a 18k × 1.1k matrix is ~160 MB in float64 and
      must not be copied per gene
    - Gene lookup is case-insensitive (``tp53`` and ``TP53`` resolve to the
      same row); the index is a dense tuple plus a dict, built once

Examples:
    >>> import numpy as np
    >>> from depcorr.core.dependency_matrix import DependencyMatrix
    >>>
    >>> data = np.array([[-0.1, -1.2], [0.3, np.nan]])
    >>> matrix = DependencyMatrix(data, genes=["KRAS", "TP53"], cell_lines=["ACH-1", "ACH-2"])
    >>> matrix.row_for("kras")
    array([-0.1, -1.2])
    >>> matrix.gene_index.position("tp53")
    1
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

__all__ = ['GeneIndex', 'DependencyMatrix']


class GeneIndex:
    """
    Immutable, case-insensitive mapping from gene symbol to row index.

    Symbols keep their original spelling for reporting; lookups go through an
    upper-cased key. Two symbols that differ only by case are rejected because
    they would make the mapping non-bijective.

    Examples:
        >>> index = GeneIndex(["KRAS", "NRAS"])
        >>> index.position("nras")
        1
        >>> "Kras" in index
        True
    """

    __slots__ = ('_symbols', '_lookup')

    def __init__(self, symbols: Iterable[str]):
        symbols = tuple(str(s) for s in symbols)
        lookup: dict[str, int] = {}
        for i, symbol in enumerate(symbols):
            key = symbol.upper()
            if key in lookup:
                raise ValueError(
                    f"Duplicate gene symbol (case-insensitive): {symbol!r} "
                    f"at rows {lookup[key]} and {i}"
                )
            lookup[key] = i
        self._symbols = symbols
        self._lookup = lookup

    @property
    def symbols(self) -> tuple[str, ...]:
        """Gene symbols in row order."""
        return self._symbols

    def position(self, symbol: str) -> int:
        """Row index of ``symbol``; raises KeyError if unknown."""
        return self._lookup[symbol.upper()]

    def get(self, symbol: str, default: Optional[int] = None) -> Optional[int]:
        return self._lookup.get(symbol.upper(), default)

    def symbol(self, position: int) -> str:
        return self._symbols[position]

    def canonical(self, symbol: str) -> str:
        """Stored spelling of ``symbol``; raises KeyError if unknown."""
        return self._symbols[self.position(symbol)]

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and symbol.upper() in self._lookup

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self):
        return iter(self._symbols)

    def __repr__(self) -> str:
        return f"GeneIndex({len(self)} genes)"


class DependencyMatrix:
    """
    Immutable gene × cell-line dependency matrix with its index tables.

    Attributes:
        data: Read-only float64 matrix (genes × cell lines), NaN = missing
        gene_index: Case-insensitive symbol → row lookup
        cell_lines: Column identifiers (e.g. DepMap ``ACH-000001`` ids)

    Shape Invariants:
        - data.shape[0] == len(gene_index)
        - data.shape[1] == len(cell_lines)
        - cell-line identifiers are unique

    The constructor takes ownership of ``data``: a float64 array is used as-is
    and flagged read-only; other dtypes are converted once.
    """

    def __init__(
        self,
        data: np.ndarray,
        genes: Sequence[str] | GeneIndex,
        cell_lines: Sequence[str] | pd.Index,
    ):
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")

        gene_index = genes if isinstance(genes, GeneIndex) else GeneIndex(genes)
        cell_lines = pd.Index([str(c) for c in cell_lines])

        n_genes, n_cell_lines = data.shape
        if len(gene_index) != n_genes:
            raise ValueError(
                f"genes length ({len(gene_index)}) must match data rows ({n_genes})"
            )
        if len(cell_lines) != n_cell_lines:
            raise ValueError(
                f"cell_lines length ({len(cell_lines)}) must match data columns ({n_cell_lines})"
            )
        if not cell_lines.is_unique:
            dupes = cell_lines[cell_lines.duplicated()].unique().tolist()
            raise ValueError(f"Duplicate cell-line identifiers: {dupes[:5]}")

        if data.dtype != np.float64:
            data = data.astype(np.float64)
        data.flags.writeable = False

        self._data = data
        self._gene_index = gene_index
        self._cell_lines = cell_lines
        self._column_lookup = {cl: i for i, cl in enumerate(cell_lines)}

    @property
    def data(self) -> np.ndarray:
        """Gene-effect matrix (genes × cell lines), read-only."""
        return self._data

    @property
    def gene_index(self) -> GeneIndex:
        return self._gene_index

    @property
    def genes(self) -> tuple[str, ...]:
        """Gene symbols in row order."""
        return self._gene_index.symbols

    @property
    def cell_lines(self) -> pd.Index:
        """Cell-line identifiers in column order."""
        return self._cell_lines

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_genes(self) -> int:
        return self._data.shape[0]

    @property
    def n_cell_lines(self) -> int:
        return self._data.shape[1]

    def row(self, gene_index: int) -> np.ndarray:
        """Read-only view over all cell-line values for one gene (no copy)."""
        return self._data[gene_index]

    def row_for(self, symbol: str) -> np.ndarray:
        """Read-only row view looked up by (case-insensitive) gene symbol."""
        return self._data[self._gene_index.position(symbol)]

    def column_position(self, cell_line: str) -> int:
        """Column index of a cell-line identifier; raises KeyError if unknown."""
        return self._column_lookup[cell_line]

    def values(self, gene_index: int, columns: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Values of one gene restricted to ``columns`` (all columns if None).

        Missing values are kept as NaN so positions stay aligned with
        ``columns``; exclusion is always done pairwise by the caller.
        """
        row = self._data[gene_index]
        if columns is None:
            return row
        return row[columns]

    def valid_values(self, gene_index: int, columns: Optional[np.ndarray] = None) -> np.ndarray:
        """Non-missing values of one gene within ``columns``."""
        values = self.values(gene_index, columns)
        return values[~np.isnan(values)]

    def columns(self, columns: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Matrix restricted to ``columns``.

        Returns the shared read-only buffer when ``columns`` is None or
        covers every column in order; otherwise a per-request copy.
        """
        if columns is None:
            return self._data
        columns = np.asarray(columns, dtype=np.intp)
        if len(columns) == self.n_cell_lines and np.array_equal(columns, np.arange(self.n_cell_lines)):
            return self._data
        return self._data[:, columns]

    def __repr__(self) -> str:
        if self.n_genes == 0 or self.n_cell_lines == 0:
            return f"DependencyMatrix({self.n_genes} genes × {self.n_cell_lines} cell lines)"
        return (
            f"DependencyMatrix({self.n_genes} genes × {self.n_cell_lines} cell lines)\n"
            f"  Genes: {self.genes[0]}...{self.genes[-1]}\n"
            f"  Cell lines: {self.cell_lines[0]}...{self.cell_lines[-1]}\n"
            f"  Missing: {np.isnan(self._data).mean():.1%}"
        )

    def __str__(self) -> str:
        return self.__repr__()
