"""
Dataset bundle loader for dependency matrices.

A dataset bundle is a directory holding the compressed matrix and its JSON
side tables:

```
web_data/
├── metadata.json          genes, cellLines, nGenes, nCellLines, scaleFactor, naValue
├── geneEffects.bin.gz     gzip int16 stream, row-major gene-major
├── cellLineMetadata.json  optional: lineage, lineageSubtype, strippedCellLineName
└── mutations.json         optional: geneData[gene].mutations[cellLine] = dosage
```

Loading is a one-time blocking step at process start; the returned
``Dataset`` is shared read-only by every analysis request afterwards.

Examples:
    >>> from pathlib import Path
    >>> from depcorr.io.loaders import load_dataset
    >>>
    >>> dataset = load_dataset(Path("web_data"))
    >>> print(dataset.matrix)
    DependencyMatrix(17931 genes × 1100 cell lines)
    ...
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import numpy as np

from depcorr.core.annotations import CellLineAnnotations
from depcorr.core.dependency_matrix import DependencyMatrix
from depcorr.core.errors import DecodeError
from depcorr.io.codec import decode_matrix, encode_matrix
from depcorr.utils.fileio import atomic_write_bytes, atomic_write_json

__all__ = [
    'Dataset',
    'load_compressed_matrix',
    'load_dataset',
    'write_dataset',
    'METADATA_FILE',
    'MATRIX_FILE',
    'CELL_LINE_FILE',
    'MUTATIONS_FILE',
]

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
MATRIX_FILE = "geneEffects.bin.gz"
CELL_LINE_FILE = "cellLineMetadata.json"
MUTATIONS_FILE = "mutations.json"

DEFAULT_SCALE_FACTOR = 1000
DEFAULT_MISSING_SENTINEL = -32768


@dataclass(frozen=True)
class Dataset:
    """
    Loaded dependency matrix plus its annotations.

    Attributes:
        matrix: Read-only gene × cell-line matrix
        annotations: Lineage and hotspot mutation tables
        metadata: Extra metadata fields from ``metadata.json`` (provenance)
    """

    matrix: DependencyMatrix
    annotations: CellLineAnnotations = field(default_factory=CellLineAnnotations)
    metadata: dict = field(default_factory=dict)


def load_compressed_matrix(
    payload: bytes,
    scale_factor: float,
    missing_sentinel: int,
    genes: Sequence[str],
    cell_lines: Sequence[str],
) -> DependencyMatrix:
    """
    Decode a compressed payload into a DependencyMatrix.

    Args:
        payload: Compressed int16 stream
        scale_factor: Quantization divisor
        missing_sentinel: Integer marking missing values
        genes: Gene symbols in row order
        cell_lines: Cell-line identifiers in column order

    Raises:
        DecodeError: payload does not match ``len(genes) * len(cell_lines)``
    """
    values = decode_matrix(payload, scale_factor, missing_sentinel, len(genes), len(cell_lines))
    try:
        return DependencyMatrix(values, genes=genes, cell_lines=cell_lines)
    except ValueError as e:
        raise DecodeError(f"Invalid matrix index tables: {e}") from e


def _read_json(path: Path) -> Any:
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON in {path.name}: {e}") from e


def load_dataset(directory: Path) -> Dataset:
    """
    Load a dataset bundle directory.

    Args:
        directory: Bundle directory (see module docstring for layout)

    Returns:
        Dataset with decoded matrix and annotations

    Raises:
        FileNotFoundError: directory, metadata or matrix file missing
        DecodeError: metadata inconsistent with the matrix payload
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Dataset directory not found: {directory}")

    meta_path = directory / METADATA_FILE
    matrix_path = directory / MATRIX_FILE
    for path in (meta_path, matrix_path):
        if not path.exists():
            raise FileNotFoundError(f"Dataset file not found: {path}")

    start = time.time()
    metadata = _read_json(meta_path)

    try:
        genes = list(metadata['genes'])
        cell_lines = list(metadata['cellLines'])
        scale_factor = float(metadata.get('scaleFactor', DEFAULT_SCALE_FACTOR))
        missing_sentinel = int(metadata.get('naValue', DEFAULT_MISSING_SENTINEL))
    except KeyError as e:
        raise DecodeError(f"{METADATA_FILE} is missing required field {e}") from e

    n_genes = int(metadata.get('nGenes', len(genes)))
    n_cell_lines = int(metadata.get('nCellLines', len(cell_lines)))
    if n_genes != len(genes) or n_cell_lines != len(cell_lines):
        raise DecodeError(
            f"{METADATA_FILE} declares {n_genes}×{n_cell_lines} but lists "
            f"{len(genes)} genes and {len(cell_lines)} cell lines"
        )

    logger.info(f"Decompressing gene effect matrix: {matrix_path}")
    matrix = load_compressed_matrix(
        matrix_path.read_bytes(), scale_factor, missing_sentinel, genes, cell_lines
    )

    cell_line_path = directory / CELL_LINE_FILE
    mutations_path = directory / MUTATIONS_FILE
    cell_line_metadata = _read_json(cell_line_path) if cell_line_path.exists() else None
    mutations = _read_json(mutations_path) if mutations_path.exists() else None
    annotations = CellLineAnnotations.from_records(cell_line_metadata, mutations)

    extra = {k: v for k, v in metadata.items() if k not in ('genes', 'cellLines')}
    logger.info(
        f"Loaded {matrix.n_genes:,} genes × {matrix.n_cell_lines:,} cell lines, "
        f"{len(annotations.hotspot_genes)} hotspot genes in {time.time() - start:.1f}s"
    )
    return Dataset(matrix=matrix, annotations=annotations, metadata=extra)


def write_dataset(
    directory: Path,
    dataset: Dataset,
    scale_factor: float = DEFAULT_SCALE_FACTOR,
    missing_sentinel: int = DEFAULT_MISSING_SENTINEL,
) -> Path:
    """
    Write a dataset bundle (inverse of :func:`load_dataset`).

    Values are quantized, so reloading recovers each score within
    ``0.5 / scale_factor``.

    Returns:
        The bundle directory
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    matrix = dataset.matrix

    metadata = dict(dataset.metadata)
    metadata.update({
        'genes': list(matrix.genes),
        'cellLines': [str(c) for c in matrix.cell_lines],
        'nGenes': matrix.n_genes,
        'nCellLines': matrix.n_cell_lines,
        'scaleFactor': scale_factor,
        'naValue': missing_sentinel,
    })
    atomic_write_json(directory / METADATA_FILE, metadata)
    atomic_write_bytes(
        directory / MATRIX_FILE,
        encode_matrix(np.asarray(matrix.data), scale_factor, missing_sentinel),
    )

    cell_line_metadata, mutations = dataset.annotations.to_records()
    atomic_write_json(directory / CELL_LINE_FILE, cell_line_metadata)
    atomic_write_json(directory / MUTATIONS_FILE, mutations)

    logger.info(f"Wrote dataset bundle: {directory}")
    return directory
