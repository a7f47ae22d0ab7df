"""
I/O module for dependency-matrix bundles and analysis results.

Key Functions:
    - decode_matrix / encode_matrix: quantized int16 gzip codec
    - load_dataset / write_dataset: bundle directory (metadata + matrix +
      annotations)
    - depcorr.io.writers: CSV/JSON/GraphML result files

Examples:
    >>> from depcorr.io import load_dataset
    >>> from pathlib import Path
    >>>
    >>> dataset = load_dataset(Path("web_data"))
    >>> print(f"Loaded {dataset.matrix.n_genes} genes x {dataset.matrix.n_cell_lines} cell lines")
"""

from depcorr.io.codec import decode_matrix, encode_matrix
from depcorr.io.loaders import Dataset, load_compressed_matrix, load_dataset, write_dataset

__all__ = [
    'decode_matrix',
    'encode_matrix',
    'Dataset',
    'load_compressed_matrix',
    'load_dataset',
    'write_dataset',
]
