"""
depcorr - Co-dependency analysis of genome-scale CRISPR screens

Correlation networks, connected-component clustering and hotspot-mutation
differential tests over a precomputed gene × cell-line dependency matrix.
"""

__version__ = "0.1.0"

from depcorr.core.dependency_matrix import DependencyMatrix, GeneIndex
from depcorr.core.errors import (
    DepcorrError,
    DecodeError,
    ValidationError,
    InsufficientSamplesError,
    AnalysisCancelled,
)
from depcorr.io.loaders import Dataset, load_dataset
from depcorr.analysis import AnalysisRequest, AnalysisSession

__all__ = [
    "DependencyMatrix",
    "GeneIndex",
    "DepcorrError",
    "DecodeError",
    "ValidationError",
    "InsufficientSamplesError",
    "AnalysisCancelled",
    "Dataset",
    "load_dataset",
    "AnalysisRequest",
    "AnalysisSession",
]
