"""
Statistical routines for dependency analysis.

Exports core functions for:
- Pearson correlation with OLS slope and the correlation sweep
- Welch's t-test with a self-contained t-distribution p-value
- Hotspot dosage differential scans with FDR correction
- Per-gene descriptive statistics
"""

from .distributions import (
    log_gamma,
    regularized_incomplete_beta,
    normal_cdf,
    t_two_tailed_p,
)
from .correlation import (
    PearsonResult,
    CorrelationEdge,
    SweepResult,
    pearson_with_slope,
    sweep,
)
from .differential import (
    WelchResult,
    DifferentialScan,
    DifferentialTester,
    welch_t_test,
    fdr_correction,
)
from .descriptive import GeneSummary, summarize_genes

__all__ = [
    "log_gamma",
    "regularized_incomplete_beta",
    "normal_cdf",
    "t_two_tailed_p",
    "PearsonResult",
    "CorrelationEdge",
    "SweepResult",
    "pearson_with_slope",
    "sweep",
    "WelchResult",
    "DifferentialScan",
    "DifferentialTester",
    "welch_t_test",
    "fdr_correction",
    "GeneSummary",
    "summarize_genes",
]
