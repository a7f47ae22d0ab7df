"""
depcorr correlate command - Gene co-dependency networks.

Correlates a gene list within itself (``within-list``) or against every gene
in the dependency matrix (``expand``), clusters the surviving edges into
connected components and writes the network.

Usage:
    depcorr correlate --data web_data --genes KRAS NRAS BRAF --cutoff 0.3 -o results/ras
    depcorr correlate --data web_data --genes-file genes.txt --mode expand --lineage Lung -o results/lung
"""

import argparse
from pathlib import Path

from depcorr.cli._common import (
    add_common_args,
    add_filter_args,
    apply_config,
    configure_logging,
    error,
    read_gene_list,
    require,
)
from depcorr.cli._validators import _non_negative_float, _non_negative_int, _positive_float
from depcorr.stats.correlation import SweepMode


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the correlate subcommand."""
    parser = subparsers.add_parser(
        "correlate",
        help="Correlation network of a gene list",
        description=(
            "Pearson correlation and regression slope of gene effects across "
            "cell lines, thresholded and grouped into clusters."
        )
    )
    add_common_args(parser)

    parser.add_argument("--genes", "-g", nargs="+", default=None,
                        help="Gene symbols (case-insensitive)")
    parser.add_argument("--genes-file", type=Path, default=None,
                        help="File of gene symbols (whitespace/comma separated)")
    parser.add_argument("--mode", choices=SweepMode.CHOICES, default=SweepMode.WITHIN_LIST,
                        help="within-list: pairs inside the list; expand: list vs all genes")
    parser.add_argument("--cutoff", type=_positive_float, default=0.5,
                        help="Minimum |correlation| (default: 0.5)")
    parser.add_argument("--min-n", type=_non_negative_int, default=50,
                        help="Minimum paired cell lines per correlation (default: 50)")
    parser.add_argument("--min-slope", type=_non_negative_float, default=0.0,
                        help="Minimum |slope| (default: 0)")
    add_filter_args(parser)

    parser.set_defaults(func=run_correlate)


def run_correlate(args: argparse.Namespace) -> int:
    """Execute the correlate command."""
    import logging

    from depcorr.analysis import AnalysisRequest, AnalysisSession
    from depcorr.core.errors import DepcorrError
    from depcorr.io.loaders import load_dataset
    from depcorr.io.writers import write_correlation_results

    configure_logging(args)
    logger = logging.getLogger(__name__)

    try:
        args = apply_config(args, "correlation")
        missing = require(args, 'data', 'output')
        if missing:
            return error(missing)

        genes = read_gene_list(args.genes, args.genes_file)

        dataset = load_dataset(args.data)
        session = AnalysisSession(dataset, progress=args.progress)
        result = session.run(AnalysisRequest(
            genes=genes,
            mode=args.mode,
            correlation_cutoff=args.cutoff,
            min_n=args.min_n,
            min_slope_abs=args.min_slope,
            lineage=args.lineage,
            sub_lineage=args.sub_lineage,
            filter_hotspot_gene=args.filter_hotspot,
            filter_dosage=args.filter_dosage,
            timeout=args.timeout,
        ))
        write_correlation_results(result, args.output)
    except (DepcorrError, FileNotFoundError, ValueError) as e:
        return error(str(e))

    if result.empty:
        logger.warning(result.message)
    else:
        logger.info(
            f"Analysis complete: {len(result.edges)} correlations, "
            f"{len(result.genes)} genes in network"
        )
    return 0
