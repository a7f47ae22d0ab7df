"""
depcorr differential command - Hotspot mutation dependency shifts.

Splits cell lines by the dosage of a hotspot mutation (WT / 1 copy / 2+
copies) and runs a Welch t-test per gene: WT vs any mutant and WT vs 2+.

Usage:
    depcorr differential --data web_data --hotspot KRAS -o results/kras
    depcorr differential --data web_data --hotspot TP53 --lineage Breast --p-threshold 0.01 -o results/tp53
"""

import argparse

from depcorr.cli._common import (
    add_common_args,
    add_filter_args,
    apply_config,
    configure_logging,
    error,
    require,
)
from depcorr.cli._validators import _non_negative_int, _p_threshold


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the differential subcommand."""
    parser = subparsers.add_parser(
        "differential",
        help="Gene effect differences between hotspot mutation groups",
        description=(
            "Welch t-test of every gene's dependency between wild-type and "
            "mutant cell lines of one hotspot gene."
        )
    )
    add_common_args(parser)

    parser.add_argument("--hotspot", default=None,
                        help="Hotspot gene defining the dosage groups")
    parser.add_argument("--p-threshold", type=_p_threshold, default=0.05,
                        help="Report genes with p_mut or p_2 below this (default: 0.05)")
    parser.add_argument("--min-n", type=_non_negative_int, default=20,
                        help="Minimum valid WT cell lines per gene (default: 20)")
    add_filter_args(parser)

    parser.set_defaults(func=run_differential)


def run_differential(args: argparse.Namespace) -> int:
    """Execute the differential command."""
    import logging

    from depcorr.analysis import DIFFERENTIAL_MODE, AnalysisRequest, AnalysisSession
    from depcorr.core.errors import DepcorrError
    from depcorr.io.loaders import load_dataset
    from depcorr.io.writers import write_differential_results

    configure_logging(args)
    logger = logging.getLogger(__name__)

    try:
        args = apply_config(args, "differential")
        missing = require(args, 'data', 'output', 'hotspot')
        if missing:
            return error(missing)

        dataset = load_dataset(args.data)
        session = AnalysisSession(dataset, progress=args.progress)
        result = session.run(AnalysisRequest(
            mode=DIFFERENTIAL_MODE,
            hotspot_gene=args.hotspot,
            p_threshold=args.p_threshold,
            min_n=args.min_n,
            lineage=args.lineage,
            sub_lineage=args.sub_lineage,
            filter_hotspot_gene=args.filter_hotspot,
            filter_dosage=args.filter_dosage,
            timeout=args.timeout,
        ))
        write_differential_results(result, args.output)
    except (DepcorrError, FileNotFoundError, ValueError) as e:
        return error(str(e))

    logger.info(
        f"{result.hotspot_gene}: {len(result.significant)} genes with p < {result.p_threshold} "
        f"(WT={result.n_wt}, mutant={result.n_mut}, 2-copy={result.n_2})"
    )
    return 0
