"""
depcorr inspect command - Break down one gene pair.

Writes the paired cell-line values of two genes and their correlation
stratified by lineage, by hotspot dosage, and WT vs 2+ comparisons per
lineage and per hotspot gene.

Usage:
    depcorr inspect --data web_data --x KRAS --y DUSP4 --hotspot KRAS -o results/kras_dusp4
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


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the inspect subcommand."""
    parser = subparsers.add_parser(
        "inspect",
        help="Stratified view of a single gene pair",
        description=(
            "Per-cell-line values of two genes with their correlation broken "
            "down by lineage and by hotspot mutation dosage."
        )
    )
    add_common_args(parser)

    parser.add_argument("--x", dest="x_gene", default=None,
                        help="Gene on the x axis")
    parser.add_argument("--y", dest="y_gene", default=None,
                        help="Gene on the y axis")
    parser.add_argument("--hotspot", default=None,
                        help="Hotspot gene for dosage breakdowns (optional)")
    add_filter_args(parser)

    parser.set_defaults(func=run_inspect)


def run_inspect(args: argparse.Namespace) -> int:
    """Execute the inspect command."""
    import logging

    from depcorr.analysis import AnalysisRequest, AnalysisSession
    from depcorr.core.errors import DepcorrError, ValidationError
    from depcorr.io.loaders import load_dataset
    from depcorr.io.writers import write_inspection_results
    from depcorr.stats import pair_comparison

    configure_logging(args)
    logger = logging.getLogger(__name__)

    try:
        args = apply_config(args, None)
        missing = require(args, 'data', 'output', 'x_gene', 'y_gene')
        if missing:
            return error(missing.replace('--x-gene', '--x').replace('--y-gene', '--y'))

        dataset = load_dataset(args.data)
        session = AnalysisSession(dataset)

        genes, unknown = session.resolve_genes([args.x_gene, args.y_gene])
        if unknown:
            raise ValidationError(f"Gene not in dependency matrix: {', '.join(unknown)}")
        if args.hotspot and not dataset.annotations.has_hotspot(args.hotspot):
            raise ValidationError(f"No mutation data for hotspot gene {args.hotspot!r}")

        subset = session.resolve_subset(AnalysisRequest(
            lineage=args.lineage,
            sub_lineage=args.sub_lineage,
            filter_hotspot_gene=args.filter_hotspot,
            filter_dosage=args.filter_dosage,
        ))
        x_gene, y_gene = genes[0], genes[-1]
        points = pair_comparison.pair_points(
            dataset.matrix, dataset.annotations, x_gene, y_gene,
            subset=subset, hotspot_gene=args.hotspot,
        )

        tables = {
            'points': points,
            'by_lineage': pair_comparison.by_lineage(points),
            'hotspot_comparison': pair_comparison.hotspot_comparison(points, dataset.annotations),
        }
        if args.hotspot:
            tables['by_dosage'] = pair_comparison.by_dosage(points)
            tables['lineage_comparison'] = pair_comparison.lineage_mutation_comparison(points)

        write_inspection_results(tables, args.output)
    except (DepcorrError, FileNotFoundError, ValueError) as e:
        return error(str(e))

    logger.info(f"{x_gene} vs {y_gene}: {len(points)} paired cell lines")
    return 0
