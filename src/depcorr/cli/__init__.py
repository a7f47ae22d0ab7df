"""
depcorr CLI - Command-line interface for CRISPR dependency correlation analysis.

Commands:
    depcorr correlate     - Correlation network of a gene list (within-list / expand)
    depcorr differential  - Gene effect shifts between hotspot mutation groups
    depcorr inspect       - Stratified breakdown of a single gene pair
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for depcorr."""
    parser = argparse.ArgumentParser(
        prog="depcorr",
        description="Co-dependency and mutation analysis of genome-scale CRISPR screens",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  correlate     Correlation network of a gene list (within-list / expand)
  differential  Gene effect shifts between hotspot mutation groups
  inspect       Stratified breakdown of a single gene pair

Examples:
  depcorr correlate --data web_data --genes KRAS NRAS BRAF --cutoff 0.3 -o results/ras
  depcorr correlate --data web_data --genes-file genes.txt --mode expand -o results/expand
  depcorr differential --data web_data --hotspot KRAS --lineage Lung -o results/kras
  depcorr inspect --data web_data --x KRAS --y DUSP4 --hotspot KRAS -o results/pair
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Import and register subcommands
    from depcorr.cli import correlate, differential, inspect_pair
    correlate.register_parser(subparsers)
    differential.register_parser(subparsers)
    inspect_pair.register_parser(subparsers)

    argv = sys.argv[1:] if args is None else list(args)
    parsed_args = parser.parse_args(argv)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Raw flags after the subcommand name, to tell explicit flags from defaults
    parsed_args.cli_args = argv[argv.index(parsed_args.command) + 1:]

    # Dispatch to subcommand
    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
