"""
Shared plumbing for depcorr subcommands: common arguments, logging setup,
config merging and dataset loading.
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from depcorr.cli._validators import _positive_float
from depcorr.core.filters import DosageLevel

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """--data/--output/--config and verbosity flags."""
    parser.add_argument("--data", "-d", type=Path, default=None,
                        help="Dataset bundle directory (metadata.json, geneEffects.bin.gz, ...)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output directory for results")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML/JSON config file (CLI flags override it)")
    parser.add_argument("--timeout", type=_positive_float, default=None,
                        help="Abort the analysis after this many seconds")
    parser.add_argument("--progress", action="store_true",
                        help="Show progress bars")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true",
                           help="Debug logging")
    verbosity.add_argument("--quiet", "-q", action="store_true",
                           help="Only log warnings and errors")


def add_filter_args(parser: argparse.ArgumentParser) -> None:
    """Cell-line filter flags shared by every analysis."""
    group = parser.add_argument_group("cell-line filters")
    group.add_argument("--lineage", default=None,
                       help="Keep only cell lines of this lineage")
    group.add_argument("--sub-lineage", default=None,
                       help="Keep only cell lines of this sub-lineage")
    group.add_argument("--filter-hotspot", default=None,
                       help="Hotspot gene whose mutation dosage filters cell lines")
    group.add_argument("--filter-dosage", default=DosageLevel.ANY.value,
                       choices=[level.value for level in DosageLevel],
                       help="Required dosage of --filter-hotspot (default: all)")


def configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, 'verbose', False):
        level = logging.DEBUG
    elif getattr(args, 'quiet', False):
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def apply_config(args: argparse.Namespace, section: Optional[str]) -> argparse.Namespace:
    """Merge ``--config`` into ``args`` (explicit CLI flags win)."""
    if not getattr(args, 'config', None):
        return args

    from depcorr.cli.config import load_config, merge_config_with_args, validate_config

    logger.info(f"Loading configuration from: {args.config}")
    config = load_config(args.config)
    validate_config(config)
    return merge_config_with_args(config, args, getattr(args, 'cli_args', None), section)


def require(args: argparse.Namespace, *names: str) -> Optional[str]:
    """Error message for the first missing required option, or None."""
    for name in names:
        if not getattr(args, name, None):
            flag = "--" + name.replace('_', '-')
            return f"{flag} is required (via CLI or config file)"
    return None


def read_gene_list(genes: Optional[List[str]], genes_file: Optional[Path]) -> List[str]:
    """
    Gene symbols from ``--genes`` and ``--genes-file``, in order.

    Symbols may be separated by whitespace, commas or semicolons; lines
    starting with ``#`` are ignored.
    """
    tokens: List[str] = []
    for item in genes or []:
        tokens.extend(re.split(r'[\s,;]+', str(item)))
    if genes_file:
        with open(genes_file, 'r') as f:
            for line in f:
                if line.lstrip().startswith('#'):
                    continue
                tokens.extend(re.split(r'[\s,;]+', line))
    return [t for t in tokens if t]


def error(message: str) -> int:
    print(f"ERROR: {message}", file=sys.stderr)
    return 1
