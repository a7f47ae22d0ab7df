"""
Configuration file support for the depcorr CLI.

Supports YAML and JSON config files with CLI argument override.

Example ``analysis.yaml``::

    data: web_data
    output: results/kras
    filters:
      lineage: Lung
      hotspot_gene: KRAS
      dosage: "1+2"
    correlation:
      mode: expand
      cutoff: 0.4
      min_n: 50
      min_slope: 0.1
    differential:
      hotspot_gene: KRAS
      p_threshold: 0.01
      min_n: 20
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from depcorr.core.filters import DosageLevel
from depcorr.stats.correlation import SweepMode


@dataclass
class FilterConfig:
    """Cell-line filter configuration."""
    lineage: Optional[str] = None
    sub_lineage: Optional[str] = None
    hotspot_gene: Optional[str] = None
    dosage: str = DosageLevel.ANY.value


@dataclass
class CorrelationConfig:
    """Correlation sweep configuration."""
    mode: str = SweepMode.WITHIN_LIST
    cutoff: float = 0.5
    min_n: int = 50
    min_slope: float = 0.0


@dataclass
class DifferentialConfig:
    """Hotspot differential configuration."""
    hotspot_gene: Optional[str] = None
    p_threshold: float = 0.05
    min_n: int = 20


@dataclass
class AnalysisConfig:
    """
    Complete configuration schema for depcorr commands.

    Mirrors the CLI argument structure for consistency.
    """
    data: Optional[Path] = None
    output: Optional[Path] = None
    genes: List[str] = field(default_factory=list)
    timeout: Optional[float] = None
    filters: FilterConfig = field(default_factory=FilterConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    differential: DifferentialConfig = field(default_factory=DifferentialConfig)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "AnalysisConfig":
        return cls(
            data=Path(config['data']) if config.get('data') else None,
            output=Path(config['output']) if config.get('output') else None,
            genes=list(config.get('genes') or []),
            timeout=config.get('timeout'),
            filters=FilterConfig(**(config.get('filters') or {})),
            correlation=CorrelationConfig(**(config.get('correlation') or {})),
            differential=DifferentialConfig(**(config.get('differential') or {})),
        )


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("analysis.yaml"))
        >>> print(config['correlation']['mode'])
        expand
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


# config section → {config key: argparse dest}
_SECTION_MAPPINGS = {
    None: {
        'data': 'data',
        'output': 'output',
        'genes': 'genes',
        'timeout': 'timeout',
    },
    'filters': {
        'lineage': 'lineage',
        'sub_lineage': 'sub_lineage',
        'hotspot_gene': 'filter_hotspot',
        'dosage': 'filter_dosage',
    },
    'correlation': {
        'mode': 'mode',
        'cutoff': 'cutoff',
        'min_n': 'min_n',
        'min_slope': 'min_slope',
    },
    'differential': {
        'hotspot_gene': 'hotspot',
        'p_threshold': 'p_threshold',
        'min_n': 'min_n',
    },
}

_PATH_ARGS = ('data', 'output')

# Short flags → argparse dest
_SHORT_TO_LONG = {
    'd': 'data',
    'o': 'output',
    'g': 'genes',
    'c': 'config',
}


def explicit_arg_names(cli_args: Optional[List[str]]) -> set:
    """argparse dest names of the options present in a raw argument list."""
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in _SHORT_TO_LONG:
            explicit.add(_SHORT_TO_LONG[arg[1]])
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
    section: Optional[str] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values).
                  If None, assumes all args are defaults
        section: Command-specific section to apply (``"correlation"`` or
                 ``"differential"``); shared sections always apply

    Returns:
        Updated Namespace with merged values

    Examples:
        >>> config = load_config(Path("analysis.yaml"))
        >>> args = parser.parse_args(["--data", "web_data", "--cutoff", "0.6"])
        >>> merged = merge_config_with_args(config, args, ["--cutoff", "0.6"], "correlation")
        >>> # args.cutoff from CLI, args.mode from config
    """
    explicit_args = explicit_arg_names(cli_args)
    merged = Namespace(**vars(args))

    names = [None, 'filters']
    if section in _SECTION_MAPPINGS and section not in names:
        names.append(section)

    for name in names:
        values = config if name is None else (config.get(name) or {})
        for config_key, arg_name in _SECTION_MAPPINGS[name].items():
            if config_key not in values or not hasattr(merged, arg_name):
                continue
            config_value = values[config_key]
            if config_value is not None and arg_name in _PATH_ARGS:
                config_value = Path(config_value)
            setattr(merged, arg_name, _merge_value(
                getattr(merged, arg_name),
                config_value,
                arg_name in explicit_args,
            ))

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Raises:
        ValueError: If configuration is invalid
    """
    for name in ('filters', 'correlation', 'differential'):
        section = config.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        unknown = set(section) - set(_SECTION_MAPPINGS[name])
        if unknown:
            raise ValueError(f"Unknown keys in config section '{name}': {', '.join(sorted(unknown))}")

    correlation = config.get('correlation') or {}
    if 'mode' in correlation and correlation['mode'] not in SweepMode.CHOICES:
        raise ValueError(
            f"Invalid correlation mode '{correlation['mode']}'. "
            f"Choose from: {', '.join(SweepMode.CHOICES)}"
        )
    if 'cutoff' in correlation:
        cutoff = correlation['cutoff']
        if not isinstance(cutoff, (int, float)) or cutoff <= 0:
            raise ValueError(f"Correlation cutoff must be positive number, got: {cutoff}")
    if 'min_slope' in correlation:
        min_slope = correlation['min_slope']
        if not isinstance(min_slope, (int, float)) or min_slope < 0:
            raise ValueError(f"Minimum slope must be non-negative number, got: {min_slope}")

    for name in ('correlation', 'differential'):
        section = config.get(name) or {}
        if 'min_n' in section:
            min_n = section['min_n']
            if not isinstance(min_n, int) or isinstance(min_n, bool) or min_n < 0:
                raise ValueError(f"{name}.min_n must be a non-negative integer, got: {min_n}")

    differential = config.get('differential') or {}
    if 'p_threshold' in differential:
        p = differential['p_threshold']
        if not isinstance(p, (int, float)) or not (0 < p <= 1):
            raise ValueError(f"p_threshold must be in (0, 1], got: {p}")

    filters = config.get('filters') or {}
    if 'dosage' in filters:
        DosageLevel.parse(filters['dosage'])

    genes = config.get('genes')
    if genes is not None and not isinstance(genes, list):
        raise ValueError("'genes' must be a list of gene symbols")
