"""
Tests for config file loading and CLI/config merging.
"""

import json
from argparse import Namespace
from pathlib import Path

import pytest
import yaml

from depcorr.cli.config import (
    AnalysisConfig,
    explicit_arg_names,
    load_config,
    merge_config_with_args,
    validate_config,
)

EXAMPLE = {
    'data': 'web_data',
    'output': 'results/kras',
    'genes': ['KRAS', 'NRAS'],
    'filters': {'lineage': 'Lung', 'hotspot_gene': 'KRAS', 'dosage': '1+2'},
    'correlation': {'mode': 'expand', 'cutoff': 0.4, 'min_n': 30},
    'differential': {'hotspot_gene': 'TP53', 'p_threshold': 0.01},
}


def _correlate_defaults(**overrides):
    values = dict(
        data=None, output=None, genes=None, timeout=None,
        lineage=None, sub_lineage=None, filter_hotspot=None, filter_dosage='all',
        mode='within-list', cutoff=0.5, min_n=50, min_slope=0.0,
    )
    values.update(overrides)
    return Namespace(**values)


class TestLoadConfig:

    def test_yaml(self, tmp_path):
        path = tmp_path / "analysis.yaml"
        path.write_text(yaml.safe_dump(EXAMPLE))
        assert load_config(path) == EXAMPLE

    def test_json(self, tmp_path):
        path = tmp_path / "analysis.json"
        path.write_text(json.dumps(EXAMPLE))
        assert load_config(path)['correlation']['mode'] == 'expand'

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "analysis.toml"
        path.write_text("data = 'x'")
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("correlation: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="dictionary"):
            load_config(path)


class TestValidateConfig:

    def test_example_is_valid(self):
        validate_config(EXAMPLE)

    @pytest.mark.parametrize("config", [
        {'correlation': {'mode': 'pairwise'}},
        {'correlation': {'cutoff': 0}},
        {'correlation': {'min_slope': -1}},
        {'correlation': {'min_n': -5}},
        {'differential': {'min_n': 2.5}},
        {'differential': {'p_threshold': 1.5}},
        {'filters': {'dosage': '7'}},
        {'filters': {'tissue': 'Lung'}},
        {'filters': 'Lung'},
        {'genes': 'KRAS'},
    ])
    def test_invalid(self, config):
        with pytest.raises(ValueError):
            validate_config(config)

    def test_schema_dataclass(self):
        config = AnalysisConfig.from_dict(EXAMPLE)
        assert config.data == Path('web_data')
        assert config.correlation.cutoff == 0.4
        assert config.correlation.min_slope == 0.0
        assert config.differential.min_n == 20
        assert config.filters.dosage == '1+2'


class TestMergeConfig:

    def test_explicit_arg_names(self):
        names = explicit_arg_names(["-d", "web", "--cutoff=0.7", "--filter-dosage", "2", "-g", "A"])
        assert names == {'data', 'cutoff', 'filter_dosage', 'genes'}

    def test_config_fills_defaults(self):
        merged = merge_config_with_args(EXAMPLE, _correlate_defaults(), [], section='correlation')
        assert merged.data == Path('web_data')
        assert merged.mode == 'expand'
        assert merged.cutoff == 0.4
        assert merged.min_n == 30
        assert merged.lineage == 'Lung'
        assert merged.filter_hotspot == 'KRAS'
        assert merged.filter_dosage == '1+2'
        assert merged.genes == ['KRAS', 'NRAS']

    def test_explicit_cli_wins(self):
        args = _correlate_defaults(cutoff=0.7, data=Path('other'))
        merged = merge_config_with_args(
            EXAMPLE, args, ["--cutoff", "0.7", "--data", "other"], section='correlation'
        )
        assert merged.cutoff == 0.7
        assert merged.data == Path('other')
        assert merged.mode == 'expand'

    def test_only_requested_section_applies(self):
        args = Namespace(data=None, output=None, timeout=None, hotspot=None, p_threshold=0.05, min_n=20,
                         lineage=None, sub_lineage=None, filter_hotspot=None, filter_dosage='all')
        merged = merge_config_with_args(EXAMPLE, args, [], section='differential')
        assert merged.hotspot == 'TP53'
        assert merged.p_threshold == 0.01
        # correlation.min_n must not leak into the differential command
        assert merged.min_n == 20

    def test_original_namespace_untouched(self):
        args = _correlate_defaults()
        merge_config_with_args(EXAMPLE, args, [], section='correlation')
        assert args.cutoff == 0.5
