"""
Tests for the quantized matrix codec, DependencyMatrix and bundle loading.
"""

import gzip
import json
import zlib

import numpy as np
import pytest

from depcorr.core.dependency_matrix import DependencyMatrix, GeneIndex
from depcorr.core.errors import DecodeError
from depcorr.io.codec import INT16_DTYPE, decode_matrix, encode_matrix
from depcorr.io.loaders import (
    MATRIX_FILE,
    METADATA_FILE,
    load_compressed_matrix,
    load_dataset,
)

SCALE = 1000
SENTINEL = -32768


def _payload(ints, compress=gzip.compress):
    return compress(np.asarray(ints, dtype=INT16_DTYPE).tobytes())


class TestDecode:
    """Decoding of gzip int16 payloads."""

    def test_scaled_values_and_sentinel(self):
        payload = _payload([1234, -500, SENTINEL, 0, 1, -1])
        values = decode_matrix(payload, SCALE, SENTINEL, n_genes=2, n_cell_lines=3)

        assert values.shape == (2, 3)
        assert values[0, 0] == pytest.approx(1.234)
        assert values[0, 1] == pytest.approx(-0.5)
        assert np.isnan(values[0, 2])
        assert values[1].tolist() == pytest.approx([0.0, 0.001, -0.001])

    def test_row_major_gene_layout(self):
        payload = _payload([1, 2, 3, 4, 5, 6])
        values = decode_matrix(payload, 1, SENTINEL, n_genes=3, n_cell_lines=2)
        assert values[1].tolist() == [3.0, 4.0]

    def test_zlib_header_accepted(self):
        payload = _payload([10, 20], compress=zlib.compress)
        values = decode_matrix(payload, 10, SENTINEL, n_genes=1, n_cell_lines=2)
        assert values.tolist() == [[1.0, 2.0]]

    def test_count_mismatch_raises(self):
        payload = _payload([1, 2, 3, 4, 5])
        with pytest.raises(DecodeError, match="metadata declares"):
            decode_matrix(payload, SCALE, SENTINEL, n_genes=2, n_cell_lines=3)

    def test_odd_byte_count_raises(self):
        payload = gzip.compress(b"\x01\x02\x03")
        with pytest.raises(DecodeError, match="whole number"):
            decode_matrix(payload, SCALE, SENTINEL, n_genes=1, n_cell_lines=1)

    def test_corrupt_payload_raises(self):
        with pytest.raises(DecodeError, match="decompress"):
            decode_matrix(b"definitely not gzip", SCALE, SENTINEL, 1, 1)

    def test_bad_scale_factor_raises(self):
        with pytest.raises(DecodeError):
            decode_matrix(_payload([1]), 0, SENTINEL, 1, 1)


class TestQuantizationRoundTrip:
    """encode → decode recovers values within half a quantization step."""

    def test_error_bounded_by_half_step(self):
        rng = np.random.RandomState(0)
        values = rng.uniform(-3, 1.5, size=(20, 30))
        decoded = decode_matrix(encode_matrix(values, SCALE, SENTINEL), SCALE, SENTINEL, 20, 30)
        assert np.max(np.abs(decoded - values)) <= 0.5 / SCALE + 1e-12

    def test_missing_stays_missing(self):
        values = np.array([[np.nan, -0.25], [0.5, np.nan]])
        decoded = decode_matrix(encode_matrix(values, SCALE, SENTINEL), SCALE, SENTINEL, 2, 2)
        assert np.array_equal(np.isnan(decoded), np.isnan(values))

    def test_value_on_sentinel_is_not_missing(self):
        # -32.768 quantizes exactly onto the sentinel
        values = np.array([[-32.768, 1.0]])
        decoded = decode_matrix(encode_matrix(values, SCALE, SENTINEL), SCALE, SENTINEL, 1, 2)
        assert not np.isnan(decoded).any()
        assert decoded[0, 0] == pytest.approx(-32.767)


class TestDependencyMatrix:
    """Immutability, views and case-insensitive lookup."""

    @pytest.fixture
    def matrix(self):
        data = np.array([[-0.1, -1.2, 0.0], [0.3, np.nan, 0.2]])
        return DependencyMatrix(data, genes=["KRAS", "TP53"], cell_lines=["A", "B", "C"])

    def test_read_only(self, matrix):
        with pytest.raises(ValueError):
            matrix.data[0, 0] = 5.0

    def test_row_is_view(self, matrix):
        row = matrix.row_for("kras")
        assert np.shares_memory(row, matrix.data)
        assert row.tolist() == [-0.1, -1.2, 0.0]

    def test_case_insensitive_lookup(self, matrix):
        assert matrix.gene_index.position("tp53") == 1
        assert "Tp53" in matrix.gene_index
        assert matrix.gene_index.canonical("kras") == "KRAS"
        assert matrix.gene_index.get("BRAF") is None

    def test_duplicate_symbols_rejected(self):
        with pytest.raises(ValueError, match="Duplicate gene symbol"):
            GeneIndex(["KRAS", "kras"])

    def test_shape_mismatch_rejected(self):
        with pytest.raises(ValueError):
            DependencyMatrix(np.zeros((2, 2)), genes=["A"], cell_lines=["x", "y"])

    def test_columns_full_range_shares_buffer(self, matrix):
        assert matrix.columns(np.arange(3)) is matrix.data
        assert matrix.columns([0, 2]).shape == (2, 2)

    def test_valid_values_drop_missing(self, matrix):
        assert matrix.valid_values(1).tolist() == [0.3, 0.2]


class TestLoadDataset:
    """Bundle directory round trip and validation."""

    def test_round_trip(self, dataset_dir, synthetic_dataset):
        loaded = load_dataset(dataset_dir)
        original = synthetic_dataset.matrix

        assert loaded.matrix.genes == original.genes
        assert list(loaded.matrix.cell_lines) == list(original.cell_lines)
        np.testing.assert_allclose(loaded.matrix.data, original.data, atol=0.5 / SCALE, equal_nan=True)
        assert loaded.annotations.hotspot_genes == ["HLA-A", "KRAS", "TP53"]
        assert loaded.annotations.lineage_of("ACH-000001") == "Lung"
        assert loaded.annotations.name_of("ACH-000001") == "LINE1"
        assert loaded.metadata['release'] == 'synthetic'

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(tmp_path / "nope")

    def test_metadata_count_mismatch(self, dataset_dir):
        meta_path = dataset_dir / METADATA_FILE
        metadata = json.loads(meta_path.read_text())
        metadata['nGenes'] = metadata['nGenes'] + 1
        meta_path.write_text(json.dumps(metadata))

        with pytest.raises(DecodeError):
            load_dataset(dataset_dir)

    def test_truncated_matrix(self, dataset_dir):
        payload = zlib.decompress((dataset_dir / MATRIX_FILE).read_bytes(), zlib.MAX_WBITS | 32)
        (dataset_dir / MATRIX_FILE).write_bytes(gzip.compress(payload[:-2]))

        with pytest.raises(DecodeError):
            load_dataset(dataset_dir)

    def test_load_compressed_matrix_rejects_duplicate_cell_lines(self):
        payload = _payload([1, 2])
        with pytest.raises(DecodeError):
            load_compressed_matrix(payload, SCALE, SENTINEL, ["G"], ["X", "X"])
