"""
Quantized int16 codec for dependency matrices.

The gene-effect matrix ships as a gzip-compressed stream of little-endian
16-bit signed integers, one per cell, row-major (all cell lines of gene 0,
then gene 1, ...). Each integer is either the missing-data sentinel or a
quantized score:

    score = int / scale_factor

With ``scale_factor = 1000`` scores keep three decimals (error ≤ 0.0005) and
the int16 range covers -32.767..+32.767, far beyond the -2..+1 range of real
gene effects. A 18k × 1.1k matrix compresses to a few tens of MB instead of
~80 MB raw float32.

Examples:
    >>> import numpy as np
    >>> values = np.array([[0.1234, np.nan], [-1.5, 0.0]])
    >>> payload = encode_matrix(values, scale_factor=1000, missing_sentinel=-32768)
    >>> decode_matrix(payload, 1000, -32768, n_genes=2, n_cell_lines=2)
    array([[ 0.123,    nan],
           [-1.5  ,  0.   ]])
"""

from __future__ import annotations

import gzip
import logging
import zlib

import numpy as np

from depcorr.core.errors import DecodeError

__all__ = ['encode_matrix', 'decode_matrix', 'decompress', 'INT16_DTYPE']

logger = logging.getLogger(__name__)

INT16_DTYPE = np.dtype('<i2')
_INT16_MIN = int(np.iinfo(np.int16).min)
_INT16_MAX = int(np.iinfo(np.int16).max)

# zlib accepts both gzip and zlib headers with this window setting
_AUTO_HEADER_WBITS = zlib.MAX_WBITS | 32


def decompress(payload: bytes) -> bytes:
    """Inflate a gzip or zlib payload; raises DecodeError on corrupt input."""
    try:
        return zlib.decompress(payload, _AUTO_HEADER_WBITS)
    except zlib.error as e:
        raise DecodeError(f"Could not decompress dependency matrix: {e}") from e


def _check_parameters(scale_factor: float, missing_sentinel: int) -> None:
    if not np.isfinite(scale_factor) or scale_factor <= 0:
        raise DecodeError(f"scale_factor must be a positive number, got {scale_factor}")
    if not (_INT16_MIN <= int(missing_sentinel) <= _INT16_MAX):
        raise DecodeError(f"missing_sentinel {missing_sentinel} does not fit in int16")


def decode_matrix(
    payload: bytes,
    scale_factor: float,
    missing_sentinel: int,
    n_genes: int,
    n_cell_lines: int,
) -> np.ndarray:
    """
    Decode a compressed quantized matrix into a dense float64 array.

    Args:
        payload: gzip/zlib-compressed little-endian int16 stream
        scale_factor: Divisor recovering the real score from each integer
        missing_sentinel: Integer marking a missing value (decoded as NaN)
        n_genes: Expected number of rows
        n_cell_lines: Expected number of columns

    Returns:
        Array of shape (n_genes, n_cell_lines); missing cells are NaN

    Raises:
        DecodeError: corrupt payload, odd byte count, bad parameters, or an
            element count different from ``n_genes * n_cell_lines``
    """
    _check_parameters(scale_factor, missing_sentinel)
    raw = decompress(payload)

    if len(raw) % INT16_DTYPE.itemsize != 0:
        raise DecodeError(
            f"Decompressed payload has {len(raw)} bytes, not a whole number of int16 values"
        )

    ints = np.frombuffer(raw, dtype=INT16_DTYPE)
    expected = int(n_genes) * int(n_cell_lines)
    if ints.size != expected:
        raise DecodeError(
            f"Decoded {ints.size} values but metadata declares "
            f"{n_genes} genes × {n_cell_lines} cell lines = {expected}"
        )

    missing = ints == missing_sentinel
    values = ints.astype(np.float64) / float(scale_factor)
    values[missing] = np.nan

    logger.debug(
        f"Decoded {n_genes}×{n_cell_lines} matrix "
        f"({len(payload) / 1e6:.1f} MB compressed, {missing.mean() if expected else 0:.1%} missing)"
    )
    return values.reshape(int(n_genes), int(n_cell_lines))


def encode_matrix(
    values: np.ndarray,
    scale_factor: float,
    missing_sentinel: int,
    compresslevel: int = 9,
) -> bytes:
    """
    Quantize and gzip-compress a float matrix (inverse of :func:`decode_matrix`).

    Each finite value becomes ``round(value * scale_factor)`` clipped to the
    int16 range; NaN becomes ``missing_sentinel``. A quantized value that
    lands exactly on the sentinel is moved by one quantization step so it
    cannot be mistaken for missing.

    Raises:
        DecodeError: bad scale factor or sentinel
    """
    _check_parameters(scale_factor, missing_sentinel)
    values = np.asarray(values, dtype=np.float64)
    missing = ~np.isfinite(values)

    scaled = np.rint(np.where(missing, 0.0, values) * float(scale_factor))
    ints = np.clip(scaled, _INT16_MIN, _INT16_MAX).astype(np.int64)

    collisions = (ints == missing_sentinel) & ~missing
    if collisions.any():
        logger.debug(f"Nudging {int(collisions.sum())} values off the missing sentinel")
        step = 1 if missing_sentinel < 0 else -1
        ints[collisions] += step

    ints[missing] = missing_sentinel
    raw = ints.astype(INT16_DTYPE).tobytes(order='C')
    return gzip.compress(raw, compresslevel=compresslevel)
