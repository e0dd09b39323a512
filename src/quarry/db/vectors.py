"""Embedding vector <-> BLOB codec.

Vectors are stored as raw float32 bytes in native byte order, 4 bytes per
component, with no header. The dimension is recovered as ``len(blob) // 4``.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

FLOAT_BYTES = 4


def serialize_vector(vector: Sequence[float] | np.ndarray) -> bytes:
    """Encode *vector* as native-endian float32 bytes.

    Examples:
        serialize_vector([1.0, 0.0]) -> 8 bytes
    """
    return np.asarray(vector, dtype=np.float32).tobytes()


def deserialize_vector(blob: bytes) -> np.ndarray:
    """Decode a float32 BLOB written by serialize_vector().

    Raises:
        ValueError: If the byte length is not a multiple of 4.
    """
    if len(blob) % FLOAT_BYTES:
        raise ValueError(
            f"Vector blob length {len(blob)} is not a multiple of {FLOAT_BYTES}."
        )
    return np.frombuffer(blob, dtype=np.float32)
