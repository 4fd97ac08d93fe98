"""Vector (de)serialisation helpers for BLOB columns."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

VECTOR_DTYPE = np.float32


def as_vector(values: Sequence[float] | NDArray) -> NDArray[np.float32]:
    return np.asarray(values, dtype=VECTOR_DTYPE).reshape(-1)


def vector_to_blob(vector: NDArray) -> bytes:
    return as_vector(vector).tobytes()


def blob_to_vector(blob: bytes, dtype: str = "float32") -> NDArray[np.float32]:
    return np.frombuffer(blob, dtype=np.dtype(dtype)).astype(VECTOR_DTYPE, copy=True)
