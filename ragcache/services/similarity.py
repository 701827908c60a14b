"""Cosine similarity between query embeddings."""

import math
from collections.abc import Sequence

import numpy as np


class DimensionMismatchError(ValueError):
    """Raised when two embeddings of different dimensionality are compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Cannot compare embeddings of dimension {left} and {right}")


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """
    Compute dot(a, b) / (|a| * |b|).

    Returns NaN when either vector has zero norm; callers must treat NaN
    as "no match".

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape != vb.shape:
        raise DimensionMismatchError(va.shape[0], vb.shape[0])

    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return math.nan
    return float(np.dot(va, vb)) / denom
