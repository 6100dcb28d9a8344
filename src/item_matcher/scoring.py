"""
Cosine similarity between embedding vectors.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Return dot(a, b) / (|a| * |b|), clipped to [-1, 1].

    A zero-norm input on either side scores 0.0.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.ndim != 1:
        raise ValueError(
            f"Cannot compare vectors of shape {va.shape} and {vb.shape}"
        )
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(va, vb)) / (norm_a * norm_b)
    # Rounding can push parallel vectors a hair past 1.
    return float(min(1.0, max(-1.0, score)))
