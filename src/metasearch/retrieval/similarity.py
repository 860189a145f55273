"""Vector similarity."""

from __future__ import annotations

import math
from typing import Sequence


def compute_similarity(x: Sequence[float], y: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 when either has zero magnitude."""

    if len(x) != len(y):
        raise ValueError(f"Vectors must have the same dimension ({len(x)} != {len(y)})")
    dot = sum(a * b for a, b in zip(x, y))
    norm_x = math.sqrt(sum(a * a for a in x))
    norm_y = math.sqrt(sum(b * b for b in y))
    if norm_x == 0.0 or norm_y == 0.0:
        return 0.0
    return dot / (norm_x * norm_y)
