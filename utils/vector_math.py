"""Common vector mathematics utilities."""

from __future__ import annotations

import hashlib
from typing import List, Sequence

import numpy as np
from numpy.typing import NDArray


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return cosine similarity between two vectors.

    If either vector has zero norm the result is ``0.0``.
    """
    va = np.array(a, dtype=float)
    vb = np.array(b, dtype=float)
    if va.shape != vb.shape:
        dim = max(len(va), len(vb))
        if len(va) < dim:
            va = np.pad(va, (0, dim - len(va)))
        if len(vb) < dim:
            vb = np.pad(vb, (0, dim - len(vb)))
    na = np.linalg.norm(va)
    nb = np.linalg.norm(vb)
    if na == 0 or nb == 0:
        return 0.0
    return float(va @ vb / (na * nb))


def hashed_embedding(text: str, dim: int = 64) -> List[float]:
    """Deterministic bag-of-tokens embedding used when no model is available."""

    vec: NDArray[np.float64] = np.zeros(dim, dtype=float)
    for tok in text.lower().split():
        h = int(hashlib.md5(tok.encode("utf-8")).hexdigest(), 16)
        vec[h % dim] += 1.0
    norm = np.linalg.norm(vec)
    if norm > 0:
        vec /= norm
    return [float(x) for x in vec]


__all__ = ["cosine_similarity", "hashed_embedding"]
