"""Cosine similarity over sparse term-weight vectors."""

from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np


def _align(v1: Mapping[str, float], v2: Mapping[str, float]) -> Tuple[np.ndarray, np.ndarray]:
    terms = sorted(set(v1) | set(v2))
    a = np.array([v1.get(t, 0.0) for t in terms], dtype=np.float64)
    b = np.array([v2.get(t, 0.0) for t in terms], dtype=np.float64)
    return a, b


def cosine_similarity(v1: Mapping[str, float], v2: Mapping[str, float]) -> float:
    """Cosine of two term vectors over the union of their terms.

    Returns 0.0 when either vector has zero norm (including empty vectors).
    TF-IDF weights are non-negative, so the result lies in [0, 1]; it is
    clamped there to absorb rounding.
    """
    a, b = _align(v1, v2)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(a, b) / (norm_a * norm_b))
    return min(1.0, max(0.0, score))


def similarity_matrix(vectors: Sequence[Mapping[str, float]]) -> np.ndarray:
    """Pairwise cosine similarities of all vectors as an n x n matrix.

    Rows with zero norm produce 0 everywhere, including the diagonal.
    """
    count = len(vectors)
    if count == 0:
        return np.zeros((0, 0), dtype=np.float64)

    terms = sorted({t for v in vectors for t in v})
    column = {t: i for i, t in enumerate(terms)}
    matrix = np.zeros((count, len(terms)), dtype=np.float64)
    for row, vector in enumerate(vectors):
        for term, weight in vector.items():
            matrix[row, column[term]] = weight

    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0.0, 1.0, norms)
    normed = matrix / safe
    return np.clip(normed @ normed.T, 0.0, 1.0)


def top_k(scores: Dict[str, float], k: int) -> List[Tuple[str, float]]:
    """Highest `k` scores, ties broken by id."""
    return sorted(scores.items(), key=lambda item: (-item[1], item[0]))[:k]
