"""Vector and text similarity helpers. Pure functions, no store access."""

import re
from typing import Sequence

import numpy as np

STOP_WORDS = {
    "the", "and", "for", "are", "was", "were", "our", "you", "your", "with",
    "what", "when", "where", "who", "why", "how", "that", "this", "these",
    "those", "from", "about", "into", "its", "has", "have", "had", "does",
    "did", "can", "will", "not", "but", "any", "all",
}


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either magnitude is zero or lengths differ.

    The result is always within [-1, 1], and exactly 1.0 for vectors pointing
    the same way (including ``cosine_similarity(v, v)``).
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    unit_a = va / norm_a
    unit_b = vb / norm_b
    if np.array_equal(unit_a, unit_b):
        return 1.0
    return float(np.clip(np.dot(unit_a, unit_b), -1.0, 1.0))


def keyword_terms(query: str) -> list[str]:
    """Lowercased query terms longer than two characters, stop words removed."""
    terms = []
    for raw in query.lower().split():
        term = re.sub(r"^[^\w]+|[^\w]+$", "", raw)
        if len(term) > 2 and term not in STOP_WORDS and term not in terms:
            terms.append(term)
    return terms
