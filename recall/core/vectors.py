"""
Vector codec and cosine similarity.

Vectors are persisted as text in the form "[0.1,0.2,...]". Floats are written
with repr() so decoding reproduces them exactly.
"""

import math
from typing import Sequence


class DimensionMismatch(ValueError):
    """Two vectors of different length were compared."""


def encode_vector(vector: Sequence[float]) -> str:
    """Serialize a vector to its canonical persisted text form."""
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


def decode_vector(text: str) -> list[float]:
    """Parse a persisted vector. Empty input gives an empty vector.

    Raises ValueError for malformed, non-empty input.
    """
    if not text or not text.strip():
        return []
    body = text.strip()
    if body.startswith("["):
        body = body[1:]
    if body.endswith("]"):
        body = body[:-1]
    if not body.strip():
        return []
    return [float(part) for part in body.split(",")]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude: degenerate vectors are
    treated as maximally dissimilar instead of producing NaN.
    """
    if len(a) != len(b):
        raise DimensionMismatch(
            f"Vectors must have the same length (got {len(a)} and {len(b)})"
        )

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
