"""Float32 embedding blobs and cosine similarity.

Embeddings are stored as packed native-order float32 (the sqlite-vec wire
format), 4 bytes per dimension. Similarity is computed in Python over a full
scan; the corpus is a single user's memory, not a search index.
"""

from __future__ import annotations

import math
import struct
from collections.abc import Sequence

from sqlite_vec import serialize_float32

_FLOAT32_SIZE = 4


def encode_embedding(embedding: Sequence[float]) -> bytes:
    """Pack *embedding* into a float32 blob.

    Raises:
        ValueError: If *embedding* is empty.
    """
    if not embedding:
        raise ValueError("Cannot encode an empty embedding")
    return serialize_float32(list(embedding))


def decode_embedding(blob: bytes | None) -> list[float]:
    """Unpack a float32 blob produced by encode_embedding().

    Raises:
        ValueError: If the blob is empty or not a whole number of float32 values.
    """
    if not blob:
        raise ValueError("Empty embedding blob")
    if len(blob) % _FLOAT32_SIZE != 0:
        raise ValueError(f"Invalid embedding blob length ({len(blob)} bytes)")
    count = len(blob) // _FLOAT32_SIZE
    return list(struct.unpack(f"{count}f", blob))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| |b|).

    Returns 0.0 when either vector is empty or has zero magnitude, or when the
    dimensions differ. The result is clamped to [-1, 1] against float drift.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    return max(-1.0, min(1.0, similarity))


def vector_norm(v: Sequence[float]) -> float:
    return math.sqrt(sum(x * x for x in v))
