"""Embedder that buckets hashed character trigrams (deterministic pseudo-embedding)."""
from __future__ import annotations

from typing import Sequence

import numpy as np

from domain.interfaces import Embedder

DEFAULT_DIMENSION = 100
_HASH_MASK = 0x7FFFFFFF


def rolling_hash(text: str) -> int:
    """Multiply-add string hash kept non-negative by masking to 31 bits."""
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & _HASH_MASK
    return value


class TrigramHashEmbedder(Embedder):
    """Spreads the trigrams of a token bag over ``dimension`` buckets.

    Every trigram adds ``1 / total_trigrams`` to its bucket and the result is
    L2-normalized. Tokens of three characters or fewer contribute nothing, so
    a bag without longer tokens yields the zero vector.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION, ngram_size: int = 3) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension
        self._ngram_size = ngram_size
        self._model_id = f"hash-trigram-{dimension}"

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def dimension(self) -> int:
        return self._dimension

    def _ngrams(self, token: str) -> list[str]:
        n = self._ngram_size
        if len(token) <= n:
            return []
        return [token[i : i + n] for i in range(len(token) - n + 1)]

    def embed_tokens(self, tokens: Sequence[str]) -> np.ndarray:
        grams = [gram for token in tokens for gram in self._ngrams(token)]
        vector = np.zeros(self._dimension, dtype=np.float64)
        if not grams:
            return vector
        share = 1.0 / len(grams)
        for gram in grams:
            vector[rolling_hash(gram) % self._dimension] += share
        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            return vector
        return vector / norm

    def similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        denom_a = float(np.linalg.norm(a))
        denom_b = float(np.linalg.norm(b))
        if denom_a == 0.0 or denom_b == 0.0:
            return 0.0
        return float(np.dot(a, b) / (denom_a * denom_b))


__all__ = ["TrigramHashEmbedder", "rolling_hash", "DEFAULT_DIMENSION"]
