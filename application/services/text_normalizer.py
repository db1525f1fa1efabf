"""Tokenization and canonicalization of free text."""
from __future__ import annotations

import re
from typing import Mapping, Sequence

from application.services.fifo_cache import FifoCache
from application.services.lexicon import ALIASES, STEM_SUFFIXES, STOP_WORDS, SYNONYMS

_PIECE_SPLIT = re.compile(r"[^a-zA-Z0-9]+")
_COMPOSITE_SPLIT = re.compile(r"[\s_]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

DEFAULT_CACHE_SIZE = 1000


def subwords(token: str, size: int = 3) -> list[str]:
    """Character windows of ``size``; tokens not longer than ``size`` have none."""
    if len(token) <= size:
        return []
    return [token[i : i + size] for i in range(len(token) - size + 1)]


def ngrams(tokens: Sequence[str], n: int) -> list[str]:
    return [" ".join(tokens[i : i + n]) for i in range(len(tokens) - n + 1)]


def extract_phrases(tokens: Sequence[str]) -> list[str]:
    """Bigrams followed by trigrams, duplicates kept."""
    return ngrams(tokens, 2) + ngrams(tokens, 3)


class TextNormalizer:
    """Splits, expands, stems and filters text into index tokens."""

    def __init__(
        self,
        *,
        aliases: Mapping[str, str] | None = None,
        synonyms: Mapping[str, Sequence[str]] | None = None,
        stop_words: frozenset[str] | None = None,
        suffixes: Sequence[str] | None = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        self._aliases = dict(ALIASES if aliases is None else aliases)
        self._synonyms = {key: tuple(value) for key, value in (SYNONYMS if synonyms is None else synonyms).items()}
        self._stop_words = STOP_WORDS if stop_words is None else stop_words
        self._suffixes = tuple(STEM_SUFFIXES if suffixes is None else suffixes)
        self._cache: FifoCache[str, tuple[str, ...]] = FifoCache(cache_size)

    @property
    def cache(self) -> FifoCache[str, tuple[str, ...]]:
        return self._cache

    def normalize(self, text: str) -> list[str]:
        cached = self._cache.get(text)
        if cached is not None:
            return list(cached)
        tokens: list[str] = []
        for piece in _PIECE_SPLIT.split(text or ""):
            if not piece:
                continue
            for expanded in self._expand(piece):
                for part in self._split_composite(expanded):
                    if part.lower() in self._stop_words:
                        continue
                    token = self.stem(part).lower()
                    if len(token) > 1 and token not in self._stop_words:
                        tokens.append(token)
        self._cache[text] = tuple(tokens)
        return tokens

    def stem(self, word: str) -> str:
        for suffix in self._suffixes:
            if word.endswith(suffix):
                return word[: -len(suffix)]
        return word

    def _expand(self, piece: str) -> list[str]:
        key = piece.lower()
        expanded = [self._aliases.get(key, piece)]
        expanded.extend(self._synonyms.get(key, ()))
        return expanded

    @staticmethod
    def _split_composite(word: str) -> list[str]:
        parts: list[str] = []
        for chunk in _COMPOSITE_SPLIT.split(word):
            if chunk:
                parts.extend(part for part in _CAMEL_BOUNDARY.split(chunk) if part)
        return parts


__all__ = ["TextNormalizer", "subwords", "ngrams", "extract_phrases"]
