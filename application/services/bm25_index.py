"""BM25 statistics over the indexed corpus."""
from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence

from rank_bm25 import BM25Okapi

DEFAULT_K1 = 1.2
DEFAULT_B = 0.75


class _SmoothedBM25(BM25Okapi):
    """BM25Okapi with the always-positive ``ln(1 + (N - df + .5) / (df + .5))`` idf."""

    def _calc_idf(self, nd: Mapping[str, int]) -> None:
        for word, freq in nd.items():
            self.idf[word] = math.log((self.corpus_size - freq + 0.5) / (freq + 0.5) + 1)


class BM25Index:
    """Holds per-document term frequencies and the corpus-wide idf.

    ``rank_bm25`` builds the document frequency and idf tables from the term
    lists (tokens, subwords and bigrams). Length normalization uses the
    token counts passed in ``doc_lengths`` rather than the term list sizes.
    """

    def __init__(
        self,
        term_lists: Sequence[list[str]],
        doc_lengths: Sequence[int],
        *,
        k1: float = DEFAULT_K1,
        b: float = DEFAULT_B,
    ) -> None:
        if not term_lists:
            raise ValueError("BM25Index needs at least one document")
        if len(term_lists) != len(doc_lengths):
            raise ValueError("term_lists and doc_lengths must have the same size")
        self.k1 = k1
        self.b = b
        self._model = _SmoothedBM25(list(term_lists), k1=k1, b=b)
        self._doc_lengths = list(doc_lengths)
        self.average_doc_length = sum(self._doc_lengths) / len(self._doc_lengths)
        self.document_frequency: dict[str, int] = {}
        for frequencies in self._model.doc_freqs:
            for term in frequencies:
                self.document_frequency[term] = self.document_frequency.get(term, 0) + 1

    @property
    def corpus_size(self) -> int:
        return self._model.corpus_size

    @property
    def idf(self) -> dict[str, float]:
        return self._model.idf

    def term_frequencies(self, position: int) -> dict[str, int]:
        return self._model.doc_freqs[position]

    def score(self, terms: Iterable[str], position: int) -> float:
        """Sum the BM25 contribution of every term present in the document."""
        frequencies = self._model.doc_freqs[position]
        avgdl = self.average_doc_length or 1.0
        length_norm = 1 - self.b + self.b * self._doc_lengths[position] / avgdl
        total = 0.0
        for term in terms:
            tf = frequencies.get(term)
            if not tf:
                continue
            idf = self._model.idf.get(term, 0.0)
            total += idf * tf * (self.k1 + 1) / (tf + self.k1 * length_norm)
        return total


__all__ = ["BM25Index", "DEFAULT_K1", "DEFAULT_B"]
