"""In-memory index over the fact corpus."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from application.services.bm25_index import BM25Index
from application.services.text_normalizer import TextNormalizer, extract_phrases, ngrams, subwords
from domain.entities import Document, RawFact
from domain.errors import CorpusConfigurationError
from domain.interfaces import Embedder

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT = 0.8
WEIGHT_FLOOR = 0.7
WEIGHT_CEILING = 1.0


def clamp_weight(value: float, floor: float = WEIGHT_FLOOR, ceiling: float = WEIGHT_CEILING) -> float:
    return min(ceiling, max(floor, value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparsable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CorpusIndex:
    """Owns every Document plus the corpus-wide statistics.

    Idf and average document length are computed once in :meth:`build`.
    Documents are read-only afterwards; adaptive weights live per session in
    :attr:`domain.entities.SessionContext.relevance`.
    """

    def __init__(
        self,
        documents: list[Document],
        bm25: BM25Index,
        *,
        normalizer: TextNormalizer,
        embedder: Embedder,
    ) -> None:
        self.documents = documents
        self.bm25 = bm25
        self.normalizer = normalizer
        self.embedder = embedder
        self._positions = {document.id: position for position, document in enumerate(documents)}
        self.subtopic_index: dict[str, list[Document]] = {}
        self.category_index: dict[str, list[Document]] = {}
        for document in documents:
            for subtopic in sorted(document.subtopics):
                self.subtopic_index.setdefault(subtopic, []).append(document)
            if document.category:
                self.category_index.setdefault(document.category.lower(), []).append(document)

    @classmethod
    def build(
        cls,
        facts: Sequence[RawFact],
        *,
        normalizer: TextNormalizer,
        embedder: Embedder,
    ) -> "CorpusIndex":
        if not facts:
            raise CorpusConfigurationError("Cannot build an index over an empty corpus")

        documents: list[Document] = []
        term_lists: list[list[str]] = []
        seen_ids: set[int] = set()
        for position, fact in enumerate(facts):
            document_id = fact.id if fact.id is not None else position
            if document_id in seen_ids:
                raise CorpusConfigurationError(f"Duplicate fact id {document_id}")
            seen_ids.add(document_id)

            source = " ".join([fact.text, " ".join(fact.keywords), " ".join(fact.subtopics)])
            tokens = normalizer.normalize(source)
            grams = [gram for token in tokens for gram in subwords(token)]
            terms = tokens + grams + ngrams(tokens, 2)
            term_lists.append(terms)

            weight = fact.priority if fact.priority is not None else DEFAULT_WEIGHT
            documents.append(
                Document(
                    id=document_id,
                    text=fact.text,
                    keywords={keyword.lower() for keyword in fact.keywords},
                    topic=fact.topic,
                    category=fact.category or fact.topic.split("/")[0],
                    subtopics={subtopic.lower() for subtopic in fact.subtopics},
                    tokens=tokens,
                    term_freq={},
                    phrases=set(extract_phrases(tokens)),
                    embedding=embedder.embed_tokens(tokens),
                    doc_length=len(tokens),
                    priority=fact.priority,
                    updated_at=parse_timestamp(fact.updated_at),
                    related_topics=list(fact.related_topics),
                    base_weight=clamp_weight(weight),
                )
            )

        bm25 = BM25Index(term_lists, [document.doc_length for document in documents])
        for position, document in enumerate(documents):
            document.term_freq = bm25.term_frequencies(position)
        logger.info(
            "Indexed %d documents (%d distinct terms, avg length %.2f)",
            len(documents),
            len(bm25.document_frequency),
            bm25.average_doc_length,
        )
        return cls(documents, bm25, normalizer=normalizer, embedder=embedder)

    @property
    def document_frequency(self) -> dict[str, int]:
        return self.bm25.document_frequency

    @property
    def inverse_document_frequency(self) -> dict[str, float]:
        return self.bm25.idf

    @property
    def average_doc_length(self) -> float:
        return self.bm25.average_doc_length

    def idf(self, term: str) -> float:
        return self.bm25.idf.get(term, 0.0)

    def position(self, document_id: int) -> int:
        return self._positions[document_id]

    def get(self, document_id: int) -> Document | None:
        position = self._positions.get(document_id)
        if position is None:
            return None
        return self.documents[position]

    def by_subtopic(self, subtopic: str) -> list[Document]:
        return list(self.subtopic_index.get(subtopic.lower(), []))

    def by_category(self, category: str) -> list[Document]:
        return list(self.category_index.get(category.lower(), []))

    def __len__(self) -> int:
        return len(self.documents)


__all__ = [
    "CorpusIndex",
    "clamp_weight",
    "parse_timestamp",
    "utcnow",
    "DEFAULT_WEIGHT",
    "WEIGHT_FLOOR",
    "WEIGHT_CEILING",
]
