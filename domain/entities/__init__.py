"""Domain entities for the NovaSearch engine."""
from __future__ import annotations

from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, MutableMapping

import numpy as np


@dataclass(slots=True)
class RawFact:
    """A corpus record as delivered by a corpus source."""

    text: str
    keywords: list[str]
    topic: str
    id: int | None = None
    subtopics: list[str] = field(default_factory=list)
    category: str | None = None
    priority: float | None = None
    updated_at: str | None = None
    related_topics: list[str] = field(default_factory=list)


@dataclass(slots=True, eq=False)
class Document:
    """An indexed fact. Shared by every session and never mutated after indexing."""

    id: int
    text: str
    keywords: set[str]
    topic: str
    category: str
    subtopics: set[str]
    tokens: list[str]
    term_freq: dict[str, int]
    phrases: set[str]
    embedding: np.ndarray
    doc_length: int
    priority: float | None = None
    updated_at: datetime | None = None
    related_topics: list[str] = field(default_factory=list)
    base_weight: float = 0.8


@dataclass(slots=True)
class RelevanceState:
    """Adaptive relevance of one document as seen by one session."""

    weight: float
    view_count: float = 0.0
    feedback_score: int = 0
    last_viewed_at: datetime | None = None


@dataclass(slots=True)
class HistoryEntry:
    """One processed query remembered by the session."""

    query: str
    topic: str | None
    intent: str
    entities: list[str] = field(default_factory=list)
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "topic": self.topic,
            "intent": self.intent,
            "entities": list(self.entities),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "HistoryEntry":
        return cls(
            query=str(payload.get("query", "")),
            topic=payload.get("topic"),
            intent=str(payload.get("intent", "general")),
            entities=[str(item) for item in payload.get("entities", [])],
            timestamp=str(payload.get("timestamp", "")),
        )


MIN_HISTORY_CAPACITY = 10
MAX_HISTORY_CAPACITY = 50


@dataclass(slots=True)
class SessionContext:
    """Per-session conversational state.

    History is a ring buffer: once ``history_capacity`` entries are stored the
    oldest one is evicted. Bookmarks behave the same way with
    ``bookmark_capacity``.

    ``relevance`` maps document ids to this session's view, feedback and
    weight state; documents without an entry start from their base weight.
    """

    session_id: str
    current_topic: str | None = None
    last_topic: str | None = None
    current_category: str | None = None
    confidence: float = 0.0
    history_capacity: int = MIN_HISTORY_CAPACITY
    bookmark_capacity: int = 15
    history: deque[HistoryEntry] = field(default_factory=deque)
    intent_frequency: dict[str, int] = field(default_factory=dict)
    bookmarks: list[str] = field(default_factory=list)
    response_cache: MutableMapping[str, Any] = field(default_factory=dict)
    relevance: dict[int, RelevanceState] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not MIN_HISTORY_CAPACITY <= self.history_capacity <= MAX_HISTORY_CAPACITY:
            raise ValueError(
                f"history_capacity must be within [{MIN_HISTORY_CAPACITY}, {MAX_HISTORY_CAPACITY}], "
                f"got {self.history_capacity}"
            )
        self.history = deque(self.history, maxlen=self.history_capacity)

    def remember(self, entry: HistoryEntry) -> None:
        self.history.append(entry)

    def record_intent(self, intent: str) -> None:
        self.intent_frequency[intent] = self.intent_frequency.get(intent, 0) + 1

    def shift_topic(self, topic: str | None, category: str | None) -> None:
        self.last_topic = self.current_topic
        self.current_topic = topic
        self.current_category = category

    def add_bookmark(self, text: str) -> bool:
        if not text or text in self.bookmarks:
            return False
        self.bookmarks.append(text)
        if len(self.bookmarks) > self.bookmark_capacity:
            self.bookmarks.pop(0)
        return True


@dataclass(slots=True)
class QueryAnalysis:
    """Vectorized form of a query plus its detected intent and concepts."""

    raw_query: str
    tokens: list[str]
    phrases: list[str]
    term_weights: dict[str, float]
    embedding: np.ndarray
    intent: str
    concepts: list[str] = field(default_factory=list)
    subtopic_hits: list[str] = field(default_factory=list)
    category_hits: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ScoreBreakdown:
    """Individual ranking signals for one document."""

    bm25: float = 0.0
    phrase: float = 0.0
    fuzzy: float = 0.0
    dense: float = 0.0
    topic_boost: float = 0.0
    category_boost: float = 0.0
    concept_boost: float = 0.0
    personalization: float = 0.0
    freshness: float = 0.0
    subtopic_boost: float = 0.0
    category_match_boost: float = 0.0
    weight: float = 1.0

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in self.__slots__}


@dataclass(slots=True)
class RankedResult:
    """A scored view on a document for one query."""

    document: Document
    score: float
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)


@dataclass(slots=True)
class ComposedAnswer:
    """Common shape of every intent-specific answer."""

    main_text: str
    citations: dict[int, int] = field(default_factory=dict)
    main_documents: list[Document] = field(default_factory=list)


@dataclass(slots=True)
class DefinitionAnswer(ComposedAnswer):
    term: str = ""
    used_fallback: bool = False


@dataclass(slots=True)
class ComparisonAnswer(ComposedAnswer):
    entities: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ListAnswer(ComposedAnswer):
    pass


@dataclass(slots=True)
class GeneralAnswer(ComposedAnswer):
    pass


RESPONSE_STATUSES = ("answered", "not_found", "empty", "routed", "pending", "unavailable")


@dataclass(slots=True)
class Response:
    """Canonical response record handed to the caller."""

    main_text: str
    topic: str = ""
    category: str = "General"
    intent: str = "general"
    status: str = "answered"
    supporting_details: list[str] = field(default_factory=list)
    citation_map: dict[int, int] = field(default_factory=dict)
    suggestions: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    score: float | None = None
    pending: Future | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "category": self.category,
            "intent": self.intent,
            "status": self.status,
            "main": self.main_text,
            "details": list(self.supporting_details),
            "cites": {str(key): value for key, value in self.citation_map.items()},
            "related": list(self.suggestions),
            "links": list(self.links),
            "score": self.score,
        }


__all__ = [
    "RawFact",
    "Document",
    "RelevanceState",
    "HistoryEntry",
    "SessionContext",
    "QueryAnalysis",
    "ScoreBreakdown",
    "RankedResult",
    "ComposedAnswer",
    "DefinitionAnswer",
    "ComparisonAnswer",
    "ListAnswer",
    "GeneralAnswer",
    "Response",
    "RESPONSE_STATUSES",
]
