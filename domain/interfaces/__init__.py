"""Abstract interfaces for the NovaSearch engine."""
from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Sequence

import numpy as np

from domain.entities import RawFact


class CorpusSource(ABC):
    """Delivers the raw facts that make up the corpus."""

    @abstractmethod
    def load(self) -> list[RawFact]:
        """Return validated raw facts; malformed entries raise."""


class Embedder(ABC):
    """Turns token sequences into dense vectors."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return the stable identifier for this embedding model."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimension for this model."""

    @abstractmethod
    def embed_tokens(self, tokens: Sequence[str]) -> np.ndarray:
        """Embed a bag of tokens into a single vector."""

    @abstractmethod
    def similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        """Return the similarity of two vectors produced by this embedder."""


class SessionStore(ABC):
    """Key-value persistence for session state."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value or None when the key is missing."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key."""


class DomainRouter(ABC):
    """Hands queries that are not served from the corpus to an external service."""

    @abstractmethod
    def dispatch(self, query: str, intent: str) -> Future:
        """Start handling the query and return a future with the JSON payload."""


__all__ = [
    "CorpusSource",
    "Embedder",
    "SessionStore",
    "DomainRouter",
]
