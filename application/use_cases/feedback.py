"""Use cases triggered by user actions outside the ranking path."""
from __future__ import annotations

import logging

from application.services.corpus_index import CorpusIndex
from application.services.ranker import Ranker
from application.use_cases.session import persist_session
from domain.entities import SessionContext
from domain.interfaces import SessionStore

logger = logging.getLogger(__name__)


def apply_feedback(
    document_id: int,
    delta: int,
    *,
    session: SessionContext,
    index: CorpusIndex,
    ranker: Ranker,
    store: SessionStore,
) -> float:
    """Up- or down-vote a document and return its new weight."""

    document = index.get(document_id)
    if document is None:
        raise ValueError(f"Unknown document id {document_id}")
    weight = ranker.apply_feedback(session, document, delta)
    # Cached answers were ranked with the old weight.
    session.response_cache.clear()
    persist_session(session, index=index, store=store)
    return weight


def save_query(text: str, *, session: SessionContext, index: CorpusIndex, store: SessionStore) -> bool:
    """Bookmark a query string; returns False for blanks and duplicates."""

    added = session.add_bookmark(text.strip())
    if added:
        persist_session(session, index=index, store=store)
    return added


def bookmark_document(
    document_id: int,
    *,
    session: SessionContext,
    index: CorpusIndex,
    store: SessionStore,
) -> bool:
    """Bookmark the text of a document."""

    document = index.get(document_id)
    if document is None:
        raise ValueError(f"Unknown document id {document_id}")
    added = session.add_bookmark(document.text)
    if added:
        logger.info("Bookmarked document %s for session %s", document_id, session.session_id)
        persist_session(session, index=index, store=store)
    return added


__all__ = ["apply_feedback", "save_query", "bookmark_document"]
