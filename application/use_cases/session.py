"""Use cases for restoring and persisting per-session state."""
from __future__ import annotations

import logging
import uuid
from typing import Any

from application.services.corpus_index import CorpusIndex, parse_timestamp
from application.services.fifo_cache import FifoCache
from application.services.ranker import Ranker
from domain.entities import HistoryEntry, SessionContext
from domain.errors import StoreUnavailableError
from domain.interfaces import SessionStore

logger = logging.getLogger(__name__)

RESPONSE_CACHE_SIZE = 100


def views_key(session_id: str) -> str:
    return f"nova_fact_views_{session_id}"


def history_key(session_id: str) -> str:
    return f"nova_context_{session_id}"


def bookmarks_key(session_id: str) -> str:
    return f"nova_bookmarks_{session_id}"


def patterns_key(session_id: str) -> str:
    return f"nova_patterns_{session_id}"


def new_session_id() -> str:
    return uuid.uuid4().hex


def _read(store: SessionStore, key: str) -> Any | None:
    try:
        return store.get(key)
    except StoreUnavailableError:
        logger.warning("Session store unavailable while reading %s; treating it as empty", key)
        return None


def open_session(
    session_id: str | None = None,
    *,
    index: CorpusIndex,
    ranker: Ranker,
    store: SessionStore,
    history_capacity: int = 10,
    bookmark_capacity: int = 15,
    response_cache_size: int = RESPONSE_CACHE_SIZE,
) -> SessionContext:
    """Create a session and load whatever the store remembers about it.

    Stored view counters land in ``session.relevance`` (decayed by the time
    since the last view); documents without a stored entry start from their
    base weight. Malformed stored entries are skipped.
    """

    session = SessionContext(
        session_id=session_id or new_session_id(),
        history_capacity=history_capacity,
        bookmark_capacity=bookmark_capacity,
        response_cache=FifoCache(response_cache_size),
    )

    views = _read(store, views_key(session.session_id))
    if not isinstance(views, dict):
        views = {}
    for key, stored in views.items():
        try:
            document = index.get(int(key))
        except (TypeError, ValueError):
            document = None
        if document is None or not isinstance(stored, dict):
            logger.warning("Skipping malformed view entry %r in session %s", key, session.session_id)
            continue
        try:
            ranker.restore_views(
                session,
                document,
                view_count=float(stored.get("count", 0.0)),
                last_viewed_at=parse_timestamp(stored.get("last_view")),
                feedback_score=int(stored.get("feedback", 0)),
            )
        except (TypeError, ValueError):
            logger.warning("Skipping malformed view entry %r in session %s", key, session.session_id)

    history = _read(store, history_key(session.session_id))
    for payload in history if isinstance(history, list) else []:
        if not isinstance(payload, dict):
            logger.warning("Skipping malformed history item %r in session %s", payload, session.session_id)
            continue
        session.remember(HistoryEntry.from_dict(payload))
    for text in _read(store, bookmarks_key(session.session_id)) or []:
        session.add_bookmark(str(text))
    patterns = _read(store, patterns_key(session.session_id))
    if not isinstance(patterns, dict):
        patterns = {}
    session.intent_frequency = {str(name): int(count) for name, count in patterns.items()}
    if session.history:
        session.current_topic = session.history[-1].topic or None

    logger.info(
        "Opened session %s (%d history entries, %d bookmarks, %d documents with views)",
        session.session_id,
        len(session.history),
        len(session.bookmarks),
        len(session.relevance),
    )
    return session


def persist_session(session: SessionContext, *, index: CorpusIndex, store: SessionStore) -> bool:
    """Write the session state; returns False when the store is unavailable."""

    views = {
        str(document_id): {
            "count": state.view_count,
            "last_view": state.last_viewed_at.isoformat() if state.last_viewed_at else None,
            "feedback": state.feedback_score,
        }
        for document_id, state in sorted(session.relevance.items())
        if index.get(document_id) is not None and (state.view_count > 0 or state.feedback_score != 0)
    }
    try:
        store.set(views_key(session.session_id), views)
        store.set(history_key(session.session_id), [entry.to_dict() for entry in session.history])
        store.set(bookmarks_key(session.session_id), list(session.bookmarks))
        store.set(patterns_key(session.session_id), dict(session.intent_frequency))
    except StoreUnavailableError:
        logger.warning("Session store unavailable; state of %s not persisted", session.session_id)
        return False
    return True


def recent_history(session: SessionContext, limit: int = 5) -> list[dict[str, str]]:
    """Most recent queries first, labelled with their intent."""
    entries = list(session.history)[-limit:][::-1]
    return [
        {
            "query": entry.query,
            "intent": entry.intent,
            "label": f"{entry.intent.capitalize()}: {entry.query}",
            "topic": entry.topic or "",
        }
        for entry in entries
    ]


__all__ = [
    "open_session",
    "persist_session",
    "recent_history",
    "new_session_id",
    "views_key",
    "history_key",
    "bookmarks_key",
    "patterns_key",
]
