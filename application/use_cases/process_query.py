"""Use case that answers one free-text query."""
from __future__ import annotations

import logging
from concurrent.futures import CancelledError
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Any, Callable, Mapping

from application.services.corpus_index import CorpusIndex, utcnow
from application.services.query_analyzer import QueryAnalyzer
from application.services.ranker import Ranker
from application.services.response_composer import ResponseComposer
from application.services.suggestions import MAX_CHIPS, SuggestionGenerator
from application.use_cases.session import persist_session
from domain.entities import ComparisonAnswer, HistoryEntry, Response, SessionContext
from domain.errors import DomainRouterError
from domain.interfaces import DomainRouter, SessionStore

logger = logging.getLogger(__name__)

ASK_ME_ANYTHING = "Ask me anything! Try 'weather', 'food near me', 'search 123 Main St', or 'what is AI'."
LOOKING_IT_UP = "Looking that up..."
SERVICE_UNAVAILABLE = "The lookup service is unavailable right now. Corpus answers still work, try another question."
ANSWERED_CONFIDENCE = 0.6
NOT_FOUND_CONFIDENCE = 0.3
ROUTED_CONFIDENCE = 0.9


def not_found_message(query: str) -> str:
    return f'No info found for "{query}". Try something else!'


def process_query(
    raw_query: str,
    *,
    session: SessionContext,
    index: CorpusIndex,
    analyzer: QueryAnalyzer,
    ranker: Ranker,
    composer: ResponseComposer,
    suggestion_generator: SuggestionGenerator,
    store: SessionStore,
    domain_router: DomainRouter | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Response:
    """Analyze, rank and compose an answer, then update and persist the session.

    Routed intents are handed to ``domain_router`` and come back as a
    ``pending`` response carrying the router's future; resolve it with
    :func:`accept_routed_response`.
    """

    query = (raw_query or "").strip()
    if not query:
        return Response(
            main_text=ASK_ME_ANYTHING,
            status="empty",
            suggestions=session.bookmarks[:MAX_CHIPS],
        )

    intent = analyzer.detect_intent(query)
    session.record_intent(intent)

    if analyzer.is_routed(intent):
        response = _dispatch(query, intent, domain_router)
        session.remember(
            HistoryEntry(query=query, topic=session.current_topic, intent=intent, timestamp=clock().isoformat())
        )
        persist_session(session, index=index, store=store)
        return response

    response = session.response_cache.get(query)
    entities: list[str] = []
    if response is not None:
        logger.debug("Response cache hit for %r", query)
        session.shift_topic(response.topic or None, response.category or None)
    else:
        analysis = analyzer.analyze(query, session, index)
        ranked = ranker.rank(analysis, index, session)
        if not ranked:
            logger.info("No document cleared the threshold for %r", query)
            session.shift_topic(None, None)
            response = Response(
                main_text=not_found_message(query),
                intent=intent,
                status="not_found",
                suggestions=session.bookmarks[:MAX_CHIPS],
            )
        else:
            answer = composer.compose(analysis, ranked)
            if isinstance(answer, ComparisonAnswer):
                entities = list(answer.entities)
            top = ranked[0].document
            session.shift_topic(top.topic, top.category)
            response = Response(
                main_text=answer.main_text,
                topic=top.topic,
                category=top.category,
                intent=intent,
                supporting_details=composer.details(answer, ranked, analysis.tokens),
                citation_map=dict(answer.citations),
                suggestions=suggestion_generator.generate(analysis, ranked, session, index),
                score=ranked[0].score,
            )
        session.response_cache[query] = response

    session.confidence = ANSWERED_CONFIDENCE if response.score else NOT_FOUND_CONFIDENCE
    session.remember(
        HistoryEntry(
            query=query,
            topic=session.current_topic,
            intent=intent,
            entities=entities,
            timestamp=clock().isoformat(),
        )
    )
    persist_session(session, index=index, store=store)
    return response


def _dispatch(query: str, intent: str, domain_router: DomainRouter | None) -> Response:
    if domain_router is None:
        logger.warning("No domain router configured for %s query %r", intent, query)
        return unavailable_response(intent)
    try:
        future = domain_router.dispatch(query, intent)
    except DomainRouterError:
        logger.exception("Domain router refused %s query %r", intent, query)
        return unavailable_response(intent)
    return Response(main_text=LOOKING_IT_UP, intent=intent, status="pending", pending=future)


def accept_routed_response(
    pending: Response,
    *,
    session: SessionContext,
    timeout: float | None = None,
) -> Response:
    """Turn the router's eventual payload into a Response and update the session."""

    if pending.pending is None:
        return pending
    try:
        payload = pending.pending.result(timeout=timeout)
    except (DomainRouterError, FutureTimeoutError, CancelledError):
        logger.exception("Routed %s query failed", pending.intent)
        return unavailable_response(pending.intent)

    response = response_from_payload(payload, intent=pending.intent)
    session.shift_topic(response.topic or None, response.category or None)
    session.confidence = ROUTED_CONFIDENCE
    return response


def response_from_payload(payload: Mapping[str, Any], *, intent: str) -> Response:
    citations: dict[int, int] = {}
    for key, value in (payload.get("cites") or {}).items():
        try:
            citations[int(key)] = int(value)
        except (TypeError, ValueError):
            logger.debug("Dropping non-numeric citation %r -> %r", key, value)
    return Response(
        main_text=str(payload.get("main") or ""),
        topic=str(payload.get("topic") or ""),
        category=str(payload.get("category") or "General"),
        intent=intent,
        status="routed",
        supporting_details=[str(item) for item in payload.get("details") or []],
        citation_map=citations,
        suggestions=[str(item) for item in payload.get("related") or []][:MAX_CHIPS],
        links=[str(item) for item in payload.get("links") or []],
    )


def unavailable_response(intent: str) -> Response:
    return Response(main_text=SERVICE_UNAVAILABLE, category="Error", intent=intent, status="unavailable")


__all__ = [
    "process_query",
    "accept_routed_response",
    "response_from_payload",
    "unavailable_response",
    "not_found_message",
    "ASK_ME_ANYTHING",
]
