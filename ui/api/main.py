"""FastAPI layer that exposes the query, feedback and bookmark entry points."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import wait as wait_futures
from typing import Literal

from fastapi import FastAPI, HTTPException, Query as FastAPIQuery
from pydantic import BaseModel

from application.use_cases.feedback import apply_feedback, bookmark_document, save_query
from application.use_cases.process_query import accept_routed_response, process_query
from application.use_cases.session import open_session, recent_history
from domain.entities import Response, SessionContext
from infrastructure.config import Container, ContainerConfig, build_default_container
from ui.logging_utils import setup_logging

logger = logging.getLogger(__name__)

ROUTED_RESULT_TIMEOUT = 15.0


class QueryRequest(BaseModel):
    query: str
    session_id: str | None = None


class QueryResponse(BaseModel):
    session_id: str
    topic: str
    category: str
    intent: str
    status: str
    main: str
    details: list[str]
    cites: dict[str, int]
    related: list[str]
    links: list[str]
    score: float | None = None


class FeedbackRequest(BaseModel):
    session_id: str
    document_id: int
    delta: Literal[1, -1]


class FeedbackResponse(BaseModel):
    document_id: int
    weight: float


class BookmarkRequest(BaseModel):
    session_id: str
    text: str | None = None
    document_id: int | None = None


class BookmarksResponse(BaseModel):
    session_id: str
    bookmarks: list[str]


class HistoryItem(BaseModel):
    query: str
    intent: str
    label: str
    topic: str


class HealthResponse(BaseModel):
    status: str
    documents: int
    sessions: int


class SessionRegistry:
    """Keeps one SessionContext per client-generated session id.

    Callers hold ``Container.lock`` around ``get``.
    """

    def __init__(self, container: Container) -> None:
        self._container = container
        self._sessions: dict[str, SessionContext] = {}

    def get(self, session_id: str | None) -> SessionContext:
        if session_id and session_id in self._sessions:
            return self._sessions[session_id]
        session = open_session(
            session_id,
            index=self._container.index,
            ranker=self._container.ranker,
            store=self._container.store,
            history_capacity=self._container.history_capacity,
            bookmark_capacity=self._container.bookmark_capacity,
        )
        self._sessions[session.session_id] = session
        return session

    def __len__(self) -> int:
        return len(self._sessions)


def _serialize(session: SessionContext, response: Response) -> QueryResponse:
    payload = response.to_dict()
    return QueryResponse(session_id=session.session_id, **payload)


def create_app(container: Container | None = None) -> FastAPI:
    """Build the API; the default container is created on first use.

    FastAPI runs these sync handlers on a thread pool, so every call into the
    engine holds ``Container.lock``. Routed answers are awaited outside it.
    """

    state: dict[str, object] = {}
    state_lock = threading.Lock()

    def get_container() -> Container:
        if container is not None:
            return container
        with state_lock:
            if "container" not in state:
                setup_logging()
                state["container"] = build_default_container(ContainerConfig.from_env())
            return state["container"]  # type: ignore[return-value]

    def get_registry() -> SessionRegistry:
        engine = get_container()
        with state_lock:
            if "registry" not in state:
                state["registry"] = SessionRegistry(engine)
            return state["registry"]  # type: ignore[return-value]

    app = FastAPI(title="NovaSearch API")

    @app.get("/health", response_model=HealthResponse)
    def health_endpoint() -> HealthResponse:
        engine = get_container()
        registry = get_registry()
        with engine.lock:
            return HealthResponse(status="ok", documents=len(engine.index), sessions=len(registry))

    @app.post("/query", response_model=QueryResponse)
    def query_endpoint(payload: QueryRequest) -> QueryResponse:
        engine = get_container()
        registry = get_registry()
        with engine.lock:
            session = registry.get(payload.session_id)
            response = process_query(
                payload.query,
                session=session,
                index=engine.index,
                analyzer=engine.analyzer,
                ranker=engine.ranker,
                composer=engine.composer,
                suggestion_generator=engine.suggestion_generator,
                store=engine.store,
                domain_router=engine.domain_router,
            )
        if response.pending is not None:
            logger.debug("Waiting for routed %s answer (session %s)", response.intent, session.session_id)
            wait_futures([response.pending], timeout=ROUTED_RESULT_TIMEOUT)
            with engine.lock:
                response = accept_routed_response(response, session=session, timeout=0)
        return _serialize(session, response)

    @app.post("/feedback", response_model=FeedbackResponse)
    def feedback_endpoint(payload: FeedbackRequest) -> FeedbackResponse:
        engine = get_container()
        registry = get_registry()
        with engine.lock:
            session = registry.get(payload.session_id)
            try:
                weight = apply_feedback(
                    payload.document_id,
                    payload.delta,
                    session=session,
                    index=engine.index,
                    ranker=engine.ranker,
                    store=engine.store,
                )
            except ValueError as exc:
                raise HTTPException(status_code=404, detail=str(exc)) from exc
        return FeedbackResponse(document_id=payload.document_id, weight=weight)

    @app.post("/bookmarks", response_model=BookmarksResponse)
    def bookmark_endpoint(payload: BookmarkRequest) -> BookmarksResponse:
        if payload.document_id is None and not payload.text:
            raise HTTPException(status_code=422, detail="Provide either text or document_id")
        engine = get_container()
        registry = get_registry()
        with engine.lock:
            session = registry.get(payload.session_id)
            if payload.document_id is not None:
                try:
                    bookmark_document(payload.document_id, session=session, index=engine.index, store=engine.store)
                except ValueError as exc:
                    raise HTTPException(status_code=404, detail=str(exc)) from exc
            else:
                save_query(payload.text, session=session, index=engine.index, store=engine.store)
            return BookmarksResponse(session_id=session.session_id, bookmarks=list(session.bookmarks))

    @app.get("/sessions/{session_id}/bookmarks", response_model=BookmarksResponse)
    def bookmarks_endpoint(session_id: str) -> BookmarksResponse:
        engine = get_container()
        registry = get_registry()
        with engine.lock:
            session = registry.get(session_id)
            return BookmarksResponse(session_id=session.session_id, bookmarks=list(session.bookmarks))

    @app.get("/sessions/{session_id}/history", response_model=list[HistoryItem])
    def history_endpoint(session_id: str, limit: int = FastAPIQuery(5, ge=1, le=50)) -> list[HistoryItem]:
        engine = get_container()
        registry = get_registry()
        with engine.lock:
            session = registry.get(session_id)
            return [HistoryItem(**item) for item in recent_history(session, limit=limit)]

    return app


app = create_app()
