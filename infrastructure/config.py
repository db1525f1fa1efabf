"""Dependency wiring for the NovaSearch application."""
from __future__ import annotations

import os
import random
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal

from application.services.corpus_index import CorpusIndex
from application.services.query_analyzer import QueryAnalyzer
from application.services.ranker import Ranker
from application.services.response_composer import ResponseComposer
from application.services.suggestions import SuggestionGenerator
from application.services.text_normalizer import TextNormalizer
from domain.interfaces import CorpusSource, DomainRouter, Embedder, SessionStore
from infrastructure.corpus.json_corpus_source import JsonCorpusSource
from infrastructure.embedding.trigram_hash_embedder import TrigramHashEmbedder
from infrastructure.routing.http_domain_router import HttpDomainRouter, HttpDomainRouterConfig
from infrastructure.storage.in_memory_session_store import InMemorySessionStore
from infrastructure.storage.sqlite_session_store import SqliteSessionStore

StoreName = Literal["memory", "sqlite"]
RouterName = Literal["http", "none"]

DEFAULT_CORPUS_PATH = Path(__file__).resolve().parent.parent / "data" / "kb.json"


@dataclass(slots=True)
class Container:
    """Simple container bundling the engine and its concrete adapters."""

    normalizer: TextNormalizer
    embedder: Embedder
    index: CorpusIndex
    analyzer: QueryAnalyzer
    ranker: Ranker
    composer: ResponseComposer
    suggestion_generator: SuggestionGenerator
    store: SessionStore
    domain_router: DomainRouter | None
    history_capacity: int = 10
    bookmark_capacity: int = 15
    # Serializes access to the shared index, ranker and store.
    lock: threading.RLock = field(default_factory=threading.RLock)


@dataclass(slots=True)
class ContainerConfig:
    """Configuration for the corpus, persistence and routing adapters."""

    corpus_path: str | Path = DEFAULT_CORPUS_PATH
    store: StoreName = "memory"
    db_path: str | Path = "nova.db"
    router: RouterName = "http"
    router_url: str = "http://localhost:5000/api/search"
    router_timeout: float = 10.0
    embedding_dimension: int = 100
    word_budget: int = 100
    history_capacity: int = 10
    bookmark_capacity: int = 15
    seed: int | None = None

    @classmethod
    def from_env(cls) -> "ContainerConfig":
        """Read ``NOVA_*`` environment variables on top of the defaults."""
        defaults = cls()
        seed = os.getenv("NOVA_SEED")
        return cls(
            corpus_path=os.getenv("NOVA_CORPUS_PATH", str(defaults.corpus_path)),
            store=os.getenv("NOVA_STORE", defaults.store),  # type: ignore[arg-type]
            db_path=os.getenv("NOVA_DB_PATH", str(defaults.db_path)),
            router=os.getenv("NOVA_ROUTER", defaults.router),  # type: ignore[arg-type]
            router_url=os.getenv("NOVA_ROUTER_URL", defaults.router_url),
            router_timeout=float(os.getenv("NOVA_ROUTER_TIMEOUT", defaults.router_timeout)),
            embedding_dimension=int(os.getenv("NOVA_EMBEDDING_DIM", defaults.embedding_dimension)),
            word_budget=int(os.getenv("NOVA_WORD_BUDGET", defaults.word_budget)),
            history_capacity=int(os.getenv("NOVA_HISTORY_CAPACITY", defaults.history_capacity)),
            bookmark_capacity=int(os.getenv("NOVA_BOOKMARK_CAPACITY", defaults.bookmark_capacity)),
            seed=int(seed) if seed else None,
        )


_STORE_FACTORIES: dict[StoreName, Callable[[ContainerConfig], SessionStore]] = {
    "memory": lambda cfg: InMemorySessionStore(),
    "sqlite": lambda cfg: SqliteSessionStore(db_path=cfg.db_path),
}

_ROUTER_FACTORIES: dict[RouterName, Callable[[ContainerConfig], DomainRouter | None]] = {
    "http": lambda cfg: HttpDomainRouter(HttpDomainRouterConfig(url=cfg.router_url, timeout=cfg.router_timeout)),
    "none": lambda cfg: None,
}


def build_default_container(
    config: ContainerConfig | None = None,
    *,
    corpus_source: CorpusSource | None = None,
) -> Container:
    """Load the corpus, build the index and instantiate the default stack."""

    cfg = config or ContainerConfig()
    try:
        store = _STORE_FACTORIES[cfg.store](cfg)
    except KeyError as exc:
        raise ValueError(f"Unknown store '{cfg.store}'") from exc
    try:
        domain_router = _ROUTER_FACTORIES[cfg.router](cfg)
    except KeyError as exc:
        raise ValueError(f"Unknown router '{cfg.router}'") from exc

    source = corpus_source or JsonCorpusSource(cfg.corpus_path)
    normalizer = TextNormalizer()
    embedder = TrigramHashEmbedder(dimension=cfg.embedding_dimension)
    index = CorpusIndex.build(source.load(), normalizer=normalizer, embedder=embedder)
    rng = random.Random(cfg.seed) if cfg.seed is not None else None

    return Container(
        normalizer=normalizer,
        embedder=embedder,
        index=index,
        analyzer=QueryAnalyzer(normalizer),
        ranker=Ranker(normalizer),
        composer=ResponseComposer(embedder, word_budget=cfg.word_budget),
        suggestion_generator=SuggestionGenerator(rng=rng),
        store=store,
        domain_router=domain_router,
        history_capacity=cfg.history_capacity,
        bookmark_capacity=cfg.bookmark_capacity,
    )


__all__ = ["Container", "ContainerConfig", "build_default_container", "DEFAULT_CORPUS_PATH"]
