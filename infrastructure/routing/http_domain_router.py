"""Domain router that forwards queries to an external HTTP service."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import requests

from domain.errors import DomainRouterError
from domain.interfaces import DomainRouter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HttpDomainRouterConfig:
    url: str = "http://localhost:5000/api/search"
    timeout: float = 10.0
    max_workers: int = 2


class HttpDomainRouter(DomainRouter):
    """POSTs ``{"query": ...}`` on a worker thread and returns the future.

    The future resolves to the decoded JSON object or raises
    :class:`DomainRouterError`.
    """

    def __init__(self, config: HttpDomainRouterConfig | None = None, session: requests.Session | None = None) -> None:
        self._config = config or HttpDomainRouterConfig()
        self._session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=self._config.max_workers, thread_name_prefix="nova-router")

    def dispatch(self, query: str, intent: str) -> Future:
        logger.info("Routing %s query to %s", intent, self._config.url)
        return self._executor.submit(self._request, query, intent)

    def _request(self, query: str, intent: str) -> dict[str, Any]:
        try:
            response = self._session.post(
                self._config.url,
                json={"query": query, "intent": intent},
                timeout=self._config.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise DomainRouterError(f"Domain service request failed: {exc}") from exc
        except ValueError as exc:
            raise DomainRouterError("Domain service returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise DomainRouterError("Domain service returned a non-object payload")
        return payload

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self._session.close()


__all__ = ["HttpDomainRouter", "HttpDomainRouterConfig"]
