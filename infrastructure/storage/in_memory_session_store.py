"""Session store that keeps values in a Python dict."""
from __future__ import annotations

import copy
from typing import Any

from domain.interfaces import SessionStore


class InMemorySessionStore(SessionStore):
    """Stores deep copies so callers cannot mutate persisted state by accident."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        value = self._values.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)


__all__ = ["InMemorySessionStore"]
