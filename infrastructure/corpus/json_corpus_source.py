"""Corpus sources backed by a JSON file or by in-memory records."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from domain.entities import RawFact
from domain.errors import CorpusConfigurationError
from domain.interfaces import CorpusSource
from infrastructure.corpus.parsing import parse_raw_fact

logger = logging.getLogger(__name__)


class InMemoryCorpusSource(CorpusSource):
    """Validates records that are already loaded."""

    def __init__(self, records: Iterable[Mapping[str, Any]]) -> None:
        self._records = list(records)

    def load(self) -> list[RawFact]:
        facts = [parse_raw_fact(record, position) for position, record in enumerate(self._records)]
        if not facts:
            raise CorpusConfigurationError("Corpus contains no facts")
        return facts


class JsonCorpusSource(CorpusSource):
    """Reads ``{"facts": [...]}`` (or a bare list of facts) from disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def load(self) -> list[RawFact]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise CorpusConfigurationError(f"Corpus file not found: {self._path}") from exc
        except json.JSONDecodeError as exc:
            raise CorpusConfigurationError(f"Corpus file {self._path} is not valid JSON: {exc}") from exc

        records = payload.get("facts") if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise CorpusConfigurationError(f"Corpus file {self._path} has no 'facts' list")
        facts = InMemoryCorpusSource(records).load()
        logger.info("Loaded %d facts from %s", len(facts), self._path)
        return facts


__all__ = ["JsonCorpusSource", "InMemoryCorpusSource"]
