"""Validation of raw corpus records."""
from __future__ import annotations

from typing import Any, Mapping

from domain.entities import RawFact
from domain.errors import CorpusConfigurationError


def _string_list(value: Any, field_name: str, position: int) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise CorpusConfigurationError(f"Fact #{position}: '{field_name}' must be a list of strings")
    return list(value)


def parse_raw_fact(record: Mapping[str, Any], position: int) -> RawFact:
    """Build a RawFact from a ``{text, keywords, topic, metadata}`` record."""

    if not isinstance(record, Mapping):
        raise CorpusConfigurationError(f"Fact #{position}: expected an object, got {type(record).__name__}")
    text = record.get("text")
    if not isinstance(text, str) or not text.strip():
        raise CorpusConfigurationError(f"Fact #{position}: missing 'text'")
    if "keywords" not in record:
        raise CorpusConfigurationError(f"Fact #{position}: missing 'keywords'")
    keywords = _string_list(record.get("keywords"), "keywords", position)
    topic = record.get("topic")
    if not isinstance(topic, str) or not topic.strip():
        raise CorpusConfigurationError(f"Fact #{position}: missing 'topic'")

    metadata = record.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise CorpusConfigurationError(f"Fact #{position}: 'metadata' must be an object")
    relations = record.get("relations") or {}

    fact_id = record.get("id")
    if fact_id is not None and (isinstance(fact_id, bool) or not isinstance(fact_id, int)):
        raise CorpusConfigurationError(f"Fact #{position}: 'id' must be an integer")
    priority = metadata.get("priority")
    if priority is not None and not isinstance(priority, (int, float)):
        raise CorpusConfigurationError(f"Fact #{position}: 'metadata.priority' must be a number")

    return RawFact(
        id=fact_id,
        text=text.strip(),
        keywords=keywords,
        topic=topic.strip(),
        subtopics=_string_list(metadata.get("subtopics"), "metadata.subtopics", position),
        category=metadata.get("category") or None,
        priority=float(priority) if priority is not None else None,
        updated_at=metadata.get("updatedAt") or None,
        related_topics=_string_list(relations.get("relatedTopics"), "relations.relatedTopics", position),
    )


__all__ = ["parse_raw_fact"]
