"""Turns a raw query plus session context into a weighted term vector."""
from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from application.services.corpus_index import CorpusIndex
from application.services.lexicon import CONCEPTS, INTENT_RULES, RELATED_TERMS, IntentRule
from application.services.text_normalizer import TextNormalizer, extract_phrases
from domain.entities import QueryAnalysis, SessionContext

logger = logging.getLogger(__name__)

EXPANSION_WEIGHT = 0.5
SHORT_QUERY_TOKENS = 4
HISTORY_BLEND_WEIGHTS: tuple[float, ...] = (0.4, 0.3, 0.2)


def concepts_for(terms: Iterable[str], concepts: Mapping[str, Sequence[str]] = CONCEPTS) -> list[str]:
    """Concept names whose keyword list contains at least one of the terms."""
    present = set(terms)
    return [name for name, keywords in concepts.items() if present.intersection(keywords)]


class QueryAnalyzer:
    """Builds the query vector, detects intent and tags concepts."""

    def __init__(
        self,
        normalizer: TextNormalizer,
        *,
        intent_rules: Sequence[IntentRule] = INTENT_RULES,
        related_terms: Mapping[str, Sequence[str]] = RELATED_TERMS,
        concepts: Mapping[str, Sequence[str]] = CONCEPTS,
        expansion_weight: float = EXPANSION_WEIGHT,
        history_weights: Sequence[float] = HISTORY_BLEND_WEIGHTS,
    ) -> None:
        if not intent_rules:
            raise ValueError("At least one intent rule is required")
        self._normalizer = normalizer
        self.intent_rules = tuple(intent_rules)
        self._related_terms = related_terms
        self._concepts = concepts
        self._expansion_weight = expansion_weight
        self._history_weights = tuple(history_weights)

    def detect_intent(self, raw_query: str) -> str:
        for rule in self.intent_rules:
            if rule.matches(raw_query):
                return rule.name
        return "general"

    def is_routed(self, intent: str) -> bool:
        return any(rule.routed for rule in self.intent_rules if rule.name == intent)

    def concepts(self, terms: Iterable[str]) -> list[str]:
        return concepts_for(terms, self._concepts)

    def analyze(self, raw_query: str, session: SessionContext, index: CorpusIndex) -> QueryAnalysis:
        tokens = self._normalizer.normalize(raw_query)
        weights: dict[str, float] = {}
        for token in tokens:
            weights[token] = weights.get(token, 0.0) + 1.0

        for token in tokens:
            for related in self._related_terms.get(token, ()):
                for term in self._normalizer.normalize(related):
                    weights[term] = weights.get(term, 0.0) + self._expansion_weight

        if len(tokens) < SHORT_QUERY_TOKENS and session.history:
            recent = list(session.history)[-len(self._history_weights):][::-1]
            for entry, base in zip(recent, self._history_weights):
                weight = base * session.confidence
                if weight <= 0:
                    continue
                for term in self._normalizer.normalize(entry.query):
                    weights[term] = weights.get(term, 0.0) + weight

        intent = self.detect_intent(raw_query)
        analysis = QueryAnalysis(
            raw_query=raw_query,
            tokens=tokens,
            phrases=extract_phrases(tokens),
            term_weights=weights,
            embedding=index.embedder.embed_tokens(list(weights)),
            intent=intent,
            concepts=self.concepts(tokens),
            subtopic_hits=[token for token in tokens if token in index.subtopic_index],
            category_hits=[token for token in tokens if token in index.category_index],
        )
        logger.debug(
            "Analyzed %r: intent=%s tokens=%s concepts=%s",
            raw_query,
            intent,
            tokens,
            analysis.concepts,
        )
        return analysis


__all__ = ["QueryAnalyzer", "concepts_for", "EXPANSION_WEIGHT", "HISTORY_BLEND_WEIGHTS"]
