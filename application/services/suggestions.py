"""Follow-up query chips derived from a ranked answer."""
from __future__ import annotations

import random
from typing import Mapping, Sequence

from application.services.corpus_index import CorpusIndex
from application.services.lexicon import CONCEPTS, CORPUS_INTENTS
from domain.entities import QueryAnalysis, RankedResult, SessionContext

MAX_CHIPS = 8
MAX_CHIP_LENGTH = 50
EXCERPT_WORDS = 5


def excerpt(text: str, words: int = EXCERPT_WORDS) -> str:
    return " ".join(text.split(" ")[:words]) + "..."


class SuggestionGenerator:
    """Builds up to ``MAX_CHIPS`` short follow-up queries.

    Candidates come from several sources (lower-ranked documents, query
    tokens, topic changes, concepts, the least recently used intent). The
    deduplicated pool is shuffled, so chip order is deliberately unstable.
    """

    def __init__(
        self,
        *,
        concepts: Mapping[str, Sequence[str]] = CONCEPTS,
        intents: Sequence[str] = CORPUS_INTENTS,
        rng: random.Random | None = None,
        max_chips: int = MAX_CHIPS,
        max_length: int = MAX_CHIP_LENGTH,
    ) -> None:
        self._concepts = concepts
        self._intents = tuple(intents)
        self._rng = rng or random.Random()
        self.max_chips = max_chips
        self.max_length = max_length

    def generate(
        self,
        analysis: QueryAnalysis,
        ranked: Sequence[RankedResult],
        session: SessionContext,
        index: CorpusIndex,
    ) -> list[str]:
        if not ranked:
            return []
        top = ranked[0].document
        topic = top.topic
        intent = analysis.intent

        total = sum(session.intent_frequency.values()) + 1
        intent_bias = session.intent_frequency.get(intent, 0) / total

        semantic = [excerpt(result.document.text) for result in ranked[3:10]]
        semantic = [chip for chip in semantic if self._fits(chip)][:2]

        deep_dive_count = 4 if intent_bias > 0.5 else 2
        deep_dive = [f"How does {token} work?" for token in analysis.tokens[:deep_dive_count]]

        candidates: list[str] = [*semantic, *deep_dive, f"Future of {topic}"]
        if session.last_topic and session.last_topic != topic:
            candidates.append(f"Compare {topic} to {session.last_topic}")

        concept_chips = [
            f"Explore {name.replace('-', ' ')}"
            for name, keywords in self._concepts.items()
            if top.keywords.intersection(keywords)
        ]
        candidates.extend([chip for chip in concept_chips if self._fits(chip)][:2])

        if index.by_category(top.category):
            candidates.append(f"More in {top.category}")

        related = [f"Explore {name}" for name in top.related_topics]
        candidates.extend([chip for chip in related if self._fits(chip)][:2])

        stale_intent = self.least_recent_intent(session, exclude=intent)
        if stale_intent:
            candidates.append(f"Try a {stale_intent} query")

        chips = self._dedupe(chip for chip in candidates if self._fits(chip))
        self._rng.shuffle(chips)

        position = len(chips) + 3
        while len(chips) < self.max_chips and position < len(ranked):
            extra = excerpt(ranked[position].document.text)
            if self._fits(extra) and extra not in chips:
                chips.append(extra)
            position += 1
        return chips[: self.max_chips]

    def least_recent_intent(self, session: SessionContext, *, exclude: str) -> str | None:
        """The intent unused for the longest time; never-used intents come first."""
        candidates = [name for name in self._intents if name != exclude]
        if not candidates:
            return None
        last_seen: dict[str, int] = {}
        for position, entry in enumerate(session.history):
            last_seen[entry.intent] = position
        return min(candidates, key=lambda name: (last_seen.get(name, -1), candidates.index(name)))

    def _fits(self, chip: str) -> bool:
        return len(chip) <= self.max_length

    @staticmethod
    def _dedupe(chips) -> list[str]:
        seen: dict[str, None] = {}
        for chip in chips:
            seen.setdefault(chip, None)
        return list(seen)


__all__ = ["SuggestionGenerator", "excerpt", "MAX_CHIPS", "MAX_CHIP_LENGTH"]
