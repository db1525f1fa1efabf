"""Intent-specific answer composition with citations and a word budget."""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Sequence

from application.services.lexicon import COMPARISON_ENTITIES, DEFINITION_PREFIX, RELATED_TERMS
from domain.entities import (
    ComparisonAnswer,
    ComposedAnswer,
    DefinitionAnswer,
    Document,
    GeneralAnswer,
    ListAnswer,
    QueryAnalysis,
    RankedResult,
)
from domain.interfaces import Embedder

logger = logging.getLogger(__name__)

DEFAULT_WORD_BUDGET = 100
SNIPPET_BASE_WORDS = 50
MAX_SUPPORTS = 2
MAX_DETAILS = 5
SIMILAR_CONNECTOR_THRESHOLD = 0.7
NO_COMPARISON = "No comparison available."
HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"
_CITATION_MARKER = re.compile(r"<sup>\[(\d+)\]</sup>")


def cite(text: str, index: int) -> str:
    return f"{text}<sup>[{index}]</sup>"


def highlight(text: str, tokens: Sequence[str]) -> str:
    """Wrap case-insensitive whole-word matches of the tokens in one pass."""
    words = sorted({token for token in tokens if token}, key=len, reverse=True)
    if not words:
        return text
    pattern = re.compile(r"\b(" + "|".join(re.escape(word) for word in words) + r")\b", re.IGNORECASE)
    return pattern.sub(lambda match: f"{HIGHLIGHT_OPEN}{match.group(0)}{HIGHLIGHT_CLOSE}", text)


def lower_first(text: str) -> str:
    return text[:1].lower() + text[1:]


@dataclass(slots=True)
class CompositionContext:
    """Inputs shared by every strategy for one query."""

    analysis: QueryAnalysis
    ranked: list[RankedResult]
    embedder: Embedder
    word_budget: int = DEFAULT_WORD_BUDGET

    def mark(self, text: str) -> str:
        return highlight(text, self.analysis.tokens)


class IntentStrategy(ABC):
    """Selects main and supporting documents and renders the answer text."""

    intent: str = "general"

    @abstractmethod
    def compose(self, context: CompositionContext) -> ComposedAnswer:
        """Return the answer for the ranked documents."""

    @staticmethod
    def _remaining(context: CompositionContext, used: Sequence[Document], limit: int = MAX_SUPPORTS) -> list[Document]:
        used_ids = {document.id for document in used}
        return [result.document for result in context.ranked if result.document.id not in used_ids][:limit]

    @staticmethod
    def _append_supports(
        answer: ComposedAnswer,
        supports: Sequence[Document],
        context: CompositionContext,
        *,
        lowercase: bool = False,
    ) -> None:
        """Append supports while under budget, each cut shorter as the text grows."""
        word_count = len(answer.main_text.split())
        next_index = max(answer.citations, default=0) + 1
        for document in supports:
            if word_count >= context.word_budget:
                break
            limit = max(1, int(SNIPPET_BASE_WORDS - word_count / 2))
            snippet = " ".join(document.text.split()[:limit])
            word_count += len(snippet.split())
            if lowercase:
                snippet = lower_first(snippet)
            answer.citations[next_index] = document.id
            answer.main_text += " " + cite(context.mark(snippet), next_index)
            next_index += 1

    @staticmethod
    def _enforce_budget(answer: ComposedAnswer, word_budget: int) -> None:
        words = answer.main_text.split()
        if len(words) > word_budget:
            text = " ".join(words[:word_budget])
            if not text.endswith("."):
                text += "..."
            answer.main_text = text
        present = {int(number) for number in _CITATION_MARKER.findall(answer.main_text)}
        for index in [key for key in answer.citations if key not in present]:
            del answer.citations[index]


class DefinitionStrategy(IntentStrategy):
    intent = "definition"

    def __init__(self, related_terms: Mapping[str, Sequence[str]] = RELATED_TERMS) -> None:
        self._related_terms = related_terms

    def compose(self, context: CompositionContext) -> DefinitionAnswer:
        term = DEFINITION_PREFIX.sub("", context.analysis.raw_query).strip().lower()
        ranked = [result.document for result in context.ranked]
        main = next((document for document in ranked if self._defines(document, term)), ranked[0])
        main_text_lower = main.text.lower()
        supports = [
            document
            for document in ranked
            if document.id != main.id and main_text_lower not in document.text.lower()
        ][:MAX_SUPPORTS]

        used_fallback = not self._defines(main, term)
        if used_fallback:
            body = self.fallback_sentence(term)
            logger.info("No document defines %r, using fallback sentence", term)
        else:
            body = context.mark(main.text)
        answer = DefinitionAnswer(
            main_text=cite(body, 1),
            citations={1: main.id},
            main_documents=[main],
            term=term,
            used_fallback=used_fallback,
        )
        self._append_supports(answer, supports, context)
        self._enforce_budget(answer, context.word_budget)
        return answer

    def fallback_sentence(self, term: str) -> str:
        label = term[:1].upper() + term[1:] if term else "This term"
        related = self._related_terms.get(term, ())
        if related:
            return f"{label} is a {' or '.join(related)} technology."
        return f"{label} has no stored definition yet."

    @staticmethod
    def _defines(document: Document, term: str) -> bool:
        return bool(term) and (term in document.keywords or term in document.text.lower())


class ComparisonStrategy(IntentStrategy):
    intent = "comparison"

    def compose(self, context: CompositionContext) -> ComparisonAnswer:
        match = COMPARISON_ENTITIES.search(context.analysis.raw_query)
        if match is None:
            logger.info("Could not parse comparison entities from %r", context.analysis.raw_query)
            return ComparisonAnswer(main_text=NO_COMPARISON)
        entities = [match.group(1).strip().lower(), match.group(2).strip().lower()]

        facts: list[Document] = []
        for entity in entities:
            found = next(
                (
                    result.document
                    for result in context.ranked
                    if self._mentions(result.document, entity) and result.document not in facts
                ),
                None,
            )
            if found is not None:
                facts.append(found)
        if not facts:
            return ComparisonAnswer(main_text=NO_COMPARISON, entities=entities)

        text = cite(context.mark(facts[0].text), 1)
        citations = {1: facts[0].id}
        if len(facts) > 1:
            text += " In contrast, " + cite(context.mark(lower_first(facts[1].text)), 2)
            citations[2] = facts[1].id
        answer = ComparisonAnswer(
            main_text=text,
            citations=citations,
            main_documents=facts,
            entities=entities,
        )
        self._append_supports(answer, self._remaining(context, facts), context)
        self._enforce_budget(answer, context.word_budget)
        return answer

    @staticmethod
    def _mentions(document: Document, entity: str) -> bool:
        return entity in document.text.lower() or any(entity in keyword for keyword in document.keywords)


class ListStrategy(IntentStrategy):
    intent = "list"
    max_items = 3

    def compose(self, context: CompositionContext) -> ListAnswer:
        facts = [result.document for result in context.ranked[: self.max_items]]
        parts = [f"{i}. " + cite(context.mark(document.text), i) for i, document in enumerate(facts, start=1)]
        answer = ListAnswer(
            main_text=" ".join(parts),
            citations={i: document.id for i, document in enumerate(facts, start=1)},
            main_documents=facts,
        )
        self._append_supports(answer, self._remaining(context, facts), context)
        self._enforce_budget(answer, context.word_budget)
        return answer


class GeneralStrategy(IntentStrategy):
    intent = "general"
    max_items = 3
    max_topics = 2

    def compose(self, context: CompositionContext) -> GeneralAnswer:
        facts = self.select(context.ranked)
        text = cite(context.mark(facts[0].text), 1)
        for i in range(1, len(facts)):
            similarity = context.embedder.similarity(facts[i - 1].embedding, facts[i].embedding)
            connector = "Similarly," if similarity > SIMILAR_CONNECTOR_THRESHOLD else "In addition,"
            text += f" {connector} " + cite(context.mark(lower_first(facts[i].text)), i + 1)
        answer = GeneralAnswer(
            main_text=text,
            citations={i: document.id for i, document in enumerate(facts, start=1)},
            main_documents=facts,
        )
        self._append_supports(answer, self._remaining(context, facts), context, lowercase=True)
        self._enforce_budget(answer, context.word_budget)
        return answer

    def select(self, ranked: Sequence[RankedResult]) -> list[Document]:
        """Pick up to ``max_items`` documents spanning at most ``max_topics`` topics.

        A document whose topic would exceed the topic cap is skipped, unless it
        is the last candidate left, so the answer is never starved.
        """
        facts: list[Document] = []
        topics: set[str] = set()
        for position, result in enumerate(ranked):
            if len(facts) >= self.max_items:
                break
            document = result.document
            is_last = position == len(ranked) - 1
            if len(topics) < self.max_topics or document.topic in topics or is_last:
                facts.append(document)
                topics.add(document.topic)
        return facts


class ResponseComposer:
    """Dispatches to the strategy registered for the query intent."""

    def __init__(
        self,
        embedder: Embedder,
        *,
        strategies: Sequence[IntentStrategy] | None = None,
        word_budget: int = DEFAULT_WORD_BUDGET,
    ) -> None:
        self._embedder = embedder
        self.word_budget = word_budget
        registered = strategies or (DefinitionStrategy(), ComparisonStrategy(), ListStrategy(), GeneralStrategy())
        self._strategies: dict[str, IntentStrategy] = {strategy.intent: strategy for strategy in registered}
        if "general" not in self._strategies:
            raise ValueError("A general strategy is required as the fallback")

    def compose(self, analysis: QueryAnalysis, ranked: list[RankedResult]) -> ComposedAnswer:
        if not ranked:
            raise ValueError("compose() needs at least one ranked result")
        strategy = self._strategies.get(analysis.intent, self._strategies["general"])
        context = CompositionContext(
            analysis=analysis,
            ranked=ranked,
            embedder=self._embedder,
            word_budget=self.word_budget,
        )
        return strategy.compose(context)

    def details(self, answer: ComposedAnswer, ranked: Sequence[RankedResult], tokens: Sequence[str]) -> list[str]:
        used = {document.id for document in answer.main_documents}
        return [
            highlight(result.document.text, tokens)
            for result in ranked
            if result.document.id not in used
        ][:MAX_DETAILS]


__all__ = [
    "ResponseComposer",
    "IntentStrategy",
    "DefinitionStrategy",
    "ComparisonStrategy",
    "ListStrategy",
    "GeneralStrategy",
    "CompositionContext",
    "highlight",
    "cite",
    "NO_COMPARISON",
    "DEFAULT_WORD_BUDGET",
]
