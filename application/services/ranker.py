"""Multi-signal document ranking with adaptive per-document weights."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping, Sequence

from application.services.corpus_index import CorpusIndex, clamp_weight, utcnow
from application.services.lexicon import CONCEPTS
from application.services.query_analyzer import concepts_for
from application.services.text_normalizer import TextNormalizer, subwords
from domain.entities import Document, QueryAnalysis, RankedResult, RelevanceState, ScoreBreakdown, SessionContext

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400.0


@dataclass(frozen=True, slots=True)
class RankingPolicy:
    """Blend weights, boosts and thresholds of the ranker."""

    bm25_weight: float = 0.40
    phrase_weight: float = 0.20
    fuzzy_weight: float = 0.15
    dense_weight: float = 0.10
    personalization_weight: float = 0.05
    freshness_weight: float = 0.05
    topic_boost: float = 0.2
    category_boost: float = 0.15
    concept_boost: float = 0.15
    subtopic_boost: float = 0.1
    category_match_boost: float = 0.2
    fuzzy_similarity: float = 0.5
    fuzzy_cap: float = 0.5
    fuzzy_step: float = 0.25
    threshold: float = 0.1
    top_k_views: int = 8
    view_gain: float = 0.04
    feedback_gain: float = 0.02
    view_decay: float = 0.95
    freshness_horizon_days: float = 365.0
    weight_floor: float = 0.7
    weight_ceiling: float = 1.0


def weighted_trigram_similarity(a: str, b: str, idf: Mapping[str, float]) -> float:
    """Jaccard similarity of two tokens' trigram sets, each trigram weighted by idf."""
    a_weights = {gram: idf.get(gram, 1.0) for gram in subwords(a)}
    b_weights = {gram: idf.get(gram, 1.0) for gram in subwords(b)}
    intersection = 0.0
    union = 0.0
    for gram in a_weights.keys() | b_weights.keys():
        a_weight = a_weights.get(gram, 0.0)
        b_weight = b_weights.get(gram, 0.0)
        intersection += min(a_weight, b_weight)
        union += max(a_weight, b_weight)
    return intersection / union if union else 0.0


class Ranker:
    """Scores every document against a query analysis.

    The raw score is a blend of BM25, phrase overlap, fuzzy token matches and
    dense similarity plus additive context boosts; the whole sum is then
    multiplied by the document's adaptive weight in the session's
    ``relevance`` map. Ranking also counts a view for the top results, which
    nudges their weight upwards for that session only.
    """

    def __init__(
        self,
        normalizer: TextNormalizer,
        *,
        policy: RankingPolicy | None = None,
        concepts: Mapping[str, Sequence[str]] = CONCEPTS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._normalizer = normalizer
        self.policy = policy or RankingPolicy()
        self._concepts = concepts
        self._clock = clock
        self._document_concepts: dict[int, list[str]] = {}

    def rank(
        self,
        analysis: QueryAnalysis,
        index: CorpusIndex,
        session: SessionContext,
        *,
        update_weights: bool = True,
    ) -> list[RankedResult]:
        profile = self._concept_profile(session)
        history_size = len(session.history) or 1
        now = self._clock()
        similarity_memo: dict[tuple[str, str], float] = {}

        results: list[RankedResult] = []
        for position, document in enumerate(index.documents):
            breakdown = self._score(
                analysis,
                index,
                position,
                document,
                session,
                profile,
                history_size,
                now,
                similarity_memo,
            )
            score = self._combine(breakdown)
            if score > self.policy.threshold:
                results.append(RankedResult(document=document, score=score, breakdown=breakdown))

        # sorted() is stable: ties keep corpus order.
        results = sorted(results, key=lambda result: result.score, reverse=True)
        logger.debug(
            "Ranked %d/%d documents for %r",
            len(results),
            len(index.documents),
            analysis.raw_query,
        )
        if update_weights and results:
            self.record_views(results[: self.policy.top_k_views], session)
        return results

    def relevance(self, session: SessionContext, document: Document) -> RelevanceState:
        """The session's state for ``document``, created at its base weight on first use."""
        state = session.relevance.get(document.id)
        if state is None:
            state = RelevanceState(weight=self._clamp(document.base_weight))
            session.relevance[document.id] = state
        return state

    def weight(self, session: SessionContext, document: Document) -> float:
        state = session.relevance.get(document.id)
        return state.weight if state is not None else self._clamp(document.base_weight)

    def record_views(self, results: Sequence[RankedResult], session: SessionContext) -> None:
        now = self._clock()
        for result in results:
            state = self.relevance(session, result.document)
            state.view_count += 1
            state.last_viewed_at = now
            state.weight = self._clamp(
                state.weight
                + self.policy.view_gain * math.log1p(state.view_count)
                + self.policy.feedback_gain * state.feedback_score
            )

    def apply_feedback(self, session: SessionContext, document: Document, delta: int) -> float:
        if delta not in (1, -1):
            raise ValueError(f"Feedback delta must be +1 or -1, got {delta!r}")
        state = self.relevance(session, document)
        state.feedback_score += delta
        state.weight = self._clamp(state.weight + self.policy.feedback_gain * delta)
        logger.info(
            "Feedback %+d on document %s in session %s -> weight %.3f",
            delta,
            document.id,
            session.session_id,
            state.weight,
        )
        return state.weight

    def restore_views(
        self,
        session: SessionContext,
        document: Document,
        *,
        view_count: float,
        last_viewed_at: datetime | None,
        feedback_score: int,
    ) -> RelevanceState:
        """Load persisted counters, fading the view count by ``view_decay`` per day."""
        now = self._clock()
        last_viewed_at = last_viewed_at or now
        days = max(0.0, (now - last_viewed_at).total_seconds() / SECONDS_PER_DAY)
        decayed = view_count * self.policy.view_decay**days
        state = RelevanceState(
            weight=self._clamp(
                document.base_weight
                + self.policy.view_gain * math.log1p(decayed)
                + self.policy.feedback_gain * feedback_score
            ),
            view_count=decayed,
            feedback_score=feedback_score,
            last_viewed_at=last_viewed_at,
        )
        session.relevance[document.id] = state
        return state

    def document_concepts(self, document: Document) -> list[str]:
        concepts = self._document_concepts.get(document.id)
        if concepts is None:
            concepts = concepts_for(document.keywords, self._concepts)
            self._document_concepts[document.id] = concepts
        return concepts

    def _clamp(self, value: float) -> float:
        return clamp_weight(value, self.policy.weight_floor, self.policy.weight_ceiling)

    def _concept_profile(self, session: SessionContext) -> dict[str, int]:
        profile: dict[str, int] = {}
        for entry in session.history:
            for concept in concepts_for(self._normalizer.normalize(entry.query), self._concepts):
                profile[concept] = profile.get(concept, 0) + 1
        return profile

    def _score(
        self,
        analysis: QueryAnalysis,
        index: CorpusIndex,
        position: int,
        document: Document,
        session: SessionContext,
        profile: Mapping[str, int],
        history_size: int,
        now: datetime,
        similarity_memo: dict[tuple[str, str], float],
    ) -> ScoreBreakdown:
        policy = self.policy
        breakdown = ScoreBreakdown(weight=self.weight(session, document))

        breakdown.bm25 = index.bm25.score(analysis.term_weights, position)

        if analysis.phrases:
            matched = set(analysis.phrases) & document.phrases
            breakdown.phrase = len(matched) / len(analysis.phrases)

        if analysis.tokens:
            idf = index.inverse_document_frequency
            fuzzy_matches = 0
            for query_token in analysis.tokens:
                for doc_token in document.tokens:
                    key = (query_token, doc_token)
                    similarity = similarity_memo.get(key)
                    if similarity is None:
                        similarity = weighted_trigram_similarity(query_token, doc_token, idf)
                        similarity_memo[key] = similarity
                    if similarity > policy.fuzzy_similarity:
                        fuzzy_matches += 1
                        break
            breakdown.fuzzy = min(policy.fuzzy_cap, policy.fuzzy_step * fuzzy_matches / len(analysis.tokens))

        breakdown.dense = index.embedder.similarity(analysis.embedding, document.embedding)

        if session.current_topic and document.topic == session.current_topic:
            breakdown.topic_boost = policy.topic_boost
        if session.current_category and document.category == session.current_category:
            breakdown.category_boost = policy.category_boost

        document_concepts = self.document_concepts(document)
        if set(analysis.concepts) & set(document_concepts):
            breakdown.concept_boost = policy.concept_boost
        breakdown.personalization = sum(profile.get(concept, 0) for concept in document_concepts) / history_size

        if document.updated_at is not None:
            age_days = (now - document.updated_at).total_seconds() / SECONDS_PER_DAY
            breakdown.freshness = max(0.0, min(1.0, 1 - age_days / policy.freshness_horizon_days))

        if document.subtopics & set(analysis.subtopic_hits):
            breakdown.subtopic_boost = policy.subtopic_boost
        if document.category.lower() in analysis.category_hits:
            breakdown.category_match_boost = policy.category_match_boost
        return breakdown

    def _combine(self, breakdown: ScoreBreakdown) -> float:
        policy = self.policy
        raw = (
            policy.bm25_weight * breakdown.bm25
            + policy.phrase_weight * breakdown.phrase
            + policy.fuzzy_weight * breakdown.fuzzy
            + policy.dense_weight * breakdown.dense
            + breakdown.topic_boost
            + breakdown.category_boost
            + breakdown.concept_boost
            + policy.personalization_weight * breakdown.personalization
            + policy.freshness_weight * breakdown.freshness
            + breakdown.subtopic_boost
            + breakdown.category_match_boost
        )
        return raw * breakdown.weight


__all__ = ["Ranker", "RankingPolicy", "weighted_trigram_similarity"]
