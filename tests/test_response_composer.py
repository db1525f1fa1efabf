import re
import unittest

from application.services.corpus_index import CorpusIndex
from application.services.query_analyzer import QueryAnalyzer
from application.services.response_composer import (
    NO_COMPARISON,
    GeneralStrategy,
    ResponseComposer,
    highlight,
)
from application.services.text_normalizer import TextNormalizer
from domain.entities import ComparisonAnswer, DefinitionAnswer, RankedResult, SessionContext
from infrastructure.corpus.json_corpus_source import InMemoryCorpusSource
from infrastructure.embedding.trigram_hash_embedder import TrigramHashEmbedder

RECORDS = [
    {"text": "Quantum computers use qubits.", "keywords": ["quantum", "qubit"], "topic": "quantum"},
    {"text": "Blockchain ledgers record transactions.", "keywords": ["blockchain"], "topic": "blockchain"},
    {"text": "Offshore wind farms generate electricity.", "keywords": ["offshore-wind"], "topic": "energy"},
    {"text": "Quantum sensors measure tiny fields.", "keywords": ["quantum"], "topic": "quantum"},
    {"text": "Biochar stores carbon in soil.", "keywords": ["biochar"], "topic": "soil"},
    {"text": "Solar panels convert sunlight.", "keywords": ["solar"], "topic": "energy"},
    {"text": "Solar panels convert sunlight.", "keywords": ["solar"], "topic": "solar"},
    {"text": "Go is fun.", "keywords": [], "topic": "misc"},
]

_MARKER = re.compile(r"<sup>\[(\d+)\]</sup>")


def markers(text: str) -> set[int]:
    return {int(number) for number in _MARKER.findall(text)}


class ComposerTestCase(unittest.TestCase):
    records = RECORDS

    def setUp(self) -> None:
        normalizer = TextNormalizer()
        self.embedder = TrigramHashEmbedder()
        self.index = CorpusIndex.build(
            InMemoryCorpusSource(self.records).load(),
            normalizer=normalizer,
            embedder=self.embedder,
        )
        self.analyzer = QueryAnalyzer(normalizer)
        self.composer = ResponseComposer(self.embedder)

    def ranked(self, *ids: int) -> list[RankedResult]:
        return [RankedResult(document=self.index.get(i), score=1.0 - 0.1 * k) for k, i in enumerate(ids)]

    def compose(self, query: str, *ids: int):
        analysis = self.analyzer.analyze(query, SessionContext(session_id="s"), self.index)
        return self.composer.compose(analysis, self.ranked(*ids))


class TestHighlight(unittest.TestCase):
    def test_wraps_whole_words_case_insensitively(self):
        self.assertEqual(
            highlight("Quantum computers use qubits.", ["quantum"]),
            "<mark>Quantum</mark> computers use qubits.",
        )

    def test_ignores_partial_words(self):
        self.assertEqual(highlight("quantumness", ["quantum"]), "quantumness")

    def test_does_not_nest_marks(self):
        self.assertEqual(
            highlight("mark the quantum", ["mark", "quantum"]),
            "<mark>mark</mark> the <mark>quantum</mark>",
        )


class TestDefinition(ComposerTestCase):
    def test_uses_defining_document_and_supports(self):
        answer = self.compose("what is quantum", 1, 0, 3)

        self.assertIsInstance(answer, DefinitionAnswer)
        self.assertFalse(answer.used_fallback)
        self.assertTrue(answer.main_text.startswith("<mark>Quantum</mark> computers use qubits.<sup>[1]</sup>"))
        self.assertEqual(answer.citations, {1: 0, 2: 1, 3: 3})
        self.assertEqual(markers(answer.main_text), set(answer.citations))

    def test_fallback_sentence_from_related_terms(self):
        answer = self.compose("what is blockchain", 2)

        self.assertTrue(answer.used_fallback)
        self.assertEqual(
            answer.main_text,
            "Blockchain is a decentralized or ledger or cryptocurrency technology.<sup>[1]</sup>",
        )
        self.assertEqual(answer.citations, {1: 2})

    def test_fallback_without_related_terms(self):
        answer = self.compose("define zork", 2)

        self.assertEqual(answer.main_text, "Zork has no stored definition yet.<sup>[1]</sup>")


class TestComparison(ComposerTestCase):
    def test_contrasts_the_two_entities(self):
        answer = self.compose("compare quantum to blockchain", 0, 1, 2)

        self.assertIsInstance(answer, ComparisonAnswer)
        self.assertEqual(answer.entities, ["quantum", "blockchain"])
        self.assertIn("<sup>[1]</sup> In contrast, <mark>blockchain</mark> ledgers", answer.main_text)
        self.assertEqual(answer.citations, {1: 0, 2: 1, 3: 2})

    def test_unparsable_entities(self):
        answer = self.compose("compare to", 0)

        self.assertEqual(answer.main_text, NO_COMPARISON)
        self.assertEqual(answer.citations, {})

    def test_entities_without_documents(self):
        answer = self.compose("compare zebras to lions", 0)

        self.assertEqual(answer.main_text, NO_COMPARISON)
        self.assertEqual(answer.entities, ["zebras", "lions"])


class TestList(ComposerTestCase):
    def test_numbers_the_top_three(self):
        answer = self.compose("list of quantum things", 0, 3, 1, 2, 4)

        self.assertIn("1. ", answer.main_text)
        self.assertIn("3. ", answer.main_text)
        self.assertNotIn("4. ", answer.main_text)
        self.assertEqual([document.id for document in answer.main_documents], [0, 3, 1])
        self.assertEqual(markers(answer.main_text), set(answer.citations))
        self.assertEqual(answer.citations[4], 2)


class TestGeneral(ComposerTestCase):
    def test_similar_facts_are_chained(self):
        answer = self.compose("tell me", 5, 6)

        self.assertIn("Similarly, solar panels", answer.main_text)

    def test_dissimilar_facts_are_added(self):
        answer = self.compose("tell me", 5, 7)

        self.assertIn("In addition, go is fun.", answer.main_text)

    def test_select_caps_topics(self):
        strategy = GeneralStrategy()

        selected = strategy.select(self.ranked(0, 1, 2, 3))

        self.assertEqual([document.id for document in selected], [0, 1, 3])

    def test_select_keeps_last_candidate(self):
        selected = GeneralStrategy().select(self.ranked(0, 1, 2))

        self.assertEqual([document.id for document in selected], [0, 1, 2])

    def test_details_exclude_main_documents(self):
        analysis = self.analyzer.analyze("quantum", SessionContext(session_id="s"), self.index)
        ranked = self.ranked(0, 1, 2, 3, 4, 5, 6, 7)
        answer = self.composer.compose(analysis, ranked)

        details = self.composer.details(answer, ranked, analysis.tokens)

        self.assertLessEqual(len(details), 5)
        used = {document.text for document in answer.main_documents}
        self.assertFalse(used.intersection(details))

    def test_compose_requires_results(self):
        analysis = self.analyzer.analyze("quantum", SessionContext(session_id="s"), self.index)

        with self.assertRaises(ValueError):
            self.composer.compose(analysis, [])


class TestWordBudget(ComposerTestCase):
    records = [
        {
            "text": " ".join(["alpha"] + [f"word{i}" for i in range(59)]),
            "keywords": [],
            "topic": f"topic{n}",
        }
        for n in range(4)
    ]

    def test_main_text_is_cut_to_budget(self):
        answer = self.compose("alpha", 0, 1, 2, 3)

        self.assertEqual(len(answer.main_text.split()), 100)
        self.assertTrue(answer.main_text.endswith("..."))
        self.assertEqual(answer.citations, {1: 0})
        self.assertEqual(markers(answer.main_text), {1})


if __name__ == "__main__":
    unittest.main()
