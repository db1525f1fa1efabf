import unittest

from application.services.corpus_index import CorpusIndex
from application.services.query_analyzer import QueryAnalyzer
from application.services.text_normalizer import TextNormalizer
from domain.entities import HistoryEntry, SessionContext
from infrastructure.corpus.json_corpus_source import InMemoryCorpusSource
from infrastructure.embedding.trigram_hash_embedder import TrigramHashEmbedder

RECORDS = [
    {
        "text": "Quantum computers use qubits.",
        "keywords": ["quantum"],
        "topic": "technology/quantum",
        "metadata": {"subtopics": ["computing"]},
    },
    {
        "text": "Blockchain ledgers record transactions.",
        "keywords": ["blockchain"],
        "topic": "finance/ledger",
        "metadata": {"subtopics": ["finance"]},
    },
]


class TestIntentDetection(unittest.TestCase):
    def setUp(self) -> None:
        self.analyzer = QueryAnalyzer(TextNormalizer())

    def test_detects_intents(self):
        cases = {
            "what is quantum": "definition",
            "Explain blockchain": "definition",
            "compare ai to blockchain": "comparison",
            "list of best gadgets": "list",
            "weather in Paris": "weather",
            "forecast": "weather",
            "food near me": "food",
            "search 123 Main St": "address",
            "tell me about wind": "general",
        }
        for query, intent in cases.items():
            with self.subTest(query=query):
                self.assertEqual(self.analyzer.detect_intent(query), intent)

    def test_earlier_rules_win(self):
        self.assertEqual(self.analyzer.detect_intent("what is the best of breed"), "definition")
        self.assertEqual(self.analyzer.detect_intent("compare the top of one to another"), "comparison")

    def test_routed_intents(self):
        self.assertTrue(self.analyzer.is_routed("weather"))
        self.assertTrue(self.analyzer.is_routed("address"))
        self.assertFalse(self.analyzer.is_routed("general"))
        self.assertFalse(self.analyzer.is_routed("definition"))


class TestQueryAnalysis(unittest.TestCase):
    def setUp(self) -> None:
        normalizer = TextNormalizer()
        self.analyzer = QueryAnalyzer(normalizer)
        self.index = CorpusIndex.build(
            InMemoryCorpusSource(RECORDS).load(),
            normalizer=normalizer,
            embedder=TrigramHashEmbedder(),
        )
        self.session = SessionContext(session_id="s1")

    def test_related_terms_are_added_at_half_weight(self):
        analysis = self.analyzer.analyze("quantum", self.session, self.index)

        self.assertEqual(analysis.term_weights["quantum"], 1.0)
        self.assertEqual(analysis.term_weights["qubit"], 0.5)
        self.assertEqual(analysis.term_weights["superposition"], 0.5)
        self.assertEqual(analysis.term_weights["entanglement"], 0.5)
        self.assertEqual(analysis.tokens, ["quantum"])

    def test_short_queries_blend_recent_history(self):
        for query in ("blockchain ledgers", "wind power", "soil carbon"):
            self.session.remember(HistoryEntry(query=query, topic=None, intent="general"))
        self.session.confidence = 0.5

        weights = self.analyzer.analyze("quantum", self.session, self.index).term_weights

        self.assertAlmostEqual(weights["soil"], 0.2)
        self.assertAlmostEqual(weights["carbon"], 0.2)
        self.assertAlmostEqual(weights["wind"], 0.15)
        self.assertAlmostEqual(weights["blockchain"], 0.1)
        self.assertAlmostEqual(weights["ledger"], 0.1)

    def test_only_the_three_most_recent_queries_are_blended(self):
        for query in ("biochar", "wind power", "soil carbon", "solar panels"):
            self.session.remember(HistoryEntry(query=query, topic=None, intent="general"))
        self.session.confidence = 1.0

        weights = self.analyzer.analyze("quantum", self.session, self.index).term_weights

        self.assertNotIn("biochar", weights)
        self.assertAlmostEqual(weights["solar"], 0.4)

    def test_long_queries_ignore_history(self):
        self.session.remember(HistoryEntry(query="soil carbon", topic=None, intent="general"))
        self.session.confidence = 0.6

        weights = self.analyzer.analyze("quantum computers use qubits", self.session, self.index).term_weights

        self.assertNotIn("soil", weights)

    def test_zero_confidence_adds_nothing(self):
        self.session.remember(HistoryEntry(query="soil carbon", topic=None, intent="general"))

        weights = self.analyzer.analyze("quantum", self.session, self.index).term_weights

        self.assertNotIn("soil", weights)

    def test_concepts_and_index_hits(self):
        analysis = self.analyzer.analyze("blockchain finance", self.session, self.index)

        self.assertEqual(analysis.concepts, ["future-tech", "data-security"])
        self.assertEqual(analysis.subtopic_hits, ["finance"])
        self.assertEqual(analysis.category_hits, ["finance"])
        self.assertEqual(analysis.phrases, ["blockchain finance"])


if __name__ == "__main__":
    unittest.main()
