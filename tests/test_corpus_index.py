import json
import math
import tempfile
import unittest
from pathlib import Path

import numpy as np

from application.services.corpus_index import CorpusIndex, parse_timestamp
from application.services.text_normalizer import TextNormalizer
from domain.errors import CorpusConfigurationError
from infrastructure.corpus.json_corpus_source import InMemoryCorpusSource, JsonCorpusSource
from infrastructure.embedding.trigram_hash_embedder import TrigramHashEmbedder, rolling_hash

RECORDS = [
    {"text": "Quantum computers use qubits.", "keywords": ["quantum", "qubit"], "topic": "quantum"},
    {
        "text": "Blockchain ledgers record transactions.",
        "keywords": ["blockchain"],
        "topic": "crypto/ledger",
        "metadata": {"subtopics": ["Finance"], "priority": 0.95},
    },
]


def build_index(records=RECORDS) -> CorpusIndex:
    return CorpusIndex.build(
        InMemoryCorpusSource(records).load(),
        normalizer=TextNormalizer(),
        embedder=TrigramHashEmbedder(),
    )


class TestCorpusIndex(unittest.TestCase):
    def test_tokens_and_lengths(self):
        index = build_index()
        quantum, blockchain = index.documents

        self.assertEqual(quantum.tokens, ["quantum", "computer", "use", "qubit", "quantum", "qubit"])
        self.assertEqual(quantum.doc_length, 6)
        self.assertEqual(blockchain.doc_length, 6)
        self.assertAlmostEqual(index.average_doc_length, 6.0)

    def test_document_frequency_counts_each_document_once(self):
        index = build_index()

        self.assertEqual(index.documents[0].term_freq["quantum"], 2)
        self.assertEqual(index.document_frequency["quantum"], 1)

    def test_idf_is_smoothed(self):
        index = build_index()
        expected = math.log((2 - 1 + 0.5) / (1 + 0.5) + 1)

        self.assertAlmostEqual(index.idf("quantum"), expected)
        self.assertEqual(index.idf("missing"), 0.0)

    def test_idf_stays_positive_for_terms_in_every_document(self):
        index = build_index(
            [
                {"text": "solar power", "keywords": [], "topic": "energy"},
                {"text": "solar panels", "keywords": [], "topic": "energy"},
            ]
        )

        self.assertGreater(index.idf("solar"), 0.0)

    def test_term_index_includes_subwords_and_bigrams(self):
        term_freq = build_index().documents[0].term_freq

        self.assertIn("qub", term_freq)
        self.assertIn("quantum computer", term_freq)

    def test_category_defaults_to_topic_prefix(self):
        index = build_index()

        self.assertEqual(index.documents[1].category, "crypto")
        self.assertEqual(index.by_category("CRYPTO"), [index.documents[1]])
        self.assertEqual(index.by_subtopic("finance"), [index.documents[1]])

    def test_initial_weights(self):
        index = build_index()

        self.assertAlmostEqual(index.documents[0].base_weight, 0.8)
        self.assertAlmostEqual(index.documents[1].base_weight, 0.95)

    def test_ids_default_to_load_position(self):
        index = build_index()

        self.assertEqual([document.id for document in index.documents], [0, 1])
        self.assertIs(index.get(1), index.documents[1])
        self.assertIsNone(index.get(42))

    def test_rejects_duplicate_ids(self):
        records = [dict(RECORDS[0], id=3), dict(RECORDS[1], id=3)]

        with self.assertRaises(CorpusConfigurationError):
            build_index(records)

    def test_rejects_empty_corpus(self):
        with self.assertRaises(CorpusConfigurationError):
            CorpusIndex.build([], normalizer=TextNormalizer(), embedder=TrigramHashEmbedder())

    def test_parse_timestamp(self):
        parsed = parse_timestamp("2024-05-01T10:00:00Z")

        self.assertEqual(parsed.utcoffset().total_seconds(), 0)
        self.assertIsNotNone(parse_timestamp("2024-05-01").tzinfo)
        self.assertIsNone(parse_timestamp("not a date"))
        self.assertIsNone(parse_timestamp(None))


class TestTrigramHashEmbedder(unittest.TestCase):
    def test_rolling_hash_is_masked(self):
        self.assertEqual(rolling_hash("ab"), 97 * 31 + 98)
        self.assertLessEqual(rolling_hash("x" * 200), 0x7FFFFFFF)

    def test_vectors_are_unit_length(self):
        vector = TrigramHashEmbedder().embed_tokens(["quantum", "computer"])

        self.assertEqual(vector.shape, (100,))
        self.assertAlmostEqual(float(np.linalg.norm(vector)), 1.0)

    def test_short_tokens_give_zero_vector(self):
        embedder = TrigramHashEmbedder()
        zero = embedder.embed_tokens(["go", "fun"])

        self.assertTrue(np.allclose(zero, 0.0))
        self.assertEqual(embedder.similarity(zero, embedder.embed_tokens(["quantum"])), 0.0)

    def test_identical_bags_are_fully_similar(self):
        embedder = TrigramHashEmbedder(dimension=32)
        a = embedder.embed_tokens(["ledger"])

        self.assertAlmostEqual(embedder.similarity(a, embedder.embed_tokens(["ledger"])), 1.0)


class TestCorpusSources(unittest.TestCase):
    def test_rejects_fact_without_topic(self):
        with self.assertRaises(CorpusConfigurationError):
            InMemoryCorpusSource([{"text": "x", "keywords": []}]).load()

    def test_rejects_non_string_keywords(self):
        with self.assertRaises(CorpusConfigurationError):
            InMemoryCorpusSource([{"text": "x", "keywords": [1], "topic": "t"}]).load()

    def test_rejects_missing_keywords(self):
        with self.assertRaises(CorpusConfigurationError):
            InMemoryCorpusSource([{"text": "x", "topic": "t"}]).load()

    def test_reads_metadata_and_relations(self):
        facts = InMemoryCorpusSource(
            [
                {
                    "id": 7,
                    "text": "Wind farms",
                    "keywords": ["wind"],
                    "topic": "energy/wind",
                    "metadata": {"category": "environment", "updatedAt": "2024-01-01"},
                    "relations": {"relatedTopics": ["solar"]},
                }
            ]
        ).load()

        self.assertEqual(facts[0].id, 7)
        self.assertEqual(facts[0].category, "environment")
        self.assertEqual(facts[0].updated_at, "2024-01-01")
        self.assertEqual(facts[0].related_topics, ["solar"])

    def test_json_source(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "kb.json"
            path.write_text(json.dumps({"facts": RECORDS}), encoding="utf-8")

            facts = JsonCorpusSource(path).load()

        self.assertEqual(len(facts), 2)
        self.assertEqual(facts[1].subtopics, ["Finance"])

    def test_json_source_errors(self):
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "missing.json"
            broken = Path(tmp) / "broken.json"
            broken.write_text("{not json", encoding="utf-8")
            empty = Path(tmp) / "empty.json"
            empty.write_text(json.dumps({"facts": []}), encoding="utf-8")

            for path in (missing, broken, empty):
                with self.subTest(path=path.name), self.assertRaises(CorpusConfigurationError):
                    JsonCorpusSource(path).load()


if __name__ == "__main__":
    unittest.main()
