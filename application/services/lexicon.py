"""Static vocabulary tables and intent rules used by the engine."""
from __future__ import annotations

import re
from dataclasses import dataclass

STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "have",
        "in", "is", "it", "of", "on", "or", "that", "the", "this", "to", "with",
        "what", "which", "when", "where", "how", "why",
    }
)

# Abbreviation -> multi-word expansion. The expansion replaces the piece.
ALIASES: dict[str, str] = {
    "ai": "artificial intelligence",
    "llm": "large language model",
    "vr": "virtual reality",
    "btc": "bitcoin",
}

# Word -> extra terms emitted next to the word itself.
SYNONYMS: dict[str, tuple[str, ...]] = {
    "car": ("automobile",),
    "doctor": ("physician",),
    "crypto": ("cryptocurrency",),
}

# Used for query expansion and for the definition fallback sentence.
RELATED_TERMS: dict[str, tuple[str, ...]] = {
    "ai": ("machine-learning", "neural-networks", "deep-learning"),
    "blockchain": ("decentralized", "ledger", "cryptocurrency"),
    "quantum": ("qubits", "superposition", "entanglement"),
    "health": ("wellness", "nutrition", "fitness"),
    "environment": ("sustainability", "climate", "ecology"),
}

CONCEPTS: dict[str, tuple[str, ...]] = {
    "future-tech": ("ai", "quantum-tech", "blockchain", "digital-twins", "augmented-reality"),
    "green-tech": ("environment", "biochar", "carbon-capture", "offshore-wind"),
    "data-security": ("zero-trust", "cryptography", "blockchain"),
    "human-augmentation": ("health", "wearable-tech", "augmented-reality", "soft-robotics"),
}

# First match wins.
STEM_SUFFIXES: tuple[str, ...] = ("ing", "ed", "es", "s")


@dataclass(frozen=True, slots=True)
class IntentRule:
    """Named pattern evaluated against the raw query."""

    name: str
    pattern: re.Pattern[str]
    routed: bool = False

    def matches(self, query: str) -> bool:
        return self.pattern.search(query) is not None


DEFINITION_PREFIX = re.compile(r"^(explain|what is|define)\s+", re.IGNORECASE)
COMPARISON_ENTITIES = re.compile(r"compare\s+([\w\s-]+?)\s+to\s+([\w\s-]+)", re.IGNORECASE)

# Order is the priority policy: earlier rules shadow later ones.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule("definition", DEFINITION_PREFIX),
    IntentRule("comparison", re.compile(r"compare.*to", re.IGNORECASE)),
    IntentRule("list", re.compile(r"(list|top|best).*of", re.IGNORECASE)),
    IntentRule("weather", re.compile(r"(weather|forecast)\s*(in\s+[\w\s]+)?$", re.IGNORECASE), routed=True),
    IntentRule("food", re.compile(r"(food|restaurants)\s+near\s+me", re.IGNORECASE), routed=True),
    IntentRule("address", re.compile(r"^(search|address)\s+[\w\s,.-]+$", re.IGNORECASE), routed=True),
    IntentRule("general", re.compile(r".*")),
)

CORPUS_INTENTS: tuple[str, ...] = ("definition", "comparison", "list", "general")


__all__ = [
    "STOP_WORDS",
    "ALIASES",
    "SYNONYMS",
    "RELATED_TERMS",
    "CONCEPTS",
    "STEM_SUFFIXES",
    "IntentRule",
    "INTENT_RULES",
    "CORPUS_INTENTS",
    "DEFINITION_PREFIX",
    "COMPARISON_ENTITIES",
]
