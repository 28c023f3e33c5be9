"""
Test Response Resolver
======================

Tests for tier sequencing, reload behavior and fallbacks.
"""

import json
import random
import threading

import numpy as np
import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import Config, DEFAULT_FALLBACK_RESPONSE
from core.exceptions import EmbeddingCacheError, EmbeddingError
from embeddings.base import BaseEmbedder, EmbedderConfig
from rules.engine import Rule, Ruleset, ResponseOption
from services.resolver import ResponseResolver


class FakeEmbedder(BaseEmbedder):
    """Embedder backed by a fixed text -> vector table."""

    PROVIDER_NAME = "fake"

    def __init__(self, vectors, available=True, fail=False):
        super().__init__(EmbedderConfig(model="fake"))
        self.vectors = vectors
        self.available = available
        self.fail = fail
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if self.fail or text not in self.vectors:
            raise EmbeddingError(f"no vector for {text}")
        return np.asarray(self.vectors[text], dtype=np.float32)

    def is_available(self):
        return self.available


VECTORS = {
    "hello": [0.0, 1.0, 0.0],
    "where is the bathroom": [1.0, 0.0, 0.0],
    "restroom": [0.98, 0.0, 0.2],
    "I need to find the restroom": [0.9, 0.1, 0.1],
    "where can I go to pee": [0.85, 0.0, 0.3],
    "hello there": [0.7, 0.7, 0.0],
    "what is the meaning of life": [0.1, 0.1, 1.0],
}


def option(response, probability=1.0):
    return ResponseOption(probability=probability, response=response)


GREETING = Rule(id="greeting", keywords=("hello",), response_pool=(option("Hail, traveler.", 0.4),))
BATHROOM = Rule(
    id="bathroom",
    keywords=("where is the bathroom", "restroom"),
    response_pool=(option("Follow the corridor."),),
)
GENERAL = (option("The mind must remain firm."),)


@pytest.fixture
def ruleset():
    return Ruleset(rules=(GREETING, BATHROOM), general_responses=GENERAL)


@pytest.fixture
def embedder():
    return FakeEmbedder(VECTORS)


@pytest.fixture
def resolver(ruleset, embedder):
    return ResponseResolver(embedder=embedder, ruleset=ruleset, rng=random.Random(0))


class TestResolve:
    """Tests for the resolution tiers."""

    def test_end_to_end_greeting(self, resolver):
        assert resolver.resolve("hello") == "Hail, traveler."
        assert resolver.resolve("helo") == "Hail, traveler."

    def test_no_match_returns_none(self, resolver):
        assert resolver.resolve("what is the meaning of life") is None

    def test_lexical_tier(self, resolver):
        result = resolver.resolve_match("where is the bathroom?")

        assert result.source == "lexical"
        assert result.rule_id == "bathroom"
        assert result.response == "Follow the corridor."

    def test_semantic_tier(self, resolver):
        result = resolver.resolve_match("I need to find the restroom")

        # "restroom" is also a lexical keyword
        assert result.source == "lexical"

        result = resolver.resolve_match("where can I go to pee")
        assert result.source == "semantic"
        assert result.rule_id == "bathroom"
        assert result.match.confidence > 0.65

    def test_lexical_wins_over_semantic(self, resolver, embedder):
        """The semantic tier is never consulted after a lexical match."""
        embedder.calls.clear()

        result = resolver.resolve_match("hello there")

        assert result.source == "lexical"
        assert result.rule_id == "greeting"
        assert embedder.calls == []

    def test_embedding_failure_degrades(self, ruleset):
        embedder = FakeEmbedder(VECTORS, fail=True)
        resolver = ResponseResolver(embedder=embedder, ruleset=ruleset)

        assert resolver.resolve("where can I go to pee") is None
        assert resolver.resolve("hello") == "Hail, traveler."

    def test_unexpected_embedder_error_degrades(self, ruleset, embedder):
        """Non-provider errors at query time also skip the semantic tier."""
        resolver = ResponseResolver(embedder=embedder, ruleset=ruleset)

        def reset(text):
            raise ConnectionError("embedding service reset")

        embedder.embed = reset

        assert resolver.resolve("where can I go to pee") is None
        assert resolver.resolve("hello") == "Hail, traveler."

    def test_unavailable_embedder(self, ruleset):
        embedder = FakeEmbedder(VECTORS, available=False)
        resolver = ResponseResolver(embedder=embedder, ruleset=ruleset)

        assert resolver.resolve("where can I go to pee") is None
        assert resolver.stats()["semantic_ready"] is False
        assert embedder.calls == []

    def test_without_embedder(self, ruleset):
        resolver = ResponseResolver(ruleset=ruleset)

        assert resolver.resolve("where can I go to pee") is None
        assert resolver.resolve("hello") == "Hail, traveler."

    def test_query_failure_after_precompute(self, resolver, embedder):
        """A query that cannot be embedded resolves to None."""
        assert resolver.resolve("completely unknown words") is None

    def test_empty_response_pool(self):
        rule = Rule(id="silent", keywords=("hello",))
        resolver = ResponseResolver(ruleset=Ruleset(rules=(rule,)))

        assert resolver.resolve("hello") == DEFAULT_FALLBACK_RESPONSE

    def test_malformed_rule_skipped(self):
        ruleset = Ruleset(rules=(Rule(id="broken"), GREETING))
        resolver = ResponseResolver(ruleset=ruleset)

        assert resolver.resolve("hello") == "Hail, traveler."

    def test_corrupted_cache_raises(self, ruleset):
        vectors = dict(VECTORS)
        vectors["where can I go to pee"] = [1.0, 0.0]
        resolver = ResponseResolver(embedder=FakeEmbedder(vectors), ruleset=ruleset)

        with pytest.raises(EmbeddingCacheError):
            resolver.resolve("where can I go to pee")

    def test_blank_input(self, resolver):
        assert resolver.resolve("") is None
        assert resolver.resolve("   ") is None


class TestLoading:
    """Tests for ruleset loading and reload."""

    def test_missing_file_gives_empty_ruleset(self, tmp_path):
        resolver = ResponseResolver()

        loaded = resolver.load_file(str(tmp_path / "missing.json"))

        assert loaded is False
        assert len(resolver.ruleset) == 0
        assert resolver.resolve("hello") is None
        assert resolver.fallback() == DEFAULT_FALLBACK_RESPONSE

    def test_broken_file_keeps_running(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{not json")
        resolver = ResponseResolver(ruleset=Ruleset(rules=(GREETING,)))

        assert resolver.load_file(str(path)) is False
        assert resolver.resolve("hello") is None

    @pytest.mark.parametrize("content", [
        {"rules": [{"id": "a", "keywords": 5, "response_pool": []}]},
        {"rules": [{"id": "a", "keywords": "goodbye", "response_pool": []}]},
        {"rules": [{"id": "a", "keywords": ["goodbye"], "response_pool": 5}]},
        {"rules": [], "general_responses": 7},
    ])
    def test_badly_shaped_file_loads(self, tmp_path, content):
        """Malformed entries are dropped and the rest of the file still loads."""
        content["rules"].append({
            "id": "greeting",
            "keywords": ["hello"],
            "response_pool": [{"probability": 1, "response": "Hail, traveler."}],
        })
        path = tmp_path / "rules.json"
        path.write_text(json.dumps(content))
        resolver = ResponseResolver()

        assert resolver.load_file(str(path)) is True
        assert resolver.ruleset.rule_ids == ["greeting"]
        assert resolver.resolve("hello") == "Hail, traveler."
        assert resolver.resolve("goodbye") is None
        assert resolver.fallback() == DEFAULT_FALLBACK_RESPONSE

    def test_load_file(self, tmp_path, embedder):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "rules": [{
                "id": "greeting",
                "keywords": ["hello"],
                "response_pool": [{"probability": 0.4, "response": "Hail, traveler."}],
            }],
            "general_responses": [{"probability": 1, "response": "Be firm."}],
        }))
        resolver = ResponseResolver(embedder=embedder)

        assert resolver.load_file(str(path)) is True
        assert resolver.resolve("hello") == "Hail, traveler."
        assert resolver.fallback() == "Be firm."
        assert "hello" in resolver.cache

    def test_reload_swaps_ruleset(self, resolver):
        farewell = Rule(id="farewell", keywords=("goodbye",), response_pool=(option("Go well."),))

        resolver.reload(Ruleset(rules=(farewell,)))

        assert resolver.resolve("goodbye") == "Go well."
        assert resolver.resolve("hello") is None

    def test_reload_keeps_stale_keywords(self, resolver):
        """Removed rules keep their cached keywords; hits on them resolve to None."""
        resolver.reload(Ruleset(rules=(GREETING,)))

        assert "restroom" in resolver.cache
        assert resolver.resolve("where can I go to pee") is None

    def test_reload_can_evict_stale_keywords(self, ruleset, embedder):
        config = Config()
        config.semantic.evict_stale_keywords = True
        resolver = ResponseResolver(config=config, embedder=embedder, ruleset=ruleset)

        resolver.reload(Ruleset(rules=(GREETING,)))

        assert "restroom" not in resolver.cache
        assert "hello" in resolver.cache

    def test_moved_keyword_keeps_first_owner(self, resolver):
        """A keyword moved to another rule stays cached under its first rule."""
        toilets = Rule(id="toilets", keywords=("restroom",), response_pool=(option("Toilets."),))

        resolver.reload(Ruleset(rules=(BATHROOM, toilets)))

        assert resolver.cache.get("restroom").rule_id == "bathroom"

    def test_concurrent_resolve_during_reload(self, ruleset, embedder):
        resolver = ResponseResolver(embedder=embedder, ruleset=ruleset)
        allowed = {"Hail, traveler.", None}
        errors = []

        def reader():
            for _ in range(200):
                try:
                    if resolver.resolve("hello") not in allowed:
                        errors.append("unexpected response")
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for i in range(20):
            resolver.reload(ruleset if i % 2 else Ruleset(rules=(BATHROOM,)))
        for thread in threads:
            thread.join()

        assert errors == []


class TestFallbackAndRespond:
    """Tests for fallback() and respond()."""

    def test_fallback_uses_general_responses(self, resolver):
        assert resolver.fallback() == "The mind must remain firm."

    def test_fallback_uses_config_when_empty(self):
        config = Config()
        config.ruleset.fallback_response = "Silence."
        resolver = ResponseResolver(config=config)

        assert resolver.fallback() == "Silence."

    def test_respond_canned(self, resolver):
        result = resolver.respond("hello")

        assert result.source == "lexical"
        assert result.rule_id == "greeting"
        assert result.metadata["keyword"] == "hello"

    def test_respond_generated(self, resolver):
        result = resolver.respond("what is the meaning of life", generate=lambda text: " Forty-two. ")

        assert result.source == "generated"
        assert result.response == "Forty-two."

    def test_respond_generation_failure(self, resolver):
        def broken(text):
            raise RuntimeError("service down")

        result = resolver.respond("what is the meaning of life", generate=broken)

        assert result.source == "fallback"
        assert result.response == "The mind must remain firm."

    @pytest.mark.parametrize("output", [{"text": "Forty-two."}, 42, ["Forty-two."]])
    def test_respond_non_text_generation(self, resolver, output):
        result = resolver.respond("what is the meaning of life", generate=lambda text: output)

        assert result.source == "fallback"
        assert result.response == "The mind must remain firm."

    def test_respond_empty_generation(self, resolver):
        result = resolver.respond("what is the meaning of life", generate=lambda text: "")

        assert result.source == "fallback"

    def test_stats(self, resolver):
        stats = resolver.stats()

        assert stats["rules"] == 2
        assert stats["cached_keywords"] == 3
        assert stats["semantic_ready"] is True
        assert stats["embedder"]["provider"] == "fake"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
