"""
Response Resolver - Tiered canned response resolution
=====================================================

This module provides the resolver that turns user input into a canned
persona response, trying cheaper tiers first:

1. Lexical: phrase / stem / fuzzy keyword match
2. Semantic: nearest cached keyword embedding above a threshold
3. Unresolved: None, so the caller can try generation, then fallback()

The active ruleset and embedding cache live in one immutable snapshot.
reload() builds a new snapshot off to the side and publishes it with a
single assignment, so concurrent resolve() calls never see a half-built
state and never need a lock.
"""

import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from core.config import Config
from core.exceptions import RulesetLoadError
from core.logging import get_logger
from embeddings.base import BaseEmbedder
from rules.engine import Ruleset, RuleMatch, load_ruleset
from rules.lexical import LexicalMatcher
from rules.selector import select_response
from rules.semantic import KeywordEmbeddingCache, match_semantic

logger = get_logger("services.resolver")


@dataclass(frozen=True)
class EngineState:
    """
    Snapshot read by resolve().

    Attributes:
        ruleset (Ruleset): Active rules
        cache (KeywordEmbeddingCache): Keyword embeddings for the rules
        semantic_ready (bool): Whether the embedder was usable at load time
    """
    ruleset: Ruleset
    cache: KeywordEmbeddingCache
    semantic_ready: bool = False


@dataclass
class ResolutionResult:
    """
    A resolved canned response.

    Attributes:
        response (str): Selected response text
        match (RuleMatch): Rule match that produced it
        latency_ms (int): Resolution latency
    """
    response: str
    match: RuleMatch
    latency_ms: int = 0

    @property
    def source(self) -> str:
        """Tier that matched ('lexical' or 'semantic')."""
        return self.match.tier

    @property
    def rule_id(self) -> str:
        return self.match.rule.id


@dataclass
class ResponderResult:
    """
    Final answer for the caller, whatever produced it.

    Attributes:
        response (str): Response text
        source (str): 'lexical', 'semantic', 'generated' or 'fallback'
        rule_id (str): Matched rule (canned responses only)
        latency_ms (int): Total latency
        metadata (dict): Additional metadata
    """
    response: str
    source: str
    rule_id: str = ""
    latency_ms: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


class ResponseResolver:
    """
    Resolves user input to persona responses.

    Owns the active ruleset and keyword embedding cache. Any number of
    threads may call resolve() while a single writer reloads.

    Example:
        resolver = ResponseResolver(config, embedder=create_embedder(config))
        resolver.load_file("ruleset.yaml")

        response = resolver.resolve("where is the bathroom?")
        if response is None:
            response = try_generation(...) or resolver.fallback()
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        embedder: Optional[BaseEmbedder] = None,
        ruleset: Optional[Ruleset] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the resolver.

        Args:
            config: Application configuration (defaults if omitted)
            embedder: Embedding collaborator; None disables the semantic tier
            ruleset: Initial ruleset (empty if omitted)
            rng: Random source for response selection
        """
        self.config = config or Config()
        self.embedder = embedder
        self.rng = rng

        self.lexical = LexicalMatcher.from_config(self.config.matching)
        self.threshold = self.config.semantic.threshold

        self._write_lock = threading.Lock()
        self._state = EngineState(ruleset=Ruleset(), cache=KeywordEmbeddingCache())

        if ruleset is not None:
            self.load(ruleset)

    @property
    def ruleset(self) -> Ruleset:
        """Currently active ruleset."""
        return self._state.ruleset

    @property
    def cache(self) -> KeywordEmbeddingCache:
        """Currently active keyword embedding cache."""
        return self._state.cache

    def _embedder_ready(self) -> bool:
        """Check the embedder once per load instead of once per query."""
        if self.embedder is None:
            return False

        try:
            ready = self.embedder.is_available()
        except Exception as e:
            logger.warning(f"Embedding provider check failed: {e}")
            return False

        if not ready:
            logger.warning("Embedding provider unavailable, semantic matching disabled")
        return ready

    def load(self, ruleset: Ruleset) -> None:
        """
        Install a ruleset and precompute its keyword embeddings.

        The new snapshot is fully built before it replaces the old one.
        Cached keywords from earlier rulesets are kept unless
        ``semantic.evict_stale_keywords`` is enabled.

        Args:
            ruleset: Ruleset to activate
        """
        with self._write_lock:
            current = self._state
            cache = current.cache.copy()

            semantic_ready = self._embedder_ready()
            if semantic_ready:
                cache.precompute(ruleset.rules, self.embedder)

            if self.config.semantic.evict_stale_keywords:
                removed = cache.discard_rules(ruleset.rule_ids)
                if removed:
                    logger.info(f"Evicted {removed} stale keyword embeddings")

            self._state = EngineState(
                ruleset=ruleset,
                cache=cache,
                semantic_ready=semantic_ready,
            )

        logger.info(
            f"Ruleset active: {len(ruleset)} rules",
            extra={"cached_keywords": len(cache), "semantic": semantic_ready}
        )

    def reload(self, ruleset: Ruleset) -> None:
        """Replace the active ruleset; same as load()."""
        self.load(ruleset)

    def load_file(self, path: str) -> bool:
        """
        Load a ruleset from a file.

        A missing or broken file is logged and replaced by an empty
        ruleset: every query then resolves to None.

        Args:
            path: JSON or YAML ruleset file

        Returns:
            True if the file loaded, False if an empty ruleset was used
        """
        try:
            ruleset = load_ruleset(path)
        except RulesetLoadError as e:
            logger.error(f"Failed to load ruleset, continuing with none: {e}")
            self.load(Ruleset())
            return False

        self.load(ruleset)
        return True

    def resolve_match(self, text: str) -> Optional[ResolutionResult]:
        """
        Resolve input to a canned response with match details.

        Args:
            text: Raw user input

        Returns:
            ResolutionResult, or None if no tier matched

        Raises:
            EmbeddingCacheError: If the embedding cache is corrupted
        """
        start_time = time.time()
        state = self._state

        if not text or not text.strip():
            return None

        match = self.lexical.match(text, state.ruleset.rules)

        if match is None and state.semantic_ready:
            hit = match_semantic(text, self.embedder, state.cache, self.threshold)
            if hit is not None:
                rule = state.ruleset.get_rule(hit.rule_id)
                if rule is None:
                    logger.warning(
                        f"Semantic match points at removed rule: {hit.rule_id}",
                        extra={"keyword": hit.keyword}
                    )
                else:
                    match = RuleMatch(
                        rule=rule,
                        message=text,
                        tier="semantic",
                        keyword=hit.keyword,
                        confidence=hit.score,
                    )

        if match is None:
            return None

        response = select_response(match.rule.response_pool, self.rng)
        latency_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Resolved via {match.tier} rule: {match.rule.id}",
            extra={"keyword": match.keyword, "latency_ms": latency_ms}
        )

        return ResolutionResult(response=response, match=match, latency_ms=latency_ms)

    def resolve(self, text: str) -> Optional[str]:
        """
        Resolve input to a canned response.

        Args:
            text: Raw user input

        Returns:
            Response text, or None to signal the caller to try generation

        Raises:
            EmbeddingCacheError: If the embedding cache is corrupted
        """
        result = self.resolve_match(text)
        return result.response if result else None

    def fallback(self) -> str:
        """
        General fallback response, independent of input.

        Returns:
            Weighted pick from general_responses, or the configured
            fallback text when there are none
        """
        general = self._state.ruleset.general_responses
        if not general:
            return self.config.ruleset.fallback_response
        return select_response(general, self.rng)

    def respond(
        self,
        text: str,
        generate: Optional[Callable[[str], Optional[str]]] = None
    ) -> ResponderResult:
        """
        Produce a response using canned rules, then generation, then fallback.

        Args:
            text: Raw user input
            generate: Optional external generator; failures are logged
                and fall through to fallback()

        Returns:
            ResponderResult describing the response and its source
        """
        start_time = time.time()

        result = self.resolve_match(text)
        if result is not None:
            return ResponderResult(
                response=result.response,
                source=result.source,
                rule_id=result.rule_id,
                latency_ms=int((time.time() - start_time) * 1000),
                metadata={
                    "keyword": result.match.keyword,
                    "confidence": result.match.confidence,
                }
            )

        if generate is not None:
            try:
                generated = generate(text)
            except Exception as e:
                logger.error(f"Generation failed, using fallback: {e}")
                generated = None

            if generated is not None and not isinstance(generated, str):
                logger.warning(
                    f"Ignoring non-text generator output: {type(generated).__name__}"
                )
                generated = None

            if generated and generated.strip():
                return ResponderResult(
                    response=generated.strip(),
                    source="generated",
                    latency_ms=int((time.time() - start_time) * 1000),
                )

        logger.info("Using fallback response")
        return ResponderResult(
            response=self.fallback(),
            source="fallback",
            latency_ms=int((time.time() - start_time) * 1000),
        )

    def stats(self) -> Dict[str, Any]:
        """
        Get resolver statistics.

        Returns:
            Dictionary with rule and cache counts
        """
        state = self._state
        return {
            "rules": len(state.ruleset),
            "general_responses": len(state.ruleset.general_responses),
            "cached_keywords": len(state.cache),
            "semantic_ready": state.semantic_ready,
            "semantic_threshold": self.threshold,
            "embedder": self.embedder.get_info() if self.embedder else None,
        }
