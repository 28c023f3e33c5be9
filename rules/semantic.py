"""
Semantic Matcher - Keyword embedding cache and nearest-neighbor search
=====================================================================

Second resolution tier. Every rule keyword is embedded once, ahead of
time, and cached. At query time the input is embedded and compared with
every cached keyword; vectors are unit-normalized so cosine similarity
is a dot product.

The search is a linear scan, O(number of cached keywords) per query.
That is fine for tens to a few hundred keywords; beyond that an index
(e.g. FAISS) would be needed.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from core.exceptions import EmbeddingCacheError, EmbeddingError
from core.logging import get_logger
from embeddings.base import BaseEmbedder, normalize
from .engine import Rule

logger = get_logger("rules.semantic")

EmbedFn = Union[BaseEmbedder, Callable[[str], Optional[Sequence[float]]]]

DEFAULT_SEMANTIC_THRESHOLD = 0.65


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached keyword embedding.

    Attributes:
        rule_id (str): Rule that owned the keyword when it was embedded
        vector (np.ndarray): Unit-normalized embedding
        source_keyword (str): Keyword text as written in the rule
    """
    rule_id: str
    vector: np.ndarray
    source_keyword: str


@dataclass(frozen=True)
class SemanticHit:
    """
    Best cached keyword above the similarity threshold.

    Attributes:
        rule_id (str): Owning rule id
        keyword (str): Matched keyword
        score (float): Cosine similarity
    """
    rule_id: str
    keyword: str
    score: float


def _safe_embed(embed: EmbedFn, text: str) -> Optional[np.ndarray]:
    """
    Embed text, turning provider failures into None.

    Plain callables may raise anything (connection resets, model
    errors); every failure here only disables the semantic tier for
    this text.
    """
    try:
        vector = embed(text)
    except EmbeddingError as e:
        logger.warning(f"Embedding failed: {e}")
        return None
    except Exception as e:
        logger.warning(
            f"Embedding failed: {type(e).__name__}: {e}",
            extra={"text": text[:40]}
        )
        return None

    if vector is None:
        return None

    try:
        return normalize(vector)
    except EmbeddingError as e:
        logger.warning(f"Discarding invalid embedding: {e}")
        return None


class KeywordEmbeddingCache:
    """
    Mapping from keyword text to its cached embedding.

    The cache is additive: precompute() only embeds keywords it has not
    seen, and nothing is evicted unless discard_rules() is called. A
    keyword keeps the rule id it was first embedded for.

    Example:
        cache = KeywordEmbeddingCache()
        cache.precompute(ruleset.rules, embedder)
        best = cache.best_match(embedder.embed("I need the restroom"))
    """

    def __init__(self, entries: Optional[Dict[str, CacheEntry]] = None):
        self._entries: Dict[str, CacheEntry] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, keyword: str) -> bool:
        return keyword in self._entries

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(self._entries.values())

    def get(self, keyword: str) -> Optional[CacheEntry]:
        """Get the cached entry for a keyword."""
        return self._entries.get(keyword)

    def copy(self) -> "KeywordEmbeddingCache":
        """Shallow copy; entries are immutable and shared."""
        return KeywordEmbeddingCache(self._entries)

    def add(self, rule_id: str, keyword: str, vector: Sequence[float]) -> None:
        """
        Insert a keyword embedding, normalizing the vector.

        Raises:
            EmbeddingError: If the vector is invalid
        """
        self._entries[keyword] = CacheEntry(
            rule_id=rule_id,
            vector=normalize(vector),
            source_keyword=keyword,
        )

    def precompute(self, rules: Iterable[Rule], embed: EmbedFn) -> int:
        """
        Embed every keyword not already cached.

        Failures are logged and skipped so one bad keyword does not stop
        the rest.

        Args:
            rules: Rules whose keywords to embed
            embed: Embedding collaborator

        Returns:
            Number of new entries
        """
        added = 0
        failed = 0

        for rule in rules:
            for keyword in rule.keywords:
                if keyword in self._entries:
                    continue

                vector = _safe_embed(embed, keyword)
                if vector is None:
                    failed += 1
                    logger.warning(
                        f"Skipping keyword '{keyword}' of rule '{rule.id}': no embedding"
                    )
                    continue

                self._entries[keyword] = CacheEntry(
                    rule_id=rule.id,
                    vector=vector,
                    source_keyword=keyword,
                )
                added += 1

        logger.info(
            f"Precomputed {added} keyword embeddings",
            extra={"cached": len(self._entries), "failed": failed}
        )
        return added

    def discard_rules(self, keep_rule_ids: Iterable[str]) -> int:
        """
        Drop entries whose rule is not in keep_rule_ids.

        Args:
            keep_rule_ids: Ids of rules still active

        Returns:
            Number of entries removed
        """
        keep = set(keep_rule_ids)
        stale = [k for k, entry in self._entries.items() if entry.rule_id not in keep]
        for keyword in stale:
            del self._entries[keyword]
        return len(stale)

    def best_match(self, vector: np.ndarray) -> Optional[Tuple[CacheEntry, float]]:
        """
        Find the cached keyword most similar to a unit vector.

        Args:
            vector: Unit-normalized query embedding

        Returns:
            (entry, score) for the highest dot product, None if empty

        Raises:
            EmbeddingCacheError: If a cached vector has a different dimension
        """
        best_entry: Optional[CacheEntry] = None
        best_score = -np.inf

        for entry in self._entries.values():
            if entry.vector.shape != vector.shape:
                raise EmbeddingCacheError(
                    "Cached embedding dimension does not match query",
                    {
                        "keyword": entry.source_keyword,
                        "cached": entry.vector.shape,
                        "query": vector.shape,
                    }
                )

            score = float(np.dot(entry.vector, vector))
            if score > best_score:
                best_score = score
                best_entry = entry

        if best_entry is None:
            return None
        return best_entry, best_score


def match_semantic(
    text: str,
    embed: Optional[EmbedFn],
    cache: KeywordEmbeddingCache,
    threshold: float = DEFAULT_SEMANTIC_THRESHOLD
) -> Optional[SemanticHit]:
    """
    Find the rule whose cached keyword is closest in meaning to the input.

    Args:
        text: Raw user input
        embed: Embedding collaborator, None when unavailable
        cache: Precomputed keyword embeddings
        threshold: Best score must be strictly greater than this

    Returns:
        SemanticHit or None

    Raises:
        EmbeddingCacheError: If the cache is inconsistent with the model
    """
    if embed is None or not len(cache) or not text or not text.strip():
        return None

    vector = _safe_embed(embed, text)
    if vector is None:
        return None

    best = cache.best_match(vector)
    if best is None:
        return None

    entry, score = best
    if score > threshold:
        logger.debug(
            f"Semantic match for rule: {entry.rule_id}",
            extra={"keyword": entry.source_keyword, "score": round(score, 3)}
        )
        return SemanticHit(rule_id=entry.rule_id, keyword=entry.source_keyword, score=score)

    logger.debug(f"No semantic match above {threshold}", extra={"best": round(score, 3)})
    return None
