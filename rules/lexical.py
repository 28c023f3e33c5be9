"""
Lexical Matcher - Phrase, stem and fuzzy keyword matching
=========================================================

First resolution tier. Evaluates each rule's keywords against the input
using, in order:

1. Phrase match: a keyword containing a space must appear verbatim
2. Stop-word guard: a single stop word never triggers a rule
3. Stem match: Porter stems of keyword and input words agree
4. Fuzzy match: Jaro-Winkler similarity tolerates typos in longer words

Rules are tried in ruleset order and the first match wins. There is no
scoring across rules.
"""

from dataclasses import dataclass
from typing import Optional, Iterable, Sequence, FrozenSet, Tuple

from nltk.stem import PorterStemmer
from nltk.tokenize import RegexpTokenizer
from rapidfuzz.distance import JaroWinkler

from core.config import DEFAULT_STOP_WORDS, MatchingConfig
from core.logging import get_logger
from .engine import Rule, RuleMatch

logger = get_logger("rules.lexical")


@dataclass(frozen=True)
class PreparedInput:
    """
    Input text after preprocessing.

    Attributes:
        text (str): Lowercased, stripped input
        tokens (tuple): Lowercase words
        important_stems (frozenset): Stems of words that are not stop words
    """
    text: str
    tokens: Tuple[str, ...]
    important_stems: FrozenSet[str]


class LexicalMatcher:
    """
    Keyword matcher combining phrase, stem and fuzzy matching.

    The matcher is stateless apart from its configuration, so a single
    instance can be shared between threads.

    Example:
        matcher = LexicalMatcher()
        match = matcher.match("helo there", ruleset.rules)
        if match:
            print(match.rule.id)
    """

    def __init__(
        self,
        stop_words: Optional[Iterable[str]] = None,
        min_fuzzy_length: int = 4,
        fuzzy_threshold: float = 0.90
    ):
        """
        Initialize the matcher.

        Args:
            stop_words: Words that never trigger a rule on their own
            min_fuzzy_length: Minimum word length for fuzzy matching
            fuzzy_threshold: Jaro-Winkler similarity needed for a fuzzy match
        """
        if stop_words is None:
            stop_words = DEFAULT_STOP_WORDS

        self.stop_words = frozenset(word.lower() for word in stop_words)
        self.min_fuzzy_length = min_fuzzy_length
        self.fuzzy_threshold = fuzzy_threshold

        self._tokenizer = RegexpTokenizer(r"\w+")
        self._stemmer = PorterStemmer()

    @classmethod
    def from_config(cls, config: MatchingConfig) -> "LexicalMatcher":
        """Create a matcher from the matching section of the app config."""
        return cls(
            stop_words=config.stop_words,
            min_fuzzy_length=config.min_fuzzy_length,
            fuzzy_threshold=config.fuzzy_threshold,
        )

    def stem(self, word: str) -> str:
        """Porter stem of a lowercase word."""
        return self._stemmer.stem(word)

    def prepare(self, text: str) -> PreparedInput:
        """
        Lowercase, tokenize and stem the input.

        Args:
            text: Raw user input

        Returns:
            PreparedInput with tokens and important stems
        """
        lowered = text.lower().strip()
        tokens = tuple(self._tokenizer.tokenize(lowered))
        important_stems = frozenset(
            self.stem(token) for token in tokens if token not in self.stop_words
        )
        return PreparedInput(text=lowered, tokens=tokens, important_stems=important_stems)

    def keyword_score(self, keyword: str, prepared: PreparedInput) -> float:
        """
        Score a single keyword against prepared input.

        Returns 1.0 for phrase and stem matches, the similarity for fuzzy
        matches and 0.0 when the keyword does not match.
        """
        keyword_lower = keyword.lower().strip()
        if not keyword_lower:
            return 0.0

        if " " in keyword_lower:
            return 1.0 if keyword_lower in prepared.text else 0.0

        if keyword_lower in self.stop_words:
            return 0.0

        if self.stem(keyword_lower) in prepared.important_stems:
            return 1.0

        if len(keyword_lower) < self.min_fuzzy_length:
            return 0.0

        best = 0.0
        for token in prepared.tokens:
            if len(token) < self.min_fuzzy_length:
                continue
            similarity = JaroWinkler.normalized_similarity(token, keyword_lower)
            if similarity >= self.fuzzy_threshold and similarity > best:
                best = similarity

        return best

    def match(self, text: str, rules: Sequence[Rule]) -> Optional[RuleMatch]:
        """
        Find the first rule whose keywords match the input.

        Args:
            text: Raw user input
            rules: Rules in priority order

        Returns:
            RuleMatch for the first matching rule, None otherwise
        """
        if not text or not text.strip():
            return None

        prepared = self.prepare(text)

        for rule in rules:
            if not rule.is_matchable:
                continue

            for keyword in rule.keywords:
                score = self.keyword_score(keyword, prepared)
                if score > 0:
                    logger.debug(
                        f"Lexical match for rule: {rule.id}",
                        extra={"keyword": keyword, "score": round(score, 3)}
                    )
                    return RuleMatch(
                        rule=rule,
                        message=text,
                        tier="lexical",
                        keyword=keyword,
                        confidence=score,
                    )

        return None


_default_matcher: Optional[LexicalMatcher] = None


def match_lexical(text: str, rules: Sequence[Rule]) -> Optional[RuleMatch]:
    """
    Match input against rules with the default matcher settings.

    Args:
        text: Raw user input
        rules: Rules in priority order

    Returns:
        RuleMatch or None
    """
    global _default_matcher
    if _default_matcher is None:
        _default_matcher = LexicalMatcher()
    return _default_matcher.match(text, rules)
