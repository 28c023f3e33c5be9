"""
Rules Module - Canned response rules and matchers
=================================================

This module provides the rule-based response system:
- Rule, response option and ruleset data model
- Ruleset loading from JSON or YAML
- Weighted random response selection
- Lexical matching (phrases, stems, fuzzy)
- Semantic matching over cached keyword embeddings
"""

from .engine import (
    ResponseOption,
    Rule,
    RuleMatch,
    Ruleset,
    load_ruleset,
    save_ruleset,
    create_default_ruleset,
)
from .selector import select_response
from .lexical import LexicalMatcher, match_lexical
from .semantic import KeywordEmbeddingCache, SemanticHit, match_semantic

__all__ = [
    "ResponseOption",
    "Rule",
    "RuleMatch",
    "Ruleset",
    "load_ruleset",
    "save_ruleset",
    "create_default_ruleset",
    "select_response",
    "LexicalMatcher",
    "match_lexical",
    "KeywordEmbeddingCache",
    "SemanticHit",
    "match_semantic",
]
