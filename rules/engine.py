"""
Rules Engine - Rule data model and ruleset source
=================================================

This module defines the rules that map trigger keywords to pools of
canned responses, and loads them from JSON or YAML files.

Rule order matters: the first rule whose keywords match an input wins,
so a Ruleset keeps its rules as an ordered tuple.
"""

import json
import math
import yaml
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple
from dataclasses import dataclass, field

from core.exceptions import RulesetLoadError
from core.logging import get_logger

logger = get_logger("rules.engine")


@dataclass(frozen=True)
class ResponseOption:
    """
    A candidate response with its selection weight.

    Weights do not need to sum to 1; the selector normalizes by the
    pool total at selection time.

    Attributes:
        probability (float): Non-negative selection weight
        response (str): Response text
    """
    probability: float
    response: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert option to dictionary."""
        return {"probability": self.probability, "response": self.response}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResponseOption":
        """
        Create option from dictionary.

        Malformed weights (missing, non-numeric, non-finite or negative)
        are coerced to 0.0 rather than rejected.
        """
        response = data.get("response", "")
        if not isinstance(response, str):
            response = str(response)

        raw = data.get("probability")
        try:
            probability = float(raw)
        except (TypeError, ValueError):
            probability = 0.0

        if not math.isfinite(probability) or probability < 0:
            probability = 0.0

        if probability != raw:
            logger.warning(
                f"Coerced malformed probability {raw!r} to {probability}",
                extra={"response": response[:40]}
            )

        return cls(probability=probability, response=response)


@dataclass(frozen=True)
class Rule:
    """
    A single rule mapping trigger keywords to a pool of responses.

    Keywords containing a space are phrases and must appear verbatim in
    the input; single words are matched by stem or fuzzy similarity.

    Attributes:
        id (str): Unique rule id within its ruleset
        keywords (tuple): Trigger keywords, in evaluation order
        response_pool (tuple): Candidate responses
    """
    id: str
    keywords: Tuple[str, ...] = ()
    response_pool: Tuple[ResponseOption, ...] = ()

    @property
    def is_matchable(self) -> bool:
        """A rule without keywords can never match."""
        return bool(self.keywords)

    def to_dict(self) -> Dict[str, Any]:
        """Convert rule to dictionary."""
        return {
            "id": self.id,
            "keywords": list(self.keywords),
            "response_pool": [option.to_dict() for option in self.response_pool],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_id: str = "") -> "Rule":
        """
        Create rule from dictionary.

        ``keywords`` and ``response_pool`` must be lists; any other value
        is read as empty.
        """
        keywords = data.get("keywords")
        if not isinstance(keywords, list):
            keywords = []

        pool = data.get("response_pool")
        if not isinstance(pool, list):
            pool = []

        return cls(
            id=str(data.get("id") or default_id),
            keywords=tuple(
                k.strip() for k in keywords if isinstance(k, str) and k.strip()
            ),
            response_pool=tuple(
                ResponseOption.from_dict(option)
                for option in pool
                if isinstance(option, dict)
            ),
        )


@dataclass
class RuleMatch:
    """
    Result of a rule matching a message.

    Attributes:
        rule (Rule): The matching rule
        message (str): The matched message
        tier (str): Tier that produced the match ('lexical' or 'semantic')
        keyword (str): Keyword that triggered the match
        confidence (float): Match confidence (0-1)
    """
    rule: Rule
    message: str
    tier: str = "lexical"
    keyword: str = ""
    confidence: float = 1.0


@dataclass(frozen=True)
class Ruleset:
    """
    An ordered, immutable collection of rules plus general responses.

    Instances are never mutated; a reload builds a new Ruleset and the
    resolver swaps its reference.

    Attributes:
        rules (tuple): Rules in match priority order
        general_responses (tuple): Pool used by the general fallback
    """
    rules: Tuple[Rule, ...] = ()
    general_responses: Tuple[ResponseOption, ...] = ()
    _index: Dict[str, Rule] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        index = {}
        for rule in self.rules:
            index.setdefault(rule.id, rule)
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def rule_ids(self) -> List[str]:
        """Rule ids in priority order."""
        return [rule.id for rule in self.rules]

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """
        Get a rule by id.

        Args:
            rule_id: Rule id

        Returns:
            Rule if found, None otherwise
        """
        return self._index.get(rule_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert ruleset to dictionary."""
        return {
            "rules": [rule.to_dict() for rule in self.rules],
            "general_responses": [option.to_dict() for option in self.general_responses],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ruleset":
        """
        Build a ruleset from parsed file content.

        Malformed rules are logged and skipped so that one bad entry does
        not take the whole ruleset down.
        """
        if not isinstance(data, dict):
            raise RulesetLoadError(
                "Ruleset must be a mapping",
                {"type": type(data).__name__}
            )

        raw_rules = data.get("rules") or []
        if not isinstance(raw_rules, list):
            raise RulesetLoadError("'rules' must be a list")

        rules: List[Rule] = []
        seen_ids = set()

        for position, rule_data in enumerate(raw_rules):
            if not isinstance(rule_data, dict):
                logger.warning(f"Skipping rule #{position}: not a mapping")
                continue

            if not isinstance(rule_data.get("keywords"), list):
                logger.warning(f"Skipping rule #{position}: 'keywords' must be a list")
                continue

            pool = rule_data.get("response_pool")
            if pool is not None and not isinstance(pool, list):
                logger.warning(f"Skipping rule #{position}: 'response_pool' must be a list")
                continue

            if not rule_data.get("id"):
                logger.warning(f"Rule #{position} has no id, using rule_{position}")

            rule = Rule.from_dict(rule_data, default_id=f"rule_{position}")

            if rule.id in seen_ids:
                logger.warning(f"Skipping duplicate rule id: {rule.id}")
                continue

            if not rule.is_matchable:
                logger.warning(f"Skipping rule '{rule.id}': no usable keywords")
                continue

            if not rule.response_pool:
                logger.warning(f"Rule '{rule.id}' has an empty response pool")

            seen_ids.add(rule.id)
            rules.append(rule)

        raw_general = data.get("general_responses")
        if raw_general is None:
            raw_general = []
        elif not isinstance(raw_general, list):
            logger.warning("Ignoring 'general_responses': not a list")
            raw_general = []

        general = [
            ResponseOption.from_dict(option)
            for option in raw_general
            if isinstance(option, dict)
        ]

        return cls(rules=tuple(rules), general_responses=tuple(general))


DEFAULT_RULESET = {
    "rules": [
        {
            "id": "greeting",
            "keywords": ["hello", "greetings", "good morning", "good evening"],
            "response_pool": [
                {"probability": 0.6, "response": "Hail, traveler. Speak, and I will listen."},
                {"probability": 0.4, "response": "Greetings. Each meeting is a gift of the present moment."},
            ],
        },
        {
            "id": "identity",
            "keywords": ["who are you", "your name", "emperor"],
            "response_pool": [
                {"probability": 1.0, "response": "I am Marcus, a student of philosophy who happened to rule Rome."},
            ],
        },
        {
            "id": "bathroom",
            "keywords": ["where is the bathroom", "restroom", "toilet"],
            "response_pool": [
                {"probability": 1.0, "response": "Even an emperor must attend to nature. Follow the corridor to your left."},
            ],
        },
        {
            "id": "anger",
            "keywords": ["angry", "furious", "hate"],
            "response_pool": [
                {"probability": 0.5, "response": "How much more grievous are the consequences of anger than its causes."},
                {"probability": 0.5, "response": "The best revenge is not to be like your enemy."},
            ],
        },
        {
            "id": "death",
            "keywords": ["death", "dying", "mortality"],
            "response_pool": [
                {"probability": 1.0, "response": "Do not act as if you had ten thousand years to live."},
            ],
        },
        {
            "id": "farewell",
            "keywords": ["goodbye", "farewell", "see you later"],
            "response_pool": [
                {"probability": 1.0, "response": "Go well. Remember that the present is all we possess."},
            ],
        },
    ],
    "general_responses": [
        {"probability": 0.5, "response": "The mind must remain firm."},
        {"probability": 0.3, "response": "Waste no more time arguing what a good man should be. Be one."},
        {"probability": 0.2, "response": "Our life is what our thoughts make it."},
    ],
}


def load_ruleset(path: str) -> Ruleset:
    """
    Load a ruleset from a JSON or YAML file.

    Args:
        path: Path to a .json, .yaml or .yml file

    Returns:
        Parsed Ruleset

    Raises:
        RulesetLoadError: If the file is missing, unreadable or unparseable
    """
    rules_file = Path(path)
    suffix = rules_file.suffix.lower()

    if suffix not in (".json", ".yaml", ".yml"):
        raise RulesetLoadError(
            f"Unsupported ruleset file type: {suffix or '(none)'}",
            {"path": str(rules_file)}
        )

    try:
        with open(rules_file, "r", encoding="utf-8") as f:
            if suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise RulesetLoadError("Ruleset file not found", {"path": str(rules_file)})
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise RulesetLoadError(f"Failed to parse ruleset: {e}", {"path": str(rules_file)})
    except (IOError, UnicodeDecodeError) as e:
        raise RulesetLoadError(f"Failed to read ruleset: {e}", {"path": str(rules_file)})

    ruleset = Ruleset.from_dict(data)

    logger.info(
        f"Loaded {len(ruleset)} rules from {rules_file.name}",
        extra={"general_responses": len(ruleset.general_responses)}
    )

    return ruleset


def save_ruleset(ruleset: Ruleset, path: str) -> None:
    """
    Save a ruleset to a JSON or YAML file, chosen by extension.

    Args:
        ruleset: Ruleset to save
        path: Destination file
    """
    rules_file = Path(path)
    rules_file.parent.mkdir(parents=True, exist_ok=True)

    with open(rules_file, "w", encoding="utf-8") as f:
        if rules_file.suffix.lower() == ".json":
            json.dump(ruleset.to_dict(), f, indent=2, ensure_ascii=False)
        else:
            yaml.dump(ruleset.to_dict(), f, default_flow_style=False, sort_keys=False,
                      allow_unicode=True)


def create_default_ruleset(path: str) -> Ruleset:
    """
    Write the bundled default ruleset to a file and return it.

    Args:
        path: Destination file (.json, .yaml or .yml)

    Returns:
        The default Ruleset
    """
    ruleset = Ruleset.from_dict(DEFAULT_RULESET)
    save_ruleset(ruleset, path)
    logger.info(f"Created default ruleset at {path}")
    return ruleset
