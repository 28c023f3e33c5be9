"""
Test Rules Engine Module
=======================

Unit tests for the rule data model and ruleset loading.
"""

import json
import pytest
import yaml
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.exceptions import RulesetLoadError
from rules.engine import (
    Rule, Ruleset, ResponseOption, DEFAULT_RULESET,
    load_ruleset, save_ruleset, create_default_ruleset
)


class TestResponseOption:
    """Tests for ResponseOption."""

    def test_from_dict(self):
        option = ResponseOption.from_dict({"probability": 0.4, "response": "Hail, traveler."})

        assert option.probability == 0.4
        assert option.response == "Hail, traveler."

    def test_integer_probability(self):
        assert ResponseOption.from_dict({"probability": 2, "response": "x"}).probability == 2.0

    def test_numeric_string_probability(self):
        assert ResponseOption.from_dict({"probability": "0.5", "response": "x"}).probability == 0.5

    @pytest.mark.parametrize("raw", [None, "often", -1, float("nan"), float("inf"), [1]])
    def test_malformed_probability_coerced(self, raw):
        """Missing, non-numeric, negative and non-finite weights become 0."""
        option = ResponseOption.from_dict({"probability": raw, "response": "x"})
        assert option.probability == 0.0

    def test_missing_probability(self):
        assert ResponseOption.from_dict({"response": "x"}).probability == 0.0


class TestRule:
    """Tests for Rule."""

    def test_from_dict(self):
        rule = Rule.from_dict({
            "id": "greeting",
            "keywords": ["hello", " greetings "],
            "response_pool": [{"probability": 1, "response": "Hi"}],
        })

        assert rule.id == "greeting"
        assert rule.keywords == ("hello", "greetings")
        assert rule.response_pool == (ResponseOption(1.0, "Hi"),)

    def test_non_string_keywords_dropped(self):
        rule = Rule.from_dict({"id": "r", "keywords": ["hello", 42, None, "", "bye"]})
        assert rule.keywords == ("hello", "bye")

    def test_default_id(self):
        rule = Rule.from_dict({"keywords": ["hello"]}, default_id="rule_3")
        assert rule.id == "rule_3"

    def test_is_matchable(self):
        assert Rule(id="a", keywords=("hello",)).is_matchable
        assert not Rule(id="b").is_matchable

    def test_to_dict(self):
        rule = Rule(id="a", keywords=("hello",), response_pool=(ResponseOption(0.5, "Hi"),))

        assert rule.to_dict() == {
            "id": "a",
            "keywords": ["hello"],
            "response_pool": [{"probability": 0.5, "response": "Hi"}],
        }


class TestRuleset:
    """Tests for Ruleset.from_dict."""

    def test_order_preserved(self):
        ruleset = Ruleset.from_dict({
            "rules": [
                {"id": "b", "keywords": ["bye"]},
                {"id": "a", "keywords": ["hello"]},
            ]
        })

        assert ruleset.rule_ids == ["b", "a"]

    def test_missing_id_generated(self):
        ruleset = Ruleset.from_dict({
            "rules": [{"id": "a", "keywords": ["x"]}, {"keywords": ["hello"]}]
        })

        assert ruleset.rule_ids == ["a", "rule_1"]

    def test_duplicate_ids_skipped(self):
        ruleset = Ruleset.from_dict({
            "rules": [
                {"id": "greeting", "keywords": ["hello"]},
                {"id": "greeting", "keywords": ["hi there"]},
            ]
        })

        assert len(ruleset) == 1
        assert ruleset.get_rule("greeting").keywords == ("hello",)

    def test_rules_without_keywords_skipped(self):
        ruleset = Ruleset.from_dict({
            "rules": [
                {"id": "empty", "keywords": []},
                {"id": "bad", "keywords": [1, 2]},
                "not a rule",
                {"id": "ok", "keywords": ["hello"]},
            ]
        })

        assert ruleset.rule_ids == ["ok"]

    @pytest.mark.parametrize("bad_rule", [
        {"id": "a", "keywords": 5, "response_pool": []},
        {"id": "a", "keywords": "hello", "response_pool": []},
        {"id": "a", "keywords": {"hello": 1}},
        {"id": "a", "response_pool": []},
        {"id": "a", "keywords": ["hello"], "response_pool": 5},
        {"id": "a", "keywords": ["hello"], "response_pool": {"probability": 1, "response": "Hi"}},
    ])
    def test_badly_shaped_rule_skipped(self, bad_rule):
        """Rules whose keywords or pool are not lists are skipped, not fatal."""
        ruleset = Ruleset.from_dict({
            "rules": [bad_rule, {"id": "ok", "keywords": ["bye"]}]
        })

        assert ruleset.rule_ids == ["ok"]

    @pytest.mark.parametrize("general", [7, "Be firm.", {"response": "Be firm."}])
    def test_general_responses_not_a_list(self, general):
        ruleset = Ruleset.from_dict({
            "rules": [{"id": "ok", "keywords": ["bye"]}],
            "general_responses": general,
        })

        assert ruleset.general_responses == ()
        assert ruleset.rule_ids == ["ok"]

    def test_rule_from_dict_ignores_scalars(self):
        rule = Rule.from_dict({"id": "a", "keywords": "hello", "response_pool": 5})

        assert rule.keywords == ()
        assert rule.response_pool == ()

    def test_empty_pool_kept(self):
        ruleset = Ruleset.from_dict({"rules": [{"id": "silent", "keywords": ["hush"]}]})

        assert ruleset.get_rule("silent").response_pool == ()

    def test_general_responses(self):
        ruleset = Ruleset.from_dict({
            "general_responses": [{"probability": 1, "response": "Be firm."}, "junk"]
        })

        assert len(ruleset) == 0
        assert ruleset.general_responses == (ResponseOption(1.0, "Be firm."),)

    def test_not_a_mapping(self):
        with pytest.raises(RulesetLoadError):
            Ruleset.from_dict(["rules"])

    def test_rules_not_a_list(self):
        with pytest.raises(RulesetLoadError):
            Ruleset.from_dict({"rules": {"id": "a"}})

    def test_get_rule_unknown(self):
        assert Ruleset().get_rule("missing") is None

    def test_default_ruleset(self):
        ruleset = Ruleset.from_dict(DEFAULT_RULESET)

        assert "greeting" in ruleset.rule_ids
        assert ruleset.general_responses


class TestLoadRuleset:
    """Tests for file loading and saving."""

    def test_load_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "rules": [{
                "id": "greeting",
                "keywords": ["hello"],
                "response_pool": [{"probability": 0.4, "response": "Hail, traveler."}],
            }]
        }))

        ruleset = load_ruleset(str(path))

        assert ruleset.rule_ids == ["greeting"]
        assert ruleset.get_rule("greeting").response_pool[0].response == "Hail, traveler."

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "rules.yml"
        path.write_text(yaml.dump({"rules": [{"id": "farewell", "keywords": ["goodbye"]}]}))

        assert load_ruleset(str(path)).rule_ids == ["farewell"]

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("")

        assert len(load_ruleset(str(path))) == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(RulesetLoadError) as exc_info:
            load_ruleset(str(tmp_path / "missing.json"))

        assert "not found" in str(exc_info.value)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{\"rules\": [")

        with pytest.raises(RulesetLoadError):
            load_ruleset(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("rules: [unclosed")

        with pytest.raises(RulesetLoadError):
            load_ruleset(str(path))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "rules.txt"
        path.write_text("{}")

        with pytest.raises(RulesetLoadError):
            load_ruleset(str(path))

    @pytest.mark.parametrize("name", ["rules.json", "rules.yaml"])
    def test_save_and_load(self, tmp_path, name):
        ruleset = Ruleset(
            rules=(Rule(id="a", keywords=("hello",), response_pool=(ResponseOption(0.5, "Hi"),)),),
            general_responses=(ResponseOption(1.0, "Be firm."),),
        )
        path = tmp_path / "nested" / name

        save_ruleset(ruleset, str(path))

        assert load_ruleset(str(path)) == ruleset

    def test_create_default_ruleset(self, tmp_path):
        path = tmp_path / "ruleset.yaml"

        created = create_default_ruleset(str(path))

        assert path.exists()
        assert load_ruleset(str(path)).rule_ids == created.rule_ids


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
