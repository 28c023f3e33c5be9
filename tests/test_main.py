"""
Test Command Line Interface
===========================

Tests for main.py using a temporary configuration directory.
"""

import io
from unittest.mock import patch

import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

import main


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    monkeypatch.setenv("PERSONA_RESPONDER_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("PERSONA_RESPONDER_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("PERSONA_RESPONDER_RULESET_PATH", raising=False)
    with patch("main.setup_logging"):
        yield tmp_path


class TestMain:
    """Tests for main()."""

    def test_parse_args(self):
        args = main.parse_args(["--test", "hello", "--no-semantic", "--rules", "r.json"])

        assert args.test == "hello"
        assert args.no_semantic is True
        assert args.rules == "r.json"

    def test_setup_writes_files(self, isolated_dirs):
        assert main.main(["--setup"]) == 0

        assert (isolated_dirs / "config" / "config.yaml").exists()
        assert (isolated_dirs / "config" / "ruleset.yaml").exists()

    def test_test_message_lexical(self, capsys):
        main.main(["--setup"])

        assert main.main(["--test", "helo", "--no-semantic"]) == 0

        out = capsys.readouterr().out
        assert "Source: lexical" in out
        assert "Rule: greeting" in out

    def test_test_message_fallback(self, capsys):
        main.main(["--setup"])

        assert main.main(["--test", "what is the meaning of life", "--no-semantic"]) == 0

        assert "Source: fallback" in capsys.readouterr().out

    def test_missing_ruleset(self, capsys, isolated_dirs):
        code = main.main([
            "--test", "hello", "--no-semantic",
            "--rules", str(isolated_dirs / "missing.json"),
        ])

        assert code == 0
        assert "Source: fallback" in capsys.readouterr().out

    def test_status(self, capsys):
        main.main(["--setup"])

        assert main.main(["--status", "--no-semantic"]) == 0

        out = capsys.readouterr().out
        assert "Rules: 6" in out
        assert "Status: Disabled" in out

    def test_interactive(self, capsys, monkeypatch):
        main.main(["--setup"])
        monkeypatch.setattr("sys.stdin", io.StringIO("goodbye\n\nhello\n"))

        assert main.main(["--interactive", "--no-semantic"]) == 0

        out = capsys.readouterr().out
        assert "Rule: farewell" in out
        assert "Rule: greeting" in out

    def test_invalid_rules_extension(self, capsys):
        assert main.main(["--test", "hello", "--rules", "rules.txt"]) == 1
        assert "Error" in capsys.readouterr().out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
