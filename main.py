#!/usr/bin/env python3
"""
Persona Responder - Main Entry Point
====================================

Command-line interface for trying the response resolver against a
ruleset.

Usage:
    python main.py --setup                 # Write default config and ruleset
    python main.py --status                # Show ruleset and embedder status
    python main.py --test "hello there"    # Resolve one message
    python main.py --interactive           # Read messages from stdin
    python main.py --help                  # Show help
"""

import sys
import argparse
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.config import load_config, create_default_config, Config
from core.logging import setup_logging, get_logger
from core.exceptions import ResponderError

logger = get_logger("main")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Persona Responder - Tiered canned response resolver",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --setup                       Write default config and ruleset
  python main.py --test "where is the bathroom?"
  python main.py --test "helo" --no-semantic   Lexical tier only
  python main.py --interactive --rules my_rules.json
        """
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--test",
        type=str,
        metavar="MESSAGE",
        help="Resolve a single message"
    )
    mode_group.add_argument(
        "--interactive",
        action="store_true",
        help="Resolve messages read from stdin until EOF"
    )
    mode_group.add_argument(
        "--status",
        action="store_true",
        help="Show ruleset and embedding provider status"
    )
    mode_group.add_argument(
        "--setup",
        action="store_true",
        help="Create default configuration and ruleset files"
    )

    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--rules",
        type=str,
        metavar="PATH",
        help="Path to ruleset file (.json, .yaml, .yml)"
    )
    parser.add_argument(
        "--no-semantic",
        action="store_true",
        help="Disable the semantic matching tier"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level"
    )

    return parser.parse_args(argv)


def build_resolver(config: Config):
    """Create a resolver with the configured embedder and ruleset."""
    from embeddings.factory import create_embedder
    from services.resolver import ResponseResolver

    embedder = create_embedder(config)
    resolver = ResponseResolver(config=config, embedder=embedder)
    resolver.load_file(str(config.ruleset_path))
    return resolver


def run_setup(config_dir: Optional[str] = None) -> None:
    """Write default configuration and ruleset files."""
    from rules.engine import create_default_ruleset

    config = create_default_config(config_dir)
    ruleset_path = config.ruleset_path

    print(f"\nConfiguration written to {Path(config.config_dir) / 'config.yaml'}")

    if ruleset_path.exists():
        print(f"Ruleset already exists at {ruleset_path}, left untouched")
    else:
        create_default_ruleset(str(ruleset_path))
        print(f"Default ruleset written to {ruleset_path}")
    print()


def run_status_check(config: Config) -> None:
    """Check and display resolver status."""
    print("\n" + "=" * 50)
    print(f"{config.app_name} - Status")
    print("=" * 50 + "\n")

    resolver = build_resolver(config)
    stats = resolver.stats()

    print("Ruleset")
    print("-" * 30)
    print(f"  Path: {config.ruleset_path}")
    print(f"  Rules: {stats['rules']}")
    print(f"  General Responses: {stats['general_responses']}")

    print("\nLexical Matching")
    print("-" * 30)
    print(f"  Stop Words: {len(config.matching.stop_words)}")
    print(f"  Min Fuzzy Length: {config.matching.min_fuzzy_length}")
    print(f"  Fuzzy Threshold: {config.matching.fuzzy_threshold}")

    print("\nSemantic Matching")
    print("-" * 30)
    if not config.semantic.enabled:
        print("  Status: Disabled")
    else:
        print(f"  Provider: {config.semantic.provider}")
        print(f"  Model: {config.semantic.model}")
        print(f"  Threshold: {stats['semantic_threshold']}")
        print(f"  Status: {'✓ Ready' if stats['semantic_ready'] else '✗ Unavailable'}")
        print(f"  Cached Keywords: {stats['cached_keywords']}")

    print("\n" + "=" * 50 + "\n")


def print_result(resolver, message: str) -> None:
    """Resolve one message and print the outcome."""
    result = resolver.respond(message)

    print(f"\n  Source: {result.source}")
    if result.rule_id:
        print(f"  Rule: {result.rule_id}")
        print(f"  Keyword: {result.metadata.get('keyword')}")
        print(f"  Confidence: {result.metadata.get('confidence', 0):.3f}")
    print(f"  Response: {result.response}")
    print(f"  Latency: {result.latency_ms}ms")


def run_test_message(config: Config, message: str) -> None:
    """Test message resolution."""
    print(f"\nTest Message: {message}")
    print("-" * 50)

    resolver = build_resolver(config)
    print_result(resolver, message)
    print()


def run_interactive(config: Config) -> None:
    """Resolve messages from stdin, one per line."""
    resolver = build_resolver(config)

    print("\nType a message and press Enter (Ctrl-D to quit).")
    for line in sys.stdin:
        message = line.strip()
        if not message:
            continue
        print_result(resolver, message)
        print()


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        if args.setup:
            run_setup()
            return 0

        config = load_config(args.config)

        if args.rules:
            config.ruleset.path = args.rules
        if args.no_semantic:
            config.semantic.enabled = False
        if args.log_level:
            config.log_level = args.log_level
        config.validate()

        setup_logging(
            log_dir=config.log_dir,
            log_level="DEBUG" if config.debug else config.log_level,
            console_output=True
        )
        logger.info(
            f"Starting {config.app_name} v{config.version}",
            extra={"ruleset": str(config.ruleset_path), "semantic": config.semantic.enabled}
        )

        if args.test:
            run_test_message(config, args.test)
        elif args.interactive:
            run_interactive(config)
        else:
            run_status_check(config)
            if not args.status:
                print("No mode specified. Use --test, --interactive, or --help")

        return 0

    except ResponderError as e:
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
