"""
Configuration Management - YAML-based configuration with environment overrides
=============================================================================

This module handles all configuration aspects including:
- Loading from YAML files
- Environment variable overrides
- Default values
- Configuration validation
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional, List
from dataclasses import dataclass, field, asdict

from .exceptions import ConfigError


DEFAULT_STOP_WORDS = [
    "the", "is", "at", "which", "on", "a", "an", "and", "or", "but",
    "to", "of", "in", "it", "that", "you", "your", "me", "my", "i", "we",
]

DEFAULT_FALLBACK_RESPONSE = "The mind must remain firm."

EMBEDDING_PROVIDERS = ["sentence_transformers", "ollama"]


@dataclass
class MatchingConfig:
    """
    Lexical matching configuration.

    Controls which words never trigger a rule on their own and how
    strict typo tolerance is.
    """
    stop_words: List[str] = field(default_factory=lambda: list(DEFAULT_STOP_WORDS))

    # Words shorter than this never take part in fuzzy matching ("bat" vs "cat")
    min_fuzzy_length: int = 4

    # Jaro-Winkler similarity needed for a typo to count as a match
    fuzzy_threshold: float = 0.90

    def validate(self) -> None:
        """Validate lexical matching parameters."""
        if self.min_fuzzy_length < 1:
            raise ConfigError(
                f"min_fuzzy_length must be at least 1, got {self.min_fuzzy_length}"
            )

        if not 0 < self.fuzzy_threshold <= 1:
            raise ConfigError(
                f"fuzzy_threshold must be in (0, 1], got {self.fuzzy_threshold}"
            )

        if not all(isinstance(word, str) for word in self.stop_words):
            raise ConfigError("stop_words must be a list of strings")


@dataclass
class SemanticConfig:
    """
    Semantic matching configuration.

    Selects the embedding provider and the similarity threshold used
    by the second resolution tier.
    """
    enabled: bool = True
    provider: str = "sentence_transformers"  # sentence_transformers, ollama
    model: str = "all-MiniLM-L6-v2"
    api_base: str = "http://localhost:11434"  # Ollama only
    timeout: int = 30

    # Best cosine score must be strictly greater than this
    threshold: float = 0.65

    # Drop cached keywords of rules removed by a reload
    evict_stale_keywords: bool = False

    def validate(self) -> None:
        """Validate semantic matching parameters."""
        if self.provider not in EMBEDDING_PROVIDERS:
            raise ConfigError(
                f"Invalid embedding provider: {self.provider}",
                {"available_providers": ", ".join(EMBEDDING_PROVIDERS)}
            )

        if not 0 <= self.threshold < 1:
            raise ConfigError(f"threshold must be in [0, 1), got {self.threshold}")

        if self.timeout < 1:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")


@dataclass
class RulesetConfig:
    """
    Ruleset source configuration.

    Points at the JSON or YAML file holding the rules and the general
    responses.
    """
    path: str = ""  # Empty = <config_dir>/ruleset.yaml
    fallback_response: str = DEFAULT_FALLBACK_RESPONSE

    def validate(self) -> None:
        """Validate ruleset settings."""
        if self.path and Path(self.path).suffix.lower() not in (".json", ".yaml", ".yml"):
            raise ConfigError(
                f"Unsupported ruleset file type: {self.path}",
                {"supported": ".json, .yaml, .yml"}
            )

        if not self.fallback_response.strip():
            raise ConfigError("fallback_response cannot be empty")


@dataclass
class Config:
    """
    Main configuration container.

    Aggregates all configuration sections into a single object
    and provides methods for validating and serializing.
    """
    app_name: str = "Persona Responder"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    semantic: SemanticConfig = field(default_factory=SemanticConfig)
    ruleset: RulesetConfig = field(default_factory=RulesetConfig)

    # Paths (set at runtime)
    config_dir: str = ""
    data_dir: str = ""
    log_dir: str = ""

    def validate(self) -> None:
        """
        Validate all configuration sections.

        Raises:
            ConfigError: If any configuration section is invalid
        """
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Invalid log level: {self.log_level}")

        self.matching.validate()
        self.semantic.validate()
        self.ruleset.validate()

    @property
    def ruleset_path(self) -> Path:
        """Resolved path of the ruleset file."""
        if self.ruleset.path:
            return Path(self.ruleset.path)
        return Path(self.config_dir or get_default_config_dir()) / "ruleset.yaml"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "app_name": self.app_name,
            "version": self.version,
            "debug": self.debug,
            "log_level": self.log_level,
            "matching": asdict(self.matching),
            "semantic": asdict(self.semantic),
            "ruleset": asdict(self.ruleset),
        }


def get_default_config_dir() -> Path:
    """
    Get the default configuration directory path.

    Returns:
        Path to the configuration directory
    """
    if "PERSONA_RESPONDER_CONFIG_DIR" in os.environ:
        return Path(os.environ["PERSONA_RESPONDER_CONFIG_DIR"])

    if "XDG_CONFIG_HOME" in os.environ:
        return Path(os.environ["XDG_CONFIG_HOME"]) / "persona-responder"

    home = Path.home()
    config_home = home / ".config"

    if config_home.exists():
        return config_home / "persona-responder"

    return home / ".persona-responder"


def get_default_data_dir() -> Path:
    """
    Get the default data directory path.

    Returns:
        Path to the data directory
    """
    if "PERSONA_RESPONDER_DATA_DIR" in os.environ:
        return Path(os.environ["PERSONA_RESPONDER_DATA_DIR"])

    if "XDG_DATA_HOME" in os.environ:
        return Path(os.environ["XDG_DATA_HOME"]) / "persona-responder"

    return Path.home() / ".local" / "share" / "persona-responder"


def load_config(config_path: Optional[str] = None, load_env: bool = True) -> Config:
    """
    Load configuration from YAML file with environment variable overrides.

    This function loads configuration in the following order:
    1. Default values from dataclass
    2. Values from YAML file
    3. Environment variable overrides

    Args:
        config_path: Path to configuration file (optional)
        load_env: Whether to load environment variable overrides

    Returns:
        Config object with loaded values

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    config = Config()

    config.config_dir = str(get_default_config_dir())
    config.data_dir = str(get_default_data_dir())
    config.log_dir = str(Path(config.data_dir) / "logs")

    if load_env:
        _load_env_file(Path(config.config_dir) / ".env")

    if config_path:
        yaml_path = Path(config_path)
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    if yaml_path.exists():
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}", {"path": str(yaml_path)})
        except IOError as e:
            raise ConfigError(f"Failed to read config file: {e}", {"path": str(yaml_path)})

        if not isinstance(yaml_config, dict):
            raise ConfigError("Config file must contain a mapping", {"path": str(yaml_path)})

        _apply_yaml_config(config, yaml_config)

    if load_env:
        _apply_env_overrides(config)

    config.validate()

    return config


def _load_env_file(env_file: Path) -> None:
    """Export KEY=VALUE lines from a .env file without overriding the environment."""
    if not env_file.exists():
        return

    try:
        with open(env_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key, value = key.strip(), value.strip()
                    if key and value and key not in os.environ:
                        os.environ[key] = value
    except IOError as e:
        raise ConfigError(f"Failed to read .env file: {e}", {"path": str(env_file)})


def _apply_yaml_config(config: Config, yaml_config: Dict[str, Any]) -> None:
    """
    Apply YAML configuration values to Config object.

    Unknown keys are ignored.

    Args:
        config: Config object to update
        yaml_config: Dictionary of configuration values from YAML
    """
    for key in ("app_name", "version", "debug", "log_level"):
        if key in yaml_config:
            setattr(config, key, yaml_config[key])

    for section_name in ("matching", "semantic", "ruleset"):
        section_cfg = yaml_config.get(section_name)
        if not section_cfg:
            continue
        if not isinstance(section_cfg, dict):
            raise ConfigError(f"Config section '{section_name}' must be a mapping")

        section = getattr(config, section_name)
        for key, value in section_cfg.items():
            if hasattr(section, key):
                setattr(section, key, value)


def _apply_env_overrides(config: Config) -> None:
    """
    Apply environment variable overrides to Config object.

    Environment variables follow the pattern: PERSONA_RESPONDER_SECTION_KEY
    For example: PERSONA_RESPONDER_SEMANTIC_PROVIDER

    Args:
        config: Config object to update
    """
    env_mappings = {
        "PERSONA_RESPONDER_LOG_LEVEL": (None, "log_level"),
        "PERSONA_RESPONDER_DEBUG": (None, "debug", bool),

        # Matching settings
        "PERSONA_RESPONDER_MATCHING_MIN_FUZZY_LENGTH": ("matching", "min_fuzzy_length", int),
        "PERSONA_RESPONDER_MATCHING_FUZZY_THRESHOLD": ("matching", "fuzzy_threshold", float),

        # Semantic settings
        "PERSONA_RESPONDER_SEMANTIC_ENABLED": ("semantic", "enabled", bool),
        "PERSONA_RESPONDER_SEMANTIC_PROVIDER": ("semantic", "provider"),
        "PERSONA_RESPONDER_SEMANTIC_MODEL": ("semantic", "model"),
        "PERSONA_RESPONDER_SEMANTIC_API_BASE": ("semantic", "api_base"),
        "PERSONA_RESPONDER_SEMANTIC_THRESHOLD": ("semantic", "threshold", float),
        "OLLAMA_HOST": ("semantic", "api_base"),

        # Ruleset settings
        "PERSONA_RESPONDER_RULESET_PATH": ("ruleset", "path"),
    }

    for env_var, mapping in env_mappings.items():
        value = os.environ.get(env_var)
        if value is None:
            continue

        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str
        target = getattr(config, section) if section else config

        if converter == bool:
            converted = value.lower() in ("true", "1", "yes", "on")
        else:
            try:
                converted = converter(value)
            except ValueError:
                raise ConfigError(
                    f"Invalid value for {env_var}: {value!r}",
                    {"expected": converter.__name__}
                )

        setattr(target, key, converted)


def save_config(config: Config, config_path: Optional[str] = None) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Config object to save
        config_path: Path to save configuration (optional)

    Raises:
        ConfigError: If configuration cannot be saved
    """
    if config_path:
        yaml_path = Path(config_path)
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except IOError as e:
        raise ConfigError(f"Failed to save config file: {e}", {"path": str(yaml_path)})


def create_default_config(config_dir: Optional[str] = None) -> Config:
    """
    Create a default configuration file with sensible defaults.

    This function creates the configuration directory structure and
    writes a default config.yaml file that can be customized.

    Args:
        config_dir: Directory to create configuration in (optional)

    Returns:
        Config object with default values
    """
    config = Config()

    if config_dir:
        config.config_dir = config_dir
        config.data_dir = str(Path(config_dir) / "data")
        config.log_dir = str(Path(config_dir) / "logs")
    else:
        config.config_dir = str(get_default_config_dir())
        config.data_dir = str(get_default_data_dir())
        config.log_dir = str(Path(config.data_dir) / "logs")

    Path(config.config_dir).mkdir(parents=True, exist_ok=True)
    Path(config.data_dir).mkdir(parents=True, exist_ok=True)
    Path(config.log_dir).mkdir(parents=True, exist_ok=True)

    save_config(config)

    return config
