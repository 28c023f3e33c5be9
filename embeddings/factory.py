"""
Embedder Factory - Factory for creating embedding provider instances
====================================================================

This module provides a factory pattern for creating and managing
embedding providers, making it easy to switch between a local model
and a remote service.
"""

from pathlib import Path
from typing import Optional, Type, Dict, Any

from .base import BaseEmbedder, EmbedderConfig
from .ollama import OllamaEmbedder
from .sentence_transformer import SentenceTransformerEmbedder
from core.exceptions import ConfigError
from core.logging import get_logger

logger = get_logger("embeddings.factory")


# Registry of available providers
PROVIDERS: Dict[str, Type[BaseEmbedder]] = {
    "sentence_transformers": SentenceTransformerEmbedder,
    "ollama": OllamaEmbedder,
}


class EmbedderFactory:
    """
    Factory for creating embedding provider instances.

    Example:
        # Create provider from config
        embedder = EmbedderFactory.create_from_config(config)

        # Create provider directly
        embedder = EmbedderFactory.create("ollama", EmbedderConfig(model="nomic-embed-text"))

        # Register custom provider
        EmbedderFactory.register("my_provider", MyEmbedder)
    """

    @staticmethod
    def create(provider_name: str, config: EmbedderConfig) -> BaseEmbedder:
        """
        Create an embedding provider instance.

        Args:
            provider_name: Name of the provider (e.g., "ollama")
            config: Provider configuration

        Returns:
            Configured provider instance

        Raises:
            ConfigError: If provider is not registered or config is invalid
        """
        provider_name = provider_name.lower()

        if provider_name not in PROVIDERS:
            available = ", ".join(PROVIDERS.keys())
            raise ConfigError(
                f"Unknown embedding provider: {provider_name}",
                details={"available_providers": available}
            )

        provider_class = PROVIDERS[provider_name]

        try:
            logger.info(f"Creating {provider_name} embedding provider")
            return provider_class(config)
        except ValueError as e:
            raise ConfigError(
                f"Invalid configuration for {provider_name}: {e}",
                details={"provider": provider_name}
            )

    @staticmethod
    def create_from_config(config) -> BaseEmbedder:
        """
        Create provider from application config.

        Args:
            config: Main application Config object

        Returns:
            Configured provider instance
        """
        semantic = config.semantic
        embedder_config = EmbedderConfig(
            model=semantic.model,
            api_base=semantic.api_base if semantic.provider == "ollama" else "",
            timeout=semantic.timeout,
            extra_params={
                "cache_dir": str(Path(config.data_dir) / "models") if config.data_dir else None,
            }
        )

        return EmbedderFactory.create(semantic.provider, embedder_config)

    @staticmethod
    def register(name: str, provider_class: Type[BaseEmbedder]) -> None:
        """
        Register a new provider class.

        Args:
            name: Provider name
            provider_class: Provider class (must inherit from BaseEmbedder)

        Raises:
            ConfigError: If provider class is invalid
        """
        if not isinstance(provider_class, type) or not issubclass(provider_class, BaseEmbedder):
            raise ConfigError(
                "Provider class must inherit from BaseEmbedder",
                details={"class": str(provider_class)}
            )

        PROVIDERS[name.lower()] = provider_class
        logger.info(f"Registered embedding provider: {name}")

    @staticmethod
    def list_providers() -> Dict[str, str]:
        """
        Get list of available providers.

        Returns:
            Dictionary mapping provider names to descriptions
        """
        return {
            "sentence_transformers": "sentence-transformers - Local in-process model",
            "ollama": "Ollama - Local embedding service over HTTP",
        }


def create_embedder(config: Optional[Any] = None) -> Optional[BaseEmbedder]:
    """
    Convenience function to create the configured embedding provider.

    Args:
        config: Application config

    Returns:
        Provider instance, or None when semantic matching is disabled
    """
    if config is None or not config.semantic.enabled:
        logger.info("Semantic matching disabled")
        return None

    return EmbedderFactory.create_from_config(config)
