"""
Base Embedder - Abstract base class for embedding providers
===========================================================

This module defines the interface every embedding provider implements:
text in, unit-normalized vector out. The semantic matcher depends only
on this contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence

import numpy as np

from core.exceptions import EmbeddingError


@dataclass
class EmbedderConfig:
    """
    Configuration for an embedding provider instance.

    Attributes:
        model (str): Model identifier to use
        api_base (str): Base URL for remote providers
        timeout (int): Request timeout in seconds
        extra_params (dict): Provider-specific options
    """
    model: str = "all-MiniLM-L6-v2"
    api_base: str = ""
    timeout: int = 30
    extra_params: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Raises:
            ValueError: If any parameter is invalid
        """
        if not self.model:
            raise ValueError("model must not be empty")

        if self.timeout < 1:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


def normalize(vector: Sequence[float]) -> np.ndarray:
    """
    Scale a vector to unit length.

    Args:
        vector: Raw embedding

    Returns:
        1-D float32 array with L2 norm 1

    Raises:
        EmbeddingError: If the vector is empty, not 1-D, or has zero norm
    """
    try:
        array = np.asarray(vector, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise EmbeddingError(f"Embedding is not numeric: {e}")

    if array.ndim != 1 or array.size == 0:
        raise EmbeddingError(
            "Embedding must be a non-empty 1-D vector",
            {"shape": array.shape}
        )

    norm = float(np.linalg.norm(array))
    if not np.isfinite(norm) or norm == 0.0:
        raise EmbeddingError("Embedding has zero or invalid norm")

    return array / norm


class BaseEmbedder(ABC):
    """
    Abstract base class for embedding providers.

    Subclasses must implement:
    - embed(): Embed one text into a unit vector
    - is_available(): Check if the provider can currently be used

    Instances are callable, so ``embedder(text)`` is the same as
    ``embedder.embed(text)``.

    Example:
        class MyEmbedder(BaseEmbedder):
            def embed(self, text: str) -> np.ndarray:
                return normalize(my_model(text))
    """

    PROVIDER_NAME = "base"

    def __init__(self, config: EmbedderConfig):
        """
        Initialize the provider.

        Args:
            config: Provider configuration
        """
        self.config = config
        self.config.validate()

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        """
        Embed text into a unit-normalized vector.

        Args:
            text: Text to embed

        Returns:
            1-D unit vector

        Raises:
            EmbeddingError: If the provider fails
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check whether the provider is ready to embed.

        Returns:
            True if embed() is expected to succeed
        """
        pass

    def __call__(self, text: str) -> np.ndarray:
        return self.embed(text)

    def get_info(self) -> Dict[str, Any]:
        """
        Get provider information.

        Returns:
            Dictionary with provider details
        """
        return {
            "provider": self.PROVIDER_NAME,
            "model": self.config.model,
            "api_base": self.config.api_base,
        }
