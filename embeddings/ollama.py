"""
Ollama Embedder - Embeddings from a local Ollama runtime
========================================================

This module implements the embedding provider interface for Ollama,
using its ``/api/embeddings`` endpoint. Useful on machines where a
PyTorch install is unwanted but an Ollama service is already running.

Suitable models include:
- nomic-embed-text
- mxbai-embed-large
- all-minilm

Reference: https://ollama.ai
"""

from typing import Any, Dict, Optional

import httpx
import numpy as np

from .base import BaseEmbedder, EmbedderConfig, normalize
from core.exceptions import EmbeddingError
from core.logging import get_logger

logger = get_logger("embeddings.ollama")


class OllamaEmbedder(BaseEmbedder):
    """
    Embedding provider for the Ollama local runtime.

    Requirements:
    - Ollama installed: https://ollama.ai
    - Ollama service running: `ollama serve`
    - Model pulled: `ollama pull nomic-embed-text`

    Example:
        config = EmbedderConfig(
            model="nomic-embed-text",
            api_base="http://localhost:11434",
        )

        embedder = OllamaEmbedder(config)

        if embedder.is_available():
            vector = embedder.embed("Hello!")
    """

    PROVIDER_NAME = "ollama"
    DEFAULT_HOST = "http://localhost:11434"
    DEFAULT_MODEL = "nomic-embed-text"

    def __init__(self, config: EmbedderConfig):
        """
        Initialize Ollama provider.

        Args:
            config: Provider configuration
        """
        super().__init__(config)

        self.host = (config.api_base or self.DEFAULT_HOST).rstrip("/")

        logger.info(
            "Initialized Ollama embedding provider",
            extra={"model": config.model, "host": self.host}
        )

    def _make_request(
        self,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Make an HTTP request to the Ollama API.

        POSTs when ``data`` is given, GETs otherwise.

        Args:
            endpoint: API endpoint (e.g., "/api/embeddings")
            data: Request body
            timeout: Request timeout

        Returns:
            Decoded JSON response

        Raises:
            EmbeddingError: On connection, HTTP or decoding failures
        """
        url = f"{self.host}{endpoint}"
        timeout = timeout or self.config.timeout

        try:
            with httpx.Client(timeout=timeout) as client:
                if data is None:
                    response = client.get(url)
                else:
                    response = client.post(url, json=data)
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"Ollama API error: {e.response.text}",
                details={"status": e.response.status_code, "url": url}
            )

        except httpx.RequestError as e:
            raise EmbeddingError(
                f"Failed to connect to Ollama: {e}. Is Ollama running?",
                details={"url": url, "hint": "Run 'ollama serve' to start Ollama"}
            )

        except ValueError as e:
            raise EmbeddingError(f"Failed to parse Ollama response: {e}")

    def embed(self, text: str) -> np.ndarray:
        """
        Embed text through the Ollama API.

        Args:
            text: Text to embed

        Returns:
            Unit-normalized vector

        Raises:
            EmbeddingError: If the request fails or returns no embedding
        """
        result = self._make_request(
            "/api/embeddings",
            {"model": self.config.model, "prompt": text},
        )

        embedding = result.get("embedding") if isinstance(result, dict) else None
        if not embedding:
            raise EmbeddingError(
                "Ollama returned no embedding",
                details={"model": self.config.model}
            )

        return normalize(embedding)

    def is_available(self) -> bool:
        """
        Check if the Ollama service is reachable.

        Returns:
            True if Ollama answers on /api/tags
        """
        try:
            self._make_request("/api/tags", timeout=5)
            return True
        except EmbeddingError as e:
            logger.debug(f"Ollama not available: {e}")
            return False
