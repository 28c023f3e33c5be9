"""
Sentence-Transformers Embedder - Local embedding model
======================================================

Runs a sentence-transformers model in-process. The model is loaded on
first use so that startup stays fast when the semantic tier is never hit.

Requires the optional ``sentence-transformers`` dependency:
    pip install persona-responder[semantic]
"""

import threading
import time
from typing import Optional

import numpy as np

from .base import BaseEmbedder, EmbedderConfig, normalize
from core.exceptions import EmbeddingError
from core.logging import get_logger

logger = get_logger("embeddings.sentence_transformer")


class SentenceTransformerEmbedder(BaseEmbedder):
    """
    Embedding provider backed by a local sentence-transformers model.

    A failed import or model load marks the provider unavailable for the
    rest of the process; the resolver then skips the semantic tier.

    Example:
        embedder = SentenceTransformerEmbedder(EmbedderConfig(model="all-MiniLM-L6-v2"))
        vector = embedder.embed("where is the bathroom")
    """

    PROVIDER_NAME = "sentence_transformers"
    DEFAULT_MODEL = "all-MiniLM-L6-v2"

    def __init__(self, config: EmbedderConfig):
        """
        Initialize the provider without loading the model.

        Args:
            config: Provider configuration
        """
        super().__init__(config)

        self._model = None
        self._load_error: Optional[str] = None
        self._lock = threading.Lock()

        logger.info(
            "Initialized sentence-transformers provider",
            extra={"model": config.model}
        )

    def _get_model(self):
        """Load the model once; later calls reuse it or re-raise the load failure."""
        if self._model is not None:
            return self._model

        with self._lock:
            if self._model is not None:
                return self._model

            if self._load_error:
                raise EmbeddingError(self._load_error, {"model": self.config.model})

            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                self._load_error = (
                    "sentence-transformers not installed. "
                    "Install with: pip install sentence-transformers"
                )
                logger.error(self._load_error)
                raise EmbeddingError(self._load_error)

            cache_dir = self.config.extra_params.get("cache_dir")
            logger.info(f"Loading embedding model: {self.config.model}")
            start_time = time.time()

            try:
                self._model = SentenceTransformer(self.config.model, cache_folder=cache_dir)
            except Exception as e:
                self._load_error = f"Failed to load embedding model: {e}"
                logger.error(self._load_error)
                raise EmbeddingError(self._load_error, {"model": self.config.model})

            logger.info(f"Embedding model loaded in {time.time() - start_time:.2f}s")
            return self._model

    def embed(self, text: str) -> np.ndarray:
        """
        Embed text with the local model.

        Args:
            text: Text to embed

        Returns:
            Unit-normalized vector

        Raises:
            EmbeddingError: If the model cannot be loaded or encoding fails
        """
        model = self._get_model()

        try:
            vector = model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}", {"model": self.config.model})

        return normalize(vector)

    def is_available(self) -> bool:
        """
        Check whether the model is loaded or loadable.

        Triggers the lazy load on first call.
        """
        try:
            self._get_model()
            return True
        except EmbeddingError:
            return False
