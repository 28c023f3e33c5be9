"""
Embeddings Module - Abstraction layer for embedding providers
=============================================================

This module provides a unified interface for turning text into
unit-normalized vectors with:
- sentence-transformers (local model)
- Ollama (local service over HTTP)
"""

from .base import BaseEmbedder, EmbedderConfig, normalize
from .ollama import OllamaEmbedder
from .sentence_transformer import SentenceTransformerEmbedder
from .factory import EmbedderFactory, create_embedder

__all__ = [
    "BaseEmbedder",
    "EmbedderConfig",
    "normalize",
    "OllamaEmbedder",
    "SentenceTransformerEmbedder",
    "EmbedderFactory",
    "create_embedder",
]
