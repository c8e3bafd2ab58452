"""
Embedding providers and the dimension-checking embedding service.

Supports pluggable embedding backends (OpenAI, local sentence-transformers,
deterministic dummy) behind one interface, with optional disk caching.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
import hashlib
import logging
import sqlite3

import numpy as np
from diskcache import Cache
from openai import OpenAI, OpenAIError

from mem.config import MemConfig
from mem.credentials import load_api_key
from mem.errors import (
    DimensionMismatchError,
    InvalidInputError,
    ProviderError,
    StoreIOError,
)

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    model_name: str = ""

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            ProviderError: If the backend call fails
        """
        pass


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API provider."""

    def __init__(self, api_key: str, model_name: str):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model_name: Embedding model, e.g. text-embedding-ada-002
        """
        self.model_name = model_name
        self.client = OpenAI(api_key=api_key)
        logger.info(f"OpenAI embedding provider initialized (model: {model_name})")

    def embed_text(self, text: str) -> List[float]:
        try:
            response = self.client.embeddings.create(model=self.model_name, input=text)
        except OpenAIError as e:
            raise ProviderError(
                f"Failed to get embedding from OpenAI API (model: {self.model_name}): {e}"
            ) from e

        if not response.data:
            raise ProviderError(
                f"OpenAI API returned no embedding (model: {self.model_name})"
            )
        return list(response.data[0].embedding)


class LocalEmbeddingProvider(EmbeddingProvider):
    """Local sentence-transformers provider (no network after the model download)."""

    def __init__(self, model_name: str, device: Optional[str] = None):
        """
        Initialize local provider.

        Args:
            model_name: Name of the sentence-transformers model
            device: Device to use ('cuda', 'mps', 'cpu', or None for auto)
        """
        self.model_name = model_name

        # Lazy import to avoid the dependency when using a remote backend
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise ImportError(
                "sentence-transformers not installed. "
                "Install with: pip install 'mem[local]'"
            )

        logger.info(f"Loading embedding model: {model_name}")
        try:
            self.model = SentenceTransformer(model_name, device=device)
        except Exception as e:
            raise ProviderError(f"Failed to load embedding model {model_name}: {e}") from e

    def embed_text(self, text: str) -> List[float]:
        try:
            embedding = self.model.encode(text, convert_to_numpy=True)
        except Exception as e:
            raise ProviderError(f"Failed to embed text with {self.model_name}: {e}") from e
        return embedding.tolist()


class DummyEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic hash-based provider for testing (no API calls).

    Vectors are unit length, so a text always scores highest against itself.
    """

    model_name = "dummy-hash"

    def __init__(self, dimension: int):
        self.dimension = dimension
        logger.info(f"Dummy embedding provider initialized (dimension={dimension})")

    def embed_text(self, text: str) -> List[float]:
        values = []
        counter = 0
        while len(values) < self.dimension:
            digest = hashlib.sha256(f"{counter}:{text}".encode()).digest()
            values.extend(byte / 127.5 - 1.0 for byte in digest)
            counter += 1

        vector = np.array(values[:self.dimension], dtype=np.float64)
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()


def get_provider(config: MemConfig) -> EmbeddingProvider:
    """
    Factory function to get the configured embedding provider.

    Args:
        config: Store configuration

    Returns:
        Initialized provider

    Raises:
        MissingCredentialError: If the OpenAI backend has no API key
        ValueError: If the backend is unknown
    """
    backend = config.embedding_backend
    if backend == "openai":
        return OpenAIEmbeddingProvider(
            api_key=load_api_key(config),
            model_name=config.embedding_model
        )
    if backend == "local":
        return LocalEmbeddingProvider(model_name=config.embedding_model)
    if backend == "dummy":
        return DummyEmbeddingProvider(dimension=config.embedding_dim)
    raise ValueError(f"Unknown embedding backend: {backend}")


class EmbeddingService:
    """
    Turns text into fixed-length vectors through a provider.

    Features:
    - Enforces the configured embedding dimension on every vector
    - Disk-based caching to avoid repeated provider calls for the same text
    - Never retries; provider failures propagate to the caller
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        dimension: int,
        cache_dir: Optional[Path] = None
    ):
        """
        Initialize the embedding service.

        Args:
            provider: Backend producing the raw vectors
            dimension: Required vector length D
            cache_dir: Directory for the embedding cache (None disables caching)
        """
        self.provider = provider
        self.dimension = dimension
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self._cache = None

    @classmethod
    def from_config(
        cls,
        config: MemConfig,
        provider: Optional[EmbeddingProvider] = None
    ) -> "EmbeddingService":
        cache_dir = config.cache_dir if config.use_embedding_cache else None
        return cls(provider or get_provider(config), config.embedding_dim, cache_dir)

    @property
    def model_name(self) -> str:
        return self.provider.model_name

    @property
    def cache(self) -> Optional[Cache]:
        """Cache opened on first use, so read-only commands never create it."""
        if self.cache_dir is None:
            return None
        if self._cache is None:
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                self._cache = Cache(str(self.cache_dir))
            except (OSError, sqlite3.Error) as e:
                raise StoreIOError(f"Failed to open embedding cache at {self.cache_dir}: {e}") from e
            logger.debug(f"Initialized embedding cache at: {self.cache_dir}")
        return self._cache

    def embed(self, text: str) -> np.ndarray:
        """
        Embed a text and check its dimension.

        Args:
            text: Text to embed

        Returns:
            Vector of length D

        Raises:
            InvalidInputError: If the text is empty
            ProviderError: If the provider call fails or returns non-finite values
            DimensionMismatchError: If the vector length is not D
        """
        if not text or not text.strip():
            raise InvalidInputError("Cannot embed empty text")

        cache = self.cache
        cache_key = self._get_cache_key(text)

        embedding = cache.get(cache_key) if cache is not None else None
        if embedding is not None:
            logger.debug(f"Cache HIT for text: {text[:50]}...")
        else:
            logger.debug(f"Embedding text with {self.model_name}: {text[:50]}...")
            embedding = self.provider.embed_text(text)

        if len(embedding) != self.dimension:
            raise DimensionMismatchError(
                self.dimension,
                len(embedding),
                f"Embedding from {self.model_name}"
            )

        # Values beyond float32 range overflow to inf here
        with np.errstate(over="ignore"):
            vector = np.asarray(embedding, dtype=np.float32)
        if not np.isfinite(vector).all():
            raise ProviderError(
                f"Embedding from {self.model_name} contains non-finite values"
            )

        if cache is not None:
            cache.set(cache_key, list(embedding))

        return vector

    def clear_cache(self) -> int:
        """
        Clear the embedding cache.

        Returns:
            Number of entries cleared
        """
        cache = self.cache
        if cache is None:
            return 0
        count = len(cache)
        cache.clear()
        logger.info(f"Cleared {count} cached embeddings")
        return count

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def _get_cache_key(self, text: str) -> str:
        # Include model name in key so different models never share vectors
        text_hash = hashlib.sha256(text.encode()).hexdigest()
        return f"{self.model_name}:{text_hash}"
