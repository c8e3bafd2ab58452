"""
Semantic memory store.

Memories are (value, description) pairs. The description's embedding is
computed once at insertion and never recomputed, so vectors written by an
older model stay as they are. Queries rank every stored row by the raw dot
product with the query embedding (full linear scan, no index).

Every operation is a complete read-modify-write cycle on the data file.
"""
from typing import List, Optional, Tuple
import logging

import numpy as np

from mem.config import MemConfig
from mem.embedding_service import EmbeddingProvider, EmbeddingService
from mem.errors import InvalidInputError
from mem.models import Memory, ScoredMemory
from mem.persistence import MemoryFile

logger = logging.getLogger(__name__)


def dot_scores(embeddings: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Dot product of the query against every row of the embedding matrix."""
    return embeddings @ np.asarray(query, dtype=embeddings.dtype)


def best_match(embeddings: np.ndarray, query: np.ndarray) -> Tuple[int, float]:
    """
    Index and score of the highest scoring row.

    On ties the first maximum in storage order wins.
    """
    scores = dot_scores(embeddings, query)
    index = int(np.argmax(scores))
    return index, float(scores[index])


def rank(
    embeddings: np.ndarray,
    query: np.ndarray,
    count: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rank rows by descending dot product.

    Args:
        embeddings: N x D matrix
        query: Vector of length D
        count: Keep at most this many results (None keeps all)

    Returns:
        (indices, scores) in ranked order; ties keep storage order
    """
    scores = dot_scores(embeddings, query)
    # Stable sort on the negated scores keeps equal scores in storage order
    order = np.argsort(-scores, kind="stable")
    if count is not None:
        order = order[:count]
    return order, scores[order]


class MemoryStore:
    """
    A store for memories.

    Memories have a description and a value. The description is used for
    semantic retrieval.
    """

    def __init__(self, memory_file: MemoryFile, embedding_service: EmbeddingService):
        """
        Args:
            memory_file: Backing file for the collection
            embedding_service: Service embedding descriptions and queries
        """
        if memory_file.dimension != embedding_service.dimension:
            raise ValueError(
                f"Data file dimension ({memory_file.dimension}) does not match "
                f"embedding dimension ({embedding_service.dimension})"
            )
        self.memory_file = memory_file
        self.embedding_service = embedding_service

    @classmethod
    def from_config(
        cls,
        config: MemConfig,
        provider: Optional[EmbeddingProvider] = None
    ) -> "MemoryStore":
        """
        Build a store bound to the configured data file.

        Creates the data directory and an empty data file if needed.

        Args:
            config: Store configuration
            provider: Embedding provider to use instead of the configured backend
        """
        config.ensure_data_dir()
        memory_file = MemoryFile(config.data_file, config.embedding_dim)
        memory_file.touch()
        embedding_service = EmbeddingService.from_config(config, provider=provider)
        logger.debug(
            f"Memory store at {config.data_file} "
            f"(model: {embedding_service.model_name}, dimension: {config.embedding_dim})"
        )
        return cls(memory_file, embedding_service)

    @property
    def dimension(self) -> int:
        return self.memory_file.dimension

    def insert(self, memory: str, description: str) -> None:
        """
        Insert a new memory into the store.

        The embedding is computed before anything changes, so a provider
        failure leaves the data file untouched.
        """
        collection = self.memory_file.load()
        embedding = self.embedding_service.embed(description)
        collection.append(Memory(value=memory, description=description), embedding)
        self.memory_file.save(collection)
        logger.info(f"Inserted memory #{len(collection)} ({description[:50]})")

    def get(self, description: str) -> Optional[ScoredMemory]:
        """Get the memory best matching a description, or None if the store is empty."""
        collection = self.memory_file.load()
        if collection.is_empty():
            return None

        query = self.embedding_service.embed(description)
        index, score = best_match(collection.embeddings, query)
        logger.debug(f"Best match for '{description[:50]}': #{index} (score {score:.4f})")
        return collection.memories[index].into_scored(score)

    def list(self, description: str, count: int = 10) -> List[ScoredMemory]:
        """
        List up to `count` memories ranked by similarity to a description.

        Ties keep insertion order.
        """
        if count < 0:
            raise InvalidInputError(f"count must be non-negative, got {count}")

        collection = self.memory_file.load()
        if collection.is_empty():
            return []

        query = self.embedding_service.embed(description)
        indices, scores = rank(collection.embeddings, query, count)
        logger.debug(f"Ranked {len(collection)} memories, returning {len(indices)}")
        return [
            collection.memories[int(i)].into_scored(score)
            for i, score in zip(indices, scores)
        ]

    def stats(self) -> dict:
        """Describe the store without calling the embedding provider."""
        collection = self.memory_file.load()
        return {
            "total_memories": len(collection),
            "embedding_dimension": self.dimension,
            "embedding_model": self.embedding_service.model_name,
            "data_file": str(self.memory_file.path),
            "file_size_bytes": self.memory_file.size()
        }

    def clear_cache(self) -> int:
        """Drop cached embeddings; stored memories and their vectors are untouched."""
        return self.embedding_service.clear_cache()

    def close(self) -> None:
        self.embedding_service.close()
