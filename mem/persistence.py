"""
Whole-file persistence for the memory collection.

The data file is JSON:

    {
      "memories": [{"value": "...", "description": "..."}, ...],
      "embeddings": {"v": 1, "dim": [N, D], "data": [... N*D floats, row-major ...]}
    }

An empty (zero byte) file is a valid collection with no records. Every save
truncates and rewrites the file; there is no locking, so concurrent writers
race and the last one wins.
"""
from pathlib import Path
from typing import List, Optional, Sequence, Union
import json
import logging
import math

import numpy as np

from mem.errors import CorruptDataError, DimensionMismatchError, StoreIOError
from mem.models import Memory

logger = logging.getLogger(__name__)

EMBEDDING_DTYPE = np.float32
MATRIX_FORMAT_VERSION = 1


class MemoryCollection:
    """Ordered memories plus an N x D embedding matrix, row i belonging to memory i."""

    def __init__(
        self,
        dimension: int,
        memories: Optional[List[Memory]] = None,
        embeddings: Optional[np.ndarray] = None
    ):
        self.dimension = dimension
        self.memories = memories if memories is not None else []
        if embeddings is None:
            embeddings = np.zeros((0, dimension), dtype=EMBEDDING_DTYPE)
        self.embeddings = np.asarray(embeddings, dtype=EMBEDDING_DTYPE)

        if self.embeddings.ndim != 2 or self.embeddings.shape[1] != dimension:
            raise CorruptDataError(
                f"Embedding matrix has shape {self.embeddings.shape}, expected (N, {dimension})"
            )
        if len(self.memories) != self.embeddings.shape[0]:
            raise CorruptDataError(
                f"Found {len(self.memories)} memories but {self.embeddings.shape[0]} embeddings"
            )

    def __len__(self) -> int:
        return len(self.memories)

    def is_empty(self) -> bool:
        return len(self.memories) == 0

    def append(self, memory: Memory, embedding: Sequence[float]) -> None:
        """Add a memory and its embedding as a new row."""
        row = np.asarray(embedding, dtype=EMBEDDING_DTYPE).reshape(-1)
        if row.shape[0] != self.dimension:
            raise DimensionMismatchError(self.dimension, row.shape[0], "Cannot append embedding")
        self.embeddings = np.vstack([self.embeddings, row[np.newaxis, :]])
        self.memories.append(memory)

    def to_dict(self) -> dict:
        rows, cols = self.embeddings.shape
        return {
            "memories": [memory.to_dict() for memory in self.memories],
            "embeddings": {
                "v": MATRIX_FORMAT_VERSION,
                "dim": [rows, cols],
                "data": self.embeddings.reshape(-1).tolist()
            }
        }

    @classmethod
    def from_dict(cls, data: dict, dimension: int) -> "MemoryCollection":
        """
        Build a collection from parsed JSON, validating every shape.

        Args:
            data: Parsed file content
            dimension: Configured embedding dimension

        Returns:
            The collection

        Raises:
            CorruptDataError: If the content is not a valid collection
        """
        if not isinstance(data, dict):
            raise CorruptDataError("Top-level value must be an object")
        if "memories" not in data or "embeddings" not in data:
            raise CorruptDataError("Expected 'memories' and 'embeddings' fields")

        raw_memories = data["memories"]
        if not isinstance(raw_memories, list):
            raise CorruptDataError("'memories' must be a list")
        memories = [Memory.from_dict(item) for item in raw_memories]

        rows, cols, values = _parse_matrix(data["embeddings"])
        if rows != len(memories):
            raise CorruptDataError(
                f"Found {len(memories)} memories but {rows} embedding rows"
            )
        if rows == 0:
            # An empty matrix carries no vectors, so its width is irrelevant
            return cls(dimension)
        if cols != dimension:
            raise CorruptDataError(
                f"Stored embeddings have dimension {cols}, expected {dimension}"
            )

        embeddings = np.array(values, dtype=EMBEDDING_DTYPE).reshape(rows, cols)
        return cls(dimension, memories, embeddings)


def _parse_matrix(raw) -> tuple:
    if not isinstance(raw, dict):
        raise CorruptDataError("'embeddings' must be an object")
    if raw.get("v") != MATRIX_FORMAT_VERSION:
        raise CorruptDataError(f"Unsupported embedding matrix version: {raw.get('v')!r}")

    dim = raw.get("dim")
    if (
        not isinstance(dim, list)
        or len(dim) != 2
        or not all(isinstance(d, int) and not isinstance(d, bool) and d >= 0 for d in dim)
    ):
        raise CorruptDataError(f"Invalid embedding matrix shape: {dim!r}")
    rows, cols = dim

    values = raw.get("data")
    if not isinstance(values, list):
        raise CorruptDataError("Embedding matrix 'data' must be a list")
    if len(values) != rows * cols:
        raise CorruptDataError(
            f"Embedding matrix has {len(values)} values, expected {rows} x {cols}"
        )
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise CorruptDataError(f"Embedding matrix contains a non-numeric value: {value!r}")

    return rows, cols, values


class MemoryFile:
    """Loads and saves a MemoryCollection from a single JSON file."""

    def __init__(self, path: Union[str, Path], dimension: int):
        """
        Args:
            path: Path of the backing file
            dimension: Embedding dimension D for this file
        """
        self.path = Path(path)
        self.dimension = dimension

    def touch(self) -> None:
        """Create the file empty if it does not exist yet."""
        try:
            self.path.touch(exist_ok=True)
        except OSError as e:
            raise StoreIOError(
                f"Failed to open data file. Make sure you have write permissions to {self.path}"
            ) from e

    def size(self) -> int:
        """Size of the backing file in bytes (0 if missing)."""
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise StoreIOError(f"Failed to read data file {self.path}") from e

    def load(self) -> MemoryCollection:
        """
        Load the collection from disk.

        Returns:
            The stored collection, or an empty one if the file is missing or empty

        Raises:
            StoreIOError: If the file cannot be read
            CorruptDataError: If the content is not a valid collection
        """
        if self.size() == 0:
            logger.debug(f"Data file {self.path} is empty, starting a new collection")
            return MemoryCollection(self.dimension)

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"Failed to parse data file {self.path}: {e}") from e
        except UnicodeDecodeError as e:
            raise CorruptDataError(f"Data file {self.path} is not valid UTF-8") from e
        except OSError as e:
            raise StoreIOError(f"Failed to read data file {self.path}") from e

        try:
            collection = MemoryCollection.from_dict(data, self.dimension)
        except CorruptDataError as e:
            raise CorruptDataError(f"Invalid data file {self.path}: {e}") from e

        logger.debug(f"Loaded {len(collection)} memories from {self.path}")
        return collection

    def save(self, collection: MemoryCollection) -> None:
        """
        Replace the file contents with the given collection.

        Raises:
            CorruptDataError: If the collection holds non-finite values (file untouched)
            StoreIOError: If the file cannot be written
        """
        try:
            payload = json.dumps(collection.to_dict(), ensure_ascii=False, allow_nan=False)
        except ValueError as e:
            raise CorruptDataError(
                f"Refusing to save non-finite embedding values to {self.path}"
            ) from e
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(payload)
        except OSError as e:
            raise StoreIOError(
                f"Failed to save data file. Make sure you have write permissions to {self.path}"
            ) from e
        logger.debug(f"Saved {len(collection)} memories to {self.path}")
