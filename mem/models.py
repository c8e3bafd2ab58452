"""
Memory records and scored query results.
"""
from dataclasses import dataclass
from typing import Any, Dict

from mem.errors import CorruptDataError


class Memory:
    """A stored memory: the value to recall and the description used to find it."""

    def __init__(self, value: str, description: str):
        self.value = value
        self.description = description

    def to_dict(self) -> Dict[str, str]:
        """Convert memory to dictionary."""
        return {
            "value": self.value,
            "description": self.description
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Memory":
        """Create memory from dictionary."""
        if not isinstance(data, dict):
            raise CorruptDataError(f"Memory record must be an object, got {type(data).__name__}")
        try:
            value = data["value"]
            description = data["description"]
        except KeyError as e:
            raise CorruptDataError(f"Memory record is missing field {e}") from e
        if not isinstance(value, str) or not isinstance(description, str):
            raise CorruptDataError("Memory value and description must be strings")
        return cls(value=value, description=description)

    def into_scored(self, score: float) -> "ScoredMemory":
        return ScoredMemory(value=self.value, description=self.description, score=float(score))

    def __eq__(self, other):
        if not isinstance(other, Memory):
            return NotImplemented
        return self.value == other.value and self.description == other.description

    def __repr__(self):
        return f"Memory(value={self.value!r}, description={self.description!r})"


@dataclass(frozen=True)
class ScoredMemory:
    """A memory paired with its similarity score for one query. Never persisted."""

    value: str
    description: str
    score: float

    def __str__(self):
        return f"{self.value} ({self.score:.4f})"
