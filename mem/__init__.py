"""
mem - Semantic memory store

Save short text snippets with a description, recall them later by meaning.
"""

__version__ = "0.1.0"

from mem.config import MemConfig
from mem.memory_store import MemoryStore
from mem.models import Memory, ScoredMemory

__all__ = ["MemConfig", "Memory", "MemoryStore", "ScoredMemory"]
