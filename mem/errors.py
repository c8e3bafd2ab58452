"""
Errors raised by the memory store.

Library code raises these; only the CLI catches and renders them.
"""
from pathlib import Path
from typing import Optional, Union


class MemError(Exception):
    """Base class for all memory store errors."""

    kind = "Error"


class InvalidInputError(MemError, ValueError):
    """An argument was rejected before any provider call or write."""

    kind = "Invalid input"


class StoreIOError(MemError):
    """A file could not be opened, read or written."""

    kind = "I/O error"


class CorruptDataError(MemError):
    """The data file is non-empty but not a valid memory collection."""

    kind = "Corrupt data"


class ProviderError(MemError):
    """The embedding provider call failed."""

    kind = "Embedding provider error"


class DimensionMismatchError(MemError):
    """An embedding vector does not have the configured length."""

    kind = "Dimension mismatch"

    def __init__(self, expected: int, actual: int, context: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        message = f"Embedding size is not correct. Expected: {expected}, Got: {actual}"
        if context:
            message = f"{context}: {message}"
        super().__init__(message)


class MissingCredentialError(MemError):
    """No API key has been configured."""

    kind = "Key not configured"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(
            f"No API key found at {self.path}. Run 'mem set-key' to store one."
        )
