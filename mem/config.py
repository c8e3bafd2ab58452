"""
Mem configuration
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging
import os

from mem.errors import StoreIOError

logger = logging.getLogger(__name__)

# Data directory - can be overridden with environment variable
DATA_DIR_ENV_VAR = "MEM_DATA_DIR"
DEFAULT_DATA_DIR = Path.home() / ".mem"

# File names inside the data directory
DATA_FILE_NAME = "store.json"
API_KEY_FILE_NAME = "openai_api_key.txt"
CACHE_DIR_NAME = "embeddings_cache"

# Embedding backends: (default model, dimension)
EMBEDDING_BACKENDS = {
    "openai": ("text-embedding-ada-002", 1536),
    "local": ("all-MiniLM-L6-v2", 384),
    "dummy": ("dummy-hash", 64),
}
DEFAULT_BACKEND = "openai"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class MemConfig:
    """Configuration shared by the memory file and the embedding service."""

    data_dir: Path = DEFAULT_DATA_DIR
    data_file_name: str = DATA_FILE_NAME
    api_key_file_name: str = API_KEY_FILE_NAME
    embedding_backend: str = DEFAULT_BACKEND
    embedding_model: str = EMBEDDING_BACKENDS[DEFAULT_BACKEND][0]
    embedding_dim: int = EMBEDDING_BACKENDS[DEFAULT_BACKEND][1]
    use_embedding_cache: bool = True
    log_level: str = "WARNING"

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if self.embedding_backend not in EMBEDDING_BACKENDS:
            raise ValueError(
                f"Unknown embedding backend: {self.embedding_backend}. "
                f"Available: {', '.join(EMBEDDING_BACKENDS)}"
            )
        if self.embedding_dim <= 0:
            raise ValueError(f"Embedding dimension must be positive, got {self.embedding_dim}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"Unknown log level: {self.log_level}. Available: {', '.join(LOG_LEVELS)}"
            )

    @property
    def data_file(self) -> Path:
        return self.data_dir / self.data_file_name

    @property
    def api_key_file(self) -> Path:
        return self.data_dir / self.api_key_file_name

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / CACHE_DIR_NAME

    @classmethod
    def for_backend(cls, backend: str, **kwargs) -> "MemConfig":
        """Build a config using the default model and dimension of a backend."""
        if backend not in EMBEDDING_BACKENDS:
            raise ValueError(
                f"Unknown embedding backend: {backend}. "
                f"Available: {', '.join(EMBEDDING_BACKENDS)}"
            )
        model, dim = EMBEDDING_BACKENDS[backend]
        kwargs.setdefault("embedding_model", model)
        kwargs.setdefault("embedding_dim", dim)
        return cls(embedding_backend=backend, **kwargs)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "MemConfig":
        """
        Load configuration from environment variables.

        Priority: environment variables > backend defaults.

        Args:
            environ: Mapping to read instead of os.environ (useful for tests)

        Returns:
            Resolved configuration
        """
        env = os.environ if environ is None else environ

        data_dir = Path(env[DATA_DIR_ENV_VAR]) if env.get(DATA_DIR_ENV_VAR) else DEFAULT_DATA_DIR
        backend = env.get("MEM_EMBEDDING_BACKEND", DEFAULT_BACKEND).strip().lower()

        kwargs = {
            "data_dir": data_dir,
            "use_embedding_cache": _parse_bool(env.get("MEM_EMBEDDING_CACHE", "1")),
            "log_level": env.get("MEM_LOG_LEVEL", "WARNING").upper(),
        }
        if env.get("MEM_EMBEDDING_MODEL"):
            kwargs["embedding_model"] = env["MEM_EMBEDDING_MODEL"]
        if env.get("MEM_EMBEDDING_DIM"):
            try:
                kwargs["embedding_dim"] = int(env["MEM_EMBEDDING_DIM"])
            except ValueError:
                raise ValueError(
                    f"MEM_EMBEDDING_DIM must be an integer, got {env['MEM_EMBEDDING_DIM']!r}"
                )

        return cls.for_backend(backend, **kwargs)

    def ensure_data_dir(self) -> Path:
        """Create the data directory if needed."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(
                f"Failed to create data directory. "
                f"Make sure you have write permissions to {self.data_dir}"
            ) from e
        return self.data_dir


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")
