"""
Tests for configuration and API key storage.
"""
import pytest
import tempfile
import shutil
from pathlib import Path

from mem.config import DEFAULT_DATA_DIR, MemConfig
from mem.credentials import load_api_key, store_api_key
from mem.errors import MissingCredentialError, StoreIOError


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


class TestMemConfig:
    """Test suite for MemConfig."""

    def test_defaults(self):
        config = MemConfig.from_env({})

        assert config.data_dir == DEFAULT_DATA_DIR
        assert config.data_file == DEFAULT_DATA_DIR / "store.json"
        assert config.api_key_file == DEFAULT_DATA_DIR / "openai_api_key.txt"
        assert config.embedding_backend == "openai"
        assert config.embedding_model == "text-embedding-ada-002"
        assert config.embedding_dim == 1536
        assert config.use_embedding_cache is True

    def test_data_dir_from_env(self, temp_dir):
        config = MemConfig.from_env({"MEM_DATA_DIR": str(temp_dir)})

        assert config.data_file == temp_dir / "store.json"
        assert config.cache_dir == temp_dir / "embeddings_cache"

    def test_backend_defaults(self):
        config = MemConfig.from_env({"MEM_EMBEDDING_BACKEND": "local"})

        assert config.embedding_model == "all-MiniLM-L6-v2"
        assert config.embedding_dim == 384

    def test_overrides(self):
        config = MemConfig.from_env({
            "MEM_EMBEDDING_BACKEND": "dummy",
            "MEM_EMBEDDING_MODEL": "custom",
            "MEM_EMBEDDING_DIM": "8",
            "MEM_EMBEDDING_CACHE": "false",
            "MEM_LOG_LEVEL": "debug",
        })

        assert config.embedding_backend == "dummy"
        assert config.embedding_model == "custom"
        assert config.embedding_dim == 8
        assert config.use_embedding_cache is False
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("environ", [
        {"MEM_EMBEDDING_BACKEND": "nope"},
        {"MEM_EMBEDDING_DIM": "many"},
        {"MEM_EMBEDDING_DIM": "0"},
    ])
    def test_invalid_values(self, environ):
        with pytest.raises(ValueError):
            MemConfig.from_env(environ)

    def test_ensure_data_dir(self, temp_dir):
        config = MemConfig(data_dir=temp_dir / "a" / "b")

        assert config.ensure_data_dir().is_dir()

    def test_ensure_data_dir_blocked_by_file(self, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("", encoding="utf-8")
        config = MemConfig(data_dir=blocker / "data")

        with pytest.raises(StoreIOError, match="data directory"):
            config.ensure_data_dir()


class TestCredentials:
    """Test suite for API key storage."""

    def test_store_and_load(self, temp_dir, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = MemConfig(data_dir=temp_dir / ".mem")

        store_api_key(config, "  sk-secret\n")

        assert config.api_key_file.read_text(encoding="utf-8") == "sk-secret"
        assert load_api_key(config) == "sk-secret"

    def test_missing_key(self, temp_dir, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = MemConfig(data_dir=temp_dir)

        with pytest.raises(MissingCredentialError) as exc_info:
            load_api_key(config)

        assert exc_info.value.path == config.api_key_file

    def test_empty_key_file_is_missing(self, temp_dir, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = MemConfig(data_dir=temp_dir)
        config.api_key_file.write_text("\n", encoding="utf-8")

        with pytest.raises(MissingCredentialError):
            load_api_key(config)

    def test_env_fallback(self, temp_dir, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = MemConfig(data_dir=temp_dir)

        assert load_api_key(config) == "sk-env"

    def test_file_wins_over_env(self, temp_dir, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = MemConfig(data_dir=temp_dir)
        store_api_key(config, "sk-file")

        assert load_api_key(config) == "sk-file"

    def test_store_empty_key(self, temp_dir):
        config = MemConfig(data_dir=temp_dir)

        with pytest.raises(ValueError):
            store_api_key(config, "   ")
        assert not config.api_key_file.exists()
