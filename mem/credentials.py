"""
Plain-text API key storage in the data directory.
"""
import logging
import os

from mem.config import MemConfig
from mem.errors import InvalidInputError, MissingCredentialError, StoreIOError

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "OPENAI_API_KEY"


def store_api_key(config: MemConfig, api_key: str) -> None:
    """Write the API key to the key file, replacing any previous key."""
    api_key = api_key.strip()
    if not api_key:
        raise InvalidInputError("API key cannot be empty")

    config.ensure_data_dir()
    try:
        config.api_key_file.write_text(api_key, encoding="utf-8")
    except OSError as e:
        raise StoreIOError(
            f"Failed to write API key file. "
            f"Make sure you have write permissions to {config.api_key_file}"
        ) from e
    logger.info(f"Stored API key at {config.api_key_file}")


def load_api_key(config: MemConfig) -> str:
    """
    Read the API key.

    The key file wins; the OPENAI_API_KEY environment variable is the fallback.

    Raises:
        MissingCredentialError: If no key is configured
        StoreIOError: If the key file exists but cannot be read
    """
    path = config.api_key_file
    try:
        api_key = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        api_key = ""
    except OSError as e:
        raise StoreIOError(f"Failed to read API key file {path}") from e

    if api_key:
        return api_key

    api_key = os.environ.get(API_KEY_ENV_VAR, "").strip()
    if api_key:
        logger.debug(f"Using API key from {API_KEY_ENV_VAR}")
        return api_key

    raise MissingCredentialError(path)
