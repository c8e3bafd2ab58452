"""
CLI smoke tests for mem.
Uses the dummy embedding backend, so no network access is needed.
"""
import json
import pytest
import tempfile
import shutil
from pathlib import Path
from click.testing import CliRunner

from mem.cli import cli


@pytest.fixture
def data_dir():
    """Create a temporary data directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir) / ".mem"
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def env(data_dir):
    """Environment pointing the CLI at the temporary directory."""
    return {
        "MEM_DATA_DIR": str(data_dir),
        "MEM_EMBEDDING_BACKEND": "dummy",
        "MEM_EMBEDDING_DIM": "16",
        "MEM_EMBEDDING_CACHE": "0",
        "MEM_LOG_LEVEL": "WARNING",
        "OPENAI_API_KEY": "",
    }


@pytest.fixture
def runner():
    """Create a Click CLI test runner."""
    return CliRunner()


class TestCLICommands:
    """Smoke tests for CLI commands."""

    def test_insert_command(self, runner, env, data_dir):
        """Inserting writes one record to the data file."""
        result = runner.invoke(cli, ['insert', 'buy milk', 'grocery reminder'], env=env)

        assert result.exit_code == 0
        assert 'Memory inserted!' in result.output

        data = json.loads((data_dir / 'store.json').read_text(encoding='utf-8'))
        assert data['memories'] == [{'value': 'buy milk', 'description': 'grocery reminder'}]
        assert data['embeddings']['dim'] == [1, 16]

    def test_get_on_empty_store(self, runner, env, data_dir):
        """Get on a fresh store reports nothing found and succeeds."""
        result = runner.invoke(cli, ['get', 'grocery reminder'], env=env)

        assert result.exit_code == 0
        assert 'No memory found!' in result.output
        assert (data_dir / 'store.json').stat().st_size == 0

    def test_list_on_empty_store(self, runner, env):
        """List on a fresh store reports nothing found and succeeds."""
        result = runner.invoke(cli, ['list', 'grocery reminder'], env=env)

        assert result.exit_code == 0
        assert 'No memories found!' in result.output

    def test_get_command(self, runner, env):
        """Get returns the memory whose description matches the query."""
        runner.invoke(cli, ['insert', 'buy milk', 'grocery reminder'], env=env)
        runner.invoke(cli, ['insert', 'call mom', 'family reminder'], env=env)

        result = runner.invoke(cli, ['get', 'grocery reminder'], env=env)

        assert result.exit_code == 0
        assert 'buy milk' in result.output
        assert 'call mom' not in result.output
        assert '1.0000' in result.output

    def test_list_command(self, runner, env):
        """List shows ranked memories."""
        runner.invoke(cli, ['insert', 'buy milk', 'grocery reminder'], env=env)
        runner.invoke(cli, ['insert', 'call mom', 'family reminder'], env=env)

        result = runner.invoke(cli, ['list', 'family reminder'], env=env)

        assert result.exit_code == 0
        assert result.output.index('call mom') < result.output.index('buy milk')

    def test_list_with_count(self, runner, env):
        """The count option limits the results."""
        for i in range(3):
            runner.invoke(cli, ['insert', f'memory {i}', f'description {i}'], env=env)

        result = runner.invoke(cli, ['list', 'description 2', '--count', '1'], env=env)

        assert result.exit_code == 0
        assert 'memory 2' in result.output
        assert 'memory 0' not in result.output
        assert 'memory 1' not in result.output

    def test_list_count_zero(self, runner, env):
        """A count of zero lists nothing."""
        runner.invoke(cli, ['insert', 'buy milk', 'grocery reminder'], env=env)

        result = runner.invoke(cli, ['list', 'grocery reminder', '-n', '0'], env=env)

        assert result.exit_code == 0
        assert 'No memories found!' in result.output

    def test_list_negative_count_rejected(self, runner, env):
        """Click rejects a negative count."""
        result = runner.invoke(cli, ['list', 'grocery reminder', '--count', '-1'], env=env)

        assert result.exit_code == 2

    def test_stats_command(self, runner, env):
        """Stats show the record count."""
        runner.invoke(cli, ['insert', 'buy milk', 'grocery reminder'], env=env)

        result = runner.invoke(cli, ['stats'], env=env)

        assert result.exit_code == 0
        assert 'Total Memories: 1' in result.output
        assert 'dummy' in result.output

    def test_set_key_command(self, runner, env, data_dir):
        """The key is prompted for and written to the key file."""
        result = runner.invoke(cli, ['set-key'], input='sk-test\nsk-test\n', env=env)

        assert result.exit_code == 0
        assert (data_dir / 'openai_api_key.txt').read_text(encoding='utf-8') == 'sk-test'
        assert 'sk-test' not in result.output

    def test_clear_cache_command(self, runner, env):
        """Cached embeddings are dropped; memories are kept."""
        env = dict(env, MEM_EMBEDDING_CACHE='1')
        runner.invoke(cli, ['insert', 'buy milk', 'grocery reminder'], env=env)
        runner.invoke(cli, ['insert', 'call mom', 'family reminder'], env=env)

        result = runner.invoke(cli, ['clear-cache'], env=env)

        assert result.exit_code == 0
        assert 'Cleared 2 cached embeddings' in result.output

        stats = runner.invoke(cli, ['stats'], env=env)
        assert 'Total Memories: 2' in stats.output

    def test_clear_cache_disabled(self, runner, env):
        """With caching off there is nothing to clear."""
        result = runner.invoke(cli, ['clear-cache'], env=env)

        assert result.exit_code == 0
        assert 'Embedding cache is disabled' in result.output


class TestCLIErrors:
    """Expected failures exit non-zero with a readable message."""

    def test_corrupt_file(self, runner, env, data_dir):
        """A corrupt data file is reported, not treated as empty."""
        data_dir.mkdir(parents=True)
        (data_dir / 'store.json').write_text('{not valid', encoding='utf-8')

        for args in (['get', 'x'], ['list', 'x'], ['insert', 'a', 'b']):
            result = runner.invoke(cli, args, env=env)

            assert result.exit_code == 1
            assert 'Corrupt data' in result.output
            assert not isinstance(result.exception, (AttributeError, TypeError, KeyError))

        assert (data_dir / 'store.json').read_text(encoding='utf-8') == '{not valid'

    def test_missing_api_key(self, runner, env):
        """The OpenAI backend without a key reports the missing key."""
        env = dict(env, MEM_EMBEDDING_BACKEND='openai')
        del env['MEM_EMBEDDING_DIM']

        result = runner.invoke(cli, ['get', 'grocery reminder'], env=env)

        assert result.exit_code == 1
        assert 'Key not configured' in result.output

    def test_dimension_change_reported(self, runner, env):
        """A file written with another dimension is rejected."""
        runner.invoke(cli, ['insert', 'buy milk', 'grocery reminder'], env=env)

        result = runner.invoke(
            cli, ['get', 'grocery reminder'], env=dict(env, MEM_EMBEDDING_DIM='8')
        )

        assert result.exit_code == 1
        assert 'Corrupt data' in result.output

    def test_empty_description(self, runner, env):
        """An empty description fails cleanly."""
        result = runner.invoke(cli, ['insert', 'buy milk', ''], env=env)

        assert result.exit_code == 1
        assert 'Cannot embed empty text' in result.output

    def test_unusable_cache_dir(self, runner, env, data_dir):
        """A file where the cache directory should be is an I/O error, not a crash."""
        data_dir.mkdir(parents=True)
        (data_dir / 'embeddings_cache').write_text('', encoding='utf-8')

        result = runner.invoke(
            cli, ['insert', 'buy milk', 'grocery reminder'], env=dict(env, MEM_EMBEDDING_CACHE='1')
        )

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert 'I/O error' in result.output
        assert (data_dir / 'store.json').stat().st_size == 0

    def test_invalid_config(self, runner, env):
        """A bad environment value is reported."""
        result = runner.invoke(cli, ['stats'], env=dict(env, MEM_EMBEDDING_DIM='lots'))

        assert result.exit_code == 1
        assert 'MEM_EMBEDDING_DIM' in result.output
