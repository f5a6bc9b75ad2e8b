"""
Tests for the click command line interface.
"""

import logging
from unittest.mock import MagicMock, call

import pytest
import redis
import yaml
from click.testing import CliRunner

from redis_migrate import cli as cli_module
from redis_migrate.cli import cli
from redis_migrate.config import Config
from redis_migrate.exceptions import ConnectionError
from tests.fakes import MemoryStore


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for name in ('REDISMIGRATE_SOURCE_URL', 'REDISMIGRATE_DEST_URL', 'REDISMIGRATE_MODE',
                 'REDISMIGRATE_CONFLICT', 'REDISMIGRATE_PATTERN'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def runner():
    return CliRunner()


class FakeConnectionManager:
    """Stands in for RedisConnectionManager, handing out in-memory stores."""

    source = None
    destination = None
    fail_with = None

    def __init__(self, *args, **kwargs):
        pass

    def connect_source(self, url):
        if self.fail_with is not None:
            raise self.fail_with
        return FakeConnectionManager.source

    def connect_destination(self, url):
        return FakeConnectionManager.destination

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass


@pytest.fixture
def fake_connections(monkeypatch):
    FakeConnectionManager.source = MemoryStore.with_keys(["user:1", "user:2", "user:3", "other:1"])
    FakeConnectionManager.destination = MemoryStore()
    FakeConnectionManager.fail_with = None
    monkeypatch.setattr(cli_module, "RedisConnectionManager", FakeConnectionManager)
    return FakeConnectionManager


def test_init_writes_sample_config(runner, tmp_path):
    output = tmp_path / "redis-migrate.yaml"

    result = runner.invoke(cli, ["init", "--output", str(output)])

    assert result.exit_code == 0
    config = Config.from_dict(yaml.safe_load(output.read_text()))
    assert config.migration.mode == "copy"


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "redis-migrate" in result.output


def test_migrate_rejects_unknown_mode(runner):
    result = runner.invoke(cli, ["migrate", "--source", "redis://a/0", "--dest", "redis://b/0",
                                 "--mode", "teleport"])

    assert result.exit_code == 1
    assert "invalid mode: teleport" in result.output


def test_migrate_reports_every_validation_error(runner):
    result = runner.invoke(cli, ["migrate", "--source", "redis://a/0", "--dest", "redis://b/0",
                                 "--batch-size", "0", "--concurrency", "0"])

    assert result.exit_code == 1
    assert "invalid batch size: 0" in result.output
    assert "invalid concurrency: 0" in result.output


def test_migrate_connection_failure_exits_nonzero(runner, fake_connections):
    fake_connections.fail_with = ConnectionError("failed to connect to source Redis: refused")

    result = runner.invoke(cli, ["migrate", "--source", "redis://a/0", "--dest", "redis://b/0"])

    assert result.exit_code == 1
    assert "refused" in result.output


def test_migrate_copies_matching_keys(runner, fake_connections):
    result = runner.invoke(cli, ["migrate", "--source", "redis://a/0", "--dest", "redis://b/0",
                                 "--pattern", "user:*", "--batch-size", "2", "--no-progress"])

    assert result.exit_code == 0, result.output
    assert "Total: 3 | Processed: 3 | Success: 3 | Failed: 0" in result.output
    assert sorted(fake_connections.destination.data) == ["user:1", "user:2", "user:3"]
    assert "user:1" in fake_connections.source.data


def test_migrate_failure_prints_error_panel(runner, fake_connections):
    fake_connections.destination.data["user:2"] = (b"existing", 0)

    result = runner.invoke(cli, ["migrate", "--source", "redis://a/0", "--dest", "redis://b/0",
                                 "--pattern", "user:*", "--conflict", "error", "--no-progress"])

    assert result.exit_code == 1
    assert "ERROR" in result.output
    assert "import:" in result.output


def test_migrate_move_with_overwrite(runner, fake_connections):
    fake_connections.destination.data["user:2"] = (b"existing", 0)

    result = runner.invoke(cli, ["migrate", "--source", "redis://a/0", "--dest", "redis://b/0",
                                 "--pattern", "user:*", "--mode", "move",
                                 "--conflict", "overwrite", "--no-progress"])

    assert result.exit_code == 0, result.output
    assert "Overwritten: 3" in result.output
    assert sorted(fake_connections.source.data) == ["other:1"]
    assert fake_connections.destination.data["user:2"] == (b"payload:user:2", 0)


class FakePopulateManager:
    """Hands out a mocked redis client to the populate command."""

    client = None
    connect_calls = []

    def __init__(self, *args, **kwargs):
        pass

    def connect(self, url, name):
        FakePopulateManager.connect_calls.append(url)
        return FakePopulateManager.client


@pytest.fixture
def populate_client(monkeypatch):
    client = MagicMock(spec=redis.Redis)
    client.pipeline.return_value = MagicMock()
    FakePopulateManager.client = client
    FakePopulateManager.connect_calls = []
    monkeypatch.setattr(cli_module, "RedisConnectionManager", FakePopulateManager)
    return client


def test_populate_writes_numbered_keys_in_batches(runner, populate_client):
    pipe = populate_client.pipeline.return_value

    result = runner.invoke(cli, ["populate", "redis://localhost:6379/0", "5",
                                 "--prefix", "user", "--ttl", "60", "--batch-size", "2"])

    assert result.exit_code == 0, result.output
    assert "Successfully inserted 5 keys with prefix 'user'" in result.output
    assert FakePopulateManager.connect_calls == ["redis://localhost:6379/0"]
    assert pipe.set.call_args_list == [call(f"user:{i}", f"value-{i}", ex=60) for i in range(5)]
    assert pipe.execute.call_count == 3
    populate_client.pipeline.assert_called_with(transaction=False)
    populate_client.close.assert_called_once_with()


def test_populate_without_ttl_writes_persistent_keys(runner, populate_client):
    pipe = populate_client.pipeline.return_value

    result = runner.invoke(cli, ["populate", "redis://localhost:6379/0", "2"])

    assert result.exit_code == 0, result.output
    assert pipe.set.call_args_list == [call("key:0", "value-0", ex=None),
                                       call("key:1", "value-1", ex=None)]


def test_populate_redis_error_exits_nonzero(runner, populate_client):
    populate_client.pipeline.return_value.execute.side_effect = redis.exceptions.ConnectionError("down")

    result = runner.invoke(cli, ["populate", "redis://localhost:6379/0", "3"])

    assert result.exit_code == 1
    assert "down" in result.output
    populate_client.close.assert_called_once_with()
