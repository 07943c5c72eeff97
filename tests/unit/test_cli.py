"""Tests for CLI entry point."""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from monsync.__main__ import cli
from monsync.config.models import Config, StorageConfig
from monsync.models.monitor import MonitorState
from monsync.models.values import Value
from monsync.storage.state_store import StateStore

MONITOR_YAML = "type: http\nname: site\nurl: https://example.com\ninterval: 300\n"


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def monitor_file(tmp_path: Path) -> Path:
    path = tmp_path / "monitor.yaml"
    path.write_text(MONITOR_YAML)
    return path


def test_cli_help(runner: CliRunner) -> None:
    """Test CLI help command."""
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Monitor synchronization engine" in result.output
    for command in ("init", "show-config", "build-request", "upgrade-state", "show-state"):
        assert command in result.output


def test_cli_version(runner: CliRunner) -> None:
    """Test CLI version command."""
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "version" in result.output.lower()


@patch("monsync.config.loader.load_config")
@patch("monsync.storage.state_store.StateStore")
def test_init_command(
    mock_state_store: MagicMock,
    mock_load_config: MagicMock,
    runner: CliRunner,
    tmp_path: Path,
) -> None:
    """Test init command."""
    mock_config = MagicMock()
    mock_config.storage.data_directory = tmp_path / "data"
    mock_config.storage.state_db_name = "test.db"
    mock_load_config.return_value = mock_config

    mock_store = AsyncMock()
    mock_state_store.return_value = mock_store

    result = runner.invoke(cli, ["init"])

    assert result.exit_code == 0
    assert "State database initialized" in result.output
    mock_load_config.assert_called_once_with(None)
    mock_store.initialize.assert_called_once()
    mock_store.close.assert_called_once()


def test_show_config(runner: CliRunner) -> None:
    """Test show-config prints the effective configuration."""
    result = runner.invoke(cli, ["show-config"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["settle"]["required_matches"] == 3


@patch("monsync.utils.logging.configure_logging")
class TestBuildRequest:
    """Test build-request command."""

    def test_create_payload(
        self, mock_logging: MagicMock, runner: CliRunner, monitor_file: Path
    ) -> None:
        result = runner.invoke(cli, ["build-request", str(monitor_file)])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["type"] == "HTTP"
        assert payload["friendlyName"] == "site"
        assert payload["timeout"] == 30
        mock_logging.assert_called_once()

    def test_update_payload(
        self, mock_logging: MagicMock, runner: CliRunner, monitor_file: Path, tmp_path: Path
    ) -> None:
        prior = tmp_path / "prior.json"
        prior.write_text(
            json.dumps({"schema_version": 5, "attributes": {"id": "1", "type": "HTTP", "name": "old"}})
        )

        result = runner.invoke(cli, ["build-request", str(monitor_file), "--prior", str(prior)])

        assert result.exit_code == 0
        assert "type" not in json.loads(result.output)

    def test_invalid_declaration(
        self, mock_logging: MagicMock, runner: CliRunner, tmp_path: Path
    ) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("type: http\nurl: https://example.com\ninterval: 300\n")

        result = runner.invoke(cli, ["build-request", str(path)])

        assert result.exit_code == 1
        assert "Monitor declaration is invalid" in result.output
        assert "Missing name" in result.output

    def test_invalid_prior(
        self, mock_logging: MagicMock, runner: CliRunner, monitor_file: Path, tmp_path: Path
    ) -> None:
        prior = tmp_path / "prior.json"
        prior.write_text(json.dumps({"schema_version": 99, "attributes": {}}))

        result = runner.invoke(cli, ["build-request", str(monitor_file), "-p", str(prior)])

        assert result.exit_code == 1
        assert "Invalid prior state" in result.output


class TestUpgradeState:
    """Test upgrade-state command."""

    def _write(self, tmp_path: Path, record: object) -> Path:
        path = tmp_path / "state.json"
        path.write_text(json.dumps(record))
        return path

    def test_prints_upgraded_record(self, runner: CliRunner, tmp_path: Path) -> None:
        path = self._write(tmp_path, {"schema_version": 0, "attributes": {"tags": ["b", "a"]}})

        result = runner.invoke(cli, ["upgrade-state", str(path)])

        assert result.exit_code == 0
        record = json.loads(result.output)
        assert record["schema_version"] == 5
        assert record["attributes"]["tags"] == ["a", "b"]

    def test_in_place(self, runner: CliRunner, tmp_path: Path) -> None:
        path = self._write(tmp_path, {"schema_version": 3, "attributes": {"maintenance_window_ids": [2, 1]}})

        result = runner.invoke(cli, ["upgrade-state", str(path), "--in-place"])

        assert result.exit_code == 0
        assert "to schema version 5" in result.output
        assert json.loads(path.read_text())["attributes"]["maintenance_window_ids"] == [1, 2]

    def test_newer_version(self, runner: CliRunner, tmp_path: Path) -> None:
        path = self._write(tmp_path, {"schema_version": 6, "attributes": {}})

        result = runner.invoke(cli, ["upgrade-state", str(path)])

        assert result.exit_code == 1
        assert "newer than supported" in result.output

    def test_not_json(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{nope")

        result = runner.invoke(cli, ["upgrade-state", str(path)])

        assert result.exit_code == 1
        assert "not valid JSON" in result.output


class TestShowState:
    """Test show-state command."""

    @patch("monsync.config.loader.load_config")
    def test_no_database(self, mock_load_config: MagicMock, runner: CliRunner, tmp_path: Path) -> None:
        mock_load_config.return_value = Config(storage=StorageConfig(data_directory=tmp_path / "none"))

        result = runner.invoke(cli, ["show-state"])

        assert result.exit_code == 0
        assert "State database not initialized" in result.output

    @patch("monsync.config.loader.load_config")
    def test_lists_and_shows(self, mock_load_config: MagicMock, runner: CliRunner, tmp_path: Path) -> None:
        config = Config(storage=StorageConfig(data_directory=tmp_path))
        mock_load_config.return_value = config

        async def seed() -> None:
            async with StateStore(config.storage.state_db_path) as store:
                await store.save("monitor.site", MonitorState(id="7", name=Value("site")))

        asyncio.run(seed())

        listed = runner.invoke(cli, ["show-state"])
        shown = runner.invoke(cli, ["show-state", "monitor.site"])
        missing = runner.invoke(cli, ["show-state", "monitor.other"])

        assert listed.output.strip() == "monitor.site"
        assert json.loads(shown.output)["name"] == "site"
        assert "No state for monitor.other" in missing.output

    @patch("monsync.config.loader.load_config")
    def test_empty_database(self, mock_load_config: MagicMock, runner: CliRunner, tmp_path: Path) -> None:
        config = Config(storage=StorageConfig(data_directory=tmp_path))
        mock_load_config.return_value = config

        async def create() -> None:
            async with StateStore(config.storage.state_db_path):
                pass

        asyncio.run(create())

        result = runner.invoke(cli, ["show-state"])

        assert "No monitors in state." in result.output
