"""CLI tests with the network mocked out."""

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from clawdrop.cli import app
from clawdrop.config import load_settings, save_target
from clawdrop.core import DiffResult, Game, PushParams, TransferPlan
from clawdrop.errors import AuthorizationError, ValidationError
from clawdrop.indexer import build_index
from clawdrop.protocol import PushOutcome


@pytest.fixture
def runner():
    """Create a CliRunner for in-process testing."""
    return CliRunner()


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """Isolate configuration and provide an API key."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("CLAWDROP_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("CLAWDROP_API_KEY", "key-123")
    monkeypatch.delenv("CLAWDROP_API_URL", raising=False)
    monkeypatch.delenv("CLAWDROP_S3_ENDPOINT_URL", raising=False)
    return config_dir


def outcome(nothing_to_do=False):
    return PushOutcome(
        params=PushParams(id=32, os="windows", exe="game.exe", version="1.0.2"),
        diff=DiffResult(),
        plan=TransferPlan(),
        nothing_to_do=nothing_to_do,
        archive_name=None if nothing_to_do else "32-windows.zip",
    )


class TestIndexCommand:
    def test_prints_index(self, runner, build_dir):
        result = runner.invoke(app, ["index", str(build_dir)])
        assert result.exit_code == 0
        assert json.loads(result.output) == json.loads(build_index(build_dir).to_json())

    def test_writes_output_file(self, runner, build_dir, tmp_path):
        out = tmp_path / "out" / "fileindex.json"
        result = runner.invoke(app, ["index", str(build_dir), "--ignore", "*.bin", "-o", str(out)])
        assert result.exit_code == 0
        assert [f["path"] for f in json.loads(out.read_text())["files"]] == ["game.exe"]

    def test_ignore_value_holds_several_patterns(self, runner, build_dir):
        (build_dir / "game.pdb").write_bytes(b"symbols")
        result = runner.invoke(app, ["index", str(build_dir), "--ignore", "*.pdb  *.bin"])
        assert result.exit_code == 0
        assert [f["path"] for f in json.loads(result.output)["files"]] == ["game.exe"]

    def test_missing_dir(self, runner, tmp_path):
        result = runner.invoke(app, ["index", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "✗" in result.output


class TestDiffCommand:
    def test_shows_changes(self, runner, build_dir, tmp_path):
        local = tmp_path / "local.json"
        remote = tmp_path / "remote.json"
        local.write_text(build_index(build_dir).to_json())
        remote.write_text(json.dumps({"files": [
            {"path": "old.bin", "size": 1, "hash": "00", "contentType": "x"},
            {"path": "manifest.json", "size": 1, "hash": "00", "contentType": "x"},
        ]}))

        result = runner.invoke(app, ["diff", str(local), str(remote)])
        assert result.exit_code == 0
        assert "New files: 2" in result.output
        assert "Obsolete files: 1" in result.output
        assert "old.bin" in result.output

    def test_up_to_date(self, runner, build_dir, tmp_path):
        path = tmp_path / "index.json"
        path.write_text(build_index(build_dir).to_json())
        result = runner.invoke(app, ["diff", str(path), str(path)])
        assert result.exit_code == 0
        assert "Everything up to date" in result.output

    def test_invalid_file(self, runner, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("nope")
        result = runner.invoke(app, ["diff", str(bad), str(bad)])
        assert result.exit_code == 1


class TestPushCommand:
    def test_builds_request(self, runner, build_dir, config_env):
        with patch("clawdrop.cli.run_push", return_value=outcome()) as mock_push:
            result = runner.invoke(app, [
                "push", "32:windows/game.exe:1.0.2", "--path", str(build_dir),
                "--ignore", "*.pdb", "--force",
            ])

        assert result.exit_code == 0, result.output
        request = mock_push.call_args.args[0]
        assert request.shorthand == "32:windows/game.exe:1.0.2"
        assert request.build_dir == build_dir
        assert request.exclude == ["*.pdb"]
        assert request.force is True
        assert "1.0.2" in result.output

    def test_ignore_values_split_on_whitespace(self, runner, build_dir, config_env):
        with patch("clawdrop.cli.run_push", return_value=outcome()) as mock_push:
            result = runner.invoke(app, [
                "push", "32:windows/game.exe", "--path", str(build_dir),
                "--ignore", "*.pdb *.map", "-i", "logs",
            ])

        assert result.exit_code == 0, result.output
        assert mock_push.call_args.args[0].exclude == ["*.pdb", "*.map", "logs"]

    def test_nothing_to_do(self, runner, build_dir, config_env):
        with patch("clawdrop.cli.run_push", return_value=outcome(nothing_to_do=True)):
            result = runner.invoke(app, ["push", "32:windows/game.exe", "--path", str(build_dir)])
        assert result.exit_code == 0
        assert "No changes to upload" in result.output

    def test_error_exits_nonzero(self, runner, build_dir, config_env):
        with patch("clawdrop.cli.run_push", side_effect=ValidationError("Executable missing")):
            result = runner.invoke(app, ["push", "32:windows/x.exe", "--path", str(build_dir)])
        assert result.exit_code == 1
        assert "Executable missing" in result.output

    def test_missing_api_key(self, runner, build_dir, config_env, monkeypatch):
        monkeypatch.delenv("CLAWDROP_API_KEY")
        result = runner.invoke(app, ["push", "32:windows/game.exe", "--path", str(build_dir)])
        assert result.exit_code == 1
        assert "CLAWDROP_API_KEY" in result.output


class TestTargetCommands:
    def test_set_and_show(self, runner, config_env):
        client = MagicMock()
        client.find_game.return_value = Game(id=32, title="Claw", windows_version="1.0.1")
        with patch("clawdrop.cli.ControlPlaneClient", return_value=client):
            result = runner.invoke(app, ["set", "claw"])
        assert result.exit_code == 0, result.output
        client.find_game.assert_called_once_with("claw")

        result = runner.invoke(app, ["target"])
        assert result.exit_code == 0
        assert "Claw" in result.output
        assert "1.0.1" in result.output

    def test_set_unknown_game(self, runner, config_env):
        client = MagicMock()
        client.find_game.return_value = None
        with patch("clawdrop.cli.ControlPlaneClient", return_value=client):
            result = runner.invoke(app, ["set", "999"])
        assert result.exit_code == 1

    def test_unset(self, runner, config_env):
        save_target(Game(id=1, title="x"), load_settings())
        result = runner.invoke(app, ["unset"])
        assert result.exit_code == 0
        assert "cleared" in result.output
        assert not (config_env / "target.json").exists()

    def test_no_target(self, runner, config_env):
        result = runner.invoke(app, ["target"])
        assert result.exit_code == 0
        assert "No target set" in result.output


class TestListCommand:
    def test_lists_games(self, runner, config_env):
        client = MagicMock()
        client.list_games.return_value = [
            Game(id=32, title="Claw", url_identifier="claw", windows_version="1.0.1"),
            Game(id=7, title="Drop", html_version="0.9"),
        ]
        with patch("clawdrop.cli.ControlPlaneClient", return_value=client):
            result = runner.invoke(app, ["list"])
        assert result.exit_code == 0, result.output
        client.list_games.assert_called_once_with()
        assert "Claw" in result.output
        assert "Drop" in result.output
        assert "1.0.1" in result.output
        assert "0.9" in result.output

    def test_no_games(self, runner, config_env):
        client = MagicMock()
        client.list_games.return_value = []
        with patch("clawdrop.cli.ControlPlaneClient", return_value=client):
            result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "No games found." in result.output

    def test_error_exits_nonzero(self, runner, config_env):
        client = MagicMock()
        client.list_games.side_effect = AuthorizationError("API key might be invalid")
        with patch("clawdrop.cli.ControlPlaneClient", return_value=client):
            result = runner.invoke(app, ["list"])
        assert result.exit_code == 1
        assert "API key might be invalid" in result.output
