"""Tests for the command line interface."""

import json
from pathlib import Path

from click.testing import CliRunner

from PocketAgent import __version__
from PocketAgent.cli.main import cli


class TestCli:
    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["version"])
        assert result.exit_code == 0
        assert result.output.strip() == f"PocketAgent v{__version__}"

    def test_init_then_conf_show(self, tmp_path: Path) -> None:
        config_path = tmp_path / "pocketagent.json"
        runner = CliRunner(env={"POCKETAGENT_DATA_PATH": str(tmp_path / "data")})

        result = runner.invoke(cli, ["--config", str(config_path), "init"])
        assert result.exit_code == 0
        assert json.loads(config_path.read_text(encoding="utf-8"))["agents"]["defaults"]["max_tool_iterations"] == 40

        result = runner.invoke(cli, ["--config", str(config_path), "conf", "show", "tools.exec.timeout"])
        assert result.exit_code == 0
        assert result.output.strip() == "60"

    def test_init_keeps_existing_file_when_declined(self, tmp_path: Path) -> None:
        config_path = tmp_path / "pocketagent.json"
        config_path.write_text("{}", encoding="utf-8")

        result = CliRunner().invoke(cli, ["--config", str(config_path), "init"], input="n\n")

        assert result.exit_code == 0
        assert config_path.read_text(encoding="utf-8") == "{}"
