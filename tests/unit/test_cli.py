"""Unit tests for the tsgen command line."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from tsgen.cli import main
from tsgen.cli.errors import EXIT_SYSTEM_ERROR, CLIError, format_error_list, handle_errors
from tsgen.cli.main import cli
from tsgen.errors import ConfigurationError, ErrorList, TsgenError

pytestmark = pytest.mark.unit

PAST = "2024-01-01T00:00:00Z"


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Record configure_logging calls instead of reconfiguring structlog."""
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(main, "configure_logging", lambda **kwargs: calls.append(kwargs))
    return calls


class TestCLIHelp:
    """Tests for CLI help output."""

    def test_help_lists_commands(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "gen-shards" in result.output
        assert "oss" in result.output
        assert "cloud" in result.output
        assert "--log-level" in result.output

    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_command_help(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["gen-shards", "--help"])

        assert result.exit_code == 0
        assert "--shard-duration" in result.output
        assert "--seed" in result.output

    def test_unknown_command(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["nope"])
        assert result.exit_code != 0


class TestLogging:
    """Tests for logging options."""

    def test_log_options_passed_through(
        self, cli_runner: CliRunner, logging_calls: list[dict[str, Any]]
    ) -> None:
        result = cli_runner.invoke(
            cli,
            ["--log-level", "DEBUG", "--log-json", "gen-shards", "--print", "--start-time", PAST],
        )

        assert result.exit_code == 0, result.output
        assert logging_calls == [{"log_level": "DEBUG", "json_format": True}]

    def test_default_log_level(
        self, cli_runner: CliRunner, logging_calls: list[dict[str, Any]]
    ) -> None:
        cli_runner.invoke(cli, ["oss", "--print", "--start-time", PAST])
        assert logging_calls == [{"log_level": "WARNING", "json_format": False}]


class TestGenShards:
    """Tests for tsgen gen-shards."""

    def test_print_writes_nothing(self, isolated_runner: CliRunner) -> None:
        result = isolated_runner.invoke(
            cli,
            ["gen-shards", "--print", "--data-path", "data", "-t", "2,3", "-p", "10", "-f", "2"],
        )

        assert result.exit_code == 0, result.output
        assert "Total series" in result.output
        assert "120" in result.output
        assert "Total time" not in result.output
        assert not Path("data").exists()

    def test_writes_shards(self, isolated_runner: CliRunner) -> None:
        result = isolated_runner.invoke(
            cli,
            [
                "gen-shards",
                "--data-path", "data",
                "--meta-path", "meta",
                "--start-time", PAST,
                "--shards", "2",
                "--shard-duration", "1h",
                "-t", "2,2",
                "-p", "10",
                "-c", "2",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Wrote 80 points to 2 shard(s)" in result.output
        assert "Total time" in result.output
        assert Path("data/db/autogen/1").is_dir()
        assert Path("data/db/autogen/2").is_dir()
        assert Path("meta/meta.yaml").is_file()

    def test_config_file(self, isolated_runner: CliRunner) -> None:
        Path("tsgen.yaml").write_text(
            "db:\n  shard_count: 4\ngenerator:\n  tags:\n    - cardinality: 5\n"
        )
        result = isolated_runner.invoke(
            cli, ["gen-shards", "--print", "--config", "tsgen.yaml", "--start-time", PAST]
        )

        assert result.exit_code == 0, result.output
        assert "[5]" in result.output

    def test_every_validation_error_reported(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli,
            ["gen-shards", "--print", "--start-time", PAST, "--shards", "0", "-f", "0", "-t", "1,x"],
        )

        assert result.exit_code == 1
        assert "cannot parse tag cardinality: x" in result.output
        assert "db.shard_count" in result.output
        assert "generator.fields" in result.output
        assert "Total series" not in result.output

    def test_future_start_time(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["gen-shards", "--print", "--start-time", "2999-01-01T00:00:00Z"]
        )

        assert result.exit_code == 1
        assert "start time must be" in result.output


class TestOss:
    """Tests for tsgen oss."""

    def test_multi_tenant_summary(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["oss", "--print", "--org-id", "org", "--db", "bkt", "--start-time", PAST]
        )

        assert result.exit_code == 0, result.output
        assert "Tenant+Bucket" in result.output
        assert "org+bkt" in result.output
        assert "db/rp" in result.output

    def test_single_tenant_summary(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["oss", "--print", "--start-time", PAST])

        assert result.exit_code == 0, result.output
        assert "Tenant+Bucket" not in result.output
        assert "db/autogen" in result.output

    def test_writes_tenant_shards(self, isolated_runner: CliRunner) -> None:
        result = isolated_runner.invoke(
            cli,
            [
                "oss",
                "--data-path", "data",
                "--meta-path", "meta",
                "--start-time", PAST,
                "--shard-duration", "1h",
                "--org-id", "org",
                "--db", "bkt",
                "-t", "3",
                "-p", "5",
                "--tsi",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Wrote 15 points to 1 shard(s)" in result.output
        assert Path("data/db/rp/1/index").is_dir()

    def test_tenant_tag_key_rejected(self, isolated_runner: CliRunner) -> None:
        Path("tsgen.yaml").write_text(
            "generator:\n  tags:\n    - name: _m\n      cardinality: 2\n"
        )
        result = isolated_runner.invoke(
            cli,
            [
                "oss",
                "--config", "tsgen.yaml",
                "--data-path", "data",
                "--meta-path", "meta",
                "--start-time", PAST,
                "--org-id", "org",
                "--db", "bkt",
            ],
        )

        assert result.exit_code == 1
        assert "reserved" in result.output
        assert not Path("data").exists()


class TestCloud:
    """Tests for tsgen cloud."""

    def test_requires_org_id(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["cloud", "--bucket-id", "b", "--print"])
        assert result.exit_code == 2

    def test_summary_has_no_meta_path(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["cloud", "--print", "--org-id", "o", "--bucket-id", "b", "--duration", "1h"]
        )

        assert result.exit_code == 0, result.output
        assert "Meta Path" not in result.output
        assert "o+b" in result.output

    def test_writes_static_shard(self, isolated_runner: CliRunner) -> None:
        result = isolated_runner.invoke(
            cli,
            ["cloud", "--org-id", "o", "--bucket-id", "b", "-t", "2,2", "-p", "3"],
        )

        assert result.exit_code == 0, result.output
        assert "Wrote 12 points to 1 shard(s)" in result.output
        assert Path("out/data/db/rp/1").is_dir()
        assert Path("out/data/db/_series").is_dir()


class TestHandleErrors:
    """Tests for translating failures into exits."""

    def test_error_list_exits_1(self) -> None:
        with pytest.raises(SystemExit) as exc_info, handle_errors():
            raise ErrorList([ValueError("a"), ValueError("b")])
        assert exc_info.value.code == 1

    def test_tsgen_error_exits_1(self) -> None:
        with pytest.raises(SystemExit) as exc_info, handle_errors():
            raise TsgenError("shard directory missing")
        assert exc_info.value.code == 1

    def test_permission_error_exits_2(self) -> None:
        with pytest.raises(CLIError, match="Permission denied") as exc_info, handle_errors("write"):
            raise PermissionError(13, "denied", "/data/db")
        assert exc_info.value.exit_code == EXIT_SYSTEM_ERROR

    def test_os_error_exits_2(self) -> None:
        with pytest.raises(CLIError, match="I/O error") as exc_info, handle_errors():
            raise OSError("disk full")
        assert exc_info.value.exit_code == EXIT_SYSTEM_ERROR

    def test_format_error_list(self) -> None:
        err = ErrorList([ConfigurationError("must be > 0", field_path="db.shard_count")])
        assert format_error_list(err) == ["db.shard_count: must be > 0"]
