"""Smoke tests for the CLI entrypoint."""

from click.testing import CliRunner

from relcollect.cli import cli


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "relcollect captures release file trees" in result.output
    for command in ("collect", "db", "runs", "config"):
        assert command in result.output


def test_collect_help_lists_options() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["collect", "--help"])

    assert result.exit_code == 0
    for option in ("--connection", "--batch-size", "--max-file-size", "--deployment-date"):
        assert option in result.output
