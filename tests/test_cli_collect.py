"""CLI tests for the collect, db, and runs commands."""

from __future__ import annotations

import json
import uuid
from pathlib import Path

from click.testing import CliRunner

from relcollect.cli import cli
from relcollect.storage import SqlSink


def _release_tree(root: Path) -> Path:
    root.mkdir()
    (root / "web.config").write_text("<configuration />", encoding="utf-8")
    (root / "bin").mkdir()
    (root / "bin" / "app.dll").write_bytes(b"MZ\x90\x00")
    (root / "scripts").mkdir()
    (root / "scripts" / "deploy.ps1").write_text("Write-Host 'deploy'", encoding="utf-8")
    return root


def test_collect_json_reports_counts(tmp_path: Path, home: Path, sqlite_url: str) -> None:
    source = _release_tree(tmp_path / "release")
    runner = CliRunner()

    result = runner.invoke(
        cli,
        [
            "collect",
            str(source),
            "--connection",
            sqlite_url,
            "--tags",
            "v3.1",
            "--deployment",
            "production",
            "--deployment-date",
            "2024-08-01",
            "--batch-size",
            "2",
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["counts"] == {
        "inserted": 3,
        "discovered": 3,
        "readable": 2,
        "skipped": 1,
        "failed": 0,
        "batches": 2,
    }
    assert payload["deployment"]["tags"] == "v3.1"
    assert payload["deployment"]["deployment"] == "production"
    assert payload["deployment"]["deployment_date"].startswith("2024-08-01")

    run_id = uuid.UUID(payload["run_id"])
    sink = SqlSink(sqlite_url)
    assert sink.count_files(run_id) == 3
    (deployment,) = sink.deployment_records(run_id)
    assert deployment.deployment == "production"
    sink.dispose()


def test_collect_prints_header_and_summary(tmp_path: Path, home: Path, sqlite_url: str) -> None:
    source = _release_tree(tmp_path / "release")
    runner = CliRunner()

    result = runner.invoke(cli, ["collect", str(source), "--connection", sqlite_url, "--verbose"])

    assert result.exit_code == 0, result.output
    assert "=== Release Code Collector ===" in result.output
    assert "Batch Size: 500" in result.output
    assert "Processed 3 files so far" in result.output
    assert "Collection summary for" in result.output
    assert "inserted=3," in result.output


def test_collect_expands_environment_variables(
    tmp_path: Path, home: Path, sqlite_url: str, monkeypatch
) -> None:
    _release_tree(tmp_path / "release")
    monkeypatch.setenv("RELEASE_ROOT", str(tmp_path))
    monkeypatch.setenv("RELEASE_DB", sqlite_url)
    runner = CliRunner()

    result = runner.invoke(
        cli, ["collect", "$RELEASE_ROOT/release", "--connection", "$RELEASE_DB", "--json"]
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["counts"]["inserted"] == 3


def test_collect_quiet_suppresses_output(tmp_path: Path, home: Path, sqlite_url: str) -> None:
    source = _release_tree(tmp_path / "release")
    runner = CliRunner()

    result = runner.invoke(cli, ["collect", str(source), "--connection", sqlite_url, "--quiet"])

    assert result.exit_code == 0
    assert result.stdout.strip() == ""


def test_collect_missing_directory_is_not_found(
    tmp_path: Path, home: Path, sqlite_url: str
) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli, ["collect", str(tmp_path / "absent"), "--connection", sqlite_url, "--json"]
    )

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "not_found"
    assert "Directory not found" in payload["error"]["message"]


def test_collect_rejects_invalid_batch_size(tmp_path: Path, home: Path, sqlite_url: str) -> None:
    source = _release_tree(tmp_path / "release")
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["collect", str(source), "--connection", sqlite_url, "--batch-size", "0", "--json"],
    )

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["code"] == "validation_error"


def test_collect_json_conflicts_with_quiet(tmp_path: Path, home: Path, sqlite_url: str) -> None:
    source = _release_tree(tmp_path / "release")
    runner = CliRunner()

    result = runner.invoke(
        cli, ["collect", str(source), "--connection", sqlite_url, "--json", "--quiet"]
    )

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["code"] == "cli_error"


def test_db_init_and_check(home: Path, sqlite_url: str) -> None:
    runner = CliRunner()

    init = runner.invoke(cli, ["db", "init", "--connection", sqlite_url])
    check = runner.invoke(cli, ["db", "check", "--connection", sqlite_url])

    assert init.exit_code == 0, init.output
    assert "Database initialized" in init.output
    assert check.exit_code == 0, check.output
    assert "successful" in check.output


def test_db_check_reports_failure(tmp_path: Path, home: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["db", "check", "--connection", f"sqlite:///{tmp_path}"])

    assert result.exit_code != 0
    assert "failed" in result.output


def test_runs_show_lists_collected_run(tmp_path: Path, home: Path, sqlite_url: str) -> None:
    source = _release_tree(tmp_path / "release")
    runner = CliRunner()
    collected = runner.invoke(
        cli,
        ["collect", str(source), "--connection", sqlite_url, "--deployment", "qa", "--json"],
    )
    run_id = json.loads(collected.stdout)["run_id"]

    result = runner.invoke(
        cli, ["runs", "show", run_id, "--connection", sqlite_url, "--files", "--json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["file_count"] == 3
    assert payload["deployments"][0]["deployment"] == "qa"
    assert sorted(item["file_name"] for item in payload["files"]) == [
        "app.dll",
        "deploy.ps1",
        "web.config",
    ]
    assert all("content" not in item for item in payload["files"])


def test_runs_show_unknown_run_is_not_found(home: Path, sqlite_url: str) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli, ["runs", "show", str(uuid.uuid4()), "--connection", sqlite_url, "--json"]
    )

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["code"] == "not_found"


def test_commands_release_database_connections(
    tmp_path: Path, home: Path, sqlite_url: str, monkeypatch
) -> None:
    source = _release_tree(tmp_path / "release")
    disposed: list[SqlSink] = []
    original_dispose = SqlSink.dispose

    def _dispose(self: SqlSink) -> None:
        disposed.append(self)
        original_dispose(self)

    monkeypatch.setattr(SqlSink, "dispose", _dispose)
    runner = CliRunner()

    runner.invoke(cli, ["db", "init", "--connection", sqlite_url])
    runner.invoke(cli, ["db", "check", "--connection", sqlite_url])
    collected = runner.invoke(cli, ["collect", str(source), "--connection", sqlite_url, "--json"])
    run_id = json.loads(collected.stdout)["run_id"]
    runner.invoke(cli, ["runs", "show", run_id, "--connection", sqlite_url, "--json"])
    failed = runner.invoke(
        cli, ["collect", str(tmp_path / "absent"), "--connection", sqlite_url, "--json"]
    )

    assert failed.exit_code == 1
    assert len(disposed) == 5
    assert len({id(sink) for sink in disposed}) == 5
