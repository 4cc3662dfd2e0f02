"""Command line interface for the relcollect project."""

from __future__ import annotations

import difflib
import os
import signal
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Mapping

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from relcollect.cancellation import CancellationToken
from relcollect.config import (
    CollectorConfig,
    ConfigError,
    ConfigManager,
    assign_nested,
    resolve_with_precedence,
)
from relcollect.errors import (
    CancellationError,
    CollectorError,
    NotFoundError,
    SinkError,
    ValidationError,
)
from relcollect.ingestion import RunContext
from relcollect.ingestion.pipeline import CollectionPipeline
from relcollect.logconfig import configure_logging
from relcollect.storage import SqlSink

console = Console()

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S%z"]
_ERROR_CODES: tuple[tuple[type[CollectorError], str], ...] = (
    (ValidationError, "validation_error"),
    (NotFoundError, "not_found"),
    (CancellationError, "cancelled"),
    (SinkError, "sink_error"),
)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _handle_collector_error(exc: CollectorError, *, json_output: bool) -> None:
    code = next((name for kind, name in _ERROR_CODES if isinstance(exc, kind)), "collector_error")
    details: dict[str, Any] | None = None
    message = str(exc)
    if isinstance(exc, (SinkError, CancellationError)):
        details = {"committed": exc.committed}
        message = f"{message} ({exc.committed:,} records committed before stopping)"
    _handle_cli_error(message, code=code, json_output=json_output, details=details, original=exc)


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """
    if quiet and mode != "error":
        return

    if summary_only and mode not in {"summary", "warning", "error"}:
        return

    console.print(message)


def _format_summary_line(command: str, target: str, metrics: Mapping[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {target}: {parts}.[/green]"


def _format_size(size_bytes: int) -> str:
    """Return a human-readable size such as ``100 MB``."""
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    order = 0
    while size >= 1024 and order < len(units) - 1:
        order += 1
        size /= 1024
    return f"{size:.2f}".rstrip("0").rstrip(".") + f" {units[order]}"


def _display_url(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "Unknown"


def _load_config(connection: str | None = None) -> CollectorConfig:
    overrides: dict[str, Any] = {}
    if connection:
        overrides["database.url"] = os.path.expandvars(connection)
    manager = ConfigManager()
    manager.ensure_exists()
    return manager.load(cli_overrides=overrides or None)


def _open_sink(config: CollectorConfig) -> SqlSink:
    return SqlSink(config.database.effective_url(), echo=config.database.echo)


def _resolve_output_modes(
    ctx: click.Context, config: CollectorConfig, *, quiet: bool, summary_mode: bool, json_output: bool
) -> tuple[bool, bool]:
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Translate SIGINT into a cancellation request for the duration of a run."""

    def _handler(signum: int, frame: Any) -> None:
        token.cancel("Interrupted by user")

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # signal handlers can only be installed from the main thread
        yield
        return
    try:
        yield
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="relcollect")
def cli() -> None:
    """relcollect captures release file trees into a relational database.

    Returns:
        None: This function is invoked for its side effects.
    """


@cli.command()
@click.argument("source", type=str)
@click.option("-c", "--connection", type=str, help="SQLAlchemy database URL.")
@click.option("-b", "--batch-size", type=int, help="Number of files written per transaction.")
@click.option(
    "-m",
    "--max-file-size",
    type=int,
    help="Maximum file size in bytes whose content is captured.",
)
@click.option("-t", "--tags", type=str, default="", help="Tags associated with this run.")
@click.option("-d", "--deployment", type=str, default="", help="Deployment identifier.")
@click.option(
    "--deployment-date",
    type=click.DateTime(formats=_DATE_FORMATS),
    help="When the deployment happened (defaults to now, UTC).",
)
@click.option("-v", "--verbose", is_flag=True, help="Report progress after every batch.")
@click.option("--json", "json_output", is_flag=True, help="Emit a JSON run summary.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def collect(
    ctx: click.Context,
    source: str,
    connection: str | None,
    batch_size: int | None,
    max_file_size: int | None,
    tags: str,
    deployment: str,
    deployment_date: datetime | None,
    verbose: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Scan SOURCE recursively and store every file under a new run id.

    Args:
        ctx: Click context used for parameter source inspection.
        source: Root directory to scan; environment variables are expanded.
        connection: Database URL overriding the configured one.
        batch_size: Records per transaction overriding the configured value.
        max_file_size: Content size cap in bytes overriding the configured value.
        tags: Free-form tags recorded with the deployment release.
        deployment: Deployment label recorded with the deployment release.
        deployment_date: Deployment timestamp; defaults to the current time.
        verbose: Whether to print progress after each batch.
        json_output: If True, emit a JSON summary instead of console output.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """
    json_enabled = json_output
    sink: SqlSink | None = None
    try:
        config = _load_config(connection)
        configure_logging(config.logging, verbose=verbose and not json_output)
        quiet_enabled, summary_only = _resolve_output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )

        def emit(message: Any, mode: str = "detail") -> None:
            _emit_message(message, mode=mode, quiet=quiet_enabled, summary_only=summary_only)

        source_path = os.path.expandvars(source)
        context = RunContext.create(
            tags=os.path.expandvars(tags),
            deployment=os.path.expandvars(deployment),
            deployment_date=deployment_date,
        )
        database_url = config.database.effective_url()
        token = CancellationToken()

        def _progress(total: int) -> None:
            if verbose and not json_output:
                emit(f"Processed {total:,} files so far...")

        sink = _open_sink(config)
        pipeline = CollectionPipeline.from_config(
            config, sink, cancel_token=token, on_progress=_progress
        )
        if batch_size is not None:
            pipeline.batch_size = batch_size
        if max_file_size is not None:
            pipeline.max_content_size_bytes = max_file_size

        if not json_output:
            emit("[bold]=== Release Code Collector ===[/bold]")
            emit(f"Run ID: {context.run_id}")
            emit(f"Source: {source_path}")
            emit(f"Database: {_display_url(database_url)}")
            emit(f"Batch Size: {pipeline.batch_size:,}")
            max_size = pipeline.max_content_size_bytes or config.processing.max_content_size_bytes
            emit(f"Max File Size: {max_size:,} bytes ({_format_size(max_size)})")

        if not sink.test_connection():
            raise SinkError(f"Unable to connect to database {_display_url(database_url)}")

        with _cancel_on_interrupt(token):
            result = pipeline.run(source_path, context)

        if json_output:
            console.print_json(
                data={
                    "run_id": str(result.run_id),
                    "source": source_path,
                    "database": _display_url(database_url),
                    "deployment": context.deployment.model_dump(mode="json")
                    if context.deployment
                    else None,
                    "counts": {
                        "inserted": result.inserted,
                        "discovered": result.discovered,
                        "readable": result.readable,
                        "skipped": result.skipped,
                        "failed": result.failed,
                        "batches": result.batches,
                    },
                    "elapsed_seconds": round(result.elapsed_seconds, 3),
                    "rate": round(result.rate, 1),
                }
            )
            return

        if result.failed:
            emit(f"[yellow]{result.failed} files could not be read.[/yellow]", "warning")
        emit(f"Elapsed time: {result.elapsed_seconds:.3f}s")
        emit(f"Average rate: {result.rate:.1f} files/second")
        emit(
            _format_summary_line(
                "Collection",
                source_path,
                {
                    "run_id": result.run_id,
                    "inserted": result.inserted,
                    "readable": result.readable,
                    "skipped": result.skipped,
                    "failed": result.failed,
                    "batches": result.batches,
                },
            ),
            "summary",
        )
    except CollectorError as exc:
        _handle_collector_error(exc, json_output=json_enabled)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_enabled, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_enabled, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while collecting files: {exc}",
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )
    finally:
        if sink is not None:
            sink.dispose()


@cli.group()
def db() -> None:
    """Manage the database that stores collected runs."""


@db.command("init")
@click.option("-c", "--connection", type=str, help="SQLAlchemy database URL.")
def db_init(connection: str | None) -> None:
    """Create the release tables if they do not exist."""
    try:
        config = _load_config(connection)
        sink = _open_sink(config)
    except (ConfigError, CollectorError) as exc:
        raise click.ClickException(str(exc)) from exc
    try:
        sink.initialize_schema()
    except CollectorError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        sink.dispose()
    console.print(
        f"[green]Database initialized at {_display_url(config.database.effective_url())}.[/green]"
    )


@db.command("check")
@click.option("-c", "--connection", type=str, help="SQLAlchemy database URL.")
def db_check(connection: str | None) -> None:
    """Verify that the database is reachable."""
    try:
        config = _load_config(connection)
        sink = _open_sink(config)
    except (ConfigError, CollectorError) as exc:
        raise click.ClickException(str(exc)) from exc

    target = _display_url(config.database.effective_url())
    try:
        reachable = sink.test_connection()
    finally:
        sink.dispose()
    if not reachable:
        raise click.ClickException(f"Database connection to {target} failed.")
    console.print(f"[green]Database connection to {target} successful.[/green]")


@cli.group()
def runs() -> None:
    """Inspect previously collected runs."""


@runs.command("show")
@click.argument("run_id", type=click.UUID)
@click.option("-c", "--connection", type=str, help="SQLAlchemy database URL.")
@click.option("--files", "show_files", is_flag=True, help="List the files stored for the run.")
@click.option("--json", "json_output", is_flag=True, help="Emit run details as JSON.")
def runs_show(run_id: uuid.UUID, connection: str | None, show_files: bool, json_output: bool) -> None:
    """Display deployment details and file counts for RUN_ID.

    Args:
        run_id: Identifier printed by `relcollect collect`.
        connection: Database URL overriding the configured one.
        show_files: Whether to list individual file records.
        json_output: If True, emit JSON instead of tables.
    """
    sink: SqlSink | None = None
    try:
        config = _load_config(connection)
        sink = _open_sink(config)
        sink.initialize_schema()
        deployments = sink.deployment_records(run_id)
        file_count = sink.count_files(run_id)
        files = sink.file_records(run_id) if show_files else []
    except CollectorError as exc:
        _handle_collector_error(exc, json_output=json_output)
        return
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    finally:
        if sink is not None:
            sink.dispose()

    if not deployments and not file_count:
        _handle_cli_error(
            f"No data recorded for run {run_id}.", code="not_found", json_output=json_output
        )
        return

    if json_output:
        payload: dict[str, Any] = {
            "run_id": str(run_id),
            "file_count": file_count,
            "deployments": [record.model_dump(mode="json") for record in deployments],
        }
        if show_files:
            payload["files"] = [
                record.model_dump(mode="json", exclude={"content", "run_id"}) for record in files
            ]
        console.print_json(data=payload)
        return

    table = Table(title=f"Deployment releases for {run_id}")
    table.add_column("Deployment")
    table.add_column("Tags", overflow="fold")
    table.add_column("Date")
    for record in deployments:
        table.add_row(record.deployment, record.tags, record.deployment_date.isoformat())
    console.print(table)
    console.print(f"Files stored: {file_count:,}")

    if show_files:
        file_table = Table(title="Files")
        file_table.add_column("Path", overflow="fold")
        file_table.add_column("Size", justify="right")
        file_table.add_column("Readable")
        file_table.add_column("Error", overflow="fold")
        for record in files:
            file_table.add_row(
                record.full_path,
                str(record.file_size_bytes),
                "yes" if record.is_readable else "no",
                record.error_message or "",
            )
        console.print(file_table)


@cli.group()
def config() -> None:
    """Manage relcollect configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'database.batch_size'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=CollectorConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line.lstrip("+-").startswith("# Last updated:")
    ]

    if not any(line.startswith(("+", "-")) and not line.startswith(("+++", "---")) for line in diff):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=CollectorConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point.

    Returns:
        None: This function is invoked for its side effects.
    """
    cli()


if __name__ == "__main__":
    main()
