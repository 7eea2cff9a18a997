"""Command line interface for Tidydrop."""

from __future__ import annotations

import difflib
import json
from pathlib import Path
from typing import Any, Callable, NoReturn, TypeVar

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from tidydrop.classification import (
    ClassificationError,
    ModelUnavailableError,
    TrainingDataError,
)
from tidydrop.config import (
    ConfigError,
    ConfigManager,
    MissingSettingError,
    TidydropConfig,
    resolve_with_precedence,
)
from tidydrop.ingestion import ScanError
from tidydrop.inventory import FileRecord, InventoryError
from tidydrop.jobs import (
    JOB_CHANNEL,
    MOVE_FILES_CHANNEL,
    REFRESH_FILES_CHANNEL,
    JobHandle,
    MoveResult,
    NotificationEvent,
    SyncStage,
)
from tidydrop.log import configure_logging
from tidydrop.organization import RelocationItem
from tidydrop.service import TidydropService
from tidydrop.watch import WatchService

console = Console()

_T = TypeVar("_T")

_ERROR_CODES: tuple[tuple[type[Exception], str], ...] = (
    (MissingSettingError, "missing_setting"),
    (ConfigError, "config_error"),
    (ScanError, "scan_error"),
    (TrainingDataError, "training_data_error"),
    (ModelUnavailableError, "model_unavailable"),
    (ClassificationError, "classification_error"),
    (InventoryError, "inventory_error"),
)

_EVENT_STYLES = {
    (MOVE_FILES_CHANNEL, int(MoveResult.FAILED)): "red",
    (MOVE_FILES_CHANNEL, int(MoveResult.ID_NOT_PRESENT)): "yellow",
    (REFRESH_FILES_CHANNEL, int(SyncStage.FAILED)): "red",
}


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _run_guarded(action: Callable[[], _T], *, json_output: bool) -> _T:
    """Run ``action`` and convert pipeline errors into CLI errors."""
    try:
        return action()
    except tuple(error for error, _ in _ERROR_CODES) as exc:
        code = next(code for error, code in _ERROR_CODES if isinstance(exc, error))
        _handle_cli_error(str(exc), code=code, json_output=json_output, original=exc)


def _load_config(ctx: click.Context, *, json_output: bool) -> TidydropConfig:
    options = ctx.find_root().obj or {}
    manager = ConfigManager()
    try:
        config = manager.load(environment=options.get("environment"))
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    configure_logging(config.logging, level_override=options.get("log_level"))
    return config


def _build_service(ctx: click.Context, *, json_output: bool) -> TidydropService:
    config = _load_config(ctx, json_output=json_output)
    return _run_guarded(lambda: TidydropService(config), json_output=json_output)


def _print_event(event: NotificationEvent) -> None:
    style = _EVENT_STYLES.get((event.channel, event.status))
    if event.channel == JOB_CHANNEL and "failed in" in event.message:
        style = "red"
    text = f"[dim]{event.channel}[/dim] {escape(event.message)}"
    console.print(f"[{style}]{text}[/{style}]" if style else text, soft_wrap=True)


def _records_table(records: list[FileRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Id", justify="right")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("State")
    table.add_column("Hold")
    for record in records:
        table.add_row(
            str(record.id),
            record.name,
            record.category or "-",
            record.state.value,
            "yes" if record.is_not_to_move else "",
        )
    return table


def _parse_item(raw: str) -> RelocationItem:
    record_id, sep, category = raw.partition(":")
    if not sep:
        raise click.BadParameter(f"Expected ID:CATEGORY, got '{raw}'.", param_hint="--item")
    try:
        return RelocationItem(record_id=int(record_id), category=category)
    except ValueError as exc:
        raise click.BadParameter(f"Invalid item '{raw}': {exc}", param_hint="--item") from exc


def _read_items(path: Path) -> list[RelocationItem]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Unable to read relocation items from {path}: {exc}") from exc
    if not isinstance(payload, list):
        raise click.ClickException("Relocation file must contain a JSON list.")
    items: list[RelocationItem] = []
    for entry in payload:
        if not isinstance(entry, dict):
            raise click.ClickException(f"Invalid relocation entry: {entry!r}")
        record_id = entry.get("record_id", entry.get("id"))
        try:
            items.append(RelocationItem(record_id=record_id, category=entry.get("category", "")))
        except ValueError as exc:
            raise click.ClickException(f"Invalid relocation entry {entry!r}: {exc}") from exc
    return items


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="tidydrop")
@click.option(
    "--env", "environment", type=str, help="Use this profile instead of the configured one."
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured logging level.",
)
@click.pass_context
def cli(ctx: click.Context, environment: str | None, log_level: str | None) -> None:
    """Tidydrop ingests files dropped into a folder, predicts a category from each
    file name, and moves confirmed files into per-category folders.
    """
    ctx.obj = {"environment": environment, "log_level": log_level}


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the sync report as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress progress messages.")
@click.pass_context
def sync(ctx: click.Context, json_output: bool, quiet: bool) -> None:
    """Add new files from the origin folder to the inventory and predict categories."""
    service = _build_service(ctx, json_output=json_output)
    with service:
        subscription = None
        if not (json_output or quiet):
            subscription = service.hub.subscribe(callback=_print_event)
        try:
            report = _run_guarded(service.synchronize, json_output=json_output)
        finally:
            if subscription is not None:
                subscription.close()

    if json_output:
        console.print_json(data=report.model_dump(mode="json"))
        return
    console.print(
        f"[green]Sync summary: scanned={report.scanned}, added={report.added}, "
        f"categorized={report.categorized}, uncategorized={report.uncategorized}.[/green]"
    )


@cli.command()
@click.option(
    "--item",
    "raw_items",
    multiple=True,
    metavar="ID:CATEGORY",
    help="Move record ID into CATEGORY. Repeatable.",
)
@click.option(
    "--from-json",
    "json_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read a list of {record_id, category} objects from a JSON file.",
)
@click.option(
    "--pending",
    is_flag=True,
    help="Move every categorized record that is not on hold.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit the relocation report as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress per-file progress messages.")
@click.pass_context
def relocate(
    ctx: click.Context,
    raw_items: tuple[str, ...],
    json_file: Path | None,
    pending: bool,
    json_output: bool,
    quiet: bool,
) -> None:
    """Move records into their category folders and learn from the result."""
    items = [_parse_item(raw) for raw in raw_items]
    if json_file is not None:
        items.extend(_read_items(json_file))

    service = _build_service(ctx, json_output=json_output)
    with service:
        if pending:
            items.extend(_run_guarded(service.pending_relocations, json_output=json_output))
        if not items:
            _handle_cli_error(
                "Bad request: No files to move", code="empty_batch", json_output=json_output
            )
        subscription = None
        if not (json_output or quiet):
            subscription = service.hub.subscribe(callback=_print_event)
        try:
            report = _run_guarded(lambda: service.relocate(items), json_output=json_output)
        finally:
            if subscription is not None:
                subscription.close()

    if json_output:
        console.print_json(data=report.model_dump(mode="json"))
        return
    colour = "green" if not (report.failed or report.missing) else "yellow"
    console.print(
        f"[{colour}]Relocate summary: requested={report.requested}, moved={report.moved}, "
        f"failed={report.failed}, not_present={report.missing}.[/{colour}]"
    )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the training summary as JSON.")
@click.pass_context
def train(ctx: click.Context, json_output: bool) -> None:
    """Retrain the classifier from the training corpus."""
    service = _build_service(ctx, json_output=json_output)
    with service:
        summary = _run_guarded(service.train, json_output=json_output)

    if json_output:
        console.print_json(data=summary.model_dump(mode="json"))
        return
    console.print(
        f"[green]Trained model {summary.version} on {summary.examples} examples "
        f"({len(summary.categories)} categories) in [{summary.elapsed_ms} ms].[/green]"
    )
    if summary.skipped:
        console.print(f"[yellow]Skipped {summary.skipped} malformed training lines.[/yellow]")


@cli.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--json", "json_output", is_flag=True, help="Emit predictions as JSON.")
@click.pass_context
def classify(ctx: click.Context, names: tuple[str, ...], json_output: bool) -> None:
    """Predict a category for each file NAME without touching the inventory."""
    service = _build_service(ctx, json_output=json_output)
    with service:
        predictions = _run_guarded(lambda: service.engine.classify(names), json_output=json_output)

    if json_output:
        console.print_json(data=[prediction.model_dump(mode="json") for prediction in predictions])
        return
    table = Table(title="Predictions")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Score", justify="right")
    for prediction in predictions:
        category = prediction.category or f"[red]{prediction.error}[/red]"
        score = f"{prediction.score:.2f}" if prediction.score is not None else "-"
        table.add_row(prediction.name, category, score)
    console.print(table)


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the report as JSON.")
@click.pass_context
def recategorize(ctx: click.Context, json_output: bool) -> None:
    """Run prediction again for records still waiting for a category."""
    service = _build_service(ctx, json_output=json_output)
    with service:
        report = _run_guarded(service.recategorize, json_output=json_output)

    if json_output:
        console.print_json(data=report.model_dump(mode="json"))
        return
    console.print(
        f"[green]Recategorize summary: considered={report.considered}, "
        f"categorized={report.categorized}, still_pending={report.still_pending}.[/green]"
    )


@cli.command("list")
@click.option("--pending", is_flag=True, help="Only records still waiting for confirmation.")
@click.option("--category", type=str, help="Only records in this category.")
@click.option("--recent", type=click.IntRange(min=1), help="Only the N most recently updated.")
@click.option("--json", "json_output", is_flag=True, help="Emit records as JSON.")
@click.pass_context
def list_records(
    ctx: click.Context,
    pending: bool,
    category: str | None,
    recent: int | None,
    json_output: bool,
) -> None:
    """Show inventory records."""
    service = _build_service(ctx, json_output=json_output)
    repository = service.repository
    with service:
        if pending:
            title, query = "Pending records", repository.pending
        elif category:
            title, query = f"Records in {category}", lambda: repository.by_category(category)
        elif recent:
            title, query = "Recent records", lambda: repository.recent(recent)
        else:
            title, query = "Inventory", repository.list_active
        records = _run_guarded(query, json_output=json_output)

    if json_output:
        console.print_json(data=[record.model_dump(mode="json") for record in records])
        return
    if not records:
        console.print("[yellow]No records found.[/yellow]")
        return
    console.print(_records_table(records, title))


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit categories as JSON.")
@click.pass_context
def categories(ctx: click.Context, json_output: bool) -> None:
    """List the categories present in the inventory."""
    service = _build_service(ctx, json_output=json_output)
    with service:
        found = _run_guarded(service.repository.categories, json_output=json_output)

    if json_output:
        console.print_json(data=found)
        return
    for name in found:
        console.print(name)


def _set_hold(ctx: click.Context, record_id: int, hold: bool) -> None:
    service = _build_service(ctx, json_output=False)
    with service:
        record = _run_guarded(
            lambda: service.repository.set_hold(record_id, hold), json_output=False
        )
    verb = "held back from" if hold else "released for"
    console.print(f"[green]{record.name} (id {record.id}) {verb} relocation.[/green]")


@cli.command()
@click.argument("record_id", type=int)
@click.pass_context
def hold(ctx: click.Context, record_id: int) -> None:
    """Exclude RECORD_ID from pending relocation batches."""
    _set_hold(ctx, record_id, True)


@cli.command()
@click.argument("record_id", type=int)
@click.pass_context
def release(ctx: click.Context, record_id: int) -> None:
    """Allow RECORD_ID back into pending relocation batches."""
    _set_hold(ctx, record_id, False)


@cli.command()
@click.argument("record_id", type=int)
@click.pass_context
def retire(ctx: click.Context, record_id: int) -> None:
    """Remove RECORD_ID from the inventory without touching the file."""
    service = _build_service(ctx, json_output=False)
    with service:
        record = _run_guarded(lambda: service.retire(record_id), json_output=False)
    console.print(f"[green]{record.name} (id {record.id}) retired from the inventory.[/green]")


@cli.command()
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--once", is_flag=True, help="Synchronize the current contents once and exit.")
@click.pass_context
def watch(ctx: click.Context, debounce: float | None, once: bool) -> None:
    """Monitor the origin folder and synchronize after each burst of changes."""
    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    service = _build_service(ctx, json_output=False)
    with service:
        watcher = _run_guarded(
            lambda: WatchService(service, debounce_override=debounce), json_output=False
        )
        subscription = service.hub.subscribe(callback=_print_event)
        try:
            if once:
                _run_guarded(watcher.process_once, json_output=False)
                return

            def _on_job(handle: JobHandle) -> None:
                console.print(f"[cyan]Scheduled sync job {handle.id}.[/cyan]")

            console.print(f"[cyan]Watching {watcher.root}. Press Ctrl+C to stop.[/cyan]")
            try:
                watcher.watch(_on_job)
            except KeyboardInterrupt:
                watcher.stop()
                console.print("[yellow]Watch stopped by user request.[/yellow]")
            except (RuntimeError, FileNotFoundError) as exc:
                raise click.ClickException(str(exc)) from exc
        finally:
            subscription.close()


@cli.group()
def config() -> None:
    """Manage Tidydrop configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
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
        key: Dotted path such as ``profiles.production.origin_dir``.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'profiles.production.origin_dir'."
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=TidydropConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    # The header timestamp always changes; only report real edits.
    changed = [
        line
        for line in diff
        if line[:1] in "+-" and not line[1:].startswith(("# Last updated", "++", "--"))
    ]
    if not changed:
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
        resolve_with_precedence(defaults=TidydropConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
