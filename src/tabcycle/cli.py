"""Command line interface for the tabcycle project."""

from __future__ import annotations

import asyncio
import difflib
import json
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from tabcycle.config import ConfigError, ConfigManager, TabCycleConfig
from tabcycle.engine import CycleReport, EngineService
from tabcycle.logs import configure_logging
from tabcycle.naming import generate_group_name
from tabcycle.providers import ProviderError, TabInfo
from tabcycle.providers.memory import InMemoryHost
from tabcycle.state import MissingStateError, StateError, StateRepository
from tabcycle.state.models import ItemStatus

console = Console()


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


def _load_config(json_output: bool) -> tuple[ConfigManager, TabCycleConfig]:
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise  # unreachable; _handle_cli_error always raises
    return manager, config


def _parse_tab_spec(value: str, index: int) -> TabInfo:
    title, _, url = value.partition("|")
    return TabInfo(id=index, window_id=0, title=title.strip(), url=url.strip())


def _emit_cycle(report: CycleReport) -> None:
    counts = {status: 0 for status in ItemStatus}
    for transition in report.transitions:
        counts[transition.new_status] += 1
    if report.skipped:
        console.print("[yellow]Aging is disabled; only active time advanced.[/yellow]")
        return
    moved = sum(window.moved_to_special for window in report.windows)
    renamed = sum(window.renamed for window in report.windows)
    errors = [error for window in report.windows for error in window.errors]
    console.print(
        "[green]Cycle summary: "
        f"transitions={len(report.transitions)}, "
        f"yellow={counts[ItemStatus.YELLOW]}, red={counts[ItemStatus.RED]}, gone={counts[ItemStatus.GONE]}, "
        f"moved={moved}, renamed={renamed}, archived={report.archived}, "
        f"removed={report.removed}, failed={report.failed}.[/green]"
    )
    for error in errors:
        console.print(f"[red]- {error}[/red]")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="tabcycle")
def cli() -> None:
    """Age, group, name and archive browser tabs."""


@cli.command()
@click.argument("world", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--once", is_flag=True, help="Run a single cycle and exit.")
@click.option("--no-reconcile", is_flag=True, help="Skip reconciling stored state with the world.")
@click.option("--no-save", is_flag=True, help="Do not write the resulting world back to WORLD.")
@click.option("--json", "json_output", is_flag=True, help="Emit the cycle report as JSON.")
@click.option("--verbose", is_flag=True, help="Echo engine log records to the terminal.")
def run(world: Path, once: bool, no_reconcile: bool, no_save: bool, json_output: bool, verbose: bool) -> None:
    """Run the engine against the simulated browser described by WORLD.

    WORLD is a JSON snapshot of windows, tabs, groups and archive folders.
    The engine persists its model between runs, so repeated invocations
    continue aging the same tabs.

    Args:
        world: Path to the world snapshot.
        once: When True, exit after the startup cycle.
        no_reconcile: When True, skip startup reconciliation.
        no_save: When True, leave WORLD untouched.
        json_output: When True, emit JSON payloads instead of text.
        verbose: When True, mirror log output on the console.
    """
    manager, config = _load_config(json_output)

    try:
        host = InMemoryHost.from_snapshot(json.loads(world.read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError, TypeError) as exc:
        _handle_cli_error(
            f"Unable to load world snapshot: {exc}",
            code="world_error",
            json_output=json_output,
            original=exc,
        )
        return

    state_dir = Path(config.engine.state_dir).expanduser()
    configure_logging(config.logging, state_dir, console=verbose and not json_output)
    service = EngineService(host.as_host(), config, config_manager=manager)

    async def _drive() -> CycleReport | None:
        report = await service.startup(reconcile=not no_reconcile)
        if once:
            return report
        if not json_output:
            console.print(
                f"[cyan]Engine running every {config.engine.tick_seconds:g}s. Press Ctrl+C to stop.[/cyan]"
            )
        await service.run_forever()
        return None

    report: CycleReport | None = None
    try:
        report = asyncio.run(_drive())
    except KeyboardInterrupt:
        if not json_output:
            console.print("[yellow]Engine stopped by user request.[/yellow]")
    except ProviderError as exc:
        _handle_cli_error(str(exc), code="provider_error", json_output=json_output, original=exc)

    if not no_save:
        world.write_text(json.dumps(host.to_snapshot(), indent=2) + "\n", encoding="utf-8")

    if json_output:
        console.print_json(
            data={
                "cycle": report.to_payload() if report is not None else None,
                "state": {
                    "path": str(state_dir / "state.json"),
                    "tabs_tracked": len(service.state.items),
                },
                "world": str(world),
            }
        )
        return
    if report is not None:
        _emit_cycle(report)
    elif once:
        console.print("[yellow]Cycle skipped; the engine was busy.[/yellow]")


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
def status(json_output: bool) -> None:
    """Summarize the persisted engine model.

    Args:
        json_output: When True, emit JSON payloads instead of text.
    """
    _, config = _load_config(json_output)
    repository = StateRepository(Path(config.engine.state_dir))
    try:
        state = repository.load()
    except MissingStateError as exc:
        _handle_cli_error(
            "No engine state found; run `tabcycle run` first.",
            code="missing_state",
            json_output=json_output,
            original=exc,
        )
        return
    except StateError as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_output, original=exc)
        return

    windows: list[dict[str, Any]] = []
    for window_id in sorted(state.window_ids()):
        items = state.items_in_window(window_id)
        window = state.windows.get(window_id)
        counts = {status.value: 0 for status in ItemStatus}
        for item in items:
            counts[item.status.value] += 1
        windows.append(
            {
                "window_id": window_id,
                "tabs": len(items),
                "counts": counts,
                "special_groups": window.special_groups.model_dump(mode="json") if window else {},
                "named_groups": len(window.group_naming) if window else 0,
            }
        )

    payload = {
        "state_path": str(repository.state_path),
        "updated_at": state.updated_at.isoformat(),
        "active_seconds": round(state.active_time.accumulated, 3),
        "focused": state.active_time.focus_started_at is not None,
        "archive_folder": state.archive.folder_id,
        "windows": windows,
    }
    if json_output:
        console.print_json(data=payload)
        return

    table = Table(title=f"tabcycle state ({payload['state_path']})")
    table.add_column("Window", justify="right")
    table.add_column("Tabs", justify="right")
    for status_value in (status.value for status in ItemStatus):
        table.add_column(status_value.title(), justify="right")
    for entry in windows:
        table.add_row(
            str(entry["window_id"]),
            str(entry["tabs"]),
            *(str(entry["counts"][status.value]) for status in ItemStatus),
        )
    console.print(table)
    console.print(
        f"[green]Active time: {payload['active_seconds']:.0f}s; "
        f"archive folder: {payload['archive_folder'] or 'not created'}.[/green]"
    )


@cli.command("suggest-name")
@click.option(
    "--tab",
    "tabs",
    multiple=True,
    required=True,
    help="Tab as 'TITLE|URL'; repeat for each group member.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit the suggestion as JSON.")
def suggest_name(tabs: tuple[str, ...], json_output: bool) -> None:
    """Suggest a group name for the given member tabs.

    Args:
        tabs: Member tabs expressed as ``TITLE|URL``.
        json_output: When True, emit JSON payloads instead of text.
    """
    members = [_parse_tab_spec(value, index) for index, value in enumerate(tabs)]
    candidate = generate_group_name(members)
    if candidate is None:
        _handle_cli_error("Provide at least one --tab.", code="no_tabs", json_output=json_output)
        return
    if json_output:
        console.print_json(
            data={
                "name": candidate.text,
                "word_count": candidate.word_count,
                "score": candidate.score,
                "reason": candidate.reason,
            }
        )
        return
    console.print(f"[green]{candidate.text}[/green] ({candidate.reason}, score={candidate.score:g})")


@cli.group()
def config() -> None:
    """Manage tabcycle configuration files and overrides."""


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
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    A running engine picks the change up from the configuration file.

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
        raise click.ClickException("KEY must specify a dotted path such as 'aging.enabled'.")
    dotted = ".".join(segments)

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        changed = manager.update({dotted: parsed_value})
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if not changed:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    after = manager.read_text().splitlines()
    diff = difflib.unified_diff(
        before,
        after,
        fromfile="config.yaml (before)",
        tofile="config.yaml (after)",
        lineterm="",
    )
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {dotted}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
