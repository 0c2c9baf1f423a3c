"""Command line interface for dropsort."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from dropsort.config import (
    ConfigFormat,
    ConfigStore,
    HostSettings,
    SettingsManager,
    flatten_for_env,
    format_for_path,
    serialize,
)
from dropsort.errors import ConfigError, DropsortError
from dropsort.logs import configure_logging
from dropsort.organization import ClassificationOutcome
from dropsort.watch import LoggingStatusListener, TransferService

console = Console()


class _ConsoleStatusListener(LoggingStatusListener):
    """Status listener that mirrors important callbacks on the console."""

    def __init__(self) -> None:
        self.failures: list[tuple[Path, str]] = []

    def organize_failed(self, reason: str) -> None:
        super().organize_failed(reason)
        console.print(f"[red]Organize failed: {reason}[/red]")

    def classification_failed(self, path: Path, reason: str) -> None:
        super().classification_failed(path, reason)
        self.failures.append((path, reason))
        console.print(f"[red]Failed to classify {path}: {reason}[/red]")


def _settings_manager(ctx: click.Context) -> SettingsManager:
    settings_path = ctx.obj.get("settings_path") if ctx.obj else None
    return SettingsManager(settings_path)


def _load_settings(ctx: click.Context) -> tuple[SettingsManager, HostSettings]:
    manager = _settings_manager(ctx)
    try:
        settings = manager.load()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(settings.logging, verbose=bool(ctx.obj and ctx.obj.get("verbose")))
    return manager, settings


def _build_service(ctx: click.Context, listener: _ConsoleStatusListener) -> TransferService:
    manager, settings = _load_settings(ctx)
    try:
        return TransferService.from_settings(manager, settings=settings, listener=listener)
    except DropsortError as exc:
        raise click.ClickException(str(exc)) from exc


def _load_store(ctx: click.Context) -> ConfigStore:
    _, settings = _load_settings(ctx)
    try:
        store = ConfigStore(Path(settings.config_path))
        store.load()
    except DropsortError as exc:
        raise click.ClickException(str(exc)) from exc
    return store


def _render_outcome(outcome: ClassificationOutcome) -> str:
    if outcome.destination is not None:
        suffix = " (renamed)" if outcome.renamed else ""
        return f"[green]{outcome.source.name} -> {outcome.destination}{suffix}[/green]"
    return f"[yellow]{outcome.source.name}: {outcome.status.value}[/yellow]"


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="dropsort")
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file to use instead of ~/.dropsort/settings.yaml.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, settings_path: Optional[Path], verbose: bool) -> None:
    """dropsort moves files dropped into inbox folders into category folders."""
    ctx.ensure_object(dict)
    ctx.obj["settings_path"] = settings_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option(
    "--organize-first",
    is_flag=True,
    help="Sweep existing files before watching for new ones.",
)
@click.option(
    "--duration",
    type=float,
    help="Stop after this many seconds instead of waiting for Ctrl+C.",
)
@click.pass_context
def watch(ctx: click.Context, organize_first: bool, duration: Optional[float]) -> None:
    """Monitor the configured listen directories and classify new files.

    Requires transfers and background monitoring to be enabled. Existing files are
    swept first when organize-on-startup is enabled or --organize-first is given.
    """
    listener = _ConsoleStatusListener()
    service = _build_service(ctx, listener)
    settings = service.settings
    if not settings.transfer_enabled:
        service.close()
        raise click.ClickException("Transfers are disabled; run `dropsort enable` first.")
    if not settings.background_monitor:
        service.close()
        raise click.ClickException(
            "Background monitoring is disabled; run `dropsort enable --background` first."
        )
    try:
        if organize_first and not settings.auto_organize_on_startup:
            service.organize_now()
        service.initialize()
    except DropsortError as exc:
        service.close()
        raise click.ClickException(str(exc)) from exc

    if not service.is_monitoring:
        console.print("[yellow]None of the configured listen directories exist.[/yellow]")
        service.close()
        return

    monitored = ", ".join(str(watcher.root) for watcher in service.watchers)
    console.print(f"[cyan]Watching {monitored}. Press Ctrl+C to stop.[/cyan]")
    deadline = None if duration is None else time.monotonic() + duration
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        console.print("[yellow]Watch stopped by user request.[/yellow]")
    finally:
        service.close()


@cli.command()
@click.option("--timeout", type=float, default=None, help="Maximum seconds to wait for moves.")
@click.pass_context
def organize(ctx: click.Context, timeout: Optional[float]) -> None:
    """Classify every file currently in the listen directories."""
    listener = _ConsoleStatusListener()
    service = _build_service(ctx, listener)
    try:
        count = service.organize_now()
        finished = service.wait_idle(timeout)
    except DropsortError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        service.close()

    metrics = f"submitted={count}, failed={len(listener.failures)}"
    if not finished:
        metrics += ", timed_out=True"
    console.print(f"[green]Organize summary: {metrics}.[/green]")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Show the decision without moving the file.")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
@click.pass_context
def classify(ctx: click.Context, path: Path, dry_run: bool, json_output: bool) -> None:
    """Classify a single file immediately, ignoring the settle delay."""
    listener = _ConsoleStatusListener()
    service = _build_service(ctx, listener)
    try:
        config = service.store.load()
        source = path.expanduser().absolute()
        if dry_run:
            result: Any = service.engine.decide(source, config)
        else:
            result = service.engine.classify(source, config)
    except DropsortError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        service.close()

    if json_output:
        console.print_json(result.model_dump_json())
        return
    if dry_run:
        if result.should_move:
            console.print(f"[cyan]{source.name} -> {result.target_directory}[/cyan]")
        else:
            console.print(f"[yellow]{source.name}: {result.skip.value}[/yellow]")
        return
    console.print(_render_outcome(result))


@cli.group()
def config() -> None:
    """Inspect, import, export or reset the transfer rules."""


@config.command("view")
@click.option(
    "--format",
    "fmt",
    type=click.Choice([item.value for item in ConfigFormat]),
    help="Render in this format instead of the persisted file's format.",
)
@click.pass_context
def config_view(ctx: click.Context, fmt: Optional[str]) -> None:
    """Display the current transfer rules."""
    store = _load_store(ctx)
    selected = ConfigFormat(fmt) if fmt else format_for_path(store.config_path)
    try:
        text = serialize(store.current, selected)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    lexer = "json" if selected is ConfigFormat.JSON else "toml"
    console.print(Syntax(text, lexer, word_wrap=True))


@config.command("path")
@click.pass_context
def config_path(ctx: click.Context) -> None:
    """Print the location of the persisted transfer rules."""
    _, settings = _load_settings(ctx)
    click.echo(str(Path(settings.config_path).expanduser()))


@config.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def config_import(ctx: click.Context, path: Path) -> None:
    """Replace the transfer rules with the contents of PATH (.fvv or .json)."""
    store = _load_store(ctx)
    try:
        imported = store.import_config(path)
    except DropsortError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(
        f"[green]Imported {len(imported.suffix_rules)} rule(s) and "
        f"{len(imported.listen_directories)} source(s) from {path}.[/green]"
    )


@config.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def config_export(ctx: click.Context, path: Path) -> None:
    """Write the transfer rules to PATH (.fvv or .json)."""
    store = _load_store(ctx)
    try:
        store.export_config(path)
    except DropsortError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Exported configuration to {path}.[/green]")


@config.command("reset")
@click.confirmation_option(prompt="Replace the transfer rules with the built-in defaults?")
@click.pass_context
def config_reset(ctx: click.Context) -> None:
    """Restore the built-in default transfer rules."""
    store = _load_store(ctx)
    try:
        store.reset_to_default()
    except DropsortError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print("[green]Configuration reset to defaults.[/green]")


@cli.group()
def settings() -> None:
    """Manage host settings such as toggles and path placeholders."""


@settings.command("view")
@click.option("--env", "as_env", is_flag=True, help="Print as DROPSORT__ environment variables.")
@click.pass_context
def settings_view(ctx: click.Context, as_env: bool) -> None:
    """Display the effective settings after environment overrides."""
    _, resolved = _load_settings(ctx)
    if as_env:
        for key, value in flatten_for_env(resolved).items():
            click.echo(f"{key}={value}")
        return
    yaml_text = yaml.safe_dump(resolved.model_dump(mode="python"), sort_keys=False, allow_unicode=True)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@settings.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal to assign to KEY.")
@click.pass_context
def settings_set(ctx: click.Context, key: str, value: str) -> None:
    """Persist a setting expressed as a dotted KEY such as placeholders.storage."""
    manager, _ = _load_settings(ctx)
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc
    try:
        manager.update({key: parsed})
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Updated {key}.[/green]")


def _toggle_table(resolved: HostSettings) -> Table:
    table = Table(title="Transfer toggles")
    table.add_column("Setting")
    table.add_column("Enabled")
    table.add_row("transfer_enabled", str(resolved.transfer_enabled))
    table.add_row("background_monitor", str(resolved.background_monitor))
    table.add_row("auto_organize_on_startup", str(resolved.auto_organize_on_startup))
    return table


@cli.command()
@click.option("--background/--no-background", default=None, help="Also toggle background monitoring.")
@click.option("--on-startup/--no-on-startup", default=None, help="Also toggle organize on startup.")
@click.pass_context
def enable(ctx: click.Context, background: Optional[bool], on_startup: Optional[bool]) -> None:
    """Enable automatic transfers."""
    manager, _ = _load_settings(ctx)
    changes: dict[str, Any] = {"transfer_enabled": True}
    if background is not None:
        changes["background_monitor"] = background
    if on_startup is not None:
        changes["auto_organize_on_startup"] = on_startup
    console.print(_toggle_table(manager.update(changes)))


@cli.command()
@click.pass_context
def disable(ctx: click.Context) -> None:
    """Disable automatic transfers."""
    manager, _ = _load_settings(ctx)
    console.print(_toggle_table(manager.update({"transfer_enabled": False})))


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
