"""Command line interface for RepoSaver."""

from __future__ import annotations

import difflib
import time
from pathlib import Path
from typing import Any, Mapping, NoReturn, Sequence

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from reposaver.config import ConfigError, ConfigManager, ReposaverConfig
from reposaver.engine import BackupEngine
from reposaver.log import configure_logging
from reposaver.notifications import Notification
from reposaver.state import SubFolderState
from reposaver.watch import SettingsReloader

console = Console()

_KIND_STYLES = {
    "backup": "green",
    "restore": "cyan",
    "delete": "yellow",
    "success": "green",
}


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command appropriately.

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


def _emit_message(message: Any, *, quiet: bool) -> None:
    if quiet:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _load_config(
    *,
    json_output: bool = False,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ReposaverConfig:
    """Load configuration and configure logging from it."""
    try:
        manager = ConfigManager()
        manager.ensure_exists()
        config = manager.load(cli_overrides=cli_overrides)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)

    configure_logging(config.logging)
    return config


def _build_engine(config: ReposaverConfig, *, json_output: bool, quiet: bool) -> BackupEngine:
    def _sink(notification: Notification) -> None:
        if json_output:
            console.print_json(data={"notification": notification.model_dump(mode="json")})
            return
        style = _KIND_STYLES.get(notification.kind, "white")
        _emit_message(
            f"[{style}]{notification.title}:[/{style}] {notification.body}",
            quiet=quiet,
        )

    return BackupEngine(config, notification_sink=_sink)


def _state_table(states: Sequence[SubFolderState]) -> Table:
    table = Table(title="Protected subfolders")
    table.add_column("Subfolder")
    table.add_column("Backups", justify="right")
    table.add_column("Latest")
    table.add_column("Live")
    table.add_column("Memo")
    for state in states:
        table.add_row(
            state.name,
            str(len(state.backups)),
            state.latest or "-",
            "yes" if state.source_exists else "no",
            state.memo,
        )
    return table


def _state_payload(root: Path, states: Sequence[SubFolderState]) -> dict[str, Any]:
    return {
        "root": root.as_posix(),
        "subfolders": [state.model_dump(mode="json") for state in states],
    }


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="reposaver")
def cli() -> None:
    """RepoSaver keeps timestamped backups of every folder under a watched root."""


@cli.command()
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=str),
    help="Watch this directory instead of the configured root.",
)
@click.option("--once", is_flag=True, help="Back up every live subfolder once and exit.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON notifications.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def watch(root: str | None, once: bool, json_output: bool, quiet: bool) -> None:
    """Back up subfolders of the watched root whenever they change.

    Args:
        root: Optional override for the watched root.
        once: When True, capture every live subfolder once and exit.
        json_output: When True, emit JSON payloads instead of text.
        quiet: When True, suppress non-error output.

    Raises:
        click.ClickException: If option combinations are invalid or watching fails.
    """
    if json_output and quiet:
        raise click.ClickException("--json cannot be combined with --quiet.")

    overrides = {"watch.root_path": str(Path(root).expanduser().resolve())} if root else None
    config = _load_config(json_output=json_output, cli_overrides=overrides)
    # --once --json reports a single summary document instead of per-backup payloads.
    engine = _build_engine(
        config,
        json_output=json_output and not once,
        quiet=quiet or (json_output and once),
    )
    watched = config.watch.resolved_root()

    if once:
        live = [state.name for state in engine.collect_state() if state.source_exists]
        captured = {name: engine.capture(name) for name in live}
        failed = sorted(name for name, timestamp in captured.items() if timestamp is None)
        if json_output:
            console.print_json(
                data={
                    "root": watched.as_posix(),
                    "captured": {name: ts for name, ts in captured.items() if ts is not None},
                    "failed": failed,
                }
            )
        else:
            _emit_message(
                _format_summary_line(
                    "Watch",
                    watched,
                    {"captured": len(captured) - len(failed), "failed": len(failed)},
                ),
                quiet=quiet,
            )
        if failed:
            raise SystemExit(1)
        return

    if not engine.start():
        _handle_cli_error(
            f"Unable to watch {watched}; check that the directory exists.",
            code="watch_unavailable",
            json_output=json_output,
        )

    reloader = _settings_reloader(engine, overrides)
    reloader.start()

    if not json_output:
        _emit_message(f"[cyan]Watching {watched}. Press Ctrl+C to stop.[/cyan]", quiet=quiet)

    try:
        # A root moved to a missing directory leaves the watcher idle until the next reload.
        while engine.is_watching or reloader.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        if not json_output:
            _emit_message("[yellow]Watch stopped by user request.[/yellow]", quiet=quiet)
    finally:
        reloader.stop()
        engine.stop()


def _settings_reloader(
    engine: BackupEngine, cli_overrides: Mapping[str, Any] | None
) -> SettingsReloader:
    """Return a reloader that feeds settings file edits into a running engine."""
    manager = ConfigManager()

    def _apply(updated: ReposaverConfig) -> None:
        configure_logging(updated.logging)
        engine.update_settings(updated)

    return SettingsReloader(
        manager.config_path,
        lambda: manager.load(cli_overrides=cli_overrides, ensure_file=False),
        _apply,
    )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
def status(json_output: bool) -> None:
    """Show every subfolder with its backups, memo, and live status.

    Args:
        json_output: When True, emit JSON instead of a table.
    """
    config = _load_config(json_output=json_output)
    engine = BackupEngine(config)
    root = config.watch.resolved_root()
    states = engine.collect_state()

    if json_output:
        console.print_json(data=_state_payload(root, states))
        return

    if not states:
        console.print(f"[yellow]No subfolders found for {root}.[/yellow]")
        return
    console.print(_state_table(states))


@cli.command()
@click.argument("name")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def backup(name: str, quiet: bool) -> None:
    """Back up subfolder NAME immediately.

    Raises:
        click.ClickException: If the backup could not be written.
    """
    engine = _build_engine(_load_config(), json_output=False, quiet=quiet)
    if engine.capture(name) is None:
        raise click.ClickException(f"Backup of {name} failed; see the log for details.")


@cli.command()
@click.argument("name")
@click.argument("timestamp")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def restore(name: str, timestamp: str, quiet: bool) -> None:
    """Replace live subfolder NAME with backup TIMESTAMP.

    Raises:
        click.ClickException: If the restore did not complete.
    """
    engine = _build_engine(_load_config(), json_output=False, quiet=quiet)
    if not engine.restore(name, timestamp):
        raise click.ClickException(f"Restore of {name} to {timestamp} failed.")


@cli.command()
@click.argument("name")
@click.argument("timestamp", required=False)
@click.option("--yes", is_flag=True, help="Do not ask before deleting every backup.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def delete(name: str, timestamp: str | None, yes: bool, quiet: bool) -> None:
    """Delete backup TIMESTAMP of NAME, or every backup of NAME when omitted.

    Raises:
        click.ClickException: If nothing matched.
    """
    engine = _build_engine(_load_config(), json_output=False, quiet=quiet)
    if timestamp is not None:
        if not engine.delete_generation(name, timestamp):
            raise click.ClickException(f"No backup {timestamp} found for {name}.")
        return

    if not yes:
        click.confirm(f"Delete every backup of {name}?", abort=True)
    if not engine.delete_subfolder(name):
        raise click.ClickException(f"No backups found for {name}.")


@cli.command()
@click.argument("name")
@click.argument("text")
def memo(name: str, text: str) -> None:
    """Attach TEXT as the memo of subfolder NAME.

    Raises:
        click.ClickException: If the memo could not be written.
    """
    engine = BackupEngine(_load_config())
    if not engine.save_memo(name, text):
        raise click.ClickException(f"Unable to save memo for {name}.")
    console.print(f"[green]Memo saved for {name}.[/green]")


@cli.command("notify-test")
@click.option("--json", "json_output", is_flag=True, help="Emit the notification as JSON.")
def notify_test(json_output: bool) -> None:
    """Send a test notification to check how notifications are displayed."""
    config = _load_config(json_output=json_output)
    engine = _build_engine(config, json_output=json_output, quiet=False)
    engine.send_test_notification()


@cli.group()
def config() -> None:
    """Manage RepoSaver configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

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


def _config_diff(before: str, after: str) -> list[str]:
    """Return unified diff lines between two file versions, ignoring the timestamp."""
    return [
        line
        for line in difflib.unified_diff(
            before.splitlines(),
            after.splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if "Last updated:" not in line
    ]


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Set one dotted KEY, e.g. `retention.max_generations`, and show the diff.

    Raises:
        click.ClickException: If the value does not parse or fails validation.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    before = manager.read_text()
    try:
        manager.set_value(key, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    changed = [
        line
        for line in _config_diff(before, manager.read_text())
        if line.startswith(("+", "-")) and not line.startswith(("+++", "---"))
    ]
    if not changed:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(changed), "diff", word_wrap=False))
    console.print(f"[green]Updated {key}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Edit the configuration file in $EDITOR and validate the result before saving.

    Raises:
        click.ClickException: If the edited text is not a valid configuration.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    current = manager.read_text()
    edited = click.edit(current, extension=".yaml")
    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return
    if edited == current:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        manager.replace_text(edited)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Run the ``reposaver`` console script."""
    cli()


if __name__ == "__main__":
    main()
