"""
Command-line interface for Transmate.

Provides commands for:
- Creating a project configuration
- Adding keys to every language catalog
- Extracting keys used in source code
- Translating missing keys with an AI provider
- Importing translations from a CSV sheet
- Checking catalogs for consistency
- Managing API keys

Usage:
    transmate init
    transmate add-key nav.home "Home" --translate
    transmate extract-keys --add
    transmate translate-all --language fr,de --dry-run
    transmate sync-translations --source translations.csv
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from transmate import __version__
from transmate.config import TransmateConfig, load_config, write_default_config
from transmate.errors import TransmateError
from transmate.report import LanguageStatus, OperationReport, Origin

app = typer.Typer(
    name="transmate",
    help="Transmate: keep translation catalogs in sync, with AI-assisted translation",
    add_completion=False,
)
console = Console()

# Global options shared by every command
state = {"config": None, "verbose": False}

STATUS_STYLES = {
    LanguageStatus.WRITTEN: "green",
    LanguageStatus.SKIPPED_DRY_RUN: "yellow",
    LanguageStatus.UNCHANGED: "dim",
    LanguageStatus.FAILED: "red",
}

ORIGIN_STYLES = {
    Origin.HUMAN: "cyan",
    Origin.AI: "green",
    Origin.FALLBACK: "yellow",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose, markup=False)],
        force=True,
    )
    # Keep HTTP client chatter out of normal runs
    for noisy in ("httpx", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)


def version_callback(value: bool):
    if value:
        console.print(f"Transmate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Path to transmate.config.json (default: ./transmate.config.json)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose",
        help="Show debug output",
    ),
    version: bool = typer.Option(
        False, "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """Transmate: translation catalog management."""
    state["config"] = config
    state["verbose"] = verbose or os.getenv("TRANSMATE_DEBUG") == "1"
    setup_logging(state["verbose"])


def fail(error: Exception) -> None:
    console.print(f"[red]Error:[/] {error}")
    raise typer.Exit(1)


def get_config() -> TransmateConfig:
    try:
        return load_config(state["config"])
    except TransmateError as e:
        fail(e)


def print_report(report: OperationReport, show_entries: bool = True) -> None:
    """Render an operation report as a table plus summary line."""
    if report.languages:
        table = Table(title=f"{report.operation}" + (" (dry run)" if report.dry_run else ""))
        table.add_column("Language", style="cyan")
        table.add_column("Status")
        table.add_column("Values", justify="right")
        table.add_column("AI", justify="right")
        table.add_column("Fallback", justify="right")
        table.add_column("File", style="dim")

        for outcome in report.languages:
            style = STATUS_STYLES[outcome.status]
            table.add_row(
                outcome.language,
                f"[{style}]{outcome.status.value}[/]",
                str(len(outcome.entries)),
                str(outcome.count(Origin.AI)),
                str(outcome.count(Origin.FALLBACK)),
                str(outcome.path) if outcome.path else "-",
            )
        console.print(table)

    if show_entries and state["verbose"]:
        for outcome in report.languages:
            for entry in outcome.entries:
                style = ORIGIN_STYLES[entry.origin]
                console.print(
                    f"  {outcome.language} [bold]{entry.key}[/] = {entry.value!r} "
                    f"[{style}]({entry.origin.value})[/]"
                )

    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/] {warning}")
    for outcome in report.languages:
        if outcome.error:
            console.print(f"[red]✗[/] {outcome.language}: {outcome.error}")

    if report.ok:
        console.print(f"\n[green]✓[/] {report.summary}")
    else:
        console.print(f"\n[red]✗[/] {report.summary}")
        raise typer.Exit(1)


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f",
        help="Overwrite an existing configuration file",
    ),
):
    """Create a starter transmate.config.json in the current directory."""
    directory = state["config"].parent if state["config"] else None
    try:
        path = write_default_config(directory, force=force)
    except TransmateError as e:
        fail(e)

    console.print(f"[green]✓[/] Created configuration file: {path}")
    console.print("\nNext steps:")
    console.print("  1. Edit [cyan]transmate.config.json[/] to match your project")
    console.print("  2. Set your API key: [cyan]transmate keys set openai[/]")
    console.print("  3. Find keys in your code: [cyan]transmate extract-keys[/]")


@app.command("add-key")
def add_key(
    key: str = typer.Argument(..., help="Dotted translation key, e.g. nav.home"),
    value: str = typer.Argument("", help="Value in the default language (defaults to the key)"),
    translate: bool = typer.Option(
        False, "--translate", "-t",
        help="Translate the value into the other languages",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d",
        help="Show what would change without writing files",
    ),
):
    """Add a key to every language file."""
    from transmate.sync import SyncOrchestrator

    config = get_config()
    try:
        report = SyncOrchestrator().add_key(
            config, key, value, translate=translate, dry_run=dry_run or None
        )
    except TransmateError as e:
        fail(e)
    print_report(report)


@app.command("extract-keys")
def extract_keys(
    pattern: Optional[str] = typer.Option(
        None, "--pattern", "-p",
        help="Regex with one capturing group for the key",
    ),
    source: Optional[str] = typer.Option(
        None, "--source", "-s",
        help="Glob of files to scan instead of sourcePatterns",
    ),
    add: bool = typer.Option(
        False, "--add", "-a",
        help="Add missing keys to the default language file",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d",
        help="Show what would change without writing files",
    ),
):
    """Find translation keys in source code that are missing from the default language file."""
    from transmate.sync import SyncOrchestrator

    config = get_config()
    try:
        report = SyncOrchestrator().extract_keys(
            config, pattern=pattern, source=source, add=add, dry_run=dry_run or None
        )
    except TransmateError as e:
        fail(e)

    console.print(
        f"Scanned {report.stats.get('files', 0)} files, "
        f"found {report.stats.get('extracted', 0)} keys, "
        f"{report.stats.get('missing', 0)} missing"
    )
    for key in report.keys:
        console.print(f"  [cyan]{key}[/]")
    print_report(report, show_entries=False)


@app.command("translate-all")
def translate_all(
    language: Optional[str] = typer.Option(
        None, "--language", "-l",
        help="Only these languages (comma-separated)",
    ),
    force: bool = typer.Option(
        False, "--force", "-f",
        help="Retranslate keys that already have a value",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d",
        help="Show what would change without writing files",
    ),
):
    """Translate every default-language key missing from the other languages."""
    from transmate.sync import SyncOrchestrator

    config = get_config()
    try:
        report = SyncOrchestrator().sync_all(
            config, target_language=language, force=force, dry_run=dry_run or None
        )
    except TransmateError as e:
        fail(e)
    print_report(report)


app.command("sync-all", help="Alias of translate-all.")(translate_all)


@app.command("sync-translations")
def sync_translations(
    source: Optional[str] = typer.Option(
        None, "--source", "-s",
        help="CSV file path or http(s) URL (default: externalSync.url)",
    ),
    format: Optional[str] = typer.Option(
        None, "--format",
        help="Source format (csv)",
    ),
    merge: Optional[str] = typer.Option(
        None, "--merge", "-m",
        help="Merge strategy: override or keep-existing",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d",
        help="Show what would change without writing files",
    ),
):
    """Import translations from an external CSV sheet."""
    from transmate.external import sync_translations as run_sync

    config = get_config()
    try:
        report = run_sync(config, source=source, format=format, merge=merge, dry_run=dry_run or None)
    except TransmateError as e:
        fail(e)

    stats = report.stats
    console.print(
        f"Added: {stats.get('added', 0)}  Updated: {stats.get('updated', 0)}  "
        f"Skipped: {stats.get('skipped', 0)}"
    )
    print_report(report)


@app.command()
def validate():
    """Check that every language file matches the default language file."""
    from transmate.catalog.validate import check_catalogs

    config = get_config()
    result = check_catalogs(config)

    if result.languages:
        table = Table(title="Translation Files")
        table.add_column("Language", style="cyan")
        table.add_column("Missing", justify="right")
        table.add_column("Extra", justify="right")
        table.add_column("Errors", justify="right")
        for language, check in result.languages.items():
            table.add_row(
                language,
                str(len(check.missing)),
                str(len(check.extra)),
                f"[red]{len(check.errors)}[/]" if check.errors else "0",
            )
        console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/] {warning}")
    for error in result.errors:
        console.print(f"[red]✗[/] {error}")

    if not result.is_valid:
        console.print("\n[red]Translation files are inconsistent.[/]")
        raise typer.Exit(1)
    console.print("\n[green]✓[/] Translation files are consistent")


@app.command()
def keys(
    action: str = typer.Argument(..., help="Action: list, set, get, delete"),
    service: Optional[str] = typer.Argument(None, help="Service name (openai)"),
):
    """Manage API keys securely.

    Examples:
        transmate keys list              # List all keys
        transmate keys set openai        # Set OpenAI key
        transmate keys delete openai     # Delete OpenAI key
    """
    from transmate.keys import KeyManager, SERVICES

    km = KeyManager()

    if action == "list":
        table = Table(title="API Keys Status")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Source", style="yellow")
        table.add_column("Value", style="dim")

        for key_info in km.list_keys():
            status = "✓ Set" if key_info.is_set else "✗ Not set"
            status_color = "green" if key_info.is_set else "red"
            table.add_row(
                key_info.service,
                f"[{status_color}]{status}[/]",
                key_info.source,
                key_info.masked_value if key_info.is_set else "-",
            )

        console.print(table)
        console.print("\n[dim]Priority: env > keychain > config file[/]")
        return

    if action not in ("set", "get", "delete"):
        console.print(f"[red]Error:[/] Unknown action: {action}")
        console.print("Available actions: list, set, get, delete")
        raise typer.Exit(1)

    if not service:
        console.print("[red]Error:[/] Service name required")
        console.print(f"Usage: [cyan]transmate keys {action} <service>[/]")
        console.print(f"Available services: {', '.join(SERVICES.keys())}")
        raise typer.Exit(1)

    if action == "set":
        key = typer.prompt(f"Enter API key for {service}", hide_input=True)
        if not key.strip():
            console.print("[red]Error:[/] Key cannot be empty")
            raise typer.Exit(1)

        storage = km.set_key(service, key.strip())
        console.print(f"[green]✓[/] API key for {service} saved to {storage}")
        if storage == "config":
            console.print(f"[yellow]Note:[/] Key stored in local file ({km.config_file})")
            console.print("       For better security, use environment variables")

    elif action == "get":
        key = km.get_key(service)
        if key:
            console.print(f"[green]✓[/] Key found: {km._mask_key(key)}")
        else:
            console.print(f"[red]✗[/] No key found for {service}")
            console.print(f"Set with: [cyan]transmate keys set {service}[/]")
            raise typer.Exit(1)

    else:
        if km.delete_key(service):
            console.print(f"[green]✓[/] Key for {service} deleted")
        else:
            console.print(f"[yellow]No stored key for {service}[/]")


if __name__ == "__main__":
    app()
