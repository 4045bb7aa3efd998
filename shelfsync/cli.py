"""
shelfsync CLI.
Connects a user to their GOG Galaxy and Amazon Games databases and keeps their
stored library in sync.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .amazon.locator import is_valid_amazon_database, locate_databases
from .amazon.reader import AmazonSource
from .common.exceptions import (
    ConfigurationError,
    EntryNotFoundError,
    ImportFormatError,
    PersistenceError,
    SourceError,
    format_exception_chain,
)
from .config import DATE_FMT
from .core.config_manager import ConfigManager
from .core.enrichment import Enricher
from .core.models import Platform
from .core.session import (
    CUSTOM_PATH_PREFIX,
    UPLOADED_DB_PREFIX,
    connect_amazon,
    connect_galaxy,
)
from .core.sync import LibrarySync
from .galaxy.locator import is_valid_galaxy_database, locate_database, stage_uploaded_database
from .galaxy.reader import GalaxySource
from .library import LibraryDB
from .logging_cfg import configure_logging
from .manual_import import csv_template, detect_format, json_template, parse_import
from .metadata_providers.rawg import RawgProvider

app = typer.Typer(
    help="shelfsync: GOG Galaxy and Amazon Games library ingestion and reconciliation.",
    rich_markup_mode="rich",
    add_completion=False,
)
console = Console()

HELP_USER = "User whose library is affected."
HELP_PLATFORM = "GOG or AmazonGames."

# Platforms with a local database reader: (settings key, connect, validator)
LOCAL_SOURCES = {
    Platform.GOG: ("galaxy_path", connect_galaxy, is_valid_galaxy_database),
    Platform.AMAZON_GAMES: ("amazon_path", connect_amazon, is_valid_amazon_database),
}


class _State:
    settings: ConfigManager
    db_path: Path


state = _State()


@app.callback()
def global_options(
    settings: Path = typer.Option(Path("settings.json"), help="Settings file (JSON)."),
    db: Optional[Path] = typer.Option(None, help="Library database (overrides settings)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info logs."),
):
    try:
        state.settings = ConfigManager(settings)
    except ConfigurationError as e:
        console.print(f"[bold red]✘[/bold red] Bad settings: {e}")
        raise typer.Exit(2)
    state.db_path = Path(db or state.settings.get("library_db"))
    configure_logging(
        state.settings.get("log_format"),
        level=logging.INFO if verbose else logging.WARNING,
    )


def _store() -> LibraryDB:
    return LibraryDB(state.db_path)


def _local_platform(value: str) -> Platform:
    try:
        platform = Platform.parse(value)
    except ValueError as e:
        console.print(f"[bold red]✘[/bold red] {e}")
        raise typer.Exit(1)
    if platform not in LOCAL_SOURCES:
        console.print(f"[bold red]✘[/bold red] No local database reader for {platform.value}.")
        raise typer.Exit(1)
    return platform


def _fmt_date(value) -> str:
    return value.strftime(DATE_FMT) if value else "-"


def _fmt_minutes(minutes: Optional[int]) -> str:
    if not minutes:
        return "-"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins:02d}m" if hours else f"{mins}m"


@app.command("locate")
def cmd_locate(
    path: Optional[str] = typer.Option(None, help="Directory or database file to check."),
    platform: str = typer.Option("GOG", help=HELP_PLATFORM),
):
    """
    [bold cyan]Find the local client database[/bold cyan]

    Checks the given path, or the well-known install locations.
    """
    selected = _local_platform(platform)
    settings_key, _, validator = LOCAL_SOURCES[selected]
    path = path or state.settings.get(settings_key)

    if selected is Platform.AMAZON_GAMES:
        found = locate_databases(path)
    else:
        galaxy_db = locate_database(path)
        found = [galaxy_db] if galaxy_db else []

    if not found:
        console.print(f"[bold red]✘[/bold red] {selected.value} database not found.")
        raise typer.Exit(1)
    for db_path in found:
        valid = validator(str(db_path))
        mark = "[green]valid[/green]" if valid else f"[red]not a {selected.value} database[/red]"
        console.print(f"[bold green]✔[/bold green] {db_path} ({mark})")


@app.command("connect")
def cmd_connect(
    user: str = typer.Argument(..., help=HELP_USER),
    path: Optional[str] = typer.Option(None, help="Custom client directory or database file."),
    upload: Optional[Path] = typer.Option(None, help="Database file to copy and use."),
    platform: str = typer.Option("GOG", help=HELP_PLATFORM),
):
    """
    [bold green]Connect a local client[/bold green]

    Links the user to a GOG Galaxy or Amazon Games database: an uploaded copy,
    a custom path, or the default install locations.
    """
    selected = _local_platform(platform)
    settings_key, connect, validator = LOCAL_SOURCES[selected]

    if upload is not None:
        try:
            with open(upload, "rb") as fh:
                staged = stage_uploaded_database(
                    fh, state.db_path.parent / "uploads", selected, validator
                )
        except (OSError, SourceError) as e:
            console.print(f"[bold red]✘[/bold red] Upload rejected: {e}")
            raise typer.Exit(1)
        credentials = f"{UPLOADED_DB_PREFIX}{staged}"
    elif path or state.settings.get(settings_key):
        credentials = f"{CUSTOM_PATH_PREFIX}{path or state.settings.get(settings_key)}"
    else:
        credentials = "local"

    connection = connect(user, credentials)
    if connection is None:
        console.print(f"[bold red]✘[/bold red] Invalid {selected.value} database.")
        raise typer.Exit(1)

    _store().save_connection(connection)
    where = connection.custom_path or "default locations"
    console.print(f"[bold green]✔[/bold green] {selected.value} connected for {user} ({where})")


@app.command("disconnect")
def cmd_disconnect(
    user: str = typer.Argument(..., help=HELP_USER),
    platform: str = typer.Option("GOG", help=HELP_PLATFORM),
):
    """Remove one of the user's connections. Stored games are kept."""
    selected = _local_platform(platform)
    if _store().remove_connection(user, selected):
        console.print(f"[bold yellow]✔[/bold yellow] {selected.value} disconnected for {user}")
    else:
        console.print(f"[dim]{user} had no {selected.value} connection.[/dim]")


@app.command("sync")
def cmd_sync(
    user: str = typer.Argument(..., help=HELP_USER),
    no_fallback: bool = typer.Option(False, "--no-fallback", help="Never use demo data."),
    enrich: bool = typer.Option(False, "--enrich", help="Enrich new games from RAWG afterwards."),
):
    """
    [bold magenta]Sync library[/bold magenta]

    Reads every connected source and merges it into the stored library without
    overwriting enriched metadata.
    """
    store = _store()
    syncer = LibrarySync(store, [GalaxySource(use_fallback=not no_fallback), AmazonSource()])
    try:
        report = syncer.sync_user(user)
    except PersistenceError as e:
        console.print(f"[bold red]✘[/bold red] Sync failed: {format_exception_chain(e)}")
        raise typer.Exit(1)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Source", style="dim")
    table.add_column("Status")
    table.add_column("Games", justify="right")
    for source in report.sources:
        status = source.status.value + (" (demo data)" if source.used_fallback else "")
        table.add_row(source.platform.value, status, str(source.game_count))
    console.print(table)
    console.print(
        Panel.fit(
            f"[bold]{report.inserted}[/bold] new, [bold]{report.updated}[/bold] updated, "
            f"{report.unchanged} unchanged, "
            f"{len(report.needs_enrichment)} need enrichment",
            border_style="green",
        )
    )

    if enrich and report.needs_enrichment:
        count = Enricher(store, RawgProvider(state.settings.get("rawg_api_key"))).enrich(
            user, report.needs_enrichment
        )
        console.print(f"[bold green]✔[/bold green] Enriched {count} games.")


@app.command("library")
def cmd_library(
    user: str = typer.Argument(..., help=HELP_USER),
    platform: Optional[str] = typer.Option(None, help="Only show one platform."),
):
    """List the user's stored games, most recently played first."""
    selected = None
    if platform:
        try:
            selected = Platform.parse(platform)
        except ValueError as e:
            console.print(f"[bold red]✘[/bold red] {e}")
            raise typer.Exit(1)

    games = _store().list_games(user, selected)
    if not games:
        console.print(f"[dim]No games for {user}.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan", title=f"{user} ({len(games)})")
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Title")
    table.add_column("Platform")
    table.add_column("Playtime", justify="right")
    table.add_column("Last played")
    for game in games:
        title = game.title + (" [dim](manual)[/dim]" if game.is_manually_added else "")
        table.add_row(
            game.id,
            title,
            game.platform.value,
            _fmt_minutes(game.playtime_minutes),
            _fmt_date(game.last_played),
        )
    console.print(table)


@app.command("enrich")
def cmd_enrich(
    user: str = typer.Argument(..., help=HELP_USER),
    api_key: Optional[str] = typer.Option(None, help="RAWG API key (overrides settings)."),
):
    """Fill missing descriptions, developers, publishers and genres from RAWG."""
    provider = RawgProvider(api_key or state.settings.get("rawg_api_key"))
    if not provider.is_configured():
        console.print("[bold red]✘[/bold red] RAWG API key not configured.")
        raise typer.Exit(1)

    store = _store()
    ids = [g.id for g in store.list_games(user) if not g.description]
    count = Enricher(store, provider).enrich(user, ids)
    console.print(f"[bold green]✔[/bold green] Enriched {count} of {len(ids)} games.")


@app.command("import")
def cmd_import(
    user: str = typer.Argument(..., help=HELP_USER),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON or CSV file."),
    fmt: Optional[str] = typer.Option(None, "--format", help="json or csv (default: file extension)."),
):
    """
    [bold blue]Manual import[/bold blue]

    Adds GOG games from a JSON or CSV file; see [bold]template[/bold].
    """
    content = file.read_text(encoding="utf-8")
    try:
        games = parse_import(content, fmt or detect_format(file))
    except ImportFormatError as e:
        console.print(f"[bold red]✘[/bold red] {e}")
        raise typer.Exit(1)

    try:
        report = LibrarySync(_store(), []).import_games(user, games)
    except PersistenceError as e:
        console.print(f"[bold red]✘[/bold red] Import failed: {format_exception_chain(e)}")
        raise typer.Exit(1)
    console.print(
        f"[bold green]✔[/bold green] Imported {len(games)} games "
        f"({report.inserted} new, {report.updated} updated)"
    )


@app.command("template")
def cmd_template(fmt: str = typer.Argument("csv", help="csv or json")):
    """Print an import template."""
    fmt = fmt.lower()
    if fmt == "csv":
        typer.echo(csv_template())
    elif fmt == "json":
        typer.echo(json_template())
    else:
        console.print(f"[bold red]✘[/bold red] Unknown format: {fmt}")
        raise typer.Exit(1)


@app.command("remove")
def cmd_remove(
    user: str = typer.Argument(..., help=HELP_USER),
    game_id: str = typer.Argument(..., help="Game id, e.g. gog-gog_1207658930"),
):
    """Remove a manually added game. Synced games cannot be removed."""
    try:
        removed = _store().remove_manual_game(user, game_id)
    except EntryNotFoundError as e:
        console.print(f"[bold red]✘[/bold red] {e}")
        raise typer.Exit(1)
    if not removed:
        console.print(f"[bold red]✘[/bold red] {game_id} was not added manually.")
        raise typer.Exit(1)
    console.print(f"[bold green]✔[/bold green] Removed {game_id}")


def main():
    app()


if __name__ == "__main__":
    main()
