"""CLI interface for spacemap."""

import logging
import os
from concurrent.futures import wait
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.logging import RichHandler

from spacemap import __version__
from spacemap.cache import CacheStore
from spacemap.config import Settings, cache_dir, load_settings, save_settings, settings_path
from spacemap.display import (
    console,
    show_breadcrumbs,
    show_cache_info,
    show_children_table,
    show_scan_summary,
    show_scanning_progress,
    show_stale_warning,
    show_treemap,
    truncate_path,
)
from spacemap.models import Node
from spacemap.session import ScanSession
from spacemap.staleness import check_staleness, format_age

# Create Typer app
app = typer.Typer(
    name="spacemap",
    help="Disk usage explorer - scan a folder and see where the space went",
    add_completion=False,
)
cache_app = typer.Typer(help="Inspect or clear cached scans.")
app.add_typer(cache_app, name="cache")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"spacemap version {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logging."),
) -> None:
    """spacemap - disk usage scanner with a squarified treemap view."""
    setup_logging(verbose)


def _settings_with_overrides(
    depth: Optional[int] = None,
    exclude: Optional[list[str]] = None,
    top: Optional[int] = None,
) -> Settings:
    settings = load_settings()
    update: dict = {}
    if depth is not None:
        update["max_scan_depth"] = depth
    if exclude:
        update["excluded_folders"] = [*settings.excluded_folders, *exclude]
    if top is not None:
        update["max_children_display"] = top
    return settings.model_copy(update=update) if update else settings


def _run_scan(session: ScanSession, path: Path, rescan: bool) -> None:
    """Run a scan with a spinner; Ctrl-C cancels it."""
    with show_scanning_progress() as progress:
        task = progress.add_task("Scanning...", total=None)
        future = session.start_scan(path, force=rescan)
        try:
            while not future.done():
                wait([future], timeout=0.1)
                current = session.latest_progress
                if current:
                    progress.update(task, description=f"Scanning {truncate_path(current, 60)}")
        except KeyboardInterrupt:
            session.cancel_scan()

        try:
            result = future.result()
        except OSError as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(1)

    if result is None:
        console.print(f"[yellow]{session.status}[/yellow]")
        raise typer.Exit(1)


def _open(session: ScanSession, open_path: Optional[Path]) -> Node:
    if open_path is None:
        return session.current_node
    node = session.open_path(open_path)
    if node is None:
        console.print(f"[red]Not found in scan: {escape(str(open_path))}[/red]")
        raise typer.Exit(1)
    return node


@app.command()
def scan(
    path: Path = typer.Argument(Path("."), help="Folder to scan"),
    depth: Optional[int] = typer.Option(
        None, "--depth", "-d", min=0, help="Levels to load up front (0 = default)"
    ),
    rescan: bool = typer.Option(False, "--rescan", "-r", help="Ignore the cache and scan again"),
    exclude: Optional[list[str]] = typer.Option(
        None, "--exclude", "-x", help="Extra folder name to skip (repeatable)"
    ),
    top: Optional[int] = typer.Option(None, "--top", "-n", min=0, help="Show only the largest N entries"),
    open_path: Optional[Path] = typer.Option(
        None, "--open", "-o", help="Show a subfolder, loading deeper levels as needed"
    ),
) -> None:
    """Scan a folder and list its largest entries."""
    settings = _settings_with_overrides(depth, exclude, top)
    store = CacheStore(cache_dir())

    with ScanSession(store, settings) as session:
        _run_scan(session, path, rescan)
        show_scan_summary(session.result, session.cache_info())
        show_stale_warning(session.staleness())

        node = _open(session, open_path)
        show_breadcrumbs(node)
        show_children_table(node, settings.max_children_display)


@app.command()
def treemap(
    path: Path = typer.Argument(Path("."), help="Folder to scan"),
    width: Optional[int] = typer.Option(None, "--width", "-w", min=10, help="Map width in columns"),
    height: int = typer.Option(24, "--height", "-h", min=4, help="Map height in rows"),
    rescan: bool = typer.Option(False, "--rescan", "-r", help="Ignore the cache and scan again"),
    open_path: Optional[Path] = typer.Option(
        None, "--open", "-o", help="Draw a subfolder, loading deeper levels as needed"
    ),
) -> None:
    """Draw a squarified treemap of a folder."""
    settings = load_settings()
    store = CacheStore(cache_dir())

    with ScanSession(store, settings) as session:
        _run_scan(session, path, rescan)
        show_stale_warning(session.staleness())

        node = _open(session, open_path)
        show_treemap(node, width=width, height=height, max_children=settings.max_children_display)
        console.print(f"[dim]{session.summary()}[/dim]")


@cache_app.command("info")
def cache_info(path: Path = typer.Argument(Path("."), help="Scanned folder")) -> None:
    """Show the cache file and age for a folder."""
    settings = load_settings()
    store = CacheStore(cache_dir())
    root = os.path.abspath(path)

    cache_time = store.get_cache_time(root)
    info = f"Cached  {format_age(cache_time)}" if cache_time else "No cache"
    show_cache_info(root, str(store.cache_path(root)), info, check_staleness(cache_time, settings.cache_max_age_days))


@cache_app.command("clear")
def cache_clear(path: Path = typer.Argument(Path("."), help="Scanned folder")) -> None:
    """Delete the cached scan for a folder."""
    store = CacheStore(cache_dir())
    root = os.path.abspath(path)
    if not store.has_cache(root):
        console.print("[yellow]No cache for this folder.[/yellow]")
        return
    store.delete(root)
    console.print(f"[green]Cache cleared for {root}[/green]")


@app.command()
def config(
    exclude: Optional[list[str]] = typer.Option(
        None, "--exclude", "-x", help="Replace the excluded folder names (repeatable)"
    ),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=0, help="Initial scan depth (0 = default)"),
    max_age: Optional[int] = typer.Option(None, "--max-age", min=0, help="Cache age warning in days (0 = off)"),
    max_children: Optional[int] = typer.Option(
        None, "--max-children", min=0, help="Entries shown per folder (0 = all)"
    ),
) -> None:
    """Show or change settings."""
    settings = load_settings()
    update: dict = {}
    if exclude is not None:
        update["excluded_folders"] = exclude
    if max_depth is not None:
        update["max_scan_depth"] = max_depth
    if max_age is not None:
        update["cache_max_age_days"] = max_age
    if max_children is not None:
        update["max_children_display"] = max_children

    if update:
        settings = settings.model_copy(update=update)
        if not save_settings(settings):
            console.print(f"[red]Could not write {settings_path()}[/red]")
            raise typer.Exit(1)
        console.print("[green]Settings saved.[/green]")

    console.print(f"[bold]Settings[/bold] [dim]({settings_path()})[/dim]")
    for key, value in settings.model_dump().items():
        console.print(f"  {key}: {value}")


@app.command()
def tui(path: Path = typer.Argument(Path("."), help="Folder to browse")) -> None:
    """Launch the interactive treemap browser."""
    try:
        from spacemap.tui import run_tui
    except ImportError:
        console.print("[red]TUI not available.[/red]")
        console.print("Install with: [bold]pip install spacemap[tui][/bold]")
        raise typer.Exit(1)

    run_tui(path)


if __name__ == "__main__":
    app()
