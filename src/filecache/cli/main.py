"""
CLI for inspecting and maintaining a cache directory.

Commands:
    filecache config - Show current configuration
    filecache buckets - List bucket files with their sizes
    filecache size - Print the total size of the cache directory
    filecache clean BUCKET - Drop expired entries from a bucket
    filecache remove BUCKET - Delete a bucket
    filecache purge - Delete bucket files in bulk
    filecache version - Print version
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from filecache import __version__
from filecache.cacher import Cacher
from filecache.config import Settings, clear_settings_cache, get_settings
from filecache.exceptions import FileCacheError
from filecache.logging import setup_logging

app = typer.Typer(
    name="filecache",
    help="File-persisted key/value cache maintenance",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

DirOption = Annotated[
    Optional[Path],
    typer.Option("--dir", "-d", help="Cache directory (defaults to FILECACHE_DIR)"),
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError:
        return None


def _open_cacher(directory: Path | None) -> Cacher:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'filecache config' to see what's wrong."
        )
        raise typer.Exit(1)

    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    try:
        return Cacher(
            directory or settings.FILECACHE_DIR,
            ext=settings.FILECACHE_EXT,
            default_ttl=settings.FILECACHE_DEFAULT_TTL,
        )
    except FileCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


@app.command()
def config() -> None:
    """Show the current configuration."""
    settings = _get_settings_safe()
    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check these environment variables:")
        error_console.print("  - FILECACHE_EXT (must start with '.')")
        error_console.print("  - FILECACHE_DEFAULT_TTL (seconds, greater than 0)")
        error_console.print("  - LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def buckets(directory: DirOption = None) -> None:
    """List bucket files with their sizes."""
    cacher = _open_cacher(directory)
    names = cacher.list_buckets()
    if not names:
        console.print(f"[yellow]No buckets in {cacher.directory}[/yellow]")
        return

    table = Table(title=str(cacher.directory), show_header=True)
    table.add_column("Bucket", style="cyan")
    table.add_column("Size", style="green", justify="right")
    for name in names:
        table.add_row(name, _format_size(cacher.bucket_size(name)))

    console.print(table)


@app.command()
def size(
    directory: DirOption = None,
    raw: Annotated[bool, typer.Option("--bytes", help="Print a plain byte count")] = False,
) -> None:
    """Print the total size of the cache directory."""
    cacher = _open_cacher(directory)
    total = cacher.get_total_size()
    if raw:
        console.print(total)
    else:
        console.print(f"{_format_size(total)} in {cacher.directory}")


@app.command()
def clean(
    bucket: Annotated[str, typer.Argument(help="Bucket name")],
    directory: DirOption = None,
) -> None:
    """Drop expired entries from a bucket."""
    cacher = _open_cacher(directory)
    try:
        removed = cacher.clean_bucket(bucket)
    except (FileCacheError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"Removed {removed} expired entr{'y' if removed == 1 else 'ies'} from {bucket}")


@app.command()
def remove(
    bucket: Annotated[str, typer.Argument(help="Bucket name")],
    directory: DirOption = None,
) -> None:
    """Delete a bucket and its file."""
    cacher = _open_cacher(directory)
    try:
        removed = cacher.remove_bucket(bucket)
    except (FileCacheError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    if not removed:
        error_console.print(f"[yellow]Bucket {bucket} does not exist.[/yellow]")
        raise typer.Exit(1)
    console.print(f"Removed bucket {bucket}")


@app.command()
def purge(
    prefix: Annotated[
        Optional[str],
        typer.Option("--prefix", "-p", help="Only remove buckets whose name starts with this"),
    ] = None,
    directory: DirOption = None,
) -> None:
    """Delete bucket files in bulk."""
    cacher = _open_cacher(directory)
    try:
        removed = cacher.remove_all_by(lambda filename: prefix is None or filename.startswith(prefix))
    except FileCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"Removed {removed} bucket file{'' if removed == 1 else 's'}")


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"filecache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
