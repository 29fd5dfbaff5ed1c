"""CLI for clawdrop."""

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from .api import ControlPlaneClient
from .config import (
    Settings,
    clear_target,
    get_api_key,
    load_settings,
    load_target,
    save_target,
)
from .constants import MANIFEST_NAME, SUPPORTED_PLATFORMS
from .core import DiffResult, FileIndex, ReservedNames
from .diffing import compute_diff
from .errors import ClawdropError, IoError
from .indexer import build_index
from .progress_display import RichTransferObserver
from .protocol import PushRequest, SyncState, push as run_push
from .utils import atomic_write_text, humanize_size, humanize_speed

app = typer.Typer(help="""\
Differential build publishing for Raccreative games. Index a local build,
compare it with the last published one, and upload only what changed.""")

console = Console()


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )
    else:
        logging.basicConfig(level=logging.WARNING)


def _fail(error: Exception) -> NoReturn:
    console.print(f"[red]✗[/red] {error}")
    raise typer.Exit(1)


def _make_client(settings: Settings) -> ControlPlaneClient:
    return ControlPlaneClient(
        get_api_key(),
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
    )


def _split_patterns(values: List[str]) -> List[str]:
    """Each --ignore value may hold several whitespace-separated patterns."""
    return [pattern for value in values for pattern in value.split()]


def _read_index(path: Path) -> FileIndex:
    try:
        return FileIndex.from_json(path.read_text())
    except OSError as e:
        raise IoError(f"Cannot read {path}: {e}", path=str(path)) from e
    except ValueError as e:
        raise IoError(f"{path} is not a valid fileindex: {e}", path=str(path)) from e


def _print_diff(diff: DiffResult) -> None:
    for record in diff.added:
        console.print(f"  [green]+[/green] {record.path} ({humanize_size(record.size)})")
    for record in diff.modified:
        console.print(f"  [yellow]~[/yellow] {record.path} ({humanize_size(record.size)})")
    for record in diff.deleted:
        console.print(f"  [red]-[/red] {record.path}")


@app.callback()
def cli(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose/debug logging output"
    ),
):
    """Publish game builds to Raccreative."""
    _configure_logging(verbose)


@app.command()
def push(
    shorthand: Optional[str] = typer.Argument(
        None, help="<id>:<os>/<executable>:<version> (id and version optional)"
    ),
    game_id: Optional[int] = typer.Option(None, "--id", help="Game ID"),
    os_name: Optional[str] = typer.Option(None, "--os", help="windows, linux, mac or html"),
    exe: Optional[str] = typer.Option(None, "--exe", help="Executable name inside the build"),
    version: Optional[str] = typer.Option(None, "--version", help="Version to publish"),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Build directory"),
    ignore: List[str] = typer.Option(
        [], "--ignore", "-i", help="Exclude patterns, space separated (repeatable)"
    ),
    no_bump: bool = typer.Option(False, "--no-bump", help="Reuse the current version as-is"),
    force: bool = typer.Option(False, "--force", help="Upload every file even if unchanged"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose/debug logging output"),
):
    """Push a build directory, uploading only what changed.

    Examples:
        clawdrop push 32:windows/game.exe:1.0.1
        clawdrop push linux/game.x86_64 --path build/linux
        clawdrop push --os html --exe index.html --ignore "*.map"
    """
    if verbose:
        _configure_logging(True)

    request = PushRequest(
        build_dir=path,
        shorthand=shorthand,
        game_id=game_id,
        os=os_name,
        exe=exe,
        version=version,
        exclude=_split_patterns(ignore),
        no_bump=no_bump,
        force=force,
    )
    observer = RichTransferObserver(console)

    def on_state(state: SyncState) -> None:
        if state is SyncState.BUILD_LOCAL_INDEX:
            console.print("[bold]Indexing build...[/bold]")
        elif state is SyncState.DIFF:
            console.print("[bold]Analyzing changes...[/bold]")
        elif state is SyncState.VERIFY_UPLOAD:
            console.print("[bold]Verifying upload...[/bold]")
        elif state is SyncState.FINALIZE:
            console.print("[bold]Finalizing...[/bold]")

    try:
        settings = load_settings()
        client = _make_client(settings)
        outcome = run_push(request, client, settings, observer=observer, on_state=on_state)
    except ClawdropError as e:
        observer.close()
        _fail(e)

    if outcome.nothing_to_do:
        console.print(
            "[green]✓[/green] No changes to upload or delete, "
            "you can use --force to upload all files again."
        )
        return

    console.print(outcome.diff.summary())
    params = outcome.params
    console.print(
        f"[green]✓[/green] Published game {params.id} ({params.os}) version "
        f"[bold]{params.version}[/bold]"
    )
    console.print(
        f"[dim]Uploaded {humanize_size(outcome.uploaded_bytes)} "
        f"({humanize_speed(outcome.upload_speed)}), "
        f"deleted {outcome.deleted} object(s), archive {outcome.archive_name}[/dim]"
    )


@app.command()
def index(
    path: Path = typer.Argument(Path("."), help="Build directory"),
    ignore: List[str] = typer.Option(
        [], "--ignore", "-i", help="Exclude patterns, space separated (repeatable)"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON to this file"),
):
    """Print or write the fileindex of a build directory."""
    try:
        local = build_index(path, _split_patterns(ignore))
        text = local.to_json(indent=2)
        if output is None:
            typer.echo(text)
            return
        try:
            atomic_write_text(output, text)
        except OSError as e:
            raise IoError(f"Cannot write {output}: {e}", path=str(output)) from e
    except ClawdropError as e:
        _fail(e)
    console.print(
        f"[green]✓[/green] Indexed {len(local)} files "
        f"({humanize_size(local.total_size)}) into {output}"
    )


@app.command()
def diff(
    local_index: Path = typer.Argument(..., help="Local fileindex JSON"),
    remote_index: Path = typer.Argument(..., help="Remote fileindex JSON"),
    original_zip: Optional[str] = typer.Option(
        None, "--original-zip", help="Archive name the server keeps remotely"
    ),
):
    """Show what a push would upload and delete between two fileindexes."""
    try:
        local = _read_index(local_index)
        remote = _read_index(remote_index)
    except ClawdropError as e:
        _fail(e)

    reserved = ReservedNames(manifest_suffix=MANIFEST_NAME, original_archive_name=original_zip)
    result = compute_diff(local, remote, reserved)
    if result.is_empty:
        console.print("[green]✓[/green] Everything up to date")
        return
    console.print(result.summary())
    _print_diff(result)


@app.command("set")
def set_target(id_or_slug: str = typer.Argument(..., help="Game ID or URL slug")):
    """Set the default game for subsequent pushes."""
    try:
        settings = load_settings()
        game = _make_client(settings).find_game(id_or_slug)
        if game is None:
            console.print(f"[red]✗[/red] No publishable game matches '{id_or_slug}'")
            raise typer.Exit(1)
        save_target(game, settings)
    except ClawdropError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Target set to {game.title} (id {game.id})")


@app.command()
def unset():
    """Forget the default game."""
    try:
        removed = clear_target(load_settings())
    except (ClawdropError, OSError) as e:
        _fail(e)
    if removed:
        console.print("[green]✓[/green] Target cleared")
    else:
        console.print("[dim]No target was set[/dim]")


@app.command()
def target():
    """Show the default game and its published versions."""
    try:
        game = load_target(load_settings())
    except ClawdropError as e:
        _fail(e)
    if game is None:
        console.print("[dim]No target set. Use 'clawdrop set <id>'.[/dim]")
        return

    table = Table(title=f"{game.title} (id {game.id})")
    table.add_column("Platform", style="cyan")
    table.add_column("Version")
    for platform in SUPPORTED_PLATFORMS:
        table.add_row(platform, game.version_for(platform) or "-")
    console.print(table)
    if game.url_identifier:
        console.print(f"[dim]Slug: {game.url_identifier}[/dim]")


@app.command("list")
def list_games():
    """List the games this API key may publish."""
    try:
        games = _make_client(load_settings()).list_games()
    except ClawdropError as e:
        _fail(e)
    if not games:
        console.print("[dim]No games found.[/dim]")
        return

    table = Table(title="Games")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Title")
    table.add_column("Slug")
    for platform in SUPPORTED_PLATFORMS:
        table.add_column(platform.capitalize())
    for game in games:
        table.add_row(
            str(game.id),
            game.title,
            game.url_identifier or "-",
            *(game.version_for(p) or "-" for p in SUPPORTED_PLATFORMS),
        )
    console.print(table)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
