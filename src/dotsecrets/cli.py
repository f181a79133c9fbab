"""CLI interface for dotsecrets."""

import functools
import os
import sys

import click
from rich.console import Console
from rich.table import Table
from tabulate import tabulate

from dotsecrets import __version__
from dotsecrets.core.backend import get_backend, get_config, get_registry, save_config
from dotsecrets.core.backend.factory import BACKEND_TYPES
from dotsecrets.core.credentials import (
    PassphraseProvider,
    PromptPassphrase,
    StaticPassphrase,
)
from dotsecrets.core.models import TrackedPathStatus
from dotsecrets.core.sync import DEFAULT_GROUP, SyncOrchestrator
from dotsecrets.errors import SecretsError
from dotsecrets.logging_config import configure_logging
from dotsecrets.utils.progress import chunk_progress, progress_spinner

console = Console(stderr=True)
stdout_console = Console()

PASSPHRASE_ENV = "SECRETS_PASSPHRASE"

FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "simple", "plain"]),
    default="rich",
    help="Output format (rich=styled, simple=tabulate, plain=no borders)",
)


def handle_errors(func):
    """Report SecretsError as a one-line local/remote failure and exit 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SecretsError as e:
            console.print(f"[red]✗ {e.where} error:[/red] {e}")
            sys.exit(1)

    return wrapper


def _credentials() -> PassphraseProvider:
    value = os.environ.get(PASSPHRASE_ENV)
    if value:
        return StaticPassphrase(value)
    return PromptPassphrase()


def _orchestrator(confirm: bool | None = None) -> SyncOrchestrator:
    """Build the orchestrator for the configured backend.

    Args:
        confirm: Ask for the passphrase up front (twice when True) so the
            prompt never competes with a progress display.
    """
    credentials = _credentials()
    if confirm is not None:
        credentials.get_passphrase(confirm=confirm)

    config = get_config()
    registry = get_registry(config)
    backend = get_backend(credentials=credentials)
    return SyncOrchestrator(backend, registry, credentials, home=registry.home)


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """dotsecrets - Encrypted sync for the secret files in your home directory."""
    configure_logging(verbose=verbose)


@cli.command()
@click.argument("path")
@handle_errors
def add(path: str):
    """Track a file or directory."""
    registry = get_registry()
    added, entry = registry.add(path)

    if added:
        stdout_console.print(f"[green]✓ Tracking[/green] [cyan]~/{entry}[/cyan]")
    else:
        stdout_console.print(f"[yellow]Already tracked:[/yellow] [cyan]~/{entry}[/cyan]")


@cli.command()
@click.argument("path")
@handle_errors
def remove(path: str):
    """Stop tracking a file or directory."""
    registry = get_registry()
    removed, entry = registry.remove(path)

    if removed:
        stdout_console.print(f"[green]✓ Stopped tracking[/green] [cyan]~/{entry}[/cyan]")
    else:
        stdout_console.print(f"[yellow]Not tracked:[/yellow] [cyan]~/{entry}[/cyan]")


@cli.command("list")
@FORMAT_OPTION
@handle_errors
def list_paths(output_format: str):
    """List tracked paths and whether they exist."""
    registry = get_registry()
    statuses = registry.status()

    if not statuses:
        console.print(
            "[yellow]No paths tracked yet. Use[/yellow] "
            "[cyan]dotsecrets add[/cyan] [yellow]to get started.[/yellow]"
        )
        return

    if output_format == "rich":
        _print_rich_paths(statuses)
    else:
        tablefmt = "simple" if output_format == "simple" else "plain"
        table_data = [
            [f"~/{s.path}", "✓ present" if s.exists else "✗ missing"]
            for s in statuses
        ]
        print(tabulate(table_data, headers=["Path", "Status"], tablefmt=tablefmt))


def _print_rich_paths(statuses: list[TrackedPathStatus]) -> None:
    table = Table(
        title="[bold]Tracked Paths[/bold]", show_header=True, header_style="bold"
    )
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("Status")

    for status in statuses:
        if status.exists:
            table.add_row(f"~/{status.path}", "[green]✓ present[/green]")
        else:
            table.add_row(f"~/{status.path}", "[red]✗ missing[/red]")

    stdout_console.print(table)


@cli.command()
@handle_errors
def status():
    """Summarize tracked paths. Exits 1 if any are missing."""
    registry = get_registry()
    statuses = registry.status()

    if not statuses:
        console.print("[yellow]No paths tracked.[/yellow]")
        return

    missing = [s for s in statuses if not s.exists]
    present = len(statuses) - len(missing)
    stdout_console.print(
        f"[cyan]Tracked:[/cyan] {len(statuses)}  "
        f"[green]present:[/green] {present}  [red]missing:[/red] {len(missing)}"
    )
    for s in missing:
        console.print(f"  [red]✗[/red] ~/{s.path}")

    if missing:
        sys.exit(1)


@cli.command()
@click.argument("group", default=DEFAULT_GROUP)
@handle_errors
def push(group: str):
    """Encrypt tracked files and upload them to GROUP."""
    orchestrator = _orchestrator(confirm=True)

    with chunk_progress(f"Pushing {group}") as advance:
        result = orchestrator.push(group, on_chunk=advance)

    stdout_console.print(f"[green]✓ Pushed group[/green] [cyan]{result.group}[/cyan]")
    stdout_console.print(f"  [cyan]Files:[/cyan] {len(result.files)}")
    stdout_console.print(f"  [cyan]Size:[/cyan] {_format_size(result.size)}")
    stdout_console.print(f"  [cyan]Chunks:[/cyan] {result.chunks}")
    if result.removed:
        stdout_console.print(f"  [dim]→ removed {result.removed} stale chunk(s)[/dim]")


@cli.command()
@click.argument("group", default=DEFAULT_GROUP)
@click.option(
    "--dest",
    type=click.Path(file_okay=False),
    help="Restore under this directory instead of home",
)
@handle_errors
def pull(group: str, dest: str | None):
    """Download GROUP, decrypt it and restore the files."""
    orchestrator = _orchestrator(confirm=False)

    with chunk_progress(f"Pulling {group}") as advance:
        result = orchestrator.pull(group, destination=dest, on_chunk=advance)

    stdout_console.print(
        f"[green]✓ Restored {len(result.files)} file(s)[/green] "
        f"to [cyan]{result.destination}[/cyan]"
    )
    for name in result.files:
        stdout_console.print(f"  [dim]→[/dim] {name}")


@cli.command()
@FORMAT_OPTION
@handle_errors
def groups(output_format: str):
    """List remote groups."""
    orchestrator = _orchestrator()

    with progress_spinner("Listing groups"):
        names = orchestrator.groups()

    if not names:
        console.print(
            "[yellow]No groups stored yet. Use[/yellow] "
            "[cyan]dotsecrets push[/cyan] [yellow]first.[/yellow]"
        )
        return

    if output_format == "rich":
        table = Table(title="[bold]Groups[/bold]", show_header=True, header_style="bold")
        table.add_column("Group", style="cyan")
        for name in names:
            table.add_row(name)
        stdout_console.print(table)
    else:
        tablefmt = "simple" if output_format == "simple" else "plain"
        print(tabulate([[n] for n in names], headers=["Group"], tablefmt=tablefmt))


@cli.command()
@click.argument("group", default=DEFAULT_GROUP)
@handle_errors
def show(group: str):
    """Show what was last pushed to GROUP."""
    orchestrator = _orchestrator()

    with progress_spinner(f"Reading metadata for {group}"):
        metadata = orchestrator.show(group)

    uploaded = metadata.uploaded.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    stdout_console.print(f"\n[bold cyan]{group}[/bold cyan]")
    stdout_console.print(f"[cyan]Files:[/cyan] {metadata.file_count}")
    stdout_console.print(f"[cyan]Size:[/cyan] {_format_size(metadata.size)}")
    stdout_console.print(f"[cyan]Chunks:[/cyan] {metadata.chunks}")
    stdout_console.print(f"[cyan]Uploaded:[/cyan] {uploaded}")
    for name in metadata.files:
        stdout_console.print(f"  [green]•[/green] {name}")


@cli.command()
@click.argument("group")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@handle_errors
def delete(group: str, yes: bool):
    """Delete GROUP from the backend."""
    if not yes:
        click.confirm(f"Delete remote group '{group}'?", abort=True)

    orchestrator = _orchestrator()
    with progress_spinner(f"Deleting {group}"):
        orchestrator.delete(group)

    stdout_console.print(f"[green]✓ Deleted group[/green] [cyan]{group}[/cyan]")


# Backend management commands
@cli.group()
def backend():
    """Manage the storage backend.

    dotsecrets supports three backends:
    - kv: Cloudflare Worker + KV over HTTP (SECRETS_URL)
    - notes: Bitwarden secure notes via the bw CLI
    - local: A directory on disk
    """
    pass


@backend.command("show")
@handle_errors
def backend_show():
    """Show current backend configuration."""
    config = get_config()
    current_backend = config.get("backend", "kv")

    stdout_console.print("[bold]Backend Configuration[/bold]\n")
    stdout_console.print(f"[cyan]Current backend:[/cyan] {current_backend}")

    if current_backend == "kv":
        kv_config = config.get("kv", {})
        token_source = "configured" if kv_config.get("token") else "passphrase"
        stdout_console.print(f"[cyan]Worker URL:[/cyan] {kv_config.get('url') or '-'}")
        stdout_console.print(f"[cyan]Bearer token:[/cyan] {token_source}")
    elif current_backend == "notes":
        notes_config = config.get("notes", {})
        stdout_console.print(
            f"[cyan]Label prefix:[/cyan] {notes_config.get('label_prefix')}"
        )
        stdout_console.print(
            f"[cyan]Chunk limit:[/cyan] {notes_config.get('max_chunks')} x "
            f"{notes_config.get('max_chunk_size')} chars"
        )
    elif current_backend == "local":
        local_config = config.get("local", {})
        stdout_console.print(f"[cyan]Data directory:[/cyan] {local_config.get('data_dir')}")

    stdout_console.print(f"\n[cyan]Registry file:[/cyan] {config.get('registry_file')}")
    stdout_console.print(f"[cyan]Home:[/cyan] {config.get('home')}")


@backend.command("set")
@click.argument("backend_type", type=click.Choice(BACKEND_TYPES))
@click.option("--url", help="Worker URL (for kv backend)")
@click.option("--label-prefix", help="Note name prefix (for notes backend)")
@click.option("--max-chunks", type=int, help="Chunk budget (for notes backend)")
@click.option("--data-dir", help="Data directory (for local backend)")
@handle_errors
def backend_set(
    backend_type: str,
    url: str | None,
    label_prefix: str | None,
    max_chunks: int | None,
    data_dir: str | None,
):
    """Set the active backend.

    Examples:
        dotsecrets backend set kv --url https://secrets.example.workers.dev
        dotsecrets backend set notes --label-prefix "dotfiles/"
    """
    config = get_config(include_env=False)
    config["backend"] = backend_type

    if backend_type == "kv":
        if url:
            config.setdefault("kv", {})["url"] = url
    elif backend_type == "notes":
        if label_prefix:
            config.setdefault("notes", {})["label_prefix"] = label_prefix
        if max_chunks:
            config.setdefault("notes", {})["max_chunks"] = max_chunks
    elif backend_type == "local":
        if data_dir:
            config.setdefault("local", {})["data_dir"] = data_dir

    save_config(config)

    stdout_console.print(f"[green]✓ Backend set to:[/green] {backend_type}")


if __name__ == "__main__":
    cli()
