"""Typer-based CLI for contextscan."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from . import __version__
from .config import ScanOptions, config_path, load_config, save_config
from .context import format_codebase_context
from .docs_client import DocumentationGenerator
from .errors import ContextScanError, WorkspaceInitError
from .models import ALL_ARTIFACT_KINDS, CORE_ARTIFACT_KINDS
from .orchestrator import ScanOrchestrator
from .scan_cache import build_scan_metadata, has_changes
from .storage import ArtifactStore

app = typer.Typer(
    help="contextscan: extract grounding artifacts from a codebase.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

PATH_OPTION = typer.Option(Path("."), "--path", "-p", exists=True, file_okay=False, help="Workspace root.")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"contextscan v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Scan a workspace into structured artifacts for AI assistants."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _check_kind(kind: str) -> str:
    if kind not in ALL_ARTIFACT_KINDS:
        raise typer.BadParameter(f"Unknown artifact kind '{kind}'. Choose from: {', '.join(ALL_ARTIFACT_KINDS)}")
    return kind


def _open_store(path: Path) -> ArtifactStore:
    store = ArtifactStore(path.resolve())
    try:
        store.init_workspace()
    except WorkspaceInitError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    return store


@app.command("scan")
def scan(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Workspace to scan."),
    docs: bool = typer.Option(False, "--docs", help="Generate markdown documentation after the scan."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-engine timeout in seconds."),
    only: Optional[List[str]] = typer.Option(None, "--only", help="Only run the given artifact kind(s)."),
):
    """Run the extraction engines and store their artifacts."""
    workspace = path.resolve()
    options = load_config(workspace)
    if timeout is not None:
        options.engine_timeout = timeout
    if docs:
        options.generate_docs = True
    if only:
        unknown = [kind for kind in only if kind not in CORE_ARTIFACT_KINDS]
        if unknown:
            raise typer.BadParameter(
                f"Unknown kind(s) {', '.join(unknown)}. Choose from: {', '.join(CORE_ARTIFACT_KINDS)}"
            )

    generator = None
    if options.generate_docs:
        generator = DocumentationGenerator(
            endpoint=options.docs_endpoint,
            api_key=os.environ.get("CONTEXTSCAN_DOCS_API_KEY"),
        )

    store = ArtifactStore(workspace)
    console.print(f"\n[bold cyan]Scanning {workspace}...[/bold cyan]\n")

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Starting...", total=100)

        def on_progress(stage: str, percent: int, message: Optional[str]) -> None:
            progress.update(task, completed=percent, description=f"[cyan]{message or stage}")

        orchestrator = ScanOrchestrator(
            workspace, store=store, options=options, progress=on_progress, doc_generator=generator,
        )
        try:
            result = orchestrator.scan(only or None)
        except WorkspaceInitError as exc:
            console.print(f"[red]✗[/red] {exc}")
            raise typer.Exit(1)

    table = Table(title="Artifacts", show_header=True)
    table.add_column("Kind", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Status")
    for kind, artifact in result.artifacts.items():
        status = "[yellow]incomplete[/yellow]" if artifact.incomplete else "[green]ok[/green]"
        table.add_row(kind, str(artifact.file_count), str(artifact.error_count), status)
    console.print(table)

    for error in result.errors:
        console.print(f"[yellow]⚠[/yellow] {error.stage}: {error.message}")
    if result.cancelled:
        console.print("[yellow]Scan cancelled.[/yellow]")
        return

    try:
        store.save_scan_metadata(build_scan_metadata(workspace, options))
    except ContextScanError as exc:
        console.print(f"[yellow]⚠[/yellow] Could not save scan cache: {exc}")

    console.print(f"\n[green]✓[/green] Scan finished in {result.duration_ms} ms")


@app.command("list")
def list_artifacts(path: Path = PATH_OPTION):
    """List stored artifacts."""
    store = _open_store(path)
    artifacts = store.list_stored_artifacts()
    if not artifacts:
        typer.echo("No artifacts stored yet. Run 'contextscan scan' first.")
        raise typer.Exit(code=0)

    table = Table(show_header=True)
    table.add_column("Kind", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Generated (UTC)")
    table.add_column("Files", justify="right")
    table.add_column("Errors", justify="right")
    for artifact in artifacts:
        meta = artifact.metadata
        kind = f"{artifact.kind} [yellow](incomplete)[/yellow]" if artifact.incomplete else artifact.kind
        table.add_row(kind, str(meta.version), meta.generated_at_utc, str(meta.file_count), str(meta.error_count))
    console.print(table)


@app.command("show")
def show(
    kind: str = typer.Argument(..., help="Artifact kind to print."),
    path: Path = PATH_OPTION,
):
    """Print the content of a stored artifact."""
    _check_kind(kind)
    artifact = _open_store(path).load_artifact(kind)
    if artifact is None:
        console.print(f"[red]✗[/red] No stored '{kind}' artifact.")
        raise typer.Exit(1)
    typer.echo(artifact.content)


@app.command("restore")
def restore(
    kind: str = typer.Argument(..., help="Artifact kind to roll back."),
    path: Path = PATH_OPTION,
):
    """Roll an artifact back to its previous version."""
    _check_kind(kind)
    store = _open_store(path)
    try:
        restored = store.restore_previous(kind)
    except ContextScanError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    if not restored:
        console.print(f"[yellow]No previous version of '{kind}' to restore.[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Restored previous '{kind}' artifact.")


@app.command("changes")
def changes(path: Path = PATH_OPTION):
    """Report whether the workspace changed since the last scan."""
    workspace = path.resolve()
    store = _open_store(workspace)
    previous = store.load_scan_metadata()
    if previous is None:
        typer.echo("No previous scan recorded.")
        return
    current = build_scan_metadata(workspace, load_config(workspace))
    if has_changes(previous, current):
        typer.echo(f"Changes detected since {previous.timestamp} ({current.file_count} files).")
    else:
        typer.echo(f"No changes since {previous.timestamp}.")


@app.command("context")
def context(path: Path = PATH_OPTION):
    """Print the codebase context handed to chat assistants."""
    text = format_codebase_context(_open_store(path))
    if text is None:
        typer.echo("No artifacts stored yet. Run 'contextscan scan' first.")
        raise typer.Exit(1)
    typer.echo(text)


@app.command("init")
def init(path: Path = PATH_OPTION):
    """Create the control directory and a default config file."""
    workspace = path.resolve()
    store = _open_store(workspace)
    if store.memory_only:
        console.print("[red]✗[/red] Workspace is read-only; cannot write a config file.")
        raise typer.Exit(1)
    target = config_path(workspace)
    if target.exists():
        typer.echo(f"Config already exists at {target}")
        return
    save_config(workspace, ScanOptions())
    typer.echo(f"Wrote {target}")
