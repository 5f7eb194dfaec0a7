"""Nano Director CLI - story idea to a storyboard of remastered panels."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from nanodirector_core_schemas import (
    AspectRatio,
    ImageResolution,
    ProviderError,
    ServiceError,
    VisualStyle,
)
from nanodirector_generators import b64_to_bytes, bytes_to_b64
from nanodirector_storage import is_asset_ref
from nanodirector_services import (
    Destination,
    Workspace,
    get_settings,
    setup_logging,
)

app = typer.Typer(
    name="nanodirector",
    help="Turn a story idea into a directed storyboard",
    no_args_is_help=True,
)
console = Console()

shots_app = typer.Typer(help="View and edit the shot list")
app.add_typer(shots_app, name="shots")


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Configure logging before any command runs."""
    settings = get_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_file,
        verbose=verbose,
        rich=True,
    )


def resolve_project_path(project: Optional[str] = None) -> Path:
    """Resolve the project folder.

    Args:
        project: Folder path, or a name under the configured projects directory.
                 Defaults to the current directory.
    """
    if project is None:
        return Path.cwd()
    path = Path(project)
    if path.exists() or path.is_absolute():
        return path
    return get_settings().projects_dir / project


def run_async(coro):
    """Run an async coroutine.

    Handles both standalone CLI usage and environments with existing event loops
    (Jupyter notebooks, IDEs, etc.) by using nest_asyncio when needed. Service
    errors are reported and end the command.
    """
    try:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            return asyncio.run(coro)
        else:
            # Event loop already running (Jupyter, IDE, etc.)
            import nest_asyncio
            nest_asyncio.apply()
            return loop.run_until_complete(coro)
    except ProviderError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        if "GOOGLE_API_KEY" in e.message:
            console.print("\n[dim]Set your API key with:[/dim]")
            console.print('  export GOOGLE_API_KEY="your-api-key"')
        raise typer.Exit(1)
    except ServiceError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


async def open_workspace(project: Optional[str]) -> Workspace:
    """Open the project folder as the local destination and load its manifest."""
    path = resolve_project_path(project)
    workspace = Workspace.from_settings(project_dir=path, autosave=False)
    await workspace.open_local(path)
    return workspace


def run_in_project(project: Optional[str], action, save: bool = True):
    """Run ``action(workspace)`` against the project and save it afterwards."""

    async def run():
        workspace = await open_workspace(project)
        try:
            result = action(workspace)
            if asyncio.iscoroutine(result):
                result = await result
            if save:
                await workspace.save(Destination.LOCAL)
            return workspace, result
        finally:
            workspace.close()

    return run_async(run())


def print_shots(workspace: Workspace) -> None:
    script = workspace.director.state.script
    if script is None:
        console.print("[dim]No script yet. Run [cyan]nanodirector generate[/cyan] first.[/dim]")
        return

    table = Table(title=script.title or "Untitled")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Description")
    table.add_column("Camera", style="magenta")
    table.add_column("Lighting", style="yellow")
    for shot in script.shots:
        table.add_row(str(shot.number), shot.description, shot.camera_angle, shot.lighting)
    console.print(table)
    if workspace.director.state.is_script_dirty:
        console.print("[yellow]Shots were edited; the sheet prompt is rebuilt on the next generate.[/yellow]")


@app.command()
def generate(
    idea: Optional[str] = typer.Argument(None, help="Story idea (defaults to the saved idea)"),
    grid: Optional[int] = typer.Option(None, "--grid", "-g", help="Grid size (2, 3 or 4)"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Number of candidate sheets (1-4)"),
    aspect: Optional[AspectRatio] = typer.Option(None, "--aspect", "-a", help="Aspect ratio"),
    style: Optional[VisualStyle] = typer.Option(None, "--style", "-s", help="Visual style", case_sensitive=False),
    resolution: Optional[ImageResolution] = typer.Option(None, "--resolution", help="Sheet resolution"),
    ref: Optional[list[Path]] = typer.Option(None, "--ref", "-r", help="Reference image (repeatable)"),
    name: Optional[str] = typer.Option(None, "--name", help="Project name"),
    rewrite: bool = typer.Option(False, "--rewrite", help="Write a new script instead of re-rolling the current one"),
    preview: Optional[Path] = typer.Option(None, "--preview", help="Write candidate sheets as PNGs to this folder"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Write the script and generate candidate contact sheets.

    Examples:
        nanodirector generate "A detective in the rain" --grid 2 --count 2
        nanodirector generate "Two rivals race across Mars" -s anime -r hero.png
    """
    for path in ref or []:
        if not path.exists():
            console.print(f"[red]Error: Reference image not found: {path}[/red]")
            raise typer.Exit(1)

    async def do_generate(workspace: Workspace):
        director = workspace.director
        if name is not None:
            director.set_project_name(name)
        if idea is not None:
            director.set_story_idea(idea)
        if rewrite:
            director.clear_script()
        if grid is not None:
            director.set_grid_size(grid)
        if count is not None:
            director.set_candidate_count(count)
        if aspect is not None:
            director.set_aspect_ratio(aspect)
        if resolution is not None:
            director.set_resolution(grid=resolution)
        if style is not None:
            director.update_style(mode=style)
        if ref:
            director.set_ref_images([bytes_to_b64(p.read_bytes()) for p in ref])

        console.print(Panel(director.state.story_idea or "-", title="Story Idea", border_style="blue"))
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(
                f"Directing {director.state.candidate_count} candidate sheet(s)...", total=None
            )
            return await director.generate()

    workspace, candidates = run_in_project(project, do_generate)

    print_shots(workspace)
    console.print(f"\n[green]Generated {len(candidates)} candidate sheet(s).[/green]")

    if preview is not None:
        preview.mkdir(parents=True, exist_ok=True)
        for i, candidate in enumerate(candidates):
            target = preview / f"Candidate_{i + 1}.png"
            target.write_bytes(b64_to_bytes(candidate))
            console.print(f"  [dim]{target}[/dim]")

    console.print("\nNext: [cyan]nanodirector select <N>[/cyan] then [cyan]nanodirector direct[/cyan]")


@app.command()
def select(
    number: int = typer.Argument(..., help="Candidate number (1-based)"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Pick the candidate sheet to direct."""
    run_in_project(project, lambda ws: ws.director.select(number - 1))
    console.print(f"[green]Candidate {number} selected.[/green]")


@app.command()
def direct(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Split the selected sheet and remaster every panel."""

    async def do_direct(workspace: Workspace):
        director = workspace.director
        total = director.state.grid_size ** 2
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Remastering panels...", total=total)
            # The process exits after saving; nothing would await background extraction
            return await director.direct(
                on_progress=lambda done, _total: progress.update(task, completed=done),
                prefetch=False,
            )

    workspace, panels = run_in_project(project, do_direct)

    table = Table(title="Final Panels")
    table.add_column("Shot", style="cyan", justify="right")
    table.add_column("Image")
    for i, panel in enumerate(panels):
        location = panel if is_asset_ref(panel) else "(in project file)"
        table.add_row(str(i + 1), location)
    console.print(table)
    console.print(f"\n[green]Directed {len(panels)} panel(s).[/green]")


@app.command()
def prompt(
    number: int = typer.Argument(..., help="Panel number (1-based)"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Describe a final panel as a reusable image prompt."""

    async def do_extract(workspace: Workspace):
        with console.status(f"Analysing panel {number}..."):
            return await workspace.director.send_to_editor(number - 1)

    _, transfer = run_in_project(project, do_extract, save=False)
    console.print(Panel(transfer.prompt, title=f"Panel {number}", border_style="green"))
    console.print(f"[dim]{len(transfer.ref_images)} reference image(s) attached[/dim]")


@shots_app.command("list")
def shots_list(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """List the shots of the current script."""
    workspace, _ = run_in_project(project, lambda ws: None, save=False)
    print_shots(workspace)


@shots_app.command("edit")
def shots_edit(
    number: int = typer.Argument(..., help="Shot number (1-based)"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Shot description"),
    camera: Optional[str] = typer.Option(None, "--camera", "-c", help="Camera angle"),
    lighting: Optional[str] = typer.Option(None, "--lighting", "-l", help="Lighting"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Edit one shot. The sheet prompt is recompiled on the next generate."""
    if description is None and camera is None and lighting is None:
        console.print("[yellow]Nothing to change. Use --description, --camera or --lighting.[/yellow]")
        raise typer.Exit(1)

    workspace, _ = run_in_project(
        project,
        lambda ws: ws.director.edit_shot(
            number - 1, description=description, camera_angle=camera, lighting=lighting
        ),
    )
    print_shots(workspace)


@app.command()
def style(
    mode: Optional[VisualStyle] = typer.Option(None, "--mode", "-m", help="Visual style", case_sensitive=False),
    positive: Optional[str] = typer.Option(None, "--positive", help="Style text for the custom mode"),
    append: Optional[str] = typer.Option(None, "--append", help="Extra style details"),
    override: Optional[str] = typer.Option(None, "--override", help="Replace the style text entirely"),
    negative: Optional[str] = typer.Option(None, "--negative", help="Negative prompt"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Show or change the visual style. Pass an empty string to clear a text field."""
    changes = {
        key: value
        for key, value in (
            ("mode", mode),
            ("custom_positive", positive),
            ("custom_append", append),
            ("custom_override", override),
            ("custom_negative", negative),
        )
        if value is not None
    }

    workspace, _ = run_in_project(
        project,
        lambda ws: ws.director.update_style(**changes) if changes else None,
        save=bool(changes),
    )

    prefs = workspace.director.state.style_prefs
    table = Table(title="Style", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Mode", prefs.mode.value)
    table.add_row("Custom", prefs.custom_positive or "-")
    table.add_row("Append", prefs.custom_append or "-")
    table.add_row("Override", prefs.custom_override or "-")
    table.add_row("Negative", prefs.custom_negative or "[dim]default[/dim]")
    console.print(table)


@app.command()
def history(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """List earlier remaster runs, newest first."""
    workspace, _ = run_in_project(project, lambda ws: None, save=False)
    entries = workspace.director.history.entries

    if not entries:
        console.print("[dim]No history yet.[/dim]")
        return

    table = Table(title="History")
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Title")
    table.add_column("Grid", justify="center")
    table.add_column("Panels", justify="right")
    table.add_column("Style", style="magenta")
    for entry in entries:
        table.add_row(
            entry.id,
            entry.timestamp.strftime("%Y-%m-%d %H:%M"),
            entry.script.title if entry.script else "-",
            f"{entry.grid_size}x{entry.grid_size}",
            str(len(entry.final_images)),
            entry.style_prefs.mode.value,
        )
    console.print(table)


@app.command()
def restore(
    entry_id: str = typer.Argument(..., help="History entry ID"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Bring back the panels, script and style of a history entry."""
    _, entry = run_in_project(project, lambda ws: ws.director.restore_history(entry_id))
    console.print(f"[green]Restored {len(entry.final_images)} panel(s) from {entry.id}.[/green]")


@app.command()
def status(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Show project status."""
    workspace, _ = run_in_project(project, lambda ws: None, save=False)
    director = workspace.director
    state = director.state

    console.print(Panel(
        f"[bold]{state.project_name or 'Untitled'}[/bold]\n"
        f"Folder: {workspace.router.local_store.root}\n"
        f"Grid: {state.grid_size}x{state.grid_size}  Aspect: {state.aspect_ratio.value}  "
        f"Resolution: {state.grid_resolution.value} / {state.resolution.value}\n"
        f"Style: {state.style_prefs.mode.value}",
        title="Project",
        border_style="blue",
    ))

    if state.story_idea:
        console.print(f"\n[cyan]Idea:[/cyan] {state.story_idea}")
    if state.script:
        console.print(f"[cyan]Script:[/cyan] {state.script.title} ({len(state.script.shots)} shots)")
        console.print(f"[cyan]Logline:[/cyan] {state.script.logline}")

    selected = state.selected_grid_index
    console.print(f"\n[cyan]Candidates:[/cyan] {len(state.grid_candidates)}")
    console.print(f"[cyan]Selected:[/cyan] {selected + 1 if selected is not None else '-'}")
    console.print(f"[cyan]Panels:[/cyan] {len(state.final_images)}")
    console.print(f"[cyan]History:[/cyan] {len(director.history)}")
    console.print(f"[cyan]View:[/cyan] {director.display_state.value}")


@app.command("export")
def export_project(
    path: Path = typer.Argument(..., help="Target file or folder"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder (uses current directory if not specified)"),
):
    """Download the project as a single JSON file."""

    async def do_export(workspace: Workspace):
        return await workspace.save(Destination.DOWNLOAD, path=path)

    _, result = run_in_project(project, do_export, save=False)
    console.print(f"[green]Exported to {result.location}[/green]")


@app.command("import")
def import_project(
    path: Path = typer.Argument(..., help="Project JSON file"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project folder to import into (uses current directory if not specified)"),
):
    """Import a project file into the project folder."""
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)

    workspace, state = run_in_project(project, lambda ws: ws.import_file(path))
    console.print(
        f"[green]Imported '{state.project_name or 'Untitled'}' into "
        f"{workspace.router.local_store.root}[/green]"
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload for development"),
    project: Optional[Path] = typer.Option(None, "--project", help="Project folder to open on startup"),
):
    """Start the Nano Director API server."""
    import uvicorn

    from nanodirector_api.app import create_app

    console.print("\n[bold]Nano Director API Server[/bold]")
    console.print(f"  Project: {project or '(choose via /persistence/load/local)'}")
    console.print(f"  URL: http://{host}:{port}")
    console.print(f"  Docs: http://{host}:{port}/docs")
    console.print()

    if reload:
        uvicorn.run(
            "nanodirector_api.app:app",
            host=host,
            port=port,
            reload=True,
        )
    else:
        app_instance = create_app(project_dir=project)
        uvicorn.run(app_instance, host=host, port=port)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
