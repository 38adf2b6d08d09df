"""
CLI interface for StoryReel.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

# Configure loguru
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
    level="INFO",
)

app = typer.Typer(
    name="storyreel",
    help="Edit and render narrated story videos from timeline projects.",
    add_completion=False,
)
console = Console()


def _load(project_path: Path):
    from storyreel.models import Project

    try:
        return Project.load(project_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not load project {project_path}: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def info(project_path: Path = typer.Argument(help="Project JSON file")):
    """Show the segments and audio tracks of a project."""
    from storyreel.video.sync import segment_offsets

    project = _load(project_path)

    table = Table(title=f"{project.title} ({project.total_duration:.1f}s)")
    table.add_column("#", justify="right")
    table.add_column("Start", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Clips", justify="right")
    table.add_column("Voice")
    table.add_column("Captions")
    table.add_column("Transition")
    table.add_column("Text", max_width=40)

    for index, (segment, start) in enumerate(
        zip(project.segments, segment_offsets(project.segments)), start=1
    ):
        text = segment.narration_text
        table.add_row(
            str(index),
            f"{start:.1f}s",
            f"{segment.duration:.1f}s",
            str(len(segment.media)),
            "[green]yes[/green]" if segment.audio_url else "[dim]no[/dim]",
            f"{len(segment.word_timings)} words" if segment.word_timings else "[dim]none[/dim]",
            segment.transition.value,
            text[:40] + "..." if len(text) > 40 else text,
        )
    console.print(table)

    if project.audio_tracks:
        tracks = Table(title="Background audio")
        tracks.add_column("Name")
        tracks.add_column("Type")
        tracks.add_column("Start", justify="right")
        tracks.add_column("Duration", justify="right")
        tracks.add_column("Volume", justify="right")
        for track in project.audio_tracks:
            tracks.add_row(
                track.name or track.id,
                track.kind.value,
                f"{track.start_time:.1f}s",
                f"{track.duration:.1f}s",
                f"{track.volume:.2f}",
            )
        console.print(tracks)


@app.command()
def render(
    project_path: Path = typer.Argument(help="Project JSON file"),
    engine: Optional[str] = typer.Option(
        None, "--engine", "-e", help="Render engine: ffmpeg or frames"
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for the finished video"
    ),
):
    """Export a project to a video file."""
    from storyreel.video.export import Exporter, ExportStatus, make_renderer

    project = _load(project_path)
    try:
        renderer = make_renderer(engine)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Loading assets", total=1.0)

        def on_progress(fraction: float, text: str) -> None:
            progress.update(task, completed=fraction, description=text)

        exporter = Exporter(renderer, on_progress=on_progress)
        exporter.start(project, output_dir)
        try:
            status = exporter.wait()
        except KeyboardInterrupt:
            exporter.cancel()
            status = exporter.status

    if status == ExportStatus.COMPLETE and exporter.result:
        console.print("[green]Success! Video saved to:[/green]")
        console.print(f"  {exporter.result.path}")
    elif status == ExportStatus.IDLE:
        console.print("[yellow]Export cancelled.[/yellow]")
        raise typer.Exit(130)
    else:
        console.print(f"[red]Export failed: {exporter.error}[/red]")
        raise typer.Exit(1)


@app.command()
def frame(
    project_path: Path = typer.Argument(help="Project JSON file"),
    time: float = typer.Option(0.0, "--time", "-t", help="Timeline time in seconds"),
    output: Path = typer.Option(Path("frame.png"), "--output", "-o", help="PNG to write"),
):
    """Render a single preview frame (missing media becomes a placeholder)."""
    from config.settings import get_settings
    from storyreel.exceptions import AssetError
    from storyreel.utils.paths import new_job_dir
    from storyreel.video.assets import AssetStore, project_asset_urls
    from storyreel.video.compositor import FrameCompositor

    project = _load(project_path)
    settings = get_settings()
    store = AssetStore(new_job_dir("frame", settings.cache_dir), settings)
    try:
        with console.status("[bold green]Loading assets..."):
            for url, kind in project_asset_urls(project).items():
                try:
                    store.fetch(url, kind)
                except AssetError as e:
                    logger.warning(str(e))

            paths = {
                url: store.get(url)
                for url in project_asset_urls(project)
                if store.get(url) is not None
            }
            compositor = FrameCompositor(project, paths, settings, missing="placeholder")
            try:
                compositor.compose_image(time).save(output)
            finally:
                compositor.close()
    finally:
        store.cleanup()

    console.print(f"[green]Frame at {time:.2f}s saved to {output}[/green]")


@app.command()
def narrate(
    project_path: Path = typer.Argument(help="Project JSON file"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Where to save the updated project (defaults to in place)"
    ),
):
    """Generate narration audio and word timings for every segment."""
    from storyreel.editor import EditingSession
    from storyreel.processors import NarrationQueue

    session = EditingSession(_load(project_path))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Generating audio", total=len(session.segments))

        def on_progress(started: int, total: int, message: str) -> None:
            progress.update(task, completed=started - 1, total=total, description=message)

        report = NarrationQueue(on_progress=on_progress).run(session.segments)
        progress.update(task, completed=len(session.segments))

    session.apply_narration(report.results)
    saved = session.project().save(output or project_path)

    console.print(f"[green]Narrated {len(report.results)} segments, saved to {saved}[/green]")
    for failure in report.failures:
        console.print(f"[red]✗[/red] {failure.segment_id}: {failure.error}")
    if report.skipped:
        console.print(f"[dim]Skipped {len(report.skipped)} segments without text[/dim]")
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def subtitles(
    project_path: Path = typer.Argument(help="Project JSON file"),
    segment: Optional[str] = typer.Option(None, "--segment", "-s", help="Only this segment id"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Where to save the updated project (defaults to in place)"
    ),
):
    """Auto-generate evenly spaced word timings."""
    from storyreel.editor import EditingSession
    from storyreel.exceptions import EditError

    session = EditingSession(_load(project_path))
    try:
        session.auto_generate_subtitles(segment)
    except EditError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    saved = session.project().save(output or project_path)
    console.print(f"[green]Subtitles generated, saved to {saved}[/green]")


@app.command()
def search(
    query: str = typer.Argument(help="Search terms"),
    video: bool = typer.Option(False, "--video", "-v", help="Search videos instead of photos"),
    orientation: str = typer.Option(
        "landscape", "--orientation", help="landscape / portrait / square"
    ),
):
    """Search stock media on Pexels."""
    from storyreel.exceptions import ServiceError
    from storyreel.models import MediaType
    from storyreel.processors import PexelsClient

    kind = MediaType.VIDEO if video else MediaType.IMAGE
    try:
        with console.status(f"[bold green]Searching Pexels for '{query}'..."):
            results = PexelsClient().search(query, orientation, kind)
    except ServiceError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]No results.[/yellow]")
        return

    table = Table(title=f"Pexels {kind.value}s for '{query}' ({len(results)})")
    table.add_column("ID", style="cyan")
    table.add_column("Author")
    table.add_column("URL", overflow="fold")
    for item in results:
        table.add_row(item.id, item.author, item.full_res_url)
    console.print(table)


@app.command()
def check():
    """Check system dependencies and configuration."""
    from config.settings import get_settings
    from storyreel.video.assembler import ffmpeg_available

    settings = get_settings()

    console.print("[bold]Checking system dependencies...[/bold]\n")

    binary = settings.render.ffmpeg_binary
    if ffmpeg_available(binary):
        console.print(f"[green]✓[/green] FFmpeg: {binary}")
    else:
        console.print(f"[red]✗[/red] FFmpeg: '{binary}' not found (only the frames engine will work)")

    if settings.pexels.api_key:
        console.print("[green]✓[/green] Pexels: API key configured")
    else:
        console.print("[yellow]![/yellow] Pexels: PEXELS_API_KEY not set")

    console.print(
        f"[green]✓[/green] Render: {settings.render.width}x{settings.render.height} "
        f"@ {settings.render.fps} fps, engine={settings.render.engine}"
    )

    console.print("\n[bold]Data directories:[/bold]")
    for name, path in [
        ("Audio", settings.audio_dir),
        ("Output", settings.output_dir),
        ("Cache", settings.cache_dir),
        ("Projects", settings.projects_dir),
    ]:
        exists = path.exists()
        files = len(list(path.glob("*"))) if exists else 0
        status = "[green]✓[/green]" if exists else "[yellow]![/yellow]"
        console.print(f"  {status} {name}: {path} ({files} files)")


@app.command()
def voices(language: str = typer.Option("en", "--language", "-l", help="Locale prefix")):
    """List available narration voices."""
    from storyreel.processors import NarrationEngine

    console.print("[bold]Fetching available voices...[/bold]")

    with console.status("Loading..."):
        voices = NarrationEngine.list_voices(language)

    table = Table(title=f"Voices for '{language}' ({len(voices)})")
    table.add_column("Voice ID", style="cyan")
    table.add_column("Gender")
    table.add_column("Locale")

    for voice in voices:
        table.add_row(
            voice["ShortName"],
            voice.get("Gender", "Unknown"),
            voice.get("Locale", ""),
        )

    console.print(table)


@app.callback()
def main():
    """
    StoryReel - narrated story video editor

    Renders timeline projects (segments, clips, karaoke captions and
    background audio) to video with ffmpeg or a frame compositor.
    """
    from storyreel.utils.paths import ensure_dirs

    ensure_dirs()


if __name__ == "__main__":
    app()
