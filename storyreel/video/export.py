"""
Export orchestrator.

Drives a render engine on a worker thread over a snapshot of the project
and exposes a small state machine to the caller:

    idle --start--> rendering --> complete | error
    error --start--> rendering
    rendering --cancel--> idle
    complete --reset--> idle
"""

import shutil
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Protocol

from loguru import logger

from config.settings import Settings, get_settings
from storyreel.exceptions import ExportCancelled, ExportStateError, StoryReelError
from storyreel.models import Project
from storyreel.utils.paths import new_job_dir, safe_filename
from storyreel.video.assets import AssetStore, project_asset_urls
from storyreel.video.cancel import CancelToken

LOADING_SHARE = 0.1
MAX_PENDING_PROGRESS = 0.99

ProgressCallback = Callable[[float, str], None]


class ExportStatus(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ExportResult:
    """A finished export: the playable file and its suggested name."""

    path: Path
    filename: str


class Renderer(Protocol):
    name: str

    def render(
        self,
        project: Project,
        paths: Mapping[str, Path],
        output_path: Path,
        job_dir: Path,
        progress: ProgressCallback,
        cancel: CancelToken,
    ) -> Path: ...


def make_renderer(engine: str | None = None, settings: Settings | None = None) -> Renderer:
    """Instantiate the configured render engine."""
    settings = settings or get_settings()
    engine = engine or settings.render.engine
    if engine == "ffmpeg":
        from storyreel.video.assembler import FfmpegRenderer

        return FfmpegRenderer(settings)
    if engine == "frames":
        from storyreel.video.compositor import FrameRenderer

        return FrameRenderer(settings)
    raise ValueError(f"Unknown render engine: {engine}")


class Exporter:
    """Run exports one at a time and report their progress."""

    def __init__(
        self,
        renderer: Renderer | None = None,
        settings: Settings | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.settings = settings or get_settings()
        self.renderer = renderer or make_renderer(settings=self.settings)
        self.on_progress = on_progress

        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._cancel = CancelToken()
        self._status = ExportStatus.IDLE
        self._progress = 0.0
        self._status_text = ""
        self._error: str | None = None
        self._exception: BaseException | None = None
        self._result: ExportResult | None = None

    @property
    def status(self) -> ExportStatus:
        return self._status

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def status_text(self) -> str:
        return self._status_text

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def result(self) -> ExportResult | None:
        return self._result

    def start(self, project: Project, output_dir: Path | None = None) -> None:
        """
        Begin exporting a snapshot of ``project``.

        Later edits to ``project`` do not affect the running export.

        Raises:
            ExportStateError: if an export is running or a result is pending reset
        """
        with self._lock:
            if self._status == ExportStatus.RENDERING:
                raise ExportStateError("An export is already running")
            if self._status == ExportStatus.COMPLETE:
                raise ExportStateError("Reset the finished export before starting another")
            snapshot = project.snapshot()
            self._cancel = CancelToken()
            self._status = ExportStatus.RENDERING
            self._progress = 0.0
            self._status_text = "Loading assets"
            self._error = None
            self._exception = None
            self._result = None
            self._thread = threading.Thread(
                target=self._run,
                args=(snapshot, Path(output_dir or self.settings.output_dir), self._cancel),
                name="storyreel-export",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"Export started for '{snapshot.title}' ({self.renderer.name} engine)")

    def cancel(self, wait: bool = True) -> None:
        """Stop a running export; it returns to idle once the worker exits."""
        if self._status != ExportStatus.RENDERING:
            return
        self._cancel.cancel()
        if wait:
            self.wait()

    def reset(self) -> None:
        """Clear a finished (or failed) export back to idle."""
        with self._lock:
            if self._status == ExportStatus.RENDERING:
                raise ExportStateError("Cannot reset while rendering")
            self._status = ExportStatus.IDLE
            self._progress = 0.0
            self._status_text = ""
            self._error = None
            self._exception = None
            self._result = None

    def wait(self, timeout: float | None = None) -> ExportStatus:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self._status

    def export(self, project: Project, output_dir: Path | None = None) -> ExportResult:
        """
        Export synchronously.

        Raises:
            The error that failed the export, or ExportCancelled
        """
        self.start(project, output_dir)
        status = self.wait()
        if status == ExportStatus.COMPLETE and self._result is not None:
            return self._result
        if self._exception is not None:
            raise self._exception
        raise ExportCancelled("Export cancelled")

    def _report(self, fraction: float, text: str) -> None:
        with self._lock:
            if self._status != ExportStatus.RENDERING:
                return
            self._progress = max(self._progress, min(fraction, MAX_PENDING_PROGRESS))
            self._status_text = text
            progress = self._progress
        if self.on_progress is not None:
            self.on_progress(progress, text)

    def _run(self, project: Project, output_dir: Path, cancel: CancelToken) -> None:
        job_dir = None
        filename = safe_filename(project.title)
        try:
            job_dir = new_job_dir("export", self.settings.cache_dir)
            store = AssetStore(job_dir / "assets", self.settings, cancel)
            paths = store.fetch_all(project_asset_urls(project))
            cancel.raise_if_cancelled()
            self._report(LOADING_SHARE, "Assets loaded")

            def on_render(fraction: float, text: str) -> None:
                self._report(LOADING_SHARE + (1 - LOADING_SHARE) * fraction, text)

            rendered = self.renderer.render(
                project, paths, job_dir / filename, job_dir, on_render, cancel
            )
            cancel.raise_if_cancelled()

            output_dir.mkdir(parents=True, exist_ok=True)
            final = output_dir / filename
            shutil.move(str(rendered), str(final))

            with self._lock:
                self._result = ExportResult(path=final, filename=filename)
                self._status = ExportStatus.COMPLETE
                self._progress = 1.0
                self._status_text = "Export complete"
            logger.info(f"Export complete: {final}")
            if self.on_progress is not None:
                self.on_progress(1.0, "Export complete")

        except ExportCancelled as e:
            logger.info("Export cancelled")
            with self._lock:
                self._exception = e
                self._status = ExportStatus.IDLE
                self._progress = 0.0
                self._status_text = "Cancelled"
        except StoryReelError as e:
            logger.error(f"Export failed: {e}")
            self._fail(e)
        except Exception as e:
            logger.exception(f"Unexpected export failure: {e}")
            self._fail(e)
        finally:
            if job_dir is not None:
                shutil.rmtree(job_dir, ignore_errors=True)

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            self._exception = error
            self._error = str(error) or error.__class__.__name__
            self._status = ExportStatus.ERROR
            self._status_text = "Export failed"
