"""Tests for the export state machine, driven by a stub render engine."""

import threading
from pathlib import Path

import pytest

from storyreel.exceptions import ExportCancelled, ExportStateError, RenderError
from storyreel.models import MediaClip, Project, Segment
from storyreel.video.export import Exporter, ExportStatus, make_renderer


class StubRenderer:
    name = "stub"

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0
        self.seen_paths = None

    def render(self, project, paths, output_path, job_dir, progress, cancel):
        self.calls += 1
        self.seen_paths = dict(paths)
        progress(0.5, "Rendering segment 1 of 1")
        progress(0.3, "Rendering segment 1 of 1")
        if self.calls <= self.failures:
            raise RenderError("boom")
        progress(1.0, "Finalizing")
        output_path.write_bytes(b"video")
        return output_path


class BlockingRenderer:
    name = "blocking"

    def __init__(self):
        self.started = threading.Event()

    def render(self, project, paths, output_path, job_dir, progress, cancel):
        self.started.set()
        while not cancel.wait(0.01):
            pass
        cancel.raise_if_cancelled()


@pytest.fixture
def project(image_file):
    path = image_file("frame", (10, 20, 30))
    return Project(
        title="My Story!",
        segments=[Segment(media=[MediaClip(url=str(path))], duration=2)],
    )


class TestExport:
    def test_complete(self, settings, project, tmp_path):
        updates = []
        renderer = StubRenderer()
        exporter = Exporter(renderer, settings, on_progress=lambda f, t: updates.append(f))
        result = exporter.export(project, tmp_path / "out")

        assert exporter.status == ExportStatus.COMPLETE
        assert result.filename == "My_Story_.mp4"
        assert result.path == tmp_path / "out" / "My_Story_.mp4"
        assert result.path.read_bytes() == b"video"
        url = project.segments[0].media[0].url
        assert renderer.seen_paths == {url: Path(url)}

        assert updates == sorted(updates)
        assert updates[-1] == 1.0
        assert all(f < 1.0 for f in updates[:-1])
        assert exporter.progress == 1.0

    def test_job_dir_removed(self, settings, project, tmp_path):
        Exporter(StubRenderer(), settings).export(project, tmp_path / "out")
        assert list(settings.cache_dir.glob("export-*")) == []

    def test_failure_then_retry(self, settings, project, tmp_path):
        exporter = Exporter(StubRenderer(failures=1), settings)
        exporter.start(project, tmp_path / "out")
        assert exporter.wait(5) == ExportStatus.ERROR
        assert exporter.error == "boom"
        assert list(settings.cache_dir.glob("export-*")) == []

        exporter.start(project, tmp_path / "out")
        assert exporter.wait(5) == ExportStatus.COMPLETE
        assert exporter.error is None

    def test_sync_export_raises(self, settings, project, tmp_path):
        with pytest.raises(RenderError):
            Exporter(StubRenderer(failures=1), settings).export(project, tmp_path / "out")

    def test_missing_asset_fails(self, settings, tmp_path):
        project = Project(
            segments=[Segment(media=[MediaClip(url="nowhere/missing.png")], duration=1)]
        )
        exporter = Exporter(StubRenderer(), settings)
        exporter.start(project, tmp_path / "out")
        assert exporter.wait(5) == ExportStatus.ERROR
        assert "nowhere/missing.png" in exporter.error


class TestStateMachine:
    def test_cancel_returns_to_idle(self, settings, project, tmp_path):
        renderer = BlockingRenderer()
        exporter = Exporter(renderer, settings)
        exporter.start(project, tmp_path / "out")
        assert renderer.started.wait(5)
        exporter.cancel()
        assert exporter.status == ExportStatus.IDLE
        assert exporter.progress == 0.0
        assert exporter.result is None
        assert not (tmp_path / "out").exists()

    def test_cancelled_sync_export_raises(self, settings, project, tmp_path):
        renderer = BlockingRenderer()
        exporter = Exporter(renderer, settings)
        threading.Thread(
            target=lambda: renderer.started.wait(5) and exporter.cancel(wait=False)
        ).start()
        with pytest.raises(ExportCancelled):
            exporter.export(project, tmp_path / "out")

    def test_no_second_start_while_rendering(self, settings, project, tmp_path):
        renderer = BlockingRenderer()
        exporter = Exporter(renderer, settings)
        exporter.start(project, tmp_path / "out")
        try:
            with pytest.raises(ExportStateError):
                exporter.start(project, tmp_path / "out")
            with pytest.raises(ExportStateError):
                exporter.reset()
        finally:
            exporter.cancel()

    def test_complete_requires_reset(self, settings, project, tmp_path):
        exporter = Exporter(StubRenderer(), settings)
        exporter.export(project, tmp_path / "out")
        with pytest.raises(ExportStateError):
            exporter.start(project, tmp_path / "out")
        exporter.reset()
        assert exporter.status == ExportStatus.IDLE
        assert exporter.result is None
        exporter.export(project, tmp_path / "again")


def test_unknown_engine(settings):
    with pytest.raises(ValueError):
        make_renderer("webgl", settings)
