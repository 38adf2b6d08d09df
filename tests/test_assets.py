"""Tests for the asset store."""

import base64
import threading

import pytest
import requests

from storyreel.exceptions import AssetError, ExportCancelled
from storyreel.models import AudioClip, MediaClip, MediaType, Project, Segment
from storyreel.video.assets import AssetStore, local_path_for, project_asset_urls
from storyreel.video.cancel import CancelToken


class FailingSession:
    def __init__(self):
        self.calls = 0

    def get(self, url, **kwargs):
        self.calls += 1
        raise requests.ConnectionError("connection refused")


class TestLocalPaths:
    def test_plain_and_file_uri(self, image_file):
        path = image_file("a", (1, 2, 3))
        assert local_path_for(str(path)) == path
        assert local_path_for(path.as_uri()) == path

    def test_missing_or_remote(self, tmp_path):
        assert local_path_for(str(tmp_path / "nope.png")) is None
        assert local_path_for("https://example.com/a.png") is None


class TestAssetStore:
    def test_paths_unique_across_threads(self, tmp_path, settings):
        store = AssetStore(tmp_path / "job", settings)
        paths = []
        lock = threading.Lock()

        def worker():
            mine = [store._next_path("https://example.com/a.jpg", "image") for _ in range(200)]
            with lock:
                paths.extend(mine)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(paths) == 1600
        assert len(set(paths)) == 1600

    def test_data_url_decoded(self, tmp_path, settings):
        payload = b"\x89PNG fake bytes"
        url = "data:image/png;base64," + base64.b64encode(payload).decode()
        store = AssetStore(tmp_path / "job", settings)
        path = store.fetch(url)
        assert path.read_bytes() == payload
        assert path.suffix == ".png"
        assert path.parent == tmp_path / "job"
        assert store.path(url) == path

    def test_invalid_data_url(self, tmp_path, settings):
        with pytest.raises(AssetError):
            AssetStore(tmp_path / "job", settings).fetch("data:nonsense")

    def test_local_file_used_in_place(self, tmp_path, settings, image_file):
        path = image_file("b", (1, 2, 3))
        assert AssetStore(tmp_path / "job", settings).fetch(str(path)) == path

    def test_missing_local_file(self, tmp_path, settings):
        with pytest.raises(AssetError, match="unsupported URL scheme or missing file"):
            AssetStore(tmp_path / "job", settings).fetch(str(tmp_path / "gone.png"))

    def test_download_failure_after_attempts(self, tmp_path, settings):
        session = FailingSession()
        store = AssetStore(tmp_path / "job", settings, session=session)
        with pytest.raises(AssetError) as excinfo:
            store.fetch("https://example.com/a.jpg")
        assert session.calls == settings.assets.attempts
        assert excinfo.value.url == "https://example.com/a.jpg"

    def test_unloaded_path(self, tmp_path, settings):
        with pytest.raises(AssetError, match="not loaded"):
            AssetStore(tmp_path / "job", settings).path("https://example.com/a.jpg")

    def test_fetch_all(self, tmp_path, settings, image_file):
        first, second = image_file("c", (0, 0, 0)), image_file("d", (0, 0, 0))
        urls = {str(first): "image", first.as_uri(): "image", str(second): "image"}
        paths = AssetStore(tmp_path / "job", settings).fetch_all(urls)
        assert paths == {str(first): first, first.as_uri(): first, str(second): second}

    def test_fetch_all_cancelled(self, tmp_path, settings, image_file):
        cancel = CancelToken()
        cancel.cancel()
        store = AssetStore(tmp_path / "job", settings, cancel)
        with pytest.raises(ExportCancelled):
            store.fetch_all({str(image_file("e", (0, 0, 0))): "image"})

    def test_cleanup(self, tmp_path, settings):
        store = AssetStore(tmp_path / "job", settings)
        store.cleanup()
        assert not (tmp_path / "job").exists()


def test_project_asset_urls():
    project = Project(
        segments=[
            Segment(
                media=[MediaClip(url="a.jpg"), MediaClip(url="b.mp4", type=MediaType.VIDEO)],
                duration=3,
                audio_url="voice.mp3",
            ),
            Segment(media=[MediaClip(url="a.jpg")], duration=3),
        ],
        audio_tracks=[AudioClip(url="bg.mp3")],
    )
    assert project_asset_urls(project) == {
        "a.jpg": "image",
        "b.mp4": "video",
        "voice.mp3": "audio",
        "bg.mp3": "audio",
    }
