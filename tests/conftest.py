"""Shared fixtures: isolated settings and generated media files."""

import pytest
from PIL import Image

from config.settings import (
    AssetSettings,
    NarrationSettings,
    RenderSettings,
    Settings,
)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        project_root=tmp_path,
        render=RenderSettings(width=64, height=36, fps=10, transition_duration=0.5),
        assets=AssetSettings(max_workers=2, attempts=2, timeout=5),
        narration=NarrationSettings(concurrency=2, attempts=2, min_wait=0, max_wait=0),
    )


@pytest.fixture
def image_file(tmp_path):
    """Factory writing a solid-color PNG and returning its path."""

    def make(name: str, color: tuple[int, int, int], size: tuple[int, int] = (32, 32)):
        path = tmp_path / f"{name}.png"
        Image.new("RGB", size, color).save(path)
        return path

    return make
