"""
Configuration settings for StoryReel.
Uses Pydantic Settings for type-safe environment variable handling.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RenderSettings(BaseSettings):
    """Output video configuration shared by both render engines."""

    model_config = SettingsConfigDict(env_prefix="RENDER_")

    width: int = Field(default=1280, description="Output video width")
    height: int = Field(default=720, description="Output video height")
    fps: int = Field(default=30, description="Output FPS")
    transition_duration: float = Field(
        default=0.5,
        description="Cross-fade window in seconds (segments and clips)",
    )
    engine: Literal["ffmpeg", "frames"] = Field(
        default="ffmpeg",
        description="Render engine: ffmpeg filter graph or frame compositor",
    )
    codec: str = Field(default="libx264", description="Video codec")
    audio_codec: str = Field(default="aac", description="Audio codec")
    preset: str = Field(default="ultrafast", description="x264 preset")
    sample_rate: int = Field(default=44100, description="Audio sample rate")
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")


class CaptionSettings(BaseSettings):
    """Caption layout configuration."""

    model_config = SettingsConfigDict(env_prefix="CAPTION_")

    char_width_factor: float = Field(
        default=0.55,
        description="Estimated glyph width as a fraction of the font size",
    )
    width_ratio: float = Field(
        default=0.9,
        description="Caption block max width relative to the output width",
    )
    line_height: float = Field(default=1.2, description="Line height multiplier")
    margin: int = Field(default=60, description="Top/bottom margin in pixels")
    padding: int = Field(default=20, description="Background box padding")
    first_chunk_grace: float = Field(
        default=0.1,
        description="Show the first chunk before its start within this window",
    )
    font_path: str | None = Field(default=None, description="TrueType font file")


class AssetSettings(BaseSettings):
    """Asset download configuration."""

    model_config = SettingsConfigDict(env_prefix="ASSET_")

    max_workers: int = Field(default=4, description="Parallel downloads")
    attempts: int = Field(default=3, description="Fetch attempts per asset")
    timeout: int = Field(default=30, description="Request timeout in seconds")


class TTSSettings(BaseSettings):
    """Text-to-Speech configuration."""

    model_config = SettingsConfigDict(env_prefix="")

    edge_voice: str = Field(
        default="en-US-ChristopherNeural",
        alias="EDGE_TTS_VOICE",
        description="Edge TTS voice",
    )
    speech_rate: str = Field(
        default="+0%",
        alias="TTS_SPEECH_RATE",
        description="Speech rate adjustment",
    )


class NarrationSettings(BaseSettings):
    """Narration task queue configuration."""

    model_config = SettingsConfigDict(env_prefix="NARRATION_")

    concurrency: int = Field(default=2, description="Segments generated at once")
    attempts: int = Field(default=3, description="Attempts per segment")
    min_wait: float = Field(default=1.0, description="Minimum backoff in seconds")
    max_wait: float = Field(default=10.0, description="Maximum backoff in seconds")


class PexelsSettings(BaseSettings):
    """Pexels stock media configuration."""

    model_config = SettingsConfigDict(env_prefix="PEXELS_")

    api_key: str = Field(default="", description="Pexels API key")
    per_page: int = Field(default=15, description="Results per search")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-configurations
    render: RenderSettings = Field(default_factory=RenderSettings)
    caption: CaptionSettings = Field(default_factory=CaptionSettings)
    assets: AssetSettings = Field(default_factory=AssetSettings)
    tts: TTSSettings = Field(default_factory=TTSSettings)
    narration: NarrationSettings = Field(default_factory=NarrationSettings)
    pexels: PexelsSettings = Field(default_factory=PexelsSettings)

    # Paths
    project_root: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent,
        description="Project root directory",
    )

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def audio_dir(self) -> Path:
        return self.data_dir / "audio"

    @property
    def output_dir(self) -> Path:
        return self.data_dir / "output"

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / "cache"

    @property
    def projects_dir(self) -> Path:
        return self.data_dir / "projects"


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
