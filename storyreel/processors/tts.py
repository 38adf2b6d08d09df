"""
Narration engine using edge-tts.
Generates a segment's voice track together with real word timings.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from pathlib import Path

import edge_tts
from loguru import logger

from config.settings import Settings, get_settings
from storyreel.exceptions import ServiceError
from storyreel.models import WordTiming

TICKS_PER_SECOND = 10_000_000
MIN_WORD_DURATION = 0.01


@dataclass
class Narration:
    """Generated speech: the audio file, its URL and word timings."""

    path: Path
    duration: float
    timings: list[WordTiming] = field(default_factory=list)

    @property
    def url(self) -> str:
        return self.path.resolve().as_uri()


def boundaries_to_timings(boundaries: list[dict]) -> list[WordTiming]:
    """
    Convert edge-tts WordBoundary events to word timings.

    Offsets and durations arrive in 100 ns ticks. Zero-length boundaries
    are stretched to a minimal positive duration, and a word never starts
    before the previous one ends.
    """
    timings: list[WordTiming] = []
    for boundary in sorted(boundaries, key=lambda b: b["offset"]):
        word = boundary["text"].strip()
        if not word:
            continue
        start = boundary["offset"] / TICKS_PER_SECOND
        if timings:
            start = max(start, timings[-1].end)
        end = max(
            (boundary["offset"] + boundary["duration"]) / TICKS_PER_SECOND,
            start + MIN_WORD_DURATION,
        )
        timings.append(WordTiming(word=word, start=start, end=end))
    return timings


class NarrationEngine:
    """Generate narration audio from text using edge-tts."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def synthesize_async(
        self,
        text: str,
        output_path: Path,
        voice: str | None = None,
        rate: str | None = None,
    ) -> Narration:
        """
        Generate speech and collect word boundaries.

        Args:
            text: Text to convert to speech
            output_path: Path to save the audio file
            voice: Voice to use (defaults to config)
            rate: Speech rate adjustment (e.g., "+10%", "-5%")

        Returns:
            The narration with its measured duration and word timings
        """
        voice = voice or self.settings.tts.edge_voice
        rate = rate or self.settings.tts.speech_rate

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Synthesizing {len(text.split())} words with voice={voice}, rate={rate}")

        boundaries = []
        received_audio = False
        communicate = edge_tts.Communicate(text, voice, rate=rate, boundary="WordBoundary")
        with open(output_path, "wb") as f:
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    f.write(chunk["data"])
                    received_audio = True
                elif chunk["type"] == "WordBoundary":
                    boundaries.append(chunk)

        if not received_audio:
            output_path.unlink(missing_ok=True)
            raise ServiceError("No audio received from the speech service")

        from storyreel.video.assets import media_duration

        duration = media_duration(output_path)
        timings = boundaries_to_timings(boundaries)
        logger.info(f"Narration saved to {output_path.name} ({duration:.2f}s, {len(timings)} words)")
        return Narration(path=output_path, duration=duration, timings=timings)

    def synthesize(
        self,
        text: str,
        output_path: Path,
        voice: str | None = None,
        rate: str | None = None,
    ) -> Narration:
        """Synchronous wrapper for synthesize_async."""
        return asyncio.run(self.synthesize_async(text, output_path, voice, rate))

    def narrate(self, segment_id: str, text: str) -> Narration:
        """Generate narration for one segment into the audio directory."""
        path = self.settings.audio_dir / f"{segment_id}-{uuid.uuid4().hex[:6]}.mp3"
        return self.synthesize(text, path)

    @staticmethod
    async def list_voices_async(language: str = "en") -> list[dict]:
        """List available voices for a language."""
        voices = await edge_tts.list_voices()
        return [v for v in voices if v["Locale"].startswith(language)]

    @staticmethod
    def list_voices(language: str = "en") -> list[dict]:
        """List available voices (synchronous)."""
        return asyncio.run(NarrationEngine.list_voices_async(language))
