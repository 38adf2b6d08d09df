"""
Narration task queue.

Generates voice tracks for many segments with bounded concurrency and a
bounded number of attempts per segment. Results are returned, not applied:
the editing session commits them as one undoable edit, and a segment whose
generation failed keeps its previous audio and timings.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Protocol

from loguru import logger

from config.settings import Settings, get_settings
from storyreel.models import Segment, WordTiming
from storyreel.utils.retry import retry


class Narrator(Protocol):
    def narrate(self, segment_id: str, text: str): ...


@dataclass(frozen=True)
class NarrationResult:
    segment_id: str
    url: str
    duration: float
    timings: list[WordTiming]


@dataclass(frozen=True)
class NarrationFailure:
    segment_id: str
    error: str


@dataclass
class NarrationReport:
    results: list[NarrationResult] = field(default_factory=list)
    failures: list[NarrationFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class NarrationQueue:
    """Run narration jobs for a list of segments."""

    def __init__(
        self,
        engine: Narrator | None = None,
        settings: Settings | None = None,
        on_progress: Callable[[int, int, str], None] | None = None,
    ):
        self.settings = settings or get_settings()
        if engine is None:
            from storyreel.processors.tts import NarrationEngine

            engine = NarrationEngine(self.settings)
        self.engine = engine
        self.on_progress = on_progress
        self._lock = threading.Lock()
        self._started = 0

    def _narrate_one(self, segment: Segment, total: int) -> NarrationResult:
        with self._lock:
            self._started += 1
            message = f"Generating audio for segment {self._started}/{total}"
        logger.info(message)
        if self.on_progress is not None:
            self.on_progress(self._started, total, message)

        config = self.settings.narration
        narrate = retry(
            attempts=config.attempts,
            min_wait=config.min_wait,
            max_wait=config.max_wait,
        )(self.engine.narrate)
        narration = narrate(segment.id, segment.narration_text)
        return NarrationResult(
            segment_id=segment.id,
            url=narration.url,
            duration=narration.duration,
            timings=list(narration.timings),
        )

    def run(self, segments: list[Segment]) -> NarrationReport:
        """
        Narrate every segment that has text.

        Returns:
            Results in timeline order, plus failures and skipped segment ids
        """
        report = NarrationReport()
        todo = []
        for segment in segments:
            if segment.narration_text.strip():
                todo.append(segment)
            else:
                report.skipped.append(segment.id)
        if not todo:
            return report

        self._started = 0
        order = {segment.id: i for i, segment in enumerate(todo)}
        workers = max(1, min(self.settings.narration.concurrency, len(todo)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._narrate_one, segment, len(todo)): segment
                for segment in todo
            }
            for future in as_completed(futures):
                segment = futures[future]
                try:
                    report.results.append(future.result())
                except Exception as e:
                    logger.warning(f"Narration failed for segment {segment.id}: {e}")
                    report.failures.append(NarrationFailure(segment.id, str(e)))

        report.results.sort(key=lambda r: order[r.segment_id])
        report.failures.sort(key=lambda f: order[f.segment_id])
        logger.info(
            f"Narration finished: {len(report.results)} generated, "
            f"{len(report.failures)} failed, {len(report.skipped)} skipped"
        )
        return report
