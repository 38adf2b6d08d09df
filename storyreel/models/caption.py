"""
Data models for captions and word timing.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WordTiming(BaseModel):
    """Timing information for a single spoken word (segment-relative)."""

    model_config = ConfigDict(frozen=True)

    word: str = Field(description="The word text")
    start: float = Field(ge=0, description="Start time in seconds")
    end: float = Field(ge=0, description="End time in seconds")

    @model_validator(mode="after")
    def _check_order(self) -> "WordTiming":
        if self.end <= self.start:
            raise ValueError(
                f"word {self.word!r} ends ({self.end}) before it starts ({self.start})"
            )
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start

    def shifted(self, offset: float) -> "WordTiming":
        """Return a copy moved by ``offset`` seconds, never before zero."""
        return WordTiming(
            word=self.word,
            start=max(0.0, self.start + offset),
            end=self.end + offset,
        )


class CaptionChunk(BaseModel):
    """A page of words displayed together, already broken into lines."""

    model_config = ConfigDict(frozen=True)

    start: float = Field(description="First word start")
    end: float = Field(description="Last word end")
    lines: list[list[WordTiming]] = Field(description="Words laid out per line")

    @property
    def timings(self) -> list[WordTiming]:
        return [w for line in self.lines for w in line]

    @property
    def text(self) -> str:
        return " ".join(w.word for w in self.timings)

    def contains(self, local_time: float) -> bool:
        return self.start <= local_time <= self.end


class WordState(str, Enum):
    """Karaoke state of a word relative to the playback time."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    PAST = "past"


def word_state(timing: WordTiming, local_time: float) -> WordState:
    """Classify a word at ``local_time``."""
    if local_time < timing.start:
        return WordState.UPCOMING
    if local_time < timing.end:
        return WordState.ACTIVE
    return WordState.PAST


def words_to_text(timings: list[WordTiming]) -> str:
    """Rebuild narration text from word timings."""
    return " ".join(t.word for t in timings)


def check_timing_order(timings: list[WordTiming]) -> None:
    """
    Raise ValueError unless ``timings`` are sorted and non-overlapping.

    Adjacent words may touch (one ends exactly where the next starts).
    """
    for prev, cur in zip(timings, timings[1:]):
        if cur.start < prev.start:
            raise ValueError("word timings must be sorted by start time")
        if cur.start < prev.end:
            raise ValueError(
                f"word {cur.word!r} starts ({cur.start}) before {prev.word!r} ends ({prev.end})"
            )
