"""
Deterministic word timing estimate.

Used to size segments and for explicit "auto-generate subtitles"; never as
a silent fallback during playback or export.
"""

from storyreel.models import WordTiming


def estimate_word_timings(text: str, total_duration: float) -> list[WordTiming]:
    """
    Spread the words of ``text`` evenly across ``total_duration`` seconds.

    Args:
        text: The narration text
        total_duration: Audio or segment duration in seconds

    Returns:
        Word timings covering ``[0, total_duration]``; empty for blank text
    """
    words = text.split()
    if not words or total_duration <= 0:
        return []

    time_per_word = total_duration / len(words)
    timings = []
    for i, word in enumerate(words):
        start = i * time_per_word
        end = total_duration if i == len(words) - 1 else (i + 1) * time_per_word
        timings.append(WordTiming(word=word, start=start, end=end))
    return timings


def estimate_duration(text: str, words_per_minute: float = 150) -> float:
    """Estimate narration length at ~150 words per minute."""
    return len(text.split()) / words_per_minute * 60
