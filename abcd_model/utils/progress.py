"""Console progress bar for calibration runs."""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from typing import Optional, TextIO


@dataclass
class ProgressState:
    total: int
    current: int = 0
    start_time: float = field(default_factory=time.time)
    bar_length: int = 40


class ProgressBar:
    """Single-line bar with elapsed time and ETA, rewritten in place."""

    def __init__(
        self,
        total: int,
        description: str = "",
        bar_length: int = 40,
        stream: Optional[TextIO] = None,
    ) -> None:
        if total <= 0:
            raise ValueError("total must be positive")
        self.state = ProgressState(total=total, bar_length=bar_length)
        self.description = description
        self.stream = stream if stream is not None else sys.stdout

    def update(self, step: int = 1, extra_message: Optional[str] = None) -> None:
        state = self.state
        state.current = min(state.current + step, state.total)
        elapsed = time.time() - state.start_time
        progress = state.current / state.total
        filled = int(state.bar_length * progress)
        bar = "#" * filled + "-" * (state.bar_length - filled)
        eta_str = _format_duration(elapsed / progress - elapsed) if progress > 0 else "NA"
        self.stream.write(
            f"\r{self.description} |{bar}| {progress * 100:6.2f}% "
            f"Elapsed: {_format_duration(elapsed)} ETA: {eta_str} {extra_message or ''}"
        )
        if state.current >= state.total:
            self.stream.write("\n")
        self.stream.flush()


def _format_duration(seconds: float) -> str:
    if seconds != seconds or seconds == float("inf"):
        return "NA"
    seconds = max(0.0, seconds)
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    if hours:
        return f"{hours:d}h {minutes:02d}m {secs:04.1f}s"
    if minutes:
        return f"{minutes:d}m {secs:04.1f}s"
    return f"{secs:0.2f}s"


__all__ = ["ProgressBar"]
