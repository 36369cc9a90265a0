"""
Progress reporting: stage weighting, batch slicing and terminal output.

The conversion core only ever calls a plain `Callable[[float], None]`
with fractions in [0, 1]. The helpers here turn per-stage progress into
such fractions and render them on a terminal.
"""

import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

ProgressSink = Callable[[float], None]


class Stage(Enum):
    """Conversion stages of one volume, in execution order."""

    INTAKE = "Reading images"
    SIZE = "Choosing page size"
    SPLIT = "Splitting spreads"
    SEQUENCE = "Ordering pages"
    PACKAGE = "Packaging EPUB"


# Share of one volume's progress taken by each stage
STAGE_WEIGHTS: dict[Stage, float] = {
    Stage.INTAKE: 0.25,
    Stage.SIZE: 0.0,
    Stage.SPLIT: 0.35,
    Stage.SEQUENCE: 0.10,
    Stage.PACKAGE: 0.30,
}


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


class VolumeProgress:
    """Maps per-stage progress of one volume onto a single fraction.

    Reported values never decrease, even if a caller reports out of order.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self.sink = sink
        self.current = 0.0
        self._offsets: dict[Stage, float] = {}
        offset = 0.0
        for stage, weight in STAGE_WEIGHTS.items():
            self._offsets[stage] = offset
            offset += weight

    def update(self, stage: Stage, fraction: float) -> None:
        """Report progress within a stage.

        Args:
            stage: The running stage
            fraction: Completed share of that stage, in [0, 1]
        """
        value = self._offsets[stage] + STAGE_WEIGHTS[stage] * _clamp(fraction)
        self._emit(value)

    def complete(self) -> None:
        self._emit(1.0)

    def _emit(self, value: float) -> None:
        value = _clamp(value)
        if value < self.current:
            return
        self.current = value
        if self.sink is not None:
            self.sink(value)


def batch_slice(sink: ProgressSink | None, index: int, total: int) -> ProgressSink | None:
    """Map a volume's [0, 1] progress into its 1/total slice of a batch.

    Args:
        sink: Batch-wide progress sink
        index: 0-based position of the volume in the batch
        total: Number of volumes in the batch

    Returns:
        Sink for the volume, or None when there is no batch sink
    """
    if sink is None:
        return None
    if total < 1 or not 0 <= index < total:
        raise ValueError(f"Volume index {index} out of range for batch of {total}")

    def report(fraction: float) -> None:
        sink((index + _clamp(fraction)) / total)

    return report


@dataclass
class ProgressStats:
    """Statistics for progress tracking."""

    fraction: float = 0.0
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time

    @property
    def eta(self) -> float | None:
        """Estimated time remaining in seconds."""
        if self.fraction <= 0:
            return None
        return self.elapsed * (1 - self.fraction) / self.fraction

    @property
    def percent(self) -> float:
        """Completion percentage."""
        return self.fraction * 100


def format_time(seconds: float | None) -> str:
    """Format seconds as human-readable time."""
    if seconds is None:
        return "--:--"

    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        mins = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{mins}m {secs}s"
    else:
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        return f"{hours}h {mins}m"


class ProgressReporter:
    """Renders a progress fraction as an updating terminal line.

    Usage:
        with ProgressReporter(desc="Converting") as progress:
            pipeline.run(on_progress=progress)
    """

    def __init__(self, desc: str = "Progress") -> None:
        """Initialize progress reporter.

        Args:
            desc: Description prefix for progress line
        """
        self.stats = ProgressStats()
        self.desc = desc
        # Check both stderr and stdout for TTY (some terminals only have one)
        self._is_tty = sys.stderr.isatty() or sys.stdout.isatty()
        self._output = sys.stderr if sys.stderr.isatty() else sys.stdout
        self._last_line_len = 0
        self._last_decile = -1

    def __enter__(self):
        self.stats.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()

    def __call__(self, fraction: float) -> None:
        self.update(fraction)

    def update(self, fraction: float) -> None:
        """Set the completed fraction and redraw."""
        self.stats.fraction = _clamp(fraction)
        self._render()

    def _render(self) -> None:
        """Render the progress line."""
        stats = self.stats

        bar_width = 20
        filled = int(bar_width * stats.fraction)
        bar = "█" * filled + "░" * (bar_width - filled)

        line = (
            f"{self.desc}: [{bar}] ({stats.percent:.0f}%) "
            f"[{format_time(stats.elapsed)}<{format_time(stats.eta)}]"
        )

        if self._is_tty:
            # Use carriage return to overwrite line, pad with spaces to clear old content
            clear = " " * max(0, self._last_line_len - len(line))
            self._output.write(f"\r{line}{clear}")
            self._output.flush()
            self._last_line_len = len(line)
        else:
            # Non-TTY: one line per 10%
            decile = int(stats.fraction * 10)
            if decile != self._last_decile:
                self._last_decile = decile
                self._output.write(line + "\n")
                self._output.flush()

    def finish(self) -> None:
        """Finish progress and print summary."""
        if self._is_tty:
            self._output.write("\n")

        self._output.write(f"✓ {self.desc} finished ({format_time(self.stats.elapsed)})\n")
        self._output.flush()
