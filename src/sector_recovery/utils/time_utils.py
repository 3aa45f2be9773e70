"""Time utility helpers for run durations."""

from __future__ import annotations


def format_elapsed(seconds: float) -> str:
    """Render a wall-clock duration the way the console summary prints it."""

    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.3f}s"
    minutes, remainder = divmod(seconds, 60.0)
    return f"{int(minutes)}m{remainder:.3f}s"
