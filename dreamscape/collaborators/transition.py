"""
Parameter transitions.

Interpolates numeric parameters from their current values to targets
along an ease-out cubic curve. Non-numeric values switch at the end.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List


def smooth_ease(t: float) -> float:
    """Smooth ease-out cubic curve.

    Args:
        t: Progress value from 0.0 to 1.0

    Returns:
        Eased value from 0.0 to 1.0
    """
    if t >= 1.0:
        return 1.0
    if t <= 0.0:
        return 0.0
    return 1.0 - (1.0 - t) ** 3


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def interpolate(start: Any, end: Any, progress: float) -> Any:
    """Blend two values at an eased progress.

    Numbers blend linearly, equal-length numeric lists blend element-wise,
    everything else snaps to `end` once progress reaches 1.
    """
    eased = smooth_ease(progress)
    if _is_number(start) and _is_number(end):
        return start + (end - start) * eased
    if (
        isinstance(start, list) and isinstance(end, list) and len(start) == len(end)
        and all(_is_number(v) for v in start + end)
    ):
        return [a + (b - a) * eased for a, b in zip(start, end)]
    return end if progress >= 1.0 else start


class ParameterTransition:
    """Animates a parameter dict toward target values.

    Usage:
        transition = ParameterTransition(current, {"zoom": 2.0}, duration=1.0)
        await transition.run(apply)   # apply(dict) called every step

    Attributes:
        start: Values when the transition began
        target: Values when it ends
        duration: Seconds from start to target
        steps: Number of intermediate updates
    """

    def __init__(
        self,
        current: Dict[str, Any],
        target: Dict[str, Any],
        duration: float = 1.0,
        steps: int = 20,
    ):
        """Initialize a transition.

        Args:
            current: Present parameter values
            target: Parameter values to reach
            duration: Seconds for the full transition
            steps: Intermediate updates (at least 1)
        """
        self.start = {k: current.get(k, v) for k, v in target.items()}
        self.target = dict(target)
        self.duration = max(0.0, duration)
        self.steps = max(1, steps)
        self.progress = 0.0

    def values_at(self, progress: float) -> Dict[str, Any]:
        return {k: interpolate(self.start[k], v, progress) for k, v in self.target.items()}

    def frames(self) -> List[Dict[str, Any]]:
        """All intermediate value sets, ending exactly at the target."""
        if self.duration == 0:
            return [dict(self.target)]
        return [self.values_at(i / self.steps) for i in range(1, self.steps + 1)]

    async def run(
        self,
        apply: Callable[[Dict[str, Any]], None],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Drive the transition, calling apply for every frame."""
        frames = self.frames()
        interval = self.duration / len(frames) if self.duration else 0.0
        for index, values in enumerate(frames, start=1):
            if interval:
                await sleep(interval)
            apply(values)
            self.progress = index / len(frames)

    @property
    def is_complete(self) -> bool:
        return self.progress >= 1.0
