"""
Headless reference collaborators.

In-memory visual and audio engines, an input hub and a log-backed UI.
They back the CLI session runner and the test-suite; real renderers and
synthesizers plug in through the same base classes.
"""

from __future__ import annotations

import asyncio
import copy
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from dreamscape.collaborators.base import (
    AudioCollaborator,
    InputCollaborator,
    UICollaborator,
    Unsubscribe,
    VisualCollaborator,
)
from dreamscape.collaborators.transition import ParameterTransition
from dreamscape.core.contracts import InteractionEvent
from dreamscape.core.vocabulary import FRACTAL_TYPES


DEFAULT_VISUAL_PARAMETERS = {
    "zoom": 1.0,
    "iterations": 100,
    "rotation": 0.0,
    "colorShift": 0.0,
    "centerX": -0.5,
    "centerY": 0.0,
}

DEFAULT_AUDIO_PARAMETERS = {
    "baseFrequency": 432.0,
    "tempo": 0,
    "binauralBeat": 7.83,
    "volume": 0.5,
    "harmonicRatios": [1, 1.5, 2, 2.5, 3],
    "pulseRate": 0.0,
    "reverbDecay": 2.0,
}


def _listener_list_unsubscribe(listeners: List[Callable], listener: Callable) -> Unsubscribe:
    def unsubscribe():
        if listener in listeners:
            listeners.remove(listener)
    return unsubscribe


class HeadlessVisualEngine(VisualCollaborator):
    """
    Holds fractal state and animates parameter changes in memory.

    time_scale multiplies transition durations; 0 makes them instant.
    """

    def __init__(
        self,
        fractal_type: str = "mandelbrot",
        parameters: Optional[Dict[str, Any]] = None,
        time_scale: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fractal_type = fractal_type
        self.parameters: Dict[str, Any] = {**DEFAULT_VISUAL_PARAMETERS, **(parameters or {})}
        self.available_types = list(FRACTAL_TYPES)
        self.time_scale = time_scale
        self.fps = 60.0
        self._sleep = sleep
        self._state_listeners: List[Callable[[Dict[str, Any]], None]] = []
        self.type_changes: List[str] = []
        self.transition_count = 0

    def get_state(self) -> Dict[str, Any]:
        return {
            "type": self.fractal_type,
            "parameters": copy.deepcopy(self.parameters),
            "available_types": list(self.available_types),
            "performance": {"fps": self.fps},
        }

    def set_fractal_type(self, name: str) -> bool:
        if name not in self.available_types:
            logger.warning(f"Unknown fractal type '{name}'")
            return False
        self.fractal_type = name
        self.type_changes.append(name)
        self._changed()
        return True

    def report_performance(self, fps: float):
        """Record a measured frame rate."""
        self.fps = fps
        self._changed()

    def set_parameters(self, partial: Dict[str, Any]) -> None:
        self.parameters.update(copy.deepcopy(partial))
        self._changed()

    async def transition_parameters(self, partial: Dict[str, Any], duration: float) -> None:
        self.transition_count += 1
        transition = ParameterTransition(self.parameters, partial, duration * self.time_scale)
        await transition.run(self.parameters.update, self._sleep)
        self._changed()

    def subscribe_state(self, listener: Callable[[Dict[str, Any]], None]) -> Unsubscribe:
        self._state_listeners.append(listener)
        return _listener_list_unsubscribe(self._state_listeners, listener)

    def _changed(self):
        state = self.get_state()
        for listener in list(self._state_listeners):
            listener(state)


class HeadlessAudioEngine(AudioCollaborator):
    """Holds audio parameters and emits beats on demand."""

    def __init__(
        self,
        parameters: Optional[Dict[str, Any]] = None,
        time_scale: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.parameters: Dict[str, Any] = copy.deepcopy({**DEFAULT_AUDIO_PARAMETERS, **(parameters or {})})
        self.time_scale = time_scale
        self._sleep = sleep
        self._state_listeners: List[Callable[[Dict[str, Any]], None]] = []
        self._beat_listeners: List[Callable[[float], None]] = []
        self._last_energy = 0.0
        self.transition_count = 0

    def get_state(self) -> Dict[str, Any]:
        return {
            "parameters": copy.deepcopy(self.parameters),
            "analysis": {"energy": self._last_energy},
        }

    def set_parameters(self, partial: Dict[str, Any]) -> None:
        self.parameters.update(copy.deepcopy(partial))
        self._changed()

    async def transition_parameters(self, partial: Dict[str, Any], duration: float) -> None:
        self.transition_count += 1
        transition = ParameterTransition(self.parameters, partial, duration * self.time_scale)
        await transition.run(self.parameters.update, self._sleep)
        self._changed()

    def subscribe_beats(self, listener: Callable[[float], None]) -> Unsubscribe:
        self._beat_listeners.append(listener)
        return _listener_list_unsubscribe(self._beat_listeners, listener)

    def emit_beat(self, energy: float):
        """Notify beat listeners (stand-in for onset detection)."""
        self._last_energy = energy
        for listener in list(self._beat_listeners):
            listener(energy)

    def subscribe_state(self, listener: Callable[[Dict[str, Any]], None]) -> Unsubscribe:
        self._state_listeners.append(listener)
        return _listener_list_unsubscribe(self._state_listeners, listener)

    def _changed(self):
        state = self.get_state()
        for listener in list(self._state_listeners):
            listener(state)


class InputHub(InputCollaborator):
    """Fan-out point for interaction events from any input source."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._listeners: List[Callable[[InteractionEvent], None]] = []
        self._clock = clock

    def subscribe(self, listener: Callable[[InteractionEvent], None]) -> Unsubscribe:
        self._listeners.append(listener)
        return _listener_list_unsubscribe(self._listeners, listener)

    def emit(
        self,
        event_type: str,
        position=None,
        intensity: Optional[float] = None,
        timestamp: Optional[float] = None,
    ) -> InteractionEvent:
        event = InteractionEvent(
            type=event_type,
            timestamp=self._clock() if timestamp is None else timestamp,
            position=tuple(position) if position is not None else None,
            intensity=intensity,
        )
        for listener in list(self._listeners):
            listener(event)
        return event

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class LogUI(UICollaborator):
    """Writes prompts and highlights to the log and remembers them."""

    def __init__(self):
        self.prompts: List[str] = []
        self.highlights: List[str] = []

    def show_prompt(self, text: str) -> None:
        self.prompts.append(text)
        logger.info(f"💬 {text}")

    def highlight_element(self, element_id: str) -> None:
        self.highlights.append(element_id)
        logger.info(f"✨ Highlight: {element_id}")
