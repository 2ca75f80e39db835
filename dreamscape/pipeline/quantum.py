"""
Quantum event generator.

Rare, probabilistic perturbations layered on top of normal adaptation.
Each event applies one effect; transient effects schedule their own
reversal. Reversal timers are never cancelled by mode switches, so the
last writer wins on shared collaborator parameters.
"""

from __future__ import annotations

import math
import random
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from dreamscape.collaborators.base import AudioCollaborator, VisualCollaborator
from dreamscape.core.contracts import QuantumEffect, QuantumEvent
from dreamscape.core.timers import Scheduler
from dreamscape.core.vocabulary import FRACTAL_TYPES


BEAT_TRIGGER = "beat"
INTERACTION_TRIGGER = "interaction"

BASE_PROBABILITY_SCALE = 0.1
HIGH_ENERGY_BEAT = 0.7
HIGH_INTENSITY_INTERACTION = 0.8

EFFECTS = tuple(QuantumEffect)


def context_multiplier(trigger: str, payload: Dict[str, Any]) -> float:
    """2 for high-energy beats, 3 for high-intensity interactions, else 1."""
    if trigger == BEAT_TRIGGER and (payload.get("energy") or 0) > HIGH_ENERGY_BEAT:
        return 2.0
    if trigger == INTERACTION_TRIGGER and (payload.get("intensity") or 0) > HIGH_INTENSITY_INTERACTION:
        return 3.0
    return 1.0


def event_probability(randomness: float, trigger: str, payload: Dict[str, Any]) -> float:
    return randomness * BASE_PROBABILITY_SCALE * context_multiplier(trigger, payload)


class QuantumEventGenerator:
    """
    Rolls for and performs quantum events.

    Effects:
    - colorShift: random palette offset
    - zoomPulse: zoom out over 1s, then straight back over 1s
    - rotationBurst: rotate by up to pi/4 over 0.5s
    - dimensionRift: switch fractal type, revert after 2-5s
    - harmonicShift: detune two harmonics and the base, revert after 5-10s
    """

    def __init__(
        self,
        scheduler: Scheduler,
        visual: Optional[VisualCollaborator] = None,
        audio: Optional[AudioCollaborator] = None,
        rng: Optional[random.Random] = None,
        spawn: Optional[Callable[[Awaitable[Any]], Any]] = None,
    ):
        """
        Args:
            scheduler: Timer source for reversals
            visual: Visual collaborator
            audio: Audio collaborator
            rng: Random source
            spawn: Runs a coroutine in the background (needed for async reversals)
        """
        self._scheduler = scheduler
        self._visual = visual
        self._audio = audio
        self._rng = rng or random.Random()
        self._spawn = spawn
        self.fired = 0

    def roll(self, randomness: float, trigger: str, payload: Optional[Dict[str, Any]] = None) -> Optional[QuantumEvent]:
        """
        Draw once for a trigger.

        Returns:
            The event to perform, or None if the draw failed
        """
        payload = payload or {}
        probability = event_probability(randomness, trigger, payload)
        if probability <= 0 or self._rng.random() >= probability:
            return None
        effect = self._rng.choice(EFFECTS)
        return QuantumEvent(
            trigger=trigger,
            effect=effect,
            payload=dict(payload),
            timestamp=self._scheduler.now(),
        )

    async def perform(self, event: QuantumEvent):
        """Apply the event's effect."""
        handler = {
            QuantumEffect.COLOR_SHIFT: self._color_shift,
            QuantumEffect.ZOOM_PULSE: self._zoom_pulse,
            QuantumEffect.ROTATION_BURST: self._rotation_burst,
            QuantumEffect.DIMENSION_RIFT: self._dimension_rift,
            QuantumEffect.HARMONIC_SHIFT: self._harmonic_shift,
        }[event.effect]
        await handler()
        self.fired += 1
        logger.info(f"⚛️ Quantum event: {event.effect.value} (trigger: {event.trigger})")

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _visual_parameters(self) -> Dict[str, Any]:
        return dict(self._visual.get_state().get("parameters") or {})

    async def _color_shift(self):
        if self._visual is None:
            return
        self._visual.set_parameters({"colorShift": self._rng.random()})

    async def _zoom_pulse(self):
        if self._visual is None:
            return
        zoom = float(self._visual_parameters().get("zoom", 1.0))
        await self._visual.transition_parameters({"zoom": zoom * (1 + self._rng.random())}, 1.0)
        await self._visual.transition_parameters({"zoom": zoom}, 1.0)

    async def _rotation_burst(self):
        if self._visual is None:
            return
        rotation = float(self._visual_parameters().get("rotation", 0.0))
        target = rotation + self._rng.random() * math.pi / 4
        await self._visual.transition_parameters({"rotation": target}, 0.5)

    async def _dimension_rift(self):
        if self._visual is None:
            return
        state = self._visual.get_state()
        current = state.get("type")
        available = state.get("available_types") or FRACTAL_TYPES
        choices = [t for t in available if t != current]
        if not choices:
            return
        if not self._visual.set_fractal_type(self._rng.choice(choices)):
            return
        delay = 2.0 + self._rng.random() * 3.0
        if current:
            self._scheduler.call_later(delay, lambda: self._visual.set_fractal_type(current))

    async def _harmonic_shift(self):
        if self._audio is None:
            return
        parameters = dict(self._audio.get_state().get("parameters") or {})
        ratios = list(parameters.get("harmonicRatios") or [])
        base = parameters.get("baseFrequency")
        original: Dict[str, Any] = {}
        shifted: Dict[str, Any] = {}

        if len(ratios) >= 2:
            original["harmonicRatios"] = list(ratios)
            for index in self._rng.sample(range(len(ratios)), 2):
                ratios[index] = ratios[index] * (0.9 + self._rng.random() * 0.2)
            shifted["harmonicRatios"] = ratios
        if base is not None:
            original["baseFrequency"] = base
            shifted["baseFrequency"] = float(base) * (0.95 + self._rng.random() * 0.1)
        if not shifted:
            return

        await self._audio.transition_parameters(shifted, 2.0)
        delay = 5.0 + self._rng.random() * 5.0
        if self._spawn is not None:
            self._scheduler.call_later(
                delay, lambda: self._spawn(self._audio.transition_parameters(original, 3.0))
            )
