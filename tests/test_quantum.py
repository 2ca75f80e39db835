import asyncio
import random

import pytest

from dreamscape.collaborators.headless import HeadlessAudioEngine, HeadlessVisualEngine
from dreamscape.core.contracts import QuantumEffect, QuantumEvent
from dreamscape.core.timers import ManualScheduler
from dreamscape.pipeline.quantum import (
    BEAT_TRIGGER,
    INTERACTION_TRIGGER,
    QuantumEventGenerator,
    event_probability,
)


def make_event(effect):
    return QuantumEvent(trigger="manual", effect=effect, payload={}, timestamp=0.0)


@pytest.mark.parametrize(
    "trigger, payload, expected",
    [
        (BEAT_TRIGGER, {"energy": 0.5}, 0.05),
        (BEAT_TRIGGER, {"energy": 0.9}, 0.1),
        (INTERACTION_TRIGGER, {"intensity": 0.9}, 0.15),
        (INTERACTION_TRIGGER, {"intensity": None}, 0.05),
    ],
)
def test_event_probability_scales_with_context(trigger, payload, expected):
    assert event_probability(0.5, trigger, payload) == pytest.approx(expected)


def test_zero_randomness_never_fires():
    generator = QuantumEventGenerator(ManualScheduler(), rng=random.Random(1))
    fired = [
        generator.roll(0.0, INTERACTION_TRIGGER, {"intensity": 1.0})
        for _ in range(10_000)
    ]
    assert all(event is None for event in fired)


def test_full_randomness_fires_sometimes():
    generator = QuantumEventGenerator(ManualScheduler(start=12.0), rng=random.Random(1))
    events = [generator.roll(1.0, BEAT_TRIGGER, {"energy": 0.9}) for _ in range(1_000)]
    fired = [e for e in events if e is not None]

    assert 100 < len(fired) < 300
    assert fired[0].trigger == BEAT_TRIGGER
    assert fired[0].timestamp == 12.0


def test_dimension_rift_reverts_after_delay():
    scheduler = ManualScheduler()
    visual = HeadlessVisualEngine(time_scale=0)
    generator = QuantumEventGenerator(scheduler, visual=visual, rng=random.Random(4))

    asyncio.run(generator.perform(make_event(QuantumEffect.DIMENSION_RIFT)))
    assert visual.fractal_type != "mandelbrot"
    assert generator.fired == 1

    scheduler.advance(5.0)
    assert visual.fractal_type == "mandelbrot"


def test_harmonic_shift_detunes_then_restores():
    scheduler = ManualScheduler()
    audio = HeadlessAudioEngine(time_scale=0)
    original = audio.get_state()["parameters"]
    spawned = []
    generator = QuantumEventGenerator(scheduler, audio=audio, rng=random.Random(2), spawn=spawned.append)

    async def scenario():
        await generator.perform(make_event(QuantumEffect.HARMONIC_SHIFT))
        shifted = audio.get_state()["parameters"]
        scheduler.advance(10.0)
        for coro in spawned:
            await coro
        return shifted

    shifted = asyncio.run(scenario())

    assert shifted["harmonicRatios"] != original["harmonicRatios"]
    assert shifted["baseFrequency"] != original["baseFrequency"]
    restored = audio.get_state()["parameters"]
    assert restored["baseFrequency"] == pytest.approx(original["baseFrequency"])
    assert restored["harmonicRatios"] == pytest.approx(original["harmonicRatios"])


def test_visual_effects_change_parameters():
    visual = HeadlessVisualEngine(time_scale=0)
    generator = QuantumEventGenerator(ManualScheduler(), visual=visual, rng=random.Random(5))

    asyncio.run(generator.perform(make_event(QuantumEffect.ROTATION_BURST)))
    assert visual.parameters["rotation"] > 0.0

    asyncio.run(generator.perform(make_event(QuantumEffect.ZOOM_PULSE)))
    assert visual.parameters["zoom"] == pytest.approx(1.0)
    assert visual.transition_count == 3


def test_effects_without_collaborators_are_noops():
    generator = QuantumEventGenerator(ManualScheduler(), rng=random.Random(0))
    for effect in QuantumEffect:
        asyncio.run(generator.perform(make_event(effect)))
    assert generator.fired == len(QuantumEffect)
