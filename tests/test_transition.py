import asyncio

import pytest

from dreamscape.collaborators.transition import ParameterTransition, interpolate, smooth_ease


def test_smooth_ease_endpoints_and_midpoint():
    assert smooth_ease(0.0) == 0.0
    assert smooth_ease(1.0) == 1.0
    assert smooth_ease(0.5) == pytest.approx(0.875)
    assert smooth_ease(-1.0) == 0.0
    assert smooth_ease(2.0) == 1.0


def test_interpolate_numbers_lists_and_other_values():
    assert interpolate(0.0, 10.0, 1.0) == 10.0
    assert interpolate([1, 2], [3, 4], 1.0) == [3, 4]
    assert interpolate("a", "b", 0.5) == "a"
    assert interpolate("a", "b", 1.0) == "b"


def test_frames_end_exactly_at_target():
    transition = ParameterTransition({"zoom": 1.0, "mode": "a"}, {"zoom": 3.0, "mode": "b"}, duration=1.0, steps=4)
    frames = transition.frames()

    assert len(frames) == 4
    assert frames[-1] == {"zoom": 3.0, "mode": "b"}
    assert frames[0]["mode"] == "a"
    zooms = [frame["zoom"] for frame in frames]
    assert zooms == sorted(zooms)


def test_run_sleeps_between_frames():
    sleeps = []
    applied = []

    async def record_sleep(seconds):
        sleeps.append(seconds)

    transition = ParameterTransition({"zoom": 1.0}, {"zoom": 2.0}, duration=1.0, steps=4)
    asyncio.run(transition.run(applied.append, record_sleep))

    assert sleeps == [0.25] * 4
    assert applied[-1] == {"zoom": 2.0}
    assert transition.is_complete


def test_zero_duration_applies_target_immediately():
    applied = []
    transition = ParameterTransition({"tempo": 0}, {"tempo": 90}, duration=0.0)
    asyncio.run(transition.run(applied.append))

    assert applied == [{"tempo": 90}]
