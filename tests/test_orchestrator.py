import asyncio

import pytest

from conftest import make_snapshot
from dreamscape.collaborators.headless import HeadlessVisualEngine
from dreamscape.core.contracts import (
    Decision,
    FractalChange,
    IssueType,
    OrchestratorState,
    Provenance,
    Severity,
    UIDirectives,
)
from dreamscape.core.errors import UnknownModeError
from dreamscape.core.events import EventKind
from dreamscape.core.vocabulary import UNKNOWN_REQUEST_INTERPRETATION
from dreamscape.pipeline.orchestrator import Orchestrator, OrchestratorConfig


class BrokenVisual(HeadlessVisualEngine):
    async def transition_parameters(self, partial, duration):
        raise RuntimeError("renderer crashed")


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

def test_unknown_mode_is_rejected(make_orchestrator):
    orchestrator = make_orchestrator()
    changes = []
    orchestrator.subscribe(EventKind.MODE_CHANGED, changes.append)

    assert orchestrator.set_mode("nonexistent") is False
    assert orchestrator.current_mode == "contemplative"
    assert orchestrator.adaptation_period == 30.0
    assert changes == []


def test_unknown_initial_mode_fails_construction(scheduler):
    with pytest.raises(UnknownModeError):
        Orchestrator(config=OrchestratorConfig(initial_mode="nonexistent"), scheduler=scheduler)


def test_energetic_mode_shortens_the_timer(make_orchestrator, visual, audio):
    orchestrator = make_orchestrator()
    changes = []
    orchestrator.subscribe(EventKind.MODE_CHANGED, changes.append)

    async def scenario():
        await orchestrator.start()
        assert orchestrator.adaptation_timer.period == 45.0
        assert orchestrator.set_mode("energetic") is True

    asyncio.run(scenario())

    assert orchestrator.current_mode == "energetic"
    assert orchestrator.adaptation_period == 20.0
    assert orchestrator.adaptation_timer.period == 20.0
    assert visual.fractal_type == "mandelbulb"
    assert audio.parameters["tempo"] == 90
    assert changes[-1].previous == "contemplative"
    assert changes[-1].current == "energetic"


def test_extra_modes_come_from_config(make_orchestrator):
    orchestrator = make_orchestrator(extra_modes={
        "dreamy": {"visual": {"type": "julia"}, "audio": {"tempo": 40}, "adaptation_period": 60.0},
    })

    assert orchestrator.set_mode("dreamy")
    assert orchestrator.adaptation_period == 60.0
    assert "dreamy" in orchestrator.modes


# ---------------------------------------------------------------------------
# Adaptation cycle
# ---------------------------------------------------------------------------

def test_low_adaptation_level_skips_cycle(make_orchestrator, visual):
    orchestrator = make_orchestrator(adaptation_level=0.05)

    assert asyncio.run(orchestrator.adapt()) is None
    assert orchestrator.adaptation_history == ()
    assert orchestrator.get_state()["skipped_cycles"] == 1
    assert visual.type_changes == []


def test_adapt_records_and_publishes(make_orchestrator):
    orchestrator = make_orchestrator()
    received = []

    def broken(_payload):
        raise RuntimeError("listener bug")

    orchestrator.subscribe(EventKind.ADAPTATION_OCCURRED, broken)
    orchestrator.subscribe(EventKind.ADAPTATION_OCCURRED, received.append)

    record = asyncio.run(orchestrator.adapt())

    assert record is not None
    assert record.succeeded
    assert orchestrator.adaptation_history == (record,)
    assert received[0].record is record
    assert received[0].snapshot.mode == "contemplative"
    assert record.decision.provenance is Provenance.RULE


def test_failing_branch_does_not_block_others(scheduler, audio, ui):
    orchestrator = Orchestrator(
        visual=BrokenVisual(time_scale=0),
        audio=audio,
        ui=ui,
        scheduler=scheduler,
    )
    decision = Decision(
        rationale="test",
        provenance=Provenance.RULE,
        fractal=FractalChange(parameters={"zoom": 2.0}),
        audio={"tempo": 60},
        ui=UIDirectives(prompt="hello", highlight="zoom-control"),
    )

    errors = asyncio.run(orchestrator.apply(decision))

    assert len(errors) == 1
    assert errors[0].startswith("fractal_parameters")
    assert audio.parameters["tempo"] == 60
    assert ui.prompts == ["hello"]
    assert ui.highlights == ["zoom-control"]


def test_decision_with_unknown_mode_reports_error(make_orchestrator, audio):
    orchestrator = make_orchestrator()
    decision = Decision(rationale="test", provenance=Provenance.AI, mode="nonexistent", audio={"volume": 0.3})

    errors = asyncio.run(orchestrator.apply(decision))

    assert len(errors) == 1
    assert errors[0].startswith("mode")
    assert orchestrator.current_mode == "contemplative"
    assert audio.parameters["volume"] == 0.3


def test_periodic_timer_drives_cycles(make_orchestrator, scheduler):
    orchestrator = make_orchestrator()

    async def scenario():
        await orchestrator.start()
        scheduler.advance(5.0)
        await orchestrator.drain()
        first = len(orchestrator.adaptation_history)

        # 45s without interaction: engagement drops and the energetic mode takes over
        scheduler.advance(40.0)
        await orchestrator.drain()
        second = len(orchestrator.adaptation_history)

        scheduler.advance(20.0)
        await orchestrator.drain()
        third = len(orchestrator.adaptation_history)
        await orchestrator.stop()
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert (first, second, third) == (1, 2, 3)
    assert orchestrator.current_mode == "energetic"
    assert orchestrator.adaptation_period == 20.0
    assert orchestrator.state is OrchestratorState.STOPPED


def test_trigger_interactions_start_a_cycle(make_orchestrator, input_hub):
    orchestrator = make_orchestrator()

    async def scenario():
        await orchestrator.start()
        input_hub.emit("mode_change", position=(0.5, 0.5))
        input_hub.emit("click", position=(0.5, 0.5), intensity=0.1)
        await orchestrator.drain()
        await orchestrator.stop()

    asyncio.run(scenario())

    assert len(orchestrator.adaptation_history) == 1
    assert [e.type for e in orchestrator.interaction_history] == ["mode_change", "click"]
    assert orchestrator.analyzer.summary()["interaction_count"] == 2


def test_intense_interactions_trigger_about_half_the_time(make_orchestrator, input_hub):
    orchestrator = make_orchestrator(quantum_randomness=0.0)
    cycles = []
    orchestrator.subscribe(EventKind.ADAPTATION_OCCURRED, cycles.append)

    async def scenario():
        await orchestrator.start()
        await orchestrator.drain()
        timer = orchestrator.adaptation_timer

        for _ in range(50):
            input_hub.emit("drag", position=(0.5, 0.5), intensity=0.8)
        await orchestrator.drain()
        at_threshold = len(cycles)

        for _ in range(200):
            input_hub.emit("drag", position=(0.5, 0.5), intensity=0.9)
        await orchestrator.drain()
        above_threshold = len(cycles) - at_threshold

        same_timer = orchestrator.adaptation_timer is timer
        await orchestrator.stop()
        return at_threshold, above_threshold, same_timer, timer

    at_threshold, above_threshold, same_timer, timer = asyncio.run(scenario())

    assert at_threshold == 0
    assert 70 <= above_threshold <= 130
    assert same_timer
    assert timer.cancelled


def test_collaborator_state_changes_reach_the_analyzer(make_orchestrator, visual, audio):
    orchestrator = make_orchestrator()
    analyzer = orchestrator.analyzer

    async def scenario():
        await orchestrator.start()
        await orchestrator.drain()
        before = analyzer.summary()["state_changes"]

        visual.report_performance(25.0)
        audio.set_parameters({"volume": 0.2})
        during = analyzer.summary()["state_changes"]

        await orchestrator.stop()
        visual.report_performance(10.0)
        return before, during

    before, during = asyncio.run(scenario())

    assert during == before + 2
    assert analyzer.summary()["state_changes"] == during

    # The held view alone carries the renderer's frame rate and the audio volume
    analysis = analyzer.analyze(make_snapshot())
    issue = next(i for i in analysis.issues if i.type is IssueType.PERFORMANCE)
    assert issue.severity is Severity.MEDIUM
    assert issue.value == 25.0
    assert analysis.context.audio_parameters["volume"] == 0.2


def test_pause_resume_and_stop(make_orchestrator, scheduler, input_hub, audio):
    orchestrator = make_orchestrator()

    async def scenario():
        await orchestrator.start()
        assert input_hub.listener_count == 1
        assert orchestrator.pause()
        scheduler.advance(100.0)
        await orchestrator.drain()
        paused_cycles = len(orchestrator.adaptation_history)

        assert orchestrator.resume()
        assert orchestrator.adaptation_timer is not None
        await orchestrator.stop()
        return paused_cycles

    assert asyncio.run(scenario()) == 0
    assert input_hub.listener_count == 0
    assert orchestrator.adaptation_timer is None
    assert asyncio.run(orchestrator.adapt()) is None


def test_levels_are_clamped(make_orchestrator):
    orchestrator = make_orchestrator(quantum_randomness=3.0)
    orchestrator.adaptation_level = -1.0

    assert orchestrator.quantum_randomness == 1.0
    assert orchestrator.adaptation_level == 0.0


# ---------------------------------------------------------------------------
# Quantum events
# ---------------------------------------------------------------------------

def test_zero_randomness_never_fires_quantum_events(make_orchestrator):
    orchestrator = make_orchestrator(quantum_randomness=0.0)
    events = [
        orchestrator.check_for_quantum_event("interaction", {"intensity": 1.0})
        for _ in range(10_000)
    ]

    assert all(event is None for event in events)
    assert orchestrator.get_state()["quantum_events"] == 0


def test_forced_quantum_event_is_published(make_orchestrator):
    orchestrator = make_orchestrator()
    fired = []
    orchestrator.subscribe(EventKind.QUANTUM_EVENT_FIRED, fired.append)

    event = asyncio.run(orchestrator.trigger_quantum_event())

    assert fired[0].event is event
    assert orchestrator.get_state()["quantum_events"] == 1


# ---------------------------------------------------------------------------
# Natural-language requests
# ---------------------------------------------------------------------------

def test_unknown_request_gets_canned_interpretation(make_orchestrator):
    orchestrator = make_orchestrator()
    outcome = asyncio.run(orchestrator.process_request("blorp fizzle"))

    assert outcome.interpretation == UNKNOWN_REQUEST_INTERPRETATION
    assert not outcome.understood
    assert outcome.actions == []
    assert outcome.error is None


def test_mood_request_switches_mode(make_orchestrator):
    orchestrator = make_orchestrator()
    outcome = asyncio.run(orchestrator.process_request("something more energetic please"))

    assert outcome.understood
    assert outcome.actions == ["Changed to energetic mode"]
    assert orchestrator.current_mode == "energetic"


def test_fractal_request_changes_fractal(make_orchestrator, visual):
    orchestrator = make_orchestrator()
    outcome = asyncio.run(orchestrator.process_request("show me a julia set"))

    assert outcome.actions == ["Changed fractal to julia"]
    assert visual.fractal_type == "julia"


def test_deeper_request_zooms_and_lowers_pitch(make_orchestrator, visual, audio):
    orchestrator = make_orchestrator()
    outcome = asyncio.run(orchestrator.process_request("take me deeper"))

    assert len(outcome.actions) == 2
    assert visual.parameters["zoom"] >= 2.0
    assert audio.parameters["baseFrequency"] == pytest.approx(432.0 * 0.9)
