"""Shared pytest fixtures for Dreamscape tests.

Provides a controllable clock, a manually advanced scheduler, headless
collaborators with instant transitions and scripted reasoning transports,
so that test modules can focus on behaviour rather than wiring.
"""

from __future__ import annotations

import json
import random
from typing import Any, Dict, Iterable, List, Optional

import pytest

from dreamscape.collaborators.headless import (
    HeadlessAudioEngine,
    HeadlessVisualEngine,
    InputHub,
    LogUI,
)
from dreamscape.core.contracts import InteractionEvent, TelemetrySnapshot
from dreamscape.core.errors import TransportError
from dreamscape.core.timers import ManualScheduler
from dreamscape.pipeline.orchestrator import Orchestrator, OrchestratorConfig
from dreamscape.reasoning.transport import ReasoningTransport


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


# ---------------------------------------------------------------------------
# Reasoning transports
# ---------------------------------------------------------------------------

def chat_response(content: str) -> Dict[str, Any]:
    """Minimal chat-completion response body."""
    return {
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class ScriptedTransport(ReasoningTransport):
    """Records every request and answers with fixed content.

    Requests whose 1-based position is in ``fail_on`` raise TransportError.
    With ``echo`` set, the reply is the JSON-encoded request params.
    """

    def __init__(self, content: str = "{}", fail_on: Iterable[int] = (), echo: bool = False):
        self.content = content
        self.fail_on = set(fail_on)
        self.echo = echo
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def send(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(params)
        if len(self.calls) in self.fail_on:
            raise TransportError(f"scripted failure on request {len(self.calls)}")
        if self.echo:
            return chat_response(json.dumps(params))
        return chat_response(self.content)

    async def close(self):
        self.closed = True


class FailingTransport(ScriptedTransport):
    """Every request fails."""

    async def send(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(params)
        raise TransportError("service unavailable")


# ---------------------------------------------------------------------------
# Telemetry helpers
# ---------------------------------------------------------------------------

def make_events(timestamps: Iterable[float], types: Optional[List[str]] = None) -> List[InteractionEvent]:
    """Interaction events at the given times, cycling through ``types``."""
    types = types or ["click"]
    return [
        InteractionEvent(type=types[i % len(types)], timestamp=t, position=(0.5, 0.5))
        for i, t in enumerate(timestamps)
    ]


def make_snapshot(
    now: float = 1_000.0,
    idle: float = 0.0,
    interactions: Iterable[InteractionEvent] = (),
    visual: Optional[Dict[str, Any]] = None,
    audio: Optional[Dict[str, Any]] = None,
    session: float = 120.0,
    mode: str = "contemplative",
) -> TelemetrySnapshot:
    return TelemetrySnapshot(
        timestamp=now,
        session_duration=session,
        time_since_last_interaction=idle,
        mode=mode,
        adaptation_level=0.5,
        quantum_randomness=0.3,
        visual_state=visual or {},
        audio_state=audio or {},
        recent_interactions=tuple(interactions),
    )


# ---------------------------------------------------------------------------
# Collaborators and orchestrator
# ---------------------------------------------------------------------------

@pytest.fixture
def visual() -> HeadlessVisualEngine:
    return HeadlessVisualEngine(time_scale=0)


@pytest.fixture
def audio() -> HeadlessAudioEngine:
    return HeadlessAudioEngine(time_scale=0)


@pytest.fixture
def ui() -> LogUI:
    return LogUI()


@pytest.fixture
def input_hub(scheduler) -> InputHub:
    return InputHub(clock=scheduler.now)


@pytest.fixture
def make_orchestrator(scheduler, visual, audio, ui, input_hub):
    """Factory for orchestrators wired to the headless collaborators."""

    def factory(**config: Any) -> Orchestrator:
        return Orchestrator(
            visual=visual,
            audio=audio,
            ui=ui,
            input_source=input_hub,
            config=OrchestratorConfig(**config),
            scheduler=scheduler,
            rng=random.Random(7),
        )

    return factory
