"""
Assembles a fully wired Orchestrator from a DreamscapeConfig.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from dreamscape.analysis.state_analyzer import StateAnalyzer
from dreamscape.collaborators.base import (
    AudioCollaborator,
    InputCollaborator,
    UICollaborator,
    VisualCollaborator,
)
from dreamscape.config import DreamscapeConfig
from dreamscape.core.errors import TransportError
from dreamscape.core.timers import AsyncioScheduler, Scheduler, TimerHandle
from dreamscape.decision.decision_engine import DecisionEngine
from dreamscape.intent.request_interpreter import RequestInterpreter
from dreamscape.pipeline.orchestrator import Orchestrator
from dreamscape.reasoning.request_queue import RequestQueue
from dreamscape.reasoning.response_cache import ResponseCache
from dreamscape.reasoning.transport import OpenAITransport, ReasoningTransport


@dataclass
class Session:
    """An orchestrator plus the shared services it was built with."""
    orchestrator: Orchestrator
    request_queue: RequestQueue
    cache: Optional[ResponseCache]
    cache_sweeper: Optional[TimerHandle] = None

    async def close(self):
        await self.orchestrator.stop()
        if self.cache is not None:
            self.cache.stop_sweeper()
        await self.request_queue.close()


def build_session(
    config: DreamscapeConfig,
    visual: Optional[VisualCollaborator] = None,
    audio: Optional[AudioCollaborator] = None,
    ui: Optional[UICollaborator] = None,
    input_source: Optional[InputCollaborator] = None,
    scheduler: Optional[Scheduler] = None,
    transport: Optional[ReasoningTransport] = None,
    rng: Optional[random.Random] = None,
) -> Session:
    """
    Build every component from config.

    Args:
        config: Loaded configuration
        visual, audio, ui, input_source: Collaborators to drive
        scheduler: Timer source (asyncio-backed by default)
        transport: Reasoning transport (an OpenAI client unless simulating)
        rng: Shared random source

    Returns:
        Session holding the orchestrator and its services
    """
    scheduler = scheduler or AsyncioScheduler()
    rng = rng or random.Random()

    cache = ResponseCache.from_config(config.cache, clock=scheduler.now) if config.cache.enabled else None

    if transport is None and not config.queue.simulate:
        try:
            transport = OpenAITransport(config.transport)
        except TransportError as e:
            logger.warning(f"{e} - using simulated reasoning responses")
            config.queue.simulate = True

    queue_config = config.queue
    queue_config.cache_enabled = queue_config.cache_enabled and cache is not None
    request_queue = RequestQueue(
        transport=transport,
        cache=cache,
        config=queue_config,
        clock=scheduler.now,
    )

    decision_engine = DecisionEngine(
        request_queue=request_queue,
        config=config.decision,
        rng=rng,
        clock=scheduler.now,
    )
    interpreter = RequestInterpreter(
        request_queue=request_queue,
        model=config.decision.model,
        temperature=queue_config.temperature,
        max_tokens=queue_config.max_tokens,
    )
    analyzer = StateAnalyzer(config.analyzer, clock=scheduler.now)

    orchestrator = Orchestrator(
        visual=visual,
        audio=audio,
        ui=ui,
        input_source=input_source,
        analyzer=analyzer,
        decision_engine=decision_engine,
        interpreter=interpreter,
        config=config.orchestrator,
        scheduler=scheduler,
        rng=rng,
    )
    return Session(orchestrator=orchestrator, request_queue=request_queue, cache=cache)


def start_cache_sweeper(session: Session, scheduler: Scheduler, interval: float) -> Optional[TimerHandle]:
    """Begin periodic expiry sweeps (needs a running loop for AsyncioScheduler)."""
    if session.cache is None:
        return None
    session.cache_sweeper = session.cache.start_sweeper(scheduler, interval)
    return session.cache_sweeper
