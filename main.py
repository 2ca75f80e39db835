#!/usr/bin/env python3
"""
Dreamscape Adaptation Engine

Runs a headless adaptive session: in-memory fractal and audio engines
driven by the orchestration loop, with a scripted user producing
interactions, audio beats and natural-language requests.

Usage:
    python main.py [--config CONFIG_PATH] [--preset PRESET] [--duration SECONDS]

Example requests:
    "make it calmer"
    "show me a julia set"
    "zoom in deeper"
    "surprise me"
"""

from __future__ import annotations

import argparse
import asyncio
import random
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from dreamscape.collaborators.headless import (
    HeadlessAudioEngine,
    HeadlessVisualEngine,
    InputHub,
    LogUI,
)
from dreamscape.config import PRESETS, DreamscapeConfig, load_config
from dreamscape.core.events import EventKind
from dreamscape.core.timers import AsyncioScheduler
from dreamscape.pipeline.factory import Session, build_session, start_cache_sweeper


SCRIPTED_INTERACTIONS = ("click", "drag", "zoom", "pan", "rotate")

DEFAULT_REQUESTS = ["make it calmer", "show me a julia set", "surprise me"]


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# SCRIPTED USER
# ============================================================

class ScriptedUser:
    """Produces interactions, beats and requests for a headless session."""

    def __init__(
        self,
        session: Session,
        input_hub: InputHub,
        audio: HeadlessAudioEngine,
        requests: List[str],
        rng: random.Random,
    ):
        self.session = session
        self.input_hub = input_hub
        self.audio = audio
        self.requests = list(requests)
        self.rng = rng

    async def interact(self, duration: float):
        """Bursts of activity separated by idle stretches."""
        loop = asyncio.get_running_loop()
        end = loop.time() + duration
        while loop.time() < end:
            for _ in range(self.rng.randint(2, 6)):
                self.input_hub.emit(
                    self.rng.choice(SCRIPTED_INTERACTIONS),
                    position=(self.rng.random(), self.rng.random()),
                    intensity=self.rng.random(),
                )
                await asyncio.sleep(self.rng.uniform(0.2, 1.5))
            await asyncio.sleep(self.rng.uniform(3.0, 12.0))

    async def beat(self, duration: float, interval: float = 0.5):
        loop = asyncio.get_running_loop()
        end = loop.time() + duration
        while loop.time() < end:
            self.audio.emit_beat(self.rng.random())
            await asyncio.sleep(interval)

    async def ask(self, duration: float):
        """Spread requests evenly across the session."""
        if not self.requests:
            return
        gap = duration / (len(self.requests) + 1)
        for text in self.requests:
            await asyncio.sleep(gap)
            outcome = await self.session.orchestrator.process_request(text)
            logger.info(
                f"🗣️ '{outcome.original_prompt}' -> {outcome.interpretation} "
                f"(actions: {outcome.actions or 'none'})"
            )


# ============================================================
# SESSION RUNNER
# ============================================================

async def run_session(config: DreamscapeConfig, duration: float, requests: List[str], seed: Optional[int] = None):
    """Run one headless session for `duration` seconds."""
    rng = random.Random(seed)
    scheduler = AsyncioScheduler()

    visual = HeadlessVisualEngine()
    audio = HeadlessAudioEngine()
    input_hub = InputHub()
    ui = LogUI()

    session = build_session(
        config,
        visual=visual,
        audio=audio,
        ui=ui,
        input_source=input_hub,
        scheduler=scheduler,
        rng=rng,
    )
    orchestrator = session.orchestrator
    orchestrator.subscribe(
        EventKind.MODE_CHANGED,
        lambda change: logger.info(f"Mode changed: {change.previous} -> {change.current}"),
    )
    orchestrator.subscribe(
        EventKind.QUANTUM_EVENT_FIRED,
        lambda fired: logger.info(f"Quantum {fired.event.effect.value} on {fired.event.trigger}"),
    )

    start_cache_sweeper(session, scheduler, config.cache.sweep_interval)
    user = ScriptedUser(session, input_hub, audio, requests, rng)

    await orchestrator.start()
    try:
        await asyncio.gather(
            user.interact(duration),
            user.beat(duration),
            user.ask(duration),
        )
        await orchestrator.drain()
    finally:
        state = orchestrator.get_state()
        stats = session.request_queue.stats()
        await session.close()

    logger.info("=" * 50)
    logger.info("SESSION SUMMARY")
    for key, value in state.items():
        logger.info(f"  {key}: {value}")
    logger.info(f"  reasoning: {stats}")
    logger.info(f"  fractal: {visual.fractal_type} (changes: {len(visual.type_changes)})")
    logger.info(f"  prompts shown: {len(ui.prompts)}")
    logger.info("=" * 50)


# ============================================================
# ENTRY POINT
# ============================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Dreamscape Adaptation Engine (headless session)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: config/settings.yaml)",
    )

    parser.add_argument(
        "--preset", "-p",
        type=str,
        default=None,
        choices=sorted(PRESETS),
        help="Session preset, overriding the config file",
    )

    parser.add_argument(
        "--duration", "-d",
        type=float,
        default=60.0,
        help="Session length in seconds (default: 60)",
    )

    parser.add_argument(
        "--request", "-r",
        action="append",
        default=None,
        help="Natural-language request to send during the session (repeatable)",
    )

    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use simulated reasoning responses instead of the live service",
    )

    parser.add_argument(
        "--cache-file",
        type=str,
        default=None,
        help="Persist the reasoning response cache to this JSON file",
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for a reproducible session",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path (default: from config, none)",
    )

    args = parser.parse_args()

    config = load_config(args.config, preset=args.preset)
    if args.simulate:
        config.queue.simulate = True
    if args.cache_file:
        config.cache.persist_path = args.cache_file

    # Setup logging
    setup_logging(args.log_level or config.logging.level, args.log_file or config.logging.file)

    requests = args.request if args.request is not None else DEFAULT_REQUESTS
    try:
        asyncio.run(run_session(config, args.duration, requests, seed=args.seed))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
