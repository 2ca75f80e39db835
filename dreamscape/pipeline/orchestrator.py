"""
Adaptation Orchestrator.

Runs the adaptive control loop:

1. Snapshot telemetry from collaborators and interaction history
2. Analyze the snapshot (StateAnalyzer)
3. Decide on a change set (DecisionEngine)
4. Apply the decision to collaborators, sub-changes concurrently
5. Record the cycle and notify listeners

Cycles run on a periodic timer and on qualifying interactions. An
independent quantum event generator adds rare self-reversing
perturbations on beats and interactions.
"""

from __future__ import annotations

import asyncio
import random
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, Tuple

from loguru import logger

from dreamscape.analysis.state_analyzer import StateAnalyzer
from dreamscape.collaborators.base import (
    AudioCollaborator,
    InputCollaborator,
    UICollaborator,
    Unsubscribe,
    VisualCollaborator,
)
from dreamscape.core.contracts import (
    RECENT_ADAPTATION_LIMIT,
    RECENT_INTERACTION_LIMIT,
    TRIGGER_INTERACTION_TYPES,
    AdaptationRecord,
    Decision,
    InteractionEvent,
    Mode,
    OrchestratorState,
    QuantumEvent,
    TelemetrySnapshot,
    UIDirectives,
)
from dreamscape.core.errors import TransitionError, UnknownModeError
from dreamscape.core.events import (
    AdaptationOccurred,
    EventBus,
    EventKind,
    ModeChanged,
    QuantumEventFired,
)
from dreamscape.core.timers import AsyncioScheduler, Scheduler, TimerHandle
from dreamscape.core.vocabulary import (
    NOVELTY_FRACTAL_TYPES,
    SOUND_STYLES,
    SOUND_TEMPOS,
    closest_mode_for_mood,
)
from dreamscape.decision.decision_engine import DecisionEngine
from dreamscape.intent.request_interpreter import (
    RequestInterpretation,
    RequestInterpreter,
    RequestOutcome,
)
from dreamscape.pipeline.modes import ModeCatalog
from dreamscape.pipeline.quantum import (
    BEAT_TRIGGER,
    EFFECTS,
    INTERACTION_TRIGGER,
    QuantumEventGenerator,
)
from dreamscape.reasoning.prompts import exploration_depth


@dataclass
class OrchestratorConfig:
    """Configuration for the adaptation loop."""
    adaptation_level: float = 0.5
    quantum_randomness: float = 0.3
    adaptation_period: float = 30.0         # until the initial mode is applied
    initial_mode: str = "contemplative"
    initial_adaptation_delay: float = 5.0

    # Adaptation cycles are skipped below this level
    min_adaptation_level: float = 0.1

    # High-intensity interactions trigger a cycle with this probability
    high_intensity_threshold: float = 0.8
    high_intensity_trigger_probability: float = 0.5

    interaction_history_limit: int = 100
    adaptation_history_limit: int = 20
    max_concurrent_transitions: int = 4
    fractal_transition_duration: float = 2.0
    audio_transition_duration: float = 3.0

    # name -> {visual: {...}, audio: {...}, adaptation_period: float}
    extra_modes: Dict[str, Dict[str, Any]] = field(default_factory=dict)


class Orchestrator:
    """
    Main adaptation loop.

    Owns the current mode, adaptation period and history logs; other
    components only ever see read-only snapshots.

    Guarantees:
    - At most one decision is applied at a time
    - Unknown modes are rejected before any side effect
    - No single cycle failure stops the timer or event triggers
    """

    def __init__(
        self,
        visual: Optional[VisualCollaborator] = None,
        audio: Optional[AudioCollaborator] = None,
        ui: Optional[UICollaborator] = None,
        input_source: Optional[InputCollaborator] = None,
        analyzer: Optional[StateAnalyzer] = None,
        decision_engine: Optional[DecisionEngine] = None,
        interpreter: Optional[RequestInterpreter] = None,
        config: Optional[OrchestratorConfig] = None,
        modes: Optional[ModeCatalog] = None,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
        events: Optional[EventBus] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            visual: Fractal renderer
            audio: Audio engine
            ui: Prompt/highlight surface
            input_source: Interaction event source
            analyzer: State analyzer (default built on the scheduler clock)
            decision_engine: Decision engine (default is rules only)
            interpreter: Natural-language request interpreter
            config: Loop configuration
            modes: Mode catalog
            scheduler: Timer source
            rng: Random source for triggers and quantum events
            events: Event bus for listeners
        """
        self.config = config or OrchestratorConfig()
        self._scheduler = scheduler or AsyncioScheduler()
        self._rng = rng or random.Random()
        self._modes = modes or ModeCatalog.with_extra(self.config.extra_modes)
        self._events = events or EventBus()

        self._visual = visual
        self._audio = audio
        self._ui = ui
        self._input = input_source

        self._analyzer = analyzer or StateAnalyzer(clock=self._scheduler.now)
        self._decision_engine = decision_engine or DecisionEngine(
            rng=self._rng, clock=self._scheduler.now
        )
        self._interpreter = interpreter or RequestInterpreter()
        self._quantum = QuantumEventGenerator(
            scheduler=self._scheduler,
            visual=visual,
            audio=audio,
            rng=self._rng,
            spawn=self._spawn,
        )

        if self.config.initial_mode not in self._modes:
            raise UnknownModeError(self.config.initial_mode, self._modes.names)

        # Owned orchestration state
        self._state = OrchestratorState.IDLE
        self._current_mode = self.config.initial_mode
        self._adaptation_period = self.config.adaptation_period
        self._adaptation_level = _clamp(self.config.adaptation_level)
        self._quantum_randomness = _clamp(self.config.quantum_randomness)
        self._interactions: Deque[InteractionEvent] = deque(maxlen=self.config.interaction_history_limit)
        self._adaptations: Deque[AdaptationRecord] = deque(maxlen=self.config.adaptation_history_limit)

        self._started_at = self._scheduler.now()
        self._last_interaction_at = self._started_at
        self._last_adaptation_at: Optional[float] = None
        self._cycle_count = 0
        self._skipped_cycles = 0

        # Runtime plumbing
        self._timer: Optional[TimerHandle] = None
        self._initial_timer: Optional[TimerHandle] = None
        self._subscriptions: List[Unsubscribe] = []
        self._apply_lock = asyncio.Lock()
        self._transition_slots = asyncio.Semaphore(max(1, self.config.max_concurrent_transitions))
        self._tasks: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[int] = None

        logger.info(f"Orchestrator initialized (mode: {self._current_mode})")

    # ============================================================
    # PROPERTIES
    # ============================================================

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def current_mode(self) -> str:
        return self._current_mode

    @property
    def mode(self) -> Mode:
        return self._modes.get(self._current_mode)

    @property
    def modes(self) -> ModeCatalog:
        return self._modes

    @property
    def adaptation_period(self) -> float:
        return self._adaptation_period

    @property
    def adaptation_timer(self) -> Optional[TimerHandle]:
        return self._timer

    @property
    def adaptation_level(self) -> float:
        return self._adaptation_level

    @adaptation_level.setter
    def adaptation_level(self, value: float):
        self._adaptation_level = _clamp(value)

    @property
    def quantum_randomness(self) -> float:
        return self._quantum_randomness

    @quantum_randomness.setter
    def quantum_randomness(self, value: float):
        self._quantum_randomness = _clamp(value)

    @property
    def adaptation_history(self) -> Tuple[AdaptationRecord, ...]:
        return tuple(self._adaptations)

    @property
    def interaction_history(self) -> Tuple[InteractionEvent, ...]:
        return tuple(self._interactions)

    @property
    def analyzer(self) -> StateAnalyzer:
        return self._analyzer

    @property
    def decision_engine(self) -> DecisionEngine:
        return self._decision_engine

    @property
    def events(self) -> EventBus:
        return self._events

    # ============================================================
    # LIFECYCLE
    # ============================================================

    async def start(self) -> bool:
        """
        Start the loop: apply the initial mode, subscribe to collaborators,
        start the periodic timer and schedule the first adaptation.

        Returns:
            True if started, False if not idle
        """
        if self._state is not OrchestratorState.IDLE:
            logger.warning(f"Cannot start orchestrator from state {self._state.value}")
            return False

        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._started_at = self._scheduler.now()
        self._last_interaction_at = self._started_at

        self.set_mode(self._current_mode)
        self._subscribe_collaborators()

        self._state = OrchestratorState.RUNNING
        self._start_timer()
        self._initial_timer = self._scheduler.call_later(
            self.config.initial_adaptation_delay, self._on_timer
        )

        logger.info(
            f"🚀 Orchestrator started (mode: {self._current_mode}, "
            f"period: {self._adaptation_period:.0f}s)"
        )
        return True

    def pause(self) -> bool:
        if self._state is not OrchestratorState.RUNNING:
            return False
        self._cancel_timers()
        self._state = OrchestratorState.PAUSED
        logger.info("⏸️ Orchestrator paused")
        return True

    def resume(self) -> bool:
        if self._state is not OrchestratorState.PAUSED:
            return False
        self._state = OrchestratorState.RUNNING
        self._start_timer()
        logger.info("▶️ Orchestrator resumed")
        return True

    async def stop(self):
        """Stop permanently: cancel timers, unsubscribe and cancel background work."""
        if self._state is OrchestratorState.STOPPED:
            return
        self._state = OrchestratorState.STOPPED
        self._cancel_timers()
        for unsubscribe in self._subscriptions:
            try:
                unsubscribe()
            except Exception:
                logger.exception("Failed to unsubscribe from collaborator")
        self._subscriptions.clear()

        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        logger.info(f"Orchestrator stopped after {self._cycle_count} adaptation cycles")

    dispose = stop

    async def drain(self):
        """Wait for background cycles, quantum effects and reversals in flight."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ============================================================
    # EVENTS
    # ============================================================

    def subscribe(self, kind: EventKind, listener: Callable[[Any], None]) -> Callable[[], None]:
        return self._events.subscribe(kind, listener)

    def handle_interaction(self, event: InteractionEvent):
        """
        Record an interaction and fire any triggers it qualifies for.

        mode_change / ai_prompt / preset always trigger a cycle; intense
        interactions trigger one with a fixed probability. Neither resets
        the periodic timer.
        """
        if self._state is OrchestratorState.STOPPED:
            return

        self._interactions.append(event)
        self._last_interaction_at = max(self._last_interaction_at, event.timestamp)
        self._analyzer.record_interaction(event)

        if self._state is not OrchestratorState.RUNNING:
            return

        if event.type in TRIGGER_INTERACTION_TYPES:
            self._trigger_adaptation(f"{event.type} interaction")
        elif (
            (event.intensity or 0) > self.config.high_intensity_threshold
            and self._rng.random() < self.config.high_intensity_trigger_probability
        ):
            self._trigger_adaptation("high-intensity interaction")

        self.check_for_quantum_event(
            INTERACTION_TRIGGER, {"type": event.type, "intensity": event.intensity}
        )

    def handle_beat(self, energy: float):
        """Beat notification from the audio collaborator."""
        if self._state is OrchestratorState.RUNNING:
            self.check_for_quantum_event(BEAT_TRIGGER, {"energy": energy})

    # ============================================================
    # ADAPTATION CYCLE
    # ============================================================

    async def adapt(self) -> Optional[AdaptationRecord]:
        """
        Run one analyze -> decide -> apply cycle.

        Returns:
            The recorded cycle, or None if skipped or failed
        """
        if self._state is OrchestratorState.STOPPED:
            return None
        if self._adaptation_level < self.config.min_adaptation_level:
            self._skipped_cycles += 1
            logger.debug(f"Adaptation skipped (level {self._adaptation_level:.2f})")
            return None

        try:
            # === STEP 1: SNAPSHOT ===
            snapshot = self.snapshot()

            # === STEP 2: ANALYZE ===
            analysis = self._analyzer.analyze(snapshot)

            # === STEP 3: DECIDE ===
            decision = await self._decision_engine.decide(analysis)

            # === STEP 4: APPLY ===
            errors = await self.apply(decision)
        except Exception:
            logger.exception("Adaptation cycle failed")
            return None

        # === STEP 5: RECORD ===
        record = AdaptationRecord(
            timestamp=self._scheduler.now(),
            analysis=analysis,
            decision=decision,
            succeeded=not errors,
            errors=tuple(errors),
        )
        self._adaptations.append(record)
        self._last_adaptation_at = record.timestamp
        self._cycle_count += 1

        if errors:
            logger.warning(f"Adaptation applied with {len(errors)} failed sub-changes: {errors}")
        else:
            logger.info(f"🔄 Adaptation #{self._cycle_count} applied ({decision.provenance.value})")

        self._events.publish(EventKind.ADAPTATION_OCCURRED, AdaptationOccurred(record, snapshot))
        return record

    def snapshot(self) -> TelemetrySnapshot:
        """Fresh, immutable view of the system for one cycle."""
        now = self._scheduler.now()
        return TelemetrySnapshot(
            timestamp=now,
            session_duration=max(0.0, now - self._started_at),
            time_since_last_interaction=max(0.0, now - self._last_interaction_at),
            mode=self._current_mode,
            adaptation_level=self._adaptation_level,
            quantum_randomness=self._quantum_randomness,
            visual_state=self._collaborator_state(self._visual, "visual"),
            audio_state=self._collaborator_state(self._audio, "audio"),
            recent_interactions=tuple(self._interactions)[-RECENT_INTERACTION_LIMIT:],
            recent_adaptations=tuple(self._adaptations)[-RECENT_ADAPTATION_LIMIT:],
        )

    async def apply(self, decision: Decision) -> List[str]:
        """
        Apply a decision's sub-changes concurrently.

        Each sub-change is guarded on its own: a failing branch is reported
        and the others still complete.

        Returns:
            Error descriptions of failed sub-changes (empty on success)
        """
        async with self._apply_lock:
            branches: List[Tuple[str, Awaitable[None]]] = []

            if decision.mode and decision.mode != self._current_mode:
                branches.append(("mode", self._switch_mode(decision.mode)))

            if decision.fractal is not None and self._visual is not None:
                if decision.fractal.type:
                    branches.append(("fractal_type", self._switch_fractal_type(decision.fractal.type)))
                if decision.fractal.parameters:
                    branches.append((
                        "fractal_parameters",
                        self._visual.transition_parameters(
                            dict(decision.fractal.parameters), self.config.fractal_transition_duration
                        ),
                    ))

            if decision.audio and self._audio is not None:
                branches.append((
                    "audio",
                    self._audio.transition_parameters(
                        dict(decision.audio), self.config.audio_transition_duration
                    ),
                ))

            if decision.ui is not None:
                self._show_ui(decision.ui)

            results = await asyncio.gather(*(self._guarded(name, branch) for name, branch in branches))
            return [error for error in results if error]

    async def _guarded(self, name: str, branch: Awaitable[None]) -> Optional[str]:
        async with self._transition_slots:
            try:
                await branch
                return None
            except Exception as e:
                logger.error(f"Sub-change '{name}' failed: {e}")
                return f"{name}: {e}"

    async def _switch_mode(self, name: str):
        mode = self._modes.get(name)
        self._activate_mode(mode)
        await self._transition_to_presets(mode)

    async def _switch_fractal_type(self, name: str):
        if not self._visual.set_fractal_type(name):
            raise TransitionError(f"Visual collaborator rejected fractal type '{name}'")

    def _show_ui(self, ui: UIDirectives):
        if self._ui is None:
            return
        try:
            if ui.prompt:
                self._ui.show_prompt(ui.prompt)
            if ui.highlight:
                self._ui.highlight_element(ui.highlight)
        except Exception as e:
            logger.warning(f"UI directive failed: {e}")

    # ============================================================
    # MODES
    # ============================================================

    def set_mode(self, name: str) -> bool:
        """
        Switch mode immediately.

        Unknown names are rejected before anything changes.

        Returns:
            True if the mode is now active, False if it was rejected
        """
        if name not in self._modes:
            logger.error(f"Unknown mode '{name}'. Available: {', '.join(self._modes.names)}")
            return False

        mode = self._modes.get(name)
        self._activate_mode(mode)
        try:
            self._push_presets(mode)
        except Exception as e:
            logger.warning(f"Could not push {name} presets to collaborators: {e}")
        return True

    def _activate_mode(self, mode: Mode):
        previous = self._current_mode
        self._current_mode = mode.name

        if mode.adaptation_period != self._adaptation_period:
            self._adaptation_period = mode.adaptation_period
            if self._state is OrchestratorState.RUNNING:
                self._start_timer()

        logger.info(f"🎛️ Mode: {previous} -> {mode.name} (period {mode.adaptation_period:.0f}s)")
        self._events.publish(EventKind.MODE_CHANGED, ModeChanged(previous, mode.name, mode))

    def _push_presets(self, mode: Mode):
        visual = dict(mode.visual_preset)
        fractal_type = visual.pop("type", None)
        if self._visual is not None:
            if fractal_type:
                self._visual.set_fractal_type(fractal_type)
            if visual:
                self._visual.set_parameters(visual)
        if self._audio is not None and mode.audio_preset:
            self._audio.set_parameters(dict(mode.audio_preset))

    async def _transition_to_presets(self, mode: Mode):
        visual = dict(mode.visual_preset)
        fractal_type = visual.pop("type", None)
        transitions = []
        if self._visual is not None:
            if fractal_type:
                self._visual.set_fractal_type(fractal_type)
            if visual:
                transitions.append(self._visual.transition_parameters(
                    visual, self.config.fractal_transition_duration
                ))
        if self._audio is not None and mode.audio_preset:
            transitions.append(self._audio.transition_parameters(
                dict(mode.audio_preset), self.config.audio_transition_duration
            ))
        if transitions:
            await asyncio.gather(*transitions)

    # ============================================================
    # QUANTUM EVENTS
    # ============================================================

    def check_for_quantum_event(self, trigger: str, payload: Optional[Dict[str, Any]] = None) -> Optional[QuantumEvent]:
        """
        Roll once for a quantum event and start it on success.

        Returns:
            The event that fired, or None
        """
        if self._state is OrchestratorState.STOPPED:
            return None
        event = self._quantum.roll(self._quantum_randomness, trigger, payload)
        if event is not None:
            self._spawn(self._run_quantum_event(event))
        return event

    async def trigger_quantum_event(self, trigger: str = "manual", payload: Optional[Dict[str, Any]] = None) -> QuantumEvent:
        """Fire a quantum event unconditionally (used for explicit randomize requests)."""
        event = QuantumEvent(
            trigger=trigger,
            effect=self._rng.choice(EFFECTS),
            payload=dict(payload or {}),
            timestamp=self._scheduler.now(),
        )
        await self._run_quantum_event(event)
        return event

    async def _run_quantum_event(self, event: QuantumEvent):
        try:
            await self._quantum.perform(event)
        except Exception:
            logger.exception(f"Quantum event {event.effect.value} failed")
            return
        self._events.publish(EventKind.QUANTUM_EVENT_FIRED, QuantumEventFired(event))

    # ============================================================
    # NATURAL-LANGUAGE REQUESTS
    # ============================================================

    async def process_request(self, text: str) -> RequestOutcome:
        """
        Interpret a free-text request and carry out its intent.

        Returns:
            RequestOutcome; unrecognised requests get the canned
            interpretation and no actions
        """
        try:
            visual_state = self._collaborator_state(self._visual, "visual")
            interpretation = await self._interpreter.interpret(
                text,
                current_fractal=str(visual_state.get("type", "mandelbrot")),
                current_mood=self._current_mode,
                exploration_depth=exploration_depth(self._scheduler.now() - self._started_at),
            )
            actions = await self._execute_intent(interpretation)
        except Exception as e:
            logger.exception("Request processing failed")
            return RequestOutcome(
                original_prompt=text,
                interpretation="I encountered an error processing your request.",
                understood=False,
                error=str(e),
            )

        return RequestOutcome(
            original_prompt=text,
            interpretation=interpretation.interpretation,
            actions=actions,
            parameters=interpretation.parameters,
            understood=interpretation.understood,
        )

    async def _execute_intent(self, interpretation: RequestInterpretation) -> List[str]:
        if not interpretation.understood:
            return []

        parameters = interpretation.parameters
        actions: List[str] = []
        primary = interpretation.primary

        if primary == "change_fractal":
            fractal = dict(parameters.get("fractal") or {})
            fractal_type = fractal.pop("type", None)
            if fractal_type and self._visual is not None and self._visual.set_fractal_type(fractal_type):
                actions.append(f"Changed fractal to {fractal_type}")
            numeric = {k: v for k, v in fractal.items() if isinstance(v, (int, float)) and not isinstance(v, bool)}
            if numeric and self._visual is not None:
                await self._visual.transition_parameters(numeric, self.config.fractal_transition_duration)
                actions.append("Applied fractal parameters")

        elif primary == "adjust_mood":
            mood = (parameters.get("mood") or {}).get("primary")
            mode = closest_mode_for_mood(mood)
            if mode and mode in self._modes:
                await self._switch_mode(mode)
                actions.append(f"Changed to {mode} mode")

        elif primary == "modify_sound":
            audio = self._sound_parameters(parameters.get("sound") or {})
            if audio and self._audio is not None:
                await self._audio.transition_parameters(audio, self.config.audio_transition_duration)
                actions.append("Modified sound environment")

        elif primary == "explore_deeper":
            if self._visual is not None:
                zoom = float(self._visual.get_state().get("parameters", {}).get("zoom", 1.0))
                new_zoom = zoom * (2 + self._rng.random() * 3)
                await self._visual.transition_parameters({"zoom": new_zoom}, 3.0)
                actions.append(f"Zoomed deeper ({new_zoom:.2f}x)")
            if self._audio is not None:
                base = float(self._audio.get_state().get("parameters", {}).get("baseFrequency", 432))
                await self._audio.transition_parameters({"baseFrequency": base * 0.9}, 3.0)
                actions.append("Shifted to deeper audio frequency")

        elif primary == "randomize":
            fractal_type = self._rng.choice(NOVELTY_FRACTAL_TYPES)
            fractal = {
                "centerX": -0.5 + self._rng.random(),
                "centerY": -0.5 + self._rng.random(),
                "zoom": 0.5 + self._rng.random() * 2,
                "colorShift": self._rng.random(),
            }
            audio = {
                "baseFrequency": 220 + self._rng.random() * 440,
                "tempo": 60 + self._rng.random() * 30 if self._rng.random() > 0.5 else 0,
                "binauralBeat": 7 + self._rng.random() * 8,
            }
            if self._visual is not None:
                self._visual.set_fractal_type(fractal_type)
                await self._visual.transition_parameters(fractal, self.config.fractal_transition_duration)
            if self._audio is not None:
                await self._audio.transition_parameters(audio, self.config.audio_transition_duration)
            actions.append("Created a randomized experience")

        return actions

    @staticmethod
    def _sound_parameters(sound: Dict[str, Any]) -> Dict[str, Any]:
        audio: Dict[str, Any] = {}
        style = sound.get("style")
        if isinstance(style, str):
            audio.update(SOUND_STYLES.get(style.lower(), {}))
        intensity = sound.get("intensity")
        if isinstance(intensity, (int, float)) and not isinstance(intensity, bool):
            audio["volume"] = 0.2 + _clamp(intensity / 10.0) * 0.6
        tempo = sound.get("tempo")
        if isinstance(tempo, str) and tempo.lower() in SOUND_TEMPOS:
            audio["tempo"] = SOUND_TEMPOS[tempo.lower()]
        return audio

    # ============================================================
    # STATE INSPECTION
    # ============================================================

    def get_state(self) -> Dict[str, Any]:
        """Summary of the orchestrator for display and debugging."""
        now = self._scheduler.now()
        return {
            "state": self._state.value,
            "mode": self._current_mode,
            "adaptation_level": self._adaptation_level,
            "quantum_randomness": self._quantum_randomness,
            "adaptation_period": self._adaptation_period,
            "session_duration": max(0.0, now - self._started_at),
            "time_since_interaction": max(0.0, now - self._last_interaction_at),
            "last_adaptation": self._last_adaptation_at,
            "adaptation_count": self._cycle_count,
            "skipped_cycles": self._skipped_cycles,
            "interaction_count": len(self._interactions),
            "quantum_events": self._quantum.fired,
        }

    # ============================================================
    # INTERNALS
    # ============================================================

    def _trigger_adaptation(self, reason: str):
        logger.debug(f"Adaptation triggered by {reason}")
        self._spawn(self.adapt())

    def _on_timer(self):
        if self._state is OrchestratorState.RUNNING:
            self._spawn(self.adapt())

    def _start_timer(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._scheduler.call_every(self._adaptation_period, self._on_timer)

    def _cancel_timers(self):
        for handle in (self._timer, self._initial_timer):
            if handle is not None:
                handle.cancel()
        self._timer = None
        self._initial_timer = None

    def _subscribe_collaborators(self):
        if self._input is not None:
            self._subscriptions.append(self._input.subscribe(self._on_input))
        if self._visual is not None:
            self._subscriptions.append(self._visual.subscribe_state(self._analyzer.record_render_state))
        if self._audio is not None:
            self._subscriptions.append(self._audio.subscribe_beats(self._on_beat))
            self._subscriptions.append(self._audio.subscribe_state(self._analyzer.record_audio_state))

    def _on_input(self, event: InteractionEvent):
        self._on_loop(self.handle_interaction, event)

    def _on_beat(self, energy: float):
        self._on_loop(self.handle_beat, energy)

    def _on_loop(self, callback: Callable[..., None], *args):
        """Run a callback on the loop thread, marshalling from foreign threads."""
        if self._loop is not None and threading.get_ident() != self._loop_thread:
            self._loop.call_soon_threadsafe(callback, *args)
        else:
            callback(*args)

    def _spawn(self, coro: Awaitable[Any]) -> Optional[asyncio.Task]:
        """Run a coroutine in the background on the orchestrator's loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            if self._loop is not None and self._loop.is_running():
                self._loop.call_soon_threadsafe(self._spawn, coro)
                return None
            coro.close()
            logger.warning("No running event loop, dropping background work")
            return None

        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error("Background task failed")

    @staticmethod
    def _collaborator_state(collaborator, name: str) -> Dict[str, Any]:
        if collaborator is None:
            return {}
        try:
            return dict(collaborator.get_state() or {})
        except Exception as e:
            logger.warning(f"Could not read {name} state: {e}")
            return {}


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, float(value)))
