"""
Decision Engine.

Converts an Analysis into a Decision:

1. AI path - prompt the reasoning service through the request queue
2. Rule path - ordered rule tables, used on any AI failure
3. Fallback - fixed calming decision if the rule path is unusable

The engine never raises from decide().
"""

from __future__ import annotations

import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Optional, Tuple

from loguru import logger

from dreamscape.core.contracts import (
    Analysis,
    Decision,
    DecisionRecord,
    FractalChange,
    IssueType,
    Provenance,
    UIDirectives,
)
from dreamscape.core.errors import ResponseParseError
from dreamscape.core.vocabulary import FRACTAL_TYPES, map_mood_to_mode
from dreamscape.decision.rules import (
    Thresholds,
    apply_adjustment_rules,
    pattern_name,
    suggest_mode,
)
from dreamscape.reasoning.parsing import extract_json_object, response_content
from dreamscape.reasoning.prompts import orchestration_prompt
from dreamscape.reasoning.request_queue import RequestQueue, make_cache_key
from dreamscape.reasoning.transport import CHAT_COMPLETIONS


FALLBACK_AUDIO = {"baseFrequency": 432, "binauralBeat": 7.83}

# Numeric audio keys accepted verbatim from an AI recommendation
AUDIO_PARAMETER_KEYS = frozenset({
    "baseFrequency", "binauralBeat", "tempo", "pulseRate", "volume",
    "reverbDecay", "filterCutoff", "harmonicRatios",
})


@dataclass
class DecisionConfig:
    """Decision thresholds and AI request settings."""
    use_ai: bool = True
    interaction_gap: float = 30.0
    engagement_level: float = 0.5
    adaptation_magnitude: float = 0.3
    history_limit: int = 20
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 800
    failure_threshold: int = 3      # consecutive AI failures before backing off
    cooldown_decisions: int = 5     # decisions served by rules while backed off


class DecisionEngine:
    """
    Chooses how to adapt the experience.

    Keeps a bounded history of the decisions it produced together with a
    snapshot of the analysis behind each one.
    """

    def __init__(
        self,
        request_queue: Optional[RequestQueue] = None,
        config: Optional[DecisionConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the engine.

        Args:
            request_queue: Queue for the AI path (None disables it)
            config: Thresholds and request settings
            rng: Random source for the rule path
            clock: Time source in seconds
        """
        self.config = config or DecisionConfig()
        self.thresholds = Thresholds(
            interaction_gap=self.config.interaction_gap,
            engagement_level=self.config.engagement_level,
            adaptation_magnitude=self.config.adaptation_magnitude,
        )
        self._queue = request_queue
        self._rng = rng or random.Random()
        self._clock = clock

        self._history: Deque[DecisionRecord] = deque(maxlen=self.config.history_limit)
        self._consecutive_failures = 0
        self._cooldown_remaining = 0

        logger.info(
            f"DecisionEngine initialized (AI path {'enabled' if self.ai_enabled else 'disabled'})"
        )

    @property
    def ai_enabled(self) -> bool:
        return self.config.use_ai and self._queue is not None

    @property
    def ai_backed_off(self) -> bool:
        return self._cooldown_remaining > 0

    @property
    def history(self) -> Tuple[DecisionRecord, ...]:
        return tuple(self._history)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def decide(self, analysis: Analysis) -> Decision:
        """
        Produce a decision for an analysis.

        Args:
            analysis: Output of StateAnalyzer.analyze

        Returns:
            Decision tagged with its provenance
        """
        decision: Optional[Decision] = None

        if self._should_try_ai():
            try:
                decision = await self._decide_with_ai(analysis)
                self._consecutive_failures = 0
            except Exception as e:
                self._register_ai_failure(e)

        if decision is None:
            decision = self.decide_by_rules(analysis)

        if not self._is_usable(decision):
            logger.error("Rule path produced an unusable decision, using fallback")
            decision = self.fallback_decision()

        self._remember(analysis, decision)
        logger.info(f"🧭 Decision ({decision.provenance.value}): {decision.rationale}")
        return decision

    # ------------------------------------------------------------------
    # AI path
    # ------------------------------------------------------------------

    def _should_try_ai(self) -> bool:
        if not self.ai_enabled:
            return False
        if self._cooldown_remaining > 0:
            self._cooldown_remaining -= 1
            logger.debug(f"AI path backed off ({self._cooldown_remaining} decisions left)")
            return False
        return True

    def _register_ai_failure(self, error: Exception):
        self._consecutive_failures += 1
        logger.warning(f"AI decision failed, using rules: {error}")
        if self._consecutive_failures >= self.config.failure_threshold:
            self._cooldown_remaining = self.config.cooldown_decisions
            self._consecutive_failures = 0
            logger.warning(
                f"AI path failed {self.config.failure_threshold} times in a row, "
                f"backing off for {self.config.cooldown_decisions} decisions"
            )

    async def _decide_with_ai(self, analysis: Analysis) -> Decision:
        prompt = orchestration_prompt(analysis.context, self._pattern_for(analysis))
        params = {
            "model": self.config.model,
            "messages": prompt.messages(),
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        key = make_cache_key(
            prompt.user_message, self.config.model, self.config.temperature, self.config.max_tokens
        )
        response = await self._queue.enqueue(CHAT_COMPLETIONS, params, key)
        data = extract_json_object(response_content(response))
        return self._decision_from_payload(data, analysis)

    def _decision_from_payload(self, data: Dict[str, Any], analysis: Analysis) -> Decision:
        assessment = data.get("assessment")
        if not isinstance(assessment, dict):
            raise ResponseParseError("Response has no assessment object")
        recommendations = data.get("recommendations") or {}
        if not isinstance(recommendations, dict):
            raise ResponseParseError("recommendations is not an object")

        mode = map_mood_to_mode(assessment.get("attentionState"))

        fractal_parameters: Dict[str, Any] = {}
        fractal_type = None
        fractal = recommendations.get("fractal") or {}
        if isinstance(fractal, dict):
            if fractal.get("change") and fractal.get("type") in FRACTAL_TYPES:
                fractal_type = fractal["type"]
            if isinstance(fractal.get("parameters"), dict):
                fractal_parameters.update(
                    (k, v) for k, v in fractal["parameters"].items() if _is_number(v)
                )
        visualization = recommendations.get("visualization") or {}
        if isinstance(visualization, dict) and _is_number(visualization.get("colorShift")):
            # -1..1 warm/cool scale onto the 0..1 palette offset
            fractal_parameters["colorShift"] = (float(visualization["colorShift"]) + 1.0) / 2.0

        audio = self._audio_from_recommendation(
            recommendations.get("audio") or {}, analysis.context.audio_parameters
        )

        ui = None
        interaction = recommendations.get("interaction") or {}
        if isinstance(interaction, dict):
            prompt_text = interaction.get("suggestedPrompt")
            if prompt_text and interaction.get("promptTiming") != "none":
                ui = UIDirectives(prompt=str(prompt_text))

        fractal_change = FractalChange(type=fractal_type, parameters=fractal_parameters)
        return Decision(
            rationale=str(data.get("rationale") or "AI-recommended adaptation"),
            provenance=Provenance.AI,
            mode=mode,
            fractal=None if fractal_change.is_empty else fractal_change,
            audio=audio,
            ui=ui,
        )

    @staticmethod
    def _audio_from_recommendation(recommendation: Dict[str, Any], current: Dict[str, Any]) -> Dict[str, Any]:
        """Turn qualitative audio advice into parameter targets."""
        if not isinstance(recommendation, dict):
            return {}
        audio = {
            k: v for k, v in recommendation.items()
            if k in AUDIO_PARAMETER_KEYS and (_is_number(v) or isinstance(v, list))
        }

        base = float(current.get("baseFrequency", 432) or 432)
        tempo = float(current.get("tempo", 0) or 0)

        energy = recommendation.get("energyShift")
        if _is_number(energy) and energy != 0:
            energy = max(-1.0, min(1.0, float(energy)))
            audio.setdefault("baseFrequency", base * (1 + 0.1 * energy))
            if tempo > 0:
                audio.setdefault("tempo", tempo * (1 + 0.2 * energy))

        tonicity = recommendation.get("tonicityChange")
        if tonicity == "shift_up":
            audio["baseFrequency"] = audio.get("baseFrequency", base) * 1.06
        elif tonicity == "shift_down":
            audio["baseFrequency"] = audio.get("baseFrequency", base) * 0.94

        rhythm = recommendation.get("rhythmAdjustment")
        if rhythm == "intensify":
            audio["pulseRate"] = 0.5
        elif rhythm == "relax":
            audio["pulseRate"] = 0.125
        return audio

    # ------------------------------------------------------------------
    # Rule path
    # ------------------------------------------------------------------

    def decide_by_rules(self, analysis: Analysis) -> Decision:
        """Deterministic decision from the rule tables. Never raises."""
        try:
            rule, draft = apply_adjustment_rules(analysis, self.thresholds, self._rng)
            mode_rule, mode = self.suggest_mode(analysis)

            fractal = FractalChange(type=draft.fractal_type, parameters=dict(draft.fractal_parameters))
            ui = None
            if draft.prompt or draft.highlight:
                ui = UIDirectives(prompt=draft.prompt, highlight=draft.highlight)

            parts = [rule.replace("_", " ")]
            if draft.notes:
                parts.append(", ".join(draft.notes))
            if mode:
                parts.append(f"mode -> {mode} ({mode_rule.replace('_', ' ')})")

            return Decision(
                rationale="Rule-based: " + "; ".join(parts),
                provenance=Provenance.RULE,
                mode=mode,
                fractal=None if fractal.is_empty else fractal,
                audio=dict(draft.audio),
                ui=ui,
            )
        except Exception:
            logger.exception("Rule-based decision failed")
            return self.fallback_decision()

    def suggest_mode(self, analysis: Analysis) -> Tuple[Optional[str], Optional[str]]:
        """Suggested (rule name, mode) from engagement level and pattern."""
        return suggest_mode(analysis.engagement.level, self._pattern_for(analysis), self._rng)

    @staticmethod
    def _pattern_for(analysis: Analysis) -> str:
        if analysis.has_issue(IssueType.ERRATIC_INTERACTIONS):
            return "erratic"
        return pattern_name(analysis)

    @staticmethod
    def fallback_decision() -> Decision:
        """Gentle, fixed decision used when nothing else is usable."""
        return Decision(
            rationale="fallback",
            provenance=Provenance.FALLBACK,
            mode=None,
            fractal=None,
            audio=dict(FALLBACK_AUDIO),
            ui=None,
        )

    @staticmethod
    def map_mood_to_mode(mood: Optional[str]) -> Optional[str]:
        return map_mood_to_mode(mood)

    @staticmethod
    def _is_usable(decision: Any) -> bool:
        return (
            isinstance(decision, Decision)
            and isinstance(decision.rationale, str)
            and bool(decision.rationale)
            and isinstance(decision.audio, dict)
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _remember(self, analysis: Analysis, decision: Decision):
        self._history.append(DecisionRecord(
            timestamp=self._clock(),
            decision=decision,
            fractal_type=analysis.context.fractal_type,
            interaction_pattern=analysis.interaction_patterns.pattern.value,
            engagement_level=analysis.engagement.level,
            attention=analysis.engagement.attention.value,
            source=decision.provenance.value,
        ))

    def reset(self):
        self._history.clear()
        self._consecutive_failures = 0
        self._cooldown_remaining = 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
