"""
Natural-language request interpreter.

Turns free-text requests ("make it calmer", "show me a julia set") into a
structured intent. Uses the reasoning service when available and falls
back to keyword rules; anything neither understands gets a canned
"could not understand" interpretation instead of an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from dreamscape.core.errors import ResponseParseError
from dreamscape.core.vocabulary import UNKNOWN_REQUEST_INTERPRETATION, keyword_intent
from dreamscape.reasoning.parsing import extract_json_object, response_content
from dreamscape.reasoning.prompts import request_prompt
from dreamscape.reasoning.request_queue import RequestQueue, make_cache_key
from dreamscape.reasoning.transport import CHAT_COMPLETIONS


KNOWN_INTENTS = frozenset({
    "change_fractal", "adjust_mood", "modify_sound", "explore_deeper", "randomize",
})


@dataclass
class RequestInterpretation:
    """Structured reading of a user request."""
    primary: str
    interpretation: str
    secondary: Optional[str] = None
    intensity: float = 5.0
    parameters: Dict[str, Any] = field(default_factory=dict)
    understood: bool = True
    source: str = "ai"
    raw_response: Optional[Dict[str, Any]] = None


@dataclass
class RequestOutcome:
    """What the orchestrator did with a request."""
    original_prompt: str
    interpretation: str
    actions: List[str] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)
    understood: bool = True
    error: Optional[str] = None


def unknown_interpretation(source: str = "fallback") -> RequestInterpretation:
    return RequestInterpretation(
        primary="unknown",
        interpretation=UNKNOWN_REQUEST_INTERPRETATION,
        understood=False,
        source=source,
    )


def interpretation_from_payload(data: Dict[str, Any], source: str) -> RequestInterpretation:
    """Validate a {intent, parameters, interpretation} payload."""
    intent = data.get("intent")
    if not isinstance(intent, dict):
        raise ResponseParseError("Response has no intent object")
    primary = str(intent.get("primary") or "unknown")
    if primary not in KNOWN_INTENTS:
        return unknown_interpretation(source)

    parameters = data.get("parameters") or {}
    if not isinstance(parameters, dict):
        parameters = {}
    try:
        intensity = float(intent.get("intensity", 5))
    except (TypeError, ValueError):
        intensity = 5.0

    return RequestInterpretation(
        primary=primary,
        secondary=intent.get("secondary") or None,
        intensity=intensity,
        parameters=parameters,
        interpretation=str(data.get("interpretation") or primary.replace("_", " ")),
        source=source,
        raw_response=data,
    )


class RequestInterpreter:
    """
    Interprets natural-language requests.

    Behaviour:
    - With a request queue, asks the reasoning service first
    - On any service or parse failure, applies keyword rules
    - Unrecognised requests get the canned interpretation
    """

    def __init__(
        self,
        request_queue: Optional[RequestQueue] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 500,
    ):
        self._queue = request_queue
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def is_available(self) -> bool:
        return self._queue is not None

    async def interpret(
        self,
        text: str,
        current_fractal: str = "mandelbrot",
        current_mood: str = "contemplative",
        exploration_depth: str = "shallow",
    ) -> RequestInterpretation:
        """
        Interpret a request.

        Args:
            text: What the user asked for
            current_fractal: Fractal type on screen
            current_mood: Current mode name
            exploration_depth: shallow / medium / deep

        Returns:
            RequestInterpretation (never raises)
        """
        if not text or not text.strip():
            return unknown_interpretation()

        if self._queue is not None:
            try:
                return await self._interpret_with_ai(text, current_fractal, current_mood, exploration_depth)
            except Exception as e:
                logger.warning(f"Request interpretation via reasoning service failed: {e}")

        return self._fallback_interpret(text)

    async def _interpret_with_ai(self, text, current_fractal, current_mood, exploration_depth) -> RequestInterpretation:
        prompt = request_prompt(text, current_fractal, current_mood, exploration_depth)
        params = {
            "model": self.model,
            "messages": prompt.messages(),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        key = make_cache_key(prompt.user_message, self.model, self.temperature, self.max_tokens)
        response = await self._queue.enqueue(CHAT_COMPLETIONS, params, key)
        data = extract_json_object(response_content(response))
        interpretation = interpretation_from_payload(data, source="ai")
        if not interpretation.understood:
            # The service gave up; keyword rules may still recognise it
            fallback = self._fallback_interpret(text)
            if fallback.understood:
                return fallback
        return interpretation

    def _fallback_interpret(self, text: str) -> RequestInterpretation:
        data = keyword_intent(text)
        if data is None:
            logger.info(f"🤷 Could not interpret request: '{text}'")
            return unknown_interpretation()
        interpretation = interpretation_from_payload(data, source="rules")
        logger.info(f"🎤 Interpreted '{text}' -> {interpretation.primary}")
        return interpretation
