"""
Deterministic stand-in for the reasoning service.

Responses have exactly the shape of live chat-completion responses so
callers cannot tell them apart structurally. Content is chosen by simple
keyword matches on the last user message.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from dreamscape.core.vocabulary import UNKNOWN_REQUEST_INTERPRETATION, keyword_intent
from dreamscape.reasoning.prompts import ORCHESTRATION_MARKER, REQUEST_MARKER


_FREQUENCY_LINE = re.compile(r"Interaction frequency:\s*([0-9.]+)")
_DEPTH_LINE = re.compile(r"Exploration depth:\s*(\w+)")
_PATTERN_LINE = re.compile(r"Navigation pattern:\s*(\w+)")
_REQUEST_TEXT = re.compile(r'USER REQUEST:\s*"(.*?)"', re.DOTALL)


def _last_user_message(params: Dict[str, Any]) -> str:
    for message in reversed(params.get("messages") or []):
        if message.get("role") == "user":
            return str(message.get("content", ""))
    return str(params.get("prompt", ""))


def _orchestration_answer(prompt: str) -> Dict[str, Any]:
    frequency_match = _FREQUENCY_LINE.search(prompt)
    depth_match = _DEPTH_LINE.search(prompt)
    pattern_match = _PATTERN_LINE.search(prompt)
    frequency = float(frequency_match.group(1)) if frequency_match else 0.0
    depth = depth_match.group(1) if depth_match else "shallow"
    pattern = pattern_match.group(1) if pattern_match else "mixed"

    if frequency < 0.5:
        attention, energy, suggestion = "bored", 0.4, "Try dragging across the fractal to reshape it"
    elif pattern == "chaotic":
        attention, energy, suggestion = "distracted", -0.3, "Slow down and let the patterns unfold"
    elif depth == "deep":
        attention, energy, suggestion = "contemplative", -0.1, ""
    else:
        attention, energy, suggestion = "engaged", 0.1, "Try zooming in to explore the fractal's infinite detail"

    return {
        "assessment": {
            "engagementLevel": min(10, max(1, round(frequency))),
            "explorationPattern": pattern,
            "attentionState": attention,
            "likelyGoal": "exploration",
        },
        "recommendations": {
            "fractal": {"change": False, "type": "", "parameters": {}},
            "visualization": {"colorShift": round(energy / 2, 2), "complexityShift": 0, "movementAdjustment": "maintain"},
            "audio": {
                "energyShift": energy,
                "tonicityChange": "maintain",
                "rhythmAdjustment": "intensify" if energy > 0.2 else "maintain",
            },
            "interaction": {
                "promptTiming": "immediate" if suggestion else "none",
                "suggestedPrompt": suggestion,
                "unpredictabilityLevel": 0.3,
            },
        },
        "rationale": f"Simulated assessment: user appears {attention} ({pattern}, {depth} exploration)",
    }


def _request_answer(prompt: str) -> Dict[str, Any]:
    match = _REQUEST_TEXT.search(prompt)
    text = match.group(1) if match else ""
    return keyword_intent(text) or {
        "intent": {"primary": "unknown"},
        "parameters": {},
        "interpretation": UNKNOWN_REQUEST_INTERPRETATION,
    }


def simulated_content(prompt: str) -> str:
    """Pick the synthetic reply text for a prompt."""
    lowered = prompt.lower()
    if ORCHESTRATION_MARKER in lowered:
        return json.dumps(_orchestration_answer(prompt))
    if REQUEST_MARKER.lower() in lowered:
        return json.dumps(_request_answer(prompt))
    if "fractal" in lowered:
        return (
            "A Julia set with c = -0.8 + 0.156i unfolds into spiralling filaments; "
            "raise the iteration depth to reveal its finer structure."
        )
    if "sound" in lowered or "audio" in lowered:
        return (
            "A 432 Hz fundamental with harmonic ratios 1, 1.5 and 2 and a 7.83 Hz "
            "binaural beat creates a calm, resonant field."
        )
    if "mood" in lowered or "emotion" in lowered:
        return "Wonder: slow expanding spirals, warm luminous colours and open fifths."
    return f'This is a simulated response for: "{prompt[:50]}..."'


def simulate_response(endpoint: str, params: Dict[str, Any], sequence: int, created: int) -> Dict[str, Any]:
    """
    Build a synthetic response for one request.

    Args:
        endpoint: Endpoint identifier
        params: Request body
        sequence: Monotonic request number, used for ids
        created: Creation timestamp to stamp on the response
    """
    prompt = _last_user_message(params)
    content = simulated_content(prompt)
    prompt_tokens = len(prompt) // 4
    completion_tokens = max(1, len(content) // 4)
    return {
        "id": f"sim-{sequence}",
        "object": "chat.completion",
        "created": created,
        "model": params.get("model", "simulated"),
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }
