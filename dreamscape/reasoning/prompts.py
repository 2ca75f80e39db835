"""
Prompt templates for the reasoning service.

Templates use {placeholder} substitution; unknown placeholders are left
untouched so the JSON skeletons inside the templates survive rendering.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dreamscape.core.contracts import AnalysisContext


_PLACEHOLDER = re.compile(r"\{([^{}\s\"]+)\}")


@dataclass(frozen=True)
class PromptPair:
    """System + user message pair."""
    system_message: str
    user_message: str

    def messages(self):
        return [
            {"role": "system", "content": self.system_message},
            {"role": "user", "content": self.user_message},
        ]


def render_template(template: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """Replace {name} placeholders with values from variables."""
    variables = variables or {}

    def replace(match):
        name = match.group(1)
        if name in variables and variables[name] is not None:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER.sub(replace, template)


DEFAULT_SYSTEM_MESSAGE = (
    "You are an AI assistant helping to create a mathematical dreamscape experience."
)

FRACTAL_SYSTEM_MESSAGE = (
    "You are an AI that specializes in creating beautiful mathematical fractal experiences. "
    "Your task is to generate parameters for fractal visualization and sound that create a "
    "cohesive, immersive experience. Always return your response in valid JSON format that "
    "can be parsed by the system."
)

SOUND_SYSTEM_MESSAGE = (
    "You are an AI composer that creates mathematical sound experiences. Focus on frequencies, "
    "harmonics, rhythms, and emergent patterns that complement visual fractals. Always return "
    "your response in valid JSON format with precise numerical parameters."
)

MOOD_SYSTEM_MESSAGE = (
    "You are an AI that can translate emotional states and cognitive experiences into "
    "mathematical parameters for both visual and audio experiences. Always return your "
    "response in valid JSON format."
)

ORCHESTRATION_SYSTEM_MESSAGE = (
    "You are an AI orchestrator that helps create cohesive, engaging mathematical experiences "
    "by analyzing user behavior and system state."
)

ORCHESTRATION_MARKER = "recommend adaptations"

ORCHESTRATION_TEMPLATE = """
Analyze the current system state and user interaction patterns to recommend adaptations:

SYSTEM STATE:
- Current fractal: {currentFractal}
- Current visualization parameters: {visualizationParams}
- Current audio environment: {audioParams}
- Session duration: {sessionDuration} minutes
- Exploration depth: {explorationDepth}

USER INTERACTION PATTERNS:
- Interaction frequency: {interactionFrequency} actions per minute
- Focus areas: {focusAreas}
- Navigation pattern: {navigationPattern}
- Average time between interactions: {timeBetweenInteractions} seconds
- Recurring interactions: {recurringInteractions}

Based on this analysis, recommend adaptive changes to maintain engagement and create a cohesive experience.
Return a JSON object with these sections:
{
  "assessment": {
    "engagementLevel": number,
    "explorationPattern": "string",
    "attentionState": "string",
    "likelyGoal": "string"
  },
  "recommendations": {
    "fractal": {"change": boolean, "type": "string", "parameters": {}},
    "visualization": {"colorShift": number, "complexityShift": number, "movementAdjustment": "string"},
    "audio": {"energyShift": number, "tonicityChange": "string", "rhythmAdjustment": "string"},
    "interaction": {"promptTiming": "string", "suggestedPrompt": "string", "unpredictabilityLevel": number}
  },
  "rationale": "string"
}

Return only the JSON object with no additional text."""

REQUEST_SYSTEM_MESSAGE = (
    "You are an AI assistant that helps translate natural language descriptions into specific "
    "parameters for a mathematical dreamscape experience. Users will describe what they want "
    "to experience, and you'll extract their intent into structured parameters."
)

REQUEST_MARKER = "USER REQUEST:"

REQUEST_TEMPLATE = """
Analyze this user request and extract parameters for our mathematical dreamscape:

USER REQUEST:
"{userInput}"

CURRENT STATE:
- Current fractal: {currentFractal}
- Current mood: {currentMood}
- Exploration depth: {explorationDepth}

Extract the user's intent and translate it into structured parameters. Return a JSON object with these sections:
{
  "intent": {"primary": "string", "secondary": "string", "intensity": number},
  "parameters": {
    "fractal": {"type": "string", "complexity": number, "colorScheme": "string"},
    "mood": {"primary": "string", "secondary": "string"},
    "sound": {"style": "string", "intensity": number, "tempo": "string"},
    "exploration": {"direction": "string", "focus": "string"}
  },
  "interpretation": "string"
}

The primary intent must be one of: change_fractal, adjust_mood, modify_sound, explore_deeper, randomize.
Return only the JSON object with no additional text."""


def _compact(value: Dict[str, Any]) -> str:
    return json.dumps(value, sort_keys=True, default=str) if value else "{}"


def orchestration_prompt(context: AnalysisContext, navigation_pattern: str) -> PromptPair:
    """Render the adaptation prompt from an analysis context."""
    variables = {
        "currentFractal": context.fractal_type,
        "visualizationParams": _compact(context.fractal_parameters),
        "audioParams": _compact(context.audio_parameters),
        "sessionDuration": round(context.session_duration / 60.0, 1),
        "explorationDepth": context.exploration_depth,
        "interactionFrequency": round(context.interaction_frequency, 2),
        "focusAreas": ", ".join(context.focus_areas) or "none",
        "navigationPattern": navigation_pattern,
        "timeBetweenInteractions": round(context.average_gap, 1),
        "recurringInteractions": ", ".join(context.recurring_interactions) or "none",
    }
    return PromptPair(
        system_message=ORCHESTRATION_SYSTEM_MESSAGE,
        user_message=render_template(ORCHESTRATION_TEMPLATE, variables),
    )


def request_prompt(text: str, current_fractal: str, current_mood: str, exploration_depth: str) -> PromptPair:
    """Render the natural-language request prompt."""
    variables = {
        "userInput": text.replace('"', "'"),
        "currentFractal": current_fractal,
        "currentMood": current_mood,
        "explorationDepth": exploration_depth,
    }
    return PromptPair(
        system_message=REQUEST_SYSTEM_MESSAGE,
        user_message=render_template(REQUEST_TEMPLATE, variables),
    )


def exploration_depth(session_duration: float) -> str:
    """Bucket a session length in seconds into shallow/medium/deep."""
    if session_duration < 300:
        return "shallow"
    if session_duration < 900:
        return "medium"
    return "deep"
