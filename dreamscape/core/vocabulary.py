"""
Shared vocabulary: fractal names, mood tables and request keywords.

Used by the decision engine (mood -> mode), the request interpreter
(keyword fallback) and the simulated reasoning service.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple


FRACTAL_TYPES: Tuple[str, ...] = ("mandelbrot", "julia", "burningShip", "hyperbolic", "mandelbulb")

# Types the novelty rule rotates between
NOVELTY_FRACTAL_TYPES: Tuple[str, ...] = ("mandelbrot", "julia", "burningShip", "hyperbolic")

# Assessment attention state -> mode
MOOD_TO_MODE: Dict[str, str] = {
    "contemplative": "contemplative",
    "reflective": "contemplative",
    "calm": "contemplative",
    "meditative": "contemplative",
    "relaxed": "contemplative",
    "curious": "exploratory",
    "engaged": "exploratory",
    "interested": "exploratory",
    "exploring": "exploratory",
    "discovery": "exploratory",
    "energetic": "energetic",
    "excited": "energetic",
    "stimulated": "energetic",
    "aroused": "energetic",
    "intense": "energetic",
    "chaotic": "quantum",
    "unpredictable": "quantum",
    "mysterious": "quantum",
    "confused": "quantum",
    "distracted": "quantum",
    "bored": "exploratory",
    "disengaged": "energetic",
}

# Requested mood words -> mode, for natural-language requests
REQUEST_MOODS: Dict[str, List[str]] = {
    "contemplative": ["calm", "peaceful", "meditative", "reflective", "serene"],
    "exploratory": ["curious", "inquisitive", "discovery", "wandering", "adventure"],
    "energetic": ["excited", "dynamic", "lively", "vibrant", "intense"],
    "quantum": ["mysterious", "weird", "strange", "unpredictable", "chaotic"],
}

SOUND_STYLES: Dict[str, Dict[str, Any]] = {
    "ambient": {"tempo": 0, "binauralBeat": 7.83},
    "calm": {"tempo": 0, "binauralBeat": 7.83},
    "rhythmic": {"tempo": 72, "pulseRate": 0.25},
    "pulsing": {"tempo": 72, "pulseRate": 0.25},
    "harmonic": {"harmonicRatios": [1, 1.5, 2, 2.5, 3, 4, 5, 6]},
    "melodic": {"harmonicRatios": [1, 1.5, 2, 2.5, 3, 4, 5, 6]},
    "deep": {"baseFrequency": 174, "filterCutoff": 800},
    "bass": {"baseFrequency": 174, "filterCutoff": 800},
    "bright": {"baseFrequency": 528, "filterCutoff": 2000},
    "high": {"baseFrequency": 528, "filterCutoff": 2000},
}

SOUND_TEMPOS: Dict[str, int] = {
    "fast": 90,
    "moderate": 72,
    "slow": 52,
    "none": 0,
    "still": 0,
}

UNKNOWN_REQUEST_INTERPRETATION = "I couldn't understand your request fully. Could you rephrase it?"


def map_mood_to_mode(mood: Optional[str]) -> Optional[str]:
    """
    Map an attention/mood word to a mode name.

    Exact match wins, then the first table key that contains or is
    contained in the mood, else None.
    """
    if not mood or not isinstance(mood, str):
        return None
    mood = mood.strip().lower()
    if mood in MOOD_TO_MODE:
        return MOOD_TO_MODE[mood]
    for key, mode in MOOD_TO_MODE.items():
        if key in mood or mood in key:
            return mode
    return None


def closest_mode_for_mood(mood: Optional[str]) -> Optional[str]:
    """Best mode for a requested mood word, scoring partial matches."""
    if not mood or not isinstance(mood, str):
        return None
    target = mood.strip().lower()
    best_mode, best_score = None, 0.0
    for mode, moods in REQUEST_MOODS.items():
        if target == mode or target in moods:
            return mode
        score = sum(0.5 for m in moods if m in target or target in m)
        if score > best_score:
            best_mode, best_score = mode, score
    return best_mode


def keyword_intent(text: str) -> Optional[Dict[str, Any]]:
    """
    Rule-based interpretation of a free-text request.

    Returns:
        Interpretation dict in the reasoning-service shape, or None if no
        rule matched
    """
    lowered = (text or "").lower()
    if not lowered.strip():
        return None

    for fractal in FRACTAL_TYPES:
        if fractal.lower() in lowered or fractal.lower().replace("ship", " ship") in lowered:
            return {
                "intent": {"primary": "change_fractal", "intensity": 6},
                "parameters": {"fractal": {"type": fractal}},
                "interpretation": f"Switch to the {fractal} fractal",
            }

    if any(w in lowered for w in ["deeper", "zoom in", "closer", "dive"]):
        return {
            "intent": {"primary": "explore_deeper", "intensity": 6},
            "parameters": {"exploration": {"direction": "deeper"}},
            "interpretation": "Explore deeper into the current fractal",
        }

    if any(w in lowered for w in ["random", "surprise", "anything"]):
        return {
            "intent": {"primary": "randomize", "intensity": 5},
            "parameters": {},
            "interpretation": "Create a randomized experience",
        }

    for style in SOUND_STYLES:
        if style in lowered and any(w in lowered for w in ["sound", "music", "audio", "tone"]):
            return {
                "intent": {"primary": "modify_sound", "intensity": 5},
                "parameters": {"sound": {"style": style}},
                "interpretation": f"Make the sound more {style}",
            }
    for tempo in ("fast", "slow", "moderate"):
        if tempo in lowered and any(w in lowered for w in ["sound", "music", "audio", "beat", "tempo"]):
            return {
                "intent": {"primary": "modify_sound", "intensity": 5},
                "parameters": {"sound": {"tempo": tempo}},
                "interpretation": f"Make the rhythm {tempo}",
            }

    for mode, moods in REQUEST_MOODS.items():
        for word in [mode] + moods:
            if word in lowered:
                return {
                    "intent": {"primary": "adjust_mood", "intensity": 5},
                    "parameters": {"mood": {"primary": word}},
                    "interpretation": f"Shift the mood toward something {word}",
                }

    return None
