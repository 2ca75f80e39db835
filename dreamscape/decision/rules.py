"""
Rule tables for the deterministic decision path.

Both tables are ordered; the first rule whose predicate matches wins,
so tie-break order is the list order.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from dreamscape.core.contracts import Analysis, InteractionPattern
from dreamscape.core.vocabulary import NOVELTY_FRACTAL_TYPES


# Decision-level pattern names and the analyzer labels they cover
ERRATIC_PATTERNS = frozenset({"erratic", InteractionPattern.CHAOTIC.value})
REPETITIVE_PATTERNS = frozenset({"repetitive", InteractionPattern.DELIBERATE.value})
EXPLORATIVE_PATTERNS = frozenset({"exploratory", InteractionPattern.EXPLORATIVE.value})

NOVELTY_PROMPT = "Discovering new patterns..."
ZOOM_GUIDANCE_PROMPT = "Try zooming in to explore the fractal's infinite detail"


@dataclass
class Thresholds:
    """Decision thresholds."""
    interaction_gap: float = 30.0
    engagement_level: float = 0.5
    adaptation_magnitude: float = 0.3


@dataclass
class DecisionDraft:
    """Mutable working copy filled in by rule actions."""
    fractal_type: Optional[str] = None
    fractal_parameters: Dict[str, Any] = field(default_factory=dict)
    audio: Dict[str, Any] = field(default_factory=dict)
    prompt: Optional[str] = None
    highlight: Optional[str] = None
    notes: List[str] = field(default_factory=list)


# ============================================================
# ADJUSTMENT RULES
# ============================================================

def _novelty(analysis: Analysis, draft: DecisionDraft, rng: random.Random):
    context = analysis.context
    if rng.random() < 0.5:
        if rng.random() < 0.3:
            choices = [t for t in NOVELTY_FRACTAL_TYPES if t != context.fractal_type]
            draft.fractal_type = rng.choice(choices)
            draft.notes.append(f"switch fractal to {draft.fractal_type}")
        else:
            zoom = float(context.fractal_parameters.get("zoom", 1.0) or 1.0)
            r = rng.random()
            factor = 1.5 + r if r < 0.5 else 0.5 + r * 0.3
            draft.fractal_parameters["zoom"] = zoom * factor
            draft.fractal_parameters["colorShift"] = rng.random()
            draft.notes.append("perturb zoom and colour")
    else:
        tempo = float(context.audio_parameters.get("tempo", 0) or 0)
        if tempo == 0:
            draft.audio["tempo"] = 60 + rng.randrange(20)
            draft.audio["pulseRate"] = 0.25
            draft.notes.append("introduce rhythm")
        else:
            draft.audio["baseFrequency"] = 300 + rng.random() * 300
            draft.audio["binauralBeat"] = 7 + rng.random() * 6
            draft.notes.append("retune frequency")
    draft.prompt = NOVELTY_PROMPT


def _immersion(analysis: Analysis, draft: DecisionDraft, rng: random.Random):
    draft.audio["reverbDecay"] = 2 + rng.random()
    ratios = analysis.context.audio_parameters.get("harmonicRatios")
    if ratios and rng.random() < 0.3:
        ratios = list(ratios)
        index = rng.randrange(len(ratios))
        ratios[index] = ratios[index] * (0.95 + rng.random() * 0.1)
        draft.audio["harmonicRatios"] = ratios
        draft.notes.append("perturb harmonics")
    draft.notes.append("deepen immersion")


def _guidance(analysis: Analysis, draft: DecisionDraft, rng: random.Random):
    if rng.random() < 0.3:
        draft.prompt = ZOOM_GUIDANCE_PROMPT
        draft.highlight = "zoom-control"
        draft.notes.append("guide toward zoom")


AdjustmentRule = Tuple[str, Callable[[Analysis, Thresholds], bool], Callable[[Analysis, DecisionDraft, random.Random], None]]

ADJUSTMENT_RULES: List[AdjustmentRule] = [
    ("idle_novelty", lambda a, t: a.context.time_since_interaction > t.interaction_gap, _novelty),
    ("deep_immersion", lambda a, t: a.context.exploration_depth == "deep", _immersion),
    ("shallow_guidance", lambda a, t: True, _guidance),
]


# ============================================================
# MODE RULES
# ============================================================

def pattern_name(analysis: Analysis) -> str:
    return analysis.interaction_patterns.pattern.value


ModeRule = Tuple[str, Callable[[float, str], bool], Callable[[str, random.Random], Optional[str]]]

MODE_RULES: List[ModeRule] = [
    ("low_engagement", lambda level, pattern: level < 0.3, lambda p, rng: "energetic"),
    (
        "high_engagement",
        lambda level, pattern: level > 0.8,
        lambda p, rng: "exploratory" if p in EXPLORATIVE_PATTERNS else "contemplative",
    ),
    ("erratic", lambda level, pattern: pattern in ERRATIC_PATTERNS, lambda p, rng: "contemplative"),
    (
        "repetitive",
        lambda level, pattern: pattern in REPETITIVE_PATTERNS,
        lambda p, rng: "quantum" if rng.random() < 0.3 else None,
    ),
]


def apply_adjustment_rules(analysis: Analysis, thresholds: Thresholds, rng: random.Random) -> Tuple[str, DecisionDraft]:
    """Run the first matching adjustment rule."""
    draft = DecisionDraft()
    for name, predicate, action in ADJUSTMENT_RULES:
        if predicate(analysis, thresholds):
            action(analysis, draft, rng)
            return name, draft
    return "none", draft


def suggest_mode(level: float, pattern: str, rng: random.Random) -> Tuple[Optional[str], Optional[str]]:
    """
    Suggested mode for an engagement level and pattern name.

    Returns:
        (rule name, mode) of the first matching rule; mode may be None
    """
    for name, predicate, choose in MODE_RULES:
        if predicate(level, pattern):
            return name, choose(pattern, rng)
    return None, None
