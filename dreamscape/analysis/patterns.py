"""
Pure interaction and audio/visual measurements.

Nothing here holds state; StateAnalyzer composes these functions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from dreamscape.core.contracts import (
    AudioVisualRelationship,
    Coherence,
    InteractionEvent,
    InteractionPattern,
    InteractionPatternResult,
    IntervalStats,
)


FOCUS_WINDOW_SECONDS = 10.0
BURST_INTERVAL_SECONDS = 0.5
EDGE_THRESHOLD = 0.1
CENTER_THRESHOLD = 0.3

QUADRANT_NAMES = ("top-left", "top-right", "bottom-left", "bottom-right")
EDGE_NAMES = ("top", "right", "bottom", "left")


# ============================================================
# INTERACTION PATTERNS
# ============================================================

def interval_stats(events: Sequence[InteractionEvent]) -> Optional[IntervalStats]:
    """Mean, standard deviation and coefficient of variation of gaps."""
    if len(events) < 2:
        return None
    timestamps = np.array([e.timestamp for e in events], dtype=float)
    intervals = np.diff(timestamps)
    mean = float(np.mean(intervals))
    std_dev = float(np.std(intervals))
    cv = std_dev / mean if mean > 0 else 0.0
    return IntervalStats(mean=mean, std_dev=std_dev, cv=cv)


def largest_time_cluster(events: Sequence[InteractionEvent], window: float = FOCUS_WINDOW_SECONDS) -> int:
    """Size of the largest run of events starting within `window` of its first event."""
    best = 0
    for i, first in enumerate(events):
        size = 1
        for later in events[i + 1:]:
            if later.timestamp - first.timestamp < window:
                size += 1
            else:
                break
        best = max(best, size)
    return best


def classify_interactions(events: Sequence[InteractionEvent]) -> InteractionPatternResult:
    """
    Classify a window of interactions.

    Label priority: deliberate > scanning > explorative > focused >
    chaotic > minimal > mixed.
    """
    events = sorted(events, key=lambda e: e.timestamp)
    if len(events) < 2:
        return InteractionPatternResult(
            pattern=InteractionPattern.INSUFFICIENT_DATA, sample_size=len(events)
        )

    stats = interval_stats(events)
    distinct_types = len({e.type for e in events})

    # Simultaneous events have no rhythm to speak of
    rhythmic = stats.mean > 0 and stats.cv < 0.3
    explorative = distinct_types > 2
    focused = largest_time_cluster(events) > len(events) * 0.7
    chaotic = stats.cv > 0.8 and distinct_types > 3

    if rhythmic and focused:
        pattern = InteractionPattern.DELIBERATE
    elif rhythmic:
        pattern = InteractionPattern.SCANNING
    elif explorative:
        pattern = InteractionPattern.EXPLORATIVE
    elif focused:
        pattern = InteractionPattern.FOCUSED
    elif chaotic:
        pattern = InteractionPattern.CHAOTIC
    elif len(events) < 5:
        pattern = InteractionPattern.MINIMAL
    else:
        pattern = InteractionPattern.MIXED

    return InteractionPatternResult(
        pattern=pattern,
        rhythmic=rhythmic,
        explorative=explorative,
        focused=focused,
        chaotic=chaotic,
        interval_stats=stats,
        sample_size=len(events),
    )


def count_bursts(events: Sequence[InteractionEvent], threshold: float = BURST_INTERVAL_SECONDS) -> int:
    """Number of gaps shorter than threshold."""
    if len(events) < 2:
        return 0
    timestamps = np.array(sorted(e.timestamp for e in events), dtype=float)
    return int(np.sum(np.diff(timestamps) < threshold))


def recurring_types(events: Sequence[InteractionEvent], minimum: int = 3) -> List[str]:
    """Interaction types seen at least `minimum` times, most frequent first."""
    counts: Dict[str, int] = {}
    for event in events:
        counts[event.type] = counts.get(event.type, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [name for name, count in ranked if count >= minimum]


# ============================================================
# SPATIAL PATTERNS
# ============================================================

@dataclass
class Hotspot:
    """A screen region the user keeps returning to."""
    x: float
    y: float
    count: int
    created: float
    last_updated: float

    @property
    def area(self) -> str:
        return describe_position(self.x, self.y)


@dataclass
class SpatialSummary:
    """Running counts of where interactions land."""
    quadrants: List[int] = field(default_factory=lambda: [0, 0, 0, 0])
    edges: List[int] = field(default_factory=lambda: [0, 0, 0, 0])
    center: int = 0

    def record(self, x: float, y: float):
        quadrant = (0 if y < 0.5 else 2) + (0 if x < 0.5 else 1)
        self.quadrants[quadrant] += 1
        if y < EDGE_THRESHOLD:
            self.edges[0] += 1
        if x > 1 - EDGE_THRESHOLD:
            self.edges[1] += 1
        if y > 1 - EDGE_THRESHOLD:
            self.edges[2] += 1
        if x < EDGE_THRESHOLD:
            self.edges[3] += 1
        if abs(x - 0.5) < CENTER_THRESHOLD and abs(y - 0.5) < CENTER_THRESHOLD:
            self.center += 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "quadrants": dict(zip(QUADRANT_NAMES, self.quadrants)),
            "edges": dict(zip(EDGE_NAMES, self.edges)),
            "center": self.center,
        }


def describe_position(x: float, y: float) -> str:
    if abs(x - 0.5) < CENTER_THRESHOLD and abs(y - 0.5) < CENTER_THRESHOLD:
        return "center"
    return QUADRANT_NAMES[(0 if y < 0.5 else 2) + (0 if x < 0.5 else 1)]


def update_hotspots(
    hotspots: List[Hotspot],
    x: float,
    y: float,
    now: float,
    radius: float = 0.1,
    max_hotspots: int = 5,
    stale_after: float = 60.0,
) -> List[Hotspot]:
    """
    Merge a position into the hotspot list in place.

    A position within `radius` of a hotspot pulls it 20% toward the new
    point. Over capacity, a stale sparse hotspot is dropped first,
    otherwise the least active one.
    """
    for hotspot in hotspots:
        if math.hypot(x - hotspot.x, y - hotspot.y) < radius:
            hotspot.count += 1
            hotspot.last_updated = now
            hotspot.x = 0.8 * hotspot.x + 0.2 * x
            hotspot.y = 0.8 * hotspot.y + 0.2 * y
            break
    else:
        hotspots.append(Hotspot(x=x, y=y, count=1, created=now, last_updated=now))

    if len(hotspots) > max_hotspots:
        stale = [h for h in hotspots if now - h.last_updated > stale_after and h.count < 3]
        victim = stale[0] if stale else min(hotspots, key=lambda h: h.count)
        hotspots.remove(victim)
    return hotspots


# ============================================================
# AUDIO / VISUAL COHERENCE
# ============================================================

def _number(mapping: Dict[str, Any], key: str, default: float) -> float:
    value = mapping.get(key, default)
    if value is None:
        return default
    return float(value)


def audio_intensity(audio_parameters: Dict[str, Any]) -> float:
    tempo = _number(audio_parameters, "tempo", 0.0)
    volume = _number(audio_parameters, "volume", 0.5)
    base_frequency = _number(audio_parameters, "baseFrequency", 432.0)
    value = (
        min(1.0, tempo / 120.0) * 0.4
        + volume * 0.4
        + min(1.0, max(0.0, (base_frequency - 200.0) / 600.0)) * 0.2
    )
    return float(np.clip(value, 0.0, 1.0))


def visual_intensity(visual_parameters: Dict[str, Any]) -> float:
    iterations = _number(visual_parameters, "iterations", 100.0)
    zoom = _number(visual_parameters, "zoom", 1.0)
    rotation = _number(visual_parameters, "rotation", 0.0)
    inverse_zoom = min(1.0, 1.0 / zoom) if zoom > 0 else 1.0
    value = (
        min(1.0, iterations / 200.0) * 0.3
        + inverse_zoom * 0.4
        + min(1.0, abs(rotation) / math.pi) * 0.3
    )
    return float(np.clip(value, 0.0, 1.0))


def audio_visual_relationship(
    visual_state: Optional[Dict[str, Any]],
    audio_state: Optional[Dict[str, Any]],
) -> AudioVisualRelationship:
    """Compare normalized audio and visual intensity."""
    visual_parameters = (visual_state or {}).get("parameters")
    audio_parameters = (audio_state or {}).get("parameters")
    if not visual_parameters or not audio_parameters:
        return AudioVisualRelationship(coherence=Coherence.UNKNOWN)

    audio = audio_intensity(audio_parameters)
    visual = visual_intensity(visual_parameters)
    difference = abs(audio - visual)

    if difference < 0.2:
        coherence = Coherence.HIGH
    elif difference < 0.4:
        coherence = Coherence.MEDIUM
    else:
        coherence = Coherence.LOW

    complementary = not ((audio > 0.7 and visual < 0.3) or (audio < 0.3 and visual > 0.7))
    return AudioVisualRelationship(
        coherence=coherence,
        audio_intensity=audio,
        visual_intensity=visual,
        intensity_difference=difference,
        complementary=complementary,
    )
