"""
Core data contracts for the Dreamscape adaptive orchestration loop.

All components exchange these types:
- Telemetry flows in as TelemetrySnapshot / InteractionEvent
- StateAnalyzer produces an Analysis
- DecisionEngine produces an immutable Decision
- Orchestrator records AdaptationRecord entries
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple


RECENT_INTERACTION_LIMIT = 20
RECENT_ADAPTATION_LIMIT = 5

# Interaction types that always trigger an adaptation cycle
TRIGGER_INTERACTION_TYPES = frozenset({"mode_change", "ai_prompt", "preset"})


# ============================================================
# ENUMERATIONS
# ============================================================

class EngagementTrend(Enum):
    """Direction of engagement relative to the previous analysis."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class AttentionState(Enum):
    """Coarse attention classification."""
    FOCUSED = "focused"
    DISTRACTED = "distracted"
    PASSIVE = "passive"


class InteractionPattern(Enum):
    """Interaction pattern labels, in no particular order."""
    DELIBERATE = "deliberate"
    SCANNING = "scanning"
    EXPLORATIVE = "explorative"
    FOCUSED = "focused"
    CHAOTIC = "chaotic"
    MIXED = "mixed"
    MINIMAL = "minimal"
    INSUFFICIENT_DATA = "insufficient_data"


class Coherence(Enum):
    """Audio/visual coherence level."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"


class Severity(Enum):
    """Issue severity."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(Enum):
    """Recommendation priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IssueType(Enum):
    """Detected experience problems."""
    INACTIVITY = "inactivity"
    LOW_ENGAGEMENT = "low_engagement"
    PERFORMANCE = "performance"
    AUDIOVISUAL_DISSONANCE = "audiovisual_dissonance"
    ERRATIC_INTERACTIONS = "erratic_interactions"


class RecommendationType(Enum):
    """Recommendation kinds emitted by the analyzer."""
    MODE_CHANGE = "mode_change"
    INTRODUCE_NOVELTY = "introduce_novelty"
    OPTIMIZE_PERFORMANCE = "optimize_performance"
    HARMONIZE_AV = "harmonize_av"
    INCREASE_INTERACTIVITY = "increase_interactivity"
    SUBTLE_EVOLUTION = "subtle_evolution"
    ENCOURAGE_EXPLORATION = "encourage_exploration"
    DEEPEN_EXPERIENCE = "deepen_experience"
    MAINTAIN_INTEREST = "maintain_interest"


class Provenance(Enum):
    """Where a Decision came from."""
    AI = "ai"
    RULE = "rule"
    FALLBACK = "fallback"


class QuantumEffect(Enum):
    """One-shot perturbations applied by quantum events."""
    COLOR_SHIFT = "colorShift"
    ZOOM_PULSE = "zoomPulse"
    ROTATION_BURST = "rotationBurst"
    DIMENSION_RIFT = "dimensionRift"
    HARMONIC_SHIFT = "harmonicShift"


class OrchestratorState(Enum):
    """Lifecycle of the orchestrator."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


# ============================================================
# TELEMETRY
# ============================================================

@dataclass(frozen=True)
class InteractionEvent:
    """A single user interaction. Immutable once stored."""
    type: str
    timestamp: float
    position: Optional[Tuple[float, float]] = None
    intensity: Optional[float] = None


@dataclass(frozen=True)
class TelemetrySnapshot:
    """
    Point-in-time view of the system handed to the analyzer.

    Created fresh for every cycle and never mutated afterwards.
    """
    timestamp: float
    session_duration: float
    time_since_last_interaction: float
    mode: str
    adaptation_level: float
    quantum_randomness: float
    visual_state: Dict[str, Any] = field(default_factory=dict)
    audio_state: Dict[str, Any] = field(default_factory=dict)
    recent_interactions: Tuple[InteractionEvent, ...] = ()
    recent_adaptations: Tuple["AdaptationRecord", ...] = ()

    def __post_init__(self):
        object.__setattr__(
            self, "recent_interactions",
            tuple(self.recent_interactions)[-RECENT_INTERACTION_LIMIT:],
        )
        object.__setattr__(
            self, "recent_adaptations",
            tuple(self.recent_adaptations)[-RECENT_ADAPTATION_LIMIT:],
        )


# ============================================================
# ANALYSIS RESULTS
# ============================================================

@dataclass
class EngagementAnalysis:
    """Engagement level with its contributing factors."""
    level: float
    trend: EngagementTrend
    attention: AttentionState
    recency: float
    frequency: float
    complexity: float


@dataclass
class IntervalStats:
    """Inter-event interval statistics in seconds."""
    mean: float
    std_dev: float
    cv: float


@dataclass
class InteractionPatternResult:
    """Classification of a window of interactions."""
    pattern: InteractionPattern
    rhythmic: bool = False
    explorative: bool = False
    focused: bool = False
    chaotic: bool = False
    interval_stats: Optional[IntervalStats] = None
    sample_size: int = 0


@dataclass
class AudioVisualRelationship:
    """How well the audio and visual channels match."""
    coherence: Coherence
    audio_intensity: float = 0.5
    visual_intensity: float = 0.5
    intensity_difference: float = 0.0
    complementary: bool = True


@dataclass
class Issue:
    """A detected problem with the current experience."""
    type: IssueType
    severity: Severity
    message: str
    value: float


@dataclass
class Recommendation:
    """A suggested adjustment derived from the analysis."""
    type: RecommendationType
    priority: Priority
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AnalysisMetrics:
    """Raw counters computed for one analysis."""
    time_elapsed: float = 0.0
    time_since_last_interaction: float = 0.0
    interaction_count: int = 0
    interaction_frequency: float = 0.0
    state_change_count: int = 0
    temporal_bursts: int = 0


@dataclass
class AnalysisContext:
    """Descriptive context used to render reasoning prompts."""
    fractal_type: str = "unknown"
    fractal_parameters: Dict[str, Any] = field(default_factory=dict)
    audio_parameters: Dict[str, Any] = field(default_factory=dict)
    session_duration: float = 0.0
    time_since_interaction: float = 0.0
    exploration_depth: str = "shallow"
    interaction_frequency: float = 0.0
    average_gap: float = 0.0
    focus_areas: List[str] = field(default_factory=list)
    recurring_interactions: List[str] = field(default_factory=list)


@dataclass
class Analysis:
    """Everything the analyzer derived from one snapshot."""
    timestamp: float
    metrics: AnalysisMetrics
    engagement: EngagementAnalysis
    interaction_patterns: InteractionPatternResult
    audio_visual: AudioVisualRelationship
    issues: List[Issue] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    context: AnalysisContext = field(default_factory=AnalysisContext)
    low_confidence: bool = False

    def has_issue(self, issue_type: IssueType) -> bool:
        return any(issue.type is issue_type for issue in self.issues)


# ============================================================
# DECISIONS
# ============================================================

@dataclass(frozen=True)
class FractalChange:
    """Fractal type switch and/or parameter deltas."""
    type: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.type is None and not self.parameters


@dataclass(frozen=True)
class UIDirectives:
    """Prompt text and/or element to highlight."""
    prompt: Optional[str] = None
    highlight: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    """
    Proposed change set for one adaptation cycle.

    Immutable once produced and applied exactly once.
    """
    rationale: str
    provenance: Provenance
    mode: Optional[str] = None
    fractal: Optional[FractalChange] = None
    audio: Dict[str, Any] = field(default_factory=dict)
    ui: Optional[UIDirectives] = None


@dataclass(frozen=True)
class DecisionRecord:
    """Decision history entry with a snapshot of its analysis."""
    timestamp: float
    decision: Decision
    fractal_type: str
    interaction_pattern: str
    engagement_level: float
    attention: str
    source: str


@dataclass(frozen=True)
class Mode:
    """Named bundle of presets and adaptation cadence."""
    name: str
    visual_preset: Dict[str, Any]
    audio_preset: Dict[str, Any]
    adaptation_period: float


# ============================================================
# RUNTIME RECORDS
# ============================================================

@dataclass
class CacheEntry:
    """A cached reasoning response."""
    key: str
    value: Any
    inserted_at: float
    ttl: Optional[float] = None

    def is_alive(self, now: float, default_ttl: float) -> bool:
        ttl = self.ttl if self.ttl is not None else default_ttl
        return now - self.inserted_at <= ttl


@dataclass
class QueuedRequest:
    """A reasoning request waiting for the queue worker."""
    endpoint: str
    params: Dict[str, Any]
    cache_key: Optional[str]
    future: asyncio.Future


@dataclass(frozen=True)
class QuantumEvent:
    """A probabilistic perturbation fired by the quantum subsystem."""
    trigger: str
    effect: QuantumEffect
    payload: Dict[str, Any]
    timestamp: float


@dataclass(frozen=True)
class AdaptationRecord:
    """One completed adaptation cycle."""
    timestamp: float
    analysis: Analysis
    decision: Decision
    succeeded: bool = True
    errors: Tuple[str, ...] = ()
