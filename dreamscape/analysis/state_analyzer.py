"""
State Analyzer.

Turns a telemetry snapshot into engagement metrics, an interaction
pattern, audio/visual coherence, issues and recommendations.

The analyzer never raises on bad input: a malformed snapshot yields a
low-confidence degenerate analysis so the adaptation loop can proceed.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from loguru import logger

from dreamscape.analysis.patterns import (
    Hotspot,
    SpatialSummary,
    audio_visual_relationship,
    classify_interactions,
    count_bursts,
    recurring_types,
    update_hotspots,
)
from dreamscape.core.contracts import (
    Analysis,
    AnalysisContext,
    AnalysisMetrics,
    AttentionState,
    AudioVisualRelationship,
    Coherence,
    EngagementAnalysis,
    EngagementTrend,
    InteractionEvent,
    InteractionPattern,
    InteractionPatternResult,
    Issue,
    IssueType,
    Priority,
    Recommendation,
    RecommendationType,
    Severity,
    TelemetrySnapshot,
)
from dreamscape.reasoning.prompts import exploration_depth


@dataclass
class AnalyzerConfig:
    """Analyzer thresholds."""
    idle_time: float = 60.0                 # seconds before the user counts as idle
    high_engagement: float = 0.7
    low_engagement: float = 0.3
    interaction_frequency: float = 10.0     # interactions per minute
    history_limit: int = 100
    analysis_period: float = 300.0          # seconds of history considered
    recent_limit: int = 20
    # Inactivity fires past idle_time * factor. The default of 1.0 makes a 90s
    # pause count against the 60s threshold, where the stricter 2.0 rule would
    # wait for 120s. Set 2.0 to restore that rule.
    inactivity_factor: float = 1.0
    erratic_min_interactions: int = 10
    hotspot_radius: float = 0.1
    max_hotspots: int = 5


# ============================================================
# ISSUE AND RECOMMENDATION TABLES
# ============================================================

ISSUE_RECOMMENDATIONS: Dict[IssueType, Tuple[RecommendationType, Priority, str, Dict[str, Any]]] = {
    IssueType.INACTIVITY: (
        RecommendationType.MODE_CHANGE, Priority.HIGH,
        "Switch to a more engaging mode to recapture attention",
        {"mode": "energetic"},
    ),
    IssueType.LOW_ENGAGEMENT: (
        RecommendationType.INTRODUCE_NOVELTY, Priority.HIGH,
        "Introduce a new fractal type or significant parameter change",
        {"fractalChange": True, "audioChange": True},
    ),
    IssueType.PERFORMANCE: (
        RecommendationType.OPTIMIZE_PERFORMANCE, Priority.HIGH,
        "Reduce fractal complexity to improve performance",
        {"reduceIterations": True, "simplifyEffects": True},
    ),
    IssueType.AUDIOVISUAL_DISSONANCE: (
        RecommendationType.HARMONIZE_AV, Priority.MEDIUM,
        "Adjust audio to better match visual intensity",
        {"matchIntensity": True},
    ),
}


class StateAnalyzer:
    """
    Analyzes telemetry snapshots for the adaptation loop.

    Holds a mutable current-state view (interaction history, render and
    audio state, spatial summary) fed through record_* methods, which may
    be called from any thread.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the analyzer.

        Args:
            config: Thresholds
            clock: Time source in seconds
        """
        self.config = config or AnalyzerConfig()
        self._clock = clock
        self._lock = threading.Lock()

        self._interactions: Deque[InteractionEvent] = deque(maxlen=self.config.history_limit)
        self._type_counts: Dict[str, int] = {}
        self._spatial = SpatialSummary()
        self._hotspots: List[Hotspot] = []
        self._visual_state: Dict[str, Any] = {}
        self._audio_state: Dict[str, Any] = {}
        self._state_changes = 0

        self._previous_level: Optional[float] = None
        self._latest: Optional[Analysis] = None
        self._analysis_count = 0

        logger.info("StateAnalyzer initialized")

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_interaction(self, event: InteractionEvent):
        """Append an interaction and update spatial/temporal summaries."""
        with self._lock:
            self._interactions.append(event)
            self._type_counts[event.type] = self._type_counts.get(event.type, 0) + 1
            if event.position is not None:
                x, y = event.position
                self._spatial.record(x, y)
                update_hotspots(
                    self._hotspots, x, y, event.timestamp,
                    radius=self.config.hotspot_radius,
                    max_hotspots=self.config.max_hotspots,
                )

    def record_render_state(self, partial: Dict[str, Any]):
        """Merge visual collaborator state (type, parameters, performance)."""
        with self._lock:
            self._visual_state = _merge(self._visual_state, partial)
            self._state_changes += 1

    def record_audio_state(self, partial: Dict[str, Any]):
        """Merge audio collaborator state (parameters, analysis)."""
        with self._lock:
            self._audio_state = _merge(self._audio_state, partial)
            self._state_changes += 1

    @property
    def latest_analysis(self) -> Optional[Analysis]:
        return self._latest

    @property
    def hotspots(self) -> List[Hotspot]:
        with self._lock:
            return list(self._hotspots)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(self, snapshot: TelemetrySnapshot) -> Analysis:
        """
        Analyze one snapshot.

        Args:
            snapshot: Telemetry captured by the orchestrator

        Returns:
            Analysis (degenerate and low-confidence if the input was malformed)
        """
        try:
            analysis = self._analyze(snapshot)
        except (TypeError, ValueError, KeyError, AttributeError, ZeroDivisionError) as e:
            logger.warning(f"Malformed telemetry, producing degenerate analysis: {e}")
            analysis = self._degenerate(snapshot)

        self._latest = analysis
        self._analysis_count += 1
        return analysis

    def _analyze(self, snapshot: TelemetrySnapshot) -> Analysis:
        now = float(snapshot.timestamp)
        idle = max(0.0, float(snapshot.time_since_last_interaction))

        with self._lock:
            history = list(self._interactions)
            visual_state = _merge(self._visual_state, snapshot.visual_state or {})
            audio_state = _merge(self._audio_state, snapshot.audio_state or {})
            hotspots = list(self._hotspots)
            state_changes = self._state_changes

        # Window: own history inside the analysis period, else the snapshot's list
        window = [e for e in history if now - e.timestamp <= self.config.analysis_period]
        if not history:
            window = list(snapshot.recent_interactions)
        recent = window[-self.config.recent_limit:]

        per_minute = len(window) / (self.config.analysis_period / 60.0)
        metrics = AnalysisMetrics(
            time_elapsed=float(snapshot.session_duration),
            time_since_last_interaction=idle,
            interaction_count=len(window),
            interaction_frequency=per_minute,
            state_change_count=state_changes,
            temporal_bursts=count_bursts(recent),
        )

        engagement = self._engagement(idle, per_minute, recent)
        patterns = classify_interactions(recent)
        av = audio_visual_relationship(visual_state, audio_state)
        issues = self.detect_issues(metrics, engagement, av, visual_state, window)
        recommendations = self.generate_recommendations(issues, engagement, patterns)

        context = AnalysisContext(
            fractal_type=str(visual_state.get("type", "unknown")),
            fractal_parameters=dict(visual_state.get("parameters") or {}),
            audio_parameters=dict(audio_state.get("parameters") or {}),
            session_duration=float(snapshot.session_duration),
            time_since_interaction=idle,
            exploration_depth=exploration_depth(float(snapshot.session_duration)),
            interaction_frequency=per_minute,
            average_gap=patterns.interval_stats.mean if patterns.interval_stats else 0.0,
            focus_areas=_focus_areas(hotspots),
            recurring_interactions=recurring_types(window),
        )

        analysis = Analysis(
            timestamp=now,
            metrics=metrics,
            engagement=engagement,
            interaction_patterns=patterns,
            audio_visual=av,
            issues=issues,
            recommendations=recommendations,
            context=context,
        )

        logger.debug(
            f"Analysis: engagement={engagement.level:.2f} ({engagement.trend.value}), "
            f"pattern={patterns.pattern.value}, issues={[i.type.value for i in issues]}"
        )
        return analysis

    def _engagement(self, idle: float, per_minute: float, recent: List[InteractionEvent]) -> EngagementAnalysis:
        cfg = self.config
        recency = max(0.0, 1.0 - idle / cfg.idle_time)
        frequency = min(1.0, per_minute / cfg.interaction_frequency)
        complexity = min(1.0, len({e.type for e in recent}) / 5.0)
        level = min(1.0, max(0.0, 0.5 * recency + 0.3 * frequency + 0.2 * complexity))

        trend = EngagementTrend.STABLE
        if self._previous_level is not None:
            delta = level - self._previous_level
            if delta > 0.1:
                trend = EngagementTrend.INCREASING
            elif delta < -0.1:
                trend = EngagementTrend.DECREASING
        self._previous_level = level

        if idle > cfg.idle_time:
            attention = AttentionState.PASSIVE
        elif per_minute > cfg.interaction_frequency * 2:
            attention = AttentionState.DISTRACTED
        else:
            attention = AttentionState.FOCUSED

        return EngagementAnalysis(
            level=level,
            trend=trend,
            attention=attention,
            recency=recency,
            frequency=frequency,
            complexity=complexity,
        )

    def detect_issues(
        self,
        metrics: AnalysisMetrics,
        engagement: EngagementAnalysis,
        av: AudioVisualRelationship,
        visual_state: Dict[str, Any],
        window: List[InteractionEvent],
    ) -> List[Issue]:
        """Apply every issue rule independently."""
        cfg = self.config
        issues: List[Issue] = []

        if metrics.time_since_last_interaction > cfg.idle_time * cfg.inactivity_factor:
            issues.append(Issue(
                IssueType.INACTIVITY, Severity.MEDIUM,
                "User has been inactive for an extended period",
                metrics.time_since_last_interaction,
            ))

        if engagement.level < cfg.low_engagement and engagement.trend is EngagementTrend.DECREASING:
            issues.append(Issue(
                IssueType.LOW_ENGAGEMENT, Severity.HIGH,
                "User engagement is low and decreasing",
                engagement.level,
            ))

        fps = (visual_state.get("performance") or {}).get("fps")
        if fps is not None and float(fps) < 30:
            issues.append(Issue(
                IssueType.PERFORMANCE,
                Severity.HIGH if float(fps) < 20 else Severity.MEDIUM,
                "Fractal rendering performance is low",
                float(fps),
            ))

        if av.coherence is Coherence.LOW and not av.complementary:
            issues.append(Issue(
                IssueType.AUDIOVISUAL_DISSONANCE, Severity.MEDIUM,
                "Audio and visuals lack coherence",
                av.intensity_difference,
            ))

        if metrics.interaction_count >= cfg.erratic_min_interactions:
            latest = classify_interactions(window[-cfg.recent_limit:])
            if latest.chaotic:
                issues.append(Issue(
                    IssueType.ERRATIC_INTERACTIONS, Severity.LOW,
                    "User interaction pattern appears erratic or random",
                    latest.interval_stats.cv,
                ))

        return issues

    def generate_recommendations(
        self,
        issues: List[Issue],
        engagement: EngagementAnalysis,
        patterns: InteractionPatternResult,
    ) -> List[Recommendation]:
        """Map issues, engagement and pattern to recommendations."""
        cfg = self.config
        recommendations: List[Recommendation] = []

        for issue in issues:
            entry = ISSUE_RECOMMENDATIONS.get(issue.type)
            if entry is None:
                continue
            kind, priority, description, parameters = entry
            recommendations.append(Recommendation(kind, priority, description, dict(parameters)))

        if engagement.level < cfg.low_engagement and engagement.trend is EngagementTrend.DECREASING:
            recommendations.append(Recommendation(
                RecommendationType.INCREASE_INTERACTIVITY, Priority.MEDIUM,
                "Prompt the user with an interactive suggestion",
                {"promptUser": True},
            ))
        elif engagement.level > cfg.high_engagement:
            recommendations.append(Recommendation(
                RecommendationType.SUBTLE_EVOLUTION, Priority.LOW,
                "Evolve the experience gradually to sustain interest",
                {"evolutionRate": "slow"},
            ))

        if patterns.pattern is InteractionPattern.EXPLORATIVE:
            recommendations.append(Recommendation(
                RecommendationType.ENCOURAGE_EXPLORATION, Priority.MEDIUM,
                "Offer new regions and parameters to explore",
                {"revealFeatures": True},
            ))
        elif patterns.pattern is InteractionPattern.FOCUSED:
            recommendations.append(Recommendation(
                RecommendationType.DEEPEN_EXPERIENCE, Priority.MEDIUM,
                "Add depth and detail to the current focus",
                {"increaseDetail": True},
            ))

        if not recommendations:
            recommendations.append(Recommendation(
                RecommendationType.MAINTAIN_INTEREST, Priority.LOW,
                "Introduce small variations to maintain interest",
                {"subtleChanges": True},
            ))
        return recommendations

    def _degenerate(self, snapshot: Any) -> Analysis:
        timestamp = getattr(snapshot, "timestamp", None)
        if not isinstance(timestamp, (int, float)):
            timestamp = self._clock()
        return Analysis(
            timestamp=float(timestamp),
            metrics=AnalysisMetrics(),
            engagement=EngagementAnalysis(
                level=0.0,
                trend=EngagementTrend.STABLE,
                attention=AttentionState.PASSIVE,
                recency=0.0,
                frequency=0.0,
                complexity=0.0,
            ),
            interaction_patterns=InteractionPatternResult(pattern=InteractionPattern.INSUFFICIENT_DATA),
            audio_visual=AudioVisualRelationship(coherence=Coherence.UNKNOWN),
            issues=[],
            recommendations=[Recommendation(
                RecommendationType.MAINTAIN_INTEREST, Priority.LOW,
                "Introduce small variations to maintain interest",
                {"subtleChanges": True},
            )],
            low_confidence=True,
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        """Snapshot of the held state for debugging."""
        with self._lock:
            summary = {
                "interaction_count": len(self._interactions),
                "interaction_types": dict(self._type_counts),
                "spatial": self._spatial.as_dict(),
                "hotspots": [
                    {"x": round(h.x, 3), "y": round(h.y, 3), "count": h.count, "area": h.area}
                    for h in self._hotspots
                ],
                "state_changes": self._state_changes,
                "analyses": self._analysis_count,
            }
        if self._latest is not None:
            summary["engagement"] = round(self._latest.engagement.level, 3)
            summary["pattern"] = self._latest.interaction_patterns.pattern.value
        return summary

    def reset(self):
        """Clear held state and trend history."""
        with self._lock:
            self._interactions.clear()
            self._type_counts.clear()
            self._spatial = SpatialSummary()
            self._hotspots.clear()
            self._visual_state = {}
            self._audio_state = {}
            self._state_changes = 0
        self._previous_level = None
        self._latest = None
        logger.debug("StateAnalyzer reset")


def _merge(base: Dict[str, Any], partial: Dict[str, Any]) -> Dict[str, Any]:
    """One-level-deep merge: nested dicts are merged, everything else replaced."""
    merged = dict(base)
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _focus_areas(hotspots: List[Hotspot]) -> List[str]:
    ranked = sorted(hotspots, key=lambda h: -h.count)
    areas: List[str] = []
    for hotspot in ranked:
        if hotspot.area not in areas:
            areas.append(hotspot.area)
    return areas
