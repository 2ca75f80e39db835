import math

import pytest

from conftest import make_events, make_snapshot
from dreamscape.analysis.patterns import (
    audio_visual_relationship,
    classify_interactions,
    describe_position,
    interval_stats,
)
from dreamscape.analysis.state_analyzer import AnalyzerConfig, StateAnalyzer
from dreamscape.core.contracts import (
    AttentionState,
    Coherence,
    EngagementTrend,
    InteractionEvent,
    InteractionPattern,
    IssueType,
    RecommendationType,
    Severity,
)


TYPES = ["click", "drag", "zoom", "pan", "rotate"]


def test_engagement_level_is_bounded():
    analyzer = StateAnalyzer()
    busy = make_events([990.0 + i * 0.1 for i in range(100)], TYPES)

    high = analyzer.analyze(make_snapshot(idle=0.0, interactions=busy))
    low = analyzer.analyze(make_snapshot(idle=10_000.0))

    assert 0.0 <= high.engagement.level <= 1.0
    assert 0.0 <= low.engagement.level <= 1.0
    assert high.engagement.level > low.engagement.level


def test_trend_detects_decreasing_engagement():
    analyzer = StateAnalyzer()
    events = make_events([995.0 + i * 0.5 for i in range(10)], TYPES)

    first = analyzer.analyze(make_snapshot(idle=0.0, interactions=events))
    second = analyzer.analyze(make_snapshot(idle=50.0))

    assert first.engagement.trend is EngagementTrend.STABLE
    assert second.engagement.trend is EngagementTrend.DECREASING
    assert second.has_issue(IssueType.LOW_ENGAGEMENT)
    assert any(r.type is RecommendationType.INCREASE_INTERACTIVITY for r in second.recommendations)


def test_trend_detects_increasing_engagement():
    analyzer = StateAnalyzer()

    analyzer.analyze(make_snapshot(idle=30.0))
    recovered = analyzer.analyze(make_snapshot(idle=0.0))

    assert recovered.engagement.level == pytest.approx(0.5)
    assert recovered.engagement.trend is EngagementTrend.INCREASING


def test_small_level_changes_keep_the_trend_stable():
    analyzer = StateAnalyzer()

    first = analyzer.analyze(make_snapshot(idle=0.0))
    # 0.5 -> 0.4 is a change of exactly 0.1
    second = analyzer.analyze(make_snapshot(idle=12.0))
    third = analyzer.analyze(make_snapshot(idle=18.0))

    assert first.engagement.level == pytest.approx(0.5)
    assert second.engagement.level == pytest.approx(0.4)
    assert second.engagement.trend is EngagementTrend.STABLE
    assert third.engagement.trend is EngagementTrend.STABLE


def test_single_interaction_is_insufficient_data():
    analyzer = StateAnalyzer()
    analysis = analyzer.analyze(make_snapshot(interactions=make_events([999.0])))

    assert analysis.interaction_patterns.pattern is InteractionPattern.INSUFFICIENT_DATA
    assert analysis.interaction_patterns.interval_stats is None


def test_long_inactivity_recommends_energetic_mode():
    analyzer = StateAnalyzer(AnalyzerConfig(idle_time=60.0))
    analysis = analyzer.analyze(make_snapshot(idle=90.0))

    issues = [i for i in analysis.issues if i.type is IssueType.INACTIVITY]
    assert len(issues) == 1
    assert issues[0].severity is Severity.MEDIUM
    assert issues[0].value == 90.0
    assert analysis.engagement.attention is AttentionState.PASSIVE

    mode_changes = [r for r in analysis.recommendations if r.type is RecommendationType.MODE_CHANGE]
    assert mode_changes[0].parameters == {"mode": "energetic"}


def test_inactivity_factor_stretches_the_idle_limit():
    analyzer = StateAnalyzer(AnalyzerConfig(idle_time=60.0, inactivity_factor=2.0))

    assert not analyzer.analyze(make_snapshot(idle=90.0)).has_issue(IssueType.INACTIVITY)
    assert analyzer.analyze(make_snapshot(idle=130.0)).has_issue(IssueType.INACTIVITY)


def test_low_fps_is_a_performance_issue():
    analyzer = StateAnalyzer()
    analysis = analyzer.analyze(make_snapshot(visual={"type": "julia", "performance": {"fps": 15}}))

    issue = next(i for i in analysis.issues if i.type is IssueType.PERFORMANCE)
    assert issue.severity is Severity.HIGH
    assert analysis.context.fractal_type == "julia"


def test_recorded_render_state_feeds_analysis():
    analyzer = StateAnalyzer()
    analyzer.record_render_state({"type": "julia", "performance": {"fps": 25}})

    analysis = analyzer.analyze(make_snapshot())

    assert [(i.type, i.severity) for i in analysis.issues] == [(IssueType.PERFORMANCE, Severity.MEDIUM)]
    assert analysis.context.fractal_type == "julia"


def test_recorded_states_merge_nested_values():
    analyzer = StateAnalyzer()
    analyzer.record_render_state({"parameters": {"zoom": 2.0}})
    analyzer.record_render_state({"parameters": {"iterations": 300}, "performance": {"fps": 60}})
    analyzer.record_audio_state({"parameters": {"tempo": 60}})
    analyzer.record_audio_state({"parameters": {"volume": 0.4}, "analysis": {"energy": 0.7}})

    analysis = analyzer.analyze(make_snapshot())

    assert analysis.context.fractal_parameters == {"zoom": 2.0, "iterations": 300}
    assert analysis.context.audio_parameters == {"tempo": 60, "volume": 0.4}
    assert analyzer.summary()["state_changes"] == 4


def test_opposed_intensities_are_dissonant():
    visual = {"parameters": {"iterations": 200, "zoom": 0.5, "rotation": math.pi}}
    audio = {"parameters": {"tempo": 0, "volume": 0.0, "baseFrequency": 200}}
    analysis = StateAnalyzer().analyze(make_snapshot(visual=visual, audio=audio))

    assert analysis.audio_visual.coherence is Coherence.LOW
    assert not analysis.audio_visual.complementary
    assert analysis.has_issue(IssueType.AUDIOVISUAL_DISSONANCE)


def test_irregular_varied_interactions_are_erratic():
    gaps = [0.1] * 8 + [20.0]
    timestamps = [970.0]
    for gap in gaps:
        timestamps.append(timestamps[-1] + gap)
    analysis = StateAnalyzer().analyze(make_snapshot(interactions=make_events(timestamps, TYPES)))

    assert analysis.has_issue(IssueType.ERRATIC_INTERACTIONS)
    assert analysis.interaction_patterns.chaotic


def test_malformed_snapshot_gives_low_confidence_result():
    analyzer = StateAnalyzer()

    bad_timestamp = analyzer.analyze(make_snapshot(now="not a time"))
    missing = analyzer.analyze(None)

    for analysis in (bad_timestamp, missing):
        assert analysis.low_confidence
        assert analysis.engagement.level == 0.0
        assert analysis.interaction_patterns.pattern is InteractionPattern.INSUFFICIENT_DATA
        assert analysis.issues == []


def test_recorded_history_feeds_summary_and_hotspots():
    analyzer = StateAnalyzer(clock=lambda: 1_000.0)
    for i in range(4):
        analyzer.record_interaction(InteractionEvent("click", 990.0 + i, position=(0.52, 0.48)))
    analyzer.record_interaction(InteractionEvent("drag", 995.0, position=(0.05, 0.05)))

    summary = analyzer.summary()
    assert summary["interaction_count"] == 5
    assert summary["interaction_types"] == {"click": 4, "drag": 1}
    assert summary["hotspots"][0]["area"] == "center"

    analysis = analyzer.analyze(make_snapshot(idle=5.0))
    assert analysis.metrics.interaction_count == 5
    assert analysis.context.focus_areas[0] == "center"
    assert analysis.context.recurring_interactions == ["click"]

    analyzer.reset()
    assert analyzer.summary()["interaction_count"] == 0
    assert analyzer.latest_analysis is None


# ---------------------------------------------------------------------------
# Pattern helpers
# ---------------------------------------------------------------------------

def test_regular_clustered_interactions_are_deliberate():
    events = make_events([0.0, 1.0, 2.0, 3.0, 4.0, 5.0])
    result = classify_interactions(events)

    assert result.pattern is InteractionPattern.DELIBERATE
    assert result.rhythmic and result.focused


def test_simultaneous_interactions_are_not_rhythmic():
    events = make_events([5.0, 5.0, 5.0])
    stats = interval_stats(events)
    assert stats.mean == 0.0
    assert stats.cv == 0.0

    result = classify_interactions(events)
    assert not result.rhythmic
    assert result.pattern is InteractionPattern.FOCUSED


@pytest.mark.parametrize(
    "timestamps, types, pattern",
    [
        ([0.0, 20.0, 40.0, 60.0, 80.0], ["click"], InteractionPattern.SCANNING),
        ([0.0, 1.0, 30.0, 31.0, 90.0], ["click", "drag", "zoom"], InteractionPattern.EXPLORATIVE),
        ([0.0, 1.0, 3.0, 4.0, 7.0, 8.0, 9.0, 100.0], ["click"], InteractionPattern.FOCUSED),
        ([0.0, 1.0, 50.0], ["click"], InteractionPattern.MINIMAL),
        ([0.0, 15.0, 20.0, 50.0, 52.0, 90.0], ["click", "drag"], InteractionPattern.MIXED),
    ],
)
def test_pattern_labels(timestamps, types, pattern):
    assert classify_interactions(make_events(timestamps, types)).pattern is pattern


def test_rhythm_outranks_variety():
    result = classify_interactions(make_events([0.0, 20.0, 40.0, 60.0, 80.0], ["click", "drag", "zoom"]))

    assert result.rhythmic and result.explorative
    assert result.pattern is InteractionPattern.SCANNING


def test_variety_outranks_focus_and_chaos():
    timestamps = [970.0 + i * 0.1 for i in range(9)] + [990.8]
    result = classify_interactions(make_events(timestamps, TYPES))

    assert result.explorative and result.focused and result.chaotic
    assert result.pattern is InteractionPattern.EXPLORATIVE


def test_coherence_unknown_without_parameters():
    assert audio_visual_relationship({}, {"parameters": {"tempo": 60}}).coherence is Coherence.UNKNOWN


@pytest.mark.parametrize(
    "x, y, area",
    [(0.5, 0.5, "center"), (0.05, 0.05, "top-left"), (0.95, 0.95, "bottom-right")],
)
def test_describe_position(x, y, area):
    assert describe_position(x, y) == area
