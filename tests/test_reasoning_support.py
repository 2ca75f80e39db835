import asyncio
import json

import pytest

from dreamscape.core.contracts import AnalysisContext
from dreamscape.core.errors import ResponseParseError, TransportError
from dreamscape.reasoning.parsing import extract_json_object, response_content
from dreamscape.reasoning.prompts import (
    ORCHESTRATION_MARKER,
    exploration_depth,
    orchestration_prompt,
    render_template,
    request_prompt,
)
from dreamscape.reasoning.simulation import simulate_response
from dreamscape.reasoning.transport import CHAT_COMPLETIONS, OpenAITransport, TransportConfig
from dreamscape.reasoning.usage import UsageTracker


def test_render_template_leaves_unknown_placeholders():
    rendered = render_template('{name} likes {"json": 1} and {missing}', {"name": "Ada"})
    assert rendered == 'Ada likes {"json": 1} and {missing}'


@pytest.mark.parametrize("seconds, depth", [(0, "shallow"), (299, "shallow"), (300, "medium"), (900, "deep")])
def test_exploration_depth_buckets(seconds, depth):
    assert exploration_depth(seconds) == depth


def test_orchestration_prompt_renders_context():
    context = AnalysisContext(
        fractal_type="julia",
        interaction_frequency=3.456,
        focus_areas=["center"],
        exploration_depth="medium",
    )
    prompt = orchestration_prompt(context, "explorative")

    assert ORCHESTRATION_MARKER in prompt.user_message
    assert "Current fractal: julia" in prompt.user_message
    assert "Interaction frequency: 3.46" in prompt.user_message
    assert "Navigation pattern: explorative" in prompt.user_message
    assert "Focus areas: center" in prompt.user_message
    assert prompt.messages()[0]["role"] == "system"


def test_extract_json_tolerates_surrounding_text():
    assert extract_json_object('Sure! ```json\n{"a": {"b": 1}}\n``` done') == {"a": {"b": 1}}

    with pytest.raises(ResponseParseError):
        extract_json_object("no json here")
    with pytest.raises(ResponseParseError):
        extract_json_object("{broken: json}")


def test_response_content_requires_message():
    with pytest.raises(ResponseParseError):
        response_content({"choices": []})


def _content(params):
    return json.loads(response_content(simulate_response(CHAT_COMPLETIONS, params, 1, 0)))


def test_simulated_orchestration_reads_the_prompt():
    idle = orchestration_prompt(AnalysisContext(interaction_frequency=0.1), "mixed")
    busy = orchestration_prompt(AnalysisContext(interaction_frequency=6.0), "chaotic")
    deep = orchestration_prompt(AnalysisContext(interaction_frequency=6.0, exploration_depth="deep"), "mixed")

    assert _content({"messages": idle.messages()})["assessment"]["attentionState"] == "bored"
    assert _content({"messages": busy.messages()})["assessment"]["attentionState"] == "distracted"
    assert _content({"messages": deep.messages()})["assessment"]["attentionState"] == "contemplative"


def test_simulated_request_uses_keyword_rules():
    prompt = request_prompt("show me a julia set", "mandelbrot", "contemplative", "shallow")
    data = _content({"messages": prompt.messages()})

    assert data["intent"]["primary"] == "change_fractal"
    assert data["parameters"]["fractal"]["type"] == "julia"


def test_simulated_response_shape():
    response = simulate_response(CHAT_COMPLETIONS, {"messages": [{"role": "user", "content": "x" * 40}]}, 7, 123)

    assert response["id"] == "sim-7"
    assert response["created"] == 123
    assert response["usage"]["prompt_tokens"] == 10
    assert response["choices"][0]["message"]["role"] == "assistant"


def test_transport_only_serves_chat_completions():
    transport = OpenAITransport(TransportConfig(api_key="sk-test"))

    async def scenario():
        try:
            await transport.send("images/generations", {"prompt": "a spiral"})
        finally:
            await transport.close()

    with pytest.raises(TransportError, match="Unsupported endpoint"):
        asyncio.run(scenario())


def test_usage_tracker_counts_tokens():
    tracker = UsageTracker(max_tokens_per_day=100, clock=lambda: 1_700_000_000.0)
    tracker.track({"prompt_tokens": 30, "completion_tokens": 20})
    tracker.track(None)

    stats = tracker.stats()
    assert stats["total_tokens"] == 50
    assert stats["request_count"] == 2
    assert tracker.budget_used == pytest.approx(0.5)
    assert not tracker.over_budget

    tracker.track({"total_tokens": 60})
    assert tracker.over_budget

    tracker.reset()
    assert tracker.stats()["total_tokens"] == 0
