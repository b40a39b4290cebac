# backend/tests/test_plan_source.py
from __future__ import annotations

import json

import httpx

from oran_payments.domain.milestones import PLAN_MILESTONE_3, ExternalPlan, FallbackPlan, QuoteItemIn
from oran_payments.integrations.gemini_client import GeminiClient, GeminiConfig, extract_json_object
from oran_payments.services.plan_source import PlanningContext, build_milestone_prompt, resolve_plan

ITEMS = (
    QuoteItemIn(id=1, name="Gate motor", category="GATE", quantity=1, total_price=200_000),
    QuoteItemIn(id=2, name="Switch", category="LIGHTING", quantity=8, total_price=80_000),
    QuoteItemIn(id=3, name="Lock", category="ACCESS", quantity=2, total_price=50_000),
)


def _ctx() -> PlanningContext:
    return PlanningContext(plan_type=PLAN_MILESTONE_3, quote_id=9, quote_total=330_000, items=ITEMS, rooms_count=3)


def _gemini_answer(text: str):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

    client = GeminiClient(GeminiConfig(api_key="g-test", base_url="https://gemini.test/v1"), transport=httpx.MockTransport(handler))
    return client, seen


def _plan_json(n: int) -> str:
    pcts = [50, 30, 20][:n] if n <= 3 else [25] * n
    return json.dumps(
        {
            "milestones": [
                {"title": f"Phase {i + 1}", "description": "x", "percentage": p, "items": [{"quoteItemId": (i % 3) + 1, "quantity": 1}]}
                for i, p in enumerate(pcts)
            ]
        }
    )


def test_valid_assistant_plan_is_used():
    client, seen = _gemini_answer("Here you go:\n```json\n" + _plan_json(3) + "\n```")
    result = resolve_plan(_ctx(), client=client)

    assert isinstance(result, ExternalPlan)
    assert [m.title for m in result.milestones] == ["Phase 1", "Phase 2", "Phase 3"]
    assert seen[0].url.params["key"] == "g-test"
    assert seen[0].url.path.endswith(":generateContent")


def test_two_milestone_answer_falls_back():
    client, _ = _gemini_answer(_plan_json(2))
    result = resolve_plan(_ctx(), client=client)
    assert isinstance(result, FallbackPlan)
    assert [m.percentage for m in result.milestones] == [40, 40, 20]


def test_network_failure_falls_back():
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    client = GeminiClient(GeminiConfig(api_key="g-test"), transport=httpx.MockTransport(boom))
    assert isinstance(resolve_plan(_ctx(), client=client), FallbackPlan)


def test_server_error_and_prose_answers_fall_back():
    client = GeminiClient(
        GeminiConfig(api_key="g-test"),
        transport=httpx.MockTransport(lambda r: httpx.Response(503, json={"error": "overloaded"})),
    )
    assert isinstance(resolve_plan(_ctx(), client=client), FallbackPlan)

    client, _ = _gemini_answer("Sorry, I cannot help with that.")
    assert isinstance(resolve_plan(_ctx(), client=client), FallbackPlan)


def test_disabled_client_never_calls_out():
    def fail(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not be called")

    client = GeminiClient(GeminiConfig(api_key=None), transport=httpx.MockTransport(fail))
    assert isinstance(resolve_plan(_ctx(), client=client), FallbackPlan)


def test_extract_json_object():
    assert extract_json_object('noise {"a": 1} trailing') == {"a": 1}
    assert extract_json_object("no braces") is None
    assert extract_json_object("{not json}") is None


def test_prompt_lists_quote_items_and_rule():
    prompt = build_milestone_prompt(_ctx())
    assert '"id": 1' in prompt
    assert "exactly 3 payment milestones" in prompt
    assert "add up to exactly 100" in prompt


def test_non_finite_percentages_fall_back():
    for bad in ("NaN", "Infinity", "-Infinity", "1e400", "1" + "0" * 400):
        text = (
            '{"milestones": ['
            f'{{"title": "A", "percentage": {bad}, "items": [{{"quoteItemId": 1, "quantity": 1}}]}},'
            '{"title": "B", "percentage": 40, "items": [{"quoteItemId": 2, "quantity": 1}]},'
            '{"title": "C", "percentage": 20, "items": [{"quoteItemId": 3, "quantity": 1}]}'
            "]}"
        )
        client, _ = _gemini_answer(text)
        result = resolve_plan(_ctx(), client=client)
        assert isinstance(result, FallbackPlan), bad
        assert [m.percentage for m in result.milestones] == [40, 40, 20]
