# backend/oran_payments/services/plan_source.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..domain.milestones import (
    ExternalPlan,
    FallbackPlan,
    PlanResult,
    QuoteItemIn,
    build_fallback_plan,
    validate_plan_payload,
)
from ..domain.milestones.types import PLAN_EIGHTY_TEN_TEN
from ..integrations.gemini_client import GeminiClient, extract_json_object
from ..models import Project, Quote

log = logging.getLogger("oran.planner")


@dataclass(frozen=True)
class PlanningContext:
    plan_type: str
    quote_id: int
    quote_total: int
    items: tuple[QuoteItemIn, ...]
    rooms_count: Optional[int] = None
    building_type: Optional[str] = None
    onboarding: dict[str, Any] = field(default_factory=dict)


def _features(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    try:
        v = json.loads(raw)
    except ValueError:
        return []
    return [str(x) for x in v] if isinstance(v, list) else []


def planning_context(project: Project, quote: Quote, plan_type: str) -> PlanningContext:
    ob = project.onboarding
    onboarding: dict[str, Any] = {}
    if ob is not None:
        onboarding = {
            "projectStatus": ob.project_status,
            "constructionStage": ob.construction_stage,
            "needsInspection": ob.needs_inspection,
            "selectedFeatures": _features(ob.selected_features_json),
            "stairSteps": ob.stair_steps,
        }

    return PlanningContext(
        plan_type=plan_type,
        quote_id=int(quote.id),
        quote_total=int(quote.total),
        items=tuple(QuoteItemIn.from_row(i) for i in quote.items),
        rooms_count=project.rooms_count,
        building_type=project.building_type,
        onboarding=onboarding,
    )


def build_milestone_prompt(ctx: PlanningContext) -> str:
    rooms = ctx.rooms_count or 1
    building = ctx.building_type or "unknown"
    features = ctx.onboarding.get("selectedFeatures") or []
    feature_list = ", ".join(features) if features else "no specific features selected"

    quote_json = json.dumps(
        {
            "id": ctx.quote_id,
            "total": ctx.quote_total,
            "items": [
                {
                    "id": i.id,
                    "name": i.name,
                    "category": i.category,
                    "quantity": i.quantity,
                    "totalPrice": i.total_price,
                }
                for i in ctx.items
            ],
        }
    )

    if ctx.plan_type == PLAN_EIGHTY_TEN_TEN:
        split_rule = "Percentages MUST be exactly 80, 10 and 10 in that order."
    else:
        split_rule = "Percentages must be whole numbers that add up to exactly 100."

    return f"""
You are an ORAN smart home installation planner.

The customer has a project with:
- Building type: {building}
- Approximate rooms: {rooms}
- Construction stage: {ctx.onboarding.get("constructionStage") or "unknown"}
- Needs inspection: {ctx.onboarding.get("needsInspection")}
- Staircase steps: {ctx.onboarding.get("stairSteps") or "n/a"}
- Desired features: {feature_list}

The accepted quote (JSON):
{quote_json}

TASK:
Split this installation into exactly 3 payment milestones for plan type {ctx.plan_type}.
Assign every quote item to the milestone in which its devices will be released for installation.
Infrastructure (GATE, STAIRCASE, SURVEILLANCE) should come early.
{split_rule}
Use only quote item ids from the list above. Do not invent new ids.

RETURN STRICT JSON ONLY with this exact shape:
{{
  "milestones": [
    {{ "title": "string", "description": "string", "percentage": number,
       "items": [{{ "quoteItemId": number, "quantity": number }}] }}
  ]
}}
"""


def try_external_plan(ctx: PlanningContext, *, client: Optional[GeminiClient] = None) -> Optional[ExternalPlan]:
    """
    Best-effort: any failure (disabled, network, unparsable, wrong shape) is
    logged and returned as None. Never raises.
    """
    client = client or GeminiClient()
    if not client.enabled():
        return None

    try:
        text = client.generate_text(build_milestone_prompt(ctx))
    except Exception:
        log.warning("planning assistant raised; using fallback", exc_info=True, extra={"plan_type": ctx.plan_type})
        return None

    if not text:
        return None

    payload = extract_json_object(text)
    if payload is None:
        log.warning("planning assistant response had no JSON object", extra={"plan_type": ctx.plan_type})
        return None

    try:
        plan, errs = validate_plan_payload(payload, quote_items=ctx.items, plan_type=ctx.plan_type)
    except Exception:
        log.warning("planning assistant plan could not be validated; using fallback", exc_info=True, extra={"plan_type": ctx.plan_type})
        return None
    if plan is None:
        log.warning("planning assistant plan rejected: %s", "; ".join(errs[:5]), extra={"plan_type": ctx.plan_type})
        return None
    return plan


def resolve_plan(ctx: PlanningContext, *, client: Optional[GeminiClient] = None) -> PlanResult:
    plan = try_external_plan(ctx, client=client)
    if plan is not None:
        return plan
    fallback: FallbackPlan = build_fallback_plan(ctx.plan_type, ctx.items)
    return fallback
