# backend/oran_payments/domain/milestones/validation.py
from __future__ import annotations

import math
from typing import Any, Iterable, List, Optional, Tuple

from .allocation import AllocationError, reconcile_percentages
from .types import MILESTONE_COUNT, ExternalPlan, ItemRef, PlannedMilestone, QuoteItemIn


def _is_str(v: Any) -> bool:
    return isinstance(v, str) and bool(v.strip())


def _is_number(v: Any) -> bool:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    try:
        return math.isfinite(v)
    except OverflowError:
        return False


def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return None


def validate_plan_payload(
    payload: Any,
    *,
    quote_items: Iterable[QuoteItemIn],
    plan_type: str,
) -> Tuple[Optional[ExternalPlan], List[str]]:
    """
    Shape we accept from the planning assistant:

      {
        "milestones": [
          {
            "title": "...",
            "description": "...",          # optional
            "percentage": 40,
            "items": [{"quoteItemId": 12, "quantity": 2}]
          },
          ... exactly 3 entries ...
        ]
      }

    Partial acceptance is never attempted: any error rejects the whole plan.
    """
    errs: List[str] = []

    if not isinstance(payload, dict):
        return None, ["plan must be an object"]

    raw = payload.get("milestones")
    if not isinstance(raw, list):
        return None, ["milestones must be a list"]
    if len(raw) != MILESTONE_COUNT:
        return None, [f"milestones must have exactly {MILESTONE_COUNT} entries (got {len(raw)})"]

    known_ids = {int(i.id) for i in quote_items}
    milestones: List[PlannedMilestone] = []

    for i, m in enumerate(raw):
        if not isinstance(m, dict):
            errs.append(f"milestones[{i}] must be an object")
            continue

        title = m.get("title")
        if not _is_str(title):
            errs.append(f"milestones[{i}].title must be a non-empty string")

        description = m.get("description")
        if description is not None and not isinstance(description, str):
            errs.append(f"milestones[{i}].description must be a string when present")

        pct = m.get("percentage")
        if not _is_number(pct):
            errs.append(f"milestones[{i}].percentage must be a number")

        items = m.get("items")
        refs: List[ItemRef] = []
        if not isinstance(items, list):
            errs.append(f"milestones[{i}].items must be a list")
        else:
            for j, it in enumerate(items):
                if not isinstance(it, dict):
                    errs.append(f"milestones[{i}].items[{j}] must be an object")
                    continue
                qid = _as_int(it.get("quoteItemId"))
                qty = _as_int(it.get("quantity"))
                if qid is None or qid not in known_ids:
                    errs.append(f"milestones[{i}].items[{j}].quoteItemId is not in the quote")
                    continue
                if qty is None or qty <= 0:
                    errs.append(f"milestones[{i}].items[{j}].quantity must be a positive integer")
                    continue
                refs.append(ItemRef(quote_item_id=qid, quantity=qty))

        if errs:
            continue

        milestones.append(
            PlannedMilestone(
                title=str(title).strip(),
                description=description.strip() if isinstance(description, str) and description.strip() else None,
                percentage=float(pct),
                items=tuple(refs),
            )
        )

    if errs:
        return None, errs

    try:
        reconcile_percentages([m.percentage for m in milestones], plan_type)
    except AllocationError as e:
        return None, [str(e)]

    return ExternalPlan(milestones=tuple(milestones)), []
