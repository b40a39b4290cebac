# backend/tests/test_payment_plan_service.py
from __future__ import annotations

import pytest
from fastapi import HTTPException

from oran_payments.domain.events import list_workflow_events
from oran_payments.models import Quote
from oran_payments.services.locks_service import MILESTONES_LOCK, acquire_lock
from oran_payments.services.milestone_service import list_for_project, milestone_items, milestones_for_project
from oran_payments.services.payment_plan_service import set_for_project


def test_selecting_a_plan_generates_three_reconciled_milestones(db, mk_project, offline_planner):
    project = mk_project(db, total=333)

    plan, rows = set_for_project(db, project_id=project.id, plan_type="milestone_3", planner=offline_planner)

    assert plan.type == "MILESTONE_3"
    assert [m.index for m in rows] == [1, 2, 3]
    assert [m.amount for m in rows] == [133, 133, 67]
    assert [m.percentage for m in rows] == [40, 40, 20]
    assert all(m.status == "PENDING" and m.plan_source == "fallback" for m in rows)

    db.refresh(project)
    assert project.status == "PAYMENT_PLAN_SELECTED"

    events = list_workflow_events(db, project_id=project.id, event_type="milestones_generated")
    assert events and events[0]["payload"]["amounts"] == [133, 133, 67]


def test_every_quote_item_lands_in_exactly_one_milestone(db, mk_project, offline_planner):
    project = mk_project(db)
    _, rows = set_for_project(db, project_id=project.id, plan_type="EIGHTY_TEN_TEN", planner=offline_planner)

    ids = [ref["quoteItemId"] for m in rows for ref in milestone_items(m)]
    quote = db.query(Quote).filter(Quote.project_id == project.id).one()
    assert sorted(ids) == sorted(i.id for i in quote.items)
    assert sum(m.amount for m in rows) == quote.total
    assert [m.percentage for m in rows] == [80, 10, 10]


def test_regeneration_replaces_the_whole_set(db, mk_project, offline_planner):
    project = mk_project(db)
    _, first = set_for_project(db, project_id=project.id, plan_type="MILESTONE_3", planner=offline_planner)
    first_ids = {m.id for m in first}

    _, second = set_for_project(db, project_id=project.id, plan_type="EIGHTY_TEN_TEN", planner=offline_planner)

    current = milestones_for_project(db, project_id=project.id)
    assert len(current) == 3
    assert {m.id for m in current} == {m.id for m in second}
    assert not first_ids & {m.id for m in current}
    assert all(m.plan_type == "EIGHTY_TEN_TEN" for m in current)


def test_plan_requires_signed_documents(db, mk_project, offline_planner):
    project = mk_project(db, status="ONBOARDING")
    with pytest.raises(HTTPException) as exc:
        set_for_project(db, project_id=project.id, plan_type="MILESTONE_3", planner=offline_planner)
    assert exc.value.status_code == 400
    assert milestones_for_project(db, project_id=project.id) == []


def test_invalid_plan_type_and_unknown_project(db, mk_project, offline_planner):
    project = mk_project(db)
    with pytest.raises(HTTPException) as exc:
        set_for_project(db, project_id=project.id, plan_type="FIFTY_FIFTY", planner=offline_planner)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        set_for_project(db, project_id=987654, plan_type="MILESTONE_3", planner=offline_planner)
    assert exc.value.status_code == 404


def test_zero_total_and_missing_quote_are_rejected(db, mk_project, offline_planner):
    zero = mk_project(db, total=0)
    with pytest.raises(HTTPException) as exc:
        set_for_project(db, project_id=zero.id, plan_type="MILESTONE_3", planner=offline_planner)
    assert exc.value.status_code == 400

    unselected = mk_project(db)
    for q in db.query(Quote).filter(Quote.project_id == unselected.id).all():
        q.is_selected = False
    db.commit()
    with pytest.raises(HTTPException) as exc:
        set_for_project(db, project_id=unselected.id, plan_type="MILESTONE_3", planner=offline_planner)
    assert exc.value.status_code == 400
    assert milestones_for_project(db, project_id=unselected.id) == []


def test_busy_project_lock_is_a_conflict(db, mk_project, offline_planner):
    project = mk_project(db)
    assert acquire_lock(db, project_id=project.id, lock_key=MILESTONES_LOCK, owner="someone-else", ttl_seconds=60)

    with pytest.raises(HTTPException) as exc:
        set_for_project(db, project_id=project.id, plan_type="MILESTONE_3", planner=offline_planner)
    assert exc.value.status_code == 409


def test_read_model_reports_next_payable(db, mk_project, offline_planner):
    project = mk_project(db, total=1_000)
    _, rows = set_for_project(db, project_id=project.id, plan_type="MILESTONE_3", planner=offline_planner)

    out = list_for_project(db, project_id=project.id)
    assert out["next_payable_milestone_id"] == rows[0].id
    assert out["total_amount"] == 1_000
    assert out["paid_amount"] == 0
    assert [m["is_next_payable"] for m in out["items"]] == [True, False, False]
