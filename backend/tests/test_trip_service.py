# backend/tests/test_trip_service.py
from __future__ import annotations

from datetime import datetime

import pytest
from fastapi import HTTPException

from oran_payments.services.milestone_service import milestones_for_project
from oran_payments.services.payment_plan_service import set_for_project
from oran_payments.services.trip_service import (
    STANDARD_TASKS,
    check_in,
    check_out,
    follow_up_time,
    list_tasks,
    schedule_follow_up_visit,
    set_task_done,
)


def test_follow_up_is_three_days_out_at_ten_lagos_time():
    # 08:00 UTC is 09:00 in Lagos (UTC+1, no DST)
    assert follow_up_time(datetime(2026, 1, 5, 8, 0)) == datetime(2026, 1, 8, 9, 0)
    # late evening UTC already rolls over to the next local day
    assert follow_up_time(datetime(2026, 1, 5, 23, 30)) == datetime(2026, 1, 9, 9, 0)


def _visit(db, mk_project, planner):
    project = mk_project(db)
    set_for_project(db, project_id=project.id, plan_type="MILESTONE_3", planner=planner)
    m1 = milestones_for_project(db, project_id=project.id)[0]
    trip = schedule_follow_up_visit(db, project=project, milestone=m1, now_utc=datetime(2026, 3, 2, 12, 0))
    return project, m1, trip


def test_visit_is_seeded_with_standard_checklist(db, mk_project, offline_planner):
    project, m1, trip = _visit(db, mk_project, offline_planner)

    assert trip.status == "SCHEDULED"
    assert trip.scheduled_for == datetime(2026, 3, 5, 9, 0)
    assert "milestone 1" in trip.notes
    tasks = list_tasks(db, trip_id=trip.id)
    assert [t.label for t in tasks] == list(STANDARD_TASKS)
    assert not any(t.is_done for t in tasks)

    again = schedule_follow_up_visit(db, project=project, milestone=m1)
    assert again.id == trip.id


def test_task_toggle_and_wrong_trip(db, mk_project, offline_planner):
    _, _, trip = _visit(db, mk_project, offline_planner)
    first = list_tasks(db, trip_id=trip.id)[0]

    assert set_task_done(db, trip_id=trip.id, task_id=first.id, is_done=True).is_done

    with pytest.raises(HTTPException) as exc:
        set_task_done(db, trip_id=trip.id + 10_000, task_id=first.id, is_done=True)
    assert exc.value.status_code == 404


def test_check_out_completes_linked_milestone(db, mk_project, offline_planner):
    project, m1, trip = _visit(db, mk_project, offline_planner)

    assert check_in(db, trip_id=trip.id).status == "IN_PROGRESS"
    done = check_out(db, trip_id=trip.id)

    assert done.status == "COMPLETED"
    assert done.check_in_at is not None and done.check_out_at is not None
    db.refresh(m1)
    assert m1.status == "COMPLETED"
