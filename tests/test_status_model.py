from __future__ import annotations

from datetime import datetime

import pytest

from status_model import (
    STATUS_COMPLETED,
    STATUS_FILTER_ALL,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    display_deadline,
    filter_activity_logs,
    filter_projects,
    is_overdue,
    progress_percent,
    project_status,
    sort_projects,
    status_counts,
)


def project(name, statuses, **extra):
    items = [
        {"id": f"{name}-{i}", "status": status, "lastUpdated": extra.pop(f"updated_{i}", 0)}
        for i, status in enumerate(statuses)
    ]
    return {"id": name, "name": name, "createdAt": 0, "items": items, **extra}


@pytest.mark.parametrize(
    "statuses,expected",
    [
        ([], STATUS_PENDING),
        ([STATUS_PENDING, STATUS_PENDING], STATUS_PENDING),
        ([STATUS_PENDING, STATUS_IN_PROGRESS], STATUS_IN_PROGRESS),
        ([STATUS_PENDING, STATUS_COMPLETED], STATUS_IN_PROGRESS),
        ([STATUS_COMPLETED, STATUS_COMPLETED], STATUS_COMPLETED),
    ],
)
def test_project_status(statuses, expected):
    assert project_status(project("x", statuses)) == expected


def test_progress_percent_rounds_half_up():
    assert progress_percent(project("x", [])) == 0
    assert progress_percent(project("x", [STATUS_COMPLETED, STATUS_PENDING, STATUS_PENDING])) == 33
    assert progress_percent(project("x", [STATUS_COMPLETED, STATUS_COMPLETED, STATUS_PENDING])) == 67
    assert progress_percent(project("x", [STATUS_COMPLETED] + [STATUS_PENDING] * 7)) == 13


@pytest.mark.parametrize("count", range(1, 12))
def test_progress_is_100_only_when_completed(count):
    for done in range(count + 1):
        p = project("x", [STATUS_COMPLETED] * done + [STATUS_PENDING] * (count - done))
        percent = progress_percent(p)
        assert 0 <= percent <= 100
        assert (percent == 100) == (project_status(p) == STATUS_COMPLETED)


def test_display_deadline_prefers_early_completion():
    p = project("x", [STATUS_IN_PROGRESS, STATUS_COMPLETED], deadline=10_000)
    p["items"][0]["completedDate"] = 4_000
    p["items"][1]["completedDate"] = 6_000
    assert display_deadline(p) == 6_000


def test_display_deadline_uses_deadline_when_a_task_lacks_completion():
    p = project("x", [STATUS_IN_PROGRESS, STATUS_COMPLETED], deadline=10_000)
    p["items"][1]["completedDate"] = 6_000
    assert display_deadline(p) == 10_000


def test_display_deadline_late_completion_keeps_deadline():
    p = project("x", [STATUS_IN_PROGRESS], deadline=10_000)
    p["items"][0]["completedDate"] = 12_000
    assert display_deadline(p) == 10_000


def test_display_deadline_without_sub_tasks_shows_deadline():
    assert display_deadline(project("x", [], deadline=10_000)) == 10_000


def test_display_deadline_without_deadline_is_none():
    assert display_deadline(project("x", [STATUS_PENDING])) is None


def test_display_deadline_for_completed_project():
    p = project("x", [STATUS_COMPLETED, STATUS_COMPLETED], deadline=10_000)
    p["items"][0]["completedDate"] = 3_000
    p["items"][1]["completedDate"] = 5_000
    assert display_deadline(p) == 5_000

    fallback = project("y", [STATUS_COMPLETED, STATUS_COMPLETED], updated_0=700, updated_1=900)
    assert display_deadline(fallback) == 900


def test_is_overdue():
    late = project("x", [STATUS_PENDING], deadline=1_000)
    assert is_overdue(late, now=2_000)
    assert not is_overdue(late, now=500)
    assert not is_overdue(project("x", [STATUS_COMPLETED], deadline=1_000), now=2_000)
    assert not is_overdue(project("x", [STATUS_PENDING]), now=2_000)


def test_sort_orders_pending_then_in_progress_then_completed():
    a = project("A", [STATUS_PENDING, STATUS_PENDING], updated_0=1)
    b = project("B", [STATUS_COMPLETED, STATUS_IN_PROGRESS], updated_0=5_000)
    c = project("C", [STATUS_COMPLETED, STATUS_COMPLETED], updated_0=9_000)
    for ordering in ([c, b, a], [b, a, c], [a, c, b]):
        assert [p["name"] for p in sort_projects(ordering)] == ["A", "B", "C"]


def test_sort_tie_breaks_by_ratio_then_recent_activity():
    low = project("low", [STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_PENDING, STATUS_PENDING])
    high = project("high", [STATUS_COMPLETED, STATUS_COMPLETED, STATUS_IN_PROGRESS])
    old = project("old", [STATUS_IN_PROGRESS], updated_0=100)
    new = project("new", [STATUS_IN_PROGRESS], updated_0=900)
    assert [p["name"] for p in sort_projects([high, old, low, new])] == ["new", "old", "low", "high"]


def test_filter_projects_by_text_and_status():
    projects = [
        project("Desk Lamp", [STATUS_PENDING]),
        project("Floor lamp", [STATUS_COMPLETED]),
        project("Kettle", [STATUS_IN_PROGRESS]),
    ]
    assert [p["name"] for p in filter_projects(projects, "LAMP")] == ["Desk Lamp", "Floor lamp"]
    assert [p["name"] for p in filter_projects(projects, "lamp", STATUS_COMPLETED)] == ["Floor lamp"]
    counts = status_counts(projects)
    assert counts[STATUS_FILTER_ALL] == 3
    assert counts[STATUS_PENDING] == counts[STATUS_IN_PROGRESS] == counts[STATUS_COMPLETED] == 1


def _ms(text):
    return int(datetime.strptime(text, "%Y-%m-%d %H:%M").timestamp() * 1000)


def test_filter_activity_logs():
    logs = [
        {"id": "1", "timestamp": _ms("2024-03-01 09:00"), "user": "Alice", "action": "Assign task", "projectId": "p1"},
        {"id": "2", "timestamp": _ms("2024-03-02 23:30"), "user": "Bob", "action": "Change task status", "projectId": "p2"},
        {"id": "3", "timestamp": _ms("2024-03-03 08:00"), "user": "Admin", "action": "Create project", "projectId": "p1"},
    ]
    assert [log["id"] for log in filter_activity_logs(logs)] == ["2", "1"]
    assert [log["id"] for log in filter_activity_logs(logs, include_admin=True)] == ["3", "2", "1"]
    assert [log["id"] for log in filter_activity_logs(logs, end_date="2024-03-02")] == ["2", "1"]
    assert [log["id"] for log in filter_activity_logs(logs, start_date="2024-03-02", include_admin=True)] == ["3", "2"]
    assert [log["id"] for log in filter_activity_logs(logs, user="Alice")] == ["1"]
    assert [log["id"] for log in filter_activity_logs(logs, project_id="p1", include_admin=True)] == ["3", "1"]
