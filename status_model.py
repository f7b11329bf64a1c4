"""Derived project state for the dashboard.

Everything here is a pure function over the stored JSON documents: nothing is
mutated and nothing touches the network. Timestamps are integer milliseconds
since the epoch, the same unit the documents are stored in.
"""
from __future__ import annotations

import math
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List

STATUS_PENDING = "Pending"
STATUS_IN_PROGRESS = "InProgress"
STATUS_COMPLETED = "Completed"

TASK_STATUSES = [STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED]
STATUS_LABELS = {
    STATUS_PENDING: "Pending",
    STATUS_IN_PROGRESS: "In progress",
    STATUS_COMPLETED: "Completed",
}
STATUS_RANK = {STATUS_PENDING: 0, STATUS_IN_PROGRESS: 1, STATUS_COMPLETED: 2}

STATUS_FILTER_ALL = "ALL"

ADMIN_ACTOR = "Admin"


def now_ms() -> int:
    return int(time.time() * 1000)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def items_of(project: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(project.get("items") or [])


def count_by_status(project: Dict[str, Any]) -> Dict[str, int]:
    counts = {status: 0 for status in TASK_STATUSES}
    for item in items_of(project):
        status = item.get("status")
        if status in counts:
            counts[status] += 1
    return counts


def project_status(project: Dict[str, Any]) -> str:
    items = items_of(project)
    completed = sum(1 for item in items if item.get("status") == STATUS_COMPLETED)
    if items and completed == len(items):
        return STATUS_COMPLETED
    if not any(item.get("status") != STATUS_PENDING for item in items):
        return STATUS_PENDING
    return STATUS_IN_PROGRESS


def completion_ratio(project: Dict[str, Any]) -> float:
    items = items_of(project)
    if not items:
        return 0.0
    completed = sum(1 for item in items if item.get("status") == STATUS_COMPLETED)
    return completed / len(items)


def progress_percent(project: Dict[str, Any]) -> int:
    return _round_half_up(100 * completion_ratio(project))


def last_activity(project: Dict[str, Any]) -> int:
    latest = int(project.get("createdAt") or 0)
    for item in items_of(project):
        latest = max(latest, int(item.get("lastUpdated") or 0))
    return latest


def display_deadline(project: Dict[str, Any]) -> int | None:
    """Timestamp to show on a project card, or None when there is nothing to show.

    Completed projects show when they were finished. Open projects show their
    deadline, unless every sub-task already carries a completion date that
    lands before it, in which case the earlier date signals early readiness.
    A project with a deadline and no sub-tasks shows the deadline.
    """
    items = items_of(project)

    if project_status(project) == STATUS_COMPLETED:
        completed_dates = [
            int(item["completedDate"])
            for item in items
            if item.get("status") == STATUS_COMPLETED and item.get("completedDate")
        ]
        if completed_dates:
            return max(completed_dates)
        return last_activity(project)

    deadline = project.get("deadline")
    if not deadline:
        return None

    if items and all(item.get("completedDate") for item in items):
        latest = max(int(item["completedDate"]) for item in items)
        if latest < deadline:
            return latest

    return int(deadline)


def is_overdue(project: Dict[str, Any], now: int | None = None) -> bool:
    if project_status(project) == STATUS_COMPLETED:
        return False
    deadline = project.get("deadline")
    if not deadline:
        return False
    current = now_ms() if now is None else now
    return deadline < current and progress_percent(project) < 100


def status_counts(projects: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    counts = {STATUS_FILTER_ALL: 0, **{status: 0 for status in TASK_STATUSES}}
    for project in projects:
        counts[STATUS_FILTER_ALL] += 1
        counts[project_status(project)] += 1
    return counts


def filter_projects(
    projects: Iterable[Dict[str, Any]],
    text: str = "",
    status: str = STATUS_FILTER_ALL,
) -> List[Dict[str, Any]]:
    needle = (text or "").lower()
    result = []
    for project in projects:
        if needle and needle not in str(project.get("name") or "").lower():
            continue
        if status != STATUS_FILTER_ALL and project_status(project) != status:
            continue
        result.append(project)
    return result


def sort_key(project: Dict[str, Any]) -> tuple:
    return (
        STATUS_RANK[project_status(project)],
        completion_ratio(project),
        -last_activity(project),
    )


def sort_projects(projects: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(projects, key=sort_key)


def visible_projects(
    projects: Iterable[Dict[str, Any]],
    text: str = "",
    status: str = STATUS_FILTER_ALL,
) -> List[Dict[str, Any]]:
    return sort_projects(filter_projects(projects, text, status))


def parse_date(value: Any) -> datetime | None:
    if not value:
        return None
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def date_to_ms(value: Any) -> int | None:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return int(parsed.timestamp() * 1000)


def format_date(ts: Any) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(int(ts) / 1000).strftime("%Y-%m-%d")


def format_datetime(ts: Any) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(int(ts) / 1000).strftime("%Y-%m-%d %H:%M")


def filter_activity_logs(
    logs: Iterable[Dict[str, Any]],
    start_date: str = "",
    end_date: str = "",
    user: str = "",
    action: str = "",
    project_id: str = "",
    include_admin: bool = False,
) -> List[Dict[str, Any]]:
    """Apply the log centre filters and return the matches newest first.

    Date bounds are whole local days, both inclusive.
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    start_ms = int(start.timestamp() * 1000) if start else None
    end_ms = int((end + timedelta(days=1)).timestamp() * 1000) - 1 if end else None

    result = []
    for log in logs:
        if not include_admin and log.get("user") == ADMIN_ACTOR:
            continue
        timestamp = int(log.get("timestamp") or 0)
        if start_ms is not None and timestamp < start_ms:
            continue
        if end_ms is not None and timestamp > end_ms:
            continue
        if user and log.get("user") != user:
            continue
        if action and log.get("action") != action:
            continue
        if project_id and log.get("projectId") != project_id:
            continue
        result.append(log)
    result.sort(key=lambda log: int(log.get("timestamp") or 0), reverse=True)
    return result
