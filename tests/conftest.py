"""Pytest fixtures for the tracker."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest

import tracker_backend
from api_client import ApiError
from json_store import TrackerStore
from services import AppState, TrackerService


class _StubApi:
    """In-memory stand-in for the HTTP gateway client."""

    def __init__(self):
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.identities: List[Dict[str, Any]] = []
        self.users: List[Dict[str, Any]] = []
        self.notifications: List[Dict[str, Any]] = []
        self.logs: List[Dict[str, Any]] = []
        self.saved: List[Dict[str, Any]] = []
        self.fail_saves = False
        self.fail_verify = False

    def asset_url(self, reference):
        return reference or ""

    def fetch_projects(self):
        return [dict(p) for p in self.projects.values()]

    def save_project(self, project):
        if self.fail_saves:
            raise ApiError("save_project failed", status=500)
        current = self.projects.get(project["id"])
        current_version = int(current.get("version") or 0) if current else 0
        if current and project.get("version") is not None and project["version"] != current_version:
            raise ApiError("Version conflict", status=409)
        stored = {**project, "version": current_version + 1}
        self.projects[project["id"]] = stored
        self.saved.append(stored)
        return stored["version"]

    def delete_project(self, project_id):
        self.projects.pop(project_id, None)

    def upload_image(self, filename, content):
        return f"/uploads/abc_{filename}"

    def fetch_identities(self):
        return list(self.identities)

    def save_identity(self, identity):
        self.identities = [i for i in self.identities if i["deviceId"] != identity["deviceId"]] + [identity]

    def delete_identity(self, device_id):
        self.identities = [i for i in self.identities if i["deviceId"] != device_id]

    def fetch_all_users(self):
        return list(self.users)

    def create_user(self, user):
        self.users.append(user)
        return user

    def update_user(self, user):
        self.users = [user if u["id"] == user["id"] else u for u in self.users]

    def delete_user(self, user_id):
        self.users = [u for u in self.users if u["id"] != user_id]

    def verify_password(self, password):
        if self.fail_verify:
            raise ApiError("Tracker API is unavailable")
        return next((u for u in self.users if u.get("password") == password), None)

    def fetch_notifications(self):
        return list(self.notifications)

    def create_notification(self, notification):
        self.notifications.append(notification)

    def mark_notification_read(self, notification_id):
        for notification in self.notifications:
            if notification["id"] == notification_id:
                notification["read"] = True

    def delete_notification(self, notification_id):
        self.notifications = [n for n in self.notifications if n["id"] != notification_id]

    def fetch_activity_logs(self):
        return list(self.logs)

    def create_activity_log(self, log):
        self.logs.append(log)

    def clear_activity_logs(self):
        self.logs = []


def make_task(task_id: str, status: str = "Pending", assignee: str = "", **extra) -> Dict[str, Any]:
    return {"id": task_id, "type": f"Task {task_id}", "assignee": assignee, "status": status, "lastUpdated": 100, **extra}


@pytest.fixture()
def stub_api() -> _StubApi:
    api = _StubApi()
    api.projects["p1"] = {
        "id": "p1",
        "name": "Desk lamp",
        "description": "",
        "imageUrl": "",
        "createdAt": 50,
        "version": 1,
        "items": [
            make_task("t1"),
            make_task("t2", "InProgress", "Alice"),
            make_task("t3", "Completed", "Dave", completedDate=90),
        ],
    }
    api.users = [
        {"id": "u1", "name": "Alice", "password": "alice-pw"},
        {"id": "u2", "name": "Bob", "password": "bob-pw"},
        {"id": "u3", "name": "Carol", "password": "carol-pw"},
    ]
    return api


@pytest.fixture()
def make_service(stub_api: _StubApi):
    def factory(admin: bool = False, user: str | None = None) -> TrackerService:
        logged_in = next((u for u in stub_api.users if u["name"] == user), None) if user else None
        state = AppState(identity={"deviceId": "device-1", "name": ""}, logged_in_user=logged_in, is_admin=admin)
        service = TrackerService(stub_api, state, clock=lambda: 1_000)
        service.refresh_projects()
        return service

    return factory


@pytest.fixture()
def store(tmp_path: Path) -> TrackerStore:
    return TrackerStore(tmp_path / "data", log_limit=1000)


@pytest.fixture()
def client(store: TrackerStore, tmp_path: Path):
    app = tracker_backend.app
    app.config.update(TESTING=True, TRACKER_STORE=store, UPLOAD_DIR=tmp_path / "uploads")
    with app.test_client() as test_client:
        yield test_client
