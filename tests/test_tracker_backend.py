from __future__ import annotations

import io
import json

import pytest

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def call(client, action, payload=None, method="POST"):
    if method == "GET":
        return client.get("/api", query_string={"action": action})
    return client.post("/api", query_string={"action": action}, json=payload)


def test_unknown_action(client):
    response = call(client, "drop_everything", method="GET")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid action"}


def test_legacy_path_is_served(client):
    response = client.get("/api.php", query_string={"action": "get_projects"})
    assert response.status_code == 200
    assert response.get_json() == []


def test_invalid_body(client):
    response = client.post("/api", query_string={"action": "save_project"}, data="nope", content_type="text/plain")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid JSON data"}


def test_project_round_trip_with_versions(client):
    created = call(client, "save_project", {"id": "p1", "name": "Lamp", "items": []})
    assert created.get_json() == {"success": True, "version": 1}

    updated = call(client, "save_project", {"id": "p1", "name": "Desk lamp", "items": [], "version": 1})
    assert updated.get_json()["version"] == 2

    stale = call(client, "save_project", {"id": "p1", "name": "Old lamp", "items": [], "version": 1})
    assert stale.status_code == 409
    assert stale.get_json() == {"error": "Version conflict", "currentVersion": 2}

    projects = call(client, "get_projects", method="GET").get_json()
    assert [p["name"] for p in projects] == ["Desk lamp"]

    call(client, "delete_project", {"id": "p1"})
    assert call(client, "get_projects", method="GET").get_json() == []


def test_identities_upsert_by_device(client):
    call(client, "save_user", {"deviceId": "d1", "name": "Alice"})
    call(client, "save_user", {"deviceId": "d1", "name": "Alicia"})
    identities = call(client, "get_users", method="GET").get_json()
    assert len(identities) == 1
    assert identities[0]["name"] == "Alicia"


def test_user_accounts_and_password_check(client):
    created = call(client, "create_user", {"name": "Alice", "password": "pw1"}).get_json()
    user_id = created["user"]["id"]
    assert created["success"] is True

    assert call(client, "verify_password", {"password": "pw1"}).get_json()["user"]["name"] == "Alice"
    assert call(client, "verify_password", {"password": "nope"}).get_json() == {"success": False}

    call(client, "update_user", {"id": user_id, "password": "pw2"})
    assert call(client, "verify_password", {"password": "pw2"}).get_json()["success"] is True

    missing = call(client, "update_user", {"id": "ghost", "password": "x"})
    assert missing.status_code == 404
    assert missing.get_json() == {"error": "User not found"}

    call(client, "delete_user", {"id": user_id})
    assert call(client, "get_all_users", method="GET").get_json() == []


def test_notifications_require_target_fields(client):
    bad = call(client, "create_notification", {"projectId": "p1"})
    assert bad.status_code == 400

    call(client, "create_notification", {"id": "n1", "projectId": "p1", "taskId": "t1", "assignee": "Carol", "read": False})
    call(client, "mark_notification_read", {"id": "n1"})
    notifications = call(client, "get_notifications", method="GET").get_json()
    assert notifications[0]["read"] is True


def test_activity_logs(client):
    assert call(client, "create_activity_log", {"action": "Assign task"}).status_code == 400
    call(client, "create_activity_log", {"id": "l1", "user": "Alice", "action": "Assign task", "timestamp": 1})
    assert len(call(client, "get_activity_logs", method="GET").get_json()) == 1
    call(client, "clear_activity_logs")
    assert call(client, "get_activity_logs", method="GET").get_json() == []


def test_upload_accepts_png_by_content(client, tmp_path):
    response = client.post(
        "/api",
        query_string={"action": "upload_image"},
        data={"file": (io.BytesIO(PNG_BYTES), "cover photo.png")},
        content_type="multipart/form-data",
    )
    body = response.get_json()
    assert response.status_code == 200
    assert body["url"].startswith("/uploads/")
    assert body["url"].endswith("_cover_photo.png")

    served = client.get(body["url"])
    assert served.status_code == 200
    assert served.data == PNG_BYTES


def test_upload_rejects_other_content(client):
    response = client.post(
        "/api",
        query_string={"action": "upload_image"},
        data={"file": (io.BytesIO(b"GIF89a....."), "fake.png")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert response.get_json() == {"error": "Only JPG and PNG files are allowed"}


def test_upload_without_file(client):
    response = client.post("/api", query_string={"action": "upload_image"}, data={}, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_json() == {"error": "No file uploaded"}


def test_cors_headers_for_allowed_origin(client):
    response = client.get(
        "/api",
        query_string={"action": "get_projects"},
        headers={"Origin": "http://localhost:5001"},
    )
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5001"

    preflight = client.options("/api", headers={"Origin": "http://localhost:5001"})
    assert preflight.status_code == 204


@pytest.mark.parametrize("version", ["abc", "2", 1.5, True, [1]])
def test_non_integer_version_is_rejected(client, version):
    call(client, "save_project", {"id": "p1", "name": "Lamp", "items": []})

    response = call(client, "save_project", {"id": "p1", "name": "Lamp", "items": [], "version": version})

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid JSON data"}
    assert call(client, "get_projects", method="GET").get_json()[0]["version"] == 1


def test_non_object_entries_on_disk_are_skipped(client, store):
    store.projects.path.parent.mkdir(parents=True, exist_ok=True)
    store.projects.path.write_text(json.dumps(["junk", 7, {"id": "p1", "name": "Lamp", "version": 1}]), encoding="utf-8")

    assert [p["id"] for p in call(client, "get_projects", method="GET").get_json()] == ["p1"]

    saved = call(client, "save_project", {"id": "p1", "name": "Desk lamp", "items": [], "version": 1})
    assert saved.get_json() == {"success": True, "version": 2}


def test_malformed_stored_version_gives_json_error(client, store):
    store.projects.path.parent.mkdir(parents=True, exist_ok=True)
    store.projects.path.write_text(json.dumps([{"id": "p1", "version": "abc"}]), encoding="utf-8")

    response = call(client, "save_project", {"id": "p1", "name": "Lamp", "items": [], "version": 1})

    assert response.status_code == 500
    assert response.get_json() == {"error": "Stored data is invalid"}


def test_identity_can_be_deleted(client):
    call(client, "save_user", {"deviceId": "d1", "name": "Alice"})
    call(client, "save_user", {"deviceId": "d2", "name": "Bob"})

    assert call(client, "delete_user_identity", {"id": "d1"}).status_code == 400
    assert call(client, "delete_user_identity", {"deviceId": "d1"}).get_json() == {"success": True}

    assert [i["name"] for i in call(client, "get_users", method="GET").get_json()] == ["Bob"]


def test_notification_upsert_and_delete(client):
    assert call(client, "save_notification", {"projectId": "p1"}).status_code == 400

    call(client, "save_notification", {"id": "n1", "projectId": "p1", "taskId": "t1", "assignee": "Carol", "read": False})
    call(client, "save_notification", {"id": "n1", "projectId": "p1", "taskId": "t1", "assignee": "Dave", "read": False})
    notifications = call(client, "get_notifications", method="GET").get_json()
    assert [n["assignee"] for n in notifications] == ["Dave"]

    stale = call(client, "save_notification", {"id": "n1", "assignee": "Erin", "version": 1})
    assert stale.status_code == 409

    call(client, "delete_notification", {"id": "n1"})
    assert call(client, "get_notifications", method="GET").get_json() == []


def test_single_activity_log_can_be_deleted(client):
    call(client, "create_activity_log", {"id": "l1", "user": "Alice", "action": "Assign task", "timestamp": 1})
    call(client, "create_activity_log", {"id": "l2", "user": "Bob", "action": "Add file path", "timestamp": 2})

    assert call(client, "delete_activity_log", {}).status_code == 400
    call(client, "delete_activity_log", {"id": "l1"})

    assert [log["id"] for log in call(client, "get_activity_logs", method="GET").get_json()] == ["l2"]
