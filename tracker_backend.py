from __future__ import annotations

import os
import uuid
from typing import Any, Callable, Dict, Tuple

from flask import Flask, current_app, jsonify, request, send_from_directory
from werkzeug.utils import secure_filename

import settings
from json_store import TrackerStore, VersionConflict
from status_model import now_ms

Reply = Tuple[Dict[str, Any] | list, int]

JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

app = Flask(__name__)
app.config["TRACKER_STORE"] = TrackerStore(settings.DATA_DIR, log_limit=settings.ACTIVITY_LOG_LIMIT)
app.config["UPLOAD_DIR"] = settings.UPLOAD_DIR
app.config["MAX_CONTENT_LENGTH"] = settings.MAX_UPLOAD_BYTES


def get_store() -> TrackerStore:
    return current_app.config["TRACKER_STORE"]


def sniff_image_type(header: bytes) -> str | None:
    if header.startswith(JPEG_MAGIC):
        return "image/jpeg"
    if header.startswith(PNG_MAGIC):
        return "image/png"
    return None


def cors_origin_for_request() -> str | None:
    origin = request.headers.get("Origin")
    if not origin:
        return None
    if "*" in settings.CORS_ALLOWED_ORIGINS:
        return "*"
    if origin in settings.CORS_ALLOWED_ORIGINS:
        return origin
    return None


@app.before_request
def api_cors_preflight():
    if request.method == "OPTIONS" and request.path.startswith("/api"):
        return "", 204


@app.after_request
def add_api_cors_headers(response):
    if not request.path.startswith("/api"):
        return response

    origin = cors_origin_for_request()
    if origin:
        response.headers["Access-Control-Allow-Origin"] = origin
        if origin != "*":
            response.headers["Vary"] = "Origin"

    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    response.headers["Access-Control-Max-Age"] = "600"
    return response


def json_body() -> Dict[str, Any] | None:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


def invalid_json() -> Reply:
    return {"error": "Invalid JSON data"}, 400


def get_projects() -> Reply:
    return get_store().projects.all(), 200


def is_version(value: Any) -> bool:
    return value is None or (isinstance(value, int) and not isinstance(value, bool))


def save_project() -> Reply:
    payload = json_body()
    if not payload or not payload.get("id"):
        return invalid_json()
    if not is_version(payload.get("version")):
        return invalid_json()
    try:
        stored = get_store().projects.upsert(payload)
    except VersionConflict as exc:
        current_app.logger.warning("Rejected stale write to project %s", exc.key)
        return {"error": "Version conflict", "currentVersion": exc.current_version}, 409
    return {"success": True, "version": stored["version"]}, 200


def delete_project() -> Reply:
    payload = json_body()
    if not payload or "id" not in payload:
        return invalid_json()
    get_store().projects.delete(payload["id"])
    return {"success": True}, 200


def get_identities() -> Reply:
    return get_store().identities.all(), 200


def save_identity() -> Reply:
    payload = json_body()
    if not payload or "deviceId" not in payload or "name" not in payload:
        return invalid_json()
    identity = {"deviceId": payload["deviceId"], "name": payload["name"]}
    get_store().identities.upsert(identity)
    return {"success": True}, 200


def delete_identity() -> Reply:
    payload = json_body()
    if not payload or "deviceId" not in payload:
        return invalid_json()
    get_store().identities.delete(payload["deviceId"])
    return {"success": True}, 200


def get_all_users() -> Reply:
    return get_store().users.all(), 200


def create_user() -> Reply:
    payload = json_body()
    if not payload or "name" not in payload or "password" not in payload:
        return invalid_json()
    timestamp = now_ms()
    user = {
        **payload,
        "id": payload.get("id") or uuid.uuid4().hex,
        "createdAt": payload.get("createdAt") or timestamp,
        "updatedAt": timestamp,
    }
    get_store().users.append(user)
    return {"success": True, "user": user}, 200


def update_user() -> Reply:
    payload = json_body()
    if not payload or "id" not in payload:
        return invalid_json()
    merged = get_store().users.merge(payload["id"], {**payload, "updatedAt": now_ms()})
    if merged is None:
        return {"error": "User not found"}, 404
    return {"success": True}, 200


def delete_user() -> Reply:
    payload = json_body()
    if not payload or "id" not in payload:
        return invalid_json()
    get_store().users.delete(payload["id"])
    return {"success": True}, 200


def verify_password() -> Reply:
    payload = json_body()
    if not payload or "password" not in payload:
        return invalid_json()
    # Plaintext comparison; only suitable on a trusted local network.
    for user in get_store().users.all():
        if user.get("password") is not None and user.get("password") == payload["password"]:
            return {"success": True, "user": user}, 200
    return {"success": False}, 200


def get_notifications() -> Reply:
    return get_store().notifications.all(), 200


def create_notification() -> Reply:
    payload = json_body()
    if not payload or not all(field in payload for field in ("projectId", "taskId", "assignee")):
        return invalid_json()
    get_store().notifications.append(payload)
    return {"success": True}, 200


def save_notification() -> Reply:
    payload = json_body()
    if not payload or not payload.get("id"):
        return invalid_json()
    if not is_version(payload.get("version")):
        return invalid_json()
    try:
        get_store().notifications.upsert(payload)
    except VersionConflict as exc:
        return {"error": "Version conflict", "currentVersion": exc.current_version}, 409
    return {"success": True}, 200


def mark_notification_read() -> Reply:
    payload = json_body()
    if not payload or "id" not in payload:
        return invalid_json()
    get_store().notifications.merge(payload["id"], {"read": True})
    return {"success": True}, 200


def delete_notification() -> Reply:
    payload = json_body()
    if not payload or "id" not in payload:
        return invalid_json()
    get_store().notifications.delete(payload["id"])
    return {"success": True}, 200


def get_activity_logs() -> Reply:
    return get_store().activity_logs.all(), 200


def create_activity_log() -> Reply:
    payload = json_body()
    if not payload or "user" not in payload or "action" not in payload:
        return invalid_json()
    get_store().activity_logs.append(payload)
    return {"success": True}, 200


def delete_activity_log() -> Reply:
    payload = json_body()
    if not payload or "id" not in payload:
        return invalid_json()
    get_store().activity_logs.delete(payload["id"])
    return {"success": True}, 200


def clear_activity_logs() -> Reply:
    get_store().activity_logs.clear()
    return {"success": True}, 200


def upload_image() -> Reply:
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return {"error": "No file uploaded"}, 400

    content = upload.read()
    if sniff_image_type(content[:16]) is None:
        return {"error": "Only JPG and PNG files are allowed"}, 400

    upload_dir = current_app.config["UPLOAD_DIR"]
    upload_dir.mkdir(parents=True, exist_ok=True)
    file_name = f"{uuid.uuid4().hex[:13]}_{secure_filename(upload.filename) or 'image'}"
    try:
        (upload_dir / file_name).write_bytes(content)
    except OSError:
        current_app.logger.exception("Failed to store upload %s", file_name)
        return {"error": "Failed to upload file"}, 500
    return {"success": True, "url": f"/uploads/{file_name}"}, 200


ACTIONS: Dict[str, Callable[[], Reply]] = {
    "get_projects": get_projects,
    "save_project": save_project,
    "delete_project": delete_project,
    "get_users": get_identities,
    "save_user": save_identity,
    "delete_user_identity": delete_identity,
    "get_all_users": get_all_users,
    "create_user": create_user,
    "update_user": update_user,
    "delete_user": delete_user,
    "verify_password": verify_password,
    "get_notifications": get_notifications,
    "create_notification": create_notification,
    "save_notification": save_notification,
    "mark_notification_read": mark_notification_read,
    "delete_notification": delete_notification,
    "get_activity_logs": get_activity_logs,
    "create_activity_log": create_activity_log,
    "delete_activity_log": delete_activity_log,
    "clear_activity_logs": clear_activity_logs,
    "upload_image": upload_image,
}


@app.route("/api", methods=["GET", "POST"])
@app.route("/api.php", methods=["GET", "POST"])
def api_dispatch():
    action = request.args.get("action", "")
    handler = ACTIONS.get(action)
    if handler is None:
        return jsonify({"error": "Invalid action"}), 400
    try:
        body, status = handler()
    except OSError:
        current_app.logger.exception("Storage failure while handling %s", action)
        return jsonify({"error": "Storage unavailable"}), 500
    except (ValueError, TypeError):
        current_app.logger.exception("Malformed stored data while handling %s", action)
        return jsonify({"error": "Stored data is invalid"}), 500
    return jsonify(body), status


@app.route("/uploads/<path:filename>", methods=["GET"])
def uploaded_file(filename: str):
    return send_from_directory(current_app.config["UPLOAD_DIR"], filename)


@app.errorhandler(413)
def upload_too_large(exc):
    return jsonify({"error": "File is too large"}), 413


if __name__ == "__main__":
    settings.configure_logging()
    app.config["TRACKER_STORE"].ensure_files()
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "5000")),
        debug=os.environ.get("FLASK_DEBUG", "0") == "1",
    )
