"""HTTP client for the tracker gateway.

Reads never raise: a failed fetch is logged and comes back as an empty list so
the dashboard keeps whatever it showed before. Writes raise :class:`ApiError`
so the caller can tell the user and skip any follow-up state change.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests

import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message: str, status: int | None = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class TrackerApi:
    def __init__(self, base_url: str = settings.API_BASE_URL, timeout: float = settings.API_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def asset_url(self, reference: str | None) -> str:
        if not reference:
            return ""
        if reference.startswith(("http://", "https://")):
            return reference
        return f"{self.base_url}{reference}"

    def _request(self, method: str, action: str, payload: Dict[str, Any] | None = None, files=None) -> tuple[Any, int]:
        url = f"{self.base_url}/api"
        try:
            response = requests.request(
                method,
                url,
                params={"action": action},
                json=payload,
                files=files,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ApiError(f"Tracker API is unavailable: {exc}") from exc

        try:
            body: Any = response.json()
        except ValueError:
            body = {"raw": response.text}
        return body, response.status_code

    def _fetch_list(self, action: str) -> List[Dict[str, Any]]:
        try:
            body, status = self._request("GET", action)
        except ApiError:
            logger.exception("Failed to fetch %s", action)
            return []
        if status >= 400:
            logger.error("API error for %s: %s %s", action, status, body)
            return []
        return body if isinstance(body, list) else []

    def _post(self, action: str, payload: Dict[str, Any] | None = None) -> Dict[str, Any]:
        try:
            body, status = self._request("POST", action, payload)
        except ApiError:
            logger.exception("Request %s failed", action)
            raise
        error = body.get("error") if isinstance(body, dict) else None
        if status >= 400 or error:
            logger.error("API error for %s: %s %s", action, status, body)
            raise ApiError(error or f"{action} failed", status=status, body=body)
        return body if isinstance(body, dict) else {}

    # Projects

    def fetch_projects(self) -> List[Dict[str, Any]]:
        return self._fetch_list("get_projects")

    def save_project(self, project: Dict[str, Any]) -> int | None:
        """Upsert a project and return the version the gateway stored."""
        body = self._post("save_project", project)
        return body.get("version")

    def delete_project(self, project_id: str) -> None:
        self._post("delete_project", {"id": project_id})

    def upload_image(self, filename: str, content: bytes) -> str | None:
        try:
            body, status = self._request("POST", "upload_image", files={"file": (filename, content)})
        except ApiError:
            logger.exception("Image upload failed")
            return None
        if isinstance(body, dict) and body.get("url"):
            return body["url"]
        logger.error("Image upload rejected: %s %s", status, body)
        return None

    # Device identities

    def fetch_identities(self) -> List[Dict[str, Any]]:
        return self._fetch_list("get_users")

    def save_identity(self, identity: Dict[str, Any]) -> None:
        self._post("save_user", identity)

    def delete_identity(self, device_id: str) -> None:
        self._post("delete_user_identity", {"deviceId": device_id})

    # Accounts

    def fetch_all_users(self) -> List[Dict[str, Any]]:
        return self._fetch_list("get_all_users")

    def create_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        body = self._post("create_user", user)
        return body.get("user") or user

    def update_user(self, user: Dict[str, Any]) -> None:
        self._post("update_user", user)

    def delete_user(self, user_id: str) -> None:
        self._post("delete_user", {"id": user_id})

    def verify_password(self, password: str) -> Dict[str, Any] | None:
        try:
            body, status = self._request("POST", "verify_password", {"password": password})
        except ApiError:
            logger.exception("Password check failed")
            raise
        if status < 400 and isinstance(body, dict) and body.get("user"):
            return body["user"]
        return None

    # Notifications

    def fetch_notifications(self) -> List[Dict[str, Any]]:
        return self._fetch_list("get_notifications")

    def create_notification(self, notification: Dict[str, Any]) -> None:
        self._post("create_notification", notification)

    def save_notification(self, notification: Dict[str, Any]) -> None:
        self._post("save_notification", notification)

    def mark_notification_read(self, notification_id: str) -> None:
        self._post("mark_notification_read", {"id": notification_id})

    def delete_notification(self, notification_id: str) -> None:
        self._post("delete_notification", {"id": notification_id})

    # Activity logs

    def fetch_activity_logs(self) -> List[Dict[str, Any]]:
        return self._fetch_list("get_activity_logs")

    def create_activity_log(self, log: Dict[str, Any]) -> None:
        self._post("create_activity_log", log)

    def delete_activity_log(self, log_id: str) -> None:
        self._post("delete_activity_log", {"id": log_id})

    def clear_activity_logs(self) -> None:
        self._post("clear_activity_logs")
