from __future__ import annotations

import pytest
import requests

import api_client
from api_client import ApiError, TrackerApi


class _FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class _Recorder(list):
    def __init__(self):
        super().__init__()
        self.responses = []

    def __call__(self, method, url, **kwargs):
        self.append((method, url, kwargs))
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture()
def calls(monkeypatch):
    recorder = _Recorder()
    monkeypatch.setattr(api_client.requests, "request", recorder)
    return recorder


@pytest.fixture()
def api():
    return TrackerApi("http://gateway.local/", timeout=2)


def test_fetch_sends_action_query(api, calls):
    calls.responses.append(_FakeResponse(body=[{"id": "p1"}]))

    assert api.fetch_projects() == [{"id": "p1"}]

    method, url, kwargs = calls[0]
    assert method == "GET"
    assert url == "http://gateway.local/api"
    assert kwargs["params"] == {"action": "get_projects"}
    assert kwargs["timeout"] == 2


def test_fetch_degrades_to_empty_list(api, calls):
    calls.responses.extend(
        [
            requests.ConnectionError("down"),
            _FakeResponse(500, {"error": "Storage unavailable"}),
            _FakeResponse(200, None, text="<html>"),
        ]
    )
    assert api.fetch_projects() == []
    assert api.fetch_notifications() == []
    assert api.fetch_activity_logs() == []


def test_save_project_returns_version(api, calls):
    calls.responses.append(_FakeResponse(body={"success": True, "version": 4}))
    assert api.save_project({"id": "p1", "version": 3}) == 4
    assert calls[0][2]["json"] == {"id": "p1", "version": 3}


def test_write_errors_raise(api, calls):
    calls.responses.extend(
        [
            _FakeResponse(409, {"error": "Version conflict", "currentVersion": 5}),
            requests.Timeout("slow"),
        ]
    )
    with pytest.raises(ApiError) as excinfo:
        api.save_project({"id": "p1", "version": 3})
    assert excinfo.value.status == 409
    assert excinfo.value.body["currentVersion"] == 5

    with pytest.raises(ApiError):
        api.create_activity_log({"user": "Alice", "action": "Assign task"})


def test_verify_password(api, calls):
    calls.responses.extend(
        [
            _FakeResponse(body={"success": True, "user": {"name": "Alice"}}),
            _FakeResponse(body={"success": False}),
            requests.ConnectionError("down"),
        ]
    )
    assert api.verify_password("pw") == {"name": "Alice"}
    assert api.verify_password("nope") is None
    with pytest.raises(ApiError):
        api.verify_password("pw")


def test_upload_image(api, calls):
    calls.responses.extend(
        [
            _FakeResponse(body={"success": True, "url": "/uploads/abc_cover.png"}),
            _FakeResponse(400, {"error": "Only JPG and PNG files are allowed"}),
        ]
    )
    assert api.upload_image("cover.png", b"data") == "/uploads/abc_cover.png"
    assert calls[0][2]["files"] == {"file": ("cover.png", b"data")}
    assert api.upload_image("cover.gif", b"data") is None


def test_asset_url(api):
    assert api.asset_url("/uploads/a.png") == "http://gateway.local/uploads/a.png"
    assert api.asset_url("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"
    assert api.asset_url("") == ""


@pytest.mark.parametrize(
    "method, args, action, payload",
    [
        ("delete_identity", ("d1",), "delete_user_identity", {"deviceId": "d1"}),
        ("save_notification", ({"id": "n1", "read": True},), "save_notification", {"id": "n1", "read": True}),
        ("delete_notification", ("n1",), "delete_notification", {"id": "n1"}),
        ("delete_activity_log", ("l1",), "delete_activity_log", {"id": "l1"}),
    ],
)
def test_collection_writes_post_to_their_action(api, calls, method, args, action, payload):
    calls.responses.append(_FakeResponse(body={"success": True}))

    getattr(api, method)(*args)

    sent_method, _, kwargs = calls[0]
    assert sent_method == "POST"
    assert kwargs["params"] == {"action": action}
    assert kwargs["json"] == payload
