from __future__ import annotations

import json

from client_prefs import ClientPrefs, new_device_id


def test_defaults_for_new_device(tmp_path):
    prefs = ClientPrefs(tmp_path / "prefs.json", "device-1")
    loaded = prefs.load()
    assert loaded["isAdmin"] is False
    assert loaded["loggedInUser"] is None
    assert loaded["acknowledgedChanges"] == []


def test_devices_are_kept_apart(tmp_path):
    path = tmp_path / "prefs.json"
    ClientPrefs(path, "device-1").update(userName="Alice", isAdmin=True)
    ClientPrefs(path, "device-2").update(userName="Bob")

    assert ClientPrefs(path, "device-1").load()["userName"] == "Alice"
    assert ClientPrefs(path, "device-2").load()["isAdmin"] is False
    assert set(json.loads(path.read_text(encoding="utf-8"))) == {"device-1", "device-2"}


def test_unreadable_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("[1, 2", encoding="utf-8")
    assert ClientPrefs(path, "device-1").load()["userName"] == ""


def test_device_ids_are_unique():
    assert new_device_id() != new_device_id()
