"""Per-device convenience state.

Remembers, for each browser device id, the things a returning visitor expects
to find again: their display name, the account they logged in with, whether
they unlocked admin mode, the admin password they set and which "project
changed" notices they already acknowledged. None of it is authoritative; the
gateway is the source of truth.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict

from json_store import save_json_atomic

logger = logging.getLogger(__name__)

_DEFAULTS: Dict[str, Any] = {
    "userName": "",
    "loggedInUser": None,
    "isAdmin": False,
    "adminPassword": None,
    "acknowledgedChanges": [],
}

_lock = threading.Lock()


def new_device_id() -> str:
    return uuid.uuid4().hex


class ClientPrefs:
    def __init__(self, path: Path, device_id: str):
        self.path = Path(path)
        self.device_id = device_id

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Could not read client prefs from %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Dict[str, Any]:
        with _lock:
            stored = self._read_all().get(self.device_id) or {}
        return {**_DEFAULTS, **stored}

    def update(self, **changes: Any) -> Dict[str, Any]:
        with _lock:
            everything = self._read_all()
            prefs = {**_DEFAULTS, **(everything.get(self.device_id) or {}), **changes}
            everything[self.device_id] = prefs
            try:
                save_json_atomic(self.path, everything)
            except OSError:
                logger.exception("Could not save client prefs to %s", self.path)
        return prefs
