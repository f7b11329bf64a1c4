"""Flat-file JSON collections.

Each collection is one JSON array on disk. Every write reads the whole array,
changes it in memory and writes the whole array back through a temp file.
Upserts stamp an integer ``version`` on the stored document; a caller that
sends the version it last saw gets :class:`VersionConflict` instead of
silently overwriting a newer write. Documents sent without a ``version`` are
written last-write-wins, which is how older clients behave.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


class VersionConflict(Exception):
    def __init__(self, key: Any, current_version: int):
        super().__init__(f"Document {key!r} was changed by someone else (version {current_version})")
        self.key = key
        self.current_version = current_version


def save_json_atomic(path: Path, data: Any) -> None:
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        try:
            os.remove(tmp)
        except OSError:
            pass


class JsonCollection:
    def __init__(self, path: Path, key: str = "id", limit: int | None = None):
        self.path = Path(path)
        self.key = key
        self.limit = limit
        self._lock = threading.Lock()

    def ensure_exists(self) -> None:
        if not self.path.exists():
            save_json_atomic(self.path, [])

    def _read(self) -> List[Document]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError):
            logger.exception("Unreadable collection file %s; treating as empty", self.path)
            return []
        if not isinstance(data, list):
            return []
        return [doc for doc in data if isinstance(doc, dict)]

    def _write(self, docs: List[Document]) -> None:
        if self.limit is not None and len(docs) > self.limit:
            docs = docs[-self.limit:]
        save_json_atomic(self.path, docs)

    def all(self) -> List[Document]:
        with self._lock:
            return self._read()

    def upsert(self, doc: Document) -> Document:
        """Replace the document with the same key, or append it."""
        key_value = doc.get(self.key)
        with self._lock:
            docs = self._read()
            stored = dict(doc)
            for index, existing in enumerate(docs):
                if existing.get(self.key) != key_value:
                    continue
                current = int(existing.get("version") or 0)
                if "version" in doc and doc["version"] is not None and int(doc["version"]) != current:
                    raise VersionConflict(key_value, current)
                stored["version"] = current + 1
                docs[index] = stored
                break
            else:
                stored["version"] = 1
                docs.append(stored)
            self._write(docs)
        return stored

    def merge(self, key_value: Any, changes: Document) -> Document | None:
        """Shallow-merge ``changes`` into an existing document; None if absent."""
        with self._lock:
            docs = self._read()
            for index, existing in enumerate(docs):
                if existing.get(self.key) == key_value:
                    merged = {**existing, **changes}
                    docs[index] = merged
                    self._write(docs)
                    return merged
        return None

    def append(self, doc: Document) -> None:
        with self._lock:
            docs = self._read()
            docs.append(doc)
            self._write(docs)

    def delete(self, key_value: Any) -> bool:
        with self._lock:
            docs = self._read()
            remaining = [doc for doc in docs if doc.get(self.key) != key_value]
            if len(remaining) == len(docs):
                return False
            self._write(remaining)
        return True

    def clear(self) -> None:
        with self._lock:
            self._write([])


class TrackerStore:
    """The five collections the gateway serves, rooted at one data directory."""

    def __init__(self, data_dir: Path, log_limit: int = 1000):
        data_dir = Path(data_dir)
        self.projects = JsonCollection(data_dir / "data.json")
        self.identities = JsonCollection(data_dir / "user_identities.json", key="deviceId")
        self.users = JsonCollection(data_dir / "admin_users.json")
        self.notifications = JsonCollection(data_dir / "notifications.json")
        self.activity_logs = JsonCollection(data_dir / "activity_logs.json", limit=log_limit)

    def ensure_files(self) -> None:
        for collection in (self.projects, self.identities, self.users, self.notifications, self.activity_logs):
            collection.ensure_exists()
