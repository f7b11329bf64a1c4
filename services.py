"""Domain services for the tracker dashboard.

The sub-task transitions (claim, assign, status change, field edits) are plain
functions that take a task and the acting session and return a new task; they
raise before touching anything when the actor is not allowed. The
:class:`TrackerService` applies a transition to a project, writes it through
the gateway and produces the notification and activity-log side effects.
"""
from __future__ import annotations

import logging
import secrets
import string
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List

import settings
from api_client import ApiError, TrackerApi
from client_prefs import ClientPrefs
from status_model import (
    ADMIN_ACTOR,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    TASK_STATUSES,
    now_ms,
)

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

UNKNOWN_ACTOR = "Unknown user"

DEFAULT_SUB_TASK_TYPES = [
    "Retail listing (CN)",
    "Alibaba listing (CN)",
    "Alibaba listing (EN)",
    "Boss listing (EN)",
    "Cross-border listing (EN)",
    "AliExpress 01",
    "AliExpress 02",
    "AliExpress JM",
    "Main video",
    "Operations video",
]

EXPECTED_DAY_SHORTCUTS = [4, 5, 6]

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*()_+-=[]{}|;:,.<>?"

ACTION_CREATE_PROJECT = "Create project"
ACTION_UPDATE_PROJECT = "Update project"
ACTION_DELETE_PROJECT = "Delete project"
ACTION_ASSIGN_TASK = "Assign task"
ACTION_CHANGE_STATUS = "Change task status"
ACTION_ADD_FILE_PATH = "Add file path"
ACTION_ADD_SUB_TASK = "Add sub-task"
ACTION_DELETE_SUB_TASK = "Delete sub-task"
ACTION_ACKNOWLEDGE_CHANGES = "Acknowledge changes"

LOG_ACTIONS = [
    ACTION_CREATE_PROJECT,
    ACTION_UPDATE_PROJECT,
    ACTION_DELETE_PROJECT,
    ACTION_ASSIGN_TASK,
    ACTION_CHANGE_STATUS,
    ACTION_ADD_FILE_PATH,
    ACTION_ADD_SUB_TASK,
    ACTION_DELETE_SUB_TASK,
    ACTION_ACKNOWLEDGE_CHANGES,
]


class TrackerError(Exception):
    pass


class PermissionDenied(TrackerError):
    pass


class ValidationError(TrackerError):
    pass


def generate_id() -> str:
    return uuid.uuid4().hex


@dataclass
class AppState:
    """Everything the dashboard knows about the current visitor and the data."""

    identity: Document
    logged_in_user: Document | None = None
    is_admin: bool = False
    admin_password: str = settings.DEFAULT_ADMIN_PASSWORD
    acknowledged_changes: List[str] = field(default_factory=list)
    projects: List[Document] = field(default_factory=list)
    identities: List[Document] = field(default_factory=list)
    users: List[Document] = field(default_factory=list)
    notifications: List[Document] = field(default_factory=list)
    activity_logs: List[Document] = field(default_factory=list)

    @property
    def session_name(self) -> str | None:
        if self.logged_in_user:
            return self.logged_in_user.get("name") or None
        return None

    @property
    def is_logged_in(self) -> bool:
        return self.logged_in_user is not None

    @property
    def actor_name(self) -> str:
        if self.is_admin:
            return ADMIN_ACTOR
        return self.session_name or UNKNOWN_ACTOR

    def find_project(self, project_id: str) -> Document | None:
        return next((p for p in self.projects if p.get("id") == project_id), None)


# Permissions


def is_claimed(task: Document) -> bool:
    return bool(task.get("assignee"))


def is_my_task(task: Document, state: AppState) -> bool:
    return state.session_name is not None and task.get("assignee") == state.session_name


def can_edit(task: Document, state: AppState) -> bool:
    if state.is_admin:
        return True
    return state.is_logged_in and (not is_claimed(task) or is_my_task(task, state))


def can_claim(state: AppState) -> bool:
    return state.is_admin or state.is_logged_in


def can_open_status_menu(task: Document, state: AppState) -> bool:
    return state.is_admin or (can_edit(task, state) and is_claimed(task))


def can_set_file_path(task: Document, state: AppState) -> bool:
    return state.is_admin or (state.is_logged_in and is_my_task(task, state))


def can_remove_assignee(task: Document, state: AppState) -> bool:
    return state.is_admin and is_claimed(task) and task.get("status") != STATUS_COMPLETED


# Sub-task transitions


def claim_task(task: Document, name: str, state: AppState, now: int | None = None) -> Document:
    """Claim an unclaimed task, or let an admin hand it to any name."""
    claimant = (name or "").strip()
    if state.is_admin:
        if not claimant:
            raise ValidationError("Enter a name to assign this task")
    elif state.is_logged_in:
        if claimant != state.session_name:
            raise PermissionDenied("Enter your own login name to claim this task")
        if is_claimed(task) and not is_my_task(task, state):
            raise PermissionDenied("This task is already claimed")
    else:
        raise PermissionDenied("Log in to claim tasks")
    return {
        **task,
        "assignee": claimant,
        "status": STATUS_IN_PROGRESS,
        "lastUpdated": now_ms() if now is None else now,
    }


def admin_assign(task: Document, identity: Document, state: AppState, now: int | None = None) -> Document:
    if not state.is_admin:
        raise PermissionDenied("Only an admin can reassign tasks")
    name = (identity.get("name") or "").strip()
    if not name:
        raise ValidationError("Enter a name to assign this task")
    return {
        **task,
        "assignee": name,
        "assigneeDeviceId": identity.get("deviceId") or "",
        "status": STATUS_IN_PROGRESS,
        "lastUpdated": now_ms() if now is None else now,
    }


def remove_assignee(task: Document, state: AppState, now: int | None = None) -> Document:
    """Back to unclaimed and pending. Completed tasks are left as they are."""
    if not state.is_admin:
        raise PermissionDenied("Only an admin can remove an assignee")
    if not can_remove_assignee(task, state):
        return task
    updated = {
        **task,
        "assignee": "",
        "assigneeDeviceId": "",
        "status": STATUS_PENDING,
        "lastUpdated": now_ms() if now is None else now,
    }
    updated.pop("expectedCompletionDate", None)
    return updated


def change_status(task: Document, status: str, state: AppState, now: int | None = None) -> Document:
    if status not in TASK_STATUSES:
        raise ValidationError(f"Unknown status {status!r}")
    if not can_edit(task, state):
        raise PermissionDenied("You can only update tasks you claimed")
    timestamp = now_ms() if now is None else now
    updated = {**task, "status": status, "lastUpdated": timestamp}
    if status == STATUS_COMPLETED and not updated.get("completedDate"):
        updated["completedDate"] = timestamp
    return updated


def _edit(task: Document, state: AppState, changes: Document, now: int | None) -> Document:
    if not can_edit(task, state):
        raise PermissionDenied("You can only update tasks you claimed")
    return {**task, **changes, "lastUpdated": now_ms() if now is None else now}


def set_expected_date(task: Document, timestamp: int, state: AppState, now: int | None = None) -> Document:
    return _edit(task, state, {"expectedCompletionDate": int(timestamp)}, now)


def set_expected_days(task: Document, days: int, state: AppState, now: int | None = None) -> Document:
    base = datetime.fromtimestamp((now_ms() if now is None else now) / 1000)
    target = int((base + timedelta(days=days)).timestamp() * 1000)
    return set_expected_date(task, target, state, now)


def set_completed_date(task: Document, timestamp: int, state: AppState, now: int | None = None) -> Document:
    return _edit(task, state, {"completedDate": int(timestamp)}, now)


def set_file_path(task: Document, path: str, state: AppState, now: int | None = None) -> Document:
    if not can_set_file_path(task, state):
        raise PermissionDenied("Only the assignee or an admin can attach a file path")
    return {**task, "filePath": path.strip(), "lastUpdated": now_ms() if now is None else now}


def rename_task(task: Document, new_type: str, state: AppState, now: int | None = None) -> Document:
    if not state.is_admin:
        raise PermissionDenied("Only an admin can rename tasks")
    name = (new_type or "").strip()
    if not name or name == task.get("type"):
        return task
    return {**task, "type": name, "lastUpdated": now_ms() if now is None else now}


def new_sub_task(task_type: str, now: int | None = None) -> Document:
    return {
        "id": generate_id(),
        "type": task_type,
        "assignee": "",
        "status": STATUS_PENDING,
        "lastUpdated": now_ms() if now is None else now,
    }


def _version(project: Document | None) -> int:
    version = (project or {}).get("version")
    return version if isinstance(version, int) and not isinstance(version, bool) else 0


def newer_project(local: Document | None, fetched: Document) -> Document:
    """Prefer the in-memory copy when this session has already saved past ``fetched``."""
    if local is not None and _version(local) > _version(fetched):
        return local
    return fetched


def generate_password(existing_users: Iterable[Document] = ()) -> str:
    taken = {user.get("password") for user in existing_users}
    while True:
        password = "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(8))
        if password not in taken:
            return password


class TrackerService:
    def __init__(
        self,
        api: TrackerApi,
        state: AppState,
        prefs: ClientPrefs | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.api = api
        self.state = state
        self.prefs = prefs
        self.clock = clock

    @classmethod
    def hydrate(cls, api: TrackerApi, prefs: ClientPrefs) -> "TrackerService":
        """Build a session from what this device remembered last time."""
        saved = prefs.load()
        state = AppState(
            identity={"deviceId": prefs.device_id, "name": saved.get("userName") or ""},
            logged_in_user=saved.get("loggedInUser"),
            is_admin=bool(saved.get("isAdmin")),
            admin_password=saved.get("adminPassword") or settings.DEFAULT_ADMIN_PASSWORD,
            acknowledged_changes=list(saved.get("acknowledgedChanges") or []),
        )
        return cls(api, state, prefs)

    def _remember(self, **changes: Any) -> None:
        if self.prefs is not None:
            self.prefs.update(**changes)

    # Polling

    def refresh_projects(self) -> None:
        fetched = self.api.fetch_projects()
        local = {p.get("id"): p for p in self.state.projects}
        self.state.projects = [newer_project(local.get(p.get("id")), p) for p in fetched]
        self.state.identities = self.api.fetch_identities()

    def refresh_users(self) -> None:
        if self.state.is_admin:
            self.state.users = self.api.fetch_all_users()

    def refresh_notifications(self) -> None:
        self.state.notifications = self.api.fetch_notifications()

    def refresh_activity_logs(self) -> None:
        if self.state.is_admin:
            self.state.activity_logs = self.api.fetch_activity_logs()

    def refresh_all(self) -> None:
        self.refresh_projects()
        self.refresh_users()
        self.refresh_notifications()
        self.refresh_activity_logs()

    # Activity log

    def record(
        self,
        action: str,
        project_id: str | None = None,
        task_id: str | None = None,
        details: str | None = None,
    ) -> Document:
        entry: Document = {
            "id": generate_id(),
            "timestamp": self.clock(),
            "user": self.state.actor_name,
            "action": action,
        }
        if project_id:
            entry["projectId"] = project_id
        if task_id:
            entry["taskId"] = task_id
        if details:
            entry["details"] = details
        try:
            self.api.create_activity_log(entry)
        except ApiError:
            logger.exception("Could not record activity %r", action)
            return entry
        self.state.activity_logs.append(entry)
        return entry

    def clear_activity_logs(self) -> None:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can clear the activity log")
        self.api.clear_activity_logs()
        self.state.activity_logs = []

    # Notifications

    def notify_assignment(self, project: Document, task: Document) -> Document | None:
        if not task.get("assignee"):
            return None
        notification = {
            "id": generate_id(),
            "timestamp": self.clock(),
            "projectId": project["id"],
            "taskId": task["id"],
            "projectName": project.get("name", ""),
            "taskName": task.get("type", ""),
            "assignee": task["assignee"],
            "read": False,
        }
        try:
            self.api.create_notification(notification)
        except ApiError:
            logger.exception("Could not create notification for task %s", task["id"])
            return None
        self.state.notifications.append(notification)
        return notification

    def my_notifications(self) -> List[Document]:
        name = self.state.session_name
        if name is None:
            return []
        mine = [n for n in self.state.notifications if n.get("assignee") == name]
        return sorted(mine, key=lambda n: int(n.get("timestamp") or 0), reverse=True)

    def unread_count(self) -> int:
        return sum(1 for n in self.my_notifications() if not n.get("read"))

    def mark_notification_read(self, notification_id: str) -> None:
        try:
            self.api.mark_notification_read(notification_id)
        except ApiError:
            logger.exception("Could not mark notification %s as read", notification_id)
            return
        self.state.notifications = [
            {**n, "read": True} if n.get("id") == notification_id else n for n in self.state.notifications
        ]

    def delete_notification(self, notification_id: str) -> None:
        self.api.delete_notification(notification_id)
        self.state.notifications = [n for n in self.state.notifications if n.get("id") != notification_id]

    def open_notification(self, notification: Document) -> Document | None:
        self.mark_notification_read(notification["id"])
        return self.state.find_project(notification.get("projectId"))

    # Projects

    def _replace_in_memory(self, project: Document) -> None:
        self.state.projects = [project if p.get("id") == project.get("id") else p for p in self.state.projects]

    def _save_project(self, project: Document) -> Document:
        """Optimistic write: memory first, then the gateway; rolled back on failure."""
        previous = self.state.find_project(project["id"])
        self._replace_in_memory(project)
        try:
            version = self.api.save_project(project)
        except ApiError:
            if previous is not None:
                self._replace_in_memory(previous)
            raise
        if version is not None:
            project = {**project, "version": version}
            self._replace_in_memory(project)
        return project

    def _require_project(self, project_id: str) -> Document:
        project = self.state.find_project(project_id)
        if project is None:
            raise ValidationError("This product no longer exists")
        return project

    def create_project(
        self,
        name: str,
        description: str = "",
        image_url: str = "",
        deadline: int | None = None,
        sub_task_types: Iterable[str] | None = None,
    ) -> Document:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can create products")
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Enter a product name")
        if any(p.get("name") == clean_name for p in self.state.projects):
            raise ValidationError("A product with this name already exists")

        timestamp = self.clock()
        chosen = DEFAULT_SUB_TASK_TYPES if sub_task_types is None else sub_task_types
        types = list(dict.fromkeys(t.strip() for t in chosen if t and t.strip()))
        project: Document = {
            "id": generate_id(),
            "name": clean_name,
            "description": description,
            "imageUrl": image_url,
            "createdAt": timestamp,
            "items": [new_sub_task(task_type, timestamp) for task_type in types],
        }
        if deadline:
            project["deadline"] = int(deadline)

        # Pessimistic: the product only appears once the gateway has it.
        version = self.api.save_project(project)
        if version is not None:
            project["version"] = version
        self.state.projects = [project, *self.state.projects]
        self.record(ACTION_CREATE_PROJECT, project["id"], details=f"Created product: {clean_name}")
        return project

    def update_project(self, project: Document) -> Document:
        saved = self._save_project(project)
        self.record(ACTION_UPDATE_PROJECT, project["id"], details=f"Updated product: {project.get('name')}")
        return saved

    def delete_project(self, project_id: str) -> None:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can delete products")
        project = self.state.find_project(project_id)
        name = project.get("name") if project else "Unknown product"
        self.state.projects = [p for p in self.state.projects if p.get("id") != project_id]
        self.api.delete_project(project_id)
        self.record(ACTION_DELETE_PROJECT, project_id, details=f"Deleted product: {name}")

    def edit_project_details(
        self,
        project_id: str,
        name: str,
        description: str,
        deadline: int | None,
        has_changes: bool = False,
        changes_description: str = "",
        items_to_change: List[str] | None = None,
    ) -> Document:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can edit products")
        project = self._require_project(project_id)
        updated = {
            **project,
            "name": (name or "").strip() or project.get("name"),
            "description": description,
            "hasChanges": has_changes,
            "changesDescription": changes_description if has_changes else "",
        }
        if deadline:
            updated["deadline"] = int(deadline)
        else:
            updated.pop("deadline", None)
        if has_changes:
            updated["changesCount"] = int(project.get("changesCount") or 0) + 1
            updated["itemsToChange"] = (
                list(items_to_change) if items_to_change is not None else [item["id"] for item in project.get("items", [])]
            )
        else:
            updated.pop("itemsToChange", None)
        return self.update_project(updated)

    def set_project_image(self, project_id: str, filename: str, content: bytes) -> Document | None:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can change the product image")
        url = self.api.upload_image(filename, content)
        if url is None:
            return None
        project = self._require_project(project_id)
        return self.update_project({**project, "imageUrl": url})

    def has_unacknowledged_changes(self, project: Document) -> bool:
        return bool(project.get("hasChanges")) and project.get("id") not in self.state.acknowledged_changes

    def acknowledge_changes(self, project_id: str) -> None:
        if not self.state.is_logged_in:
            raise PermissionDenied("Log in to acknowledge changes")
        if project_id in self.state.acknowledged_changes:
            return
        self.state.acknowledged_changes = [*self.state.acknowledged_changes, project_id]
        self._remember(acknowledgedChanges=self.state.acknowledged_changes)
        self.record(
            ACTION_ACKNOWLEDGE_CHANGES,
            project_id,
            details=f"{self.state.session_name} acknowledged the product changes",
        )

    # Sub-tasks

    def add_sub_task(self, project_id: str, task_type: str) -> Document:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can add sub-tasks")
        clean_type = (task_type or "").strip()
        if not clean_type:
            raise ValidationError("Enter a sub-task name")
        project = self._require_project(project_id)
        task = new_sub_task(clean_type, self.clock())
        saved = self._save_project({**project, "items": [*project.get("items", []), task]})
        self.record(ACTION_ADD_SUB_TASK, project_id, task["id"], details=f'Added task "{clean_type}"')
        return saved

    def delete_sub_task(self, project_id: str, task_id: str) -> Document:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can delete sub-tasks")
        project = self._require_project(project_id)
        task = next((t for t in project.get("items", []) if t.get("id") == task_id), None)
        if task is None:
            return project
        items = [t for t in project.get("items", []) if t.get("id") != task_id]
        saved = self._save_project({**project, "items": items})
        self.record(ACTION_DELETE_SUB_TASK, project_id, task_id, details=f'Deleted task "{task.get("type")}"')
        return saved

    def apply_task_update(self, project_id: str, before: Document, after: Document) -> Document:
        """Persist one changed sub-task and emit its notification and log entries."""
        project = self._require_project(project_id)
        if after == before:
            return project
        items = [after if t.get("id") == after.get("id") else t for t in project.get("items", [])]
        saved = self._save_project({**project, "items": items})

        assignee = after.get("assignee")
        if assignee and assignee != before.get("assignee"):
            if self.state.is_admin or (self.state.is_logged_in and assignee != self.state.session_name):
                self.notify_assignment(saved, after)
            self.record(
                ACTION_ASSIGN_TASK,
                project_id,
                after["id"],
                details=f'Assigned task "{after.get("type")}" to {assignee}',
            )

        if after.get("status") != before.get("status"):
            self.record(
                ACTION_CHANGE_STATUS,
                project_id,
                after["id"],
                details=(
                    f'Changed task "{after.get("type")}" from "{before.get("status")}" to "{after.get("status")}"'
                ),
            )

        if after.get("filePath") and after.get("filePath") != before.get("filePath"):
            self.record(
                ACTION_ADD_FILE_PATH,
                project_id,
                after["id"],
                details=f'Added a file path to task "{after.get("type")}"',
            )
        return saved

    def _task(self, project_id: str, task_id: str) -> Document:
        project = self._require_project(project_id)
        task = next((t for t in project.get("items", []) if t.get("id") == task_id), None)
        if task is None:
            raise ValidationError("This task no longer exists")
        return task

    def claim(self, project_id: str, task_id: str, name: str) -> Document:
        task = self._task(project_id, task_id)
        updated = claim_task(task, name, self.state, self.clock())
        if not self.state.is_admin:
            self.register_identity(updated["assignee"])
        return self.apply_task_update(project_id, task, updated)

    def assign(self, project_id: str, task_id: str, identity: Document) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, admin_assign(task, identity, self.state, self.clock()))

    def unassign(self, project_id: str, task_id: str) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, remove_assignee(task, self.state, self.clock()))

    def set_status(self, project_id: str, task_id: str, status: str) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, change_status(task, status, self.state, self.clock()))

    def set_expected_date(self, project_id: str, task_id: str, timestamp: int) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, set_expected_date(task, timestamp, self.state, self.clock()))

    def set_expected_days(self, project_id: str, task_id: str, days: int) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, set_expected_days(task, days, self.state, self.clock()))

    def set_completed_date(self, project_id: str, task_id: str, timestamp: int) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, set_completed_date(task, timestamp, self.state, self.clock()))

    def set_file_path(self, project_id: str, task_id: str, path: str) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, set_file_path(task, path, self.state, self.clock()))

    def rename_sub_task(self, project_id: str, task_id: str, new_type: str) -> Document:
        task = self._task(project_id, task_id)
        return self.apply_task_update(project_id, task, rename_task(task, new_type, self.state, self.clock()))

    # Identity, login and accounts

    def register_identity(self, name: str) -> None:
        identity = {**self.state.identity, "name": name}
        self.state.identity = identity
        self._remember(userName=name)
        try:
            self.api.save_identity(identity)
        except ApiError:
            logger.exception("Could not save identity for device %s", identity.get("deviceId"))
            return
        others = [i for i in self.state.identities if i.get("deviceId") != identity.get("deviceId")]
        self.state.identities = [*others, identity]

    def login(self, password: str) -> str:
        """Try the admin password, then the account passwords.

        Returns an empty string on success, otherwise the message to show
        next to the password field.
        """
        if password == self.state.admin_password:
            self.state.is_admin = True
            self._remember(isAdmin=True)
            self.refresh_users()
            self.refresh_activity_logs()
            return ""
        try:
            user = self.api.verify_password(password)
        except ApiError:
            return "Login failed, please try again"
        if user is None:
            return "Wrong password, please try again"
        self.state.logged_in_user = user
        self._remember(loggedInUser=user)
        return ""

    def logout(self) -> None:
        self.state.logged_in_user = None
        self.state.is_admin = False
        self.state.users = []
        self.state.activity_logs = []
        self._remember(loggedInUser=None, isAdmin=False)

    def change_admin_password(self, new_password: str) -> None:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can change the admin password")
        password = (new_password or "").strip()
        if not password:
            raise ValidationError("Enter a new password")
        self.state.admin_password = password
        self._remember(adminPassword=password)

    def create_user(self, name: str, password: str) -> Document:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can manage users")
        clean_name = (name or "").strip()
        clean_password = (password or "").strip()
        if not clean_name or not clean_password:
            raise ValidationError("Enter a user name and password")
        timestamp = self.clock()
        user = {
            "id": generate_id(),
            "name": clean_name,
            "password": clean_password,
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }
        stored = self.api.create_user(user)
        self.state.users = [*self.state.users, stored]
        return stored

    def update_user_password(self, user_id: str, new_password: str) -> Document:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can manage users")
        password = (new_password or "").strip()
        if not password:
            raise ValidationError("Enter a new password")
        user = next((u for u in self.state.users if u.get("id") == user_id), None)
        if user is None:
            raise ValidationError("User not found")
        updated = {**user, "password": password, "updatedAt": self.clock()}
        self.api.update_user(updated)
        self.state.users = [updated if u.get("id") == user_id else u for u in self.state.users]
        return updated

    def delete_user(self, user_id: str) -> None:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can manage users")
        self.api.delete_user(user_id)
        self.state.users = [u for u in self.state.users if u.get("id") != user_id]

    def delete_identity(self, device_id: str) -> None:
        if not self.state.is_admin:
            raise PermissionDenied("Only an admin can manage users")
        if device_id == self.state.identity.get("deviceId"):
            raise ValidationError("This device's own name cannot be removed here")
        self.api.delete_identity(device_id)
        self.state.identities = [i for i in self.state.identities if i.get("deviceId") != device_id]
