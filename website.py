from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Callable, Dict, List
from urllib.parse import parse_qs

from flask import Flask, abort, redirect, request
from reactpy import component, event, hooks, html, use_location
from reactpy.backend.flask import Options, configure, use_request

import settings
from api_client import ApiError, TrackerApi
from client_prefs import ClientPrefs, new_device_id
from services import (
    DEFAULT_SUB_TASK_TYPES,
    EXPECTED_DAY_SHORTCUTS,
    LOG_ACTIONS,
    TrackerError,
    TrackerService,
    can_claim,
    can_edit,
    can_open_status_menu,
    can_remove_assignee,
    can_set_file_path,
    generate_password,
    is_claimed,
)
from status_model import (
    ADMIN_ACTOR,
    STATUS_COMPLETED,
    STATUS_FILTER_ALL,
    STATUS_IN_PROGRESS,
    STATUS_LABELS,
    STATUS_PENDING,
    TASK_STATUSES,
    count_by_status,
    date_to_ms,
    display_deadline,
    filter_activity_logs,
    format_date,
    format_datetime,
    is_overdue,
    last_activity,
    progress_percent,
    project_status,
    status_counts,
    visible_projects,
)

logger = logging.getLogger(__name__)

DEVICE_COOKIE = "artflow_device_id"
DEVICE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365 * 5

app = Flask(__name__)


def build_service(device_id: str) -> TrackerService:
    prefs = ClientPrefs(settings.CLIENT_PREFS_FILE, device_id)
    service = TrackerService.hydrate(TrackerApi(), prefs)
    service.refresh_all()
    return service


@app.after_request
def ensure_device_cookie(response):
    if request.cookies.get(DEVICE_COOKIE):
        return response
    response.set_cookie(DEVICE_COOKIE, new_device_id(), max_age=DEVICE_COOKIE_MAX_AGE, samesite="Lax")
    return response


@app.route("/project-image/<project_id>", methods=["POST"])
def upload_project_image(project_id: str):
    device_id = request.cookies.get(DEVICE_COOKIE)
    if not device_id:
        abort(403)
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return redirect("/?upload=missing")

    service = TrackerService.hydrate(TrackerApi(), ClientPrefs(settings.CLIENT_PREFS_FILE, device_id))
    if not service.state.is_admin:
        abort(403)
    service.refresh_projects()
    try:
        updated = service.set_project_image(project_id, upload.filename, upload.read())
    except (TrackerError, ApiError):
        app.logger.exception("Image update failed for product %s", project_id)
        updated = None
    return redirect("/?upload=done" if updated is not None else "/?upload=failed")


UPLOAD_NOTICES = {
    "done": ("Product image updated", "success"),
    "failed": ("The image was not saved. Use a JPG or PNG file under the size limit.", "danger"),
    "missing": ("Choose an image file first", "warning"),
}


def upload_notice(search: str) -> Dict[str, Any] | None:
    """Toast for the ?upload= flag the image form redirects back with."""
    outcome = parse_qs((search or "").lstrip("?")).get("upload", [""])[0]
    if outcome not in UPLOAD_NOTICES:
        return None
    message, kind = UPLOAD_NOTICES[outcome]
    return {"message": message, "kind": kind, "revision": 0}


def status_pill_class(status: str) -> str:
    if status == STATUS_COMPLETED:
        return "pill-success"
    if status == STATUS_IN_PROGRESS:
        return "pill-info"
    return "pill-muted"


def progress_class(percent: int) -> str:
    if percent >= 100:
        return "bar-done"
    if percent >= 50:
        return "bar-good"
    if percent > 0:
        return "bar-started"
    return "bar-empty"


def log_target_names(projects: List[Dict[str, Any]], log: Dict[str, Any]) -> tuple[str, str]:
    project_name = ""
    task_name = ""
    if log.get("projectId"):
        project = next((p for p in projects if p.get("id") == log["projectId"]), None)
        project_name = project.get("name", "") if project else "Unknown product"
        if log.get("taskId"):
            task = None
            if project:
                task = next((t for t in project.get("items", []) if t.get("id") == log["taskId"]), None)
            task_name = task.get("type", "") if task else "Unknown task"
    return project_name, task_name


GLASS_CSS = """
:root {
  color-scheme: light;
  --bg-2: #86c9ff;
  --bg-3: #356eff;
  --bg-4: #f2f6ff;
  --glass: rgba(255, 255, 255, 0.6);
  --glass-2: rgba(255, 255, 255, 0.34);
  --border: rgba(255, 255, 255, 0.5);
  --text: #0b1220;
  --muted: #56627a;
  --shadow: 0 24px 60px rgba(10, 20, 45, 0.22);
  --shadow-soft: 0 12px 30px rgba(10, 20, 45, 0.14);
  --blur: 24px;
  --radius: 20px;
  --accent: #0a84ff;
  --accent-2: #6bd7ff;
  --danger: #d93636;
}

@media (prefers-color-scheme: dark) {
  :root {
    color-scheme: dark;
    --bg-2: #111f3d;
    --bg-3: #1b2f61;
    --bg-4: #0b142b;
    --glass: rgba(12, 18, 34, 0.64);
    --glass-2: rgba(12, 18, 34, 0.44);
    --border: rgba(255, 255, 255, 0.14);
    --text: #ecf2ff;
    --muted: #a7b6d3;
    --shadow: 0 26px 70px rgba(0, 0, 0, 0.45);
    --accent: #6bb7ff;
  }
}

* { box-sizing: border-box; }

body {
  margin: 0;
  font-family: "SF Pro Text", "Helvetica Neue", "Segoe UI", "PingFang SC", sans-serif;
  color: var(--text);
  background: linear-gradient(155deg, var(--bg-2) 0%, var(--bg-3) 55%, var(--bg-4) 100%);
  min-height: 100vh;
}

.page {
  max-width: 1240px;
  margin: 0 auto;
  padding: 24px 24px 88px;
  display: grid;
  gap: 20px;
}

.glass-surface {
  background: linear-gradient(135deg, var(--glass), var(--glass-2));
  border: 1px solid var(--border);
  border-radius: var(--radius);
  box-shadow: var(--shadow), inset 0 1px 0 rgba(255, 255, 255, 0.45);
  backdrop-filter: blur(var(--blur)) saturate(180%);
  -webkit-backdrop-filter: blur(var(--blur)) saturate(180%);
}

.card { padding: 20px; }

.navbar {
  max-width: 1240px;
  margin: 16px auto 0;
  padding: 12px 20px;
  display: flex;
  align-items: center;
  justify-content: space-between;
  gap: 16px;
  flex-wrap: wrap;
  position: sticky;
  top: 12px;
  z-index: 10;
}

.nav-left { display: grid; gap: 2px; }
.nav-eyebrow { text-transform: uppercase; letter-spacing: 0.28em; font-size: 10px; color: var(--muted); }
.nav-title { font-size: 18px; font-weight: 600; }
.nav-actions { display: flex; gap: 8px; flex-wrap: wrap; align-items: center; justify-content: flex-end; }

h1, h2, h3 { margin: 0 0 6px; font-weight: 600; letter-spacing: -0.02em; }
.meta { color: var(--muted); font-size: 13px; }
.error-text { color: var(--danger); font-size: 13px; }

.section-head {
  display: flex;
  align-items: center;
  justify-content: space-between;
  gap: 12px;
  flex-wrap: wrap;
  margin-bottom: 12px;
}

.btn {
  border: 1px solid var(--border);
  background: linear-gradient(135deg, rgba(255, 255, 255, 0.8), rgba(255, 255, 255, 0.35));
  padding: 8px 14px;
  border-radius: 999px;
  cursor: pointer;
  font-size: 13px;
  font-weight: 600;
  color: var(--text);
  box-shadow: var(--shadow-soft);
}

.btn.primary {
  background: linear-gradient(160deg, var(--accent-2), var(--accent) 55%, #0a4bd6 100%);
  color: #fff;
}

.btn.ghost { background: rgba(255, 255, 255, 0.14); box-shadow: none; }
.btn.danger { color: var(--danger); }
.btn.small { padding: 4px 10px; font-size: 12px; }
.btn[disabled], .seg-btn[disabled] { opacity: 0.55; cursor: not-allowed; box-shadow: none; }

.bell { position: relative; }
.bell-count {
  position: absolute;
  top: -6px;
  right: -6px;
  min-width: 18px;
  padding: 1px 5px;
  border-radius: 999px;
  background: var(--danger);
  color: #fff;
  font-size: 11px;
}

.pill {
  display: inline-flex;
  align-items: center;
  padding: 3px 10px;
  border-radius: 999px;
  font-size: 12px;
  font-weight: 600;
  border: 1px solid transparent;
}

.pill-success { background: rgba(68, 201, 140, 0.18); color: #0f5132; border-color: rgba(68, 201, 140, 0.5); }
.pill-warning { background: rgba(255, 176, 86, 0.2); color: #7a4b0b; border-color: rgba(255, 176, 86, 0.5); }
.pill-danger { background: rgba(255, 99, 99, 0.2); color: #7a1010; border-color: rgba(255, 99, 99, 0.5); }
.pill-info { background: rgba(86, 160, 255, 0.2); color: #133d7a; border-color: rgba(86, 160, 255, 0.5); }
.pill-muted { background: rgba(15, 23, 42, 0.08); color: var(--muted); border-color: rgba(15, 23, 42, 0.12); }

.progress-track {
  height: 8px;
  background: rgba(255, 255, 255, 0.6);
  border-radius: 999px;
  overflow: hidden;
}

.progress-track span { display: block; height: 100%; }
.bar-empty { background: rgba(15, 23, 42, 0.2); }
.bar-started { background: linear-gradient(90deg, #ffb056, #ffd28a); }
.bar-good { background: linear-gradient(90deg, var(--accent), var(--accent-2)); }
.bar-done { background: linear-gradient(90deg, #2fb87a, #6ee0a8); }

.project-grid {
  display: grid;
  grid-template-columns: repeat(auto-fill, minmax(260px, 1fr));
  gap: 16px;
}

.project-card {
  padding: 16px;
  display: grid;
  gap: 10px;
  cursor: pointer;
}

.project-card.overdue { border-color: rgba(255, 99, 99, 0.8); }
.project-card img, .detail-head img {
  width: 100%;
  height: 150px;
  object-fit: cover;
  border-radius: 14px;
}

.card-row { display: flex; gap: 8px; flex-wrap: wrap; align-items: center; justify-content: space-between; }
.counts { display: flex; gap: 6px; flex-wrap: wrap; }

.task-grid {
  display: grid;
  grid-template-columns: repeat(auto-fill, minmax(280px, 1fr));
  gap: 12px;
}

.task-card { padding: 14px; display: grid; gap: 8px; border-radius: 16px; }
.task-card.flagged { border-color: rgba(255, 176, 86, 0.9); }

.banner {
  padding: 12px 14px;
  border-radius: 14px;
  background: rgba(255, 176, 86, 0.2);
  border: 1px solid rgba(255, 176, 86, 0.5);
  display: grid;
  gap: 8px;
}

.list { display: grid; gap: 8px; }
.row {
  padding: 10px 14px;
  border-radius: 14px;
  display: flex;
  align-items: center;
  justify-content: space-between;
  gap: 12px;
  flex-wrap: wrap;
}

.row.unread { font-weight: 600; }

.modal {
  position: fixed;
  inset: 0;
  background: rgba(8, 16, 32, 0.45);
  display: flex;
  align-items: center;
  justify-content: center;
  padding: 24px;
  z-index: 40;
}

.modal-card {
  width: min(960px, 96vw);
  max-height: 92vh;
  overflow-y: auto;
  padding: 22px;
  display: grid;
  gap: 14px;
}

.modal-card.narrow { width: min(440px, 96vw); }
.modal-head { display: flex; justify-content: space-between; align-items: center; gap: 12px; }
.modal-title { font-size: 20px; margin: 0; }

.form { display: grid; gap: 12px; }
.field { display: grid; gap: 6px; }
.inline { display: flex; gap: 6px; align-items: center; flex-wrap: wrap; }
.label { font-size: 11px; text-transform: uppercase; letter-spacing: 0.12em; color: var(--muted); }

.input, .textarea, .select {
  width: 100%;
  padding: 9px 12px;
  border-radius: 12px;
  border: 1px solid rgba(255, 255, 255, 0.4);
  background: linear-gradient(135deg, rgba(255, 255, 255, 0.9), rgba(255, 255, 255, 0.55));
  font-size: 14px;
  color: var(--text);
}

.inline .input, .inline .select { width: auto; flex: 1 1 120px; }
.textarea { min-height: 90px; resize: vertical; }

.segmented { display: flex; flex-wrap: wrap; gap: 6px; }
.seg-btn {
  padding: 6px 12px;
  border-radius: 999px;
  border: 1px solid var(--border);
  background: linear-gradient(135deg, rgba(255, 255, 255, 0.82), rgba(255, 255, 255, 0.45));
  color: var(--muted);
  cursor: pointer;
  font-weight: 600;
  font-size: 13px;
}

.seg-btn.active {
  background: rgba(10, 132, 255, 0.18);
  border-color: rgba(10, 132, 255, 0.5);
  color: var(--accent);
}

.form-actions { display: flex; gap: 8px; flex-wrap: wrap; justify-content: flex-end; }

.toast {
  position: fixed;
  right: 20px;
  bottom: 20px;
  padding: 12px 16px;
  z-index: 60;
  display: flex;
  gap: 10px;
  align-items: center;
}

@media (max-width: 720px) {
  .page { padding: 16px 12px 64px; }
  .navbar { margin: 8px 8px 0; }
}
"""



def toast_banner(toast: Dict[str, Any] | None, on_dismiss: Callable[[Any], Any]):
    if not toast:
        return None
    return html.div(
        {"class": "toast glass-surface"},
        html.span({"class": f"pill pill-{toast.get('kind', 'info')}"}, toast.get("message", "")),
        html.button({"class": "btn small ghost", "type": "button", "on_click": on_dismiss}, "Dismiss"),
    )


def unavailable_screen(exc: Exception, on_retry: Callable[[Any], Any]):
    return html.div(
        {"id": "tracker-root"},
        html.style(GLASS_CSS),
        html.main(
            {"class": "page"},
            html.section(
                {"class": "card glass-surface"},
                html.h1("Dashboard unavailable"),
                html.div({"class": "meta"}, "Something went wrong while drawing the page. Reload to try again."),
                html.pre({"class": "meta", "style": {"whiteSpace": "pre-wrap"}}, str(exc) or "Unknown error"),
                html.div(
                    {"class": "form-actions"},
                    html.button({"class": "btn primary", "type": "button", "on_click": on_retry}, "Retry"),
                ),
            ),
        ),
    )


@component
def App():
    request_obj = use_request()
    device_id = request_obj.cookies.get(DEVICE_COOKIE) or new_device_id()
    service_ref = hooks.use_ref(None)
    if service_ref.current is None:
        service_ref.current = build_service(device_id)
    service: TrackerService = service_ref.current
    state = service.state

    revision, set_revision = hooks.use_state(0)
    search, set_search = hooks.use_state("")
    status_filter, set_status_filter = hooks.use_state(STATUS_FILTER_ALL)
    modal, set_modal = hooks.use_state({"open": False})
    form_values, set_form_values = hooks.use_state({})
    log_filters, set_log_filters = hooks.use_state({"include_admin": False})
    location = use_location()
    toast, set_toast = hooks.use_state(lambda: upload_notice(location.search))
    is_busy, set_is_busy = hooks.use_state(False)
    busy_ref = hooks.use_ref(False)
    field_event_ts_ref = hooks.use_ref({})

    def refresh() -> None:
        set_revision(lambda n: n + 1)

    @hooks.use_effect(dependencies=[])
    async def poll_projects():
        while True:
            await asyncio.sleep(settings.PROJECTS_POLL_SECONDS)
            await asyncio.to_thread(service.refresh_projects)
            refresh()

    @hooks.use_effect(dependencies=[])
    async def poll_notifications():
        while True:
            await asyncio.sleep(settings.NOTIFICATIONS_POLL_SECONDS)
            await asyncio.to_thread(service.refresh_notifications)
            refresh()

    @hooks.use_effect(dependencies=[])
    async def poll_admin_data():
        while True:
            await asyncio.sleep(settings.ACTIVITY_LOGS_POLL_SECONDS)
            if state.is_admin:
                await asyncio.to_thread(service.refresh_activity_logs)
                await asyncio.to_thread(service.refresh_users)
                refresh()

    @hooks.use_effect(dependencies=[toast])
    async def dismiss_toast_later():
        if toast is None:
            return
        await asyncio.sleep(4)
        set_toast(None)

    def notify(message: str, kind: str = "info") -> None:
        set_toast({"message": message, "kind": kind, "revision": revision})

    def run_mutation(action: Callable[[], Any], success: str | None = None) -> bool:
        if busy_ref.current:
            return False
        busy_ref.current = True
        set_is_busy(True)
        try:
            action()
        except TrackerError as exc:
            notify(str(exc), "warning")
            return False
        except ApiError as exc:
            logger.warning("Gateway rejected an update: %s", exc)
            if exc.status == 409:
                service.refresh_projects()
                notify(
                    "This product was saved from another session in the meantime. "
                    "The latest version has been loaded, please try again.",
                    "warning",
                )
            else:
                notify(f"Save failed: {exc}", "danger")
            return False
        finally:
            busy_ref.current = False
            set_is_busy(False)
            refresh()
        if success:
            notify(success, "success")
        return True

    def open_modal(kind: str, title: str, initial: Dict[str, Any] | None = None, **extra: Any) -> None:
        if busy_ref.current:
            return
        field_event_ts_ref.current = {}
        set_form_values(initial or {})
        set_modal({"open": True, "kind": kind, "title": title, **extra})

    def close_modal(event: Dict[str, Any] | None = None) -> None:
        if busy_ref.current:
            return
        set_modal({"open": False})
        set_form_values({})

    def set_field(name: str, value: Any) -> None:
        set_form_values(lambda prev: {**prev, name: value})

    def set_field_from_event(name: str, event: Dict[str, Any]) -> None:
        ts_raw = event.get("timeStamp")
        if ts_raw is not None:
            try:
                ts = float(ts_raw)
            except (TypeError, ValueError):
                ts = None
            else:
                if ts <= field_event_ts_ref.current.get(name, -1.0):
                    return
                field_event_ts_ref.current[name] = ts
        target = event.get("target", {})
        set_field(name, target.get("value", ""))

    def set_log_filter(name: str, value: Any) -> None:
        set_log_filters(lambda prev: {**prev, name: value})

    def text_input(name: str, placeholder: str = "", input_type: str = "text", disabled: bool = False):
        return html.input(
            {
                "key": name,
                "class": "input",
                "type": input_type,
                "placeholder": placeholder,
                "default_value": form_values.get(name, ""),
                "disabled": is_busy or disabled,
                "on_change": lambda event: set_field_from_event(name, event),
                "on_blur": lambda event: set_field_from_event(name, event),
            }
        )

    def render_segmented(value: str, options: List[Dict[str, str]], on_pick: Callable[[str], None], disabled: bool = False):
        return html.div(
            {"class": "segmented"},
            *[
                html.button(
                    {
                        "key": option["value"],
                        "type": "button",
                        "class": f"seg-btn {'active' if value == option['value'] else ''}",
                        "disabled": is_busy or disabled,
                        "on_click": lambda event, val=option["value"]: on_pick(val),
                    },
                    option["label"],
                )
                for option in options
            ],
        )

    # Session

    @event(prevent_default=True)
    def handle_login(event_data: Dict[str, Any]) -> None:
        password = str(form_values.get("password") or "")
        if busy_ref.current:
            return
        busy_ref.current = True
        set_is_busy(True)
        try:
            message = service.login(password)
        finally:
            busy_ref.current = False
            set_is_busy(False)
        if message:
            set_field("login_error", message)
            return
        close_modal()
        notify("Logged in as admin" if state.is_admin else f"Welcome, {state.session_name}", "success")
        refresh()

    def handle_logout(event: Dict[str, Any] | None = None) -> None:
        service.logout()
        close_modal()
        notify("Logged out")
        refresh()

    # Projects

    def open_project(project_id: str) -> None:
        set_form_values({})
        set_modal({"open": True, "kind": "project", "project_id": project_id})

    def open_create_modal() -> None:
        open_modal(
            "create",
            "New product",
            {"name": "", "description": "", "deadline": "", "types": list(DEFAULT_SUB_TASK_TYPES)},
        )

    def toggle_listed(name: str, value: str) -> None:
        def toggle(prev: Dict[str, Any]) -> Dict[str, Any]:
            chosen = list(prev.get(name) or [])
            if value in chosen:
                chosen.remove(value)
            else:
                chosen.append(value)
            return {**prev, name: chosen}

        set_form_values(toggle)

    def add_custom_type(event: Dict[str, Any] | None = None) -> None:
        custom = str(form_values.get("custom_type") or "").strip()
        if not custom:
            return
        field_event_ts_ref.current = {}
        set_form_values(
            lambda prev: {
                **prev,
                "custom_type": "",
                "types": list(dict.fromkeys([*(prev.get("types") or []), custom])),
            }
        )

    @event(prevent_default=True)
    def handle_create(event_data: Dict[str, Any]) -> None:
        values = dict(form_values)
        created: Dict[str, Any] = {}

        def create() -> None:
            created.update(
                service.create_project(
                    values.get("name", ""),
                    values.get("description", ""),
                    deadline=date_to_ms(values.get("deadline")),
                    sub_task_types=values.get("types") or [],
                )
            )

        if run_mutation(create, "Product created"):
            open_project(created["id"])

    def open_edit_modal(project: Dict[str, Any]) -> None:
        open_modal(
            "edit_project",
            "Edit product",
            {
                "name": project.get("name", ""),
                "description": project.get("description", ""),
                "deadline": format_date(project.get("deadline")),
                "has_changes": bool(project.get("hasChanges")),
                "changes_description": project.get("changesDescription", ""),
                "items_to_change": list(project.get("itemsToChange") or [t["id"] for t in project.get("items", [])]),
            },
            project_id=project["id"],
        )

    @event(prevent_default=True)
    def handle_edit_project(event_data: Dict[str, Any]) -> None:
        values = dict(form_values)
        project_id = modal.get("project_id")

        def save() -> None:
            service.edit_project_details(
                project_id,
                values.get("name", ""),
                values.get("description", ""),
                date_to_ms(values.get("deadline")),
                has_changes=bool(values.get("has_changes")),
                changes_description=values.get("changes_description", ""),
                items_to_change=values.get("items_to_change"),
            )

        if run_mutation(save, "Product updated"):
            open_project(project_id)

    def confirm_delete_project(project: Dict[str, Any]) -> None:
        open_modal("confirm_delete", "Delete product", project_id=project["id"], project_name=project.get("name", ""))

    def handle_delete_project(event: Dict[str, Any] | None = None) -> None:
        project_id = modal.get("project_id")
        if run_mutation(lambda: service.delete_project(project_id), "Product deleted"):
            close_modal()

    # Users

    def open_users_modal() -> None:
        service.refresh_users()
        open_modal("users", "Users", {"new_name": "", "new_password": ""})

    def fill_generated_password(event: Dict[str, Any] | None = None) -> None:
        field_event_ts_ref.current = {}
        set_field("new_password", generate_password(state.users))

    @event(prevent_default=True)
    def handle_create_user(event_data: Dict[str, Any]) -> None:
        values = dict(form_values)
        if run_mutation(lambda: service.create_user(values.get("new_name", ""), values.get("new_password", "")), "User created"):
            field_event_ts_ref.current = {}
            set_form_values({"new_name": "", "new_password": ""})

    @event(prevent_default=True)
    def handle_user_password(event_data: Dict[str, Any]) -> None:
        values = dict(form_values)
        user_id = modal.get("user_id")
        if run_mutation(lambda: service.update_user_password(user_id, values.get("password", "")), "Password updated"):
            open_users_modal()

    @event(prevent_default=True)
    def handle_admin_password(event_data: Dict[str, Any]) -> None:
        values = dict(form_values)
        if run_mutation(lambda: service.change_admin_password(values.get("password", "")), "Admin password changed"):
            close_modal()

    # Notifications and logs

    def handle_open_notification(notification: Dict[str, Any]) -> None:
        project = service.open_notification(notification)
        if project is None:
            notify("This product no longer exists", "warning")
            refresh()
            return
        open_project(project["id"])

    def open_logs_modal() -> None:
        service.refresh_activity_logs()
        open_modal("logs", "Activity log")

    def handle_clear_logs(event: Dict[str, Any] | None = None) -> None:
        if run_mutation(service.clear_activity_logs, "Activity log cleared"):
            open_modal("logs", "Activity log")

    # Rendering

    def render_project_card(project: Dict[str, Any]):
        percent = progress_percent(project)
        status = project_status(project)
        counts = count_by_status(project)
        overdue = is_overdue(project)
        deadline = display_deadline(project)
        deadline_label = "Completed" if status == STATUS_COMPLETED else "Deadline"
        return html.div(
            {
                "key": project["id"],
                "class": f"project-card glass-surface {'overdue' if overdue else ''}",
                "on_click": lambda event, pid=project["id"]: open_project(pid),
            },
            *(
                [html.img({"src": service.api.asset_url(project.get("imageUrl")), "alt": project.get("name", "")})]
                if project.get("imageUrl")
                else []
            ),
            html.div(
                {"class": "card-row"},
                html.h3(project.get("name") or "Untitled"),
                html.span({"class": f"pill {status_pill_class(status)}"}, STATUS_LABELS[status]),
            ),
            html.div({"class": "progress-track"}, html.span({"class": progress_class(percent), "style": {"width": f"{percent}%"}})),
            html.div(
                {"class": "card-row"},
                html.span({"class": "meta"}, f"{percent}% complete"),
                html.span({"class": "meta"}, f"{deadline_label}: {format_date(deadline)}" if deadline else "No deadline"),
            ),
            html.div(
                {"class": "counts"},
                *[
                    html.span({"key": s, "class": f"pill {status_pill_class(s)}"}, f"{STATUS_LABELS[s]} {counts[s]}")
                    for s in TASK_STATUSES
                ],
                *([html.span({"class": "pill pill-danger"}, "Overdue")] if overdue else []),
                *(
                    [html.span({"class": "pill pill-warning"}, "Changed")]
                    if service.has_unacknowledged_changes(project)
                    else []
                ),
            ),
            html.div({"class": "meta"}, f"Last update {format_datetime(last_activity(project))}"),
        )

    def render_task_card(project: Dict[str, Any], task: Dict[str, Any]):
        task_id = task["id"]
        project_id = project["id"]
        flagged = bool(project.get("hasChanges")) and task_id in (project.get("itemsToChange") or [])
        editable = can_edit(task, state)
        claimed = is_claimed(task)
        parts: List[Any] = [
            html.div(
                {"class": "card-row"},
                html.strong(task.get("type") or "Task"),
                html.span({"class": f"pill {status_pill_class(task.get('status'))}"}, STATUS_LABELS.get(task.get("status"), "")),
            ),
            html.div({"class": "meta"}, f"Assignee: {task.get('assignee')}" if claimed else "Unclaimed"),
            html.div({"class": "meta"}, f"Updated {format_datetime(task.get('lastUpdated'))}"),
        ]

        claim_field = f"claim:{task_id}"
        if can_claim(state) and (not claimed or state.is_admin):
            parts.append(
                html.div(
                    {"class": "inline"},
                    text_input(claim_field, "Assignee name" if state.is_admin else "Type your login name to claim"),
                    html.button(
                        {
                            "class": "btn small primary",
                            "type": "button",
                            "disabled": is_busy,
                            "on_click": lambda event: run_mutation(
                                lambda: service.claim(project_id, task_id, str(form_values.get(claim_field) or "")),
                                "Task assigned" if state.is_admin else "Task claimed",
                            ),
                        },
                        "Assign" if state.is_admin else "Claim",
                    ),
                )
            )
        if state.is_admin and state.identities:
            parts.append(
                html.select(
                    {
                        "class": "select",
                        "value": "",
                        "disabled": is_busy,
                        "on_change": lambda event: assign_identity(project_id, task_id, event),
                    },
                    html.option({"value": ""}, "Assign to a known device..."),
                    *[
                        html.option({"key": identity["deviceId"], "value": identity["deviceId"]}, identity.get("name") or identity["deviceId"])
                        for identity in state.identities
                        if identity.get("name")
                    ],
                )
            )

        parts.append(
            render_segmented(
                task.get("status", STATUS_PENDING),
                [{"label": STATUS_LABELS[s], "value": s} for s in TASK_STATUSES],
                lambda value: run_mutation(lambda: service.set_status(project_id, task_id, value)),
                disabled=not can_open_status_menu(task, state),
            )
        )

        if editable and claimed:
            expected_field = f"expected:{task_id}"
            parts.append(
                html.div(
                    {"class": "field"},
                    html.span({"class": "label"}, f"Expected: {format_date(task.get('expectedCompletionDate')) or 'not set'}"),
                    html.div(
                        {"class": "inline"},
                        *[
                            html.button(
                                {
                                    "key": str(days),
                                    "class": "btn small",
                                    "type": "button",
                                    "disabled": is_busy,
                                    "on_click": lambda event, d=days: run_mutation(
                                        lambda: service.set_expected_days(project_id, task_id, d)
                                    ),
                                },
                                f"{days} days",
                            )
                            for days in EXPECTED_DAY_SHORTCUTS
                        ],
                        text_input(expected_field, input_type="date"),
                        html.button(
                            {
                                "class": "btn small",
                                "type": "button",
                                "disabled": is_busy,
                                "on_click": lambda event: set_date_field(
                                    expected_field, lambda ts: service.set_expected_date(project_id, task_id, ts)
                                ),
                            },
                            "Set",
                        ),
                    ),
                )
            )

        if editable and task.get("status") == STATUS_COMPLETED:
            completed_field = f"completed:{task_id}"
            parts.append(
                html.div(
                    {"class": "field"},
                    html.span({"class": "label"}, f"Completed: {format_date(task.get('completedDate')) or 'not set'}"),
                    html.div(
                        {"class": "inline"},
                        text_input(completed_field, input_type="date"),
                        html.button(
                            {
                                "class": "btn small",
                                "type": "button",
                                "disabled": is_busy,
                                "on_click": lambda event: set_date_field(
                                    completed_field, lambda ts: service.set_completed_date(project_id, task_id, ts)
                                ),
                            },
                            "Set",
                        ),
                    ),
                )
            )

        if can_set_file_path(task, state):
            path_field = f"path:{task_id}"
            parts.append(
                html.div(
                    {"class": "inline"},
                    text_input(path_field, task.get("filePath") or "File path"),
                    html.button(
                        {
                            "class": "btn small",
                            "type": "button",
                            "disabled": is_busy,
                            "on_click": lambda event: run_mutation(
                                lambda: service.set_file_path(project_id, task_id, str(form_values.get(path_field) or "")),
                                "File path saved",
                            ),
                        },
                        "Save path",
                    ),
                )
            )
        elif task.get("filePath"):
            parts.append(html.div({"class": "meta"}, f"File: {task['filePath']}"))

        if state.is_admin:
            rename_field = f"rename:{task_id}"
            admin_actions = [
                text_input(rename_field, "Rename task"),
                html.button(
                    {
                        "class": "btn small",
                        "type": "button",
                        "disabled": is_busy,
                        "on_click": lambda event: run_mutation(
                            lambda: service.rename_sub_task(project_id, task_id, str(form_values.get(rename_field) or ""))
                        ),
                    },
                    "Rename",
                ),
            ]
            if can_remove_assignee(task, state):
                admin_actions.append(
                    html.button(
                        {
                            "class": "btn small ghost",
                            "type": "button",
                            "disabled": is_busy,
                            "on_click": lambda event: run_mutation(lambda: service.unassign(project_id, task_id), "Assignee removed"),
                        },
                        "Remove assignee",
                    )
                )
            admin_actions.append(
                html.button(
                    {
                        "class": "btn small danger",
                        "type": "button",
                        "disabled": is_busy,
                        "on_click": lambda event: run_mutation(lambda: service.delete_sub_task(project_id, task_id), "Task deleted"),
                    },
                    "Delete",
                )
            )
            parts.append(html.div({"class": "inline"}, *admin_actions))

        return html.div({"key": task_id, "class": f"task-card glass-surface {'flagged' if flagged else ''}"}, *parts)

    def assign_identity(project_id: str, task_id: str, event: Dict[str, Any]) -> None:
        device = (event.get("target") or {}).get("value")
        identity = next((i for i in state.identities if i.get("deviceId") == device), None)
        if identity is not None:
            run_mutation(lambda: service.assign(project_id, task_id, identity), "Task assigned")

    def set_date_field(name: str, apply: Callable[[int], Any]) -> None:
        timestamp = date_to_ms(form_values.get(name))
        if timestamp is None:
            notify("Pick a date first", "warning")
            return
        run_mutation(lambda: apply(timestamp))

    def render_project_modal():
        project = state.find_project(modal.get("project_id"))
        if project is None:
            return html.div({"class": "meta"}, "This product no longer exists.")
        percent = progress_percent(project)
        deadline = display_deadline(project)
        head = [
            *(
                [html.img({"src": service.api.asset_url(project.get("imageUrl")), "alt": project.get("name", "")})]
                if project.get("imageUrl")
                else []
            ),
            html.div({"class": "meta"}, project.get("description") or ""),
            html.div({"class": "progress-track"}, html.span({"class": progress_class(percent), "style": {"width": f"{percent}%"}})),
            html.div(
                {"class": "card-row"},
                html.span({"class": "meta"}, f"{percent}% complete"),
                html.span({"class": "meta"}, f"Deadline {format_date(deadline)}" if deadline else "No deadline"),
                html.span({"class": "meta"}, f"Created {format_date(project.get('createdAt'))}"),
            ),
        ]
        if project.get("hasChanges"):
            head.append(
                html.div(
                    {"class": "banner"},
                    html.strong(f"Product changed (revision {project.get('changesCount') or 1})"),
                    html.div(project.get("changesDescription") or "See the highlighted tasks."),
                    *(
                        [
                            html.div(
                                {"class": "form-actions"},
                                html.button(
                                    {
                                        "class": "btn small primary",
                                        "type": "button",
                                        "disabled": is_busy,
                                        "on_click": lambda event: run_mutation(
                                            lambda: service.acknowledge_changes(project["id"]), "Changes acknowledged"
                                        ),
                                    },
                                    "Acknowledge",
                                ),
                            )
                        ]
                        if state.is_logged_in and service.has_unacknowledged_changes(project)
                        else []
                    ),
                )
            )
        if state.is_admin:
            head.append(
                html.div(
                    {"class": "inline"},
                    html.button({"class": "btn", "type": "button", "disabled": is_busy, "on_click": lambda e: open_edit_modal(project)}, "Edit"),
                    html.button(
                        {"class": "btn danger", "type": "button", "disabled": is_busy, "on_click": lambda e: confirm_delete_project(project)},
                        "Delete",
                    ),
                    html.form(
                        {
                            "class": "inline",
                            "action": f"/project-image/{project['id']}",
                            "method": "post",
                            "enc_type": "multipart/form-data",
                        },
                        html.input({"type": "file", "name": "file", "accept": "image/png,image/jpeg"}),
                        html.button({"class": "btn small", "type": "submit"}, "Upload image"),
                    ),
                )
            )
            new_task_field = f"new_task:{project['id']}"
            head.append(
                html.div(
                    {"class": "inline"},
                    text_input(new_task_field, "New sub-task name"),
                    html.button(
                        {
                            "class": "btn small",
                            "type": "button",
                            "disabled": is_busy,
                            "on_click": lambda event: run_mutation(
                                lambda: service.add_sub_task(project["id"], str(form_values.get(new_task_field) or "")),
                                "Task added",
                            ),
                        },
                        "Add task",
                    ),
                )
            )
        items = project.get("items", [])
        return html.div(
            {"class": "form"},
            *head,
            html.div(
                {"class": "task-grid"},
                *[render_task_card(project, task) for task in items],
            )
            if items
            else html.div({"class": "meta"}, "No tasks yet."),
        )

    def render_form_actions(submit_label: str):
        return html.div(
            {"class": "form-actions"},
            html.button({"type": "button", "class": "btn ghost", "disabled": is_busy, "on_click": close_modal}, "Cancel"),
            html.button({"type": "submit", "class": "btn primary", "disabled": is_busy}, submit_label),
        )

    def render_field(label: str, control: Any, helper: str = ""):
        return html.div(
            {"class": "field"},
            html.span({"class": "label"}, label),
            control,
            *([html.div({"class": "meta"}, helper)] if helper else []),
        )

    def render_create_modal():
        chosen = form_values.get("types") or []
        offered = list(dict.fromkeys([*DEFAULT_SUB_TASK_TYPES, *chosen]))
        return html.form(
            {"class": "form", "on_submit": handle_create},
            render_field("Name", text_input("name", "Product name")),
            render_field(
                "Description",
                html.textarea(
                    {
                        "class": "textarea",
                        "default_value": form_values.get("description", ""),
                        "on_change": lambda event: set_field_from_event("description", event),
                    }
                ),
            ),
            render_field("Deadline", text_input("deadline", input_type="date")),
            render_field(
                "Tasks",
                html.div(
                    {"class": "segmented"},
                    *[
                        html.button(
                            {
                                "key": task_type,
                                "type": "button",
                                "class": f"seg-btn {'active' if task_type in chosen else ''}",
                                "on_click": lambda event, t=task_type: toggle_listed("types", t),
                            },
                            task_type,
                        )
                        for task_type in offered
                    ],
                ),
                f"{len(chosen)} selected",
            ),
            html.div(
                {"class": "inline"},
                html.input(
                    {
                        "key": f"custom_type:{len(chosen)}",
                        "class": "input",
                        "placeholder": "Custom task",
                        "default_value": "",
                        "on_change": lambda event: set_field_from_event("custom_type", event),
                    }
                ),
                html.button({"class": "btn small", "type": "button", "on_click": add_custom_type}, "Add"),
            ),
            render_form_actions("Create"),
        )

    def render_edit_project_modal():
        project = state.find_project(modal.get("project_id")) or {}
        has_changes = bool(form_values.get("has_changes"))
        chosen = form_values.get("items_to_change") or []
        return html.form(
            {"class": "form", "on_submit": handle_edit_project},
            render_field("Name", text_input("name")),
            render_field(
                "Description",
                html.textarea(
                    {
                        "class": "textarea",
                        "default_value": form_values.get("description", ""),
                        "on_change": lambda event: set_field_from_event("description", event),
                    }
                ),
            ),
            render_field("Deadline", text_input("deadline", input_type="date")),
            render_field(
                "Product changed",
                render_segmented(
                    "yes" if has_changes else "no",
                    [{"label": "No changes", "value": "no"}, {"label": "Has changes", "value": "yes"}],
                    lambda value: set_field("has_changes", value == "yes"),
                ),
            ),
            *(
                [
                    render_field(
                        "What changed",
                        html.textarea(
                            {
                                "class": "textarea",
                                "default_value": form_values.get("changes_description", ""),
                                "on_change": lambda event: set_field_from_event("changes_description", event),
                            }
                        ),
                    ),
                    render_field(
                        "Tasks to redo",
                        html.div(
                            {"class": "segmented"},
                            *[
                                html.button(
                                    {
                                        "key": task["id"],
                                        "type": "button",
                                        "class": f"seg-btn {'active' if task['id'] in chosen else ''}",
                                        "on_click": lambda event, t=task["id"]: toggle_listed("items_to_change", t),
                                    },
                                    task.get("type") or "Task",
                                )
                                for task in project.get("items", [])
                            ],
                        ),
                    ),
                ]
                if has_changes
                else []
            ),
            render_form_actions("Save"),
        )

    def render_login_modal():
        error = form_values.get("login_error")
        return html.form(
            {"class": "form", "on_submit": handle_login},
            render_field("Password", text_input("password", "Password", input_type="password")),
            *([html.div({"class": "error-text"}, error)] if error else []),
            render_form_actions("Log in"),
        )

    def render_users_modal():
        rows = [
            html.div(
                {"key": user.get("id"), "class": "row glass-surface"},
                html.div(html.strong(user.get("name") or ""), html.div({"class": "meta"}, f"Password: {user.get('password', '')}")),
                html.div(
                    {"class": "inline"},
                    html.button(
                        {
                            "class": "btn small",
                            "type": "button",
                            "disabled": is_busy,
                            "on_click": lambda e, u=user: open_modal(
                                "user_password", f"New password for {u.get('name')}", {"password": ""}, user_id=u.get("id")
                            ),
                        },
                        "Change password",
                    ),
                    html.button(
                        {
                            "class": "btn small danger",
                            "type": "button",
                            "disabled": is_busy,
                            "on_click": lambda e, u=user: run_mutation(lambda: service.delete_user(u.get("id")), "User deleted"),
                        },
                        "Delete",
                    ),
                ),
            )
            for user in state.users
        ]
        own_device = state.identity.get("deviceId")
        devices = [
            html.div(
                {"key": identity.get("deviceId"), "class": "row glass-surface"},
                html.div(html.strong(identity.get("name") or ""), html.div({"class": "meta"}, identity.get("deviceId") or "")),
                html.button(
                    {
                        "class": "btn small danger",
                        "type": "button",
                        "disabled": is_busy,
                        "on_click": lambda e, d=identity.get("deviceId"): run_mutation(lambda: service.delete_identity(d), "Device name removed"),
                    },
                    "Forget",
                ),
            )
            for identity in state.identities
            if identity.get("deviceId") != own_device
        ]
        return html.div(
            {"class": "form"},
            html.form(
                {"class": "form", "on_submit": handle_create_user},
                html.div(
                    {"class": "inline"},
                    text_input("new_name", "User name"),
                    html.input(
                        {
                            "key": f"new_password:{form_values.get('new_password', '')}",
                            "class": "input",
                            "placeholder": "Password",
                            "default_value": form_values.get("new_password", ""),
                            "disabled": is_busy,
                            "on_change": lambda event: set_field_from_event("new_password", event),
                        }
                    ),
                    html.button({"class": "btn small", "type": "button", "disabled": is_busy, "on_click": fill_generated_password}, "Generate"),
                    html.button({"class": "btn small primary", "type": "submit", "disabled": is_busy}, "Add user"),
                ),
            ),
            html.div({"class": "list"}, *rows) if rows else html.div({"class": "meta"}, "No users yet."),
            html.h3({"class": "modal-title"}, "Device names"),
            html.div({"class": "list"}, *devices) if devices else html.div({"class": "meta"}, "No other devices have picked a name."),
            html.div(
                {"class": "form-actions"},
                html.button(
                    {
                        "class": "btn ghost",
                        "type": "button",
                        "disabled": is_busy,
                        "on_click": lambda e: open_modal("admin_password", "Change admin password", {"password": ""}),
                    },
                    "Change admin password",
                ),
            ),
        )

    def render_password_modal(handler):
        return html.form(
            {"class": "form", "on_submit": handler},
            render_field("New password", text_input("password", "New password")),
            render_form_actions("Save"),
        )

    def render_notifications_modal():
        notifications = service.my_notifications()
        if not notifications:
            return html.div({"class": "meta"}, "No notifications.")
        return html.div(
            {"class": "list"},
            *[
                html.div(
                    {
                        "key": n.get("id"),
                        "class": f"row glass-surface {'' if n.get('read') else 'unread'}",
                        "on_click": lambda e, n=n: handle_open_notification(n),
                    },
                    html.div(
                        html.div(f"You were assigned \"{n.get('taskName')}\" on {n.get('projectName')}"),
                        html.div({"class": "meta"}, format_datetime(n.get("timestamp"))),
                    ),
                    html.div(
                        {"class": "inline"},
                        html.span({"class": "pill pill-muted" if n.get("read") else "pill pill-info"}, "Read" if n.get("read") else "New"),
                        html.button(
                            {
                                "class": "btn small ghost",
                                "type": "button",
                                "disabled": is_busy,
                                "on_click": event(
                                    lambda e, n=n: run_mutation(lambda: service.delete_notification(n.get("id"))),
                                    stop_propagation=True,
                                ),
                            },
                            "Remove",
                        ),
                    ),
                )
                for n in notifications
            ],
        )

    def render_logs_modal():
        filters = log_filters
        logs = filter_activity_logs(
            state.activity_logs,
            start_date=filters.get("start_date", ""),
            end_date=filters.get("end_date", ""),
            user=filters.get("user", ""),
            action=filters.get("action", ""),
            project_id=filters.get("project_id", ""),
            include_admin=bool(filters.get("include_admin")),
        )
        users = sorted({log.get("user") for log in state.activity_logs if log.get("user") and log.get("user") != ADMIN_ACTOR})

        def select(name: str, placeholder: str, options: List[tuple[str, str]]):
            return html.select(
                {
                    "class": "select",
                    "value": filters.get(name, ""),
                    "on_change": lambda event: set_log_filter(name, (event.get("target") or {}).get("value", "")),
                },
                html.option({"value": ""}, placeholder),
                *[html.option({"key": value, "value": value}, label) for value, label in options],
            )

        def date_filter(name: str):
            return html.input(
                {
                    "class": "input",
                    "type": "date",
                    "value": filters.get(name, ""),
                    "on_change": lambda event: set_log_filter(name, (event.get("target") or {}).get("value", "")),
                }
            )

        rows = []
        for log in logs:
            project_name, task_name = log_target_names(state.projects, log)
            target = " / ".join(part for part in (project_name, task_name) if part)
            rows.append(
                html.div(
                    {"key": log.get("id"), "class": "row glass-surface"},
                    html.div(
                        html.div(html.strong(log.get("user") or ""), f" {log.get('action') or ''}"),
                        html.div({"class": "meta"}, log.get("details") or ""),
                        *([html.div({"class": "meta"}, target)] if target else []),
                    ),
                    html.span({"class": "meta"}, format_datetime(log.get("timestamp"))),
                )
            )

        return html.div(
            {"class": "form"},
            html.div(
                {"class": "inline"},
                date_filter("start_date"),
                date_filter("end_date"),
                select("user", "All users", [(u, u) for u in users]),
                select("action", "All actions", [(a, a) for a in LOG_ACTIONS]),
                select("project_id", "All products", [(p["id"], p.get("name") or p["id"]) for p in state.projects]),
                render_segmented(
                    "yes" if filters.get("include_admin") else "no",
                    [{"label": "Hide admin", "value": "no"}, {"label": "Show admin", "value": "yes"}],
                    lambda value: set_log_filter("include_admin", value == "yes"),
                ),
            ),
            html.div({"class": "meta"}, f"{len(logs)} entries"),
            html.div({"class": "list"}, *rows) if rows else html.div({"class": "meta"}, "No matching entries."),
            html.div(
                {"class": "form-actions"},
                html.button(
                    {
                        "class": "btn danger",
                        "type": "button",
                        "disabled": is_busy,
                        "on_click": lambda e: open_modal("confirm_clear_logs", "Clear activity log"),
                    },
                    "Clear log",
                ),
            ),
        )

    def render_confirm(message: str, label: str, on_confirm: Callable[[Dict[str, Any]], None], on_cancel=None):
        return html.div(
            {"class": "form"},
            html.div({"class": "meta"}, message),
            html.div(
                {"class": "form-actions"},
                html.button({"class": "btn ghost", "type": "button", "disabled": is_busy, "on_click": on_cancel or close_modal}, "Cancel"),
                html.button({"class": "btn primary danger", "type": "button", "disabled": is_busy, "on_click": on_confirm}, label),
            ),
        )

    def render_modal():
        if not modal.get("open"):
            return None
        kind = modal.get("kind")
        narrow = kind in {"login", "user_password", "admin_password", "confirm_delete", "confirm_clear_logs"}
        title = modal.get("title", "")
        if kind == "project":
            project = state.find_project(modal.get("project_id")) or {}
            title = project.get("name") or "Product"
            body = render_project_modal()
        elif kind == "create":
            body = render_create_modal()
        elif kind == "edit_project":
            body = render_edit_project_modal()
        elif kind == "confirm_delete":
            body = render_confirm(
                f"Delete \"{modal.get('project_name')}\" and all of its tasks? This cannot be undone.",
                "Delete",
                handle_delete_project,
            )
        elif kind == "login":
            body = render_login_modal()
        elif kind == "users":
            body = render_users_modal()
        elif kind == "user_password":
            body = render_password_modal(handle_user_password)
        elif kind == "admin_password":
            body = render_password_modal(handle_admin_password)
        elif kind == "notifications":
            body = render_notifications_modal()
        elif kind == "logs":
            body = render_logs_modal()
        elif kind == "confirm_clear_logs":
            body = render_confirm(
                "Remove every activity log entry?",
                "Clear",
                handle_clear_logs,
                on_cancel=lambda e: open_modal("logs", "Activity log"),
            )
        else:
            return None
        return html.div(
            {"class": "modal"},
            html.div(
                {"class": f"modal-card glass-surface {'narrow' if narrow else ''}"},
                html.div(
                    {"class": "modal-head"},
                    html.h3({"class": "modal-title"}, title),
                    html.button({"class": "btn ghost", "type": "button", "disabled": is_busy, "on_click": close_modal}, "Close"),
                ),
                body,
            ),
        )

    def render_toast():
        return toast_banner(toast, lambda e: set_toast(None))

    def render_nav():
        actions: List[Any] = [
            html.input(
                {
                    "class": "input",
                    "style": {"width": "220px"},
                    "placeholder": "Search products",
                    "value": search,
                    "on_change": lambda event: set_search((event.get("target") or {}).get("value", "")),
                }
            ),
        ]
        if state.is_logged_in:
            unread = service.unread_count()
            actions.append(
                html.button(
                    {"class": "btn bell", "type": "button", "on_click": lambda e: open_modal("notifications", "Notifications")},
                    "Notifications",
                    *([html.span({"class": "bell-count"}, str(unread))] if unread else []),
                )
            )
        if state.is_admin:
            actions.extend(
                [
                    html.button({"class": "btn primary", "type": "button", "disabled": is_busy, "on_click": lambda e: open_create_modal()}, "New product"),
                    html.button({"class": "btn", "type": "button", "disabled": is_busy, "on_click": lambda e: open_users_modal()}, "Users"),
                    html.button({"class": "btn", "type": "button", "disabled": is_busy, "on_click": lambda e: open_logs_modal()}, "Activity log"),
                ]
            )
        if state.is_admin or state.is_logged_in:
            actions.append(html.span({"class": "pill pill-info"}, state.actor_name))
            actions.append(html.button({"class": "btn ghost", "type": "button", "on_click": handle_logout}, "Log out"))
        else:
            actions.append(
                html.button(
                    {"class": "btn primary", "type": "button", "on_click": lambda e: open_modal("login", "Log in", {"password": ""})},
                    "Log in",
                )
            )
        if is_busy:
            actions.append(html.span({"class": "pill pill-warning"}, "Syncing..."))
        return html.header(
            {"class": "navbar glass-surface"},
            html.div(
                {"class": "nav-left"},
                html.div({"class": "nav-eyebrow"}, "Artwork tracker"),
                html.div({"class": "nav-title"}, "Product deliverables"),
            ),
            html.div({"class": "nav-actions"}, *actions),
        )

    def render_dashboard():
        counts = status_counts(state.projects)
        projects = visible_projects(state.projects, search, status_filter)
        filter_options = [{"label": f"All ({counts[STATUS_FILTER_ALL]})", "value": STATUS_FILTER_ALL}] + [
            {"label": f"{STATUS_LABELS[s]} ({counts[s]})", "value": s} for s in TASK_STATUSES
        ]
        return html.div(
            {"id": "tracker-root"},
            html.style(GLASS_CSS),
            render_nav(),
            html.main(
                {"class": "page"},
                html.section(
                    {"class": "card glass-surface"},
                    html.div(
                        {"class": "section-head"},
                        html.div(
                            html.h2("Products"),
                            html.div({"class": "meta"}, "Unfinished work first, least complete at the top."),
                        ),
                        render_segmented(status_filter, filter_options, set_status_filter),
                    ),
                    html.div({"class": "project-grid"}, *[render_project_card(p) for p in projects])
                    if projects
                    else html.div({"class": "meta"}, "No products match." if state.projects else "No products yet."),
                ),
            ),
            render_modal(),
            render_toast(),
        )

    try:
        return render_dashboard()
    except Exception as exc:
        logger.exception("Dashboard render failed")
        return unavailable_screen(exc, lambda e: (service.refresh_all(), refresh()))


configure(
    app,
    App,
    Options(
        head=(
            {"tagName": "title", "children": ["Artwork Tracker"]},
            {
                "tagName": "meta",
                "attributes": {"name": "viewport", "content": "width=device-width, initial-scale=1"},
            },
        )
    ),
)


if __name__ == "__main__":
    settings.configure_logging()
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "5001")),
        debug=os.environ.get("FLASK_DEBUG", "0") == "1",
    )
