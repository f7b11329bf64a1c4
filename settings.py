from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def load_dotenv(path: str = ".env") -> None:
    if not os.path.exists(path):
        return

    try:
        with open(path, "r", encoding="utf-8") as env_file:
            for raw_line in env_file:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue

                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip("'").strip('"')
                if key:
                    os.environ.setdefault(key, value)
    except OSError:
        logger.exception("Failed to read %s", path)


load_dotenv()

DATA_DIR = Path(os.environ.get("TRACKER_DATA_DIR", "data"))
UPLOAD_DIR = Path(os.environ.get("TRACKER_UPLOAD_DIR", str(DATA_DIR / "uploads")))
CLIENT_PREFS_FILE = Path(os.environ.get("CLIENT_PREFS_FILE", str(DATA_DIR / "client_prefs.json")))

API_BASE_URL = os.environ.get("TRACKER_API_URL", "http://127.0.0.1:5000").rstrip("/")
API_TIMEOUT_SECONDS = float(os.environ.get("API_TIMEOUT_SECONDS", "5"))

CORS_ALLOWED_ORIGINS = {
    origin.strip()
    for origin in os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5001,http://127.0.0.1:5001",
    ).split(",")
    if origin.strip()
}

DEFAULT_ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin")
ACTIVITY_LOG_LIMIT = int(os.environ.get("ACTIVITY_LOG_LIMIT", "1000"))
MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# Poll intervals for the dashboard, in seconds.
PROJECTS_POLL_SECONDS = 10
NOTIFICATIONS_POLL_SECONDS = 30
ACTIVITY_LOGS_POLL_SECONDS = 60

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
