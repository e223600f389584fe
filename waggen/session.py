"""Versioned persistence of interactive exploration sessions."""

import json
import logging
import os
import random
import re
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict
from urllib.parse import urlparse

from .errors import SessionNotFoundError, VersionIncompatibleError
from .knowledge import ExplorationSession, empty_graph_data

logger = logging.getLogger(__name__)

CURRENT_VERSION = 1
DEFAULT_SESSION_DIR = os.path.join(".", "output", "sessions")

_BASE36 = string.digits + string.ascii_lowercase


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_session_id() -> str:
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


def default_session_path(app_url: str, base_dir: str = DEFAULT_SESSION_DIR) -> str:
    """``<base_dir>/<sanitized host>_session.json`` for ``app_url``."""
    host = urlparse(app_url).netloc
    sanitized = re.sub(r"[^a-zA-Z0-9]", "_", host)
    return os.path.join(base_dir, f"{sanitized}_session.json")


def migrate(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a stored payload up to ``CURRENT_VERSION``.

    Pre-versioned payloads (no ``version`` or ``0``) get every missing field
    filled with a default; newer-than-supported payloads are refused.
    """
    version = raw.get("version") or 0
    if version > CURRENT_VERSION:
        raise VersionIncompatibleError(
            f"Session file version {version} is newer than supported version {CURRENT_VERSION}"
        )
    if version == CURRENT_VERSION:
        return raw

    logger.info("Migrating session from v%s to v%s", version, CURRENT_VERSION)
    now = _now_iso()
    return {
        "version": CURRENT_VERSION,
        "id": raw.get("id") or generate_session_id(),
        "appUrl": raw.get("appUrl") or "",
        "createdAt": raw.get("createdAt") or now,
        "lastUpdatedAt": now,
        "currentStateId": raw.get("currentStateId") or "",
        "entryStateId": raw.get("entryStateId") or "",
        "stateGraph": raw.get("stateGraph") or empty_graph_data(),
        "skippedActions": raw.get("skippedActions") or {},
        "explorationHistory": raw.get("explorationHistory") or [],
    }


def session_from_payload(raw: Dict[str, Any]) -> ExplorationSession:
    return ExplorationSession.from_json(migrate(raw))


def load_session(file_path: str) -> ExplorationSession:
    if not os.path.exists(file_path):
        raise SessionNotFoundError(f"Session file not found: {file_path}")
    with open(file_path, "r", encoding="utf-8") as fh:
        raw = json.load(fh)
    return session_from_payload(raw)


def save_session(session: ExplorationSession, file_path: str) -> str:
    """Write ``session`` to ``file_path``. Not atomic."""
    session.last_updated_at = _now_iso()
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as fh:
        json.dump(session.to_json(), fh, indent=2)
    logger.info("Session saved to: %s", file_path)
    return file_path
