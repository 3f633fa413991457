"""Locate session transcripts and session-index metadata under the host data dir."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from session_summary import config
from session_summary.models import SessionMeta

logger = logging.getLogger("session_summary.sessions")


def encode_project_path(cwd: str) -> str:
    """Encode a working directory the way the host names project dirs: /a/b -> -a-b."""
    return (cwd or "").replace("/", "-")


def project_dir_for(cwd: str, projects_dir: Path | None = None) -> Path:
    root = projects_dir or config.PROJECTS_DIR
    return root / encode_project_path(cwd)


def _load_json_dict(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return raw if isinstance(raw, dict) else {}


def _find_by_session_id(session_id: str, projects_dir: Path) -> Path | None:
    # Project dirs sit one level below the root, transcripts directly inside them.
    filename = f"{session_id}.jsonl"
    direct = projects_dir / filename
    if direct.is_file():
        return direct
    if not projects_dir.is_dir():
        return None
    for candidate in sorted(projects_dir.glob(f"*/{filename}")):
        if candidate.is_file():
            return candidate
    return None


def _most_recent_transcript(project_dir: Path) -> Path | None:
    if not project_dir.is_dir():
        return None
    candidates = [path for path in project_dir.glob("*.jsonl") if path.is_file()]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


def locate_transcript(
    session_id: str,
    cwd: str,
    transcript_path: str = "",
    projects_dir: Path | None = None,
) -> tuple[Path | None, str]:
    """Resolve the transcript for a session and the session id it implies.

    Resolution order: the caller's transcript hint, the encoded project dir,
    a search by session id, then the most recently modified transcript of
    the project. Returns ``(None, session_id)`` when nothing is found.
    """
    root = projects_dir or config.PROJECTS_DIR

    if transcript_path:
        hinted = Path(transcript_path).expanduser()
        if hinted.is_file():
            return hinted, session_id or hinted.stem

    if session_id:
        expected = project_dir_for(cwd, root) / f"{session_id}.jsonl"
        if expected.is_file():
            return expected, session_id
        found = _find_by_session_id(session_id, root)
        if found is not None:
            return found, session_id

    recent = _most_recent_transcript(project_dir_for(cwd, root))
    if recent is not None:
        logger.debug("Falling back to most recent transcript %s", recent)
        return recent, recent.stem
    return None, session_id


def load_session_meta(session_id: str, cwd: str, projects_dir: Path | None = None) -> SessionMeta:
    """Look up display name, branch and message count in the project's session index."""
    index_path = project_dir_for(cwd, projects_dir) / config.SESSIONS_INDEX_FILENAME
    if not session_id or not index_path.is_file():
        return SessionMeta()

    entries = _load_json_dict(index_path).get("entries")
    if not isinstance(entries, list):
        return SessionMeta()

    for entry in entries:
        if not isinstance(entry, dict) or entry.get("sessionId") != session_id:
            continue
        count = entry.get("messageCount")
        return SessionMeta(
            summary=entry.get("summary") if isinstance(entry.get("summary"), str) else None,
            git_branch=entry.get("gitBranch") if isinstance(entry.get("gitBranch"), str) else None,
            message_count=count if isinstance(count, int) else None,
        )
    return SessionMeta()
