"""Append-only JSONL history of session reports."""
from __future__ import annotations

import json
import logging
from collections import deque
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from session_summary.date_utils import utc_timestamp
from session_summary.models import FeatureUsage, LocStats, SessionReportRecord
from session_summary.rendering.sections import RenderContext

logger = logging.getLogger("session_summary.history")


def _cache_hit_rate_tenths(cache_read: int, input_tokens: int) -> float:
    denominator = cache_read + input_tokens
    if denominator <= 0:
        return 0.0
    return (cache_read * 1000 // denominator) / 10


def build_record(ctx: RenderContext, project: str, now: datetime | None = None) -> SessionReportRecord:
    """Freeze the snapshot and its collaborator results into one log record."""
    snap = ctx.snapshot
    totals = snap.token_totals()
    return SessionReportRecord(
        timestamp=utc_timestamp(now),
        session_id=ctx.session_id,
        session_name=ctx.meta.summary or "Unnamed",
        git_branch=ctx.git_branch or "unknown",
        project=project,
        exit_reason=ctx.exit_reason or "unknown",
        duration_wall_ms=ctx.wall_ms,
        duration_active_ms=snap.turn_ms,
        turns=snap.turns,
        user_prompts=snap.user_prompts,
        api_requests=snap.api_requests,
        tool_calls=dict(snap.tools),
        tool_errors=snap.tool_errors,
        error_details=list(snap.error_details),
        models={name: usage.model_copy() for name, usage in snap.models.items()},
        total_tokens=totals,
        cache_hit_rate=_cache_hit_rate_tenths(totals.cache_read, totals.input),
        files=snap.file_stats(),
        loc=LocStats(added=snap.loc_added, removed=snap.loc_removed),
        git_diff=ctx.git_diff if ctx.git_diff and ctx.git_diff.files_changed else None,
        thinking_blocks=snap.thinking_blocks,
        peak_input=snap.peak_input,
        features=FeatureUsage(
            mcp_servers=dict(snap.mcp_servers),
            agents=dict(snap.agents),
            skills=sorted(snap.skills),
            has_teams=snap.has_teams,
            has_plan_mode=snap.has_plan_mode,
        ),
        rtk_savings=ctx.savings,
        cost_usd=float(ctx.cost or 0),
    )


def append_record(record: SessionReportRecord, log_file: Path) -> None:
    """Append one JSON line; the directory is created on first use."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    line = record.model_dump_json() + "\n"
    with log_file.open("a", encoding="utf-8") as handle:
        handle.write(line)


def read_recent(log_file: Path, count: int = 5) -> list[SessionReportRecord]:
    """Last ``count`` parseable records, oldest first."""
    if count <= 0 or not log_file.is_file():
        return []
    records: deque[SessionReportRecord] = deque(maxlen=count)
    with log_file.open("r", encoding="utf-8", errors="replace") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                records.append(SessionReportRecord.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError):
                logger.debug("Skipping unparseable history line")
                continue
    return list(records)


def format_record(record: SessionReportRecord) -> str:
    tools = ", ".join(f"{name}:{count}" for name, count in record.tool_calls.items())
    cost = str(record.cost_usd)[:5]
    return "\n".join(
        [
            f"=== {record.session_name or 'Unnamed'} ===",
            f"  ID: {record.session_id[:16]}...  Branch: {record.git_branch}  Exit: {record.exit_reason or 'unknown'}",
            f"  Duration: {record.duration_wall_ms // 60000}m  Turns: {record.turns}  Cost: ${cost}",
            f"  Tools: {tools}",
            f"  Errors: {record.tool_errors}  Cache: {record.cache_hit_rate}%",
            "",
        ]
    )
