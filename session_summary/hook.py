"""Session-end hook: aggregate the transcript, print the dashboard, append the history record."""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Mapping, Optional, TextIO

from session_summary import config
from session_summary.history import append_record, build_record
from session_summary.models import HookInput, SessionReportRecord
from session_summary.observability import initialize, record_session_usage, shutdown, start_span
from session_summary.parsers.sessions import load_session_meta, locate_transcript
from session_summary.parsers.transcript import AggregationFlags, aggregate_transcript
from session_summary.rendering.formatting import Palette, write_report
from session_summary.rendering.report import render_report
from session_summary.rendering.sections import RenderContext
from session_summary.services.cost import calculate_cost
from session_summary.services.git_diff import collect_git_diff
from session_summary.services.savings import SavingsTracker
from session_summary.settings import RenderConfig, RuntimeSettings, Section, resolve_settings

logger = logging.getLogger("session_summary")

# Host reason codes -> the closed set shown in reports.
EXIT_REASONS = {
    "prompt_input_exit": "user",
    "user_exit": "user",
    "clear": "clear",
    "context_limit": "context",
    "api_error": "error",
}


def normalize_exit_reason(raw: str | None) -> str:
    """Map a host reason code; empty means unknown, anything unrecognized is kept verbatim."""
    reason = (raw or "").strip()
    if not reason:
        return ""
    return EXIT_REASONS.get(reason, reason)


def read_hook_input(stream: TextIO | None, default_cwd: str = "") -> HookInput:
    fallback = HookInput(cwd=default_cwd)
    if stream is None:
        return fallback
    try:
        if stream.isatty():
            return fallback
        raw = stream.read()
    except (OSError, ValueError):
        return fallback
    if not raw or not raw.strip():
        return fallback
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Hook input is not valid JSON; continuing without it")
        return fallback
    if not isinstance(payload, dict):
        return fallback
    return HookInput(
        session_id=str(payload.get("session_id") or ""),
        cwd=str(payload.get("cwd") or default_cwd),
        reason=str(payload.get("reason") or ""),
        transcript_path=str(payload.get("transcript_path") or ""),
    )


def aggregation_flags(render_config: RenderConfig) -> AggregationFlags:
    return AggregationFlags(
        loc=render_config.is_enabled(Section.LOC),
        features=render_config.is_enabled(Section.FEATURES),
        errors=render_config.is_enabled(Section.ERRORS),
        thinking=render_config.is_enabled(Section.THINKING),
        context=render_config.is_enabled(Section.CONTEXT),
    )


def summarize_session(
    hook_input: HookInput,
    settings: RuntimeSettings,
    palette: Palette | None = None,
    now: datetime | None = None,
    environ: Mapping[str, str] | None = None,
) -> Optional[tuple[str, SessionReportRecord]]:
    """Build the report text and history record, or None when no transcript exists."""
    cwd = hook_input.cwd
    transcript, session_id = locate_transcript(hook_input.session_id, cwd, hook_input.transcript_path)
    if transcript is None:
        logger.debug("No transcript found for session %r in %s", hook_input.session_id, cwd)
        return None

    render_config = settings.render
    with start_span("session_summary.aggregate", {"session.id": session_id, "transcript": str(transcript)}):
        snapshot = aggregate_transcript(transcript, aggregation_flags(render_config))

    meta = load_session_meta(session_id, cwd)
    git_branch = meta.git_branch or snapshot.git_branch or "unknown"
    cost = calculate_cost(session_id, snapshot.models)

    savings = None
    if render_config.toggles.get("RTK"):
        savings = SavingsTracker.for_session(cwd, environ=environ).collect()

    git_diff = None
    if render_config.is_enabled(Section.GIT):
        git_diff = collect_git_diff(cwd)

    ctx = RenderContext(
        snapshot=snapshot,
        session_id=session_id,
        meta=meta,
        git_branch=git_branch,
        exit_reason=normalize_exit_reason(hook_input.reason),
        cost=cost,
        savings=savings,
        git_diff=git_diff,
        palette=palette or Palette.from_env(),
    )
    with start_span("session_summary.render", {"session.id": session_id}):
        report = render_report(ctx, render_config)
    return report, build_record(ctx, project=cwd, now=now)


def run(stdin: TextIO | None = None, environ: Mapping[str, str] | None = None) -> int:
    settings = resolve_settings(environ)
    if settings.skip:
        return 0

    env = os.environ if environ is None else environ
    default_cwd = env.get("CLAUDE_PROJECT_DIR") or os.getcwd()
    hook_input = read_hook_input(stdin if stdin is not None else sys.stdin, default_cwd)

    result = summarize_session(hook_input, settings, palette=Palette.from_env(env), environ=env)
    if result is None:
        return 0
    report, record = result

    write_report(report)
    try:
        append_record(record, settings.log_file)
    except OSError as exc:
        logger.warning("Failed to append session record to %s: %s", settings.log_file, exc)

    record_session_usage(
        exit_reason=record.exit_reason,
        tools=record.tool_calls,
        tool_errors=record.tool_errors,
        models={name: (usage.input, usage.output) for name, usage in record.models.items()},
        cost_usd=record.cost_usd,
    )
    return 0


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.DEBUG else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def main() -> int:
    """Hook entry point; never fails the host's session lifecycle."""
    _configure_logging()
    initialize()
    try:
        return run()
    except Exception:  # noqa: BLE001
        logger.exception("Session summary failed")
        return 0
    finally:
        shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
