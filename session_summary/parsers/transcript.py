"""Fold a JSONL session transcript into a single AggregateSnapshot."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from session_summary.models import (
    AggregateSnapshot,
    AssistantTurn,
    ErrorDetail,
    ModelUsage,
    OtherEvent,
    TokenUsage,
    ToolInvocation,
    ToolResult,
    TranscriptEvent,
    TurnBoundary,
    UserTurn,
)

logger = logging.getLogger("session_summary.transcript")

MCP_PREFIX = "mcp__"
UNKNOWN_TOOL = "unknown"
ERROR_MESSAGE_LIMIT = 80

# Tools we treat as concrete file actions for session file tracking.
_FILE_ACTION_BY_TOOL: dict[str, str] = {
    "Read": "read",
    "Edit": "edit",
    "MultiEdit": "edit",
    "Write": "create",
}

_SUBAGENT_TOOL = "Task"
_SKILL_TOOL = "Skill"
_TEAM_TOOL = "TeamCreate"
_PLAN_MODE_TOOL = "EnterPlanMode"


@dataclass(frozen=True)
class AggregationFlags:
    """Optional work the fold may skip when the matching section is disabled."""

    loc: bool = True
    features: bool = True
    errors: bool = True
    thinking: bool = False
    context: bool = False


def _coerce_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def count_lines(text: Any) -> int:
    """Count newline-delimited segments; absent or empty payloads count as zero."""
    if not isinstance(text, str) or not text:
        return 0
    return len(text.split("\n"))


def truncate_message(text: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _tool_result_to_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str):
                    parts.append(text)
            elif isinstance(item, str):
                parts.append(item)
        if parts:
            return "\n".join(parts)
    return json.dumps(content, separators=(",", ":"))


def _content_blocks(message: dict[str, Any]) -> list[dict[str, Any]]:
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def decode_event(entry: Any) -> TranscriptEvent | None:
    """Map one decoded JSON value onto its transcript event variant."""
    if not isinstance(entry, dict):
        return None

    timestamp = _optional_str(entry.get("timestamp"))
    git_branch = _optional_str(entry.get("gitBranch"))
    entry_type = entry.get("type")
    message = entry.get("message") if isinstance(entry.get("message"), dict) else {}

    if entry_type == "assistant" and isinstance(message.get("usage"), dict):
        usage = message["usage"]
        blocks = _content_blocks(message)
        invocations = [
            ToolInvocation(
                id=_optional_str(block.get("id")),
                name=str(block.get("name") or ""),
                input=block.get("input") if isinstance(block.get("input"), dict) else {},
            )
            for block in blocks
            if block.get("type") == "tool_use"
        ]
        return AssistantTurn(
            timestamp=timestamp,
            git_branch=git_branch,
            model=str(message.get("model") or ""),
            usage=TokenUsage(
                input_tokens=_coerce_int(usage.get("input_tokens")),
                output_tokens=_coerce_int(usage.get("output_tokens")),
                cache_read_tokens=_coerce_int(usage.get("cache_read_input_tokens")),
                cache_create_tokens=_coerce_int(usage.get("cache_creation_input_tokens")),
            ),
            tool_invocations=invocations,
            thinking_blocks=sum(1 for block in blocks if block.get("type") == "thinking"),
        )

    if entry_type == "user":
        blocks = _content_blocks(message)
        results = []
        for block in blocks:
            if block.get("type") != "tool_result":
                continue
            raw = block.get("content")
            if raw is None:
                raw = block.get("output")
            results.append(
                ToolResult(
                    tool_use_id=_optional_str(block.get("tool_use_id")),
                    is_error=block.get("is_error") is True,
                    message=_tool_result_to_text(raw),
                )
            )
        raw_content = message.get("content")
        has_text = any(block.get("type") == "text" for block in blocks) or (
            isinstance(raw_content, str) and bool(raw_content.strip())
        )
        return UserTurn(timestamp=timestamp, git_branch=git_branch, tool_results=results, has_text=has_text)

    if entry_type == "system" and entry.get("subtype") == "turn_duration":
        return TurnBoundary(
            timestamp=timestamp,
            git_branch=git_branch,
            duration_ms=_coerce_int(entry.get("durationMs")),
        )

    return OtherEvent(timestamp=timestamp, git_branch=git_branch)


def iter_events(lines: Iterable[str]) -> Iterator[TranscriptEvent]:
    """Decode lines in order, skipping blank and undecodable ones."""
    for line in lines:
        if line is None:
            continue
        line = line.strip()
        if not line:
            continue
        # JSONDecodeError is a ValueError; pathological nesting raises RecursionError.
        try:
            event = decode_event(json.loads(line))
        except (ValueError, RecursionError) as exc:
            logger.debug("Skipping undecodable transcript line: %s", type(exc).__name__)
            continue
        if event is not None:
            yield event


class TranscriptAggregator:
    """Streaming reducer: every event only ever adds to the snapshot."""

    def __init__(self, flags: AggregationFlags | None = None) -> None:
        self.flags = flags or AggregationFlags()
        self.snapshot = AggregateSnapshot()
        self._pending_tools: dict[str, str] = {}

    def feed(self, event: TranscriptEvent) -> None:
        if isinstance(event, AssistantTurn):
            self._fold_assistant(event)
        elif isinstance(event, UserTurn):
            self._fold_user(event)
        elif isinstance(event, TurnBoundary):
            self.snapshot.turns += 1
            self.snapshot.turn_ms += event.duration_ms

        snap = self.snapshot
        if snap.git_branch is None and event.git_branch:
            snap.git_branch = event.git_branch
        if event.timestamp:
            if snap.first_ts is None:
                snap.first_ts = event.timestamp
            snap.last_ts = event.timestamp

    def _fold_assistant(self, event: AssistantTurn) -> None:
        snap = self.snapshot
        usage = event.usage
        snap.api_requests += 1

        model = snap.models.setdefault(event.model, ModelUsage())
        model.requests += 1
        model.input += usage.input_tokens
        model.output += usage.output_tokens
        model.cache_read += usage.cache_read_tokens
        model.cache_create += usage.cache_create_tokens

        if self.flags.context:
            snap.peak_input = max(snap.peak_input, usage.input_tokens + usage.cache_read_tokens)
        if self.flags.thinking:
            snap.thinking_blocks += event.thinking_blocks

        for invocation in event.tool_invocations:
            self._fold_invocation(invocation)

    def _fold_invocation(self, invocation: ToolInvocation) -> None:
        snap = self.snapshot
        name = invocation.name
        payload = invocation.input
        snap.tools[name] = snap.tools.get(name, 0) + 1

        if self.flags.errors and invocation.id:
            self._pending_tools[invocation.id] = name

        action = _FILE_ACTION_BY_TOOL.get(name)
        file_path = _optional_str(payload.get("file_path"))
        if action and file_path:
            if action == "read":
                snap.files_read.add(file_path)
            elif action == "edit":
                snap.files_edited[file_path] = snap.files_edited.get(file_path, 0) + 1
                # MultiEdit carries a list of edits; only single edits feed LOC.
                if self.flags.loc and name == "Edit":
                    snap.loc_removed += count_lines(payload.get("old_string"))
                    snap.loc_added += count_lines(payload.get("new_string"))
            elif action == "create":
                snap.files_created.add(file_path)
                if self.flags.loc:
                    snap.loc_added += count_lines(payload.get("content"))

        if self.flags.features:
            self._fold_feature(name, payload)

    def _fold_feature(self, name: str, payload: dict[str, Any]) -> None:
        snap = self.snapshot
        if name.startswith(MCP_PREFIX):
            parts = name.split("__")
            server = parts[1] if len(parts) > 1 and parts[1] else UNKNOWN_TOOL
            snap.mcp_servers[server] = snap.mcp_servers.get(server, 0) + 1
        elif name == _SUBAGENT_TOOL:
            agent_type = str(payload.get("subagent_type") or UNKNOWN_TOOL)
            snap.agents[agent_type] = snap.agents.get(agent_type, 0) + 1
        elif name == _SKILL_TOOL:
            snap.skills.add(str(payload.get("skill") or UNKNOWN_TOOL))
        elif name == _TEAM_TOOL:
            snap.has_teams = True
        elif name == _PLAN_MODE_TOOL:
            snap.has_plan_mode = True

    def _fold_user(self, event: UserTurn) -> None:
        snap = self.snapshot
        for result in event.tool_results:
            if not result.is_error:
                continue
            snap.tool_errors += 1
            if self.flags.errors:
                tool_name = self._pending_tools.get(result.tool_use_id or "", UNKNOWN_TOOL)
                snap.error_details.append(
                    ErrorDetail(tool=tool_name, message=truncate_message(result.message))
                )
        if event.has_text:
            snap.user_prompts += 1


def aggregate_lines(lines: Iterable[str], flags: AggregationFlags | None = None) -> AggregateSnapshot:
    aggregator = TranscriptAggregator(flags)
    for event in iter_events(lines):
        aggregator.feed(event)
    return aggregator.snapshot


def aggregate_transcript(path: Path | None, flags: AggregationFlags | None = None) -> AggregateSnapshot:
    """Aggregate a transcript file; a missing or unreadable file yields an empty snapshot."""
    if path is None or not path.is_file():
        return AggregateSnapshot()
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            return aggregate_lines(handle, flags)
    except OSError as exc:
        logger.warning("Failed to read transcript %s: %s", path, exc)
        return AggregateSnapshot()
