"""Pydantic models for transcript events, the aggregate snapshot and report records."""
from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field

# ── Transcript events ───────────────────────────────────────────────

class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_create_tokens: int = 0


class ToolInvocation(BaseModel):
    id: Optional[str] = None
    name: str = ""
    input: dict = Field(default_factory=dict)


class ToolResult(BaseModel):
    tool_use_id: Optional[str] = None
    is_error: bool = False
    message: str = ""


class AssistantTurn(BaseModel):
    kind: str = "assistant"
    timestamp: Optional[str] = None
    git_branch: Optional[str] = None
    model: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage)
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)
    thinking_blocks: int = 0


class UserTurn(BaseModel):
    kind: str = "user"
    timestamp: Optional[str] = None
    git_branch: Optional[str] = None
    tool_results: list[ToolResult] = Field(default_factory=list)
    has_text: bool = False


class TurnBoundary(BaseModel):
    kind: str = "turn_duration"
    timestamp: Optional[str] = None
    git_branch: Optional[str] = None
    duration_ms: int = 0


class OtherEvent(BaseModel):
    """Any event the aggregator does not fold beyond its timestamp and branch."""

    kind: str = "other"
    timestamp: Optional[str] = None
    git_branch: Optional[str] = None


TranscriptEvent = Union[AssistantTurn, UserTurn, TurnBoundary, OtherEvent]

# ── Aggregate snapshot ──────────────────────────────────────────────

class ModelUsage(BaseModel):
    requests: int = 0
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_create: int = 0


class ErrorDetail(BaseModel):
    tool: str
    message: str = ""


class AggregateSnapshot(BaseModel):
    models: dict[str, ModelUsage] = Field(default_factory=dict)
    tools: dict[str, int] = Field(default_factory=dict)
    tool_errors: int = 0
    error_details: list[ErrorDetail] = Field(default_factory=list)
    turns: int = 0
    turn_ms: int = 0
    first_ts: Optional[str] = None
    last_ts: Optional[str] = None
    api_requests: int = 0
    git_branch: Optional[str] = None
    files_read: set[str] = Field(default_factory=set)
    files_edited: dict[str, int] = Field(default_factory=dict)
    files_created: set[str] = Field(default_factory=set)
    loc_added: int = 0
    loc_removed: int = 0
    user_prompts: int = 0
    thinking_blocks: int = 0
    peak_input: int = 0
    mcp_servers: dict[str, int] = Field(default_factory=dict)
    agents: dict[str, int] = Field(default_factory=dict)
    skills: set[str] = Field(default_factory=set)
    has_teams: bool = False
    has_plan_mode: bool = False

    @property
    def tool_calls_total(self) -> int:
        return sum(self.tools.values())

    @property
    def tool_errors_resolved(self) -> int:
        """Error count clamped to the number of observed invocations."""
        return min(self.tool_errors, self.tool_calls_total)

    @property
    def tool_ok(self) -> int:
        return self.tool_calls_total - self.tool_errors_resolved

    def token_totals(self) -> "TokenTotals":
        totals = TokenTotals()
        for usage in self.models.values():
            totals.input += usage.input
            totals.output += usage.output
            totals.cache_read += usage.cache_read
            totals.cache_create += usage.cache_create
        return totals

    def file_stats(self) -> "FileStats":
        read_only = [
            path for path in self.files_read
            if path not in self.files_edited and path not in self.files_created
        ]
        created_only = [path for path in self.files_created if path not in self.files_edited]
        ranked = sorted(self.files_edited.items(), key=lambda item: -item[1])[:5]
        return FileStats(
            read_only=len(read_only),
            edited=len(self.files_edited),
            created=len(created_only),
            top_edited=[
                EditedFile(name=path.rstrip("/").rsplit("/", 1)[-1], count=count)
                for path, count in ranked
            ],
        )


class TokenTotals(BaseModel):
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_create: int = 0


class EditedFile(BaseModel):
    name: str
    count: int = 0


class FileStats(BaseModel):
    read_only: int = 0
    edited: int = 0
    created: int = 0
    top_edited: list[EditedFile] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.read_only + self.edited + self.created

# ── Auxiliary collaborator results ──────────────────────────────────

class HookInput(BaseModel):
    """Invocation context delivered on stdin by the host at session end."""

    session_id: str = ""
    cwd: str = ""
    reason: str = ""
    transcript_path: str = ""


class SessionMeta(BaseModel):
    summary: Optional[str] = None
    git_branch: Optional[str] = None
    message_count: Optional[int] = None


class GitDiffStats(BaseModel):
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0


class SavingsDelta(BaseModel):
    cmds: int
    tokens_saved: int = 0
    pct: int = 0
    estimated: bool = False
    commands: str = ""

# ── Historical log record ──────────────────────────────────────────

class LocStats(BaseModel):
    added: int = 0
    removed: int = 0


class FeatureUsage(BaseModel):
    mcp_servers: dict[str, int] = Field(default_factory=dict)
    agents: dict[str, int] = Field(default_factory=dict)
    skills: list[str] = Field(default_factory=list)
    has_teams: bool = False
    has_plan_mode: bool = False


class SessionReportRecord(BaseModel):
    timestamp: str
    session_id: str
    session_name: str = "Unnamed"
    git_branch: str = "unknown"
    project: str = ""
    exit_reason: str = "unknown"
    duration_wall_ms: int = 0
    duration_active_ms: int = 0
    turns: int = 0
    user_prompts: int = 0
    api_requests: int = 0
    tool_calls: dict[str, int] = Field(default_factory=dict)
    tool_errors: int = 0
    error_details: list[ErrorDetail] = Field(default_factory=list)
    models: dict[str, ModelUsage] = Field(default_factory=dict)
    total_tokens: TokenTotals = Field(default_factory=TokenTotals)
    cache_hit_rate: float = 0.0
    files: FileStats = Field(default_factory=FileStats)
    loc: LocStats = Field(default_factory=LocStats)
    git_diff: Optional[GitDiffStats] = None
    thinking_blocks: int = 0
    peak_input: int = 0
    features: FeatureUsage = Field(default_factory=FeatureUsage)
    rtk_savings: Optional[SavingsDelta] = None
    cost_usd: float = 0.0
