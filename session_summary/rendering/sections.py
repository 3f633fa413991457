"""Dashboard section renderers.

Each renderer is a pure function of an immutable :class:`RenderContext` and
returns the section text, or ``None`` when the section has nothing to show.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional

from session_summary import config
from session_summary.date_utils import wall_clock_ms
from session_summary.model_identity import display_model_name
from session_summary.models import AggregateSnapshot, GitDiffStats, SavingsDelta, SessionMeta
from session_summary.rendering.formatting import Palette, format_duration, format_number, plural
from session_summary.settings import Section

TOP_TOOLS = 8
UNNAMED_SESSION = "Unnamed session"


@dataclass(frozen=True)
class RenderContext:
    snapshot: AggregateSnapshot
    session_id: str = ""
    meta: SessionMeta = field(default_factory=SessionMeta)
    git_branch: str = "unknown"
    exit_reason: str = ""
    cost: Optional[Decimal] = None
    savings: Optional[SavingsDelta] = None
    git_diff: Optional[GitDiffStats] = None
    palette: Palette = field(default_factory=Palette.plain)
    context_limit: int = config.CONTEXT_LIMIT_TOKENS

    @property
    def session_name(self) -> str:
        return self.meta.summary or UNNAMED_SESSION

    @property
    def short_id(self) -> str:
        return f"{self.session_id[:16]}..."

    @property
    def wall_ms(self) -> int:
        return wall_clock_ms(self.snapshot.first_ts, self.snapshot.last_ts)


def render_meta(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    return "\n".join(
        [
            f"{p.dim}ID:{p.reset}       {ctx.short_id}",
            f"{p.dim}Name:{p.reset}     {ctx.session_name}",
            f"{p.dim}Branch:{p.reset}   {ctx.git_branch}",
        ]
    )


def render_duration(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    snap = ctx.snapshot
    line = (
        f"{p.dim}Duration:{p.reset} Wall {format_duration(ctx.wall_ms)} | "
        f"Active {format_duration(snap.turn_ms)} | {snap.turns} {plural(snap.turns, 'turn')}"
    )
    if ctx.exit_reason:
        line += f" | Exit: {ctx.exit_reason}"
    return line


def render_tools(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    snap = ctx.snapshot
    ranked = sorted(snap.tools.items(), key=lambda item: -item[1])[:TOP_TOOLS]
    tools_line = "".join(f"  {p.cyan}{tool}:{p.reset} {count}" for tool, count in ranked)
    header = (
        f"{p.dim}Tool Calls:{p.reset} {snap.tool_calls_total} "
        f"{p.green}(OK {snap.tool_ok} / ERR {snap.tool_errors_resolved}){p.reset}"
    )
    return f"{header}\n{tools_line}"


def render_errors(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    details = ctx.snapshot.error_details
    if not details:
        return None

    grouped: dict[str, list[str]] = {}
    for detail in details:
        grouped.setdefault(detail.tool, []).append(detail.message)

    lines = [f"{p.dim}Errors:{p.reset} {p.red}{len(details)}{p.reset}"]
    for tool in sorted(grouped):
        messages = grouped[tool]
        first = messages[0].replace("\n", " ")
        lines.append(f'  {tool}: "{first}" (x{len(messages)})')
    return "\n".join(lines)


def render_files(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    stats = ctx.snapshot.file_stats()
    if stats.total == 0:
        return None

    parts = []
    if stats.read_only > 0:
        parts.append(f"{stats.read_only} read")
    if stats.edited > 0:
        parts.append(f"{stats.edited} edited")
    if stats.created > 0:
        parts.append(f"{stats.created} created")

    out = f"{p.dim}Files:{p.reset} {' · '.join(parts)}"
    if stats.top_edited:
        top = ", ".join(f"{entry.name} ({entry.count} edits)" for entry in stats.top_edited)
        out += f"\n  {top}"
    return out


def _ranked_counts(counts: dict[str, int]) -> str:
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return ", ".join(f"{name} x{count}" for name, count in ranked)


def render_features(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    snap = ctx.snapshot
    parts = []
    if snap.mcp_servers:
        parts.append(f"MCP ({_ranked_counts(snap.mcp_servers)})")
    if snap.agents:
        parts.append(f"Agents ({_ranked_counts(snap.agents)})")
    if snap.skills:
        parts.append(f"Skills ({', '.join(sorted(snap.skills))})")
    if snap.has_teams:
        parts.append("Teams")
    if snap.has_plan_mode:
        parts.append("Plan mode")
    if not parts:
        return None
    return f"{p.dim}Features:{p.reset} {' · '.join(parts)}"


def render_git(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    diff = ctx.git_diff
    if diff is None or diff.files_changed == 0:
        return None
    return (
        f"{p.dim}Git:{p.reset} {p.green}+{diff.insertions}{p.reset} {p.red}-{diff.deletions}{p.reset} "
        f"lines · {diff.files_changed} {plural(diff.files_changed, 'file')} changed"
    )


def render_loc(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    snap = ctx.snapshot
    if snap.loc_added == 0 and snap.loc_removed == 0:
        return None
    return (
        f"{p.dim}Code:{p.reset} {p.green}+{snap.loc_added}{p.reset} "
        f"{p.red}-{snap.loc_removed}{p.reset} net (via Edit/Write)"
    )


def render_models(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    models = ctx.snapshot.models
    if not models:
        return None
    lines = [f"{p.dim}Model Usage{p.reset}         Reqs    Input    Output"]
    for model, usage in models.items():
        lines.append(
            f"{p.cyan}{display_model_name(model):<20}{p.reset} {usage.requests:>4d}   "
            f"{format_number(usage.input):>7}   {format_number(usage.output):>6}"
        )
    return "\n".join(lines)


def cache_hit_rate(cache_read: int, input_tokens: int) -> int:
    denominator = cache_read + input_tokens
    if denominator <= 0:
        return 0
    return cache_read * 100 // denominator


def render_cache(ctx: RenderContext) -> Optional[str]:
    totals = ctx.snapshot.token_totals()
    if totals.cache_read == 0 and totals.cache_create == 0:
        return None
    rate = cache_hit_rate(totals.cache_read, totals.input)
    return (
        f"Cache: {rate}% hit rate ({format_number(totals.cache_read)} read / "
        f"{format_number(totals.cache_create)} created)"
    )


def render_cost(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    if ctx.cost is None or ctx.cost == 0:
        return None
    return f"Est. Cost: {p.green}${ctx.cost:.3f}{p.reset}"


def render_savings(ctx: RenderContext) -> Optional[str]:
    savings = ctx.savings
    if savings is None:
        return None
    if savings.tokens_saved > 0:
        prefix = "est. " if savings.estimated else ""
        out = (
            f"RTK Savings: {savings.cmds} cmds · ~{format_number(savings.tokens_saved)} tokens saved "
            f"({prefix}{savings.pct}%)"
        )
    else:
        out = f"RTK Savings: {savings.cmds} cmds rewritten"
    if savings.commands:
        out += f"\n  {savings.commands}"
    return out


def render_ratio(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    snap = ctx.snapshot
    turns = snap.turns
    if turns == 0:
        return None
    auto_turns = max(turns - snap.user_prompts, 0)
    out = (
        f"{p.dim}Turns:{p.reset} {turns} ({snap.user_prompts} interactive · {auto_turns} auto)"
    )
    if snap.turn_ms > 0:
        tenths = snap.turn_ms // turns // 100
        out += f" · Avg {tenths // 10}.{tenths % 10}s/turn"
    return out


def render_thinking(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    blocks = ctx.snapshot.thinking_blocks
    if blocks == 0:
        return None
    return f"{p.dim}Thinking:{p.reset} {blocks} blocks"


def render_context(ctx: RenderContext) -> Optional[str]:
    p = ctx.palette
    peak = ctx.snapshot.peak_input
    if peak == 0 or ctx.context_limit <= 0:
        return None
    pct = peak * 100 // ctx.context_limit
    return (
        f"{p.dim}Context:{p.reset} ~{pct}% peak (est.) · "
        f"Model limit: {format_number(ctx.context_limit)}"
    )


SectionRenderer = Callable[[RenderContext], Optional[str]]

SECTION_RENDERERS: "OrderedDict[Section, SectionRenderer]" = OrderedDict(
    [
        (Section.META, render_meta),
        (Section.DURATION, render_duration),
        (Section.TOOLS, render_tools),
        (Section.ERRORS, render_errors),
        (Section.FILES, render_files),
        (Section.FEATURES, render_features),
        (Section.GIT, render_git),
        (Section.LOC, render_loc),
        (Section.MODELS, render_models),
        (Section.CACHE, render_cache),
        (Section.COST, render_cost),
        (Section.SAVINGS, render_savings),
        (Section.RATIO, render_ratio),
        (Section.THINKING, render_thinking),
        (Section.CONTEXT, render_context),
    ]
)
