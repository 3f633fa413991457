"""Compose the dashboard from the configured section order."""
from __future__ import annotations

import logging

from session_summary.rendering.sections import SECTION_RENDERERS, RenderContext
from session_summary.settings import RenderConfig

logger = logging.getLogger("session_summary.rendering")

HEADER_TITLE = "═══ Session Summary "
RULE_WIDTH = 39


def _header(ctx: RenderContext, title: str = HEADER_TITLE) -> str:
    p = ctx.palette
    return f"{p.bold}{title}{'═' * max(RULE_WIDTH - len(title), 0)}{p.reset}"


def _footer(ctx: RenderContext) -> str:
    p = ctx.palette
    return f"{p.bold}{'═' * RULE_WIDTH}{p.reset}"


def render_empty_session(ctx: RenderContext) -> str:
    p = ctx.palette
    lines = [
        "",
        _header(ctx),
        f"{p.dim}ID:{p.reset}     {ctx.short_id}",
        f"{p.dim}Name:{p.reset}   {ctx.session_name}",
        f"{p.dim}Branch:{p.reset} {ctx.git_branch}",
        f"{p.dim}Status:{p.reset} {p.yellow}Empty session (no API requests){p.reset}",
        _footer(ctx),
    ]
    return "\n".join(lines) + "\n"


def render_sections(ctx: RenderContext, render_config: RenderConfig) -> list[str]:
    """Section bodies in configured order, skipping disabled, unknown and empty sections."""
    outputs = []
    for section in render_config.sections():
        renderer = SECTION_RENDERERS.get(section)
        if renderer is None:
            continue
        text = renderer(ctx)
        if text:
            outputs.append(text)
    return outputs


def render_report(ctx: RenderContext, render_config: RenderConfig, title: str = HEADER_TITLE) -> str:
    if ctx.snapshot.api_requests == 0:
        logger.debug("Session %s has no API requests; rendering empty report", ctx.session_id)
        return render_empty_session(ctx)

    lines = ["", _header(ctx, title)]
    lines.extend(render_sections(ctx, render_config))
    lines.append(_footer(ctx))
    return "\n".join(lines) + "\n"
