"""session-summary-config: inspect and edit the persisted section toggles and order."""
from __future__ import annotations

import argparse
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional, Sequence

from session_summary import config
from session_summary.history import format_record, read_recent
from session_summary.models import (
    AggregateSnapshot,
    ErrorDetail,
    GitDiffStats,
    ModelUsage,
    SavingsDelta,
    SessionMeta,
)
from session_summary.rendering.formatting import Palette
from session_summary.rendering.report import render_report
from session_summary.rendering.sections import RenderContext
from session_summary.settings import (
    AUTO,
    CONFIG_KEYS,
    SECTION_DESCRIPTIONS,
    SECTION_TOGGLES,
    Section,
    SettingsError,
    SettingsLayer,
    build_render_config,
    default_layer,
    env_name_for,
    is_on,
    parse_section_order,
    resolve_settings,
    stored_settings,
    validate_assignment,
    write_config_file,
)

PROG = "session-summary-config"
PREVIEW_TITLE = "═══ Session Summary (Preview) "
DEFAULT_LOG_COUNT = 5

USAGE = f"""\
{PROG} - configure the session-summary hook

Usage:
  {PROG} show              Show current config
  {PROG} set KEY=VALUE     Set a config value
  {PROG} reset             Reset to defaults
  {PROG} sections          Show section order
  {PROG} sections "a,b,c"  Set section order
  {PROG} preview           Demo output with current config
  {PROG} log [n]           Show last n summaries (default: {DEFAULT_LOG_COUNT})

Config keys:
  files, git, errors, loc, rtk, ratio, features, thinking, context
  skip, log_dir, sections

Examples:
  {PROG} set git=0          # Disable git diff
  {PROG} set thinking=1     # Enable thinking blocks
  {PROG} set rtk=auto       # Auto-detect RTK
  {PROG} sections "meta,duration,tools,cost"  # Minimal output
"""


def _config_file(path: Path | None) -> Path:
    return path or config.CONFIG_FILE


def section_status(section: Section, layer: SettingsLayer) -> str:
    key = SECTION_TOGGLES[section]
    if key is None:
        return "always on"
    value = (layer.get(key) or "").strip().lower()
    if value == AUTO:
        return "auto"
    return "on" if is_on(value) else "off"


def cmd_show(config_file: Path | None = None, environ: Mapping[str, str] | None = None) -> int:
    path = _config_file(config_file)
    layer = stored_settings(path)
    env = os.environ if environ is None else environ

    print("Session Summary Configuration")
    print("")
    print(f"Config file: {path}")
    print(f"Status: {'exists' if path.is_file() else 'not created (using defaults)'}")
    print("")
    print("Sections:")
    print("")
    for name in parse_section_order(layer.sections):
        section = Section.lookup(name)
        if section is None:
            print(f"  {name:<12} [unknown]")
            continue
        status = f"[{section_status(section, layer)}]"
        print(f"  {section.value:<12} {status:<11} {SECTION_DESCRIPTIONS[section]}")

    print("")
    print("Settings:")
    print(f"  LOG_DIR:  {layer.log_dir}")
    print(f"  SKIP:     {layer.skip}")

    overrides = [(env_name_for(key), env[env_name_for(key)]) for key in CONFIG_KEYS if env.get(env_name_for(key))]
    if overrides:
        print("")
        print("Environment overrides:")
        for name, value in overrides:
            print(f"  {name}={value}")
    print("")
    print("Priority: env vars (SESSION_SUMMARY_*) > config file > defaults")
    return 0


def cmd_set(assignments: Sequence[str], config_file: Path | None = None) -> int:
    if not assignments:
        raise SettingsError("Usage: set KEY=VALUE [KEY=VALUE ...]")

    layer = stored_settings(config_file)
    applied = []
    for arg in assignments:
        if "=" not in arg:
            raise SettingsError(f"Invalid format '{arg}'. Use KEY=VALUE (e.g., git=1, errors=0)")
        raw_key, _, value = arg.partition("=")
        key = validate_assignment(raw_key, value)
        layer = layer.with_value(key, value.strip())
        applied.append((key, value.strip()))

    path = write_config_file(layer, _config_file(config_file))
    for key, value in applied:
        print(f"Set {key}={value}")
    print("")
    print(f"Config saved to {path}")
    return 0


def cmd_reset(config_file: Path | None = None) -> int:
    path = write_config_file(default_layer(), _config_file(config_file))
    print("Config reset to defaults")
    print(f"Saved to {path}")
    return 0


def cmd_sections(order: Optional[str] = None, config_file: Path | None = None) -> int:
    layer = stored_settings(config_file)
    if order is None:
        print("Current section order:")
        print(f"  {layer.sections}")
        print("")
        print("Available sections:")
        print(f"  {','.join(sorted(section.value for section in Section))}")
        print("")
        print(f'Usage: {PROG} sections "meta,duration,tools,files,..."')
        return 0

    names = parse_section_order(order)
    if not names:
        raise SettingsError("Section order must name at least one section")
    unknown = [name for name in names if Section.lookup(name) is None]
    if unknown:
        # Unknown names are kept; the renderer skips them.
        print(f"Warning: unknown sections ignored when rendering: {', '.join(unknown)}", file=sys.stderr)
    normalized = ",".join(names)
    write_config_file(layer.with_value("SECTIONS", normalized), _config_file(config_file))
    print(f"Section order updated: {normalized}")
    return 0


def sample_context(palette: Palette | None = None) -> RenderContext:
    """A representative session used by ``preview``."""
    snapshot = AggregateSnapshot(
        models={
            "claude-opus-4-6": ModelUsage(
                requests=59, input=93_000, output=628, cache_read=3_900_000, cache_create=322_000
            )
        },
        tools={"Edit": 13, "Bash": 8, "Read": 6, "Grep": 1, "Glob": 1},
        tool_errors=2,
        error_details=[
            ErrorDetail(tool="Bash", message="command not found: rtk"),
            ErrorDetail(tool="Edit", message="old_string not unique"),
        ],
        turns=12,
        turn_ms=93_000,
        first_ts="2026-01-15T10:00:00.000Z",
        last_ts="2026-01-15T10:05:28.000Z",
        api_requests=59,
        files_read={"/repo/README.md", "/repo/hooks.json", "/repo/plugin.json"},
        files_edited={"/repo/session-summary.sh": 8, "/repo/settings.json": 3},
        files_created={"/repo/CHANGELOG.md"},
        loc_added=87,
        loc_removed=12,
        user_prompts=8,
        thinking_blocks=12,
        peak_input=156_000,
        mcp_servers={"chrome": 12, "perplexity": 4},
        agents={"Explore": 3, "Plan": 1},
        skills={"commit"},
    )
    return RenderContext(
        snapshot=snapshot,
        session_id="a1b2c3d4-e5f6-7890-abcd-ef0123456789",
        meta=SessionMeta(summary="Example session"),
        git_branch="main",
        exit_reason="user",
        cost=Decimal("0.045"),
        savings=SavingsDelta(
            cmds=24, tokens_saved=12_400, pct=73, commands="git status(8), git diff(5), ls(4)"
        ),
        git_diff=GitDiffStats(files_changed=4, insertions=142, deletions=37),
        palette=palette or Palette.plain(),
    )


def cmd_preview(config_file: Path | None = None, palette: Palette | None = None) -> int:
    render_config = build_render_config(stored_settings(config_file), auto_enabled=True)
    ctx = sample_context(palette or Palette.from_env())
    sys.stdout.write(render_report(ctx, render_config, title=PREVIEW_TITLE))
    return 0


def cmd_log(count: Optional[str] = None, log_file: Path | None = None) -> int:
    try:
        limit = int(count) if count is not None else DEFAULT_LOG_COUNT
    except ValueError:
        raise SettingsError(f"Invalid count '{count}'. Use a positive integer") from None
    if limit <= 0:
        raise SettingsError(f"Invalid count '{count}'. Use a positive integer")

    path = log_file or resolve_settings().log_file
    if not path.is_file():
        print(f"No session summaries found at {path}")
        return 0

    print(f"Last {limit} session summaries:")
    print("")
    for record in read_recent(path, limit):
        print(format_record(record))
    return 0


def cmd_help() -> int:
    print(USAGE, end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=PROG, add_help=False, usage=f"{PROG} <command> [args]")
    parser.add_argument("command", nargs="?", default="help")
    parser.add_argument("args", nargs=argparse.REMAINDER)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] in {"-h", "--help"}:
        return cmd_help()
    args = build_parser().parse_args(argv)
    rest = args.args

    try:
        if args.command == "show":
            return cmd_show()
        if args.command == "set":
            return cmd_set(rest)
        if args.command == "reset":
            return cmd_reset()
        if args.command == "sections":
            return cmd_sections(rest[0] if rest else None)
        if args.command == "preview":
            return cmd_preview()
        if args.command == "log":
            return cmd_log(rest[0] if rest else None)
        if args.command == "help":
            return cmd_help()
    except SettingsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Unknown command: {args.command}", file=sys.stderr)
    print("")
    cmd_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
