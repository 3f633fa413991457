import unittest
from decimal import Decimal

from session_summary.models import (
    AggregateSnapshot,
    ErrorDetail,
    GitDiffStats,
    ModelUsage,
    SavingsDelta,
    SessionMeta,
)
from session_summary.rendering.formatting import Palette, format_duration, format_number, plural
from session_summary.rendering.sections import (
    RenderContext,
    cache_hit_rate,
    render_cache,
    render_context,
    render_cost,
    render_duration,
    render_errors,
    render_features,
    render_files,
    render_git,
    render_loc,
    render_meta,
    render_models,
    render_ratio,
    render_savings,
    render_thinking,
    render_tools,
)


def _ctx(**snapshot_fields) -> RenderContext:
    return RenderContext(snapshot=AggregateSnapshot(**snapshot_fields), session_id="0123456789abcdef-tail")


class FormattingTests(unittest.TestCase):
    def test_format_number_truncates(self) -> None:
        self.assertEqual(format_number(999), "999")
        self.assertEqual(format_number(1_299), "1.2K")
        self.assertEqual(format_number(200_000), "200.0K")
        self.assertEqual(format_number(3_950_000), "3.9M")

    def test_format_duration(self) -> None:
        self.assertEqual(format_duration(5_400), "5s")
        self.assertEqual(format_duration(328_000), "5m 28s")
        self.assertEqual(format_duration(3_720_000), "1h 2m")
        self.assertEqual(format_duration(-5), "0s")

    def test_plural(self) -> None:
        self.assertEqual(plural(1, "turn"), "turn")
        self.assertEqual(plural(2, "turn"), "turns")

    def test_palette_honours_no_color(self) -> None:
        self.assertEqual(Palette.from_env({"NO_COLOR": "1"}), Palette.plain())
        self.assertEqual(Palette.from_env({}).reset, "\033[0m")


class SectionRendererTests(unittest.TestCase):
    def test_meta_uses_defaults_for_missing_metadata(self) -> None:
        text = render_meta(_ctx())
        self.assertIn("ID:       0123456789abcdef...", text)
        self.assertIn("Name:     Unnamed session", text)
        self.assertIn("Branch:   unknown", text)

        named = RenderContext(snapshot=AggregateSnapshot(), meta=SessionMeta(summary="Fix login"), git_branch="main")
        self.assertIn("Name:     Fix login", render_meta(named))
        self.assertIn("Branch:   main", render_meta(named))

    def test_duration_line(self) -> None:
        ctx = RenderContext(
            snapshot=AggregateSnapshot(
                first_ts="2026-01-15T10:00:00.900Z",
                last_ts="2026-01-15T10:05:28.100Z",
                turn_ms=93_000,
                turns=12,
            ),
            exit_reason="user",
        )
        self.assertEqual(render_duration(ctx), "Duration: Wall 5m 28s | Active 1m 33s | 12 turns | Exit: user")

        no_exit = _ctx(turns=1)
        self.assertEqual(render_duration(no_exit), "Duration: Wall 0s | Active 0s | 1 turn")

    def test_tools_show_top_eight_and_ok_err(self) -> None:
        tools = {f"Tool{i}": 20 - i for i in range(10)}
        text = render_tools(_ctx(tools=tools, tool_errors=3))
        header, line = text.split("\n")
        total = sum(tools.values())
        self.assertEqual(header, f"Tool Calls: {total} (OK {total - 3} / ERR 3)")
        self.assertIn("Tool0: 20", line)
        self.assertIn("Tool7: 13", line)
        self.assertNotIn("Tool8", line)

    def test_errors_grouped_and_sorted(self) -> None:
        details = [
            ErrorDetail(tool="Edit", message="old_string not unique"),
            ErrorDetail(tool="Bash", message="command not found:\nrtk"),
            ErrorDetail(tool="Edit", message="file changed"),
        ]
        text = render_errors(_ctx(error_details=details, tool_errors=3))
        self.assertEqual(
            text.split("\n"),
            ["Errors: 3", '  Bash: "command not found: rtk" (x1)', '  Edit: "old_string not unique" (x2)'],
        )

    def test_errors_omitted_without_details(self) -> None:
        self.assertIsNone(render_errors(_ctx(tool_errors=0)))

    def test_files_section(self) -> None:
        ctx = _ctx(
            files_read={"/r/a.md", "/r/b.md"},
            files_edited={"/r/src/main.py": 3, "/r/src/util.py": 1},
            files_created={"/r/new.py"},
        )
        self.assertEqual(
            render_files(ctx),
            "Files: 2 read · 2 edited · 1 created\n  main.py (3 edits), util.py (1 edits)",
        )
        self.assertIsNone(render_files(_ctx()))

    def test_features_section(self) -> None:
        ctx = _ctx(
            mcp_servers={"perplexity": 4, "chrome": 12},
            agents={"Explore": 3},
            skills={"review", "commit"},
            has_plan_mode=True,
        )
        self.assertEqual(
            render_features(ctx),
            "Features: MCP (chrome x12, perplexity x4) · Agents (Explore x3) · Skills (commit, review) · Plan mode",
        )
        self.assertIsNone(render_features(_ctx()))

    def test_git_and_loc(self) -> None:
        ctx = RenderContext(
            snapshot=AggregateSnapshot(loc_added=87, loc_removed=12),
            git_diff=GitDiffStats(files_changed=1, insertions=5, deletions=0),
        )
        self.assertEqual(render_git(ctx), "Git: +5 -0 lines · 1 file changed")
        self.assertEqual(render_loc(ctx), "Code: +87 -12 net (via Edit/Write)")
        self.assertIsNone(render_git(_ctx()))
        self.assertIsNone(render_loc(_ctx()))

    def test_models_table(self) -> None:
        ctx = _ctx(models={"claude-opus-4-6-20260101": ModelUsage(requests=59, input=93_000, output=628)})
        lines = render_models(ctx).split("\n")
        self.assertEqual(lines[0], "Model Usage         Reqs    Input    Output")
        self.assertEqual(lines[1], "claude-opus-4-6        59     93.0K      628")

    def test_cache_hit_rate(self) -> None:
        self.assertEqual(cache_hit_rate(850, 150), 85)
        self.assertEqual(cache_hit_rate(0, 0), 0)
        ctx = _ctx(models={"m": ModelUsage(input=150, cache_read=850, cache_create=322_000)})
        self.assertEqual(render_cache(ctx), "Cache: 85% hit rate (850 read / 322.0K created)")
        self.assertIsNone(render_cache(_ctx(models={"m": ModelUsage(input=10)})))

    def test_cost_rendered_to_three_places(self) -> None:
        ctx = RenderContext(snapshot=AggregateSnapshot(), cost=Decimal("7.5000"))
        self.assertEqual(render_cost(ctx), "Est. Cost: $7.500")
        self.assertIsNone(render_cost(RenderContext(snapshot=AggregateSnapshot(), cost=Decimal("0"))))

    def test_savings_variants(self) -> None:
        measured = RenderContext(
            snapshot=AggregateSnapshot(),
            savings=SavingsDelta(cmds=24, tokens_saved=12_400, pct=73, commands="git status(8)"),
        )
        self.assertEqual(
            render_savings(measured),
            "RTK Savings: 24 cmds · ~12.4K tokens saved (73%)\n  git status(8)",
        )
        estimated = RenderContext(
            snapshot=AggregateSnapshot(),
            savings=SavingsDelta(cmds=4, tokens_saved=460, pct=30, estimated=True),
        )
        self.assertEqual(render_savings(estimated), "RTK Savings: 4 cmds · ~460 tokens saved (est. 30%)")
        rewritten = RenderContext(snapshot=AggregateSnapshot(), savings=SavingsDelta(cmds=2))
        self.assertEqual(render_savings(rewritten), "RTK Savings: 2 cmds rewritten")

    def test_ratio_thinking_and_context(self) -> None:
        ctx = _ctx(turns=12, user_prompts=8, turn_ms=80_400, thinking_blocks=3, peak_input=156_000)
        self.assertEqual(render_ratio(ctx), "Turns: 12 (8 interactive · 4 auto) · Avg 6.7s/turn")
        self.assertEqual(render_thinking(ctx), "Thinking: 3 blocks")
        self.assertEqual(render_context(ctx), "Context: ~78% peak (est.) · Model limit: 200.0K")
        self.assertIsNone(render_ratio(_ctx()))
        self.assertIsNone(render_thinking(_ctx()))
        self.assertIsNone(render_context(_ctx()))


if __name__ == "__main__":
    unittest.main()
