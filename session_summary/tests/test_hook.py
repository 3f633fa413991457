import io
import json
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

from session_summary import hook
from session_summary.models import GitDiffStats
from session_summary.parsers.sessions import encode_project_path

CWD = "/work/demo"
SESSION_ID = "5f1c2d3e-0000-4000-8000-1234567890ab"


def _transcript_lines() -> list[str]:
    return [
        json.dumps({"type": "user", "timestamp": "2026-02-16T10:00:00Z", "gitBranch": "feature/hook", "message": {"content": "add a test"}}),
        json.dumps(
            {
                "type": "assistant",
                "timestamp": "2026-02-16T10:00:04Z",
                "message": {
                    "model": "claude-sonnet-4-5-20250929",
                    "usage": {"input_tokens": 120, "output_tokens": 30},
                    "content": [
                        {"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "pytest"}},
                    ],
                },
            }
        ),
        json.dumps(
            {
                "type": "user",
                "timestamp": "2026-02-16T10:00:09Z",
                "message": {"content": [{"type": "tool_result", "tool_use_id": "t1", "is_error": True, "content": "1 failed"}]},
            }
        ),
        json.dumps({"type": "system", "subtype": "turn_duration", "durationMs": 9000, "timestamp": "2026-02-16T10:01:10Z"}),
    ]


class HookRunTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name)
        self.projects_dir = root / "projects"
        self.project_dir = self.projects_dir / encode_project_path(CWD)
        self.project_dir.mkdir(parents=True)
        self.log_dir = root / "logs"
        self.environ = {
            "SESSION_SUMMARY_LOG": str(self.log_dir),
            "SESSION_SUMMARY_RTK": "0",
            "NO_COLOR": "1",
        }

        patches = [
            patch("session_summary.config.PROJECTS_DIR", self.projects_dir),
            patch("session_summary.config.CONFIG_FILE", root / "config" / "config.sh"),
            patch("session_summary.hook.calculate_cost", return_value=Decimal("0.0123")),
            patch(
                "session_summary.hook.collect_git_diff",
                return_value=GitDiffStats(files_changed=2, insertions=10, deletions=3),
            ),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)
        writer = patch("session_summary.hook.write_report")
        self.write_report = writer.start()
        self.addCleanup(writer.stop)

    def _write_transcript(self, session_id: str = SESSION_ID) -> Path:
        path = self.project_dir / f"{session_id}.jsonl"
        path.write_text("\n".join(_transcript_lines()) + "\n", encoding="utf-8")
        return path

    def _stdin(self, **payload) -> io.StringIO:
        return io.StringIO(json.dumps(payload))

    def _records(self) -> list[dict]:
        log_file = self.log_dir / "session-summaries.jsonl"
        if not log_file.exists():
            return []
        return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]

    def test_report_and_record_are_produced(self) -> None:
        self._write_transcript()
        (self.project_dir / "sessions-index.json").write_text(
            json.dumps({"entries": [{"sessionId": SESSION_ID, "summary": "Hook tests", "gitBranch": "main"}]}),
            encoding="utf-8",
        )

        status = hook.run(
            self._stdin(session_id=SESSION_ID, cwd=CWD, reason="prompt_input_exit"),
            self.environ,
        )

        self.assertEqual(status, 0)
        report = self.write_report.call_args.args[0]
        self.assertIn("Session Summary", report)
        self.assertIn("Name:     Hook tests", report)
        self.assertIn("Exit: user", report)
        self.assertIn('Bash: "1 failed" (x1)', report)
        self.assertIn("Git: +10 -3 lines · 2 files changed", report)
        self.assertIn("Est. Cost: $0.012", report)

        records = self._records()
        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record["session_id"], SESSION_ID)
        self.assertEqual(record["git_branch"], "main")
        self.assertEqual(record["exit_reason"], "user")
        self.assertEqual(record["project"], CWD)
        self.assertEqual(record["tool_errors"], 1)
        self.assertEqual(record["duration_wall_ms"], 70_000)
        self.assertEqual(record["git_diff"]["files_changed"], 2)

    def test_branch_falls_back_to_transcript(self) -> None:
        self._write_transcript()
        hook.run(self._stdin(session_id=SESSION_ID, cwd=CWD, reason="clear"), self.environ)
        record = self._records()[0]
        self.assertEqual(record["git_branch"], "feature/hook")
        self.assertEqual(record["exit_reason"], "clear")
        self.assertEqual(record["session_name"], "Unnamed")

    def test_skip_short_circuits(self) -> None:
        self._write_transcript()
        environ = dict(self.environ, SESSION_SUMMARY_SKIP="1")
        self.assertEqual(hook.run(self._stdin(session_id=SESSION_ID, cwd=CWD), environ), 0)
        self.write_report.assert_not_called()
        self.assertEqual(self._records(), [])

    def test_missing_transcript_is_silent(self) -> None:
        self.assertEqual(hook.run(self._stdin(session_id="nope", cwd="/other"), self.environ), 0)
        self.write_report.assert_not_called()
        self.assertEqual(self._records(), [])

    def test_invalid_stdin_uses_project_dir_and_latest_transcript(self) -> None:
        self._write_transcript("latest-session")
        environ = dict(self.environ, CLAUDE_PROJECT_DIR=CWD)

        self.assertEqual(hook.run(io.StringIO("{not json"), environ), 0)

        record = self._records()[0]
        self.assertEqual(record["session_id"], "latest-session")
        self.assertEqual(record["exit_reason"], "unknown")

    def test_savings_tracker_uses_hook_environment(self) -> None:
        self._write_transcript()
        environ = dict(self.environ, SESSION_SUMMARY_RTK="1", CLAUDE_PROJECT_DIR="/work/root")
        with patch("session_summary.hook.SavingsTracker") as tracker_cls:
            tracker_cls.for_session.return_value.collect.return_value = None
            hook.run(self._stdin(session_id=SESSION_ID, cwd=CWD), environ)
        tracker_cls.for_session.assert_called_once()
        passed = tracker_cls.for_session.call_args.kwargs["environ"]
        self.assertEqual(passed["CLAUDE_PROJECT_DIR"], "/work/root")

    def test_disabled_git_section_skips_diff(self) -> None:
        self._write_transcript()
        environ = dict(self.environ, SESSION_SUMMARY_GIT="0")
        with patch("session_summary.hook.collect_git_diff") as collect:
            hook.run(self._stdin(session_id=SESSION_ID, cwd=CWD), environ)
        collect.assert_not_called()
        self.assertIsNone(self._records()[0]["git_diff"])


class HookHelpersTests(unittest.TestCase):
    def test_exit_reason_mapping(self) -> None:
        self.assertEqual(hook.normalize_exit_reason("prompt_input_exit"), "user")
        self.assertEqual(hook.normalize_exit_reason("user_exit"), "user")
        self.assertEqual(hook.normalize_exit_reason("clear"), "clear")
        self.assertEqual(hook.normalize_exit_reason("context_limit"), "context")
        self.assertEqual(hook.normalize_exit_reason("api_error"), "error")
        self.assertEqual(hook.normalize_exit_reason("logout"), "logout")
        self.assertEqual(hook.normalize_exit_reason(""), "")
        self.assertEqual(hook.normalize_exit_reason(None), "")

    def test_read_hook_input_tolerates_bad_payloads(self) -> None:
        self.assertEqual(hook.read_hook_input(io.StringIO(""), "/d").cwd, "/d")
        self.assertEqual(hook.read_hook_input(io.StringIO("[1, 2]"), "/d").session_id, "")
        parsed = hook.read_hook_input(io.StringIO('{"session_id": "s", "transcript_path": "/t.jsonl"}'), "/d")
        self.assertEqual(parsed.session_id, "s")
        self.assertEqual(parsed.cwd, "/d")
        self.assertEqual(parsed.transcript_path, "/t.jsonl")

    def test_main_never_fails(self) -> None:
        with patch("session_summary.hook.run", side_effect=RuntimeError("boom")):
            with self.assertLogs("session_summary", level="ERROR"):
                self.assertEqual(hook.main(), 0)


if __name__ == "__main__":
    unittest.main()
