import unittest
from types import SimpleNamespace
from unittest.mock import patch

from session_summary.services.git_diff import collect_git_diff, parse_stat_summary


class GitDiffTests(unittest.TestCase):
    def test_parse_stat_summary(self) -> None:
        stats = parse_stat_summary(" 4 files changed, 142 insertions(+), 37 deletions(-)")
        self.assertEqual((stats.files_changed, stats.insertions, stats.deletions), (4, 142, 37))

        only_deletions = parse_stat_summary(" 1 file changed, 2 deletions(-)")
        self.assertEqual((only_deletions.files_changed, only_deletions.insertions, only_deletions.deletions), (1, 0, 2))
        self.assertIsNone(parse_stat_summary(""))

    def test_collect_uses_last_stat_line(self) -> None:
        completed = SimpleNamespace(
            returncode=0,
            stdout=" app.py | 3 ++-\n 1 file changed, 2 insertions(+), 1 deletion(-)\n",
        )
        with patch("session_summary.services.git_diff.shutil.which", return_value="/usr/bin/git"), patch(
            "session_summary.services.git_diff.subprocess.run", return_value=completed
        ) as run:
            stats = collect_git_diff("/repo")
        self.assertEqual(run.call_args.args[0], ["git", "-C", "/repo", "diff", "--stat", "HEAD"])
        self.assertEqual((stats.files_changed, stats.insertions, stats.deletions), (1, 2, 1))

    def test_collect_outside_repository(self) -> None:
        completed = SimpleNamespace(returncode=128, stdout="")
        with patch("session_summary.services.git_diff.shutil.which", return_value="/usr/bin/git"), patch(
            "session_summary.services.git_diff.subprocess.run", return_value=completed
        ):
            self.assertIsNone(collect_git_diff("/not-a-repo"))
        with patch("session_summary.services.git_diff.shutil.which", return_value=None):
            self.assertIsNone(collect_git_diff("/repo"))


if __name__ == "__main__":
    unittest.main()
