"""Working-tree diff stats from git, treated as a black box."""
from __future__ import annotations

import logging
import re
import shutil
import subprocess
from typing import Optional

from session_summary.models import GitDiffStats

logger = logging.getLogger("session_summary.git")

_FILES_PATTERN = re.compile(r"(\d+) files? changed")
_INSERTIONS_PATTERN = re.compile(r"(\d+) insertion")
_DELETIONS_PATTERN = re.compile(r"(\d+) deletion")


def parse_stat_summary(line: str) -> Optional[GitDiffStats]:
    """Parse `` 4 files changed, 142 insertions(+), 37 deletions(-)``."""
    if not line or not line.strip():
        return None

    def _grab(pattern: re.Pattern[str]) -> int:
        match = pattern.search(line)
        return int(match.group(1)) if match else 0

    return GitDiffStats(
        files_changed=_grab(_FILES_PATTERN),
        insertions=_grab(_INSERTIONS_PATTERN),
        deletions=_grab(_DELETIONS_PATTERN),
    )


def collect_git_diff(cwd: str, timeout: float = 10.0) -> Optional[GitDiffStats]:
    """Diff stats against HEAD, or None outside a repository or without git."""
    if not cwd or shutil.which("git") is None:
        return None
    try:
        completed = subprocess.run(
            ["git", "-C", cwd, "diff", "--stat", "HEAD"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git diff failed: %s", exc)
        return None
    if completed.returncode != 0:
        return None
    lines = [line for line in completed.stdout.splitlines() if line.strip()]
    if not lines:
        return None
    return parse_stat_summary(lines[-1])
