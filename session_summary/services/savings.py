"""Session-scoped token savings from two snapshots of the savings tool's report."""
from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Callable, Mapping, Optional

from session_summary import config
from session_summary.models import SavingsDelta
from session_summary.observability import start_span

logger = logging.getLogger("session_summary.savings")

_MAGNITUDE_SUFFIXES = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}
_NUMBER_PATTERN = re.compile(r"^([0-9][0-9,]*(?:\.[0-9]+)?)([kKmMbB]?)")
_COUNT_PATTERN = re.compile(r"^[0-9,]+$")
_COMMAND_NAME_LIMIT = 20

LABEL_COMMANDS = "Total commands"
LABEL_SAVED = "Tokens saved"
LABEL_INPUT = "Input tokens"
LABEL_OUTPUT = "Output tokens"


def parse_savings_number(text: str, label: str) -> Optional[int]:
    """First numeric token on the first line containing ``label``.

    ``12.4K`` -> 12400, ``1,234`` -> 1234. Returns None when the label or a
    number on its line is missing.
    """
    for line in (text or "").splitlines():
        if label not in line:
            continue
        for token in line.split():
            if not token[:1].isdigit():
                continue
            match = _NUMBER_PATTERN.match(token)
            if not match:
                return None
            value = float(match.group(1).replace(",", ""))
            suffix = match.group(2).lower()
            return int(round(value * _MAGNITUDE_SUFFIXES.get(suffix, 1)))
        return None
    return None


def _parse_command_table(text: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    in_table = False
    for line in (text or "").splitlines():
        if line.startswith("By Command:"):
            in_table = True
            continue
        if not in_table:
            continue
        if line.startswith("─") or line.startswith("Command"):
            continue
        if not line.strip():
            in_table = False
            continue
        fields = line.split()
        if len(fields) < 5:
            continue
        count = fields[-4]
        if not _COUNT_PATTERN.match(count):
            continue
        counts[" ".join(fields[:-4])] = int(count.replace(",", ""))
    return counts


def _short_command(command: str) -> str:
    short = command[4:] if command.startswith("rtk ") else command
    if len(short) > _COMMAND_NAME_LIMIT:
        short = short[: _COMMAND_NAME_LIMIT - 3] + "..."
    return short


def diff_command_tables(baseline: str, current: str) -> str:
    """Commands whose count grew between reports, as ``name(delta), ...``."""
    before = _parse_command_table(baseline)
    parts = []
    for command, count in _parse_command_table(current).items():
        delta = count - before.get(command, 0)
        if delta > 0:
            parts.append(f"{_short_command(command)}({delta})")
    return ", ".join(parts)


def reconcile(baseline_text: str, current_text: str) -> Optional[SavingsDelta]:
    """Compute the savings delta between a baseline and a current report.

    Returns None when no command was rewritten during the session.
    """
    start_cmds = parse_savings_number(baseline_text, LABEL_COMMANDS) or 0
    end_cmds = parse_savings_number(current_text, LABEL_COMMANDS) or 0
    delta_cmds = end_cmds - start_cmds
    if delta_cmds <= 0:
        return None

    start_saved = parse_savings_number(baseline_text, LABEL_SAVED) or 0
    end_saved = parse_savings_number(current_text, LABEL_SAVED) or 0
    start_input = parse_savings_number(baseline_text, LABEL_INPUT) or 0
    end_input = parse_savings_number(current_text, LABEL_INPUT) or 0
    start_output = parse_savings_number(baseline_text, LABEL_OUTPUT) or 0
    end_output = parse_savings_number(current_text, LABEL_OUTPUT) or 0

    estimated = False
    # K/M rounding in the report hides small sessions, hence the fallbacks.
    delta_saved = end_saved - start_saved
    if delta_saved <= 0:
        delta_saved = (end_input - start_input) - (end_output - start_output)
    if delta_saved <= 0 and end_cmds > 0:
        estimated = True
        delta_saved = (end_saved // end_cmds) * delta_cmds

    delta_input = end_input - start_input
    pct = 0
    if estimated:
        if end_input > 0:
            pct = end_saved * 100 // end_input
    elif delta_input > 0:
        pct = delta_saved * 100 // delta_input

    return SavingsDelta(
        cmds=delta_cmds,
        tokens_saved=max(delta_saved, 0),
        pct=pct,
        estimated=estimated,
        commands=diff_command_tables(baseline_text, current_text),
    )


def baseline_path_for(project_dir: str, baseline_dir: Path | None = None) -> Path:
    key = (project_dir or "").replace("/", "-")
    return (baseline_dir or config.BASELINE_DIR) / f"rtk-baseline{key}.txt"


def probe_savings_tool(timeout: float = 10.0) -> Optional[str]:
    """Run ``rtk gain`` and return its report text, or None on any failure."""
    try:
        completed = subprocess.run(
            [config.SAVINGS_TOOL, "gain"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Savings tool probe failed: %s", exc)
        return None
    if completed.returncode != 0:
        logger.debug("Savings tool exited with status %s", completed.returncode)
        return None
    return completed.stdout


class SavingsTracker:
    """Consumes the single-use baseline captured at session start.

    The baseline file is keyed by project dir only; two sessions ending in
    the same project at the same time race on it and the last one wins.
    """

    def __init__(
        self,
        project_dir: str,
        baseline_dir: Path | None = None,
        probe: Callable[[], Optional[str]] = probe_savings_tool,
    ) -> None:
        self.baseline_path = baseline_path_for(project_dir, baseline_dir)
        self._probe = probe

    @classmethod
    def for_session(cls, cwd: str, environ: Mapping[str, str] | None = None, **kwargs) -> "SavingsTracker":
        env = os.environ if environ is None else environ
        project_dir = env.get("CLAUDE_PROJECT_DIR") or cwd or os.getcwd()
        return cls(project_dir, **kwargs)

    def collect(self) -> Optional[SavingsDelta]:
        with start_span("session_summary.savings", {"baseline": str(self.baseline_path)}):
            try:
                baseline_text = self.baseline_path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as exc:
                logger.warning("Failed to read savings baseline %s: %s", self.baseline_path, exc)
                return None

            current_text = self._probe()
            if current_text is None:
                return None

            try:
                return reconcile(baseline_text, current_text)
            finally:
                self._discard_baseline()

    def _discard_baseline(self) -> None:
        try:
            self.baseline_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove savings baseline %s: %s", self.baseline_path, exc)
