"""Number/duration formatting, ANSI palette and the report sink."""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Mapping, TextIO

TTY_PATH = "/dev/tty"


@dataclass(frozen=True)
class Palette:
    bold: str = ""
    dim: str = ""
    cyan: str = ""
    green: str = ""
    yellow: str = ""
    red: str = ""
    reset: str = ""

    @classmethod
    def ansi(cls) -> "Palette":
        return cls(
            bold="\033[1m",
            dim="\033[2m",
            cyan="\033[36m",
            green="\033[32m",
            yellow="\033[33m",
            red="\033[31m",
            reset="\033[0m",
        )

    @classmethod
    def plain(cls) -> "Palette":
        return cls()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Palette":
        env = os.environ if environ is None else environ
        return cls.plain() if env.get("NO_COLOR") else cls.ansi()


def format_duration(ms: int) -> str:
    seconds = max(0, int(ms)) // 1000
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_number(num: int) -> str:
    """Compact count: 1234 -> 1.2K, 3_950_000 -> 3.9M (truncated, not rounded)."""
    num = int(num)
    if num >= 1_000_000:
        return f"{num // 1_000_000}.{(num % 1_000_000) // 100_000}M"
    if num >= 1_000:
        return f"{num // 1_000}.{(num % 1_000) // 100}K"
    return str(num)


def plural(count: int, singular: str, plural_form: str | None = None) -> str:
    return singular if count == 1 else (plural_form or f"{singular}s")


def open_report_sink() -> tuple[TextIO, bool]:
    """The controlling terminal when writable, else stderr; the flag says whether to close it."""
    try:
        return open(TTY_PATH, "w", encoding="utf-8"), True
    except OSError:
        return sys.stderr, False


def write_report(text: str) -> None:
    sink, owned = open_report_sink()
    try:
        sink.write(text + "\n")
        sink.flush()
    finally:
        if owned:
            sink.close()
