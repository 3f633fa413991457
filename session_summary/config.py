"""session-summary configuration constants."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = (os.getenv(name) or "").strip()
    return Path(value).expanduser() if value else default


HOME = Path.home()

# Host application data
CLAUDE_DIR = _env_path("SESSION_SUMMARY_CLAUDE_DIR", HOME / ".claude")
PROJECTS_DIR = CLAUDE_DIR / "projects"
SESSIONS_INDEX_FILENAME = "sessions-index.json"

# Persisted key/value configuration
CONFIG_DIR = _env_path("SESSION_SUMMARY_CONFIG_DIR", HOME / ".config" / "session-summary")
CONFIG_FILE = CONFIG_DIR / "config.sh"
ENV_PREFIX = "SESSION_SUMMARY_"

# History log
DEFAULT_LOG_DIR = str(CLAUDE_DIR / "logs")
LOG_FILENAME = "session-summaries.jsonl"

# External collaborators
SAVINGS_TOOL = "rtk"
ACCOUNTING_TOOL = "ccusage"
ACCOUNTING_TIMEOUT_SECONDS = _env_int("SESSION_SUMMARY_ACCOUNTING_TIMEOUT", 5)
BASELINE_DIR = _env_path("SESSION_SUMMARY_BASELINE_DIR", Path("/tmp"))

# Rendering
CONTEXT_LIMIT_TOKENS = _env_int("SESSION_SUMMARY_CONTEXT_LIMIT", 200_000)

# Diagnostics
DEBUG = _env_bool("SESSION_SUMMARY_DEBUG", False)
OTEL_ENABLED = _env_bool("SESSION_SUMMARY_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("SESSION_SUMMARY_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("SESSION_SUMMARY_OTEL_SERVICE_NAME", "session-summary")
