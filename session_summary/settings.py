"""Layered settings: built-in defaults < persisted config file < environment."""
from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional

from pydantic import BaseModel, Field

from session_summary import config

logger = logging.getLogger("session_summary.settings")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
AUTO = "auto"


class SettingsError(ValueError):
    """Raised for user-facing configuration mistakes (bad key, bad syntax)."""


class Section(str, Enum):
    META = "meta"
    DURATION = "duration"
    TOOLS = "tools"
    ERRORS = "errors"
    FILES = "files"
    FEATURES = "features"
    GIT = "git"
    LOC = "loc"
    MODELS = "models"
    CACHE = "cache"
    COST = "cost"
    SAVINGS = "rtk"
    RATIO = "ratio"
    THINKING = "thinking"
    CONTEXT = "context"

    @classmethod
    def lookup(cls, name: str) -> Optional["Section"]:
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


# Config key gating each section; None means always on.
SECTION_TOGGLES: dict[Section, Optional[str]] = {
    Section.META: None,
    Section.DURATION: None,
    Section.TOOLS: None,
    Section.ERRORS: "ERRORS",
    Section.FILES: "FILES",
    Section.FEATURES: "FEATURES",
    Section.GIT: "GIT",
    Section.LOC: "LOC",
    Section.MODELS: None,
    Section.CACHE: None,
    Section.COST: None,
    Section.SAVINGS: "RTK",
    Section.RATIO: "RATIO",
    Section.THINKING: "THINKING",
    Section.CONTEXT: "CONTEXT",
}

SECTION_DESCRIPTIONS: dict[Section, str] = {
    Section.META: "Session ID, name, branch",
    Section.DURATION: "Wall time, active time, turns, exit reason",
    Section.TOOLS: "Tool calls breakdown (OK/ERR)",
    Section.ERRORS: "Error details by tool",
    Section.FILES: "Files read/edited/created",
    Section.FEATURES: "MCP servers, agents, skills, teams",
    Section.GIT: "Git diff summary (+/- lines)",
    Section.LOC: "Lines of code via Edit/Write",
    Section.MODELS: "Model usage (reqs, tokens)",
    Section.CACHE: "Cache hit rate",
    Section.COST: "Estimated session cost",
    Section.SAVINGS: "RTK token savings",
    Section.RATIO: "Conversation ratio (interactive/auto)",
    Section.THINKING: "Thinking blocks count",
    Section.CONTEXT: "Context window estimate",
}

DEFAULT_SECTIONS = ",".join(section.value for section in Section)

CONFIG_KEYS = (
    "LOG_DIR",
    "SKIP",
    "FILES",
    "RTK",
    "GIT",
    "ERRORS",
    "LOC",
    "RATIO",
    "FEATURES",
    "THINKING",
    "CONTEXT",
    "SECTIONS",
)
_TOGGLE_KEYS = {"SKIP", "FILES", "GIT", "ERRORS", "LOC", "RATIO", "FEATURES", "THINKING", "CONTEXT"}
_QUOTED_KEYS = {"LOG_DIR", "SECTIONS"}


def env_name_for(key: str) -> str:
    if key == "LOG_DIR":
        return f"{config.ENV_PREFIX}LOG"
    return f"{config.ENV_PREFIX}{key}"


class SettingsLayer(BaseModel):
    """One partial configuration source; None means "not set in this layer"."""

    log_dir: Optional[str] = None
    skip: Optional[str] = None
    files: Optional[str] = None
    rtk: Optional[str] = None
    git: Optional[str] = None
    errors: Optional[str] = None
    loc: Optional[str] = None
    ratio: Optional[str] = None
    features: Optional[str] = None
    thinking: Optional[str] = None
    context: Optional[str] = None
    sections: Optional[str] = None

    def get(self, key: str) -> Optional[str]:
        return getattr(self, key.lower())

    def with_value(self, key: str, value: str) -> "SettingsLayer":
        return self.model_copy(update={key.lower(): value})


def default_layer() -> SettingsLayer:
    return SettingsLayer(
        log_dir=config.DEFAULT_LOG_DIR,
        skip="0",
        files="1",
        rtk=AUTO,
        git="1",
        errors="1",
        loc="1",
        ratio="1",
        features="1",
        thinking="0",
        context="0",
        sections=DEFAULT_SECTIONS,
    )


def merge_layers(*layers: SettingsLayer) -> SettingsLayer:
    """Merge left to right; the last non-empty value for each key wins."""
    merged: dict[str, str] = {}
    for layer in layers:
        for key in CONFIG_KEYS:
            value = layer.get(key)
            if value is not None and value != "":
                merged[key.lower()] = value
    return SettingsLayer(**merged)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def parse_config_text(text: str) -> SettingsLayer:
    """Parse ``KEY=VALUE`` lines; comments, malformed lines and unknown keys are ignored."""
    values: dict[str, str] = {}
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].strip()
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip().upper()
        if key not in CONFIG_KEYS:
            continue
        values[key.lower()] = _unquote(value)
    return SettingsLayer(**values)


def load_file_layer(path: Path | None = None) -> SettingsLayer:
    config_file = path or config.CONFIG_FILE
    try:
        text = config_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return SettingsLayer()
    except OSError as exc:
        logger.warning("Failed to read config file %s: %s", config_file, exc)
        return SettingsLayer()
    return parse_config_text(text)


def load_env_layer(environ: Mapping[str, str] | None = None) -> SettingsLayer:
    env = os.environ if environ is None else environ
    values = {}
    for key in CONFIG_KEYS:
        value = env.get(env_name_for(key))
        if value:
            values[key.lower()] = value
    return SettingsLayer(**values)


def render_config_text(layer: SettingsLayer, now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    lines = [
        "# Session Summary Configuration",
        "# Generated by session-summary-config",
        f"# {stamp}",
        "",
    ]
    for key in CONFIG_KEYS:
        value = layer.get(key) or ""
        if key in _QUOTED_KEYS:
            lines.append(f'{key}="{value}"')
        else:
            lines.append(f"{key}={value}")
    return "\n".join(lines) + "\n"


def write_config_file(layer: SettingsLayer, path: Path | None = None) -> Path:
    config_file = path or config.CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(render_config_text(layer), encoding="utf-8")
    return config_file


def validate_assignment(key: str, value: str) -> str:
    """Normalize a user-supplied key and check its value; raises SettingsError."""
    normalized = key.strip().upper()
    if normalized not in CONFIG_KEYS:
        raise SettingsError(f"Unknown key '{normalized}'. Valid keys: {' '.join(CONFIG_KEYS)}")
    lowered = value.strip().lower()
    if normalized in _TOGGLE_KEYS and lowered not in _TRUE_VALUES | _FALSE_VALUES:
        raise SettingsError(f"Invalid value '{value}' for {normalized}. Use 1 or 0")
    if normalized == "RTK" and lowered not in _TRUE_VALUES | _FALSE_VALUES | {AUTO}:
        raise SettingsError(f"Invalid value '{value}' for RTK. Use auto, 1 or 0")
    return normalized


def parse_section_order(value: str | None) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def is_on(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


class RenderConfig(BaseModel):
    """Resolved toggle state and ordered section list for one run."""

    toggles: dict[str, bool] = Field(default_factory=dict)
    order: list[str] = Field(default_factory=list)

    def is_enabled(self, section: Section) -> bool:
        key = SECTION_TOGGLES[section]
        if key is None:
            return True
        return self.toggles.get(key, False)

    def sections(self) -> list[Section]:
        """Configured order restricted to known, enabled sections."""
        resolved = []
        for name in self.order:
            section = Section.lookup(name)
            if section is not None and self.is_enabled(section):
                resolved.append(section)
        return resolved


class RuntimeSettings(BaseModel):
    log_dir: Path
    skip: bool = False
    render: RenderConfig = Field(default_factory=RenderConfig)

    @property
    def log_file(self) -> Path:
        return self.log_dir / config.LOG_FILENAME


def resolve_toggle(key: str, value: str | None, which: Callable[[str], Optional[str]] = shutil.which) -> bool:
    if key == "RTK" and (value or "").strip().lower() == AUTO:
        return which(config.SAVINGS_TOOL) is not None
    return is_on(value)


def build_render_config(
    layer: SettingsLayer,
    which: Callable[[str], Optional[str]] = shutil.which,
    auto_enabled: bool | None = None,
) -> RenderConfig:
    """Resolve toggles; ``auto_enabled`` short-circuits the tool probe (used by preview)."""
    toggles = {}
    for key in sorted(_TOGGLE_KEYS - {"SKIP"}) + ["RTK"]:
        value = layer.get(key)
        if key == "RTK" and auto_enabled is not None and (value or "").lower() == AUTO:
            toggles[key] = auto_enabled
        else:
            toggles[key] = resolve_toggle(key, value, which)
    return RenderConfig(toggles=toggles, order=parse_section_order(layer.sections))


def stored_settings(config_file: Path | None = None) -> SettingsLayer:
    """Defaults overlaid with the config file; ``auto`` is left unresolved."""
    return merge_layers(default_layer(), load_file_layer(config_file))


def resolve_settings(
    environ: Mapping[str, str] | None = None,
    config_file: Path | None = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> RuntimeSettings:
    layer = merge_layers(default_layer(), load_file_layer(config_file), load_env_layer(environ))
    return RuntimeSettings(
        log_dir=Path(layer.log_dir or config.DEFAULT_LOG_DIR).expanduser(),
        skip=is_on(layer.skip),
        render=build_render_config(layer, which),
    )
