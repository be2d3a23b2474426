"""Settings file loading and validation."""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

DEFAULT_PAGER = "delta --paging=never"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Settings file is unreadable or invalid."""


@dataclass(frozen=True)
class Settings:
    """User preferences for the dashboard."""

    commit_count: int = 5
    performance_tracking: bool = False
    diff_pager: str = DEFAULT_PAGER
    editor: str | None = None
    log_level: str = "WARNING"

    def editor_command(self) -> str:
        return self.editor or os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"


def config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "gitcast"


def settings_path(override: Path | None = None) -> Path:
    if override is not None:
        return override
    env = os.environ.get("GITCAST_CONFIG")
    if env:
        return Path(env)
    return config_dir() / "settings.json"


def _load_raw(path: Path) -> dict[str, object]:
    if not path.is_file():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid settings format in {path}")
    return raw


def _expect_int(value: object, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"Invalid {key} in settings: expected a positive integer.")
    return value


def _expect_bool(value: object, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"Invalid {key} in settings: expected true or false.")
    return value


def _expect_str(value: object, key: str, allow_none: bool = False) -> str | None:
    if value is None and allow_none:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"Invalid {key} in settings: expected a string.")
    return value


def load_settings(path: Path | None = None) -> Settings:
    """Load settings, falling back to defaults for missing keys."""
    raw = _load_raw(settings_path(path))
    defaults = Settings()
    values: dict[str, object] = {}

    if "commit_count" in raw:
        values["commit_count"] = _expect_int(raw["commit_count"], "commit_count")
    if "performance_tracking" in raw:
        values["performance_tracking"] = _expect_bool(
            raw["performance_tracking"], "performance_tracking"
        )
    if "diff_pager" in raw:
        values["diff_pager"] = (_expect_str(raw["diff_pager"], "diff_pager") or "").strip()
    if "editor" in raw:
        values["editor"] = _expect_str(raw["editor"], "editor", allow_none=True)
    if "log_level" in raw:
        level = (_expect_str(raw["log_level"], "log_level") or "").upper()
        if level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level in settings: {level or 'empty'}.")
        values["log_level"] = level

    unknown = sorted(set(raw) - set(asdict(defaults)))
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(unknown)}")
    return Settings(**values)  # type: ignore[arg-type]
