import json
import logging
from pathlib import Path

import pytest

from gitcast.config import DEFAULT_PAGER, ConfigError, Settings, load_settings, settings_path
from gitcast.log import setup_logging


def _write(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data))
    return path


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "absent.json")
    assert settings == Settings()
    assert settings.commit_count == 5
    assert settings.diff_pager == DEFAULT_PAGER
    assert not settings.performance_tracking


def test_partial_file_overrides_defaults(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "settings.json",
        {"commit_count": 12, "diff_pager": "  less -R ", "log_level": "debug"},
    )

    settings = load_settings(path)

    assert settings.commit_count == 12
    assert settings.diff_pager == "less -R"
    assert settings.log_level == "DEBUG"
    assert settings.editor is None


@pytest.mark.parametrize(
    "data, message",
    [
        ({"commit_count": 0}, "commit_count"),
        ({"commit_count": True}, "commit_count"),
        ({"performance_tracking": "yes"}, "performance_tracking"),
        ({"diff_pager": 3}, "diff_pager"),
        ({"log_level": "loud"}, "log_level"),
        ({"colour": "red"}, "Unknown settings: colour"),
        (["not", "a", "mapping"], "Invalid settings format"),
    ],
)
def test_invalid_values_are_rejected(tmp_path: Path, data: object, message: str) -> None:
    path = _write(tmp_path / "settings.json", data)
    with pytest.raises(ConfigError, match=message):
        load_settings(path)


def test_broken_json(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError, match="Invalid JSON"):
        load_settings(path)


def test_settings_path_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITCAST_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert settings_path() == tmp_path / "xdg" / "gitcast" / "settings.json"

    monkeypatch.setenv("GITCAST_CONFIG", str(tmp_path / "env.json"))
    assert settings_path() == tmp_path / "env.json"
    assert settings_path(tmp_path / "flag.json") == tmp_path / "flag.json"


def test_editor_command_prefers_setting(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VISUAL", "code -w")
    assert Settings(editor="nano").editor_command() == "nano"
    assert Settings().editor_command() == "code -w"
    monkeypatch.delenv("VISUAL")
    monkeypatch.delenv("EDITOR", raising=False)
    assert Settings().editor_command() == "vi"


def test_setup_logging_writes_rotating_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "gitcast.log"
    logger = setup_logging("info", log_file)

    logging.getLogger("gitcast.runner").info("hello from runner")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert "gitcast.runner - INFO - hello from runner" in log_file.read_text()

    setup_logging("warning", log_file)
    assert len(logging.getLogger("gitcast").handlers) == 1
