from pathlib import Path
import os

import pytest
from pydantic import ValidationError

from textdiff.patch import TextDiffer
from textdiff.settings import (
    DifferSettings,
    LogLevel,
    MatcherSettings,
    OutputSettings,
    load_settings,
)
from textdiff.settings.models import LOG_LEVEL_ENV_VAR, SETTINGS_ENV_VAR


def _write_tmp(tmp_path: Path, text: str, name: str = "textdiff.yaml") -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    monkeypatch.delenv(SETTINGS_ENV_VAR, raising=False)
    monkeypatch.delenv(LOG_LEVEL_ENV_VAR, raising=False)


def test_defaults() -> None:
    settings = load_settings()

    assert settings.matcher.continuity_weight == 2.0
    assert settings.matcher.context_weight == 1.0
    assert settings.matcher.pattern_weight == 0.5
    assert settings.matcher.selection_ratio == 0.8
    assert settings.matcher.weight_sum == 3.5
    assert settings.parser.blank_lines_as_context is False
    assert settings.output.line_separator == os.linesep
    assert settings.logging.default_level == LogLevel.warning


def test_yaml_file(tmp_path: Path) -> None:
    cfg = """
matcher:
  selection_ratio: 0.5
  context_window: 3
parser:
  blank_lines_as_context: true
output:
  line_separator: "\\r\\n"
logging:
  default_level: debug
  enabled_loggers:
    textdiff.patch: info
"""
    settings = load_settings(str(_write_tmp(tmp_path, cfg)))

    assert settings.matcher.selection_ratio == 0.5
    assert settings.matcher.context_window == 3
    assert settings.matcher.continuity_weight == 2.0
    assert settings.parser.blank_lines_as_context is True
    assert settings.output.line_separator == "\r\n"
    assert settings.logging.default_level == LogLevel.debug
    assert settings.logging.enabled_loggers == {"textdiff.patch": LogLevel.info}


def test_json5_file(tmp_path: Path) -> None:
    cfg = """
{
  // comments and trailing commas are allowed
  matcher: { pattern_weight: 0.0, },
}
"""
    settings = load_settings(_write_tmp(tmp_path, cfg, "textdiff.json5"))
    assert settings.matcher.pattern_weight == 0.0


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    settings = load_settings(str(_write_tmp(tmp_path, "")))
    assert settings == DifferSettings()


def test_env_var_points_to_file(tmp_path: Path, monkeypatch) -> None:
    path = _write_tmp(tmp_path, "matcher:\n  context_window: 4\n")
    monkeypatch.setenv(SETTINGS_ENV_VAR, str(path))

    assert load_settings().matcher.context_window == 4


def test_env_log_level_override(tmp_path: Path, monkeypatch) -> None:
    path = _write_tmp(tmp_path, "logging:\n  default_level: error\n")
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "DEBUG")

    assert load_settings(str(path)).logging.default_level == LogLevel.debug


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "absent.yaml"))


def test_non_mapping_and_unknown_extension_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_settings(str(_write_tmp(tmp_path, "- a\n- b\n")))
    with pytest.raises(ValueError):
        load_settings(str(_write_tmp(tmp_path, "x = 1", "textdiff.toml")))


def test_invalid_values_raise_validation_error() -> None:
    with pytest.raises(ValidationError):
        MatcherSettings(continuity_weight=0.0, context_weight=0.0, pattern_weight=0.0)
    with pytest.raises(ValidationError):
        MatcherSettings(selection_ratio=1.5)
    with pytest.raises(ValidationError):
        OutputSettings(line_separator="\r")


def test_settings_flow_into_differ() -> None:
    settings = DifferSettings(output=OutputSettings(line_separator="\r\n"))
    result = TextDiffer(settings=settings).process("a\nb\nc", " a\n-b\n+B")
    assert result.text == "a\r\nB\r\nc"
