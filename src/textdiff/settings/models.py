from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Final, Optional, Union

import json5  # type: ignore
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

# Environment variable naming a default YAML settings file.
SETTINGS_ENV_VAR: Final[str] = "TEXTDIFF_SETTINGS"
# Environment variable overriding logging.default_level.
LOG_LEVEL_ENV_VAR: Final[str] = "TEXTDIFF_LOG_LEVEL"


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"
    disabled = "disabled"


class LoggingSettings(BaseModel):
    # Level for the textdiff logger hierarchy if not overridden.
    default_level: LogLevel = LogLevel.warning
    # Mapping of logger name -> level override (e.g., {"textdiff.patch": "debug"})
    enabled_loggers: Dict[str, LogLevel] = Field(default_factory=dict)


class MatcherSettings(BaseModel):
    """
    Scoring knobs for the context matcher.

    - *_weight: weights of the continuity, context and pattern sub-scores
    - selection_ratio: candidates scoring at least this share of the best score are kept
    - context_window: number of document lines inspected around a candidate
    - progressive_*: a block with at most progressive_context_max context lines and
      at least progressive_change_min removals or additions decays continuity faster
    - *_decay: distance at which the continuity score reaches its floor
    """

    continuity_weight: float = Field(2.0, ge=0.0)
    context_weight: float = Field(1.0, ge=0.0)
    pattern_weight: float = Field(0.5, ge=0.0)
    selection_ratio: float = Field(0.8, gt=0.0, le=1.0)
    context_window: int = Field(2, ge=0)
    progressive_context_max: int = Field(2, ge=0)
    progressive_change_min: int = Field(3, ge=1)
    continuity_decay: float = Field(50.0, gt=0.0)
    progressive_decay: float = Field(20.0, gt=0.0)
    continuity_floor: float = Field(0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_weights(self) -> "MatcherSettings":
        if self.continuity_weight + self.context_weight + self.pattern_weight <= 0:
            raise ValueError("Matcher weights must have a positive sum")
        return self

    @property
    def weight_sum(self) -> float:
        return self.continuity_weight + self.context_weight + self.pattern_weight


class ParserSettings(BaseModel):
    # Treat a completely empty diff line as a blank context line instead of skipping it.
    blank_lines_as_context: bool = False


class OutputSettings(BaseModel):
    line_separator: str = Field(default_factory=lambda: os.linesep)

    @field_validator("line_separator")
    @classmethod
    def _validate_separator(cls, v: str) -> str:
        if v not in ("\n", "\r\n"):
            raise ValueError(f"Unsupported line separator {v!r}")
        return v


class DifferSettings(BaseModel):
    matcher: MatcherSettings = Field(default_factory=MatcherSettings)
    parser: ParserSettings = Field(default_factory=ParserSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _load_raw_file(path: Path) -> Any:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif ext in {".json5", ".jsonc", ".json"}:
        data = json5.loads(text)
    else:
        raise ValueError(f"Unsupported settings file extension: {ext}")
    if data is None:
        return {}
    return data


def load_settings(path: Optional[Union[str, os.PathLike]] = None) -> DifferSettings:
    """
    Load DifferSettings from a YAML or JSON5 mapping.

    Lookup order: explicit path, then $TEXTDIFF_SETTINGS, then built-in defaults.
    $TEXTDIFF_LOG_LEVEL overrides logging.default_level.
    """
    source = path or os.environ.get(SETTINGS_ENV_VAR)
    data: Dict[str, Any] = {}
    if source:
        config_path = Path(source)
        if not config_path.exists():
            raise FileNotFoundError(f"Settings file not found: {config_path}")
        loaded = _load_raw_file(config_path)
        if not isinstance(loaded, dict):
            raise ValueError(f"Settings file must contain a mapping: {config_path}")
        data = loaded

    level_override = os.environ.get(LOG_LEVEL_ENV_VAR)
    if level_override:
        logging_data = dict(data.get("logging") or {})
        logging_data["default_level"] = level_override.strip().lower()
        data = {**data, "logging": logging_data}

    return DifferSettings.model_validate(data)
