from .models import (
    DifferSettings,
    LoggingSettings,
    LogLevel,
    MatcherSettings,
    OutputSettings,
    ParserSettings,
    load_settings,
)

__all__ = [
    "DifferSettings",
    "LoggingSettings",
    "LogLevel",
    "MatcherSettings",
    "OutputSettings",
    "ParserSettings",
    "load_settings",
]
