from textdiff.patch import (
    ChangeBlock,
    ChangeStats,
    DiffXFileEntry,
    DiffXReader,
    InvalidDiffFormatError,
    InvalidInputError,
    NoMatchError,
    PatchError,
    ProcessingCancelled,
    ProcessingProgress,
    ProcessResult,
    TextDiffError,
    TextDiffer,
    process,
)
from textdiff.settings import DifferSettings, load_settings

__version__ = "0.1.0"

__all__ = [
    "ChangeBlock",
    "ChangeStats",
    "DiffXFileEntry",
    "DiffXReader",
    "DifferSettings",
    "InvalidDiffFormatError",
    "InvalidInputError",
    "NoMatchError",
    "PatchError",
    "ProcessResult",
    "ProcessingCancelled",
    "ProcessingProgress",
    "TextDiffError",
    "TextDiffer",
    "load_settings",
    "process",
]
