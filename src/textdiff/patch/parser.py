from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import List, Optional, Sequence, Tuple

from textdiff.logger import logger
from textdiff.settings.models import ParserSettings

from .models import (
    ADD_PREFIX,
    CONTEXT_PREFIX,
    DELETE_PREFIX,
    ChangeBlock,
    ErrorKind,
    PatchError,
)

HUNK_PREFIX = "@@"
HEADER_MARK = "@"
NO_NEWLINE_PREFIX = "\\"
OLD_FILE_PREFIX = "---"
NEW_FILE_PREFIX = "+++"
META_PREFIXES = ("diff ", "index ")


class LineKind(Enum):
    CONTEXT = auto()
    REMOVAL = auto()
    ADDITION = auto()
    HUNK = auto()
    IGNORED = auto()
    INVALID = auto()


class BlockParser(ABC):
    """Turns prefixed diff lines into an ordered list of change blocks."""

    @abstractmethod
    def parse(self, lines: Sequence[str]) -> Tuple[List[ChangeBlock], List[PatchError]]: ...


def classify_lines(
    lines: Sequence[str], *, blank_lines_as_context: bool = False
) -> List[LineKind]:
    """
    Assign a LineKind to every diff line.

    '---' / '+++' are file headers only as an adjacent pair, so a removed line
    whose text starts with '--' still parses as a removal.
    """
    kinds: List[LineKind] = []
    n = len(lines)
    i = 0
    while i < n:
        line = lines[i]
        if (
            line.startswith(OLD_FILE_PREFIX)
            and i + 1 < n
            and lines[i + 1].startswith(NEW_FILE_PREFIX)
        ):
            kinds.extend((LineKind.IGNORED, LineKind.IGNORED))
            i += 2
            continue
        kinds.append(_classify(line, blank_lines_as_context))
        i += 1
    return kinds


def _classify(line: str, blank_lines_as_context: bool) -> LineKind:
    if not line:
        return LineKind.CONTEXT if blank_lines_as_context else LineKind.IGNORED
    first = line[0]
    if first == CONTEXT_PREFIX:
        return LineKind.CONTEXT
    if first == DELETE_PREFIX:
        return LineKind.REMOVAL
    if first == ADD_PREFIX:
        return LineKind.ADDITION
    if line.startswith(HUNK_PREFIX):
        return LineKind.HUNK
    if first in (HEADER_MARK, NO_NEWLINE_PREFIX) or line.startswith(META_PREFIXES):
        return LineKind.IGNORED
    return LineKind.INVALID


def has_diff_lines(kinds: Sequence[LineKind]) -> bool:
    return any(k in (LineKind.CONTEXT, LineKind.REMOVAL, LineKind.ADDITION) for k in kinds)


def format_errors(lines: Sequence[str], kinds: Sequence[LineKind]) -> List[PatchError]:
    errors: List[PatchError] = []
    for idx, kind in enumerate(kinds):
        if kind != LineKind.INVALID:
            continue
        errors.append(
            PatchError(
                kind=ErrorKind.invalid_format,
                msg=f"Invalid diff line format: {lines[idx]!r}",
                line=idx + 1,
                hint="Diff lines must start with ' ', '+', '-', '@@' or '\\'",
            )
        )
    return errors


class DiffBlockParser(BlockParser):
    def __init__(self, settings: Optional[ParserSettings] = None):
        self._settings = settings or ParserSettings()

    def parse(self, lines: Sequence[str]) -> Tuple[List[ChangeBlock], List[PatchError]]:
        kinds = classify_lines(
            lines, blank_lines_as_context=self._settings.blank_lines_as_context
        )
        errors = format_errors(lines, kinds)
        if errors:
            return [], errors

        more_changes = _changes_ahead(kinds)
        blocks: List[ChangeBlock] = []

        before: List[str] = []
        removals: List[str] = []
        additions: List[str] = []
        after: List[str] = []
        in_changes = False

        def close_block() -> None:
            nonlocal before, removals, additions, after, in_changes
            if removals or additions:
                blocks.append(
                    ChangeBlock(
                        before_context=tuple(before),
                        removals=tuple(removals),
                        additions=tuple(additions),
                        after_context=tuple(after),
                    )
                )
            before, removals, additions, after = [], [], [], []
            in_changes = False

        for idx, (line, kind) in enumerate(zip(lines, kinds)):
            if kind == LineKind.IGNORED:
                continue
            if kind == LineKind.HUNK:
                close_block()
                continue

            content = line[1:]
            if kind == LineKind.CONTEXT:
                if not in_changes:
                    before.append(content)
                elif more_changes[idx]:
                    close_block()
                    before.append(content)
                else:
                    after.append(content)
            elif kind == LineKind.REMOVAL:
                in_changes = True
                removals.append(content)
            else:
                in_changes = True
                additions.append(content)

        close_block()
        logger.debug("Parsed diff blocks", lines=len(lines), blocks=len(blocks))
        return blocks, []


def _changes_ahead(kinds: Sequence[LineKind]) -> List[bool]:
    """
    For each index, whether a removal/addition follows it before the next hunk header.
    """
    ahead = [False] * len(kinds)
    seen = False
    for idx in range(len(kinds) - 1, -1, -1):
        ahead[idx] = seen
        kind = kinds[idx]
        if kind == LineKind.HUNK:
            seen = False
        elif kind in (LineKind.REMOVAL, LineKind.ADDITION):
            seen = True
    return ahead
