from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


CONTEXT_PREFIX = " "
DELETE_PREFIX = "-"
ADD_PREFIX = "+"


class ErrorKind(str, Enum):
    invalid_input = "invalid_input"
    invalid_format = "invalid_format"
    no_match = "no_match"
    cancelled = "cancelled"


class FileApplyStatus(str, Enum):
    Create = "create"
    Update = "update"
    Delete = "delete"


@dataclass(frozen=True)
class ChangeBlock:
    """
    One grouped unit of a parsed diff:
    - before_context: lines expected right before the change, used for positioning
    - removals: lines expected to be replaced or deleted
    - additions: lines to insert
    - after_context: lines expected right after the change
    """

    before_context: tuple[str, ...] = ()
    removals: tuple[str, ...] = ()
    additions: tuple[str, ...] = ()
    after_context: tuple[str, ...] = ()

    def has_changes(self) -> bool:
        return bool(self.removals or self.additions)

    def render(self) -> str:
        """Render the block back in diff form for diagnostics."""
        out: List[str] = []
        out.extend(f"{CONTEXT_PREFIX}{line}" for line in self.before_context)
        out.extend(f"{DELETE_PREFIX}{line}" for line in self.removals)
        out.extend(f"{ADD_PREFIX}{line}" for line in self.additions)
        out.extend(f"{CONTEXT_PREFIX}{line}" for line in self.after_context)
        return "\n".join(out)


@dataclass
class ChangeStats:
    changed: int = 0
    added: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.changed + self.added + self.deleted


@dataclass(frozen=True)
class ProcessResult:
    text: str
    stats: ChangeStats


@dataclass(frozen=True)
class MatchCandidate:
    position: int
    score: float


@dataclass
class PatchError:
    kind: ErrorKind
    msg: str
    line: Optional[int] = None
    hint: Optional[str] = None
    block: Optional[ChangeBlock] = None
    filename: Optional[str] = None

    def describe(self) -> str:
        loc = ""
        if self.filename and self.line is not None:
            loc = f"{self.filename}:{self.line}: "
        elif self.filename:
            loc = f"{self.filename}: "
        elif self.line is not None:
            loc = f"line {self.line}: "
        text = f"{loc}{self.msg}"
        if self.hint:
            text = f"{text}\n{self.hint}"
        return text


@dataclass(frozen=True)
class ProcessingProgress:
    stage: str
    processed: int
    total: int

    @property
    def percent_complete(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.processed / self.total * 100.0

