from __future__ import annotations

import dataclasses
from typing import Callable, Dict, List, Optional, Tuple

from textdiff.logger import logger
from textdiff.settings.models import DifferSettings, OutputSettings

from .applier import BlockApplier, apply_blocks
from .differ import TextDiffer, process
from .diffx import DiffXFileEntry, DiffXReader, extract_plain_diffs, select_entry
from .errors import (
    InvalidDiffFormatError,
    InvalidInputError,
    NoMatchError,
    ProcessingCancelled,
    TextDiffError,
)
from .lines import (
    extract_indentation,
    lines_similar,
    normalize_whitespace,
    remove_indentation,
    split_lines,
)
from .matcher import ContextMatcher, PositionMatcher
from .models import (
    ChangeBlock,
    ChangeStats,
    ErrorKind,
    FileApplyStatus,
    MatchCandidate,
    PatchError,
    ProcessingProgress,
    ProcessResult,
)
from .parser import BlockParser, DiffBlockParser
from .sinks import BufferSink, LineSink, StreamSink
from .tracker import ChangeTracker, LineChangeTracker

OP_CREATE = "create"
OP_MODIFY = "modify"
OP_DELETE = "delete"


def _file_error(err: PatchError, filename: str) -> PatchError:
    return dataclasses.replace(err, filename=filename)


def _default_differ() -> TextDiffer:
    # Files keep '\n' endings; CRLF documents are normalized on the way through.
    return TextDiffer(settings=DifferSettings(output=OutputSettings(line_separator="\n")))


def process_diffx_files(
    text: str,
    open_fn: Callable[[str], str],
    write_fn: Callable[[str, str], None],
    delete_fn: Callable[[str], None],
    differ: Optional[TextDiffer] = None,
) -> Tuple[Dict[str, FileApplyStatus], Dict[str, ChangeStats], List[PatchError]]:
    """
    Apply every file entry of a DiffX document through the given callbacks.
    A failing entry is reported and the remaining entries are still applied.
    Returns (statuses, stats, errors).
    """
    differ = differ or _default_differ()
    entries = DiffXReader().extract_file_diffs(text)

    statuses: Dict[str, FileApplyStatus] = {}
    stats: Dict[str, ChangeStats] = {}
    errors: List[PatchError] = []

    for entry in entries:
        if not entry.path:
            errors.append(
                PatchError(
                    kind=ErrorKind.invalid_input,
                    msg="DiffX file entry has no path",
                    hint=f"Entry diff starts with: {entry.diff_content.splitlines()[0]!r}",
                )
            )
            continue
        # DiffX paths are repository-rooted ('/src/main.py').
        rel = entry.path.lstrip("/")
        op = (entry.operation or OP_MODIFY).lower()

        if entry.is_binary:
            errors.append(
                PatchError(
                    kind=ErrorKind.invalid_format,
                    msg="Cannot process binary diff",
                    filename=rel,
                )
            )
            continue

        try:
            if op == OP_DELETE:
                delete_fn(rel)
                statuses[rel] = FileApplyStatus.Delete
                stats[rel] = ChangeStats()
                continue
            if op == OP_CREATE:
                document = ""
            elif op == OP_MODIFY:
                try:
                    document = open_fn(rel)
                except FileNotFoundError:
                    errors.append(
                        PatchError(
                            kind=ErrorKind.invalid_input,
                            msg="File not found",
                            hint="Use op 'create' for new files",
                            filename=rel,
                        )
                    )
                    continue
            else:
                errors.append(
                    PatchError(
                        kind=ErrorKind.invalid_input,
                        msg=f"Unsupported DiffX operation: {op}",
                        filename=rel,
                    )
                )
                continue

            result, errs = differ.try_process(document, entry.diff_content)
            if errs or result is None:
                errors.extend(_file_error(e, rel) for e in errs)
                continue
            write_fn(rel, result.text)
        except TextDiffError as e:
            errors.append(_file_error(e.error, rel))
            continue

        statuses[rel] = FileApplyStatus.Create if op == OP_CREATE else FileApplyStatus.Update
        stats[rel] = result.stats

    logger.debug(
        "Applied DiffX document", entries=len(entries), applied=len(statuses), errors=len(errors)
    )
    return statuses, stats, errors


__all__ = [
    "BlockApplier",
    "BlockParser",
    "BufferSink",
    "ChangeBlock",
    "ChangeStats",
    "ChangeTracker",
    "ContextMatcher",
    "DiffBlockParser",
    "DiffXFileEntry",
    "DiffXReader",
    "ErrorKind",
    "FileApplyStatus",
    "InvalidDiffFormatError",
    "InvalidInputError",
    "LineChangeTracker",
    "LineSink",
    "MatchCandidate",
    "NoMatchError",
    "PatchError",
    "PositionMatcher",
    "ProcessResult",
    "ProcessingCancelled",
    "ProcessingProgress",
    "StreamSink",
    "TextDiffError",
    "TextDiffer",
    "apply_blocks",
    "extract_indentation",
    "extract_plain_diffs",
    "lines_similar",
    "normalize_whitespace",
    "process",
    "process_diffx_files",
    "remove_indentation",
    "select_entry",
    "split_lines",
]
