from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Generator, List, Optional, Sequence, TextIO, Tuple, Union

from textdiff.logger import apply_logging_settings, logger
from textdiff.settings.models import DifferSettings

from .applier import BlockApplier
from .diffx import DiffXReader, extract_plain_diffs, select_entry
from .errors import TextDiffError
from .lines import split_lines
from .matcher import ContextMatcher, PositionMatcher
from .models import (
    ChangeBlock,
    ChangeStats,
    ErrorKind,
    PatchError,
    ProcessingProgress,
    ProcessResult,
)
from .parser import BlockParser, DiffBlockParser, classify_lines, has_diff_lines
from .sinks import BufferSink, LineSink, StreamSink
from .tracker import ChangeTracker, LineChangeTracker

ProgressCallback = Callable[[ProcessingProgress], None]
CancelCheck = Callable[[], bool]

STAGE_PARSED = "Parsed diff"
STAGE_APPLYING = "Applying blocks"


@dataclass
class _Prepared:
    document_lines: List[str]
    blocks: List[ChangeBlock]


def _invalid_input(msg: str) -> PatchError:
    return PatchError(kind=ErrorKind.invalid_input, msg=msg)


def _cancelled(done: int, total: int) -> PatchError:
    return PatchError(
        kind=ErrorKind.cancelled,
        msg=f"Processing cancelled after {done} of {total} blocks",
    )


def _read_text(source: Union[str, TextIO, None]) -> Optional[str]:
    if source is None or isinstance(source, str):
        return source
    return source.read()


class TextDiffer:
    """
    Applies a unified-style diff to a document.

    Parsing, positioning and statistics are pluggable through the BlockParser,
    PositionMatcher and ChangeTracker capabilities. When no matcher is given a
    fresh ContextMatcher is built per call, so one TextDiffer can serve
    concurrent calls; a caller-supplied matcher is reset at the start of every
    call and must not be shared between concurrent calls.
    """

    def __init__(
        self,
        parser: Optional[BlockParser] = None,
        matcher: Optional[PositionMatcher] = None,
        tracker: Optional[ChangeTracker] = None,
        settings: Optional[DifferSettings] = None,
    ):
        if settings is not None:
            apply_logging_settings(settings.logging)
        self._settings = settings or DifferSettings()
        self._parser = parser or DiffBlockParser(self._settings.parser)
        self._matcher = matcher
        self._tracker = tracker or LineChangeTracker()

    @property
    def settings(self) -> DifferSettings:
        return self._settings

    @property
    def separator(self) -> str:
        return self._settings.output.line_separator

    # Public API

    def process(
        self,
        document: str,
        diff: str,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelCheck] = None,
    ) -> ProcessResult:
        result, errors = self.try_process(
            document, diff, progress=progress, cancel=cancel
        )
        if errors or result is None:
            raise _to_exception(errors)
        return result

    def try_process(
        self,
        document: str,
        diff: str,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelCheck] = None,
    ) -> Tuple[Optional[ProcessResult], List[PatchError]]:
        """
        Same as process() but reports failures as PatchError values.
        Returns (result, errors); result is None whenever errors is non-empty.
        """
        prepared, errors = self._prepare(document, diff)
        if prepared is None:
            return None, errors

        sink = BufferSink(self.separator)
        stats, errors = self._run(prepared, sink, progress, cancel)
        if stats is None:
            return None, errors
        return ProcessResult(text=sink.text(), stats=stats), []

    def process_stream(
        self,
        document: Union[str, TextIO],
        diff: Union[str, TextIO],
        output: TextIO,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelCheck] = None,
    ) -> ProcessResult:
        """
        Write the patched document to output line by line.

        The returned result carries statistics only (text is empty). When a block
        fails to apply, output holds the lines produced before the failure.
        """
        prepared, errors = self._prepare(_read_text(document), _read_text(diff))
        if prepared is None:
            raise _to_exception(errors)

        sink = StreamSink(output, self.separator)
        stats, errors = self._run(prepared, sink, progress, cancel)
        if stats is None:
            raise _to_exception(errors)
        return ProcessResult(text="", stats=stats)

    def process_diffx(
        self,
        document: str,
        diff: str,
        file_path: Optional[str] = None,
    ) -> ProcessResult:
        """
        Apply one file entry of a DiffX document, or a plain diff as-is.
        Without file_path the first entry is used.
        """
        if not DiffXReader.is_diffx(diff):
            return self.process(document, diff)
        entry = select_entry(extract_plain_diffs(diff), file_path)
        return self.process(document, entry.diff_content)

    async def process_async(
        self,
        document: str,
        diff: str,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelCheck] = None,
    ) -> ProcessResult:
        """
        Coroutine variant of process(). Control returns to the event loop after
        parsing and after every block, so task cancellation only lands between
        blocks and never leaves partial output behind.
        """
        prepared, errors = self._prepare(document, diff)
        if prepared is None:
            raise _to_exception(errors)

        sink = BufferSink(self.separator)
        steps = self._steps(prepared, sink, progress, cancel)
        while True:
            try:
                next(steps)
            except StopIteration as done:
                stats, errors = done.value
                break
            await asyncio.sleep(0)

        if stats is None:
            raise _to_exception(errors)
        return ProcessResult(text=sink.text(), stats=stats)

    # Internals

    def _prepare(
        self, document: Optional[str], diff: Optional[str]
    ) -> Tuple[Optional[_Prepared], List[PatchError]]:
        if document is None:
            return None, [_invalid_input("Document is required")]
        if diff is None:
            return None, [_invalid_input("Diff is required")]
        if not isinstance(document, str) or not isinstance(diff, str):
            return None, [_invalid_input("Document and diff must be text")]
        if not diff.strip():
            return None, [_invalid_input("Diff cannot be empty or contain only whitespace")]

        diff_lines = split_lines(diff)
        blocks, errors = self._parser.parse(diff_lines)
        if errors:
            return None, errors

        kinds = classify_lines(
            diff_lines,
            blank_lines_as_context=self._settings.parser.blank_lines_as_context,
        )
        if not has_diff_lines(kinds):
            return None, [
                PatchError(
                    kind=ErrorKind.invalid_format,
                    msg="Diff does not contain any valid diff lines",
                    hint="Expected lines starting with ' ', '+' or '-'",
                )
            ]

        document_lines = split_lines(document)
        logger.debug(
            "Prepared diff",
            document_lines=len(document_lines),
            diff_lines=len(diff_lines),
            blocks=len(blocks),
        )
        return _Prepared(document_lines=document_lines, blocks=blocks), []

    def _new_matcher(self) -> PositionMatcher:
        if self._matcher is None:
            return ContextMatcher(self._settings.matcher)
        self._matcher.reset()
        return self._matcher

    def _new_applier(self, prepared: _Prepared, sink: LineSink) -> BlockApplier:
        return BlockApplier(
            prepared.document_lines, sink, self._new_matcher(), self._tracker
        )

    def _run(
        self,
        prepared: _Prepared,
        sink: LineSink,
        progress: Optional[ProgressCallback],
        cancel: Optional[CancelCheck],
    ) -> Tuple[Optional[ChangeStats], List[PatchError]]:
        steps = self._steps(prepared, sink, progress, cancel)
        while True:
            try:
                next(steps)
            except StopIteration as done:
                return done.value

    def _steps(
        self,
        prepared: _Prepared,
        sink: LineSink,
        progress: Optional[ProgressCallback],
        cancel: Optional[CancelCheck],
    ) -> Generator[None, None, Tuple[Optional[ChangeStats], List[PatchError]]]:
        """
        The block loop shared by every driver. Yields after parsing and after
        each applied block; the generator's return value is (stats, errors).
        """
        total = len(prepared.blocks)
        _report(progress, STAGE_PARSED, 0, total)
        yield

        applier = self._new_applier(prepared, sink)
        for idx, block in enumerate(prepared.blocks):
            if cancel is not None and cancel():
                return None, [_cancelled(idx, total)]
            err = applier.apply_block(block)
            if err is not None:
                return None, [err]
            _report(progress, STAGE_APPLYING, idx + 1, total)
            yield

        stats = applier.finish()
        _log_done(stats, total)
        return stats, []


def _report(
    progress: Optional[ProgressCallback], stage: str, processed: int, total: int
) -> None:
    if progress is not None:
        progress(ProcessingProgress(stage=stage, processed=processed, total=total))


def _log_done(stats: ChangeStats, blocks: int) -> None:
    logger.debug(
        "Applied diff",
        blocks=blocks,
        changed=stats.changed,
        added=stats.added,
        deleted=stats.deleted,
    )


def _to_exception(errors: Sequence[PatchError]) -> TextDiffError:
    if not errors:
        return TextDiffError("Diff processing failed")
    return TextDiffError.from_error(errors[0])


def process(
    document: str, diff: str, settings: Optional[DifferSettings] = None
) -> ProcessResult:
    """Apply diff to document with the default capabilities."""
    return TextDiffer(settings=settings).process(document, diff)
