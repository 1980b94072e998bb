from __future__ import annotations

import dataclasses
import os
from typing import List, Optional, Sequence, Tuple

from .lines import extract_indentation, remove_indentation
from .matcher import ContextMatcher, PositionMatcher
from .models import ChangeBlock, ChangeStats, PatchError, ProcessResult
from .sinks import BufferSink, LineSink
from .tracker import ChangeTracker, LineChangeTracker


class BlockApplier:
    """
    Reconstruction pass over one document.

    Blocks are applied one at a time through apply_block(); finish() copies
    the untouched tail. The applier owns the cursor into the document and the
    running statistics; output goes to the sink in document order.
    """

    def __init__(
        self,
        document_lines: Sequence[str],
        sink: LineSink,
        matcher: PositionMatcher,
        tracker: ChangeTracker,
    ):
        self._lines = document_lines
        self._sink = sink
        self._matcher = matcher
        self._tracker = tracker
        self._cursor = 0
        self._stats = ChangeStats()
        self._applied = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def stats(self) -> ChangeStats:
        return self._stats

    @property
    def applied(self) -> int:
        return self._applied

    def apply_block(self, block: ChangeBlock) -> Optional[PatchError]:
        n = len(self._lines)
        position, err = self._matcher.find_position(
            self._lines, min(self._cursor, n), block
        )
        if err is not None or position is None:
            return err

        self._copy_until(position)
        self._copy_context(len(block.before_context))

        # Paired lines keep the document's indentation; surplus additions keep the diff's.
        paired = min(len(block.removals), len(block.additions))
        for k in range(paired):
            addition = block.additions[k]
            if self._cursor + k >= n:
                # Removals ran past the end of the document; keep the diff's text.
                self._sink.write_line(addition)
                continue
            original = self._lines[self._cursor + k]
            self._sink.write_line(
                extract_indentation(original) + remove_indentation(addition)
            )
        for line in block.additions[paired:]:
            self._sink.write_line(line)
        self._cursor = min(self._cursor + len(block.removals), n)

        self._copy_context(len(block.after_context))
        self._tracker.track_changes(block, self._stats)
        self._applied += 1
        return None

    def finish(self) -> ChangeStats:
        """Copy the remaining lines, close the sink and return a snapshot of the statistics."""
        self._copy_until(len(self._lines))
        self._sink.close()
        return dataclasses.replace(self._stats)

    def _copy_until(self, position: int) -> None:
        end = min(position, len(self._lines))
        while self._cursor < end:
            self._sink.write_line(self._lines[self._cursor])
            self._cursor += 1

    def _copy_context(self, count: int) -> None:
        self._copy_until(self._cursor + count)


def apply_blocks(
    document_lines: Sequence[str],
    blocks: Sequence[ChangeBlock],
    *,
    matcher: Optional[PositionMatcher] = None,
    tracker: Optional[ChangeTracker] = None,
    separator: str = os.linesep,
) -> Tuple[Optional[ProcessResult], List[PatchError]]:
    """Apply parsed blocks to document lines in memory. Returns (result, errors)."""
    sink = BufferSink(separator)
    applier = BlockApplier(
        document_lines, sink, matcher or ContextMatcher(), tracker or LineChangeTracker()
    )
    for block in blocks:
        err = applier.apply_block(block)
        if err is not None:
            return None, [err]
    stats = applier.finish()
    return ProcessResult(text=sink.text(), stats=stats), []
