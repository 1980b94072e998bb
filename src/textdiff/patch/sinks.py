from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import List, TextIO


class LineSink(ABC):
    """Destination for reconstructed lines, written strictly in order."""

    @abstractmethod
    def write_line(self, line: str) -> None: ...

    def close(self) -> None:
        return None


class BufferSink(LineSink):
    """Collects lines in memory; text() joins them with the separator."""

    def __init__(self, separator: str = os.linesep):
        self._separator = separator
        self._lines: List[str] = []

    def write_line(self, line: str) -> None:
        self._lines.append(line)

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def text(self) -> str:
        return self._separator.join(self._lines)


class StreamSink(LineSink):
    """
    Writes lines to a text stream as they are produced. The separator goes
    between lines only, so the bytes equal BufferSink.text().
    """

    def __init__(self, stream: TextIO, separator: str = os.linesep):
        self._stream = stream
        self._separator = separator
        self._count = 0

    @property
    def lines_written(self) -> int:
        return self._count

    def write_line(self, line: str) -> None:
        if self._count:
            self._stream.write(self._separator)
        self._stream.write(line)
        self._count += 1

    def close(self) -> None:
        self._stream.flush()
