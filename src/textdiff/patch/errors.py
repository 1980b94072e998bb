from __future__ import annotations

from typing import Optional

from .models import ChangeBlock, ErrorKind, PatchError


class TextDiffError(ValueError):
    """Any problem detected while parsing or applying a diff."""

    kind: ErrorKind = ErrorKind.invalid_input

    def __init__(self, msg: str, *, error: Optional[PatchError] = None):
        super().__init__(msg)
        self.error = error or PatchError(kind=self.kind, msg=msg)

    @classmethod
    def from_error(cls, error: PatchError) -> "TextDiffError":
        exc_type = _ERROR_TYPES.get(error.kind, TextDiffError)
        return exc_type(error.describe(), error=error)


class InvalidInputError(TextDiffError):
    kind = ErrorKind.invalid_input


class InvalidDiffFormatError(TextDiffError):
    kind = ErrorKind.invalid_format

    @property
    def line_number(self) -> Optional[int]:
        return self.error.line


class NoMatchError(TextDiffError):
    kind = ErrorKind.no_match

    @property
    def block(self) -> Optional[ChangeBlock]:
        return self.error.block


class ProcessingCancelled(TextDiffError):
    kind = ErrorKind.cancelled


_ERROR_TYPES = {
    ErrorKind.invalid_input: InvalidInputError,
    ErrorKind.invalid_format: InvalidDiffFormatError,
    ErrorKind.no_match: NoMatchError,
    ErrorKind.cancelled: ProcessingCancelled,
}
