from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import json5  # type: ignore

from textdiff.logger import logger

from .errors import InvalidDiffFormatError, InvalidInputError, NoMatchError
from .models import ErrorKind, PatchError

DIFFX_MARKER = "#diffx:"
SECTION_PREFIX = "#"
DEFAULT_ENCODING = "utf-8"

# '#' + 0..3 dots (nesting level) + section name + ':' + options
_SECTION_HEADER_RE = re.compile(r"^#(?P<level>\.{0,3})(?P<name>[a-z]+):\s*(?P<options>.*)$")
_OPTION_RE = re.compile(r"(?P<key>[A-Za-z][A-Za-z0-9_-]*)=(?P<value>[^\s,]+)")


@dataclass(frozen=True)
class DiffXFileEntry:
    """
    One file diff extracted from a DiffX document.

    operation is one of 'create', 'modify', 'delete', 'move', 'copy' or None.
    """

    path: Optional[str]
    operation: Optional[str]
    diff_content: str
    encoding: str = DEFAULT_ENCODING
    is_binary: bool = False


def parse_options(options: str) -> Dict[str, str]:
    """Parse 'key=value, key2=value2' section options. Keys are lower-cased."""
    return {m.group("key").lower(): m.group("value") for m in _OPTION_RE.finditer(options)}


class DiffXReader:
    """
    Extracts the applicable '#...diff:' sections of a DiffX document.

    Only the sections needed for application are interpreted:
    - '#diffx:'   global header, sets the default encoding
    - '#..file:'  starts a new file entry
    - '#...meta:' followed by a JSON object carrying 'path' and 'op'
    - '#...diff:' followed by unified diff text; 'op=binary' marks binary content
    Other sections (preamble, change-level meta) are skipped. A diff section
    ends at the next section header; its 'length' option is not needed for that.
    """

    @staticmethod
    def is_diffx(text: Optional[str]) -> bool:
        if not text:
            return False
        first = text.split("\n", 1)[0].rstrip("\r")
        return first.startswith(DIFFX_MARKER)

    def extract_file_diffs(self, text: str) -> List[DiffXFileEntry]:
        if text is None:
            raise InvalidInputError("DiffX content is required")
        if not self.is_diffx(text):
            raise InvalidInputError("Content is not in valid DiffX format")

        lines = [line.rstrip("\r") for line in text.split("\n")]
        entries: List[DiffXFileEntry] = []

        global_encoding = DEFAULT_ENCODING
        path: Optional[str] = None
        operation: Optional[str] = None
        encoding = global_encoding
        is_binary = False
        diff_lines: List[str] = []
        in_diff = False

        def flush() -> None:
            nonlocal diff_lines, in_diff
            content = "\n".join(diff_lines).rstrip()
            if in_diff and content:
                entries.append(
                    DiffXFileEntry(
                        path=path,
                        operation=operation,
                        diff_content=content,
                        encoding=encoding,
                        is_binary=is_binary,
                    )
                )
            diff_lines = []
            in_diff = False

        for idx, line in enumerate(lines):
            if not line.startswith(SECTION_PREFIX):
                if in_diff:
                    diff_lines.append(line)
                continue

            flush()
            m = _SECTION_HEADER_RE.match(line)
            if not m:
                continue
            level = len(m.group("level"))
            name = m.group("name")
            options = parse_options(m.group("options"))

            if (level, name) == (0, "diffx"):
                global_encoding = options.get("encoding", DEFAULT_ENCODING)
                encoding = global_encoding
            elif (level, name) == (2, "file"):
                path, operation = None, None
                encoding = global_encoding
                is_binary = False
            elif (level, name) == (3, "meta"):
                meta = _parse_meta(lines, idx)
                path = _str_or_none(meta.get("path"))
                operation = _str_or_none(meta.get("op"))
            elif (level, name) == (3, "diff"):
                in_diff = True
                if options.get("op") == "binary":
                    is_binary = True

        flush()
        logger.debug("Extracted DiffX entries", entries=len(entries))
        return entries


def _parse_meta(lines: Sequence[str], header_idx: int) -> Dict[str, Any]:
    body: List[str] = []
    for line in lines[header_idx + 1 :]:
        if line.startswith(SECTION_PREFIX):
            break
        body.append(line)
    text = "\n".join(body).strip()
    if not text.startswith("{"):
        return {}
    try:
        data = json5.loads(text)
    except ValueError as e:
        raise InvalidDiffFormatError(
            f"Invalid DiffX file metadata at line {header_idx + 1}: {e}",
            error=PatchError(
                kind=ErrorKind.invalid_format,
                msg=f"Invalid DiffX file metadata: {e}",
                line=header_idx + 1,
            ),
        ) from e
    return data if isinstance(data, dict) else {}


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def extract_plain_diffs(text: str) -> List[DiffXFileEntry]:
    """
    Extract the text diffs of a DiffX document, refusing binary entries since
    they cannot be applied line by line.
    """
    entries = DiffXReader().extract_file_diffs(text)
    for entry in entries:
        if entry.is_binary:
            raise InvalidDiffFormatError(
                f"Cannot process binary diff for {entry.path or '<unknown path>'}"
            )
    return entries


def select_entry(
    entries: Sequence[DiffXFileEntry], file_path: Optional[str] = None
) -> DiffXFileEntry:
    """Pick the entry for file_path, or the first entry when no path is given."""
    if not entries:
        raise NoMatchError("No applicable diff found in DiffX content")
    if file_path is None:
        return entries[0]
    for entry in entries:
        if entry.path == file_path:
            return entry
    available = ", ".join(e.path or "<unknown path>" for e in entries)
    raise NoMatchError(f"No diff found for file {file_path}. Available files: {available}")
