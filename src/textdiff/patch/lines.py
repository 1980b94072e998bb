from __future__ import annotations

import re
from typing import List

_WS_RUN_RE = re.compile(r"\s+")


def split_lines(text: str) -> List[str]:
    """
    Split on '\\n' and '\\r\\n'. An empty string has no lines; a trailing
    newline yields a final empty line so that joining restores it.
    """
    if not text:
        return []
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def normalize_whitespace(line: str) -> str:
    return _WS_RUN_RE.sub(" ", line.strip())


def lines_similar(actual: str, expected: str) -> bool:
    """Exact match after trimming, or after collapsing whitespace runs."""
    if actual.strip() == expected.strip():
        return True
    return normalize_whitespace(actual) == normalize_whitespace(expected)


def extract_indentation(line: str) -> str:
    return line[: indentation_width(line)]


def remove_indentation(line: str) -> str:
    return line[indentation_width(line) :]


def indentation_width(line: str) -> int:
    return len(line) - len(line.lstrip())


def is_blank(line: str) -> bool:
    return not line.strip()
