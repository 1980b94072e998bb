from __future__ import annotations

import os
from typing import List

import pytest

from textdiff.patch import (
    ContextMatcher,
    ErrorKind,
    InvalidDiffFormatError,
    InvalidInputError,
    NoMatchError,
    ProcessingCancelled,
    ProcessingProgress,
    TextDiffer,
    process,
)
from textdiff.settings.models import DifferSettings, OutputSettings


def _differ(**kwargs) -> TextDiffer:
    settings = DifferSettings(output=OutputSettings(line_separator="\n"))
    return TextDiffer(settings=settings, **kwargs)


def _stats(result):
    return (result.stats.changed, result.stats.added, result.stats.deleted)


def test_simple_substitution():
    result = _differ().process("line1\nline2\nline3", " line1\n-line2\n+line2_modified\n line3")

    assert result.text == "line1\nline2_modified\nline3"
    assert _stats(result) == (1, 0, 0)


def test_pure_insertion():
    result = _differ().process("line1\nline3", " line1\n+line2\n line3")

    assert result.text == "line1\nline2\nline3"
    assert _stats(result) == (0, 1, 0)


def test_pure_deletion():
    result = _differ().process("line1\nline2\nline3", " line1\n-line2\n line3")

    assert result.text == "line1\nline3"
    assert _stats(result) == (0, 0, 1)


def test_unmatched_context_fails_with_block_detail():
    with pytest.raises(NoMatchError) as exc_info:
        _differ().process("line1\nline2", " totally_different_line\n-line2\n+x")

    err = exc_info.value
    assert err.error.kind == ErrorKind.no_match
    assert err.block is not None
    assert err.block.before_context == ("totally_different_line",)
    assert "totally_different_line" in str(err)


def test_context_only_diff_is_identity():
    doc = "alpha\n  beta\ngamma"
    result = _differ().process(doc, " alpha\n   beta\n gamma")

    assert result.text == doc
    assert _stats(result) == (0, 0, 0)


def test_duplicate_lines_prefer_first_occurrence():
    doc = "duplicate\nduplicate\nunique\nduplicate\nduplicate"
    diff = " duplicate\n- duplicate\n+ modified\n unique\n duplicate\n duplicate"

    result = _differ().process(doc, diff)

    assert result.text == "duplicate\nmodified\nunique\nduplicate\nduplicate"
    assert _stats(result) == (1, 0, 0)


def test_repeated_sites_follow_continuity():
    doc = "start\nold\nk\nm\nt\nk\nm\nt"
    diff = " start\n-old\n+new\n m\n-t\n+T"

    result = _differ().process(doc, diff)

    assert result.text.split("\n") == ["start", "new", "k", "m", "T", "k", "m", "t"]
    assert _stats(result) == (2, 0, 0)


def test_after_context_selects_the_farther_site():
    doc = "p\nx\ny\nw\nx\nx\ny\nz"

    result = _differ().process(doc, " x\n-y\n+Y\n z")

    assert result.text.split("\n") == ["p", "x", "y", "w", "x", "x", "Y", "z"]


def test_block_without_context_applies_at_cursor():
    result = _differ().process("a\nb", "-x\n+y")

    assert result.text == "y\nb"
    assert _stats(result) == (1, 0, 0)


def test_block_without_context_past_document_end():
    result = _differ().process("a", "-x\n-w\n+y\n+z")

    assert result.text == "y\nz"
    assert _stats(result) == (2, 0, 0)


def test_changes_at_document_boundaries():
    doc = "first_line\nmiddle\nlast_line"
    diff = "- first_line\n+ new_first_line\n middle\n- last_line\n+ new_last_line"

    result = _differ().process(doc, diff)

    assert result.text == "new_first_line\nmiddle\nnew_last_line"
    assert _stats(result) == (2, 0, 0)


def test_indentation_rule_on_single_pair():
    doc = "if x:\n        call(a)\nend"
    result = _differ().process(doc, " if x:\n-call(a)\n+    call(b)")

    assert result.text == "if x:\n        call(b)\nend"


def test_empty_document_with_single_addition():
    result = _differ().process("", "+single_line\n\\ No newline at end of file")

    assert result.text == "single_line"
    assert _stats(result) == (0, 1, 0)


def test_trailing_newline_is_preserved():
    result = _differ().process("a\nb\n", " a\n-b\n+c")
    assert result.text == "a\nc\n"


def test_crlf_document_and_platform_separator():
    result = TextDiffer().process("one\r\ntwo\r\nthree", " one\r\n-two\r\n+2\r\n three")
    assert result.text == os.linesep.join(["one", "2", "three"])


def test_unified_diff_with_headers():
    doc = "import os\nimport sys\n\ndef main():\n    pass"
    diff = "\n".join(
        [
            "--- a/main.py",
            "+++ b/main.py",
            "@@ -1,5 +1,5 @@",
            " import os",
            "-import sys",
            "+import json",
            " ",
            " def main():",
            "-    pass",
            "+    return 0",
        ]
    )

    result = _differ().process(doc, diff)

    assert result.text == "import os\nimport json\n\ndef main():\n    return 0"
    assert _stats(result) == (2, 0, 0)


@pytest.mark.parametrize("document, diff", [(None, " a"), ("a", None)])
def test_absent_inputs_are_rejected(document, diff):
    with pytest.raises(InvalidInputError):
        _differ().process(document, diff)


@pytest.mark.parametrize("diff", ["", "   ", "\n\n\t"])
def test_blank_diff_is_rejected(diff):
    with pytest.raises(InvalidInputError) as exc_info:
        _differ().process("content", diff)
    assert "empty" in str(exc_info.value)


def test_diff_without_change_lines_is_rejected():
    with pytest.raises(InvalidDiffFormatError):
        _differ().process("content", "--- a/f\n+++ b/f\n@@ -1 +1 @@")


def test_format_violation_reports_line_number():
    with pytest.raises(InvalidDiffFormatError) as exc_info:
        _differ().process("line1\nline2", " line1\n-line2\n+ok\n*bad")

    assert exc_info.value.line_number == 4
    assert "line 4" in str(exc_info.value)


def test_try_process_returns_errors():
    result, errors = _differ().try_process("line1\nline2", " nope\n-line2")

    assert result is None
    assert len(errors) == 1
    assert errors[0].kind == ErrorKind.no_match

    result, errors = _differ().try_process("a", " a\n-b\n+c\n")
    assert result is None
    assert errors[0].kind == ErrorKind.no_match

    result, errors = _differ().try_process("a\nb", " a\n-b\n+c")
    assert errors == []
    assert result is not None and result.text == "a\nc"


def test_matcher_state_does_not_leak_between_calls():
    matcher = ContextMatcher()
    differ = _differ(matcher=matcher)

    differ.process("x\ny\nz", " y\n-z\n+Z")
    assert matcher.last_match_end == 3

    result = differ.process("a\nb", " a\n-b\n+B")
    assert result.text == "a\nB"
    assert matcher.last_match_end == 2


def test_progress_reports_parse_and_each_block():
    seen: List[ProcessingProgress] = []
    diff = " a\n-b\n+B\n c\n-d\n+D"

    _differ().process("a\nb\nc\nd", diff, progress=seen.append)

    assert [(p.stage, p.processed, p.total) for p in seen] == [
        ("Parsed diff", 0, 2),
        ("Applying blocks", 1, 2),
        ("Applying blocks", 2, 2),
    ]
    assert seen[-1].percent_complete == 100.0


def test_cancel_is_checked_between_blocks():
    calls = {"n": 0}

    def cancel() -> bool:
        calls["n"] += 1
        return calls["n"] > 1

    with pytest.raises(ProcessingCancelled) as exc_info:
        _differ().process("a\nb\nc\nd", " a\n-b\n+B\n c\n-d\n+D", cancel=cancel)

    assert "after 1 of 2 blocks" in str(exc_info.value)


def test_module_level_process():
    settings = DifferSettings(output=OutputSettings(line_separator="\n"))
    result = process("a\nb", " a\n-b\n+c", settings=settings)
    assert result.text == "a\nc"
