from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from textdiff.logger import logger
from textdiff.settings.models import MatcherSettings

from .lines import indentation_width, is_blank, lines_similar
from .models import ChangeBlock, ErrorKind, MatchCandidate, PatchError

# Scores are compared after rounding so that equal-looking scores tie.
SCORE_PRECISION = 12


class PositionMatcher(ABC):
    """
    Locates the document index where a block's before-context starts.
    Implementations are stateful across one document traversal and must be
    reset before they are reused on another document.
    """

    @abstractmethod
    def find_position(
        self, document_lines: Sequence[str], start: int, block: ChangeBlock
    ) -> Tuple[Optional[int], Optional[PatchError]]: ...

    @abstractmethod
    def reset(self) -> None: ...

    @property
    @abstractmethod
    def last_match_end(self) -> Optional[int]: ...


def no_match_error(block: ChangeBlock, start: int) -> PatchError:
    return PatchError(
        kind=ErrorKind.no_match,
        msg=f"Cannot find matching position for change block (searched from line {start + 1})",
        hint=f"Here is the block that failed to match:\n---\n{block.render()}\n---",
        block=block,
    )


class ContextMatcher(PositionMatcher):
    """
    Exact/fuzzy context matcher.

    Every candidate index must pass a similarity filter on the block's removal
    and non-blank before-context lines. Passing candidates are scored as a
    weighted average of:
    - continuity: closeness to the end of the previously placed block
    - context: agreement of the lines around the candidate with the block context
    - pattern: agreement of indentation depth and line length with the context
    The highest score wins. Among candidates within selection_ratio of it, equal
    scores are broken by distance to the previous match end, then by index.
    """

    def __init__(self, settings: Optional[MatcherSettings] = None):
        self._settings = settings or MatcherSettings()
        self._last_match_end: Optional[int] = None

    @property
    def settings(self) -> MatcherSettings:
        return self._settings

    @property
    def last_match_end(self) -> Optional[int]:
        return self._last_match_end

    def reset(self) -> None:
        self._last_match_end = None

    def find_position(
        self, document_lines: Sequence[str], start: int, block: ChangeBlock
    ) -> Tuple[Optional[int], Optional[PatchError]]:
        candidates = self.score_candidates(document_lines, start, block)
        if not candidates:
            logger.warning(
                "No matching position for change block",
                start=start,
                context=len(block.before_context),
                removals=len(block.removals),
            )
            return None, no_match_error(block, start)

        best = self.select_best(candidates, start)
        self._last_match_end = (
            best.position + len(block.before_context) + len(block.removals)
        )
        logger.debug(
            "Placed change block",
            position=best.position,
            score=round(best.score, 4),
            candidates=len(candidates),
        )
        return best.position, None

    def score_candidates(
        self, document_lines: Sequence[str], start: int, block: ChangeBlock
    ) -> List[MatchCandidate]:
        start = max(0, start)
        if not block.before_context:
            # Nothing to disambiguate with: the block applies at the cursor.
            return [MatchCandidate(start, 1.0)]

        progressive = self.is_progressive(block)
        last = len(document_lines) - len(block.before_context)
        out: List[MatchCandidate] = []
        for pos in range(start, last + 1):
            if not self._removals_match(document_lines, pos, block):
                continue
            if not self._context_matches(document_lines, pos, block):
                continue
            out.append(MatchCandidate(pos, self._score(document_lines, pos, block, progressive)))
        return out

    def select_best(self, candidates: Sequence[MatchCandidate], start: int) -> MatchCandidate:
        reference = self._last_match_end if self._last_match_end is not None else start
        max_score = max(c.score for c in candidates)
        threshold = max_score * self._settings.selection_ratio
        kept = [c for c in candidates if c.score >= threshold]
        return min(
            kept,
            key=lambda c: (
                -round(c.score, SCORE_PRECISION),
                abs(c.position - reference),
                c.position,
            ),
        )

    def is_progressive(self, block: ChangeBlock) -> bool:
        s = self._settings
        return len(block.before_context) <= s.progressive_context_max and (
            len(block.additions) >= s.progressive_change_min
            or len(block.removals) >= s.progressive_change_min
        )

    # Filters

    def _removals_match(
        self, document_lines: Sequence[str], pos: int, block: ChangeBlock
    ) -> bool:
        removal_start = pos + len(block.before_context)
        if removal_start + len(block.removals) > len(document_lines):
            return False
        return all(
            lines_similar(document_lines[removal_start + k], expected)
            for k, expected in enumerate(block.removals)
        )

    def _context_matches(
        self, document_lines: Sequence[str], pos: int, block: ChangeBlock
    ) -> bool:
        for k, expected in enumerate(block.before_context):
            if pos + k >= len(document_lines):
                return False
            if is_blank(expected):
                continue
            if not lines_similar(document_lines[pos + k], expected):
                return False
        return True

    # Scoring

    def _score(
        self,
        document_lines: Sequence[str],
        pos: int,
        block: ChangeBlock,
        progressive: bool,
    ) -> float:
        s = self._settings
        continuity = self.continuity_score(pos, progressive)
        context = self._context_score(document_lines, pos, block)
        pattern = self._pattern_score(document_lines, pos, block)
        return (
            continuity * s.continuity_weight
            + context * s.context_weight
            + pattern * s.pattern_weight
        ) / s.weight_sum

    def continuity_score(self, pos: int, progressive: bool) -> float:
        if self._last_match_end is None:
            return 1.0
        s = self._settings
        distance = abs(pos - self._last_match_end)
        if progressive:
            if distance == 0:
                return 1.0
            if distance <= 2:
                return 0.9
            if distance <= 5:
                return 0.7
            return max(s.continuity_floor, 1.0 - distance / s.progressive_decay)
        return max(s.continuity_floor, 1.0 - distance / s.continuity_decay)

    def _context_score(
        self, document_lines: Sequence[str], pos: int, block: ChangeBlock
    ) -> float:
        window = self._settings.context_window
        score = 1.0

        if pos > 0 and window > 0:
            preceding = document_lines[max(0, pos - window) : pos]
            if preceding:
                common = sum(
                    1
                    for line in preceding
                    if any(lines_similar(line, ctx) for ctx in block.before_context)
                )
                score *= (common + 1.0) / (len(preceding) + 1.0)

        after_start = pos + len(block.before_context) + len(block.removals)
        if block.after_context and after_start < len(document_lines) and window > 0:
            following = document_lines[after_start : after_start + window]
            compared = min(len(following), len(block.after_context))
            hits = sum(
                1
                for k in range(compared)
                if lines_similar(following[k], block.after_context[k])
            )
            score *= (hits + 1.0) / (compared + 1.0)

        return score

    def _pattern_score(
        self, document_lines: Sequence[str], pos: int, block: ChangeBlock
    ) -> float:
        context = block.before_context
        doc = document_lines[pos : pos + len(context)]

        indent_hits = sum(
            1 for d, c in zip(doc, context) if indentation_width(d) == indentation_width(c)
        )
        indent_score = indent_hits / len(context)

        total_diff = 0.0
        counted = 0
        for d, c in zip(doc, context):
            d_len, c_len = len(d.rstrip()), len(c.rstrip())
            if d_len == 0 or c_len == 0:
                continue
            total_diff += abs(d_len - c_len) / max(d_len, c_len)
            counted += 1
        length_score = 1.0 - total_diff / counted if counted else 1.0

        return ((indent_score + 1.0) / 2.0) * ((length_score + 1.0) / 2.0)
