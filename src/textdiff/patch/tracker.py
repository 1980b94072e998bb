from __future__ import annotations

from abc import ABC, abstractmethod

from .models import ChangeBlock, ChangeStats


class ChangeTracker(ABC):
    @abstractmethod
    def track_changes(self, block: ChangeBlock, stats: ChangeStats) -> None: ...


class LineChangeTracker(ChangeTracker):
    """
    Pairs the first min(removals, additions) lines of a block as changed;
    the remaining removals count as deleted and the remaining additions as added.
    """

    def track_changes(self, block: ChangeBlock, stats: ChangeStats) -> None:
        paired = min(len(block.removals), len(block.additions))
        stats.changed += paired
        stats.added += len(block.additions) - paired
        stats.deleted += len(block.removals) - paired
