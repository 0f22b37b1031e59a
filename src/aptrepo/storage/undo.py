"""Bounded in-memory undo history."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from aptrepo.errors import NothingToUndoError


@dataclass(slots=True, frozen=True)
class UndoSnapshot:
    """Full pre-mutation content of one file.

    ``trailing_newline`` is False only when the last line had no terminator.
    """

    file: str
    lines: tuple[str, ...]
    trailing_newline: bool = True


class UndoStack:
    """LIFO of snapshots; the oldest is evicted once capacity is reached."""

    def __init__(self, capacity: int = 20) -> None:
        if capacity < 1:
            raise ValueError("Undo capacity must be >= 1.")
        self._snapshots: deque[UndoSnapshot] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._snapshots.maxlen or 0

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, snapshot: UndoSnapshot) -> None:
        self._snapshots.append(snapshot)

    def peek(self) -> UndoSnapshot:
        """Return the newest snapshot without removing it."""
        if not self._snapshots:
            raise NothingToUndoError()
        return self._snapshots[-1]

    def pop(self) -> UndoSnapshot:
        if not self._snapshots:
            raise NothingToUndoError()
        return self._snapshots.pop()
