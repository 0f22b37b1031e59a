"""Toggle, add, delete and undo against the live on-disk files."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from aptrepo.errors import NotFoundError, RepoIOError, ValidationError
from aptrepo.sources.models import BlockRange, Entry
from aptrepo.sources.parsing import (
    block_enabled,
    block_ranges,
    classify_one_line,
    is_enabled_key,
    strip_comment_marker,
)
from aptrepo.storage.undo import UndoSnapshot, UndoStack
from aptrepo.storage.writer import atomic_write_lines, backup_file, read_text_lines

DISABLE_PREFIX = "# "


@dataclass(slots=True)
class MutationOutcome:
    """Result of one successful mutation.

    ``enabled`` is set by toggles to the state actually written to disk.
    """

    file: str
    warnings: list[str] = field(default_factory=list)
    enabled: bool | None = None


class MutationEngine:
    """Applies mutations through undo snapshot, backup, then atomic replace.

    Every operation re-reads the target file so that external edits made since
    the last load surface as ``NotFoundError`` instead of being overwritten.
    """

    def __init__(
        self,
        undo: UndoStack,
        backup_dir: Path,
        primary_list: Path,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._undo = undo
        self._backup_dir = backup_dir
        self._primary_list = primary_list
        self._clock = clock

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    def toggle(self, entry: Entry) -> MutationOutcome:
        """Flip an entry between enabled and disabled."""
        path = Path(entry.source_file)
        lines, terminated = read_text_lines(path, missing_ok=True)
        if entry.is_paragraph:
            updated, enabled = self._toggle_block(lines, entry)
        else:
            updated, enabled = self._toggle_line(lines, entry)
        outcome = self._commit(path, lines, updated, terminated)
        outcome.enabled = enabled
        return outcome

    def add(self, raw_line: str, target: Path | None = None) -> MutationOutcome:
        """Append a directive line to ``target`` (default: the primary file)."""
        line = raw_line.rstrip("\r\n")
        if "\n" in line or "\r" in line:
            raise ValidationError("Invalid line: must be a single line.")
        if not line.strip().startswith("deb"):
            raise ValidationError("Invalid line: must start with 'deb'.")
        path = target or self._primary_list
        lines, terminated = read_text_lines(path, missing_ok=True)
        return self._commit(path, lines, [*lines, line], terminated)

    def append_lines(self, path: Path, new_lines: list[str]) -> MutationOutcome:
        """Append several lines as a single transaction."""
        lines, terminated = read_text_lines(path, missing_ok=True)
        return self._commit(path, lines, [*lines, *new_lines], terminated)

    def delete(self, entry: Entry) -> MutationOutcome:
        """Remove an entry's line, or its whole block plus one trailing blank line."""
        path = Path(entry.source_file)
        lines, terminated = read_text_lines(path, missing_ok=True)
        if entry.is_paragraph:
            block = self._locate_block(lines, entry)
            end = block.end
            if end + 1 < len(lines) and not lines[end + 1].strip():
                end += 1
            updated = lines[: block.start] + lines[end + 1 :]
        else:
            idx = self._locate_line(lines, entry)
            updated = lines[:idx] + lines[idx + 1 :]
        return self._commit(path, lines, updated, terminated)

    def undo(self) -> MutationOutcome:
        """Restore the newest snapshot verbatim; no redo snapshot is taken."""
        snapshot = self._undo.peek()
        atomic_write_lines(
            Path(snapshot.file), list(snapshot.lines), trailing_newline=snapshot.trailing_newline
        )
        self._undo.pop()
        return MutationOutcome(file=snapshot.file)

    def backup(self, path: Path) -> Path:
        """Explicit backup; failures propagate."""
        return backup_file(path, self._backup_dir, self._clock())

    def _commit(
        self,
        path: Path,
        before: list[str],
        after: list[str],
        terminated: bool = True,
    ) -> MutationOutcome:
        outcome = MutationOutcome(file=str(path))
        self._undo.push(
            UndoSnapshot(file=str(path), lines=tuple(before), trailing_newline=terminated)
        )
        try:
            backup_file(path, self._backup_dir, self._clock())
        except RepoIOError as error:
            outcome.warnings.append(f"backup skipped: {error.message}")
        try:
            atomic_write_lines(path, after)
        except RepoIOError:
            self._undo.pop()
            raise
        return outcome

    @staticmethod
    def _locate_line(lines: list[str], entry: Entry) -> int:
        # Duplicate lines resolve to the first occurrence.
        for idx, line in enumerate(lines):
            if line == entry.display_text:
                return idx
        raise NotFoundError("Line not found in file (changed externally?)")

    def _toggle_line(self, lines: list[str], entry: Entry) -> tuple[list[str], bool]:
        idx = self._locate_line(lines, entry)
        current = lines[idx]
        updated = list(lines)
        if classify_one_line(current) is False:
            updated[idx] = strip_comment_marker(current)
            return updated, True
        updated[idx] = DISABLE_PREFIX + current
        return updated, False

    @staticmethod
    def _locate_block(lines: list[str], entry: Entry) -> BlockRange:
        blocks = block_ranges(lines)
        index = entry.block_index
        if index is None or index < 0 or index >= len(blocks):
            raise NotFoundError("Block index out of range (file changed externally?)")
        return blocks[index]

    def _toggle_block(self, lines: list[str], entry: Entry) -> tuple[list[str], bool]:
        block = self._locate_block(lines, entry)
        enabled = block_enabled(lines[block.start : block.end + 1])
        new_value = "Enabled: no" if enabled else "Enabled: yes"
        updated = list(lines)
        for idx in range(block.start, block.end + 1):
            if is_enabled_key(lines[idx]):
                updated[idx] = new_value
                return updated, not enabled
        updated.insert(block.start + 1, new_value)
        return updated, not enabled
