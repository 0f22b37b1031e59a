"""Explicitly owned application state for one foreground actor."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from aptrepo.apt_update import UpdateResult, run_apt_update
from aptrepo.config import AppConfig, effective_read_only
from aptrepo.errors import ReadOnlyError
from aptrepo.mutation import MutationEngine, MutationOutcome
from aptrepo.platform import paragraph_format_enabled
from aptrepo.probe import MetadataProbe
from aptrepo.sources import Entry, SortMode, build_view, load_entries
from aptrepo.storage import UndoStack
from aptrepo.transfer import ImportResult, export_entries, import_entries


class AppState:
    """Entry list, view settings, undo history and probe for one session.

    Everything except the probe mailbox is touched only by the foreground
    caller. Mutations reload the entry list from disk afterwards, whether
    they succeed or fail.
    """

    def __init__(
        self,
        config: AppConfig,
        probe: MetadataProbe | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._config = config
        self._clock = clock
        self._read_only = effective_read_only(config)
        self._include_paragraph = paragraph_format_enabled(config)
        self._undo = UndoStack(capacity=config.undo_capacity)
        self._engine = MutationEngine(
            undo=self._undo,
            backup_dir=config.paths.backup_dir,
            primary_list=config.paths.primary_list,
            clock=clock,
        )
        self._probe = probe or MetadataProbe(
            cache_root=config.paths.cache_root,
            timeout_ms=config.probe.timeout_ms,
            resolver_workers=config.probe.resolver_workers,
        )
        self._entries: list[Entry] = []
        self._visible: list[Entry] = []
        self._query = ""
        self._sort_mode = config.sort_mode
        self.reload()

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def include_paragraph(self) -> bool:
        return self._include_paragraph

    @property
    def entries(self) -> list[Entry]:
        return list(self._entries)

    @property
    def visible(self) -> list[Entry]:
        return list(self._visible)

    @property
    def query(self) -> str:
        return self._query

    @property
    def sort_mode(self) -> SortMode:
        return self._sort_mode

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def probe(self) -> MetadataProbe:
        return self._probe

    def reload(self) -> int:
        """Reload every managed file; returns the entry count."""
        self._entries = load_entries(
            self._config.paths.primary_list,
            self._config.paths.sources_dir,
            self._include_paragraph,
        )
        self._rebuild_view()
        return len(self._entries)

    def set_query(self, query: str) -> None:
        self._query = query
        self._rebuild_view()

    def set_sort_mode(self, mode: SortMode) -> None:
        self._sort_mode = mode
        self._rebuild_view()

    def entry_at(self, index: int) -> Entry:
        """Return the visible entry at ``index``."""
        if index < 0 or index >= len(self._visible):
            raise IndexError(index)
        return self._visible[index]

    def toggle(self, entry: Entry) -> MutationOutcome:
        self._require_writable()
        try:
            return self._engine.toggle(entry)
        finally:
            self.reload()

    def add(self, raw_line: str, target: Path | None = None) -> MutationOutcome:
        self._require_writable()
        try:
            return self._engine.add(raw_line, target)
        finally:
            self.reload()

    def delete(self, entry: Entry) -> MutationOutcome:
        self._require_writable()
        try:
            return self._engine.delete(entry)
        finally:
            self.reload()

    def undo(self) -> MutationOutcome:
        self._require_writable()
        try:
            return self._engine.undo()
        finally:
            self.reload()

    def backup(self, entry: Entry) -> Path:
        return self._engine.backup(Path(entry.source_file))

    def export(self, path: Path) -> int:
        return export_entries(self._entries, path, clock=self._clock)

    def import_from(self, path: Path) -> ImportResult:
        self._require_writable()
        try:
            return import_entries(
                path, self._entries, self._engine, self._config.paths.primary_list
            )
        finally:
            self.reload()

    def update(self) -> UpdateResult:
        """Refresh the package index; refused in read-only sessions."""
        self._require_writable()
        return run_apt_update()

    def close(self) -> None:
        self._probe.shutdown()

    def _rebuild_view(self) -> None:
        self._visible = build_view(self._entries, self._query, self._sort_mode)

    def _require_writable(self) -> None:
        if self._read_only:
            raise ReadOnlyError(
                reason="Session is read-only.",
                hint="Run as root or set access.read_only = false to edit repositories.",
            )
