"""Filtered, stably ordered views over loaded entries."""

from __future__ import annotations

from collections.abc import Callable

from aptrepo.sources.models import Entry, SortMode


def filter_entries(entries: list[Entry], query: str) -> list[Entry]:
    """Keep entries whose display text contains the query, case-insensitively."""
    if not query:
        return list(entries)
    needle = query.lower()
    return [entry for entry in entries if needle in entry.display_text.lower()]


def _file_key(entry: Entry) -> tuple[str, str]:
    return (entry.source_file, entry.display_text)


def _status_key(entry: Entry) -> tuple[bool, str]:
    return (not entry.enabled, entry.display_text)


def _alpha_key(entry: Entry) -> str:
    return entry.display_text.lower()


_SORT_KEYS: dict[SortMode, Callable[[Entry], object]] = {
    SortMode.FILE: _file_key,
    SortMode.STATUS: _status_key,
    SortMode.ALPHA: _alpha_key,
}


def sort_entries(entries: list[Entry], mode: SortMode) -> list[Entry]:
    """Stable sort; equal keys keep their discovery order."""
    return sorted(entries, key=_SORT_KEYS[mode])  # type: ignore[arg-type]


def build_view(entries: list[Entry], query: str, mode: SortMode) -> list[Entry]:
    """Filter then sort."""
    return sort_entries(filter_entries(entries, query), mode)
