"""Export loaded entries and import directive lines from external files."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from aptrepo.mutation import MutationEngine
from aptrepo.sources.models import Entry
from aptrepo.storage.writer import atomic_write_lines, read_lines

EXPORT_HEADER = "# APT Repository Export"
PROVENANCE_MARKER = "  # from: "


@dataclass(slots=True)
class ImportResult:
    """Outcome of one import; ``added == 0`` means nothing new was found."""

    added: int
    lines: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.added == 0:
            return "No new repos found to import."
        return f"{self.added} repo(s) imported."


def export_line(entry: Entry) -> str:
    """Render one entry as a one-line directive with provenance."""
    text = f"deb {entry.uri} {entry.suite}"
    if entry.components:
        text = f"{text} {entry.components}"
    prefix = "" if entry.enabled else "# "
    return f"{prefix}{text}{PROVENANCE_MARKER}{entry.source_file}"


def export_entries(
    entries: list[Entry],
    path: Path,
    clock: Callable[[], datetime] = datetime.now,
) -> int:
    """Write every entry to ``path``; returns the number of entries written."""
    lines = [
        EXPORT_HEADER,
        f"# Generated: {clock().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
    ]
    lines.extend(export_line(entry) for entry in entries)
    atomic_write_lines(path, lines)
    return len(entries)


def select_new_lines(candidates: list[str], entries: list[Entry]) -> list[str]:
    """Return directive lines not already covered by an existing entry."""
    existing = [entry.display_text.strip().lower() for entry in entries]
    selected: list[str] = []
    for raw in candidates:
        line = raw.strip()
        marker = line.find(PROVENANCE_MARKER)
        if marker != -1:
            line = line[:marker].rstrip()
        if not line or line.startswith("#") or not line.startswith("deb"):
            continue
        needle = line[4:].lower()
        if any(needle in known for known in existing):
            continue
        selected.append(line)
        existing.append(line.lower())
    return selected


def import_entries(
    source: Path,
    entries: list[Entry],
    engine: MutationEngine,
    target: Path,
) -> ImportResult:
    """Append new directives from ``source`` to ``target`` in one transaction."""
    new_lines = select_new_lines(read_lines(source), entries)
    if not new_lines:
        return ImportResult(added=0)
    outcome = engine.append_lines(target, new_lines)
    return ImportResult(added=len(new_lines), lines=new_lines, warnings=outcome.warnings)
