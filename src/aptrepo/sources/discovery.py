"""Deterministic discovery and loading of repository source files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from aptrepo.sources.models import Entry, EntryFormat
from aptrepo.sources.parsing import parse_one_line, parse_paragraph

ONE_LINE_SUFFIX = ".list"
PARAGRAPH_SUFFIX = ".sources"


@dataclass(slots=True, frozen=True)
class SourceFile:
    """A discovered file and the grammar used to read it."""

    path: Path
    format: EntryFormat


def discover_source_files(
    primary_list: Path,
    sources_dir: Path,
    include_paragraph: bool,
) -> list[SourceFile]:
    """List managed files: the primary file, then the override directory by name."""
    files: list[SourceFile] = []
    if primary_list.is_file():
        files.append(SourceFile(path=primary_list, format=EntryFormat.ONE_LINE))
    try:
        with os.scandir(sources_dir) as entries:
            ordered_entries = sorted(entries, key=lambda item: item.name)
    except OSError:
        return files
    for entry in ordered_entries:
        if not entry.is_file():
            continue
        suffix = Path(entry.name).suffix
        if suffix == ONE_LINE_SUFFIX:
            files.append(SourceFile(path=Path(entry.path), format=EntryFormat.ONE_LINE))
        elif include_paragraph and suffix == PARAGRAPH_SUFFIX:
            files.append(SourceFile(path=Path(entry.path), format=EntryFormat.PARAGRAPH))
    return files


def load_entries(
    primary_list: Path,
    sources_dir: Path,
    include_paragraph: bool,
) -> list[Entry]:
    """Load every entry in file-discovery order."""
    entries: list[Entry] = []
    for source in discover_source_files(primary_list, sources_dir, include_paragraph):
        if source.format is EntryFormat.PARAGRAPH:
            entries.extend(parse_paragraph(source.path))
        else:
            entries.extend(parse_one_line(source.path))
    return entries
