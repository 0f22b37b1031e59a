"""Parsers for the one-line and paragraph repository grammars."""

from __future__ import annotations

from pathlib import Path

from aptrepo.sources.models import BlockRange, Entry, EntryFormat
from aptrepo.storage.writer import read_lines

ONE_LINE_TYPES = "deb"
ENABLED_VALUES = frozenset({"yes", "Yes", "YES"})

_KEY_TYPES = "Types:"
_KEY_URIS = "URIs:"
_KEY_SUITES = "Suites:"
_KEY_COMPONENTS = "Components:"
_KEY_ENABLED = "Enabled:"


def block_ranges(lines: list[str]) -> list[BlockRange]:
    """Number every maximal run of non-blank lines, in file order.

    This is the only block enumeration: loading and mutation both use it, so
    a block's index never depends on whether its content was accepted.
    """
    ranges: list[BlockRange] = []
    start: int | None = None
    for idx, line in enumerate(lines):
        blank = not line.strip()
        if not blank and start is None:
            start = idx
        elif blank and start is not None:
            ranges.append(BlockRange(start=start, end=idx - 1))
            start = None
    if start is not None:
        ranges.append(BlockRange(start=start, end=len(lines) - 1))
    return ranges


def strip_comment_marker(text: str) -> str:
    """Drop one leading '#' and at most one following space."""
    stripped = text.lstrip()
    if not stripped.startswith("#"):
        return text
    remainder = stripped[1:]
    if remainder.startswith(" "):
        remainder = remainder[1:]
    return remainder


def classify_one_line(line: str) -> bool | None:
    """Return True for an active directive, False for a disabled one, None otherwise."""
    trimmed = line.strip()
    if trimmed.startswith("deb"):
        return True
    if trimmed.startswith("#") and strip_comment_marker(trimmed).lstrip().startswith("deb"):
        return False
    return None


def parse_one_line_lines(source_file: str, lines: list[str]) -> list[Entry]:
    """Parse already-read one-line content into entries."""
    entries: list[Entry] = []
    for line in lines:
        enabled = classify_one_line(line)
        if enabled is None:
            continue
        trimmed = line.strip()
        parseable = trimmed if enabled else strip_comment_marker(trimmed)
        words = parseable.split()
        entries.append(
            Entry(
                source_file=source_file,
                display_text=line,
                enabled=enabled,
                format=EntryFormat.ONE_LINE,
                block_index=None,
                uri=words[1] if len(words) > 1 else "",
                suite=words[2] if len(words) > 2 else "",
                components=" ".join(words[3:]),
                types=ONE_LINE_TYPES,
            )
        )
    return entries


def parse_one_line(path: Path) -> list[Entry]:
    """Parse a one-line format file; a missing file yields no entries."""
    return parse_one_line_lines(str(path), read_lines(path, missing_ok=True))


def parse_paragraph_lines(source_file: str, lines: list[str]) -> list[Entry]:
    """Parse already-read paragraph content into entries."""
    entries: list[Entry] = []
    for block_index, block in enumerate(block_ranges(lines)):
        entries.extend(_parse_block(source_file, block_index, lines[block.start : block.end + 1]))
    return entries


def parse_paragraph(path: Path) -> list[Entry]:
    """Parse a paragraph format file; a missing file yields no entries."""
    return parse_paragraph_lines(str(path), read_lines(path, missing_ok=True))


def _parse_block(source_file: str, block_index: int, block: list[str]) -> list[Entry]:
    types = ""
    uris: list[str] = []
    suites: list[str] = []
    components_raw = ""
    components: list[str] = []
    enabled = True
    for raw in block:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith(_KEY_TYPES):
            types = line[len(_KEY_TYPES) :].strip()
        elif line.startswith(_KEY_URIS):
            uris = line[len(_KEY_URIS) :].split()
        elif line.startswith(_KEY_SUITES):
            suites = line[len(_KEY_SUITES) :].split()
        elif line.startswith(_KEY_COMPONENTS):
            components_raw = line[len(_KEY_COMPONENTS) :].strip()
            components = components_raw.split()
        elif line.startswith(_KEY_ENABLED):
            enabled = line[len(_KEY_ENABLED) :].strip() in ENABLED_VALUES

    if "deb" not in types or not uris or not suites:
        return []

    output: list[Entry] = []
    for uri in uris:
        for suite in suites:
            display = f"{types} {uri} {suite}"
            if components:
                display = f"{display} {' '.join(components)}"
            output.append(
                Entry(
                    source_file=source_file,
                    display_text=display,
                    enabled=enabled,
                    format=EntryFormat.PARAGRAPH,
                    block_index=block_index,
                    uri=uri,
                    suite=suite,
                    components=components_raw,
                    types=types,
                )
            )
    return output


def is_enabled_key(line: str) -> bool:
    """Return True when a paragraph line carries the Enabled key."""
    return line.strip().startswith(_KEY_ENABLED)


def block_enabled(block: list[str]) -> bool:
    """Return the live enabled state of one paragraph block."""
    enabled = True
    for raw in block:
        line = raw.strip()
        if line.startswith(_KEY_ENABLED):
            enabled = line[len(_KEY_ENABLED) :].strip() in ENABLED_VALUES
    return enabled
