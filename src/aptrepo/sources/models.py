"""Typed models for loaded repository directives."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EntryFormat(str, Enum):
    """On-disk grammar an entry was read from."""

    ONE_LINE = "one_line"
    PARAGRAPH = "paragraph"


class SortMode(str, Enum):
    """Total orders available to the visible view."""

    FILE = "file"
    STATUS = "status"
    ALPHA = "alpha"


@dataclass(slots=True, frozen=True)
class Entry:
    """One resolved repository directive.

    ``display_text`` is the exact on-disk line for one-line entries and a
    synthesized ``types uri suite [components]`` rendering for paragraph
    entries. Mutations re-locate one-line entries by that text (first match
    wins) and paragraph entries by ``(source_file, block_index)``.
    """

    source_file: str
    display_text: str
    enabled: bool
    format: EntryFormat
    block_index: int | None
    uri: str
    suite: str
    components: str
    types: str

    @property
    def is_paragraph(self) -> bool:
        return self.format is EntryFormat.PARAGRAPH

    def to_dict(self) -> dict[str, object]:
        """Return a serializable view of the entry."""
        return {
            "source_file": self.source_file,
            "display_text": self.display_text,
            "enabled": self.enabled,
            "format": self.format.value,
            "block_index": self.block_index,
            "uri": self.uri,
            "suite": self.suite,
            "components": self.components,
            "types": self.types,
        }


@dataclass(slots=True, frozen=True)
class BlockRange:
    """Inclusive line span of one paragraph block."""

    start: int
    end: int
