"""Repository source parsing, discovery and views."""

from .discovery import SourceFile, discover_source_files, load_entries
from .models import BlockRange, Entry, EntryFormat, SortMode
from .parsing import (
    block_ranges,
    classify_one_line,
    parse_one_line,
    parse_one_line_lines,
    parse_paragraph,
    parse_paragraph_lines,
)
from .view import build_view, filter_entries, sort_entries

__all__ = [
    "BlockRange",
    "Entry",
    "EntryFormat",
    "SortMode",
    "SourceFile",
    "block_ranges",
    "build_view",
    "classify_one_line",
    "discover_source_files",
    "filter_entries",
    "load_entries",
    "parse_one_line",
    "parse_one_line_lines",
    "parse_paragraph",
    "parse_paragraph_lines",
    "sort_entries",
]
