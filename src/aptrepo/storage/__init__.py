"""Transactional storage and undo history."""

from .undo import UndoSnapshot, UndoStack
from .writer import (
    atomic_write_lines,
    backup_file,
    backup_name,
    read_lines,
    read_text_lines,
    render_lines,
    temp_path_for,
)

__all__ = [
    "UndoSnapshot",
    "UndoStack",
    "atomic_write_lines",
    "backup_file",
    "backup_name",
    "read_lines",
    "read_text_lines",
    "render_lines",
    "temp_path_for",
]
