"""Transactional file primitives: line reads, backups and atomic replace."""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path

from aptrepo.errors import RepoIOError

TEMP_SUFFIX = ".aptrepo.tmp"
BACKUP_SUFFIX = ".bak"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

# Undecodable bytes survive a read/write cycle unchanged.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def read_text_lines(path: Path, missing_ok: bool = False) -> tuple[list[str], bool]:
    """Read a file as lines without terminators, plus whether it ended with one."""
    try:
        with path.open("r", encoding=_ENCODING, errors=_ERRORS, newline="") as handle:
            text = handle.read()
    except FileNotFoundError:
        if missing_ok:
            return [], True
        raise RepoIOError(f"Cannot open {path}: No such file or directory") from None
    except OSError as error:
        raise RepoIOError(f"Cannot open {path}: {error.strerror or error}") from error
    lines = text.split("\n")
    terminated = lines[-1] == ""
    if terminated:
        lines.pop()
    return lines, terminated or not lines


def read_lines(path: Path, missing_ok: bool = False) -> list[str]:
    """Read a file as a sequence of lines without terminators."""
    lines, _ = read_text_lines(path, missing_ok=missing_ok)
    return lines


def temp_path_for(path: Path) -> Path:
    """Sibling temporary path used while replacing ``path``."""
    return path.with_name(path.name + TEMP_SUFFIX)


def render_lines(lines: list[str], trailing_newline: bool = True) -> str:
    """Join lines with ``\\n``; the last one is terminated unless told otherwise."""
    text = "\n".join(lines)
    if lines and trailing_newline:
        text += "\n"
    return text


def _write_temp(tmp: Path, text: str) -> None:
    with tmp.open("w", encoding=_ENCODING, errors=_ERRORS, newline="") as handle:
        handle.write(text)
        handle.flush()
        os.fsync(handle.fileno())


def atomic_write_lines(path: Path, lines: list[str], trailing_newline: bool = True) -> None:
    """Replace ``path`` with ``lines`` via write-to-temporary then rename.

    The original file is either fully replaced or left untouched, and the
    replacement keeps the original's permission bits.
    """
    tmp = temp_path_for(path)
    try:
        _write_temp(tmp, render_lines(lines, trailing_newline))
    except OSError as error:
        tmp.unlink(missing_ok=True)
        raise RepoIOError(f"Write error on tmp file: {error.strerror or error}") from error
    if path.exists():
        try:
            shutil.copymode(path, tmp)
        except OSError as error:
            tmp.unlink(missing_ok=True)
            raise RepoIOError(
                f"Cannot copy file mode to tmp file: {error.strerror or error}"
            ) from error
    try:
        os.replace(tmp, path)
    except OSError as error:
        tmp.unlink(missing_ok=True)
        raise RepoIOError(f"rename() failed: {error.strerror or error}") from error


def backup_name(path: Path, timestamp: datetime) -> str:
    """Flatten a source path into a backup file name."""
    flattened = str(path).replace(os.sep, "_").replace("/", "_")
    return f"{flattened}.{timestamp.strftime(BACKUP_TIMESTAMP_FORMAT)}{BACKUP_SUFFIX}"


def backup_file(path: Path, backup_dir: Path, timestamp: datetime | None = None) -> Path:
    """Copy ``path`` into ``backup_dir``; same-second backups overwrite each other."""
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise RepoIOError(
            f"Cannot create backup dir: {error.strerror or error}"
        ) from error
    destination = backup_dir / backup_name(path, timestamp or datetime.now())
    try:
        shutil.copyfile(path, destination)
    except OSError as error:
        raise RepoIOError(f"Backup copy failed: {error.strerror or error}") from error
    return destination
