"""Minimal os-release reading used to gate the paragraph format."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from aptrepo.config import AppConfig

_PARAGRAPH_MIN_VERSIONS = {"ubuntu": 22.04, "debian": 12.0}


@dataclass(slots=True, frozen=True)
class OsRelease:
    """Distribution identity from os-release."""

    id: str
    version: float


def read_os_release(path: Path) -> OsRelease:
    """Parse ID and VERSION_ID; unreadable files yield an unknown release."""
    os_id = "unknown"
    version = 0.0
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return OsRelease(id=os_id, version=version)
    for line in text.splitlines():
        if line.startswith("ID="):
            os_id = line[3:].strip().replace('"', "")
        elif line.startswith("VERSION_ID="):
            raw = line[11:].strip().replace('"', "")
            try:
                version = float(raw)
            except ValueError:
                continue
    return OsRelease(id=os_id, version=version)


def supports_paragraph_format(release: OsRelease) -> bool:
    """Return True on distributions that read *.sources files."""
    minimum = _PARAGRAPH_MIN_VERSIONS.get(release.id)
    return minimum is not None and release.version >= minimum


def paragraph_format_enabled(config: AppConfig) -> bool:
    """Resolve the paragraph-format tristate against the configured os-release."""
    if config.paragraph_format is not None:
        return config.paragraph_format
    return supports_paragraph_format(read_os_release(config.paths.os_release))
