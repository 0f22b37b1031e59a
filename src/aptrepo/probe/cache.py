"""Local APT list cache lookup."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from aptrepo.errors import CacheUnavailableError
from aptrepo.probe.models import ProbeResult, ReleaseFields
from aptrepo.sources.models import Entry

LAST_UPDATE_FORMAT = "%Y-%m-%d %H:%M"

_RELEASE_KEYS = (
    ("Origin:", "origin"),
    ("Codename:", "codename"),
    ("Suite:", "suite"),
    ("Version:", "version"),
    ("Date:", "date"),
    ("Description:", "description"),
)


def cache_file_name(uri: str, suite: str) -> str:
    """Derive ``<host_path>_dists_<suite>_Release`` from a URI and suite."""
    host = uri
    scheme_end = host.find("://")
    if scheme_end != -1:
        host = host[scheme_end + 3 :]
    host = host.replace("/", "_").rstrip("_")
    return f"{host}_dists_{suite.replace('/', '_')}_Release"


def cache_path(cache_root: Path, uri: str, suite: str) -> Path:
    return cache_root / cache_file_name(uri, suite)


def read_release_fields(path: Path) -> ReleaseFields:
    """Extract known keys by prefix; raises when the file cannot be opened."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        raise CacheUnavailableError("Cache not found (run apt update)") from None
    values: dict[str, str] = {}
    for line in text.splitlines():
        for prefix, name in _RELEASE_KEYS:
            if line.startswith(prefix):
                values[name] = line[len(prefix) :].strip()
                break
    return ReleaseFields(**values)


def last_update(path: Path) -> str | None:
    """Cache mtime in local time, or None when the file is absent."""
    try:
        mtime = path.stat().st_mtime
    except OSError:
        return None
    return datetime.fromtimestamp(mtime).strftime(LAST_UPDATE_FORMAT)


def cache_lookup(entry: Entry, cache_root: Path) -> ProbeResult:
    """Read cached Release metadata for an entry; ``reachable`` is left False."""
    if not entry.uri or not entry.suite:
        return ProbeResult(
            uri=entry.uri,
            suite=entry.suite,
            fields=ReleaseFields(),
            last_update=None,
            reachable=False,
        )
    path = cache_path(cache_root, entry.uri, entry.suite)
    updated = last_update(path)
    try:
        fields = read_release_fields(path)
    except CacheUnavailableError as error:
        return ProbeResult(
            uri=entry.uri,
            suite=entry.suite,
            fields=ReleaseFields(),
            last_update=updated,
            reachable=False,
            error=error.message,
        )
    return ProbeResult(
        uri=entry.uri,
        suite=entry.suite,
        fields=fields,
        last_update=updated,
        reachable=False,
    )
