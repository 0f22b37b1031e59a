"""Typed models for metadata probe results."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(slots=True, frozen=True)
class ReleaseFields:
    """Key fields read from a cached Release file."""

    origin: str | None = None
    codename: str | None = None
    suite: str | None = None
    version: str | None = None
    date: str | None = None
    description: str | None = None


@dataclass(slots=True, frozen=True)
class Reachability:
    """Outcome of one network reachability check."""

    reachable: bool
    detail: str


@dataclass(slots=True, frozen=True)
class ProbeResult:
    """Combined cache lookup and reachability outcome for one entry.

    ``error`` is only set when the cache lookup fails; ``reachable`` is
    computed independently of it.
    """

    uri: str
    suite: str
    fields: ReleaseFields
    last_update: str | None
    reachable: bool
    error: str | None = None
    detail: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)
