"""Error taxonomy shared by the repository state engine."""

from __future__ import annotations


class RepoStateError(Exception):
    """Base failure carrying a stable machine-readable code."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(RepoStateError):
    """Expected line or block is missing from the live file."""

    code = "NOT_FOUND"


class RepoIOError(RepoStateError):
    """Open, write, rename or copy failure."""

    code = "IO_ERROR"


class ProbeTimeoutError(RepoStateError):
    """Name resolution or connect exceeded its budget."""

    code = "TIMEOUT"


class CacheUnavailableError(RepoStateError):
    """Local Release cache is absent; informational only."""

    code = "UNREACHABLE"


class ValidationError(RepoStateError):
    """Malformed input rejected before any file I/O."""

    code = "VALIDATION"


class NothingToUndoError(RepoStateError):
    """Undo requested with an empty history."""

    code = "NOTHING_TO_UNDO"

    def __init__(self, message: str = "Nothing to undo.") -> None:
        super().__init__(message)


class ReadOnlyError(RepoStateError):
    """Mutation refused because the session is read-only."""

    code = "READ_ONLY"

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint
