"""Package index refresh through ``apt-get update``."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass

from aptrepo.errors import RepoIOError

APT_UPDATE_COMMAND = ("apt-get", "update")
DEFAULT_UPDATE_TIMEOUT_S = 600


@dataclass(slots=True, frozen=True)
class UpdateResult:
    """Exit status and combined output of one index refresh."""

    exit_code: int
    output: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def message(self) -> str:
        if self.succeeded:
            return "apt update completed successfully."
        return "apt update finished with errors."


def run_apt_update(timeout_s: int = DEFAULT_UPDATE_TIMEOUT_S) -> UpdateResult:
    """Run ``apt-get update`` and capture its stdout and stderr.

    A non-zero exit is a normal result. Failing to start the command, or
    exceeding ``timeout_s``, raises ``RepoIOError``.
    """
    try:
        completed = subprocess.run(
            list(APT_UPDATE_COMMAND),
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired:
        raise RepoIOError(f"apt-get update timed out after {timeout_s}s.") from None
    except OSError as error:
        raise RepoIOError(f"Cannot run apt-get update: {error.strerror or error}") from None
    output = (completed.stdout or "") + (completed.stderr or "")
    return UpdateResult(exit_code=completed.returncode, output=output)
