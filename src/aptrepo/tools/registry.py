"""Command registration and dispatch for the session server."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

CommandHandler = Callable[[dict[str, object]], dict[str, object]]


@dataclass(slots=True, frozen=True)
class CommandDispatchError(Exception):
    """Unknown command or malformed command arguments."""

    code: str
    message: str


@dataclass(slots=True)
class CommandRegistry:
    """Named handlers kept in registration order."""

    _handlers: dict[str, CommandHandler] = field(default_factory=dict)

    def register(self, name: str, handler: CommandHandler) -> None:
        self._handlers[name] = handler

    def get(self, name: str) -> CommandHandler | None:
        return self._handlers.get(name)

    def names(self) -> tuple[str, ...]:
        """Return registered command names in registration order."""
        return tuple(self._handlers.keys())

    def dispatch(self, name: str, arguments: dict[str, object]) -> dict[str, object]:
        handler = self.get(name)
        if handler is None:
            raise CommandDispatchError(code="UNKNOWN_COMMAND", message=f"Unknown command: {name}")
        return handler(arguments)
