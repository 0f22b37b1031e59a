"""Session command interfaces and registrations."""

from .registry import CommandDispatchError, CommandHandler, CommandRegistry

__all__ = ["CommandDispatchError", "CommandHandler", "CommandRegistry"]
