"""Built-in session commands over the repository state."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from aptrepo.config import parse_sort_mode
from aptrepo.sources import Entry
from aptrepo.state import AppState
from aptrepo.tools.registry import CommandDispatchError, CommandHandler, CommandRegistry

DEFAULT_AUDIT_LIMIT = 50
MAX_AUDIT_LIMIT = 500


def register_builtin_tools(
    registry: CommandRegistry,
    state: AppState,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> None:
    """Register the session command set."""
    registry.register("sources.status", _status_handler(state))
    registry.register("sources.list", _list_handler(state))
    registry.register("sources.reload", _reload_handler(state))
    registry.register("sources.toggle", _toggle_handler(state))
    registry.register("sources.add", _add_handler(state))
    registry.register("sources.delete", _delete_handler(state))
    registry.register("sources.undo", _undo_handler(state))
    registry.register("sources.backup", _backup_handler(state))
    registry.register("sources.export", _export_handler(state))
    registry.register("sources.import", _import_handler(state))
    registry.register("sources.update", _update_handler(state))
    registry.register("sources.probe", _probe_handler(state))
    registry.register("sources.probe_result", _probe_result_handler(state))
    registry.register("sources.audit_log", _audit_log_handler(read_audit_entries))


def _entry_payload(index: int, entry: Entry) -> dict[str, object]:
    payload = entry.to_dict()
    payload["index"] = index
    return payload


def _require_entry(state: AppState, command: str, arguments: dict[str, object]) -> Entry:
    index = arguments.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise CommandDispatchError(
            code="INVALID_PARAMS",
            message=f"{command} index must be an integer.",
        )
    try:
        return state.entry_at(index)
    except IndexError:
        raise CommandDispatchError(
            code="INVALID_PARAMS",
            message=f"{command} index {index} is outside the visible list.",
        ) from None


def _require_path(command: str, arguments: dict[str, object], key: str = "path") -> Path:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise CommandDispatchError(
            code="INVALID_PARAMS",
            message=f"{command} {key} must be a non-empty string.",
        )
    return Path(value).expanduser()


def _with_warnings(result: dict[str, object], warnings: list[str]) -> dict[str, object]:
    if warnings:
        result["__warnings__"] = list(warnings)
    return result


def _status_handler(state: AppState) -> CommandHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        entries = state.entries
        enabled = sum(1 for entry in entries if entry.enabled)
        return {
            "entry_count": len(entries),
            "enabled_count": enabled,
            "disabled_count": len(entries) - enabled,
            "visible_count": len(state.visible),
            "read_only": state.read_only,
            "paragraph_format": state.include_paragraph,
            "query": state.query,
            "sort_mode": state.sort_mode.value,
            "undo_depth": state.undo_depth,
            "probe_running": state.probe.running,
            "effective_config": state.config.to_public_dict(),
        }

    return handler


def _list_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        query = arguments.get("query")
        if query is not None:
            if not isinstance(query, str):
                raise CommandDispatchError(
                    code="INVALID_PARAMS", message="sources.list query must be a string."
                )
            state.set_query(query)
        sort_mode = arguments.get("sort_mode")
        if sort_mode is not None:
            try:
                mode = parse_sort_mode(sort_mode, "sort_mode")
            except ValueError as error:
                raise CommandDispatchError(code="INVALID_PARAMS", message=str(error)) from None
            state.set_sort_mode(mode)
        return {
            "query": state.query,
            "sort_mode": state.sort_mode.value,
            "entries": [_entry_payload(idx, entry) for idx, entry in enumerate(state.visible)],
        }

    return handler


def _reload_handler(state: AppState) -> CommandHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        return {"entry_count": state.reload()}

    return handler


def _toggle_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        entry = _require_entry(state, "sources.toggle", arguments)
        outcome = state.toggle(entry)
        return _with_warnings(
            {"file": outcome.file, "enabled": outcome.enabled, "undo_depth": state.undo_depth},
            outcome.warnings,
        )

    return handler


def _add_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        line = arguments.get("line")
        if not isinstance(line, str):
            raise CommandDispatchError(
                code="INVALID_PARAMS", message="sources.add line must be a string."
            )
        target: Path | None = None
        if arguments.get("target") is not None:
            target = _require_path("sources.add", arguments, key="target")
        outcome = state.add(line, target)
        return _with_warnings(
            {"file": outcome.file, "undo_depth": state.undo_depth}, outcome.warnings
        )

    return handler


def _delete_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        entry = _require_entry(state, "sources.delete", arguments)
        outcome = state.delete(entry)
        return _with_warnings(
            {"file": outcome.file, "deleted": entry.display_text, "undo_depth": state.undo_depth},
            outcome.warnings,
        )

    return handler


def _undo_handler(state: AppState) -> CommandHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        outcome = state.undo()
        return {"file": outcome.file, "undo_depth": state.undo_depth}

    return handler


def _backup_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        entry = _require_entry(state, "sources.backup", arguments)
        destination = state.backup(entry)
        return {"file": entry.source_file, "backup": str(destination)}

    return handler


def _export_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _require_path("sources.export", arguments)
        count = state.export(path)
        return {"path": str(path), "exported": count}

    return handler


def _import_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _require_path("sources.import", arguments)
        result = state.import_from(path)
        return _with_warnings(
            {
                "path": str(path),
                "added": result.added,
                "lines": list(result.lines),
                "message": result.message,
            },
            result.warnings,
        )

    return handler


def _update_handler(state: AppState) -> CommandHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        result = state.update()
        return {
            "exit_code": result.exit_code,
            "output": result.output,
            "succeeded": result.succeeded,
            "message": result.message,
        }

    return handler


def _probe_handler(state: AppState) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        entry = _require_entry(state, "sources.probe", arguments)
        started = state.probe.request(entry)
        return {"started": started, "uri": entry.uri, "suite": entry.suite}

    return handler


def _probe_result_handler(state: AppState) -> CommandHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        result = state.probe.poll()
        return {
            "ready": result is not None,
            "running": state.probe.running,
            "result": result.to_dict() if result is not None else None,
        }

    return handler


def _audit_log_handler(
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> CommandHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", DEFAULT_AUDIT_LIMIT)

        since: str | None = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else DEFAULT_AUDIT_LIMIT
        limit = max(1, min(limit, MAX_AUDIT_LIMIT))

        return {"entries": read_audit_entries(since, limit)}

    return handler
