"""JSON-lines session server and CLI entrypoint."""

from __future__ import annotations

import argparse
import json
import queue
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from aptrepo.config import AppConfig, CliOverrides, load_effective_config
from aptrepo.errors import ReadOnlyError, RepoStateError
from aptrepo.logging import AuditEvent, JsonlAuditLogger, sanitize_arguments, utc_timestamp
from aptrepo.probe import MetadataProbe
from aptrepo.state import AppState
from aptrepo.tools.builtin import register_builtin_tools
from aptrepo.tools.registry import CommandDispatchError, CommandRegistry

DEFAULT_POLL_INTERVAL = 0.1
PROBE_READY_EVENT = "sources.probe_ready"

_EOF = object()


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for session startup configuration."""
    parser = argparse.ArgumentParser(prog="aptrepo")
    parser.add_argument("--root", required=False, default="/")
    parser.add_argument("--config", required=False, default=None)
    parser.add_argument("--primary-list", required=False, default=None)
    parser.add_argument("--sources-dir", required=False, default=None)
    parser.add_argument("--backup-dir", required=False, default=None)
    parser.add_argument("--cache-root", required=False, default=None)
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--probe-timeout-ms", type=int, required=False, default=None)
    parser.add_argument("--undo-capacity", type=int, required=False, default=None)
    parser.add_argument(
        "--sort-mode", choices=("file", "status", "alpha"), required=False, default=None
    )
    parser.add_argument(
        "--paragraph-format", choices=("true", "false"), required=False, default=None
    )
    parser.add_argument("--read-only", choices=("true", "false"), required=False, default=None)
    return parser


class SessionServer:
    """Foreground actor: reads requests, serializes mutations, relays probe results."""

    def __init__(self, config: AppConfig, probe: MetadataProbe | None = None) -> None:
        self._config = config
        self._state = AppState(config, probe=probe)
        self._audit_logger = JsonlAuditLogger(path=config.paths.data_dir / "audit.jsonl")
        self._registry = CommandRegistry()
        register_builtin_tools(
            self._registry,
            state=self._state,
            read_audit_entries=self._audit_logger.read,
        )
        self._fallback_request_counter = 0

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    def serve(
        self,
        in_stream: TextIO,
        out_stream: TextIO,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Process JSON-line requests until EOF, relaying probe results between them."""
        lines: queue.Queue[object] = queue.Queue()
        reader = threading.Thread(
            target=_pump_lines,
            args=(in_stream, lines),
            name="aptrepo-stdin",
            daemon=True,
        )
        reader.start()
        try:
            while True:
                try:
                    item = lines.get(timeout=poll_interval)
                except queue.Empty:
                    self._emit_probe_ready(out_stream)
                    continue
                if item is _EOF:
                    break
                line = str(item).strip()
                if line:
                    self._write(out_stream, self.handle_json_line(line))
                self._emit_probe_ready(out_stream)
        finally:
            self._state.close()

    def close(self) -> None:
        self._state.close()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={"raw_line_length": len(raw_line)},
                response=response,
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
            )
            return parsed

        request = parsed
        tool_name: str
        arguments: dict[str, object]
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = request.params

        try:
            result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except ReadOnlyError as error:
            response = self.blocked_response(
                request_id=request.request_id,
                code=error.code,
                reason=error.reason,
                hint=error.hint,
            )
        except RepoStateError as error:
            response = self.error_response(
                request_id=request.request_id,
                code=error.code,
                message=error.message,
            )
        except CommandDispatchError as error:
            response = self.error_response(
                request_id=request.request_id,
                code=error.code,
                message=error.message,
            )
        except Exception:
            response = self.error_response(
                request_id=request.request_id,
                code="INTERNAL_ERROR",
                message="Unhandled server error while executing command.",
            )
        else:
            response = self.success_response(
                request_id=request.request_id,
                result=result,
                warnings=_extract_result_warnings(result),
            )
        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=response,
        )
        return response

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize a sequential fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(
        request_id: str,
        result: dict[str, object],
        warnings: list[str] | None = None,
    ) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": warnings or [],
            "blocked": False,
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "blocked": False,
            "error": {"code": code, "message": message},
        }

    @staticmethod
    def blocked_response(request_id: str, code: str, reason: str, hint: str) -> dict[str, object]:
        """Build explicit blocked response envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {"reason": reason, "hint": hint},
            "warnings": [],
            "blocked": True,
            "error": {"code": code, "message": reason},
        }

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
    ) -> None:
        """Log one sanitized request event."""
        error_payload = response.get("error")
        error_code: str | None = None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            tool=tool_name,
            ok=bool(response.get("ok", False)),
            blocked=bool(response.get("blocked", False)),
            error_code=error_code,
            metadata=sanitize_arguments(arguments),
        )
        self._audit_logger.append(event)

    def _emit_probe_ready(self, out_stream: TextIO) -> None:
        result = self._state.probe.poll()
        if result is None:
            return
        self._write(out_stream, {"event": PROBE_READY_EVENT, "result": result.to_dict()})

    @staticmethod
    def _write(out_stream: TextIO, payload: dict[str, object]) -> None:
        out_stream.write(f"{json.dumps(payload, sort_keys=True)}\n")
        out_stream.flush()


def _pump_lines(in_stream: TextIO, lines: queue.Queue[object]) -> None:
    try:
        for raw_line in in_stream:
            lines.put(raw_line)
    finally:
        lines.put(_EOF)


def create_server(
    root: str = "/",
    config_file: str | None = None,
    cli_overrides: CliOverrides | None = None,
    probe: MetadataProbe | None = None,
) -> SessionServer:
    """Create a configured session server instance."""
    config = load_effective_config(
        root=Path(root),
        config_path=Path(config_file) if config_file is not None else None,
        overrides=cli_overrides,
    )
    return SessionServer(config=config, probe=probe)


def _optional_path(value: str | None) -> Path | None:
    return Path(value).resolve() if value is not None else None


def _optional_flag(value: str | None) -> bool | None:
    if value is None:
        return None
    return value == "true"


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the aptrepo session process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = CliOverrides(
        primary_list=_optional_path(args.primary_list),
        sources_dir=_optional_path(args.sources_dir),
        backup_dir=_optional_path(args.backup_dir),
        cache_root=_optional_path(args.cache_root),
        data_dir=_optional_path(args.data_dir),
        probe_timeout_ms=args.probe_timeout_ms,
        undo_capacity=args.undo_capacity,
        sort_mode=args.sort_mode,
        paragraph_format=_optional_flag(args.paragraph_format),
        read_only=_optional_flag(args.read_only),
    )
    try:
        server = create_server(root=args.root, config_file=args.config, cli_overrides=overrides)
    except ValueError as error:
        parser.error(str(error))
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


def _extract_result_warnings(result: dict[str, object]) -> list[str]:
    raw = result.pop("__warnings__", None)
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, str)]


if __name__ == "__main__":
    raise SystemExit(main())
