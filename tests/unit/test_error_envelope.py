from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from aptrepo.config import CliOverrides
from aptrepo.server import SessionServer, create_server


@pytest.fixture
def server(tmp_path: Path) -> Iterator[SessionServer]:
    apt_dir = tmp_path / "etc" / "apt"
    apt_dir.mkdir(parents=True)
    (apt_dir / "sources.list").write_text("deb http://a.example/ s main\n", encoding="utf-8")
    instance = create_server(root=str(tmp_path), cli_overrides=CliOverrides(read_only=False))
    yield instance
    instance.close()


def test_malformed_json_returns_invalid_json_error(server: SessionServer) -> None:
    response = server.handle_json_line("{not-json")

    assert response["ok"] is False
    assert response["error"] == {
        "code": "INVALID_JSON",
        "message": "Request must be valid JSON.",
    }
    assert str(response["request_id"]).startswith("req-")


def test_non_object_payload_is_invalid_request(server: SessionServer) -> None:
    response = server.handle_payload(["sources.list"])

    assert response["error"] == {"code": "INVALID_REQUEST", "message": "Request must be an object."}


def test_unknown_command_returns_explicit_error(server: SessionServer) -> None:
    response = server.handle_payload({"id": "abc-123", "method": "sources.unknown", "params": {}})

    assert response["ok"] is False
    assert response["request_id"] == "abc-123"
    assert response["error"] == {
        "code": "UNKNOWN_COMMAND",
        "message": "Unknown command: sources.unknown",
    }


def test_tools_call_arguments_must_be_object(server: SessionServer) -> None:
    payload = {"id": 7, "method": "tools/call", "params": {"name": "sources.list", "arguments": []}}

    response = server.handle_payload(payload)

    assert response["request_id"] == "7"
    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "tools/call params.arguments must be an object.",
    }


def test_index_outside_visible_list(server: SessionServer) -> None:
    response = server.handle_payload(
        {"id": "r1", "method": "sources.toggle", "params": {"index": 5}}
    )

    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "sources.toggle index 5 is outside the visible list.",
    }


def test_boolean_index_is_rejected(server: SessionServer) -> None:
    response = server.handle_payload(
        {"id": "r1", "method": "sources.delete", "params": {"index": True}}
    )

    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "sources.delete index must be an integer.",
    }


def test_empty_undo_maps_to_nothing_to_undo(server: SessionServer) -> None:
    response = server.handle_payload({"id": "r1", "method": "sources.undo", "params": {}})

    assert response["ok"] is False
    assert response["blocked"] is False
    assert response["error"] == {"code": "NOTHING_TO_UNDO", "message": "Nothing to undo."}


def test_invalid_add_maps_to_validation(server: SessionServer) -> None:
    response = server.handle_payload(
        {"id": "r1", "method": "sources.add", "params": {"line": "hello"}}
    )

    assert response["error"] == {
        "code": "VALIDATION",
        "message": "Invalid line: must start with 'deb'.",
    }


def test_externally_changed_file_maps_to_not_found(
    server: SessionServer, tmp_path: Path
) -> None:
    (tmp_path / "etc" / "apt" / "sources.list").write_text(
        "deb http://other.example/ s\n", encoding="utf-8"
    )

    response = server.handle_payload(
        {"id": "r1", "method": "sources.toggle", "params": {"index": 0}}
    )

    assert response["error"] == {
        "code": "NOT_FOUND",
        "message": "Line not found in file (changed externally?)",
    }
    listed = server.handle_payload({"id": "r2", "method": "sources.list", "params": {}})
    assert [entry["uri"] for entry in listed["result"]["entries"]] == ["http://other.example/"]


def test_unexpected_exception_maps_to_internal_error(server: SessionServer) -> None:
    def explode(_: dict[str, object]) -> dict[str, object]:
        raise RuntimeError("boom")

    server.registry.register("sources.explode", explode)

    response = server.handle_payload({"id": "r1", "method": "sources.explode", "params": {}})

    assert response["error"] == {
        "code": "INTERNAL_ERROR",
        "message": "Unhandled server error while executing command.",
    }
