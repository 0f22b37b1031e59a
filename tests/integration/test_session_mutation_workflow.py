from __future__ import annotations

import subprocess
from collections.abc import Iterator
from pathlib import Path

import pytest

from aptrepo.config import CliOverrides
from aptrepo.server import SessionServer, create_server

PRIMARY = (
    "deb http://archive.ubuntu.com/ubuntu jammy main\n"
    "# deb http://archive.ubuntu.com/ubuntu jammy-backports main\n"
)
EXTRA = "Types: deb\nURIs: http://ppa.example.org/x\nSuites: jammy\nComponents: main\n"


def _layout(root: Path) -> tuple[Path, Path]:
    apt_dir = root / "etc" / "apt"
    (apt_dir / "sources.list.d").mkdir(parents=True)
    primary = apt_dir / "sources.list"
    primary.write_text(PRIMARY, encoding="utf-8")
    extra = apt_dir / "sources.list.d" / "extra.sources"
    extra.write_text(EXTRA, encoding="utf-8")
    return primary, extra


def _call(server: SessionServer, method: str, **params: object) -> dict[str, object]:
    return server.handle_payload({"id": f"req-{method}", "method": method, "params": params})


@pytest.fixture
def server(tmp_path: Path) -> Iterator[SessionServer]:
    _layout(tmp_path)
    instance = create_server(
        root=str(tmp_path),
        cli_overrides=CliOverrides(read_only=False, paragraph_format=True),
    )
    yield instance
    instance.close()


def test_status_reports_counts_and_flags(server: SessionServer) -> None:
    response = _call(server, "sources.status")

    assert response["ok"] is True
    result = response["result"]
    assert result["entry_count"] == 3
    assert result["enabled_count"] == 2
    assert result["disabled_count"] == 1
    assert result["read_only"] is False
    assert result["paragraph_format"] is True
    assert result["sort_mode"] == "file"
    assert result["undo_depth"] == 0
    assert result["probe_running"] is False


def test_list_filters_and_sorts_the_view(server: SessionServer) -> None:
    filtered = _call(server, "sources.list", query="UBUNTU")
    assert [entry["display_text"] for entry in filtered["result"]["entries"]] == [
        "# deb http://archive.ubuntu.com/ubuntu jammy-backports main",
        "deb http://archive.ubuntu.com/ubuntu jammy main",
    ]

    by_status = _call(server, "sources.list", query="", sort_mode="status")
    entries = by_status["result"]["entries"]
    assert [entry["enabled"] for entry in entries] == [True, True, False]
    assert [entry["index"] for entry in entries] == [0, 1, 2]

    invalid = _call(server, "sources.list", sort_mode="random")
    assert invalid["error"]["code"] == "INVALID_PARAMS"


def test_toggle_paragraph_then_undo(server: SessionServer, tmp_path: Path) -> None:
    extra = tmp_path.resolve() / "etc" / "apt" / "sources.list.d" / "extra.sources"

    toggled = _call(server, "sources.toggle", index=2)

    assert toggled["ok"] is True
    assert toggled["result"]["enabled"] is False
    assert toggled["result"]["undo_depth"] == 1
    assert toggled["warnings"] == []
    assert extra.read_text(encoding="utf-8").splitlines()[1] == "Enabled: no"
    listed = _call(server, "sources.list")
    assert listed["result"]["entries"][2]["enabled"] is False

    undone = _call(server, "sources.undo")

    assert undone["result"] == {"file": str(extra), "undo_depth": 0}
    assert extra.read_text(encoding="utf-8") == EXTRA


def test_add_then_delete_round_trip(server: SessionServer, tmp_path: Path) -> None:
    primary = tmp_path.resolve() / "etc" / "apt" / "sources.list"

    added = _call(server, "sources.add", line="deb http://deb.example/ stable main")
    assert added["ok"] is True
    assert primary.read_text(encoding="utf-8").endswith("deb http://deb.example/ stable main\n")

    listed = _call(server, "sources.list", query="deb.example")
    assert len(listed["result"]["entries"]) == 1

    deleted = _call(server, "sources.delete", index=0)
    assert deleted["result"]["deleted"] == "deb http://deb.example/ stable main"
    assert deleted["result"]["undo_depth"] == 2
    assert primary.read_text(encoding="utf-8") == PRIMARY


def test_add_to_explicit_target(server: SessionServer, tmp_path: Path) -> None:
    target = tmp_path / "etc" / "apt" / "sources.list.d" / "new.list"

    response = _call(server, "sources.add", line="deb http://new.example/ s", target=str(target))

    assert response["result"]["file"] == str(target)
    assert _call(server, "sources.status")["result"]["entry_count"] == 4


def test_export_and_import(server: SessionServer, tmp_path: Path) -> None:
    export_path = tmp_path / "export.list"

    exported = _call(server, "sources.export", path=str(export_path))

    assert exported["result"] == {"path": str(export_path), "exported": 3}
    assert export_path.read_text(encoding="utf-8").startswith("# APT Repository Export\n")

    again = _call(server, "sources.import", path=str(export_path))
    assert again["result"]["added"] == 0
    assert again["result"]["message"] == "No new repos found to import."
    assert _call(server, "sources.status")["result"]["undo_depth"] == 0

    incoming = tmp_path / "incoming.list"
    incoming.write_text(
        "deb http://archive.ubuntu.com/ubuntu jammy main\ndeb http://fresh.example/ s main\n",
        encoding="utf-8",
    )
    imported = _call(server, "sources.import", path=str(incoming))
    assert imported["result"]["added"] == 1
    assert imported["result"]["lines"] == ["deb http://fresh.example/ s main"]
    assert imported["result"]["message"] == "1 repo(s) imported."
    assert _call(server, "sources.status")["result"]["entry_count"] == 4


def test_manual_backup(server: SessionServer, tmp_path: Path) -> None:
    response = _call(server, "sources.backup", index=1)

    backup = Path(str(response["result"]["backup"]))
    assert backup.parent == tmp_path.resolve() / "var" / "backups" / "aptrepo"
    assert backup.read_text(encoding="utf-8") == PRIMARY


def test_backup_failure_surfaces_as_warning(tmp_path: Path) -> None:
    primary, _ = _layout(tmp_path)
    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    server = create_server(
        root=str(tmp_path),
        cli_overrides=CliOverrides(
            read_only=False, paragraph_format=True, backup_dir=blocker / "backups"
        ),
    )
    try:
        response = _call(server, "sources.toggle", index=1)
    finally:
        server.close()

    assert response["ok"] is True
    assert len(response["warnings"]) == 1
    assert response["warnings"][0].startswith("backup skipped:")
    assert "__warnings__" not in response["result"]
    assert primary.read_text(encoding="utf-8").startswith("# deb http://archive.ubuntu.com")


def test_toggle_reports_state_written_after_external_edit(
    server: SessionServer, tmp_path: Path
) -> None:
    extra = tmp_path.resolve() / "etc" / "apt" / "sources.list.d" / "extra.sources"
    extra.write_text(EXTRA + "Enabled: no\n", encoding="utf-8")

    toggled = _call(server, "sources.toggle", index=2)

    assert toggled["ok"] is True
    assert toggled["result"]["enabled"] is True
    assert extra.read_text(encoding="utf-8").splitlines()[-1] == "Enabled: yes"


def test_add_with_embedded_newline_is_rejected(server: SessionServer, tmp_path: Path) -> None:
    primary = tmp_path.resolve() / "etc" / "apt" / "sources.list"

    response = _call(server, "sources.add", line="deb http://x.example/ s\ndeb http://y/ t")

    assert response["ok"] is False
    assert response["error"]["code"] == "VALIDATION"
    assert primary.read_text(encoding="utf-8") == PRIMARY


def test_update_runs_apt_get_and_returns_output(
    server: SessionServer, monkeypatch: pytest.MonkeyPatch
) -> None:
    commands: list[list[str]] = []

    def fake_run(cmd: list[str], **_: object) -> subprocess.CompletedProcess[str]:
        commands.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="Reading package lists...\n", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    response = _call(server, "sources.update")

    assert response["ok"] is True
    assert commands == [["apt-get", "update"]]
    assert response["result"]["exit_code"] == 0
    assert response["result"]["output"] == "Reading package lists...\n"
    assert response["result"]["succeeded"] is True
