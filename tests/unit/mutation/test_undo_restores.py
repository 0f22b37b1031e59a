from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from aptrepo.errors import NothingToUndoError, RepoIOError
from aptrepo.mutation import MutationEngine
from aptrepo.sources import parse_one_line, parse_paragraph
from aptrepo.storage import UndoStack


def _engine(tmp_path: Path, primary: Path, capacity: int = 20) -> MutationEngine:
    return MutationEngine(
        undo=UndoStack(capacity=capacity),
        backup_dir=tmp_path / "backups",
        primary_list=primary,
        clock=lambda: datetime(2024, 1, 2, 3, 4, 5),
    )


def test_undo_restores_bytes_exactly(tmp_path: Path) -> None:
    path = tmp_path / "x.sources"
    original = "Types: deb\nURIs: http://a/\nSuites: a\n\n\nTypes: deb\nURIs: http://b/\nSuites: b\n"
    path.write_text(original, encoding="utf-8")
    engine = _engine(tmp_path, tmp_path / "sources.list")

    engine.toggle(parse_paragraph(path)[0])
    engine.delete(parse_paragraph(path)[1])
    assert engine.undo_depth == 2

    engine.undo()
    engine.undo()

    assert path.read_text(encoding="utf-8") == original
    assert engine.undo_depth == 0


def test_undo_of_add_restores_missing_file_as_empty(tmp_path: Path) -> None:
    target = tmp_path / "new.list"
    engine = _engine(tmp_path, tmp_path / "sources.list")
    engine.add("deb http://a/ s", target)

    outcome = engine.undo()

    assert outcome.file == str(target)
    assert target.read_text(encoding="utf-8") == ""


def test_undo_with_empty_history_performs_no_io(tmp_path: Path) -> None:
    primary = tmp_path / "sources.list"
    engine = _engine(tmp_path, primary)

    with pytest.raises(NothingToUndoError):
        engine.undo()

    assert list(tmp_path.iterdir()) == []


def test_history_is_bounded_by_capacity(tmp_path: Path) -> None:
    primary = tmp_path / "sources.list"
    primary.write_text("deb http://a/ s\n", encoding="utf-8")
    engine = _engine(tmp_path, primary, capacity=2)

    for _ in range(3):
        engine.toggle(parse_one_line(primary)[0])

    assert engine.undo_depth == 2
    engine.undo()
    engine.undo()
    with pytest.raises(NothingToUndoError):
        engine.undo()
    assert primary.read_text(encoding="utf-8") == "# deb http://a/ s\n"


def test_failed_write_discards_its_snapshot(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    primary = tmp_path / "sources.list"
    primary.write_text("deb http://a/ s\n", encoding="utf-8")
    engine = _engine(tmp_path, primary)

    def fail_write(tmp: Path, text: str) -> None:
        raise OSError(5, "Input/output error")

    monkeypatch.setattr("aptrepo.storage.writer._write_temp", fail_write)

    with pytest.raises(RepoIOError):
        engine.toggle(parse_one_line(primary)[0])

    assert primary.read_text(encoding="utf-8") == "deb http://a/ s\n"
    assert engine.undo_depth == 0


def test_failed_undo_keeps_snapshot_for_retry(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    primary = tmp_path / "sources.list"
    primary.write_text("deb http://a/ s\n", encoding="utf-8")
    engine = _engine(tmp_path, primary)
    engine.toggle(parse_one_line(primary)[0])

    def fail_write(tmp: Path, text: str) -> None:
        raise OSError(5, "Input/output error")

    with monkeypatch.context() as patch:
        patch.setattr("aptrepo.storage.writer._write_temp", fail_write)
        with pytest.raises(RepoIOError):
            engine.undo()

    assert engine.undo_depth == 1
    engine.undo()
    assert primary.read_text(encoding="utf-8") == "deb http://a/ s\n"


def test_undo_restores_file_without_final_newline(tmp_path: Path) -> None:
    primary = tmp_path / "sources.list"
    original = b"deb http://a.example/ s main\n# deb http://b.example/ t"
    primary.write_bytes(original)
    engine = _engine(tmp_path, primary)

    engine.toggle(parse_one_line(primary)[0])
    assert primary.read_bytes().endswith(b"\n")

    engine.undo()

    assert primary.read_bytes() == original
