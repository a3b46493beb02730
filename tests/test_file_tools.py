import pytest

from core.file_tools import (
    FileToolsError,
    PathEscapeError,
    apply_operations,
    read_project_files,
    resolve_in_root,
)
from core.types import FileEntry
from tests.fakes.fake_agents import create_op, delete_op, update_op


def test_apply_operations_writes_updates_and_deletes(tmp_path):
    (tmp_path / "old.html").write_text("bye")
    (tmp_path / "app.js").write_text("v0")

    applied = apply_operations([
        create_op("src/index.html", "<h1>hi</h1>"),
        update_op("app.js", "v1"),
        delete_op("old.html"),
        delete_op("never-existed.txt"),
    ], tmp_path)

    assert applied == ["src/index.html", "app.js", "old.html", "never-existed.txt"]
    assert (tmp_path / "src" / "index.html").read_text() == "<h1>hi</h1>"
    assert (tmp_path / "app.js").read_text() == "v1"
    assert not (tmp_path / "old.html").exists()


def test_escaping_path_rolls_back_earlier_writes(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    (root / "app.js").write_text("original")

    with pytest.raises(PathEscapeError):
        apply_operations([
            update_op("app.js", "changed"),
            create_op("new.js", "x"),
            create_op("../outside.js", "nope"),
        ], root)

    assert (root / "app.js").read_text() == "original"
    assert not (root / "new.js").exists()
    assert not (tmp_path / "outside.js").exists()


def test_rollback_restores_non_utf8_bytes_exactly(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    (root / "legacy.txt").write_bytes(b"caf\xe9")

    with pytest.raises(PathEscapeError):
        apply_operations([
            update_op("legacy.txt", "cafe"),
            create_op("../escape.txt", "nope"),
        ], root)

    assert (root / "legacy.txt").read_bytes() == b"caf\xe9"


def test_resolve_in_root_rejects_absolute_paths_elsewhere(tmp_path):
    with pytest.raises(PathEscapeError):
        resolve_in_root(tmp_path, "/etc/passwd")
    assert resolve_in_root(tmp_path, "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()


def test_read_project_files_uses_root_relative_paths(tmp_path):
    (tmp_path / "web").mkdir()
    (tmp_path / "web" / "index.html").write_text("<html></html>")

    entries = read_project_files(["web/index.html"], tmp_path)

    assert entries == [FileEntry("web/index.html", "<html></html>")]


def test_read_project_files_missing_file(tmp_path):
    with pytest.raises(FileToolsError, match="Cannot read"):
        read_project_files(["nope.js"], tmp_path)


def test_read_project_files_rejects_undecodable_content(tmp_path):
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n")

    with pytest.raises(FileToolsError, match="Cannot read logo.png"):
        read_project_files(["logo.png"], tmp_path)
