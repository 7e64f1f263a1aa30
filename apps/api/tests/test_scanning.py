from __future__ import annotations

import builtins

import pytest

from codenotes_api.domain.exceptions import FileTooLarge
from codenotes_api.scanning import SEARCH_FILE_MAX_BYTES, read_text_file, scan_directory, search_source_text


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "src"
    (root / "pkg" / "deep").mkdir(parents=True)
    (root / "pkg" / "deep" / "mod.py").write_text("def handler():\n    return 'Needle'\n", encoding="utf-8")
    (root / "pkg" / "image.png").write_bytes(b"\x89PNG\x00\x00")
    (root / "Makefile").write_text("all:\n\techo needle\n", encoding="utf-8")
    (root / "notes.TXT").write_text("nothing here\n", encoding="utf-8")
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("needle\n", encoding="utf-8")
    (root / ".git").mkdir()
    (root / ".git" / "config").write_text("needle\n", encoding="utf-8")
    (root / "empty").mkdir()
    return root


def test_scan_directory_filters(tree) -> None:
    entries = {e.relative_path: e for e in scan_directory(tree)}
    assert set(entries) == {
        "pkg",
        "pkg/deep",
        "pkg/deep/mod.py",
        "Makefile",
        "notes.TXT",
        "empty",
    }
    assert entries["pkg"].kind == "dir"
    assert entries["pkg/deep/mod.py"].kind == "file"
    assert entries["pkg/deep/mod.py"].absolute_path == str(tree.resolve() / "pkg" / "deep" / "mod.py")


def test_search_empty_query_reads_nothing(tree, monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise AssertionError("filesystem touched")

    monkeypatch.setattr("codenotes_api.scanning.os.scandir", boom)
    monkeypatch.setattr(builtins, "open", boom)
    assert search_source_text(tree, "", 20) == []
    assert search_source_text(tree, "   \t", 20) == []


def test_search_case_insensitive_first_match_per_file(tree) -> None:
    (tree / "many.md").write_text("intro\nNEEDLE one\nneedle two\n", encoding="utf-8")
    hits = {h.relative_path: h for h in search_source_text(tree, "needle", 20)}
    assert set(hits) == {"pkg/deep/mod.py", "Makefile", "many.md"}
    assert hits["many.md"].line == 2
    assert hits["many.md"].preview == "NEEDLE one"
    assert hits["pkg/deep/mod.py"].line == 2
    assert hits["pkg/deep/mod.py"].preview == "return 'Needle'"


def test_search_query_spanning_lines(tree) -> None:
    (tree / "multi.md").write_text("alpha\nfirst part\nSecond Part\n", encoding="utf-8")
    hits = {h.relative_path: h for h in search_source_text(tree, "part\nsecond", 20)}
    assert set(hits) == {"multi.md"}
    assert hits["multi.md"].line == 2
    assert hits["multi.md"].preview == "first part"


def test_search_skips_binary_and_oversized(tree) -> None:
    (tree / "bin.txt").write_bytes(b"needle\x00\x01")
    (tree / "huge.txt").write_bytes(b"needle\n" + b"x" * SEARCH_FILE_MAX_BYTES)
    paths = {h.relative_path for h in search_source_text(tree, "needle", 20)}
    assert "bin.txt" not in paths
    assert "huge.txt" not in paths


def test_search_respects_limit(tmp_path) -> None:
    for i in range(30):
        (tmp_path / f"f{i}.py").write_text(f"# match {i}\n", encoding="utf-8")
    assert len(search_source_text(tmp_path, "match", 5)) == 5
    assert len(search_source_text(tmp_path, "match", 100)) == 30
    assert search_source_text(tmp_path, "match", 0) == []


def test_read_text_file_size_ceiling(tmp_path) -> None:
    small = tmp_path / "small.py"
    small.write_text("print('hi')\n", encoding="utf-8")
    assert read_text_file(small) == "print('hi')\n"

    big = tmp_path / "big.log"
    big.write_bytes(b"x" * 11)
    with pytest.raises(FileTooLarge):
        read_text_file(big, max_bytes=10)


def test_read_text_file_missing(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        read_text_file(tmp_path / "nope.txt")
