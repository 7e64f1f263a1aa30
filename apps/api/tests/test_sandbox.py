import pytest

from codenotes_api.domain.exceptions import InvalidConfiguration, InvalidFileName, PathEscape
from codenotes_api.sandbox import (
    ensure_notes_outside_source,
    ensure_safe_file_name,
    ensure_safe_note_file_name,
    resolve_safe_child_path,
)


@pytest.mark.parametrize(
    ("rel", "parts"),
    [
        ("a/b", ("a", "b")),
        ("", ()),
        ("a//b/", ("a", "b")),
        ("a/../c", ("c",)),
        ("src/main.py", ("src", "main.py")),
    ],
)
def test_resolve_safe_child_path_stays_under_base(tmp_path, rel, parts) -> None:
    base = tmp_path / "notes" / "x"
    assert resolve_safe_child_path(base, rel) == base.resolve().joinpath(*parts)


@pytest.mark.parametrize("rel", ["../../etc", "..", "a/../../b", "nul\x00byte"])
def test_resolve_safe_child_path_rejects_escape(tmp_path, rel) -> None:
    with pytest.raises(PathEscape):
        resolve_safe_child_path(tmp_path / "notes" / "x", rel)


def test_resolve_safe_child_path_rejects_sibling_prefix(tmp_path) -> None:
    # "/notes/x-other" shares a string prefix with "/notes/x" but is not inside it.
    with pytest.raises(PathEscape):
        resolve_safe_child_path(tmp_path / "x", "../x-other/file")


def test_resolve_safe_child_path_rejects_symlink_out(tmp_path) -> None:
    base = tmp_path / "base"
    base.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    (base / "link").symlink_to(outside, target_is_directory=True)
    with pytest.raises(PathEscape):
        resolve_safe_child_path(base, "link/secret")


def test_notes_inside_or_equal_to_source_rejected(tmp_path) -> None:
    src = tmp_path / "proj" / "src"
    with pytest.raises(InvalidConfiguration):
        ensure_notes_outside_source(src, src / "notes")
    with pytest.raises(InvalidConfiguration):
        ensure_notes_outside_source(src, src)


def test_notes_beside_source_accepted(tmp_path) -> None:
    ensure_notes_outside_source(tmp_path / "proj" / "src", tmp_path / "proj" / "notes")
    ensure_notes_outside_source(tmp_path / "proj" / "src", tmp_path / "proj" / "src-notes")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Hello/World:Test", "Hello-World-Test"),
        ("  spaced  ", "spaced"),
        ('a<>:"|?*b', "a-b"),
        ("tab\there", "tab-here"),
        ("...dots...", "dots"),
        ("---", "Untitled"),
        ("", "Untitled"),
        ("x" * 60, "x" * 48),
    ],
)
def test_ensure_safe_file_name(raw, expected) -> None:
    assert ensure_safe_file_name(raw) == expected


@pytest.mark.parametrize("name", ["", "   ", "a/b.md", "a\\b.md", "note.txt", "note"])
def test_ensure_safe_note_file_name_rejects(name) -> None:
    with pytest.raises(InvalidFileName):
        ensure_safe_note_file_name(name)


def test_ensure_safe_note_file_name_trims() -> None:
    assert ensure_safe_note_file_name("  Idea-1234abcd.MD ") == "Idea-1234abcd.MD"
