from __future__ import annotations

import os
import time

import pytest

from codenotes_api.domain.entities import FingerprintSource, FingerprintVersion, GitSource, GitVersion
from codenotes_api.versioning import (
    compute_fingerprint,
    find_git_dir,
    note_source_from_version,
    read_packed_refs_commit,
    resolve_code_version,
)

COMMIT_A = "a" * 40
COMMIT_B = "b" * 40


def _make_git(root, head="ref: refs/heads/main\n"):
    git = root / ".git"
    (git / "refs" / "heads").mkdir(parents=True)
    (git / "HEAD").write_text(head, encoding="utf-8")
    return git


def test_branch_and_loose_ref(tmp_path) -> None:
    git = _make_git(tmp_path)
    (git / "refs" / "heads" / "main").write_text(COMMIT_A + "\n", encoding="utf-8")

    version = resolve_code_version(tmp_path)
    assert isinstance(version, GitVersion)
    assert version.repo_root == str(tmp_path.resolve())
    assert version.branch == "main"
    assert version.head_commit == COMMIT_A
    assert version.is_dirty_approx is None


def test_nested_branch_name(tmp_path) -> None:
    git = _make_git(tmp_path, head="ref: refs/heads/feature/login\n")
    (git / "refs" / "heads" / "feature").mkdir()
    (git / "refs" / "heads" / "feature" / "login").write_text(COMMIT_A, encoding="utf-8")

    version = resolve_code_version(tmp_path)
    assert version.branch == "feature/login"
    assert version.head_commit == COMMIT_A


def test_packed_refs_fallback_skips_comments_and_peeled_lines(tmp_path) -> None:
    git = _make_git(tmp_path)
    (git / "packed-refs").write_text(
        "# pack-refs with: peeled fully-peeled sorted\n"
        f"{COMMIT_B} refs/heads/other\n"
        f"^{COMMIT_B}\n"
        f"{COMMIT_A} refs/heads/main\n",
        encoding="utf-8",
    )
    assert read_packed_refs_commit(git, "refs/heads/main") == COMMIT_A
    assert resolve_code_version(tmp_path).head_commit == COMMIT_A


def test_unresolved_ref_leaves_commit_unknown(tmp_path) -> None:
    _make_git(tmp_path)
    version = resolve_code_version(tmp_path)
    assert isinstance(version, GitVersion)
    assert version.branch == "main"
    assert version.head_commit is None


def test_detached_head(tmp_path) -> None:
    _make_git(tmp_path, head=COMMIT_B + "\n")
    version = resolve_code_version(tmp_path)
    assert version.branch is None
    assert version.head_commit == COMMIT_B


def test_walks_upward_from_subdirectory(tmp_path) -> None:
    git = _make_git(tmp_path)
    (git / "refs" / "heads" / "main").write_text(COMMIT_A, encoding="utf-8")
    sub = tmp_path / "pkg" / "mod"
    sub.mkdir(parents=True)

    version = resolve_code_version(sub, sub / "file.py")
    assert isinstance(version, GitVersion)
    assert version.repo_root == str(tmp_path.resolve())
    assert version.relative_path == "file.py"


def test_worktree_gitdir_redirect_uses_common_refs(tmp_path) -> None:
    main_repo = tmp_path / "repo"
    git = _make_git(main_repo)
    (git / "refs" / "heads" / "topic").write_text(COMMIT_B, encoding="utf-8")
    wt_git = git / "worktrees" / "wt"
    wt_git.mkdir(parents=True)
    (wt_git / "HEAD").write_text("ref: refs/heads/topic\n", encoding="utf-8")
    (wt_git / "commondir").write_text("../..\n", encoding="utf-8")

    worktree = tmp_path / "wt"
    worktree.mkdir()
    (worktree / ".git").write_text("gitdir: ../repo/.git/worktrees/wt\n", encoding="utf-8")

    found = find_git_dir(worktree)
    assert found == (wt_git.resolve(), worktree.resolve())

    version = resolve_code_version(worktree)
    assert isinstance(version, GitVersion)
    assert version.repo_root == str(worktree.resolve())
    assert version.branch == "topic"
    assert version.head_commit == COMMIT_B


def test_dirty_approx_compares_file_and_index_mtime(tmp_path) -> None:
    git = _make_git(tmp_path)
    index = git / "index"
    index.write_bytes(b"DIRC")
    src = tmp_path / "a.py"
    src.write_text("x = 1\n", encoding="utf-8")

    now = time.time()
    os.utime(index, (now, now))
    os.utime(src, (now + 10, now + 10))
    assert resolve_code_version(tmp_path, src).is_dirty_approx is True

    os.utime(src, (now - 10, now - 10))
    assert resolve_code_version(tmp_path, src).is_dirty_approx is False


def test_dirty_approx_unknown_without_index(tmp_path) -> None:
    _make_git(tmp_path)
    src = tmp_path / "a.py"
    src.write_text("x = 1\n", encoding="utf-8")
    assert resolve_code_version(tmp_path, src).is_dirty_approx is None


@pytest.fixture
def plain_tree(tmp_path, monkeypatch):
    # Keep the upward .git search from reaching a repository that contains tmp_path.
    monkeypatch.setattr("codenotes_api.versioning.find_git_dir", lambda start: None)
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "src" / "a.py").write_text("a\n", encoding="utf-8")
    (root / "README").write_text("r\n", encoding="utf-8")
    return root


def test_fingerprint_fallback(plain_tree) -> None:
    version = resolve_code_version(plain_tree, plain_tree / "src" / "a.py")
    assert isinstance(version, FingerprintVersion)
    assert version.repo_root == str(plain_tree.resolve())
    assert version.relative_path == "src/a.py"
    assert len(version.fingerprint) == 12
    int(version.fingerprint, 16)


def test_relative_path_of_source_root_is_empty(plain_tree) -> None:
    assert resolve_code_version(plain_tree, plain_tree).relative_path == ""
    assert resolve_code_version(plain_tree).relative_path is None


def test_fingerprint_stable_then_changes_when_file_added(plain_tree) -> None:
    first = compute_fingerprint(plain_tree)
    assert compute_fingerprint(plain_tree) == first

    extra = plain_tree / "src" / "b.py"
    extra.write_text("b\n", encoding="utf-8")
    os.utime(extra, (0, 0))
    assert compute_fingerprint(plain_tree) != first


def test_fingerprint_ignores_dependency_dirs(plain_tree) -> None:
    first = compute_fingerprint(plain_tree)
    deps = plain_tree / "node_modules" / "lib"
    deps.mkdir(parents=True)
    (deps / "index.js").write_text("x\n", encoding="utf-8")
    assert compute_fingerprint(plain_tree) == first


def test_fingerprint_cap_bounds_traversal(plain_tree) -> None:
    for i in range(5):
        (plain_tree / f"f{i}.txt").write_text("x", encoding="utf-8")
    capped = compute_fingerprint(plain_tree, file_cap=2)
    assert len(capped) == 12
    assert capped != compute_fingerprint(plain_tree)


def test_note_source_from_version_keeps_variant() -> None:
    git = note_source_from_version(GitVersion(repo_root="/r", branch="main", head_commit=COMMIT_A), "src/a.py")
    assert git == GitSource(repo_root="/r", relative_path="src/a.py", branch="main", head_commit=COMMIT_A)

    fp = note_source_from_version(FingerprintVersion(repo_root="/r", fingerprint="abc123"), "src")
    assert fp == FingerprintSource(repo_root="/r", relative_path="src", fingerprint="abc123")

    with pytest.raises(TypeError):
        note_source_from_version(object(), "x")  # type: ignore[arg-type]
