from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from .domain.entities import (
    CodeVersion,
    FingerprintSource,
    FingerprintVersion,
    GitSource,
    GitVersion,
    NoteSource,
)

logger = logging.getLogger("codenotes.versioning")

FINGERPRINT_FILE_CAP = 5000
FINGERPRINT_HEX_CHARS = 12
FINGERPRINT_IGNORE_DIRS = frozenset({"node_modules", ".git", ".vscode", "dist", "build", "__pycache__"})

_GITDIR_RE = re.compile(r"gitdir:\s*(.+)", re.IGNORECASE)


@dataclass(frozen=True)
class GitHead:
    branch: str | None
    head_commit: str | None


def _read_optional_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (FileNotFoundError, NotADirectoryError):
        return None


def find_git_dir(start_dir: str | Path) -> tuple[Path, Path] | None:
    """Walk upward from ``start_dir`` looking for a ``.git`` marker.

    Returns ``(git_dir, work_tree_root)``. A ``.git`` file holding a
    ``gitdir:`` line (linked worktrees, submodules) is followed when its
    target exists.
    """
    current = Path(start_dir).resolve()
    while True:
        dot_git = current / ".git"
        if dot_git.is_dir():
            return dot_git, current
        if dot_git.is_file():
            match = _GITDIR_RE.search(dot_git.read_text(encoding="utf-8"))
            if match:
                target = (current / match.group(1).strip()).resolve()
                if target.exists():
                    return target, current
        if current.parent == current:
            return None
        current = current.parent


def _ref_dirs(git_dir: Path) -> list[Path]:
    dirs = [git_dir]
    common = _read_optional_text(git_dir / "commondir")
    if common and common.strip():
        common_dir = (git_dir / common.strip()).resolve()
        if common_dir != git_dir:
            dirs.append(common_dir)
    return dirs


def read_packed_refs_commit(git_dir: Path, ref_path: str) -> str | None:
    packed = _read_optional_text(git_dir / "packed-refs")
    if packed is None:
        return None
    for line in packed.splitlines():
        if not line or line.startswith("#") or line.startswith("^"):
            continue
        commit, _, ref = line.partition(" ")
        if ref.strip() == ref_path:
            return commit.strip()
    return None


def read_git_head(git_dir: Path) -> GitHead:
    head = (git_dir / "HEAD").read_text(encoding="utf-8").strip()
    if not head.lower().startswith("ref:"):
        return GitHead(branch=None, head_commit=head or None)

    ref_path = head[4:].strip()
    branch = ref_path[len("refs/heads/") :] if ref_path.startswith("refs/heads/") else ref_path
    head_commit = None
    for ref_dir in _ref_dirs(git_dir):
        loose = _read_optional_text(ref_dir.joinpath(*ref_path.split("/")))
        if loose is not None and loose.strip():
            head_commit = loose.strip()
            break
        packed = read_packed_refs_commit(ref_dir, ref_path)
        if packed:
            head_commit = packed
            break
    return GitHead(branch=branch or None, head_commit=head_commit)


def _dirty_approx(git_dir: Path, file_path: Path) -> bool | None:
    try:
        file_mtime = file_path.stat().st_mtime_ns
        index_mtime = (git_dir / "index").stat().st_mtime_ns
    except FileNotFoundError:
        return None
    return file_mtime > index_mtime


def compute_fingerprint(source_dir: str | Path, *, file_cap: int = FINGERPRINT_FILE_CAP) -> str:
    """Coarse signature of a tree: ``sha256(root|file_count|max_mtime_ns)``.

    Stops counting once ``file_cap`` files have been seen.
    """
    root = Path(source_dir).resolve()
    file_count = 0
    max_mtime_ns = 0
    stack = [root]
    while stack and file_count < file_cap:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            logger.debug("fingerprint_skip_dir", extra={"path": str(current), "error": str(e)})
            continue
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if entry.name not in FINGERPRINT_IGNORE_DIRS:
                    stack.append(Path(entry.path))
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            file_count += 1
            try:
                max_mtime_ns = max(max_mtime_ns, entry.stat(follow_symlinks=False).st_mtime_ns)
            except OSError:
                pass
            if file_count >= file_cap:
                break

    digest = hashlib.sha256(f"{root}|{file_count}|{max_mtime_ns}".encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_HEX_CHARS]


def resolve_code_version(source_dir: str | Path, file_path: str | Path | None = None) -> CodeVersion:
    source_root = Path(source_dir).resolve()
    target = Path(file_path).resolve() if file_path else None
    relative_path = None
    if target is not None and source_root in target.parents:
        relative_path = target.relative_to(source_root).as_posix()
    elif target == source_root:
        relative_path = ""

    found = find_git_dir(source_root)
    if found is None:
        fingerprint = compute_fingerprint(source_root)
        logger.debug("code_version_fingerprint", extra={"path": str(source_root), "fingerprint": fingerprint})
        return FingerprintVersion(repo_root=str(source_root), fingerprint=fingerprint, relative_path=relative_path)

    git_dir, repo_root = found
    head = read_git_head(git_dir)
    return GitVersion(
        repo_root=str(repo_root),
        relative_path=relative_path,
        branch=head.branch,
        head_commit=head.head_commit,
        is_dirty_approx=_dirty_approx(git_dir, target) if target is not None else None,
    )


def note_source_from_version(version: CodeVersion, source_relative_path: str) -> NoteSource:
    if isinstance(version, GitVersion):
        return GitSource(
            repo_root=version.repo_root,
            relative_path=source_relative_path,
            branch=version.branch,
            head_commit=version.head_commit,
            is_dirty_approx=version.is_dirty_approx,
            label=version.label,
        )
    if isinstance(version, FingerprintVersion):
        return FingerprintSource(
            repo_root=version.repo_root,
            relative_path=source_relative_path,
            fingerprint=version.fingerprint,
            label=version.label,
        )
    raise TypeError(f"unknown code version: {version!r}")
