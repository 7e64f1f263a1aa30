from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .domain.exceptions import FileTooLarge

logger = logging.getLogger("codenotes.scan")

READ_TEXT_MAX_BYTES = 2 * 1024 * 1024
SEARCH_FILE_MAX_BYTES = 512 * 1024

SCAN_IGNORE_DIRS = frozenset({"node_modules", ".git", ".vscode", "dist", "build", "__pycache__"})
SCAN_ALLOW_EXTENSIONS = frozenset(
    {
        ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".go", ".java", ".rs",
        ".c", ".cc", ".cpp", ".h", ".hpp", ".md", ".txt", ".json", ".yml", ".yaml",
        ".toml", ".ini", ".css", ".html", ".xml", ".env", ".sh", ".bat", ".ps1", ".sql",
    }
)
SCAN_ALLOW_BARE_NAMES = frozenset({"makefile", "dockerfile", "license", "readme"})

SEARCH_IGNORE_DIRS = frozenset({".git", ".vscode", "node_modules", "dist", "build", "out", ".next", ".turbo"})
SEARCH_ALLOW_EXTENSIONS = frozenset(
    {
        ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".go", ".java", ".rs",
        ".md", ".txt", ".json", ".yml", ".yaml", ".toml", ".css", ".html", ".xml",
        ".env", ".sh", ".bat", ".ps1",
    }
)


@dataclass(frozen=True)
class ScanEntry:
    absolute_path: str
    relative_path: str
    kind: Literal["file", "dir"]


@dataclass(frozen=True)
class SearchHit:
    relative_path: str
    line: int
    preview: str


def _extension(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def _scan_allows(name: str) -> bool:
    ext = _extension(name)
    if ext:
        return ext in SCAN_ALLOW_EXTENSIONS
    return name.lower() in SCAN_ALLOW_BARE_NAMES


def _list_dir(path: str) -> list[os.DirEntry]:
    try:
        with os.scandir(path) as it:
            return list(it)
    except OSError as e:
        logger.debug("scan_skip_dir", extra={"path": path, "error": str(e)})
        return []


def scan_directory(source_dir: str | Path) -> list[ScanEntry]:
    """List browsable directories and files under ``source_dir``.

    Ignored directories are neither listed nor entered. Order is unspecified.
    """
    root = Path(source_dir).resolve()
    results: list[ScanEntry] = []
    stack = [str(root)]
    while stack:
        current = stack.pop()
        for entry in _list_dir(current):
            if entry.is_dir(follow_symlinks=False):
                if entry.name in SCAN_IGNORE_DIRS:
                    continue
                kind: Literal["file", "dir"] = "dir"
                stack.append(entry.path)
            elif entry.is_file(follow_symlinks=False):
                if not _scan_allows(entry.name):
                    continue
                kind = "file"
            else:
                continue
            results.append(
                ScanEntry(
                    absolute_path=entry.path,
                    relative_path=Path(entry.path).relative_to(root).as_posix(),
                    kind=kind,
                )
            )
    return results


def read_text_file(file_path: str | Path, *, max_bytes: int = READ_TEXT_MAX_BYTES) -> str:
    path = Path(file_path).resolve()
    size = path.stat().st_size
    if size > max_bytes:
        raise FileTooLarge(str(path), size, max_bytes)
    return path.read_text(encoding="utf-8", errors="replace")


def _first_match(text: str, needle: str) -> tuple[int, str] | None:
    # Matches across line breaks; the hit is reported on the line it starts in.
    lowered = text.lower()
    idx = lowered.find(needle)
    if idx < 0:
        return None
    # Lowercasing can change string length, so count newlines in the lowered prefix.
    lineno = lowered.count("\n", 0, idx) + 1
    return lineno, text.split("\n")[lineno - 1].strip()


def search_source_text(source_dir: str | Path, query: str, limit: int = 20) -> list[SearchHit]:
    """Case-insensitive substring search, first hit per file.

    Skips files over :data:`SEARCH_FILE_MAX_BYTES` and files containing a NUL
    byte, and stops walking as soon as ``limit`` hits are collected.
    """
    needle = query.strip().lower()
    if not needle or limit <= 0:
        return []

    root = Path(source_dir).resolve()
    results: list[SearchHit] = []
    stack = [str(root)]
    while stack and len(results) < limit:
        current = stack.pop()
        for entry in _list_dir(current):
            if len(results) >= limit:
                break
            if entry.is_dir(follow_symlinks=False):
                if entry.name not in SEARCH_IGNORE_DIRS:
                    stack.append(entry.path)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            ext = _extension(entry.name)
            if ext and ext not in SEARCH_ALLOW_EXTENSIONS:
                continue
            try:
                if entry.stat(follow_symlinks=False).st_size > SEARCH_FILE_MAX_BYTES:
                    continue
                with open(entry.path, "rb") as fh:
                    data = fh.read()
            except OSError as e:
                logger.debug("search_skip_file", extra={"path": entry.path, "error": str(e)})
                continue
            if b"\x00" in data:
                continue
            hit = _first_match(data.decode("utf-8", errors="replace"), needle)
            if hit is None:
                continue
            line, preview = hit
            results.append(
                SearchHit(
                    relative_path=Path(entry.path).relative_to(root).as_posix(),
                    line=line,
                    preview=preview,
                )
            )
    return results
