from __future__ import annotations

import logging
import os
from pathlib import Path

from ..assets import ASSETS_DIR_NAME
from ..domain.entities import NoteDoc, NoteFrontmatter
from ..parsing import parse_frontmatter
from ..sandbox import NOTE_SUFFIX

logger = logging.getLogger("codenotes.scan")

NOTE_INDEX_IGNORE_DIRS = frozenset({ASSETS_DIR_NAME, ".git", ".vscode", "node_modules"})


def _doc_stub(doc_id: str, source_relative_path: str, file_name: str) -> NoteDoc:
    return NoteDoc(
        doc_id=doc_id,
        source_relative_path=source_relative_path,
        note_file_name=file_name,
        title=file_name,
        tags=[],
        updated_at="",
        content="",
    )


def read_note_doc(root: Path, path: Path) -> NoteDoc:
    rel_folder = path.parent.relative_to(root).as_posix()
    source_relative_path = "" if rel_folder == "." else rel_folder
    doc_id = f"{source_relative_path}::{path.name}"
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("note_doc_unreadable", extra={"path": str(path), "error": str(e)})
        return _doc_stub(doc_id, source_relative_path, path.name)
    parsed = parse_frontmatter(raw)
    if parsed.error:
        logger.debug("note_doc_frontmatter_invalid", extra={"path": str(path), "error": parsed.error})
        return _doc_stub(doc_id, source_relative_path, path.name)
    fm = NoteFrontmatter.from_mapping(parsed.frontmatter, fallback_title=path.name)
    return NoteDoc(
        doc_id=doc_id,
        source_relative_path=source_relative_path,
        note_file_name=path.name,
        title=fm.title,
        tags=fm.tags,
        updated_at=fm.updated_at,
        content=parsed.body,
    )


def scan_all_note_docs(notes_dir: str | Path) -> list[NoteDoc]:
    """Flatten every note under ``notes_dir`` into a :class:`NoteDoc`, newest first."""
    root = Path(notes_dir).resolve()
    docs: list[NoteDoc] = []
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            logger.debug("note_index_skip_dir", extra={"path": str(current), "error": str(e)})
            continue
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                # Only the top-level asset folder is reserved; a nested "assets"
                # folder mirrors a source directory of that name.
                if entry.name in NOTE_INDEX_IGNORE_DIRS and (entry.name != ASSETS_DIR_NAME or current == root):
                    continue
                stack.append(Path(entry.path))
                continue
            if not entry.is_file(follow_symlinks=False) or not entry.name.lower().endswith(NOTE_SUFFIX):
                continue
            docs.append(read_note_doc(root, Path(entry.path)))

    docs.sort(key=lambda d: d.updated_at, reverse=True)
    return docs
