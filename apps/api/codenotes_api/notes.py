from __future__ import annotations

import logging
import uuid
from pathlib import Path

from .domain.entities import NoteContent, NoteFrontmatter, NotePatch, NoteSource, NoteSummary
from .domain.exceptions import InvalidConfiguration, InvalidFileName, InvalidNoteDocument, MissingSource
from .parsing import parse_frontmatter, render_markdown_with_frontmatter
from .sandbox import (
    NOTE_SUFFIX,
    ensure_safe_file_name,
    ensure_safe_note_file_name,
    resolve_safe_child_path,
)
from .util import atomic_write_text, rfc3339_now

logger = logging.getLogger("codenotes.store")

MAIN_NOTE_FILE_NAME = "main.md"
MAIN_NOTE_TITLE = "Main note"
ID_SUFFIX_CHARS = 8


def _new_id() -> str:
    return str(uuid.uuid4())


def _fresh_frontmatter(note_id: str, title: str, source: NoteSource) -> NoteFrontmatter:
    now = rfc3339_now()
    return NoteFrontmatter(
        id=note_id,
        title=title,
        tags=[],
        created_at=now,
        updated_at=now,
        source=source,
    )


def _read_note_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InvalidNoteDocument("note_not_utf8") from e


def _summary_stub(file_name: str) -> NoteSummary:
    return NoteSummary(file_name=file_name, title=file_name, id=file_name, updated_at="")


class NoteStore:
    """Notes mirroring a source tree under ``notes_dir``.

    ``notes_dir/<source relative path>/`` holds one ``main.md`` plus any number
    of secondary ``<title>-<id8>.md`` notes. Saves are last-writer-wins: two
    concurrent saves of the same note both read, merge and rename, and the
    later rename replaces the earlier one.
    """

    def __init__(self, notes_dir: str | Path) -> None:
        self.notes_dir = Path(notes_dir).resolve()

    def note_folder(self, source_relative_path: str) -> Path:
        return resolve_safe_child_path(self.notes_dir, source_relative_path)

    def note_path(self, source_relative_path: str, file_name: str) -> Path:
        folder = self.note_folder(source_relative_path)
        path = resolve_safe_child_path(folder, file_name)
        if path == folder:
            raise InvalidFileName("file_name_empty")
        if path.is_dir():
            raise InvalidFileName("file_name_is_directory")
        return path

    def ensure_main_note(self, source_relative_path: str, source: NoteSource) -> bool:
        folder = self.note_folder(source_relative_path)
        folder.mkdir(parents=True, exist_ok=True)
        main_path = folder / MAIN_NOTE_FILE_NAME
        if main_path.is_file():
            return False
        if main_path.exists():
            # A source file named main.md mirrors to a folder at this path.
            raise InvalidConfiguration("main_note_path_conflict")
        fm = _fresh_frontmatter(_new_id(), MAIN_NOTE_TITLE, source)
        atomic_write_text(main_path, render_markdown_with_frontmatter(fm.to_mapping(), ""))
        logger.info("main_note_created", extra={"path": source_relative_path, "id": fm.id})
        return True

    def list_notes(self, source_relative_path: str) -> list[NoteSummary]:
        folder = self.note_folder(source_relative_path)
        folder.mkdir(parents=True, exist_ok=True)

        summaries: list[NoteSummary] = []
        for entry in folder.iterdir():
            if not entry.name.lower().endswith(NOTE_SUFFIX) or not entry.is_file():
                continue
            try:
                raw = entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("note_unreadable", extra={"path": str(entry), "error": str(e)})
                summaries.append(_summary_stub(entry.name))
                continue
            parsed = parse_frontmatter(raw)
            if parsed.error:
                logger.debug("note_frontmatter_invalid", extra={"path": str(entry), "error": parsed.error})
                summaries.append(_summary_stub(entry.name))
                continue
            fm = NoteFrontmatter.from_mapping(parsed.frontmatter, fallback_title=entry.name)
            summaries.append(
                NoteSummary(
                    file_name=entry.name,
                    title=fm.title,
                    id=fm.id or entry.name,
                    updated_at=fm.updated_at,
                )
            )

        summaries.sort(key=lambda n: n.updated_at, reverse=True)
        return summaries

    def read_note(self, source_relative_path: str, file_name: str) -> NoteContent:
        path = self.note_path(source_relative_path, file_name)
        raw = _read_note_text(path)
        parsed = parse_frontmatter(raw)
        if parsed.error:
            raise InvalidNoteDocument(parsed.error)
        return NoteContent(
            frontmatter=NoteFrontmatter.from_mapping(parsed.frontmatter, fallback_title=path.name),
            content=parsed.body,
            raw=raw,
        )

    def _updated_frontmatter(self, path: Path, patch: NotePatch) -> NoteFrontmatter:
        parsed = parse_frontmatter(_read_note_text(path))
        if parsed.error:
            raise InvalidNoteDocument(parsed.error)
        fm = NoteFrontmatter.from_mapping(parsed.frontmatter, fallback_title=MAIN_NOTE_TITLE)
        now = rfc3339_now()
        if not fm.id:
            fm.id = _new_id()
        if not fm.created_at:
            fm.created_at = now
        if patch.title:
            fm.title = patch.title
        if patch.tags is not None:
            fm.tags = list(patch.tags)
        if patch.source is not None:
            fm.source = patch.source
        if fm.source is None:
            raise InvalidNoteDocument("note_source_missing")
        fm.updated_at = max(now, fm.created_at)
        return fm

    def _created_frontmatter(self, patch: NotePatch) -> NoteFrontmatter:
        if patch.source is None:
            raise MissingSource("note_source_required")
        fm = _fresh_frontmatter(_new_id(), patch.title or MAIN_NOTE_TITLE, patch.source)
        if patch.tags is not None:
            fm.tags = list(patch.tags)
        return fm

    def save_note(self, source_relative_path: str, file_name: str, content: str, patch: NotePatch) -> NoteFrontmatter:
        path = self.note_path(source_relative_path, file_name)
        if path.exists():
            fm = self._updated_frontmatter(path, patch)
        else:
            fm = self._created_frontmatter(patch)
        atomic_write_text(path, render_markdown_with_frontmatter(fm.to_mapping(), content))
        logger.info("note_saved", extra={"path": source_relative_path, "file": file_name, "id": fm.id})
        return fm

    def create_note(self, source_relative_path: str, title: str, source: NoteSource) -> str:
        folder = self.note_folder(source_relative_path)
        note_id = _new_id()
        safe_title = ensure_safe_file_name(title)
        file_name = f"{safe_title}-{note_id[:ID_SUFFIX_CHARS]}{NOTE_SUFFIX}"
        fm = _fresh_frontmatter(note_id, title.strip() or safe_title, source)
        atomic_write_text(folder / file_name, render_markdown_with_frontmatter(fm.to_mapping(), ""))
        logger.info("note_created", extra={"path": source_relative_path, "file": file_name, "id": note_id})
        return file_name

    def delete_note(self, source_relative_path: str, file_name: str) -> None:
        safe_name = ensure_safe_note_file_name(file_name)
        folder = self.note_folder(source_relative_path)
        (folder / safe_name).unlink()
        logger.info("note_deleted", extra={"path": source_relative_path, "file": safe_name})
        self._prune_empty_dirs(folder)

    def _prune_empty_dirs(self, start: Path) -> None:
        current = start
        while current != self.notes_dir and self.notes_dir in current.parents:
            try:
                if any(current.iterdir()):
                    return
                current.rmdir()
            except OSError as e:
                logger.debug("prune_stopped", extra={"path": str(current), "error": str(e)})
                return
            current = current.parent
