from __future__ import annotations

import re
from pathlib import Path

from .domain.exceptions import InvalidConfiguration, InvalidFileName, PathEscape

NOTE_SUFFIX = ".md"
SAFE_NAME_MAX_CHARS = 48
SAFE_NAME_PLACEHOLDER = "Untitled"

_CONTROL_RE = re.compile(r"[\x00-\x1f]")
_RESERVED_RE = re.compile(r'[<>:"/\\|?*]')
_REPEATED_SEP_RE = re.compile(r"-+")
_EDGE_RE = re.compile(r"^[.\s-]+|[.\s-]+$")


def _is_within(base: Path, candidate: Path) -> bool:
    return candidate == base or base in candidate.parents


def resolve_safe_child_path(base_dir: str | Path, relative_path: str) -> Path:
    """Resolve a forward-slash ``relative_path`` under ``base_dir``.

    The result is either ``base_dir`` itself or strictly nested below it;
    anything else (``..`` segments, symlinks pointing out) raises
    :class:`PathEscape`.
    """
    if "\x00" in relative_path:
        raise PathEscape("path_contains_nul")
    base = Path(base_dir).resolve()
    segments = [s for s in relative_path.split("/") if s]
    candidate = base.joinpath(*segments).resolve()
    if not _is_within(base, candidate):
        raise PathEscape("path_outside_base")
    return candidate


def ensure_notes_outside_source(source_dir: str | Path, notes_dir: str | Path) -> None:
    source = Path(source_dir).resolve()
    notes = Path(notes_dir).resolve()
    if _is_within(source, notes):
        raise InvalidConfiguration("notes_dir_inside_source_dir")


def ensure_safe_file_name(raw: str) -> str:
    cleaned = _CONTROL_RE.sub("-", raw.strip())
    cleaned = _RESERVED_RE.sub("-", cleaned)
    cleaned = _REPEATED_SEP_RE.sub("-", cleaned)
    cleaned = _EDGE_RE.sub("", cleaned[:SAFE_NAME_MAX_CHARS])
    return cleaned or SAFE_NAME_PLACEHOLDER


def ensure_safe_note_file_name(file_name: str) -> str:
    trimmed = file_name.strip()
    if not trimmed:
        raise InvalidFileName("file_name_empty")
    if "/" in trimmed or "\\" in trimmed or "\x00" in trimmed:
        raise InvalidFileName("file_name_has_separator")
    if not trimmed.lower().endswith(NOTE_SUFFIX):
        raise InvalidFileName("file_name_not_note")
    return trimmed
