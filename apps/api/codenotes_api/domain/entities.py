from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Union

from ..util import rfc3339_from_datetime

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class GitVersion:
    repo_root: str
    relative_path: str | None = None
    branch: str | None = None
    head_commit: str | None = None
    is_dirty_approx: bool | None = None
    label: str | None = None
    type: Literal["git"] = "git"


@dataclass(frozen=True)
class FingerprintVersion:
    repo_root: str
    fingerprint: str
    relative_path: str | None = None
    label: str | None = None
    type: Literal["fingerprint"] = "fingerprint"


CodeVersion = Union[GitVersion, FingerprintVersion]


@dataclass(frozen=True)
class GitSource:
    repo_root: str
    relative_path: str
    branch: str | None = None
    head_commit: str | None = None
    is_dirty_approx: bool | None = None
    label: str | None = None
    type: Literal["git"] = "git"


@dataclass(frozen=True)
class FingerprintSource:
    repo_root: str
    relative_path: str
    fingerprint: str
    label: str | None = None
    type: Literal["fingerprint"] = "fingerprint"


NoteSource = Union[GitSource, FingerprintSource]


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def coerce_timestamp(value: Any) -> str:
    # YAML resolves unquoted ISO timestamps to datetime objects.
    if isinstance(value, datetime):
        return rfc3339_from_datetime(value)
    if isinstance(value, date):
        return value.isoformat()
    return value if isinstance(value, str) else ""


def note_source_to_mapping(source: NoteSource) -> dict:
    if isinstance(source, GitSource):
        data: dict[str, Any] = {
            "type": "git",
            "repo_root": source.repo_root,
            "relative_path": source.relative_path,
            "branch": source.branch,
            "head_commit": source.head_commit,
            "is_dirty_approx": source.is_dirty_approx,
            "label": source.label,
        }
    elif isinstance(source, FingerprintSource):
        data = {
            "type": "fingerprint",
            "repo_root": source.repo_root,
            "relative_path": source.relative_path,
            "fingerprint": source.fingerprint,
            "label": source.label,
        }
    else:
        raise TypeError(f"unknown note source: {source!r}")
    return {k: v for k, v in data.items() if v is not None}


def note_source_from_mapping(raw: Any) -> NoteSource | None:
    if not isinstance(raw, dict):
        return None
    repo_root = _opt_str(raw.get("repo_root"))
    if not repo_root:
        return None
    relative_path = raw.get("relative_path") if isinstance(raw.get("relative_path"), str) else ""
    kind = raw.get("type")
    if kind == "git":
        dirty = raw.get("is_dirty_approx")
        head = raw.get("head_commit")
        return GitSource(
            repo_root=repo_root,
            relative_path=relative_path,
            branch=_opt_str(raw.get("branch")),
            head_commit=str(head) if head not in (None, "") else None,
            is_dirty_approx=dirty if isinstance(dirty, bool) else None,
            label=_opt_str(raw.get("label")),
        )
    if kind == "fingerprint":
        fingerprint = raw.get("fingerprint")
        if fingerprint in (None, ""):
            return None
        return FingerprintSource(
            repo_root=repo_root,
            relative_path=relative_path,
            fingerprint=str(fingerprint),
            label=_opt_str(raw.get("label")),
        )
    return None


_KNOWN_KEYS = ("schema_version", "id", "title", "tags", "created_at", "updated_at", "source")


@dataclass
class NoteFrontmatter:
    id: str
    title: str
    tags: list[str]
    created_at: str
    updated_at: str
    source: NoteSource | None
    schema_version: int = SCHEMA_VERSION
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict, *, fallback_title: str = "") -> "NoteFrontmatter":
        """Lenient view over a parsed frontmatter mapping.

        Missing or mistyped keys fall back to empty defaults; unknown keys are
        kept in ``extra`` so they survive a rewrite.
        """
        title = data.get("title")
        raw_tags = data.get("tags")
        tags = [t for t in raw_tags if isinstance(t, str)] if isinstance(raw_tags, list) else []
        raw_id = data.get("id")
        return cls(
            id=str(raw_id) if raw_id not in (None, "") else "",
            title=title.strip() if isinstance(title, str) and title.strip() else fallback_title,
            tags=tags,
            created_at=coerce_timestamp(data.get("created_at")),
            updated_at=coerce_timestamp(data.get("updated_at")),
            source=note_source_from_mapping(data.get("source")),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_mapping(self) -> dict:
        data: dict[str, Any] = {
            "schema_version": SCHEMA_VERSION,
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.source is not None:
            data["source"] = note_source_to_mapping(self.source)
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class NotePatch:
    title: str | None = None
    tags: list[str] | None = None
    source: NoteSource | None = None


@dataclass(frozen=True)
class NoteContent:
    frontmatter: NoteFrontmatter
    content: str
    raw: str


@dataclass(frozen=True)
class NoteSummary:
    file_name: str
    title: str
    id: str
    updated_at: str


@dataclass(frozen=True)
class NoteDoc:
    doc_id: str
    source_relative_path: str
    note_file_name: str
    title: str
    tags: list[str]
    updated_at: str
    content: str
