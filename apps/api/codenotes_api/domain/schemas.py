from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class OkOut(BaseModel):
    ok: bool = True


class ScanDirectoryIn(BaseModel):
    sourceDir: str


class ScanEntryOut(BaseModel):
    absolutePath: str
    relativePath: str
    kind: Literal["file", "dir"]


class ReadTextFileIn(BaseModel):
    filePath: str


class ReadTextFileOut(BaseModel):
    text: str


class CodeVersionIn(BaseModel):
    sourceDir: str
    filePath: Optional[str] = None


class GitVersionOut(BaseModel):
    type: Literal["git"] = "git"
    repoRoot: str
    relativePath: Optional[str] = None
    branch: Optional[str] = None
    headCommit: Optional[str] = None
    isDirtyApprox: Optional[bool] = None
    label: Optional[str] = None


class FingerprintVersionOut(BaseModel):
    type: Literal["fingerprint"] = "fingerprint"
    repoRoot: str
    relativePath: Optional[str] = None
    fingerprint: str
    label: Optional[str] = None


CodeVersionOut = Union[GitVersionOut, FingerprintVersionOut]


class NoteLocationIn(BaseModel):
    sourceDir: str
    notesDir: str
    sourceRelativePath: str


class NoteSummaryOut(BaseModel):
    fileName: str
    title: str
    id: str
    updated_at: str


class NoteReadIn(BaseModel):
    notesDir: str
    sourceRelativePath: str
    fileName: str


class NoteReadOut(BaseModel):
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    content: str
    raw: str


class NoteSaveIn(NoteLocationIn):
    fileName: str
    content: str
    title: Optional[str] = None
    tags: Optional[list[str]] = None


class NoteCreateIn(NoteLocationIn):
    title: str


class NoteCreateOut(BaseModel):
    fileName: str


class NoteDeleteIn(NoteLocationIn):
    fileName: str


class ImageSaveIn(BaseModel):
    notesDir: str
    dataUrl: str


class ImageSaveOut(BaseModel):
    relativePath: str


class NoteDocsIn(BaseModel):
    notesDir: str


class NoteDocOut(BaseModel):
    docId: str
    sourceRelativePath: str
    noteFileName: str
    title: str
    tags: list[str] = Field(default_factory=list)
    updated_at: str
    content: str


class SourceSearchIn(BaseModel):
    sourceDir: str
    query: str
    limit: int = Field(20, ge=1, le=200)


class SearchHitOut(BaseModel):
    relativePath: str
    line: int
    preview: str


class ExplainSelectionIn(BaseModel):
    mode: Optional[Literal["ollama", "openai"]] = None
    endpoint: Optional[str] = None
    model: Optional[str] = None
    apiKey: Optional[str] = None
    sourceRelativePath: str
    selectedCode: str


class ExplainSelectionOut(BaseModel):
    provider: str
    text: str
