import logging
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, Request

from codenotes_api.ai.openai_compat import ExternalAIError, explain_selection
from codenotes_api.ai.providers import ExplainRequest
from codenotes_api.assets import save_image_from_data_url
from codenotes_api.config import Settings
from codenotes_api.dependencies import get_settings
from codenotes_api.domain.entities import CodeVersion, FingerprintVersion, GitVersion, NotePatch, NoteSource
from codenotes_api.domain.schemas import (
    CodeVersionIn,
    ExplainSelectionIn,
    ExplainSelectionOut,
    FingerprintVersionOut,
    GitVersionOut,
    ImageSaveIn,
    ImageSaveOut,
    NoteCreateIn,
    NoteCreateOut,
    NoteDeleteIn,
    NoteDocOut,
    NoteDocsIn,
    NoteLocationIn,
    NoteReadIn,
    NoteReadOut,
    NoteSaveIn,
    NoteSummaryOut,
    OkOut,
    ReadTextFileIn,
    ReadTextFileOut,
    ScanDirectoryIn,
    ScanEntryOut,
    SearchHitOut,
    SourceSearchIn,
)
from codenotes_api.indexing.indexer import scan_all_note_docs
from codenotes_api.notes import NoteStore
from codenotes_api.sandbox import ensure_notes_outside_source, resolve_safe_child_path
from codenotes_api.scanning import read_text_file, scan_directory, search_source_text
from codenotes_api.versioning import note_source_from_version, resolve_code_version

router = APIRouter()
logger = logging.getLogger("codenotes.api")

_AI_CLIENT_ERRORS = {"selection_empty", "ai_config_incomplete", "api_key_missing", "ai_mode_unsupported"}


def _code_version_out(version: CodeVersion) -> Union[GitVersionOut, FingerprintVersionOut]:
    if isinstance(version, GitVersion):
        return GitVersionOut(
            repoRoot=version.repo_root,
            relativePath=version.relative_path,
            branch=version.branch,
            headCommit=version.head_commit,
            isDirtyApprox=version.is_dirty_approx,
            label=version.label,
        )
    if isinstance(version, FingerprintVersion):
        return FingerprintVersionOut(
            repoRoot=version.repo_root,
            relativePath=version.relative_path,
            fingerprint=version.fingerprint,
            label=version.label,
        )
    raise TypeError(f"unknown code version: {version!r}")


def _current_note_source(payload: NoteLocationIn) -> NoteSource:
    ensure_notes_outside_source(payload.sourceDir, payload.notesDir)
    abs_source = resolve_safe_child_path(payload.sourceDir, payload.sourceRelativePath)
    version = resolve_code_version(payload.sourceDir, abs_source)
    return note_source_from_version(version, payload.sourceRelativePath)


@router.get("/health")
def health():
    return {"ok": True}


@router.post("/fs/scan", response_model=list[ScanEntryOut])
def fs_scan(payload: ScanDirectoryIn):
    entries = scan_directory(payload.sourceDir)
    return [ScanEntryOut(absolutePath=e.absolute_path, relativePath=e.relative_path, kind=e.kind) for e in entries]


@router.post("/fs/read-text", response_model=ReadTextFileOut)
def fs_read_text(payload: ReadTextFileIn):
    return ReadTextFileOut(text=read_text_file(payload.filePath))


@router.post("/source/code-version", response_model=Union[GitVersionOut, FingerprintVersionOut])
def source_code_version(payload: CodeVersionIn):
    return _code_version_out(resolve_code_version(payload.sourceDir, payload.filePath))


@router.post("/notes/list", response_model=list[NoteSummaryOut])
def notes_list(payload: NoteLocationIn):
    source = _current_note_source(payload)
    store = NoteStore(payload.notesDir)
    store.ensure_main_note(payload.sourceRelativePath, source)
    return [
        NoteSummaryOut(fileName=s.file_name, title=s.title, id=s.id, updated_at=s.updated_at)
        for s in store.list_notes(payload.sourceRelativePath)
    ]


@router.post("/notes/read", response_model=NoteReadOut)
def notes_read(payload: NoteReadIn):
    note = NoteStore(payload.notesDir).read_note(payload.sourceRelativePath, payload.fileName)
    # YAML allows non-string keys (`2024: ...`); JSON objects do not.
    frontmatter = {str(k): v for k, v in note.frontmatter.to_mapping().items()}
    return NoteReadOut(frontmatter=frontmatter, content=note.content, raw=note.raw)


@router.post("/notes/save", response_model=OkOut)
def notes_save(payload: NoteSaveIn, request: Request):
    source = _current_note_source(payload)
    patch = NotePatch(title=payload.title, tags=payload.tags, source=source)
    fm = NoteStore(payload.notesDir).save_note(payload.sourceRelativePath, payload.fileName, payload.content, patch)
    logger.info("note_save", extra={"rid": getattr(request.state, "request_id", ""), "id": fm.id})
    return OkOut()


@router.post("/notes/create", response_model=NoteCreateOut)
def notes_create(payload: NoteCreateIn, request: Request):
    source = _current_note_source(payload)
    file_name = NoteStore(payload.notesDir).create_note(payload.sourceRelativePath, payload.title, source)
    logger.info("note_create", extra={"rid": getattr(request.state, "request_id", ""), "file": file_name})
    return NoteCreateOut(fileName=file_name)


@router.post("/notes/delete", response_model=OkOut)
def notes_delete(payload: NoteDeleteIn, request: Request):
    ensure_notes_outside_source(payload.sourceDir, payload.notesDir)
    NoteStore(payload.notesDir).delete_note(payload.sourceRelativePath, payload.fileName)
    logger.info("note_delete", extra={"rid": getattr(request.state, "request_id", ""), "file": payload.fileName})
    return OkOut()


@router.post("/notes/images", response_model=ImageSaveOut)
def notes_save_image(payload: ImageSaveIn):
    return ImageSaveOut(relativePath=save_image_from_data_url(payload.notesDir, payload.dataUrl))


@router.post("/search/note-docs", response_model=list[NoteDocOut])
def search_note_docs(payload: NoteDocsIn):
    return [
        NoteDocOut(
            docId=d.doc_id,
            sourceRelativePath=d.source_relative_path,
            noteFileName=d.note_file_name,
            title=d.title,
            tags=d.tags,
            updated_at=d.updated_at,
            content=d.content,
        )
        for d in scan_all_note_docs(payload.notesDir)
    ]


@router.post("/search/source-text", response_model=list[SearchHitOut])
def search_source(payload: SourceSearchIn):
    hits = search_source_text(payload.sourceDir, payload.query, payload.limit)
    return [SearchHitOut(relativePath=h.relative_path, line=h.line, preview=h.preview) for h in hits]


@router.post("/ai/explain-selection", response_model=ExplainSelectionOut)
def ai_explain_selection(payload: ExplainSelectionIn, settings: Settings = Depends(get_settings)):
    if len(payload.selectedCode) > settings.ai_max_chars:
        raise HTTPException(status_code=400, detail="selection_too_large")

    req = ExplainRequest(
        mode=payload.mode or settings.ai_mode,
        endpoint=payload.endpoint or settings.ai_endpoint or "",
        model=payload.model or settings.ai_model or "",
        api_key=payload.apiKey or settings.ai_api_key,
        source_relative_path=payload.sourceRelativePath,
        selected_code=payload.selectedCode,
    )
    try:
        resp = explain_selection(req, timeout_s=settings.ai_timeout_s)
    except ExternalAIError as e:
        status = 400 if str(e) in _AI_CLIENT_ERRORS else 502
        raise HTTPException(status_code=status, detail=str(e)) from e
    return ExplainSelectionOut(provider=resp.provider, text=resp.text.strip())
