import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codenotes_api.domain.exceptions import FileTooLarge, InvalidNoteDocument, NoteStoreError

logger = logging.getLogger("codenotes.api")


def _status_for(exc: NoteStoreError) -> int:
    if isinstance(exc, FileTooLarge):
        return 413
    if isinstance(exc, InvalidNoteDocument):
        return 422
    return 400


async def note_store_error_handler(request: Request, exc: NoteStoreError) -> JSONResponse:
    status = _status_for(exc)
    logger.info("request_rejected", extra={"path": request.url.path, "status": status, "error": str(exc)})
    return JSONResponse(status_code=status, content={"detail": str(exc)})


async def file_not_found_handler(request: Request, exc: FileNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "not_found"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NoteStoreError, note_store_error_handler)
    app.add_exception_handler(FileNotFoundError, file_not_found_handler)
