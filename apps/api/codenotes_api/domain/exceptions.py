from __future__ import annotations


class NoteStoreError(ValueError):
    pass


class PathEscape(NoteStoreError):
    pass


class InvalidConfiguration(NoteStoreError):
    pass


class InvalidFileName(NoteStoreError):
    pass


class MissingSource(NoteStoreError):
    pass


class InvalidImageData(NoteStoreError):
    pass


class InvalidNoteDocument(NoteStoreError):
    pass


class FileTooLarge(NoteStoreError):
    def __init__(self, path: str, size: int, limit: int) -> None:
        super().__init__("file_too_large")
        self.path = path
        self.size = size
        self.limit = limit
