from __future__ import annotations

import errno
import hashlib
import logging
import os
import secrets
import shutil
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger("codenotes.store")

# rename() can fail this way on filesystems (or platforms) that refuse to
# replace a destination held open by another process.
_RENAME_CONFLICT_ERRNOS = {errno.EPERM, errno.EACCES, errno.EEXIST, errno.ENOTEMPTY, errno.EBUSY}


def rfc3339_now() -> str:
    return rfc3339_from_datetime(datetime.now(timezone.utc))


def rfc3339_from_datetime(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sha256_hex(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _temp_path_for(path: Path) -> Path:
    return path.with_name(f"{path.name}.{secrets.token_hex(6)}.tmp")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` without ever exposing a partial file.

    The payload goes to a uniquely named sibling temp file first and is then
    renamed over the destination. If the rename is refused because the
    destination is busy, the temp file is copied over it and removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _temp_path_for(path)
    try:
        with open(tmp_path, "xb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    try:
        os.replace(tmp_path, path)
    except OSError as e:
        if e.errno not in _RENAME_CONFLICT_ERRNOS:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("atomic_rename_fallback", extra={"path": str(path), "errno": e.errno})
        shutil.copyfile(tmp_path, path)
        try:
            tmp_path.unlink()
        except OSError:
            logger.warning("temp_cleanup_failed", extra={"path": str(tmp_path)})


def atomic_write_text(path: Path, content: str) -> None:
    atomic_write_bytes(path, content.encode("utf-8"))
