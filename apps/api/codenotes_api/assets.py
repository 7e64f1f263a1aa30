from __future__ import annotations

import base64
import binascii
import logging
import re
from pathlib import Path

from .domain.exceptions import InvalidImageData
from .util import atomic_write_bytes, sha256_hex

logger = logging.getLogger("codenotes.store")

ASSETS_DIR_NAME = "assets"
ASSET_DIGEST_CHARS = 16

_DATA_URL_RE = re.compile(r"data:(image/[a-zA-Z0-9.+-]+);base64,(.+)")
_EXTENSIONS = {
    "png": "png",
    "jpeg": "jpg",
    "jpg": "jpg",
    "pjpeg": "jpg",
    "gif": "gif",
    "webp": "webp",
}


def extension_for_mime(mime: str) -> str:
    subtype = mime.lower().split("/", 1)[-1]
    return _EXTENSIONS.get(subtype, "png")


def save_image_from_data_url(notes_dir: str | Path, data_url: str) -> str:
    """Store an ``image/*`` base64 data URL under ``assets/`` by content digest.

    Returns the notes-root-relative path (``assets/<digest>.<ext>``). Saving
    the same bytes twice writes once.
    """
    match = _DATA_URL_RE.fullmatch(data_url.strip())
    if not match:
        raise InvalidImageData("image_data_url_invalid")
    mime, payload = match.group(1), match.group(2)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageData("image_base64_invalid") from e

    file_name = f"{sha256_hex(data)[:ASSET_DIGEST_CHARS]}.{extension_for_mime(mime)}"
    abs_path = Path(notes_dir).resolve() / ASSETS_DIR_NAME / file_name
    if abs_path.exists():
        logger.debug("asset_exists", extra={"path": str(abs_path)})
    else:
        atomic_write_bytes(abs_path, data)
        logger.info("asset_saved", extra={"path": str(abs_path), "bytes": len(data)})
    return f"{ASSETS_DIR_NAME}/{file_name}"
