# booktracker/covers.py
"""Helpers for cover images: data URLs from the form and paths in the storage bucket."""
import base64
import binascii
import re
import time
from typing import Optional, Tuple

BUCKET = "book-covers"
PUBLIC_MARKER = f"/object/public/{BUCKET}/"
# covers kept by the self-hosted stores are served by the app itself
LOCAL_COVER_PREFIX = "/covers/"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$", re.S)

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

def is_data_url(value: Optional[str]) -> bool:
    return bool(value) and value.startswith("data:")

def decode_data_url(url: str) -> Tuple[bytes, str]:
    """Return (bytes, mime type) of a base64 data URL. Raises ValueError if malformed."""
    m = _DATA_URL_RE.match(url or "")
    if not m:
        raise ValueError("not a base64 data URL")
    try:
        data = base64.b64decode(m.group("data"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 payload: {e}") from e
    return data, m.group("mime") or "image/jpeg"

def encode_data_url(data: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"

def extension_for(mime: str, filename: Optional[str] = None) -> str:
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    return MIME_EXTENSIONS.get(mime, "jpg")

def cover_path(book_id: str, extension: str = "jpg", timestamp_ms: Optional[int] = None) -> str:
    """Object path inside the bucket, unique per upload."""
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{BUCKET}/{book_id}-{ts}.{extension}"

def storage_path_from_url(url: Optional[str]) -> Optional[str]:
    """Object path of a cover we host; None for anything else (e.g. an external image URL)."""
    if not url:
        return None
    if PUBLIC_MARKER in url:
        path = url.split(PUBLIC_MARKER, 1)[1]
    elif url.startswith(LOCAL_COVER_PREFIX):
        path = url[len(LOCAL_COVER_PREFIX):]
    else:
        return None
    return path.split("?", 1)[0] or None
