"""
File storage for uploaded scripts.

Files live in `{DATA_DIR}/storage/<bucket>/<key>` where key is
`{timestamp_ms}_{filename}`. Public URLs are served by routes_files;
signed URLs carry an HMAC-SHA256 signature and an expiry timestamp.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from pathlib import Path
from urllib.parse import quote

from scriptdesk.settings import get_settings

logger = logging.getLogger(__name__)

SCRIPTS_BUCKET = "scripts"
ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx"}

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    pass


class InvalidFile(StorageError):
    pass


class FileTooLarge(StorageError):
    pass


def sanitize_filename(filename: str) -> str:
    name = Path(filename or "").name
    name = _UNSAFE.sub("_", name).strip("._")
    return name or "script"


def check_upload(filename: str, size: int) -> None:
    ext = Path(filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise InvalidFile("Please upload a PDF, DOC, or DOCX file")
    limit = get_settings().max_upload_mb * 1024 * 1024
    if size > limit:
        raise FileTooLarge(f"Please upload a file smaller than {get_settings().max_upload_mb}MB")


def _bucket_dir(bucket: str) -> Path:
    return Path(get_settings().data_dir) / "storage" / bucket


def resolve(bucket: str, key: str) -> Path:
    if ".." in key or "/" in key or "\\" in key:
        raise InvalidFile("Invalid key")
    return _bucket_dir(bucket) / key


def upload(bucket: str, filename: str, content: bytes) -> str:
    """Store content and return its key."""
    key = f"{int(time.time() * 1000)}_{sanitize_filename(filename)}"
    path = resolve(bucket, key)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    except OSError as exc:
        logger.error(f"[storage] upload failed for {bucket}/{key}: {exc}")
        raise StorageError("Failed to upload file") from exc
    logger.info(f"[storage] stored {bucket}/{key} ({len(content)} bytes)")
    return key


def remove(bucket: str, key: str | None) -> bool:
    if not key:
        return False
    path = resolve(bucket, key)
    if not path.exists():
        return False
    try:
        path.unlink()
    except OSError as exc:
        logger.warning(f"[storage] could not remove {bucket}/{key}: {exc}")
        return False
    return True


def public_url(bucket: str, key: str) -> str:
    return f"/api/files/{bucket}/{quote(key)}"


def _signature(bucket: str, key: str, expires: int) -> str:
    secret = get_settings().secret_key.encode()
    msg = f"{bucket}/{key}:{expires}".encode()
    return hmac.new(secret, msg, hashlib.sha256).hexdigest()


def signed_url(bucket: str, key: str, ttl_sec: int | None = None) -> str:
    ttl = ttl_sec if ttl_sec is not None else get_settings().signed_url_ttl_sec
    expires = int(time.time()) + ttl
    sig = _signature(bucket, key, expires)
    return f"/api/files/signed/{bucket}/{quote(key)}?expires={expires}&signature={sig}"


def verify_signature(bucket: str, key: str, expires: int, signature: str) -> bool:
    if expires < int(time.time()):
        return False
    return hmac.compare_digest(_signature(bucket, key, expires), signature or "")
