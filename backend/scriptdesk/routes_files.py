from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse

from .routes_auth import AdminDep
from .services import storage

router = APIRouter(prefix="/api/files", tags=["files"])

BUCKETS = {storage.SCRIPTS_BUCKET}


def _file(bucket: str, key: str):
    if bucket not in BUCKETS:
        raise HTTPException(status_code=404, detail="Bucket not found")
    try:
        path = storage.resolve(bucket, key)
    except storage.InvalidFile:
        raise HTTPException(status_code=400, detail="Invalid filename") from None
    if not path.exists() or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path)


@router.get("/signed/{bucket}/{key}")
async def get_signed_file(bucket: str, key: str, expires: int = Query(...), signature: str = Query(...)):
    if not storage.verify_signature(bucket, key, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired signature")
    return _file(bucket, key)


@router.get("/{bucket}/{key}")
async def get_public_file(bucket: str, key: str, _: AdminDep):
    """Unsigned path, admin only. Contractors receive signed URLs."""
    return _file(bucket, key)
