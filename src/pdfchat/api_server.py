"""
FastAPI service standing in for the upload broker, blob storage and chunking service.

Exposes:
    GET  /api/upload-target  short-lived signed upload target for one file
    POST /api/blobs          multipart upload against a signed target
    GET  /api/split          chunks a stored PDF and returns {result: {...}}
    GET  /health

Run with:
    pdfchat-server
"""
from __future__ import annotations

import hashlib
import hmac
import time

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from .chunker import DocumentChunker
from .config import (
    BLOB_UPLOAD_PATH,
    MAX_UPLOAD_BYTES,
    MAX_UPLOAD_SIZE_MB,
    SERVER_HOST,
    SERVER_PORT,
    SERVER_RELOAD,
    SPLIT_PATH,
    STORAGE_DIR,
    UPLOAD_SIGNING_SECRET,
    UPLOAD_TARGET_PATH,
    UPLOAD_TARGET_TTL_S,
    console,
)
from .errors import ChunkError
from .models import SplitResponse, SplitResult, UploadTarget
from .observability import get_logger
from .storage_provider import BlobStorageProvider, LocalBlobStorageProvider, safe_key

logger = get_logger(__name__)


def sign_upload_fields(key: str, content_type: str, expires: int, secret: str) -> str:
    payload = f"{key}\n{content_type}\n{int(expires)}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def _verify_upload_fields(key: str, content_type: str, expires_raw: str, signature: str, secret: str) -> bool:
    try:
        expires = int(expires_raw)
    except (TypeError, ValueError):
        return False
    if expires < int(time.time()):
        return False
    expected = sign_upload_fields(key, content_type, expires, secret)
    return hmac.compare_digest(expected, str(signature or ""))


def create_app(
    storage: BlobStorageProvider | None = None,
    *,
    chunker: DocumentChunker | None = None,
    signing_secret: str = UPLOAD_SIGNING_SECRET,
    target_ttl_s: int = UPLOAD_TARGET_TTL_S,
) -> FastAPI:
    storage = storage or LocalBlobStorageProvider(STORAGE_DIR)
    storage.ensure_ready()
    chunker = chunker or DocumentChunker()

    app = FastAPI(
        title="PDF Chat API",
        description="Upload broker, blob storage and chunking service for PDF chat",
        version="1.0.0",
    )
    app.state.storage = storage
    app.state.chunker = chunker

    @app.get(UPLOAD_TARGET_PATH, response_model=UploadTarget)
    def upload_target(
        request: Request,
        fileName: str = Query(..., min_length=1),
        fileType: str = Query(""),
    ):
        """Issues a signed, time-limited upload target for one file."""
        try:
            key = safe_key(fileName)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        expires = int(time.time()) + int(target_ttl_s)
        fields = {
            "key": key,
            "Content-Type": fileType,
            "expires": str(expires),
            "signature": sign_upload_fields(key, fileType, expires, signing_secret),
        }
        logger.info("upload_target_issued", key=key, file_type=fileType, expires=expires)
        return UploadTarget(url=str(request.url_for("upload_blob")), fields=fields)

    @app.post(BLOB_UPLOAD_PATH, status_code=204)
    async def upload_blob(request: Request):
        """Stores one file posted against a signed upload target."""
        async with request.form() as form:
            key = str(form.get("key") or "")
            content_type = str(form.get("Content-Type") or "")
            expires = str(form.get("expires") or "")
            signature = str(form.get("signature") or "")
            upload = form.get("file")
            if not isinstance(upload, UploadFile):
                raise HTTPException(status_code=400, detail="Missing file part.")
            if not _verify_upload_fields(key, content_type, expires, signature, signing_secret):
                logger.warning("blob_upload_forbidden", key=key)
                raise HTTPException(status_code=403, detail="Upload target is invalid or expired.")
            content = await upload.read()

        if len(content) > MAX_UPLOAD_BYTES:
            logger.warning("blob_upload_too_large", key=key, bytes=len(content))
            raise HTTPException(status_code=413, detail=f"File exceeds the {MAX_UPLOAD_SIZE_MB} MB limit.")
        try:
            await run_in_threadpool(storage.save_blob, key, content, content_type)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        logger.info("blob_stored", key=key, bytes=len(content), content_type=content_type)
        return Response(status_code=204)

    @app.get(SPLIT_PATH, response_model=SplitResponse)
    def split(fileName: str = Query(..., min_length=1)):
        """Chunks a previously uploaded PDF."""
        try:
            blob = storage.read_blob(fileName)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f'No uploaded file named "{fileName}".') from exc

        try:
            chunks = chunker.chunk(blob.content, blob.content_type, source=blob.key)
        except ChunkError as exc:
            logger.info("split_rejected", key=blob.key, reason=type(exc).__name__)
            return SplitResponse(result=SplitResult(type="error", message=exc.message, docs=[]))

        return SplitResponse(
            result=SplitResult(type="success", message=f'Loaded "{blob.key}"!', docs=chunks)
        )

    @app.get("/health")
    def health():
        return {"ok": True, "storage": str(storage.root)}

    return app


def main():
    console.print(f"[bold magenta]PDF Chat API[/bold magenta] on http://{SERVER_HOST}:{SERVER_PORT}")
    # The app is built by uvicorn at startup, not at import.
    uvicorn.run(
        "pdfchat.api_server:create_app",
        factory=True,
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=SERVER_RELOAD,
    )


if __name__ == "__main__":
    main()
