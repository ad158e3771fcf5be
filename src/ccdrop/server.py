"""
Blind relay server for ccdrop.

The relay stores opaque blobs under freshly generated share ids and
streams them back on request. It never sees keys or plaintext.
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, StreamingResponse

from .config import RelayConfig
from .share_id import generate_share_id, validate_share_id
from .storage import BlobStore, FileBlobStore
from .types import (
    MIN_BLOB_SIZE,
    AlreadyExistsError,
    InvalidIdError,
    NotFoundError,
    StoreIOError,
    TruncatedTransferError,
)

logger = logging.getLogger(__name__)


class UploadRejectedError(Exception):
    """Raised from inside an upload stream to abort it with an HTTP status."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


async def _checked_stream(
    chunks: AsyncIterator[bytes],
    max_size: Optional[int],
) -> AsyncIterator[bytes]:
    received = 0
    async for chunk in chunks:
        if not chunk:
            continue
        received += len(chunk)
        if max_size is not None and received > max_size:
            raise UploadRejectedError(413, f"Blob exceeds maximum size of {max_size} bytes")
        yield chunk

    if received < MIN_BLOB_SIZE:
        raise UploadRejectedError(400, f"Blob too short: {received} bytes (minimum {MIN_BLOB_SIZE})")


def create_app(
    store: Optional[BlobStore] = None,
    config: Optional[RelayConfig] = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        store: Blob store to use (defaults to a FileBlobStore on config.share_dir)
        config: Relay configuration

    Returns:
        FastAPI application
    """
    config = config or RelayConfig()
    if store is None:
        store = FileBlobStore(config.share_dir, chunk_size=config.chunk_size)

    app = FastAPI(title="ccdrop relay")
    app.state.store = store
    app.state.config = config

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/share", response_class=PlainTextResponse)
    async def generate_share(request: Request):
        share_id = generate_share_id()
        logger.info("Generated new id: %s", share_id)

        try:
            size = await store.create(
                share_id, _checked_stream(request.stream(), config.max_blob_size)
            )
        except AlreadyExistsError:
            logger.warning("Share id collision on %s", share_id)
            raise HTTPException(
                status_code=409,
                detail="Share id already in use",
                headers={"X-Share-Id": str(share_id)},
            )
        except TruncatedTransferError as e:
            if isinstance(e.__cause__, UploadRejectedError):
                raise HTTPException(status_code=e.__cause__.status_code, detail=e.__cause__.detail)
            logger.warning("Upload for %s aborted after %d bytes", share_id, e.received)
            raise HTTPException(status_code=400, detail="Upload stream ended early")
        except StoreIOError:
            logger.exception("Storing share %s failed", share_id)
            raise HTTPException(status_code=500, detail="Could not store share")

        logger.info("Stored share %s (%d bytes)", share_id, size)
        return PlainTextResponse(str(share_id))

    @app.get("/get/{share_id}")
    async def serve_share(share_id: str):
        try:
            valid_id = validate_share_id(share_id)
        except InvalidIdError:
            raise HTTPException(status_code=400, detail="Invalid share id")

        try:
            reader = await store.open(valid_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Share not found")
        except StoreIOError:
            logger.exception("Opening share %s failed", valid_id)
            raise HTTPException(status_code=500, detail="Could not read share")

        cleanup = BackgroundTasks()
        cleanup.add_task(reader.aclose)

        headers = {}
        if reader.size is not None:
            headers["Content-Length"] = str(reader.size)

        return StreamingResponse(
            reader,
            media_type="application/octet-stream",
            headers=headers,
            background=cleanup,
        )

    return app


def run(config: Optional[RelayConfig] = None) -> None:
    """Serve the relay with uvicorn until interrupted."""
    import uvicorn

    config = config or RelayConfig.from_env()
    logger.info("Serving shares from %s on %s:%d", config.share_dir, config.host, config.port)
    uvicorn.run(create_app(config=config), host=config.host, port=config.port)


def main() -> None:
    """Entry point for the ccdrop-relay command."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run(RelayConfig.from_env())
