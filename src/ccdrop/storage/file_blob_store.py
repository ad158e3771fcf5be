"""
File-based blob storage for the relay.

Stores each blob as one file named by its share id under a single share
directory (``shares/`` by default).

## Storage Format

Each share file contains exactly the bytes uploaded by the client:
- Nonce: 12 bytes
- Ciphertext: variable
- Tag: 16 bytes

There is no metadata file. The store never looks inside the blob.

## Write-once

Uploads stream into a hidden ``.<id>.<random>.part`` file in the same
directory. Once the stream has been fully written and flushed, the part
file is hard-linked to its final name. ``os.link`` fails if the target
exists, which makes the commit an atomic exclusive-create: of two racing
uploads for the same id exactly one wins. The part file is always removed,
so an aborted upload never leaves a readable share behind. After the link
the share directory itself is fsynced so the new name survives a crash;
if that fails the share is removed again and the upload reported as failed.
"""

import asyncio
import logging
import os
import secrets
from pathlib import Path
from typing import AsyncIterable, BinaryIO, Union

from ..share_id import ShareId
from ..types import (
    DEFAULT_CHUNK_SIZE,
    AlreadyExistsError,
    NotFoundError,
    StoreIOError,
    TruncatedTransferError,
)
from .blob_store import BlobReader, BlobStore, require_share_id

logger = logging.getLogger(__name__)


class _FileBlobReader(BlobReader):
    """Reads a share file in fixed-size chunks off the event loop."""

    def __init__(self, handle: BinaryIO, size: int, chunk_size: int) -> None:
        self.size = size
        self._handle = handle
        self._chunk_size = chunk_size

    async def __anext__(self) -> bytes:
        if self._handle.closed:
            raise StopAsyncIteration
        chunk = await asyncio.to_thread(self._handle.read, self._chunk_size)
        if not chunk:
            await self.aclose()
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        if not self._handle.closed:
            await asyncio.to_thread(self._handle.close)


class FileBlobStore(BlobStore):
    """
    Write-once blob storage backed by a directory.

    Example usage:
        ```python
        store = FileBlobStore("shares")

        share_id = generate_share_id()
        await store.create(share_id, iter_bytes(blob))

        async with await store.open(share_id) as reader:
            async for chunk in reader:
                ...
        ```
    """

    # Suffix for in-progress uploads
    PART_SUFFIX = ".part"

    def __init__(
        self,
        root: Union[str, Path],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """
        Create a blob store rooted at a directory.

        Args:
            root: Share directory, created on first write if missing.
            chunk_size: Read size used when streaming blobs back.
        """
        self._root = Path(root)
        self._chunk_size = chunk_size

    @property
    def root(self) -> Path:
        """The share directory."""
        return self._root

    async def create(self, share_id: ShareId, chunks: AsyncIterable[bytes]) -> int:
        """
        Stream a blob into the store under a share id.

        Args:
            share_id: Validated share id.
            chunks: Incoming blob bytes.

        Returns:
            Number of bytes written.

        Raises:
            AlreadyExistsError: If the id is taken.
            TruncatedTransferError: If the incoming stream raised.
            StoreIOError: On filesystem failures.
        """
        require_share_id(share_id)
        final_path = self._share_path(share_id)

        if await asyncio.to_thread(final_path.exists):
            raise AlreadyExistsError(str(share_id))

        part_path = self._root / f".{share_id}.{secrets.token_hex(8)}{self.PART_SUFFIX}"
        try:
            await asyncio.to_thread(self._root.mkdir, parents=True, exist_ok=True)
            handle = await asyncio.to_thread(open, part_path, "xb")
        except OSError as e:
            raise StoreIOError(f"Cannot create share file for {share_id}: {e}") from e

        written = 0
        try:
            try:
                written = await self._write_stream(share_id, handle, chunks)
                await asyncio.to_thread(self._flush, handle)
            finally:
                await asyncio.to_thread(handle.close)

            try:
                await asyncio.to_thread(os.link, part_path, final_path)
            except FileExistsError as e:
                raise AlreadyExistsError(str(share_id)) from e
            except OSError as e:
                raise StoreIOError(f"Cannot commit share {share_id}: {e}") from e

            try:
                await asyncio.to_thread(self._sync_dir, self._root)
            except OSError as e:
                await asyncio.to_thread(self._discard, final_path)
                raise StoreIOError(f"Cannot sync share directory for {share_id}: {e}") from e
        finally:
            await asyncio.to_thread(self._discard, part_path)

        logger.debug("Stored share %s (%d bytes)", share_id, written)
        return written

    async def open(self, share_id: ShareId) -> BlobReader:
        """
        Open a stored blob.

        Raises:
            NotFoundError: If nothing is stored under the id.
            StoreIOError: If the file exists but cannot be read.
        """
        require_share_id(share_id)
        path = self._share_path(share_id)

        try:
            handle = await asyncio.to_thread(open, path, "rb")
        except FileNotFoundError as e:
            raise NotFoundError(str(share_id)) from e
        except OSError as e:
            raise StoreIOError(f"Cannot open share {share_id}: {e}") from e

        size = os.fstat(handle.fileno()).st_size
        return _FileBlobReader(handle, size, self._chunk_size)

    async def exists(self, share_id: ShareId) -> bool:
        """Check if a share file exists."""
        require_share_id(share_id)
        return await asyncio.to_thread(self._share_path(share_id).is_file)

    async def _write_stream(
        self,
        share_id: ShareId,
        handle: BinaryIO,
        chunks: AsyncIterable[bytes],
    ) -> int:
        written = 0
        iterator = chunks.__aiter__()
        while True:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                return written
            except Exception as e:
                raise TruncatedTransferError(str(share_id), written) from e

            try:
                await asyncio.to_thread(handle.write, chunk)
            except OSError as e:
                raise StoreIOError(f"Write failed for share {share_id}: {e}") from e
            written += len(chunk)

    def _share_path(self, share_id: ShareId) -> Path:
        """Return the file path for a share."""
        return self._root / share_id.value

    @staticmethod
    def _flush(handle: BinaryIO) -> None:
        handle.flush()
        os.fsync(handle.fileno())

    @staticmethod
    def _sync_dir(path: Path) -> None:
        # Windows cannot open a directory for fsync
        if os.name == "nt":
            return
        fd = os.open(path, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
