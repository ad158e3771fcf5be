"""Blob store interface and in-memory implementation."""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterable, AsyncIterator, Optional

from ..share_id import ShareId
from ..types import (
    DEFAULT_CHUNK_SIZE,
    AlreadyExistsError,
    NotFoundError,
    TruncatedTransferError,
)


async def iter_bytes(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield an in-memory blob as an async chunk stream."""
    for offset in range(0, len(data), chunk_size):
        yield data[offset : offset + chunk_size]


def require_share_id(share_id: object) -> ShareId:
    """Reject anything that did not go through share id validation."""
    if not isinstance(share_id, ShareId):
        raise TypeError(f"Expected ShareId, got {type(share_id).__name__}")
    return share_id


class BlobReader(ABC):
    """
    Forward-only stream over one stored blob.

    Iterate with ``async for`` to consume chunks; ``size`` is the total
    length when the backend knows it.
    """

    size: Optional[int] = None

    def __aiter__(self) -> "BlobReader":
        return self

    @abstractmethod
    async def __anext__(self) -> bytes:
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying resource."""
        ...

    async def __aenter__(self) -> "BlobReader":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def read_all(self) -> bytes:
        """Drain the remaining stream into memory."""
        parts = [chunk async for chunk in self]
        return b"".join(parts)


class BlobStore(ABC):
    """Interface for write-once storage of opaque blobs keyed by ShareId."""

    @abstractmethod
    async def create(self, share_id: ShareId, chunks: AsyncIterable[bytes]) -> int:
        """
        Store a blob under a share id, exactly once.

        Nothing becomes readable unless the whole stream was written.

        Returns:
            Number of bytes written

        Raises:
            AlreadyExistsError: If a blob already exists for this id
            TruncatedTransferError: If the incoming stream failed midway
            StoreIOError: On other storage failures
        """
        ...

    @abstractmethod
    async def open(self, share_id: ShareId) -> BlobReader:
        """
        Open a stored blob for streaming.

        Raises:
            NotFoundError: If nothing is stored for this id
        """
        ...

    @abstractmethod
    async def exists(self, share_id: ShareId) -> bool:
        """Check if a blob is stored for a share id."""
        ...


class _BytesBlobReader(BlobReader):
    """Chunked reader over an immutable bytes object."""

    def __init__(self, data: bytes, chunk_size: int) -> None:
        self.size = len(data)
        self._data = data
        self._offset = 0
        self._chunk_size = chunk_size

    async def __anext__(self) -> bytes:
        if self._offset >= len(self._data):
            raise StopAsyncIteration
        chunk = self._data[self._offset : self._offset + self._chunk_size]
        self._offset += len(chunk)
        return chunk

    async def aclose(self) -> None:
        self._offset = len(self._data)


class InMemoryBlobStore(BlobStore):
    """
    In-memory implementation of BlobStore (for testing).

    Blobs are lost when the process exits.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._blobs: dict[ShareId, bytes] = {}
        self._pending: set[ShareId] = set()
        self._chunk_size = chunk_size
        self._lock = asyncio.Lock()

    async def create(self, share_id: ShareId, chunks: AsyncIterable[bytes]) -> int:
        require_share_id(share_id)
        async with self._lock:
            if share_id in self._blobs or share_id in self._pending:
                raise AlreadyExistsError(str(share_id))
            self._pending.add(share_id)

        buffer = bytearray()
        try:
            try:
                async for chunk in chunks:
                    buffer.extend(chunk)
            except Exception as e:
                raise TruncatedTransferError(str(share_id), len(buffer)) from e

            async with self._lock:
                self._blobs[share_id] = bytes(buffer)
            return len(buffer)
        finally:
            self._pending.discard(share_id)

    async def open(self, share_id: ShareId) -> BlobReader:
        require_share_id(share_id)
        async with self._lock:
            data = self._blobs.get(share_id)
        if data is None:
            raise NotFoundError(str(share_id))
        return _BytesBlobReader(data, self._chunk_size)

    async def exists(self, share_id: ShareId) -> bool:
        require_share_id(share_id)
        async with self._lock:
            return share_id in self._blobs
