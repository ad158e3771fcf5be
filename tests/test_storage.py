"""Tests for the write-once blob stores."""

import asyncio
import errno
import os
import stat

import pytest
from ccdrop.share_id import generate_share_id, validate_share_id
from ccdrop.storage import FileBlobStore, InMemoryBlobStore, iter_bytes
from ccdrop.types import (
    AlreadyExistsError,
    NotFoundError,
    StoreIOError,
    TruncatedTransferError,
)


async def _failing_stream(good: bytes):
    """Yield some data, then fail like a dropped connection."""
    yield good
    raise ConnectionResetError("peer went away")


async def _read(store, share_id) -> bytes:
    async with await store.open(share_id) as reader:
        return await reader.read_all()


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    """Each test runs against both store implementations."""
    if request.param == "memory":
        return InMemoryBlobStore(chunk_size=4)
    return FileBlobStore(tmp_path / "shares", chunk_size=4)


class TestBlobStoreContract:
    """Behaviour shared by every BlobStore."""

    def test_create_then_open(self, store) -> None:
        """Stored bytes come back exactly."""
        share_id = generate_share_id()
        data = bytes(range(256))

        written = asyncio.run(store.create(share_id, iter_bytes(data, 7)))

        assert written == len(data)
        assert asyncio.run(_read(store, share_id)) == data

    def test_empty_blob(self, store) -> None:
        """Zero-length streams are stored as empty objects."""
        share_id = generate_share_id()
        assert asyncio.run(store.create(share_id, iter_bytes(b""))) == 0
        assert asyncio.run(_read(store, share_id)) == b""

    def test_write_once(self, store) -> None:
        """A second create for the same id fails regardless of content."""
        share_id = validate_share_id("Ab12cd")
        asyncio.run(store.create(share_id, iter_bytes(b"first")))

        with pytest.raises(AlreadyExistsError) as info:
            asyncio.run(store.create(share_id, iter_bytes(b"second")))

        assert info.value.share_id == "Ab12cd"
        assert asyncio.run(_read(store, share_id)) == b"first"

    def test_open_missing(self, store) -> None:
        """Opening an id that was never created raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(store.open(validate_share_id("Zz99zz")))

    def test_exists(self, store) -> None:
        """exists() reflects committed creates only."""
        share_id = generate_share_id()
        assert not asyncio.run(store.exists(share_id))
        asyncio.run(store.create(share_id, iter_bytes(b"data")))
        assert asyncio.run(store.exists(share_id))

    def test_reader_reports_size(self, store) -> None:
        """Readers expose the total length."""
        share_id = generate_share_id()
        asyncio.run(store.create(share_id, iter_bytes(b"0123456789")))

        async def size():
            async with await store.open(share_id) as reader:
                return reader.size

        assert asyncio.run(size()) == 10

    def test_reader_streams_in_chunks(self, store) -> None:
        """Readers yield bounded chunks, never the whole blob at once."""
        share_id = generate_share_id()
        asyncio.run(store.create(share_id, iter_bytes(b"x" * 10)))

        async def chunks():
            async with await store.open(share_id) as reader:
                return [chunk async for chunk in reader]

        result = asyncio.run(chunks())
        assert [len(c) for c in result] == [4, 4, 2]

    def test_truncated_stream_discarded(self, store) -> None:
        """A failing upload stream leaves nothing readable behind."""
        share_id = generate_share_id()

        with pytest.raises(TruncatedTransferError) as info:
            asyncio.run(store.create(share_id, _failing_stream(b"partial")))

        assert info.value.received == len(b"partial")
        assert not asyncio.run(store.exists(share_id))
        with pytest.raises(NotFoundError):
            asyncio.run(store.open(share_id))

    def test_id_reusable_after_failed_upload(self, store) -> None:
        """An aborted upload does not reserve the id."""
        share_id = generate_share_id()
        with pytest.raises(TruncatedTransferError):
            asyncio.run(store.create(share_id, _failing_stream(b"partial")))

        asyncio.run(store.create(share_id, iter_bytes(b"complete")))
        assert asyncio.run(_read(store, share_id)) == b"complete"

    def test_concurrent_creates_one_wins(self, store) -> None:
        """Racing creates for one id: exactly one succeeds."""
        share_id = generate_share_id()

        async def race():
            return await asyncio.gather(
                store.create(share_id, iter_bytes(b"A" * 64, 8)),
                store.create(share_id, iter_bytes(b"B" * 64, 8)),
                return_exceptions=True,
            )

        results = asyncio.run(race())
        winners = [r for r in results if r == 64]
        losers = [r for r in results if isinstance(r, AlreadyExistsError)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert asyncio.run(_read(store, share_id)) in (b"A" * 64, b"B" * 64)

    def test_rejects_plain_strings(self, store) -> None:
        """Only validated ShareId values reach the store."""
        with pytest.raises(TypeError):
            asyncio.run(store.open("Ab12cd"))
        with pytest.raises(TypeError):
            asyncio.run(store.create("../../etc/passwd", iter_bytes(b"x")))


class TestFileBlobStore:
    """File-specific layout and cleanup."""

    def test_layout_one_file_per_id(self, tmp_path) -> None:
        """Each share is a single file named by its id holding the raw blob."""
        store = FileBlobStore(tmp_path)
        share_id = validate_share_id("Ab12cd")
        asyncio.run(store.create(share_id, iter_bytes(b"\x00raw blob\xff")))

        assert [p.name for p in tmp_path.iterdir()] == ["Ab12cd"]
        assert (tmp_path / "Ab12cd").read_bytes() == b"\x00raw blob\xff"

    def test_no_part_files_left(self, tmp_path) -> None:
        """Failed and duplicate uploads leave no temporary files."""
        store = FileBlobStore(tmp_path)
        share_id = validate_share_id("Ab12cd")
        asyncio.run(store.create(share_id, iter_bytes(b"first")))

        with pytest.raises(AlreadyExistsError):
            asyncio.run(store.create(share_id, iter_bytes(b"second")))
        with pytest.raises(TruncatedTransferError):
            asyncio.run(store.create(validate_share_id("Xy98wv"), _failing_stream(b"p")))

        assert sorted(p.name for p in tmp_path.iterdir()) == ["Ab12cd"]

    def test_creates_root_directory(self, tmp_path) -> None:
        """The share directory is created on first write."""
        root = tmp_path / "nested" / "shares"
        store = FileBlobStore(root)
        asyncio.run(store.create(generate_share_id(), iter_bytes(b"data")))
        assert root.is_dir()

    def test_existing_file_blocks_create(self, tmp_path) -> None:
        """Files already on disk count as taken ids."""
        (tmp_path / "Ab12cd").write_bytes(b"old")
        store = FileBlobStore(tmp_path)
        with pytest.raises(AlreadyExistsError):
            asyncio.run(store.create(validate_share_id("Ab12cd"), iter_bytes(b"new")))
        assert (tmp_path / "Ab12cd").read_bytes() == b"old"

    def test_large_blob_streams(self, tmp_path) -> None:
        """A multi-megabyte blob is written and read back chunk by chunk."""
        store = FileBlobStore(tmp_path, chunk_size=64 * 1024)
        share_id = generate_share_id()
        chunk = bytes(range(256)) * 256
        chunk_count = 64

        async def produce():
            for _ in range(chunk_count):
                yield chunk

        async def consume():
            total = 0
            largest = 0
            async with await store.open(share_id) as reader:
                async for piece in reader:
                    assert piece == chunk[: len(piece)]
                    total += len(piece)
                    largest = max(largest, len(piece))
            return total, largest

        written = asyncio.run(store.create(share_id, produce()))
        total, largest = asyncio.run(consume())

        assert written == total == len(chunk) * chunk_count
        assert largest <= 64 * 1024

    @pytest.mark.skipif(os.name == "nt", reason="directories cannot be fsynced on Windows")
    def test_directory_synced_after_commit(self, tmp_path, monkeypatch) -> None:
        """The share directory is fsynced after the blob file itself."""
        real_fsync = os.fsync
        synced = []

        def recording_fsync(fd: int) -> None:
            synced.append(stat.S_ISDIR(os.fstat(fd).st_mode))
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", recording_fsync)
        store = FileBlobStore(tmp_path)
        asyncio.run(store.create(validate_share_id("Ab12cd"), iter_bytes(b"blob")))

        assert synced == [False, True]

    @pytest.mark.skipif(os.name == "nt", reason="directories cannot be fsynced on Windows")
    def test_directory_sync_failure_removes_share(self, tmp_path, monkeypatch) -> None:
        """If the directory cannot be synced the upload fails and leaves nothing."""
        real_fsync = os.fsync

        def failing_dir_fsync(fd: int) -> None:
            if stat.S_ISDIR(os.fstat(fd).st_mode):
                raise OSError(errno.EIO, "Input/output error")
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", failing_dir_fsync)
        store = FileBlobStore(tmp_path)
        share_id = validate_share_id("Ab12cd")

        with pytest.raises(StoreIOError, match="sync"):
            asyncio.run(store.create(share_id, iter_bytes(b"blob")))

        assert list(tmp_path.iterdir()) == []
        assert not asyncio.run(store.exists(share_id))
