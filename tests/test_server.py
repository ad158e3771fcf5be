"""Tests for the relay HTTP server."""

import pytest
from fastapi.testclient import TestClient

import ccdrop.server
from ccdrop.config import RelayConfig
from ccdrop.crypto import decrypt_file, encrypt_file
from ccdrop.server import create_app
from ccdrop.share_id import validate_share_id
from ccdrop.storage import FileBlobStore, InMemoryBlobStore
from .test_vectors import TEST_KEY


@pytest.fixture
def store():
    """In-memory store behind the app."""
    return InMemoryBlobStore()


@pytest.fixture
def client(store):
    """Test client for a relay with default config."""
    with TestClient(create_app(store=store)) as test_client:
        yield test_client


class TestUpload:
    """POST /share"""

    def test_returns_share_id(self, client, store) -> None:
        """Upload answers with a fresh 6-character id."""
        blob = encrypt_file(b"0123456789", "a.txt", TEST_KEY)
        response = client.post("/share", content=blob)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        share_id = validate_share_id(response.text)
        assert len(store._blobs[share_id]) == len(blob)

    def test_collision_is_conflict(self, client, monkeypatch) -> None:
        """An id collision is reported as 409, not silently retried."""
        fixed = validate_share_id("Ab12cd")
        monkeypatch.setattr(ccdrop.server, "generate_share_id", lambda: fixed)
        blob = encrypt_file(b"data", "d.txt", TEST_KEY)

        assert client.post("/share", content=blob).status_code == 200
        response = client.post("/share", content=blob)

        assert response.status_code == 409
        assert response.headers["x-share-id"] == "Ab12cd"

    def test_rejects_short_blob(self, client, store) -> None:
        """Bodies shorter than nonce + tag are refused and not stored."""
        response = client.post("/share", content=b"tiny")

        assert response.status_code == 400
        assert store._blobs == {}

    def test_rejects_oversized_blob(self, store) -> None:
        """Bodies over max_blob_size are refused with 413."""
        app = create_app(store=store, config=RelayConfig(max_blob_size=64))
        with TestClient(app) as test_client:
            response = test_client.post("/share", content=bytes(65))

        assert response.status_code == 413
        assert store._blobs == {}


class TestDownload:
    """GET /get/{id}"""

    def test_round_trip(self, client) -> None:
        """A stored blob downloads byte for byte with its length."""
        blob = encrypt_file(b"0123456789", "a.txt", TEST_KEY)
        share_id = client.post("/share", content=blob).text

        response = client.get(f"/get/{share_id}")

        assert response.status_code == 200
        assert response.headers["content-length"] == str(len(blob))
        assert response.content == blob
        result = decrypt_file(response.content, TEST_KEY)
        assert result.content == b"0123456789"
        assert result.filename == "a.txt"

    def test_not_found(self, client) -> None:
        """Unknown ids give 404."""
        response = client.get("/get/Zz99zz")
        assert response.status_code == 404
        assert response.json()["detail"] == "Share not found"

    @pytest.mark.parametrize("bad_id", ["Ab12c", "Ab12cde", "Ab12!d", "..%2F..", "%2E%2E%2Fetc"])
    def test_invalid_id(self, client, bad_id: str) -> None:
        """Malformed ids are rejected before any lookup."""
        response = client.get(f"/get/{bad_id}")
        assert response.status_code in (400, 404)
        if response.status_code == 404:
            assert response.json()["detail"] != "Share not found"

    def test_invalid_id_is_bad_request(self, client) -> None:
        """Ids with the wrong shape give 400."""
        assert client.get("/get/Ab12!d").status_code == 400

    def test_reader_closed_after_response(self) -> None:
        """The store reader is closed once the body has been sent."""

        class RecordingStore(InMemoryBlobStore):
            def __init__(self) -> None:
                super().__init__()
                self.closed = []

            async def open(self, share_id):
                reader = await super().open(share_id)
                close = reader.aclose

                async def aclose() -> None:
                    self.closed.append(str(share_id))
                    await close()

                reader.aclose = aclose
                return reader

        store = RecordingStore()
        with TestClient(create_app(store=store)) as test_client:
            share_id = test_client.post("/share", content=encrypt_file(b"d", "d", TEST_KEY)).text
            response = test_client.get(f"/get/{share_id}")

        assert response.status_code == 200
        assert store.closed == [share_id]


class TestFileBackedRelay:
    """Relay with the default file store."""

    def test_upload_download(self, tmp_path) -> None:
        """Shares land in the share directory and stream back."""
        config = RelayConfig(share_dir=str(tmp_path / "shares"), chunk_size=16)
        app = create_app(config=config)
        blob = encrypt_file(bytes(1000), "zeros.bin", TEST_KEY)

        with TestClient(app) as test_client:
            share_id = test_client.post("/share", content=blob).text
            response = test_client.get(f"/get/{share_id}")

        assert response.content == blob
        assert (tmp_path / "shares" / share_id).read_bytes() == blob
        assert isinstance(app.state.store, FileBlobStore)

    def test_health(self, client) -> None:
        """Health endpoint reports ok."""
        assert client.get("/health").json() == {"status": "ok"}
