"""
ccdrop client for sending and receiving files through a relay.

The RelayClient encrypts locally, uploads only the ciphertext, and hands
back the share id and key for out-of-band sharing. Files move through the
client in chunks in both directions.
"""

import logging
import os
import secrets
import time
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, Optional, Union

import requests

from .config import ClientConfig
from .crypto import decrypt_stream, encrypt_stream
from .envelope import decode_filename, iter_payload, read_trailer
from .keys import generate_key
from .models import ReceiveResult, SendResult
from .share_id import ShareId, validate_share_id
from .types import (
    AlreadyExistsError,
    DestinationExistsError,
    FILENAME_LENGTH_SIZE,
    InvalidIdError,
    MalformedPayloadError,
    NONCE_SIZE,
    NotFoundError,
    RelayError,
    TAG_SIZE,
    TruncatedTransferError,
)

logger = logging.getLogger(__name__)


def _error_detail(response: requests.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    detail = body.get("detail") if isinstance(body, dict) else body
    return str(detail) if detail else None


def _safe_filename(name: str) -> str:
    """Strip any directory part a sender may have put in the filename."""
    base = PurePosixPath(name.replace("\\", "/")).name
    if base in ("", ".", ".."):
        raise MalformedPayloadError(f"Unusable filename in payload: {name!r}")
    return base


class RelayClient:
    """
    Client for a ccdrop relay.

    Example usage:
        ```python
        client = RelayClient(ClientConfig(url="http://localhost:3331"))

        result = client.send_file("report.pdf")
        print(result.share_link)

        share_id, key = parse_share_link(result.share_link)
        client.receive_file(share_id, key, dest_dir="downloads")
        ```
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Create a relay client.

        Args:
            config: Client configuration (relay URL, timeout, chunk size).
            session: HTTP session to use, a new requests.Session by default.
        """
        self._config = config or ClientConfig()
        self._session = session or requests.Session()

    @property
    def config(self) -> ClientConfig:
        """The client configuration."""
        return self._config

    def upload(self, blob: Union[bytes, Iterable[bytes]]) -> ShareId:
        """
        Upload an encrypted blob.

        Args:
            blob: Output of encrypt_blob / encrypt_file, or the chunks of
                encrypt_stream (sent with chunked transfer encoding).

        Returns:
            The share id assigned by the relay.

        Raises:
            AlreadyExistsError: If the relay hit an id collision.
            RelayError: On any other unexpected response.
        """
        response = self._session.post(
            self._share_url(),
            data=blob,
            headers={"Content-Type": "application/octet-stream"},
            timeout=self._config.timeout,
        )

        if response.status_code == 409:
            raise AlreadyExistsError(response.headers.get("X-Share-Id", "unknown"))
        if response.status_code != 200:
            raise RelayError(response.status_code, _error_detail(response))

        try:
            return validate_share_id(response.text.strip())
        except InvalidIdError as e:
            raise RelayError(response.status_code, "Relay returned a malformed share id") from e

    def iter_blob(self, share_id: ShareId) -> Iterator[bytes]:
        """
        Stream a blob from the relay in chunks of config.chunk_size.

        Raises:
            NotFoundError: If the relay has no such share.
            TruncatedTransferError: If the body is shorter than announced or
                the connection drops mid-transfer.
            RelayError: On any other unexpected response.
        """
        with self._session.get(
            self._get_url(share_id),
            stream=True,
            timeout=self._config.timeout,
        ) as response:
            if response.status_code == 404:
                raise NotFoundError(str(share_id))
            if response.status_code != 200:
                raise RelayError(response.status_code, _error_detail(response))

            expected = response.headers.get("Content-Length")
            received = 0
            try:
                for chunk in response.iter_content(chunk_size=self._config.chunk_size):
                    received += len(chunk)
                    yield chunk
            except (requests.exceptions.ChunkedEncodingError, requests.exceptions.ConnectionError) as e:
                raise TruncatedTransferError(str(share_id), received) from e

        if expected is not None and int(expected) != received:
            raise TruncatedTransferError(str(share_id), received)

        logger.info("Downloaded encrypted file %s (%d bytes)", share_id, received)

    def download(self, share_id: ShareId) -> bytes:
        """
        Download a whole blob into memory.

        Args:
            share_id: Validated share id.

        Returns:
            The blob bytes.

        Raises:
            Same as iter_blob.
        """
        return b"".join(self.iter_blob(share_id))

    def send_file(self, path: Union[str, Path]) -> SendResult:
        """
        Encrypt a file under a fresh key and upload it.

        The file is read, encrypted and sent in chunks of config.chunk_size.

        Args:
            path: File to send.

        Returns:
            SendResult with the share id, key and ready-made links.
        """
        path = Path(path)
        key = generate_key()
        name_bytes = path.name.encode("utf-8")

        with open(path, "rb") as handle:
            content_size = os.fstat(handle.fileno()).st_size
            chunks = iter_payload(handle, name_bytes, self._config.chunk_size)
            share_id = self.upload(encrypt_stream(chunks, key))
        logger.info("Uploaded %s as share %s", path.name, share_id)

        return SendResult(
            share_id=share_id,
            key=key,
            relay_url=self._config.url.rstrip("/"),
            filename=path.name,
            blob_size=NONCE_SIZE + content_size + len(name_bytes) + FILENAME_LENGTH_SIZE + TAG_SIZE,
        )

    def receive_file(
        self,
        share_id: ShareId,
        key: bytes,
        dest_dir: Union[str, Path] = ".",
        overwrite: bool = False,
    ) -> ReceiveResult:
        """
        Download, decrypt and save a shared file.

        The payload is decrypted into a hidden part file in dest_dir and
        only moved to its final name once the tag has verified and the
        data is on disk. The part file is removed on every failure, so a
        failed receive leaves dest_dir as it was. Only the base name from
        the payload is used.

        Args:
            share_id: Validated share id.
            key: 32-byte key from the share link.
            dest_dir: Directory to save into.
            overwrite: Replace an existing file of the same name.

        Returns:
            ReceiveResult with the written path.

        Raises:
            AuthenticationError: If the key is wrong or the blob was modified.
            MalformedPayloadError: If the payload framing is invalid.
            DestinationExistsError: If the target exists and overwrite is False.
            OSError: If writing to dest_dir fails.
        """
        dest = Path(dest_dir)
        part = dest / f".ccdrop-{share_id}-{secrets.token_hex(4)}.part"

        try:
            start = time.perf_counter()
            with open(part, "x+b") as handle:
                decrypt_stream(self.iter_blob(share_id), key, handle)
                size, filename_bytes = read_trailer(handle)
                handle.truncate(size)
                handle.flush()
                os.fsync(handle.fileno())

            filename = _safe_filename(decode_filename(filename_bytes))
            logger.info("Decrypted file %s in %.3fs", filename, time.perf_counter() - start)

            target = dest / filename
            if overwrite:
                os.replace(part, target)
            else:
                try:
                    os.link(part, target)
                except FileExistsError as e:
                    raise DestinationExistsError(str(target)) from e
        finally:
            part.unlink(missing_ok=True)

        logger.info("Written data to: %s", target)
        return ReceiveResult(path=target, filename=filename, size=size)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "RelayClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _share_url(self) -> str:
        return f"{self._config.url.rstrip('/')}/share"

    def _get_url(self, share_id: ShareId) -> str:
        return f"{self._config.url.rstrip('/')}/get/{share_id}"
