"""Plaintext payload framing for ccdrop envelopes."""

import os
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Tuple, Union

from .types import DEFAULT_CHUNK_SIZE, FILENAME_LENGTH_SIZE, MalformedPayloadError


def decode_filename(filename_bytes: bytes) -> str:
    """Decode framed filename bytes as UTF-8."""
    try:
        return filename_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayloadError("Filename is not valid UTF-8") from e


@dataclass
class FilePayload:
    """A file recovered from a decrypted envelope."""
    content: bytes
    filename_bytes: bytes

    @property
    def filename(self) -> str:
        """The filename decoded as UTF-8."""
        return decode_filename(self.filename_bytes)


def payload_trailer(filename: Union[str, bytes]) -> bytes:
    """Filename bytes followed by their length as u64 little-endian."""
    if isinstance(filename, str):
        filename = filename.encode("utf-8")
    return filename + struct.pack("<Q", len(filename))


def assemble_payload(content: bytes, filename: Union[str, bytes]) -> bytes:
    """
    Frame file contents and filename into a plaintext payload.

    Format:
        [0 .. n)          file contents
        [n .. n+m)        filename bytes
        [n+m .. n+m+8)    m as u64 little-endian

    Args:
        content: Raw file bytes
        filename: Filename (str is encoded as UTF-8)

    Returns:
        Payload bytes ready for encryption
    """
    return content + payload_trailer(filename)


def iter_payload(
    handle: BinaryIO,
    filename: Union[str, bytes],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield the same payload as assemble_payload, reading the file in chunks."""
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            break
        yield chunk
    yield payload_trailer(filename)


def _content_length(body_end: int, trailer: bytes) -> int:
    (filename_length,) = struct.unpack("<Q", trailer)
    if filename_length > body_end:
        raise MalformedPayloadError(
            f"Filename length {filename_length} exceeds payload body of {body_end} bytes"
        )
    return body_end - filename_length


def split_payload(payload: bytes) -> FilePayload:
    """
    Recover file contents and filename from a decrypted payload.

    Args:
        payload: Output of assemble_payload

    Returns:
        FilePayload with contents and filename bytes

    Raises:
        MalformedPayloadError: If the trailer is missing or claims more
            filename bytes than the payload holds
    """
    if len(payload) < FILENAME_LENGTH_SIZE:
        raise MalformedPayloadError(
            f"Payload too short: {len(payload)} bytes (minimum {FILENAME_LENGTH_SIZE})"
        )

    body_end = len(payload) - FILENAME_LENGTH_SIZE
    content_end = _content_length(body_end, payload[body_end:])
    return FilePayload(
        content=payload[:content_end],
        filename_bytes=payload[content_end:body_end],
    )


def read_trailer(handle: BinaryIO) -> Tuple[int, bytes]:
    """
    Read the filename trailer from a payload stored in a seekable file.

    Args:
        handle: File holding a whole decrypted payload

    Returns:
        Tuple of (content_length, filename_bytes); the caller truncates the
        file to content_length to keep only the file contents

    Raises:
        MalformedPayloadError: Same conditions as split_payload
    """
    size = handle.seek(0, os.SEEK_END)
    if size < FILENAME_LENGTH_SIZE:
        raise MalformedPayloadError(
            f"Payload too short: {size} bytes (minimum {FILENAME_LENGTH_SIZE})"
        )

    body_end = size - FILENAME_LENGTH_SIZE
    handle.seek(body_end)
    content_end = _content_length(body_end, handle.read(FILENAME_LENGTH_SIZE))

    handle.seek(content_end)
    filename_bytes = handle.read(body_end - content_end)
    return content_end, filename_bytes
