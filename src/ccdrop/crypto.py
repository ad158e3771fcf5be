"""Encryption and decryption of ccdrop blobs."""

import os
from typing import BinaryIO, Iterable, Iterator, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .envelope import FilePayload, assemble_payload, split_payload
from .types import (
    AuthenticationError,
    DecodeError,
    KEY_SIZE,
    MIN_BLOB_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
)


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise DecodeError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")


def _cipher(key: bytes) -> AESGCM:
    _check_key(key)
    return AESGCM(key)


def _encrypt_with_nonce(plaintext: bytes, key: bytes, nonce: bytes) -> bytes:
    ciphertext = _cipher(key).encrypt(nonce, plaintext, None)
    return nonce + ciphertext


def encrypt_blob(plaintext: bytes, key: bytes) -> bytes:
    """
    Encrypt a payload into a self-describing blob.

    Format:
        [0-11]   nonce (12 bytes)
        [12+]    AES-256-GCM ciphertext with 16-byte tag appended

    Args:
        plaintext: Payload to encrypt
        key: 32-byte symmetric key

    Returns:
        Blob bytes
    """
    return _encrypt_with_nonce(plaintext, key, os.urandom(NONCE_SIZE))


def decrypt_blob(blob: bytes, key: bytes) -> bytes:
    """
    Verify and decrypt a blob.

    Args:
        blob: Output of encrypt_blob
        key: 32-byte symmetric key

    Returns:
        Decrypted payload

    Raises:
        AuthenticationError: If the blob is too short or the tag does not verify
        DecodeError: If the key is not 32 bytes
    """
    if len(blob) < MIN_BLOB_SIZE:
        raise AuthenticationError(
            f"Blob too short: {len(blob)} bytes (minimum {MIN_BLOB_SIZE})"
        )

    nonce = blob[:NONCE_SIZE]
    ciphertext = blob[NONCE_SIZE:]

    try:
        return _cipher(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise AuthenticationError() from e


def _encrypt_chunks(chunks: Iterable[bytes], key: bytes, nonce: bytes) -> Iterator[bytes]:
    encryptor = Cipher(algorithms.AES(key), modes.GCM(nonce)).encryptor()
    yield nonce
    for chunk in chunks:
        data = encryptor.update(chunk)
        if data:
            yield data
    yield encryptor.finalize() + encryptor.tag


def encrypt_stream(chunks: Iterable[bytes], key: bytes) -> Iterator[bytes]:
    """
    Encrypt a payload given as chunks, yielding the blob in pieces.

    The joined output has the same layout as encrypt_blob, so either
    decrypt_blob or decrypt_stream opens it.

    Raises:
        DecodeError: If the key is not 32 bytes (raised before iteration)
    """
    _check_key(key)
    return _encrypt_chunks(chunks, key, os.urandom(NONCE_SIZE))


def decrypt_stream(chunks: Iterable[bytes], key: bytes, out: BinaryIO) -> int:
    """
    Decrypt a blob given as chunks, writing the payload to out.

    Only the nonce and the last 16 bytes seen are held back, so memory use
    does not grow with the blob. Plaintext reaches out before the tag is
    checked: callers must discard what was written if this raises.

    Args:
        chunks: Blob bytes in any chunking
        key: 32-byte symmetric key
        out: Writable binary file

    Returns:
        Number of payload bytes written

    Raises:
        AuthenticationError: If the blob is too short or the tag does not verify
        DecodeError: If the key is not 32 bytes
    """
    _check_key(key)
    header = bytearray()
    tail = b""
    decryptor = None
    written = 0

    for chunk in chunks:
        if decryptor is None:
            header.extend(chunk)
            if len(header) < NONCE_SIZE:
                continue
            nonce = bytes(header[:NONCE_SIZE])
            chunk = bytes(header[NONCE_SIZE:])
            decryptor = Cipher(algorithms.AES(key), modes.GCM(nonce)).decryptor()

        buffered = tail + chunk
        tail = buffered[-TAG_SIZE:]
        data = decryptor.update(buffered[:-TAG_SIZE])
        if data:
            out.write(data)
            written += len(data)

    if decryptor is None or len(tail) < TAG_SIZE:
        received = len(header) if decryptor is None else NONCE_SIZE + written + len(tail)
        raise AuthenticationError(
            f"Blob too short: {received} bytes (minimum {MIN_BLOB_SIZE})"
        )

    try:
        data = decryptor.finalize_with_tag(tail)
    except InvalidTag as e:
        raise AuthenticationError() from e
    if data:
        out.write(data)
        written += len(data)
    return written


def encrypt_file(content: bytes, filename: Union[str, bytes], key: bytes) -> bytes:
    """Frame a file with its name and encrypt it."""
    return encrypt_blob(assemble_payload(content, filename), key)


def decrypt_file(blob: bytes, key: bytes) -> FilePayload:
    """Decrypt a blob and unframe the file and its name."""
    return split_payload(decrypt_blob(blob, key))
