"""Symmetric key generation and the URL-safe key token codec."""

import base64
import binascii
import re

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .types import KEY_SIZE, DecodeError


_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]*={0,2}")


def generate_key() -> bytes:
    """
    Generate a fresh 256-bit key for one send operation.

    Returns:
        32 random bytes from the operating system CSPRNG
    """
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


def encode_key(key: bytes) -> str:
    """
    Encode a raw key as a URL-safe base64 token.

    Args:
        key: 32-byte symmetric key

    Returns:
        Padded base64url text, no line breaks

    Raises:
        DecodeError: If the key is not 32 bytes
    """
    if len(key) != KEY_SIZE:
        raise DecodeError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    return base64.urlsafe_b64encode(key).decode("ascii")


def decode_key(token: str) -> bytes:
    """
    Decode a key token produced by encode_key.

    Padding is optional, browsers and some shells drop it. Surrounding
    whitespace is not accepted.

    Args:
        token: base64url text

    Returns:
        32-byte symmetric key

    Raises:
        DecodeError: If the token is not base64url or has the wrong length
    """
    if not _TOKEN_PATTERN.fullmatch(token):
        raise DecodeError("Key token contains characters outside the base64url alphabet")

    unpadded = token.rstrip("=")
    padded = unpadded + "=" * (-len(unpadded) % 4)
    if len(token) != len(unpadded) and token != padded:
        raise DecodeError("Key token has invalid padding")

    try:
        key = base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Key token is not valid base64url: {e}") from e

    if len(key) != KEY_SIZE:
        raise DecodeError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")

    # Reject tokens with non-zero trailing bits
    if base64.urlsafe_b64encode(key).decode("ascii").rstrip("=") != unpadded:
        raise DecodeError("Key token is not canonically encoded")

    return key
