"""Type definitions and protocol constants for ccdrop."""

from typing import Optional


# Envelope constants
KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12
TAG_SIZE = 16
MIN_BLOB_SIZE = NONCE_SIZE + TAG_SIZE
FILENAME_LENGTH_SIZE = 8  # u64, little-endian

# Share identifier constants
SHARE_ID_LENGTH = 6
SHARE_ID_ALPHABET = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789"
)

# Transfer constants
DEFAULT_CHUNK_SIZE = 64 * 1024


# Exception types
class CcdropError(Exception):
    """Base exception for ccdrop errors."""
    pass


class AuthenticationError(CcdropError):
    """Blob failed authentication (wrong key, truncation or tampering)."""

    def __init__(self, reason: str = "Decryption failed, the key is incorrect or the data was modified") -> None:
        super().__init__(reason)


class DecodeError(CcdropError):
    """Malformed key token or payload."""
    pass


class MalformedPayloadError(DecodeError):
    """Decrypted payload does not carry a valid filename trailer."""
    pass


class InvalidIdError(CcdropError):
    """Share identifier is not 6 ASCII alphanumerics."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid share id: {value!r}")
        self.value = value


class AlreadyExistsError(CcdropError):
    """A blob is already stored under this share id."""

    def __init__(self, share_id: str) -> None:
        super().__init__(f"Share already exists: {share_id}")
        self.share_id = share_id


class NotFoundError(CcdropError):
    """No blob is stored under this share id."""

    def __init__(self, share_id: str) -> None:
        super().__init__(f"Share not found: {share_id}")
        self.share_id = share_id


class StoreIOError(CcdropError):
    """Underlying read/write failure in the blob store."""
    pass


class TruncatedTransferError(StoreIOError):
    """Incoming byte stream ended early or errored before the write committed."""

    def __init__(self, share_id: str, received: int) -> None:
        super().__init__(f"Transfer for {share_id} aborted after {received} bytes")
        self.share_id = share_id
        self.received = received


class RelayError(CcdropError):
    """The relay answered with an unexpected HTTP status."""

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        message = f"Relay returned status {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class DestinationExistsError(CcdropError):
    """Refusing to overwrite an existing file on receive."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File already exists, aborting: {path}")
        self.path = path
