"""
ccdrop - End-to-end encrypted file drop through a blind relay

Files are sealed client-side with AES-256-GCM; the relay only stores opaque
blobs under short random share ids.
"""

from .keys import generate_key, encode_key, decode_key
from .envelope import FilePayload, assemble_payload, split_payload, iter_payload, read_trailer
from .crypto import (
    encrypt_blob,
    decrypt_blob,
    encrypt_stream,
    decrypt_stream,
    encrypt_file,
    decrypt_file,
)
from .share_id import ShareId, generate_share_id, validate_share_id
from .share_link import build_share_link, build_share_url, parse_share_link
from .types import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    MIN_BLOB_SIZE,
    SHARE_ID_LENGTH,
    CcdropError,
    AuthenticationError,
    DecodeError,
    MalformedPayloadError,
    InvalidIdError,
    AlreadyExistsError,
    NotFoundError,
    StoreIOError,
    TruncatedTransferError,
    RelayError,
    DestinationExistsError,
)
from .storage import (
    BlobStore,
    BlobReader,
    InMemoryBlobStore,
    FileBlobStore,
    iter_bytes,
)
from .config import RelayConfig, ClientConfig
from .models import SendResult, ReceiveResult
from .client import RelayClient

__version__ = "0.1.0"

__all__ = [
    # Keys
    "generate_key",
    "encode_key",
    "decode_key",
    # Envelope
    "FilePayload",
    "assemble_payload",
    "split_payload",
    "iter_payload",
    "read_trailer",
    # Crypto
    "encrypt_blob",
    "decrypt_blob",
    "encrypt_stream",
    "decrypt_stream",
    "encrypt_file",
    "decrypt_file",
    # Share ids
    "ShareId",
    "generate_share_id",
    "validate_share_id",
    # Share links
    "build_share_link",
    "build_share_url",
    "parse_share_link",
    # Storage
    "BlobStore",
    "BlobReader",
    "InMemoryBlobStore",
    "FileBlobStore",
    "iter_bytes",
    # Config
    "RelayConfig",
    "ClientConfig",
    # Models
    "SendResult",
    "ReceiveResult",
    # Client
    "RelayClient",
    # Errors
    "CcdropError",
    "AuthenticationError",
    "DecodeError",
    "MalformedPayloadError",
    "InvalidIdError",
    "AlreadyExistsError",
    "NotFoundError",
    "StoreIOError",
    "TruncatedTransferError",
    "RelayError",
    "DestinationExistsError",
    # Constants
    "KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "MIN_BLOB_SIZE",
    "SHARE_ID_LENGTH",
]
