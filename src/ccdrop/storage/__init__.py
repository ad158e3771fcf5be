"""ccdrop storage module."""

from .blob_store import BlobStore, BlobReader, InMemoryBlobStore, iter_bytes
from .file_blob_store import FileBlobStore

__all__ = [
    "BlobStore",
    "BlobReader",
    "InMemoryBlobStore",
    "FileBlobStore",
    "iter_bytes",
]
