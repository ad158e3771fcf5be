"""Share link handling for passing id and key out of band."""

from typing import Tuple
from urllib.parse import urlparse

from .keys import decode_key, encode_key
from .share_id import ShareId, validate_share_id
from .types import DecodeError


def build_share_link(share_id: ShareId, key: bytes) -> str:
    """Create a compact ``<id>#<key>`` link."""
    return f"{share_id}#{encode_key(key)}"


def build_share_url(base_url: str, share_id: ShareId, key: bytes) -> str:
    """Create a browser link for the relay's web page.

    The key travels in the URL fragment, which browsers never send to the
    server.

    Format: <base_url>/<id>#<base64url key>
    """
    return f"{base_url.rstrip('/')}/{share_id}#{encode_key(key)}"


def parse_share_link(link: str) -> Tuple[ShareId, bytes]:
    """Parse a link made by build_share_link or build_share_url.

    Args:
        link: ``<id>#<key>`` or ``<url>/<id>#<key>``.

    Returns:
        Tuple of (share_id, key).

    Raises:
        DecodeError: If the key part is missing or invalid.
        InvalidIdError: If the id part is invalid.
    """
    head, sep, token = link.strip().rpartition("#")
    if not sep or not token:
        raise DecodeError("Share link is missing the key fragment")

    if "/" in head:
        path = urlparse(head).path if "://" in head else head
        head = path.rstrip("/").rsplit("/", 1)[-1]

    share_id = validate_share_id(head)
    key = decode_key(token)
    return share_id, key
