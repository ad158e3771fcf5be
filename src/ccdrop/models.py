"""Result models for ccdrop transfers."""

from dataclasses import dataclass
from pathlib import Path

from .keys import encode_key
from .share_id import ShareId
from .share_link import build_share_link, build_share_url


@dataclass
class SendResult:
    """Result of a successful send operation."""
    share_id: ShareId
    key: bytes
    relay_url: str
    filename: str
    blob_size: int

    @property
    def key_token(self) -> str:
        """The key as a shareable base64url token."""
        return encode_key(self.key)

    @property
    def share_link(self) -> str:
        """Compact ``<id>#<key>`` link."""
        return build_share_link(self.share_id, self.key)

    @property
    def share_url(self) -> str:
        """Browser link for the relay's web page."""
        return build_share_url(self.relay_url, self.share_id, self.key)

    @property
    def cli_command(self) -> str:
        """Command the receiver can run to fetch the file."""
        return f"ccdrop -i {self.share_id} --key={self.key_token} -u {self.relay_url} get"

    def __repr__(self) -> str:
        return (
            f"SendResult(share_id={self.share_id!r}, relay_url={self.relay_url!r}, "
            f"filename={self.filename!r}, blob_size={self.blob_size})"
        )


@dataclass
class ReceiveResult:
    """Result of a successful receive operation."""
    path: Path
    filename: str
    size: int
