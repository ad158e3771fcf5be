"""Configuration for the ccdrop relay and client."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .types import DEFAULT_CHUNK_SIZE


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass
class RelayConfig:
    """Configuration for the relay server."""

    share_dir: str = "shares"
    """Directory holding one file per share."""

    host: str = "0.0.0.0"
    """Interface to bind."""

    port: int = 3331
    """TCP port to listen on."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Read size when streaming shares back to clients."""

    max_blob_size: Optional[int] = None
    """Reject uploads larger than this many bytes (unlimited if None)."""

    @classmethod
    def local(cls) -> "RelayConfig":
        """Creates configuration bound to the loopback interface."""
        return cls(host="127.0.0.1")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """Creates configuration from CCDROP_* environment variables."""
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            share_dir=env.get("CCDROP_SHARE_DIR", defaults.share_dir),
            host=env.get("CCDROP_HOST", defaults.host),
            port=_env_int(env, "CCDROP_PORT", defaults.port),
            chunk_size=_env_int(env, "CCDROP_CHUNK_SIZE", defaults.chunk_size),
            max_blob_size=_env_int(env, "CCDROP_MAX_BLOB_SIZE", defaults.max_blob_size),
        )


@dataclass
class ClientConfig:
    """Configuration for talking to a relay."""

    url: str = "http://localhost:3000"
    """Relay base URL."""

    timeout: float = 30.0
    """Per-request timeout in seconds."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Chunk size for streamed uploads and downloads."""

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Creates configuration from CCDROP_* environment variables."""
        env = os.environ if env is None else env
        defaults = cls()
        timeout = env.get("CCDROP_TIMEOUT")
        return cls(
            url=env.get("CCDROP_URL", defaults.url),
            timeout=float(timeout) if timeout else defaults.timeout,
            chunk_size=_env_int(env, "CCDROP_CHUNK_SIZE", defaults.chunk_size),
        )

    def with_url(self, url: str) -> "ClientConfig":
        """Returns a copy pointing at another relay."""
        return ClientConfig(url=url, timeout=self.timeout, chunk_size=self.chunk_size)
