"""Command line interface for ccdrop."""

import argparse
import logging
import sys
from typing import Optional, Sequence

import requests

from . import __version__
from .client import RelayClient
from .config import ClientConfig, RelayConfig
from .keys import decode_key
from .share_id import validate_share_id
from .share_link import parse_share_link
from .types import CcdropError

logger = logging.getLogger(__name__)

EXAMPLES = """\
Example usage:
    ccdrop -p file.txt send
    ccdrop -i ABC123 -k LAeMwZtS6WvT6jsjigmPHa2g1rpJ7fGPuC9rU0pVw3w= get
    ccdrop -l 'http://localhost:3331/ABC123#LAeMwZtS6WvT6jsjigmPHa2g1rpJ7fGPuC9rU0pVw3w=' get
    ccdrop serve --share-dir shares --port 3331
"""


def cmd_send(args: argparse.Namespace) -> int:
    if not args.path:
        raise CcdropError("send requires -p/--path")

    with RelayClient(_client_config(args)) as client:
        result = client.send_file(args.path)

    print(result.cli_command)
    print(f"Open {result.share_url}")
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    if args.link:
        share_id, key = parse_share_link(args.link)
    elif args.id and args.key:
        share_id = validate_share_id(args.id)
        key = decode_key(args.key)
    else:
        raise CcdropError("get requires -l/--link or both -i/--id and -k/--key")

    with RelayClient(_client_config(args)) as client:
        result = client.receive_file(
            share_id, key, dest_dir=args.output_dir, overwrite=args.force
        )

    print(f"Written data to: {result.path}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from .server import run

    config = RelayConfig.from_env()
    if args.share_dir is not None:
        config.share_dir = args.share_dir
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.max_blob_size is not None:
        config.max_blob_size = args.max_blob_size

    run(config)
    return 0


def _client_config(args: argparse.Namespace) -> ClientConfig:
    config = ClientConfig.from_env()
    if args.url:
        config = config.with_url(args.url)
    return config


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ccdrop",
        description="End-to-end encrypted file drop through a blind relay",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-i", "--id", help="Share id to fetch")
    p.add_argument("-k", "--key", help="Base64url key token")
    p.add_argument("-l", "--link", help="Share link (<id>#<key> or <url>/<id>#<key>)")
    p.add_argument("-p", "--path", help="File to send")
    p.add_argument("-u", "--url", help="Relay URL (default: $CCDROP_URL or http://localhost:3000)")
    p.add_argument("-o", "--output-dir", default=".", help="Directory to save received files")
    p.add_argument("--force", action="store_true", help="Overwrite an existing file on get")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_send = sub.add_parser("send", help="Encrypt and upload a file")
    p_send.set_defaults(func=cmd_send)

    p_get = sub.add_parser("get", help="Download and decrypt a file")
    p_get.set_defaults(func=cmd_get)

    p_serve = sub.add_parser("serve", help="Run the relay server")
    p_serve.add_argument("--share-dir", help="Directory for stored shares")
    p_serve.add_argument("--host", help="Interface to bind")
    p_serve.add_argument("--port", type=int, help="Port to listen on")
    p_serve.add_argument("--max-blob-size", type=int, help="Largest accepted upload in bytes")
    p_serve.set_defaults(func=cmd_serve)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except CcdropError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except requests.RequestException as e:
        logger.debug("Relay request failed", exc_info=True)
        print(f"error: could not reach relay: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.debug("I/O failure", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
