"""Command-line entry point for the rescan gate.

Usage:
    rescan-gate                # same as "rescan-gate serve"
    rescan-gate serve          # start the webhook server
    rescan-gate hash-key       # mint a gate key and print its bcrypt hash

``serve`` reads host and port from the loaded config (127.0.0.1:8090 by
default) and starts uvicorn with hardened defaults. Binding 0.0.0.0 is allowed
but logs a SECURITY WARNING at startup (see rescan_gate/config.py).

``hash-key`` prints a fresh ``rsg-<ULID>`` key for the artifact repository's
webhook configuration and the hash to add under ``auth.key_hashes``. The
plaintext key is shown once and never stored.
"""

from __future__ import annotations

import argparse
import os
from typing import Optional, Sequence

import uvicorn

from rescan_gate.auth.keys import generate_gate_key, hash_gate_key
from rescan_gate.config import load_config

# ─── Uvicorn hardened defaults ───────────────────────────────────────────────

# Maximum concurrent connections; matches XRAY_POOL_MAX_CONNECTIONS so every
# in-flight evaluation has an Xray connection slot.
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP connection backlog queue size.
UVICORN_BACKLOG: int = 50

# HTTP keep-alive timeout in seconds.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def serve(config_path: Optional[str] = None) -> None:
    """Start the webhook server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config(config_path)
    if config_path:
        # the app's lifespan reloads config in the server process
        os.environ["RESCAN_GATE_CONFIG"] = config_path

    uvicorn.run(
        "rescan_gate.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


def hash_key() -> None:
    key = generate_gate_key()
    print(f"Gate key (configure it on the artifact repository webhook): {key}")
    print("Add this hash under auth.key_hashes in config.yaml:")
    print(f"  - \"{hash_gate_key(key)}\"")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rescan-gate",
        description="Request-time Xray scan gate for artifact downloads.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="start the webhook server")
    serve_parser.add_argument("--config", help="path to config.yaml")

    subparsers.add_parser("hash-key", help="mint a gate key and print its bcrypt hash")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    if args.command == "hash-key":
        hash_key()
        return

    serve(getattr(args, "config", None))


if __name__ == "__main__":
    main()
