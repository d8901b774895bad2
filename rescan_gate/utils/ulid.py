"""ULID helpers for the rescan gate.

ULIDs are used for two things:
  - the per-evaluation ``request_id`` (log correlation and the
    ``X-Rescan-Gate-Request-ID`` response header)
  - the random part of newly minted gate keys (``rsg-<ULID>``)

Uses the ``python-ulid`` library; do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new 26-character ULID string (Crockford Base32, uppercase)."""
    return str(ULID())
