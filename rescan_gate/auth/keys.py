"""Gate key minting and verification.

The artifact repository authenticates to the webhook with a shared gate key
(``rsg-<ULID>``). Only bcrypt hashes of accepted keys are configured
(``auth.key_hashes``); plaintext keys are never stored.

  - generate_gate_key()  — new ``rsg-<ULID>`` plaintext key
  - hash_gate_key()      — bcrypt hash (rounds=12) for the config file
  - verify_gate_key()    — bcrypt check against the configured hashes, with a
                           small LRU cache so steady download traffic does not
                           pay ~80ms of bcrypt per request
  - is_cached_gate_key() — cache-only check, no bcrypt
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Collection, Iterable

import bcrypt

from rescan_gate.constants import GATE_KEY_PREFIX
from rescan_gate.utils.logger import get_logger
from rescan_gate.utils.ulid import generate_ulid

logger = get_logger(__name__)

#: bcrypt cost factor for newly minted keys
_BCRYPT_ROUNDS: int = 12

_CACHE_MAXSIZE: int = 64

# ─── LRU cache of verified keys ───────────────────────────────────────────────
# Entry: (plaintext key, matching hash). The hash is part of the entry so that
# removing a hash from the config invalidates the cached verification.
# verify_gate_key() runs in executor threads, hence the lock.

_cache: OrderedDict[str, str] = OrderedDict()
_cache_lock = threading.Lock()


def _cache_get(key: str) -> str | None:
    with _cache_lock:
        if key in _cache:
            _cache.move_to_end(key)
            return _cache[key]
        return None


def _cache_set(key: str, key_hash: str) -> None:
    with _cache_lock:
        if key in _cache:
            _cache.move_to_end(key)
        elif len(_cache) >= _CACHE_MAXSIZE:
            _cache.popitem(last=False)
        _cache[key] = key_hash


def clear_key_cache() -> None:
    """Forget all cached verifications."""
    with _cache_lock:
        _cache.clear()


# ─── Minting ──────────────────────────────────────────────────────────────────


def generate_gate_key() -> str:
    return f"{GATE_KEY_PREFIX}{generate_ulid()}"


def hash_gate_key(key: str) -> str:
    salt = bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)
    return bcrypt.hashpw(key.encode(), salt).decode()


# ─── Verification ─────────────────────────────────────────────────────────────


def is_cached_gate_key(key: str, key_hashes: Collection[str]) -> bool:
    """Return True if *key* was already verified against a hash still configured.

    Never calls bcrypt, so it is safe to run on the event loop.
    """
    cached = _cache_get(key)
    return cached is not None and cached in key_hashes


def verify_gate_key(key: str, key_hashes: Iterable[str]) -> bool:
    """Return True if *key* matches one of *key_hashes*.

    A cache miss costs one bcrypt check per configured hash; async callers run
    this in an executor. Malformed hashes in the config are logged and
    skipped, never raised.
    """
    if not key or not key.startswith(GATE_KEY_PREFIX):
        return False

    hashes = list(key_hashes)
    if is_cached_gate_key(key, hashes):
        return True

    for key_hash in hashes:
        try:
            if bcrypt.checkpw(key.encode(), key_hash.encode()):
                _cache_set(key, key_hash)
                return True
        except ValueError as exc:
            logger.warning("Skipping malformed gate key hash", error=str(exc))
    return False
