"""Hashing helpers for Sui addresses, intent digests and transaction digests."""

from __future__ import annotations

import hashlib

DIGEST_SIZE = 32


def blake2b256(data: bytes) -> bytes:
    """Return the 32-byte BLAKE2b digest used throughout Sui."""
    return hashlib.blake2b(data, digest_size=DIGEST_SIZE).digest()
