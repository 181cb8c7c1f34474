"""Comparison utilities for secrets and signatures."""
from __future__ import annotations

import hmac


def constant_time_equals(provided: bytes, expected: bytes) -> bool:
    """Compare two buffers without leaking where they differ.

    Buffers of different length are a mismatch without scanning either one.
    """
    if len(provided) != len(expected):
        return False
    return hmac.compare_digest(provided, expected)
