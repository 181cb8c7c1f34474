"""Minimal Binary Canonical Serialization (BCS) writer.

Covers the subset needed for zkLogin signatures: ULEB128 lengths, ``u8``,
little-endian ``u64``, byte vectors, UTF-8 strings and nested vectors.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

_U64_MAX = (1 << 64) - 1


class BcsWriter:
    """Append-only BCS encoder."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write_uleb128(self, value: int) -> BcsWriter:
        if value < 0:
            raise ValueError("ULEB128 values must be non-negative")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buffer.append(byte | 0x80)
            else:
                self._buffer.append(byte)
                return self

    def write_u8(self, value: int) -> BcsWriter:
        if not 0 <= value <= 0xFF:
            raise ValueError(f"u8 out of range: {value}")
        self._buffer.append(value)
        return self

    def write_u64(self, value: int) -> BcsWriter:
        if not 0 <= value <= _U64_MAX:
            raise ValueError(f"u64 out of range: {value}")
        self._buffer.extend(value.to_bytes(8, "little"))
        return self

    def write_bytes(self, data: bytes) -> BcsWriter:
        """Write a ``vector<u8>``."""
        self.write_uleb128(len(data))
        self._buffer.extend(data)
        return self

    def write_string(self, value: str) -> BcsWriter:
        return self.write_bytes(value.encode("utf-8"))

    def write_vector(self, items: Iterable[T], write_item: Callable[[BcsWriter, T], object]) -> BcsWriter:
        materialized = list(items)
        self.write_uleb128(len(materialized))
        for item in materialized:
            write_item(self, item)
        return self

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)
