"""
Host byte order detection, and the load/store helpers built on it.

The wire format is big-endian, always. What changes between hosts is only
how we get there: a big-endian host can use its native layout, a
little-endian host lets `struct` swap, and a host we cannot classify
falls back to shifting bytes one at a time. The result is identical.

A strategy is picked once, when a context is initialized.
"""

from __future__ import annotations

import os
import struct

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._base import ByteType, VarByteType

__all__ = [
    "ASSUMED_BYTEORDER",
    "ByteOrder",
    "detect_byteorder",
    "select_order",
    "NATIVE",
    "SWAPPED",
    "PORTABLE",
]

#: process-wide byte order assumption: "big", "little", "portable" or None
ASSUMED_BYTEORDER = os.environ.get("MOAT_WIRE_BYTEORDER") or None

_F32 = struct.Struct("=f")
_U32 = struct.Struct("=I")
_F64 = struct.Struct("=d")
_U64 = struct.Struct("=Q")


def detect_byteorder() -> str | None:
    """
    Self-test: decide how this host lays out a 32-bit word.

    Returns "big", "little", or None if the answer is neither.
    """
    word = _U32.unpack(b"1234")[0]
    if word == 0x31323334:
        return "big"
    if word == 0x34333231:
        return "little"
    return None


class ByteOrder:
    "Base class for load/store strategies."

    name: str = None

    def store16(self, buf: VarByteType, pos: int, val: int) -> None:
        raise NotImplementedError

    def store32(self, buf: VarByteType, pos: int, val: int) -> None:
        raise NotImplementedError

    def store64(self, buf: VarByteType, pos: int, val: int) -> None:
        raise NotImplementedError

    def load16(self, buf: ByteType, pos: int) -> int:
        raise NotImplementedError

    def load32(self, buf: ByteType, pos: int) -> int:
        raise NotImplementedError

    def load64(self, buf: ByteType, pos: int) -> int:
        raise NotImplementedError

    # floats travel as their raw bit patterns

    def store_f32(self, buf: VarByteType, pos: int, val: float) -> None:
        self.store32(buf, pos, _U32.unpack(_F32.pack(val))[0])

    def store_f64(self, buf: VarByteType, pos: int, val: float) -> None:
        self.store64(buf, pos, _U64.unpack(_F64.pack(val))[0])

    def load_f32(self, buf: ByteType, pos: int) -> float:
        return _F32.unpack(_U32.pack(self.load32(buf, pos)))[0]

    def load_f64(self, buf: ByteType, pos: int) -> float:
        return _F64.unpack(_U64.pack(self.load64(buf, pos)))[0]

    def __repr__(self):
        return f"<{self.__class__.__name__}:{self.name}>"


class _StructOrder(ByteOrder):
    """
    Multi-byte fields via precompiled `struct` formats.

    With the "=" prefix this is the host's own layout, which is only
    correct on a big-endian host.
    """

    def __init__(self, name: str, prefix: str):
        self.name = name
        self._h = struct.Struct(prefix + "H")
        self._i = struct.Struct(prefix + "I")
        self._q = struct.Struct(prefix + "Q")

    def store16(self, buf, pos, val):
        self._h.pack_into(buf, pos, val)

    def store32(self, buf, pos, val):
        self._i.pack_into(buf, pos, val)

    def store64(self, buf, pos, val):
        self._q.pack_into(buf, pos, val)

    def load16(self, buf, pos):
        return self._h.unpack_from(buf, pos)[0]

    def load32(self, buf, pos):
        return self._i.unpack_from(buf, pos)[0]

    def load64(self, buf, pos):
        return self._q.unpack_from(buf, pos)[0]


class _BytewiseOrder(ByteOrder):
    "Shift and mask, one byte at a time. Works everywhere."

    name = "portable"

    @staticmethod
    def _store(buf, pos, val, n):
        for i in range(n - 1, -1, -1):
            buf[pos + i] = val & 0xFF
            val >>= 8

    @staticmethod
    def _load(buf, pos, n):
        val = 0
        for i in range(pos, pos + n):
            val = (val << 8) | buf[i]
        return val

    def store16(self, buf, pos, val):
        self._store(buf, pos, val, 2)

    def store32(self, buf, pos, val):
        self._store(buf, pos, val, 4)

    def store64(self, buf, pos, val):
        self._store(buf, pos, val, 8)

    def load16(self, buf, pos):
        return self._load(buf, pos, 2)

    def load32(self, buf, pos):
        return self._load(buf, pos, 4)

    def load64(self, buf, pos):
        return self._load(buf, pos, 8)


NATIVE = _StructOrder("big", "=")
SWAPPED = _StructOrder("little", ">")
PORTABLE = _BytewiseOrder()


def select_order(assumed: str | None = None) -> ByteOrder | None:
    """
    Pick the load/store strategy for this host.

    @assumed overrides `ASSUMED_BYTEORDER`. Returns None if the assumption
    contradicts the self-test; the caller must refuse to proceed.
    """
    if assumed is None:
        assumed = ASSUMED_BYTEORDER
    if assumed == "portable":
        return PORTABLE
    if assumed not in (None, "big", "little"):
        raise ValueError(f"unknown byte order {assumed!r}")

    host = detect_byteorder()
    if assumed is not None and assumed != host:
        return None
    if host == "big":
        return NATIVE
    if host == "little":
        return SWAPPED
    return PORTABLE
