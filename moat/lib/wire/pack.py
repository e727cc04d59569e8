"""
The pack engine.

Each ``pack_*`` method appends the shortest encoding of one value at the
cursor and returns a `Status`. Arrays and maps are written as headers
only: the caller packs the elements (or keys and values) afterwards.

Usage::

    buf = bytearray(100)
    ctx = PackContext(buf)
    ctx.pack_map_size(1)
    ctx.pack_str("x")
    ctx.pack_signed(-42)
    ctx.check()  # raises if anything went wrong
    data = ctx.getvalue()
"""

from __future__ import annotations

from ._base import Context
from .errors import Status

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._base import ByteType

__all__ = ["PackContext"]

_OVER = Status.BUFFER_OVERFLOW
_STOPPED = Status.STOPPED
_OK = Status.OK

# fixext tags by payload length
_FIXEXT = {1: 0xD4, 2: 0xD5, 4: 0xD6, 8: 0xD7, 16: 0xD8}


def _raw(data) -> memoryview:
    if isinstance(data, str):
        data = data.encode("utf-8")
    mv = memoryview(data)
    if mv.format != "B" or mv.ndim != 1:
        mv = mv.cast("B")
    return mv


def _check_len(n: int):
    if n < 0:
        raise OverflowError(f"{n} is negative")
    if n > 0xFFFFFFFF:
        raise OverflowError(f"length {n} exceeds 32 bits")


class PackContext(Context):
    """
    Pack values into ``buffer[start:end]``.

    @buffer must be writable (a `bytearray` or a writable `memoryview`).
    If it runs out of room, @handler is asked for more; without a handler
    the context stops with `Status.BUFFER_OVERFLOW`.
    """

    def getvalue(self) -> bytes:
        "the bytes packed since the region started"
        return bytes(self.buffer[self.start : self.current])

    def _head(self, tag: int, width: int = 0, val: int = 0, payload: int = 0) -> int:
        # Write @tag and a @width-byte field, after reserving room for
        # @payload more bytes which the caller writes itself.
        rc = self._ensure(1 + width + payload, _OVER)
        if rc:
            return rc
        buf = self.buffer
        cur = self.current
        if width == 1:
            buf[cur + 1] = val
        elif width == 2:
            self._order.store16(buf, cur + 1, val)
        elif width == 4:
            self._order.store32(buf, cur + 1, val)
        elif width == 8:
            self._order.store64(buf, cur + 1, val)
        buf[cur] = tag
        self.current = cur + 1 + width
        return _OK

    def _copy(self, data: memoryview) -> int:
        n = data.nbytes
        if n:
            cur = self.current
            self.buffer[cur : cur + n] = data
            self.current = cur + n
        return _OK

    def pack_unsigned(self, n: int) -> int:
        "Pack a non-negative integer below 2**64."
        if self.status:
            return _STOPPED
        if n < 0:
            raise OverflowError(f"{n} is negative")
        if n < 0x80:
            return self._head(n)
        if n <= 0xFF:
            return self._head(0xCC, 1, n)
        if n <= 0xFFFF:
            return self._head(0xCD, 2, n)
        if n <= 0xFFFFFFFF:
            return self._head(0xCE, 4, n)
        if n <= 0xFFFFFFFFFFFFFFFF:
            return self._head(0xCF, 8, n)
        raise OverflowError(f"{n} exceeds 64 bits")

    def pack_signed(self, n: int) -> int:
        """
        Pack an integer.

        Non-negative values use the unsigned forms, which are never longer.
        """
        if self.status:
            return _STOPPED
        if n >= 0:
            return self.pack_unsigned(n)
        if n >= -0x20:
            return self._head(n & 0xFF)
        if n >= -0x80:
            return self._head(0xD0, 1, n & 0xFF)
        if n >= -0x8000:
            return self._head(0xD1, 2, n & 0xFFFF)
        if n >= -0x80000000:
            return self._head(0xD2, 4, n & 0xFFFFFFFF)
        if n >= -0x8000000000000000:
            return self._head(0xD3, 8, n & 0xFFFFFFFFFFFFFFFF)
        raise OverflowError(f"{n} exceeds 64 bits")

    def pack_float(self, x: float) -> int:
        "Pack a 32-bit float."
        if self.status:
            return _STOPPED
        rc = self._ensure(5, _OVER)
        if rc:
            return rc
        cur = self.current
        self._order.store_f32(self.buffer, cur + 1, x)
        self.buffer[cur] = 0xCA
        self.current = cur + 5
        return _OK

    def pack_double(self, x: float) -> int:
        "Pack a 64-bit float."
        if self.status:
            return _STOPPED
        rc = self._ensure(9, _OVER)
        if rc:
            return rc
        cur = self.current
        self._order.store_f64(self.buffer, cur + 1, x)
        self.buffer[cur] = 0xCB
        self.current = cur + 9
        return _OK

    def pack_nil(self) -> int:
        if self.status:
            return _STOPPED
        return self._head(0xC0)

    def pack_boolean(self, b: bool) -> int:
        if self.status:
            return _STOPPED
        return self._head(0xC3 if b else 0xC2)

    def pack_array_size(self, n: int) -> int:
        "Pack an array header. @n elements must follow."
        if self.status:
            return _STOPPED
        _check_len(n)
        if n < 0x10:
            return self._head(0x90 | n)
        if n <= 0xFFFF:
            return self._head(0xDC, 2, n)
        return self._head(0xDD, 4, n)

    def pack_map_size(self, n: int) -> int:
        "Pack a map header. @n key/value pairs, i.e. 2*n items, must follow."
        if self.status:
            return _STOPPED
        _check_len(n)
        if n < 0x10:
            return self._head(0x80 | n)
        if n <= 0xFFFF:
            return self._head(0xDE, 2, n)
        return self._head(0xDF, 4, n)

    def pack_str(self, data: str | ByteType) -> int:
        """
        Pack a string.

        A `str` is encoded to UTF-8; bytes are packed as they are.
        """
        if self.status:
            return _STOPPED
        data = _raw(data)
        n = data.nbytes
        _check_len(n)
        if n < 0x20:
            rc = self._head(0xA0 | n, payload=n)
        elif n <= 0xFF:
            rc = self._head(0xD9, 1, n, payload=n)
        elif n <= 0xFFFF:
            rc = self._head(0xDA, 2, n, payload=n)
        else:
            rc = self._head(0xDB, 4, n, payload=n)
        return rc or self._copy(data)

    def pack_bin(self, data: ByteType) -> int:
        "Pack a binary blob."
        if self.status:
            return _STOPPED
        data = _raw(data)
        n = data.nbytes
        _check_len(n)
        if n <= 0xFF:
            rc = self._head(0xC4, 1, n, payload=n)
        elif n <= 0xFFFF:
            rc = self._head(0xC5, 2, n, payload=n)
        else:
            rc = self._head(0xC6, 4, n, payload=n)
        return rc or self._copy(data)

    def pack_ext(self, ext_type: int, data: ByteType) -> int:
        """
        Pack an extension object.

        @ext_type is the application's subtype, -128…127.
        """
        if self.status:
            return _STOPPED
        if not -0x80 <= ext_type <= 0x7F:
            raise ValueError(f"extension type {ext_type} is not a signed byte")
        data = _raw(data)
        n = data.nbytes
        _check_len(n)
        if (tag := _FIXEXT.get(n)) is not None:
            rc = self._head(tag, payload=1 + n)
        elif n <= 0xFF:
            rc = self._head(0xC7, 1, n, payload=1 + n)
        elif n <= 0xFFFF:
            rc = self._head(0xC8, 2, n, payload=1 + n)
        else:
            rc = self._head(0xC9, 4, n, payload=1 + n)
        if rc:
            return rc
        self.buffer[self.current] = ext_type & 0xFF
        self.current += 1
        return self._copy(data)
