"""
Ready-made contexts with their own buffers and handlers.

* `DynamicPackContext` packs into a `bytearray` that grows as needed.
* `StreamPackContext` packs into a fixed buffer and writes it to a
  file-like object whenever it fills up.
* `StreamUnpackContext` refills its buffer from a file-like object.

The stream contexts report I/O errors as `Status.ERROR_IN_HANDLER`; the
`OSError` is kept in ``exc`` (and its errno in ``err_no``), so ``check``
raises a `HandlerError` chained to it.
"""

from __future__ import annotations

import logging

from .errors import Status
from .pack import PackContext
from .unpack import UnpackContext

__all__ = ["DEFAULT_BUFLEN", "DynamicPackContext", "StreamPackContext", "StreamUnpackContext"]

logger = logging.getLogger(__name__)

DEFAULT_BUFLEN = 4096


class DynamicPackContext(PackContext):
    """
    Pack into a private, growing buffer.

    Arguments:
      size (int): The initial buffer size. Defaults to 4k.
    """

    def __init__(self, size: int = DEFAULT_BUFLEN, *, byteorder=None):
        super().__init__(bytearray(size), handler=self._grow, byteorder=byteorder)

    def _grow(self, ctx, needed):
        ctx  # noqa:B018
        buf = self.buffer
        size = max(len(buf), 16)
        while size - self.current < needed:
            size *= 2
        logger.debug("%r: grow %d > %d", self, len(buf), size)
        buf.extend(bytes(size - len(buf)))
        self.end = size
        return Status.OK

    def take(self, n: int | None = None) -> bytes:
        """
        Remove and return the first @n packed bytes (default: all of them).
        """
        start = self.start
        cur = self.current
        if n is None or n >= cur - start:
            n = cur - start
        data = bytes(self.buffer[start : start + n])
        if n:
            rest = cur - start - n
            self.buffer[start : start + rest] = self.buffer[start + n : cur]
            self.current = cur - n
        return data


class StreamPackContext(PackContext):
    """
    Pack to a synchronous stream, via a buffer.

    Arguments:
      stream: anything with a blocking ``write`` method. Short writes
        are repeated until all data is written.
      buflen (int): The buffer size. Defaults to 4k. Values that don't fit
        get a larger buffer.

    Call `flush` when done.
    """

    def __init__(self, stream, buflen: int = DEFAULT_BUFLEN, *, byteorder=None):
        self.stream = stream
        super().__init__(bytearray(buflen), handler=self._flush, byteorder=byteorder)

    def _write(self):
        pos = self.start
        with memoryview(self.buffer)[pos : self.current] as mv:
            while pos < self.current:
                n = self.stream.write(mv[pos - self.start :])
                # None: a stream that doesn't report, i.e. wrote everything
                pos = self.current if n is None else pos + n
        self.current = self.start

    def _flush(self, ctx, needed):
        ctx  # noqa:B018
        try:
            self._write()
        except OSError as exc:
            self.err_no = exc.errno or 0
            self.exc = exc
            return Status.ERROR_IN_HANDLER

        if self.end - self.current < needed:
            logger.debug("%r: grow %d > %d", self, len(self.buffer), needed)
            self.buffer = bytearray(needed)
            self.start = self.current = 0
            self.end = needed
        return Status.OK

    def flush(self) -> int:
        """
        Write the buffer's contents to the stream.

        Returns `Status.OK`, or `Status.ERROR_IN_HANDLER` if writing failed.
        """
        if self.status:
            return Status.STOPPED
        try:
            self._write()
            if (flush := getattr(self.stream, "flush", None)) is not None:
                flush()
        except OSError as exc:
            self.err_no = exc.errno or 0
            self.exc = exc
            return self._latch(Status.ERROR_IN_HANDLER)
        return Status.OK


class StreamUnpackContext(UnpackContext):
    """
    Unpack from a synchronous stream, via a buffer.

    Arguments:
      stream: anything with a ``readinto`` or ``read`` method.
      buflen (int): The read buffer size. Defaults to 4k. Larger items
        get a larger buffer.

    Refilling moves unread data to the front of the buffer (or replaces
    the buffer), which invalidates the views of earlier items.
    """

    def __init__(self, stream, buflen: int = DEFAULT_BUFLEN, *, byteorder=None):
        self.stream = stream
        super().__init__(bytearray(buflen), 0, 0, handler=self._refill, byteorder=byteorder)

    def _read(self, pos: int) -> int:
        buf = self.buffer
        if (readinto := getattr(self.stream, "readinto", None)) is not None:
            with memoryview(buf)[pos:] as mv:
                return readinto(mv) or 0
        data = self.stream.read(len(buf) - pos)
        buf[pos : pos + len(data)] = data
        return len(data)

    def _refill(self, ctx, needed):
        ctx  # noqa:B018
        buf = self.buffer
        cur = self.current
        left = self.end - cur
        if needed > len(buf):
            logger.debug("%r: grow %d > %d", self, len(buf), needed)
            nbuf = bytearray(max(needed, 2 * len(buf)))
            nbuf[:left] = buf[cur : self.end]
            self.buffer = nbuf
        elif left and cur:
            buf[:left] = buf[cur : self.end]
        self.start = self.current = 0
        self.end = left

        try:
            while self.end < needed:
                n = self._read(self.end)
                if not n:
                    return Status.END_OF_INPUT
                self.end += n
        except OSError as exc:
            self.err_no = exc.errno or 0
            self.exc = exc
            return Status.ERROR_IN_HANDLER
        return Status.OK
