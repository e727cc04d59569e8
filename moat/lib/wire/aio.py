"""
Async item streams.

The engine is synchronous and its handlers can't wait for data, so these
classes run it without a handler on a private buffer, and read (or write)
between attempts.
"""

from __future__ import annotations

import anyio
import logging
from pathlib import Path as FSPath

from .contexts import DEFAULT_BUFLEN, DynamicPackContext
from .errors import BufferUnderflow, Status, raise_for_status
from .unpack import UnpackContext

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .unpack import Item

__all__ = ["ItemReader", "ItemWriter"]

logger = logging.getLogger(__name__)


class _ItemRW:
    """
    Common base class for :class:`ItemReader` and :class:`ItemWriter`.
    """

    _mode: str = None

    def __init__(self, path: anyio.Path | FSPath | str | None = None, stream=None):
        if (path is None) == (stream is None):
            raise RuntimeError("You need to specify either path or stream")

        if isinstance(path, anyio.Path):
            pass
        elif path is not None:
            path = anyio.Path(path)
        self.path = path
        self.stream = stream

    async def __aenter__(self):
        if self.path is not None:
            self.stream = await anyio.open_file(self.path, self._mode)
        return self

    async def __aexit__(self, *tb):
        if self.path is not None:
            with anyio.CancelScope(shield=True):
                await self.stream.aclose()


class ItemReader(_ItemRW):
    """Read a stream of MessagePack items from a file or byte stream.

    Usage::

        async with ItemReader(path="/tmp/items.pack") as f:
            async for item in f:
                process(item)

    Arguments:
      buflen (int): The read size. Defaults to 4k.
      path (str): the file to read from.
      stream: the stream to read from: an anyio file (``read``) or a
        byte stream (``receive``).

    Exactly one of ``path`` and ``stream`` must be used.

    Items are detached: their payloads are copies. A stream that ends in
    the middle of an item raises `BufferUnderflow`.
    """

    _mode = "rb"

    def __init__(self, *a, buflen: int = DEFAULT_BUFLEN, byteorder=None, **kw):
        super().__init__(*a, **kw)
        self.buflen = buflen
        self._buf = bytearray()
        self._ctx = UnpackContext(self._buf, byteorder=byteorder)
        self._ctx.check()

    async def _more(self, rc: int) -> bool:
        """
        Read more data after the engine returned @rc.

        Returns False at the end of the stream.
        """
        if rc not in (Status.END_OF_INPUT, Status.BUFFER_UNDERFLOW):
            self._ctx.check()

        if (receive := getattr(self.stream, "receive", None)) is not None:
            try:
                data = await receive(self.buflen)
            except anyio.EndOfStream:
                data = b""
        else:
            data = await self.stream.read(self.buflen)
        if not data:
            return False
        self._buf += data
        return True

    def __aiter__(self):
        return self

    async def __anext__(self) -> Item:
        ctx = self._ctx
        while True:
            ctx.init(self._buf)
            rc = ctx.decode_next_item()
            if rc == Status.OK:
                item = ctx.item.detach()
                del self._buf[: ctx.current]
                return item
            if not await self._more(rc):
                if rc == Status.END_OF_INPUT:
                    raise StopAsyncIteration
                logger.debug("%r: truncated: %d bytes", self, len(self._buf))
                raise BufferUnderflow(f"stream ends inside an item, {len(self._buf)} bytes left")

    async def skip(self, count: int = 1):
        """
        Skip @count items.

        A partial skip is repeated from the start after reading more data.
        """
        ctx = self._ctx
        while True:
            ctx.init(self._buf)
            rc = ctx.skip_items(count)
            if rc == Status.OK:
                del self._buf[: ctx.current]
                return
            if not await self._more(rc):
                raise_for_status(rc)


class ItemWriter(_ItemRW):
    """Write a stream of MessagePack items to a file or byte stream.

    Usage::

        async with ItemWriter("/tmp/items.pack") as f:
            for n in range(10):
                f.ctx.pack_unsigned(n)
                await f.commit()

    Arguments:
      buflen (int): The buffer size. Defaults to 64k.
      path (str): the file to write to.
      stream: the stream to write to: an anyio file (``write``) or a
        byte stream (``send``).

    Exactly one of ``path`` and ``stream`` must be used.

    Values are packed into ``ctx``, a `DynamicPackContext`. `commit`
    writes whole multiples of ``buflen``; `flush` writes everything.
    Leaving the context flushes, unless packing failed.
    """

    _mode = "wb"

    def __init__(self, *a, buflen: int = 65536, byteorder=None, **kw):
        super().__init__(*a, **kw)
        self.buflen = buflen
        self.ctx = DynamicPackContext(buflen, byteorder=byteorder)
        self.ctx.check()

    async def __aexit__(self, *tb):
        with anyio.fail_after(2, shield=True):
            if not self.ctx.status:
                await self.flush()
            await super().__aexit__(*tb)

    async def _write(self, data: bytes):
        if (send := getattr(self.stream, "send", None)) is not None:
            await send(data)
        else:
            await self.stream.write(data)

    async def commit(self):
        """
        Check the packer's status, and write whole buffers.

        Raises the matching `WireError` if packing failed.
        """
        self.ctx.check()
        n = self.ctx.current - self.ctx.start
        if n >= self.buflen:
            await self._write(self.ctx.take(self.buflen * (n // self.buflen)))

    async def flush(self, force: bool = True):
        """Write the buffer.

        @force: also flush the underlying file.
        """
        self.ctx.check()
        if data := self.ctx.take():
            await self._write(data)
        if force and (flush := getattr(self.stream, "flush", None)) is not None:
            await flush()
