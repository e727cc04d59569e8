"""
State shared by the pack and unpack engines: the buffer region, the cursor,
the error latch, and the handler that extends the region.
"""

from __future__ import annotations

import logging

from ._order import select_order
from .errors import Status, raise_for_status

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Callable, Union

    from ._order import ByteOrder

    ByteType = Union[bytes, bytearray, memoryview]
    VarByteType = Union[bytearray, memoryview]

    #: handler(ctx, needed) -> Status
    Handler = Callable[["Context", int], int]

__all__ = ["Context"]

logger = logging.getLogger(__name__)


class Context:
    """
    A cursor over ``buffer[start:end]``, plus an error latch.

    @handler is called with the context and the number of bytes required
    when the region runs out. It must either make that many bytes
    available at or after `current` (adjusting `buffer`, `current` and
    `end` as it sees fit) and return `Status.OK`, or return a
    terminal status.

    @byteorder, if given, asserts the host byte order ("big" or
    "little"), or forces the portable strategy ("portable").
    """

    buffer: ByteType = None
    start: int = 0
    current: int = 0
    end: int = 0

    status: int = Status.OK
    _order: ByteOrder = None

    def __init__(self, buffer, start=0, end=None, handler: Handler | None = None, *, byteorder=None):
        self.handler = handler
        self.byteorder = byteorder
        #: free for handlers to store an OS error number
        self.err_no = 0
        #: the exception a handler raised or reported, if any
        self.exc = None
        self.init(buffer, start, end)

    def init(self, buffer, start: int = 0, end: int | None = None) -> Status:
        """
        (Re)bind this context to ``buffer[start:end]`` and clear the latch.

        Runs the byte order self-test. Returns `Status.WRONG_BYTE_ORDER`
        (and stays stopped) if it contradicts the configured assumption.
        """
        if end is None:
            end = len(buffer)
        if not 0 <= start <= end <= len(buffer):
            raise ValueError(f"bad region {start}:{end} of {len(buffer)}")
        self.buffer = buffer
        self.start = self.current = start
        self.end = end
        self.err_no = 0
        self.exc = None

        self.status = Status.OK
        self._order = select_order(self.byteorder)
        if self._order is None:
            return self._latch(Status.WRONG_BYTE_ORDER)
        return Status.OK

    @property
    def remaining(self) -> int:
        "bytes between the cursor and the end of the region"
        return self.end - self.current

    def check(self) -> None:
        "Raise the exception matching the latched status, if any."
        raise_for_status(self.status, cause=self.exc)

    def _latch(self, status: int) -> int:
        self.status = status
        logger.debug("%r: stopped: %s", self, _name(status))
        return status

    def _translate(self, rc: int, short: Status) -> int:
        "map a handler's non-OK result to the code to latch"
        short  # noqa:B018
        return rc

    def _ensure(self, n: int, short: Status) -> int:
        """
        Make sure that @n bytes are available at the cursor.

        @short is latched when there is no handler.
        """
        if self.end - self.current >= n:
            return Status.OK
        if self.handler is None:
            return self._latch(short)

        try:
            rc = self.handler(self, n)
        except BaseException as exc:
            self.exc = exc
            self._latch(Status.ERROR_IN_HANDLER)
            raise

        if rc != Status.OK:
            return self._latch(self._translate(rc, short))
        if self.end - self.current < n:
            logger.warning("%r: handler returned OK but provided %d of %d bytes", self, self.end - self.current, n)
            return self._latch(Status.ERROR_IN_HANDLER)
        return Status.OK

    def __repr__(self):
        return f"<{self.__class__.__name__}:{self.current - self.start}/{self.end - self.start}>"


def _name(status):
    try:
        return Status(status).name
    except ValueError:
        return str(status)
