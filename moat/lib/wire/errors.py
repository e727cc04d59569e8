"""
Result codes and exceptions.

Engine operations return a `Status`. The first non-OK status latches in
the context; afterwards everything returns `Status.STOPPED` until the
context is re-initialized.

Code that prefers exceptions calls `raise_for_status`, or the context's
``check`` method, once at the end of a sequence of operations.
"""

from __future__ import annotations

from enum import IntEnum

__all__ = [
    "Status",
    "WireError",
    "Stopped",
    "EndOfInput",
    "BufferOverflow",
    "BufferUnderflow",
    "MalformedInput",
    "WrongByteOrder",
    "HandlerError",
    "raise_for_status",
]


class Status(IntEnum):
    "Engine result codes."

    OK = 0
    END_OF_INPUT = -1
    BUFFER_OVERFLOW = -2
    BUFFER_UNDERFLOW = -3
    MALFORMED_INPUT = -4
    WRONG_BYTE_ORDER = -5
    ERROR_IN_HANDLER = -6
    STOPPED = -9


class WireError(Exception):
    "superclass, not raised"

    status: Status = None


class Stopped(WireError):
    "The context already latched an error"

    status = Status.STOPPED


class EndOfInput(WireError, EOFError):
    "Input ended cleanly, between two items"

    status = Status.END_OF_INPUT


class BufferOverflow(WireError):
    "No room left to pack into"

    status = Status.BUFFER_OVERFLOW


class BufferUnderflow(WireError, ValueError):
    "Input ended in the middle of an item"

    status = Status.BUFFER_UNDERFLOW


class MalformedInput(WireError, ValueError):
    "Undefined tag byte"

    status = Status.MALFORMED_INPUT


class WrongByteOrder(WireError):
    "Byte order self-test contradicts the configured assumption"

    status = Status.WRONG_BYTE_ORDER


class HandlerError(WireError):
    "The overflow/underflow handler failed"

    status = Status.ERROR_IN_HANDLER


_errors = {
    cls.status: cls
    for cls in (
        Stopped,
        EndOfInput,
        BufferOverflow,
        BufferUnderflow,
        MalformedInput,
        WrongByteOrder,
        HandlerError,
    )
}


def raise_for_status(status: int, msg: str | None = None, cause: BaseException | None = None):
    """
    Raise the exception matching @status. Does nothing for `Status.OK`.

    Codes a handler invented (i.e. not in `Status`) raise a plain
    `WireError` carrying the code.
    """
    if status == Status.OK:
        return
    try:
        cls = _errors[Status(status)]
    except (ValueError, KeyError):
        exc = WireError(status if msg is None else msg)
        exc.status = status
    else:
        exc = cls(cls.__doc__ if msg is None else msg)
    raise exc from cause
