"""
A streaming MessagePack engine.

`PackContext` appends values to a buffer; `UnpackContext` reads them
back as a sequence of flat items, or skips over them. Both work on a
caller-supplied region and call a handler when it runs out, which is how
the same code serves fixed buffers, growing buffers, and streams.
"""

from __future__ import annotations

from .contexts import DynamicPackContext, StreamPackContext, StreamUnpackContext
from .errors import (
    BufferOverflow,
    BufferUnderflow,
    EndOfInput,
    HandlerError,
    MalformedInput,
    Status,
    Stopped,
    WireError,
    WrongByteOrder,
    raise_for_status,
)
from .pack import PackContext
from .unpack import Item, ItemType, UnpackContext

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
    "PackContext",
    "UnpackContext",
    "Item",
    "ItemType",
    "DynamicPackContext",
    "StreamPackContext",
    "StreamUnpackContext",
]
