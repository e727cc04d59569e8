"""
The unpack engine and the item skipper.

`UnpackContext.decode_next_item` reads exactly one item per call and
stores it in `UnpackContext.item`. Arrays and maps arrive as headers
carrying their count; their contents are the items that follow.

Strings, binaries and extension payloads are not copied. The item
remembers where they are in the source buffer, and `Item.view` returns a
`memoryview` of that range. That view is only good as long as the buffer
is not reused or refilled: call `Item.detach` (or copy the bytes) to keep
the data.
"""

from __future__ import annotations

from enum import IntEnum

from ._base import Context
from .errors import Status, raise_for_status

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._base import ByteType

__all__ = ["ItemType", "Item", "UnpackContext"]

_OK = Status.OK
_STOPPED = Status.STOPPED
_EOF = Status.END_OF_INPUT
_UNDER = Status.BUFFER_UNDERFLOW


class ItemType(IntEnum):
    "The kinds of decoded items."

    NIL = 0
    BOOLEAN = 1
    POSITIVE_INTEGER = 2
    NEGATIVE_INTEGER = 3
    FLOAT = 4
    DOUBLE = 5
    STR = 6
    BIN = 7
    ARRAY = 8
    MAP = 9
    EXT = 10


_BLOBS = (ItemType.STR, ItemType.BIN, ItemType.EXT)

# header kinds
_UINT = 0
_INT = 1
_FLOAT = 2
_DOUBLE = 3
_STR = 4
_BIN = 5
_EXT = 6
_FIXEXT = 7
_ARRAY = 8
_MAP = 9

# tag: (kind, width of the field that follows; payload length for fixext)
_HEADERS = {
    0xC4: (_BIN, 1),
    0xC5: (_BIN, 2),
    0xC6: (_BIN, 4),
    0xC7: (_EXT, 1),
    0xC8: (_EXT, 2),
    0xC9: (_EXT, 4),
    0xCA: (_FLOAT, 4),
    0xCB: (_DOUBLE, 8),
    0xCC: (_UINT, 1),
    0xCD: (_UINT, 2),
    0xCE: (_UINT, 4),
    0xCF: (_UINT, 8),
    0xD0: (_INT, 1),
    0xD1: (_INT, 2),
    0xD2: (_INT, 4),
    0xD3: (_INT, 8),
    0xD4: (_FIXEXT, 1),
    0xD5: (_FIXEXT, 2),
    0xD6: (_FIXEXT, 4),
    0xD7: (_FIXEXT, 8),
    0xD8: (_FIXEXT, 16),
    0xD9: (_STR, 1),
    0xDA: (_STR, 2),
    0xDB: (_STR, 4),
    0xDC: (_ARRAY, 2),
    0xDD: (_ARRAY, 4),
    0xDE: (_MAP, 2),
    0xDF: (_MAP, 4),
}

_BLOB_TYPE = {_STR: ItemType.STR, _BIN: ItemType.BIN}


class Item:
    """
    One decoded item.

    Depending on `type`, the payload is

    * `value`: integers, booleans, floats; None for nil
    * `size`: the element count of an array, the pair count of a map
    * `buffer`, `start`, `length` (use `view`): strings, binaries and
      extensions; extensions also carry `ext_type`
    """

    __slots__ = ("type", "value", "ext_type", "buffer", "start", "length")

    def __init__(self, type: ItemType, value=None, *, ext_type=None, buffer=None, start=0, length=0):  # noqa:A002
        self.type = type
        self.value = value
        self.ext_type = ext_type
        self.buffer = buffer
        self.start = start
        self.length = length

    @property
    def size(self) -> int:
        "element/pair count of an array/map header"
        return self.value

    @property
    def view(self) -> memoryview:
        "The payload, borrowed from the source buffer."
        if self.type not in _BLOBS:
            raise TypeError(f"{self.type.name} has no payload")
        return memoryview(self.buffer)[self.start : self.start + self.length]

    @property
    def text(self) -> str:
        "the payload of a string, decoded"
        with self.view as v:
            return str(v, "utf-8")

    def detach(self) -> Item:
        """
        Return an item that owns a copy of its payload.

        Scalars and headers are returned unchanged.
        """
        if self.type not in _BLOBS:
            return self
        with self.view as v:
            data = bytes(v)
        return Item(self.type, ext_type=self.ext_type, buffer=data, start=0, length=len(data))

    def __eq__(self, other):
        if not isinstance(other, Item):
            return NotImplemented
        if self.type != other.type:
            return False
        if self.type in _BLOBS:
            return self.ext_type == other.ext_type and self.view == other.view
        return self.value == other.value

    __hash__ = None

    def __repr__(self):
        if self.type == ItemType.EXT:
            return f"<Item:EXT {self.ext_type}:{self.length}>"
        if self.type in _BLOBS:
            return f"<Item:{self.type.name} {self.length}>"
        return f"<Item:{self.type.name} {self.value!r}>"


class UnpackContext(Context):
    """
    Decode items from ``buffer[start:end]``.

    When the region runs out, @handler is asked to refill it. Without a
    handler the context stops, with `Status.END_OF_INPUT` if that happens
    between two items and `Status.BUFFER_UNDERFLOW` if it happens in the
    middle of one.
    """

    item: Item | None = None

    def __init__(self, buffer: ByteType, start=0, end=None, handler=None, *, byteorder=None):
        super().__init__(buffer, start, end, handler, byteorder=byteorder)

    def _translate(self, rc, short):
        # a handler's "no more input" means whatever running out means here
        if rc == _EOF:
            return short
        return rc

    def _load(self, width: int) -> int:
        buf = self.buffer
        cur = self.current
        if width == 1:
            val = buf[cur]
        elif width == 2:
            val = self._order.load16(buf, cur)
        elif width == 4:
            val = self._order.load32(buf, cur)
        else:
            val = self._order.load64(buf, cur)
        self.current = cur + width
        return val

    def _ext_type(self) -> int:
        t = self.buffer[self.current]
        self.current += 1
        return t - 0x100 if t & 0x80 else t

    def _blob(self, typ: ItemType, n: int, ext_type: int | None = None) -> int:
        if (rc := self._ensure(n, _UNDER)) != _OK:
            return rc
        cur = self.current
        self.item = Item(typ, ext_type=ext_type, buffer=self.buffer, start=cur, length=n)
        self.current = cur + n
        return _OK

    def decode_next_item(self) -> int:
        """
        Decode the next item into `item`.

        Returns `Status.OK`, or the status the context stopped with.
        """
        if self.status:
            return _STOPPED
        if (rc := self._ensure(1, _EOF)) != _OK:
            return rc
        c = self.buffer[self.current]
        self.current += 1

        if c < 0x80:
            self.item = Item(ItemType.POSITIVE_INTEGER, c)
        elif c >= 0xE0:
            self.item = Item(ItemType.NEGATIVE_INTEGER, c - 0x100)
        elif c < 0x90:
            self.item = Item(ItemType.MAP, c & 0x0F)
        elif c < 0xA0:
            self.item = Item(ItemType.ARRAY, c & 0x0F)
        elif c < 0xC0:
            return self._blob(ItemType.STR, c & 0x1F)
        elif c == 0xC0:
            self.item = Item(ItemType.NIL)
        elif c == 0xC2:
            self.item = Item(ItemType.BOOLEAN, False)
        elif c == 0xC3:
            self.item = Item(ItemType.BOOLEAN, True)
        else:
            try:
                kind, width = _HEADERS[c]
            except KeyError:
                return self._latch(Status.MALFORMED_INPUT)

            if kind == _FIXEXT:
                if (rc := self._ensure(1, _UNDER)) != _OK:
                    return rc
                return self._blob(ItemType.EXT, width, self._ext_type())

            if (rc := self._ensure(width, _UNDER)) != _OK:
                return rc
            if kind == _FLOAT:
                self.item = Item(ItemType.FLOAT, self._order.load_f32(self.buffer, self.current))
                self.current += 4
                return _OK
            if kind == _DOUBLE:
                self.item = Item(ItemType.DOUBLE, self._order.load_f64(self.buffer, self.current))
                self.current += 8
                return _OK

            val = self._load(width)
            if kind == _UINT:
                self.item = Item(ItemType.POSITIVE_INTEGER, val)
            elif kind == _INT:
                bits = width * 8
                if val >> (bits - 1):
                    self.item = Item(ItemType.NEGATIVE_INTEGER, val - (1 << bits))
                else:
                    self.item = Item(ItemType.POSITIVE_INTEGER, val)
            elif kind == _ARRAY:
                self.item = Item(ItemType.ARRAY, val)
            elif kind == _MAP:
                self.item = Item(ItemType.MAP, val)
            elif kind == _EXT:
                if (rc := self._ensure(1, _UNDER)) != _OK:
                    return rc
                return self._blob(ItemType.EXT, val, self._ext_type())
            else:
                return self._blob(_BLOB_TYPE[kind], val)
        return _OK

    def _skip(self, n: int) -> int:
        if (rc := self._ensure(n, _UNDER)) != _OK:
            return rc
        self.current += n
        return _OK

    def skip_items(self, count: int) -> int:
        """
        Skip @count items without decoding them.

        An array or map header counts as one item; its contents are added
        to the number of items still to skip, so skipping one item passes
        over a whole nested structure. This uses a counter, not recursion:
        nesting depth does not matter.
        """
        if self.status:
            return _STOPPED
        while count > 0:
            count -= 1
            if (rc := self._ensure(1, _EOF)) != _OK:
                return rc
            c = self.buffer[self.current]
            self.current += 1

            if c < 0x80 or c >= 0xE0 or c in (0xC0, 0xC2, 0xC3):
                continue
            if c < 0x90:
                count += 2 * (c & 0x0F)
                continue
            if c < 0xA0:
                count += c & 0x0F
                continue
            if c < 0xC0:
                rc = self._skip(c & 0x1F)
            else:
                try:
                    kind, width = _HEADERS[c]
                except KeyError:
                    return self._latch(Status.MALFORMED_INPUT)

                if kind in (_UINT, _INT, _FLOAT, _DOUBLE):
                    rc = self._skip(width)
                elif kind == _FIXEXT:
                    # subtype byte, then the payload
                    rc = self._skip(1 + width)
                else:
                    if (rc := self._ensure(width, _UNDER)) != _OK:
                        return rc
                    n = self._load(width)
                    if kind == _ARRAY:
                        count += n
                        continue
                    if kind == _MAP:
                        count += 2 * n
                        continue
                    if kind == _EXT:
                        n += 1
                    rc = self._skip(n)
            if rc != _OK:
                return rc
        return _OK

    def items(self) -> Iterator[Item]:
        """
        Yield items until the input ends cleanly.

        Any other stop raises the matching `WireError`. The items borrow
        from the buffer, as usual.
        """
        while True:
            rc = self.decode_next_item()
            if rc == _OK:
                yield self.item
            elif rc == _EOF:
                return
            elif rc == _STOPPED:
                raise_for_status(rc)
            else:
                self.check()
