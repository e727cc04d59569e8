"""
Tests for the error latch, the handler protocol, and error reporting
"""

from __future__ import annotations

import sys

import pytest

from moat.lib.wire import (
    BufferOverflow,
    BufferUnderflow,
    EndOfInput,
    HandlerError,
    ItemType,
    MalformedInput,
    PackContext,
    Status,
    Stopped,
    UnpackContext,
    WireError,
    WrongByteOrder,
    raise_for_status,
)
from moat.lib.wire import _order

_wrong = "big" if sys.byteorder == "little" else "little"


class TestLatch:
    "errors stick until the context is re-initialized"

    def test_overflow(self):
        buf = bytearray(4)
        ctx = PackContext(buf)
        assert ctx.pack_unsigned(1) == Status.OK
        assert ctx.pack_unsigned(300000) == Status.BUFFER_OVERFLOW
        assert ctx.current == 1
        assert buf[1:] == b"\x00\x00\x00"

        # would fit, but we're stopped
        assert ctx.pack_nil() == Status.STOPPED
        assert ctx.pack_str("") == Status.STOPPED
        assert ctx.current == 1
        assert ctx.status == Status.BUFFER_OVERFLOW
        with pytest.raises(BufferOverflow):
            ctx.check()

    def test_reinit(self):
        ctx = PackContext(bytearray(1))
        ctx.pack_unsigned(300)
        assert ctx.status == Status.BUFFER_OVERFLOW

        buf = bytearray(3)
        assert ctx.init(buf) == Status.OK
        assert ctx.status == Status.OK
        assert ctx.pack_unsigned(300) == Status.OK
        assert buf == b"\xcd\x01\x2c"

    def test_bad_region(self):
        with pytest.raises(ValueError):
            UnpackContext(b"abc", 2, 1)
        with pytest.raises(ValueError):
            UnpackContext(b"abc", 0, 4)


class TestHandler:
    "the overflow/underflow handler protocol"

    def test_grow(self):
        calls = []

        def grow(ctx, needed):
            calls.append(needed)
            ctx.buffer.extend(bytes(needed - ctx.remaining))
            ctx.end = len(ctx.buffer)
            return Status.OK

        ctx = PackContext(bytearray(2), handler=grow)
        assert ctx.pack_unsigned(300) == Status.OK
        assert calls == [3]
        assert ctx.getvalue() == b"\xcd\x01\x2c"

    def test_not_called(self):
        "the handler is only asked when the region is too small"

        def fail(ctx, needed):
            raise AssertionError("not called")

        ctx = PackContext(bytearray(3), handler=fail)
        assert ctx.pack_unsigned(300) == Status.OK

    def test_terminal(self):
        "whatever the handler returns is latched"
        ctx = PackContext(bytearray(2), handler=lambda ctx, n: Status.BUFFER_OVERFLOW)
        assert ctx.pack_unsigned(300) == Status.BUFFER_OVERFLOW
        assert ctx.current == 0
        assert ctx.pack_nil() == Status.STOPPED

    def test_custom_code(self):
        ctx = PackContext(bytearray(2), handler=lambda ctx, n: -42)
        assert ctx.pack_unsigned(300) == -42
        assert ctx.pack_nil() == Status.STOPPED
        with pytest.raises(WireError) as exc:
            ctx.check()
        assert exc.value.status == -42

    def test_lazy(self):
        "claiming success without providing the space is an error"
        ctx = PackContext(bytearray(2), handler=lambda ctx, n: Status.OK)
        assert ctx.pack_unsigned(300) == Status.ERROR_IN_HANDLER
        assert ctx.current == 0
        with pytest.raises(HandlerError):
            ctx.check()

    def test_raises(self):
        "an exception in the handler propagates, and latches"

        def boom(ctx, needed):
            raise RuntimeError("boom")

        ctx = UnpackContext(b"\xcd\x01", handler=boom)
        with pytest.raises(RuntimeError):
            ctx.decode_next_item()
        assert ctx.status == Status.ERROR_IN_HANDLER
        assert isinstance(ctx.exc, RuntimeError)
        assert ctx.decode_next_item() == Status.STOPPED
        with pytest.raises(HandlerError) as exc:
            ctx.check()
        assert exc.value.__cause__ is ctx.exc

    def test_underflow(self):
        "the handler's end of input means underflow inside an item"
        seen = []

        def dry(ctx, needed):
            seen.append((needed, ctx.end - ctx.current))
            return Status.END_OF_INPUT

        ctx = UnpackContext(b"\xcd\x01", handler=dry)
        assert ctx.decode_next_item() == Status.BUFFER_UNDERFLOW
        assert seen == [(2, 1)]

        ctx = UnpackContext(b"\x01", handler=dry)
        assert ctx.decode_next_item() == Status.OK
        assert ctx.decode_next_item() == Status.END_OF_INPUT
        assert seen[-1] == (1, 0)

    def test_chunked(self):
        "a refill handler can feed the input in small pieces"
        pc = PackContext(bytearray(100))
        pc.pack_array_size(3)
        pc.pack_unsigned(70000)
        pc.pack_str("hello world")
        pc.pack_double(-1.25)
        pc.check()
        chunks = [pc.getvalue()[i : i + 3] for i in range(0, pc.current, 3)]

        def refill(ctx, needed):
            buf = bytearray(ctx.buffer[ctx.current : ctx.end])
            while len(buf) < needed:
                if not chunks:
                    return Status.END_OF_INPUT
                buf += chunks.pop(0)
            ctx.buffer = buf
            ctx.start = ctx.current = 0
            ctx.end = len(buf)
            return Status.OK

        ctx = UnpackContext(b"", handler=refill)
        res = []
        for item in ctx.items():
            res.append(item.text if item.type == ItemType.STR else item.value)
        assert res == [3, 70000, "hello world", -1.25]


@pytest.mark.skipif(sys.byteorder not in ("big", "little"), reason="odd host")
class TestByteOrder:
    def test_wrong(self):
        ctx = PackContext(bytearray(10), byteorder=_wrong)
        assert ctx.status == Status.WRONG_BYTE_ORDER
        assert ctx.pack_nil() == Status.STOPPED
        assert ctx.current == 0
        with pytest.raises(WrongByteOrder):
            ctx.check()

    def test_right(self):
        ctx = PackContext(bytearray(10), byteorder=sys.byteorder)
        assert ctx.pack_unsigned(1000) == Status.OK

    def test_assumed(self, monkeypatch):
        "the process-wide assumption applies to new contexts"
        monkeypatch.setattr(_order, "ASSUMED_BYTEORDER", _wrong)
        assert UnpackContext(b"\x01").status == Status.WRONG_BYTE_ORDER
        assert UnpackContext(b"\x01", byteorder=sys.byteorder).status == Status.OK

        monkeypatch.setattr(_order, "ASSUMED_BYTEORDER", "portable")
        ctx = UnpackContext(b"\xcd\x01\x2c")
        assert ctx._order is _order.PORTABLE
        assert ctx.decode_next_item() == Status.OK
        assert ctx.item.value == 300

    def test_unknown(self):
        with pytest.raises(ValueError):
            PackContext(bytearray(10), byteorder="middle")


@pytest.mark.parametrize(
    "status,exc",
    [
        (Status.STOPPED, Stopped),
        (Status.END_OF_INPUT, EndOfInput),
        (Status.BUFFER_OVERFLOW, BufferOverflow),
        (Status.BUFFER_UNDERFLOW, BufferUnderflow),
        (Status.MALFORMED_INPUT, MalformedInput),
        (Status.WRONG_BYTE_ORDER, WrongByteOrder),
        (Status.ERROR_IN_HANDLER, HandlerError),
    ],
)
def test_raise_for_status(status, exc):
    with pytest.raises(exc) as info:
        raise_for_status(status)
    assert info.value.status == status
    assert isinstance(info.value, WireError)


def test_raise_ok():
    raise_for_status(Status.OK)
    raise_for_status(0)


def test_status_values():
    "the numeric codes are fixed"
    assert [int(s) for s in Status] == [0, -1, -2, -3, -4, -5, -6, -9]
