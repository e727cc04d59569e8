"""
Compare with the reference ``msgpack`` library
"""

from __future__ import annotations

import msgpack
import pytest

from moat.lib.wire import DynamicPackContext, ItemType, UnpackContext

T = ItemType


def wire_pack(ctx, obj):
    "walk a Python object"
    if obj is None:
        ctx.pack_nil()
    elif isinstance(obj, bool):
        ctx.pack_boolean(obj)
    elif isinstance(obj, int):
        ctx.pack_signed(obj)
    elif isinstance(obj, float):
        ctx.pack_double(obj)
    elif isinstance(obj, str):
        ctx.pack_str(obj)
    elif isinstance(obj, (bytes, bytearray)):
        ctx.pack_bin(obj)
    elif isinstance(obj, msgpack.ExtType):
        ctx.pack_ext(obj.code, obj.data)
    elif isinstance(obj, (list, tuple)):
        ctx.pack_array_size(len(obj))
        for v in obj:
            wire_pack(ctx, v)
    elif isinstance(obj, dict):
        ctx.pack_map_size(len(obj))
        for k, v in obj.items():
            wire_pack(ctx, k)
            wire_pack(ctx, v)
    else:
        raise TypeError(obj)


def wire_build(it):
    "rebuild a Python object from an item iterator"
    item = next(it)
    if item.type == T.ARRAY:
        return [wire_build(it) for _ in range(item.size)]
    if item.type == T.MAP:
        res = {}
        for _ in range(item.size):
            k = wire_build(it)
            res[k] = wire_build(it)
        return res
    if item.type == T.STR:
        return item.text
    if item.type == T.BIN:
        return bytes(item.view)
    if item.type == T.EXT:
        return msgpack.ExtType(item.ext_type, bytes(item.view))
    return item.value


_objects = [
    None,
    True,
    False,
    0,
    -1,
    127,
    128,
    -33,
    2**64 - 1,
    -(2**63),
    1.5,
    -1e100,
    "",
    "abc",
    "ü" * 40,
    "z" * 300,
    "y" * 70000,
    b"",
    b"\x00\xff",
    bytes(300),
    [],
    list(range(20)),
    {},
    {"a": 1, "b": [1, 2, {"c": None}]},
    {i: str(i) for i in range(20)},
    msgpack.ExtType(5, b"a"),
    msgpack.ExtType(1, b"abc"),
    msgpack.ExtType(127, bytes(16)),
    msgpack.ExtType(2, bytes(17)),
    msgpack.ExtType(3, bytes(300)),
    msgpack.ExtType(4, bytes(70000)),
    [[[[[[[[[[1]]]]]]]]]],
]


@pytest.mark.parametrize("obj", _objects)
def test_pack_same(obj):
    "we produce the same bytes as msgpack"
    ctx = DynamicPackContext(16)
    wire_pack(ctx, obj)
    ctx.check()
    assert ctx.getvalue() == msgpack.packb(obj, use_bin_type=True)


@pytest.mark.parametrize("obj", _objects)
def test_unpack_same(obj):
    "we read what msgpack writes"
    data = msgpack.packb(obj, use_bin_type=True)
    ctx = UnpackContext(data)
    it = ctx.items()
    res = wire_build(it)
    assert ctx.remaining == 0
    assert res == msgpack.unpackb(data, raw=False, strict_map_key=False)


def test_single_float():
    data = msgpack.packb(0.25, use_single_float=True)
    ctx = UnpackContext(data)
    assert ctx.decode_next_item() == 0
    assert ctx.item.type == T.FLOAT
    assert ctx.item.value == 0.25

    ctx = DynamicPackContext()
    ctx.pack_float(0.25)
    assert msgpack.unpackb(ctx.getvalue()) == 0.25


def test_skip_same():
    "skipping a msgpack value lands on the next one"
    data = msgpack.packb(_objects, use_bin_type=True) + msgpack.packb(99)
    ctx = UnpackContext(data)
    assert ctx.skip_items(1) == 0
    assert ctx.decode_next_item() == 0
    assert ctx.item.value == 99


def test_negative_ext_type():
    "msgpack only builds subtypes 0…127; negative ones are checked by hand"
    ctx = DynamicPackContext()
    ctx.pack_ext(-1, b"ab")
    assert ctx.getvalue() == b"\xd5\xffab"

    uc = UnpackContext(b"\xd5\xffab")
    assert uc.decode_next_item() == 0
    assert uc.item.type == T.EXT
    assert uc.item.ext_type == -1
    assert bytes(uc.item.view) == b"ab"
