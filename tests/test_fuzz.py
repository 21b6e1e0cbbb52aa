"""Randomised robustness checks: malformed input must only raise BitstreamError."""

import random

import pytest

from bcstream import AbbrevOp, BitstreamError, DecoderOptions, iter_events, read_tree
from bcstream.constants import RAW_MAGIC

from bitstream_builder import BitstreamBuilder, wrap

SEED = 0x0B17C0DE


def _seed_stream() -> bytes:
    name = [AbbrevOp.literal(2), AbbrevOp.array(), AbbrevOp.char6()]
    data = [AbbrevOp.fixed(3), AbbrevOp.vbr(6), AbbrevOp.array(), AbbrevOp.fixed(8)]
    blob = [AbbrevOp.literal(4), AbbrevOp.vbr(4), AbbrevOp.blob()]
    builder = BitstreamBuilder()
    builder.blockinfo([(8, [name]), (9, [data])])
    builder.enter_block(8, 3)
    builder.record(1, [2])
    builder.abbreviated(4, name, [2], array=[ord(char) for char in "armv7"])
    builder.define_abbrev(blob)
    builder.abbreviated(5, blob, [4, 11], blob=b"payload")
    builder.enter_block(9, 4)
    builder.abbreviated(4, data, [5, 300], array=[1, 2, 255])
    builder.record(6, [1, 2, 3, 1 << 40])
    builder.end_block()
    builder.end_block()
    return builder.to_bytes()


def _decode(data: bytes, options: DecoderOptions) -> int:
    count = 0
    try:
        for _ in iter_events(data, options):
            count += 1
    except BitstreamError:
        pass
    assert count <= len(data) * 8
    return count


def _mutations(seed: bytes, rng: random.Random, rounds: int):
    for _ in range(rounds):
        buffer = bytearray(seed)
        for _ in range(rng.randint(1, 8)):
            index = rng.randrange(len(RAW_MAGIC), len(buffer))
            buffer[index] ^= 1 << rng.randrange(8)
        yield bytes(buffer)


@pytest.mark.parametrize("strict", [True, False])
def test_bit_flips_never_escape_bitstream_error(strict):
    rng = random.Random(SEED)
    options = DecoderOptions(strict=strict)

    for data in _mutations(_seed_stream(), rng, 400):
        _decode(data, options)


def test_truncation_never_escapes_bitstream_error():
    seed = _seed_stream()

    for size in range(len(seed)):
        _decode(seed[:size], DecoderOptions())
        _decode(seed[:size], DecoderOptions(strict=False))


def test_random_bodies_after_magic():
    rng = random.Random(SEED + 1)

    for _ in range(300):
        body = bytes(rng.randrange(256) for _ in range(rng.randrange(0, 64)))
        _decode(RAW_MAGIC + body, DecoderOptions(strict=False))
        _decode(RAW_MAGIC + body, DecoderOptions())


def test_wrapped_mutations():
    rng = random.Random(SEED + 2)
    seed = wrap(_seed_stream(), trailer=b"\x00" * 4)

    for _ in range(200):
        buffer = bytearray(seed)
        index = rng.randrange(len(buffer))
        buffer[index] = rng.randrange(256)
        _decode(bytes(buffer), DecoderOptions(strict=False))


def test_seed_stream_decodes_cleanly():
    tree = read_tree(_seed_stream())

    module = tree.find_block(8)
    assert module.find_record(2).text() == "armv7"
    assert module.find_record(4).blob == b"payload"
    inner = module.find_block(9)
    assert inner.find_record(5).operands == (300, 1, 2, 255)
    assert inner.find_record(6).operands == (1, 2, 3, 1 << 40)
