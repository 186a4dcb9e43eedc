import pytest

from .buffer import Buffer, SetBuffer, EndOfBuffer, FormatError, hexdump

def test_append_clamps_and_chains():
    buf = Buffer()
    assert buf.append(-5).append(17).append(1000) is buf
    assert buf.to_bytes() == b'\x00\x11\xff'

def test_consume_past_end():
    buf = Buffer(b'abc')
    assert buf.consume(2) == b'ab'
    with pytest.raises(EndOfBuffer):
        buf.consume(2)
    # a failed read does not move the cursor
    assert buf.remaining_readable() == 1
    assert buf.consume() == b'c'

def test_limit():
    buf = Buffer()
    buf.limit = 2
    buf.append(1).append(2)
    with pytest.raises(EndOfBuffer):
        buf.append(3)
    with pytest.raises(EndOfBuffer):
        buf.extend(b'x')

    buf.clear_limit()
    buf.extend(b'xyz')
    assert len(buf) == 5

    # setting a limit below the length truncates
    buf.limit = 3
    assert buf.to_bytes() == b'\x01\x02x'

def test_atomic_rollback():
    buf = Buffer(b'head')
    buf.consume(2)
    buf.limit = 8

    with pytest.raises(EndOfBuffer):
        with buf.atomic():
            buf.extend(b'ab')
            buf.consume(3)
            buf.limit = 20
            buf.consume(10)

    assert len(buf) == 4
    assert buf.cursor == 2
    assert buf.limit == 8

def test_atomic_commit():
    buf = Buffer()
    with buf.atomic():
        buf.extend(b'ok')
    assert buf.to_bytes() == b'ok'

def test_atomic_rollback_on_other_exceptions():
    buf = Buffer()
    with pytest.raises(KeyError):
        with buf.atomic():
            buf.extend(b'partial')
            raise KeyError("boom")
    assert len(buf) == 0

def test_set_buffer_framing():
    s = SetBuffer(set_id=300)
    assert len(s) == 4
    s.limit = 10
    assert s.limit == 10
    s.limit = s.limit
    assert s.limit == 10
    s.extend(b'abcdef')
    with pytest.raises(EndOfBuffer):
        s.append(0)
    assert s.to_bytes() == b'\x01\x2c\x00\x0aabcdef'

    t = SetBuffer.from_bytes(s.to_bytes() + b'trailing')
    assert t.set_id == 300
    assert len(t) == 10
    assert t.consume(6) == b'abcdef'
    assert t.remaining_readable() == 0

def test_set_buffer_accept_id():
    assert SetBuffer(set_id=256).accept_id(256)
    assert not SetBuffer(set_id=256).accept_id(257)
    assert SetBuffer().accept_id(2)
    assert Buffer().accept_id(12345)

@pytest.mark.parametrize("data", [b'\x01\x00\x00',
                                  b'\x01\x00\x00\x02',
                                  b'\x01\x00\x00\x10abc'])
def test_set_buffer_malformed(data):
    with pytest.raises(FormatError):
        SetBuffer.from_bytes(data)

def test_hexdump():
    dump = hexdump(b'IPFIX\x00\x0a', linelen=4)
    assert dump.splitlines() == ["0000: 49 50 46 49  IPFI",
                                 "0004: 58 00 0a     X.."]
    assert Buffer(b'IPFIX').dump() == hexdump(b'IPFIX')
