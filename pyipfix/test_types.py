from datetime import datetime, timezone
from ipaddress import ip_address

import pytest

from . import types
from .buffer import Buffer, EndOfBuffer

def test_typesystem_transcode():
    buf = Buffer()
    values = [("unsigned64", 321321321321321, None),
              ("unsigned32", 123456, None),
              ("unsigned16", 6543, None),
              ("unsigned8", 21, None),
              ("unsigned32", 567890, 3),
              ("signed64", -21321321321321, None),
              ("signed32", 123456, None),
              ("signed16", -6543, None),
              ("signed8", -21, None),
              ("signed32", -567890, 3),
              ("signed32", -129, types.VARLEN),
              ("signed32", 128, types.VARLEN),
              ("signed32", -1, types.VARLEN),
              ("signed64", 0, types.VARLEN),
              ("boolean", True, None),
              ("macAddress", b'\x00\x01\x4e\x29\xc6\x80', None),
              ("ipv4Address", ip_address("130.207.244.251"), None),
              ("ipv6Address", ip_address("fe80::0201:43ff:fe29:c680"), None),
              ("dateTimeSeconds",
               datetime(2009, 5, 3, 14, 30, tzinfo=timezone.utc), None),
              ("dateTimeMilliseconds",
               datetime(2009, 5, 3, 14, 29, 47, 500000, tzinfo=timezone.utc),
               None),
              ("float64", 12345678.901, None),
              ("string", "foo", None),
              ("string", "bar", 6),
              ("string", "qüüx", None),
              ("octetArray", b'\x00\x01\x02', None)]

    for (typename, val, length) in values:
        types.for_name(typename).encode(buf, val, length)

    for (typename, val, length) in values:
        assert types.for_name(typename).decode(buf, length) == val

    assert buf.remaining_readable() == 0

def test_float32_precision():
    buf = Buffer()
    fl32 = types.for_name("float32")
    fl32.encode(buf, 1098765.4321)
    assert len(buf) == 4
    assert int(fl32.decode(buf)) == 1098765

def test_none_encodes_zeros():
    buf = Buffer()
    types.for_name("unsigned32").encode(buf, None)
    types.for_name("string").encode(buf, None)
    assert buf.to_bytes() == b'\x00\x00\x00\x00\x00'

def test_boolean_false_is_two():
    buf = Buffer()
    boolean = types.for_name("boolean")
    boolean.encode(buf, False)
    assert buf.to_bytes() == b'\x02'
    assert boolean.decode(buf) is False

def test_reduced_length_truncates_high_bytes():
    buf = Buffer()
    types.for_name("unsigned64").encode(buf, 0x123456789a, 4)
    assert buf.to_bytes() == b'\x34\x56\x78\x9a'

def test_left_alignment():
    buf = Buffer()
    types.for_name("string").encode(buf, "truncated", 5)
    types.for_name("octetArray").encode(buf, b'ab', 4)
    assert buf.to_bytes() == b'truncab\x00\x00'

@pytest.mark.parametrize("typename,val,length",
                         [("ipv4Address", ip_address("10.0.0.1"), 2),
                          ("macAddress", b'\x01\x02\x03', 6),
                          ("float64", 1.5, 2),
                          ("dateTimeMicroseconds",
                           datetime(2013, 6, 21, tzinfo=timezone.utc), 4)])
def test_exact_length_errors(typename, val, length):
    buf = Buffer()
    with pytest.raises(types.IpfixTypeError):
        types.for_name(typename).encode(buf, val, length)
    assert len(buf) == 0

def test_negative_unsigned():
    with pytest.raises(types.IpfixTypeError):
        types.for_name("unsigned8").encode(Buffer(), -1)

def test_varlen_prefix():
    string = types.for_name("string")

    buf = Buffer()
    string.encode(buf, "x" * 254)
    assert buf.to_bytes()[0] == 254
    assert len(buf) == 255

    buf = Buffer()
    string.encode(buf, "x" * 300)
    assert buf.to_bytes()[0:3] == b'\xff\x01\x2c'
    assert len(buf) == 303
    assert string.decode(buf) == "x" * 300

@pytest.mark.parametrize("val,vec", [(-129, b'\x02\xff\x7f'),
                                     (128, b'\x02\x00\x80'),
                                     (127, b'\x01\x7f'),
                                     (-1, b'\x01\xff'),
                                     (0, b'\x01\x00')])
def test_signed_varlen_is_minimal(val, vec):
    signed32 = types.for_name("signed32")
    buf = Buffer()
    signed32.encode(buf, val, types.VARLEN)
    assert buf.to_bytes() == vec
    assert signed32.decode(buf, types.VARLEN) == val

def test_empty_varlen_value():
    string = types.for_name("string")
    buf = Buffer(b'\x00\x01')
    assert string.decode(buf, 0) == ""
    assert string.decode(buf, 1) == "\x01"

def test_varlen_truncated_value():
    buf = Buffer(b'\x05abc')
    with pytest.raises(EndOfBuffer):
        types.for_name("octetArray").decode(buf)

def test_encode_is_atomic_under_limit():
    buf = Buffer()
    buf.limit = 3
    with pytest.raises(EndOfBuffer):
        types.for_name("string").encode(buf, "four")
    assert len(buf) == 0

def test_ntp_transcode():
    buf = Buffer()
    usec = types.for_name("dateTimeMicroseconds")
    dt = datetime(2013, 6, 21, 14, 0, 3, 456789, tzinfo=timezone.utc)
    usec.encode(buf, dt)
    assert len(buf) == 8
    assert usec.decode(buf) == dt

    buf = Buffer()
    usec.encode(buf, datetime(2013, 6, 21, 14, 0, 3, 500000))
    assert buf.to_bytes()[4:] == b'\x80\x00\x00\x00'

def test_naive_datetimes_are_utc():
    buf = Buffer()
    msec = types.for_name("dateTimeMilliseconds")
    msec.encode(buf, datetime(2009, 5, 3, 14, 29, 47, 500000))
    assert msec.decode(buf) == \
        datetime(2009, 5, 3, 14, 29, 47, 500000, tzinfo=timezone.utc)

def test_parse():
    assert types.for_name("unsigned16").parse("0x1f") == 31
    assert types.for_name("boolean").parse("false") is False
    assert types.for_name("macAddress").parse("00:01:4e:29:c6:80") == \
        b'\x00\x01\x4e\x29\xc6\x80'
    assert types.for_name("ipv6Address").parse("::1") == ip_address("::1")
    assert types.for_name("dateTimeSeconds").parse("2009-05-03T14:30:00") == \
        datetime(2009, 5, 3, 14, 30, tzinfo=timezone.utc)
    with pytest.raises(types.IpfixTypeError):
        types.for_name("macAddress").parse("not a mac")

def test_catalogue():
    assert len(types.all_types()) == 20
    assert [t.num for t in types.all_types()] == list(range(20))
    assert types.for_num(13) is types.for_name("string")
    with pytest.raises(types.IpfixTypeError):
        types.for_name("unsigned128")
    with pytest.raises(ValueError):
        types.for_num(42)
