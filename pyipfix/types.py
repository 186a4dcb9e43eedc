#
# python-ipfix (c) 2013 Brian Trammell.
#
# Many thanks to the mPlane consortium (http://www.ict-mplane.eu) for
# its material support of this effort.
# 
# This program is free software: you can redistribute it and/or modify it under
# the terms of the GNU Lesser General Public License as published by the Free
# Software Foundation, either version 3 of the License, or (at your option) any
# later version.
#
# This program is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranty of MERCHANTABILITY or FITNESS
# FOR A PARTICULAR PURPOSE.  See the GNU Lesser General Public License for more
# details.
#
# You should have received a copy of the GNU General Public License along with
# this program.  If not, see <http://www.gnu.org/licenses/>.
#


"""
Implementation of IPFIX abstract data types (ADT) and mappings to Python types.

Maps each IPFIX ADT to the corresponding Python type, as below:

======================= =============
       IPFIX Type        Python Type
======================= =============
octetArray              bytes
unsigned8               int
unsigned16              int
unsigned32              int
unsigned64              int
signed8                 int
signed16                int
signed32                int
signed64                int
float32                 float
float64                 float
boolean                 bool
macAddress              bytes
string                  str
dateTimeSeconds         datetime
dateTimeMilliseconds    datetime
dateTimeMicroseconds    datetime
dateTimeNanoseconds     datetime
ipv4Address             ipaddress
ipv6Address             ipaddress
======================= =============

Though client code generally will not use this module directly, it defines how
each IPFIX abstract data type will be represented in Python, and the concrete
IPFIX representation of each type. Type methods operate on
:class:`pyipfix.buffer.Buffer` instances; encoding appends to the buffer,
decoding consumes from its cursor:

>>> from pyipfix import types
>>> from pyipfix.buffer import Buffer

Integers are represented by the python int type:

>>> unsigned32 = types.for_name("unsigned32")
>>> buf = Buffer()
>>> list(unsigned32.encode(buf, 42).to_bytes())
[0, 0, 0, 42]
>>> unsigned32.decode(buf)
42

Integers support reduced-length encoding; signed integers are sign-extended:

>>> buf = Buffer()
>>> list(unsigned32.encode(buf, 567890, 3).to_bytes())
[8, 170, 82]
>>> unsigned32.decode(buf, 3)
567890
>>> signed32 = types.for_name("signed32")
>>> buf = Buffer()
>>> list(signed32.encode(buf, -567890, 3).to_bytes())
[247, 85, 174]
>>> signed32.decode(buf, 3)
-567890

...booleans as SMI booleans, with 2 for false:

>>> boolean = types.for_name("boolean")
>>> list(boolean.encode(Buffer(), False).to_bytes())
[2]

...floats by the float type, with the usual caveats about precision:

>>> float32 = types.for_name("float32")
>>> buf = Buffer()
>>> list(float32.encode(buf, 42.03579).to_bytes())
[66, 40, 36, 166]
>>> float32.decode(buf)
42.035789489746094

...strings by the str type, encoded as UTF-8. Strings are variable-length by
default, so the encoded value is preceded by its length:

>>> string = types.for_name("string")
>>> buf = Buffer()
>>> list(string.encode(buf, "Grüezi").to_bytes())
[7, 71, 114, 195, 188, 101, 122, 105]
>>> string.decode(buf)
'Grüezi'

...addresses as the IPv4Address and IPv6Address types in the ipaddress module:

>>> from ipaddress import ip_address
>>> ipv4Address = types.for_name("ipv4Address")
>>> buf = Buffer()
>>> list(ipv4Address.encode(buf, ip_address("198.51.100.27")).to_bytes())
[198, 51, 100, 27]
>>> ipv4Address.decode(buf)
IPv4Address('198.51.100.27')

...and the timestamps of various precision as a timezone-aware python
datetime in UTC:

>>> from datetime import datetime, timezone
>>> dtfmt = "%Y-%m-%d %H:%M:%S.%f"
>>> dt = datetime(2013, 6, 21, 14, 0, 3, 456789, tzinfo=timezone.utc)

dateTimeSeconds truncates microseconds:

>>> dateTimeSeconds = types.for_name("dateTimeSeconds")
>>> buf = Buffer()
>>> list(dateTimeSeconds.encode(buf, dt).to_bytes())
[81, 196, 92, 99]
>>> dateTimeSeconds.decode(buf).strftime(dtfmt)
'2013-06-21 14:00:03.000000'

dateTimeMilliseconds truncates microseconds to the millisecond:

>>> dateTimeMilliseconds = types.for_name("dateTimeMilliseconds")
>>> buf = Buffer()
>>> list(dateTimeMilliseconds.encode(buf, dt).to_bytes())
[0, 0, 1, 63, 103, 8, 228, 128]
>>> dateTimeMilliseconds.decode(buf).strftime(dtfmt)
'2013-06-21 14:00:03.456000'

dateTimeMicroseconds exports microseconds fully in NTP format:

>>> dateTimeMicroseconds = types.for_name("dateTimeMicroseconds")
>>> buf = Buffer()
>>> list(dateTimeMicroseconds.encode(buf, dt).to_bytes())
[81, 196, 92, 99, 116, 240, 31, 184]
>>> dateTimeMicroseconds.decode(buf).strftime(dtfmt)
'2013-06-21 14:00:03.456789'

dateTimeNanoseconds is also supported, but is identical to
dateTimeMicroseconds, as the datetime class in Python only supports
microsecond-level timing.

"""
from datetime import datetime, timedelta, timezone
from functools import total_ordering
from ipaddress import ip_address
import math
import re
import struct

VARLEN = 65535

# alignment policies for padding and truncation
ALIGN_LEFT = "left"
ALIGN_RIGHT = "right"
ALIGN_EXACT = "exact"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_f32_st = struct.Struct("!f")
_f64_st = struct.Struct("!d")
_ntp_st = struct.Struct("!LL")

_mac_re = re.compile(r'^([0-9a-fA-F]{1,2})[:-]([0-9a-fA-F]{1,2})[:-]'
                     r'([0-9a-fA-F]{1,2})[:-]([0-9a-fA-F]{1,2})[:-]'
                     r'([0-9a-fA-F]{1,2})[:-]([0-9a-fA-F]{1,2})$')

class IpfixTypeError(ValueError):
    """Raised when attempting to do an unsupported operation on a type"""
    pass

def encode_varlen(buf, length):
    """Encode an IPFIX varlen encoded length; used internally by types"""
    if length >= 255:
        buf.append(255).append(length >> 8).append(length & 0xff)
    else:
        buf.append(length)
    return buf

def decode_varlen(buf):
    """Decode an IPFIX varlen encoded length; used internally by types"""
    length = buf.consume(1)[0]
    if length == 255:
        (length,) = struct.unpack("!H", buf.consume(2))
    return length

def _clamp_octets(val):
    if isinstance(val, (bytes, bytearray)):
        return bytes(val)
    if isinstance(val, memoryview):
        return val.tobytes()
    return bytes(min(max(int(b), 0), 255) for b in val)

def _as_utc(dt):
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

def _epoch_timedelta(val):
    if isinstance(val, datetime):
        return _as_utc(val) - EPOCH
    return timedelta(seconds=val)

# Builtin type implementation
@total_ordering
class IpfixType:
    """
    Abstract interface for all IPFIX types, and the implementation of the
    octetArray type.

    Each type defines a mapping between values and byte vectors
    (:meth:`to_bytes` and :meth:`from_bytes`), and an alignment policy used to
    pad or truncate a vector to an encoded length: left-aligned zero padding,
    right-aligned sign extension, or exact length only.

    """
    align = ALIGN_LEFT

    def __init__(self, name, num, length):
        self.name = name
        self.num = num
        self.length = length

    def __eq__(self, other):
        return (self.num, self.length) == (other.num, other.length)

    def __lt__(self, other):
        return (self.num, self.length) < (other.num, other.length)

    def __hash__(self):
        return hash((self.num, self.length))

    def __str__(self):
        return "<%s>" % self.name

    def __repr__(self):
        return "pyipfix.types.for_name(%s)" % repr(self.name)

    def to_bytes(self, val, length):
        """Turn a value into its natural byte vector for a target length."""
        return _clamp_octets(val)

    def from_bytes(self, vec):
        """Turn a byte vector into a value."""
        return bytes(vec)

    def parse(self, text):
        """Parse a string representation of a value of this type."""
        return text.encode()

    def pad_byte(self, val):
        return 0

    def tap(self, vec, length, val=None):
        """
        Pad or truncate a byte vector to length according to the alignment
        policy of this type.

        """
        if self.align == ALIGN_EXACT:
            if len(vec) != length:
                raise IpfixTypeError("cannot pad or truncate %s of natural "
                                     "length %u to %u" %
                                     (self, len(vec), length))
            return vec
        elif self.align == ALIGN_RIGHT:
            if len(vec) >= length:
                return vec[len(vec) - length:]
            return bytes([self.pad_byte(val)]) * (length - len(vec)) + vec
        else:
            if len(vec) >= length:
                return vec[:length]
            return vec + bytes(length - len(vec))

    def encode(self, buf, val, length=None):
        """
        Encode a value of this type and append it to a buffer.

        :param buf: buffer to append to
        :param val: value to encode; None encodes as zeroes
        :param length: encoded length, or VARLEN; defaults to the native
                       length of the type
        :returns: the buffer
        :raises: IpfixTypeError, EndOfBuffer

        """
        if length is None:
            length = self.length

        if val is None:
            vec = bytes(0 if length == VARLEN else length)
        else:
            vec = self.to_bytes(val, length)

        with buf.atomic():
            if length == VARLEN:
                encode_varlen(buf, len(vec))
            else:
                vec = self.tap(vec, length, val)
            buf.extend(vec)
        return buf

    def decode(self, buf, length=None):
        """
        Decode a value of this type, consuming it from a buffer.

        :param buf: buffer to consume from
        :param length: encoded length, or VARLEN; defaults to the native
                       length of the type
        :returns: the decoded value
        :raises: IpfixTypeError, EndOfBuffer

        """
        if length is None:
            length = self.length
        if length == VARLEN:
            length = decode_varlen(buf)
        return self.from_bytes(buf.consume(length))

class OctetArrayType(IpfixType):
    """Type for raw octet arrays."""
    def parse(self, text):
        if text.startswith("0x"):
            return bytes.fromhex(text[2:])
        return text.encode()

class StringType(IpfixType):
    """Type for UTF-8 strings; trailing NUL padding is stripped on decode."""
    def to_bytes(self, val, length):
        return str(val).encode("utf-8")

    def from_bytes(self, vec):
        return bytes(vec).rstrip(b"\x00").decode("utf-8", errors="replace")

    def parse(self, text):
        return text

class UnsignedType(IpfixType):
    """Type for arbitrary-length unsigned integers."""
    align = ALIGN_RIGHT

    def to_bytes(self, val, length):
        val = int(val)
        if val < 0:
            raise IpfixTypeError("cannot encode negative value %d as %s" %
                                 (val, self))
        return val.to_bytes((val.bit_length() + 7) // 8, "big")

    def from_bytes(self, vec):
        return int.from_bytes(vec, "big")

    def parse(self, text):
        return int(text, 0)

class SignedType(UnsignedType):
    """
    Type for arbitrary-length signed integers, in two's complement.
    Negative values are encoded as the complement of the unsigned encoding
    of their complement, and sign-extended with 0xff on reduced-length
    encoding. Variable-length encoding uses the shortest vector whose top
    bit carries the sign.

    """
    def pad_byte(self, val):
        if val is not None and val < 0:
            return 0xff
        return 0

    def to_bytes(self, val, length):
        val = int(val)
        if length == VARLEN:
            mag = val if val >= 0 else ~val
            return val.to_bytes(mag.bit_length() // 8 + 1, "big", signed=True)
        if val >= 0:
            return super().to_bytes(val, length)
        return bytes(~b & 0xff for b in super().to_bytes(~val, length))

    def from_bytes(self, vec):
        if len(vec) and vec[0] & 0x80:
            return ~super().from_bytes(bytes(~b & 0xff for b in vec))
        return super().from_bytes(vec)

class BooleanType(UnsignedType):
    """Type for SMI booleans: 1 is true, 2 is false."""
    def to_bytes(self, val, length):
        return super().to_bytes(1 if val else 2, length)

    def from_bytes(self, vec):
        return super().from_bytes(vec) == 1

    def parse(self, text):
        return text.strip() not in ("", "0", "f", "F", "n", "N",
                                    "false", "False")

class FloatType(IpfixType):
    """Type for IEEE 754 single and double precision floats."""
    align = ALIGN_EXACT

    def to_bytes(self, val, length):
        if length == 4:
            return _f32_st.pack(val)
        elif length == 8 or length == VARLEN:
            return _f64_st.pack(val)
        else:
            raise IpfixTypeError("cannot encode %u-byte float" % length)

    def from_bytes(self, vec):
        if len(vec) == 4:
            return _f32_st.unpack(vec)[0]
        elif len(vec) == 8:
            return _f64_st.unpack(vec)[0]
        else:
            raise IpfixTypeError("cannot decode %u-byte float" % len(vec))

    def parse(self, text):
        return float(text)

class IPAddressType(IpfixType):
    """Type for IPv4 and IPv6 addresses, as ipaddress module objects."""
    align = ALIGN_EXACT

    def to_bytes(self, val, length):
        if not hasattr(val, "packed"):
            val = ip_address(val)
        return val.packed

    def from_bytes(self, vec):
        return ip_address(bytes(vec))

    def parse(self, text):
        return ip_address(text)

class MacAddressType(IpfixType):
    """Type for six-byte MAC addresses, as bytes."""
    align = ALIGN_EXACT

    def to_bytes(self, val, length):
        if isinstance(val, str):
            return self.parse(val)
        return _clamp_octets(val)

    def parse(self, text):
        m = _mac_re.match(text.strip())
        if not m:
            raise IpfixTypeError("bad MAC address "+text)
        return bytes(int(x, 16) for x in m.groups())

class SecondsType(UnsignedType):
    """Type for time in seconds since the epoch."""
    def to_bytes(self, val, length):
        return super().to_bytes(int(_epoch_timedelta(val).total_seconds()),
                                length)

    def from_bytes(self, vec):
        return EPOCH + timedelta(seconds=super().from_bytes(vec))

    def parse(self, text):
        return _parse_datetime(text)

class MillisecondsType(UnsignedType):
    """Type for time in milliseconds since the epoch."""
    def to_bytes(self, val, length):
        msec = _epoch_timedelta(val) // timedelta(milliseconds=1)
        return super().to_bytes(msec, length)

    def from_bytes(self, vec):
        return EPOCH + timedelta(milliseconds=super().from_bytes(vec))

    def parse(self, text):
        return _parse_datetime(text)

class NTPType(IpfixType):
    """
    Type for time in NTP format: 32 bits of seconds since the epoch and
    32 bits of binary fraction of a second.

    """
    align = ALIGN_EXACT

    def to_bytes(self, val, length):
        if length != 8:
            raise IpfixTypeError("cannot encode %u-byte NTP time" % length)

        if isinstance(val, datetime):
            td = _epoch_timedelta(val)
            sec = td.days * 86400 + td.seconds
            fsec = td.microseconds / 1000000
        else:
            (fsec, sec) = math.modf(val)
            sec = int(sec)

        # rotate the fraction mask down
        fsmask = 0x80000000
        fsfrac = 0.5
        fntp = 0
        while fsmask:
            # equal to the weight sets the bit, so 0.5 is 0x80000000
            if fsec >= fsfrac:
                fntp |= fsmask
                fsec -= fsfrac
            fsfrac /= 2
            fsmask >>= 1

        return _ntp_st.pack(sec & 0xffffffff, fntp)

    def from_bytes(self, vec):
        if len(vec) != 8:
            raise IpfixTypeError("cannot decode %u-byte NTP time" % len(vec))

        (sec, fntp) = _ntp_st.unpack(vec)

        fsmask = 0x80000000
        fsfrac = 0.5
        fsec = 0.0
        while fsmask:
            if fntp & fsmask:
                fsec += fsfrac
            fsfrac /= 2
            fsmask >>= 1

        return EPOCH + timedelta(seconds=sec, microseconds=round(fsec * 1000000))

    def parse(self, text):
        return _parse_datetime(text)

def _parse_datetime(text):
    return _as_utc(datetime.fromisoformat(text.strip()))

# builtin type registry
_Types = [
    OctetArrayType("octetArray", 0, VARLEN),
    UnsignedType("unsigned8",  1, 1),
    UnsignedType("unsigned16", 2, 2),
    UnsignedType("unsigned32", 3, 4),
    UnsignedType("unsigned64", 4, 8),
    SignedType("signed8",    5, 1),
    SignedType("signed16",   6, 2),
    SignedType("signed32",   7, 4),
    SignedType("signed64",   8, 8),
    FloatType("float32",    9, 4),
    FloatType("float64",    10, 8),
    BooleanType("boolean",    11, 1),
    MacAddressType("macAddress", 12, 6),
    StringType("string", 13, VARLEN),
    SecondsType("dateTimeSeconds", 14, 4),
    MillisecondsType("dateTimeMilliseconds", 15, 8),
    NTPType("dateTimeMicroseconds", 16, 8),
    NTPType("dateTimeNanoseconds", 17, 8),
    IPAddressType("ipv4Address", 18, 4),
    IPAddressType("ipv6Address", 19, 16)
]

_TypeForName = { ietype.name: ietype for ietype in _Types }
_TypeForNum = { ietype.num: ietype for ietype in _Types }

# internal unsigned codec for protocol fields (ids, lengths, counts)
unsigned = UnsignedType("__internal_unsigned__", -1, 1)

def for_name(name):
    """
    Return an IPFIX type for a given type name

    :param name: the name of the type to look up
    :returns: IpfixType -- type instance for that name
    :raises: IpfixTypeError

    """
    try:
        return _TypeForName[name]
    except KeyError:
        raise IpfixTypeError("no such type "+str(name))

def for_num(num):
    """
    Return an IPFIX type for a given type number (see :rfc:`5610`)

    :param num: the number of the type to look up
    :returns: IpfixType -- type instance for that number
    :raises: IpfixTypeError

    """
    try:
        return _TypeForNum[num]
    except KeyError:
        raise IpfixTypeError("no such type number "+str(num))

def all_types():
    """Return the list of all builtin types, in type number order."""
    return list(_Types)
