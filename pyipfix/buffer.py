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
Byte buffers, upon which the type system and set framing are built.

A :class:`Buffer` is a growable sequence of bytes with a read cursor and an
optional write limit. Bytes are appended to the end and consumed from the
cursor:

>>> from pyipfix.buffer import Buffer, SetBuffer, EndOfBuffer
>>> buf = Buffer()
>>> buf.append(1).append(2).append(300).to_bytes()
b'\\x01\\x02\\xff'
>>> buf.consume(2)
b'\\x01\\x02'
>>> buf.remaining_readable()
1

When a limit is set, appending past it raises :exc:`EndOfBuffer`. The
:meth:`Buffer.atomic` context manager rolls the buffer back to its state on
entry when anything inside it raises, so a multi-field write either happens
completely or not at all:

>>> buf = Buffer()
>>> buf.limit = 3
>>> try:
...     with buf.atomic():
...         _ = buf.extend(b'ab')
...         _ = buf.extend(b'cd')
... except EndOfBuffer:
...     pass
>>> len(buf)
0

A :class:`SetBuffer` frames its content with an IPFIX Set header:

>>> s = SetBuffer(set_id=256)
>>> s.extend(b'\\x00\\x2a')
<SetBuffer id 256 length 6>
>>> s.to_bytes()
b'\\x01\\x00\\x00\\x06\\x00*'

"""

from contextlib import contextmanager
import struct

_sethdr_st = struct.Struct("!HH")

class EndOfBuffer(Exception):
    """
    Raised when a read would run past the end of a buffer, or a write would
    grow a buffer past its limit.

    """
    pass

class FormatError(Exception):
    """Raised when decoding malformed IPFIX messages, sets or records"""
    pass

class Buffer:
    """
    A read-write byte buffer with a read cursor and an optional write limit.
    Used by the type system for transcoding.

    :param data: initial content of the buffer, if any

    """
    def __init__(self, data=None):
        self.a = bytearray(data) if data else bytearray()
        self.cursor = 0
        self._limit = None

    def __len__(self):
        return len(self.a)

    def __repr__(self):
        return "<Buffer length %u cursor %u>" % (len(self), self.cursor)

    def rewind(self):
        """Move the read cursor back to the start of the buffer."""
        self.cursor = 0

    @contextmanager
    def atomic(self):
        """
        Context manager which saves the buffer state (length, cursor, and
        limit) on entry. If the body raises, the buffer is restored to the
        saved state, discarding any partial writes, and the exception
        propagates.

        """
        savelen = len(self.a)
        savecur = self.cursor
        savelim = self._limit
        try:
            yield self
        except BaseException:
            del self.a[savelen:]
            self.cursor = savecur
            self._limit = savelim
            raise

    def append(self, byte):
        """
        Append a byte, clamped to 0-255, to the buffer.

        :returns: this buffer, so appends may be chained
        :raises: EndOfBuffer if the limit would be exceeded

        """
        if self._limit is not None and len(self.a) >= self._limit:
            raise EndOfBuffer("append past limit %u" % self._limit)
        self.a.append(min(max(int(byte), 0), 255))
        return self

    def extend(self, vec):
        """
        Append a vector of bytes to the buffer. Nothing is appended if the
        whole vector does not fit under the limit.

        :returns: this buffer
        :raises: EndOfBuffer

        """
        if not isinstance(vec, (bytes, bytearray)):
            vec = bytes(min(max(int(b), 0), 255) for b in vec)
        if self._limit is not None and len(self.a) + len(vec) > self._limit:
            raise EndOfBuffer("write of %u bytes past limit %u" %
                              (len(vec), self._limit))
        self.a.extend(vec)
        return self

    def accept_id(self, set_id):
        """A plain buffer accepts content for any Set ID."""
        return True

    @property
    def limit(self):
        """Size beyond which appends fail, or None for no limit."""
        return self._limit

    @limit.setter
    def limit(self, n):
        if n is not None and n < len(self.a):
            del self.a[max(n, 0):]
        self._limit = n

    def clear_limit(self):
        """Remove any write limit from the buffer."""
        self._limit = None

    def consume(self, n=1):
        """
        Consume n bytes from the cursor.

        :returns: the consumed bytes
        :raises: EndOfBuffer if fewer than n bytes remain unread

        """
        if self.cursor + n > len(self.a):
            raise EndOfBuffer("read of %u bytes with %u available" %
                              (n, self.remaining_readable()))
        start = self.cursor
        self.cursor += n
        return bytes(self.a[start:self.cursor])

    def remaining_readable(self):
        """Number of bytes between the cursor and the end of the buffer."""
        return len(self.a) - self.cursor

    def to_bytes(self):
        return bytes(self.a)

    def dump(self, linelen=16):
        """Return a hexdump of the buffer, for debugging."""
        return hexdump(self.to_bytes(), linelen)

class SetBuffer(Buffer):
    """
    A Buffer providing the framing of an IPFIX Set: content is prefixed by a
    four-byte header containing the Set ID and the Set length. Lengths and
    limits of a SetBuffer include the header.

    :param data: bytes beginning with a set header, to decode a set
    :param set_id: Set ID of a new set to write. A set without an ID
                   accepts content for any Set ID.
    :raises: FormatError if data does not contain a complete set

    """
    HEADER_LEN = _sethdr_st.size

    def __init__(self, data=None, set_id=None):
        if data is not None:
            if len(data) < self.HEADER_LEN:
                raise FormatError("incomplete set header (have %u bytes)" %
                                  len(data))
            (set_id, setlen) = _sethdr_st.unpack_from(data, 0)
            if setlen < self.HEADER_LEN:
                raise FormatError("impossibly short set length %u" % setlen)
            if len(data) < setlen:
                raise FormatError("incomplete set (have %u, need %u)" %
                                  (len(data), setlen))
            super().__init__(data[self.HEADER_LEN:setlen])
        else:
            super().__init__()
        self.set_id = set_id

    @classmethod
    def from_bytes(cls, data):
        return cls(data=data)

    def __len__(self):
        return self.HEADER_LEN + super().__len__()

    def __repr__(self):
        return "<SetBuffer id %s length %u>" % (self.set_id, len(self))

    @property
    def limit(self):
        if self._limit is None:
            return None
        return self.HEADER_LEN + self._limit

    @limit.setter
    def limit(self, n):
        if n is not None:
            n -= self.HEADER_LEN
        Buffer.limit.fset(self, n)

    def accept_id(self, set_id):
        if self.set_id is None:
            return True
        return self.set_id == set_id

    def to_bytes(self):
        return _sethdr_st.pack(self.set_id & 0xffff, len(self)) + bytes(self.a)

def hexdump(octets, linelen=16):
    """Format a byte string as a hexdump with linelen bytes per line."""
    out = []
    for addr in range(0, len(octets), linelen):
        line = octets[addr:addr + linelen]
        hexpart = " ".join("%02x" % b for b in line)
        txtpart = "".join(chr(b) if 31 < b < 127 else "." for b in line)
        out.append("%04x: %-*s  %s" % (addr, linelen * 3 - 1, hexpart, txtpart))
    return "\n".join(out)
