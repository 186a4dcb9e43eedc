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
Provides the V9PduStream class for reading NetFlow V9 Protocol Data
Units (PDUs) from a stream as if they were IPFIX Messages, following
the equivalence in Appendix B of :rfc:`5655`.

NetFlow V9 uses the same template and record encoding as IPFIX, with
Set IDs 0 and 1 for templates and options templates, respectively. The
20-byte PDU header carries no total length, so a stream of PDUs is read as a
stream of sets, in which a PDU header appears as a set with ID 9.

>>> import io
>>> from pyipfix.ie import InfoModel
>>> from pyipfix.session import Session
>>> from pyipfix.v9pdu import V9PduStream
>>> model = InfoModel().use_iana_default()
>>> pdu = bytes([0, 9, 0, 2,  0, 0, 0x03, 0xe8,  0x51, 0xc4, 0x5c, 0x63,
...              0, 0, 0, 1,  0, 0, 0, 42,
...              0, 0, 0, 12,  1, 0, 0, 1,  0, 2, 0, 4,
...              1, 0, 0, 8,  0, 0, 0, 10])
>>> stream = V9PduStream(Session(model), io.BytesIO(pdu))
>>> for rec in stream:
...     print(rec)
{'packetDeltaCount': 10}
>>> stream.domain, stream.sequence
(42, 1)
>>> stream.base_time.isoformat()
'2013-06-21T14:00:02+00:00'

Writing NetFlow V9 PDUs is not supported by this module.

"""

import logging
import struct
from datetime import timedelta

from . import types
from .buffer import SetBuffer, FormatError
from .message import SetDecoder
from .template import Template, OptionsTemplate

log = logging.getLogger(__name__)

NETFLOW9_VERSION = 9

V9_TEMPLATE_SET_ID = 0
V9_OPTIONS_SET_ID = 1

_sethdr_st = struct.Struct("!HH")
_pdubody_st = struct.Struct("!LLLL")

class V9Template(Template):
    """A NetFlow V9 Template, carried in Set ID 0"""
    set_id = V9_TEMPLATE_SET_ID

class V9OptionsTemplate(OptionsTemplate):
    """
    A NetFlow V9 Options Template, carried in Set ID 1. Scope and option
    counts are read as for IPFIX Options Templates.

    """
    set_id = V9_OPTIONS_SET_ID

class V9PduStream(SetDecoder):
    """
    Reads NetFlow V9 PDUs from a stream, yielding records when iterated.

    :param session: the :class:`pyipfix.session.Session` for the stream
    :param stream: binary stream to read from

    """
    template_classes = { V9Template.set_id: (V9Template, 5),
                         V9OptionsTemplate.set_id: (V9OptionsTemplate, 7) }

    def __init__(self, session, stream):
        self.session = session
        self.stream = stream

        self.domain = 0
        self.sequence = None
        self.count = 0
        self.sysuptime_ms = None
        self.export_time = None
        self.base_time = None

        self.pdu_count = 0
        self.data_count = 0
        self.template_count = 0

        self._new_message = None

    def __repr__(self):
        return "<V9PduStream domain %u: %u PDUs %u records>" % (
                    self.domain, self.pdu_count, self.data_count)

    def on_new_message(self, handler):
        """Register handler(stream), called after each PDU header is read"""
        self._new_message = handler
        return handler

    def _read_pdu_header(self, count):
        hdr = self.stream.read(_pdubody_st.size)
        if not hdr or len(hdr) < _pdubody_st.size:
            raise FormatError("incomplete V9 PDU header")

        (self.sysuptime_ms, export_epoch, self.sequence, self.domain) = \
                _pdubody_st.unpack(hdr)
        self.count = count
        self.pdu_count += 1

        self.export_time = types.EPOCH + timedelta(seconds=export_epoch)
        # TODO correct base time for sysUpTime rollover after 2**32 ms
        self.base_time = self.export_time - \
                         timedelta(milliseconds=self.sysuptime_ms)

        log.debug("read V9 PDU header domain %u sequence %u count %u" %
                  (self.domain, self.sequence, count))

        if self._new_message:
            self._new_message(self)

    def next_set(self):
        """
        Read the next set from the stream, consuming any PDU headers before
        it.

        :returns: a SetBuffer, or None at end of stream
        :raises: FormatError

        """
        while True:
            shdr = self.stream.read(_sethdr_st.size)
            if not shdr:
                return None
            if len(shdr) < _sethdr_st.size:
                raise FormatError("incomplete V9 set header")

            (set_id, setlen) = _sethdr_st.unpack(shdr)
            if set_id == NETFLOW9_VERSION:
                self._read_pdu_header(setlen)
            else:
                break

        if setlen < _sethdr_st.size:
            raise FormatError("impossibly short V9 set length %u" % setlen)

        sbody = b""
        if setlen > _sethdr_st.size:
            sbody = self.stream.read(setlen - _sethdr_st.size) or b""
        return SetBuffer(shdr + sbody)

    def __iter__(self):
        """Iterate over records in the stream, as dicts keyed by IE hashkey"""
        while True:
            setbuf = self.next_set()
            if setbuf is None:
                return
            yield from self.decode_set(setbuf)
