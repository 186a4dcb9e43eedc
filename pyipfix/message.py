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
Provides the Message class for encoding and decoding IPFIX Messages.

This interface allows direct control over Messages; for reading or writing
records automatically from/to streams, see :mod:`pyipfix.reader` and
:mod:`pyipfix.writer`, respectively.

Every Message lives within a :class:`pyipfix.session.Session`, which holds
templates and sequence numbers across Messages. To create a message for
export in observation domain 8304:

>>> from pyipfix.ie import InfoModel
>>> from pyipfix.session import Session
>>> from pyipfix.template import Template
>>> from pyipfix.message import Message
>>> model = InfoModel().use_iana_default()
>>> msg = Message(Session(model), 8304)
>>> msg
<Message domain 8304 sequence 0 (building): 0 templates 0 records>

To write records to the message, first you'll need a template:

>>> tmpl = Template(model, 256, ("flowStartMilliseconds",
...                              "sourceIPv4Address",
...                              "destinationIPv4Address",
...                              "packetDeltaCount"))

Activating the template adds it to the message if it is not yet known to the
session, and causes subsequent records to be encoded with it. Records are
dicts keyed by IE hashkey (by default, the IE name):

>>> from datetime import datetime, timezone
>>> from ipaddress import ip_address
>>> tmpl = msg.activate_template(tmpl)
>>> msg.append_record({
...     "flowStartMilliseconds": datetime(2013, 6, 21, 14, tzinfo=timezone.utc),
...     "sourceIPv4Address": ip_address("10.1.2.3"),
...     "destinationIPv4Address": ip_address("10.5.6.7"),
...     "packetDeltaCount": 27 })
<Message domain 8304 sequence 0 (building): 1 templates 1 records>

The << operator appends templates or records, and can be chained:

>>> msg << { "flowStartMilliseconds": datetime(2013, 6, 21, 14, 0, 2),
...          "sourceIPv4Address": ip_address("10.8.9.11"),
...          "destinationIPv4Address": ip_address("10.12.13.14"),
...          "packetDeltaCount": 33 }
<Message domain 8304 sequence 0 (building): 1 templates 2 records>

Attempts to write past the end of the message (set via the mtu attribute,
default 65535) result in :exc:`pyipfix.buffer.EndOfBuffer` being raised; the
message should then be flushed, and the append retried on a fresh message.

Messages can be written to a stream using :meth:`Message.write`, or dumped to
bytes using :meth:`Message.to_bytes`. The sequence number is assigned from the
session when the message is first rendered:

>>> b = msg.to_bytes()
>>> len(b)
92

Reading happens more or less in reverse. A message is read from bytes using
:meth:`Message.from_bytes`, or from a stream using :meth:`Message.read`, and
its records are then decoded by iterating over it, once:

>>> msg = Message.from_bytes(Session(model), b)
>>> for rec in msg:
...     print(rec["sourceIPv4Address"], rec["packetDeltaCount"])
10.1.2.3 27
10.8.9.11 33
>>> msg
<Message domain 8304 sequence 0 (decoded): 1 templates 2 records>

"""

import io
import logging
import struct
from datetime import datetime, timedelta, timezone

from . import types
from .buffer import SetBuffer, EndOfBuffer, FormatError
from .template import Template, OptionsTemplate, IpfixEncodeError

log = logging.getLogger(__name__)

_msghdr_st = struct.Struct("!HHLLL")

HEADER_LEN = _msghdr_st.size
DEFAULT_MTU = 65535
IPFIX_VERSION = 10

# record key selecting the template to encode a record with
TID_KEY = "_ipfix_tid"

class MessageStateError(Exception):
    """
    Raised when appending to a message read from a stream, or iterating
    over a message being built or already iterated over.

    """
    pass

def _export_epoch(export_time):
    if export_time is None:
        export_time = datetime.now(timezone.utc)
    if isinstance(export_time, datetime):
        if export_time.tzinfo is None:
            export_time = export_time.replace(tzinfo=timezone.utc)
        return int((export_time - types.EPOCH).total_seconds())
    return int(export_time)

class SetDecoder:
    """
    Decodes the sets of a message or PDU against the templates in a
    Session. Used internally by :class:`Message` and
    :class:`pyipfix.v9pdu.V9PduStream`.

    Subclasses provide session and domain attributes, and map template set
    IDs to template classes in template_classes.

    """
    template_classes = { Template.set_id: (Template, 5),
                         OptionsTemplate.set_id: (OptionsTemplate, 7) }

    def _decode_templates(self, setbuf, tmplclass, minavail):
        while setbuf.remaining_readable() >= minavail:
            try:
                tmpl = tmplclass.decode_template_record(self.session.model,
                                                        setbuf)
            except EndOfBuffer as e:
                raise FormatError("truncated template record in set %u" %
                                  setbuf.set_id) from e
            self.session.add_template(self.domain, tmpl)
            self.template_count += 1

    def _decode_records(self, setbuf, tmpl):
        min_length = max(tmpl.min_length, 1)
        while setbuf.remaining_readable() >= min_length:
            try:
                rec = tmpl.decode_record(setbuf)
            except EndOfBuffer as e:
                raise FormatError("truncated record in set %u" %
                                  setbuf.set_id) from e
            self.data_count += 1
            yield rec

        if setbuf.remaining_readable():
            self.session.post_extra_data(self, setbuf)

    def decode_set(self, setbuf):
        """
        Decode a set, adding any templates in it to the session and yielding
        any records in it.

        """
        if setbuf.set_id in self.template_classes:
            (tmplclass, minavail) = self.template_classes[setbuf.set_id]
            self._decode_templates(setbuf, tmplclass, minavail)
            return

        tmpl = self.session.template(self.domain, setbuf.set_id)
        if tmpl:
            yield from self._decode_records(setbuf, tmpl)
        else:
            self.session.post_missing_template(self, setbuf)

class Message(SetDecoder):
    """
    An IPFIX Message: a header and a list of Sets, within a Session.

    A new Message is being built, and may only be appended to; a Message
    read from a stream or bytes is decoded, and may only be iterated over,
    once.

    :param session: the :class:`pyipfix.session.Session` this message
                    belongs to
    :param domain: observation domain ID of the message

    """
    def __init__(self, session, domain=0):
        self.session = session
        self.mtu = DEFAULT_MTU
        self.srs_mode = False
        self.domain = domain
        self.template = None
        self.reset(domain)

    def __repr__(self):
        return "<Message domain %u sequence %u (%s): %u templates %u records>" % (
                    self.domain, self.sequence, self.state,
                    self.template_count, self.data_count)

    def __len__(self):
        return HEADER_LEN + sum(len(s) for s in self.sets)

    @property
    def state(self):
        if self._decoded:
            return "decoded"
        return "building"

    def reset(self, domain=None, sequence=0, export_time=None):
        """
        Clear the content of this message, and prepare it for building.
        Keeps the active template unless the domain changes.

        :param domain: new observation domain ID, or None to keep the
                       current domain
        :param sequence: sequence number
        :param export_time: export time (datetime or epoch seconds), or None
                            to use the time the message is rendered
        :returns: this message

        """
        self.sets = []
        self.export_time = export_time
        if domain is not None and domain != self.domain:
            self.domain = domain
            self.template = None
        self.sequence = sequence
        self.data_count = 0
        self.template_count = 0
        self._sequence_assigned = False
        self._decoded = False
        self._iterated = False
        return self

    def record_count(self):
        """
        Count of template and data records appended to this message, or
        decoded from it so far.

        """
        return self.data_count + self.template_count

    # Export side

    def _ensure_building(self):
        if self._decoded:
            raise MessageStateError("cannot append to a decoded message")

    def _append_new_set(self, set_id):
        limit = self.mtu - HEADER_LEN - SetBuffer.HEADER_LEN - \
                sum(len(s) for s in self.sets)
        if limit <= 0:
            raise EndOfBuffer("no room for set %u in message (mtu %u)" %
                              (set_id, self.mtu))

        setbuf = SetBuffer(set_id=set_id)
        setbuf.limit = limit + SetBuffer.HEADER_LEN
        self.sets.append(setbuf)
        return setbuf

    def _append_ensure_set(self, set_id, new_set=False):
        if new_set or not self.sets or not self.sets[-1].accept_id(set_id):
            return self._append_new_set(set_id)
        return self.sets[-1]

    def append_template(self, tmpl):
        """
        Add a template to the session in this message's domain, and append
        its template record to the message.

        :returns: this message
        :raises: EndOfBuffer, IpfixEncodeError

        """
        self._ensure_building()
        tmpl.encode_template_record(self._append_ensure_set(tmpl.set_id))
        self.session.add_template(self.domain, tmpl)
        self.template_count += 1
        return self

    def append_active_templates(self):
        """
        Append all templates active in the session for this message's domain
        to the message, as at the start of a new transport session.

        """
        for tmpl in self.session.each_template(self.domain):
            self.append_template(tmpl)
        return self

    def activate_template(self, tmpl):
        """
        Use a template to encode subsequently appended records. Appends the
        template to the message if it is not active in the session.

        :returns: the template
        :raises: EndOfBuffer

        """
        self._ensure_building()
        if not self.session.template(self.domain, tmpl.tid):
            self.append_template(tmpl)
        self.template = tmpl
        return tmpl

    def activate_template_id(self, tid):
        """
        Use the template with the given ID, which must be active in the
        session for this message's domain, to encode subsequently appended
        records.

        :returns: the template
        :raises: IpfixEncodeError if there is no such template

        """
        tmpl = self.session.template(self.domain, tid)
        if not tmpl:
            raise IpfixEncodeError("no template %u in session for domain %u" %
                                   (tid, self.domain))
        return self.activate_template(tmpl)

    def append_record(self, rec):
        """
        Append a record to the message, a dict keyed by IE hashkey, encoding
        it with the active template. If the record contains the key
        "_ipfix_tid", the template with that ID is activated first.

        If srs_mode is set, each record is placed in its own set.

        :returns: this message
        :raises: EndOfBuffer, IpfixEncodeError, IpfixTypeError

        """
        self._ensure_building()
        if TID_KEY in rec:
            self.activate_template_id(int(rec[TID_KEY]))
        if not self.template:
            raise IpfixEncodeError("no active template for record")

        setbuf = self._append_ensure_set(self.template.tid, self.srs_mode)
        self.template.encode_record(setbuf, rec)
        self.data_count += 1
        return self

    def append(self, thing):
        """Append a template or a record to the message"""
        if isinstance(thing, Template):
            return self.append_template(thing)
        else:
            return self.append_record(thing)

    def __lshift__(self, thing):
        return self.append(thing)

    def _prune_empty_set(self):
        if self.sets and len(self.sets[-1]) == SetBuffer.HEADER_LEN:
            self.sets.pop()

    def to_bytes(self):
        """
        Render this message as bytes, suitable for writing to a file,
        socket, or datagram. Drops a trailing empty set, and takes the
        sequence number from the session the first time it is rendered.

        :returns: message as bytes

        """
        self._prune_empty_set()

        if not self._sequence_assigned:
            self.sequence = self.session.next_sequence(self.domain)
            self.session.increment_sequence(self)
            self._sequence_assigned = True

        hdr = _msghdr_st.pack(IPFIX_VERSION, len(self),
                              _export_epoch(self.export_time),
                              self.sequence, self.domain)
        return hdr + b"".join(s.to_bytes() for s in self.sets)

    def write(self, stream):
        """Write this message to a stream; see :meth:`to_bytes`."""
        stream.write(self.to_bytes())

    # Collection side

    @classmethod
    def from_bytes(cls, session, data):
        """
        Decode a message from bytes containing a complete IPFIX message.

        :raises: FormatError

        """
        msg = cls(session)
        try:
            return msg.read(io.BytesIO(data))
        except EOFError:
            raise FormatError("empty message")

    def read(self, stream):
        """
        Read an IPFIX message from a stream, replacing the content of this
        message, and check its sequence number against the session.

        :param stream: stream to read from
        :returns: this message
        :raises: EOFError at end of stream, FormatError

        """
        hdr = stream.read(HEADER_LEN)
        if not hdr:
            raise EOFError()
        elif len(hdr) < HEADER_LEN:
            raise FormatError("incomplete message header (%u bytes)" %
                              len(hdr))

        (version, length, export_epoch, sequence, domain) = \
                _msghdr_st.unpack(hdr)

        if version != IPFIX_VERSION:
            raise FormatError("illegal or unsupported version %u" % version)
        if length < HEADER_LEN:
            raise FormatError("impossibly short message length %u" % length)

        body = b""
        if length > HEADER_LEN:
            body = stream.read(length - HEADER_LEN) or b""
            if len(body) < length - HEADER_LEN:
                raise FormatError("incomplete message body (got %u, "
                                  "expected %u)" %
                                  (len(body), length - HEADER_LEN))

        self.reset(domain, sequence,
                   types.EPOCH + timedelta(seconds=export_epoch))
        self._decoded = True
        self._sequence_assigned = True

        offset = 0
        while offset < len(body):
            setbuf = SetBuffer(body[offset:])
            self.sets.append(setbuf)
            offset += len(setbuf)

        log.debug("read message domain %u sequence %u length %u (%u sets)" %
                  (domain, sequence, length, len(self.sets)))

        self.session.check_sequence(self)
        return self

    def __iter__(self):
        """
        Iterate over the records in a decoded message, as dicts keyed by IE
        hashkey. Templates in the message are added to the session as they
        are encountered.

        :raises: MessageStateError, FormatError

        """
        if not self._decoded:
            raise MessageStateError("cannot iterate over a message being built")
        if self._iterated:
            raise MessageStateError("message already iterated")
        self._iterated = True
        return self._record_iterator()

    def _record_iterator(self):
        for setbuf in self.sets:
            if setbuf.set_id < 2:
                raise FormatError("illegal set id %u" % setbuf.set_id)
            yield from self.decode_set(setbuf)

        self.session.increment_sequence(self)
