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
Interface to read IPFIX Messages from a stream or from datagrams.

A :class:`Collector` reads records from a stream of IPFIX messages, such as
an IPFIX file (see :rfc:`5655`) or a TCP connection. When opening a stream
from a file, use mode='rb'.

>>> import io
>>> from pyipfix import reader, writer
>>> from pyipfix.ie import InfoModel
>>> from pyipfix.template import Template
>>> model = InfoModel().use_iana_default()
>>> out = io.BytesIO()
>>> exporter = writer.to_stream(out, model, 8304)
>>> tmpl = exporter.activate_template(Template(model, 256, ["packetDeltaCount"]))
>>> for i in range(3):
...     _ = exporter << { "packetDeltaCount": i }
>>> exporter.flush()
>>> collector = reader.from_stream(io.BytesIO(out.getvalue()), model)
>>> [rec["packetDeltaCount"] for rec in collector]
[0, 1, 2]
>>> collector.message_count
1

Reading loops may be interrupted from another thread with
:meth:`Collector.interrupt`; each interrupt stops one loop, checked once per
message.

"""

import logging
import threading

from .message import Message
from .session import Session, SessionTable

log = logging.getLogger(__name__)

class CollectingProcess:
    """
    Common base for collectors: new message notification and cooperative
    interruption of reading loops.

    """
    def __init__(self, model):
        self.model = model
        self.message_count = 0
        self._new_message = None
        self._interrupts = 0
        self._interrupt_lock = threading.Lock()

    def on_new_message(self, handler):
        """Register handler(message), called for each message read"""
        self._new_message = handler
        return handler

    def _post_new_message(self, message):
        self.message_count += 1
        if self._new_message:
            self._new_message(message)

    def interrupt(self):
        """
        Request that a reading loop stop before reading its next message.
        Interrupts are counted; n interrupts stop n loops.

        """
        with self._interrupt_lock:
            self._interrupts += 1

    def check_interrupt(self):
        """Consume one pending interrupt if there is one; return True if so."""
        with self._interrupt_lock:
            if self._interrupts > 0:
                self._interrupts -= 1
                return True
            return False

class Collector(CollectingProcess):
    """
    Reads records from a stream of IPFIX messages.

    Uses a single :class:`pyipfix.message.Message` and
    :class:`pyipfix.session.Session` internally, and continually reads
    messages from the given stream, iterating over records, until the end of
    the stream. Use :func:`from_stream` to get an instance.

    """
    def __init__(self, stream, model):
        super().__init__(model)
        self.stream = stream
        self.session = Session(model)
        self.message = Message(self.session)

    def __iter__(self):
        return self.records()

    def messages(self):
        """
        Iterate over messages in the stream until end of stream or
        interrupt. The same Message instance is reused for each message.

        :raises: FormatError

        """
        while not self.check_interrupt():
            try:
                self.message.read(self.stream)
            except EOFError:
                log.debug("end of stream after %u messages" %
                          self.message_count)
                return
            self._post_new_message(self.message)
            yield self.message

    def records(self):
        """
        Iterate over all records in the stream, as dicts keyed by
        IE hashkey.

        """
        for msg in self.messages():
            yield from msg

    def close(self):
        self.stream.close()

class PacketCollector(CollectingProcess):
    """
    Reads records from IPFIX messages in datagrams, given as an iterable of
    (bytes, peer) pairs, such as produced by repeated calls to
    :meth:`socket.socket.recvfrom`. Keeps a Session for each peer.

    """
    def __init__(self, packets, model):
        super().__init__(model)
        self.packets = packets
        self.session_table = SessionTable(model)

    def __iter__(self):
        return self.records()

    def messages(self):
        """
        Iterate over messages, one per datagram, until the packet source is
        exhausted or interrupted.

        :raises: FormatError

        """
        packets = iter(self.packets)
        while not self.check_interrupt():
            try:
                (data, peer) = next(packets)
            except StopIteration:
                return
            msg = Message.from_bytes(self.session_table.session(peer), data)
            self._post_new_message(msg)
            yield msg

    def records(self):
        for msg in self.messages():
            yield from msg

def from_stream(stream, model):
    """
    Get a Collector for a given stream

    :param stream: stream to read
    :param model: :class:`pyipfix.ie.InfoModel` used to decode templates
    :return: a :class:`Collector` wrapped around the stream.

    """
    return Collector(stream, model)
