"""
Interface to write IPFIX Messages to a stream.

"""

import logging

from .buffer import EndOfBuffer
from .message import Message, DEFAULT_MTU
from .session import Session

log = logging.getLogger(__name__)

class Exporter:
    """
    Writes records to a stream of IPFIX messages.

    Uses a :class:`pyipfix.message.Message` internally, and continually
    appends templates and records to it, writing the message to the stream
    each time the maximum message size (MTU) is reached and retrying the
    append in a fresh message. Use :func:`to_stream` to get an instance.

    Suitable for writing to IPFIX files (see :rfc:`5655`) as well as to TCP
    sockets. When writing a stream to a file, use mode='wb'.

    :param stream: stream to write to
    :param model: :class:`pyipfix.ie.InfoModel` for the export session
    :param domain: observation domain ID of exported messages
    :param mtu: maximum message size in bytes

    """
    def __init__(self, stream, model, domain=0, mtu=DEFAULT_MTU):
        self.stream = stream
        self.model = model
        self.session = Session(model)
        self.message = Message(self.session, domain)
        self.message.mtu = mtu
        self.message_count = 0

    def __repr__(self):
        return "<Exporter %s: %u messages>" % (repr(self.message),
                                                self.message_count)

    def _retry_after_flush(self, fn, *args):
        try:
            return fn(*args)
        except EndOfBuffer:
            if not self.message.record_count():
                raise
            log.debug("message full, flushing")
            self.flush()
            return fn(*args)

    @property
    def domain(self):
        """
        Observation domain ID for exported messages. Setting a new domain
        flushes any pending records first.

        """
        return self.message.domain

    @domain.setter
    def domain(self, domain):
        if domain != self.message.domain:
            if self.message.record_count():
                self.flush()
            self.message.reset(domain)

    def append(self, thing):
        """
        Append a template or a record; records are encoded with the active
        template, or the template selected by their "_ipfix_tid" key.

        :returns: this exporter
        :raises: EndOfBuffer if thing does not fit in an empty message

        """
        self._retry_after_flush(self.message.append, thing)
        return self

    def __lshift__(self, thing):
        return self.append(thing)

    def activate_template(self, tmpl):
        """
        Use a template for subsequently appended records, exporting it first
        if necessary.

        :returns: the template

        """
        return self._retry_after_flush(self.message.activate_template, tmpl)

    def append_active_templates(self):
        """Re-export all templates active in the current domain"""
        for tmpl in self.session.each_template(self.domain):
            self.append(tmpl)

    def flush(self, export_time=None):
        """
        Write the in-progress message to the stream immediately, and start a
        new one.

        :param export_time: export time for the message; defaults to now

        """
        self.message.export_time = export_time
        self.message.write(self.stream)
        self.message_count += 1
        log.debug("flushed %s" % repr(self.message))
        self.message.reset()

    def close(self):
        """Flush any pending records and close the stream"""
        if self.message.record_count():
            self.flush()
        self.stream.close()

def to_stream(stream, model, domain=0, mtu=DEFAULT_MTU):
    """
    Get an Exporter for a given stream

    :param stream: stream to write
    :param model: :class:`pyipfix.ie.InfoModel` for the export session
    :param domain: observation domain ID; defaults to 0
    :param mtu: maximum message size in bytes; defaults to 65535,
                the largest possible ipfix message.
    :return: an :class:`Exporter` wrapped around the stream.

    """
    return Exporter(stream, model, domain, mtu)
