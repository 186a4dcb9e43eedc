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
Per-Transport Session state for IPFIX: active templates and sequence numbers
per observation domain, with notification of session events.

A Session is created for each transport session (file, TCP connection, SCTP
association, or UDP peer), and shared by all the Messages read from or
written to it:

>>> from pyipfix.ie import InfoModel
>>> from pyipfix.session import Session
>>> from pyipfix.template import Template
>>> model = InfoModel().use_iana_default()
>>> session = Session(model)
>>> session.next_sequence(8304)
0

Each session event may have a single handler, registered with an on_*
method; registering a handler replaces any previous one. The on_* methods
return the handler, so they may also be used as decorators:

>>> @session.on_template_add
... def template_added(domain, tmpl):
...     print("added", tmpl, "in domain", domain)
>>> session.add_template(8304, Template(model, 256, ["octetDeltaCount"]))
added <Template ID 256 count 1> in domain 8304
>>> session.template(8304, 256)
<Template ID 256 count 1>

Adding a template with no IEs withdraws it:

>>> session.add_template(8304, Template(model, 256))
>>> session.template(8304, 256) is None
True

Protocol anomalies (bad sequence numbers, sets without templates, and
trailing data in sets) without a registered handler are logged as warnings.

"""
import logging

log = logging.getLogger(__name__)

class Session:
    """
    Container for the state of one IPFIX Transport Session.

    :param model: the :class:`pyipfix.ie.InfoModel` used to decode templates
                  within this session

    """
    def __init__(self, model):
        self.model = model
        self._templates = {}
        self._next_sequence = {}

        self._template_add = None
        self._template_remove = None
        self._bad_sequence = None
        self._missing_template = None
        self._extra_data = None

    def __repr__(self):
        return "<Session %u domains %u templates>" % (
                len(self._templates),
                sum(len(d) for d in self._templates.values()))

    # handler registration

    def on_template_add(self, handler):
        """Register handler(domain, template), called on template add"""
        self._template_add = handler
        return handler

    def on_template_remove(self, handler):
        """Register handler(domain, template), called on template removal"""
        self._template_remove = handler
        return handler

    def on_bad_sequence(self, handler):
        """
        Register handler(message, expected), called when a message's
        sequence number does not match the expected sequence number.

        """
        self._bad_sequence = handler
        return handler

    def on_missing_template(self, handler):
        """
        Register handler(message, set), called for each set read for which
        no template is available.

        """
        self._missing_template = handler
        return handler

    def on_extra_data(self, handler):
        """
        Register handler(message, set), called when bytes remain at the end
        of a set which are too few to contain a record.

        """
        self._extra_data = handler
        return handler

    # event posting

    def post_missing_template(self, message, setbuf):
        if self._missing_template:
            self._missing_template(message, setbuf)
        else:
            log.warning("no template for set %u in domain %u; skipping %u bytes" %
                        (setbuf.set_id, message.domain, len(setbuf)))

    def post_extra_data(self, message, setbuf):
        if self._extra_data:
            self._extra_data(message, setbuf)
        else:
            log.warning("%u bytes of extra data at end of set %u in domain %u" %
                        (setbuf.remaining_readable(), setbuf.set_id,
                         message.domain))

    def post_bad_sequence(self, message, expected):
        if self._bad_sequence:
            self._bad_sequence(message, expected)
        else:
            log.warning("bad sequence number %u in domain %u (expected %u)" %
                        (message.sequence, message.domain, expected))

    # templates

    def template(self, domain, tid):
        """Return the active template for domain and tid, or None"""
        return self._templates.get(domain, {}).get(tid)

    def add_template(self, domain, tmpl):
        """
        Add a template to the session for a domain, replacing any template
        with the same ID. A template with no IEs is a template withdrawal,
        and removes the template instead.

        """
        if tmpl.count() == 0:
            self.remove_template(domain, tmpl.tid)
            return

        self._templates.setdefault(domain, {})[tmpl.tid] = tmpl
        log.debug("added %s in domain %u" % (repr(tmpl), domain))
        if self._template_add:
            self._template_add(domain, tmpl)

    def remove_template(self, domain, tid):
        """Remove the template for domain and tid from the session, if present"""
        tmpl = self._templates.get(domain, {}).pop(tid, None)
        if tmpl:
            log.debug("removed %s in domain %u" % (repr(tmpl), domain))
            if self._template_remove:
                self._template_remove(domain, tmpl)

    def each_template(self, domain):
        """Iterate over the active templates for a domain"""
        return iter(list(self._templates.get(domain, {}).values()))

    # sequence numbers

    def next_sequence(self, domain):
        """
        Return the next sequence number to be emitted or expected for a
        domain; 0 if no message has been seen in the domain.

        """
        return self._next_sequence.get(domain, 0)

    def check_sequence(self, message):
        """
        Check a decoded message's sequence number against the expected
        sequence number for its domain. On mismatch, post a bad sequence
        event, and resynchronize to the message's sequence number.

        """
        expected = self._next_sequence.get(message.domain)
        if expected is not None and expected != message.sequence:
            self.post_bad_sequence(message, expected)
            self._next_sequence[message.domain] = message.sequence

    def increment_sequence(self, message):
        """
        Advance the sequence number for a message's domain past the data
        records in a completely read or written message.

        """
        self._next_sequence[message.domain] = \
            (message.sequence + message.data_count) & 0xffffffff

class SessionTable:
    """
    A table of Sessions, keyed by transport peer, for collectors sharing
    one socket among many exporters.

    :param model: the :class:`pyipfix.ie.InfoModel` given to new sessions

    """
    def __init__(self, model):
        self.model = model
        self._sessions = {}
        self._new_session = None
        self._session_end = None

    def __len__(self):
        return len(self._sessions)

    def on_new_session(self, handler):
        """Register handler(session), called when a session is created"""
        self._new_session = handler
        return handler

    def on_session_end(self, handler):
        """Register handler(session), called when a session is ended"""
        self._session_end = handler
        return handler

    def session(self, peer):
        """Return the session for a peer, creating it if necessary"""
        try:
            return self._sessions[peer]
        except KeyError:
            session = Session(self.model)
            self._sessions[peer] = session
            log.debug("new session for "+str(peer))
            if self._new_session:
                self._new_session(session)
            return session

    def end_session(self, peer):
        """End and forget the session for a peer, if present"""
        session = self._sessions.pop(peer, None)
        if session:
            log.debug("ended session for "+str(peer))
            if self._session_end:
                self._session_end(session)
