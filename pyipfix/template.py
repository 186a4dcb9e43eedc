"""
Representation of IPFIX templates.
Provides template-based encoding and decoding of records to and from
IPFIX sets, and encoding and decoding of the template records themselves.

For reading, templates are handled internally by :mod:`pyipfix.message`.
For writing, create a template from an information model and a list of
IESpecs:

>>> from pyipfix.ie import InfoModel
>>> from pyipfix.template import Template
>>> model = InfoModel().use_iana_default()
>>> tmpl = Template(model, 256, ("flowStartMilliseconds",
...                              "sourceIPv4Address",
...                              "octetDeltaCount[4]",
...                              "applicationName"))
>>> tmpl
<Template ID 256 count 4>
>>> tmpl.min_length
17

Records are dicts keyed by IE hashkey, which defaults to the IE name:

>>> from pyipfix.buffer import SetBuffer
>>> from ipaddress import ip_address
>>> buf = SetBuffer(set_id=256)
>>> rec = { "flowStartMilliseconds": 0,
...         "sourceIPv4Address": ip_address("10.1.2.3"),
...         "octetDeltaCount": 27,
...         "applicationName": "ipfix" }
>>> tmpl.encode_record(buf, rec)
<SetBuffer id 256 length 26>
>>> out = tmpl.decode_record(buf)
>>> out["octetDeltaCount"], out["applicationName"]
(27, 'ipfix')

Template IDs are clamped to the range 256-65535:

>>> Template(model, 12).tid
256

"""
import logging
from itertools import chain

from . import types
from .buffer import FormatError

log = logging.getLogger(__name__)

# Builtin exceptions
class IpfixEncodeError(Exception):
    """
    Raised when encoding into a set which does not accept the template, or
    when activating a template which is not available
    """
    pass

# constants
TEMPLATE_SET_ID = 2
OPTIONS_SET_ID = 3

_unsigned = types.unsigned

def _encode_field(buf, ie):
    if ie.pen:
        _unsigned.encode(buf, ie.num | 0x8000, 2)
    else:
        _unsigned.encode(buf, ie.num, 2)
    _unsigned.encode(buf, ie.length, 2)
    if ie.pen:
        _unsigned.encode(buf, ie.pen, 4)

def _decode_field(model, buf):
    num = _unsigned.decode(buf, 2)
    length = _unsigned.decode(buf, 2)
    if num & 0x8000:
        num &= 0x7fff
        pen = _unsigned.decode(buf, 4)
    else:
        pen = 0
    return model.for_template_entry(pen, num, length)

class Template:
    """
    An IPFIX Template.

    A template is an ordered list of IPFIX Information Elements with an ID.
    Information elements may be given as InformationElement instances or as
    IESpecs, which are looked up in the template's information model.

    :param model: the :class:`pyipfix.ie.InfoModel` used to resolve IESpecs
    :param tid: Template ID, clamped to the range 256-65535
    :param iterable: IEs or IESpecs to append to the template

    """
    set_id = TEMPLATE_SET_ID

    def __init__(self, model, tid, iterable=None):
        self.model = model
        self.tid = min(max(tid, 256), 65535)
        self.min_length = 0
        self.ies = []

        if iterable:
            for elem in iterable:
                self.append(elem)

    def __repr__(self):
        return "<%s ID %u count %u>" % (self.__class__.__name__,
                                        self.tid, self.count())

    def __iter__(self):
        """Iterate over IEs in wire order"""
        return iter(self.ies)

    def __lshift__(self, ie):
        return self.append(ie)

    def _resolve(self, ie):
        if isinstance(ie, str):
            spec = ie
            ie = self.model.ie_for_spec(spec)
            if ie is None:
                raise ValueError("unknown IE spec "+spec)
        return ie

    def _account(self, ie):
        if ie.is_varlen():
            self.min_length += 1
        else:
            self.min_length += ie.length

    def append(self, ie):
        """
        Append an IE to this Template

        :param ie: InformationElement or IESpec to append
        :returns: this template, so appends may be chained
        :raises: ValueError if an IESpec is not found in the model

        """
        ie = self._resolve(ie)
        self.ies.append(ie)
        self._account(ie)
        return self

    def count(self):
        """Count IEs in this template"""
        return len(self.ies)

    def spec(self):
        """Return the newline-separated IESpecs of the IEs in this template"""
        return "\n".join(ie.spec() for ie in self)

    def _encode_header(self, buf):
        _unsigned.encode(buf, self.tid, 2)
        _unsigned.encode(buf, self.count(), 2)

    def encode_template_record(self, buf):
        """
        Encode the template record for this template and append it to a
        buffer, which must accept this template class's set ID. The
        record is written completely or not at all.

        :returns: the buffer
        :raises: IpfixEncodeError, EndOfBuffer

        """
        if not buf.accept_id(self.set_id):
            raise IpfixEncodeError("cannot encode %s record into %s" %
                                   (self.__class__.__name__, repr(buf)))
        with buf.atomic():
            self._encode_header(buf)
            for ie in self:
                _encode_field(buf, ie)
        return buf

    @classmethod
    def _decode_header(cls, buf):
        tid = _unsigned.decode(buf, 2)
        count = _unsigned.decode(buf, 2)
        return (tid, count, 0)

    @classmethod
    def decode_template_record(cls, model, buf):
        """
        Decode a template record of this class, consuming it from a buffer.

        :param model: information model used to look up IEs
        :param buf: buffer which must accept this template class's set ID
        :returns: a new Template
        :raises: FormatError, EndOfBuffer

        """
        if not buf.accept_id(cls.set_id):
            raise FormatError("cannot decode %s record from %s" %
                              (cls.__name__, repr(buf)))

        (tid, count, scope_count) = cls._decode_header(buf)
        tmpl = cls(model, tid)
        for i in range(count):
            ie = _decode_field(model, buf)
            if i < scope_count:
                tmpl.add_scope(ie)
            else:
                tmpl.append(ie)

        log.debug("decoded %s" % repr(tmpl))
        return tmpl

    def encode_record(self, buf, rec):
        """
        Encode a record, a dict keyed by IE hashkey, and append it to a
        buffer, which must accept this template's ID. Missing values are
        encoded as zeroes. The record is written completely or not at all.

        :returns: the buffer
        :raises: IpfixEncodeError, IpfixTypeError, EndOfBuffer

        """
        if not buf.accept_id(self.tid):
            raise IpfixEncodeError("cannot encode record for template %u "
                                   "into %s" % (self.tid, repr(buf)))
        with buf.atomic():
            for ie in self:
                ie.type.encode(buf, rec.get(ie.hashkey), ie.length)
        return buf

    def decode_record(self, buf, rec=None):
        """
        Decode a record, consuming it from a buffer, which must accept this
        template's ID.

        :param rec: dict to store values in, keyed by IE hashkey
        :returns: the record
        :raises: FormatError, EndOfBuffer

        """
        if not buf.accept_id(self.tid):
            raise FormatError("cannot decode record for template %u "
                              "from %s" % (self.tid, repr(buf)))
        if rec is None:
            rec = {}
        with buf.atomic():
            for ie in self:
                rec[ie.hashkey] = ie.type.decode(buf, ie.length)
        return rec

class OptionsTemplate(Template):
    """
    An IPFIX Options Template. Scope IEs precede the other IEs
    in wire order and in iteration order.

    """
    set_id = OPTIONS_SET_ID

    def __init__(self, model, tid, iterable=None, scope=None):
        self.scope = []
        super().__init__(model, tid, iterable)

        if scope:
            for elem in scope:
                self.add_scope(elem)

    def __repr__(self):
        return "<%s ID %u count %u scope %u>" % (self.__class__.__name__,
                    self.tid, self.count(), self.scope_count())

    def __iter__(self):
        return chain(self.scope, self.ies)

    def add_scope(self, ie):
        """
        Append a scope IE to this Options Template

        :returns: this template, so appends may be chained
        :raises: ValueError if an IESpec is not found in the model

        """
        ie = self._resolve(ie)
        self.scope.append(ie)
        self._account(ie)
        return self

    def scope_count(self):
        return len(self.scope)

    def count(self):
        return len(self.scope) + len(self.ies)

    def _encode_header(self, buf):
        super()._encode_header(buf)
        _unsigned.encode(buf, self.scope_count(), 2)

    @classmethod
    def _decode_header(cls, buf):
        (tid, count, _) = super()._decode_header(buf)
        scope_count = _unsigned.decode(buf, 2)
        return (tid, count, scope_count)

class TypeOptionsTemplate(OptionsTemplate):
    """
    An Options Template for exporting information element type
    information, as in :rfc:`5610`. Records for it are produced by
    :meth:`pyipfix.ie.InformationElement.type_options_record`, and consumed
    by :meth:`pyipfix.ie.InfoModel.add_type_options_record`.

    """
    def __init__(self, model, tid, iterable=None, scope=None):
        if iterable is None and scope is None:
            scope = ("informationElementId", "privateEnterpriseNumber")
            iterable = ("informationElementDataType", "informationElementName")
        super().__init__(model, tid, iterable, scope)

    @staticmethod
    def is_type_options_record(rec):
        return ("informationElementId" in rec and
                "privateEnterpriseNumber" in rec and
                "informationElementDataType" in rec)
