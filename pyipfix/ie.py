"""
IESpec-based interface to IPFIX information elements, and the
:class:`InfoModel` catalogue of known information elements.

An IESpec is a string representation of an IPFIX information element,
including all the information required to define it, as documented in
Section 9 of http://tools.ietf.org/html/draft-ietf-ipfix-ie-doctors.
It has the format:

  name(pen/num)<type>[size]

where the pen is omitted for IANA registered IEs, and the size is "v" for
variable-length IEs.

Information elements live in an InfoModel. The default IANA information
model ships with the package:

>>> from pyipfix.ie import InfoModel
>>> model = InfoModel().use_iana_default()

To specify a new Information Element, a complete IESpec must be added to
the model:

>>> e = model.add_spec("myNewInformationElement(35566/1)<string>")
>>> e
InformationElement('myNewInformationElement', 35566, 1, pyipfix.types.for_name('string'), 65535)

The string representation of an InformationElement is its IESpec:

>>> str(e)
'myNewInformationElement(35566/1)<string>[v]'

To get an Information Element already specified, an incomplete specification
can be passed; a name or number is enough:

>>> str(model.ie_for_spec("octetDeltaCount"))
'octetDeltaCount(1)<unsigned64>[8]'
>>> str(model.ie_for_spec("(2)"))
'packetDeltaCount(2)<unsigned64>[8]'

Reduced-length encoding is supported by the for_length method; passing a
size in the spec does the same thing:

>>> str(e.for_length(32))
'myNewInformationElement(35566/1)<string>[32]'
>>> str(model.ie_for_spec("octetDeltaCount[4]"))
'octetDeltaCount(1)<unsigned64>[4]'

Values of each IE are stored in records under its hashkey, which defaults to
the IE's name. Shorter keys can be set on the model:

>>> model.set_hashkey("sourceIPv4Address", "sip").hashkey
'sip'

"""
import logging
import os.path
import re
from functools import total_ordering

from . import types

log = logging.getLogger(__name__)

_iespec_re = re.compile(r'^([^\s\[\<\(]+)?(\(((\d+)\/)?(\d+)\))?'
                        r'(\<(\S+)\>)?(\[(\S+)\])?')

# PEN for RFC 5103 reverse-direction information elements
REVERSE_PEN = 29305

@total_ordering
class InformationElement:
    """
    An IPFIX Information Element (IE). This is essentially a five-tuple of
    name, element number (num), a private enterprise number (pen; 0 if it
    is an IANA registered IE), a type, and a length, plus the hashkey
    under which its value is stored in records.

    InformationElements are immutable; the for_length, for_hashkey, and
    for_reverse methods return derived copies. InformationElement instances
    should normally be obtained from an :class:`InfoModel`.

    """

    def __init__(self, name, pen, num, ietype, length=None, hashkey=None):
        if name:
            self.name = name
        else:
            self.name = "_ipfix_%u_%u" % (pen, num)

        if length:
            self.length = length
        else:
            self.length = ietype.length

        self.pen = pen
        self.num = num
        self.type = ietype

        if hashkey:
            self.hashkey = hashkey
        else:
            self.hashkey = self.name

    def __eq__(self, other):
        return ((self.pen, self.num) == (other.pen, other.num))

    def __lt__(self, other):
        return ((self.pen, self.num) < (other.pen, other.num))

    def __repr__(self):
        return "InformationElement(%s, %s, %s, %s, %s)" % (repr(self.name),
               repr(self.pen), repr(self.num), repr(self.type),
               repr(self.length))

    def __str__(self):
        return self.spec()

    def __hash__(self):
        return (self.num << 16) ^ self.pen

    def spec(self):
        """Return the IESpec for this IE."""
        if self.is_enterprise():
            specnum = "%u/%u" % (self.pen, self.num)
        else:
            specnum = "%u" % self.num

        if self.is_varlen():
            size = "v"
        else:
            size = "%u" % self.length

        return "%s(%s)<%s>[%s]" % (self.name, specnum, self.type.name, size)

    def is_enterprise(self):
        return self.pen != 0

    def is_varlen(self):
        return self.length == types.VARLEN

    def for_length(self, length):
        """
        Get an instance of this IE for the specified length.
        Used to support reduced-length encoding (RLE).

        :param length: length of the new IE
        :returns: this IE if length matches, or a new IE for the length

        """
        if not length or length == self.length:
            return self
        else:
            return self.__class__(self.name, self.pen, self.num,
                                  self.type, length, self.hashkey)

    def for_hashkey(self, hashkey):
        """Get an instance of this IE storing its values under hashkey."""
        if hashkey == self.hashkey:
            return self
        return self.__class__(self.name, self.pen, self.num,
                              self.type, self.length, hashkey)

    def for_reverse(self):
        """
        Get the RFC 5103 reverse-direction counterpart of this IE.
        Only IANA IEs have reverse counterparts.

        :raises: ValueError for enterprise-specific IEs

        """
        if self.pen == REVERSE_PEN:
            return self
        elif self.pen:
            raise ValueError("no reverse IE for enterprise-specific "+
                             self.spec())

        return self.__class__("reverse" + self.name[0].upper() + self.name[1:],
                              REVERSE_PEN, self.num, self.type, self.length)

    def type_options_record(self):
        """
        Return a record describing this IE for export with an
        RFC 5610 type options template.

        """
        return { "informationElementId": self.num,
                 "privateEnterpriseNumber": self.pen,
                 "informationElementDataType": self.type.num,
                 "informationElementName": self.name }

def parse_spec(spec):
    """
    Parse an IESpec into name, pen, number, typename, and length fields.
    Missing fields are returned as None, except pen (0) and length (0);
    a length of "v" is returned as :data:`pyipfix.types.VARLEN`.

    """
    (name, pen, num, typename, length) = \
        _iespec_re.match(spec.strip()).group(1,4,5,7,9)

    if pen:
        pen = int(pen)
    else:
        pen = 0

    if num:
        num = int(num)

    if not length:
        length = 0
    elif length[0] == "v":
        length = types.VARLEN
    else:
        length = int(length)

    return (name, pen, num, typename, length)

class InfoModel:
    """
    A catalogue of Information Elements, indexed by (pen, num) and by name,
    over the builtin type system. Most applications use a single InfoModel;
    create one and load the default IANA IEs with :meth:`use_iana_default`.

    """
    def __init__(self):
        self._ieForNum = {}
        self._ieForName = {}

    def __iter__(self):
        return iter(sorted(self._ieForNum.values()))

    def __len__(self):
        return len(self._ieForNum)

    def __repr__(self):
        return "<InfoModel %u IEs>" % len(self)

    def type_for_name(self, name):
        return types.for_name(name)

    def type_for_number(self, num):
        return types.for_num(num)

    def ie_for_number(self, pen, num):
        """Return the IE for a given PEN and number, or None"""
        return self._ieForNum.get((pen, num))

    def ie_for_name(self, name):
        """Return the IE for a given name, or None"""
        return self._ieForName.get(name)

    def ie_for_spec(self, spec):
        """
        Get an IE from the model given an IESpec. If a number is given, the
        IE is looked up by pen and number; otherwise by name. The type is
        ignored. If a size is given, the returned IE has that size, to
        support reduced-length encoding.

        :param spec: IESpec of the form name(pen/num)<type>[size]; some
                     fields may be omitted
        :returns: an IE for the spec, or None if not found

        """
        (name, pen, num, typename, length) = parse_spec(spec)

        if num:
            ie = self.ie_for_number(pen, num)
        elif name:
            ie = self.ie_for_name(name)
        else:
            ie = None

        if ie:
            ie = ie.for_length(length)
        return ie

    def add(self, ie):
        """
        Add an IE to the model, replacing any IE sharing its pen and number
        or its name.

        :returns: the IE

        """
        self._ieForNum[(ie.pen, ie.num)] = ie
        self._ieForName[ie.name] = ie
        return ie

    def add_spec(self, spec):
        """
        Create a new IE from a complete IESpec and add it to the model.
        Name, number, and type are required; pen defaults to 0 and size to
        the native size of the type.

        :returns: the new IE
        :raises: ValueError

        """
        (name, pen, num, typename, length) = parse_spec(spec)

        if not (name and num and typename):
            raise ValueError("Cannot create new IE from incomplete spec "+
                             spec.strip())

        return self.add(InformationElement(name, pen, num,
                                           types.for_name(typename), length))

    def for_template_entry(self, pen, num, length):
        """
        Get an IE from the model given a private enterprise number, element
        number, and length. Used internally by Templates.

        :param pen: private enterprise number, or 0 for an IANA IE
        :param num: IE number (Element ID)
        :param length: length of the IE in bytes
        :returns: an IE for the given pen, num, and length. If the IE has not
                  been previously added to the model, the IE will be
                  named _ipfix_pen_num, and have octetArray as a type.

        """
        ie = self.ie_for_number(pen, num)
        if ie:
            return ie.for_length(length)

        log.debug("unknown IE %u/%u, adding as octetArray" % (pen, num))
        return self.add(InformationElement(None, pen, num,
                        types.for_name("octetArray"), length))

    def spec_list(self, specs):
        """
        Given a list or iterable of IESpecs, return a list of IEs.

        :raises: ValueError if any spec is not found

        """
        out = []
        for spec in specs:
            ie = self.ie_for_spec(spec)
            if ie is None:
                raise ValueError("unknown IE spec "+spec)
            out.append(ie)
        return out

    def set_hashkey(self, spec, hashkey):
        """
        Replace the IE for spec in the model with one storing its values
        under hashkey.

        :returns: the new IE
        :raises: ValueError if the spec is not found

        """
        ie = self.ie_for_spec(spec)
        if ie is None:
            raise ValueError("unknown IE spec "+spec)
        return self.add(self.ie_for_number(ie.pen, ie.num).for_hashkey(hashkey))

    def add_type_options_record(self, record):
        """
        Add the IE described by an RFC 5610 type options record
        to the model.

        :returns: the new IE, or None if record does not describe an IE

        """
        try:
            num = record["informationElementId"]
            pen = record["privateEnterpriseNumber"]
            ietype = types.for_num(record["informationElementDataType"])
        except KeyError:
            return None

        return self.add(InformationElement(
                            record.get("informationElementName"),
                            pen, num, ietype))

    def load(self, filename):
        """
        Load a file listing IESpecs into the model. Blank lines and lines
        beginning with # are ignored.

        :param filename: name of file containing IESpecs to open
        :returns: this model, so loads may be chained
        :raises: ValueError

        """
        with open(filename) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    self.add_spec(line)
        return self

    def save(self, filename):
        """Write the IESpecs of every IE in the model to a file"""
        with open(filename, "w") as f:
            for ie in self:
                f.write(ie.spec() + "\n")

    def use_iana_default(self):
        """
        Load the module internal list of IANA registered IEs into the model.
        Normally, client code should call this before using any other part
        of this package.

        """
        return self.load(os.path.join(os.path.dirname(__file__),
                                      "iana.iespec"))

    def use_5103_default(self):
        """
        Add RFC 5103 reverse IEs for every IANA registered IE in the model.
        Normally, biflow-aware client code should call this just after
        use_iana_default().

        """
        for ie in [ie for ie in self if ie.pen == 0]:
            self.add(ie.for_reverse())
        return self
