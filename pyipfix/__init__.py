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
IPFIX implementation for Python 3.

This module provides a Python interface to IPFIX message streams, and
provides tools for building IPFIX Exporting and Collecting Processes.
It handles message framing and deframing, encoding and decoding IPFIX
data records using templates, per-session template and sequence number
state, and a bridge between IPFIX ADTs and appropriate Python data types.
NetFlow V9 streams can be read as well; see :mod:`pyipfix.v9pdu`.

Information Elements are kept in an information model,
:class:`pyipfix.ie.InfoModel`. :meth:`pyipfix.ie.InfoModel.use_iana_default`
populates it with the default IANA IPFIX Information Element Registry shipped
with the module; :meth:`pyipfix.ie.InfoModel.use_5103_default` populates the
reverse counterpart IEs as in :rfc:`5103`. Enterprise-specific Information
Elements may be defined via :meth:`pyipfix.ie.InfoModel.add_spec()` and
:meth:`pyipfix.ie.InfoModel.load()`; see :mod:`pyipfix.ie` for more.

For reading and writing of records to IPFIX message streams with automatic
message boundary management, see the :mod:`pyipfix.reader` and
:mod:`pyipfix.writer` modules, respectively. For manual reading and writing of
messages, see :mod:`pyipfix.message` and :mod:`pyipfix.session`. In any case,
exporters will need to define templates; see :mod:`pyipfix.template`.

This module is made available under the terms of the
`GNU Lesser General Public License <http://www.gnu.org/licenses/lgpl.html>`_,
or, at your option, any later version.

"""

from . import buffer
from . import types
from . import ie
from . import template
from . import session
from . import message
