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
SVG rendering of the octet layout of IPFIX Messages, for interactive
visualization and documentation of IPFIX messages.

Messages are drawn as rows of octets, raster octets wide, with each header
field, template record field, and record value drawn as a labeled box:

>>> from pyipfix.ie import InfoModel
>>> from pyipfix.session import Session
>>> from pyipfix.template import Template
>>> from pyipfix.message import Message
>>> from pyipfix import vis
>>> model = InfoModel().use_iana_default()
>>> msg = Message(Session(model), 8304)
>>> msg.export_time = 0
>>> tmpl = msg.activate_template(Template(model, 256, ["packetDeltaCount"]))
>>> _ = msg << { "packetDeltaCount": 27 }
>>> svg = vis.render_message(msg)
>>> svg.startswith("<svg")
True

Requires svgwrite.

"""

import logging
import math
from datetime import timedelta

import svgwrite

from . import types
from .buffer import EndOfBuffer
from .message import Message
from .template import OptionsTemplate

log = logging.getLogger(__name__)

MSG_HEADER_FILL = "rgb(255,216,216)"
SET_HEADER_FILL = "rgb(240,192,216)"
TEMPLATE_FILL = "rgb(224,224,255)"
RECORD_FILLS = ("rgb(255,255,216)", "rgb(216,255,216)")
RAW_FILL = "white"

_TEXT_STYLE = "text-anchor: middle; dominant-baseline: hanging;"

def render_datetime(dt):
    if dt is None:
        return "(now)"
    if not hasattr(dt, "strftime"):
        dt = types.EPOCH + timedelta(seconds=dt)
    return dt.strftime("%Y-%m-%d %H:%M:%S")

def render_ienumber(ie):
    if ie.pen:
        num = ie.num | 0x8000
    else:
        num = ie.num
    return "%s(%u)" % (midtrunc(ie.name, 6, 4), num)

def midtrunc(s, front, back):
    s = str(s)
    if len(s) <= (front + back + 3):
        return s
    return s[:front] + "..." + s[-back:]

def _scale(point, scale):
    return (point[0] * scale[0], point[1] * scale[1])

class OctetField:
    """
    A labeled value occupying a region of the octet grid, drawn as a
    polygon with its label centered in the box given by origin and size.

    """
    def __init__(self, points, origin, size, text, fill):
        self.points = points
        self.origin = origin
        self.size = size
        self.text = text
        self.fill = fill

    def center(self):
        return (self.origin[0] + self.size[0] / 2,
                self.origin[1] + self.size[1] / 2)

    def draw(self, dwg, boxes, labels, scale):
        boxes.add(dwg.polygon([_scale(p, scale) for p in self.points],
                              fill=self.fill))
        labels.add(dwg.text(self.text, insert=_scale(self.center(), scale),
                            style=_TEXT_STYLE))

def rect_field(col, row, width, height, text, fill):
    points = ((col, row), (col + width, row),
              (col + width, row + height), (col, row + height))
    return OctetField(points, (col, row), (width, height), text, fill)

def wrapped_field(col, row, length, raster, text, fill):
    """
    Field beginning at col and wrapping over following rows; drawn as
    the outline of the octets it covers.

    """
    end = col + length
    rows = math.ceil(end / raster)
    lastcol = end - (rows - 1) * raster
    points = ((col, row), (raster, row),
              (raster, row + rows - 1), (lastcol, row + rows - 1),
              (lastcol, row + rows), (0, row + rows),
              (0, row + 1), (col, row + 1))
    return OctetField(points, (0, row + 1), (raster, max(rows - 2, 1)),
                      text, fill)

class OctetFieldDrawing:
    """An octet grid raster octets wide, onto which fields are laid out."""

    def __init__(self, raster=8, offset=0):
        self.raster = raster
        self.col = 0
        self.row = 0
        self.fields = []
        self.rowaddrs = [offset]
        self.fill = "white"

    def _advance(self, octets):
        pos = self.col + octets
        while pos >= self.raster:
            pos -= self.raster
            self.row += 1
            self.rowaddrs.append(self.rowaddrs[-1] + self.raster)
        self.col = pos

    def add(self, length, value, render_fn=str, label=None):
        """Add a field of length octets for value, with an optional label"""
        if label:
            text = "%s: %s" % (label, render_fn(value))
        else:
            text = render_fn(value)

        if length <= 0:
            return

        if self.col + length <= self.raster:
            self.fields.append(rect_field(self.col, self.row, length, 1,
                                          text, self.fill))
        elif self.col == 0 and length % self.raster == 0:
            self.fields.append(rect_field(0, self.row, self.raster,
                                          length // self.raster,
                                          text, self.fill))
        else:
            self.fields.append(wrapped_field(self.col, self.row, length,
                                             self.raster, text, self.fill))
        self._advance(length)

    def render(self, scale):
        """Render the drawing to an SVG document, returned as a string"""
        fontsize = int(scale[1] / 2)
        dwg = svgwrite.Drawing(size=(scale[0] * (self.raster + 1),
                                     scale[1] * (self.row + 2)))

        colhdr = dwg.g(font_size=fontsize,
                       transform="translate(%g,0)" % scale[0])
        for i in range(self.raster):
            colhdr.add(dwg.text(str(i), insert=((i + 0.5) * scale[0], 0),
                                style=_TEXT_STYLE))
        dwg.add(colhdr)

        rowhdr = dwg.g(font_size=fontsize,
                       transform="translate(0,%g)" % (scale[1] / 2))
        for i, addr in enumerate(self.rowaddrs):
            rowhdr.add(dwg.text(hex(addr), insert=(0, (i + 0.5) * scale[1])))
        dwg.add(rowhdr)

        offset = "translate(%g,%g)" % (scale[0], scale[1] / 2)
        boxes = dwg.g(stroke="black", stroke_width=2, transform=offset)
        labels = dwg.g(font_size=fontsize, transform=offset)
        for field in self.fields:
            field.draw(dwg, boxes, labels, scale)
        dwg.add(boxes)
        dwg.add(labels)

        return dwg.tostring()

class MessageRenderer:
    """
    Renders Messages into SVG octet layout drawings. Templates found while
    rendering are kept by the renderer, which looks them up before those of
    the session; the session itself is left alone.

    """
    template_classes = Message.template_classes

    def __init__(self, scale=(90, 30), raster=8):
        self.scale = scale
        self.raster = raster
        self.ofd = None
        self.reccount = 0
        self.templates = {}

    def add_msg_header(self, msg):
        self.ofd.fill = MSG_HEADER_FILL
        self.ofd.add(2, 10, label="Version")
        self.ofd.add(2, len(msg), label="Length")
        self.ofd.add(4, msg.export_time, render_fn=render_datetime,
                     label="Export Time")
        self.ofd.add(4, msg.sequence, label="Sequence")
        self.ofd.add(4, msg.domain, label="Domain")

    def add_set_header(self, setbuf):
        self.ofd.fill = SET_HEADER_FILL
        self.ofd.add(2, setbuf.set_id, label="Set ID")
        self.ofd.add(2, len(setbuf), label="Set Length")

    def add_template(self, tmpl):
        self.ofd.fill = TEMPLATE_FILL
        self.ofd.add(2, tmpl.tid, label="ID")
        self.ofd.add(2, tmpl.count(), label="Count")
        if isinstance(tmpl, OptionsTemplate):
            self.ofd.add(2, tmpl.scope_count(), label="Scope")
        for ie in tmpl:
            self.ofd.add(2, ie, label="IE", render_fn=render_ienumber)
            self.ofd.add(2, ie.length, label="Len")
            if ie.pen:
                self.ofd.add(4, ie.pen, label="PEN")

    def add_record(self, setbuf, tmpl):
        self.ofd.fill = RECORD_FILLS[self.reccount % len(RECORD_FILLS)]
        self.reccount += 1
        for ie in tmpl:
            length = ie.length
            if length == types.VARLEN:
                start = setbuf.cursor
                length = types.decode_varlen(setbuf)
                self.ofd.add(setbuf.cursor - start, length, label="varlen")
            value = ie.type.decode(setbuf, length)

            if length < 2:
                label = midtrunc(ie.name, 4, 4)
            elif length < 4:
                label = midtrunc(ie.name, 8, 4)
            else:
                label = midtrunc(ie.name, 8, 8)
            self.ofd.add(length, value, label=label)

    def add_raw(self, setbuf):
        self.ofd.fill = RAW_FILL
        while setbuf.remaining_readable():
            self.ofd.add(1, "%02x" % setbuf.consume(1)[0])

    def template(self, msg, tid):
        key = (msg.domain, tid)
        if key in self.templates:
            tmpl = self.templates[key]
            # withdrawn
            if not tmpl.count():
                return None
            return tmpl
        return msg.session.template(msg.domain, tid)

    def add_set(self, msg, setbuf):
        self.add_set_header(setbuf)

        if setbuf.set_id in self.template_classes:
            (tmplclass, minavail) = self.template_classes[setbuf.set_id]
            while setbuf.remaining_readable() >= minavail:
                tmpl = tmplclass.decode_template_record(msg.session.model,
                                                        setbuf)
                self.templates[(msg.domain, tmpl.tid)] = tmpl
                self.add_template(tmpl)
        else:
            tmpl = self.template(msg, setbuf.set_id)
            if tmpl:
                try:
                    while setbuf.remaining_readable() >= max(tmpl.min_length, 1):
                        self.add_record(setbuf, tmpl)
                except EndOfBuffer:
                    # remainder drawn raw below
                    log.debug("truncated record in set %u" % setbuf.set_id)
        self.add_raw(setbuf)

    def render(self, msg):
        """
        Render a message to an SVG document, returned as a string. A message
        being built is rendered as it would be written.

        """
        if msg.state == "building":
            msg.to_bytes()

        self.ofd = OctetFieldDrawing(self.raster)
        self.reccount = 0
        self.add_msg_header(msg)

        for setbuf in msg.sets:
            cursor = setbuf.cursor
            setbuf.rewind()
            try:
                self.add_set(msg, setbuf)
            finally:
                setbuf.cursor = cursor

        return self.ofd.render(self.scale)

class MessageStreamRenderer(MessageRenderer):
    """Renders successive messages read from a stream."""

    def __init__(self, stream, session, scale=(90, 30), raster=8):
        super().__init__(scale, raster)
        self.stream = stream
        self.msg = Message(session)

    def render_next_message(self):
        """
        Read and render the next message from the stream.

        :raises: EOFError at end of stream

        """
        self.msg.read(self.stream)
        return self.render(self.msg)

def render_message(msg, scale=(90, 30), raster=8):
    """Render a message to an SVG document, returned as a string"""
    return MessageRenderer(scale, raster).render(msg)
