# coding: utf8
#
# python-ipfix (c) 2013-2014 Brian Trammell.
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

from . import ie, template, message, session, reader, writer
from .buffer import EndOfBuffer, FormatError
from datetime import datetime, timezone
from ipaddress import ip_address
import io

_test_hashkeys = [("flowStartMilliseconds", "stamp"),
                  ("sourceIPv4Address", "sip"),
                  ("octetDeltaCount", "bytes"),
                  ("reverseOctetDeltaCount", "rbytes"),
                  ("packetDeltaCount", "pkts"),
                  ("reversePacketDeltaCount", "rpkts")]

TEST_DOMAIN = 330

def mktest_model():
    model = ie.InfoModel().use_iana_default().use_5103_default()
    for (spec, hashkey) in _test_hashkeys:
        model.set_hashkey(spec, hashkey)
    return model

def mktest_templates(model):
    return [template.Template(model, 4444, ["flowStartMilliseconds",
                                            "sourceIPv4Address",
                                            "octetDeltaCount[4]",
                                            "reverseOctetDeltaCount[4]"]),
            template.Template(model, 4445, ["flowStartMilliseconds",
                                            "sourceIPv4Address",
                                            "packetDeltaCount",
                                            "reversePacketDeltaCount"])]

def _stamp(msec):
    return datetime(2009, 5, 3, 14, 29, 47, msec * 1000, tzinfo=timezone.utc)

def mktest_records():
    return [{ "_ipfix_tid": 4444, "stamp": _stamp(500),
              "sip": ip_address("1.1.1.1"), "bytes": 1111, "rbytes": 1111 },
            { "_ipfix_tid": 4444, "stamp": _stamp(660),
              "sip": ip_address("2.2.2.2"), "bytes": 2222, "rbytes": 2222 },
            { "_ipfix_tid": 4445, "stamp": _stamp(750),
              "sip": ip_address("3.3.3.3"), "pkts": 33333, "rpkts": 33333 },
            { "_ipfix_tid": 4445, "stamp": _stamp(950),
              "sip": ip_address("4.4.4.4"), "pkts": 4444, "rpkts": 4444 }]

def mktest_expected():
    out = []
    for rec in mktest_records():
        del rec[message.TID_KEY]
        out.append(rec)
    return out

def mktest_message(model=None, domain=TEST_DOMAIN):
    if model is None:
        model = mktest_model()
    msg = message.Message(session.Session(model), domain)
    for tmpl in mktest_templates(model):
        msg << tmpl
    for rec in mktest_records():
        msg << rec
    return msg

def test_templates():
    (t4444, t4445) = mktest_templates(mktest_model())
    assert(t4444.min_length == 20)
    assert(t4445.min_length == 28)
    assert([e.hashkey for e in t4444] == ["stamp", "sip", "bytes", "rbytes"])

def test_message_roundtrip():
    model = mktest_model()
    omsg = mktest_message(model)
    b = omsg.to_bytes()
    assert(len(b) == 172)
    assert(omsg.record_count() == 6)

    imsg = message.Message.from_bytes(session.Session(model), b)
    assert(imsg.domain == TEST_DOMAIN)
    assert(list(imsg) == mktest_expected())
    assert(imsg.template_count == 2)
    assert(imsg.data_count == 4)

def test_stream_roundtrip():
    runs = 500
    model = mktest_model()

    out = io.BytesIO()
    exporter = writer.to_stream(out, model, TEST_DOMAIN, mtu=1500)
    for tmpl in mktest_templates(model):
        exporter << tmpl
    for i in range(runs):
        for rec in mktest_records():
            exporter << rec
    exporter.flush()
    assert(exporter.message_count > 1)

    bad_sequences = []
    expected = mktest_expected()
    collector = reader.from_stream(io.BytesIO(out.getvalue()), model)
    collector.session.on_bad_sequence(
        lambda msg, seq: bad_sequences.append(msg.sequence))

    count = 0
    for rec in collector:
        assert(rec == expected[count % len(expected)])
        count += 1
    assert(count == runs * len(expected))
    assert(collector.message_count == exporter.message_count)
    assert(bad_sequences == [])

def test_message_read_errors():
    stored_message = mktest_message().to_bytes()

    short_read_test_message_hdr = stored_message[0:12]
    try:
        message.Message.from_bytes(session.Session(mktest_model()),
                                   short_read_test_message_hdr)
        assert(False)
    except FormatError as e:
        pass

    short_read_test_message_body = stored_message[0:33]
    try:
        message.Message.from_bytes(session.Session(mktest_model()),
                                   short_read_test_message_body)
        assert(False)
    except FormatError as e:
        pass

    bad_msg_version_test_message = bytearray(stored_message)
    bad_msg_version_test_message[0] = 1
    bad_msg_version_test_message[1] = 2
    try:
        message.Message.from_bytes(session.Session(mktest_model()),
                                   bytes(bad_msg_version_test_message))
        assert(False)
    except FormatError as e:
        pass

    bad_msg_length_test_message = bytearray(stored_message)
    bad_msg_length_test_message[2] = 0
    bad_msg_length_test_message[3] = 17
    try:
        message.Message.from_bytes(session.Session(mktest_model()),
                                   bytes(bad_msg_length_test_message))
        assert(False)
    except FormatError as e:
        pass

    bad_set_length_test_message_short = bytearray(stored_message)
    bad_set_length_test_message_short[18] = 0
    bad_set_length_test_message_short[19] = 1
    try:
        message.Message.from_bytes(session.Session(mktest_model()),
                                   bytes(bad_set_length_test_message_short))
        assert(False)
    except FormatError as e:
        pass

    bad_set_length_test_message_long = bytearray(stored_message)
    bad_set_length_test_message_long[18] = 255
    bad_set_length_test_message_long[19] = 255
    try:
        message.Message.from_bytes(session.Session(mktest_model()),
                                   bytes(bad_set_length_test_message_long))
        assert(False)
    except FormatError as e:
        pass

def test_message_mtu():
    model = mktest_model()
    msg = message.Message(session.Session(model), TEST_DOMAIN)
    msg.mtu = 100
    for tmpl in mktest_templates(model):
        msg << tmpl

    records = mktest_records()
    msg << records[0]
    try:
        msg << records[1]
        assert(False)
    except EndOfBuffer as e:
        pass

    assert(msg.data_count == 1)
    assert(len(msg.to_bytes()) == 92)

    # no room left for the header of another set
    msg = message.Message(session.Session(model), TEST_DOMAIN)
    msg.mtu = 68
    for tmpl in mktest_templates(model):
        msg << tmpl
    try:
        msg << records[0]
        assert(False)
    except EndOfBuffer as e:
        pass
    assert(len(msg.to_bytes()) == 68)
