import io
import struct

import pytest

from .buffer import FormatError
from .ie import InfoModel
from .session import Session
from .v9pdu import V9PduStream

def _pdu(sequence, domain, *sets, uptime=1000, export_epoch=1371823203):
    return struct.pack("!HHLLLL", 9, len(sets), uptime, export_epoch,
                       sequence, domain) + b"".join(sets)

def _set(set_id, body):
    return struct.pack("!HH", set_id, 4 + len(body)) + body

_template_set = _set(0, struct.pack("!HHHHHH", 256, 2, 8, 4, 2, 4))
_options_set = _set(1, struct.pack("!HHHHHHH", 257, 2, 1, 149, 4, 144, 4))

def _model():
    return InfoModel().use_iana_default()

def test_v9_records():
    pdus = (_pdu(1, 42, _template_set,
                 _set(256, bytes([10, 0, 0, 1, 0, 0, 0, 5,
                                  10, 0, 0, 2, 0, 0, 0, 6]))) +
            _pdu(2, 42, _set(256, bytes([10, 0, 0, 3, 0, 0, 0, 7]))))

    headers = []
    stream = V9PduStream(Session(_model()), io.BytesIO(pdus))
    stream.on_new_message(lambda s: headers.append((s.sequence, s.count)))

    recs = list(stream)
    assert [str(r["sourceIPv4Address"]) for r in recs] == \
        ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    assert [r["packetDeltaCount"] for r in recs] == [5, 6, 7]
    assert headers == [(1, 2), (2, 1)]
    assert stream.pdu_count == 2
    assert stream.data_count == 3
    assert stream.template_count == 1

def test_v9_options_template():
    session = Session(_model())
    pdus = _pdu(1, 7, _options_set,
                _set(257, bytes([0, 0, 0, 7, 0, 0, 0, 99])))
    stream = V9PduStream(session, io.BytesIO(pdus))
    assert list(stream) == [{ "observationDomainId": 7,
                              "exportingProcessId": 99 }]
    tmpl = session.template(7, 257)
    assert tmpl.scope_count() == 1

def test_v9_base_time():
    stream = V9PduStream(Session(_model()),
                         io.BytesIO(_pdu(1, 0, uptime=3600000)))
    assert list(stream) == []
    assert stream.export_time.isoformat() == "2013-06-21T14:00:03+00:00"
    assert stream.base_time.isoformat() == "2013-06-21T13:00:03+00:00"

def test_v9_missing_template():
    session = Session(_model())
    missing = []
    session.on_missing_template(lambda s, setbuf: missing.append(setbuf.set_id))
    stream = V9PduStream(session,
                         io.BytesIO(_pdu(1, 0, _set(300, bytes(8)))))
    assert list(stream) == []
    assert missing == [300]

def test_v9_truncated_header():
    stream = V9PduStream(Session(_model()),
                         io.BytesIO(_pdu(1, 0)[:12]))
    with pytest.raises(FormatError):
        list(stream)

def test_v9_truncated_set():
    data = _pdu(1, 0, _template_set)[:-3]
    stream = V9PduStream(Session(_model()), io.BytesIO(data))
    with pytest.raises(FormatError):
        list(stream)
