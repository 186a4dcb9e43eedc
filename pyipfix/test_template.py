from ipaddress import ip_address

import pytest

from .buffer import SetBuffer, EndOfBuffer, FormatError
from .ie import InfoModel
from .template import Template, OptionsTemplate, TypeOptionsTemplate, \
                      IpfixEncodeError

def _model():
    return InfoModel().use_iana_default().use_5103_default()

def test_min_length_and_count():
    model = _model()
    tmpl = Template(model, 1000) << "octetDeltaCount" << \
                                    "reverseOctetDeltaCount[4]" << \
                                    "applicationName"
    assert tmpl.count() == 3
    assert tmpl.min_length == 13
    assert tmpl.spec().splitlines() == \
        ["octetDeltaCount(1)<unsigned64>[8]",
         "reverseOctetDeltaCount(29305/1)<unsigned64>[4]",
         "applicationName(96)<string>[v]"]

def test_unknown_spec():
    with pytest.raises(ValueError):
        Template(_model(), 256, ["octetDeltaCount", "noSuchElement"])

def test_tid_clamp():
    assert Template(_model(), 70000).tid == 65535

def test_template_record_transcode():
    model = _model()
    tmpl = Template(model, 256, ["octetDeltaCount",
                                 "reverseOctetDeltaCount[4]",
                                 "applicationName"])
    buf = SetBuffer(set_id=2)
    tmpl.encode_template_record(buf)
    assert buf.to_bytes() == bytes([0, 2, 0, 24,
                                    1, 0, 0, 3,
                                    0, 1, 0, 8,
                                    0x80, 1, 0, 4, 0, 0, 0x72, 0x79,
                                    0, 96, 0xff, 0xff])

    out = Template.decode_template_record(model, SetBuffer(buf.to_bytes()))
    assert out.tid == 256
    assert [ie.name for ie in out] == \
        ["octetDeltaCount", "reverseOctetDeltaCount", "applicationName"]
    assert [ie.length for ie in out] == [8, 4, 65535]
    assert out.min_length == tmpl.min_length

def test_unknown_enterprise_ie_decodes_as_octets():
    model = _model()
    data = bytes([0, 2, 0, 16, 1, 1, 0, 1, 0x80, 7, 0, 3, 0, 0, 0x8a, 0xee])
    out = Template.decode_template_record(model, SetBuffer(data))
    (ie,) = list(out)
    assert ie.name == "_ipfix_35566_7"
    assert ie.length == 3

    rec = out.decode_record(SetBuffer(bytes([1, 1, 0, 7, 1, 2, 3])))
    assert rec == { "_ipfix_35566_7": b'\x01\x02\x03' }

def test_options_template_transcode():
    model = _model()
    tmpl = OptionsTemplate(model, 257, ["exportingProcessId"],
                           scope=["observationDomainId"])
    assert tmpl.count() == 2
    assert tmpl.scope_count() == 1
    assert tmpl.min_length == 8

    buf = SetBuffer(set_id=3)
    tmpl.encode_template_record(buf)
    assert buf.to_bytes()[4:10] == bytes([1, 1, 0, 2, 0, 1])

    out = OptionsTemplate.decode_template_record(model, SetBuffer(buf.to_bytes()))
    assert [ie.name for ie in out.scope] == ["observationDomainId"]
    assert [ie.name for ie in out] == ["observationDomainId",
                                       "exportingProcessId"]

def test_template_set_admission():
    model = _model()
    tmpl = Template(model, 256, ["octetDeltaCount"])
    with pytest.raises(IpfixEncodeError):
        tmpl.encode_template_record(SetBuffer(set_id=3))
    with pytest.raises(IpfixEncodeError):
        tmpl.encode_record(SetBuffer(set_id=257), { "octetDeltaCount": 1 })
    with pytest.raises(FormatError):
        OptionsTemplate.decode_template_record(model, SetBuffer(set_id=2))
    with pytest.raises(FormatError):
        tmpl.decode_record(SetBuffer(bytes([1, 1, 0, 12]) + bytes(8)))

def test_record_transcode():
    model = _model()
    tmpl = Template(model, 256, ["sourceIPv4Address",
                                 "octetDeltaCount[4]",
                                 "applicationName"])
    buf = SetBuffer(set_id=256)
    tmpl.encode_record(buf, { "sourceIPv4Address": ip_address("192.0.2.1"),
                              "octetDeltaCount": 5309,
                              "applicationName": "ipfix",
                              "unencodedElement": "not encoded" })
    # missing values are encoded as zeros
    tmpl.encode_record(buf, { "applicationName": "" })

    out = SetBuffer(buf.to_bytes())
    assert tmpl.decode_record(out) == { "sourceIPv4Address": ip_address("192.0.2.1"),
                                        "octetDeltaCount": 5309,
                                        "applicationName": "ipfix" }
    assert tmpl.decode_record(out) == { "sourceIPv4Address": ip_address("0.0.0.0"),
                                        "octetDeltaCount": 0,
                                        "applicationName": "" }
    assert out.remaining_readable() == 0

def test_record_encode_is_atomic():
    model = _model()
    tmpl = Template(model, 256, ["octetDeltaCount", "packetDeltaCount"])
    buf = SetBuffer(set_id=256)
    buf.limit = 20
    tmpl.encode_record(buf, { "octetDeltaCount": 1, "packetDeltaCount": 1 })
    with pytest.raises(EndOfBuffer):
        tmpl.encode_record(buf, { "octetDeltaCount": 2, "packetDeltaCount": 2 })
    assert len(buf) == 20

def test_record_decode_is_atomic():
    model = _model()
    tmpl = Template(model, 256, ["octetDeltaCount", "packetDeltaCount"])
    buf = SetBuffer(bytes([1, 0, 0, 16]) + bytes(12))
    with pytest.raises(EndOfBuffer):
        tmpl.decode_record(buf)
    assert buf.remaining_readable() == 12

def test_type_options_transcode():
    model = _model()
    custom = model.add_spec("myCustomCounter(35566/12)<unsigned32>")
    tmpl = TypeOptionsTemplate(model, 258)
    assert tmpl.scope_count() == 2

    buf = SetBuffer(set_id=258)
    tmpl.encode_record(buf, custom.type_options_record())

    rec = tmpl.decode_record(SetBuffer(buf.to_bytes()))
    assert TypeOptionsTemplate.is_type_options_record(rec)

    collector_model = InfoModel().use_iana_default()
    assert collector_model.ie_for_number(35566, 12) is None
    learned = collector_model.add_type_options_record(rec)
    assert learned.spec() == "myCustomCounter(35566/12)<unsigned32>[4]"
