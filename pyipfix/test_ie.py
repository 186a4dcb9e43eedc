import pytest

from . import types
from .ie import InfoModel, InformationElement, parse_spec, REVERSE_PEN

def test_parse_spec():
    assert parse_spec("octetDeltaCount(1)<unsigned64>[8]") == \
        ("octetDeltaCount", 0, 1, "unsigned64", 8)
    assert parse_spec("myIE(35566/1)<string>[v]") == \
        ("myIE", 35566, 1, "string", types.VARLEN)
    assert parse_spec("  sourceIPv4Address ") == \
        ("sourceIPv4Address", 0, None, None, 0)

def test_spec_roundtrip():
    model = InfoModel()
    for spec in ["octetDeltaCount(1)<unsigned64>[8]",
                 "applicationName(96)<string>[v]",
                 "myNewInformationElement(35566/1)<ipv4Address>[4]"]:
        assert model.add_spec(spec).spec() == spec

def test_add_spec_incomplete():
    with pytest.raises(ValueError):
        InfoModel().add_spec("octetDeltaCount[4]")

def test_lookup():
    model = InfoModel().use_iana_default()
    assert model.ie_for_spec("(152)").name == "flowStartMilliseconds"
    assert model.ie_for_name("octetDeltaCount").num == 1
    assert model.ie_for_number(0, 8).name == "sourceIPv4Address"
    assert model.ie_for_spec("noSuchElement") is None
    assert model.ie_for_number(0, 65000) is None

    rle = model.ie_for_spec("octetDeltaCount[4]")
    assert rle.length == 4
    assert rle == model.ie_for_name("octetDeltaCount")
    assert model.ie_for_name("octetDeltaCount").length == 8

    with pytest.raises(ValueError):
        model.spec_list(["octetDeltaCount", "noSuchElement"])
    assert [ie.num for ie in model.spec_list(["(2)", "octetDeltaCount"])] == [2, 1]

def test_for_template_entry_unknown():
    model = InfoModel()
    ie = model.for_template_entry(35566, 42, 6)
    assert ie.name == "_ipfix_35566_42"
    assert ie.type is types.for_name("octetArray")
    assert ie.length == 6
    assert model.ie_for_number(35566, 42) is ie

def test_hashkey():
    model = InfoModel().use_iana_default()
    model.set_hashkey("octetDeltaCount", "bytes")
    assert model.ie_for_spec("octetDeltaCount[4]").hashkey == "bytes"
    assert model.ie_for_spec("(1)").hashkey == "bytes"
    assert model.ie_for_name("packetDeltaCount").hashkey == "packetDeltaCount"
    with pytest.raises(ValueError):
        model.set_hashkey("noSuchElement", "nope")

def test_reverse():
    model = InfoModel().use_iana_default().use_5103_default()
    rev = model.ie_for_name("reverseOctetDeltaCount")
    assert rev.pen == REVERSE_PEN
    assert rev.num == 1
    assert rev.type is types.for_name("unsigned64")
    assert str(rev) == "reverseOctetDeltaCount(29305/1)<unsigned64>[8]"

    with pytest.raises(ValueError):
        model.add_spec("myIE(35566/1)<string>").for_reverse()

def test_load_save(tmp_path):
    specfile = tmp_path / "test.iespec"
    specfile.write_text("# test information elements\n"
                        "\n"
                        "myFirstIE(35566/1)<unsigned32>[4]\n"
                        "mySecondIE(35566/2)<string>[v]\n")

    model = InfoModel().load(str(specfile))
    assert len(model) == 2

    outfile = tmp_path / "out.iespec"
    model.save(str(outfile))
    assert outfile.read_text().splitlines() == \
        ["myFirstIE(35566/1)<unsigned32>[4]", "mySecondIE(35566/2)<string>[v]"]

    assert len(InfoModel().load(str(outfile))) == 2

def test_iana_default_roundtrip(tmp_path):
    model = InfoModel().use_iana_default()
    outfile = tmp_path / "iana.iespec"
    model.save(str(outfile))
    reloaded = InfoModel().load(str(outfile))
    assert [ie.spec() for ie in reloaded] == [ie.spec() for ie in model]

def test_type_options_record():
    model = InfoModel()
    ie = InformationElement("myIE", 35566, 7, types.for_name("float64"))
    rec = ie.type_options_record()
    assert rec == { "informationElementId": 7,
                    "privateEnterpriseNumber": 35566,
                    "informationElementDataType": 10,
                    "informationElementName": "myIE" }

    added = model.add_type_options_record(rec)
    assert added.spec() == "myIE(35566/7)<float64>[8]"
    assert model.ie_for_number(35566, 7) is added
    assert model.add_type_options_record({ "informationElementId": 1 }) is None
