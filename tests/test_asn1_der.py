import pytest
from datetime import datetime, timedelta, timezone

import asn1_der
from errors import EncodingError

@pytest.mark.parametrize("value, expected", [
    (0, "020100"),
    (127, "02017f"),
    (128, "02020080"),
    (256, "02020100"),
    (-1, "0201ff"),
    (-128, "020180"),
    (-129, "0202ff7f"),
])
def test_integer_minimal_twos_complement(value, expected):
    assert asn1_der.encode_integer(value).hex() == expected

@pytest.mark.parametrize("value", [True, 1.5, "1", None])
def test_integer_rejects_non_int(value):
    with pytest.raises(EncodingError):
        asn1_der.encode_integer(value)

def test_boolean_and_null():
    assert asn1_der.encode_boolean(True).hex() == "0101ff"
    assert asn1_der.encode_boolean(False).hex() == "010100"
    assert asn1_der.encode_null().hex() == "0500"
    with pytest.raises(EncodingError):
        asn1_der.encode_boolean(1)

def test_object_identifiers():
    assert asn1_der.encode_oid("2.5.4.3").hex() == "0603550403"
    assert asn1_der.encode_oid("1.2.840.113549.1.1.11").hex() == "06092a864886f70d01010b"

@pytest.mark.parametrize("oid", ["3.1", "1.40", "1", "1..2", "abc", "1.2.", ""])
def test_malformed_object_identifiers(oid):
    with pytest.raises(EncodingError):
        asn1_der.encode_oid(oid)

def test_strings():
    assert asn1_der.encode_printable_string("US").hex() == "13025553"
    assert asn1_der.encode_utf8_string("é").hex() == "0c02c3a9"
    assert asn1_der.encode_ia5_string("a").hex() == "160161"

@pytest.mark.parametrize("text", ["é", "a@b", "under_score", "semi;colon"])
def test_printable_string_charset(text):
    with pytest.raises(EncodingError):
        asn1_der.encode_printable_string(text)

def test_string_errors():
    with pytest.raises(EncodingError):
        asn1_der.encode_ia5_string("é")
    with pytest.raises(EncodingError):
        asn1_der.encode_utf8_string("\ud800")
    with pytest.raises(EncodingError):
        asn1_der.encode_utf8_string(b"bytes")

def test_implicit_context_tags():
    assert asn1_der.encode_ia5_string("a", implicit_tag=2).hex() == "820161"
    assert asn1_der.encode_octet_string(b"\x7f\x00\x00\x01", implicit_tag=7).hex() == "87047f000001"
    with pytest.raises(EncodingError):
        asn1_der.encode_octet_string(b"", implicit_tag=31)

def test_explicit_context_tag():
    assert asn1_der.encode_explicit(0, asn1_der.encode_integer(2)).hex() == "a003020102"
    assert asn1_der.encode_explicit(3, asn1_der.encode_sequence()).hex() == "a3023000"

def test_bit_strings():
    assert asn1_der.encode_bit_string(b"\x01\x02").hex() == "0303000102"
    assert asn1_der.encode_named_bits({0, 2}).hex() == "030205a0"
    assert asn1_der.encode_named_bits([0]).hex() == "03020780"
    with pytest.raises(EncodingError):
        asn1_der.encode_named_bits([])
    with pytest.raises(EncodingError):
        asn1_der.encode_bit_string("not bytes")

def test_length_octets_use_shortest_form():
    assert asn1_der.encode_octet_string(b"\x00"*127)[:2].hex() == "047f"
    assert asn1_der.encode_octet_string(b"\x00"*200)[:3].hex() == "0481c8"
    assert asn1_der.encode_octet_string(b"\x00"*300)[:4].hex() == "0482012c"

def test_constructed_values():
    assert asn1_der.encode_sequence().hex() == "3000"
    assert asn1_der.encode_sequence(asn1_der.encode_null(), asn1_der.encode_integer(1)).hex() == "30050500020101"

def test_set_components_are_sorted():
    one, two = asn1_der.encode_integer(1), asn1_der.encode_integer(2)
    assert asn1_der.encode_set(two, one).hex() == "3106020101020102"

def test_times_switch_encoding_at_2050():
    utc = asn1_der.encode_time(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
    assert utc == b"\x17\x0d" + b"240102030405Z"
    generalized = asn1_der.encode_time(datetime(2050, 1, 1, tzinfo=timezone.utc))
    assert generalized == b"\x18\x0f" + b"20500101000000Z"
    old = asn1_der.encode_time(datetime(1949, 12, 31, 23, 59, 59, tzinfo=timezone.utc))
    assert old[:1] == b"\x18"

def test_times_are_normalised_to_utc_seconds():
    local = datetime(2024, 1, 2, 5, 4, 5, 999999, tzinfo=timezone(timedelta(hours=2)))
    assert asn1_der.encode_time(local) == b"\x17\x0d" + b"240102030405Z"
    naive = datetime(2024, 1, 2, 3, 4, 5)
    assert asn1_der.encode_time(naive) == b"\x17\x0d" + b"240102030405Z"
    with pytest.raises(EncodingError):
        asn1_der.encode_time("2024-01-02")

def test_parse_time():
    assert asn1_der.parse_time("240229120000Z") == datetime(2024, 2, 29, 12, tzinfo=timezone.utc)
    assert asn1_der.parse_time("500101000000Z").year == 1950
    assert asn1_der.parse_time("20510101000000Z") == datetime(2051, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(EncodingError):
        asn1_der.parse_time("2401010000Z")
    with pytest.raises(EncodingError):
        asn1_der.parse_time("241301000000Z")
