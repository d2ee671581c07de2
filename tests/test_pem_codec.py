import pytest

import pem_codec
from errors import MalformedPem

def test_encode_wraps_at_64_columns():
    text = pem_codec.encode(bytes(range(256))*2, "CERTIFICATE")
    lines = text.splitlines()
    assert lines[0] == "-----BEGIN CERTIFICATE-----"
    assert lines[-1] == "-----END CERTIFICATE-----"
    assert all(len(line) == 64 for line in lines[1:-2])
    assert 0 < len(lines[-2]) <= 64
    assert text.endswith("-----\n")

@pytest.mark.parametrize("der, label", [
    (b"", "CERTIFICATE"),
    (b"\x30\x00", "RSA PRIVATE KEY"),
    (bytes(range(48)), "EC PRIVATE KEY"),
    (b"\xff"*1000, "PRIVATE KEY"),
])
def test_round_trip(der, label):
    assert pem_codec.decode(pem_codec.encode(der, label)) == (label, der)

def test_decode_tolerates_surrounding_text_and_crlf():
    text = "subject=CN=test\r\n" + pem_codec.encode(b"\x01\x02\x03", "CERTIFICATE").replace("\n", "\r\n") + "trailer\n"
    assert pem_codec.decode(text) == ("CERTIFICATE", b"\x01\x02\x03")
    assert pem_codec.decode(text.encode()) == ("CERTIFICATE", b"\x01\x02\x03")

def test_decode_all_reads_bundles():
    bundle = pem_codec.encode(b"key", "PRIVATE KEY") + pem_codec.encode(b"cert", "CERTIFICATE")
    assert pem_codec.decode_all(bundle) == [("PRIVATE KEY", b"key"), ("CERTIFICATE", b"cert")]
    assert pem_codec.decode_expecting(bundle, "CERTIFICATE") == b"cert"
    with pytest.raises(MalformedPem):
        pem_codec.decode_expecting(bundle, "X509 CRL")

@pytest.mark.parametrize("text", [
    "",
    "no armour here",
    "-----BEGIN CERTIFICATE-----\nAAAA\n",
    "-----BEGIN CERTIFICATE-----\nAAAA\n-----END PRIVATE KEY-----\n",
    "-----BEGIN CERTIFICATE-----\n@@@@\n-----END CERTIFICATE-----\n",
    "-----BEGIN CERTIFICATE-----\nAAA\n-----END CERTIFICATE-----\n",
    "-----END CERTIFICATE-----\n",
    "-----BEGIN A-----\n-----BEGIN B-----\n-----END B-----\n-----END A-----\n",
])
def test_malformed_input(text):
    with pytest.raises(MalformedPem):
        pem_codec.decode(text)

def test_non_ascii_bytes_are_malformed():
    with pytest.raises(MalformedPem):
        pem_codec.decode("é".encode("utf-8"))

@pytest.mark.parametrize("label", ["", "-CERT", "CERT-", "BAD\nLABEL", 42])
def test_invalid_labels(label):
    with pytest.raises(ValueError):
        pem_codec.encode(b"\x00", label)
