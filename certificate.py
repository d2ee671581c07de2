"""
Self-signed X.509 v3 certificates.

The To-Be-Signed structure is assembled field by field with the DER
primitives from asn1_der, signed with the subject's own key and wrapped in
the outer Certificate SEQUENCE. Parsing goes the other way through the
pyasn1-modules RFC 5280 definitions, keeping the exact TBS octets so the
signature can be checked against what was actually signed.
"""
import hashlib
import ipaddress
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from cryptography.hazmat.primitives import serialization
from pyasn1.codec.der import decoder, encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import namedtype, univ
from pyasn1_modules import rfc5280

import keypairs
import pem_codec
from asn1_der import (
    encode_bit_string, encode_boolean, encode_explicit, encode_ia5_string, encode_integer,
    encode_named_bits, encode_null, encode_octet_string, encode_oid, encode_printable_string,
    encode_sequence, encode_set, encode_time, encode_utf8_string, normalize_time, parse_time
)
from errors import EncodingError, InvalidSubject, InvalidValidity

logger = logging.getLogger(__name__)

OID_COUNTRY = "2.5.4.6"
OID_ORGANIZATION = "2.5.4.10"
OID_COMMON_NAME = "2.5.4.3"
OID_BASIC_CONSTRAINTS = "2.5.29.19"
OID_KEY_USAGE = "2.5.29.15"
OID_EXT_KEY_USAGE = "2.5.29.37"
OID_SUBJECT_ALT_NAME = "2.5.29.17"
OID_SERVER_AUTH = "1.3.6.1.5.5.7.3.1"

ATTRIBUTE_NAMES = {OID_COUNTRY: "C", OID_ORGANIZATION: "O", OID_COMMON_NAME: "CN"}
EXTENSION_NAMES = {
    OID_BASIC_CONSTRAINTS: "basicConstraints",
    OID_KEY_USAGE: "keyUsage",
    OID_EXT_KEY_USAGE: "extendedKeyUsage",
    OID_SUBJECT_ALT_NAME: "subjectAltName",
}

UB_NAME_LENGTH = 64
MAX_SERIAL_OCTETS = 20
VERSION_V3 = 2
KEY_USAGE_DIGITAL_SIGNATURE = 0
KEY_USAGE_KEY_ENCIPHERMENT = 2
GENERAL_NAME_DNS = 2
GENERAL_NAME_IP = 7
LOOPBACK_ADDRESSES = ("127.0.0.1", "::1")

@dataclass(frozen=True)
class DistinguishedName:
    common_name: str = "localhost"
    organization: str = "MyOrg"
    country: str = "US"

    def __post_init__(self):
        if not isinstance(self.country, str) or len(self.country) != 2:
            raise InvalidSubject("Country code must be exactly 2 characters")
        if not (self.country.isascii() and self.country.isalpha()):
            raise InvalidSubject(f"Country code must be two ASCII letters, got {self.country!r}")
        if not isinstance(self.common_name, str) or not 1 <= len(self.common_name) <= UB_NAME_LENGTH:
            raise InvalidSubject(f"Common name must be 1 to {UB_NAME_LENGTH} characters")
        if not isinstance(self.organization, str) or len(self.organization) > UB_NAME_LENGTH:
            raise InvalidSubject(f"Organization must be at most {UB_NAME_LENGTH} characters")

    def attributes(self) -> List[Tuple[str, str]]:
        attrs = [(OID_COUNTRY, self.country)]
        if self.organization:
            attrs.append((OID_ORGANIZATION, self.organization))
        attrs.append((OID_COMMON_NAME, self.common_name))
        return attrs

    def encode(self) -> bytes:
        rdns = []
        for oid, value in self.attributes():
            encoded_value = encode_printable_string(value) if oid == OID_COUNTRY else encode_utf8_string(value)
            rdns.append(encode_set(encode_sequence(encode_oid(oid), encoded_value)))
        return encode_sequence(*rdns)

    def rfc4514_string(self) -> str:
        def escape(value):
            value = "".join("\\" + c if c in ',+"\\<>;=' else c for c in value)
            if value[:1] in ("#", " "):
                value = "\\" + value
            if value.endswith(" "):
                value = value[:-1] + "\\ "
            return value
        return ",".join(f"{ATTRIBUTE_NAMES[oid]}={escape(value)}" for oid, value in reversed(self.attributes()))

    @classmethod
    def from_attributes(cls, attributes: Iterable[Tuple[str, str]]) -> "DistinguishedName":
        values = {}
        for oid, value in attributes:
            if oid not in ATTRIBUTE_NAMES:
                raise InvalidSubject(f"Unsupported name attribute {oid}")
            if oid in values:
                raise InvalidSubject(f"Duplicate name attribute {ATTRIBUTE_NAMES[oid]}")
            values[oid] = value
        return cls(
            common_name=values.get(OID_COMMON_NAME, ""),
            organization=values.get(OID_ORGANIZATION, ""),
            country=values.get(OID_COUNTRY, ""),
        )

@dataclass(frozen=True)
class Validity:
    not_before: datetime
    not_after: datetime

    def __post_init__(self):
        for name in ("not_before", "not_after"):
            value = getattr(self, name)
            if not isinstance(value, datetime):
                raise InvalidValidity(f"{name} must be a datetime, got {type(value).__name__}")
            object.__setattr__(self, name, normalize_time(value))
        if self.not_before >= self.not_after:
            raise InvalidValidity("notAfter must be strictly after notBefore")

    @classmethod
    def for_days(cls, days: int, start: Optional[datetime] = None) -> "Validity":
        if not isinstance(days, int) or isinstance(days, bool) or days <= 0:
            raise InvalidValidity("validDays must be a positive number")
        if start is not None and not isinstance(start, datetime):
            raise InvalidValidity(f"start must be a datetime, got {type(start).__name__}")
        start = normalize_time(start or datetime.now(timezone.utc))
        try:
            end = start + timedelta(days=days)
        except OverflowError as e:
            raise InvalidValidity(f"validDays is too large: {days}") from e
        return cls(start, end)

    @property
    def duration(self) -> timedelta:
        return self.not_after - self.not_before

    def contains(self, moment: datetime) -> bool:
        return self.not_before <= normalize_time(moment) <= self.not_after

    def encode(self) -> bytes:
        return encode_sequence(encode_time(self.not_before), encode_time(self.not_after))

@dataclass(frozen=True)
class Extension:
    oid: str
    critical: bool
    value: bytes

    @property
    def name(self) -> str:
        return EXTENSION_NAMES.get(self.oid, self.oid)

    def encode(self) -> bytes:
        parts = [encode_oid(self.oid)]
        # DER omits BOOLEAN DEFAULT FALSE
        if self.critical:
            parts.append(encode_boolean(True))
        parts.append(encode_octet_string(self.value))
        return encode_sequence(*parts)

class _SignedCertificate(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("tbsCertificate", univ.Any()),
        namedtype.NamedType("signatureAlgorithm", rfc5280.AlgorithmIdentifier()),
        namedtype.NamedType("signature", univ.BitString()),
    )

def _decode(der: bytes, spec, what: str):
    try:
        value, rest = decoder.decode(der, asn1Spec=spec)
    except PyAsn1Error as e:
        raise EncodingError(f"Malformed {what}: {e}") from e
    if rest:
        raise EncodingError(f"Trailing data after {what}")
    return value

def _name_from_asn1(name) -> DistinguishedName:
    attributes = []
    for rdn in name["rdnSequence"]:
        for atv in rdn:
            value = _decode(bytes(atv["value"]), None, "name attribute")
            attributes.append((str(atv["type"]), str(value)))
    try:
        return DistinguishedName.from_attributes(attributes)
    except InvalidSubject as e:
        raise EncodingError(f"Unsupported certificate name: {e}") from e

def _time_from_asn1(time_choice) -> datetime:
    return parse_time(str(time_choice.getComponent()))

@dataclass(frozen=True)
class Certificate:
    version: int
    serial_number: int
    signature_algorithm: str
    issuer: DistinguishedName
    validity: Validity
    subject: DistinguishedName
    public_key_info: bytes = field(repr=False)
    extensions: Tuple[Extension, ...] = field(default=(), repr=False)
    tbs_der: bytes = field(default=b"", repr=False)
    signature: bytes = field(default=b"", repr=False)
    der: bytes = field(default=b"", repr=False)

    @classmethod
    def from_der(cls, der: bytes) -> "Certificate":
        if not isinstance(der, (bytes, bytearray)):
            raise EncodingError(f"Certificate DER must be bytes, got {type(der).__name__}")
        der = bytes(der)
        try:
            return cls._from_asn1(der)
        except PyAsn1Error as e:
            raise EncodingError(f"Malformed certificate: {e}") from e

    @classmethod
    def _from_asn1(cls, der: bytes) -> "Certificate":
        envelope = _decode(der, _SignedCertificate(), "certificate")
        tbs_der = bytes(envelope["tbsCertificate"])
        tbs = _decode(tbs_der, rfc5280.TBSCertificate(), "TBSCertificate")
        outer_algorithm = str(envelope["signatureAlgorithm"]["algorithm"])
        inner_algorithm = str(tbs["signature"]["algorithm"])
        if outer_algorithm != inner_algorithm:
            raise EncodingError(f"Signature algorithm mismatch: {outer_algorithm} != {inner_algorithm}")
        extensions = []
        if tbs["extensions"].isValue:
            for ext in tbs["extensions"]:
                extensions.append(Extension(str(ext["extnID"]), bool(ext["critical"]), bytes(ext["extnValue"])))
        try:
            validity = Validity(_time_from_asn1(tbs["validity"]["notBefore"]), _time_from_asn1(tbs["validity"]["notAfter"]))
        except InvalidValidity as e:
            raise EncodingError(f"Unsupported validity period: {e}") from e
        return cls(
            version=int(tbs["version"]),
            serial_number=int(tbs["serialNumber"]),
            signature_algorithm=inner_algorithm,
            issuer=_name_from_asn1(tbs["issuer"]),
            validity=validity,
            subject=_name_from_asn1(tbs["subject"]),
            public_key_info=encoder.encode(tbs["subjectPublicKeyInfo"]),
            extensions=tuple(extensions),
            tbs_der=tbs_der,
            signature=envelope["signature"].asOctets(),
            der=der,
        )

    @classmethod
    def from_pem(cls, text) -> "Certificate":
        return cls.from_der(pem_codec.decode_expecting(text, "CERTIFICATE"))

    def to_pem(self) -> str:
        return pem_codec.encode(self.der, "CERTIFICATE")

    def public_key(self):
        return serialization.load_der_public_key(self.public_key_info)

    def signature_profile(self) -> keypairs.SignatureProfile:
        return keypairs.profile_for_oid(self.signature_algorithm)

    def verify_signature(self) -> bool:
        return keypairs.verify(self.public_key(), self.signature, self.tbs_der, self.signature_profile())

    def fingerprint(self) -> str:
        return hashlib.sha256(self.der).hexdigest()

    @property
    def is_self_signed(self) -> bool:
        return self.issuer == self.subject

    def extension(self, oid: str) -> Optional[Extension]:
        for ext in self.extensions:
            if ext.oid == oid:
                return ext
        return None

    @property
    def is_ca(self) -> bool:
        ext = self.extension(OID_BASIC_CONSTRAINTS)
        if ext is None:
            return False
        return bool(_decode(ext.value, rfc5280.BasicConstraints(), "basicConstraints")["cA"])

    @property
    def alt_names(self) -> List[str]:
        ext = self.extension(OID_SUBJECT_ALT_NAME)
        if ext is None:
            return []
        names = []
        for general_name in _decode(ext.value, rfc5280.SubjectAltName(), "subjectAltName"):
            kind = general_name.getName()
            if kind == "dNSName":
                names.append(str(general_name["dNSName"]))
            elif kind == "iPAddress":
                names.append(str(ipaddress.ip_address(bytes(general_name["iPAddress"]))))
        return names

    def describe(self) -> Dict[str, object]:
        return {
            "subject": self.subject.rfc4514_string(),
            "issuer": self.issuer.rfc4514_string(),
            "serial_number": f"{self.serial_number:x}",
            "not_before": self.validity.not_before.isoformat(),
            "not_after": self.validity.not_after.isoformat(),
            "signature_algorithm": self.signature_profile().name,
            "alt_names": self.alt_names,
            "is_ca": self.is_ca,
            "extensions": [ext.name for ext in self.extensions],
            "fingerprint_sha256": self.fingerprint(),
        }

def dns_name(name: str) -> str:
    """Return ``name`` as an ASCII dNSName, converting internationalized labels to A-labels."""
    if name.isascii():
        return name
    try:
        return name.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise EncodingError(f"Cannot use {name!r} as a DNS name: {e}") from e

def default_alt_names(common_name: str) -> List[str]:
    if common_name.lower() == "localhost":
        return [common_name, *LOOPBACK_ADDRESSES]
    try:
        return [dns_name(common_name)]
    except EncodingError:
        return []

def _general_name(name: str) -> bytes:
    if not isinstance(name, str) or not name:
        raise EncodingError(f"Alternative names must be non-empty strings, got {name!r}")
    try:
        address = ipaddress.ip_address(name)
    except ValueError:
        return encode_ia5_string(dns_name(name), implicit_tag=GENERAL_NAME_DNS)
    return encode_octet_string(address.packed, implicit_tag=GENERAL_NAME_IP)

class CertificateBuilder:
    def __init__(self, extensions: bool = True, alt_names: Optional[Iterable[str]] = None):
        self.extensions = extensions
        self.alt_names = list(alt_names) if alt_names else None

    def _algorithm_identifier(self, profile: keypairs.SignatureProfile) -> bytes:
        if profile.null_parameters:
            return encode_sequence(encode_oid(profile.oid), encode_null())
        return encode_sequence(encode_oid(profile.oid))

    def _subject_alt_name(self, subject_name: DistinguishedName) -> Optional[Extension]:
        alt_names = self.alt_names or default_alt_names(subject_name.common_name)
        if not alt_names:
            return None
        return Extension(OID_SUBJECT_ALT_NAME, False, encode_sequence(*[_general_name(n) for n in alt_names]))

    def _extensions(self, subject_name: DistinguishedName, key_pair: keypairs.KeyPair) -> List[Extension]:
        key_usage = {KEY_USAGE_DIGITAL_SIGNATURE}
        if key_pair.family == "RSA":
            key_usage.add(KEY_USAGE_KEY_ENCIPHERMENT)
        extensions = [
            Extension(OID_BASIC_CONSTRAINTS, True, encode_sequence()),
            Extension(OID_KEY_USAGE, True, encode_named_bits(key_usage)),
            Extension(OID_EXT_KEY_USAGE, False, encode_sequence(encode_oid(OID_SERVER_AUTH))),
        ]
        san = self._subject_alt_name(subject_name)
        if san is not None:
            extensions.append(san)
        return extensions

    def validate(self, subject_name: DistinguishedName, serial_number: Optional[int] = None):
        """
        Check everything build() will encode that does not depend on the key,
        so bad input is rejected before a key pair is generated.
        """
        if not isinstance(subject_name, DistinguishedName):
            raise InvalidSubject(f"Subject must be a DistinguishedName, got {type(subject_name).__name__}")
        if serial_number is not None:
            if not isinstance(serial_number, int) or isinstance(serial_number, bool) or serial_number <= 0:
                raise EncodingError(f"Serial number must be a positive integer, got {serial_number!r}")
            if serial_number.bit_length() // 8 + 1 > MAX_SERIAL_OCTETS:
                raise EncodingError(f"Serial number must fit in {MAX_SERIAL_OCTETS} octets")
        subject_name.encode()
        if self.extensions:
            self._subject_alt_name(subject_name)

    def build(self, subject_name: DistinguishedName, validity: Validity, key_pair: keypairs.KeyPair, serial_number: int) -> Certificate:
        if not isinstance(validity, Validity):
            raise InvalidValidity(f"Validity must be a Validity, got {type(validity).__name__}")
        if serial_number is None:
            raise EncodingError("Serial number must be a positive integer, got None")
        self.validate(subject_name, serial_number)
        profile = keypairs.signature_profile(key_pair)
        algorithm_identifier = self._algorithm_identifier(profile)
        name = subject_name.encode()
        spki = key_pair.public_key_info()
        extensions = self._extensions(subject_name, key_pair) if self.extensions else []
        fields = []
        if extensions:
            fields.append(encode_explicit(0, encode_integer(VERSION_V3)))
        fields += [encode_integer(serial_number), algorithm_identifier, name, validity.encode(), name, spki]
        if extensions:
            fields.append(encode_explicit(3, encode_sequence(*[ext.encode() for ext in extensions])))
        tbs_der = encode_sequence(*fields)
        signature = keypairs.sign(key_pair, tbs_der)
        der = encode_sequence(tbs_der, algorithm_identifier, encode_bit_string(signature))
        logger.info(f"Built self-signed certificate for {subject_name.rfc4514_string()} ({key_pair.algorithm}, serial {serial_number:x})")
        return Certificate(
            version=VERSION_V3 if extensions else 0,
            serial_number=serial_number,
            signature_algorithm=profile.oid,
            issuer=subject_name,
            validity=validity,
            subject=subject_name,
            public_key_info=spki,
            extensions=tuple(extensions),
            tbs_der=tbs_der,
            signature=signature,
            der=der,
        )
