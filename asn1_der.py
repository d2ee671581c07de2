"""
DER building blocks for X.509 structures.

Every function returns the complete TLV encoding of one value. Constructed
values (SEQUENCE, SET, explicit tags) take already encoded components, so a
whole certificate can be assembled bottom-up from bytes. The actual tag and
length octets are produced by the pyasn1 DER codec.
"""
import re
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from pyasn1.codec.der import encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import char, tag, univ, useful

from errors import EncodingError

logger = logging.getLogger(__name__)

PRINTABLE_CHARS = re.compile(r"^[A-Za-z0-9 '()+,\-./:=?]*$")
OID_PATTERN = re.compile(r"^\d+(\.\d+)+$")
MAX_CONTEXT_TAG = 30
UTC_TIME_RANGE = (1950, 2050)

def _encode(value) -> bytes:
    try:
        return encoder.encode(value)
    except PyAsn1Error as e:
        raise EncodingError(f"Cannot DER-encode {value.__class__.__name__}: {e}") from e

def _require_bytes(data, what: str) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise EncodingError(f"{what} expects bytes, got {type(data).__name__}")
    return bytes(data)

def _require_text(text, what: str) -> str:
    if not isinstance(text, str):
        raise EncodingError(f"{what} expects str, got {type(text).__name__}")
    return text

def _context_tag(number: int, fmt) -> tag.Tag:
    if not isinstance(number, int) or isinstance(number, bool) or not 0 <= number <= MAX_CONTEXT_TAG:
        raise EncodingError(f"Context tag number must be between 0 and {MAX_CONTEXT_TAG}, got {number!r}")
    return tag.Tag(tag.tagClassContext, fmt, number)

def encode_integer(value: int) -> bytes:
    if not isinstance(value, int) or isinstance(value, bool):
        raise EncodingError(f"INTEGER expects int, got {type(value).__name__}")
    return _encode(univ.Integer(value))

def encode_boolean(value: bool) -> bytes:
    if not isinstance(value, bool):
        raise EncodingError(f"BOOLEAN expects bool, got {type(value).__name__}")
    return _encode(univ.Boolean(value))

def encode_null() -> bytes:
    return _encode(univ.Null(""))

def encode_bit_string(data: bytes) -> bytes:
    return _encode(univ.BitString.fromOctetString(_require_bytes(data, "BIT STRING")))

def encode_named_bits(bits: Iterable[int]) -> bytes:
    """
    Encode a named-bit BIT STRING such as KeyUsage.

    DER drops trailing zero bits, so the value only extends to the highest
    bit that is set.
    """
    positions = set(bits)
    if not positions:
        raise EncodingError("Named BIT STRING needs at least one bit set")
    if any(not isinstance(p, int) or isinstance(p, bool) or p < 0 for p in positions):
        raise EncodingError(f"Bit positions must be non-negative ints, got {sorted(positions, key=repr)}")
    bin_value = "".join("1" if i in positions else "0" for i in range(max(positions) + 1))
    return _encode(univ.BitString(binValue=bin_value))

def encode_octet_string(data: bytes, implicit_tag: Optional[int] = None) -> bytes:
    data = _require_bytes(data, "OCTET STRING")
    if implicit_tag is None:
        return _encode(univ.OctetString(data))
    spec = univ.OctetString().subtype(implicitTag=_context_tag(implicit_tag, tag.tagFormatSimple))
    return _encode(spec.clone(data))

def encode_utf8_string(text: str) -> bytes:
    text = _require_text(text, "UTF8String")
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"UTF8String cannot represent {text!r}: {e.reason}") from e
    return _encode(char.UTF8String(text))

def encode_printable_string(text: str) -> bytes:
    text = _require_text(text, "PrintableString")
    if not PRINTABLE_CHARS.match(text):
        raise EncodingError(f"PrintableString cannot represent {text!r}")
    return _encode(char.PrintableString(text))

def encode_ia5_string(text: str, implicit_tag: Optional[int] = None) -> bytes:
    text = _require_text(text, "IA5String")
    if not text.isascii():
        raise EncodingError(f"IA5String cannot represent {text!r}")
    if implicit_tag is None:
        return _encode(char.IA5String(text))
    spec = char.IA5String().subtype(implicitTag=_context_tag(implicit_tag, tag.tagFormatSimple))
    return _encode(spec.clone(text))

def encode_oid(dotted: str) -> bytes:
    dotted = _require_text(dotted, "OBJECT IDENTIFIER")
    if not OID_PATTERN.match(dotted):
        raise EncodingError(f"Malformed object identifier {dotted!r}")
    arcs = [int(arc) for arc in dotted.split(".")]
    if arcs[0] > 2:
        raise EncodingError(f"First arc of {dotted!r} must be 0, 1 or 2")
    if arcs[0] < 2 and arcs[1] >= 40:
        raise EncodingError(f"Second arc of {dotted!r} must be below 40")
    return _encode(univ.ObjectIdentifier(dotted))

def _components(container, parts, what: str):
    container.clear()
    for idx, part in enumerate(parts):
        container.setComponentByPosition(idx, univ.Any(_require_bytes(part, what)))
    return container

def encode_sequence(*parts: bytes) -> bytes:
    return _encode(_components(univ.SequenceOf(componentType=univ.Any()), parts, "SEQUENCE"))

def encode_set(*parts: bytes) -> bytes:
    # DER SET OF: the codec orders the component encodings
    return _encode(_components(univ.SetOf(componentType=univ.Any()), parts, "SET"))

def encode_explicit(number: int, inner: bytes) -> bytes:
    spec = univ.Any().subtype(explicitTag=_context_tag(number, tag.tagFormatConstructed))
    return _encode(spec.clone(_require_bytes(inner, "EXPLICIT tag")))

def normalize_time(value: datetime) -> datetime:
    if not isinstance(value, datetime):
        raise EncodingError(f"Time value expects datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)

def uses_utc_time(value: datetime) -> bool:
    return UTC_TIME_RANGE[0] <= value.year < UTC_TIME_RANGE[1]

def encode_time(value: datetime) -> bytes:
    value = normalize_time(value)
    clock = f"{value.month:02d}{value.day:02d}{value.hour:02d}{value.minute:02d}{value.second:02d}Z"
    if uses_utc_time(value):
        return _encode(useful.UTCTime(f"{value.year % 100:02d}{clock}"))
    return _encode(useful.GeneralizedTime(f"{value.year:04d}{clock}"))

def parse_time(text: str) -> datetime:
    """Inverse of encode_time for the textual value of a UTCTime or GeneralizedTime."""
    text = str(text)
    try:
        if len(text) == 13 and text.endswith("Z"):
            yy = int(text[:2])
            year = 2000 + yy if yy < 50 else 1900 + yy
            return datetime.strptime(f"{year}{text[2:-1]}", "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
        if len(text) == 15 and text.endswith("Z"):
            return datetime.strptime(text[:-1], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise EncodingError(f"Invalid time value {text!r}: {e}") from e
    raise EncodingError(f"Unsupported time format {text!r}")
