import re
import base64
import binascii
from typing import List, Tuple

from errors import MalformedPem

LINE_WIDTH = 64
LABEL_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9 ._-]*[A-Za-z0-9])?$")
BEGIN_PATTERN = re.compile(r"^-----BEGIN (.*)-----$")
END_PATTERN = re.compile(r"^-----END (.*)-----$")

def encode(der: bytes, label: str) -> str:
    if not isinstance(der, (bytes, bytearray)):
        raise TypeError(f"PEM payload must be bytes, got {type(der).__name__}")
    if not isinstance(label, str) or not LABEL_PATTERN.fullmatch(label):
        raise ValueError(f"Invalid PEM label: {label!r}")
    body = base64.b64encode(bytes(der)).decode("ascii")
    lines = [f"-----BEGIN {label}-----"]
    lines += [body[i:i+LINE_WIDTH] for i in range(0, len(body), LINE_WIDTH)]
    lines.append(f"-----END {label}-----")
    return "\n".join(lines)+"\n"

def _b64(lines: List[str], label: str) -> bytes:
    try:
        return base64.b64decode("".join(lines), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedPem(f"Invalid base64 in {label} block: {e}") from e

def decode_all(text) -> List[Tuple[str, bytes]]:
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("ascii")
        except UnicodeDecodeError as e:
            raise MalformedPem("PEM data must be ASCII") from e
    if not isinstance(text, str):
        raise MalformedPem(f"PEM data must be text, got {type(text).__name__}")
    blocks = []
    label = None
    body = []
    for raw in text.splitlines():
        line = raw.strip()
        if label is None:
            begin = BEGIN_PATTERN.match(line)
            if begin:
                label, body = begin.group(1), []
            elif END_PATTERN.match(line):
                raise MalformedPem("PEM footer without a header")
            continue
        end = END_PATTERN.match(line)
        if end:
            if end.group(1) != label:
                raise MalformedPem(f"PEM footer {end.group(1)!r} does not match header {label!r}")
            blocks.append((label, _b64(body, label)))
            label = None
        elif BEGIN_PATTERN.match(line):
            raise MalformedPem(f"Nested PEM header inside {label} block")
        elif line:
            body.append(line)
    if label is not None:
        raise MalformedPem(f"Missing PEM footer for {label} block")
    if not blocks:
        raise MalformedPem("No PEM header found")
    return blocks

def decode(text) -> Tuple[str, bytes]:
    return decode_all(text)[0]

def decode_expecting(text, label: str) -> bytes:
    for found, der in decode_all(text):
        if found == label:
            return der
    raise MalformedPem(f"No {label} block found")
