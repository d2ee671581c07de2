import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import keypairs
from certificate import Certificate, CertificateBuilder, DistinguishedName, Validity
from utils import colored_log, BLUE

OPTION_ALIASES = {"commonName": "common_name", "validDays": "valid_days", "altNames": "alt_names"}

@dataclass(frozen=True)
class CertOptions:
    common_name: str = "localhost"
    organization: str = "MyOrg"
    country: str = "US"
    valid_days: int = 365
    algorithm: str = "RSA-2048"
    alt_names: Tuple[str, ...] = field(default=())

    @classmethod
    def normalize(cls, mapping: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Map camelCase spellings onto field names, rejecting unknown and repeated options."""
        known = {f.name for f in fields(cls)}
        values, seen = {}, {}
        for key, value in (mapping or {}).items():
            name = OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown certificate option: {key}")
            if name in seen:
                raise ValueError(f"Certificate option given twice: {seen[name]} and {key}")
            seen[name] = key
            values[name] = value
        if "alt_names" in values:
            alt_names = values["alt_names"] or ()
            values["alt_names"] = (alt_names,) if isinstance(alt_names, str) else tuple(alt_names)
        return values

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> "CertOptions":
        return cls(**cls.normalize(mapping))

@dataclass(frozen=True)
class SelfSignedCredentials:
    key: str = field(repr=False)
    cert: str
    certificate: Certificate = field(repr=False)

def generate_self_signed_cert(options: Optional[CertOptions] = None, serial_number: Optional[int] = None, **overrides) -> SelfSignedCredentials:
    """
    Generate a private key and a matching self-signed certificate for local HTTPS.

    Options not given fall back to the CertOptions defaults; keyword overrides
    use the same names (camelCase spellings are accepted too). Everything is
    validated before any key material is generated. Not for production use.
    """
    if overrides:
        options = replace(options or CertOptions(), **CertOptions.normalize(overrides))
    elif options is None:
        options = CertOptions()
    subject = DistinguishedName(common_name=options.common_name, organization=options.organization, country=options.country)
    validity = Validity.for_days(options.valid_days)
    keypairs.resolve_algorithm(options.algorithm)
    builder = CertificateBuilder(alt_names=options.alt_names or None)
    builder.validate(subject, serial_number)
    key_pair = keypairs.generate(options.algorithm)
    if serial_number is None:
        serial_number = keypairs.random_serial_number()
    certificate = builder.build(subject, validity, key_pair, serial_number)
    return SelfSignedCredentials(key=key_pair.private_key_pem(), cert=certificate.to_pem(), certificate=certificate)

def create_ssl(cert_file, key_file, options: Optional[CertOptions] = None) -> SelfSignedCredentials:
    credentials = generate_self_signed_cert(options)
    cert_path, key_path = Path(cert_file), Path(key_file)
    for path in (cert_path, key_path):
        path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(credentials.key)
    os.chmod(key_path, 0o600)
    cert_path.write_text(credentials.cert)
    colored_log(BLUE, "INFO", f"Wrote {cert_path} and {key_path}")
    return credentials
