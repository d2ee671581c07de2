import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa

import pem_codec
from errors import EntropyError, UnsupportedAlgorithm

logger = logging.getLogger(__name__)

RSA_KEY_SIZES = (2048, 3072, 4096)
RSA_PUBLIC_EXPONENT = 65537
CURVES = {
    "P-256": (ec.SECP256R1, hashes.SHA256, "1.2.840.10045.4.3.2"),
    "P-384": (ec.SECP384R1, hashes.SHA384, "1.2.840.10045.4.3.3"),
    "P-521": (ec.SECP521R1, hashes.SHA512, "1.2.840.10045.4.3.4"),
}
PRESETS = {
    "RSA-2048": ("RSA", {"key_size": 2048}),
    "RSA-3072": ("RSA", {"key_size": 3072}),
    "RSA-4096": ("RSA", {"key_size": 4096}),
    "ECDSA-P256": ("ECDSA", {"curve": "P-256"}),
    "ECDSA-P384": ("ECDSA", {"curve": "P-384"}),
    "ECDSA-P521": ("ECDSA", {"curve": "P-521"}),
    "ED25519": ("Ed25519", {}),
}
FAMILY_PARAMETERS = {
    "RSA": {"key_size", "public_exponent"},
    "ECDSA": {"curve"},
    "Ed25519": set(),
}

OID_SHA256_WITH_RSA = "1.2.840.113549.1.1.11"
OID_ED25519 = "1.3.101.112"

@dataclass(frozen=True)
class SignatureProfile:
    name: str
    oid: str
    hash_algorithm: Optional[type]
    null_parameters: bool

@dataclass(frozen=True)
class KeyPair:
    algorithm: str
    private_key: Any = field(repr=False)
    public_key: Any = field(repr=False)

    @property
    def family(self) -> str:
        return self.algorithm.split("-")[0]

    def public_key_info(self) -> bytes:
        return self.public_key.public_bytes(serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo)

    def private_key_label(self) -> str:
        return {"RSA": "RSA PRIVATE KEY", "ECDSA": "EC PRIVATE KEY"}.get(self.family, "PRIVATE KEY")

    def private_key_pem(self) -> str:
        fmt = serialization.PrivateFormat.PKCS8 if self.family == "Ed25519" else serialization.PrivateFormat.TraditionalOpenSSL
        der = self.private_key.private_bytes(serialization.Encoding.DER, fmt, serialization.NoEncryption())
        return pem_codec.encode(der, self.private_key_label())

def resolve_algorithm(algorithm: str = "RSA-2048", parameters: Optional[Dict[str, Any]] = None) -> Tuple[str, Dict[str, Any]]:
    """
    Normalise an algorithm name and its parameters without generating anything.

    Returns the canonical name (e.g. "RSA-3072", "ECDSA-P256", "Ed25519") and
    the complete parameter dict. Raises UnsupportedAlgorithm for anything
    this module cannot generate.
    """
    if not isinstance(algorithm, str) or not algorithm.strip():
        raise UnsupportedAlgorithm(f"Algorithm must be a non-empty string, got {algorithm!r}")
    name = algorithm.strip().upper()
    params = dict(parameters or {})
    if name in PRESETS:
        family, preset = PRESETS[name]
        for key, value in preset.items():
            if key in params and params[key] != value:
                raise UnsupportedAlgorithm(f"{algorithm} conflicts with {key}={params[key]!r}")
            params[key] = value
    else:
        family = {"RSA": "RSA", "ECDSA": "ECDSA", "EC": "ECDSA"}.get(name)
        if family is None:
            raise UnsupportedAlgorithm(f"Unsupported key algorithm: {algorithm}")
    unknown = set(params)-FAMILY_PARAMETERS[family]
    if unknown:
        raise UnsupportedAlgorithm(f"Unsupported parameters for {family}: {', '.join(sorted(unknown))}")
    if family == "RSA":
        params.setdefault("key_size", 2048)
        params.setdefault("public_exponent", RSA_PUBLIC_EXPONENT)
        if params["key_size"] not in RSA_KEY_SIZES or isinstance(params["key_size"], bool):
            raise UnsupportedAlgorithm(f"Unsupported RSA key size: {params['key_size']!r}")
        if params["public_exponent"] != RSA_PUBLIC_EXPONENT or isinstance(params["public_exponent"], bool):
            raise UnsupportedAlgorithm(f"Unsupported RSA public exponent: {params['public_exponent']!r}")
        return f"RSA-{params['key_size']}", params
    if family == "ECDSA":
        params.setdefault("curve", "P-256")
        curve = str(params["curve"]).upper()
        if curve not in CURVES:
            raise UnsupportedAlgorithm(f"Unsupported curve: {params['curve']!r}")
        params["curve"] = curve
        return f"ECDSA-{curve.replace('-', '')}", params
    return "Ed25519", params

def _entropy(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except (OSError, NotImplementedError) as e:
        raise EntropyError(f"System random source unavailable: {e}") from e

def generate(algorithm: str = "RSA-2048", parameters: Optional[Dict[str, Any]] = None) -> KeyPair:
    name, params = resolve_algorithm(algorithm, parameters)
    if name.startswith("RSA"):
        private_key = _entropy(rsa.generate_private_key, public_exponent=params["public_exponent"], key_size=params["key_size"])
    elif name.startswith("ECDSA"):
        private_key = _entropy(ec.generate_private_key, CURVES[params["curve"]][0]())
    else:
        private_key = _entropy(ed25519.Ed25519PrivateKey.generate)
    logger.debug(f"Generated {name} key pair")
    return KeyPair(algorithm=name, private_key=private_key, public_key=private_key.public_key())

def random_serial_number() -> int:
    serial = 0
    while serial == 0:
        serial = _entropy(x509.random_serial_number)
    return serial

def signature_profile(key_pair: KeyPair) -> SignatureProfile:
    if key_pair.family == "RSA":
        return SignatureProfile("sha256WithRSAEncryption", OID_SHA256_WITH_RSA, hashes.SHA256, True)
    if key_pair.family == "ECDSA":
        curve = f"P-{key_pair.algorithm[len('ECDSA-P'):]}"
        _, hash_cls, oid = CURVES[curve]
        return SignatureProfile(f"ecdsa-with-{hash_cls.name.upper()}", oid, hash_cls, False)
    return SignatureProfile("Ed25519", OID_ED25519, None, False)

def profile_for_oid(oid: str) -> SignatureProfile:
    if oid == OID_SHA256_WITH_RSA:
        return SignatureProfile("sha256WithRSAEncryption", oid, hashes.SHA256, True)
    if oid == OID_ED25519:
        return SignatureProfile("Ed25519", oid, None, False)
    for _, hash_cls, curve_oid in CURVES.values():
        if curve_oid == oid:
            return SignatureProfile(f"ecdsa-with-{hash_cls.name.upper()}", oid, hash_cls, False)
    raise UnsupportedAlgorithm(f"Unsupported signature algorithm OID: {oid}")

def sign(key_pair: KeyPair, data: bytes) -> bytes:
    profile = signature_profile(key_pair)
    if key_pair.family == "RSA":
        return key_pair.private_key.sign(data, padding.PKCS1v15(), profile.hash_algorithm())
    if key_pair.family == "ECDSA":
        return key_pair.private_key.sign(data, ec.ECDSA(profile.hash_algorithm()))
    return key_pair.private_key.sign(data)

def verify(public_key, signature: bytes, data: bytes, profile: SignatureProfile) -> bool:
    try:
        if isinstance(public_key, rsa.RSAPublicKey) and profile.null_parameters:
            public_key.verify(signature, data, padding.PKCS1v15(), profile.hash_algorithm())
        elif isinstance(public_key, ec.EllipticCurvePublicKey) and profile.name.startswith("ecdsa"):
            public_key.verify(signature, data, ec.ECDSA(profile.hash_algorithm()))
        elif isinstance(public_key, ed25519.Ed25519PublicKey) and profile.oid == OID_ED25519:
            public_key.verify(signature, data)
        else:
            return False
    except InvalidSignature:
        return False
    return True
