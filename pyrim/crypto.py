# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import datetime
from pathlib import Path
from typing import Optional, Tuple
from uuid import uuid4

import cbor2
import pycose.headers
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurve
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)
from cryptography.x509 import load_pem_x509_certificate
from cryptography.x509.oid import NameOID
from pycose.keys.cosekey import CoseKey
from pycose.keys.curves import P256, P384, P521
from pycose.messages import Sign1Message

from .errors import SignatureError

REGISTERED_EC_CURVES = {
    "P-256": P256,
    "P-384": P384,
    "P-521": P521,
}

DEFAULT_ALGORITHM_FOR_CURVE = {
    "P-256": "ES256",
    "P-384": "ES384",
    "P-521": "ES512",
}

Pem = str

CORIM_CONTENT_TYPE = "application/rim+cbor"
COSE_HEADER_PARAM_CORIM_META = 8

PEM_CERTIFICATE_MARKER = "-----BEGIN CERTIFICATE-----"


def generate_ec_keypair(curve: str) -> Tuple[Pem, Pem]:
    if curve not in REGISTERED_EC_CURVES:
        raise NotImplementedError(f"Unsupported curve: {curve}")
    curve_obj = REGISTERED_EC_CURVES[curve].curve_obj
    assert isinstance(curve_obj, EllipticCurve)
    priv = ec.generate_private_key(curve=curve_obj)
    pub = priv.public_key()
    priv_pem = priv.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    ).decode("ascii")
    pub_pem = pub.public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo).decode(
        "ascii"
    )
    return priv_pem, pub_pem


def generate_cert(private_key_pem: Pem, *, cn: Optional[str] = None) -> Pem:
    """
    Create a self-signed certificate for the given private key.
    """
    if not cn:
        cn = str(uuid4())
    key = load_pem_private_key(private_key_pem.encode("ascii"), None)
    assert isinstance(key, ec.EllipticCurvePrivateKey)

    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=10))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(Encoding.PEM).decode("ascii")


def get_cert_public_key(pem: Pem) -> Pem:
    cert = load_pem_x509_certificate(pem.encode("ascii"))
    key = cert.public_key()
    return key.public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo).decode(
        "ascii"
    )


def load_public_key(key_path: Path) -> Pem:
    """
    Read a PEM public key from a file. If the file holds a certificate, the
    certificate's public key is returned instead.
    """
    try:
        pem = key_path.read_text()
        if PEM_CERTIFICATE_MARKER in pem:
            pem = get_cert_public_key(pem)
    except (OSError, ValueError) as e:
        raise SignatureError(
            f"Failed to load verification key {key_path}: {e}"
        ) from e
    return pem


def cose_public_key_from_pem(pem: Pem) -> CoseKey:
    if PEM_CERTIFICATE_MARKER in pem:
        pem = get_cert_public_key(pem)
    return CoseKey.from_pem_public_key(pem)


def cose_private_key_from_pem(pem: Pem) -> CoseKey:
    return CoseKey.from_pem_private_key(pem)


def default_algorithm_for_private_key(key_pem: Pem) -> str:
    key = load_pem_private_key(key_pem.encode("ascii"), None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise NotImplementedError("unsupported key type")
    for name, curve in REGISTERED_EC_CURVES.items():
        if key.curve.name == curve.curve_obj.name:
            return DEFAULT_ALGORITHM_FOR_CURVE[name]
    raise NotImplementedError(f"Unsupported curve: {key.curve.name}")


def sign_corim(
    private_key: Pem,
    corim: bytes,
    *,
    kid: Optional[bytes] = None,
    signer_name: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> bytes:
    """
    Wrap an encoded unsigned CoRIM in a tagged COSE_Sign1 envelope.

    If signer_name is given, a CoRIM meta map naming the signer is added to
    the protected headers.
    """
    headers: dict = {}
    headers[pycose.headers.Algorithm] = algorithm or default_algorithm_for_private_key(
        private_key
    )
    headers[pycose.headers.ContentType] = CORIM_CONTENT_TYPE
    if kid is not None:
        headers[pycose.headers.KID] = kid
    if signer_name is not None:
        headers[COSE_HEADER_PARAM_CORIM_META] = cbor2.dumps({0: {0: signer_name}})

    msg = Sign1Message(phdr=headers, payload=corim)
    msg.key = cose_private_key_from_pem(private_key)
    return msg.encode(tag=True)
