"""Private key parsing, derivation and signing for the supported algorithms.

This module is internal to :mod:`ledger_identity.vault`; nothing outside the
vault package imports it, so parsed key objects never leave the vault.

Accepted private key text:

- optional ``0x`` prefix and optional ``ecdsa:`` / ``ed25519:`` prefix;
- raw 32-byte hex (ECDSA scalar or Ed25519 seed);
- 64-byte hex for Ed25519 (seed followed by the public key);
- DER hex, either the ledger's fixed PKCS#8 layouts or any PKCS#8/SEC1
  document ``cryptography`` can load.
"""

from __future__ import annotations

import re
from typing import Final, TypeAlias

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from ..errors import ValidationError
from ..schemas import KeyAlgorithm

PrivateKey: TypeAlias = ec.EllipticCurvePrivateKey | Ed25519PrivateKey

_HEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9a-fA-F]+$")
_ED25519_DER_PREFIX: Final[bytes] = bytes.fromhex("302e020100300506032b657004220420")
_ECDSA_DER_PREFIX: Final[bytes] = bytes.fromhex(
    "3030020100300706052b8104000a04220420"
)
_SECP256K1_ORDER: Final[int] = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)
_ALGORITHM_PREFIXES: Final[dict[str, KeyAlgorithm]] = {
    "ecdsa:": KeyAlgorithm.ECDSA,
    "ed25519:": KeyAlgorithm.ED25519,
}


def _invalid(algorithm: KeyAlgorithm) -> ValidationError:
    return ValidationError(
        f"Invalid {algorithm.value} private key format",
        context={"key_algorithm": algorithm.value},
    )


def _decode_hex(algorithm: KeyAlgorithm, text: str) -> bytes:
    value = text.strip()
    for prefix, prefix_algorithm in _ALGORITHM_PREFIXES.items():
        if value.lower().startswith(prefix):
            if prefix_algorithm is not algorithm:
                raise _invalid(algorithm)
            value = value[len(prefix) :]
            break
    if value[:2] in ("0x", "0X"):
        value = value[2:]
    if not value or len(value) % 2 or not _HEX_PATTERN.fullmatch(value):
        raise _invalid(algorithm)
    return bytes.fromhex(value)


def _ecdsa_from_scalar(algorithm: KeyAlgorithm, raw: bytes) -> ec.EllipticCurvePrivateKey:
    scalar = int.from_bytes(raw, "big")
    if not 0 < scalar < _SECP256K1_ORDER:
        raise _invalid(algorithm)
    return ec.derive_private_key(scalar, ec.SECP256K1())


def _load_der(algorithm: KeyAlgorithm, raw: bytes) -> PrivateKey:
    try:
        key = serialization.load_der_private_key(raw, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise _invalid(algorithm) from exc
    if algorithm is KeyAlgorithm.ED25519 and isinstance(key, Ed25519PrivateKey):
        return key
    if (
        algorithm is KeyAlgorithm.ECDSA
        and isinstance(key, ec.EllipticCurvePrivateKey)
        and isinstance(key.curve, ec.SECP256K1)
    ):
        return key
    raise _invalid(algorithm)


def parse_private_key(algorithm: KeyAlgorithm, text: str) -> PrivateKey:
    """Parse ``text`` into a private key object for ``algorithm``.

    Raises:
        ValidationError: If the material is not well-formed for ``algorithm``.
    """

    raw = _decode_hex(algorithm, text)
    try:
        if algorithm is KeyAlgorithm.ECDSA:
            if len(raw) == 32:
                return _ecdsa_from_scalar(algorithm, raw)
            if raw.startswith(_ECDSA_DER_PREFIX) and len(raw) == len(_ECDSA_DER_PREFIX) + 32:
                return _ecdsa_from_scalar(algorithm, raw[len(_ECDSA_DER_PREFIX) :])
            return _load_der(algorithm, raw)

        if len(raw) == 32:
            return Ed25519PrivateKey.from_private_bytes(raw)
        if len(raw) == 64:
            key = Ed25519PrivateKey.from_private_bytes(raw[:32])
            if public_key_hex(key) != raw[32:].hex():
                raise _invalid(algorithm)
            return key
        if raw.startswith(_ED25519_DER_PREFIX) and len(raw) == len(_ED25519_DER_PREFIX) + 32:
            return Ed25519PrivateKey.from_private_bytes(raw[len(_ED25519_DER_PREFIX) :])
        return _load_der(algorithm, raw)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise _invalid(algorithm) from exc


def generate_private_key(algorithm: KeyAlgorithm) -> PrivateKey:
    """Generate a fresh private key for ``algorithm``."""

    if algorithm is KeyAlgorithm.ECDSA:
        return ec.generate_private_key(ec.SECP256K1())
    return Ed25519PrivateKey.generate()


def public_key_hex(key: PrivateKey) -> str:
    """Return the public key as hex: compressed SEC1 point or raw Ed25519."""

    if isinstance(key, Ed25519PrivateKey):
        raw = key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
    else:
        raw = key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.CompressedPoint,
        )
    return raw.hex()


def private_key_hex(key: PrivateKey) -> str:
    """Return the canonical 32-byte private key hex stored by secret storage."""

    if isinstance(key, Ed25519PrivateKey):
        return key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        ).hex()
    return key.private_numbers().private_value.to_bytes(32, "big").hex()


def sign_message(key: PrivateKey, message: bytes) -> bytes:
    """Sign ``message``.

    Ed25519 returns the 64-byte signature. ECDSA signs a SHA-256 digest and
    returns the 64-byte ``r || s`` concatenation.
    """

    if isinstance(key, Ed25519PrivateKey):
        return key.sign(message)
    der = key.sign(message, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def normalise_public_key(public_key: str) -> str:
    """Lower-case a public key hex string and drop a ``0x`` prefix."""

    value = public_key.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    return value
