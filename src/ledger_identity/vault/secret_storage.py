"""Secret storage backends behind the vault's key managers."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..errors import ConfigurationError, StorageError
from ..schemas import KeyAlgorithm
from ..storage import StateStore

LOGGER = logging.getLogger(__name__)

PLAIN_NAMESPACE: Final[str] = "kms-secrets"
ENCRYPTED_NAMESPACE: Final[str] = "kms-secrets-encrypted"

_SCRYPT_N: Final[int] = 2**14
_SCRYPT_R: Final[int] = 8
_SCRYPT_P: Final[int] = 1
_SALT_BYTES: Final[int] = 16
_NONCE_BYTES: Final[int] = 12


@dataclass(frozen=True, slots=True)
class StoredSecret:
    """Decrypted secret as handed to the vault. Never leaves the vault."""

    key_algorithm: KeyAlgorithm
    private_key: str
    created_at: str

    def __repr__(self) -> str:
        return f"StoredSecret(key_algorithm={self.key_algorithm.value!r}, private_key=<redacted>)"


class SecretStorage(ABC):
    """Persist private key material for one key manager."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    @abstractmethod
    def write(self, key_ref_id: str, secret: StoredSecret) -> None:
        """Persist ``secret`` under ``key_ref_id``."""

    @abstractmethod
    def read(self, key_ref_id: str) -> StoredSecret | None:
        """Return the secret stored under ``key_ref_id``."""

    @abstractmethod
    def remove(self, key_ref_id: str) -> None:
        """Delete the secret stored under ``key_ref_id``."""


def _algorithm_from(raw: dict[object, object], key_ref_id: str) -> KeyAlgorithm:
    try:
        return KeyAlgorithm(str(raw.get("key_algorithm")))
    except ValueError as exc:
        raise StorageError(
            "Stored secret has an unknown key algorithm",
            context={"key_ref_id": key_ref_id},
        ) from exc


class PlainSecretStorage(SecretStorage):
    """Plaintext storage used by the ``local`` key manager."""

    def write(self, key_ref_id: str, secret: StoredSecret) -> None:
        self._store.set(
            PLAIN_NAMESPACE,
            key_ref_id,
            {
                "key_algorithm": secret.key_algorithm.value,
                "private_key": secret.private_key,
                "created_at": secret.created_at,
            },
        )

    def read(self, key_ref_id: str) -> StoredSecret | None:
        raw = self._store.get(PLAIN_NAMESPACE, key_ref_id)
        if not isinstance(raw, dict) or not isinstance(raw.get("private_key"), str):
            return None
        return StoredSecret(
            key_algorithm=_algorithm_from(raw, key_ref_id),
            private_key=raw["private_key"],
            created_at=str(raw.get("created_at", "")),
        )

    def remove(self, key_ref_id: str) -> None:
        self._store.delete(PLAIN_NAMESPACE, key_ref_id)


class EncryptedSecretStorage(SecretStorage):
    """AES-256-GCM storage used by the ``local_encrypted`` key manager.

    Every secret gets its own scrypt salt and GCM nonce. The key reference id
    is bound as associated data, so a ciphertext copied under another id
    fails to decrypt.
    """

    def __init__(self, store: StateStore, passphrase: str) -> None:
        super().__init__(store)
        if not passphrase:
            raise ConfigurationError(
                "The local_encrypted key manager requires a vault passphrase"
            )
        self._passphrase = passphrase.encode("utf-8")

    def _derive(self, salt: bytes) -> bytes:
        kdf = Scrypt(salt=salt, length=32, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)
        return kdf.derive(self._passphrase)

    def write(self, key_ref_id: str, secret: StoredSecret) -> None:
        salt = os.urandom(_SALT_BYTES)
        nonce = os.urandom(_NONCE_BYTES)
        ciphertext = AESGCM(self._derive(salt)).encrypt(
            nonce, secret.private_key.encode("utf-8"), key_ref_id.encode("utf-8")
        )
        self._store.set(
            ENCRYPTED_NAMESPACE,
            key_ref_id,
            {
                "key_algorithm": secret.key_algorithm.value,
                "salt": salt.hex(),
                "nonce": nonce.hex(),
                "ciphertext": ciphertext.hex(),
                "created_at": secret.created_at,
            },
        )

    def read(self, key_ref_id: str) -> StoredSecret | None:
        raw = self._store.get(ENCRYPTED_NAMESPACE, key_ref_id)
        if not isinstance(raw, dict):
            return None
        try:
            salt = bytes.fromhex(str(raw["salt"]))
            nonce = bytes.fromhex(str(raw["nonce"]))
            ciphertext = bytes.fromhex(str(raw["ciphertext"]))
        except (KeyError, ValueError) as exc:
            raise StorageError(
                "Encrypted secret is malformed",
                context={"key_ref_id": key_ref_id},
            ) from exc
        try:
            plaintext = AESGCM(self._derive(salt)).decrypt(
                nonce, ciphertext, key_ref_id.encode("utf-8")
            )
        except InvalidTag as exc:
            LOGGER.warning(
                "Failed to decrypt vault secret", extra={"key_ref_id": key_ref_id}
            )
            raise ConfigurationError(
                "Unable to decrypt secret; check the vault passphrase",
                context={"key_ref_id": key_ref_id},
            ) from exc
        return StoredSecret(
            key_algorithm=_algorithm_from(raw, key_ref_id),
            private_key=plaintext.decode("utf-8"),
            created_at=str(raw.get("created_at", "")),
        )

    def remove(self, key_ref_id: str) -> None:
        self._store.delete(ENCRYPTED_NAMESPACE, key_ref_id)
