"""Key vault: the only component that sees raw private key material.

Everything outside this package holds a :data:`KeyRefId` at most. A reference
is only meaningful to the vault instance and backend that issued it: the
credential metadata and the secret live in the vault's state store, and a
vault wired to a different store or passphrase will not recognise (or will
fail to decrypt) references issued elsewhere.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Final, NewType

from pydantic import ValidationError as SchemaValidationError

from ..errors import ConfigurationError, NotFoundError, ValidationError
from ..schemas import CredentialRecord, KeyAlgorithm, KeyManagerKind
from ..storage import StateStore
from . import keys
from .secret_storage import (
    EncryptedSecretStorage,
    PlainSecretStorage,
    SecretStorage,
    StoredSecret,
)

__all__ = [
    "CREDENTIALS_NAMESPACE",
    "ImportedKey",
    "KeyRefId",
    "KeySigner",
    "KeyVault",
]

LOGGER = logging.getLogger(__name__)

CREDENTIALS_NAMESPACE: Final[str] = "kms-credentials"

KeyRefId = NewType("KeyRefId", str)


@dataclass(frozen=True, slots=True)
class ImportedKey:
    """Result of creating or importing a key: a reference plus public key."""

    key_ref_id: KeyRefId
    public_key: str


class KeySigner:
    """Opaque signing handle bound to one vault key.

    The handle exposes the public key and a ``sign`` operation; the private
    key object it wraps is not reachable through its public interface.
    """

    __slots__ = ("_key", "algorithm", "key_ref_id", "public_key")

    def __init__(
        self,
        key_ref_id: KeyRefId,
        algorithm: KeyAlgorithm,
        public_key: str,
        key: keys.PrivateKey,
    ) -> None:
        self.key_ref_id = key_ref_id
        self.algorithm = algorithm
        self.public_key = public_key
        self._key = key

    def sign(self, message: bytes) -> bytes:
        """Return the signature of ``message``."""

        return keys.sign_message(self._key, message)

    def __repr__(self) -> str:
        return (
            f"KeySigner(key_ref_id={self.key_ref_id!r}, "
            f"algorithm={self.algorithm.value!r}, public_key={self.public_key!r})"
        )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class KeyVault:
    """Owns private keys and hands out opaque references.

    Args:
        store: State store for credential metadata and plaintext secrets.
        passphrase: Passphrase enabling the ``local_encrypted`` key manager.
            When omitted that manager is unavailable.
        ed25519_enabled: Whether Ed25519 keys may be created or imported.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        passphrase: str | None = None,
        ed25519_enabled: bool = True,
    ) -> None:
        self._store = store
        self._ed25519_enabled = ed25519_enabled
        self._managers: dict[KeyManagerKind, SecretStorage] = {
            KeyManagerKind.LOCAL: PlainSecretStorage(store),
        }
        if passphrase:
            self._managers[KeyManagerKind.LOCAL_ENCRYPTED] = EncryptedSecretStorage(
                store, passphrase
            )

    def import_private_key(
        self,
        algorithm: KeyAlgorithm,
        private_key: str,
        key_manager: KeyManagerKind = KeyManagerKind.LOCAL,
        labels: Iterable[str] | None = None,
    ) -> ImportedKey:
        """Validate and store ``private_key``, returning a fresh reference.

        Every call issues a new reference, even for key material the vault
        already holds; use :meth:`find_by_public_key` to detect duplicates.

        Raises:
            ValidationError: If ``private_key`` is malformed for ``algorithm``.
            ConfigurationError: If the algorithm or key manager is unavailable.
        """

        self._check_algorithm(algorithm)
        parsed = keys.parse_private_key(algorithm, private_key)
        return self._store_key(algorithm, parsed, key_manager, labels)

    def import_and_validate_private_key(
        self,
        algorithm: KeyAlgorithm,
        private_key: str,
        expected_public_key: str,
        key_manager: KeyManagerKind = KeyManagerKind.LOCAL,
        labels: Iterable[str] | None = None,
    ) -> ImportedKey:
        """Import ``private_key`` after checking it matches ``expected_public_key``.

        Raises:
            ValidationError: If the derived public key differs.
        """

        self._check_algorithm(algorithm)
        parsed = keys.parse_private_key(algorithm, private_key)
        derived = keys.public_key_hex(parsed)
        if derived != keys.normalise_public_key(expected_public_key):
            raise ValidationError(
                "Given account id doesn't correspond with private key",
                context={"key_algorithm": algorithm.value},
            )
        return self._store_key(algorithm, parsed, key_manager, labels)

    def create_private_key(
        self,
        algorithm: KeyAlgorithm,
        key_manager: KeyManagerKind = KeyManagerKind.LOCAL,
        labels: Iterable[str] | None = None,
    ) -> ImportedKey:
        """Generate a new key inside the vault."""

        self._check_algorithm(algorithm)
        return self._store_key(
            algorithm, keys.generate_private_key(algorithm), key_manager, labels
        )

    def get_public_key(self, key_ref_id: str) -> str:
        """Return the public key for ``key_ref_id``.

        Raises:
            NotFoundError: If the reference is unknown to this vault.
        """

        return self._require_record(key_ref_id).public_key

    def find_by_public_key(self, public_key: str) -> KeyRefId | None:
        """Return the first reference holding ``public_key``, if any."""

        target = keys.normalise_public_key(public_key)
        for record in self.list_credentials():
            if record.public_key == target:
                return KeyRefId(record.key_ref_id)
        return None

    def list_credentials(self) -> list[CredentialRecord]:
        """Return credential metadata. Never includes key material."""

        records: list[CredentialRecord] = []
        for raw in self._store.list(CREDENTIALS_NAMESPACE):
            record = self._parse_record(raw)
            if record is not None:
                records.append(record)
        return records

    def remove(self, key_ref_id: str) -> None:
        """Remove a credential's metadata and secret; unknown refs are ignored."""

        record = self._get_record(key_ref_id)
        if record is None:
            LOGGER.debug("Key reference not found", extra={"key_ref_id": key_ref_id})
            return
        manager = self._managers.get(record.key_manager)
        if manager is not None:
            manager.remove(key_ref_id)
        else:
            LOGGER.warning(
                "Key manager unavailable; secret left in place",
                extra={
                    "key_ref_id": key_ref_id,
                    "key_manager": record.key_manager.value,
                },
            )
        self._store.delete(CREDENTIALS_NAMESPACE, key_ref_id)
        LOGGER.debug("Removed key reference", extra={"key_ref_id": key_ref_id})

    def signer_handle(self, key_ref_id: str) -> KeySigner:
        """Return a signing handle for ``key_ref_id``.

        Raises:
            NotFoundError: If the reference or its secret is unknown.
        """

        record = self._require_record(key_ref_id)
        secret = self._manager(record.key_manager).read(key_ref_id)
        if secret is None:
            raise NotFoundError(
                f"Secret not found for key reference: {key_ref_id}",
                context={"key_ref_id": key_ref_id},
            )
        parsed = keys.parse_private_key(record.key_algorithm, secret.private_key)
        return KeySigner(
            KeyRefId(record.key_ref_id), record.key_algorithm, record.public_key, parsed
        )

    def sign(self, key_ref_id: str, message: bytes) -> bytes:
        """Sign ``message`` with the key behind ``key_ref_id``."""

        return self.signer_handle(key_ref_id).sign(message)

    def _check_algorithm(self, algorithm: KeyAlgorithm) -> None:
        if algorithm is KeyAlgorithm.ED25519 and not self._ed25519_enabled:
            raise ConfigurationError(
                "ED25519 support is disabled. Enable it with "
                "LEDGER_IDENTITY_ED25519_ENABLED=true.",
                context={"key_algorithm": algorithm.value},
            )

    def _manager(self, key_manager: KeyManagerKind) -> SecretStorage:
        manager = self._managers.get(key_manager)
        if manager is None:
            raise ConfigurationError(
                f"Key manager not available: {key_manager.value}",
                context={"key_manager": key_manager.value},
            )
        return manager

    def _store_key(
        self,
        algorithm: KeyAlgorithm,
        parsed: keys.PrivateKey,
        key_manager: KeyManagerKind,
        labels: Iterable[str] | None,
    ) -> ImportedKey:
        manager = self._manager(key_manager)
        key_ref_id = KeyRefId(f"kr_{os.urandom(8).hex()}")
        public_key = keys.public_key_hex(parsed)
        created_at = _now_iso()

        manager.write(
            key_ref_id,
            StoredSecret(
                key_algorithm=algorithm,
                private_key=keys.private_key_hex(parsed),
                created_at=created_at,
            ),
        )
        record = CredentialRecord(
            key_ref_id=key_ref_id,
            key_manager=key_manager,
            key_algorithm=algorithm,
            public_key=public_key,
            labels=tuple(labels or ()),
        )
        self._store.set(
            CREDENTIALS_NAMESPACE, key_ref_id, record.model_dump_json_ready()
        )
        LOGGER.debug(
            "Stored key reference",
            extra={
                "key_ref_id": key_ref_id,
                "key_manager": key_manager.value,
                "key_algorithm": algorithm.value,
            },
        )
        return ImportedKey(key_ref_id=key_ref_id, public_key=public_key)

    def _get_record(self, key_ref_id: str) -> CredentialRecord | None:
        return self._parse_record(self._store.get(CREDENTIALS_NAMESPACE, key_ref_id))

    def _require_record(self, key_ref_id: str) -> CredentialRecord:
        record = self._get_record(key_ref_id)
        if record is None:
            raise NotFoundError(
                f"Credential not found: {key_ref_id}",
                context={"key_ref_id": key_ref_id},
            )
        return record

    @staticmethod
    def _parse_record(raw: object) -> CredentialRecord | None:
        if not isinstance(raw, dict):
            return None
        try:
            return CredentialRecord.model_validate(raw)
        except SchemaValidationError as exc:
            LOGGER.warning(
                "Skipping corrupted credential record", extra={"error": str(exc)}
            )
            return None
