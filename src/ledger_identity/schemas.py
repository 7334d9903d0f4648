"""Pydantic models describing persisted identity records."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "ENTITY_ID_PATTERN",
    "EVM_ADDRESS_PATTERN",
    "AliasRecord",
    "CredentialRecord",
    "EntityType",
    "KeyAlgorithm",
    "KeyManagerKind",
    "Network",
    "is_entity_id",
    "is_evm_address",
]

ENTITY_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"^0\.0\.[1-9][0-9]*$")
EVM_ADDRESS_PATTERN: Final[re.Pattern[str]] = re.compile(r"^0x[0-9a-fA-F]{40}$")


class Network(str, Enum):
    """Ledger networks an alias or operator can be scoped to."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    PREVIEWNET = "previewnet"
    LOCALNET = "localnet"


class EntityType(str, Enum):
    """Kinds of ledger entity an alias can point at."""

    ACCOUNT = "account"
    TOKEN = "token"
    TOPIC = "topic"
    CONTRACT = "contract"


class KeyAlgorithm(str, Enum):
    """Signature algorithms understood by the key vault."""

    ECDSA = "ecdsa"
    ED25519 = "ed25519"


class KeyManagerKind(str, Enum):
    """Secret storage backends available to the key vault."""

    LOCAL = "local"
    LOCAL_ENCRYPTED = "local_encrypted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_entity_id(value: str) -> bool:
    """Return ``True`` when ``value`` is a canonical ``0.0.N`` entity id."""

    return bool(ENTITY_ID_PATTERN.fullmatch(value))


def is_evm_address(value: str) -> bool:
    """Return ``True`` when ``value`` looks like a 20-byte EVM address."""

    return bool(EVM_ADDRESS_PATTERN.fullmatch(value))


class AliasRecord(BaseModel):
    """Immutable pointer from a ``(network, alias)`` pair to a ledger entity.

    ``public_key`` and ``key_ref_id`` are only present when the alias also
    names a signing identity controlled through the key vault.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    alias: str = Field(
        ...,
        min_length=1,
        description="Case-sensitive, user chosen name.",
    )
    entity_type: EntityType = Field(
        ...,
        description="Kind of entity the alias points at.",
    )
    network: Network = Field(
        ...,
        description="Network the alias is scoped to.",
    )
    entity_id: str | None = Field(
        default=None,
        description="Canonical ledger identifier (for example '0.0.1234').",
    )
    evm_address: str | None = Field(
        default=None,
        description="EVM-compatible address of the entity, when known.",
    )
    public_key: str | None = Field(
        default=None,
        description="Hex encoded public key of the signing identity.",
    )
    key_ref_id: str | None = Field(
        default=None,
        description="Opaque key vault reference for the signing identity.",
    )
    metadata: dict[str, object] | None = Field(
        default=None,
        description="Auxiliary data recorded by the command that created the alias.",
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="Registration timestamp (UTC).",
    )

    @property
    def storage_key(self) -> str:
        """Key under which the record is persisted."""

        return f"{self.network.value}:{self.alias}"

    def model_dump_json_ready(self) -> dict[str, object]:
        """Return a JSON-serialisable payload with ``None`` values removed."""

        return self.model_dump(mode="json", exclude_none=True)


class CredentialRecord(BaseModel):
    """Plaintext metadata describing a key held by the vault.

    The record never contains private key material; it only says which key
    manager owns the secret stored under ``key_ref_id``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    key_ref_id: str = Field(..., pattern=r"^kr_[A-Za-z0-9]+$")
    key_manager: KeyManagerKind
    key_algorithm: KeyAlgorithm
    public_key: str = Field(..., min_length=1)
    labels: tuple[str, ...] = ()
    created_at: datetime = Field(default_factory=_utcnow)

    def model_dump_json_ready(self) -> dict[str, object]:
        """Return a JSON-serialisable payload."""

        return self.model_dump(mode="json")
