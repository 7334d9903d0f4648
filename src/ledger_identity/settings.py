"""Environment-backed settings primitives for :mod:`ledger_identity`."""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas import KeyAlgorithm, KeyManagerKind, Network

__all__ = ["IdentitySettings", "get_settings"]

_DEFAULT_STATE_DIR = ".ledger-identity/state"


class IdentitySettings(BaseSettings):
    """Expose environment-derived configuration knobs.

    All environment access for the package goes through this class. Values
    that cannot be parsed fall back to their defaults instead of aborting the
    command, mirroring how operators typically export partial configuration.

    Attributes:
        state_dir: Directory holding the per-namespace JSON state files.
        network: Network used when no network has been selected in state.
        key_manager: Key manager used for inline keypair imports.
        default_algorithm: Algorithm assumed for bare ``accountId:key`` input.
        vault_passphrase: Passphrase for the ``local_encrypted`` key manager.
        ed25519_enabled: Whether Ed25519 keys may be created or imported.
        log_level: Logging verbosity name (``DEBUG``, ``INFO``...).
    """

    state_dir: str = Field(
        default=_DEFAULT_STATE_DIR, alias="LEDGER_IDENTITY_STATE_DIR"
    )
    network: Network | None = Field(default=None, alias="LEDGER_IDENTITY_NETWORK")
    key_manager: KeyManagerKind = Field(
        default=KeyManagerKind.LOCAL, alias="LEDGER_IDENTITY_KEY_MANAGER"
    )
    default_algorithm: KeyAlgorithm = Field(
        default=KeyAlgorithm.ECDSA, alias="LEDGER_IDENTITY_DEFAULT_ALGORITHM"
    )
    vault_passphrase: str | None = Field(
        default=None, alias="LEDGER_IDENTITY_VAULT_PASSPHRASE", repr=False
    )
    ed25519_enabled: bool = Field(default=True, alias="LEDGER_IDENTITY_ED25519_ENABLED")
    log_level: str = Field(default="WARNING", alias="LEDGER_IDENTITY_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=None, extra="ignore", populate_by_name=True
    )

    @field_validator("network", mode="before")
    @classmethod
    def _parse_network(cls, value: object) -> Network | None:
        """Return a :class:`Network` or ``None`` for unknown names."""

        if value is None or isinstance(value, Network):
            return value
        if isinstance(value, str):
            try:
                return Network(value.strip().lower())
            except ValueError:
                return None
        return None

    @field_validator("key_manager", mode="before")
    @classmethod
    def _parse_key_manager(cls, value: object) -> KeyManagerKind:
        if isinstance(value, str):
            try:
                return KeyManagerKind(value.strip().lower())
            except ValueError:
                return KeyManagerKind.LOCAL
        if isinstance(value, KeyManagerKind):
            return value
        return KeyManagerKind.LOCAL

    @field_validator("default_algorithm", mode="before")
    @classmethod
    def _parse_algorithm(cls, value: object) -> KeyAlgorithm:
        if isinstance(value, str):
            try:
                return KeyAlgorithm(value.strip().lower())
            except ValueError:
                return KeyAlgorithm.ECDSA
        if isinstance(value, KeyAlgorithm):
            return value
        return KeyAlgorithm.ECDSA

    @field_validator("ed25519_enabled", mode="before")
    @classmethod
    def _parse_flag(cls, value: object) -> bool:
        """Parse boolean flags while tolerating malformed input."""

        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() not in {"0", "false", "no", "off"}
        return True

    @field_validator("log_level", mode="before")
    @classmethod
    def _parse_log_level(cls, value: object) -> str:
        if isinstance(value, str) and value.strip():
            name = value.strip().upper()
            if isinstance(logging.getLevelName(name), int):
                return name
        return "WARNING"

    @property
    def log_level_number(self) -> int:
        """Return the numeric logging level."""

        return logging.getLevelName(self.log_level)


def get_settings() -> IdentitySettings:
    """Return an :class:`IdentitySettings` instance parsed from the environment."""

    return IdentitySettings()
