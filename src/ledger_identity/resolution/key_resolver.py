"""Resolve a key-or-alias argument into a signing identity."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..aliases import AliasRegistry
from ..errors import IncompleteRecordError, InvalidInputError, NotFoundError
from ..network import NetworkService
from ..schemas import EntityType, KeyAlgorithm, KeyManagerKind
from ..vault import KeyVault
from .inputs import Absent, Alias, KeyOrAliasInput, Keypair, parse_key_or_alias

__all__ = ["KeyResolver", "ResolvedIdentity"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    """Account, public key and vault reference for one command invocation."""

    account_id: str
    public_key: str
    key_ref_id: str


class KeyResolver:
    """Apply the inline keypair -> alias -> operator precedence.

    Args:
        aliases: Alias registry consulted for alias input.
        vault: Key vault used to import inline keys and look up operators.
        network: Source of the current network and its operator.
        default_algorithm: Algorithm assumed for inline ``accountId:key``
            input. Chosen by the caller, not inferred from the key.
    """

    def __init__(
        self,
        aliases: AliasRegistry,
        vault: KeyVault,
        network: NetworkService,
        *,
        default_algorithm: KeyAlgorithm = KeyAlgorithm.ECDSA,
    ) -> None:
        self._aliases = aliases
        self._vault = vault
        self._network = network
        self._default_algorithm = default_algorithm

    def get_or_init_key(
        self,
        key_or_alias: KeyOrAliasInput | str | None,
        key_manager: KeyManagerKind = KeyManagerKind.LOCAL,
        labels: Iterable[str] | None = None,
    ) -> ResolvedIdentity:
        """Resolve an explicit keypair or alias.

        Raises:
            InvalidInputError: If the input is absent or empty.
            ValidationError: If an inline private key is malformed.
            NotFoundError: If no account alias with that name exists.
            IncompleteRecordError: If the alias lacks key material.
        """

        parsed = self._parse(key_or_alias)
        if isinstance(parsed, Keypair):
            return self._resolve_keypair(parsed, key_manager, labels)
        if isinstance(parsed, Alias):
            return self._resolve_alias(parsed.name)
        raise InvalidInputError(
            "A key or account alias is required",
            context={"network": self._network.get_current_network().value},
        )

    def get_or_init_key_with_fallback(
        self,
        key_or_alias: KeyOrAliasInput | str | None,
        key_manager: KeyManagerKind = KeyManagerKind.LOCAL,
        labels: Iterable[str] | None = None,
    ) -> ResolvedIdentity:
        """Resolve like :meth:`get_or_init_key`, defaulting to the operator.

        Absent input resolves to the current network's operator without
        touching the alias registry.

        Raises:
            OperatorNotConfiguredError: If input is absent and no operator is set.
            NotFoundError: If the operator's key reference is unknown to the vault.
        """

        parsed = self._parse(key_or_alias)
        if not isinstance(parsed, Absent):
            return self.get_or_init_key(parsed, key_manager, labels)

        operator = self._network.get_current_operator_or_raise()
        public_key = self._vault.get_public_key(operator.key_ref_id)
        LOGGER.debug(
            "Resolved signing identity from operator",
            extra={"account_id": operator.account_id},
        )
        return ResolvedIdentity(
            account_id=operator.account_id,
            public_key=public_key,
            key_ref_id=operator.key_ref_id,
        )

    @staticmethod
    def _parse(key_or_alias: KeyOrAliasInput | str | None) -> KeyOrAliasInput:
        if key_or_alias is None or isinstance(key_or_alias, str):
            return parse_key_or_alias(key_or_alias)
        return key_or_alias

    def _resolve_keypair(
        self,
        keypair: Keypair,
        key_manager: KeyManagerKind,
        labels: Iterable[str] | None,
    ) -> ResolvedIdentity:
        imported = self._vault.import_private_key(
            self._default_algorithm, keypair.private_key, key_manager, labels
        )
        LOGGER.debug(
            "Resolved signing identity from inline keypair",
            extra={"account_id": keypair.account_id, "key_ref_id": imported.key_ref_id},
        )
        return ResolvedIdentity(
            account_id=keypair.account_id,
            public_key=imported.public_key,
            key_ref_id=imported.key_ref_id,
        )

    def _resolve_alias(self, name: str) -> ResolvedIdentity:
        network = self._network.get_current_network()
        record = self._aliases.resolve(name, EntityType.ACCOUNT, network)
        context: dict[str, object] = {"alias": name, "network": network.value}
        if record is None:
            raise NotFoundError(
                f'No account associated with alias "{name}" on {network.value}',
                context=context,
            )
        if not record.public_key or not record.key_ref_id or not record.entity_id:
            raise IncompleteRecordError(
                f'Alias "{name}" exists but lacks a usable signing key',
                context=context,
            )
        return ResolvedIdentity(
            account_id=record.entity_id,
            public_key=record.public_key,
            key_ref_id=record.key_ref_id,
        )
