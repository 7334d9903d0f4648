"""Alias registry mapping ``(network, alias)`` pairs to ledger entities."""

from __future__ import annotations

import builtins
import logging
from typing import Final

from pydantic import ValidationError as SchemaValidationError

from .errors import AlreadyExistsError, NotFoundError
from .schemas import AliasRecord, EntityType, Network
from .storage import StateStore

__all__ = ["ALIAS_NAMESPACE", "AliasRegistry"]

LOGGER = logging.getLogger(__name__)

ALIAS_NAMESPACE: Final[str] = "aliases"


def _compose_key(network: Network, alias: str) -> str:
    return f"{network.value}:{alias}"


class AliasRegistry:
    """Persisted alias store with network-scoped uniqueness.

    An alias is unique per network across all entity types: ``bob`` cannot be
    both an account and a token on testnet at the same time.

    Lookups that name an expected entity type and hit a record of a different
    type return ``None``, exactly as if the alias had never been registered.
    Callers that need to tell the two apart must call :meth:`exists`.

    Args:
        store: State store owning the ``aliases`` namespace. The registry is
            constructed once per invocation and passed to the resolvers.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def register(self, record: AliasRecord) -> None:
        """Persist ``record``.

        Raises:
            AlreadyExistsError: If ``(record.network, record.alias)`` is taken.
                The store is left untouched.
        """

        # Checked and written under one lock; a losing concurrent writer fails.
        if not self._store.add(
            ALIAS_NAMESPACE, record.storage_key, record.model_dump_json_ready()
        ):
            raise AlreadyExistsError(
                f"Alias already exists for network={record.network.value}: "
                f"{record.alias}",
                context={"alias": record.alias, "network": record.network.value},
            )
        LOGGER.debug(
            "Registered alias",
            extra={
                "alias": record.alias,
                "entity_type": record.entity_type.value,
                "network": record.network.value,
            },
        )

    def resolve(
        self,
        alias: str,
        expected_type: EntityType | None,
        network: Network,
    ) -> AliasRecord | None:
        """Return the record for ``alias`` on ``network``.

        Returns ``None`` when the alias is absent, when the stored value is
        corrupted, or when ``expected_type`` is given and differs from the
        stored entity type.
        """

        raw = self._store.get(ALIAS_NAMESPACE, _compose_key(network, alias))
        if raw is None:
            return None
        record = self._parse(raw)
        if record is None:
            return None
        if expected_type is not None and record.entity_type is not expected_type:
            LOGGER.debug(
                "Alias type mismatch treated as not found",
                extra={
                    "alias": alias,
                    "network": network.value,
                    "expected_type": expected_type.value,
                },
            )
            return None
        return record

    def resolve_or_raise(
        self, alias: str, expected_type: EntityType, network: Network
    ) -> AliasRecord:
        """Like :meth:`resolve` but raise :class:`NotFoundError` on a miss."""

        record = self.resolve(alias, expected_type, network)
        if record is None:
            raise NotFoundError(
                f'Alias "{alias}" for {expected_type.value} on network '
                f'"{network.value}" not found',
                context={
                    "alias": alias,
                    "entity_type": expected_type.value,
                    "network": network.value,
                },
            )
        return record

    def resolve_by_evm_address(
        self,
        evm_address: str,
        network: Network,
        entity_type: EntityType | None = None,
    ) -> AliasRecord | None:
        """Return the first record on ``network`` with a matching EVM address.

        With ``entity_type`` set, records of other types are skipped.
        """

        target = evm_address.lower()
        for record in self.list(network=network, entity_type=entity_type):
            if record.evm_address and record.evm_address.lower() == target:
                return record
        return None

    def list(
        self,
        *,
        network: Network | None = None,
        entity_type: EntityType | None = None,
    ) -> builtins.list[AliasRecord]:
        """Return all records matching the optional filters.

        Null or schema-violating entries are skipped so that one damaged
        record cannot break a listing.
        """

        records: builtins.list[AliasRecord] = []
        for raw in self._store.list(ALIAS_NAMESPACE):
            record = self._parse(raw)
            if record is None:
                continue
            if network is not None and record.network is not network:
                continue
            if entity_type is not None and record.entity_type is not entity_type:
                continue
            records.append(record)
        return records

    def remove(self, alias: str, network: Network) -> None:
        """Remove ``alias`` from ``network``; unknown aliases are ignored."""

        self._store.delete(ALIAS_NAMESPACE, _compose_key(network, alias))
        LOGGER.debug(
            "Removed alias", extra={"alias": alias, "network": network.value}
        )

    def clear(self, entity_type: EntityType) -> None:
        """Remove every alias of ``entity_type`` on all networks."""

        for record in self.list(entity_type=entity_type):
            self._store.delete(ALIAS_NAMESPACE, record.storage_key)
        LOGGER.debug("Cleared aliases", extra={"entity_type": entity_type.value})

    def exists(self, alias: str, network: Network) -> bool:
        """Return ``True`` when ``alias`` is registered on ``network``."""

        return self._store.has(ALIAS_NAMESPACE, _compose_key(network, alias))

    def ensure_available(self, alias: str | None, network: Network) -> None:
        """Raise :class:`AlreadyExistsError` if ``alias`` is already taken.

        A missing alias is accepted, for commands where naming is optional.
        """

        if not alias:
            return
        if self.exists(alias, network):
            raise AlreadyExistsError(
                f'Alias "{alias}" already exists on network "{network.value}"',
                context={"alias": alias, "network": network.value},
            )

    @staticmethod
    def _parse(raw: object) -> AliasRecord | None:
        if not isinstance(raw, dict):
            return None
        try:
            return AliasRecord.model_validate(raw)
        except SchemaValidationError as exc:
            LOGGER.warning(
                "Skipping corrupted alias record",
                extra={"alias": raw.get("alias"), "error": str(exc)},
            )
            return None
