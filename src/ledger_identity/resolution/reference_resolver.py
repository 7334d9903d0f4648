"""Resolve non-signing references (transfer targets and the like) to ids."""

from __future__ import annotations

import logging

from ..aliases import AliasRegistry
from ..errors import IncompleteRecordError, InvalidReferenceError
from ..schemas import EntityType, Network, is_entity_id, is_evm_address

__all__ = ["ReferenceResolver"]

LOGGER = logging.getLogger(__name__)


class ReferenceResolver:
    """Turn an alias-or-id string into an entity id. No key material involved."""

    def __init__(self, aliases: AliasRegistry) -> None:
        self._aliases = aliases

    def resolve_entity(
        self, ref: str, expected_type: EntityType, network: Network
    ) -> str:
        """Return the entity id ``ref`` denotes on ``network``.

        The alias registry is consulted first, so an alias that happens to
        look like an entity id still resolves as an alias. A registered EVM
        address is tried next, then ``ref`` itself if it is a syntactically
        valid entity id.

        Raises:
            InvalidReferenceError: If ``ref`` is neither a known alias nor a
                valid id.
        """

        record = self._aliases.resolve(ref, expected_type, network)
        if record is not None and record.entity_id:
            return record.entity_id

        if is_evm_address(ref):
            by_address = self._aliases.resolve_by_evm_address(
                ref, network, expected_type
            )
            if by_address is not None and by_address.entity_id:
                return by_address.entity_id

        if is_entity_id(ref):
            return ref

        LOGGER.debug(
            "Unresolvable reference",
            extra={"reference": ref, "network": network.value},
        )
        raise InvalidReferenceError(
            f'"{ref}" is neither a valid id nor a known {expected_type.value} '
            f"alias on {network.value}",
            context={
                "reference": ref,
                "entity_type": expected_type.value,
                "network": network.value,
            },
        )

    def resolve_alias_entity(
        self, alias: str, expected_type: EntityType, network: Network
    ) -> str:
        """Return the entity id of a registered alias.

        Raises:
            NotFoundError: If the alias is unknown or of another type.
            IncompleteRecordError: If the record has no entity id.
        """

        record = self._aliases.resolve_or_raise(alias, expected_type, network)
        if not record.entity_id:
            raise IncompleteRecordError(
                f'Alias "{alias}" for type {expected_type.value} does not have '
                "an associated entity ID.",
                context={"alias": alias, "network": network.value},
            )
        return record.entity_id
