"""Current-network and operator bookkeeping backed by the state store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from .errors import OperatorNotConfiguredError
from .schemas import Network
from .storage import StateStore

__all__ = ["NETWORK_NAMESPACE", "NetworkService", "Operator"]

LOGGER = logging.getLogger(__name__)

NETWORK_NAMESPACE: Final[str] = "network-config"
_CURRENT_NETWORK_KEY: Final[str] = "current"


@dataclass(frozen=True, slots=True)
class Operator:
    """Default signing identity configured for a network."""

    account_id: str
    key_ref_id: str


class NetworkService:
    """Track the selected network and each network's operator.

    Args:
        store: State store owning the ``network-config`` namespace.
        default_network: Network used until one is selected explicitly.
    """

    def __init__(
        self, store: StateStore, *, default_network: Network = Network.TESTNET
    ) -> None:
        self._store = store
        self._default_network = default_network

    def get_current_network(self) -> Network:
        """Return the selected network, falling back to the default."""

        raw = self._store.get(NETWORK_NAMESPACE, _CURRENT_NETWORK_KEY)
        if isinstance(raw, str):
            try:
                return Network(raw)
            except ValueError:
                LOGGER.warning(
                    "Ignoring unknown network in state", extra={"network": raw}
                )
        return self._default_network

    def switch_network(self, network: Network) -> None:
        """Persist ``network`` as the current network."""

        LOGGER.debug(
            "Switching network",
            extra={
                "from_network": self.get_current_network().value,
                "to_network": network.value,
            },
        )
        self._store.set(NETWORK_NAMESPACE, _CURRENT_NETWORK_KEY, network.value)

    def set_operator(self, network: Network, operator: Operator) -> None:
        """Configure the operator for ``network``."""

        self._store.set(
            NETWORK_NAMESPACE,
            f"{network.value}Operator",
            {"account_id": operator.account_id, "key_ref_id": operator.key_ref_id},
        )
        LOGGER.debug(
            "Operator configured",
            extra={"network": network.value, "account_id": operator.account_id},
        )

    def get_operator(self, network: Network) -> Operator | None:
        """Return the operator for ``network`` or ``None``."""

        raw = self._store.get(NETWORK_NAMESPACE, f"{network.value}Operator")
        if not isinstance(raw, dict):
            return None
        account_id = raw.get("account_id")
        key_ref_id = raw.get("key_ref_id")
        if not isinstance(account_id, str) or not isinstance(key_ref_id, str):
            return None
        return Operator(account_id=account_id, key_ref_id=key_ref_id)

    def get_current_operator_or_raise(self) -> Operator:
        """Return the current network's operator.

        Raises:
            OperatorNotConfiguredError: If no operator is configured.
        """

        network = self.get_current_network()
        operator = self.get_operator(network)
        if operator is None:
            raise OperatorNotConfiguredError(
                "The network operator is not set.",
                context={"network": network.value},
            )
        return operator
