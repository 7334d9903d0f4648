"""Per-invocation wiring of the store, registry, vault and resolvers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .aliases import AliasRegistry
from .network import NetworkService
from .resolution import KeyResolver, ReferenceResolver
from .schemas import Network
from .settings import IdentitySettings, get_settings
from .storage import FileStateStore, StateStore
from .vault import KeyVault

__all__ = ["IdentityContext", "build_context"]


@dataclass(slots=True)
class IdentityContext:
    """Explicitly owned collaborators for one command invocation."""

    settings: IdentitySettings
    store: StateStore
    aliases: AliasRegistry
    vault: KeyVault
    network: NetworkService
    keys: KeyResolver
    references: ReferenceResolver


def build_context(
    settings: IdentitySettings | None = None,
    *,
    store: StateStore | None = None,
) -> IdentityContext:
    """Construct the resolution collaborators once for an invocation.

    Args:
        settings: Optional pre-instantiated settings. When omitted
            :func:`ledger_identity.settings.get_settings` is used.
        store: Optional state store. Defaults to a :class:`FileStateStore`
            rooted at ``settings.state_dir``.
    """

    effective = settings or get_settings()
    state = store if store is not None else FileStateStore(Path(effective.state_dir))
    aliases = AliasRegistry(state)
    vault = KeyVault(
        state,
        passphrase=effective.vault_passphrase,
        ed25519_enabled=effective.ed25519_enabled,
    )
    network = NetworkService(
        state, default_network=effective.network or Network.TESTNET
    )
    return IdentityContext(
        settings=effective,
        store=state,
        aliases=aliases,
        vault=vault,
        network=network,
        keys=KeyResolver(
            aliases,
            vault,
            network,
            default_algorithm=effective.default_algorithm,
        ),
        references=ReferenceResolver(aliases),
    )
