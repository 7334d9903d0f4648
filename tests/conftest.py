"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys

import pytest

# Ensure src/ is on sys.path for tests so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from ledger_identity.aliases import AliasRegistry  # noqa: E402
from ledger_identity.network import NetworkService  # noqa: E402
from ledger_identity.resolution import KeyResolver, ReferenceResolver  # noqa: E402
from ledger_identity.schemas import Network  # noqa: E402
from ledger_identity.storage import MemoryStateStore  # noqa: E402
from ledger_identity.vault import KeyVault  # noqa: E402

# secp256k1 scalar and Ed25519 seed used across tests. Not secret.
ECDSA_PRIVATE_KEY = "0x" + "11" * 32
ED25519_PRIVATE_KEY = "22" * 32


@pytest.fixture
def store() -> MemoryStateStore:
    """Fresh in-memory state store."""

    return MemoryStateStore()


@pytest.fixture
def registry(store: MemoryStateStore) -> AliasRegistry:
    return AliasRegistry(store)


@pytest.fixture
def vault(store: MemoryStateStore) -> KeyVault:
    return KeyVault(store, passphrase="correct horse battery staple")


@pytest.fixture
def network(store: MemoryStateStore) -> NetworkService:
    return NetworkService(store, default_network=Network.TESTNET)


@pytest.fixture
def key_resolver(
    registry: AliasRegistry, vault: KeyVault, network: NetworkService
) -> KeyResolver:
    return KeyResolver(registry, vault, network)


@pytest.fixture
def reference_resolver(registry: AliasRegistry) -> ReferenceResolver:
    return ReferenceResolver(registry)
