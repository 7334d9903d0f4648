"""Tests for the alias registry."""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from ledger_identity.aliases import ALIAS_NAMESPACE, AliasRegistry
from ledger_identity.errors import AlreadyExistsError, NotFoundError
from ledger_identity.schemas import AliasRecord, EntityType, Network
from ledger_identity.storage import FileStateStore, MemoryStateStore


def _record(
    alias: str = "bob",
    entity_type: EntityType = EntityType.ACCOUNT,
    network: Network = Network.TESTNET,
    **fields: object,
) -> AliasRecord:
    return AliasRecord(
        alias=alias,
        entity_type=entity_type,
        network=network,
        entity_id=fields.pop("entity_id", "0.0.1001"),
        **fields,
    )


@settings(max_examples=50)
@given(
    alias=st.text(min_size=1, max_size=24),
    networks=st.lists(
        st.sampled_from(list(Network)), min_size=2, max_size=2, unique=True
    ),
)
def test_alias_uniqueness_is_scoped_per_network(
    alias: str, networks: list[Network]
) -> None:
    """The same alias registers independently on two different networks."""

    registry = AliasRegistry(MemoryStateStore())
    first, second = networks

    registry.register(_record(alias, network=first))
    registry.register(_record(alias, network=second, entity_id="0.0.2002"))

    assert registry.resolve(alias, None, first).entity_id == "0.0.1001"
    assert registry.resolve(alias, None, second).entity_id == "0.0.2002"


def test_duplicate_registration_fails_without_mutation(
    registry: AliasRegistry, store: MemoryStateStore
) -> None:
    registry.register(_record("bob", entity_id="0.0.1"))
    before = store.get(ALIAS_NAMESPACE, "testnet:bob")

    with pytest.raises(AlreadyExistsError) as excinfo:
        registry.register(_record("bob", entity_type=EntityType.TOKEN, entity_id="0.0.2"))

    assert excinfo.value.context == {"alias": "bob", "network": "testnet"}
    assert store.get(ALIAS_NAMESPACE, "testnet:bob") == before
    assert len(registry.list()) == 1


def test_concurrent_registration_loser_fails_on_file_store(tmp_path: Path) -> None:
    state_dir = tmp_path / "state"
    winner = AliasRegistry(FileStateStore(state_dir))

    class _InterleavedStore(FileStateStore):
        """Lets the other registry win just before this one writes."""

        def add(self, namespace: str, key: str, value: object) -> bool:
            winner.register(_record("bob", entity_id="0.0.1"))
            return super().add(namespace, key, value)

    loser = AliasRegistry(_InterleavedStore(state_dir))

    with pytest.raises(AlreadyExistsError):
        loser.register(_record("bob", entity_type=EntityType.TOKEN, entity_id="0.0.2"))

    stored = winner.resolve("bob", None, Network.TESTNET)
    assert stored is not None
    assert stored.entity_type is EntityType.ACCOUNT
    assert stored.entity_id == "0.0.1"


def test_uniqueness_spans_entity_types(registry: AliasRegistry) -> None:
    registry.register(_record("bob"))
    with pytest.raises(AlreadyExistsError):
        registry.register(_record("bob", entity_type=EntityType.TOPIC))


def test_resolve_matches_type_or_returns_none(registry: AliasRegistry) -> None:
    registry.register(_record("bob"))

    assert registry.resolve("bob", EntityType.ACCOUNT, Network.TESTNET) is not None
    assert registry.resolve("bob", None, Network.TESTNET) is not None
    # Stored as an account: a token lookup reads as "not found".
    assert registry.resolve("bob", EntityType.TOKEN, Network.TESTNET) is None
    assert registry.exists("bob", Network.TESTNET)


def test_resolve_unknown_alias_returns_none(registry: AliasRegistry) -> None:
    assert registry.resolve("ghost", EntityType.ACCOUNT, Network.MAINNET) is None


def test_resolve_or_raise_names_alias_type_and_network(registry: AliasRegistry) -> None:
    registry.register(_record("bob"))

    with pytest.raises(NotFoundError) as excinfo:
        registry.resolve_or_raise("bob", EntityType.CONTRACT, Network.TESTNET)

    message = str(excinfo.value)
    assert "bob" in message
    assert "contract" in message
    assert "testnet" in message
    assert excinfo.value.context["entity_type"] == "contract"


def test_aliases_are_case_sensitive_and_unicode(registry: AliasRegistry) -> None:
    registry.register(_record("Bob"))
    registry.register(_record("bob", entity_id="0.0.7"))
    registry.register(_record("ボブ", entity_id="0.0.8"))

    assert registry.resolve("Bob", None, Network.TESTNET).entity_id == "0.0.1001"
    assert registry.resolve("bob", None, Network.TESTNET).entity_id == "0.0.7"
    assert registry.resolve("ボブ", None, Network.TESTNET).entity_id == "0.0.8"


def test_remove_then_exists_is_false(registry: AliasRegistry) -> None:
    registry.register(_record("bob"))
    registry.remove("bob", Network.TESTNET)

    assert not registry.exists("bob", Network.TESTNET)
    # Removing again, or removing something never registered, is fine.
    registry.remove("bob", Network.TESTNET)
    registry.remove("never", Network.MAINNET)


def test_remove_is_network_scoped(registry: AliasRegistry) -> None:
    registry.register(_record("bob", network=Network.TESTNET))
    registry.register(_record("bob", network=Network.MAINNET))

    registry.remove("bob", Network.TESTNET)

    assert registry.exists("bob", Network.MAINNET)


def test_ensure_available(registry: AliasRegistry) -> None:
    registry.ensure_available(None, Network.TESTNET)
    registry.ensure_available("", Network.TESTNET)
    registry.ensure_available("bob", Network.TESTNET)

    registry.register(_record("bob"))

    with pytest.raises(AlreadyExistsError):
        registry.ensure_available("bob", Network.TESTNET)
    registry.ensure_available("bob", Network.PREVIEWNET)


def test_list_filters_and_skips_corrupted_entries(
    registry: AliasRegistry, store: MemoryStateStore
) -> None:
    registry.register(_record("a"))
    registry.register(_record("b", entity_type=EntityType.TOKEN))
    registry.register(_record("c", network=Network.MAINNET))
    store.set(ALIAS_NAMESPACE, "testnet:broken", None)
    store.set(ALIAS_NAMESPACE, "testnet:garbage", {"alias": "garbage"})
    store.set(ALIAS_NAMESPACE, "testnet:odd", "not a record")

    assert {r.alias for r in registry.list()} == {"a", "b", "c"}
    assert {r.alias for r in registry.list(network=Network.TESTNET)} == {"a", "b"}
    assert [r.alias for r in registry.list(entity_type=EntityType.TOKEN)] == ["b"]
    assert (
        registry.list(network=Network.MAINNET, entity_type=EntityType.TOKEN) == []
    )


def test_corrupted_entry_resolves_as_absent(
    registry: AliasRegistry, store: MemoryStateStore
) -> None:
    store.set(ALIAS_NAMESPACE, "testnet:bob", {"alias": "bob", "entity_type": "ship"})

    assert registry.resolve("bob", None, Network.TESTNET) is None
    # The key is still occupied, so registration keeps failing closed.
    assert registry.exists("bob", Network.TESTNET)


def test_resolve_by_evm_address_is_case_insensitive(registry: AliasRegistry) -> None:
    address = "0x" + "AbCd" * 10
    registry.register(_record("bob", evm_address=address))
    registry.register(_record("eve", network=Network.MAINNET, evm_address=address))

    found = registry.resolve_by_evm_address(address.lower(), Network.TESTNET)

    assert found is not None
    assert found.alias == "bob"
    assert registry.resolve_by_evm_address("0x" + "00" * 20, Network.TESTNET) is None


def test_clear_removes_one_entity_type_on_all_networks(registry: AliasRegistry) -> None:
    registry.register(_record("a", network=Network.TESTNET))
    registry.register(_record("b", network=Network.MAINNET))
    registry.register(_record("t", entity_type=EntityType.TOKEN))

    registry.clear(EntityType.ACCOUNT)

    assert [r.alias for r in registry.list()] == ["t"]


def test_record_round_trips_through_store(registry: AliasRegistry) -> None:
    original = _record(
        "bob",
        public_key="02" + "ab" * 32,
        key_ref_id="kr_0123456789abcdef",
        metadata={"memo": "created by test"},
    )
    registry.register(original)

    restored = registry.resolve("bob", EntityType.ACCOUNT, Network.TESTNET)

    assert restored == original
