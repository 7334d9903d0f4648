"""Walk through alias registration and signing-key resolution.

The demo runs entirely in memory:

    python examples/resolution_demo.py

It will:
    1. Import a key into the vault and register it under an account alias.
    2. Configure the network operator.
    3. Resolve an inline keypair, the alias, and absent input (operator).
    4. Sign a message through the returned key reference only.
"""

from __future__ import annotations

import argparse
import json

from ledger_identity.context import build_context
from ledger_identity.errors import IdentityError
from ledger_identity.network import Operator
from ledger_identity.schemas import AliasRecord, EntityType, KeyAlgorithm, Network
from ledger_identity.settings import IdentitySettings
from ledger_identity.storage import MemoryStateStore

# Throwaway secp256k1 scalars; never reuse outside this demo.
DEMO_ALIAS_KEY = "0x" + "11" * 32
DEMO_INLINE_KEY = "22" * 32


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--network", choices=[member.value for member in Network], default="testnet"
    )
    args = parser.parse_args(argv)
    network = Network(args.network)

    ctx = build_context(
        IdentitySettings(network=network, vault_passphrase="demo"),
        store=MemoryStateStore(),
    )

    alias_key = ctx.vault.import_private_key(KeyAlgorithm.ECDSA, DEMO_ALIAS_KEY)
    ctx.aliases.register(
        AliasRecord(
            alias="alice",
            entity_type=EntityType.ACCOUNT,
            network=network,
            entity_id="0.0.1001",
            public_key=alias_key.public_key,
            key_ref_id=alias_key.key_ref_id,
        )
    )
    ctx.network.set_operator(
        network, Operator(account_id="0.0.2", key_ref_id=alias_key.key_ref_id)
    )

    for raw in (f"0.0.3003:{DEMO_INLINE_KEY}", "alice", None, "bob"):
        label = raw.split(":", 1)[0] + ":<key>" if raw and ":" in raw else raw
        try:
            identity = ctx.keys.get_or_init_key_with_fallback(raw)
        except IdentityError as exc:
            print(json.dumps({"input": label, "error": exc.to_dict()}))
            continue
        signature = ctx.vault.sign(identity.key_ref_id, b"demo payload")
        print(
            json.dumps(
                {
                    "input": label,
                    "account_id": identity.account_id,
                    "key_ref_id": identity.key_ref_id,
                    "signature": signature.hex(),
                }
            )
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
