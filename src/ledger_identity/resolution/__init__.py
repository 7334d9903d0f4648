"""Key and reference resolution."""

from __future__ import annotations

from ledger_identity.resolution.inputs import (
    Absent,
    Alias,
    KeyOrAliasInput,
    Keypair,
    parse_key_or_alias,
)
from ledger_identity.resolution.key_resolver import KeyResolver, ResolvedIdentity
from ledger_identity.resolution.reference_resolver import ReferenceResolver

__all__ = [
    "Absent",
    "Alias",
    "KeyOrAliasInput",
    "KeyResolver",
    "Keypair",
    "ReferenceResolver",
    "ResolvedIdentity",
    "parse_key_or_alias",
]
