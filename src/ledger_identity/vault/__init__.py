"""Key vault package. Only opaque references leave this package."""

from __future__ import annotations

from ledger_identity.vault.vault import (
    CREDENTIALS_NAMESPACE,
    ImportedKey,
    KeyRefId,
    KeySigner,
    KeyVault,
)

__all__ = [
    "CREDENTIALS_NAMESPACE",
    "ImportedKey",
    "KeyRefId",
    "KeySigner",
    "KeyVault",
]
