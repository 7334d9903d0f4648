"""Ledger Identity - alias registry, key vault and signing-key resolution."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = [
    "AliasRecord",
    "AliasRegistry",
    "IdentitySettings",
    "KeyResolver",
    "KeyVault",
    "NetworkService",
    "ReferenceResolver",
    "ResolvedIdentity",
    "build_context",
]

if TYPE_CHECKING:
    from .aliases import AliasRegistry
    from .context import build_context
    from .network import NetworkService
    from .resolution import KeyResolver, ReferenceResolver, ResolvedIdentity
    from .schemas import AliasRecord
    from .settings import IdentitySettings
    from .vault import KeyVault


def __getattr__(name: str) -> Any:
    """Lazily import submodules so ``cryptography`` loads only when needed."""

    module_map = {
        "AliasRecord": "schemas",
        "AliasRegistry": "aliases",
        "IdentitySettings": "settings",
        "KeyResolver": "resolution",
        "KeyVault": "vault",
        "NetworkService": "network",
        "ReferenceResolver": "resolution",
        "ResolvedIdentity": "resolution",
        "build_context": "context",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)
