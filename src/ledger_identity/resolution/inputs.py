"""Parse raw key-or-alias arguments into an explicit tagged form.

Parsing happens once, before any resolution logic, so the resolver only ever
dispatches on :class:`Keypair`, :class:`Alias` or :class:`Absent`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from ..errors import InvalidInputError

__all__ = [
    "KEYPAIR_PATTERN",
    "Absent",
    "Alias",
    "KeyOrAliasInput",
    "Keypair",
    "parse_key_or_alias",
]

KEYPAIR_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^0\.0\.[1-9][0-9]*:"
    r"(?:(?:0x)?[0-9a-f]{64}|(?:0x)?[0-9a-f]{128}|30[0-9a-f]{80,})$",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class Keypair:
    """Inline ``<entity-id>:<hex-private-key>`` argument."""

    account_id: str
    private_key: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class Alias:
    """Name of a previously registered alias."""

    name: str


@dataclass(frozen=True, slots=True)
class Absent:
    """No argument was supplied."""


KeyOrAliasInput: TypeAlias = Keypair | Alias | Absent


def parse_key_or_alias(raw: str | None) -> KeyOrAliasInput:
    """Classify ``raw`` as an inline keypair, an alias or absent input.

    Args:
        raw: The argument as typed by the operator, or ``None``.

    Returns:
        :class:`Absent` for ``None``, :class:`Keypair` when ``raw`` matches
        the inline keypair syntax, otherwise :class:`Alias`.

    Raises:
        InvalidInputError: If ``raw`` is empty or whitespace only.

    Surrounding whitespace is ignored when matching a keypair, but an alias
    name is passed through verbatim since the registry stores it that way.
    """

    if raw is None:
        return Absent()
    value = raw.strip()
    if not value:
        raise InvalidInputError(
            "Expected an alias or an <account-id>:<private-key> pair, got an empty value"
        )
    if KEYPAIR_PATTERN.fullmatch(value):
        account_id, _, private_key = value.partition(":")
        return Keypair(account_id=account_id, private_key=private_key)
    return Alias(name=raw)
