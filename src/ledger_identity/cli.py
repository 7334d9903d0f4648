"""Command-line utilities for ledger_identity."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pydantic import ValidationError as SchemaValidationError

from .context import IdentityContext, build_context
from .errors import (
    AlreadyExistsError,
    IdentityError,
    InvalidInputError,
    ValidationError,
)
from .logging_pipeline import configure_structured_logging, shutdown_listeners
from .network import Operator
from .schemas import (
    AliasRecord,
    EntityType,
    KeyAlgorithm,
    KeyManagerKind,
    Network,
    is_entity_id,
)
from .settings import IdentitySettings, get_settings

LOGGER = logging.getLogger(__name__)

_ENTITY_TYPES = [member.value for member in EntityType]
_NETWORKS = [member.value for member in Network]


def _emit(payload: object) -> None:
    print(json.dumps(payload, separators=(",", ":"), default=str))


def _read_stdin() -> str | None:
    """Read a private key from stdin if one is piped in."""
    try:
        if sys.stdin and not sys.stdin.isatty():
            return sys.stdin.read()
    except OSError as e:
        print(f"Error reading stdin: {e}", file=sys.stderr)
    return None


def _network(ctx: IdentityContext, name: str | None) -> Network:
    return Network(name) if name else ctx.network.get_current_network()


def _entity_id(value: str | None, option: str) -> str | None:
    if value is not None and not is_entity_id(value):
        raise ValidationError(
            f"{option} must look like 0.0.<number>, got \"{value}\"",
            context={"entity_id": value},
        )
    return value


def _alias_add(ctx: IdentityContext, args: argparse.Namespace) -> int:
    network = _network(ctx, args.network)
    record = AliasRecord(
        alias=args.name,
        entity_type=EntityType(args.type),
        network=network,
        entity_id=_entity_id(args.entity_id, "--entity-id"),
        evm_address=args.evm_address,
        public_key=args.public_key,
        key_ref_id=args.key_ref_id,
    )
    ctx.aliases.register(record)
    _emit(record.model_dump_json_ready())
    return 0


def _alias_list(ctx: IdentityContext, args: argparse.Namespace) -> int:
    records = ctx.aliases.list(
        network=Network(args.network) if args.network else None,
        entity_type=EntityType(args.type) if args.type else None,
    )
    _emit([record.model_dump_json_ready() for record in records])
    return 0


def _alias_remove(ctx: IdentityContext, args: argparse.Namespace) -> int:
    network = _network(ctx, args.network)
    ctx.aliases.remove(args.name, network)
    _emit({"removed": args.name, "network": network.value})
    return 0


def _key_import(ctx: IdentityContext, args: argparse.Namespace) -> int:
    private_key = args.private_key or _read_stdin()
    if not private_key or not private_key.strip():
        raise InvalidInputError(
            "No private key provided. Use --private-key or pipe it via stdin."
        )
    algorithm = (
        KeyAlgorithm(args.algorithm) if args.algorithm else ctx.settings.default_algorithm
    )
    key_manager = (
        KeyManagerKind(args.key_manager) if args.key_manager else ctx.settings.key_manager
    )
    network = _network(ctx, args.network)
    if args.alias:
        if not args.account_id:
            raise InvalidInputError("--alias requires --account-id")
        _entity_id(args.account_id, "--account-id")
        ctx.aliases.ensure_available(args.alias, network)

    imported = ctx.vault.import_private_key(
        algorithm, private_key.strip(), key_manager, args.label
    )
    payload: dict[str, object] = {
        "key_ref_id": imported.key_ref_id,
        "public_key": imported.public_key,
    }
    if args.alias:
        record = AliasRecord(
            alias=args.alias,
            entity_type=EntityType.ACCOUNT,
            network=network,
            entity_id=args.account_id,
            public_key=imported.public_key,
            key_ref_id=imported.key_ref_id,
        )
        try:
            ctx.aliases.register(record)
        except AlreadyExistsError:
            # Another writer took the alias after the availability check.
            ctx.vault.remove(imported.key_ref_id)
            raise
        payload["alias"] = record.model_dump_json_ready()
    _emit(payload)
    return 0


def _operator_set(ctx: IdentityContext, args: argparse.Namespace) -> int:
    network = _network(ctx, args.network)
    _entity_id(args.account_id, "account id")
    # Fails with NotFoundError before anything is persisted.
    public_key = ctx.vault.get_public_key(args.key_ref_id)
    ctx.network.set_operator(
        network, Operator(account_id=args.account_id, key_ref_id=args.key_ref_id)
    )
    _emit(
        {
            "network": network.value,
            "account_id": args.account_id,
            "key_ref_id": args.key_ref_id,
            "public_key": public_key,
        }
    )
    return 0


def _network_use(ctx: IdentityContext, args: argparse.Namespace) -> int:
    network = Network(args.name)
    ctx.network.switch_network(network)
    _emit({"network": network.value})
    return 0


def _resolve_key(ctx: IdentityContext, args: argparse.Namespace) -> int:
    key_manager = (
        KeyManagerKind(args.key_manager) if args.key_manager else ctx.settings.key_manager
    )
    if args.no_fallback:
        identity = ctx.keys.get_or_init_key(args.key_or_alias, key_manager, args.label)
    else:
        identity = ctx.keys.get_or_init_key_with_fallback(
            args.key_or_alias, key_manager, args.label
        )
    _emit(
        {
            "account_id": identity.account_id,
            "public_key": identity.public_key,
            "key_ref_id": identity.key_ref_id,
        }
    )
    return 0


def _resolve_entity(ctx: IdentityContext, args: argparse.Namespace) -> int:
    network = _network(ctx, args.network)
    entity_type = EntityType(args.type)
    if args.alias_only:
        entity_id = ctx.references.resolve_alias_entity(args.ref, entity_type, network)
    else:
        entity_id = ctx.references.resolve_entity(args.ref, entity_type, network)
    _emit({"reference": args.ref, "entity_id": entity_id, "network": network.value})
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the ``ledger-identity`` command."""

    parser = argparse.ArgumentParser(
        prog="ledger-identity",
        description="Manage aliases and signing keys and resolve references.",
    )
    parser.add_argument(
        "--state-dir",
        help="Directory holding state files. Overrides LEDGER_IDENTITY_STATE_DIR.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    alias = commands.add_parser("alias", help="Manage aliases.")
    alias_commands = alias.add_subparsers(dest="alias_command", required=True)

    add = alias_commands.add_parser("add", help="Register an alias.")
    add.add_argument("name")
    add.add_argument("--type", "-t", choices=_ENTITY_TYPES, required=True)
    add.add_argument("--entity-id", "-e")
    add.add_argument("--evm-address")
    add.add_argument("--public-key")
    add.add_argument("--key-ref-id")
    add.add_argument("--network", "-n", choices=_NETWORKS)
    add.set_defaults(handler=_alias_add)

    listing = alias_commands.add_parser("list", help="List aliases.")
    listing.add_argument("--type", "-t", choices=_ENTITY_TYPES)
    listing.add_argument("--network", "-n", choices=_NETWORKS)
    listing.set_defaults(handler=_alias_list)

    remove = alias_commands.add_parser("remove", help="Remove an alias.")
    remove.add_argument("name")
    remove.add_argument("--network", "-n", choices=_NETWORKS)
    remove.set_defaults(handler=_alias_remove)

    key = commands.add_parser("key", help="Manage vault keys.")
    key_commands = key.add_subparsers(dest="key_command", required=True)
    key_import = key_commands.add_parser(
        "import", help="Import a private key. Reads stdin when --private-key is omitted."
    )
    key_import.add_argument("--private-key", "-k")
    key_import.add_argument(
        "--algorithm", "-a", choices=[member.value for member in KeyAlgorithm]
    )
    key_import.add_argument(
        "--key-manager", choices=[member.value for member in KeyManagerKind]
    )
    key_import.add_argument("--label", "-l", action="append")
    key_import.add_argument("--account-id")
    key_import.add_argument("--alias")
    key_import.add_argument("--network", "-n", choices=_NETWORKS)
    key_import.set_defaults(handler=_key_import)

    operator = commands.add_parser("operator", help="Configure network operators.")
    operator_commands = operator.add_subparsers(dest="operator_command", required=True)
    operator_set = operator_commands.add_parser("set", help="Set the operator.")
    operator_set.add_argument("account_id")
    operator_set.add_argument("key_ref_id")
    operator_set.add_argument("--network", "-n", choices=_NETWORKS)
    operator_set.set_defaults(handler=_operator_set)

    network = commands.add_parser("network", help="Select the current network.")
    network_commands = network.add_subparsers(dest="network_command", required=True)
    network_use = network_commands.add_parser("use", help="Switch network.")
    network_use.add_argument("name", choices=_NETWORKS)
    network_use.set_defaults(handler=_network_use)

    resolve_key = commands.add_parser(
        "resolve-key", help="Resolve a keypair or alias into a signing identity."
    )
    resolve_key.add_argument("key_or_alias", nargs="?")
    resolve_key.add_argument(
        "--no-fallback",
        action="store_true",
        help="Fail instead of using the network operator when no input is given.",
    )
    resolve_key.add_argument(
        "--key-manager", choices=[member.value for member in KeyManagerKind]
    )
    resolve_key.add_argument("--label", "-l", action="append")
    resolve_key.set_defaults(handler=_resolve_key)

    resolve_entity = commands.add_parser(
        "resolve-entity", help="Resolve an alias or entity id to an entity id."
    )
    resolve_entity.add_argument("ref")
    resolve_entity.add_argument(
        "--type", "-t", choices=_ENTITY_TYPES, default=EntityType.ACCOUNT.value
    )
    resolve_entity.add_argument("--network", "-n", choices=_NETWORKS)
    resolve_entity.add_argument(
        "--alias-only", action="store_true", help="Do not accept raw entity ids."
    )
    resolve_entity.set_defaults(handler=_resolve_entity)

    return parser


def main(
    argv: list[str] | None = None, *, settings: IdentitySettings | None = None
) -> int:
    """Run the ``ledger-identity`` command."""
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    effective = settings or get_settings()
    if args.state_dir:
        effective = effective.model_copy(update={"state_dir": args.state_dir})

    package_logger = logging.getLogger("ledger_identity")
    existing_handlers = list(package_logger.handlers)
    listener = configure_structured_logging(
        package_logger, level=effective.log_level_number
    )
    try:
        ctx = build_context(effective)
        return int(args.handler(ctx, args))
    except IdentityError as exc:
        LOGGER.debug("Command failed", exc_info=exc)
        print(str(exc), file=sys.stderr)
        return 1
    except SchemaValidationError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        shutdown_listeners([listener])
        for handler in list(package_logger.handlers):
            if handler not in existing_handlers:
                package_logger.removeHandler(handler)


if __name__ == "__main__":
    raise SystemExit(main())
