"""Tests for CLI functionality."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from ledger_identity.aliases import AliasRegistry
from ledger_identity.cli import main
from ledger_identity.context import build_context
from ledger_identity.settings import IdentitySettings

from conftest import ECDSA_PRIVATE_KEY

RAW_ECDSA = ECDSA_PRIVATE_KEY.removeprefix("0x")


@pytest.fixture
def settings(tmp_path: Path) -> IdentitySettings:
    return IdentitySettings(state_dir=str(tmp_path / "state"), vault_passphrase="pw")


def _run(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings, *argv: str
) -> tuple[int, object, str]:
    code = main(list(argv), settings=settings)
    captured = capsys.readouterr()
    output = json.loads(captured.out) if captured.out.strip() else None
    return code, output, captured.err


def test_cli_main_no_args(capsys: pytest.CaptureFixture[str]) -> None:
    """A subcommand is required."""
    result = main([])
    assert result == 1


def test_cli_main_help(capsys: pytest.CaptureFixture[str]) -> None:
    """Test CLI help output."""
    result = main(["--help"])
    assert result == 0

    captured = capsys.readouterr()
    assert "usage:" in captured.out.lower()
    assert "resolve-key" in captured.out


def test_alias_add_list_remove(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    code, added, _ = _run(
        capsys, settings, "alias", "add", "bob", "--type", "account", "-e", "0.0.1001"
    )
    assert code == 0
    assert added["alias"] == "bob"
    assert added["network"] == "testnet"

    code, _, err = _run(
        capsys, settings, "alias", "add", "bob", "--type", "token", "-e", "0.0.5"
    )
    assert code == 1
    assert "already exists" in err

    code, listed, _ = _run(capsys, settings, "alias", "list")
    assert [record["alias"] for record in listed] == ["bob"]

    code, _, _ = _run(capsys, settings, "alias", "remove", "bob")
    assert code == 0
    _, listed, _ = _run(capsys, settings, "alias", "list", "--type", "account")
    assert listed == []


def test_key_import_never_echoes_private_key(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    code = main(
        [
            "key",
            "import",
            "--private-key",
            RAW_ECDSA,
            "--account-id",
            "0.0.1234",
            "--alias",
            "carol",
        ],
        settings=settings,
    )
    captured = capsys.readouterr()

    assert code == 0
    assert RAW_ECDSA not in captured.out
    assert RAW_ECDSA not in captured.err
    payload = json.loads(captured.out)
    assert payload["key_ref_id"].startswith("kr_")
    assert payload["alias"]["key_ref_id"] == payload["key_ref_id"]

    code, identity, _ = _run(capsys, settings, "resolve-key", "carol")
    assert code == 0
    assert identity == {
        "account_id": "0.0.1234",
        "public_key": payload["public_key"],
        "key_ref_id": payload["key_ref_id"],
    }


def test_key_import_drops_key_when_alias_is_taken_meanwhile(
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    settings: IdentitySettings,
) -> None:
    code, _, _ = _run(
        capsys, settings, "alias", "add", "carol", "--type", "account", "-e", "0.0.7"
    )
    assert code == 0
    # Pass the availability check so the clash surfaces at registration.
    monkeypatch.setattr(AliasRegistry, "ensure_available", lambda *args: None)

    code, output, err = _run(
        capsys,
        settings,
        "key",
        "import",
        "--private-key",
        RAW_ECDSA,
        "--account-id",
        "0.0.1234",
        "--alias",
        "carol",
    )

    assert code == 1
    assert output is None
    assert "carol" in err
    assert build_context(settings).vault.list_credentials() == []


def test_key_import_reads_stdin(
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    settings: IdentitySettings,
) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO(RAW_ECDSA + "\n"))

    code, payload, _ = _run(capsys, settings, "key", "import", "--label", "ci")

    assert code == 0
    assert payload["key_ref_id"].startswith("kr_")


def test_key_import_rejects_malformed_key(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    code, output, err = _run(
        capsys, settings, "key", "import", "--private-key", "zz" * 32
    )

    assert code == 1
    assert output is None
    assert "Invalid ecdsa private key format" in err


def test_operator_fallback(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    code, _, err = _run(capsys, settings, "resolve-key")
    assert code == 1
    assert "operator is not set" in err

    _, imported, _ = _run(capsys, settings, "key", "import", "-k", RAW_ECDSA)
    code, _, _ = _run(
        capsys, settings, "operator", "set", "0.0.2", imported["key_ref_id"]
    )
    assert code == 0

    code, identity, _ = _run(capsys, settings, "resolve-key")
    assert code == 0
    assert identity["account_id"] == "0.0.2"
    assert identity["key_ref_id"] == imported["key_ref_id"]

    code, _, _ = _run(capsys, settings, "resolve-key", "--no-fallback")
    assert code == 1


def test_operator_set_requires_known_reference(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    code, _, err = _run(
        capsys, settings, "operator", "set", "0.0.2", "kr_0000000000000000"
    )

    assert code == 1
    assert "kr_0000000000000000" in err


def test_resolve_entity(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    _run(capsys, settings, "alias", "add", "bob", "-t", "account", "-e", "0.0.1001")

    code, resolved, _ = _run(capsys, settings, "resolve-entity", "bob")
    assert code == 0
    assert resolved["entity_id"] == "0.0.1001"

    code, resolved, _ = _run(capsys, settings, "resolve-entity", "0.0.500")
    assert resolved["entity_id"] == "0.0.500"

    code, _, err = _run(capsys, settings, "resolve-entity", "not-an-id")
    assert code == 1
    assert "not-an-id" in err

    code, _, _ = _run(capsys, settings, "resolve-entity", "0.0.500", "--alias-only")
    assert code == 1


def test_network_use_switches_alias_scope(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    _run(capsys, settings, "alias", "add", "bob", "-t", "account", "-e", "0.0.1")
    code, _, _ = _run(capsys, settings, "network", "use", "mainnet")
    assert code == 0

    code, _, _ = _run(capsys, settings, "resolve-entity", "bob")
    assert code == 1

    code, _, _ = _run(capsys, settings, "alias", "add", "bob", "-t", "account", "-e", "0.0.2")
    assert code == 0


def test_state_dir_flag_overrides_settings(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings, tmp_path: Path
) -> None:
    other = tmp_path / "other"
    code, _, _ = _run(
        capsys,
        settings,
        "--state-dir",
        str(other),
        "alias",
        "add",
        "bob",
        "-t",
        "account",
        "-e",
        "0.0.1",
    )

    assert code == 0
    assert (other / "aliases.json").exists()


def test_alias_add_rejects_malformed_entity_id(
    capsys: pytest.CaptureFixture[str], settings: IdentitySettings
) -> None:
    code, output, err = _run(
        capsys, settings, "alias", "add", "bob", "--type", "account", "-e", "1234"
    )

    assert code == 1
    assert output is None
    assert "0.0.<number>" in err

    _, listed, _ = _run(capsys, settings, "alias", "list")
    assert listed == []
