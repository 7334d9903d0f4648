"""Export the JSON Schemas of the persisted alias and credential records."""

from __future__ import annotations

import json
from pathlib import Path

from ledger_identity.schemas import AliasRecord, CredentialRecord


def main(output_dir: Path | None = None) -> list[Path]:
    """Write one JSON Schema file per persisted record type.

    Args:
        output_dir: Destination directory. Defaults to the repository root.

    Returns:
        The paths written.
    """

    target = output_dir or Path(__file__).resolve().parent.parent
    written: list[Path] = []
    for name, model in (
        ("alias_record", AliasRecord),
        ("credential_record", CredentialRecord),
    ):
        output_path = target / f"{name}_schema.json"
        output_path.write_text(
            json.dumps(model.model_json_schema(), indent=2), encoding="utf-8"
        )
        written.append(output_path)
    return written


if __name__ == "__main__":
    main()
