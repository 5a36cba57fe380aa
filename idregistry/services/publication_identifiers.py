"""
Conversion between the stored identifier maps of a publication and the
typed in-memory form.

`publication_identifier_print` / `publication_identifier_electronical` are
persisted as JSON objects mapping identifier -> type label, or "" when empty.
Callers work with plain dicts and only touch strings at the storage edge.
"""

from __future__ import annotations

import json

from idregistry.core.constants import ELECTRONICAL_TYPES, PRINT_TYPES
from idregistry.core.errors import RegistryError


def parse_identifier_map(raw: str | None) -> dict[str, str]:
    if raw is None or raw == "":
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RegistryError.internal("Publication identifier map is not valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise RegistryError.internal("Publication identifier map is not a JSON object.")
    return {str(k): str(v) for k, v in parsed.items()}


def dump_identifier_map(identifiers: dict[str, str]) -> str:
    return json.dumps(identifiers) if identifiers else ""


def split_types(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def print_map(assigned: dict[str, str]) -> dict[str, str]:
    return {identifier: label for identifier, label in assigned.items() if label in PRINT_TYPES}


def electronical_map(assigned: dict[str, str]) -> dict[str, str]:
    return {
        identifier: label
        for identifier, label in assigned.items()
        if label in ELECTRONICAL_TYPES
    }
