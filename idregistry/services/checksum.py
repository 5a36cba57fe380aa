"""Check digit calculation for ISBN-13/ISMN (mod 10) and ISSN (mod 11)."""

from __future__ import annotations

import re

from idregistry.core.constants import (
    FORMATTED_IDENTIFIER_LENGTH,
    ISBN_PREFIXES,
    IdentifierType,
)
from idregistry.core.config import settings
from idregistry.core.errors import RegistryError

_ISBN_BODY = re.compile(r"^[0-9]{12}$")
_ISSN_BODY = re.compile(r"^[0-9]{7}$")
_ISSN_FULL = re.compile(r"^[0-9]{4}-[0-9]{3}[0-9X]$")


def isbn_check_digit(body: str) -> str:
    """Check digit for a 12 digit ISBN-13/ISMN body, hyphens already removed."""
    if not isinstance(body, str) or not _ISBN_BODY.match(body):
        raise RegistryError.unprocessable(
            "ISBN/ISMN check digit requires exactly 12 decimal digits."
        )
    total = sum(int(ch) * (1 if i % 2 == 0 else 3) for i, ch in enumerate(body))
    return str((10 - total % 10) % 10)


def issn_check_digit(body: str) -> str:
    """Check character for a 7 digit ISSN body, dash already removed."""
    if not isinstance(body, str) or not _ISSN_BODY.match(body):
        raise RegistryError.unprocessable("ISSN check digit requires exactly 7 decimal digits.")
    total = sum(int(ch) * (8 - i) for i, ch in enumerate(body))
    remainder = (11 - total % 11) % 11
    return "X" if remainder == 10 else str(remainder)


def validate_issn(issn: str) -> bool:
    if not isinstance(issn, str) or not _ISSN_FULL.match(issn):
        return False
    return issn_check_digit(issn.replace("-", "")[:7]) == issn[-1]


def is_valid_identifier(identifier: str, identifier_type: IdentifierType) -> bool:
    """Structural and checksum validation of a formatted ISBN/ISMN."""
    if not isinstance(identifier, str) or len(identifier) != FORMATTED_IDENTIFIER_LENGTH:
        return False

    parts = identifier.split("-")
    if len(parts) != 5:
        return False
    head_a, head_b, publisher_part, item_part, check = parts

    if identifier_type == IdentifierType.ISBN:
        if head_a not in {str(p) for p in ISBN_PREFIXES}:
            return False
        if head_b not in {str(g) for g in settings.ISBN_LANGUAGE_GROUPS}:
            return False
        max_publisher_width = 5
    elif identifier_type == IdentifierType.ISMN:
        if head_a != "979" or head_b != "0":
            return False
        max_publisher_width = 7
    else:
        raise RegistryError.unprocessable(f"Unsupported identifier type: {identifier_type}")

    if not publisher_part.isdigit() or len(publisher_part) > max_publisher_width:
        return False
    if not item_part.isdigit():
        return False
    if len(check) != 1 or not check.isdigit():
        return False
    return isbn_check_digit(f"{head_a}{head_b}{publisher_part}{item_part}") == check
