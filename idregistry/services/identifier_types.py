from __future__ import annotations

from dataclasses import dataclass

from idregistry.core.constants import ISBN_RANGE_LENGTH, ISMN_RANGE_LENGTH, IdentifierType
from idregistry.core.errors import RegistryError
from idregistry.models.ranges import (
    IsbnRange,
    IsbnSubRange,
    IsbnSubRangeCanceled,
    IsmnRange,
    IsmnSubRange,
    IsmnSubRangeCanceled,
)


@dataclass(frozen=True)
class IdentifierTypeModels:
    identifier_type: IdentifierType
    range_model: type
    subrange_model: type
    subrange_canceled_model: type
    # PublisherIsbn attribute holding the active sub-range's publisher identifier.
    publisher_attribute: str
    identifier_length: int


IDENTIFIER_TYPE_MODELS: dict[IdentifierType, IdentifierTypeModels] = {
    IdentifierType.ISBN: IdentifierTypeModels(
        identifier_type=IdentifierType.ISBN,
        range_model=IsbnRange,
        subrange_model=IsbnSubRange,
        subrange_canceled_model=IsbnSubRangeCanceled,
        publisher_attribute="active_identifier_isbn",
        identifier_length=ISBN_RANGE_LENGTH,
    ),
    IdentifierType.ISMN: IdentifierTypeModels(
        identifier_type=IdentifierType.ISMN,
        range_model=IsmnRange,
        subrange_model=IsmnSubRange,
        subrange_canceled_model=IsmnSubRangeCanceled,
        publisher_attribute="active_identifier_ismn",
        identifier_length=ISMN_RANGE_LENGTH,
    ),
}


def resolve_identifier_type(value: IdentifierType | str) -> IdentifierTypeModels:
    try:
        key = IdentifierType(str(getattr(value, "value", value)).strip().upper())
    except ValueError as exc:
        raise RegistryError.unprocessable(f"Unsupported identifier type: {value}") from exc
    models = IDENTIFIER_TYPE_MODELS.get(key)
    if models is None:
        raise RegistryError.unprocessable(f"Unsupported identifier type: {value}")
    return models
