from __future__ import annotations

from idregistry.core.constants import IdentifierType
from idregistry.services.range_overlap import normalize, overlaps_existing


def test_isbn_ranges_of_different_categories_are_compared_on_common_width():
    existing = [normalize(IdentifierType.ISBN, (978, 951), "10", "19")]

    # "10".."19" covers 10000..19999, so a category 4 range inside it overlaps.
    assert overlaps_existing(normalize(IdentifierType.ISBN, (978, 951), "1500", "1599"), existing)
    assert not overlaps_existing(normalize(IdentifierType.ISBN, (978, 951), "2000", "2099"), existing)


def test_overlap_is_scoped_by_prefix_and_group():
    existing = [normalize(IdentifierType.ISBN, (978, 951), "100", "199")]
    assert not overlaps_existing(normalize(IdentifierType.ISBN, (978, 952), "100", "199"), existing)
    assert not overlaps_existing(normalize(IdentifierType.ISBN, (979, 951), "150", "160"), existing)


def test_enclosing_range_overlaps():
    existing = [normalize(IdentifierType.ISMN, ("979-0",), "500", "599")]
    assert overlaps_existing(normalize(IdentifierType.ISMN, ("979-0",), "4", "6"), existing)


def test_issn_bounds_ignore_check_character():
    existing = [normalize(IdentifierType.ISSN, ("1234",), "0006", "0022")]
    assert overlaps_existing(normalize(IdentifierType.ISSN, ("1234",), "002", "010"), existing)
    assert not overlaps_existing(normalize(IdentifierType.ISSN, ("1234",), "003", "010"), existing)
    assert not overlaps_existing(normalize(IdentifierType.ISSN, ("4321",), "000", "002"), existing)
