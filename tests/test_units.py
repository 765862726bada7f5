from __future__ import annotations

import pytest

from panier_server.matching.units import (
    UNIT_TAGS,
    is_piece_unit,
    parse_pack_size,
    parse_size,
    to_base_units,
    to_family_base,
    unit_family,
)


@pytest.mark.parametrize(
    "amount, unit, expected",
    [
        (1, "kg", 1000),
        (250, "g", 250),
        (2, "cl", 20),
        (1.5, "l", 1500),
        (2, "càs", 30),
        (3, "tsp", 15),
        (4, "pièces", 4),
        (7, "pinch", 7),
    ],
)
def test_to_base_units(amount, unit, expected):
    assert to_base_units(amount, unit) == pytest.approx(expected)


def test_unit_tags_cover_weights_volumes_and_pieces():
    assert {"g", "kg", "ml", "cl", "l", "càc", "càs", "piece", "pièce"} <= UNIT_TAGS
    assert "cup" not in UNIT_TAGS


def test_piece_units_are_detected_by_substring():
    assert is_piece_unit("pièces")
    assert is_piece_unit("Piece")
    assert not is_piece_unit("g")
    assert unit_family("pieces") == "piece"
    assert unit_family("cl") == "volume"
    assert unit_family("kg") == "weight"
    assert unit_family("tbsp") is None


def test_family_base_ignores_spoon_measures():
    assert to_family_base(2, "kg") == 2000
    assert to_family_base(3, "tbsp") == 3


def test_parse_size_reads_first_number_unit_group():
    size = parse_size("Sachet 500 g (2 x 250g)")
    assert size.value == 500
    assert size.unit == "g"
    assert not size.is_packaging


def test_parse_size_accepts_comma_decimals_and_case():
    size = parse_size("1,5 L")
    assert size.value == pytest.approx(1.5)
    assert size.unit == "l"


@pytest.mark.parametrize("descriptor", [None, "", "format familial", "x6"])
def test_parse_size_returns_none_when_unreadable(descriptor):
    assert parse_size(descriptor) is None


def test_pack_descriptor_wins_over_weight():
    size = parse_pack_size("6 par pack - 480g")
    assert size.value == 6
    assert size.unit == "piece"
    assert size.is_packaging


def test_pack_size_falls_back_to_plain_size():
    size = parse_pack_size("75cl")
    assert size.value == 75
    assert size.unit == "cl"
    assert not size.is_packaging


def test_parse_size_skips_units_glued_to_words():
    size = parse_pack_size("2 lots de 500g")
    assert size.value == 500
    assert size.unit == "g"


def test_parse_size_does_not_read_word_prefixes_as_units():
    assert parse_size("4 gousses") is None
    assert parse_size("2 pièces").unit == "pièces"
