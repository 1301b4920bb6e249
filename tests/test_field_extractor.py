from __future__ import annotations

import pytest

from field_extractor import extract
from models import ExtractedFields


def test_spoken_add_command() -> None:
    fields = extract("Add 10 brake pads to location A-12 at 45.99 each")

    assert fields.name == "Brake Pads"
    assert fields.quantity == 10
    assert fields.location == "A-12"
    assert fields.price == 45.99
    assert fields.category == "other"
    assert fields.part_number == ""


@pytest.mark.parametrize("text", ["", None, "   ", "lorem ipsum dolor", "!!!,,,\n\n"])
def test_nonsense_returns_all_defaults(text) -> None:
    assert extract(text) == ExtractedFields()


def test_defaults_match_documented_values() -> None:
    fields = extract("")

    assert fields == ExtractedFields(
        name="Unknown Item",
        part_number="",
        quantity=1,
        location="",
        price=0.0,
        category="other",
    )


def test_labelled_model_reply() -> None:
    reply = (
        "- name: Brake Pad Set\n"
        "- partNumber: BP-2024\n"
        "- quantity: 4\n"
        "- location: Shelf B3\n"
        "- price: $89.50\n"
        "- category: Brake\n"
    )

    fields = extract(reply)

    assert fields == ExtractedFields(
        name="Brake Pad Set",
        part_number="BP-2024",
        quantity=4,
        location="Shelf B3",
        price=89.5,
        category="brake",
    )


def test_labels_are_case_insensitive_and_accept_equals() -> None:
    fields = extract("NAME=Spark Plug, Quantity = 12, CATEGORY=engine")

    assert fields.name == "Spark Plug"
    assert fields.quantity == 12
    assert fields.category == "engine"


def test_markdown_emphasis_around_labels() -> None:
    fields = extract("**Name**: Oil Filter\n**Part Number**: OF-001\n**Price**: 12.99")

    assert fields.name == "Oil Filter"
    assert fields.part_number == "OF-001"
    assert fields.price == 12.99


def test_value_stops_at_comma() -> None:
    fields = extract("name: Clutch Kit, location: Bay 4, quantity: 2")

    assert fields.name == "Clutch Kit"
    assert fields.location == "Bay 4"
    assert fields.quantity == 2


def test_explicit_label_keeps_full_value() -> None:
    assert extract("name: Brake pads for Honda Civic").name == "Brake pads for Honda Civic"


@pytest.mark.parametrize(
    "text, quantity, price",
    [
        ("quantity: ten, price: cheap", 1, 0.0),
        ("quantity: 3.5, price: 1e", 1, 0.0),
        ("quantity: , price: nan", 1, 0.0),
    ],
)
def test_unparsable_numbers_fall_back_to_defaults(text: str, quantity: int, price: float) -> None:
    fields = extract(text)

    assert fields.quantity == quantity
    assert fields.price == price


def test_labelled_quantity_wins_over_phrase() -> None:
    assert extract("add 5 wiper blades, quantity: 7").quantity == 7


def test_phrase_without_quantity_defaults_to_one() -> None:
    fields = extract("add new headlight bulbs to shelf C4")

    assert fields.name == "Headlight Bulbs"
    assert fields.quantity == 1
    assert fields.location == "C4"


def test_dollar_price_in_sentence() -> None:
    assert extract("restock 3 air filters for $19.99").price == 19.99


def test_extracted_fields_build_inventory_item() -> None:
    item = extract("Add 10 brake pads to location A-12 at 45.99 each").to_item()

    assert item.name == "Brake Pads"
    assert item.quantity == 10
    assert item.location == "A-12"
    assert item.price == 45.99
    assert item.category == "other"
    assert item.id == ""
