from decimal import Decimal

import pytest

from common.exceptions import ValidationError
from modules.order.items import LineItem, OptionChoice, normalize_options


def test_normalize_options_accepts_legacy_list():
    opts = normalize_options([{"opcion": "Término", "valor": "medio"}, {"opcion": "Pan", "valor": "integral"}])
    assert opts == (OptionChoice("Término", "medio"), OptionChoice("Pan", "integral"))


def test_normalize_options_accepts_plain_mapping():
    opts = normalize_options({"Término": "medio", "Pan": "integral"})
    assert opts == (OptionChoice("Término", "medio"), OptionChoice("Pan", "integral"))


def test_normalize_options_unique_by_name_keeps_first_position_last_value():
    opts = normalize_options([
        {"name": "Término", "value": "medio"},
        {"name": "Pan", "value": "blanco"},
        {"name": "Término", "value": "bien cocido"},
    ])
    assert opts == (OptionChoice("Término", "bien cocido"), OptionChoice("Pan", "blanco"))


def test_normalize_options_empty():
    assert normalize_options(None) == ()
    assert normalize_options([]) == ()


def test_normalize_options_rejects_nameless_option():
    with pytest.raises(ValidationError):
        normalize_options([{"value": "x"}])


def test_from_dict_accepts_spanish_keys():
    item = LineItem.from_dict({"nombre": "Caldo", "precio": 25, "cantidad": 3, "nota": "sin chile"})
    assert item.name == "Caldo"
    assert item.price == Decimal("25.00")
    assert item.quantity == 3
    assert item.note == "sin chile"
    assert item.subtotal == Decimal("75.00")


@pytest.mark.parametrize("bad", [
    {"name": "Soda", "price": "-1"},
    {"name": "Soda", "price": "1.005"},
    {"name": "Soda", "price": "abc"},
    {"name": "", "price": "1"},
    {"name": "Soda", "price": "1", "quantity": 0},
    {"name": "Soda", "price": "1", "quantity": 1.5},
    {"name": "Soda", "price": "1", "note": "x" * 201},
])
def test_from_dict_rejects_invalid_input(bad):
    with pytest.raises(ValidationError):
        LineItem.from_dict(bad)


def test_same_dish_ignores_option_order():
    a = LineItem.from_dict({"dish_id": 1, "name": "Burger", "price": "35", "options": {"Pan": "blanco", "Queso": "sí"}})
    b = LineItem.from_dict({"dish_id": 1, "name": "Burger", "price": "35", "options": {"Queso": "sí", "Pan": "blanco"}})
    c = LineItem.from_dict({"dish_id": 1, "name": "Burger", "price": "35", "options": {"Pan": "integral"}})
    assert a.same_dish(b)
    assert not a.same_dish(c)


def test_simplified_drops_options_and_note():
    item = LineItem.from_dict({"name": "Burger", "price": "35", "quantity": 2, "note": "no onion", "options": {"Pan": "blanco"}})
    assert item.simplified() == {"name": "Burger", "quantity": 2, "price": "35.00"}
