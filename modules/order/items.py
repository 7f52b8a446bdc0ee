"""
Order Module - Line Items
==========================
Canonical line-item representation shared by the composer, the dispatch
engine and every snapshot (occupancy, deferred billing, reports).

Options arrive in several shapes (list of {opcion, valor}, list of
{name, value}, plain mapping, (name, value) pairs); normalize_options()
turns all of them into one ordered tuple of OptionChoice at ingress.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from common.exceptions import ValidationError
from common.helpers import money, parse_money, safe_int
from config.settings import NOTE_MAX_LENGTH


@dataclass(frozen=True)
class OptionChoice:
    name: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "value": self.value}


def _option_pair(raw) -> Tuple[str, str]:
    if isinstance(raw, OptionChoice):
        return raw.name, raw.value
    if isinstance(raw, dict):
        name = raw.get("name", raw.get("opcion", ""))
        value = raw.get("value", raw.get("valor", ""))
        return str(name or "").strip(), str(value if value is not None else "").strip()
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return str(raw[0]).strip(), str(raw[1]).strip()
    raise ValidationError(f"Opción inválida: {raw!r}")


def normalize_options(raw) -> Tuple[OptionChoice, ...]:
    """
    Normalize any supported options shape into an ordered tuple of OptionChoice.
    Names are unique: a repeated name keeps its first position and takes the last value.
    """
    if not raw:
        return ()
    if isinstance(raw, dict) and not ({"name", "opcion"} & set(raw.keys())):
        pairs = [(str(k).strip(), str(v if v is not None else "").strip()) for k, v in raw.items()]
    elif isinstance(raw, (list, tuple)):
        pairs = [_option_pair(item) for item in raw]
    else:
        pairs = [_option_pair(raw)]

    merged: Dict[str, str] = {}
    for name, value in pairs:
        if not name:
            raise ValidationError("Cada opción necesita un nombre.")
        merged[name] = value
    return tuple(OptionChoice(name, value) for name, value in merged.items())


@dataclass(frozen=True)
class LineItem:
    name: str
    price: Decimal
    quantity: int = 1
    dish_id: Optional[int] = None
    options: Tuple[OptionChoice, ...] = ()
    note: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return money(self.price * self.quantity)

    @property
    def option_set(self) -> FrozenSet[OptionChoice]:
        return frozenset(self.options)

    def same_dish(self, other: "LineItem") -> bool:
        """Same dish and same option set (option order is irrelevant)."""
        if self.dish_id is None or other.dish_id is None:
            if self.dish_id != other.dish_id or self.name != other.name:
                return False
        elif self.dish_id != other.dish_id:
            return False
        return self.option_set == other.option_set

    def matches(self, other: "LineItem") -> bool:
        """same_dish plus identical note."""
        return self.same_dish(other) and (self.note or None) == (other.note or None)

    def with_quantity(self, quantity: int) -> "LineItem":
        return replace(self, quantity=validate_quantity(quantity))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dish_id": self.dish_id,
            "name": self.name,
            "price": str(self.price),
            "quantity": self.quantity,
            "options": [opt.to_dict() for opt in self.options],
            "note": self.note,
        }

    def simplified(self) -> Dict[str, Any]:
        """Snapshot kept on deferred-billing records: options and notes dropped."""
        return {"name": self.name, "quantity": self.quantity, "price": str(self.price)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        """Build from an API payload or a stored row. Accepts the legacy Spanish keys."""
        if not isinstance(data, dict):
            raise ValidationError("Formato de platillo inválido.")

        name = str(data.get("name", data.get("nombre")) or "").strip()
        if not name:
            raise ValidationError("El platillo necesita un nombre.")

        price = parse_money(data.get("price", data.get("precio")))
        if price is None:
            raise ValidationError(f"Precio inválido para «{name}».")

        quantity = validate_quantity(data.get("quantity", data.get("cantidad", 1)))

        raw_dish_id = data.get("dish_id", data.get("id"))
        dish_id = safe_int(raw_dish_id) if raw_dish_id is not None else None

        note = data.get("note", data.get("nota"))
        note = str(note).strip() if note is not None else None
        if note and len(note) > NOTE_MAX_LENGTH:
            raise ValidationError(f"La nota no puede superar {NOTE_MAX_LENGTH} caracteres.")

        return cls(
            name=name,
            price=price,
            quantity=quantity,
            dish_id=dish_id,
            options=normalize_options(data.get("options", data.get("opciones"))),
            note=note or None,
        )


def validate_quantity(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("Cantidad inválida.")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("La cantidad debe ser un número entero.")
        value = int(value)
    quantity = safe_int(value)
    if quantity is None or quantity < 1:
        raise ValidationError("La cantidad debe ser un entero mayor a cero.")
    return quantity


def coerce_line_item(value) -> LineItem:
    if isinstance(value, LineItem):
        return value
    return LineItem.from_dict(value)


def items_total(items: Iterable[LineItem]) -> Decimal:
    return money(sum((item.subtotal for item in items), Decimal("0")))
