"""
Order Module - Composer
========================
Draft order being built on the waiter panel before submission.
Purely local state; nothing here touches the database.
"""

from decimal import Decimal
from typing import List, Tuple

from common.helpers import safe_int
from modules.order.items import LineItem, coerce_line_item, items_total, validate_quantity


class OrderComposer:
    """Accumulates line items. Lines with the same dish and option set are merged."""

    def __init__(self, items=None):
        self._items: List[LineItem] = []
        for item in items or ():
            self.add_item(item)

    @property
    def items(self) -> Tuple[LineItem, ...]:
        return tuple(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def total(self) -> Decimal:
        return items_total(self._items)

    def add_item(self, item) -> LineItem:
        item = coerce_line_item(item)
        for index, line in enumerate(self._items):
            if line.same_dish(item):
                merged = line.with_quantity(line.quantity + item.quantity)
                self._items[index] = merged
                return merged
        self._items.append(item)
        return item

    def remove_item(self, item) -> int:
        """Remove every line matching dish, option set and note. Returns how many were removed."""
        item = coerce_line_item(item)
        before = len(self._items)
        self._items = [line for line in self._items if not line.matches(item)]
        return before - len(self._items)

    def set_quantity(self, item, quantity) -> None:
        """Overwrite the quantity of matching lines. Anything below 1 removes them."""
        item = coerce_line_item(item)
        if isinstance(quantity, float) and quantity.is_integer():
            quantity = int(quantity)
        parsed = None if isinstance(quantity, bool) else safe_int(quantity)
        if quantity is None or (parsed is not None and parsed < 1):
            self.remove_item(item)
            return
        quantity = validate_quantity(quantity)
        self._items = [
            line.with_quantity(quantity) if line.matches(item) else line
            for line in self._items
        ]

    def clear(self) -> None:
        self._items = []

    def to_list(self) -> List[dict]:
        return [item.to_dict() for item in self._items]

    def __len__(self):
        return len(self._items)
