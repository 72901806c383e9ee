"""In-memory inventory."""

from typing import List

from .pricing import apply_tax, discount


class Item:
    def __init__(self, name: str, price: float):
        self.name = name
        self.price = price

    def price_with_tax(self) -> float:
        return apply_tax(self.price)


class Inventory:
    def __init__(self):
        self.items: List[Item] = []

    def add(self, item: Item) -> None:
        self.items.append(item)

    def total(self) -> float:
        return sum(item.price_with_tax() for item in self.items)

    def sale_total(self, percent: float) -> float:
        return discount(self.total(), percent)
