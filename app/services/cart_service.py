# app/services/cart_service.py
import json
import logging
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from app.schemas.cart import CartLine, CartSummary
from app.schemas.product import ProductRead

logger = logging.getLogger(__name__)

_lines_adapter = TypeAdapter(list[CartLine])


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...


def serialize_cart(lines: list[CartLine]) -> str:
    return json.dumps([line.model_dump(mode="json") for line in lines])


def deserialize_cart(raw: str) -> list[CartLine]:
    lines = _lines_adapter.validate_json(raw)
    # Collapse duplicate ids if the stored value was edited by hand
    merged: dict[str, CartLine] = {}
    for line in lines:
        if line.product_id in merged:
            merged[line.product_id].quantity += line.quantity
        else:
            merged[line.product_id] = line
    return list(merged.values())


class CartStore:
    """
    The device cart: product id -> quantity, with a product snapshot per line.

    Rules:
      - at most one line per product id, insertion order kept
      - quantity is always >= 1; reaching 0 removes the line
      - every mutation writes the whole cart back to storage
      - rehydrated from storage on construction
    """

    def __init__(self, storage: KeyValueStorage, key: str = "cart"):
        self.storage = storage
        self.key = key
        self._lines: list[CartLine] = self._load()

    # ---- internal helpers ----

    def _load(self) -> list[CartLine]:
        raw = self.storage.get_item(self.key)
        if not raw:
            return []
        try:
            return deserialize_cart(raw)
        except (ValidationError, ValueError):
            logger.warning("Discarding unreadable cart stored under %r", self.key)
            return []

    def _persist(self) -> None:
        self.storage.set_item(self.key, serialize_cart(self._lines))

    def _find(self, product_id: str) -> CartLine | None:
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    # ---- public operations ----

    @property
    def lines(self) -> list[CartLine]:
        return [line.model_copy() for line in self._lines]

    def add_to_cart(self, product: ProductRead) -> None:
        existing = self._find(product.id)
        if existing:
            existing.quantity += 1
        else:
            self._lines.append(
                CartLine(
                    product_id=product.id,
                    title=product.title,
                    price=product.price,
                    image_urls=list(product.image_urls),
                    quantity=1,
                )
            )
        self._persist()

    def remove_from_cart(self, product_id: str) -> None:
        remaining = [line for line in self._lines if line.product_id != product_id]
        if len(remaining) != len(self._lines):
            self._lines = remaining
            self._persist()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_from_cart(product_id)
            return

        line = self._find(product_id)
        if line:
            line.quantity = quantity
            self._persist()

    def total_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def summary(self) -> CartSummary:
        return CartSummary(items=self.lines, total_count=self.total_count())
