# app/services/catalog_service.py
import functools
import logging
import random
from typing import Callable, Iterable, Literal

from fastapi import HTTPException, status

from app.repositories.product_repo import ProductRepository
from app.schemas.product import ProductRead

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"

CatalogOrder = Literal["latest", "shuffle"]
ShuffleMode = Literal["uniform", "comparator"]

Listener = Callable[[list[ProductRead]], None]
Unsubscribe = Callable[[], None]


# ----- Category facets -----


def derive_categories(products: Iterable[ProductRead]) -> list[str]:
    """
    "All" followed by the distinct non-empty categories, first-seen order.
    """
    seen: dict[str, None] = {}
    for p in products:
        if p.category and p.category not in seen and p.category != ALL_CATEGORIES:
            seen[p.category] = None
    return [ALL_CATEGORIES, *seen]


def filter_by_category(
    products: Iterable[ProductRead],
    category: str | None,
) -> list[ProductRead]:
    if not category or category == ALL_CATEGORIES:
        return list(products)
    return [p for p in products if p.category == category]


# ----- Shuffles -----


def shuffle_uniform(products: list[ProductRead], rng: random.Random) -> list[ProductRead]:
    """Fisher-Yates shuffle, every permutation equally likely."""
    items = list(products)
    rng.shuffle(items)
    return items


def shuffle_comparator(products: list[ProductRead], rng: random.Random) -> list[ProductRead]:
    """
    Sort with a random comparator, like `sort(() => random() - 0.5)`.

    Biased: items tend to stay near their original position.
    """
    return sorted(products, key=functools.cmp_to_key(lambda a, b: rng.random() - 0.5))


SHUFFLES: dict[str, Callable[[list[ProductRead], random.Random], list[ProductRead]]] = {
    "uniform": shuffle_uniform,
    "comparator": shuffle_comparator,
}


# ----- Live updates -----


class CatalogFeed:
    """
    Subscription registry for catalog snapshots.

    subscribe(listener) delivers the current snapshot straight away and
    every snapshot published afterwards, until the returned handle is
    called.
    """

    def __init__(self):
        self._listeners: dict[int, Listener] = {}
        self._next_id = 0

    def subscribe(self, listener: Listener, snapshot: list[ProductRead] | None = None) -> Unsubscribe:
        token = self._next_id
        self._next_id += 1
        self._listeners[token] = listener

        if snapshot is not None:
            self._deliver(listener, snapshot)

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def publish(self, snapshot: list[ProductRead]) -> None:
        for listener in list(self._listeners.values()):
            self._deliver(listener, snapshot)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @staticmethod
    def _deliver(listener: Listener, snapshot: list[ProductRead]) -> None:
        try:
            listener(list(snapshot))
        except Exception:
            logger.exception("Catalog listener failed")


class CatalogService:
    """
    Read side of the catalog.

    Responsibilities:
      - fetch products with the configured ordering policy
      - never raise on backend read errors (empty list instead)
      - push fresh snapshots to subscribers after admin writes
    """

    def __init__(
        self,
        repo: ProductRepository,
        feed: CatalogFeed,
        default_order: CatalogOrder = "latest",
        shuffle_mode: ShuffleMode = "uniform",
        rng: random.Random | None = None,
    ):
        self.repo = repo
        self.feed = feed
        self.default_order = default_order
        self.shuffle_mode = shuffle_mode
        self.rng = rng or random.Random()

    def fetch_all(self, order: CatalogOrder | None = None) -> list[ProductRead]:
        order = order or self.default_order
        try:
            if order == "shuffle":
                products = self.repo.list(latest_first=False)
                return SHUFFLES[self.shuffle_mode](products, self.rng)
            return self.repo.list(latest_first=True)
        except Exception:
            logger.exception("Error loading products")
            return []

    def get_product(self, product_id: str) -> ProductRead:
        try:
            product = self.repo.get_by_id(product_id)
        except Exception:
            logger.exception("Error loading product %s", product_id)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Could not load product",
            )
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self.feed.subscribe(listener, snapshot=self.fetch_all(order="latest"))

    def notify_changed(self) -> None:
        """
        Push a fresh snapshot to subscribers. When the read fails they
        keep their last snapshot.
        """
        if not self.feed.listener_count:
            return
        try:
            products = self.repo.list(latest_first=True)
        except Exception:
            logger.exception("Error loading products for subscribers")
            return
        self.feed.publish(products)
