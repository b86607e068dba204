# tests/test_catalog.py
import random
from collections import Counter

from app.repositories.product_repo import to_product
from app.schemas.product import ProductRead
from app.services.catalog_service import (
    CatalogService,
    derive_categories,
    filter_by_category,
    shuffle_comparator,
    shuffle_uniform,
)


def _p(pid: str, category: str | None = None) -> ProductRead:
    return ProductRead(id=pid, title=pid.upper(), category=category)


# ----- Category deriver -----


def test_derive_categories_of_empty_catalog_is_all():
    assert derive_categories([]) == ["All"]


def test_derive_categories_keeps_first_seen_order_without_duplicates():
    products = [
        _p("a", "Sarees"),
        _p("b", "Dresses"),
        _p("c", None),
        _p("d", "Sarees"),
        _p("e", ""),
        _p("f", "Kurtis"),
        _p("g", "Dresses"),
    ]
    assert derive_categories(products) == ["All", "Sarees", "Dresses", "Kurtis"]


def test_filter_by_category():
    products = [_p("a", "Sarees"), _p("b", "Dresses"), _p("c")]
    assert filter_by_category(products, "All") == products
    assert filter_by_category(products, None) == products
    assert [p.id for p in filter_by_category(products, "Sarees")] == ["a"]
    assert filter_by_category(products, "Shoes") == []


# ----- Record normalisation -----


def test_to_product_prefers_image_list_over_legacy_field():
    product = to_product(
        {
            "id": 12,
            "title": " Saree ",
            "price": "500",
            "category": "Sarees",
            "imageURL": "http://x/legacy.jpg",
            "imageURLs": ["http://x/1.jpg", "http://x/2.jpg"],
            "createdAt": "2025-01-01T10:00:00Z",
        }
    )
    assert product.id == "12"
    assert product.title == "Saree"
    assert product.image_urls == ["http://x/1.jpg", "http://x/2.jpg"]
    assert product.cover_image_url == "http://x/1.jpg"
    assert product.created_at.year == 2025


def test_to_product_falls_back_to_legacy_image_and_empty_price():
    product = to_product({"id": "p", "title": "Dress", "price": "", "imageURL": "http://x/a.jpg", "imageURLs": []})
    assert product.image_urls == ["http://x/a.jpg"]
    assert product.price is None
    assert product.category is None


def test_to_product_without_images():
    product = to_product({"id": "p", "title": "Dress"})
    assert product.image_urls == []
    assert product.cover_image_url is None


# ----- Repository client -----


def test_fetch_latest_orders_by_created_at_desc(catalog, products_table):
    products_table.seed(title="old")
    products_table.seed(title="middle")
    products_table.seed(title="new")

    titles = [p.title for p in catalog.fetch_all(order="latest")]
    assert titles == ["new", "middle", "old"]


def test_fetch_shuffle_returns_same_products(catalog, products_table):
    for i in range(8):
        products_table.seed(title=f"p{i}")

    shuffled = catalog.fetch_all(order="shuffle")
    assert sorted(p.title for p in shuffled) == [f"p{i}" for i in range(8)]


def test_default_order_comes_from_configuration(repo, feed, products_table):
    for i in range(6):
        products_table.seed(title=f"p{i}")

    service = CatalogService(repo, feed, default_order="shuffle", rng=random.Random(3))
    service.fetch_all()
    assert products_table.calls == [("select", None)]
    # unordered fetch + client-side shuffle: a latest-first listing would be p5..p0
    orders = {tuple(p.title for p in service.fetch_all()) for _ in range(10)}
    assert len(orders) > 1


def test_fetch_errors_degrade_to_empty_list(catalog, products_table, caplog):
    products_table.seed(title="x")
    products_table.fail = True

    assert catalog.fetch_all() == []
    assert catalog.fetch_all(order="shuffle") == []
    assert "Error loading products" in caplog.text


def test_both_shuffles_are_permutations():
    items = [_p(str(i)) for i in range(10)]
    rng = random.Random(1)
    for shuffle in (shuffle_uniform, shuffle_comparator):
        out = shuffle(items, rng)
        assert sorted(p.id for p in out) == sorted(p.id for p in items)
    # input is never mutated
    assert [p.id for p in items] == [str(i) for i in range(10)]


def test_uniform_shuffle_puts_first_item_everywhere():
    items = [_p(str(i)) for i in range(4)]
    rng = random.Random(42)
    positions = Counter(
        [p.id for p in shuffle_uniform(items, rng)].index("0") for _ in range(4000)
    )
    for pos in range(4):
        assert 800 < positions[pos] < 1200


# ----- Subscriptions -----


def test_subscribe_delivers_snapshot_then_changes(catalog, products_table):
    products_table.seed(title="first")
    received: list[list[str]] = []

    unsubscribe = catalog.subscribe(lambda items: received.append([p.title for p in items]))
    assert received == [["first"]]

    products_table.seed(title="second")
    catalog.notify_changed()
    assert received[-1] == ["second", "first"]

    unsubscribe()
    unsubscribe()
    catalog.notify_changed()
    assert len(received) == 2


def test_failing_listener_does_not_block_others(feed, caplog):
    seen = []

    def broken(_items):
        raise RuntimeError("listener exploded")

    feed.subscribe(broken)
    feed.subscribe(seen.append)
    feed.publish([_p("a")])

    assert len(seen) == 1
    assert "Catalog listener failed" in caplog.text


def test_failed_refresh_keeps_subscribers_on_last_snapshot(catalog, products_table, caplog):
    products_table.seed(title="Saree")
    received: list[list[str]] = []
    catalog.subscribe(lambda items: received.append([p.title for p in items]))

    products_table.fail = True
    catalog.notify_changed()

    assert received == [["Saree"]]
    assert "Error loading products for subscribers" in caplog.text
