# app/repositories/product_repo.py
from datetime import datetime
from typing import Any

from supabase import Client

from app.schemas.product import ProductRead


def _parse_timestamp(raw: Any) -> datetime | None:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def to_product(row: dict[str, Any]) -> ProductRead:
    """
    Map a raw `products` row into the normalized ProductRead.

    - imageURLs wins when it is a non-empty list, otherwise the legacy
      single imageURL field is used, otherwise no images.
    - An empty price string means "price on request" (None).
    """
    urls = row.get("imageURLs")
    if isinstance(urls, list) and urls:
        image_urls = [str(u) for u in urls if u]
    elif row.get("imageURL"):
        image_urls = [str(row["imageURL"])]
    else:
        image_urls = []

    price = row.get("price")
    if price is not None:
        price = str(price).strip() or None

    category = row.get("category") or None

    return ProductRead(
        id=str(row["id"]),
        title=(row.get("title") or "").strip(),
        price=price,
        category=category,
        image_urls=image_urls,
        created_at=_parse_timestamp(row.get("createdAt")),
    )


class ProductRepository:
    """
    Data access layer for the `products` table in Supabase.

    - Pure PostgREST operations, rows in and ProductRead out.
    - No FastAPI, no business logic.
    - createdAt is filled by the table default (server timestamp).
    """

    def __init__(self, client: Client, table: str = "products"):
        self.client = client
        self.table = table

    def list(self, latest_first: bool = True) -> list[ProductRead]:
        query = self.client.table(self.table).select("*")
        if latest_first:
            query = query.order("createdAt", desc=True)
        resp = query.execute()
        return [to_product(row) for row in resp.data or []]

    def get_by_id(self, product_id: str) -> ProductRead | None:
        resp = (
            self.client.table(self.table)
            .select("*")
            .eq("id", product_id)
            .limit(1)
            .execute()
        )
        rows = resp.data or []
        return to_product(rows[0]) if rows else None

    def create(self, record: dict[str, Any]) -> ProductRead:
        resp = self.client.table(self.table).insert(record).execute()
        return to_product(resp.data[0])

    def update(self, product_id: str, record: dict[str, Any]) -> ProductRead | None:
        resp = self.client.table(self.table).update(record).eq("id", product_id).execute()
        rows = resp.data or []
        return to_product(rows[0]) if rows else None

    def delete(self, product_id: str) -> bool:
        resp = self.client.table(self.table).delete().eq("id", product_id).execute()
        return bool(resp.data)
