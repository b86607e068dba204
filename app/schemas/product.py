# app/schemas/product.py
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class ProductRead(SQLModel):
    """
    Normalized product, as returned to clients.

    - price: numeric string, None means "price on request"
    - image_urls: ordered, first element is the cover image
    """

    id: str
    title: str = ""
    price: str | None = None
    category: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    @property
    def cover_image_url(self) -> str | None:
        return self.image_urls[0] if self.image_urls else None


class ProductDraft(SQLModel):
    """
    Admin form fields for creating / editing a product.

    `new_category` (freeform) takes precedence over the selected
    `category` when both are supplied.
    """

    model_config = ConfigDict(extra="forbid")

    title: str = ""
    price: str = ""
    category: str = ""
    new_category: str = ""

    @field_validator("title", "price", "category", "new_category", mode="before")
    @classmethod
    def none_to_empty(cls, v: str | None) -> str:
        return "" if v is None else v

    @field_validator("price")
    @classmethod
    def numeric_price(cls, v: str) -> str:
        v = v.strip()
        if not v:
            return v
        try:
            if float(v) < 0:
                raise ValueError
        except ValueError:
            raise ValueError("price must be a non-negative number")
        return v

    def resolved_category(self) -> str:
        return self.new_category.strip() or self.category.strip()


class CatalogRead(SQLModel):
    """
    Public catalog payload: products plus the category facet list.
    """

    items: list[ProductRead]
    categories: list[str]
    selected_category: str = "All"


class UploadStatusRead(SQLModel):
    upload_id: str
    percent: int
