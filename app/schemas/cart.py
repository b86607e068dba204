# app/schemas/cart.py
from sqlmodel import SQLModel, Field


class CartLine(SQLModel):
    """
    One product in the cart, with a snapshot of the product fields
    taken when it was first added.
    """

    product_id: str
    title: str = ""
    price: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    quantity: int = Field(default=1, ge=1)


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart (always +1).
    """

    product_id: str = Field(min_length=1)


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart line.
    Zero or negative removes the line.
    """

    quantity: int


class CartSummary(SQLModel):
    """
    Full cart response model with the badge count.
    """

    items: list[CartLine]
    total_count: int


class CartCount(SQLModel):
    total_count: int


class CheckoutLink(SQLModel):
    url: str
    message: str
