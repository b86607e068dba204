# app/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException, status

from app.core.config import Settings, get_settings
from app.dependencies import get_cart_store, get_catalog_service
from app.schemas.cart import (
    CartCount,
    CartItemCreate,
    CartItemUpdate,
    CartSummary,
    CheckoutLink,
)
from app.services.cart_service import CartStore
from app.services.catalog_service import CatalogService
from app.services.checkout_service import build_cart_message, make_deep_link

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartSummary)
def get_cart(cart: CartStore = Depends(get_cart_store)):
    """
    Get the device's cart.

    Scope:
      - X-Device-Id header selects the device; without it the shared
        "cart" key is used.
    """
    return cart.summary()


@router.get("/count", response_model=CartCount)
def get_cart_count(cart: CartStore = Depends(get_cart_store)):
    """
    Badge count: sum of all quantities.
    """
    return CartCount(total_count=cart.total_count())


@router.get("/checkout-link", response_model=CheckoutLink)
def cart_checkout_link(
    cart: CartStore = Depends(get_cart_store),
    settings: Settings = Depends(get_settings),
):
    """
    WhatsApp link with the whole cart as the order message.
    """
    lines = cart.lines
    if not lines:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cart is empty",
        )
    message = build_cart_message(lines)
    return CheckoutLink(url=make_deep_link(message, settings.WHATSAPP_PHONE), message=message)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    cart: CartStore = Depends(get_cart_store),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Add one unit of a product to the cart.

    The product's title, price and images are copied into the line.
    Returns the updated cart summary.
    """
    product = catalog.get_product(payload.product_id)
    cart.add_to_cart(product)
    return cart.summary()


@router.patch("/{product_id}", response_model=CartSummary)
def update_cart_item(
    product_id: str,
    payload: CartItemUpdate,
    cart: CartStore = Depends(get_cart_store),
):
    """
    Set the quantity of a product in the cart.

    Zero or less removes the line. Returns the updated cart summary.
    """
    cart.update_quantity(product_id, payload.quantity)
    return cart.summary()


@router.delete("/{product_id}", response_model=CartSummary)
def remove_cart_item(
    product_id: str,
    cart: CartStore = Depends(get_cart_store),
):
    """
    Remove a product from the cart (no-op if absent).

    Returns the updated cart summary.
    """
    cart.remove_from_cart(product_id)
    return cart.summary()
