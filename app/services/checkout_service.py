# app/services/checkout_service.py
"""
WhatsApp checkout messages.

Instead of a payment gateway, the customer is sent to a wa.me deep link
with the order pre-filled:

    https://wa.me/<phone>?text=<url-encoded message>
"""

from typing import Iterable
from urllib.parse import quote

from app.schemas.cart import CartLine
from app.schemas.product import ProductRead

WHATSAPP_BASE_URL = "https://wa.me"

PLACEHOLDER_TITLE = "Product"
CONFIRMATION_REQUEST = "I want to buy this. Please confirm availability."
PRICE_ON_REQUEST = "on request"
CURRENCY = "₹"

# Characters JavaScript's encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _title(raw: str | None) -> str:
    return (raw or "").strip() or PLACEHOLDER_TITLE


def make_deep_link(message: str, phone: str) -> str:
    return f"{WHATSAPP_BASE_URL}/{phone}?text={quote(message, safe=_URI_COMPONENT_SAFE)}"


def build_single_product_message(product: ProductRead) -> str:
    """
    Title, price (or "on request"), cover image when there is one,
    and the confirmation request.
    """
    price_line = (
        f"Price: {CURRENCY}{product.price}"
        if product.price
        else f"Price: {PRICE_ON_REQUEST}"
    )
    parts = [f"{_title(product.title)}\n{price_line}"]
    if product.image_urls:
        parts.append(f"Image: {product.image_urls[0]}")
    parts.append(CONFIRMATION_REQUEST)
    return "\n\n".join(parts)


def _cart_line_text(line: CartLine) -> str:
    # unit price from the add-time snapshot
    price = line.price.strip() if line.price else ""
    amount = f"{CURRENCY}{price}" if price else PRICE_ON_REQUEST
    return f"{_title(line.title)} x {line.quantity} = {amount}"


def _cart_link_block(line: CartLine) -> str:
    block = f"Product: {_title(line.title)}"
    if line.image_urls:
        block += f"\nLink: {line.image_urls[0]}"
    return block


def build_cart_message(lines: Iterable[CartLine]) -> str:
    """
    One "<title> x <qty> = ₹<price>" line per cart line, then a
    Product/Link block per line.
    """
    lines = list(lines)
    summary = "\n".join(_cart_line_text(line) for line in lines)
    blocks = "\n\n".join(_cart_link_block(line) for line in lines)
    return f"{summary}\n\n{blocks}"


def single_product_link(product: ProductRead, phone: str) -> str:
    return make_deep_link(build_single_product_message(product), phone)


def cart_link(lines: Iterable[CartLine], phone: str) -> str:
    return make_deep_link(build_cart_message(lines), phone)
