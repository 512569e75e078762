"""
Input validation — everything here runs before any remote call.

Validators return ``Result[T, ValidationError]`` with the cleaned value, so
callers thread the sanitised input forward instead of the raw one.

    match validate_listing(draft):
        case Ok(clean): await catalog.add_item(...)
        case Error(e): return Error(e)
"""

from __future__ import annotations

import re
from dataclasses import replace

from kungfu import Result, Ok, Error

from bazaar.errors import ValidationError
from bazaar.inventory._types import ListingDraft, ListingPatch
from bazaar.orders._types import ShippingInfo
from bazaar.payments._types import PaymentMethod

MAX_QUANTITY = 10_000
MAX_STOCK = 10_000
MAX_PRICE_CENTS = 100_000_000
TITLE_LENGTH = (3, 100)
DESCRIPTION_LENGTH = (10, 1000)
CATEGORY_LENGTH = 50
DEFAULT_CATEGORY = "Other"

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")
_JS_URL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)


# ═══════════════════════════════════════════════════════════════════════════════
# Text
# ═══════════════════════════════════════════════════════════════════════════════


def sanitize_text(value: str | None, max_length: int = 1000) -> str:
    """
    Strip markup and script vectors, trim, and truncate.

    >>> sanitize_text("<b>Nice</b> lamp<script>alert(1)</script>")
    'Nice lamp'
    """
    if not value:
        return ""
    cleaned = _SCRIPT_TAG.sub("", value)
    cleaned = _HTML_TAG.sub("", cleaned)
    cleaned = _JS_URL.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    return cleaned.strip()[:max_length]


def require_id(value: str | None, field: str) -> Result[str, ValidationError]:
    if not value or not value.strip():
        return Error(ValidationError(field, "is required"))
    return Ok(value.strip())


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout input
# ═══════════════════════════════════════════════════════════════════════════════


def validate_quantity(quantity: int) -> Result[int, ValidationError]:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return Error(ValidationError("quantity", "must be a whole number"))
    if quantity < 1:
        return Error(ValidationError("quantity", "must be at least 1"))
    if quantity > MAX_QUANTITY:
        return Error(ValidationError("quantity", f"must be at most {MAX_QUANTITY:,}"))
    return Ok(quantity)


def parse_payment_method(value: PaymentMethod | str) -> Result[PaymentMethod, ValidationError]:
    if isinstance(value, PaymentMethod):
        return Ok(value)
    method = PaymentMethod.parse(value) if isinstance(value, str) else None
    if method is None:
        choices = ", ".join(m.value for m in PaymentMethod)
        return Error(ValidationError("payment_method", f"must be one of {choices}"))
    return Ok(method)


def validate_shipping(
    shipping: ShippingInfo | None,
) -> Result[ShippingInfo | None, ValidationError]:
    """Optional, but if present every field must survive sanitising."""
    if shipping is None:
        return Ok(None)

    cleaned: dict[str, str] = {}
    for name, raw in shipping.to_dict().items():
        value = sanitize_text(raw, 200)
        if not value:
            return Error(ValidationError(f"shipping.{name}", "is required"))
        cleaned[name] = value
    return Ok(ShippingInfo.from_dict(cleaned))


# ═══════════════════════════════════════════════════════════════════════════════
# Listings
# ═══════════════════════════════════════════════════════════════════════════════


def _check_title(title: str) -> Result[str, ValidationError]:
    clean = sanitize_text(title, TITLE_LENGTH[1])
    if len(clean) < TITLE_LENGTH[0]:
        return Error(ValidationError("title", f"must be at least {TITLE_LENGTH[0]} characters long"))
    return Ok(clean)


def _check_description(description: str) -> Result[str, ValidationError]:
    clean = sanitize_text(description, DESCRIPTION_LENGTH[1])
    if len(clean) < DESCRIPTION_LENGTH[0]:
        return Error(
            ValidationError(
                "description", f"must be at least {DESCRIPTION_LENGTH[0]} characters long"
            )
        )
    return Ok(clean)


def _check_price(price_cents: int) -> Result[int, ValidationError]:
    if isinstance(price_cents, bool) or not isinstance(price_cents, int):
        return Error(ValidationError("price", "must be an amount in centavos"))
    if price_cents <= 0 or price_cents > MAX_PRICE_CENTS:
        return Error(ValidationError("price", "must be between ₱0.01 and ₱1,000,000"))
    return Ok(price_cents)


def _check_stock(stock: int) -> Result[int, ValidationError]:
    if isinstance(stock, bool) or not isinstance(stock, int):
        return Error(ValidationError("stock", "must be a whole number"))
    if stock < 0 or stock > MAX_STOCK:
        return Error(ValidationError("stock", f"must be between 0 and {MAX_STOCK:,}"))
    return Ok(stock)


def _check_category(category: str | None) -> str:
    return sanitize_text(category, CATEGORY_LENGTH) or DEFAULT_CATEGORY


def _check_image(image_url: str | None) -> Result[str | None, ValidationError]:
    if not image_url:
        return Ok(None)
    if not image_url.startswith("data:image/"):
        return Error(ValidationError("image", "invalid image format"))
    return Ok(image_url)


def validate_listing(draft: ListingDraft) -> Result[ListingDraft, ValidationError]:
    match _check_title(draft.title):
        case Error(e):
            return Error(e)
        case Ok(title):
            pass
    match _check_description(draft.description):
        case Error(e):
            return Error(e)
        case Ok(description):
            pass
    match _check_price(draft.price_cents):
        case Error(e):
            return Error(e)
    match _check_stock(draft.stock):
        case Error(e):
            return Error(e)
    match _check_image(draft.image_url):
        case Error(e):
            return Error(e)
        case Ok(image_url):
            pass

    return Ok(
        replace(
            draft,
            title=title,
            description=description,
            category=_check_category(draft.category),
            image_url=image_url,
        )
    )


def validate_patch(patch: ListingPatch) -> Result[ListingPatch, ValidationError]:
    """
    Validate only the fields being changed.

    Price is not checked here: listings reject any price change outright.
    """
    cleaned = patch
    if patch.title is not None:
        match _check_title(patch.title):
            case Error(e):
                return Error(e)
            case Ok(title):
                cleaned = replace(cleaned, title=title)
    if patch.description is not None:
        match _check_description(patch.description):
            case Error(e):
                return Error(e)
            case Ok(description):
                cleaned = replace(cleaned, description=description)
    if patch.stock is not None:
        match _check_stock(patch.stock):
            case Error(e):
                return Error(e)
    if patch.category is not None:
        cleaned = replace(cleaned, category=_check_category(patch.category))
    if patch.image_url is not None:
        match _check_image(patch.image_url):
            case Error(e):
                return Error(e)
    return Ok(cleaned)


__all__ = (
    "MAX_QUANTITY",
    "MAX_STOCK",
    "MAX_PRICE_CENTS",
    "DEFAULT_CATEGORY",
    "sanitize_text",
    "require_id",
    "validate_quantity",
    "parse_payment_method",
    "validate_shipping",
    "validate_listing",
    "validate_patch",
)
