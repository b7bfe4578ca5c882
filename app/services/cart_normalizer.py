"""
Cart normalization

Accepts the request bodies the storefront sends and produces one canonical
cart. Supported shapes:

A) { postal_code, items: [{ sku_id_yampi, quantity } | { sku, quantity }] }
B) { zipcode | zip | cep, items: [...] }
C) { postal_code, cart_items: [raw Shopify /cart.js line items] }
   where the Yampi id lives in ``properties.yampi_sku_id``.

Items lacking both a numeric id and a SKU code are kept here and dropped
during id resolution.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from app.core.exceptions import MissingItems, MissingPostalCode
from app.services.field_extractors import to_number

logger = logging.getLogger(__name__)

POSTAL_CODE_FIELDS = ("postal_code", "zipcode", "zip", "cep")
ITEM_ID_FIELDS = ("sku_id_yampi", "sku_id")
LINE_ITEM_ID_PROPERTIES = ("yampi_sku_id", "YAMPI_SKU_ID")

_NON_DIGITS = re.compile(r"\D")

# Units per cart line; larger values are clamped
MAX_ITEM_QUANTITY = 1000


@dataclass(frozen=True)
class CartItem:
    sku_id: Optional[int] = None
    sku: str = ""
    quantity: int = 1

    @property
    def has_sku_id(self) -> bool:
        return self.sku_id is not None


@dataclass(frozen=True)
class Cart:
    postal_code: str
    items: Tuple[CartItem, ...] = field(default_factory=tuple)


def normalize_postal_code(value: Any) -> str:
    """Keep digits only ("01311-000" -> "01311000")."""
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def coerce_quantity(value: Any) -> int:
    """Default 1, floored, clamped to 1..MAX_ITEM_QUANTITY."""
    number = to_number(value)
    if number is None:
        return 1
    quantity = max(1, int(math.floor(number)))
    if quantity > MAX_ITEM_QUANTITY:
        logger.warning(f"Clamping cart item quantity {quantity} to {MAX_ITEM_QUANTITY}")
        return MAX_ITEM_QUANTITY
    return quantity


def coerce_sku_id(value: Any) -> Optional[int]:
    number = to_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _first_truthy(data: Mapping, fields) -> Any:
    for name in fields:
        value = data.get(name)
        if value:
            return value
    return None


def _first_not_none(data: Mapping, fields) -> Any:
    for name in fields:
        value = data.get(name)
        if value is not None:
            return value
    return None


def _item_from_payload(raw: Mapping) -> CartItem:
    sku = raw.get("sku")
    return CartItem(
        sku_id=coerce_sku_id(_first_not_none(raw, ITEM_ID_FIELDS)),
        sku=str(sku).strip() if sku else "",
        quantity=coerce_quantity(raw.get("quantity")),
    )


def _item_from_line_item(line_item: Mapping) -> CartItem:
    properties = line_item.get("properties")
    if not isinstance(properties, Mapping):
        properties = {}

    product = line_item.get("product")
    product_sku = product.get("sku") if isinstance(product, Mapping) else None
    sku = line_item.get("sku") or line_item.get("variant_sku") or product_sku or ""

    return CartItem(
        sku_id=coerce_sku_id(_first_not_none(properties, LINE_ITEM_ID_PROPERTIES)),
        sku=str(sku).strip(),
        quantity=coerce_quantity(line_item.get("quantity")),
    )


def _mappings(value: Any) -> List[Mapping]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, Mapping)]


def normalize_cart(body: Any) -> Cart:
    """
    Build a Cart from any supported request shape.

    Raises:
        MissingPostalCode: no postal code field with at least one digit
        MissingItems: neither ``items`` nor ``cart_items`` yields an item
    """
    data: Dict[str, Any] = body if isinstance(body, dict) else {}

    postal_code = normalize_postal_code(_first_truthy(data, POSTAL_CODE_FIELDS))
    if not postal_code:
        raise MissingPostalCode()

    items = [_item_from_payload(raw) for raw in _mappings(data.get("items"))]

    if not items:
        items = [_item_from_line_item(raw) for raw in _mappings(data.get("cart_items"))]
        if items:
            logger.debug(f"Normalized {len(items)} Shopify cart line items")

    if not items:
        raise MissingItems()

    return Cart(postal_code=postal_code, items=tuple(items))
