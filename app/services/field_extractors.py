"""
Vendor field-name fallbacks

Yampi accounts and API versions disagree on field names for the same value
(``price`` vs ``amount``, ``delivery_time`` vs ``deadline``...). Every list
below is ordered by preference; the first field holding a usable value wins.
"""
import math
from typing import Any, Mapping, Optional, Sequence, Union

# Shipping-costs service records
PRICE_FIELDS = ("price", "amount")
FORMATTED_PRICE_FIELDS = ("formatted_price",)
SERVICE_NAME_FIELDS = ("service_display_name", "service_name", "title")
SERVICE_CODE_FIELDS = ("service_id", "service_code", "id")
DELIVERY_DAYS_FIELDS = ("delivery_time", "deadline", "estimated_days")

# Products endpoint records
PRODUCT_ID_FIELDS = ("id", "sku_id", "sku", "code")
PRODUCT_LOOKUP_ID_FIELDS = ("id", "sku_id")
PRODUCT_CODE_FIELDS = ("sku", "code")
HANDLING_DAYS_FIELDS = ("posting_days", "lead_time", "production_time_days", "handling_time")

DEFAULT_SERVICE_NAME = "Envio"


def _as_mapping(record: Any) -> Mapping:
    return record if isinstance(record, Mapping) else {}


def to_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings; None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def first_present(record: Any, fields: Sequence[str]) -> Any:
    """First value that is not None."""
    data = _as_mapping(record)
    for name in fields:
        value = data.get(name)
        if value is not None:
            return value
    return None


def first_non_empty(record: Any, fields: Sequence[str]) -> Any:
    """First value that is neither None nor blank."""
    data = _as_mapping(record)
    for name in fields:
        value = data.get(name)
        if value is None or value == "" or value is False:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def first_strict_number(record: Any, fields: Sequence[str]) -> Optional[Union[int, float]]:
    """First value that is already an int or float (strings and bools ignored)."""
    data = _as_mapping(record)
    for name in fields:
        value = data.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            continue
        return int(value) if float(value).is_integer() else value
    return None


def non_negative_days(value: Any) -> int:
    """Day counts: coerce, floor and clamp at zero."""
    number = to_number(value)
    if number is None:
        return 0
    return max(0, int(math.floor(number)))


def extract_price(service: Any) -> Optional[Union[int, float]]:
    return first_strict_number(service, PRICE_FIELDS)


def extract_formatted_price(service: Any) -> str:
    value = first_non_empty(service, FORMATTED_PRICE_FIELDS)
    return str(value) if value is not None else ""


def extract_service_name(service: Any) -> str:
    value = first_non_empty(service, SERVICE_NAME_FIELDS)
    return str(value) if value is not None else DEFAULT_SERVICE_NAME


def extract_service_code(service: Any) -> Union[str, int, float]:
    """First scalar code; nested objects, lists and bools are skipped."""
    data = _as_mapping(service)
    for name in SERVICE_CODE_FIELDS:
        value = data.get(name)
        if isinstance(value, bool):
            continue
        if isinstance(value, str) and value.strip():
            return value
        if isinstance(value, (int, float)) and not (math.isnan(value) or math.isinf(value)):
            return value
    return ""


def extract_delivery_days(service: Any) -> int:
    return non_negative_days(first_present(service, DELIVERY_DAYS_FIELDS))


def extract_product_id(product: Any, fields: Sequence[str] = PRODUCT_ID_FIELDS) -> Optional[int]:
    """Whole-number id read from the first present field."""
    data = _as_mapping(product)
    for name in fields:
        value = data.get(name)
        if value is None:
            continue
        number = to_number(value)
        # the first present field decides, even when it is not numeric
        if number is None or not number.is_integer():
            return None
        return int(number)
    return None


def extract_product_code(product: Any) -> str:
    data = _as_mapping(product)
    for name in PRODUCT_CODE_FIELDS:
        value = data.get(name)
        if value is None or value == "":
            continue
        return str(value).strip()
    return ""


def extract_handling_days(product: Any) -> int:
    return non_negative_days(first_present(product, HANDLING_DAYS_FIELDS))
