"""Normalise raw product payloads from the PSS API.

The upstream JSON is loosely typed: most fields are optional and several
have legacy aliases. Everything is resolved here, once, so the rest of the
package only ever sees :class:`~pss_monitor.models.ProductSnapshot`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import ParseError
from .models import (ProductDescriptor, ProductSnapshot, SizeAvailability,
                     SizeMapping, SizeOption, SizeStock)

logger = logging.getLogger(__name__)

SIZE_OPTION_CODE = "size"


def _first_nonempty(*vals: Any) -> Optional[str]:
    for v in vals:
        # 0, False and empty containers count as missing, like an empty string.
        if not v:
            continue
        s = str(v).strip()
        if s:
            return s
    return None


def _first_item(value: Any) -> Optional[str]:
    if isinstance(value, list) and value:
        return _first_nonempty(value[0])
    return None


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _parse_descriptor(data: dict, product_id: str) -> ProductDescriptor:
    prices = _as_dict(data.get("prices"))
    brand = _as_dict(data.get("brand"))
    discount = _first_nonempty(prices.get("discount"))

    return ProductDescriptor(
        product_id=_first_nonempty(data.get("entity_id"), data.get("productID"), product_id) or str(product_id),
        title=_first_nonempty(data.get("name")) or "Unknown",
        brand=_first_nonempty(brand.get("name")) or "Unknown",
        price=_first_nonempty(prices.get("current"), prices.get("specialPrice")),
        original_price=_first_nonempty(prices.get("old"), prices.get("retailPrice")),
        discount=f"{discount}%" if discount else None,
        image_url=_first_item(data.get("images")) or _first_item(data.get("thumbnails")),
        in_stock=bool(data.get("inStock")) or data.get("in_stock") == "1",
        product_type=_first_nonempty(data.get("product_type")),
        description=_first_nonempty(data.get("description")),
    )


def _find_size_option(options: Any) -> Optional[dict]:
    if options is None:
        return None
    if not isinstance(options, list):
        raise ParseError(f"Unexpected 'options' type: {type(options).__name__}")
    for opt in options:
        if isinstance(opt, dict) and opt.get("code") == SIZE_OPTION_CODE:
            return opt
    return None


def _parse_sizes(option: Optional[dict]) -> tuple[SizeMapping, SizeAvailability]:
    mapping: SizeMapping = {}
    availability: SizeAvailability = {}
    if not option:
        return mapping, availability

    values = option.get("values")
    if values is None:
        return mapping, availability
    if not isinstance(values, list):
        raise ParseError(f"Unexpected size 'values' type: {type(values).__name__}")

    for value in values:
        if not isinstance(value, dict) or value.get("id") is None:
            logger.debug("Skipping size value without id: %r", value)
            continue
        size_id = str(value["id"])
        mapping[size_id] = SizeOption(
            label=_first_nonempty(value.get("value"), value.get("label")) or size_id,
            variant_id=_first_nonempty(value.get("product_id")),
        )
        # The API lists only sizes that can be bought and exposes no per-size
        # quantity, so a listed size counts as one unit in stock.
        availability[size_id] = SizeStock(in_stock=True, quantity=1)
    return mapping, availability


def parse_product(payload: Any, product_id: str) -> ProductSnapshot:
    """Turn a product-detail payload into a :class:`ProductSnapshot`.

    Missing brand, price or images fall back to defaults. A product without
    a size option group is valid and yields empty size maps. Only payloads
    whose structure is wrong (not an object, non-list options) raise
    :class:`ParseError`.
    """
    if not isinstance(payload, dict):
        raise ParseError(f"Product {product_id}: expected a JSON object, got {type(payload).__name__}")

    descriptor = _parse_descriptor(payload, str(product_id))
    size_mapping, availability = _parse_sizes(_find_size_option(payload.get("options")))

    logger.info(
        "Found %d sizes for %s - %s (inStock: %s, hasSizes: %s)",
        len(size_mapping), descriptor.brand, descriptor.title, descriptor.in_stock, bool(size_mapping),
    )
    return ProductSnapshot(descriptor=descriptor, size_mapping=size_mapping, availability=availability)


__all__ = ["SIZE_OPTION_CODE", "parse_product"]
