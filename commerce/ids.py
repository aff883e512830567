"""Shopify global id helpers."""

from typing import Optional

ORDER_GID_PREFIX = "gid://shopify/Order/"
FULFILLMENT_GID_PREFIX = "gid://shopify/Fulfillment/"
FULFILLMENT_ORDER_GID_PREFIX = "gid://shopify/FulfillmentOrder/"


def parse_numeric_id(gid: Optional[str], prefix: str) -> Optional[int]:
    """
    Strip a known gid prefix and parse the rest as an integer.

    >>> parse_numeric_id("gid://shopify/Fulfillment/555", FULFILLMENT_GID_PREFIX)
    555

    Malformed input (None, wrong prefix, non-numeric suffix) yields None.
    """
    if not gid or not prefix or not gid.startswith(prefix):
        return None
    suffix = gid[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def to_gid(identifier: str, prefix: str) -> str:
    """Prefix a bare numeric id; already-prefixed ids pass through."""
    identifier = str(identifier)
    return identifier if identifier.startswith(prefix) else f"{prefix}{identifier}"


def order_name_candidates(display_name: str) -> list[str]:
    """
    Search terms for an order display name.

    Shops store names with or without the leading "#", so both forms are
    tried, hash first.
    """
    bare = display_name[1:] if display_name.startswith("#") else display_name
    return [f"name:#{bare}", f"name:{bare}"]
