"""
Commerce platform integration.

- ShopifyClient: GraphQL/REST calls for orders, fulfillments and tags
- Status vocabularies for fulfillment events and tracking updates
- Global id parsing helpers
"""

from commerce.client import ShopifyClient, parse_order_handle, pick_open_fulfillment_order
from commerce.ids import parse_numeric_id

__all__ = [
    "ShopifyClient",
    "parse_order_handle",
    "pick_open_fulfillment_order",
    "parse_numeric_id",
]
