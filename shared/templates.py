"""
Notification template variables.

The notifier renders messages from templates stored on its side; we only send
the template id and an ordered list of variables. Variable positions are a
contract with the template, so each builder here fixes the order.

Design decisions:
- One builder per message kind, returning a TemplateMessage
- Builders never fail: missing values become "" (or "0" for counts)
- Media and cards carry a URL (tracking page or product page)
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from shared.accounts import AccountConfig
from shared.models import ProductDetail, StatusEvent


@dataclass
class TemplateMessage:
    """
    An ordered variable list for one template, plus optional media.

    Attributes:
        template_key: Key into the account's template map (e.g. "inTransit")
        variables: Positional template variables
        media_url: URL for the header media slot
        cards: One media URL per carousel card
    """
    template_key: str
    variables: list[str]
    media_url: Optional[str] = None
    cards: list[str] = field(default_factory=list)


# =============================================================================
# Phone numbers
# =============================================================================

def format_phone_number(phone: Optional[str]) -> str:
    """
    Normalize an Indian mobile number to +91XXXXXXXXXX.

    Non-digits are dropped, then a single leading 0. Returns "" when the
    number cannot be normalized.
    """
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("0"):
        digits = digits[1:]
    if len(digits) == 10:
        return "+91" + digits
    if digits.startswith("91") and len(digits) > 10:
        return "+91" + digits[2:]
    return ""


# =============================================================================
# Shipment status messages
# =============================================================================

def _count(event: StatusEvent) -> str:
    return str(event.product_count) if event.product_count is not None else "0"


def _tracking_message(template_key: str, count: str, event: StatusEvent, account: AccountConfig) -> TemplateMessage:
    tracking_url = account.tracking_url(event.awb)
    variables = [event.shipping_first_name or "", count, event.order_id or ""]
    if tracking_url:
        variables.append(tracking_url)
    return TemplateMessage(
        template_key=template_key,
        variables=variables,
        media_url=tracking_url,
        cards=[tracking_url] if tracking_url else [],
    )


def in_transit_message(event: StatusEvent, account: AccountConfig) -> TemplateMessage:
    """[first name, product count, order id, tracking url]"""
    return _tracking_message("inTransit", _count(event), event, account)


def out_for_delivery_message(event: StatusEvent, account: AccountConfig) -> TemplateMessage:
    """[first name, "<count> item", order id, tracking url]"""
    return _tracking_message("outForDelivery", f"{_count(event)} item", event, account)


def delivered_message(
    order_id: str,
    account: AccountConfig,
    products: Optional[list[ProductDetail]] = None,
) -> TemplateMessage:
    """
    [order id, product url, product url]

    The product URL points at the first product's review section. Each product
    with a handle becomes a card.
    """
    products = products or []
    first_handle = products[0].handle if products else None
    product_url = account.product_url(first_handle)

    cards = [account.product_url(p.handle) for p in products if p.handle]
    return TemplateMessage(
        template_key="delivered",
        variables=[order_id or "", product_url, product_url],
        media_url=product_url if products else None,
        cards=cards,
    )


# =============================================================================
# Shop-side messages
# =============================================================================

def order_created_message(first_name: Optional[str], order_name: Optional[str]) -> TemplateMessage:
    return TemplateMessage(
        template_key="orderCreated",
        variables=[first_name or "", order_name or ""],
    )


def abandoned_cart_message(first_name: Optional[str], landing_page_url: Optional[str]) -> TemplateMessage:
    return TemplateMessage(
        template_key="abandonedCart",
        variables=[first_name or "", landing_page_url or ""],
    )
