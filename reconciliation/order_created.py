"""
Order-created confirmation flow.

Handles the commerce platform's orders/create webhook: resolve the tenant from
the shop domain, pick the customer's phone and first name, and send the
orderCreated template once per order.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from reconciliation.dispatcher import NotificationDispatcher
from shared.accounts import AccountRegistry
from shared.ledger import MessageLedger, terminal_tags
from shared.models import Outcome, StatusClass
from shared.results import ErrorKind
from shared.templates import order_created_message

logger = logging.getLogger("order_created")


# =============================================================================
# Webhook payload
# =============================================================================

class ShopifyAddress(BaseModel):
    phone: Optional[str] = None
    first_name: Optional[str] = None

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class ShopifyCustomer(BaseModel):
    phone: Optional[str] = None
    first_name: Optional[str] = None

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class ShopifyOrderPayload(BaseModel):
    """The fields of an orders/create webhook this flow reads."""
    id: Optional[str] = None
    name: Optional[str] = Field(default=None, description="Display name, e.g. #1001")
    phone: Optional[str] = None
    shipping_address: Optional[ShopifyAddress] = None
    customer: Optional[ShopifyCustomer] = None

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @property
    def contact_phone(self) -> Optional[str]:
        """Shipping address phone, then order phone, then customer phone."""
        candidates = [
            self.shipping_address.phone if self.shipping_address else None,
            self.phone,
            self.customer.phone if self.customer else None,
        ]
        return next((p for p in candidates if p and p.strip()), None)

    @property
    def first_name(self) -> str:
        candidates = [
            self.shipping_address.first_name if self.shipping_address else None,
            self.customer.first_name if self.customer else None,
        ]
        return next((n for n in candidates if n and n.strip()), "")


# =============================================================================
# Flow
# =============================================================================

class OrderCreatedFlow:
    """
    Sends one order confirmation per (order name, account).

    The ledger uses the bare "sent"/"failed" tags for this flow.
    """

    def __init__(self, accounts: AccountRegistry, ledger: MessageLedger, dispatcher: NotificationDispatcher):
        self.accounts = accounts
        self.ledger = ledger
        self.dispatcher = dispatcher

    def handle(self, payload: ShopifyOrderPayload, shop_domain: Optional[str]) -> Outcome:
        order_name = payload.name

        def failure(error: ErrorKind, message: str) -> Outcome:
            return Outcome(success=False, message=message, order_id=order_name,
                           status_class=StatusClass.ORDER_CREATED, error=error.value)

        if not order_name:
            return failure(ErrorKind.VALIDATION, "Missing order name")

        account_code = self.accounts.code_for_shop(shop_domain)
        if not account_code:
            logger.warning(f"Cannot determine account for order {order_name} (shop: {shop_domain})")
            return failure(ErrorKind.VALIDATION, "Missing shop domain")
        if account_code not in self.accounts:
            logger.warning(f"Account {account_code} not configured for order {order_name}")
            return failure(ErrorKind.NOT_CONFIGURED, f"Account not configured: {account_code}")

        phone = payload.contact_phone
        if not phone:
            logger.warning(f"Order {order_name} has no phone number, skipping confirmation")
            return failure(ErrorKind.VALIDATION, "Missing phone number")

        if self.ledger.has_any_status(order_name, account_code, terminal_tags(None)):
            logger.info(f"Order confirmation already handled for {order_name} ({account_code})")
            return Outcome(success=True, message="Already notified", order_id=order_name,
                           status_class=StatusClass.ORDER_CREATED)

        message = order_created_message(payload.first_name, order_name)
        sent = self.dispatcher.notify(account_code, order_name, None, phone, message)
        if not sent.ok:
            return failure(sent.error, sent.reason)

        logger.info(f"Order confirmation sent for {order_name} ({account_code})")
        return Outcome(success=True, message="Order processed successfully", order_id=order_name,
                       status_class=StatusClass.ORDER_CREATED)
