"""
Abandoned-cart reminder flow.

A cart-abandoned webhook schedules one reminder after a delay. The reminder is
keyed by the cart token, so a repeated webhook for the same cart replaces the
pending reminder instead of adding a second one.

Design decisions:
- The tenant comes from the landing page host ("www.acme.in" -> "ACME")
- The ledger is checked both when scheduling and when the reminder fires
- Reminders live in memory only and are lost on restart
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from reconciliation.dispatcher import NotificationDispatcher
from reconciliation.scheduler import DelayedTaskScheduler
from shared.accounts import AccountRegistry
from shared.ledger import ABANDONED_CART_KEY, MessageLedger, terminal_tags
from shared.models import Outcome
from shared.results import ErrorKind
from shared.templates import abandoned_cart_message

logger = logging.getLogger("abandoned_cart")

DEFAULT_ACCOUNT_CODE = "DEFAULT"


class CartAttributes(BaseModel):
    cart_token: Optional[str] = Field(default=None, alias="shopifyCartToken")
    landing_page_url: Optional[str] = Field(default=None)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AbandonedCartPayload(BaseModel):
    """Cart-abandoned webhook body."""
    phone: Optional[str] = None
    first_name: Optional[str] = None
    custom_attributes: CartAttributes = Field(default_factory=CartAttributes)

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @property
    def cart_key(self) -> Optional[str]:
        """Cart token, or the phone number when the token is missing."""
        return self.custom_attributes.cart_token or self.phone


def account_code_from_url(url: Optional[str]) -> str:
    """
    Tenant code from a landing page URL.

    >>> account_code_from_url("https://www.acme.in/collections/all")
    'ACME'
    """
    if not url or not url.strip():
        return DEFAULT_ACCOUNT_CODE
    raw = url.strip()
    host = urlparse(raw if "://" in raw else f"https://{raw}").hostname or ""
    if host.startswith("www."):
        host = host[4:]
    name = host.split(".")[0]
    return name.upper() if name else DEFAULT_ACCOUNT_CODE


class AbandonedCartFlow:
    """
    Schedules and sends abandoned-cart reminders.

    Example:
        flow = AbandonedCartFlow(accounts, ledger, dispatcher, scheduler, delay_seconds=3600)
        outcome = flow.handle(payload)
    """

    def __init__(
        self,
        accounts: AccountRegistry,
        ledger: MessageLedger,
        dispatcher: NotificationDispatcher,
        scheduler: DelayedTaskScheduler,
        delay_seconds: float = 3600.0,
    ):
        self.accounts = accounts
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.delay_seconds = delay_seconds

    def handle(self, payload: AbandonedCartPayload) -> Outcome:
        """Validate the payload and schedule a reminder."""
        cart_key = payload.cart_key

        def failure(error: ErrorKind, message: str) -> Outcome:
            return Outcome(success=False, message=message, order_id=cart_key, error=error.value)

        if not payload.phone:
            logger.warning("Abandoned cart webhook without a phone number, skipping")
            return failure(ErrorKind.VALIDATION, "Missing phone number")

        account_code = account_code_from_url(payload.custom_attributes.landing_page_url)
        if account_code not in self.accounts:
            logger.warning(f"Account {account_code} not configured for cart {cart_key}")
            return failure(ErrorKind.NOT_CONFIGURED, f"Account not configured: {account_code}")

        if self.ledger.has_any_status(cart_key, account_code, terminal_tags(ABANDONED_CART_KEY)):
            logger.info(f"Abandoned cart reminder already handled for {cart_key} ({account_code})")
            return Outcome(success=True, message="Already notified", order_id=cart_key)

        try:
            job = self.scheduler.schedule(
                f"{account_code}:{cart_key}", self.delay_seconds, self.send_reminder, account_code, payload
            )
        except RuntimeError as e:
            logger.error(f"Could not schedule reminder for cart {cart_key}: {e}")
            return failure(ErrorKind.EXTERNAL_API, str(e))

        return Outcome(success=True, message=f"Reminder scheduled for {job.next_run_time:%Y-%m-%d %H:%M:%S} UTC",
                       order_id=cart_key)

    def send_reminder(self, account_code: str, payload: AbandonedCartPayload) -> bool:
        """Send the reminder now. Returns True when the notifier accepted it."""
        cart_key = payload.cart_key
        if self.ledger.has_any_status(cart_key, account_code, terminal_tags(ABANDONED_CART_KEY)):
            logger.info(f"Abandoned cart reminder for {cart_key} sent in the meantime, skipping")
            return False

        message = abandoned_cart_message(payload.first_name, payload.custom_attributes.landing_page_url)
        sent = self.dispatcher.notify(account_code, cart_key, ABANDONED_CART_KEY, payload.phone, message)
        if not sent.ok:
            logger.error(f"Abandoned cart reminder for {cart_key} failed: {sent.reason}")
        return sent.ok
