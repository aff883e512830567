"""
Notification dispatcher.

Sends one templated message and records the outcome in the dedup ledger.
"""

import logging
from typing import Optional, Protocol

from shared.accounts import AccountRegistry
from shared.channels import MessageTrackingMirror, SendReceipt
from shared.ledger import MessageLedger, failed_tag, sent_tag
from shared.results import ErrorKind, Result
from shared.templates import TemplateMessage, format_phone_number

logger = logging.getLogger("notifications")


class Notifier(Protocol):
    def send(
        self,
        account_code: str,
        template_id: str,
        phone: str,
        variables: list[str],
        media_url: Optional[str] = None,
        cards: Optional[list[str]] = None,
    ) -> SendReceipt:
        ...


class NotificationDispatcher:
    """
    Template id lookup, recipient selection, send, ledger write.

    The returned Result reflects the send only. Ledger and mirror problems are
    logged, never surfaced.
    """

    def __init__(
        self,
        notifier: Notifier,
        ledger: MessageLedger,
        accounts: AccountRegistry,
        test_phone: Optional[str] = None,
        mirror: Optional[MessageTrackingMirror] = None,
    ):
        self.notifier = notifier
        self.ledger = ledger
        self.accounts = accounts
        self.test_phone = test_phone.strip() if test_phone and test_phone.strip() else None
        self.mirror = mirror

    def notify(
        self,
        account_code: str,
        order_id: str,
        ledger_key: Optional[str],
        phone: Optional[str],
        message: TemplateMessage,
    ) -> Result[SendReceipt]:
        """
        Send a message for (order_id, account_code) and record sent_/failed_.

        Problems found before the send (no template, unusable phone) are
        returned as failures without a ledger row, so a later event can retry
        once configuration is fixed.
        """
        account = self.accounts.get(account_code)
        if account is None:
            return Result.failure(ErrorKind.NOT_CONFIGURED, f"Account not configured: {account_code}")

        template_id = account.botspace.template_id(message.template_key)
        if not template_id:
            logger.warning(f"Template {message.template_key} not configured for account {account.code} "
                           f"(order: {order_id})")
            return Result.failure(ErrorKind.NOT_CONFIGURED, f"No {message.template_key} template for {account.code}")

        if self.test_phone:
            logger.info(f"TEST MODE: overriding recipient for order {order_id} with {self.test_phone}")
            recipient = self.test_phone
        else:
            recipient = format_phone_number(phone)
        if not recipient:
            logger.warning(f"Invalid phone number for order {order_id}: {phone}")
            return Result.failure(ErrorKind.VALIDATION, f"Invalid phone number: {phone}")

        receipt = self.notifier.send(
            account.code,
            template_id,
            recipient,
            message.variables,
            media_url=message.media_url,
            cards=message.cards,
        )

        tag = sent_tag(ledger_key) if receipt.accepted else failed_tag(ledger_key)
        if not self.ledger.add_status(order_id, account.code, tag):
            logger.error(f"Could not record {tag} for order {order_id} ({account.code})")
        if self.mirror is not None and self.mirror.enabled:
            self.mirror.record(order_id, account.code, tag)

        if receipt.accepted:
            logger.info(f"{message.template_key} notification sent for order {order_id} to {recipient}")
            return Result.success(receipt)

        logger.error(f"Failed to send {message.template_key} notification for order {order_id}: {receipt.error}")
        return Result(value=receipt, error=ErrorKind.EXTERNAL_API, reason=receipt.error or "Send failed")
