"""
Orchestrator for carrier status events.

Takes one inbound status event, decides whether anything needs doing,
reconciles the order's fulfillment and dispatches at most one customer message
per (order, status class, account).

Pre-checks, in order:
1. missing or unusable phone  -> failure
2. missing or unknown account -> failure
3. status unchanged           -> success, nothing done
4. ledger already has sent_/failed_ for the class -> success, nothing done

Tradeoffs:
- PRO: "nothing to do" and "something went wrong" are distinct outcomes
- CON: the ledger check and the later ledger write are not atomic, so two
  concurrent deliveries of the same event can both send
"""

import logging
from typing import Iterable, Optional

from commerce.client import ShopifyClient
from reconciliation.dispatcher import NotificationDispatcher
from reconciliation.reconciler import FLOW_POLICIES, FulfillmentReconciler, ReconcileOutcome
from shared.accounts import AccountConfig, AccountRegistry
from shared.ledger import MessageLedger, terminal_tags
from shared.models import BatchSummary, Outcome, StatusClass, StatusEvent
from shared.results import ErrorKind
from shared.statuses import classify, status_unchanged
from shared.templates import (
    TemplateMessage,
    delivered_message,
    format_phone_number,
    in_transit_message,
    out_for_delivery_message,
)

logger = logging.getLogger("orchestrator")


def _success(event: StatusEvent, status_class: Optional[StatusClass], message: str) -> Outcome:
    return Outcome(success=True, message=message, order_id=event.order_id, status_class=status_class)


def _failure(
    event: StatusEvent, status_class: Optional[StatusClass], error: ErrorKind, message: str
) -> Outcome:
    return Outcome(
        success=False,
        message=message,
        order_id=event.order_id,
        status_class=status_class,
        error=error.value,
    )


class Orchestrator:
    """
    Routes status events through pre-checks, reconciliation and dispatch.

    Example:
        orchestrator = Orchestrator(accounts, ledger, client, reconciler, dispatcher)
        outcome = orchestrator.process_event(event)
        summary = orchestrator.process_batch(webhook.orders)
    """

    def __init__(
        self,
        accounts: AccountRegistry,
        ledger: MessageLedger,
        client: ShopifyClient,
        reconciler: FulfillmentReconciler,
        dispatcher: NotificationDispatcher,
    ):
        self.accounts = accounts
        self.ledger = ledger
        self.client = client
        self.reconciler = reconciler
        self.dispatcher = dispatcher

    # =========================================================================
    # Entry points
    # =========================================================================

    def process_event(self, event: StatusEvent) -> Outcome:
        """
        Handle one status event.

        Never raises: unexpected errors are logged and returned as failures.
        """
        try:
            return self._process(event)
        except Exception as e:
            logger.exception(f"Error processing order {event.order_id}: {e}")
            return _failure(event, None, ErrorKind.EXTERNAL_API, f"Error processing order: {e}")

    def process_batch(self, events: Iterable[StatusEvent]) -> BatchSummary:
        """Process events one after another; one failure never stops the rest."""
        outcomes = [self.process_event(event) for event in events]
        success_count = sum(1 for o in outcomes if o.success)
        summary = BatchSummary(
            success=True,
            processed=len(outcomes),
            success_count=success_count,
            fail_count=len(outcomes) - success_count,
            results=outcomes,
        )
        logger.info(f"Batch processed: {summary.processed} order(s), "
                    f"{summary.success_count} succeeded, {summary.fail_count} failed")
        return summary

    # =========================================================================
    # Flow
    # =========================================================================

    def _process(self, event: StatusEvent) -> Outcome:
        status_class = classify(event.current_status)
        logger.info(f"Order {event.order_id}: '{event.current_status}' -> {status_class.value}")

        if not event.shipping_phone:
            logger.warning(f"Skipping order {event.order_id}: missing shipping phone")
            return _failure(event, status_class, ErrorKind.VALIDATION, "Missing shipping phone")

        if not self.dispatcher.test_phone and not format_phone_number(event.shipping_phone):
            logger.warning(f"Skipping order {event.order_id}: invalid shipping phone {event.shipping_phone!r}")
            return _failure(event, status_class, ErrorKind.VALIDATION,
                            f"Invalid phone number: {event.shipping_phone}")

        if not event.account_code:
            logger.warning(f"Skipping order {event.order_id}: missing account code")
            return _failure(event, status_class, ErrorKind.VALIDATION, "Missing account code")

        account = self.accounts.get(event.account_code)
        if account is None:
            logger.warning(f"Skipping order {event.order_id}: account {event.account_code} not configured")
            return _failure(event, status_class, ErrorKind.NOT_CONFIGURED,
                            f"Account not configured: {event.account_code}")

        if status_unchanged(event.current_status, event.previous_status):
            logger.info(f"Order {event.order_id} status unchanged ({event.current_status}), skipping")
            return _success(event, status_class, "Status unchanged")

        policy = FLOW_POLICIES.get(status_class)
        if policy is None:
            logger.warning(f"Status '{event.current_status}' ({status_class.value}) for order "
                           f"{event.order_id} has no flow, skipping")
            return _failure(event, status_class, ErrorKind.UNSUPPORTED_STATUS,
                            f"Unsupported status: {event.current_status}")

        if policy.notifies and self.ledger.has_any_status(
            event.order_id, account.code, terminal_tags(policy.ledger_key)
        ):
            logger.info(f"Order {event.order_id} already notified for {status_class.value}, skipping")
            return _success(event, status_class, "Already notified")

        reconciled = self.reconciler.reconcile(event, status_class)
        if not reconciled.ok:
            return _failure(event, status_class, reconciled.error, reconciled.reason)
        if not reconciled.value.notify:
            return _success(event, status_class, reconciled.reason or "Order processed successfully")

        message = self._build_message(event, status_class, account, reconciled.value)
        sent = self.dispatcher.notify(
            account.code, event.order_id, policy.ledger_key, event.shipping_phone, message
        )
        if not sent.ok:
            return _failure(event, status_class, sent.error, sent.reason)
        return _success(event, status_class, "Order processed successfully")

    def _build_message(
        self,
        event: StatusEvent,
        status_class: StatusClass,
        account: AccountConfig,
        reconciled: ReconcileOutcome,
    ) -> TemplateMessage:
        if status_class == StatusClass.IN_TRANSIT:
            return in_transit_message(event, account)
        if status_class == StatusClass.OUT_FOR_DELIVERY:
            return out_for_delivery_message(event, account)

        # Delivered: product links need a lookup, skipped for clone orders
        products = []
        if reconciled.order is not None:
            details = self.client.get_product_details(account.code, event.order_id)
            products = (details.value or []) if details.ok else []
            logger.info(f"Retrieved {len(products)} product detail(s) for order {event.order_id}")
        return delivered_message(event.order_id, account, products)
