"""
Fulfillment reconciler.

Brings an order's fulfillment on the commerce platform in line with an
incoming carrier status, before any customer message goes out. State is read
fresh from the platform on every event; nothing about the reconciliation is
stored locally.

Design decisions:
- One reconciler for every status class, driven by a small policy table
- Any client failure aborts the event; there are no compensating actions
- Clone orders (ids with "_") are never touched on the platform
"""

import logging
from dataclasses import dataclass
from typing import Optional

from commerce.client import ShopifyClient, pick_open_fulfillment_order
from commerce.ids import FULFILLMENT_GID_PREFIX, ORDER_GID_PREFIX, parse_numeric_id
from shared.accounts import AccountConfig, AccountRegistry
from shared.ledger import DELIVERED_KEY, IN_TRANSIT_KEY, OUT_FOR_DELIVERY_KEY
from shared.models import OrderHandle, StatusClass, StatusEvent
from shared.results import ErrorKind, Result

logger = logging.getLogger("reconciliation")


# =============================================================================
# Per-class policy
# =============================================================================

@dataclass(frozen=True)
class FlowPolicy:
    """
    How one status class is reconciled.

    Attributes:
        ledger_key: Tag key for sent_/failed_ ledger rows; None means the class
            sends no customer message
        completion_tag: Tag the order with the account's completion tag and
            treat an already-tagged order as done
        clone_notifies: Clone orders go straight to notification; when False
            they are rejected
    """
    status_class: StatusClass
    ledger_key: Optional[str]
    completion_tag: bool = False
    clone_notifies: bool = True

    @property
    def notifies(self) -> bool:
        return self.ledger_key is not None


FLOW_POLICIES = {
    StatusClass.FULFILLED: FlowPolicy(StatusClass.FULFILLED, ledger_key=None, clone_notifies=False),
    StatusClass.IN_TRANSIT: FlowPolicy(StatusClass.IN_TRANSIT, ledger_key=IN_TRANSIT_KEY),
    StatusClass.OUT_FOR_DELIVERY: FlowPolicy(
        StatusClass.OUT_FOR_DELIVERY, ledger_key=OUT_FOR_DELIVERY_KEY, completion_tag=True
    ),
    StatusClass.DELIVERED: FlowPolicy(StatusClass.DELIVERED, ledger_key=DELIVERED_KEY),
}


@dataclass
class ReconcileOutcome:
    """What the reconciler did, and whether a message should follow."""
    notify: bool
    order: Optional[OrderHandle] = None
    fulfillment_id: Optional[int] = None


# =============================================================================
# Reconciler
# =============================================================================

class FulfillmentReconciler:
    """
    Ensures a fulfillment exists and carries the right tracking and status.

    Example:
        reconciler = FulfillmentReconciler(client, accounts)
        result = reconciler.reconcile(event, StatusClass.IN_TRANSIT)
        if result.ok and result.value.notify:
            ...
    """

    def __init__(self, client: ShopifyClient, accounts: AccountRegistry):
        self.client = client
        self.accounts = accounts

    def reconcile(self, event: StatusEvent, status_class: StatusClass) -> Result[ReconcileOutcome]:
        policy = FLOW_POLICIES.get(status_class)
        if policy is None:
            return Result.failure(ErrorKind.UNSUPPORTED_STATUS, f"No fulfillment flow for {status_class.value}")

        account = self.accounts.get(event.account_code)
        if account is None:
            return Result.failure(ErrorKind.NOT_CONFIGURED, f"Account not configured: {event.account_code}")

        if event.is_clone:
            if not policy.clone_notifies:
                logger.info(f"Order {event.order_id} is a clone, stopping {status_class.value} flow")
                return Result.failure(ErrorKind.VALIDATION, f"Clone order {event.order_id} is not fulfilled")
            logger.info(f"Order {event.order_id} is a clone, skipping commerce updates")
            return Result.success(ReconcileOutcome(notify=policy.notifies), reason="clone order")

        resolved = self.client.resolve_order(account.code, event.order_id)
        if not resolved.ok:
            logger.warning(f"Order {event.order_id} not resolved ({account.code}): {resolved.reason}")
            return resolved
        order = resolved.value

        if policy.completion_tag and order.has_tag(account.out_for_delivery_tag):
            logger.info(f"Order {event.order_id} already has tag {account.out_for_delivery_tag}, nothing to do")
            return Result.success(ReconcileOutcome(notify=False, order=order), reason="already tagged")

        if order.is_fulfilled:
            located = self._existing_fulfillment(order, event)
        else:
            located = self._new_fulfillment(account, order, event)
        if not located.ok:
            return located
        fulfillment_id, tracking_number = located.value

        updated = self.client.update_fulfillment_tracking(account.code, fulfillment_id, tracking_number, status_class)
        if not updated.ok:
            logger.error(f"Failed to update fulfillment tracking for order {event.order_id}: {updated.reason}")
            return updated

        if policy.completion_tag:
            tagged = self._add_completion_tag(account, order)
            if not tagged.ok:
                logger.error(f"Failed to add tag {account.out_for_delivery_tag} for order {event.order_id}")
                return tagged

        logger.info(f"Order {event.order_id} reconciled for {status_class.value} (fulfillment {fulfillment_id})")
        return Result.success(ReconcileOutcome(notify=policy.notifies, order=order, fulfillment_id=fulfillment_id))

    # =========================================================================
    # Branches
    # =========================================================================

    def _existing_fulfillment(self, order: OrderHandle, event: StatusEvent) -> Result[tuple[int, Optional[str]]]:
        """
        Fulfilled order: update the first fulfillment.

        The tracking number is left out when it already matches the AWB.
        """
        if not order.fulfillments:
            return Result.failure(
                ErrorKind.LOOKUP_NOT_FOUND, f"Order {event.order_id} is fulfilled but has no fulfillment record"
            )

        record = order.fulfillments[0]
        fulfillment_id = parse_numeric_id(record.id, FULFILLMENT_GID_PREFIX)
        if fulfillment_id is None:
            return Result.failure(ErrorKind.EXTERNAL_API, f"Cannot parse fulfillment id {record.id}")

        tracking_number = event.awb
        if record.tracking_number and record.tracking_number == event.awb:
            logger.info(f"Tracking number {event.awb} already set on fulfillment {fulfillment_id}")
            tracking_number = None
        return Result.success((fulfillment_id, tracking_number))

    def _new_fulfillment(
        self, account: AccountConfig, order: OrderHandle, event: StatusEvent
    ) -> Result[tuple[int, Optional[str]]]:
        """Unfulfilled order: fulfill the OPEN fulfillment order."""
        refs = self.client.get_fulfillment_orders(account.code, order)
        if not refs.ok:
            return refs

        open_id = pick_open_fulfillment_order(refs.value)
        if open_id is None:
            logger.warning(f"No OPEN fulfillment order for order {event.order_id} ({account.code})")
            return Result.failure(ErrorKind.LOOKUP_NOT_FOUND, f"No OPEN fulfillment order for {event.order_id}")

        created = self.client.create_fulfillment(
            account.code, order, open_id, event.awb, account.tracking_url(event.awb)
        )
        if not created.ok:
            logger.warning(f"Failed to create/find fulfillment for order {event.order_id}: {created.reason}")
            return created
        return Result.success((created.value, event.awb))

    def _add_completion_tag(self, account: AccountConfig, order: OrderHandle) -> Result[bool]:
        order_id = parse_numeric_id(order.gid, ORDER_GID_PREFIX)
        if order_id is None:
            return Result.failure(ErrorKind.EXTERNAL_API, f"Cannot parse order id {order.gid}")
        return self.client.update_tags(account.code, order_id, account.out_for_delivery_tag)
