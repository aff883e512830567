"""
Engine wiring.

Builds every component from Settings and an account registry and passes each
one its collaborators explicitly. The HTTP layer and the CLI both go through
build_engine(); tests pass a RecordingNotifier and an httpx.MockTransport
client instead of the real ones.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from commerce.client import ShopifyClient
from reconciliation.abandoned_cart import AbandonedCartFlow
from reconciliation.dispatcher import NotificationDispatcher, Notifier
from reconciliation.order_created import OrderCreatedFlow
from reconciliation.orchestrator import Orchestrator
from reconciliation.reconciler import FulfillmentReconciler
from reconciliation.scheduler import DelayedTaskScheduler
from shared.accounts import AccountRegistry, load_accounts
from shared.channels import BotspaceNotifier, MessageTrackingMirror
from shared.ledger import MessageLedger
from shared.settings import Settings

logger = logging.getLogger("engine")


@dataclass
class Engine:
    """All long-lived components of one process."""
    settings: Settings
    accounts: AccountRegistry
    ledger: MessageLedger
    client: ShopifyClient
    notifier: Notifier
    mirror: MessageTrackingMirror
    dispatcher: NotificationDispatcher
    reconciler: FulfillmentReconciler
    orchestrator: Orchestrator
    scheduler: DelayedTaskScheduler
    order_created: OrderCreatedFlow
    abandoned_cart: AbandonedCartFlow

    def close(self):
        """Drop pending reminders and release connections."""
        self.scheduler.shutdown()
        self.client.close()
        self.mirror.close()
        if hasattr(self.notifier, "close"):
            self.notifier.close()
        self.ledger.dispose()
        logger.info("Engine closed")


def build_engine(
    settings: Optional[Settings] = None,
    accounts: Optional[AccountRegistry] = None,
    notifier: Optional[Notifier] = None,
    http_client: Optional[httpx.Client] = None,
) -> Engine:
    """
    Wire up an Engine.

    Args:
        settings: Process settings; read from the environment when omitted
        accounts: Account registry; loaded from settings.accounts_file when omitted
        notifier: Message channel; a BotspaceNotifier when omitted
        http_client: Shared httpx client for every outbound call
    """
    settings = settings or Settings.from_env()
    if accounts is None:
        accounts = load_accounts(settings.accounts_file)
    accounts = accounts.with_botspace_fallback(settings.botspace_url, settings.botspace_endpoint)

    timeout = settings.http_timeout_seconds
    ledger = MessageLedger(settings.database_url)
    client = ShopifyClient(accounts, http_client=http_client, timeout=timeout)
    if notifier is None:
        notifier = BotspaceNotifier(accounts, http_client=http_client, timeout=timeout)
    mirror = MessageTrackingMirror(
        settings.claimio_url,
        username=settings.claimio_user,
        password=settings.claimio_password,
        http_client=http_client,
        timeout=timeout,
    )

    dispatcher = NotificationDispatcher(notifier, ledger, accounts, test_phone=settings.test_phone, mirror=mirror)
    reconciler = FulfillmentReconciler(client, accounts)
    orchestrator = Orchestrator(accounts, ledger, client, reconciler, dispatcher)
    scheduler = DelayedTaskScheduler()

    if settings.test_phone:
        logger.warning(f"TEST MODE: every message goes to {settings.test_phone}")
    logger.info(f"Engine ready with {len(accounts)} account(s), ledger at {settings.database_url}")

    return Engine(
        settings=settings,
        accounts=accounts,
        ledger=ledger,
        client=client,
        notifier=notifier,
        mirror=mirror,
        dispatcher=dispatcher,
        reconciler=reconciler,
        orchestrator=orchestrator,
        scheduler=scheduler,
        order_created=OrderCreatedFlow(accounts, ledger, dispatcher),
        abandoned_cart=AbandonedCartFlow(
            accounts, ledger, dispatcher, scheduler, delay_seconds=settings.cart_reminder_delay_seconds
        ),
    )
