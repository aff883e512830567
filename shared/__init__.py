"""
Shared infrastructure for the shipment status notifier.

This package contains code used by every flow:
- Domain models (StatusEvent, OrderHandle, Outcome, etc.)
- Status classification
- Tenant account config and process settings
- Dedup ledger
- Notification channels and templates
"""

from shared.models import (
    StatusClass,
    StatusEvent,
    StatusWebhook,
    OrderHandle,
    FulfillmentRecord,
    FulfillmentOrderRef,
    ProductDetail,
    Outcome,
    BatchSummary,
)
from shared.results import ErrorKind, Result
from shared.statuses import classify, normalize_status, status_unchanged
from shared.accounts import AccountConfig, AccountRegistry, load_accounts
from shared.settings import Settings, configure_logging
from shared.ledger import MessageLedger
from shared.channels import BotspaceNotifier, RecordingNotifier, MessageTrackingMirror, SendReceipt

__all__ = [
    "StatusClass",
    "StatusEvent",
    "StatusWebhook",
    "OrderHandle",
    "FulfillmentRecord",
    "FulfillmentOrderRef",
    "ProductDetail",
    "Outcome",
    "BatchSummary",
    "ErrorKind",
    "Result",
    "classify",
    "normalize_status",
    "status_unchanged",
    "AccountConfig",
    "AccountRegistry",
    "load_accounts",
    "Settings",
    "configure_logging",
    "MessageLedger",
    "BotspaceNotifier",
    "RecordingNotifier",
    "MessageTrackingMirror",
    "SendReceipt",
]
