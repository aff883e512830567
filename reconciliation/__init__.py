"""
Status reconciliation.

This package turns carrier status events into commerce platform updates and
customer messages:
- Orchestrator: pre-checks, routing and batch processing
- FulfillmentReconciler: fulfillment creation, tracking and tag updates
- NotificationDispatcher: template lookup, send and ledger write
- Order-created and abandoned-cart flows
"""

from reconciliation.dispatcher import NotificationDispatcher
from reconciliation.engine import Engine, build_engine
from reconciliation.orchestrator import Orchestrator
from reconciliation.reconciler import FLOW_POLICIES, FlowPolicy, FulfillmentReconciler
from reconciliation.scheduler import DelayedTaskScheduler

__all__ = [
    "NotificationDispatcher",
    "Engine",
    "build_engine",
    "Orchestrator",
    "FLOW_POLICIES",
    "FlowPolicy",
    "FulfillmentReconciler",
    "DelayedTaskScheduler",
]
