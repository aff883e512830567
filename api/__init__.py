"""
HTTP surface for the shipment status notifier.

This package provides a single FastAPI application that exposes:
- Carrier status webhooks
- Commerce platform webhooks (order created, cart abandoned)
- Read-only configuration endpoints
"""

from api.main import app

__all__ = ["app"]
