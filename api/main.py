"""
FastAPI application for the shipment status notifier.

This application provides:
1. The carrier status webhook (/webhook/status, /webhook/status/single)
2. Commerce platform webhooks (/webhook/shopify/order-created, /webhook/cart-abandoned)
3. Read-only configuration inspection (/api/config/...)

Run with:
    uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException

from reconciliation.abandoned_cart import AbandonedCartPayload
from reconciliation.engine import Engine, build_engine
from reconciliation.order_created import ShopifyOrderPayload
from shared.accounts import AccountConfig
from shared.models import StatusEvent, StatusWebhook
from shared.settings import Settings, configure_logging

logger = logging.getLogger("api")

# Module-level engine (tests swap it with reset_engine)
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Get the engine, building it from the environment on first use."""
    global _engine
    if _engine is None:
        settings = Settings.from_env()
        configure_logging(settings)
        _engine = build_engine(settings)
    return _engine


def reset_engine(engine: Optional[Engine] = None) -> None:
    """Replace the engine (for testing). The previous one is closed."""
    global _engine
    if _engine is not None and _engine is not engine:
        _engine.close()
    _engine = engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting shipment status notifier")
    yield
    logger.info("Shutting down")
    reset_engine(None)


app = FastAPI(
    title="Shipment Status Notifier",
    description="""
    Reconciles carrier status webhooks with Shopify fulfillments and sends
    one WhatsApp message per order and status.

    ## Endpoints

    - `/webhook/status` - Carrier status batch
    - `/webhook/shopify/order-created` - Order confirmation
    - `/webhook/cart-abandoned` - Delayed cart reminder
    - `/api/config/*` - Configured accounts (secrets masked)
    """,
    version="1.0.0",
    lifespan=lifespan,
)


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Keep the last four characters of a secret."""
    if not value:
        return None
    if len(value) <= 4:
        return "****"
    return "****" + value[-4:]


def _require_account(account_code: str) -> AccountConfig:
    account = get_engine().accounts.get(account_code)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Account not configured: {account_code}")
    return account


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "shipment-status-notifier"}


# =============================================================================
# Carrier Webhooks
# =============================================================================

@app.post("/webhook/status", tags=["Webhooks"])
def status_webhook(webhook: StatusWebhook):
    """
    Process a batch of carrier status updates.

    Every order is processed even if earlier ones fail; the response carries
    per-order results and totals.
    """
    logger.info(f"Received status webhook ({webhook.event or 'no event'}) with {len(webhook.orders)} order(s)")
    summary = get_engine().orchestrator.process_batch(webhook.orders)
    return summary.model_dump(mode="json", by_alias=True)


@app.post("/webhook/status/single", tags=["Webhooks"])
def status_webhook_single(event: StatusEvent):
    """Process one carrier status update."""
    outcome = get_engine().orchestrator.process_event(event)
    body = outcome.model_dump(mode="json", by_alias=True)
    body["message"] = "Order processed successfully" if outcome.success else "Order processing skipped or failed"
    body["detail"] = outcome.message
    return body


# =============================================================================
# Commerce Platform Webhooks
# =============================================================================

@app.post("/webhook/shopify/order-created", tags=["Webhooks"])
def order_created_webhook(
    payload: ShopifyOrderPayload,
    shop_domain: Optional[str] = Header(default=None, alias="X-Shopify-Shop-Domain"),
):
    """Send the order confirmation message for a new order."""
    logger.info(f"Received order-created webhook for {payload.name} from {shop_domain}")
    outcome = get_engine().order_created.handle(payload, shop_domain)
    return outcome.model_dump(mode="json", by_alias=True)


@app.post("/webhook/cart-abandoned", tags=["Webhooks"])
def cart_abandoned_webhook(payload: AbandonedCartPayload):
    """Schedule an abandoned-cart reminder."""
    logger.info(f"Received cart-abandoned webhook for cart {payload.cart_key}")
    outcome = get_engine().abandoned_cart.handle(payload)
    return outcome.model_dump(mode="json", by_alias=True)


# =============================================================================
# Configuration Inspection
# =============================================================================

@app.get("/api/config/accounts", tags=["Config"])
def list_accounts():
    """All configured account codes and what each one has set up."""
    engine = get_engine()
    accounts = [engine.accounts.get(code) for code in engine.accounts.codes()]
    return {
        "count": len(accounts),
        "accounts": [
            {
                "code": a.code,
                "shopify": a.shopify is not None,
                "templates": sorted(a.botspace.templates),
            }
            for a in accounts
        ],
    }


@app.get("/api/config/botspace/{account_code}", tags=["Config"])
def botspace_config(account_code: str):
    """Notifier settings for one account, with the API key masked."""
    account = _require_account(account_code)
    defaults = get_engine().accounts.botspace_defaults
    return {
        "account_code": account.code,
        "url": account.botspace.url or defaults.url,
        "endpoint": account.botspace.endpoint or defaults.endpoint,
        "api_key": mask_secret(account.botspace.api_key or defaults.api_key),
        "templates": dict(account.botspace.templates),
    }


@app.get("/api/config/shopify/{account_code}", tags=["Config"])
def shopify_config(account_code: str):
    """Commerce settings for one account, with the access token masked."""
    account = _require_account(account_code)
    if account.shopify is None:
        raise HTTPException(status_code=404, detail=f"Shopify not configured for account: {account.code}")
    return {
        "account_code": account.code,
        "shop": account.shopify.shop_domain,
        "api_version": account.shopify.api_version,
        "access_token": mask_secret(account.shopify.access_token),
        "out_for_delivery_tag": account.out_for_delivery_tag,
        "tracking_url_template": account.tracking_url_template,
        "product_url_prefix": account.product_url_prefix,
    }
