"""
Shared pytest fixtures for the shipment status notifier tests.

These fixtures provide a configured account registry, an in-memory ledger,
a recording notifier and a fake Shopify Admin API served through
httpx.MockTransport.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Optional

import httpx
import pytest

from commerce.client import ShopifyClient
from reconciliation.engine import build_engine
from shared.accounts import AccountRegistry
from shared.channels import RecordingNotifier
from shared.ledger import MessageLedger
from shared.models import StatusEvent
from shared.settings import Settings


# =============================================================================
# Fake Shopify Admin API
# =============================================================================

@dataclass
class FakeOrder:
    """One order held by the fake shop."""
    numeric_id: int
    name: str
    fulfilled: bool = False
    tags: list[str] = field(default_factory=list)
    fulfillments: list[dict] = field(default_factory=list)
    fulfillment_orders: list[dict] = field(default_factory=list)
    product_handles: list[str] = field(default_factory=list)

    @property
    def gid(self) -> str:
        return f"gid://shopify/Order/{self.numeric_id}"

    def node(self) -> dict:
        return {
            "id": self.gid,
            "name": self.name,
            "displayFulfillmentStatus": "FULFILLED" if self.fulfilled else "UNFULFILLED",
            "tags": list(self.tags),
            "lineItems": {"edges": []},
            "fulfillments": [
                {
                    "id": f"gid://shopify/Fulfillment/{f['id']}",
                    "status": "SUCCESS",
                    "trackingInfo": [{"number": f.get("number"), "url": None, "company": "Shipway"}],
                }
                for f in self.fulfillments
            ],
            "fulfillmentOrders": {"nodes": list(self.fulfillment_orders)},
        }


class FakeShopify:
    """
    In-memory stand-in for the GraphQL and REST endpoints the client calls.

    Every request is recorded under a short label so tests can count calls,
    e.g. fake.count("fulfillment_create").
    """

    def __init__(self):
        self.orders: dict[str, FakeOrder] = {}
        self.calls: list[tuple[str, dict]] = []
        self.fail_create = False
        self.fail_graphql = False
        self.fail_event = False
        self.fail_tracking = False
        self.graphql_errors: Optional[list] = None
        self._next_id = 9000

    def add_order(
        self,
        name: str,
        numeric_id: int,
        fulfilled: bool = False,
        tags: tuple = (),
        awb: Optional[str] = None,
        open_orders: int = 1,
        product_handles: tuple = (),
    ) -> FakeOrder:
        order = FakeOrder(numeric_id=numeric_id, name=name, fulfilled=fulfilled, tags=list(tags),
                          product_handles=list(product_handles))
        if fulfilled:
            order.fulfillments.append({"id": self._new_id(), "number": awb})
        for _ in range(open_orders):
            order.fulfillment_orders.append({
                "id": f"gid://shopify/FulfillmentOrder/{self._new_id()}",
                "status": "CLOSED" if fulfilled else "OPEN",
            })
        self.orders[name] = order
        return order

    def count(self, label: str) -> int:
        return sum(1 for call, _ in self.calls if call == label)

    def bodies(self, label: str) -> list[dict]:
        return [body for call, body in self.calls if call == label]

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _by_numeric_id(self, numeric_id: int) -> Optional[FakeOrder]:
        return next((o for o in self.orders.values() if o.numeric_id == numeric_id), None)

    def _by_fulfillment_order(self, gid: str) -> Optional[FakeOrder]:
        for order in self.orders.values():
            if any(fo["id"] == gid for fo in order.fulfillment_orders):
                return order
        return None

    # =========================================================================
    # Transport handler
    # =========================================================================

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        if path.endswith("/graphql.json"):
            return self._graphql(body)
        return self._rest(request.method, path, body)

    def _graphql(self, body: dict) -> httpx.Response:
        query = body["query"]
        variables = body.get("variables") or {}

        if "fulfillmentCreate" in query:
            self.calls.append(("fulfillment_create", variables))
            return httpx.Response(200, json=self._create_fulfillment(variables))
        if "fulfillmentEventCreate" in query:
            self.calls.append(("fulfillment_event", variables))
            if self.fail_event:
                return httpx.Response(200, json={"data": {"fulfillmentEventCreate": {
                    "fulfillmentEvent": None,
                    "userErrors": [{"field": ["status"], "message": "Fulfillment is not trackable"}],
                }}})
            status = variables["input"]["status"]
            return httpx.Response(200, json={"data": {"fulfillmentEventCreate": {
                "fulfillmentEvent": {"id": f"gid://shopify/FulfillmentEvent/{self._new_id()}", "status": status},
                "userErrors": [],
            }}})
        if "GetFulfillmentOrders" in query:
            self.calls.append(("fulfillment_orders", variables))
            order = next((o for o in self.orders.values() if o.gid == variables["orderId"]), None)
            edges = [{"node": fo} for fo in order.fulfillment_orders] if order else []
            data = {"id": order.gid, "fulfillmentOrders": {"edges": edges}} if order else None
            return httpx.Response(200, json={"data": {"order": data}})

        label = "order_products" if "featuredImage" in query else "order_by_name"
        self.calls.append((label, variables))
        if self.fail_graphql:
            return httpx.Response(503, json={"errors": "unavailable"})

        order = next((o for o in self.orders.values() if variables.get("q") == f"name:{o.name}"), None)
        if order is None:
            edges = []
        elif label == "order_products":
            edges = [{"node": {"lineItems": {"edges": [
                {"node": {"product": {"handle": h, "featuredImage": {"url": f"https://cdn.test/{h}.jpg"}}}}
                for h in order.product_handles
            ]}}}]
        else:
            edges = [{"node": order.node()}]

        payload = {"data": {"orders": {"edges": edges}}}
        if self.graphql_errors:
            payload["errors"] = self.graphql_errors
        return httpx.Response(200, json=payload)

    def _create_fulfillment(self, variables: dict) -> dict:
        spec = variables["fulfillment"]
        fo_gid = spec["lineItemsByFulfillmentOrder"][0]["fulfillmentOrderId"]
        order = self._by_fulfillment_order(fo_gid)
        if self.fail_create or order is None:
            return {"data": {"fulfillmentCreate": {
                "fulfillment": None,
                "userErrors": [{"field": None, "message": "Fulfillment order is not open"}],
            }}}

        fulfillment_id = self._new_id()
        order.fulfilled = True
        order.fulfillments.append({"id": fulfillment_id, "number": spec["trackingInfo"].get("number")})
        for fo in order.fulfillment_orders:
            if fo["id"] == fo_gid:
                fo["status"] = "CLOSED"
        return {"data": {"fulfillmentCreate": {
            "fulfillment": {"id": f"gid://shopify/Fulfillment/{fulfillment_id}", "status": "SUCCESS"},
            "userErrors": [],
        }}}

    def _rest(self, method: str, path: str, body: dict) -> httpx.Response:
        match = re.search(r"/orders/(\d+)/fulfillments\.json$", path)
        if match and method == "GET":
            self.calls.append(("get_fulfillments", {}))
            order = self._by_numeric_id(int(match.group(1)))
            fulfillments = [{"id": f["id"]} for f in order.fulfillments] if order else []
            return httpx.Response(200, json={"fulfillments": fulfillments})

        match = re.search(r"/fulfillments/(\d+)/update_tracking\.json$", path)
        if match and method == "POST":
            self.calls.append(("update_tracking", body))
            if self.fail_tracking:
                return httpx.Response(500, json={"errors": "Internal Server Error"})
            return httpx.Response(200, json={"fulfillment": {"id": int(match.group(1))}})

        match = re.search(r"/orders/(\d+)\.json$", path)
        if match:
            order = self._by_numeric_id(int(match.group(1)))
            if order is None:
                return httpx.Response(404, json={"errors": "Not Found"})
            if method == "GET":
                self.calls.append(("get_order", {}))
                return httpx.Response(200, json={"order": {"id": order.numeric_id, "tags": ", ".join(order.tags)}})
            if method == "PUT":
                self.calls.append(("put_order", body))
                order.tags = [t.strip() for t in body["order"]["tags"].split(",") if t.strip()]
                return httpx.Response(200, json={"order": {"id": order.numeric_id}})

        return httpx.Response(404, json={"errors": "Not Found"})


# =============================================================================
# Fixtures
# =============================================================================

ACCOUNT_CONFIG = {
    "botspace": {"url": "https://botspace.test", "endpoint": "/v1/message/template"},
    "accounts": {
        "ACME": {
            "shopify": {"shop": "acme-store", "access_token": "shpat_test_token_5678"},
            "botspace": {
                "api_key": "bs_key_1234",
                "templates": {
                    "inTransit": "tmpl-in-transit",
                    "outForDelivery": "tmpl-ofd",
                    "delivered": "tmpl-delivered",
                    "orderCreated": "tmpl-order-created",
                    "abandonedCart": "tmpl-cart",
                },
            },
            "tracking_url_template": "https://acme.shipway.in/track/{awb}",
            "product_url_prefix": "https://acme.example/products/",
        },
        "BETA": {
            "shopify": {"shop": "beta-shop", "access_token": "shpat_beta"},
            "botspace": {"api_key": "bs_beta"},
        },
    },
}


@pytest.fixture
def accounts() -> AccountRegistry:
    """Registry with ACME (fully configured) and BETA (no templates)."""
    return AccountRegistry.from_dict(ACCOUNT_CONFIG)


@pytest.fixture
def ledger() -> MessageLedger:
    """Fresh in-memory ledger for each test."""
    ledger = MessageLedger("sqlite://")
    yield ledger
    ledger.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Fresh RecordingNotifier that accepts every message."""
    return RecordingNotifier(fail_rate=0.0)


@pytest.fixture
def fake_shopify() -> FakeShopify:
    """Fake shop with order #1001 (unfulfilled, one OPEN fulfillment order)."""
    shop = FakeShopify()
    shop.add_order("#1001", 1001)
    return shop


@pytest.fixture
def http_client(fake_shopify: FakeShopify) -> httpx.Client:
    client = httpx.Client(transport=httpx.MockTransport(fake_shopify.handler))
    yield client
    client.close()


@pytest.fixture
def shopify_client(accounts: AccountRegistry, http_client: httpx.Client) -> ShopifyClient:
    return ShopifyClient(accounts, http_client=http_client)


@pytest.fixture
def settings() -> Settings:
    """Settings with an in-memory ledger and no outbound mirror."""
    return Settings(database_url="sqlite://")


@pytest.fixture
def engine(settings, accounts, notifier, http_client):
    """Fully wired engine against the fake shop and the recording notifier."""
    engine = build_engine(settings, accounts=accounts, notifier=notifier, http_client=http_client)
    yield engine
    engine.close()


@pytest.fixture
def in_transit_event() -> StatusEvent:
    """In Transit update for order 1001 of account ACME."""
    return StatusEvent(
        order_id="1001",
        account_code="ACME",
        awb="AWB123",
        current_status="In Transit",
        previous_status="Shipment Booked",
        shipping_phone="9876543210",
        shipping_first_name="Asha",
        product_count=2,
    )
