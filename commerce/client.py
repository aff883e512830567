"""
Shopify Admin API client.

Wraps the GraphQL and REST calls the reconciler needs: order lookup by display
name, fulfillment order listing, fulfillment creation, tracking/status updates
and tag updates. All calls are keyed by tenant credentials from the account
registry.

Design decisions:
- Synchronous httpx.Client; the caller's request thread waits for each call
- Every public method returns a Result; httpx errors never escape
- GraphQL answers with both data and errors are a soft success
- No retries here; redelivery comes from the carrier's webhook retry policy
"""

import logging
from typing import Any, Optional

import httpx

from commerce import queries
from commerce.ids import (
    FULFILLMENT_GID_PREFIX,
    FULFILLMENT_ORDER_GID_PREFIX,
    ORDER_GID_PREFIX,
    order_name_candidates,
    parse_numeric_id,
    to_gid,
)
from commerce.vocabulary import event_status_for, tracking_status_for
from shared.accounts import AccountRegistry, ShopifyAccount
from shared.models import (
    FulfillmentOrderRef,
    FulfillmentRecord,
    OrderHandle,
    ProductDetail,
    StatusClass,
)
from shared.results import ErrorKind, Result

logger = logging.getLogger("commerce")

TRACKING_COMPANY = "Shipway"


# =============================================================================
# Response parsing
# =============================================================================

def _dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _edge_nodes(connection: Any) -> list[dict]:
    """Nodes of a GraphQL connection, accepting both edges{node} and nodes forms."""
    if not isinstance(connection, dict):
        return []
    if isinstance(connection.get("nodes"), list):
        return [n for n in connection["nodes"] if isinstance(n, dict)]
    edges = connection.get("edges")
    if not isinstance(edges, list):
        return []
    return [e["node"] for e in edges if isinstance(e, dict) and isinstance(e.get("node"), dict)]


def _first_order_node(body: dict) -> Optional[dict]:
    nodes = _edge_nodes(_dig(body, "data", "orders"))
    return nodes[0] if nodes else None


def _parse_tags(tags: Any) -> list[str]:
    if isinstance(tags, list):
        return [str(t).strip() for t in tags if str(t).strip()]
    if isinstance(tags, str):
        return [t.strip() for t in tags.split(",") if t.strip()]
    return []


def _parse_fulfillment(raw: dict) -> Optional[FulfillmentRecord]:
    if not raw.get("id"):
        return None
    tracking = raw.get("trackingInfo")
    if isinstance(tracking, list):
        tracking = tracking[0] if tracking else None
    tracking = tracking if isinstance(tracking, dict) else {}
    return FulfillmentRecord(
        id=str(raw["id"]),
        status=raw.get("status"),
        tracking_number=tracking.get("number"),
        tracking_url=tracking.get("url"),
        tracking_company=tracking.get("company"),
    )


def parse_order_handle(node: dict) -> Optional[OrderHandle]:
    """Build an OrderHandle from an orders query node; None if it has no id."""
    if not node.get("id"):
        return None

    fulfillments = []
    for raw in node.get("fulfillments") or []:
        if isinstance(raw, dict):
            record = _parse_fulfillment(raw)
            if record:
                fulfillments.append(record)

    fulfillment_orders = [
        FulfillmentOrderRef(id=str(n["id"]), status=n.get("status"))
        for n in _edge_nodes(node.get("fulfillmentOrders"))
        if n.get("id")
    ]

    line_items = _edge_nodes(node.get("lineItems"))
    first_product_id = _dig(line_items[0], "product", "id") if line_items else None

    return OrderHandle(
        gid=str(node["id"]),
        name=node.get("name"),
        display_fulfillment_status=node.get("displayFulfillmentStatus"),
        tags=_parse_tags(node.get("tags")),
        fulfillments=fulfillments,
        fulfillment_orders=fulfillment_orders,
        first_product_id=first_product_id,
    )


def pick_open_fulfillment_order(refs: list[FulfillmentOrderRef]) -> Optional[str]:
    """
    Id of the OPEN fulfillment order, scanning from the end of the list.

    When several are OPEN the most recently listed one wins.
    """
    for ref in reversed(refs):
        if (ref.status or "").upper() == "OPEN":
            return ref.id
    return None


# =============================================================================
# Client
# =============================================================================

class ShopifyClient:
    """
    Commerce platform client for every configured tenant.

    Usage:
        client = ShopifyClient(accounts)
        order = client.resolve_order("ACME", "1001")
        if order.ok:
            refs = client.get_fulfillment_orders("ACME", order.value)
    """

    def __init__(self, accounts: AccountRegistry, http_client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.accounts = accounts
        self.client = http_client or httpx.Client(timeout=timeout)

    def close(self):
        self.client.close()

    # =========================================================================
    # Transport
    # =========================================================================

    def _account(self, account_code: str) -> Result[ShopifyAccount]:
        account = self.accounts.get(account_code)
        if account is None or account.shopify is None:
            return Result.failure(ErrorKind.NOT_CONFIGURED, f"Shopify account not configured: {account_code}")
        return Result.success(account.shopify)

    @staticmethod
    def _headers(account: ShopifyAccount) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": account.access_token,
            "Content-Type": "application/json",
        }

    def _graphql(self, account: ShopifyAccount, query: str, variables: dict, context: str) -> Result[dict]:
        """
        POST a GraphQL document.

        A 2xx body with an "errors" key is returned as a partial result so the
        caller can use whatever data is present.
        """
        body = {"query": query, "variables": variables}
        logger.debug(f"GraphQL {context}: {variables}")
        try:
            response = self.client.post(account.graphql_url, headers=self._headers(account), json=body)
        except httpx.HTTPError as e:
            logger.error(f"Error calling Shopify GraphQL API ({context}): {e}")
            return Result.failure(ErrorKind.EXTERNAL_API, f"{context}: {e}")

        if not response.is_success:
            logger.error(f"GraphQL API returned {response.status_code} ({context})")
            return Result.failure(ErrorKind.EXTERNAL_API, f"{context}: HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            return Result.failure(ErrorKind.EXTERNAL_API, f"{context}: response is not JSON")
        if not isinstance(payload, dict):
            return Result.failure(ErrorKind.EXTERNAL_API, f"{context}: unexpected response shape")

        if payload.get("errors"):
            logger.warning(f"GraphQL API returned errors ({context}), using any data present: {payload['errors']}")
            return Result.partial(payload, f"{context}: {payload['errors']}")
        return Result.success(payload)

    def _rest(self, account: ShopifyAccount, method: str, path: str, context: str, json: Optional[dict] = None) -> Result[dict]:
        url = f"{account.rest_base_url}{path}"
        try:
            response = self.client.request(method, url, headers=self._headers(account), json=json)
        except httpx.HTTPError as e:
            logger.error(f"Error calling Shopify REST API ({context}): {e}")
            return Result.failure(ErrorKind.EXTERNAL_API, f"{context}: {e}")

        if not response.is_success:
            logger.error(f"Shopify REST API returned {response.status_code} ({context})")
            return Result.failure(ErrorKind.EXTERNAL_API, f"{context}: HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        return Result.success(payload if isinstance(payload, dict) else {})

    # =========================================================================
    # Orders
    # =========================================================================

    def resolve_order(self, account_code: str, display_name: str) -> Result[OrderHandle]:
        """
        Find an order by display name, trying "#1001" and "1001".

        The first candidate that returns an order wins.
        """
        account = self._account(account_code)
        if not account.ok:
            return account
        if not display_name:
            return Result.failure(ErrorKind.VALIDATION, "Order name is empty")

        errors = 0
        candidates = order_name_candidates(display_name)
        for q in candidates:
            result = self._graphql(account.value, queries.ORDER_BY_NAME, {"q": q}, "Get Order Display Status")
            if not result.ok:
                errors += 1
                continue
            node = _first_order_node(result.value)
            handle = parse_order_handle(node) if node else None
            if handle:
                logger.debug(f"Order {display_name} resolved as {handle.gid} ({account_code}, {q})")
                return Result.success(handle)

        if errors == len(candidates):
            return Result.failure(ErrorKind.EXTERNAL_API, f"Order lookup failed for {display_name}")
        logger.warning(f"No orders found for order ID: {display_name} (account: {account_code})")
        return Result.failure(ErrorKind.LOOKUP_NOT_FOUND, f"Order {display_name} not found")

    def get_fulfillment_orders(self, account_code: str, order: OrderHandle) -> Result[list[FulfillmentOrderRef]]:
        account = self._account(account_code)
        if not account.ok:
            return account

        result = self._graphql(
            account.value, queries.FULFILLMENT_ORDERS, {"orderId": order.gid}, "Get Fulfillment Orders"
        )
        if not result.ok:
            return result

        data = _dig(result.value, "data", "order")
        if not isinstance(data, dict):
            return Result.failure(ErrorKind.LOOKUP_NOT_FOUND, f"Order {order.gid} not found")

        refs = [
            FulfillmentOrderRef(id=str(n["id"]), status=n.get("status"))
            for n in _edge_nodes(data.get("fulfillmentOrders"))
            if n.get("id")
        ]
        return Result.success(refs)

    def get_product_details(self, account_code: str, display_name: str) -> Result[list[ProductDetail]]:
        """Product handle and image of each line item (up to 20)."""
        account = self._account(account_code)
        if not account.ok:
            return account

        for q in order_name_candidates(display_name):
            result = self._graphql(account.value, queries.ORDER_PRODUCTS, {"q": q}, "Get Order Product Details")
            if not result.ok:
                continue
            node = _first_order_node(result.value)
            if node is None:
                continue
            details = []
            for item in _edge_nodes(node.get("lineItems")):
                product = item.get("product")
                if isinstance(product, dict):
                    details.append(ProductDetail(
                        handle=product.get("handle"),
                        image_url=_dig(product, "featuredImage", "url"),
                    ))
            return Result.success(details)

        return Result.success([], reason=f"No product details for {display_name}")

    # =========================================================================
    # Fulfillments
    # =========================================================================

    def create_fulfillment(
        self,
        account_code: str,
        order: OrderHandle,
        fulfillment_order_id: str,
        tracking_number: Optional[str],
        tracking_url: Optional[str],
    ) -> Result[int]:
        """
        Create a fulfillment for every item of a fulfillment order.

        When creation gives no usable id (user errors, e.g. already fulfilled),
        the order's existing fulfillments are queried and the first id is used.
        """
        account = self._account(account_code)
        if not account.ok:
            return account

        order_id = parse_numeric_id(order.gid, ORDER_GID_PREFIX)
        if order_id is None:
            return Result.failure(ErrorKind.VALIDATION, f"Cannot parse order id from {order.gid}")
        if not fulfillment_order_id:
            return Result.failure(ErrorKind.VALIDATION, "Fulfillment order id is empty")

        tracking_info = {"company": TRACKING_COMPANY}
        if tracking_number:
            tracking_info["number"] = tracking_number
        if tracking_url:
            tracking_info["url"] = tracking_url

        variables = {
            "fulfillment": {
                "lineItemsByFulfillmentOrder": [{
                    "fulfillmentOrderId": to_gid(fulfillment_order_id, FULFILLMENT_ORDER_GID_PREFIX),
                    "fulfillmentOrderLineItems": [],
                }],
                "notifyCustomer": False,
                "trackingInfo": tracking_info,
            }
        }
        logger.info(f"Creating fulfillment for order {order.name or order_id} ({account_code}), "
                    f"fulfillment order {fulfillment_order_id}")

        fulfillment_id = None
        result = self._graphql(account.value, queries.FULFILLMENT_CREATE, variables, "Create Fulfillment")
        if result.ok:
            created = _dig(result.value, "data", "fulfillmentCreate") or {}
            if created.get("userErrors"):
                logger.warning(f"fulfillmentCreate returned userErrors: {created['userErrors']}")
            else:
                fulfillment_id = parse_numeric_id(_dig(created, "fulfillment", "id"), FULFILLMENT_GID_PREFIX)

        if fulfillment_id is not None:
            logger.info(f"Fulfillment {fulfillment_id} created for order {order.name or order_id}")
            return Result.success(fulfillment_id)

        logger.warning(f"Creation returned no id, checking for existing fulfillment on order {order.name or order_id}")
        return self.get_fulfillment_id(account_code, order_id)

    def get_fulfillment_id(self, account_code: str, order_id: int) -> Result[int]:
        """First fulfillment id recorded on an order (REST)."""
        account = self._account(account_code)
        if not account.ok:
            return account

        result = self._rest(account.value, "GET", f"/orders/{order_id}/fulfillments.json", "Get Fulfillments")
        if not result.ok:
            return result

        for fulfillment in result.value.get("fulfillments") or []:
            if isinstance(fulfillment, dict) and str(fulfillment.get("id", "")).isdigit():
                return Result.success(int(fulfillment["id"]))
        return Result.failure(ErrorKind.LOOKUP_NOT_FOUND, f"No fulfillment found for order {order_id}")

    def create_fulfillment_event(self, account_code: str, fulfillment_id: int, status_class: Optional[StatusClass]) -> Result[str]:
        """Record a carrier status event on a fulfillment. Returns the event gid."""
        account = self._account(account_code)
        if not account.ok:
            return account

        event_status = event_status_for(status_class)
        variables = {"input": {
            "fulfillmentId": to_gid(str(fulfillment_id), FULFILLMENT_GID_PREFIX),
            "status": event_status,
        }}
        result = self._graphql(account.value, queries.FULFILLMENT_EVENT_CREATE, variables, "Create Fulfillment Event")
        if not result.ok:
            return result

        created = _dig(result.value, "data", "fulfillmentEventCreate") or {}
        if created.get("userErrors"):
            return Result.failure(ErrorKind.EXTERNAL_API, f"fulfillmentEventCreate userErrors: {created['userErrors']}")
        event = created.get("fulfillmentEvent")
        if not isinstance(event, dict):
            return Result.failure(ErrorKind.EXTERNAL_API, "fulfillmentEventCreate returned no event")
        return Result.success(event.get("id"), reason=event_status)

    def update_fulfillment_tracking(
        self,
        account_code: str,
        fulfillment_id: int,
        tracking_number: Optional[str],
        status_class: Optional[StatusClass],
    ) -> Result[bool]:
        """
        Push status and tracking number to a fulfillment.

        Two independent steps:
        1. a fulfillment event with the mapped event status (best-effort)
        2. when a tracking number is given, a REST tracking update

        Without a tracking number the event result is the result. Otherwise
        the REST update decides, even if the event failed.
        """
        account = self._account(account_code)
        if not account.ok:
            return account

        event = None
        if status_class is not None:
            event = self.create_fulfillment_event(account_code, fulfillment_id, status_class)
            if event.ok:
                logger.info(f"Fulfillment event {event.reason} created for fulfillment {fulfillment_id}")
            else:
                logger.warning(f"Failed to create fulfillment event for fulfillment {fulfillment_id}: {event.reason}")
            if not tracking_number:
                return Result.success(True) if event.ok else event

        tracking = {"status": tracking_status_for(status_class)}
        if tracking_number:
            tracking["number"] = tracking_number
        body = {"fulfillment": {"tracking_info": tracking}}

        logger.info(f"Updating tracking for fulfillment {fulfillment_id}: {tracking}")
        result = self._rest(
            account.value, "POST", f"/fulfillments/{fulfillment_id}/update_tracking.json",
            "Update Fulfillment Tracking", json=body,
        )
        if not result.ok:
            return result
        return Result.success(True, reason="event failed" if event is not None and not event.ok else "")

    # =========================================================================
    # Tags
    # =========================================================================

    def update_tags(self, account_code: str, order_id: int, tag: str) -> Result[bool]:
        """
        Append a tag to an order unless it is already there.

        Returns success(True) when a write happened and success(False) when the
        tag was already present.
        """
        account = self._account(account_code)
        if not account.ok:
            return account
        if not tag:
            return Result.failure(ErrorKind.VALIDATION, "Tag is empty")

        current = self._rest(account.value, "GET", f"/orders/{order_id}.json", "Get Order Tags")
        if not current.ok:
            return current

        existing = str(_dig(current.value, "order", "tags") or "").strip()
        if tag.lower() in (t.strip().lower() for t in existing.split(",")):
            logger.info(f"Tag {tag} already exists for order {order_id}, skipping update")
            return Result.success(False, reason="already tagged")

        new_tags = f"{existing}, {tag}" if existing else tag
        result = self._rest(
            account.value, "PUT", f"/orders/{order_id}.json", "Update Order Tags",
            json={"order": {"id": order_id, "tags": new_tags}},
        )
        if not result.ok:
            return result
        logger.info(f"Order {order_id} tagged {tag} ({account_code})")
        return Result.success(True)
