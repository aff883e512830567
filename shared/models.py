"""
Domain models for the shipment status notifier.

These models describe the inbound carrier webhook and the slices of commerce
platform state the reconciler reads.

Design decisions:
- Using Pydantic for validation and serialization
- Inbound models accept the carrier's wire field names as aliases
- Commerce-side models are read-only snapshots; the platform stays authoritative
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class StatusClass(str, Enum):
    """
    Canonical shipment lifecycle bucket derived from a carrier status.

    ORDER_CREATED is never produced by the classifier; it is reached through
    the order-created webhook only.
    """
    ORDER_CREATED = "ORDER_CREATED"
    FULFILLED = "FULFILLED"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    RETURN_TO_ORIGIN = "RETURN_TO_ORIGIN"
    UNKNOWN = "UNKNOWN"


# =============================================================================
# Inbound carrier webhook
# =============================================================================

class StatusEvent(BaseModel):
    """
    One order entry from a carrier status webhook.

    Created per inbound item and never persisted.
    """
    order_id: Optional[str] = Field(default=None, description="Order display name or clone id")
    account_code: Optional[str] = Field(default=None, description="Tenant key")
    carrier_id: Optional[str] = Field(default=None)
    awb: Optional[str] = Field(default=None, description="Carrier tracking number")
    current_status: Optional[str] = Field(
        default=None,
        alias="current_shipment_status",
        description="Raw carrier status",
    )
    previous_status: Optional[str] = Field(default=None)
    shipping_phone: Optional[str] = Field(default=None)
    shipping_first_name: Optional[str] = Field(default=None, alias="shipping_firstname")
    shipping_last_name: Optional[str] = Field(default=None, alias="shipping_lastname")
    product_count: Optional[int] = Field(default=None, alias="number_of_product")
    quantity_count: Optional[int] = Field(default=None, alias="number_of_quantity")
    latest_message_status: Optional[str] = Field(default=None)

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @property
    def is_clone(self) -> bool:
        """Clone orders carry an underscore-separated disambiguator."""
        return bool(self.order_id) and "_" in self.order_id


class StatusWebhook(BaseModel):
    """Batch wrapper posted by the carrier."""
    timestamp: Optional[str] = Field(default=None)
    event: Optional[str] = Field(default=None)
    orders: list[StatusEvent] = Field(default_factory=list)

    model_config = ConfigDict(coerce_numbers_to_str=True)


# =============================================================================
# Commerce platform snapshots
# =============================================================================

class FulfillmentRecord(BaseModel):
    """A shipment record on the commerce platform."""
    id: str = Field(..., description="Opaque fulfillment gid")
    status: Optional[str] = Field(default=None)
    tracking_number: Optional[str] = Field(default=None)
    tracking_url: Optional[str] = Field(default=None)
    tracking_company: Optional[str] = Field(default=None)


class FulfillmentOrderRef(BaseModel):
    """A group of line items awaiting shipment, with its own OPEN/CLOSED lifecycle."""
    id: str
    status: Optional[str] = None


class OrderHandle(BaseModel):
    """
    An order resolved by display name.

    Carries everything the reconciler needs to branch without a second lookup.
    """
    gid: str = Field(..., description="Opaque order gid")
    name: Optional[str] = Field(default=None, description="Display name, e.g. #1001")
    display_fulfillment_status: Optional[str] = Field(default=None)
    tags: list[str] = Field(default_factory=list)
    fulfillments: list[FulfillmentRecord] = Field(default_factory=list)
    fulfillment_orders: list[FulfillmentOrderRef] = Field(default_factory=list)
    first_product_id: Optional[str] = Field(default=None)

    @property
    def is_fulfilled(self) -> bool:
        return (self.display_fulfillment_status or "").upper() == "FULFILLED"

    def has_tag(self, tag: str) -> bool:
        """Case-insensitive tag check."""
        wanted = tag.strip().lower()
        return any(t.strip().lower() == wanted for t in self.tags)


class ProductDetail(BaseModel):
    """Product handle and image for a line item, used in delivery messages."""
    handle: Optional[str] = None
    image_url: Optional[str] = None


# =============================================================================
# Outcomes
# =============================================================================

class Outcome(BaseModel):
    """Per-event result returned by the orchestrator."""
    success: bool
    message: str
    order_id: Optional[str] = Field(default=None, serialization_alias="orderId")
    status_class: Optional[StatusClass] = Field(default=None)
    error: Optional[str] = Field(default=None, description="ErrorKind value on failure")
    processed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(use_enum_values=True)


class BatchSummary(BaseModel):
    """Aggregated counts for a batch of events."""
    success: bool
    processed: int
    success_count: int = Field(serialization_alias="successCount")
    fail_count: int = Field(serialization_alias="failCount")
    results: list[Outcome] = Field(default_factory=list)
