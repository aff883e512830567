"""
Tests for the fulfillment reconciler.

These tests verify each branch of reconciliation against the fake shop:
new fulfillment, existing fulfillment, completion tag and clone orders.
"""

import pytest

from reconciliation.reconciler import FLOW_POLICIES, FulfillmentReconciler
from shared.models import StatusClass
from shared.results import ErrorKind, Result


@pytest.fixture
def reconciler(shopify_client, accounts) -> FulfillmentReconciler:
    return FulfillmentReconciler(shopify_client, accounts)


class TestFlowPolicies:
    """Tests for the per-class policy table."""

    def test_notifying_classes(self):
        """Test which classes send a message."""
        assert FLOW_POLICIES[StatusClass.IN_TRANSIT].notifies is True
        assert FLOW_POLICIES[StatusClass.DELIVERED].notifies is True
        assert FLOW_POLICIES[StatusClass.FULFILLED].notifies is False

    def test_no_policy_for_unsupported_classes(self):
        """Test that RTO and UNKNOWN have no flow."""
        assert StatusClass.RETURN_TO_ORIGIN not in FLOW_POLICIES
        assert StatusClass.UNKNOWN not in FLOW_POLICIES


class TestNewFulfillment:
    """Tests for orders that are not fulfilled yet."""

    def test_creates_and_updates(self, reconciler, fake_shopify, in_transit_event):
        """Test that an unfulfilled order gets a fulfillment with tracking."""
        result = reconciler.reconcile(in_transit_event, StatusClass.IN_TRANSIT)

        assert result.ok
        assert result.value.notify is True
        assert isinstance(result.value.fulfillment_id, int)
        assert fake_shopify.count("fulfillment_create") == 1
        assert fake_shopify.bodies("fulfillment_event")[0]["input"]["status"] == "IN_TRANSIT"
        assert fake_shopify.bodies("update_tracking")[0]["fulfillment"]["tracking_info"]["number"] == "AWB123"

    def test_no_open_fulfillment_order(self, reconciler, fake_shopify, in_transit_event):
        """Test that an order without an OPEN fulfillment order is not fulfilled."""
        fake_shopify.add_order("#7007", 7007, open_orders=0)
        event = in_transit_event.model_copy(update={"order_id": "7007"})

        result = reconciler.reconcile(event, StatusClass.IN_TRANSIT)

        assert result.error == ErrorKind.LOOKUP_NOT_FOUND
        assert fake_shopify.count("fulfillment_create") == 0

    def test_order_not_found(self, reconciler, in_transit_event):
        """Test that an unknown order aborts with a lookup failure."""
        event = in_transit_event.model_copy(update={"order_id": "9999"})

        result = reconciler.reconcile(event, StatusClass.IN_TRANSIT)

        assert result.error == ErrorKind.LOOKUP_NOT_FOUND

    def test_fulfilled_class_does_not_notify(self, reconciler, fake_shopify, in_transit_event):
        """Test that the Fulfilled class reconciles without a message."""
        event = in_transit_event.model_copy(update={"current_status": "Shipment Booked"})

        result = reconciler.reconcile(event, StatusClass.FULFILLED)

        assert result.ok
        assert result.value.notify is False
        assert fake_shopify.count("fulfillment_create") == 1


class TestExistingFulfillment:
    """Tests for orders that are already fulfilled."""

    def test_same_awb_skips_tracking_number(self, reconciler, fake_shopify, in_transit_event):
        """Test that a matching AWB only sends the status event."""
        fake_shopify.add_order("#8008", 8008, fulfilled=True, awb="AWB123")
        event = in_transit_event.model_copy(update={"order_id": "8008"})

        result = reconciler.reconcile(event, StatusClass.IN_TRANSIT)

        assert result.ok
        assert fake_shopify.count("fulfillment_create") == 0
        assert fake_shopify.count("fulfillment_event") == 1
        assert fake_shopify.count("update_tracking") == 0

    def test_new_awb_is_pushed(self, reconciler, fake_shopify, in_transit_event):
        """Test that a different AWB is written to the fulfillment."""
        fake_shopify.add_order("#8008", 8008, fulfilled=True, awb="OLD-AWB")
        event = in_transit_event.model_copy(update={"order_id": "8008"})

        result = reconciler.reconcile(event, StatusClass.IN_TRANSIT)

        assert result.ok
        assert fake_shopify.bodies("update_tracking")[0]["fulfillment"]["tracking_info"]["number"] == "AWB123"

    def test_fulfilled_without_record(self, reconciler, fake_shopify, in_transit_event):
        """Test an order marked fulfilled that lists no fulfillment."""
        order = fake_shopify.add_order("#6006", 6006)
        order.fulfilled = True
        event = in_transit_event.model_copy(update={"order_id": "6006"})

        result = reconciler.reconcile(event, StatusClass.IN_TRANSIT)

        assert result.error == ErrorKind.LOOKUP_NOT_FOUND


class TestOutForDelivery:
    """Tests for the completion tag on out-for-delivery."""

    def test_tags_order(self, reconciler, fake_shopify, in_transit_event):
        """Test that the order is tagged after the tracking update."""
        event = in_transit_event.model_copy(update={"current_status": "Out_for_Delivery"})

        result = reconciler.reconcile(event, StatusClass.OUT_FOR_DELIVERY)

        assert result.ok
        assert result.value.notify is True
        assert fake_shopify.orders["#1001"].tags == ["AAA_OUT_FOR_DELIVERY"]

    def test_delivered_writes_no_tag(self, reconciler, fake_shopify, in_transit_event):
        """Test that only out-for-delivery tags the order."""
        event = in_transit_event.model_copy(update={"current_status": "Delivered"})

        result = reconciler.reconcile(event, StatusClass.DELIVERED)

        assert result.ok
        assert fake_shopify.count("put_order") == 0
        assert fake_shopify.orders["#1001"].tags == []

    def test_already_tagged_does_nothing(self, reconciler, fake_shopify, in_transit_event):
        """Test that a tagged order is treated as done before any write."""
        fake_shopify.add_order("#9009", 9009, tags=("aaa_out_for_delivery",))
        event = in_transit_event.model_copy(update={"order_id": "9009", "current_status": "Out for delivery"})

        result = reconciler.reconcile(event, StatusClass.OUT_FOR_DELIVERY)

        assert result.ok
        assert result.value.notify is False
        assert fake_shopify.count("fulfillment_create") == 0
        assert fake_shopify.count("fulfillment_event") == 0
        assert fake_shopify.count("put_order") == 0

    def test_tag_failure_aborts(self, reconciler, shopify_client, monkeypatch, in_transit_event):
        """Test that a failed tag write fails the event."""
        monkeypatch.setattr(
            shopify_client, "update_tags",
            lambda *args, **kwargs: Result.failure(ErrorKind.EXTERNAL_API, "Update Order Tags: HTTP 500"),
        )

        result = reconciler.reconcile(in_transit_event, StatusClass.OUT_FOR_DELIVERY)

        assert result.error == ErrorKind.EXTERNAL_API


class TestCloneOrders:
    """Tests for clone orders (ids with an underscore)."""

    def test_clone_skips_commerce(self, reconciler, fake_shopify, in_transit_event):
        """Test that a clone goes straight to notification."""
        event = in_transit_event.model_copy(update={"order_id": "1001_2"})

        result = reconciler.reconcile(event, StatusClass.DELIVERED)

        assert result.ok
        assert result.value.notify is True
        assert result.value.order is None
        assert fake_shopify.calls == []

    def test_clone_rejected_for_fulfilled(self, reconciler, fake_shopify, in_transit_event):
        """Test that the Fulfilled flow does not accept clones."""
        event = in_transit_event.model_copy(update={"order_id": "1001_2"})

        result = reconciler.reconcile(event, StatusClass.FULFILLED)

        assert result.error == ErrorKind.VALIDATION
        assert fake_shopify.calls == []


class TestConfiguration:
    """Tests for unsupported classes and accounts."""

    def test_unsupported_class(self, reconciler, in_transit_event):
        """Test that a class without a flow is rejected."""
        result = reconciler.reconcile(in_transit_event, StatusClass.RETURN_TO_ORIGIN)

        assert result.error == ErrorKind.UNSUPPORTED_STATUS

    def test_unknown_account(self, reconciler, fake_shopify, in_transit_event):
        """Test that an unknown account makes no calls."""
        event = in_transit_event.model_copy(update={"account_code": "ZETA"})

        result = reconciler.reconcile(event, StatusClass.IN_TRANSIT)

        assert result.error == ErrorKind.NOT_CONFIGURED
        assert fake_shopify.calls == []
