"""
Tests for the order-created confirmation flow.
"""

from reconciliation.order_created import ShopifyOrderPayload
from shared.results import ErrorKind


def order_payload(**overrides) -> ShopifyOrderPayload:
    data = {
        "id": 820982911946154508,
        "name": "#1001",
        "shipping_address": {"first_name": "Asha", "phone": "+91 98765 43210"},
        "customer": {"first_name": "Customer", "phone": "9111111111"},
    }
    data.update(overrides)
    return ShopifyOrderPayload.model_validate(data)


class TestShopifyOrderPayload:
    """Tests for contact field fallbacks."""

    def test_shipping_address_wins(self):
        """Test that shipping address values come first."""
        payload = order_payload()

        assert payload.contact_phone == "+91 98765 43210"
        assert payload.first_name == "Asha"

    def test_falls_back_to_order_then_customer(self):
        """Test the phone and name fallbacks."""
        payload = order_payload(shipping_address=None, phone="9222222222")
        assert payload.contact_phone == "9222222222"
        assert payload.first_name == "Customer"

        payload = order_payload(shipping_address={"first_name": ""})
        assert payload.contact_phone == "9111111111"

    def test_numeric_id(self):
        """Test that the numeric order id is kept as a string."""
        assert order_payload().id == "820982911946154508"


class TestOrderCreatedFlow:
    """Tests for OrderCreatedFlow.handle."""

    def test_sends_confirmation(self, engine, notifier):
        """Test the confirmation message and ledger row."""
        outcome = engine.order_created.handle(order_payload(), "acme-store.myshopify.com")

        assert outcome.success is True
        sent = notifier.sent_messages[0]
        assert sent.template_id == "tmpl-order-created"
        assert sent.variables == ["Asha", "#1001"]
        assert sent.recipient == "+919876543210"
        assert engine.ledger.entries_for("#1001", "ACME") == ["sent"]

    def test_sends_once(self, engine, notifier):
        """Test that a repeated webhook does not send again."""
        engine.order_created.handle(order_payload(), "acme-store.myshopify.com")

        outcome = engine.order_created.handle(order_payload(), "acme-store.myshopify.com")

        assert outcome.message == "Already notified"
        assert notifier.get_sent_count() == 1

    def test_missing_phone(self, engine, notifier):
        """Test that an order without any phone is skipped."""
        payload = order_payload(shipping_address=None, customer=None)

        outcome = engine.order_created.handle(payload, "acme-store.myshopify.com")

        assert outcome.error == ErrorKind.VALIDATION.value
        assert notifier.get_sent_count() == 0

    def test_unknown_shop(self, engine):
        """Test that a shop without an account is reported."""
        outcome = engine.order_created.handle(order_payload(), "store-zeta.myshopify.com")

        assert outcome.error == ErrorKind.NOT_CONFIGURED.value

    def test_missing_shop_domain(self, engine):
        """Test that the shop header is required."""
        outcome = engine.order_created.handle(order_payload(), None)

        assert outcome.error == ErrorKind.VALIDATION.value
