"""
Tests for notification templates.

These tests verify phone normalization and the positional variables each
message builder produces.
"""

import pytest

from shared.models import ProductDetail, StatusEvent
from shared.templates import (
    abandoned_cart_message,
    delivered_message,
    format_phone_number,
    in_transit_message,
    order_created_message,
    out_for_delivery_message,
)


class TestFormatPhoneNumber:
    """Tests for format_phone_number."""

    @pytest.mark.parametrize("raw", ["9876543210", "+91 98765 43210", "09876543210", "919876543210", "98765-43210"])
    def test_valid_numbers(self, raw):
        """Test the accepted input shapes."""
        assert format_phone_number(raw) == "+919876543210"

    @pytest.mark.parametrize("raw", [None, "", "12345", "abc", "44123456789012"])
    def test_invalid_numbers(self, raw):
        """Test that unusable numbers give an empty string."""
        assert format_phone_number(raw) == ""


class TestTrackingMessages:
    """Tests for in-transit and out-for-delivery builders."""

    def test_in_transit(self, accounts, in_transit_event):
        """Test in-transit variables, media and card."""
        message = in_transit_message(in_transit_event, accounts.get("ACME"))
        url = "https://acme.shipway.in/track/AWB123"

        assert message.template_key == "inTransit"
        assert message.variables == ["Asha", "2", "1001", url]
        assert message.media_url == url
        assert message.cards == [url]

    def test_out_for_delivery_count_suffix(self, accounts, in_transit_event):
        """Test that the count reads "<n> item"."""
        message = out_for_delivery_message(in_transit_event, accounts.get("ACME"))

        assert message.template_key == "outForDelivery"
        assert message.variables[1] == "2 item"

    def test_missing_values(self, accounts):
        """Test defaults when name, count and AWB are missing."""
        event = StatusEvent(order_id="1001", account_code="ACME")

        message = in_transit_message(event, accounts.get("ACME"))

        assert message.variables == ["", "0", "1001"]
        assert message.media_url is None
        assert message.cards == []


class TestDeliveredMessage:
    """Tests for delivered_message."""

    def test_with_products(self, accounts):
        """Test that the first product's review link is used and each handle gets a card."""
        products = [ProductDetail(handle="boots"), ProductDetail(handle=None), ProductDetail(handle="socks")]

        message = delivered_message("1001", accounts.get("ACME"), products)
        url = "https://acme.example/products/boots#judgeme"

        assert message.variables == ["1001", url, url]
        assert message.media_url == url
        assert message.cards == [url, "https://acme.example/products/socks#judgeme"]

    def test_without_products(self, accounts):
        """Test the bare prefix and no media when nothing was found."""
        message = delivered_message("1001", accounts.get("ACME"), [])

        assert message.variables == ["1001", "https://acme.example/products/", "https://acme.example/products/"]
        assert message.media_url is None
        assert message.cards == []


class TestShopMessages:
    """Tests for order-created and abandoned-cart builders."""

    def test_order_created(self):
        """Test order confirmation variables."""
        message = order_created_message("Asha", "#1001")

        assert message.template_key == "orderCreated"
        assert message.variables == ["Asha", "#1001"]

    def test_abandoned_cart_missing_values(self):
        """Test that missing values become empty strings."""
        message = abandoned_cart_message(None, None)

        assert message.template_key == "abandonedCart"
        assert message.variables == ["", ""]
