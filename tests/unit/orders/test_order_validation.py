"""Unit tests for the order form validation schema.

Covers:
- Required customer, shipping and item fields.
- E-mail format, payment method and status choices.
- Item count bounds (MissingItems / TooManyItems).
- Quantity and price rules, including the two-decimal price limit.
- Transaction id required only for mobile-wallet payments; dropped otherwise.
- Values longer or larger than their `orders` columns.
"""

from __future__ import annotations

import copy
from datetime import date, datetime

import pytest

from modules.orders.draft import OrderDraft
from modules.orders.exceptions import ValidationFailed
from modules.orders.validation import (
    INVALID_CHOICE,
    INVALID_FORMAT,
    INVALID_PRICE,
    INVALID_QUANTITY,
    MISSING_ITEMS,
    MISSING_REQUIRED_FIELD,
    TOO_MANY_ITEMS,
    field_path,
    to_date,
    to_decimal,
    to_int,
    validate_draft,
    validated_order,
)

pytestmark = pytest.mark.unit


@pytest.fixture()
def payload(order_payload):
    return copy.deepcopy(order_payload)


class TestValidPayloads:
    def test_complete_payload_is_valid(self, payload):
        assert validate_draft(payload) == {}

    def test_cod_with_blank_transaction_id_is_valid(self, payload):
        payload["payment_method"] = "cod"
        payload["transaction_id"] = ""
        assert validate_draft(payload) == {}

    def test_email_is_optional(self, payload):
        payload["customer_email"] = ""
        assert validate_draft(payload) == {}

    def test_zero_price_is_allowed(self, payload):
        payload["items"][0]["price"] = "0"
        assert validate_draft(payload) == {}

    def test_validate_accepts_a_draft_and_leaves_it_untouched(self, payload):
        draft = OrderDraft.open()
        draft.load(payload)
        before = draft.as_dict()

        assert validate_draft(draft) == {}
        assert draft.as_dict() == before

    def test_validated_order_returns_parsed_values(self, payload):
        order = validated_order(payload)
        assert order.order_date == date(2024, 5, 1)
        assert order.items[0].quantity == 2
        assert str(order.items[1].price) == "40.00"


class TestRequiredFields:
    def test_empty_draft_reports_every_required_field(self):
        errors = validate_draft(OrderDraft.open())

        assert errors["customer_name"].code == MISSING_REQUIRED_FIELD
        assert errors["customer_name"].message == "Customer name is required"
        assert errors["customer_phone"].message == "Phone number is required"
        assert errors["shipping_address.street"].code == MISSING_REQUIRED_FIELD
        assert errors["shipping_address.zip"].message == "Shipping ZIP is required"
        assert errors["items[0].product_name"].message == "Product name is required"
        assert "customer_email" not in errors
        assert "payment_method" not in errors

    def test_whitespace_only_name_is_missing(self, payload):
        payload["customer_name"] = "   "
        assert validate_draft(payload)["customer_name"].code == MISSING_REQUIRED_FIELD

    def test_missing_order_date(self, payload):
        payload["order_date"] = None
        error = validate_draft(payload)["order_date"]
        assert error.code == MISSING_REQUIRED_FIELD
        assert error.message == "Order date is required"

    def test_missing_shipping_address_object(self, payload):
        del payload["shipping_address"]
        errors = validate_draft(payload)
        assert {
            "shipping_address.street",
            "shipping_address.city",
            "shipping_address.state",
            "shipping_address.zip",
        } <= set(errors)


class TestFormatsAndChoices:
    def test_invalid_email(self, payload):
        payload["customer_email"] = "not-an-email"
        error = validate_draft(payload)["customer_email"]
        assert error.code == INVALID_FORMAT
        assert error.message == "Invalid email address"

    @pytest.mark.parametrize("email", ["rahim@example.c", "rahim@", 42])
    def test_email_the_store_would_reject(self, payload, email):
        payload["customer_email"] = email
        error = validate_draft(payload)["customer_email"]
        assert error.code == INVALID_FORMAT
        assert error.message == "Invalid email address"

    def test_email_is_trimmed(self, payload):
        payload["customer_email"] = "  rahim@example.com "
        assert validated_order(payload).customer_email == "rahim@example.com"

    def test_unknown_payment_method(self, payload):
        payload["payment_method"] = "cheque"
        error = validate_draft(payload)["payment_method"]
        assert error.code == INVALID_CHOICE
        assert error.message == "Please select a payment method"

    def test_unknown_status(self, payload):
        payload["status"] = "shipped"
        assert validate_draft(payload)["status"].code == INVALID_CHOICE


class TestItems:
    def test_empty_items_is_missing_items(self, payload):
        payload["items"] = []
        error = validate_draft(payload)["items"]
        assert error.code == MISSING_ITEMS
        assert error.message == "At least one item is required"

    def test_too_many_items(self, payload, settings):
        settings.ORDER_MAX_LINE_ITEMS = 2
        payload["items"].append({"product_name": "Cable", "quantity": 1, "price": "5"})
        assert validate_draft(payload)["items"].code == TOO_MANY_ITEMS

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5, None])
    def test_invalid_quantity(self, payload, quantity):
        payload["items"][1]["quantity"] = quantity
        error = validate_draft(payload)["items[1].quantity"]
        assert error.code == INVALID_QUANTITY
        assert error.message == "Quantity must be at least 1"

    @pytest.mark.parametrize("price", ["-0.01", "abc", None])
    def test_invalid_price(self, payload, price):
        payload["items"][0]["price"] = price
        error = validate_draft(payload)["items[0].price"]
        assert error.code == INVALID_PRICE
        assert error.message == "Price must be positive"

    def test_price_with_three_decimals(self, payload):
        payload["items"][0]["price"] = "9.999"
        error = validate_draft(payload)["items[0].price"]
        assert error.code == INVALID_PRICE
        assert error.message == "Price must have at most 2 decimal places"

    def test_price_above_column_precision(self, payload):
        payload["items"][0]["price"] = "100000000.00"
        error = validate_draft(payload)["items[0].price"]
        assert error.code == INVALID_PRICE
        assert error.message == "Price must be at most 99999999.99"

    def test_largest_storable_price_is_valid(self, payload):
        payload["items"][0]["price"] = "99999999.99"
        assert validate_draft(payload) == {}

    def test_quantity_above_integer_column(self, payload):
        payload["items"][0]["quantity"] = 2**31
        error = validate_draft(payload)["items[0].quantity"]
        assert error.code == INVALID_QUANTITY
        assert error.message == "Quantity must be at most 2147483647"

    def test_item_errors_are_reported_per_index(self, payload):
        payload["items"][0]["product_name"] = ""
        payload["items"][1]["quantity"] = 0
        errors = validate_draft(payload)
        assert set(errors) == {"items[0].product_name", "items[1].quantity"}


class TestTransactionId:
    @pytest.mark.parametrize("method, label", [("bkash", "Bkash"), ("nagad", "Nagad")])
    def test_required_for_mobile_wallets(self, payload, method, label):
        payload["payment_method"] = method
        payload["transaction_id"] = "  "
        error = validate_draft(payload)["transaction_id"]
        assert error.code == MISSING_REQUIRED_FIELD
        assert error.message == f"Transaction ID is required for {label} payments"

    def test_present_for_bkash_is_valid(self, payload):
        payload["payment_method"] = "bkash"
        payload["transaction_id"] = "TXN123"
        assert validate_draft(payload) == {}

    @pytest.mark.parametrize("method", ["credit_card", "paypal", "bank_transfer", "cod"])
    def test_not_required_for_other_methods(self, payload, method):
        payload["payment_method"] = method
        payload["transaction_id"] = ""
        assert "transaction_id" not in validate_draft(payload)

    def test_numeric_id_is_dropped_for_cod(self, payload):
        payload["payment_method"] = "cod"
        payload["transaction_id"] = 12345
        assert validate_draft(payload) == {}
        assert validated_order(payload).transaction_id is None

    def test_numeric_id_is_accepted_for_bkash(self, payload):
        payload["payment_method"] = "bkash"
        payload["transaction_id"] = 12345
        assert validate_draft(payload) == {}
        assert validated_order(payload).transaction_id == "12345"

    def test_id_is_stripped(self, payload):
        payload["payment_method"] = "nagad"
        payload["transaction_id"] = "  TXN123 "
        assert validated_order(payload).transaction_id == "TXN123"

    def test_checked_even_when_other_fields_fail(self, payload):
        payload["payment_method"] = "nagad"
        payload["transaction_id"] = ""
        payload["customer_name"] = ""
        errors = validate_draft(payload)
        assert {"customer_name", "transaction_id"} <= set(errors)


def test_validated_order_raises_with_all_errors(payload):
    payload["customer_phone"] = ""
    payload["items"] = []
    with pytest.raises(ValidationFailed) as exc_info:
        validated_order(payload)
    assert set(exc_info.value.errors) == {"customer_phone", "items"}


class TestCoercionHelpers:
    def test_field_path_rendering(self):
        assert field_path(("items", 0, "quantity")) == "items[0].quantity"
        assert field_path(("shipping_address", "zip")) == "shipping_address.zip"
        assert field_path(()) == "__all__"

    def test_to_int(self):
        assert to_int(" 3 ") == 3
        assert to_int(2.0) == 2
        assert to_int(True) is None
        assert to_int("2.5") is None

    def test_to_decimal(self):
        assert str(to_decimal("9.99")) == "9.99"
        assert to_decimal("NaN") is None
        assert to_decimal(None) is None

    def test_to_date(self):
        assert to_date("2024-05-01") == date(2024, 5, 1)
        assert to_date("2024-05-01T10:00:00Z") == date(2024, 5, 1)
        assert to_date(datetime(2024, 5, 1, 23, 59)) == date(2024, 5, 1)
        assert to_date("yesterday") is None


class TestColumnLengths:
    @pytest.mark.parametrize(
        "path, length, message",
        [
            ("customer_name", 256, "Customer name must be at most 255 characters"),
            ("customer_phone", 51, "Phone number must be at most 50 characters"),
            ("shipping_address.street", 256, "Shipping street must be at most 255 characters"),
            ("shipping_address.city", 121, "Shipping city must be at most 120 characters"),
            ("shipping_address.state", 121, "Shipping state must be at most 120 characters"),
            ("shipping_address.zip", 21, "Shipping ZIP must be at most 20 characters"),
            ("items[0].product_name", 256, "Product name must be at most 255 characters"),
        ],
    )
    def test_value_longer_than_its_column(self, payload, path, length, message):
        draft = OrderDraft.open()
        draft.load(payload)
        draft.set_field(path, "x" * length)

        error = validate_draft(draft)[path]

        assert error.code == INVALID_FORMAT
        assert error.message == message

    def test_value_at_the_limit_is_valid(self, payload):
        payload["customer_name"] = "x" * 255
        payload["shipping_address"]["zip"] = "1" * 20
        assert validate_draft(payload) == {}

    def test_surrounding_whitespace_does_not_count(self, payload):
        payload["customer_phone"] = "  " + "1" * 50 + "  "
        assert validated_order(payload).customer_phone == "1" * 50

    def test_long_email(self, payload):
        payload["customer_email"] = "a" * 250 + "@example.com"
        assert validate_draft(payload)["customer_email"].code == INVALID_FORMAT

    def test_transaction_id_longer_than_its_column(self, payload):
        payload["payment_method"] = "bkash"
        payload["transaction_id"] = "T" * 101
        error = validate_draft(payload)["transaction_id"]
        assert error.code == INVALID_FORMAT
        assert error.message == "Transaction ID must be at most 100 characters"
