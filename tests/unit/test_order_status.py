"""
Order status enumeration and lifecycle rules.
"""
import pytest

from storefront.core.exceptions import InvalidOrderStatusError, OrderStatusTransitionError
from storefront.models.order import OrderStatus
from storefront.services.order_store import parse_status, validate_status_transition


def test_status_values_are_stable():
    assert [s.value for s in OrderStatus] == [
        "pending", "processing", "shipped", "delivered", "cancelled",
    ]


@pytest.mark.parametrize("value", ["refunded", "", "PENDING", None])
def test_parse_status_rejects_unknown(value):
    with pytest.raises(InvalidOrderStatusError) as exc_info:
        parse_status(value)
    assert "pending" in exc_info.value.details["allowed"]


@pytest.mark.parametrize("current,requested", [
    ("pending", "processing"),
    ("pending", "cancelled"),
    ("processing", "shipped"),
    ("processing", "cancelled"),
    ("shipped", "delivered"),
    ("delivered", "delivered"),
])
def test_allowed_transitions(current, requested):
    assert validate_status_transition(current, requested) == OrderStatus(requested)


@pytest.mark.parametrize("current,requested", [
    ("pending", "shipped"),
    ("pending", "delivered"),
    ("shipped", "pending"),
    ("shipped", "cancelled"),
    ("delivered", "cancelled"),
    ("cancelled", "pending"),
])
def test_rejected_transitions(current, requested):
    with pytest.raises(OrderStatusTransitionError) as exc_info:
        validate_status_transition(current, requested)
    assert exc_info.value.details == {"current_status": current, "requested_status": requested}
    assert exc_info.value.http_status == 409
