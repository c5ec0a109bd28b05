import pytest

from medmarket.services.transitions import (
    compatible,
    delivery_transition_allowed,
    order_status_for_delivery,
    order_transition_allowed,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("src,dst", [
    ("pending", "approved"),
    ("pending", "cancelled"),
    ("approved", "delivered"),
    ("approved", "processing"),
    ("processing", "shipped"),
    ("shipped", "delivered"),
])
def test_pharmacy_allowed_order_transitions(src, dst):
    assert order_transition_allowed(src, dst, "pharmacy") is True


@pytest.mark.parametrize("src,dst", [
    ("delivered", "pending"),
    ("cancelled", "approved"),
    ("pending", "shipped"),
    ("shipped", "cancelled"),
])
def test_pharmacy_rejected_order_transitions(src, dst):
    assert order_transition_allowed(src, dst, "pharmacy") is False


def test_customer_and_agent_cannot_transition_orders():
    assert order_transition_allowed("pending", "cancelled", "customer") is False
    assert order_transition_allowed("pending", "approved", "delivery_agent") is False


def test_admin_may_set_any_other_order_status():
    assert order_transition_allowed("delivered", "pending", "admin") is True
    assert order_transition_allowed("cancelled", "approved", "admin") is True
    # 같은 상태로의 변경은 전이가 아님
    assert order_transition_allowed("pending", "pending", "admin") is False


def test_unknown_values_are_rejected():
    assert order_transition_allowed("pending", "lost", "admin") is False
    assert order_transition_allowed("pending", "approved", "superuser") is False
    assert delivery_transition_allowed("pending", "returned", "admin") is False


def test_agent_delivery_transitions_are_forward_only():
    assert delivery_transition_allowed("pending", "in-transit", "delivery_agent") is True
    assert delivery_transition_allowed("in-transit", "delivered", "delivery_agent") is True
    assert delivery_transition_allowed("pending", "delivered", "delivery_agent") is False
    assert delivery_transition_allowed("delivered", "in-transit", "delivery_agent") is False


def test_admin_delivery_transitions():
    assert delivery_transition_allowed("delivered", "pending", "admin") is True
    assert delivery_transition_allowed("pending", "pending", "admin") is False
    assert delivery_transition_allowed("pending", "in-transit", "pharmacy") is False


def test_compatible_matrix():
    assert compatible("pending", None) is True
    assert compatible("approved", "pending") is True
    assert compatible("shipped", "pending") is False
    assert compatible("shipped", "in-transit") is True
    assert compatible("cancelled", "in-transit") is False
    assert compatible("delivered", "delivered") is True
    assert compatible("shipped", "delivered") is False


def test_order_follows_delivery_progress():
    assert order_status_for_delivery("approved", "in-transit") == "shipped"
    assert order_status_for_delivery("processing", "delivered") == "delivered"
    assert order_status_for_delivery("approved", "pending") == "approved"
    assert order_status_for_delivery("delivered", "pending") == "processing"
