from decimal import Decimal

import pytest

from medmarket.models import VerificationStatus
from medmarket.services.checkout_service import Cart, CheckoutService
from medmarket.services.dashboard_service import DashboardService
from medmarket.services.delivery_service import DeliveryService
from medmarket.services.exceptions import AuthorizationError
from medmarket.services.order_service import OrderService

pytestmark = pytest.mark.integration


def _order(session, customer, pharmacy, product, quantity=1):
    cart = Cart()
    cart.add(product.id, pharmacy.id)
    cart.update_quantity(product.id, quantity)
    return CheckoutService(session).place_orders(customer, cart, "Abuja")[0]


def test_admin_stats(test_session, factory):
    admin = factory.admin()
    customer = factory.customer()
    owner, pharmacy = factory.pharmacy()
    factory.pharmacy(status=VerificationStatus.PENDING)
    product = factory.product(pharmacy, price="100.00")
    _order(test_session, customer, pharmacy, product, quantity=2)
    cancelled = _order(test_session, customer, pharmacy, product)
    OrderService(test_session).update_status(owner, cancelled.id, "cancelled")

    stats = DashboardService(test_session).admin_stats(admin)

    assert stats["total_pharmacies"] == 2
    assert stats["pending_pharmacies"] == 1
    assert stats["total_users"] == 4
    assert stats["total_products"] == 1
    assert stats["total_orders"] == 2
    assert stats["total_revenue"] == Decimal("200.00")


def test_pharmacy_stats(test_session, factory):
    customer = factory.customer()
    owner, pharmacy = factory.pharmacy()
    product = factory.product(pharmacy, price="40.00")
    factory.product(pharmacy, is_active=False)
    _order(test_session, customer, pharmacy, product, quantity=3)

    stats = DashboardService(test_session).pharmacy_stats(owner)

    assert stats["total_products"] == 2
    assert stats["active_products"] == 1
    assert stats["total_orders"] == 1
    assert stats["pending_orders"] == 1
    assert stats["orders_by_status"]["delivered"] == 0
    assert stats["revenue"] == Decimal("120.00")


def test_agent_stats(test_session, factory):
    admin = factory.admin()
    agent = factory.agent()
    customer = factory.customer()
    owner, pharmacy = factory.pharmacy()
    product = factory.product(pharmacy)
    order = _order(test_session, customer, pharmacy, product)
    OrderService(test_session).update_status(owner, order.id, "approved")
    delivery = DeliveryService(test_session).create(admin, order.id, agent_id=agent.principal_id)
    DeliveryService(test_session).update_status(agent, delivery.id, "in-transit")

    stats = DashboardService(test_session).agent_stats(agent)

    assert stats["total_deliveries"] == 1
    assert stats["deliveries_by_status"] == {"pending": 0, "in-transit": 1, "delivered": 0}


def test_stats_are_role_gated(test_session, factory):
    customer = factory.customer()
    service = DashboardService(test_session)

    with pytest.raises(AuthorizationError):
        service.admin_stats(customer)
    with pytest.raises(AuthorizationError):
        service.pharmacy_stats(customer)
    with pytest.raises(AuthorizationError):
        service.agent_stats(customer)
