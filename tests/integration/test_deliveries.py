import pytest
from sqlalchemy.exc import IntegrityError

from medmarket.models import Delivery
from medmarket.services.checkout_service import Cart, CheckoutService
from medmarket.services.delivery_service import DeliveryService
from medmarket.services.exceptions import AuthorizationError, ConflictError, TransitionError, ValidationError
from medmarket.services.order_service import OrderService

pytestmark = pytest.mark.integration


@pytest.fixture
def approved_order(test_session, factory):
    customer = factory.customer()
    owner, pharmacy = factory.pharmacy()
    product = factory.product(pharmacy, price="150.00", stock=3)
    cart = Cart()
    cart.add(product.id, pharmacy.id)
    order = CheckoutService(test_session).place_orders(customer, cart, "Victoria Island")[0]
    OrderService(test_session).update_status(owner, order.id, "approved")
    return customer, owner, order


def test_delivery_completion_scenario(test_session, factory, approved_order):
    customer, owner, order = approved_order
    admin = factory.admin()
    agent = factory.agent()
    service = DeliveryService(test_session)

    delivery = service.create(admin, order.id, agent_id=agent.principal_id)
    assert delivery.status_delivery == "pending"
    assert delivery.delivered_at is None

    service.update_status(agent, delivery.id, "in-transit")
    assert order.status == "shipped"

    # 약국 확인은 배송 중에도 가능하며 상태를 바꾸지 않음
    service.confirm_by_pharmacy(owner, delivery.id)
    assert delivery.confirmed_by_pharmacy is True
    assert delivery.status_delivery == "in-transit"

    service.update_status(agent, delivery.id, "delivered")
    assert delivery.status_delivery == "delivered"
    assert delivery.delivered_at is not None
    assert order.status == "delivered"
    assert delivery.confirmed_by_pharmacy is True
    assert delivery.confirmed_by_admin is False

    sources = [(h.to_status, h.source) for h in OrderService(test_session).history(customer, order.id)]
    assert sources == [
        ("pending", "checkout"),
        ("approved", "order"),
        ("shipped", "delivery"),
        ("delivered", "delivery"),
    ]


def test_delivery_requires_dispatchable_order(test_session, factory):
    customer = factory.customer()
    _, pharmacy = factory.pharmacy()
    product = factory.product(pharmacy)
    cart = Cart()
    cart.add(product.id, pharmacy.id)
    order = CheckoutService(test_session).place_orders(customer, cart, "Ajah")[0]

    with pytest.raises(TransitionError):
        DeliveryService(test_session).create(factory.admin(), order.id)


def test_one_delivery_per_order(test_session, factory, approved_order):
    _, _, order = approved_order
    admin = factory.admin()
    service = DeliveryService(test_session)
    service.create(admin, order.id)

    with pytest.raises(ConflictError):
        service.create(admin, order.id)


def test_only_admin_creates_deliveries(test_session, approved_order):
    _, owner, order = approved_order

    with pytest.raises(AuthorizationError):
        DeliveryService(test_session).create(owner, order.id)


def test_assigned_agent_must_hold_role(test_session, factory, approved_order):
    customer, _, order = approved_order
    admin = factory.admin()
    service = DeliveryService(test_session)
    delivery = service.create(admin, order.id)

    with pytest.raises(ValidationError):
        service.assign_agent(admin, delivery.id, customer.principal_id)

    agent = factory.agent()
    service.assign_agent(admin, delivery.id, agent.principal_id)
    assert delivery.delivery_agent_id == agent.principal_id


def test_unassigned_agent_cannot_progress(test_session, factory, approved_order):
    _, _, order = approved_order
    admin = factory.admin()
    assigned, other = factory.agent(), factory.agent()
    service = DeliveryService(test_session)
    delivery = service.create(admin, order.id, agent_id=assigned.principal_id)

    with pytest.raises(AuthorizationError):
        service.update_status(other, delivery.id, "in-transit")


def test_agent_cannot_skip_in_transit(test_session, factory, approved_order):
    _, _, order = approved_order
    agent = factory.agent()
    service = DeliveryService(test_session)
    delivery = service.create(factory.admin(), order.id, agent_id=agent.principal_id)

    with pytest.raises(TransitionError):
        service.update_status(agent, delivery.id, "delivered")
    assert delivery.delivered_at is None


def test_admin_reopening_clears_delivered_at(test_session, factory, approved_order):
    _, _, order = approved_order
    admin = factory.admin()
    service = DeliveryService(test_session)
    delivery = service.create(admin, order.id)

    service.update_status(admin, delivery.id, "delivered")
    assert delivery.delivered_at is not None
    assert order.status == "delivered"

    service.update_status(admin, delivery.id, "in-transit")
    assert delivery.delivered_at is None
    assert order.status == "shipped"


def test_cancelled_order_blocks_delivery_progress(test_session, factory, approved_order):
    _, _, order = approved_order
    admin = factory.admin()
    service = DeliveryService(test_session)
    delivery = service.create(admin, order.id)
    # 관리자가 배송과 무관하게 주문을 취소한 상태를 직접 구성
    order.status = "cancelled"
    test_session.flush()

    with pytest.raises(TransitionError):
        service.update_status(admin, delivery.id, "in-transit")


def test_pharmacy_confirmation_is_owner_only(test_session, factory, approved_order):
    _, owner, order = approved_order
    stranger, _ = factory.pharmacy()
    service = DeliveryService(test_session)
    delivery = service.create(factory.admin(), order.id)

    with pytest.raises(AuthorizationError):
        service.confirm_by_pharmacy(stranger, delivery.id)

    service.confirm_by_pharmacy(owner, delivery.id)
    service.confirm_by_pharmacy(owner, delivery.id)
    assert delivery.confirmed_by_pharmacy is True
    assert delivery.status_delivery == "pending"


def test_list_deliveries_scope(test_session, factory, approved_order):
    _, owner, order = approved_order
    admin = factory.admin()
    agent, idle_agent = factory.agent(), factory.agent()
    service = DeliveryService(test_session)
    delivery = service.create(admin, order.id, agent_id=agent.principal_id)

    assert [d.id for d in service.list_deliveries(agent)] == [delivery.id]
    assert service.list_deliveries(idle_agent) == []
    assert [d.id for d in service.list_deliveries(owner)] == [delivery.id]
    assert [d.id for d in service.list_deliveries(admin, status="pending")] == [delivery.id]
    assert service.list_deliveries(admin, status="delivered") == []
    assert {p.id for p in service.list_agents(admin)} == {agent.principal_id, idle_agent.principal_id}


def test_customer_lists_own_deliveries(test_session, factory, approved_order):
    customer, _, order = approved_order
    other_customer = factory.customer()
    service = DeliveryService(test_session)
    delivery = service.create(factory.admin(), order.id)

    assert [d.id for d in service.list_deliveries(customer)] == [delivery.id]
    assert service.list_deliveries(customer, status="delivered") == []
    assert service.list_deliveries(other_customer) == []


def test_delivered_at_constraint_is_enforced_by_database(test_session, factory, approved_order):
    _, _, order = approved_order
    delivery = DeliveryService(test_session).create(factory.admin(), order.id)

    with pytest.raises(IntegrityError):
        with test_session.begin_nested():
            test_session.get(Delivery, delivery.id).status_delivery = "delivered"
            test_session.flush()
