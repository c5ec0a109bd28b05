"""
주문/배송 상태 전이 테이블

모든 변경 경로(API, CLI, 배송 진행에 따른 자동 전이)가 이 모듈의 함수를 통해
허용 여부를 판정합니다. 순수 함수만 포함합니다.
"""

from medmarket.models import AppRole, DeliveryStatus, OrderStatus

_O = OrderStatus
_D = DeliveryStatus

# 약국이 수행할 수 있는 주문 상태 전이
PHARMACY_ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    _O.PENDING: frozenset({_O.APPROVED, _O.CANCELLED}),
    _O.APPROVED: frozenset({_O.PROCESSING, _O.DELIVERED, _O.CANCELLED}),
    _O.PROCESSING: frozenset({_O.SHIPPED}),
    _O.SHIPPED: frozenset({_O.DELIVERED}),
    _O.DELIVERED: frozenset(),
    _O.CANCELLED: frozenset(),
}

# 배송 담당자는 정방향 한 단계씩만 진행
AGENT_DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    _D.PENDING: frozenset({_D.IN_TRANSIT}),
    _D.IN_TRANSIT: frozenset({_D.DELIVERED}),
    _D.DELIVERED: frozenset(),
}

# 배송 상태별로 공존 가능한 주문 상태
COMPATIBLE_ORDER_STATUSES: dict[DeliveryStatus, frozenset[OrderStatus]] = {
    _D.PENDING: frozenset({_O.APPROVED, _O.PROCESSING}),
    _D.IN_TRANSIT: frozenset({_O.APPROVED, _O.PROCESSING, _O.SHIPPED}),
    _D.DELIVERED: frozenset({_O.DELIVERED}),
}

# 배송 레코드를 만들 수 있는 주문 상태
DISPATCHABLE_ORDER_STATUSES = frozenset({_O.APPROVED, _O.PROCESSING})


def order_transition_allowed(from_status: str, to_status: str, actor_role: str) -> bool:
    """(현재 상태, 목표 상태, 역할) 조합의 주문 전이 허용 여부."""
    try:
        src = OrderStatus(from_status)
        dst = OrderStatus(to_status)
        role = AppRole(actor_role)
    except ValueError:
        return False

    if src == dst:
        return False
    if role == AppRole.ADMIN:
        return True
    if role == AppRole.PHARMACY:
        return dst in PHARMACY_ORDER_TRANSITIONS[src]
    return False


def delivery_transition_allowed(from_status: str, to_status: str, actor_role: str) -> bool:
    """(현재 상태, 목표 상태, 역할) 조합의 배송 전이 허용 여부."""
    try:
        src = DeliveryStatus(from_status)
        dst = DeliveryStatus(to_status)
        role = AppRole(actor_role)
    except ValueError:
        return False

    if src == dst:
        return False
    if role == AppRole.ADMIN:
        return True
    if role == AppRole.DELIVERY_AGENT:
        return dst in AGENT_DELIVERY_TRANSITIONS[src]
    return False


def compatible(order_status: str, delivery_status: str | None) -> bool:
    """주문 상태와 배송 상태가 동시에 존재할 수 있는지 판정. 배송이 없으면 항상 True."""
    if delivery_status is None:
        return True
    try:
        return OrderStatus(order_status) in COMPATIBLE_ORDER_STATUSES[DeliveryStatus(delivery_status)]
    except ValueError:
        return False


def order_status_for_delivery(order_status: str, delivery_status: str) -> str:
    """
    배송 진행에 맞춰 주문이 따라가야 할 상태를 반환합니다.

    - in-transit: shipped
    - delivered: delivered
    - pending: 호환되면 현재 상태 유지, 아니면 processing
    """
    dst = DeliveryStatus(delivery_status)
    if dst == _D.IN_TRANSIT:
        return _O.SHIPPED.value
    if dst == _D.DELIVERED:
        return _O.DELIVERED.value
    if compatible(order_status, delivery_status):
        return order_status
    return _O.PROCESSING.value
