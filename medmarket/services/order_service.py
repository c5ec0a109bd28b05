"""
주문 조회 및 상태 전이 서비스
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from medmarket.models import AppRole, Order, OrderStatus, OrderStatusHistory, Pharmacy, Product
from medmarket.services.exceptions import AuthorizationError, NotFoundError, OutOfStockError, TransitionError, ValidationError
from medmarket.services.policies import Actor, can_update_order, can_view_order
from medmarket.services.transitions import compatible, order_transition_allowed
from medmarket.settings import settings

logger = logging.getLogger(__name__)


def record_order_transition(
    session: Session,
    order: Order,
    to_status: str,
    actor: Actor | None,
    actor_role: str | None,
    source: str,
    note: str | None = None,
) -> None:
    """주문 상태를 바꾸고 이력을 남깁니다. 허용 여부 검사는 호출자 책임."""
    from_status = order.status
    order.status = to_status
    session.add(
        OrderStatusHistory(
            order_id=order.id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor.principal_id if actor else None,
            actor_role=actor_role,
            source=source,
            note=note,
        )
    )
    logger.info(f"[ORDER] {order.id} {from_status} -> {to_status} ({source}, role={actor_role})")


def _expire_stock(session: Session, product_id: uuid.UUID) -> None:
    product = session.get(Product, product_id)
    if product is not None:
        session.expire(product, ["stock_quantity"])


def release_stock(session: Session, order: Order) -> None:
    """취소된 주문의 수량을 상품 재고로 되돌립니다."""
    for item in order.items:
        session.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .values(stock_quantity=Product.stock_quantity + item.quantity)
            .execution_options(synchronize_session=False)
        )
        _expire_stock(session, item.product_id)
    logger.info(f"[ORDER] {order.id} released stock for {len(order.items)} item(s)")


def reserve_stock(session: Session, order: Order) -> None:
    """취소 해제 시 재고를 다시 차감합니다. 부족하면 OutOfStockError."""
    for item in order.items:
        result = session.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .where(Product.stock_quantity >= item.quantity)
            .values(stock_quantity=Product.stock_quantity - item.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise OutOfStockError("재고가 부족해 주문을 되살릴 수 없습니다", product_id=item.product_id, requested=item.quantity)
        _expire_stock(session, item.product_id)


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def _load(self, order_id: uuid.UUID) -> Order:
        order = self.db.scalar(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.delivery))
            .where(Order.id == order_id)
        )
        if order is None:
            raise NotFoundError("주문을 찾을 수 없습니다", resource="order", resource_id=order_id)
        return order

    def get(self, actor: Actor, order_id: uuid.UUID) -> Order:
        order = self._load(order_id)
        if not can_view_order(actor, order, order.pharmacy):
            # 존재 여부를 노출하지 않는다
            raise NotFoundError("주문을 찾을 수 없습니다", resource="order", resource_id=order_id)
        return order

    def list_orders(self, actor: Actor, status: str | None = None, scope: str | None = None) -> list[Order]:
        """
        요청자 범위의 주문 목록.

        scope:
            - "customer": 본인이 고객인 주문
            - "pharmacy": 본인 약국의 주문
            - "all": 전체 (관리자 전용)
            - None: 관리자면 all, 아니면 customer + pharmacy
        """
        stmt = select(Order).options(selectinload(Order.items)).order_by(Order.created_at.desc())
        owned_pharmacy = select(Pharmacy.id).where(Pharmacy.user_id == actor.principal_id)

        if scope == "all" and not actor.is_admin:
            raise AuthorizationError("전체 주문 조회는 관리자만 가능합니다", action="list", resource="order")

        if scope == "customer":
            stmt = stmt.where(Order.customer_id == actor.principal_id)
        elif scope == "pharmacy":
            stmt = stmt.where(Order.pharmacy_id.in_(owned_pharmacy))
        elif scope is None and not actor.is_admin:
            stmt = stmt.where((Order.customer_id == actor.principal_id) | Order.pharmacy_id.in_(owned_pharmacy))

        if status and status != "all":
            stmt = stmt.where(Order.status == status)
        return list(self.db.scalars(stmt.limit(settings.order_list_limit)).all())

    def history(self, actor: Actor, order_id: uuid.UUID) -> list[OrderStatusHistory]:
        order = self.get(actor, order_id)
        stmt = (
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order.id)
            .order_by(OrderStatusHistory.id)
        )
        return list(self.db.scalars(stmt).all())

    def update_status(self, actor: Actor, order_id: uuid.UUID, new_status: str, note: str | None = None) -> Order:
        try:
            target = OrderStatus(new_status)
        except ValueError as e:
            raise ValidationError(f"알 수 없는 주문 상태입니다: {new_status}", field="status", actual_value=new_status) from e

        order = self._load(order_id)
        pharmacy = order.pharmacy
        if not can_update_order(actor, pharmacy):
            if can_view_order(actor, order, pharmacy):
                raise AuthorizationError("주문 상태를 변경할 권한이 없습니다", action="update_status", resource="order")
            raise NotFoundError("주문을 찾을 수 없습니다", resource="order", resource_id=order_id)

        # 관리자 권한이 약국 소유보다 우선
        role = AppRole.ADMIN.value if actor.is_admin else AppRole.PHARMACY.value
        if not order_transition_allowed(order.status, target.value, role):
            logger.warning(f"[ORDER] Rejected {order.id} {order.status} -> {target.value} by {role}")
            raise TransitionError(
                f"주문 상태를 {order.status}에서 {target.value}(으)로 변경할 수 없습니다",
                from_status=order.status,
                to_status=target.value,
                actor_role=role,
            )

        delivery_status = order.delivery.status_delivery if order.delivery else None
        if not compatible(target.value, delivery_status):
            raise TransitionError(
                f"배송 상태({delivery_status})와 맞지 않는 주문 상태입니다: {target.value}",
                from_status=order.status,
                to_status=target.value,
                actor_role=role,
                delivery_status=delivery_status,
            )

        # 재고는 같은 트랜잭션 안에서 주문 상태와 함께 움직인다
        if target == OrderStatus.CANCELLED:
            release_stock(self.db, order)
        elif order.status == OrderStatus.CANCELLED.value:
            reserve_stock(self.db, order)

        record_order_transition(self.db, order, target.value, actor, role, source="order", note=note)
        self.db.flush()
        return order
