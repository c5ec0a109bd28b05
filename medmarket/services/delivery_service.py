"""
배송(Delivery) 라이프사이클 서비스

상태: pending -> in-transit -> delivered
- 관리자: 생성, 담당자 배정, 임의 상태 변경, confirmed_by_admin
- 배정된 배송 담당자: pending -> in-transit -> delivered
- 주문 약국: confirmed_by_pharmacy

확인 플래그(confirmed_by_*)는 기록용이며 상태 전이를 막지 않습니다.
배송 진행에 따라 주문 상태도 호환되는 값으로 함께 전이됩니다.
"""

from datetime import datetime, timezone
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from medmarket.models import AppRole, Delivery, DeliveryStatus, Order, OrderStatus, Pharmacy, Principal, UserRole
from medmarket.services.exceptions import AuthorizationError, ConflictError, NotFoundError, TransitionError, ValidationError
from medmarket.services.order_service import record_order_transition
from medmarket.services.policies import (
    Actor,
    can_view_delivery,
    has_role,
    is_assigned_agent,
    owns_pharmacy,
    require_admin,
)
from medmarket.services.transitions import (
    DISPATCHABLE_ORDER_STATUSES,
    delivery_transition_allowed,
    order_status_for_delivery,
)

logger = logging.getLogger(__name__)


class DeliveryService:
    def __init__(self, db: Session):
        self.db = db

    def _load(self, delivery_id: uuid.UUID) -> Delivery:
        delivery = self.db.scalar(
            select(Delivery).options(selectinload(Delivery.order)).where(Delivery.id == delivery_id)
        )
        if delivery is None:
            raise NotFoundError("배송 정보를 찾을 수 없습니다", resource="delivery", resource_id=delivery_id)
        return delivery

    def get(self, actor: Actor, delivery_id: uuid.UUID) -> Delivery:
        delivery = self._load(delivery_id)
        order = delivery.order
        if not can_view_delivery(actor, delivery, order, order.pharmacy):
            raise NotFoundError("배송 정보를 찾을 수 없습니다", resource="delivery", resource_id=delivery_id)
        return delivery

    def list_deliveries(self, actor: Actor, status: str | None = None) -> list[Delivery]:
        """관리자: 전체 / 배송 담당자: 배정된 건 / 약국: 자기 약국 주문 건 / 고객: 본인 주문 건."""
        stmt = select(Delivery).options(selectinload(Delivery.order)).order_by(Delivery.created_at.desc())
        if not actor.is_admin:
            owned_orders = (
                select(Order.id)
                .join(Pharmacy, Pharmacy.id == Order.pharmacy_id)
                .where(Pharmacy.user_id == actor.principal_id)
            )
            customer_orders = select(Order.id).where(Order.customer_id == actor.principal_id)
            stmt = stmt.where(
                (Delivery.delivery_agent_id == actor.principal_id)
                | Delivery.order_id.in_(owned_orders)
                | Delivery.order_id.in_(customer_orders)
            )
        if status and status != "all":
            stmt = stmt.where(Delivery.status_delivery == status)
        return list(self.db.scalars(stmt).all())

    def list_agents(self, actor: Actor) -> list[Principal]:
        require_admin(actor, action="list_agents")
        stmt = (
            select(Principal)
            .join(UserRole, UserRole.user_id == Principal.id)
            .where(UserRole.role == AppRole.DELIVERY_AGENT.value)
            .order_by(Principal.email)
        )
        return list(self.db.scalars(stmt).all())

    # ----------------------------------------------------------------------
    # Admin
    # ----------------------------------------------------------------------

    def create(self, actor: Actor, order_id: uuid.UUID, agent_id: uuid.UUID | None = None) -> Delivery:
        require_admin(actor, action="create_delivery")
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("주문을 찾을 수 없습니다", resource="order", resource_id=order_id)
        if order.delivery is not None:
            raise ConflictError("이미 배송 정보가 있는 주문입니다", order_id=str(order_id))
        if OrderStatus(order.status) not in DISPATCHABLE_ORDER_STATUSES:
            raise TransitionError(
                f"{order.status} 상태의 주문은 배송을 시작할 수 없습니다",
                from_status=order.status,
                actor_role=AppRole.ADMIN.value,
            )
        if agent_id is not None:
            self._check_agent(agent_id)

        delivery = Delivery(
            order=order,
            delivery_agent_id=agent_id,
            status_delivery=DeliveryStatus.PENDING.value,
            confirmed_by_admin=False,
            confirmed_by_pharmacy=False,
            delivered_at=None,
        )
        self.db.add(delivery)
        self.db.flush()
        logger.info(f"[DELIVERY] Created {delivery.id} for order {order.id} agent={agent_id}")
        return delivery

    def _check_agent(self, agent_id: uuid.UUID) -> None:
        if not has_role(self.db, agent_id, AppRole.DELIVERY_AGENT):
            raise ValidationError("배송 담당자 역할이 없는 사용자입니다", field="delivery_agent_id", actual_value=agent_id)

    def assign_agent(self, actor: Actor, delivery_id: uuid.UUID, agent_id: uuid.UUID) -> Delivery:
        require_admin(actor, action="assign_agent")
        delivery = self._load(delivery_id)
        self._check_agent(agent_id)
        previous = delivery.delivery_agent_id
        delivery.delivery_agent_id = agent_id
        self.db.flush()
        logger.info(f"[DELIVERY] {delivery.id} agent {previous} -> {agent_id}")
        return delivery

    def confirm_by_admin(self, actor: Actor, delivery_id: uuid.UUID) -> Delivery:
        require_admin(actor, action="confirm_by_admin")
        delivery = self._load(delivery_id)
        delivery.confirmed_by_admin = True
        self.db.flush()
        logger.info(f"[DELIVERY] {delivery.id} confirmed by admin {actor.principal_id}")
        return delivery

    # ----------------------------------------------------------------------
    # Pharmacy
    # ----------------------------------------------------------------------

    def confirm_by_pharmacy(self, actor: Actor, delivery_id: uuid.UUID) -> Delivery:
        delivery = self._load(delivery_id)
        pharmacy = delivery.order.pharmacy
        if not (actor.is_admin or owns_pharmacy(actor, pharmacy)):
            raise AuthorizationError("주문 약국만 확인할 수 있습니다", action="confirm_by_pharmacy", resource="delivery")
        delivery.confirmed_by_pharmacy = True
        self.db.flush()
        logger.info(f"[DELIVERY] {delivery.id} confirmed by pharmacy {pharmacy.id}")
        return delivery

    # ----------------------------------------------------------------------
    # Status
    # ----------------------------------------------------------------------

    def update_status(self, actor: Actor, delivery_id: uuid.UUID, new_status: str) -> Delivery:
        try:
            target = DeliveryStatus(new_status)
        except ValueError as e:
            raise ValidationError(f"알 수 없는 배송 상태입니다: {new_status}", field="status_delivery", actual_value=new_status) from e

        delivery = self._load(delivery_id)
        if actor.is_admin:
            role = AppRole.ADMIN.value
        elif is_assigned_agent(actor, delivery):
            role = AppRole.DELIVERY_AGENT.value
        else:
            raise AuthorizationError("배정된 배송 담당자만 상태를 변경할 수 있습니다", action="update_status", resource="delivery")

        current = delivery.status_delivery
        if not delivery_transition_allowed(current, target.value, role):
            logger.warning(f"[DELIVERY] Rejected {delivery.id} {current} -> {target.value} by {role}")
            raise TransitionError(
                f"배송 상태를 {current}에서 {target.value}(으)로 변경할 수 없습니다",
                from_status=current,
                to_status=target.value,
                actor_role=role,
            )

        order = delivery.order
        if order.status in (OrderStatus.PENDING.value, OrderStatus.CANCELLED.value):
            raise TransitionError(
                f"{order.status} 상태 주문의 배송은 진행할 수 없습니다",
                from_status=current,
                to_status=target.value,
                actor_role=role,
            )

        delivery.status_delivery = target.value
        # delivered_at은 delivered 상태와 정확히 일치해야 한다
        if target == DeliveryStatus.DELIVERED:
            delivery.delivered_at = datetime.now(timezone.utc)
        else:
            delivery.delivered_at = None

        next_order_status = order_status_for_delivery(order.status, target.value)
        if next_order_status != order.status:
            record_order_transition(self.db, order, next_order_status, actor, role, source="delivery")

        self.db.flush()
        logger.info(f"[DELIVERY] {delivery.id} {current} -> {target.value} by {role}")
        return delivery
