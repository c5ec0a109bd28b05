"""
권한 정책 (row-level predicates)

테이블별 접근 규칙(소유자, 역할)을 predicate 함수로 모아둔 모듈입니다.
모든 서비스는 변경 전에 여기 함수로 검사하며, 거부 시 AuthorizationError를 발생시킵니다.
"""

from dataclasses import dataclass, field
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medmarket.models import AppRole, Delivery, Order, Pharmacy, Product, UserRole, VerificationStatus
from medmarket.services.exceptions import AuthorizationError, DatabaseError
from medmarket.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """요청 주체. roles는 user_roles 테이블의 현재 집합."""

    principal_id: uuid.UUID
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: AppRole) -> bool:
        return role.value in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(AppRole.ADMIN)


def load_actor(session: Session, principal_id: uuid.UUID) -> Actor:
    """
    역할 집합을 조회해 Actor를 만듭니다.
    조회 실패 시 customer로 낮추지 않고 DatabaseError를 발생시킵니다 (fail closed).
    """
    try:
        roles = session.scalars(select(UserRole.role).where(UserRole.user_id == principal_id)).all()
    except SQLAlchemyError as e:
        logger.error(f"[POLICY] Role lookup failed for {principal_id}: {e}")
        raise DatabaseError("역할 정보를 조회할 수 없습니다", operation="select", principal_id=str(principal_id)) from e
    return Actor(principal_id=principal_id, roles=frozenset(roles))


def has_role(session: Session, principal_id: uuid.UUID, role: AppRole) -> bool:
    stmt = select(UserRole.id).where(UserRole.user_id == principal_id).where(UserRole.role == role.value).limit(1)
    return session.scalar(stmt) is not None


def require_role(actor: Actor, *roles: AppRole, action: str = "") -> None:
    if not any(actor.has_role(r) for r in roles):
        names = ", ".join(r.value for r in roles)
        raise AuthorizationError(f"{names} 권한이 필요합니다", action=action, resource="role")


def require_admin(actor: Actor, action: str = "") -> None:
    require_role(actor, AppRole.ADMIN, action=action)


# --------------------------------------------------------------------------
# Pharmacy / Product
# --------------------------------------------------------------------------

def owns_pharmacy(actor: Actor, pharmacy: Pharmacy) -> bool:
    return pharmacy.user_id == actor.principal_id


def can_view_pharmacy(actor: Actor, pharmacy: Pharmacy) -> bool:
    if actor.is_admin or owns_pharmacy(actor, pharmacy):
        return True
    return pharmacy.verification_status == VerificationStatus.APPROVED.value


def can_view_product(actor: Actor, product: Product, pharmacy: Pharmacy) -> bool:
    # 고객 노출은 is_active만 본다 (재고/약국 승인 여부와 무관)
    if product.is_active:
        return True
    return actor.is_admin or owns_pharmacy(actor, pharmacy)


def can_manage_product(actor: Actor, pharmacy: Pharmacy) -> bool:
    if actor.is_admin:
        return True
    if not owns_pharmacy(actor, pharmacy):
        return False
    if settings.pharmacy_requires_approval_for_catalog:
        return pharmacy.verification_status == VerificationStatus.APPROVED.value
    return True


def require_product_management(actor: Actor, pharmacy: Pharmacy, action: str) -> None:
    if can_manage_product(actor, pharmacy):
        return
    if owns_pharmacy(actor, pharmacy):
        logger.warning(f"[POLICY] Unapproved pharmacy {pharmacy.id} tried to {action} a product")
        raise AuthorizationError(
            "승인되지 않은 약국은 상품을 관리할 수 없습니다",
            action=action,
            resource="product",
            verification_status=pharmacy.verification_status,
        )
    raise AuthorizationError("다른 약국의 상품은 관리할 수 없습니다", action=action, resource="product")


# --------------------------------------------------------------------------
# Order / Delivery
# --------------------------------------------------------------------------

def can_view_order(actor: Actor, order: Order, pharmacy: Pharmacy) -> bool:
    return actor.is_admin or order.customer_id == actor.principal_id or owns_pharmacy(actor, pharmacy)


def can_update_order(actor: Actor, pharmacy: Pharmacy) -> bool:
    return actor.is_admin or owns_pharmacy(actor, pharmacy)


def can_view_delivery(actor: Actor, delivery: Delivery, order: Order, pharmacy: Pharmacy) -> bool:
    if actor.is_admin or owns_pharmacy(actor, pharmacy) or order.customer_id == actor.principal_id:
        return True
    return delivery.delivery_agent_id is not None and delivery.delivery_agent_id == actor.principal_id


def is_assigned_agent(actor: Actor, delivery: Delivery) -> bool:
    return (
        actor.has_role(AppRole.DELIVERY_AGENT)
        and delivery.delivery_agent_id is not None
        and delivery.delivery_agent_id == actor.principal_id
    )
