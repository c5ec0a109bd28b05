"""
역할별 대시보드 집계
"""

from decimal import Decimal
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from medmarket.models import (
    AppRole,
    Delivery,
    DeliveryStatus,
    Order,
    OrderStatus,
    Pharmacy,
    Principal,
    Product,
    VerificationStatus,
)
from medmarket.services.pharmacy_service import PharmacyService
from medmarket.services.policies import Actor, require_admin, require_role

logger = logging.getLogger(__name__)


def _revenue_stmt():
    # 취소된 주문은 매출에서 제외
    return select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status != OrderStatus.CANCELLED.value)


def _as_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def _count(self, stmt) -> int:
        return int(self.db.scalar(stmt) or 0)

    def admin_stats(self, actor: Actor) -> dict:
        require_admin(actor, action="admin_stats")
        stats = {
            "total_pharmacies": self._count(select(func.count(Pharmacy.id))),
            "pending_pharmacies": self._count(
                select(func.count(Pharmacy.id)).where(Pharmacy.verification_status == VerificationStatus.PENDING.value)
            ),
            "total_users": self._count(select(func.count(Principal.id))),
            "total_products": self._count(select(func.count(Product.id))),
            "total_orders": self._count(select(func.count(Order.id))),
            "total_revenue": _as_money(self.db.scalar(_revenue_stmt())),
        }
        logger.debug(f"[DASHBOARD] admin stats: {stats}")
        return stats

    def pharmacy_stats(self, actor: Actor) -> dict:
        require_role(actor, AppRole.PHARMACY, AppRole.ADMIN, action="pharmacy_stats")
        pharmacy = PharmacyService(self.db).get_mine(actor)

        orders_by_status = {status.value: 0 for status in OrderStatus}
        rows = self.db.execute(
            select(Order.status, func.count(Order.id)).where(Order.pharmacy_id == pharmacy.id).group_by(Order.status)
        ).all()
        for status, count in rows:
            orders_by_status[status] = count

        return {
            "pharmacy_id": pharmacy.id,
            "verification_status": pharmacy.verification_status,
            "total_products": self._count(select(func.count(Product.id)).where(Product.pharmacy_id == pharmacy.id)),
            "active_products": self._count(
                select(func.count(Product.id)).where(Product.pharmacy_id == pharmacy.id).where(Product.is_active.is_(True))
            ),
            "total_orders": sum(orders_by_status.values()),
            "pending_orders": orders_by_status[OrderStatus.PENDING.value],
            "orders_by_status": orders_by_status,
            "revenue": _as_money(self.db.scalar(_revenue_stmt().where(Order.pharmacy_id == pharmacy.id))),
        }

    def agent_stats(self, actor: Actor) -> dict:
        require_role(actor, AppRole.DELIVERY_AGENT, action="agent_stats")
        counts = {status.value: 0 for status in DeliveryStatus}
        rows = self.db.execute(
            select(Delivery.status_delivery, func.count(Delivery.id))
            .where(Delivery.delivery_agent_id == actor.principal_id)
            .group_by(Delivery.status_delivery)
        ).all()
        for status, count in rows:
            counts[status] = count
        return {
            "total_deliveries": sum(counts.values()),
            "deliveries_by_status": counts,
        }
