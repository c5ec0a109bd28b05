from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medmarket.auth import get_actor
from medmarket.db import get_session
from medmarket.services.dashboard_service import DashboardService
from medmarket.services.policies import Actor

router = APIRouter()


@router.get("/admin")
def get_admin_stats(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)) -> dict:
    """
    관리자 대시보드: 약국(전체/대기), 사용자, 상품, 주문, 매출 집계
    """
    return DashboardService(session).admin_stats(actor)


@router.get("/pharmacy")
def get_pharmacy_stats(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)) -> dict:
    return DashboardService(session).pharmacy_stats(actor)


@router.get("/agent")
def get_agent_stats(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)) -> dict:
    return DashboardService(session).agent_stats(actor)
