import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from medmarket.auth import get_actor
from medmarket.db import get_session
from medmarket.models import DeliveryStatus, Principal
from medmarket.schemas.delivery import (
    DeliveryAgentResponse,
    DeliveryAssign,
    DeliveryCreate,
    DeliveryResponse,
    DeliveryStatusUpdate,
)
from medmarket.services.delivery_service import DeliveryService
from medmarket.services.notifications import get_notifier
from medmarket.services.policies import Actor

router = APIRouter()


@router.post("", response_model=DeliveryResponse, status_code=201)
def create_delivery(payload: DeliveryCreate, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return DeliveryService(session).create(actor, payload.order_id, agent_id=payload.delivery_agent_id)


@router.get("", response_model=List[DeliveryResponse])
def list_deliveries(
    status: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return DeliveryService(session).list_deliveries(actor, status=status)


@router.get("/agents", response_model=List[DeliveryAgentResponse])
def list_delivery_agents(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return DeliveryService(session).list_agents(actor)


@router.get("/{delivery_id}", response_model=DeliveryResponse)
def read_delivery(delivery_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return DeliveryService(session).get(actor, delivery_id)


@router.patch("/{delivery_id}/agent", response_model=DeliveryResponse)
def assign_agent(
    delivery_id: uuid.UUID,
    payload: DeliveryAssign,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return DeliveryService(session).assign_agent(actor, delivery_id, payload.delivery_agent_id)


@router.patch("/{delivery_id}/status", response_model=DeliveryResponse)
def update_delivery_status(
    delivery_id: uuid.UUID,
    payload: DeliveryStatusUpdate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    delivery = DeliveryService(session).update_status(actor, delivery_id, payload.status)
    if delivery.status_delivery == DeliveryStatus.DELIVERED.value:
        customer = session.get(Principal, delivery.order.customer_id)
        background_tasks.add_task(
            get_notifier().delivery_completed, customer.email if customer else None, str(delivery.order_id)
        )
    return delivery


@router.post("/{delivery_id}/confirm-admin", response_model=DeliveryResponse)
def confirm_by_admin(delivery_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return DeliveryService(session).confirm_by_admin(actor, delivery_id)


@router.post("/{delivery_id}/confirm-pharmacy", response_model=DeliveryResponse)
def confirm_by_pharmacy(delivery_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return DeliveryService(session).confirm_by_pharmacy(actor, delivery_id)
