import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from medmarket.auth import get_actor
from medmarket.db import get_session
from medmarket.schemas.order import CheckoutIn, OrderResponse, OrderStatusHistoryResponse, OrderStatusUpdate
from medmarket.services.checkout_service import Cart, CartItem, CheckoutService
from medmarket.services.notifications import get_notifier
from medmarket.services.order_service import OrderService
from medmarket.services.policies import Actor

router = APIRouter()


@router.post("/checkout", response_model=List[OrderResponse], status_code=201)
def checkout(
    payload: CheckoutIn,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    """
    장바구니를 약국별 주문으로 나눠 생성합니다. 하나라도 실패하면 전체 롤백.
    """
    cart = Cart(items=[
        CartItem(
            product_id=line.product_id,
            pharmacy_id=line.pharmacy_id,
            quantity=line.quantity,
            price=line.price,
            name=line.name,
        )
        for line in payload.items
    ])
    orders = CheckoutService(session).place_orders(actor, cart, payload.delivery_address, notes=payload.notes)

    notifier = get_notifier()
    for order in orders:
        background_tasks.add_task(notifier.order_placed, order.pharmacy.email, str(order.id), str(order.total_amount))
    return orders


@router.get("", response_model=List[OrderResponse])
def list_orders(
    status: str | None = Query(default=None),
    scope: str | None = Query(default=None, pattern="^(customer|pharmacy|all)$"),
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return OrderService(session).list_orders(actor, status=status, scope=scope)


@router.get("/{order_id}", response_model=OrderResponse)
def read_order(order_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return OrderService(session).get(actor, order_id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return OrderService(session).update_status(actor, order_id, payload.status, note=payload.note)


@router.get("/{order_id}/history", response_model=List[OrderStatusHistoryResponse])
def read_order_history(order_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return OrderService(session).history(actor, order_id)
