from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import uuid


class CartLineIn(BaseModel):
    product_id: uuid.UUID
    pharmacy_id: uuid.UUID
    quantity: int = Field(ge=1)
    price: Optional[Decimal] = None  # 장바구니에 담을 때 본 가격
    name: Optional[str] = None


class CheckoutIn(BaseModel):
    items: List[CartLineIn]
    delivery_address: str
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str
    note: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    pharmacy_id: uuid.UUID
    total_amount: Decimal
    status: str
    delivery_address: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    model_config = ConfigDict(from_attributes=True)


class OrderStatusHistoryResponse(BaseModel):
    id: int
    from_status: Optional[str] = None
    to_status: str
    actor_id: Optional[uuid.UUID] = None
    actor_role: Optional[str] = None
    source: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
