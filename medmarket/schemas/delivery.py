from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
import uuid


class DeliveryCreate(BaseModel):
    order_id: uuid.UUID
    delivery_agent_id: Optional[uuid.UUID] = None


class DeliveryAssign(BaseModel):
    delivery_agent_id: uuid.UUID


class DeliveryStatusUpdate(BaseModel):
    status: str


class DeliveryResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    delivery_agent_id: Optional[uuid.UUID] = None
    status_delivery: str
    confirmed_by_admin: bool
    confirmed_by_pharmacy: bool
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DeliveryAgentResponse(BaseModel):
    id: uuid.UUID
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
