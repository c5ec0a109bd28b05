from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
import uuid

from medmarket.models import ProductCategory


class ProductCreate(BaseModel):
    name: str
    description: Optional[str] = None
    category: ProductCategory
    brand: Optional[str] = None
    dosage: Optional[str] = None
    price: Decimal = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    expiry_date: Optional[date] = None
    image_url: Optional[str] = None
    is_active: bool = True
    pharmacy_id: Optional[uuid.UUID] = None  # 관리자 전용


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[ProductCategory] = None
    brand: Optional[str] = None
    dosage: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    expiry_date: Optional[date] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class ProductResponse(BaseModel):
    id: uuid.UUID
    pharmacy_id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: str
    brand: Optional[str] = None
    dosage: Optional[str] = None
    price: Decimal
    stock_quantity: int
    expiry_date: Optional[date] = None
    image_url: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
