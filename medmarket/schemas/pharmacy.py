from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
import uuid


class PharmacyRegister(BaseModel):
    name: str
    license_number: str
    regulatory_number: Optional[str] = None
    phone: str
    email: str
    address: str
    city: str
    state: str


class PharmacyUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class VerificationUpdate(BaseModel):
    verification_status: str


class PharmacyResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    license_number: str
    regulatory_number: Optional[str] = None
    phone: str
    email: str
    address: str
    city: str
    state: str
    verification_status: str
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
