from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import date, datetime
import uuid


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None


class ProfileResponse(BaseModel):
    user_id: uuid.UUID
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PrincipalCreatedIn(BaseModel):
    """Identity provider 신규 가입 웹훅 페이로드"""
    id: uuid.UUID
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = {}


class RoleGrant(BaseModel):
    role: str


class MeResponse(BaseModel):
    id: uuid.UUID
    role: str  # 유효 역할, 조회 실패 시 "unknown"
    roles: List[str] = []
    resolved: bool


class UserWithRolesResponse(BaseModel):
    id: uuid.UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    roles: List[str] = []
    effective_role: str
    created_at: Optional[datetime] = None
