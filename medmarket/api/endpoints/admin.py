import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medmarket.auth import get_actor
from medmarket.db import get_session
from medmarket.schemas.profile import RoleGrant, UserWithRolesResponse
from medmarket.services.policies import Actor, require_admin
from medmarket.services.role_service import RoleService

router = APIRouter()


@router.get("/users", response_model=List[UserWithRolesResponse])
def list_users(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return RoleService(session).list_users_with_roles(actor)


@router.get("/users/{user_id}/roles")
def list_user_roles(user_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)) -> dict:
    if user_id != actor.principal_id:
        # 본인 외 조회는 관리자만
        require_admin(actor, action="list_roles")
    return {"user_id": str(user_id), "roles": RoleService(session).list_roles(user_id)}


@router.post("/users/{user_id}/roles")
def grant_role(
    user_id: uuid.UUID,
    payload: RoleGrant,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
) -> dict:
    created = RoleService(session).grant_role(actor, user_id, payload.role)
    return {"user_id": str(user_id), "role": payload.role, "created": created}


@router.delete("/users/{user_id}/roles/{role}")
def revoke_role(
    user_id: uuid.UUID,
    role: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
) -> dict:
    removed = RoleService(session).revoke_role(actor, user_id, role)
    return {"user_id": str(user_id), "role": role, "removed": removed}
