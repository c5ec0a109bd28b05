from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medmarket.auth import get_actor, require_hook_secret
from medmarket.db import get_session
from medmarket.schemas.profile import MeResponse, PrincipalCreatedIn, RoleGrant
from medmarket.services.identity_service import on_principal_created
from medmarket.services.policies import Actor
from medmarket.services.role_service import RoleService

router = APIRouter()


@router.post("/hooks/principal-created", dependencies=[Depends(require_hook_secret)])
def principal_created_hook(payload: PrincipalCreatedIn, session: Session = Depends(get_session)) -> dict:
    """
    Identity provider 가입 웹훅. 프로필과 기본 customer 역할을 생성합니다.
    """
    principal = on_principal_created(session, payload.id, email=payload.email, metadata=payload.user_metadata)
    return {"id": str(principal.id)}


@router.get("/me", response_model=MeResponse)
def get_me(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    resolution = RoleService(session).resolve_effective_role(actor.principal_id)
    return MeResponse(
        id=actor.principal_id,
        role=resolution.display_role,
        roles=sorted(resolution.roles),
        resolved=resolution.is_known,
    )


@router.post("/me/roles")
def grant_own_role(payload: RoleGrant, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)) -> dict:
    created = RoleService(session).grant_role(actor, actor.principal_id, payload.role)
    return {"role": payload.role, "created": created}
