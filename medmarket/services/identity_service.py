"""
Identity provider 연동 및 프로필 관리.

신규 principal 생성 훅에서 Profile 행과 기본 customer 역할을 시드합니다.
"""

from datetime import date
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from medmarket.models import AppRole, Principal, Profile
from medmarket.services.exceptions import AuthorizationError, NotFoundError
from medmarket.services.policies import Actor
from medmarket.services.role_service import RoleService

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "phone", "address", "date_of_birth")


def on_principal_created(
    session: Session,
    principal_id: uuid.UUID,
    email: str | None = None,
    metadata: dict | None = None,
) -> Principal:
    """
    신규 가입 훅. 여러 번 호출돼도 결과는 같습니다.
    """
    metadata = metadata or {}
    principal = session.get(Principal, principal_id)
    if principal is None:
        principal = Principal(id=principal_id, email=email, signup_metadata=metadata)
        session.add(principal)
        session.flush()
        logger.info(f"[IDENTITY] Principal created: {principal_id}")
    else:
        if email and not principal.email:
            principal.email = email
        if metadata and not principal.signup_metadata:
            principal.signup_metadata = metadata

    has_profile = session.scalar(select(Profile.id).where(Profile.user_id == principal_id))
    if has_profile is None:
        session.add(Profile(user_id=principal_id, full_name=metadata.get("full_name")))
        session.flush()

    RoleService(session).ensure_role(principal_id, AppRole.CUSTOMER)
    return principal


def ensure_principal(session: Session, principal_id: uuid.UUID, email: str | None = None, metadata: dict | None = None) -> Principal:
    """처음 보는 principal이면 가입 훅을 지연 실행합니다."""
    principal = session.get(Principal, principal_id)
    if principal is not None:
        return principal
    return on_principal_created(session, principal_id, email=email, metadata=metadata)


def get_profile(session: Session, actor: Actor, user_id: uuid.UUID | None = None) -> Profile:
    target = user_id or actor.principal_id
    if target != actor.principal_id and not actor.is_admin:
        raise AuthorizationError("다른 사용자의 프로필은 볼 수 없습니다", action="view", resource="profile")

    profile = session.scalar(select(Profile).where(Profile.user_id == target))
    if profile is None:
        raise NotFoundError("프로필을 찾을 수 없습니다", resource="profile", resource_id=target)
    return profile


def update_profile(session: Session, actor: Actor, changes: dict) -> Profile:
    """본인 프로필만 수정할 수 있습니다."""
    profile = get_profile(session, actor)
    for key in PROFILE_FIELDS:
        if key not in changes:
            continue
        value = changes[key]
        if key == "date_of_birth" and isinstance(value, str):
            value = date.fromisoformat(value)
        setattr(profile, key, value)
    session.flush()
    return profile
