"""
요청 인증 의존성

- 운영: Authorization: Bearer <jwt> 를 Supabase Auth로 검증
- 개발/테스트: auth_dev_header_enabled=True 일 때 X-Principal-Id 헤더를 신뢰
"""

from dataclasses import dataclass, field
import hmac
import logging
from typing import Any, Optional
import uuid

from fastapi import Depends, Header
from sqlalchemy.orm import Session
from supabase import Client, create_client

from medmarket.db import get_session
from medmarket.services.exceptions import AuthenticationError
from medmarket.services.identity_service import ensure_principal
from medmarket.services.policies import Actor, load_actor
from medmarket.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedPrincipal:
    id: uuid.UUID
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


_auth_client: Optional[Client] = None


def get_auth_client() -> Client:
    global _auth_client
    if _auth_client is None:
        if not settings.supabase_service_role_key:
            raise AuthenticationError("인증 서버가 설정되어 있지 않습니다")
        _auth_client = create_client(settings.supabase_url, settings.supabase_service_role_key)
    return _auth_client


def _parse_principal_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise AuthenticationError("잘못된 사용자 식별자입니다") from e


def _verify_token(token: str) -> AuthenticatedPrincipal:
    try:
        response = get_auth_client().auth.get_user(token)
    except AuthenticationError:
        raise
    except Exception as e:
        logger.warning(f"[AUTH] Token verification failed: {e}")
        raise AuthenticationError("유효하지 않은 토큰입니다") from e

    user = getattr(response, "user", None)
    if user is None:
        raise AuthenticationError("유효하지 않은 토큰입니다")
    return AuthenticatedPrincipal(
        id=_parse_principal_id(str(user.id)),
        email=getattr(user, "email", None),
        metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


def get_current_principal(
    authorization: str | None = Header(default=None),
    x_principal_id: str | None = Header(default=None),
) -> AuthenticatedPrincipal:
    if authorization and authorization.lower().startswith("bearer "):
        return _verify_token(authorization[7:].strip())

    if settings.auth_dev_header_enabled and x_principal_id:
        return AuthenticatedPrincipal(id=_parse_principal_id(x_principal_id))

    raise AuthenticationError()


def get_actor(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    session: Session = Depends(get_session),
) -> Actor:
    """처음 보는 principal은 가입 훅을 실행한 뒤 역할을 읽습니다."""
    ensure_principal(session, principal.id, email=principal.email, metadata=principal.metadata)
    return load_actor(session, principal.id)


def require_hook_secret(x_hook_secret: str | None = Header(default=None)) -> None:
    if not settings.auth_hook_secret:
        raise AuthenticationError("웹훅 시크릿이 설정되어 있지 않습니다")
    if not x_hook_secret or not hmac.compare_digest(x_hook_secret, settings.auth_hook_secret):
        raise AuthenticationError("웹훅 시크릿이 올바르지 않습니다")
