"""
역할(Role) 관리 서비스

한 principal은 여러 역할을 가질 수 있고, 화면 표시용 "유효 역할"은
고정 우선순위(admin > pharmacy > delivery_agent > customer)로 고릅니다.
"""

from dataclasses import dataclass
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medmarket.models import AppRole, Principal, Profile, UserRole
from medmarket.services.exceptions import AuthorizationError, NotFoundError, ValidationError
from medmarket.services.policies import Actor, require_admin

logger = logging.getLogger(__name__)

ROLE_PRIORITY: tuple[AppRole, ...] = (
    AppRole.ADMIN,
    AppRole.PHARMACY,
    AppRole.DELIVERY_AGENT,
    AppRole.CUSTOMER,
)

# 본인이 스스로 부여할 수 있는 역할
SELF_GRANTABLE_ROLES = frozenset({AppRole.CUSTOMER, AppRole.PHARMACY})

# 가입 메타데이터에서 자동 복구할 수 있는 역할 (admin은 절대 복구하지 않음)
SELF_HEALABLE_ROLES = frozenset({AppRole.CUSTOMER, AppRole.PHARMACY, AppRole.DELIVERY_AGENT})


def effective_role(roles) -> AppRole:
    """역할 집합에서 우선순위가 가장 높은 역할. 비어 있으면 customer."""
    held = {r.value if isinstance(r, AppRole) else r for r in roles}
    for role in ROLE_PRIORITY:
        if role.value in held:
            return role
    return AppRole.CUSTOMER


@dataclass(frozen=True)
class RoleResolution:
    """
    유효 역할 조회 결과.
    status == "unknown" 이면 조회 자체가 실패한 것으로, customer와 구분됩니다.
    """

    status: str  # resolved | unknown
    role: AppRole | None = None
    roles: frozenset[str] = frozenset()

    @property
    def is_known(self) -> bool:
        return self.status == "resolved"

    @property
    def display_role(self) -> str:
        return self.role.value if self.role else "unknown"


def _parse_role(value: str) -> AppRole:
    try:
        return AppRole(value)
    except ValueError as e:
        raise ValidationError(f"알 수 없는 역할입니다: {value}", field="role", actual_value=value) from e


class RoleService:
    def __init__(self, db: Session):
        self.db = db

    def list_roles(self, principal_id: uuid.UUID) -> list[str]:
        stmt = select(UserRole.role).where(UserRole.user_id == principal_id).order_by(UserRole.created_at)
        return list(self.db.scalars(stmt).all())

    def ensure_role(self, principal_id: uuid.UUID, role: AppRole) -> bool:
        """(principal, role) 쌍을 추가합니다. 이미 있으면 False (no-op)."""
        exists = self.db.scalar(
            select(UserRole.id).where(UserRole.user_id == principal_id).where(UserRole.role == role.value)
        )
        if exists is not None:
            return False
        try:
            with self.db.begin_nested():
                self.db.add(UserRole(user_id=principal_id, role=role.value))
        except IntegrityError:
            # 동시 부여로 이미 생성된 경우
            return False
        logger.info(f"[ROLE] Granted {role.value} to {principal_id}")
        return True

    def grant_role(self, actor: Actor, principal_id: uuid.UUID, role: str) -> bool:
        target_role = _parse_role(role)
        if not actor.is_admin:
            if principal_id != actor.principal_id or target_role not in SELF_GRANTABLE_ROLES:
                raise AuthorizationError("이 역할을 부여할 권한이 없습니다", action="grant_role", resource="user_roles")
        if self.db.get(Principal, principal_id) is None:
            raise NotFoundError("사용자를 찾을 수 없습니다", resource="principal", resource_id=principal_id)
        return self.ensure_role(principal_id, target_role)

    def revoke_role(self, actor: Actor, principal_id: uuid.UUID, role: str) -> bool:
        require_admin(actor, action="revoke_role")
        target_role = _parse_role(role)
        row = self.db.scalar(
            select(UserRole).where(UserRole.user_id == principal_id).where(UserRole.role == target_role.value)
        )
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        logger.info(f"[ROLE] Revoked {target_role.value} from {principal_id}")
        return True

    def resolve_effective_role(self, principal_id: uuid.UUID) -> RoleResolution:
        """
        유효 역할을 조회합니다.

        - 역할 행이 없으면 customer
        - 가입 메타데이터에만 기록된 역할은 user_roles에 추가(self-healing)
        - 조회 실패 시 RoleResolution(status="unknown")
        """
        try:
            roles = set(self.list_roles(principal_id))
            principal = self.db.get(Principal, principal_id)
            healed = self._heal_from_metadata(principal, roles)
            if healed:
                roles.add(healed.value)
        except SQLAlchemyError as e:
            logger.error(f"[ROLE] Role resolution failed for {principal_id}: {e}")
            return RoleResolution(status="unknown")

        return RoleResolution(status="resolved", role=effective_role(roles), roles=frozenset(roles))

    def _heal_from_metadata(self, principal: Principal | None, roles: set[str]) -> AppRole | None:
        if principal is None:
            return None
        meta_role = (principal.signup_metadata or {}).get("role")
        if not meta_role or meta_role in roles:
            return None
        try:
            role = AppRole(meta_role)
        except ValueError:
            logger.warning(f"[ROLE] Ignoring unknown signup role '{meta_role}' for {principal.id}")
            return None
        if role not in SELF_HEALABLE_ROLES:
            logger.warning(f"[ROLE] Refusing to self-heal privileged role '{meta_role}' for {principal.id}")
            return None
        self.ensure_role(principal.id, role)
        return role

    def list_users_with_roles(self, actor: Actor) -> list[dict]:
        """관리자용 사용자 목록 (프로필 + 역할 배열)."""
        require_admin(actor, action="list_users")
        rows = self.db.execute(
            select(Principal, Profile).outerjoin(Profile, Profile.user_id == Principal.id).order_by(Principal.created_at.desc())
        ).all()
        role_rows = self.db.execute(select(UserRole.user_id, UserRole.role)).all()

        roles_by_user: dict[uuid.UUID, list[str]] = {}
        for user_id, role in role_rows:
            roles_by_user.setdefault(user_id, []).append(role)

        out = []
        for principal, profile in rows:
            roles = roles_by_user.get(principal.id, [])
            out.append({
                "id": principal.id,
                "email": principal.email,
                "full_name": profile.full_name if profile else None,
                "phone": profile.phone if profile else None,
                "roles": sorted(roles),
                "effective_role": effective_role(roles).value,
                "created_at": principal.created_at,
            })
        return out
