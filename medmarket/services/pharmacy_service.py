"""
약국 등록 및 검증(verification) 서비스
"""

from datetime import datetime, timezone
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from medmarket.models import AppRole, Pharmacy, VerificationStatus
from medmarket.services.exceptions import ConflictError, NotFoundError, ValidationError
from medmarket.services.policies import Actor, can_view_pharmacy, require_admin
from medmarket.services.role_service import RoleService

logger = logging.getLogger(__name__)

REGISTRATION_FIELDS = ("name", "license_number", "regulatory_number", "phone", "email", "address", "city", "state")
REQUIRED_FIELDS = ("name", "license_number", "phone", "email", "address", "city", "state")
# 약국이 직접 수정 가능한 연락처 필드 (면허번호/검증 상태 제외)
EDITABLE_FIELDS = ("name", "phone", "email", "address", "city", "state")


class PharmacyService:
    def __init__(self, db: Session):
        self.db = db

    def register(self, actor: Actor, data: dict) -> Pharmacy:
        """
        약국 자가 등록. verification_status는 항상 pending으로 시작하고
        등록자에게 pharmacy 역할을 부여합니다.
        """
        missing = [f for f in REQUIRED_FIELDS if not str(data.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"필수 항목이 누락되었습니다: {', '.join(missing)}", field=missing[0])

        if self.db.scalar(select(Pharmacy.id).where(Pharmacy.user_id == actor.principal_id)) is not None:
            raise ConflictError("이미 등록된 약국이 있습니다", user_id=str(actor.principal_id))
        if self.db.scalar(select(Pharmacy.id).where(Pharmacy.license_number == data["license_number"])) is not None:
            raise ConflictError("이미 등록된 면허번호입니다", license_number=data["license_number"])

        pharmacy = Pharmacy(
            user_id=actor.principal_id,
            verification_status=VerificationStatus.PENDING.value,
            verified_at=None,
            **{k: data.get(k) for k in REGISTRATION_FIELDS},
        )
        try:
            with self.db.begin_nested():
                self.db.add(pharmacy)
        except IntegrityError as e:
            raise ConflictError("약국 등록이 충돌했습니다", detail=str(e.orig)) from e

        RoleService(self.db).ensure_role(actor.principal_id, AppRole.PHARMACY)
        logger.info(f"[PHARMACY] Registered {pharmacy.id} by {actor.principal_id} (pending)")
        return pharmacy

    def get(self, actor: Actor, pharmacy_id: uuid.UUID) -> Pharmacy:
        pharmacy = self.db.get(Pharmacy, pharmacy_id)
        if pharmacy is None or not can_view_pharmacy(actor, pharmacy):
            raise NotFoundError("약국을 찾을 수 없습니다", resource="pharmacy", resource_id=pharmacy_id)
        return pharmacy

    def get_for_owner(self, principal_id: uuid.UUID) -> Pharmacy | None:
        return self.db.scalar(select(Pharmacy).where(Pharmacy.user_id == principal_id))

    def get_mine(self, actor: Actor) -> Pharmacy:
        pharmacy = self.get_for_owner(actor.principal_id)
        if pharmacy is None:
            raise NotFoundError("Pharmacy not found", resource="pharmacy", resource_id=actor.principal_id)
        return pharmacy

    def update_mine(self, actor: Actor, changes: dict) -> Pharmacy:
        pharmacy = self.get_mine(actor)
        for key in EDITABLE_FIELDS:
            if key in changes and changes[key] is not None:
                if not str(changes[key]).strip():
                    raise ValidationError(f"{key}는 비워둘 수 없습니다", field=key)
                setattr(pharmacy, key, changes[key])
        self.db.flush()
        return pharmacy

    def list_pharmacies(self, actor: Actor, status: str | None = None) -> list[Pharmacy]:
        """관리자는 전체, 그 외에는 승인된 약국(+ 본인 약국)만."""
        stmt = select(Pharmacy).order_by(Pharmacy.created_at.desc())
        if status:
            stmt = stmt.where(Pharmacy.verification_status == status)
        if not actor.is_admin:
            stmt = stmt.where(
                (Pharmacy.verification_status == VerificationStatus.APPROVED.value)
                | (Pharmacy.user_id == actor.principal_id)
            )
        return list(self.db.scalars(stmt).all())

    def set_verification_status(self, actor: Actor, pharmacy_id: uuid.UUID, status: str) -> Pharmacy:
        require_admin(actor, action="verify_pharmacy")
        try:
            target = VerificationStatus(status)
        except ValueError as e:
            raise ValidationError(f"알 수 없는 검증 상태입니다: {status}", field="verification_status", actual_value=status) from e

        pharmacy = self.db.get(Pharmacy, pharmacy_id)
        if pharmacy is None:
            raise NotFoundError("약국을 찾을 수 없습니다", resource="pharmacy", resource_id=pharmacy_id)

        previous = pharmacy.verification_status
        pharmacy.verification_status = target.value
        pharmacy.verified_at = datetime.now(timezone.utc) if target == VerificationStatus.APPROVED else None
        self.db.flush()
        logger.info(f"[PHARMACY] {pharmacy.id} verification {previous} -> {target.value} by {actor.principal_id}")
        return pharmacy
