import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from medmarket.auth import get_actor
from medmarket.db import get_session
from medmarket.schemas.pharmacy import PharmacyRegister, PharmacyResponse, PharmacyUpdate, VerificationUpdate
from medmarket.services.notifications import get_notifier
from medmarket.services.pharmacy_service import PharmacyService
from medmarket.services.policies import Actor

router = APIRouter()


@router.post("", response_model=PharmacyResponse, status_code=201)
def register_pharmacy(payload: PharmacyRegister, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return PharmacyService(session).register(actor, payload.model_dump())


@router.get("", response_model=List[PharmacyResponse])
def list_pharmacies(
    status: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return PharmacyService(session).list_pharmacies(actor, status=status)


@router.get("/me", response_model=PharmacyResponse)
def read_my_pharmacy(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return PharmacyService(session).get_mine(actor)


@router.patch("/me", response_model=PharmacyResponse)
def update_my_pharmacy(payload: PharmacyUpdate, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return PharmacyService(session).update_mine(actor, payload.model_dump(exclude_unset=True))


@router.get("/{pharmacy_id}", response_model=PharmacyResponse)
def read_pharmacy(pharmacy_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return PharmacyService(session).get(actor, pharmacy_id)


@router.patch("/{pharmacy_id}/verification", response_model=PharmacyResponse)
def set_verification_status(
    pharmacy_id: uuid.UUID,
    payload: VerificationUpdate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    pharmacy = PharmacyService(session).set_verification_status(actor, pharmacy_id, payload.verification_status)
    background_tasks.add_task(
        get_notifier().pharmacy_verification, pharmacy.email, pharmacy.name, pharmacy.verification_status
    )
    return pharmacy
