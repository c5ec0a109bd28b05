import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medmarket.auth import get_actor
from medmarket.db import get_session
from medmarket.schemas.profile import ProfileResponse, ProfileUpdate
from medmarket.services.identity_service import get_profile, update_profile
from medmarket.services.policies import Actor

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
def read_my_profile(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return get_profile(session, actor)


@router.patch("/me", response_model=ProfileResponse)
def update_my_profile(payload: ProfileUpdate, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return update_profile(session, actor, payload.model_dump(exclude_unset=True))


@router.get("/{user_id}", response_model=ProfileResponse)
def read_profile(user_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return get_profile(session, actor, user_id=user_id)
