import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medmarket.auth import get_actor
from medmarket.db import get_session
from medmarket.schemas.catalog import ProductCreate, ProductResponse, ProductUpdate
from medmarket.services.catalog_service import CatalogService
from medmarket.services.policies import Actor

router = APIRouter()


@router.get("", response_model=List[ProductResponse])
def browse_products(
    q: str | None = Query(default=None),
    category: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    """고객용 상품 목록 (활성 상품만)."""
    return CatalogService(session).browse(actor, search=q, category=category, limit=limit)


@router.get("/mine", response_model=List[ProductResponse])
def list_my_products(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return CatalogService(session).list_mine(actor)


@router.get("/all", response_model=List[ProductResponse])
def list_all_products(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return CatalogService(session).list_all(actor)


@router.get("/{product_id}", response_model=ProductResponse)
def read_product(product_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return CatalogService(session).get(actor, product_id)


@router.post("", response_model=ProductResponse, status_code=201)
def create_product(payload: ProductCreate, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    data = payload.model_dump(exclude={"pharmacy_id"})
    data["category"] = payload.category.value
    return CatalogService(session).create(actor, data, pharmacy_id=payload.pharmacy_id)


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    changes = payload.model_dump(exclude_unset=True)
    if payload.category is not None:
        changes["category"] = payload.category.value
    return CatalogService(session).update(actor, product_id, changes)


@router.post("/{product_id}/toggle-active", response_model=ProductResponse)
def toggle_product_active(product_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return CatalogService(session).toggle_active(actor, product_id)


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: uuid.UUID, actor: Actor = Depends(get_actor), session: Session = Depends(get_session)) -> None:
    CatalogService(session).delete(actor, product_id)
