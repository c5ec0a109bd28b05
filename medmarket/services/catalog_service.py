"""
상품 카탈로그 서비스

고객 노출 규칙: is_active = true 인 상품만 (재고, 약국 승인 상태와 무관).
상품 관리(생성/수정/삭제/활성 토글)는 소유 약국 + 승인 상태를 요구합니다.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from medmarket.models import OrderItem, Pharmacy, Product, ProductCategory
from medmarket.services.exceptions import ConflictError, NotFoundError, ValidationError
from medmarket.services.pharmacy_service import PharmacyService
from medmarket.services.policies import Actor, can_view_product, require_admin, require_product_management

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    "name", "description", "category", "brand", "dosage",
    "price", "stock_quantity", "expiry_date", "image_url", "is_active",
)


def parse_price(value) -> Decimal:
    """가격을 소수점 2자리 Decimal로 정규화합니다."""
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError("가격 형식이 올바르지 않습니다", field="price", actual_value=value) from e
    if price < 0:
        raise ValidationError("가격은 0 이상이어야 합니다", field="price", actual_value=value)
    return price


def _clean_product_data(data: dict, partial: bool = False) -> dict:
    out: dict = {}
    for key in PRODUCT_FIELDS:
        if key not in data:
            continue
        out[key] = data[key]

    if not partial:
        for required in ("name", "category", "price"):
            if out.get(required) in (None, ""):
                raise ValidationError(f"필수 항목이 누락되었습니다: {required}", field=required)

    if "name" in out and not str(out["name"] or "").strip():
        raise ValidationError("상품명은 비워둘 수 없습니다", field="name")
    if "category" in out:
        try:
            out["category"] = ProductCategory(out["category"]).value
        except ValueError as e:
            raise ValidationError(f"알 수 없는 카테고리입니다: {out['category']}", field="category", actual_value=out["category"]) from e
    if "price" in out:
        out["price"] = parse_price(out["price"])
    if "stock_quantity" in out:
        stock = out["stock_quantity"]
        if stock is None:
            stock = 0
        if not isinstance(stock, int) or stock < 0:
            raise ValidationError("재고는 0 이상의 정수여야 합니다", field="stock_quantity", actual_value=stock)
        out["stock_quantity"] = stock
    if isinstance(out.get("expiry_date"), str):
        out["expiry_date"] = date.fromisoformat(out["expiry_date"])
    return out


class CatalogService:
    def __init__(self, db: Session):
        self.db = db

    def _load(self, product_id: uuid.UUID) -> tuple[Product, Pharmacy]:
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFoundError("상품을 찾을 수 없습니다", resource="product", resource_id=product_id)
        return product, product.pharmacy

    # ----------------------------------------------------------------------
    # Read
    # ----------------------------------------------------------------------

    def browse(self, actor: Actor, search: str | None = None, category: str | None = None, limit: int = 100) -> list[Product]:
        """고객용 상품 목록. is_active 상품만 반환합니다."""
        stmt = select(Product).where(Product.is_active.is_(True)).order_by(Product.created_at.desc())
        if category and category != "all":
            stmt = stmt.where(Product.category == category)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(or_(func.lower(Product.name).like(pattern), func.lower(Product.brand).like(pattern)))
        return list(self.db.scalars(stmt.limit(limit)).all())

    def get(self, actor: Actor, product_id: uuid.UUID) -> Product:
        product, pharmacy = self._load(product_id)
        if not can_view_product(actor, product, pharmacy):
            raise NotFoundError("상품을 찾을 수 없습니다", resource="product", resource_id=product_id)
        return product

    def list_mine(self, actor: Actor) -> list[Product]:
        pharmacy = PharmacyService(self.db).get_mine(actor)
        stmt = select(Product).where(Product.pharmacy_id == pharmacy.id).order_by(Product.created_at.desc())
        return list(self.db.scalars(stmt).all())

    def list_all(self, actor: Actor) -> list[Product]:
        require_admin(actor, action="list_all_products")
        return list(self.db.scalars(select(Product).order_by(Product.created_at.desc())).all())

    # ----------------------------------------------------------------------
    # Write
    # ----------------------------------------------------------------------

    def create(self, actor: Actor, data: dict, pharmacy_id: uuid.UUID | None = None) -> Product:
        """
        상품 생성. pharmacy_id를 생략하면 요청자의 약국에 생성합니다.
        관리자는 임의 약국을 지정할 수 있습니다.
        """
        if pharmacy_id is None:
            pharmacy = PharmacyService(self.db).get_mine(actor)
        else:
            pharmacy = self.db.get(Pharmacy, pharmacy_id)
            if pharmacy is None:
                raise NotFoundError("약국을 찾을 수 없습니다", resource="pharmacy", resource_id=pharmacy_id)

        require_product_management(actor, pharmacy, action="create")
        values = _clean_product_data(data)
        product = Product(pharmacy_id=pharmacy.id, **values)
        self.db.add(product)
        self.db.flush()
        logger.info(f"[CATALOG] Product {product.id} created in pharmacy {pharmacy.id}")
        return product

    def update(self, actor: Actor, product_id: uuid.UUID, changes: dict) -> Product:
        product, pharmacy = self._load(product_id)
        require_product_management(actor, pharmacy, action="update")
        for key, value in _clean_product_data(changes, partial=True).items():
            setattr(product, key, value)
        self.db.flush()
        return product

    def toggle_active(self, actor: Actor, product_id: uuid.UUID) -> Product:
        product, pharmacy = self._load(product_id)
        require_product_management(actor, pharmacy, action="toggle_active")
        product.is_active = not product.is_active
        self.db.flush()
        logger.info(f"[CATALOG] Product {product.id} is_active={product.is_active}")
        return product

    def delete(self, actor: Actor, product_id: uuid.UUID) -> None:
        product, pharmacy = self._load(product_id)
        require_product_management(actor, pharmacy, action="delete")

        # 주문 이력이 있는 상품은 가격 스냅샷 보존을 위해 삭제하지 않는다
        referenced = self.db.scalar(select(func.count(OrderItem.id)).where(OrderItem.product_id == product.id)) or 0
        if referenced:
            raise ConflictError("주문 이력이 있는 상품은 삭제할 수 없습니다. 비활성화하세요.", product_id=str(product.id))

        self.db.delete(product)
        self.db.flush()
        logger.info(f"[CATALOG] Product {product_id} deleted")
