"""
장바구니 / 주문 생성(checkout) 서비스

장바구니는 클라이언트가 보관하는 임시 상태이며 서버에 저장하지 않습니다.
checkout 시점에 다음을 수행합니다:

1. 약국별로 장바구니 항목을 분할 → 약국당 주문 1건
2. 상품 가격을 현재 값으로 다시 읽어 단가 스냅샷으로 저장 (장바구니 가격과 다르면 거부)
3. 재고 조건부 차감 (stock_quantity >= qty 인 경우에만 UPDATE, 0행이면 품절)
4. 모든 주문을 하나의 트랜잭션에서 생성 (all-or-nothing)
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
import logging
import uuid

from sqlalchemy import update
from sqlalchemy.orm import Session

from medmarket.models import AppRole, Order, OrderItem, OrderStatus, OrderStatusHistory, Product
from medmarket.services.catalog_service import parse_price
from medmarket.services.exceptions import OutOfStockError, PriceChangedError, ValidationError
from medmarket.services.policies import Actor, require_role

logger = logging.getLogger(__name__)


@dataclass
class CartItem:
    product_id: uuid.UUID
    pharmacy_id: uuid.UUID
    quantity: int = 1
    price: Decimal | None = None  # 담을 당시 본 가격 (재검증용)
    name: str | None = None

    @property
    def line_total(self) -> Decimal:
        return (self.price or Decimal("0")) * self.quantity


@dataclass
class Cart:
    """principal별 클라이언트 장바구니의 서버측 표현."""

    items: list[CartItem] = field(default_factory=list)

    def add(self, product_id: uuid.UUID, pharmacy_id: uuid.UUID, price=None, name: str | None = None) -> CartItem:
        for item in self.items:
            if item.product_id == product_id:
                item.quantity += 1
                return item
        item = CartItem(
            product_id=product_id,
            pharmacy_id=pharmacy_id,
            quantity=1,
            price=parse_price(price) if price is not None else None,
            name=name,
        )
        self.items.append(item)
        return item

    def remove(self, product_id: uuid.UUID) -> None:
        self.items = [item for item in self.items if item.product_id != product_id]

    def update_quantity(self, product_id: uuid.UUID, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id)
            return
        for item in self.items:
            if item.product_id == product_id:
                item.quantity = quantity

    def clear(self) -> None:
        self.items = []

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_price(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def by_pharmacy(self) -> "OrderedDict[uuid.UUID, list[CartItem]]":
        groups: OrderedDict[uuid.UUID, list[CartItem]] = OrderedDict()
        for item in self.items:
            groups.setdefault(item.pharmacy_id, []).append(item)
        return groups


class CheckoutService:
    def __init__(self, db: Session):
        self.db = db

    def _reserve_stock(self, product: Product, quantity: int) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product.id)
            .where(Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount == 0:
            raise OutOfStockError("재고가 부족합니다", product_id=product.id, requested=quantity)
        self.db.expire(product, ["stock_quantity"])

    def _build_order(self, actor: Actor, pharmacy_id: uuid.UUID, items: list[CartItem], delivery_address: str, notes: str | None) -> Order:
        order = Order(
            customer_id=actor.principal_id,
            pharmacy_id=pharmacy_id,
            status=OrderStatus.PENDING.value,
            delivery_address=delivery_address,
            notes=notes,
            total_amount=Decimal("0.00"),
        )

        total = Decimal("0.00")
        for item in items:
            if item.quantity <= 0:
                raise ValidationError("수량은 1 이상이어야 합니다", field="quantity", actual_value=item.quantity)

            product = self.db.get(Product, item.product_id)
            if product is None or not product.is_active:
                raise ValidationError("주문할 수 없는 상품입니다", field="product_id", actual_value=item.product_id)
            if product.pharmacy_id != pharmacy_id:
                raise ValidationError("상품이 해당 약국 소속이 아닙니다", field="pharmacy_id", actual_value=item.pharmacy_id)

            unit_price = parse_price(product.price)
            if item.price is not None and parse_price(item.price) != unit_price:
                raise PriceChangedError(
                    "상품 가격이 변경되었습니다. 장바구니를 확인하세요.",
                    product_id=product.id,
                    expected=item.price,
                    actual=unit_price,
                )

            self._reserve_stock(product, item.quantity)

            line_total = unit_price * item.quantity
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    pharmacy_id=pharmacy_id,
                    product_name=product.name,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    total_price=line_total,
                )
            )
            total += line_total

        order.total_amount = total
        return order

    def place_orders(self, actor: Actor, cart: Cart, delivery_address: str, notes: str | None = None) -> list[Order]:
        """
        장바구니를 약국별 주문으로 변환합니다.
        예외 발생 시 호출자의 트랜잭션이 롤백되어 어떤 주문도 남지 않습니다.
        """
        require_role(actor, AppRole.CUSTOMER, AppRole.ADMIN, action="checkout")
        if not cart.items:
            raise ValidationError("장바구니가 비어 있습니다", field="items")
        if not (delivery_address or "").strip():
            raise ValidationError("배송 주소가 필요합니다", field="delivery_address")

        orders: list[Order] = []
        for pharmacy_id, items in cart.by_pharmacy().items():
            order = self._build_order(actor, pharmacy_id, items, delivery_address.strip(), notes)
            self.db.add(order)
            self.db.flush()
            self.db.add(
                OrderStatusHistory(
                    order_id=order.id,
                    from_status=None,
                    to_status=order.status,
                    actor_id=actor.principal_id,
                    actor_role=AppRole.CUSTOMER.value,
                    source="checkout",
                )
            )
            orders.append(order)
            logger.info(f"[CHECKOUT] Order {order.id} pharmacy={pharmacy_id} total={order.total_amount} items={len(order.items)}")

        self.db.flush()
        return orders
