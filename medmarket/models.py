from datetime import date, datetime
from decimal import Decimal
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class AppRole(str, Enum):
    ADMIN = "admin"
    PHARMACY = "pharmacy"
    CUSTOMER = "customer"
    DELIVERY_AGENT = "delivery_agent"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"


class ProductCategory(str, Enum):
    OTC = "otc"
    SUPPLEMENTS = "supplements"
    COSMETICS = "cosmetics"
    MEDICAL_DEVICES = "medical_devices"


def _in_values(column: str, enum_cls: type[Enum]) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


# PostgreSQL에서는 JSONB, 그 외(SQLite 테스트)에서는 JSON
JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(10, 2)


class Base(DeclarativeBase):
    pass


# --------------------------------------------------------------------------
# Identity
# --------------------------------------------------------------------------

class Principal(Base):
    """
    Identity provider 사용자(auth.users)의 로컬 미러.
    모든 소유권 FK의 대상입니다.
    """
    __tablename__ = "principals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    signup_metadata: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    roles: Mapped[list["UserRole"]] = relationship("UserRole", back_populates="principal", cascade="all, delete-orphan")
    profile: Mapped["Profile | None"] = relationship("Profile", back_populates="principal", uselist=False, cascade="all, delete-orphan")


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    principal: Mapped["Principal"] = relationship("Principal", back_populates="profile")


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        CheckConstraint(_in_values("role", AppRole), name="ck_user_roles_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    principal: Mapped["Principal"] = relationship("Principal", back_populates="roles")


# --------------------------------------------------------------------------
# Marketplace
# --------------------------------------------------------------------------

class Pharmacy(Base):
    __tablename__ = "pharmacies"
    __table_args__ = (
        CheckConstraint(_in_values("verification_status", VerificationStatus), name="ck_pharmacies_verification_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 1 principal : 1 pharmacy
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    license_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    regulatory_number: Mapped[str | None] = mapped_column(Text, nullable=True)  # 예: NAFDAC 등록번호
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    verification_status: Mapped[str] = mapped_column(Text, nullable=False, default=VerificationStatus.PENDING.value)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    products: Mapped[list["Product"]] = relationship("Product", back_populates="pharmacy")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("id", "pharmacy_id", name="uq_products_id_pharmacy"),
        CheckConstraint(_in_values("category", ProductCategory), name="ck_products_category"),
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    pharmacy_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[str | None] = mapped_column(Text, nullable=True)
    dosage: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    pharmacy: Mapped["Pharmacy"] = relationship("Pharmacy", back_populates="products")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("id", "pharmacy_id", name="uq_orders_id_pharmacy"),
        CheckConstraint(_in_values("status", OrderStatus), name="ck_orders_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("principals.id", ondelete="CASCADE"), nullable=False, index=True)
    pharmacy_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("pharmacies.id", ondelete="CASCADE"), nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=OrderStatus.PENDING.value)
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items: Mapped[list["OrderItem"]] = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    delivery: Mapped["Delivery | None"] = relationship("Delivery", back_populates="order", uselist=False)
    pharmacy: Mapped["Pharmacy"] = relationship("Pharmacy")


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        # 주문 상품은 반드시 주문과 같은 약국 소속
        ForeignKeyConstraint(
            ["order_id", "pharmacy_id"], ["orders.id", "orders.pharmacy_id"],
            name="fk_order_items_order_pharmacy", ondelete="CASCADE",
        ),
        ForeignKeyConstraint(
            ["product_id", "pharmacy_id"], ["products.id", "products.pharmacy_id"],
            name="fk_order_items_product_pharmacy",
        ),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    pharmacy_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # 주문 시점 가격 스냅샷. Product.price를 다시 읽지 않는다.
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    order: Mapped["Order"] = relationship("Order", back_populates="items")


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)  # 전이 순서
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    from_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    to_status: Mapped[str] = mapped_column(Text, nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    actor_role: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str | None] = mapped_column(Text, nullable=True)  # checkout, order, delivery
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Delivery(Base):
    __tablename__ = "deliveries"
    __table_args__ = (
        CheckConstraint(_in_values("status_delivery", DeliveryStatus), name="ck_deliveries_status"),
        CheckConstraint(
            "(status_delivery = 'delivered' AND delivered_at IS NOT NULL)"
            " OR (status_delivery <> 'delivered' AND delivered_at IS NULL)",
            name="ck_deliveries_delivered_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    delivery_agent_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("principals.id", ondelete="SET NULL"), nullable=True, index=True)
    status_delivery: Mapped[str] = mapped_column(Text, nullable=False, default=DeliveryStatus.PENDING.value)
    confirmed_by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    confirmed_by_pharmacy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order: Mapped["Order"] = relationship("Order", back_populates="delivery")
