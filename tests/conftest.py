"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from decimal import Decimal
import uuid

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from medmarket.models import AppRole, Base, Pharmacy, Product, VerificationStatus
from medmarket.services.identity_service import on_principal_created
from medmarket.services.policies import Actor, load_actor
from medmarket.services.role_service import RoleService
from medmarket.settings import settings


# 테스트용 메모리 SQLite 엔진 (TestClient 스레드와 연결 공유)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False  # 테스트 로그 줄이기
)


@event.listens_for(test_engine, "connect")
def _sqlite_on_connect(dbapi_conn, connection_record):
    # pysqlite의 자체 트랜잭션 처리를 끄고 SAVEPOINT를 사용할 수 있게 함
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(test_engine, "begin")
def _sqlite_on_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionLocal = sessionmaker(
    bind=test_engine,
    autoflush=False,
    expire_on_commit=False,
)


@pytest.fixture(scope="function")
def test_session() -> Session:
    """
    테스트용 데이터베이스 세션 fixture.
    각 테스트마다 새로운 메모리 DB 생성.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db_session(test_session: Session):
    """
    기존 코드 호환용 alias.
    test_session과 동일하게 동작.
    """
    yield test_session


class MarketFactory:
    """테스트 데이터 생성 헬퍼"""

    def __init__(self, session: Session):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def actor(self, *roles: AppRole, email: str | None = None, metadata: dict | None = None) -> Actor:
        principal_id = uuid.uuid4()
        n = self._next()
        on_principal_created(self.session, principal_id, email=email or f"user{n}@example.com", metadata=metadata)
        for role in roles:
            RoleService(self.session).ensure_role(principal_id, role)
        self.session.flush()
        return load_actor(self.session, principal_id)

    def admin(self) -> Actor:
        return self.actor(AppRole.ADMIN)

    def customer(self) -> Actor:
        return self.actor(AppRole.CUSTOMER)

    def agent(self) -> Actor:
        return self.actor(AppRole.DELIVERY_AGENT)

    def pharmacy(self, owner: Actor | None = None, status: VerificationStatus = VerificationStatus.APPROVED) -> tuple[Actor, Pharmacy]:
        if owner is None:
            owner = self.actor(AppRole.PHARMACY)
        n = self._next()
        pharmacy = Pharmacy(
            user_id=owner.principal_id,
            name=f"Pharmacy {n}",
            license_number=f"LIC-{n:04d}",
            regulatory_number=f"PCN-{n:04d}",
            phone="08000000000",
            email=f"pharmacy{n}@example.com",
            address=f"{n} Market Road",
            city="Lagos",
            state="Lagos",
            verification_status=status.value,
            verified_at=datetime.now(timezone.utc) if status == VerificationStatus.APPROVED else None,
        )
        self.session.add(pharmacy)
        self.session.flush()
        return owner, pharmacy

    def product(self, pharmacy: Pharmacy, price="500.00", stock: int = 10, is_active: bool = True, **kwargs) -> Product:
        n = self._next()
        product = Product(
            pharmacy_id=pharmacy.id,
            name=kwargs.pop("name", f"Product {n}"),
            category=kwargs.pop("category", "otc"),
            price=Decimal(str(price)),
            stock_quantity=stock,
            is_active=is_active,
            **kwargs,
        )
        self.session.add(product)
        self.session.flush()
        return product


@pytest.fixture(scope="function")
def factory(test_session: Session) -> MarketFactory:
    return MarketFactory(test_session)


@pytest.fixture(scope="function")
def client(test_session: Session, monkeypatch):
    """
    API 테스트용 TestClient.
    요청마다 SAVEPOINT를 열어 실패한 요청의 변경만 되돌린다.
    """
    from fastapi.testclient import TestClient

    from medmarket.db import get_session
    from medmarket.main import app

    monkeypatch.setattr(settings, "auth_dev_header_enabled", True)

    def _override_get_session():
        with test_session.begin_nested():
            yield test_session

    app.dependency_overrides[get_session] = _override_get_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth():
    """Actor -> 개발용 인증 헤더"""
    def _headers(actor: Actor) -> dict:
        return {"X-Principal-Id": str(actor.principal_id)}
    return _headers


# 테스트 마커 정의
def pytest_configure(config):
    """Pytest 마커 등록."""
    config.addinivalue_line("markers", "unit: 단위 테스트 (DB 불필요)")
    config.addinivalue_line("markers", "integration: 통합 테스트 (실제 DB/API 필요)")
    config.addinivalue_line("markers", "slow: 느린 테스트 (> 1분)")
