"""Pytest configuration and fixtures."""

import itertools
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")

import pytest
from decimal import Decimal
from typing import Generator, Optional

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.rbac import TokenData, UserRole
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import get_db
from app.main import app
# Import all models to ensure they're registered with Base.metadata
from app.models import *
from app.models.organization import Organization, User
from app.models.product import ColorVariant, Product, SizeStock
from app.models.wholesale import SyncPreference, WholesaleBuyer, WholesaleOrder, WholesaleOrderItem

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

BUYER_MOBILE = "9876543210"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiter during tests to avoid flaky failures
    from app.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


def _make_org_with_user(db: Session, name: str, email: str, user_name: str) -> User:
    org = Organization(name=name, email=email, is_active=True)
    db.add(org)
    db.flush()
    user = User(organization_id=org.id, email=email, name=user_name, role=UserRole.OWNER.value, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def supplier_user(db_session: Session) -> User:
    """Owner of the supplier organization."""
    return _make_org_with_user(db_session, "Shree Textiles", "owner@shreetextiles.test", "Suresh Patel")


@pytest.fixture
def customer_user(db_session: Session) -> User:
    """Owner of the customer (buyer) organization."""
    return _make_org_with_user(db_session, "Ram Garments", "ram@ramgarments.test", "Ram Kumar")


@pytest.fixture
def supplier_org(supplier_user: User) -> Organization:
    return supplier_user.organization


@pytest.fixture
def customer_org(customer_user: User) -> Organization:
    return customer_user.organization


def _identity(user: User, role: UserRole = UserRole.OWNER) -> TokenData:
    return TokenData(
        user_id=user.id, email=user.email, role=role,
        organization_id=user.organization_id, full_name=user.name,
    )


@pytest.fixture
def supplier_identity(supplier_user: User) -> TokenData:
    return _identity(supplier_user)


@pytest.fixture
def customer_identity(customer_user: User) -> TokenData:
    return _identity(customer_user)


def _headers(user: User, role: UserRole = UserRole.OWNER) -> dict:
    token = create_access_token(
        data={
            "sub": str(user.id),
            "email": user.email,
            "role": role.value,
            "org": user.organization_id,
            "full_name": user.name,
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def supplier_headers(supplier_user: User) -> dict:
    return _headers(supplier_user)


@pytest.fixture
def customer_headers(customer_user: User) -> dict:
    return _headers(customer_user)


@pytest.fixture
def supplier_staff_headers(supplier_user: User) -> dict:
    return _headers(supplier_user, UserRole.STAFF)


@pytest.fixture
def supplier_catalog(db_session: Session, supplier_org: Organization) -> Product:
    """Supplier design D100 in Red (S/M/L) and Blue (M/L)."""
    product = Product(organization_id=supplier_org.id, design="D100", description="Cotton kurta")
    red = ColorVariant(color="Red", wholesale_price=Decimal("250"), retail_price=Decimal("400"))
    for size in ("S", "M", "L"):
        red.sizes.append(SizeStock(size=size, current_stock=50, locked_stock=0, reorder_point=10))
    blue = ColorVariant(color="Blue", wholesale_price=Decimal("260"), retail_price=Decimal("420"))
    for size in ("M", "L"):
        blue.sizes.append(SizeStock(size=size, current_stock=30, locked_stock=0, reorder_point=10))
    product.colors = [red, blue]
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def linked_buyer(db_session: Session, supplier_org: Organization, customer_org: Organization) -> WholesaleBuyer:
    """A buyer of the supplier who signed up as the customer organization."""
    buyer = WholesaleBuyer(
        organization_id=supplier_org.id,
        name="Ram Kumar",
        mobile=BUYER_MOBILE,
        business_name="Ram Garments",
        customer_tenant_id=customer_org.id,
        sync_preference=SyncPreference.DIRECT.value,
    )
    db_session.add(buyer)
    db_session.commit()
    db_session.refresh(buyer)
    return buyer


@pytest.fixture
def manual_buyer(db_session: Session, linked_buyer: WholesaleBuyer) -> WholesaleBuyer:
    linked_buyer.sync_preference = SyncPreference.MANUAL.value
    db_session.commit()
    return linked_buyer


@pytest.fixture
def make_order(db_session: Session, supplier_org: Organization):
    """Factory for supplier orders stored without dispatching them.

    ``lines`` are (design, color, size, quantity) tuples.
    """
    counter = itertools.count(1)

    def _make(lines, buyer_contact: str = BUYER_MOBILE, created_at=None) -> WholesaleOrder:
        number = next(counter)
        order = WholesaleOrder(
            organization_id=supplier_org.id,
            challan_number=f"RAM_GARMENTS_{number:02d}",
            buyer_name="Ram Kumar",
            buyer_contact=buyer_contact,
            business_name="Ram Garments",
        )
        total = Decimal("0")
        for design, color, size, quantity in lines:
            order.items.append(
                WholesaleOrderItem(
                    design=design, color=color, size=size, quantity=quantity,
                    price_per_unit=Decimal("250"), subtotal=Decimal("250") * quantity,
                )
            )
            total += Decimal("250") * quantity
        order.subtotal_amount = total
        order.total_amount = total
        if created_at is not None:
            order.created_at = created_at
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def stock_of(db_session: Session):
    """Look up ``current_stock`` for (organization, design, color, size); None if no row."""

    def _stock(organization_id: int, design: str, color: str, size: str) -> Optional[int]:
        row = (
            db_session.query(SizeStock)
            .join(ColorVariant, SizeStock.color_variant_id == ColorVariant.id)
            .join(Product, ColorVariant.product_id == Product.id)
            .filter(
                Product.organization_id == organization_id,
                Product.design == design,
                ColorVariant.color == color,
                SizeStock.size == size,
            )
            .first()
        )
        if row is None:
            return None
        db_session.refresh(row)
        return row.current_stock

    return _stock
