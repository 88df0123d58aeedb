"""
Pytest fixtures for the marketplace API tests.

Provides a throwaway SQLite database, per-test schema setup, factory
fixtures for accounts/catalogue data and a FastAPI test client.
"""

import os
import tempfile
from datetime import datetime, timedelta

# Settings are read at import time; configure before importing the app.
_DB_DIR = tempfile.mkdtemp(prefix="marketplace-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only-0123456789")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.sqlite3')}"
os.environ["LOG_FILE"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from marketplace.db.core import engine
from marketplace.db.schema import (
    User, UserRole, UserStatus, BuyerProfile, SellerProfile,
    SellerCategoryLink, Category, Product, RFQ, RFQStatus,
    Certification, CertificationStatus
)
from marketplace.main import app
from marketplace.services.password import get_password_hash
from marketplace.services.user import UserService


PASSWORD = "Password1!"


@pytest.fixture(scope='function', autouse=True)
def database():
    """Fresh schema for every test."""
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope='function')
def session(database):
    with Session(engine) as session:
        yield session


@pytest.fixture(scope='function')
def client(database):
    with TestClient(app) as client:
        yield client


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture(scope='function')
def make_user(session):
    counter = {"n": 0}

    def factory(role=UserRole.BUYER, status=UserStatus.ACTIVE, email=None):
        counter["n"] += 1
        user = User(
            email=email or f"{role.value.lower()}{counter['n']}@example.com",
            hashed_password=get_password_hash(PASSWORD),
            role=role,
            status=status
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return factory


@pytest.fixture(scope='function')
def category(session):
    category = Category(name="Vegetables", description="Fresh organic vegetables")
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@pytest.fixture(scope='function')
def make_buyer(session, make_user):
    def factory(company="Fresh Foods Ltd", email=None):
        user = make_user(UserRole.BUYER, email=email)
        session.add(BuyerProfile(
            user_id=user.id,
            first_name="Jane",
            last_name="Doe",
            company=company,
            city="Portland",
            state="OR",
            country="USA",
            phone="+15035550100"
        ))
        session.commit()
        session.refresh(user)
        return user

    return factory


@pytest.fixture(scope='function')
def make_seller(session, make_user, category):
    def factory(company_name="Green Fields Farm", verified=True, status=UserStatus.ACTIVE):
        user = make_user(UserRole.SELLER, status=status)
        profile = SellerProfile(
            user_id=user.id,
            company_name=company_name,
            contact_person="John Grower",
            city="Salem",
            state="OR",
            country="USA",
            is_verified=verified
        )
        session.add(profile)
        session.flush()
        session.add(SellerCategoryLink(
            seller_id=profile.id, category_id=category.id))
        session.commit()
        session.refresh(user)
        return user

    return factory


@pytest.fixture(scope='function')
def buyer(make_buyer):
    return make_buyer()


@pytest.fixture(scope='function')
def seller(make_seller):
    return make_seller()


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user(UserRole.ADMIN, email="admin@example.com")


@pytest.fixture(scope='function')
def make_product(session, category):
    counter = {"n": 0}

    def factory(seller_user, stock=10, price=10.0, min_order=1, name=None, is_active=True):
        counter["n"] += 1
        product = Product(
            seller_id=seller_user.seller_profile.id,
            category_id=category.id,
            name=name or f"Organic Product {counter['n']}",
            description="Grown without synthetic pesticides.",
            sku=f"SKU-{counter['n']:04d}",
            retail_price=price,
            min_order_quantity=min_order,
            unit="kg",
            stock_quantity=stock,
            is_active=is_active
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return factory


@pytest.fixture(scope='function')
def make_rfq(session, category):
    counter = {"n": 0}

    def factory(buyer_user, expires_in=timedelta(days=7), status=RFQStatus.OPEN, category_id="default"):
        counter["n"] += 1
        rfq = RFQ(
            rfq_number=f"RFQ-TEST-{counter['n']:03d}",
            buyer_id=buyer_user.id,
            category_id=category.id if category_id == "default" else category_id,
            title=f"Bulk organic carrots #{counter['n']}",
            description="Looking for a weekly supply of organic carrots.",
            quantity=500,
            unit="kg",
            budget=1500.0,
            expires_at=datetime.utcnow() + expires_in,
            status=status
        )
        session.add(rfq)
        session.commit()
        session.refresh(rfq)
        return rfq

    return factory


@pytest.fixture(scope='function')
def make_certification(session):
    def factory(owner, status=CertificationStatus.PENDING, name="USDA Organic"):
        cert = Certification(
            user_id=owner.id,
            name=name,
            issuer="Oregon Tilth",
            issue_date=datetime.utcnow().date() - timedelta(days=30),
            expiry_date=datetime.utcnow().date() + timedelta(days=335),
            document_url="https://example.com/certs/usda.pdf",
            status=status
        )
        session.add(cert)
        session.commit()
        session.refresh(cert)
        return cert

    return factory


@pytest.fixture(scope='function')
def auth_headers(session):
    """Returns a function building a Bearer header for a user."""
    def factory(user):
        token = UserService(session).generate_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return factory
