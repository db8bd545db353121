"""
Shared pytest fixtures for the Stylex billing engine.

Every test gets a fresh in-memory SQLite database; PayPal is replaced by a
spec'd mock so no network call ever leaves the process.
"""

import os
from datetime import datetime
from itertools import count
from unittest.mock import MagicMock

# Configure the app for tests before any stylex module reads the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stylex import models_billing  # noqa: F401
from stylex.database import Base
from stylex.domain.billing.paypal_service import PayPalService
from stylex.models import BarberShop, User
from stylex.models_billing import Subscription

# Fixed clock used across tests
NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def paypal():
    """PayPal client double; async methods are AsyncMocks"""
    return MagicMock(spec=PayPalService)


class Factory:
    """Inserts owners, shops, staff and subscriptions"""

    def __init__(self, db):
        self.db = db
        self._seq = count(1)

    def user(self, role="owner", shop=None, deleted=False, name=None):
        n = next(self._seq)
        user = User(
            name=name or f"{role.title()} {n}",
            email=f"{role}{n}@example.com",
            role=role,
            shop_id=shop.id if shop else None,
            deleted_at=NOW if deleted else None,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def owner(self, **kwargs):
        return self.user(role="owner", **kwargs)

    def admin(self, **kwargs):
        return self.user(role="admin", **kwargs)

    def shop(self, owner, deleted=False, name=None):
        shop = BarberShop(
            owner_id=owner.id if owner else None,
            name=name or f"Shop {next(self._seq)}",
            deleted_at=NOW if deleted else None,
        )
        self.db.add(shop)
        self.db.commit()
        return shop

    def barbers(self, shop, n=1, deleted=False):
        return [self.user(role="barber", shop=shop, deleted=deleted) for _ in range(n)]

    def owner_with_usage(self, shops=1, professionals=0):
        """Owner with `shops` shops and `professionals` barbers spread across them"""
        owner = self.owner()
        created = [self.shop(owner) for _ in range(shops)]
        for i in range(professionals):
            self.barbers(created[i % len(created)], 1)
        return owner, created

    def subscription(self, owner, period_end, grace_end, **fields):
        subscription = Subscription(
            owner_id=owner.id,
            status=fields.pop("status", "active"),
            current_period_start=fields.pop("current_period_start", None),
            current_period_end=period_end,
            grace_period_end=grace_end,
            billing_provider=fields.pop("billing_provider", "none"),
            **fields,
        )
        self.db.add(subscription)
        self.db.commit()
        return subscription


@pytest.fixture
def factory(db):
    return Factory(db)
