"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for every test
- Reference data (branch, user, plans, billing lookups, company subscription)
- Member + subscription factory
- HTTPX AsyncClient bound to the test session
"""
import os
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Callable, Generator

# Settings require DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fitclub.core.config import settings
from fitclub.core.deps import get_db
from fitclub.db.base import Base
from fitclub.db.enums import DurationUnit, SubscriptionStatus
from fitclub.db.models import (
    Branch, Company, CompanySubscription, DiscountType, DurationType, Member,
    MemberSubscription, Plan, RateType, TaxRate, User,
)
from fitclub.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    App code commits per row, so tests get a real database instead of an
    outer rollback.
    """
    Base.metadata.create_all(test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def storage_root(tmp_path, monkeypatch) -> str:
    """Keep uploads and exports inside the test's tmp dir."""
    root = str(tmp_path / "storage")
    monkeypatch.setattr(settings, "STORAGE_ROOT", root)
    return root


# =============================================================================
# Reference Data Fixtures
# =============================================================================

@pytest.fixture
def branch(db: Session) -> Branch:
    branch = Branch(name="Kigali Heights")
    db.add(branch)
    db.commit()
    return branch


@pytest.fixture
def user(db: Session) -> User:
    user = User(name="Front Desk", email="frontdesk@fitclub.test")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def duration_types(db: Session) -> dict[str, DurationType]:
    types = {
        unit.value: DurationType(name=unit.value.title(), unit=unit.value)
        for unit in DurationUnit
    }
    db.add_all(types.values())
    db.commit()
    return types


@pytest.fixture
def monthly_plan(db: Session, duration_types) -> Plan:
    plan = Plan(
        label="Monthly",
        price=Decimal("100.00"),
        duration=1,
        duration_type_id=duration_types["months"].id,
    )
    db.add(plan)
    db.commit()
    return plan


@pytest.fixture
def premium_plan(db: Session, duration_types) -> Plan:
    plan = Plan(
        label="Premium",
        price=Decimal("200.00"),
        duration=1,
        duration_type_id=duration_types["months"].id,
    )
    db.add(plan)
    db.commit()
    return plan


@pytest.fixture
def rate_type(db: Session) -> RateType:
    rate_type = RateType(name="Percentage")
    db.add(rate_type)
    db.commit()
    return rate_type


@pytest.fixture
def tax_rate(db: Session, rate_type: RateType) -> TaxRate:
    tax_rate = TaxRate(name="Income Tax - 18%", rate_type_id=rate_type.id, rate=Decimal("18.00"))
    db.add(tax_rate)
    db.commit()
    return tax_rate


@pytest.fixture
def discount_types(db: Session) -> dict[str, DiscountType]:
    types = {name: DiscountType(name=name) for name in ("Percentage", "Fixed")}
    db.add_all(types.values())
    db.commit()
    return types


@pytest.fixture
def company_subscription(db: Session, monthly_plan: Plan) -> CompanySubscription:
    company = Company(name="Acme Rwanda Ltd")
    db.add(company)
    db.flush()
    company_subscription = CompanySubscription(
        company_id=company.id,
        plan_id=monthly_plan.id,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
    )
    db.add(company_subscription)
    db.commit()
    return company_subscription


# =============================================================================
# Member Factory
# =============================================================================

@pytest.fixture
def make_subscription(
    db: Session, branch: Branch, user: User, monthly_plan: Plan,
) -> Callable[..., MemberSubscription]:
    """Create a member with one subscription on the given dates."""
    counter = {"n": 0}

    def _make(
        start_date: date | None,
        end_date: date | None,
        status: SubscriptionStatus = SubscriptionStatus.IN_PROGRESS,
        plan: Plan | None = None,
    ) -> MemberSubscription:
        counter["n"] += 1
        member = Member(
            reference=f"MBR-2024-{counter['n']:05d}",
            first_name="Test",
            last_name=f"Member {counter['n']}",
            gender="other",
            branch_id=branch.id,
            created_by_id=user.id,
        )
        db.add(member)
        db.flush()
        subscription = MemberSubscription(
            member_id=member.id,
            plan_id=(plan or monthly_plan).id,
            start_date=start_date or date(2024, 1, 1),
            end_date=end_date,
            status=status.value,
            branch_id=branch.id,
            created_by_id=user.id,
        )
        db.add(subscription)
        db.commit()
        return subscription

    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient whose requests share the test's database session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()
