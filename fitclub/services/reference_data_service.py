"""Reference data lookups and idempotent seeding."""

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from fitclub.db.enums import DurationUnit
from fitclub.db.models import (
    Branch, CompanySubscription, Currency, DiscountType, DurationType, Plan,
    RateType, TaxRate, User,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Lookups
# =============================================================================

def get_branch(db: Session, branch_id: int | None) -> Branch | None:
    if branch_id is None:
        return None
    return db.get(Branch, branch_id)


def get_user(db: Session, user_id: int | None) -> User | None:
    if user_id is None:
        return None
    return db.get(User, user_id)


def get_plan(db: Session, plan_id: int | None) -> Plan | None:
    if plan_id is None:
        return None
    return db.get(Plan, plan_id)


def get_rate_type(db: Session, rate_type_id: int | None) -> RateType | None:
    if rate_type_id is None:
        return None
    return db.get(RateType, rate_type_id)


def get_tax_rate(db: Session, tax_rate_id: int | None) -> TaxRate | None:
    if tax_rate_id is None:
        return None
    return db.get(TaxRate, tax_rate_id)


def get_discount_type(db: Session, discount_type_id: int | None) -> DiscountType | None:
    if discount_type_id is None:
        return None
    return db.get(DiscountType, discount_type_id)


def get_company_subscription(
    db: Session,
    company_subscription_id: int | None,
) -> CompanySubscription | None:
    if company_subscription_id is None:
        return None
    return db.get(CompanySubscription, company_subscription_id)


# =============================================================================
# Seeding
# =============================================================================

DURATION_TYPES = [
    ("Daily", DurationUnit.DAYS.value),
    ("Weekly", DurationUnit.WEEKS.value),
    ("Monthly", DurationUnit.MONTHS.value),
    ("Yearly", DurationUnit.YEARS.value),
]

RATE_TYPES = ["Percentage", "Fixed"]
DISCOUNT_TYPES = ["Percentage", "Fixed"]

# (name, rate type name, rate %)
TAX_RATES = [
    ("VAT - Value Added Tax - 15%", "Percentage", Decimal("15.00")),
    ("Income Tax - 18%", "Percentage", Decimal("18.00")),
]

CURRENCIES = [("RWF", "Rwandan Francs")]


def seed_reference_data(db: Session) -> dict[str, int]:
    """
    Insert the lookup rows the billing and import code expects.

    Safe to run repeatedly: rows are matched by their natural key and only
    missing ones are created. Returns the number of rows created per table.
    """
    created = {
        "duration_types": 0,
        "rate_types": 0,
        "discount_types": 0,
        "tax_rates": 0,
        "currencies": 0,
    }

    for name, unit in DURATION_TYPES:
        if not db.query(DurationType).filter(DurationType.unit == unit).first():
            db.add(DurationType(name=name, unit=unit))
            created["duration_types"] += 1

    for name in RATE_TYPES:
        if not db.query(RateType).filter(RateType.name == name).first():
            db.add(RateType(name=name))
            created["rate_types"] += 1

    for name in DISCOUNT_TYPES:
        if not db.query(DiscountType).filter(DiscountType.name == name).first():
            db.add(DiscountType(name=name))
            created["discount_types"] += 1

    for code, name in CURRENCIES:
        if not db.query(Currency).filter(Currency.code == code).first():
            db.add(Currency(code=code, name=name))
            created["currencies"] += 1

    db.flush()

    for name, rate_type_name, rate in TAX_RATES:
        if db.query(TaxRate).filter(TaxRate.name == name).first():
            continue
        rate_type = db.query(RateType).filter(RateType.name == rate_type_name).first()
        db.add(TaxRate(
            name=name,
            rate_type_id=rate_type.id if rate_type else None,
            rate=rate,
        ))
        created["tax_rates"] += 1

    db.commit()
    logger.info("Reference data seeded: %s", created)
    return created
