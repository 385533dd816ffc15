"""Tests for renewal classification and in-place renewal."""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from fitclub.core.config import settings
from fitclub.db.enums import InvoiceAction, RenewalType, SubscriptionStatus
from fitclub.db.models import MemberSubscription, MemberSubscriptionInvoice
from fitclub.services.subscription_service import (
    BillingConfigurationError, BillingLookupError, BillingOptions, SubscriptionNotEligibleError,
    TransitionKind, calculate_end_date, calculate_renewal_start_date, can_renew,
    determine_renewal_type, renew_subscription,
)

TODAY = date(2024, 6, 10)


def _subscription(end_date, status=SubscriptionStatus.IN_PROGRESS) -> MemberSubscription:
    return MemberSubscription(start_date=date(2024, 5, 1), end_date=end_date, status=status.value)


# =============================================================================
# Classification
# =============================================================================

@pytest.mark.parametrize("end_date,status,expected", [
    (None, SubscriptionStatus.IN_PROGRESS, RenewalType.NEW),
    (TODAY + timedelta(days=3), SubscriptionStatus.IN_PROGRESS, RenewalType.EARLY_RENEWAL),
    (TODAY + timedelta(days=7), SubscriptionStatus.IN_PROGRESS, RenewalType.EARLY_RENEWAL),
    (TODAY + timedelta(days=8), SubscriptionStatus.IN_PROGRESS, RenewalType.PRE_RENEWAL),
    (TODAY + timedelta(days=30), SubscriptionStatus.IN_PROGRESS, RenewalType.PRE_RENEWAL),
    (TODAY, SubscriptionStatus.IN_PROGRESS, RenewalType.EXPIRED_RENEWAL),
    (TODAY - timedelta(days=1), SubscriptionStatus.IN_PROGRESS, RenewalType.EXPIRED_RENEWAL),
    (TODAY - timedelta(days=1), SubscriptionStatus.PENDING, RenewalType.EXPIRED_RENEWAL),
    (TODAY, SubscriptionStatus.PENDING, RenewalType.EXPIRED_RENEWAL),
    (TODAY + timedelta(days=20), SubscriptionStatus.EXPIRED, RenewalType.EXPIRED_RENEWAL),
    (TODAY + timedelta(days=3), SubscriptionStatus.PENDING, RenewalType.NEW),
])
def test_determine_renewal_type(end_date, status, expected):
    assert determine_renewal_type(_subscription(end_date, status), TODAY) == expected


def test_early_and_pre_renewals_start_at_current_end_date():
    end_date = TODAY + timedelta(days=3)
    subscription = _subscription(end_date)

    assert calculate_renewal_start_date(subscription, RenewalType.EARLY_RENEWAL, TODAY) == end_date
    assert calculate_renewal_start_date(subscription, RenewalType.PRE_RENEWAL, TODAY) == end_date
    assert calculate_renewal_start_date(subscription, RenewalType.EXPIRED_RENEWAL, TODAY) == TODAY
    assert calculate_renewal_start_date(_subscription(None), RenewalType.NEW, TODAY) == TODAY


def test_calculate_end_date_treats_unknown_unit_as_days():
    assert calculate_end_date(date(2024, 1, 1), "months", 1) == date(2024, 2, 1)
    assert calculate_end_date(date(2024, 1, 1), "sessions", 10) == date(2024, 1, 11)


def test_can_renew():
    assert can_renew(_subscription(TODAY, SubscriptionStatus.EXPIRED))
    assert can_renew(_subscription(TODAY, SubscriptionStatus.PENDING))
    assert not can_renew(_subscription(TODAY, SubscriptionStatus.CANCELLED))
    assert not can_renew(_subscription(TODAY, SubscriptionStatus.REJECTED))


# =============================================================================
# renew_subscription
# =============================================================================

@pytest.fixture
def billing(rate_type, tax_rate) -> BillingOptions:
    return BillingOptions(rate_type_id=rate_type.id, tax_rate_id=tax_rate.id)


def test_early_renewal_mutates_row_in_place(db, make_subscription, billing):
    end_date = TODAY + timedelta(days=3)
    subscription = make_subscription(date(2024, 5, 13), end_date)
    original_id = subscription.id

    outcome = renew_subscription(db, subscription, options=billing, today=TODAY)

    assert outcome.renewal_type == RenewalType.EARLY_RENEWAL
    assert outcome.transition.kind == TransitionKind.MUTATED_IN_PLACE
    assert outcome.transition.subscription_id == original_id
    assert outcome.subscription.id == original_id
    assert outcome.start_date == end_date
    assert outcome.end_date == date(2024, 7, 13)
    assert outcome.subscription.status == SubscriptionStatus.PENDING.value
    assert outcome.subscription.notes.endswith(f"Early renewal on {TODAY:%Y-%m-%d}")
    assert db.query(MemberSubscription).count() == 1


def test_renewal_invoice_covers_new_term(db, make_subscription, billing):
    subscription = make_subscription(date(2024, 4, 1), TODAY - timedelta(days=5))

    outcome = renew_subscription(db, subscription, options=billing, today=TODAY)
    invoice = outcome.invoice

    assert outcome.renewal_type == RenewalType.EXPIRED_RENEWAL
    assert invoice.action == InvoiceAction.RENEW.value
    assert invoice.from_date == TODAY
    assert invoice.to_date == date(2024, 7, 10)
    assert invoice.invoice_date == TODAY
    assert invoice.due_date == TODAY + timedelta(days=settings.INVOICE_DUE_DAYS)
    assert invoice.amount == Decimal("100.00")
    assert invoice.tax_amount == Decimal("18.00")
    assert invoice.total_amount == Decimal("118.00")
    assert invoice.status == "pending"
    assert invoice.is_sent is False
    assert invoice.notes == "expired_renewal for plan: Monthly"
    assert invoice.reference.startswith(f"INV-{TODAY:%Y%m%d}-MS{subscription.id:06d}-")


def test_new_renewal_uses_new_invoice_action(db, make_subscription, billing):
    subscription = make_subscription(date(2024, 5, 1), None, status=SubscriptionStatus.PENDING)

    outcome = renew_subscription(db, subscription, options=billing, today=TODAY)

    assert outcome.renewal_type == RenewalType.NEW
    assert outcome.invoice.action == InvoiceAction.NEW.value
    assert outcome.start_date == TODAY
    assert outcome.subscription.notes == "New subscription created"


def test_renewal_into_another_plan(db, make_subscription, billing, premium_plan):
    subscription = make_subscription(date(2024, 5, 1), TODAY + timedelta(days=30))

    outcome = renew_subscription(db, subscription, plan=premium_plan, options=billing, today=TODAY)

    assert outcome.renewal_type == RenewalType.PRE_RENEWAL
    assert outcome.subscription.plan_id == premium_plan.id
    assert outcome.invoice.amount == Decimal("200.00")


def test_renewal_notes_are_appended(db, make_subscription, billing):
    subscription = make_subscription(date(2024, 5, 1), TODAY - timedelta(days=1))
    subscription.notes = "Paid in cash"
    db.commit()

    outcome = renew_subscription(db, subscription, options=billing, today=TODAY)

    assert outcome.subscription.notes == (
        f"Paid in cash\nExpired subscription renewed on {TODAY:%Y-%m-%d}"
    )


def test_renewal_applies_percentage_discount(db, make_subscription, billing, discount_types):
    subscription = make_subscription(date(2024, 5, 1), TODAY - timedelta(days=1))
    billing.discount_type_id = discount_types["Percentage"].id
    billing.discount_amount = Decimal("10")

    outcome = renew_subscription(db, subscription, options=billing, today=TODAY)

    assert outcome.invoice.discount_amount == Decimal("10.00")
    assert outcome.invoice.total_amount == Decimal("108.00")
    assert outcome.invoice.discount_type_id == discount_types["Percentage"].id


def test_cancelled_subscription_cannot_be_renewed(db, make_subscription, billing):
    subscription = make_subscription(
        date(2024, 5, 1), TODAY, status=SubscriptionStatus.CANCELLED
    )

    with pytest.raises(SubscriptionNotEligibleError):
        renew_subscription(db, subscription, options=billing, today=TODAY)

    assert db.query(MemberSubscriptionInvoice).count() == 0


# =============================================================================
# Billing defaults
# =============================================================================

def test_missing_billing_configuration_raises(db, make_subscription, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_RATE_TYPE_ID", None)
    monkeypatch.setattr(settings, "DEFAULT_TAX_RATE_ID", None)
    subscription = make_subscription(date(2024, 5, 1), TODAY - timedelta(days=1))

    with pytest.raises(BillingConfigurationError):
        renew_subscription(db, subscription, today=TODAY)

    db.refresh(subscription)
    assert subscription.end_date == TODAY - timedelta(days=1)


def test_configured_billing_defaults_are_used(db, make_subscription, rate_type, tax_rate, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_RATE_TYPE_ID", rate_type.id)
    monkeypatch.setattr(settings, "DEFAULT_TAX_RATE_ID", tax_rate.id)
    subscription = make_subscription(date(2024, 5, 1), TODAY - timedelta(days=1))

    outcome = renew_subscription(db, subscription, today=TODAY)

    assert outcome.invoice.rate_type_id == rate_type.id
    assert outcome.invoice.tax_rate_id == tax_rate.id


def test_unknown_tax_rate_raises(db, make_subscription, rate_type):
    subscription = make_subscription(date(2024, 5, 1), TODAY - timedelta(days=1))

    with pytest.raises(BillingLookupError):
        renew_subscription(
            db,
            subscription,
            options=BillingOptions(rate_type_id=rate_type.id, tax_rate_id=999),
            today=TODAY,
        )
