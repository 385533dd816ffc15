"""Subscription lifecycle service - renewals, upgrades and proration.

Renewal and upgrade treat rows differently:

- renew_subscription mutates the existing subscription in place.
- upgrade_subscription creates a new subscription and cancels the old one.

Both return an outcome carrying a SubscriptionTransition that says which
of the two happened, so callers never infer it from row identity.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitclub.core.config import settings
from fitclub.core.structured_logging import build_log_context
from fitclub.db.enums import (
    PERCENTAGE_DISCOUNT_TYPE, InvoiceAction, RenewalType, SubscriptionStatus,
)
from fitclub.db.models import (
    DiscountType, Member, MemberSubscription, MemberSubscriptionInvoice, Plan,
    RateType, TaxRate,
)
from fitclub.services import invoice_service, reference_data_service
from fitclub.services.invoice_service import ZERO, to_money
from fitclub.utils.datetime_parsing import add_duration, duration_to_days

logger = logging.getLogger(__name__)


class SubscriptionServiceError(Exception):
    """Base exception for subscription lifecycle errors."""
    pass


class PlanNotFoundError(SubscriptionServiceError):
    """The plan to renew into or upgrade to does not exist."""
    pass


class BillingConfigurationError(SubscriptionServiceError):
    """No rate type or tax rate was given and no default is configured."""
    pass


class BillingLookupError(SubscriptionServiceError):
    """A rate type, tax rate or discount type id does not resolve."""
    pass


class SubscriptionNotEligibleError(SubscriptionServiceError):
    """The subscription cannot be renewed or upgraded in its current state."""
    pass


# =============================================================================
# Options & Results
# =============================================================================

@dataclass
class BillingOptions:
    """Caller-supplied invoice settings for a renewal or upgrade."""
    rate_type_id: int | None = None
    tax_rate_id: int | None = None
    discount_type_id: int | None = None
    discount_amount: Decimal = ZERO
    due_date: date | None = None
    notes: str | None = None
    prorate: bool = True


@dataclass
class ResolvedBilling:
    rate_type: RateType
    tax_rate: TaxRate
    discount_type: DiscountType | None


@dataclass
class Proration:
    """Upgrade credit for unused time on the current plan."""
    amount: Decimal = ZERO
    remaining_days: int = 0
    credit_amount: Decimal = ZERO
    new_cost_for_remaining: Decimal = ZERO
    old_daily_rate: Decimal | None = None
    new_daily_rate: Decimal | None = None


class TransitionKind(str, Enum):
    MUTATED_IN_PLACE = "mutated_in_place"
    REPLACED = "replaced"


@dataclass
class SubscriptionTransition:
    """
    What happened to the subscription row.

    mutated_in_place: subscription_id is the same row that was passed in.
    replaced: subscription_id is a new row; previous_subscription_id was cancelled.
    """
    kind: TransitionKind
    subscription_id: int
    previous_subscription_id: int | None = None


@dataclass
class RenewalOutcome:
    subscription: MemberSubscription
    invoice: MemberSubscriptionInvoice
    renewal_type: RenewalType
    start_date: date
    end_date: date
    transition: SubscriptionTransition


@dataclass
class UpgradeOutcome:
    subscription: MemberSubscription
    previous_subscription: MemberSubscription
    invoice: MemberSubscriptionInvoice
    proration: Proration = field(default_factory=Proration)
    transition: SubscriptionTransition | None = None


# =============================================================================
# Pure rules
# =============================================================================

RENEWAL_ACTIONS = {
    RenewalType.NEW: InvoiceAction.NEW,
    RenewalType.EXPIRED_RENEWAL: InvoiceAction.RENEW,
    RenewalType.EARLY_RENEWAL: InvoiceAction.RENEW,
    RenewalType.PRE_RENEWAL: InvoiceAction.RENEW,
}

INELIGIBLE_STATUSES = {SubscriptionStatus.CANCELLED.value, SubscriptionStatus.REJECTED.value}


def determine_renewal_type(
    subscription: MemberSubscription,
    today: date | None = None,
) -> RenewalType:
    """
    Classify a renewal request from the subscription's status and end date.

    - no end date                              -> new
    - expired, or end date today or earlier    -> expired_renewal
    - in_progress, within the early window     -> early_renewal
    - in_progress, beyond the early window     -> pre_renewal
    - anything else                            -> new
    """
    today = today or date.today()

    if not subscription.end_date:
        return RenewalType.NEW

    if subscription.status == SubscriptionStatus.EXPIRED.value:
        return RenewalType.EXPIRED_RENEWAL

    if subscription.end_date <= today:
        return RenewalType.EXPIRED_RENEWAL

    if subscription.status == SubscriptionStatus.IN_PROGRESS.value:
        days_until_expiry = (subscription.end_date - today).days
        if days_until_expiry <= settings.EARLY_RENEWAL_WINDOW_DAYS:
            return RenewalType.EARLY_RENEWAL
        return RenewalType.PRE_RENEWAL

    return RenewalType.NEW


def calculate_renewal_start_date(
    subscription: MemberSubscription,
    renewal_type: RenewalType,
    today: date | None = None,
) -> date:
    """Early and pre renewals start when the current term ends; others start today."""
    today = today or date.today()
    if not subscription.end_date:
        return today
    if renewal_type in (RenewalType.EARLY_RENEWAL, RenewalType.PRE_RENEWAL):
        return subscription.end_date
    return today


def calculate_end_date(start_date: date, unit: str, duration: int) -> date:
    """Calendar-aware end date; unknown units are treated as days."""
    try:
        return add_duration(start_date, unit, duration)
    except ValueError:
        logger.warning("Unknown duration unit %r, treating as days", unit)
        return add_duration(start_date, "days", duration)


def plan_end_date(plan: Plan, start_date: date) -> date:
    return calculate_end_date(start_date, plan.duration_type.unit, plan.duration)


def calculate_upgrade_proration(
    subscription: MemberSubscription,
    new_plan: Plan,
    upgrade_date: date | None = None,
) -> Proration:
    """
    Credit the unused part of the current term against the new plan's cost.

    The current term is measured in calendar days; the new plan's length uses
    the fixed 30-day month / 365-day year approximation.
    """
    upgrade_date = upgrade_date or date.today()
    if not subscription.start_date or not subscription.end_date:
        return Proration()

    total_days = (subscription.end_date - subscription.start_date).days
    remaining_days = (subscription.end_date - upgrade_date).days

    if remaining_days <= 0 or total_days <= 0:
        return Proration()

    old_daily_rate = Decimal(subscription.plan.price) / total_days
    credit_amount = to_money(old_daily_rate * remaining_days)

    new_total_days = duration_to_days(new_plan.duration, new_plan.duration_type.unit)
    if new_total_days <= 0:
        return Proration()
    new_daily_rate = Decimal(new_plan.price) / new_total_days
    new_cost = to_money(new_daily_rate * remaining_days)

    return Proration(
        amount=max(ZERO, new_cost - credit_amount),
        remaining_days=remaining_days,
        credit_amount=credit_amount,
        new_cost_for_remaining=new_cost,
        old_daily_rate=old_daily_rate.quantize(Decimal("0.0001")),
        new_daily_rate=new_daily_rate.quantize(Decimal("0.0001")),
    )


def can_renew(subscription: MemberSubscription) -> bool:
    return subscription.status not in INELIGIBLE_STATUSES


def can_upgrade(subscription: MemberSubscription, plan: Plan) -> bool:
    if not can_renew(subscription):
        return False
    # Same plan is not an upgrade
    return subscription.plan_id != plan.id


def append_note(existing: str | None, line: str) -> str:
    if existing:
        return f"{existing}\n{line}"
    return line


def renewal_note(renewal_type: RenewalType, today: date) -> str:
    stamp = today.strftime("%Y-%m-%d")
    if renewal_type == RenewalType.EXPIRED_RENEWAL:
        return f"Expired subscription renewed on {stamp}"
    if renewal_type == RenewalType.EARLY_RENEWAL:
        return f"Early renewal on {stamp}"
    if renewal_type == RenewalType.PRE_RENEWAL:
        return f"Pre-renewal on {stamp}"
    if renewal_type == RenewalType.NEW:
        return "New subscription created"
    return f"Subscription renewed on {stamp}"


# =============================================================================
# Billing resolution
# =============================================================================

def resolve_billing(db: Session, options: BillingOptions) -> ResolvedBilling:
    """
    Resolve rate type, tax rate and discount type for an invoice.

    Rate type and tax rate come from the options, else from the configured
    defaults (DEFAULT_RATE_TYPE_ID / DEFAULT_TAX_RATE_ID).

    Raises:
        BillingConfigurationError: neither an option nor a default is set
        BillingLookupError: an id does not resolve
    """
    rate_type_id = options.rate_type_id or settings.DEFAULT_RATE_TYPE_ID
    tax_rate_id = options.tax_rate_id or settings.DEFAULT_TAX_RATE_ID

    if rate_type_id is None:
        raise BillingConfigurationError(
            "No rate type given and DEFAULT_RATE_TYPE_ID is not configured"
        )
    if tax_rate_id is None:
        raise BillingConfigurationError(
            "No tax rate given and DEFAULT_TAX_RATE_ID is not configured"
        )

    rate_type = reference_data_service.get_rate_type(db, rate_type_id)
    if not rate_type:
        raise BillingLookupError(f"Rate type {rate_type_id} not found")

    tax_rate = reference_data_service.get_tax_rate(db, tax_rate_id)
    if not tax_rate:
        raise BillingLookupError(f"Tax rate {tax_rate_id} not found")

    discount_type = None
    if options.discount_type_id:
        discount_type = reference_data_service.get_discount_type(db, options.discount_type_id)
        if not discount_type:
            raise BillingLookupError(f"Discount type {options.discount_type_id} not found")

    return ResolvedBilling(rate_type=rate_type, tax_rate=tax_rate, discount_type=discount_type)


# =============================================================================
# Lifecycle operations
# =============================================================================

def create_subscription(
    db: Session,
    *,
    member: Member,
    plan: Plan,
    start_date: date,
    branch_id: int,
    created_by_id: int | None = None,
    notes: str | None = None,
) -> MemberSubscription:
    """Add a pending subscription for a member and flush. The caller owns the commit."""
    subscription = MemberSubscription(
        member_id=member.id,
        plan_id=plan.id,
        start_date=start_date,
        end_date=plan_end_date(plan, start_date),
        status=SubscriptionStatus.PENDING.value,
        notes=notes,
        branch_id=branch_id,
        created_by_id=created_by_id,
    )
    db.add(subscription)
    db.flush()
    return subscription


def renew_subscription(
    db: Session,
    subscription: MemberSubscription,
    plan: Plan | None = None,
    options: BillingOptions | None = None,
    today: date | None = None,
) -> RenewalOutcome:
    """
    Renew a subscription in place and raise an invoice for the new term.

    The row keeps its id; plan, dates, status (back to pending) change and a
    note line is appended.

    Raises:
        SubscriptionNotEligibleError: cancelled or rejected subscription
        PlanNotFoundError: no plan given and the current plan is missing
        BillingConfigurationError, BillingLookupError: invoice settings
    """
    options = options or BillingOptions()
    today = today or date.today()

    if not can_renew(subscription):
        raise SubscriptionNotEligibleError(
            f"Subscription {subscription.id} with status {subscription.status} cannot be renewed"
        )

    plan = plan or subscription.plan
    if plan is None:
        raise PlanNotFoundError(f"Plan for subscription {subscription.id} not found")

    billing = resolve_billing(db, options)

    renewal_type = determine_renewal_type(subscription, today)
    start_date = calculate_renewal_start_date(subscription, renewal_type, today)
    end_date = plan_end_date(plan, start_date)

    try:
        subscription.plan = plan
        subscription.start_date = start_date
        subscription.end_date = end_date
        subscription.status = SubscriptionStatus.PENDING.value
        subscription.notes = append_note(subscription.notes, renewal_note(renewal_type, today))
        db.flush()

        amounts = invoice_service.compute_renewal_amounts(
            base=plan.price,
            tax_rate=billing.tax_rate.rate,
            discount_type_name=billing.discount_type.name if billing.discount_type else None,
            discount_amount=options.discount_amount,
        )
        invoice = invoice_service.create_invoice(
            db,
            subscription=subscription,
            amounts=amounts,
            action=RENEWAL_ACTIONS[renewal_type].value,
            rate_type_id=billing.rate_type.id,
            tax_rate_id=billing.tax_rate.id,
            discount_type_id=billing.discount_type.id if billing.discount_type else None,
            due_date=options.due_date,
            notes=options.notes or f"{renewal_type.value} for plan: {plan.label}",
            today=today,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(subscription)
    logger.info(
        "Subscription renewed (%s)",
        renewal_type.value,
        extra=build_log_context(subscription_id=subscription.id, branch_id=subscription.branch_id),
    )

    return RenewalOutcome(
        subscription=subscription,
        invoice=invoice,
        renewal_type=renewal_type,
        start_date=start_date,
        end_date=end_date,
        transition=SubscriptionTransition(
            kind=TransitionKind.MUTATED_IN_PLACE,
            subscription_id=subscription.id,
        ),
    )


def _upgrade_invoice_notes(
    old_plan: Plan,
    new_plan: Plan,
    proration: Proration,
    options: BillingOptions,
    discount_type: DiscountType | None,
    discount_value: Decimal,
) -> str:
    notes = f"Upgrade from '{old_plan.label}' to '{new_plan.label}'"
    if proration.amount > 0:
        notes += (
            f"\nProrated amount for {proration.remaining_days} remaining days: "
            f"{proration.amount:,.2f}"
        )
    if options.notes:
        notes += f"\n{options.notes}"
    if discount_value > 0:
        type_name = discount_type.name if discount_type else "Discount"
        notes += f"\n{type_name} applied: {discount_value:,.2f}"
        if discount_type and discount_type.name == PERCENTAGE_DISCOUNT_TYPE:
            notes += f" ({options.discount_amount}%)"
    return notes


def upgrade_subscription(
    db: Session,
    subscription: MemberSubscription,
    plan: Plan,
    options: BillingOptions | None = None,
    today: date | None = None,
    actor_id: int | None = None,
) -> UpgradeOutcome:
    """
    Move a member to a different plan starting today.

    A new pending subscription is created; the old one is cancelled with a
    note pointing at the new id. Proration is credited only when the old
    subscription is in_progress and options.prorate is set.

    Raises:
        SubscriptionNotEligibleError: cancelled/rejected subscription or same plan
        PlanNotFoundError: plan is None
        BillingConfigurationError, BillingLookupError: invoice settings
    """
    options = options or BillingOptions()
    today = today or date.today()

    if plan is None:
        raise PlanNotFoundError("Plan to upgrade to not found")
    if not can_upgrade(subscription, plan):
        raise SubscriptionNotEligibleError(
            f"Subscription {subscription.id} cannot be upgraded to plan {plan.id}"
        )

    billing = resolve_billing(db, options)

    proration = Proration()
    if options.prorate and subscription.status == SubscriptionStatus.IN_PROGRESS.value:
        proration = calculate_upgrade_proration(subscription, plan, today)

    old_plan = subscription.plan

    try:
        new_subscription = MemberSubscription(
            member_id=subscription.member_id,
            plan_id=plan.id,
            start_date=today,
            end_date=plan_end_date(plan, today),
            status=SubscriptionStatus.PENDING.value,
            notes=f"Upgrade from '{old_plan.label}' (#{subscription.id})",
            branch_id=subscription.branch_id,
            created_by_id=actor_id,
        )
        db.add(new_subscription)
        db.flush()

        amounts = invoice_service.compute_upgrade_amounts(
            base=plan.price,
            proration=proration.amount,
            tax_rate=billing.tax_rate.rate,
            discount_type_name=billing.discount_type.name if billing.discount_type else None,
            discount_amount=options.discount_amount,
        )
        invoice = invoice_service.create_invoice(
            db,
            subscription=new_subscription,
            amounts=amounts,
            action=InvoiceAction.UPGRADE.value,
            rate_type_id=billing.rate_type.id,
            tax_rate_id=billing.tax_rate.id,
            discount_type_id=billing.discount_type.id if billing.discount_type else None,
            due_date=options.due_date,
            notes=_upgrade_invoice_notes(
                old_plan, plan, proration, options, billing.discount_type, amounts.discount_amount
            ),
            today=today,
        )

        subscription.status = SubscriptionStatus.CANCELLED.value
        subscription.notes = append_note(
            subscription.notes,
            f"Upgraded to new subscription #{new_subscription.id} on {today:%Y-%m-%d}",
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(new_subscription)
    db.refresh(subscription)
    logger.info(
        "Subscription %s upgraded to %s",
        subscription.id,
        new_subscription.id,
        extra=build_log_context(
            subscription_id=new_subscription.id, branch_id=new_subscription.branch_id
        ),
    )

    return UpgradeOutcome(
        subscription=new_subscription,
        previous_subscription=subscription,
        invoice=invoice,
        proration=proration,
        transition=SubscriptionTransition(
            kind=TransitionKind.REPLACED,
            subscription_id=new_subscription.id,
            previous_subscription_id=subscription.id,
        ),
    )
