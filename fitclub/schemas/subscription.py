"""Pydantic schemas for subscription renewals and upgrades."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fitclub.db.enums import RenewalType
from fitclub.services.subscription_service import BillingOptions, TransitionKind


class BillingRequest(BaseModel):
    """Invoice settings shared by renew and upgrade requests."""

    rate_type_id: int | None = None
    tax_rate_id: int | None = None
    discount_type_id: int | None = None
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)

    def to_options(self, prorate: bool = True) -> BillingOptions:
        return BillingOptions(
            rate_type_id=self.rate_type_id,
            tax_rate_id=self.tax_rate_id,
            discount_type_id=self.discount_type_id,
            discount_amount=self.discount_amount,
            due_date=self.due_date,
            notes=self.notes,
            prorate=prorate,
        )


class RenewRequest(BillingRequest):
    # Keep the current plan when omitted
    plan_id: int | None = None


class UpgradeRequest(BillingRequest):
    plan_id: int
    prorate: bool = True


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_id: int
    plan_id: int
    start_date: date
    end_date: date | None
    status: str
    notes: str | None
    branch_id: int
    created_by_id: int | None
    created_at: datetime


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_subscription_id: int
    reference: str
    rate_type_id: int
    tax_rate_id: int
    discount_type_id: int | None
    invoice_date: date
    from_date: date
    to_date: date | None
    due_date: date
    amount: Decimal
    proration_amount: Decimal | None
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    notes: str | None
    status: str
    action: str
    is_sent: bool


class ProrationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: Decimal
    remaining_days: int
    credit_amount: Decimal
    new_cost_for_remaining: Decimal
    old_daily_rate: Decimal | None = None
    new_daily_rate: Decimal | None = None


class TransitionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: TransitionKind
    subscription_id: int
    previous_subscription_id: int | None = None


class RenewResponse(BaseModel):
    renewal_type: RenewalType
    start_date: date
    end_date: date
    transition: TransitionRead
    subscription: SubscriptionRead
    invoice: InvoiceRead


class UpgradeResponse(BaseModel):
    transition: TransitionRead
    subscription: SubscriptionRead
    previous_subscription: SubscriptionRead
    invoice: InvoiceRead
    proration: ProrationRead
