"""Invoice service - amount computation and invoice persistence.

Renewal and upgrade invoices deliberately use different formulas:

- Renewal: tax on the plan price; discount on the plan price.
- Upgrade: discount on (price + proration); tax on the discounted amount.

The two formulas are not interchangeable.
"""

import random
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from fitclub.core.config import settings
from fitclub.db.enums import DEFAULT_INVOICE_STATUS, PERCENTAGE_DISCOUNT_TYPE
from fitclub.db.models import MemberSubscription, MemberSubscriptionInvoice

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """Round to cents, half up."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class InvoiceAmounts:
    """Computed money fields of an invoice."""
    amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    proration_amount: Decimal | None = None


def _discount_value(
    base: Decimal,
    discount_type_name: str | None,
    discount_amount: Decimal | None,
) -> Decimal:
    """Discount applies only with a discount type and a positive amount."""
    if not discount_type_name or discount_amount is None or discount_amount <= 0:
        return ZERO
    if discount_type_name == PERCENTAGE_DISCOUNT_TYPE:
        return to_money(base * Decimal(str(discount_amount)) / HUNDRED)
    return to_money(discount_amount)


def compute_renewal_amounts(
    base: Decimal,
    tax_rate: Decimal,
    discount_type_name: str | None = None,
    discount_amount: Decimal | None = None,
) -> InvoiceAmounts:
    """
    Renewal invoice: tax on base, discount on base (capped at base).

    total = base + tax - discount
    """
    base = to_money(base)
    tax = to_money(base * Decimal(str(tax_rate)) / HUNDRED)
    discount = min(_discount_value(base, discount_type_name, discount_amount), base)
    return InvoiceAmounts(
        amount=base,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=to_money(base + tax - discount),
    )


def compute_upgrade_amounts(
    base: Decimal,
    proration: Decimal,
    tax_rate: Decimal,
    discount_type_name: str | None = None,
    discount_amount: Decimal | None = None,
) -> InvoiceAmounts:
    """
    Upgrade invoice: discount on base + proration, tax on the discounted amount.

    total = (base + proration) + tax - discount
    """
    base = to_money(base)
    proration = to_money(proration)
    total_before_tax = base + proration
    discount = min(
        _discount_value(total_before_tax, discount_type_name, discount_amount),
        total_before_tax,
    )
    taxable = total_before_tax - discount
    tax = to_money(taxable * Decimal(str(tax_rate)) / HUNDRED)
    return InvoiceAmounts(
        amount=base,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=to_money(total_before_tax + tax - discount),
        proration_amount=proration,
    )


def generate_invoice_reference(subscription_id: int, today: date | None = None) -> str:
    """INV-<YYYYMMDD>-MS<6-digit subscription id>-<4-digit random>."""
    today = today or date.today()
    return (
        f"INV-{today:%Y%m%d}-MS{subscription_id:06d}-"
        f"{random.randint(1, 9999):04d}"
    )


def create_invoice(
    db: Session,
    *,
    subscription: MemberSubscription,
    amounts: InvoiceAmounts,
    action: str,
    rate_type_id: int,
    tax_rate_id: int,
    discount_type_id: int | None = None,
    due_date: date | None = None,
    notes: str | None = None,
    today: date | None = None,
) -> MemberSubscriptionInvoice:
    """Persist a pending, unsent invoice covering the subscription's dates."""
    today = today or date.today()
    invoice = MemberSubscriptionInvoice(
        member_subscription_id=subscription.id,
        reference=generate_invoice_reference(subscription.id, today),
        rate_type_id=rate_type_id,
        tax_rate_id=tax_rate_id,
        discount_type_id=discount_type_id,
        invoice_date=today,
        from_date=subscription.start_date,
        to_date=subscription.end_date,
        due_date=due_date or today + timedelta(days=settings.INVOICE_DUE_DAYS),
        amount=amounts.amount,
        proration_amount=amounts.proration_amount,
        tax_amount=amounts.tax_amount,
        discount_amount=amounts.discount_amount,
        total_amount=amounts.total_amount,
        notes=notes,
        status=DEFAULT_INVOICE_STATUS.value,
        action=action,
        is_sent=False,
    )
    db.add(invoice)
    db.flush()
    return invoice
