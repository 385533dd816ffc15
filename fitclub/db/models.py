"""SQLAlchemy ORM models for reference data, members, subscriptions and imports."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, ForeignKey, Index, Integer, Numeric, String, Text,
    UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fitclub.db.base import Base, JSONType
from fitclub.db.enums import (
    DEFAULT_IMPORT_STATUS, DEFAULT_INVOICE_STATUS, DEFAULT_SUBSCRIPTION_STATUS,
    LinkStatus, MemberStatus,
)


# =============================================================================
# Reference Data
# =============================================================================

class Branch(Base):
    """A club location. Members, subscriptions and imports belong to a branch."""
    __tablename__ = "branches"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class User(Base):
    """Staff account recorded as the creator of imports and subscriptions."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class Currency(Base):
    __tablename__ = "currencies"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(3), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class DurationType(Base):
    """Unit a plan's duration is counted in (days, weeks, months, years)."""
    __tablename__ = "duration_types"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    unit: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)


class Plan(Base):
    """Membership plan: a price for a number of duration units."""
    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(primary_key=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency_id: Mapped[int | None] = mapped_column(
        ForeignKey("currencies.id", ondelete="SET NULL"),
        nullable=True
    )
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_type_id: Mapped[int] = mapped_column(
        ForeignKey("duration_types.id"),
        nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    duration_type: Mapped[DurationType] = relationship(lazy="joined")
    currency: Mapped[Currency | None] = relationship()


class RateType(Base):
    __tablename__ = "rate_types"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class TaxRate(Base):
    """Tax applied to invoices. `rate` is a percentage (15.00 means 15%)."""
    __tablename__ = "tax_rates"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rate_type_id: Mapped[int | None] = mapped_column(
        ForeignKey("rate_types.id", ondelete="SET NULL"),
        nullable=True
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)


class DiscountType(Base):
    __tablename__ = "discount_types"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class CompanySubscription(Base):
    """A corporate contract whose seats are filled by members."""
    __tablename__ = "company_subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False
    )
    plan_id: Mapped[int | None] = mapped_column(
        ForeignKey("plans.id", ondelete="SET NULL"),
        nullable=True
    )
    start_date: Mapped[date | None] = mapped_column(nullable=True)
    end_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    company: Mapped[Company] = relationship()


# =============================================================================
# Members & Subscriptions
# =============================================================================

class Member(Base):
    """
    A club member.

    reference, email and national_id_number are each unique when present;
    the constraints are what closes races between concurrent imports.
    """
    __tablename__ = "members"
    __table_args__ = (
        Index("idx_members_branch", "branch_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    reference: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    gender: Mapped[str] = mapped_column(String(10), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(nullable=True)
    national_id_number: Mapped[str | None] = mapped_column(
        String(50), unique=True, nullable=True
    )
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    # {"code": "+250", "number": "788123456"}
    phone: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=MemberStatus.ACTIVE.value, nullable=False
    )
    branch_id: Mapped[int] = mapped_column(
        ForeignKey("branches.id"),
        nullable=False
    )
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    subscriptions: Mapped[list["MemberSubscription"]] = relationship(
        back_populates="member",
        order_by="MemberSubscription.id",
    )


class MemberSubscription(Base):
    """
    A member's enrolment in a plan for a date range.

    notes is append-only: lifecycle operations add lines, never rewrite them.
    """
    __tablename__ = "member_subscriptions"
    __table_args__ = (
        Index("idx_member_subscriptions_member", "member_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False
    )
    plan_id: Mapped[int] = mapped_column(
        ForeignKey("plans.id"),
        nullable=False
    )
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_SUBSCRIPTION_STATUS.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    branch_id: Mapped[int] = mapped_column(
        ForeignKey("branches.id"),
        nullable=False
    )
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    member: Mapped["Member"] = relationship(back_populates="subscriptions")
    plan: Mapped["Plan"] = relationship()
    invoices: Mapped[list["MemberSubscriptionInvoice"]] = relationship(
        back_populates="subscription",
        cascade="all, delete-orphan",
        order_by="MemberSubscriptionInvoice.id",
    )


class MemberSubscriptionInvoice(Base):
    """Invoice raised for a new, renewed or upgraded subscription."""
    __tablename__ = "member_subscription_invoices"

    id: Mapped[int] = mapped_column(primary_key=True)
    member_subscription_id: Mapped[int] = mapped_column(
        ForeignKey("member_subscriptions.id", ondelete="CASCADE"),
        nullable=False
    )
    reference: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    rate_type_id: Mapped[int] = mapped_column(ForeignKey("rate_types.id"), nullable=False)
    tax_rate_id: Mapped[int] = mapped_column(ForeignKey("tax_rates.id"), nullable=False)
    discount_type_id: Mapped[int | None] = mapped_column(
        ForeignKey("discount_types.id", ondelete="SET NULL"),
        nullable=True
    )
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    from_date: Mapped[date] = mapped_column(nullable=False)
    to_date: Mapped[date | None] = mapped_column(nullable=True)
    due_date: Mapped[date] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    proration_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_INVOICE_STATUS.value, nullable=False
    )
    # new, renew or upgrade
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    is_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    subscription: Mapped["MemberSubscription"] = relationship(back_populates="invoices")


class CompanySubscriptionMember(Base):
    """A member's seat on a company subscription."""
    __tablename__ = "company_subscription_members"
    __table_args__ = (
        UniqueConstraint(
            "company_subscription_id", "member_id",
            name="uq_company_subscription_member"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    company_subscription_id: Mapped[int] = mapped_column(
        ForeignKey("company_subscriptions.id", ondelete="CASCADE"),
        nullable=False
    )
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=LinkStatus.ACTIVE.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


# =============================================================================
# Imports
# =============================================================================

class MemberImport(Base):
    """
    Tracks bulk member import jobs.

    Flow: upload (pending) → scheduled run (in_progress) →
    completed / completed_with_errors / failed.

    data holds the final statistics, or {"error": message} on failure.
    """
    __tablename__ = "member_imports"
    __table_args__ = (
        Index("idx_member_imports_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    file: Mapped[str] = mapped_column(String(500), nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    failed_import_file: Mapped[str | None] = mapped_column(String(500), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False)
    plan_id: Mapped[int | None] = mapped_column(
        ForeignKey("plans.id", ondelete="SET NULL"),
        nullable=True
    )
    company_subscription_id: Mapped[int | None] = mapped_column(
        ForeignKey("company_subscriptions.id", ondelete="SET NULL"),
        nullable=True
    )
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), default=DEFAULT_IMPORT_STATUS.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    logs: Mapped[list["MemberImportLog"]] = relationship(
        back_populates="member_import",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MemberImportLog.row_number",
    )


class MemberImportLog(Base):
    """One failed row of a member import, kept for review and re-submission."""
    __tablename__ = "member_import_logs"
    __table_args__ = (
        Index("idx_member_import_logs_import", "member_import_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    member_import_id: Mapped[int] = mapped_column(
        ForeignKey("member_imports.id", ondelete="CASCADE"),
        nullable=False
    )
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    log_message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    member_import: Mapped["MemberImport"] = relationship(back_populates="logs")
