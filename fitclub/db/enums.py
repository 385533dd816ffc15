"""Enum definitions for application constants."""

from enum import Enum


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class DurationUnit(str, Enum):
    """Unit of a plan's duration type."""
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


class SubscriptionStatus(str, Enum):
    """
    Member subscription status.

    pending → in_progress (payment confirmed) → expired (end date passed).
    cancelled is terminal and is set when a subscription is upgraded away.
    """
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class RenewalType(str, Enum):
    NEW = "new"
    EXPIRED_RENEWAL = "expired_renewal"
    EARLY_RENEWAL = "early_renewal"
    PRE_RENEWAL = "pre_renewal"


class InvoiceAction(str, Enum):
    NEW = "new"
    RENEW = "renew"
    UPGRADE = "upgrade"


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class ImportStatus(str, Enum):
    """Member import job lifecycle."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


class ImportType(str, Enum):
    INDIVIDUAL = "individual"
    CORPORATE = "corporate"


class LinkStatus(str, Enum):
    """Status of a member's seat on a company subscription."""
    ACTIVE = "active"
    INACTIVE = "inactive"


DEFAULT_SUBSCRIPTION_STATUS = SubscriptionStatus.PENDING
DEFAULT_IMPORT_STATUS = ImportStatus.PENDING
DEFAULT_INVOICE_STATUS = InvoiceStatus.PENDING

# Discount type whose amount is a percentage of the base; any other type is flat
PERCENTAGE_DISCOUNT_TYPE = "Percentage"
