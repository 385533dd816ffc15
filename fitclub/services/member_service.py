"""Member service - reference generation, duplicate checks and creation."""

import random
from datetime import date

from sqlalchemy.orm import Session

from fitclub.core.config import settings
from fitclub.db.models import Member


DUPLICATE_REFERENCE = "Member with this reference already exists"
DUPLICATE_EMAIL = "Member with this email already exists"
DUPLICATE_NATIONAL_ID = "Member with this national ID number already exists"

# Column name -> duplicate message, used to explain unique-constraint violations
UNIQUE_COLUMN_MESSAGES = {
    "reference": DUPLICATE_REFERENCE,
    "email": DUPLICATE_EMAIL,
    "national_id_number": DUPLICATE_NATIONAL_ID,
}

# Random draws tried before giving up on a free reference for the year
REFERENCE_ATTEMPTS = 50


class MemberReferenceError(Exception):
    """No unused member reference could be drawn."""
    pass


def generate_member_reference(db: Session, today: date | None = None) -> str:
    """
    Generate an unused member reference: MBR-<year>-<5 digits>.

    Draws again while the candidate is taken. The unique constraint on
    members.reference still guards against a concurrent draw of the same value.

    Raises:
        MemberReferenceError: every draw was already taken
    """
    year = (today or date.today()).year
    for _ in range(REFERENCE_ATTEMPTS):
        candidate = (
            f"{settings.MEMBER_REFERENCE_PREFIX}-{year}-"
            f"{random.randint(1, 99999):05d}"
        )
        exists = db.query(Member.id).filter(Member.reference == candidate).first()
        if not exists:
            return candidate
    raise MemberReferenceError(
        f"Could not generate a free member reference for {year} "
        f"after {REFERENCE_ATTEMPTS} attempts"
    )


def find_conflict(
    db: Session,
    reference: str | None = None,
    email: str | None = None,
    national_id_number: str | None = None,
) -> str | None:
    """Return the duplicate message for the first field already in use, else None."""
    if reference and db.query(Member.id).filter(Member.reference == reference).first():
        return DUPLICATE_REFERENCE
    if email and db.query(Member.id).filter(Member.email == email).first():
        return DUPLICATE_EMAIL
    if national_id_number and db.query(Member.id).filter(
        Member.national_id_number == national_id_number
    ).first():
        return DUPLICATE_NATIONAL_ID
    return None


def conflict_message_from_error(error: Exception) -> str | None:
    """
    Map a unique-constraint violation to its duplicate message, if recognisable.

    Only the constraint or column name is matched, never the offending value:
    PostgreSQL reports `members_email_key` and `Key (email)=(...)`, SQLite
    reports `members.email`.
    """
    detail = str(getattr(error, "orig", error)).lower()
    for column, message in UNIQUE_COLUMN_MESSAGES.items():
        markers = (f"members_{column}_key", f"key ({column})=", f"members.{column}")
        if any(marker in detail for marker in markers):
            return message
    return None


def create_member(
    db: Session,
    *,
    reference: str,
    first_name: str,
    last_name: str,
    gender: str,
    branch_id: int,
    created_by_id: int | None = None,
    date_of_birth: date | None = None,
    national_id_number: str | None = None,
    email: str | None = None,
    phone: dict | None = None,
    address: str | None = None,
) -> Member:
    """Add a member and flush so it has an id. The caller owns the commit."""
    member = Member(
        reference=reference,
        first_name=first_name,
        last_name=last_name,
        gender=gender,
        branch_id=branch_id,
        created_by_id=created_by_id,
        date_of_birth=date_of_birth,
        national_id_number=national_id_number,
        email=email,
        phone=phone,
        address=address,
    )
    db.add(member)
    db.flush()
    return member
