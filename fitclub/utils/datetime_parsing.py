"""Date parsing and calendar arithmetic helpers for imports and subscriptions."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from fitclub.db.enums import DurationUnit

# Excel's 1900 date system counts days from 1899-12-30 (it treats 1900 as a leap year)
EXCEL_EPOCH = date(1899, 12, 30)
# Largest serial Excel accepts (9999-12-31)
EXCEL_MAX_SERIAL = 2958465

DATE_FORMATS: list[str] = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
]


def parse_flexible_date(value: object) -> date | None:
    """
    Parse a spreadsheet cell into a date.

    Accepts date/datetime objects, Excel serial numbers, a bare 4-digit year
    (read as 1 January of that year) and common textual formats.
    Returns None when the value is blank or cannot be read.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_number(value)

    text = str(value).strip()
    if not text:
        return None

    if re.fullmatch(r"\d+(\.\d+)?", text):
        return _from_number(float(text))

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _from_number(number: float) -> date | None:
    number = float(number)
    if number.is_integer() and 1000 <= number <= 9999:
        return date(int(number), 1, 1)
    if 0 < number <= EXCEL_MAX_SERIAL:
        return EXCEL_EPOCH + timedelta(days=int(number))
    return None


# =============================================================================
# Calendar arithmetic
# =============================================================================

def add_duration(start: date, unit: str, duration: int) -> date:
    """
    Add `duration` units to `start` on the calendar.

    Months and years clamp to the end of the month:
    2024-01-31 + 1 month = 2024-02-29, 2024-02-29 + 1 year = 2025-02-28.

    Raises:
        ValueError: unknown unit
    """
    unit = str(unit).lower()
    if unit == DurationUnit.DAYS.value:
        return start + timedelta(days=duration)
    if unit == DurationUnit.WEEKS.value:
        return start + timedelta(weeks=duration)
    if unit == DurationUnit.MONTHS.value:
        return start + relativedelta(months=duration)
    if unit == DurationUnit.YEARS.value:
        return start + relativedelta(years=duration)
    raise ValueError(f"Unknown duration unit: {unit}")


# Fixed approximation used for daily-rate proration only
DAYS_PER_UNIT = {
    DurationUnit.DAYS.value: 1,
    DurationUnit.WEEKS.value: 7,
    DurationUnit.MONTHS.value: 30,
    DurationUnit.YEARS.value: 365,
}


def duration_to_days(duration: int, unit: str) -> int:
    """Approximate a plan duration in days (month = 30, year = 365)."""
    return duration * DAYS_PER_UNIT.get(str(unit).lower(), 1)
