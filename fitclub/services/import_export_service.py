"""CSV exports for member imports: the sample template and failed rows."""

import csv
import io
from datetime import datetime, timezone
from typing import Any

from fitclub.db.enums import ImportType
from fitclub.services import storage_service


FAILED_IMPORTS_FOLDER = "member/failed_imports"

SAMPLE_HEADINGS = [
    "Reference",
    "Name",
    "Gender",
    "National ID Number",
    "Date of Birth",
    "Phone",
    "Email",
    "Address",
]
START_DATE_HEADING = "Membership Start Date (Optional: YYYY-MM-DD)"

SAMPLE_ROWS = [
    ["", "Jean Mugisha", "Male", "1199080012345678", "1990-05-14",
     "0788123456", "jean.mugisha@example.com", "KG 11 Ave, Kigali"],
    ["", "Aline Uwase", "F", "", "1995",
     "+250722000111", "aline.uwase@example.com", ""],
    ["MBR-2025-00042", "Eric Habimana", "", "", "",
     "788555444", "", "Musanze"],
]
SAMPLE_START_DATES = ["2025-01-01", "", ""]

FAILED_ROW_HEADINGS = [
    "Reference",
    "Name",
    "Gender",
    "National ID",
    "DOB",
    "Phone",
    "Email",
    "Address",
    "Error Message",
]
FAILED_ROW_START_DATE_HEADING = "Membership Start Date"

CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")


def _csv_safe(value: Any) -> str:
    if value is None:
        return ""
    value = str(value)
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _to_csv(headings: list[str], rows: list[list[Any]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headings)
    for row in rows:
        writer.writerow([_csv_safe(value) for value in row])
    return buffer.getvalue().encode("utf-8-sig")


def failed_row_headings(import_type: ImportType | str) -> list[str]:
    headings = list(FAILED_ROW_HEADINGS)
    if ImportType(import_type) == ImportType.INDIVIDUAL:
        headings.append(FAILED_ROW_START_DATE_HEADING)
    return headings


def build_sample_template(import_type: ImportType | str) -> bytes:
    """Sample CSV showing the accepted columns and a few example rows."""
    headings = list(SAMPLE_HEADINGS)
    rows = [list(row) for row in SAMPLE_ROWS]
    if ImportType(import_type) == ImportType.INDIVIDUAL:
        headings.append(START_DATE_HEADING)
        for row, start_date in zip(rows, SAMPLE_START_DATES):
            row.append(start_date)
    # Sample values are written as-is
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headings)
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8-sig")


def build_failed_rows_csv(
    failed_rows: list[dict[str, Any]],
    import_type: ImportType | str,
) -> bytes:
    """CSV of failed rows keyed by the failed-row headings."""
    headings = failed_row_headings(import_type)
    return _to_csv(headings, [[row.get(h) for h in headings] for row in failed_rows])


def store_failed_rows(
    import_id: int,
    failed_rows: list[dict[str, Any]],
    import_type: ImportType | str,
) -> str:
    """Write the failed rows CSV to storage and return its storage key."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    storage_key = f"{FAILED_IMPORTS_FOLDER}/failed_members_{import_id}_{stamp}.csv"
    return storage_service.store_bytes(
        storage_key, build_failed_rows_csv(failed_rows, import_type)
    )
