"""Member import service for bulk member creation.

Features:
- Parse CSV or XLSX with column mapping
- Validate each row with MemberImportRow
- Dedupe by reference, email and national ID (pre-check + unique constraints)
- One transaction per row: a bad row never affects the others
- Failed rows logged to member_import_logs and kept for export
"""

import csv
import io
import logging
import os
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fitclub.core.config import settings
from fitclub.core.structured_logging import build_log_context
from fitclub.db.enums import ImportStatus, ImportType, LinkStatus
from fitclub.db.models import (
    CompanySubscriptionMember, Member, MemberImport, MemberImportLog,
)
from fitclub.schemas.member import MemberImportRow
from fitclub.services import member_service, reference_data_service, subscription_service
from fitclub.services.import_export_service import FAILED_ROW_START_DATE_HEADING
from fitclub.utils.datetime_parsing import parse_flexible_date
from fitclub.utils.normalization import normalize_gender, normalize_phone, split_full_name

logger = logging.getLogger(__name__)


class ImportServiceError(Exception):
    """Base exception for member import errors."""
    pass


class ImportSetupError(ImportServiceError):
    """The import cannot start: branch, user or company subscription missing, or unreadable file."""
    pass


class ImportRowError(ImportServiceError):
    """A single row cannot be created."""
    pass


# =============================================================================
# Column Mapping
# =============================================================================

# Keys are normalized header names (see normalize_column_name)
COLUMN_MAPPING = {
    # reference
    "reference": "reference",
    "member_reference": "reference",
    "ref": "reference",
    # name variations
    "name": "name",
    "full_name": "name",
    "fullname": "name",
    "member_name": "name",
    "first_name": "first_name",
    "firstname": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "surname": "last_name",
    # gender
    "gender": "gender",
    "sex": "gender",
    # national id variations
    "national_id_number": "national_id_number",
    "national_id": "national_id_number",
    "nid": "national_id_number",
    "id_number": "national_id_number",
    # date of birth variations
    "date_of_birth": "date_of_birth",
    "dob": "date_of_birth",
    "birth_date": "date_of_birth",
    "birthdate": "date_of_birth",
    # phone variations
    "phone": "phone",
    "phone_number": "phone",
    "phonenumber": "phone",
    "mobile": "phone",
    "telephone": "phone",
    "phone_code": "phone_code",
    # email variations
    "email": "email",
    "email_address": "email",
    "emailaddress": "email",
    # address
    "address": "address",
    # membership start date
    "membership_start_date": "membership_start_date",
    "membership_start_date_optional_yyyy_mm_dd": "membership_start_date",
    "start_date": "membership_start_date",
}

SUPPORTED_EXTENSIONS = {".csv", ".xlsx", ".xlsm"}


def normalize_column_name(col: Any) -> str:
    """Normalize column name for matching: lower case, non-alphanumerics to '_'."""
    if col is None:
        return ""
    return re.sub(r"[^a-z0-9]+", "_", str(col).strip().lower()).strip("_")


def map_columns(headers: list[Any]) -> dict[int, str]:
    """
    Map column indices to field names.

    Returns:
        Dict of {column_index: field_name}
    """
    mapping = {}
    for i, header in enumerate(headers):
        normalized = normalize_column_name(header)
        if normalized in COLUMN_MAPPING:
            mapping[i] = COLUMN_MAPPING[normalized]
    return mapping


# =============================================================================
# File Parsing
# =============================================================================

def _cell_to_text(value: Any) -> str | None:
    """Spreadsheet cell to trimmed text; dates become ISO strings."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def _row_to_dict(row: Iterable[Any], column_map: dict[int, str]) -> dict[str, Any]:
    """Convert a row to a dict using the column mapping, dropping empty cells."""
    values = list(row)
    result = {}
    for idx, field_name in column_map.items():
        if idx < len(values):
            value = _cell_to_text(values[idx])
            if value is not None:
                result[field_name] = value
    return _combine_legacy_columns(result)


def _combine_legacy_columns(row: dict[str, Any]) -> dict[str, Any]:
    """Support older templates with split name and phone columns."""
    if not row.get("name") and (row.get("first_name") or row.get("last_name")):
        row["name"] = " ".join(
            part for part in (row.get("first_name"), row.get("last_name")) if part
        )
    phone_code = row.pop("phone_code", None)
    if phone_code and row.get("phone"):
        row["phone"] = f"+{phone_code.lstrip('+')}{row['phone']}"
    row.pop("first_name", None)
    row.pop("last_name", None)
    return row


def parse_csv_file(file_content: bytes | str) -> tuple[list[str], list[list[str]]]:
    """
    Parse CSV content into headers and rows.

    Returns:
        (headers, rows)
    """
    if isinstance(file_content, bytes):
        file_content = file_content.decode("utf-8-sig")  # Handle BOM

    reader = csv.reader(io.StringIO(file_content))
    rows = list(reader)

    if not rows:
        return [], []

    return rows[0], rows[1:]


def parse_xlsx_file(file_content: bytes) -> tuple[list[Any], list[tuple]]:
    """Parse the first worksheet of an XLSX workbook into headers and rows."""
    workbook = openpyxl.load_workbook(io.BytesIO(file_content), read_only=True, data_only=True)
    try:
        rows = list(workbook.worksheets[0].iter_rows(values_only=True))
    finally:
        workbook.close()

    if not rows:
        return [], []

    return list(rows[0]), rows[1:]


def parse_member_rows(file_content: bytes, filename: str) -> list[dict[str, Any]]:
    """
    Parse an uploaded member file into rows keyed by canonical field names.

    Raises:
        ImportSetupError: unsupported extension or unreadable file
    """
    ext = os.path.splitext(filename)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ImportSetupError(f"Unsupported import file type '{ext}'")

    try:
        if ext == ".csv":
            headers, rows = parse_csv_file(file_content)
        else:
            headers, rows = parse_xlsx_file(file_content)
    except (
        UnicodeDecodeError, csv.Error, zipfile.BadZipFile, InvalidFileException,
        OSError, ValueError, KeyError,
    ) as e:
        raise ImportSetupError(f"Could not read import file: {e}") from e

    if not headers:
        return []

    column_map = map_columns(headers)
    return [_row_to_dict(row, column_map) for row in rows]


def read_member_rows(path: str) -> list[dict[str, Any]]:
    """Read a stored member file from disk."""
    try:
        with open(path, "rb") as f:
            content = f.read()
    except OSError as e:
        raise ImportSetupError(f"Import file not found: {path}") from e
    return parse_member_rows(content, path)


# =============================================================================
# Row Results
# =============================================================================

@dataclass
class RowSuccess:
    row_number: int
    member_id: int
    reference: str


@dataclass
class RowFailure:
    row_number: int
    data: dict[str, Any]
    error: str


RowResult = RowSuccess | RowFailure


@dataclass
class ImportReport:
    """Outcome of every non-blank row, in input order."""
    results: list[RowResult] = field(default_factory=list)

    def add(self, result: RowResult) -> None:
        self.results.append(result)

    @property
    def successes(self) -> list[RowSuccess]:
        return [r for r in self.results if isinstance(r, RowSuccess)]

    @property
    def failures(self) -> list[RowFailure]:
        return [r for r in self.results if isinstance(r, RowFailure)]

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def total_processed(self) -> int:
        return len(self.results)

    def statistics(self) -> dict[str, int]:
        return {
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "total_processed": self.total_processed,
        }


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(messages)


def normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Key a row by canonical field names and turn cells into text."""
    result = {}
    for key, value in row.items():
        column = normalize_column_name(key)
        text = _cell_to_text(value)
        if text is not None:
            result[COLUMN_MAPPING.get(column, column)] = text
    return _combine_legacy_columns(result)


# =============================================================================
# Importer
# =============================================================================

class MemberImporter:
    """
    Creates members (and their subscription or company seat) row by row.

    Setup resolves branch, user and, for corporate imports, the company
    subscription; any of them missing raises ImportSetupError before a row
    is touched. After that, collection() never raises for row problems.
    """

    def __init__(
        self,
        db: Session,
        *,
        branch_id: int,
        user_id: int,
        import_type: ImportType | str = ImportType.INDIVIDUAL,
        plan_id: int | None = None,
        company_subscription_id: int | None = None,
        import_id: int | None = None,
        today: date | None = None,
    ):
        self.db = db
        self.import_type = ImportType(import_type)
        self.plan_id = plan_id
        self.import_id = import_id
        self.today = today or date.today()

        self.branch = reference_data_service.get_branch(db, branch_id)
        if not self.branch:
            raise ImportSetupError("Branch not found")

        self.user = reference_data_service.get_user(db, user_id)
        if not self.user:
            raise ImportSetupError("User not found")

        self.company_subscription = None
        if self.import_type == ImportType.CORPORATE:
            self.company_subscription = reference_data_service.get_company_subscription(
                db, company_subscription_id
            )
            if not self.company_subscription:
                raise ImportSetupError("Company subscription not found")

        self.report = ImportReport()
        self._failed_rows: list[dict[str, Any]] = []

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def collection(self, rows: Iterable[Mapping[str, Any]]) -> ImportReport:
        """Process rows in order. Row numbers start at 2 (row 1 is the header)."""
        logger.info(
            "Starting member import",
            extra=build_log_context(
                import_id=self.import_id, branch_id=self.branch.id, user_id=self.user.id
            ),
        )
        for row_number, row in enumerate(rows, start=2):
            result = self.process_row(row_number, row)
            if result is None:
                continue
            self.report.add(result)
            if isinstance(result, RowFailure):
                self._record_failure(result)

        logger.info(
            "Member import finished: %s",
            self.report.statistics(),
            extra=build_log_context(import_id=self.import_id),
        )
        return self.report

    def get_import_statistics(self) -> dict[str, int]:
        return self.report.statistics()

    def get_failed_rows(self) -> list[dict[str, Any]]:
        """Failed rows shaped for the failed-rows export."""
        return list(self._failed_rows)

    # -------------------------------------------------------------------------
    # Row processing
    # -------------------------------------------------------------------------

    def process_row(self, row_number: int, row: Mapping[str, Any]) -> RowResult | None:
        """Validate and create one row. Returns None for blank rows."""
        raw = normalize_row(row)
        name = raw.get("name")
        if name is None or not str(name).strip():
            return None

        try:
            data = MemberImportRow.model_validate(raw)
        except ValidationError as e:
            return RowFailure(row_number, raw, _format_validation_error(e))

        start_date = None
        if self.import_type == ImportType.INDIVIDUAL and data.membership_start_date:
            start_date = parse_flexible_date(data.membership_start_date)
            if start_date is None:
                return RowFailure(
                    row_number, raw,
                    "membership_start_date: Membership start date must be a valid date (YYYY-MM-DD)",
                )

        conflict = member_service.find_conflict(
            self.db,
            reference=data.reference,
            email=data.email,
            national_id_number=data.national_id_number,
        )
        if conflict:
            return RowFailure(row_number, raw, conflict)

        try:
            result = self._create_row(row_number, data, start_date)
            self.db.commit()
            return result
        except IntegrityError as e:
            self.db.rollback()
            message = member_service.conflict_message_from_error(e) or "Duplicate member data"
            return RowFailure(row_number, raw, message)
        except Exception as e:
            # Any other failure only costs this row
            self.db.rollback()
            logger.exception(
                "Unexpected error importing row",
                extra=build_log_context(import_id=self.import_id, row_number=row_number),
            )
            return RowFailure(row_number, raw, str(e) or e.__class__.__name__)

    def _create_row(
        self,
        row_number: int,
        data: MemberImportRow,
        start_date: date | None,
    ) -> RowSuccess:
        reference = data.reference or member_service.generate_member_reference(self.db, self.today)
        first_name, last_name = split_full_name(data.name)

        date_of_birth = parse_flexible_date(data.date_of_birth)
        if data.date_of_birth and date_of_birth is None:
            logger.warning(
                "Unreadable date of birth, stored empty",
                extra=build_log_context(import_id=self.import_id, row_number=row_number),
            )

        member = member_service.create_member(
            self.db,
            reference=reference,
            first_name=first_name,
            last_name=last_name,
            gender=normalize_gender(data.gender),
            branch_id=self.branch.id,
            created_by_id=self.user.id,
            date_of_birth=date_of_birth,
            national_id_number=data.national_id_number,
            email=data.email,
            phone=normalize_phone(data.phone, settings.DEFAULT_PHONE_COUNTRY_CODE),
            address=data.address,
        )

        if self.import_type == ImportType.INDIVIDUAL:
            self._create_subscription(member, start_date)
        else:
            self._attach_to_company(member)

        return RowSuccess(row_number=row_number, member_id=member.id, reference=member.reference)

    def _create_subscription(self, member: Member, start_date: date | None) -> None:
        plan = reference_data_service.get_plan(self.db, self.plan_id)
        if not plan:
            raise ImportRowError("Plan not found")
        subscription_service.create_subscription(
            self.db,
            member=member,
            plan=plan,
            start_date=start_date or self.today,
            branch_id=self.branch.id,
            created_by_id=self.user.id,
        )

    def _attach_to_company(self, member: Member) -> None:
        link = self.db.query(CompanySubscriptionMember).filter(
            CompanySubscriptionMember.company_subscription_id == self.company_subscription.id,
            CompanySubscriptionMember.member_id == member.id,
        ).first()
        if link:
            if link.status != LinkStatus.ACTIVE.value:
                link.status = LinkStatus.ACTIVE.value
        else:
            self.db.add(CompanySubscriptionMember(
                company_subscription_id=self.company_subscription.id,
                member_id=member.id,
                status=LinkStatus.ACTIVE.value,
            ))
        self.db.flush()

    def _record_failure(self, failure: RowFailure) -> None:
        logger.info(
            "Row failed validation",
            extra=build_log_context(import_id=self.import_id, row_number=failure.row_number),
        )
        data = failure.data
        failed_row = {
            "Reference": data.get("reference"),
            "Name": data.get("name"),
            "Gender": data.get("gender"),
            "National ID": data.get("national_id_number"),
            "DOB": data.get("date_of_birth"),
            "Phone": data.get("phone"),
            "Email": data.get("email"),
            "Address": data.get("address"),
            "Error Message": failure.error,
        }
        if self.import_type == ImportType.INDIVIDUAL:
            failed_row[FAILED_ROW_START_DATE_HEADING] = data.get("membership_start_date")
        self._failed_rows.append(failed_row)

        if self.import_id:
            self.db.add(MemberImportLog(
                member_import_id=self.import_id,
                row_number=failure.row_number,
                log_message=f"Error in row {failure.row_number}: {failure.error}",
                data=data,
                is_resolved=False,
            ))
            self.db.commit()


# =============================================================================
# Import Job Records
# =============================================================================

def create_import_job(
    db: Session,
    *,
    file: str,
    import_type: ImportType | str,
    branch_id: int,
    created_by_id: int,
    original_filename: str | None = None,
    plan_id: int | None = None,
    company_subscription_id: int | None = None,
) -> MemberImport:
    """Create a pending import job record."""
    import_record = MemberImport(
        file=file,
        original_filename=original_filename,
        type=ImportType(import_type).value,
        branch_id=branch_id,
        plan_id=plan_id,
        company_subscription_id=company_subscription_id,
        created_by_id=created_by_id,
        status=ImportStatus.PENDING.value,
    )
    db.add(import_record)
    db.commit()
    db.refresh(import_record)
    return import_record


def get_import(db: Session, import_id: int) -> MemberImport | None:
    return db.query(MemberImport).filter(MemberImport.id == import_id).first()


def list_imports(
    db: Session,
    branch_id: int | None = None,
    status: str | None = None,
    limit: int = 50,
) -> list[MemberImport]:
    """List recent imports, newest first."""
    query = db.query(MemberImport)
    if branch_id is not None:
        query = query.filter(MemberImport.branch_id == branch_id)
    if status:
        query = query.filter(MemberImport.status == status)
    return query.order_by(MemberImport.created_at.desc(), MemberImport.id.desc()).limit(limit).all()


def list_import_logs(
    db: Session,
    import_id: int,
    unresolved_only: bool = False,
) -> list[MemberImportLog]:
    query = db.query(MemberImportLog).filter(MemberImportLog.member_import_id == import_id)
    if unresolved_only:
        query = query.filter(MemberImportLog.is_resolved.is_(False))
    return query.order_by(MemberImportLog.row_number).all()


def get_import_log(db: Session, import_id: int, log_id: int) -> MemberImportLog | None:
    return db.query(MemberImportLog).filter(
        MemberImportLog.id == log_id,
        MemberImportLog.member_import_id == import_id,
    ).first()


def resolve_import_log(
    db: Session,
    log: MemberImportLog,
    is_resolved: bool = True,
) -> MemberImportLog:
    log.is_resolved = is_resolved
    db.commit()
    db.refresh(log)
    return log
