"""
Member import API endpoints.

Uploads are stored and queued as pending imports; the scheduled
`process-member-imports` command does the actual work.
"""
import os

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from fitclub.core.deps import get_db
from fitclub.db.enums import ImportType
from fitclub.schemas.member_import import (
    MemberImportLogRead, MemberImportLogUpdate, MemberImportRead,
)
from fitclub.services import (
    import_export_service, import_service, reference_data_service, storage_service,
)
from fitclub.services.import_service import ImportSetupError


router = APIRouter(prefix="/imports/members", tags=["imports"])

UPLOAD_FOLDER = "member/imports"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _csv_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _get_import_or_404(db: Session, import_id: int):
    import_record = import_service.get_import(db, import_id)
    if not import_record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import not found")
    return import_record


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/template")
def download_sample_template(
    type: ImportType = Query(ImportType.INDIVIDUAL),
):
    """Sample CSV with the accepted columns for the given import type."""
    return _csv_response(
        import_export_service.build_sample_template(type),
        f"member_import_sample_{type.value}.csv",
    )


@router.post("", response_model=MemberImportRead, status_code=status.HTTP_202_ACCEPTED)
async def upload_member_import(
    file: UploadFile = File(..., description="CSV or XLSX file of members"),
    branch_id: int = Form(...),
    created_by_id: int = Form(...),
    type: ImportType = Form(ImportType.INDIVIDUAL),
    plan_id: int | None = Form(None),
    company_subscription_id: int | None = Form(None),
    db: Session = Depends(get_db),
):
    """
    Queue a member import.

    Individual imports need plan_id; corporate imports need
    company_subscription_id.
    """
    filename = file.filename or ""
    ext = os.path.splitext(filename)[1].lower()
    if ext not in import_service.SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File must be a CSV or XLSX file",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is too large")

    if not reference_data_service.get_branch(db, branch_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Branch not found")
    if not reference_data_service.get_user(db, created_by_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User not found")

    if type == ImportType.INDIVIDUAL:
        if not reference_data_service.get_plan(db, plan_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A valid plan_id is required for individual imports",
            )
        company_subscription_id = None
    else:
        if not reference_data_service.get_company_subscription(db, company_subscription_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A valid company_subscription_id is required for corporate imports",
            )
        plan_id = None

    # Reject unreadable files now rather than at processing time
    try:
        import_service.parse_member_rows(content, filename)
    except ImportSetupError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    stored = storage_service.store_upload(UPLOAD_FOLDER, filename, content)
    return import_service.create_import_job(
        db,
        file=stored,
        original_filename=filename,
        import_type=type,
        branch_id=branch_id,
        created_by_id=created_by_id,
        plan_id=plan_id,
        company_subscription_id=company_subscription_id,
    )


@router.get("", response_model=list[MemberImportRead])
def list_member_imports(
    branch_id: int | None = None,
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """List recent member imports."""
    return import_service.list_imports(db, branch_id=branch_id, status=status_filter, limit=limit)


@router.get("/{import_id}", response_model=MemberImportRead)
def get_member_import(import_id: int, db: Session = Depends(get_db)):
    """Import detail including statistics or the failure message."""
    return _get_import_or_404(db, import_id)


@router.get("/{import_id}/logs", response_model=list[MemberImportLogRead])
def list_member_import_logs(
    import_id: int,
    unresolved_only: bool = False,
    db: Session = Depends(get_db),
):
    """Failed rows recorded for an import."""
    _get_import_or_404(db, import_id)
    return import_service.list_import_logs(db, import_id, unresolved_only=unresolved_only)


@router.patch("/{import_id}/logs/{log_id}", response_model=MemberImportLogRead)
def update_member_import_log(
    import_id: int,
    log_id: int,
    data: MemberImportLogUpdate,
    db: Session = Depends(get_db),
):
    """Mark a failed row as resolved (or reopen it)."""
    log = import_service.get_import_log(db, import_id, log_id)
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import log not found")
    return import_service.resolve_import_log(db, log, is_resolved=data.is_resolved)


@router.get("/{import_id}/failed-rows")
def download_failed_rows(import_id: int, db: Session = Depends(get_db)):
    """Download the failed rows CSV produced when the import finished."""
    import_record = _get_import_or_404(db, import_id)
    if not storage_service.exists(import_record.failed_import_file):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No failed rows file for this import",
        )
    return _csv_response(
        storage_service.read_bytes(import_record.failed_import_file),
        os.path.basename(import_record.failed_import_file),
    )
