"""Scheduled processing of pending member imports."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from fitclub.core.structured_logging import build_log_context
from fitclub.db.enums import ImportStatus
from fitclub.db.models import MemberImport
from fitclub.services import import_export_service, import_service, storage_service
from fitclub.services.import_service import ImportServiceError, MemberImporter

logger = logging.getLogger(__name__)


@dataclass
class PendingRunSummary:
    """What one scheduled run did."""
    skipped: bool = False
    processed: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


def _finish(db: Session, import_record: MemberImport, status: ImportStatus, data: dict) -> None:
    import_record.status = status.value
    import_record.data = data
    import_record.completed_at = datetime.now(timezone.utc)
    db.commit()


def process_member_import(db: Session, import_record: MemberImport) -> MemberImport:
    """
    Run one import job to a terminal status.

    Setup, file or unexpected processing errors mark the job failed with
    {"error": message}; row errors only count against the statistics. If the
    failed rows cannot be exported the job still completes with errors and
    the reason is kept under "export_error".
    """
    context = build_log_context(
        import_id=import_record.id,
        branch_id=import_record.branch_id,
        user_id=import_record.created_by_id,
    )

    import_record.status = ImportStatus.IN_PROGRESS.value
    db.commit()
    logger.info("Starting member import job %s", import_record.id, extra=context)

    try:
        importer = MemberImporter(
            db,
            branch_id=import_record.branch_id,
            user_id=import_record.created_by_id,
            import_type=import_record.type,
            plan_id=import_record.plan_id,
            company_subscription_id=import_record.company_subscription_id,
            import_id=import_record.id,
        )
        rows = import_service.read_member_rows(storage_service.resolve_path(import_record.file))
    except (ImportServiceError, ValueError) as e:
        db.rollback()
        logger.error("Member import job %s failed: %s", import_record.id, e, extra=context)
        _finish(db, import_record, ImportStatus.FAILED, {"error": str(e)})
        return import_record

    try:
        importer.collection(rows)
    except Exception as e:
        db.rollback()
        logger.exception("Member import job %s aborted", import_record.id, extra=context)
        _finish(db, import_record, ImportStatus.FAILED, {"error": str(e)})
        return import_record
    statistics = importer.get_import_statistics()

    if statistics["failed_count"] == 0:
        _finish(db, import_record, ImportStatus.COMPLETED, statistics)
    else:
        try:
            import_record.failed_import_file = import_export_service.store_failed_rows(
                import_record.id, importer.get_failed_rows(), import_record.type
            )
        except OSError as e:
            logger.exception(
                "Could not export failed rows for member import job %s",
                import_record.id,
                extra=context,
            )
            statistics["export_error"] = str(e)
        _finish(db, import_record, ImportStatus.COMPLETED_WITH_ERRORS, statistics)

    logger.info(
        "Member import job %s finished with status %s",
        import_record.id,
        import_record.status,
        extra=context,
    )
    return import_record


def run_pending_member_imports(db: Session) -> PendingRunSummary:
    """
    Process every pending import, oldest first.

    Does nothing while another import is in progress, so overlapping
    scheduler runs never work the same batch twice.
    """
    summary = PendingRunSummary()

    in_progress = db.query(MemberImport).filter(
        MemberImport.status == ImportStatus.IN_PROGRESS.value
    ).first()
    if in_progress:
        logger.warning(
            "Member import %s is still in progress, skipping this run", in_progress.id
        )
        summary.skipped = True
        return summary

    pending = db.query(MemberImport).filter(
        MemberImport.status == ImportStatus.PENDING.value
    ).order_by(MemberImport.created_at, MemberImport.id).all()

    if not pending:
        logger.info("No pending member imports")
        return summary

    for import_record in pending:
        process_member_import(db, import_record)
        if import_record.status == ImportStatus.FAILED.value:
            summary.failed.append(import_record.id)
        else:
            summary.processed.append(import_record.id)

    return summary
