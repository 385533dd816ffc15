"""Tests for the scheduled member import runner."""
from fitclub.db.enums import ImportStatus, ImportType
from fitclub.db.models import Member, MemberImport, MemberImportLog
from fitclub.jobs.member_imports import process_member_import, run_pending_member_imports
from fitclub.services import import_export_service, import_service, storage_service
from fitclub.services.import_service import MemberImporter


def _queue_import(db, branch, user, content: bytes, **kwargs) -> MemberImport:
    filename = kwargs.pop("filename", "members.csv")
    stored = storage_service.store_upload("member/imports", filename, content)
    options = {
        "import_type": ImportType.INDIVIDUAL,
        "branch_id": branch.id,
        "created_by_id": user.id,
    }
    options.update(kwargs)
    return import_service.create_import_job(
        db, file=stored, original_filename=filename, **options
    )


def test_clean_import_completes(db, branch, user, monthly_plan):
    record = _queue_import(
        db, branch, user,
        b"Name,Email\nJean Mugisha,jean@example.com\nAline Uwase,aline@example.com\n",
        plan_id=monthly_plan.id,
    )

    summary = run_pending_member_imports(db)

    db.refresh(record)
    assert summary.processed == [record.id]
    assert summary.failed == []
    assert record.status == ImportStatus.COMPLETED.value
    assert record.data == {"success_count": 2, "failed_count": 0, "total_processed": 2}
    assert record.completed_at is not None
    assert record.failed_import_file is None
    assert db.query(Member).count() == 2


def test_row_failures_complete_with_errors_and_export_rows(db, branch, user, monthly_plan):
    record = _queue_import(
        db, branch, user,
        b"Name,Email,Gender\nJean Mugisha,jean@example.com,M\nBad Row,not-an-email,F\n",
        plan_id=monthly_plan.id,
    )

    run_pending_member_imports(db)

    db.refresh(record)
    assert record.status == ImportStatus.COMPLETED_WITH_ERRORS.value
    assert record.data["failed_count"] == 1
    assert record.failed_import_file.startswith(
        f"{import_export_service.FAILED_IMPORTS_FOLDER}/failed_members_{record.id}_"
    )

    exported = storage_service.read_bytes(record.failed_import_file).decode("utf-8-sig")
    header, row = exported.splitlines()[:2]
    assert header.endswith("Error Message,Membership Start Date")
    assert row.startswith(",Bad Row,F,,,,not-an-email,")

    [log] = db.query(MemberImportLog).all()
    assert log.row_number == 3


def test_missing_branch_marks_import_failed(db, branch, user, monthly_plan):
    record = _queue_import(db, branch, user, b"Name\nJean\n", plan_id=monthly_plan.id)
    record.branch_id = 999
    db.commit()

    summary = run_pending_member_imports(db)

    db.refresh(record)
    assert summary.failed == [record.id]
    assert record.status == ImportStatus.FAILED.value
    assert record.data == {"error": "Branch not found"}
    assert db.query(Member).count() == 0


def test_missing_file_marks_import_failed(db, branch, user, monthly_plan):
    record = import_service.create_import_job(
        db,
        file="member/imports/gone.csv",
        import_type=ImportType.INDIVIDUAL,
        branch_id=branch.id,
        created_by_id=user.id,
        plan_id=monthly_plan.id,
    )

    process_member_import(db, record)

    assert record.status == ImportStatus.FAILED.value
    assert "Import file not found" in record.data["error"]


def test_corporate_import_job(db, branch, user, company_subscription):
    record = _queue_import(
        db, branch, user, b"Name\nStaff One\n",
        import_type=ImportType.CORPORATE,
        company_subscription_id=company_subscription.id,
    )

    run_pending_member_imports(db)

    db.refresh(record)
    assert record.status == ImportStatus.COMPLETED.value


def test_run_skips_while_an_import_is_in_progress(db, branch, user, monthly_plan):
    running = _queue_import(db, branch, user, b"Name\nJean\n", plan_id=monthly_plan.id)
    running.status = ImportStatus.IN_PROGRESS.value
    db.commit()
    waiting = _queue_import(db, branch, user, b"Name\nAline\n", plan_id=monthly_plan.id)

    summary = run_pending_member_imports(db)

    db.refresh(waiting)
    assert summary.skipped is True
    assert waiting.status == ImportStatus.PENDING.value


def test_pending_imports_run_oldest_first(db, branch, user, monthly_plan):
    first = _queue_import(db, branch, user, b"Name\nJean\n", plan_id=monthly_plan.id)
    second = _queue_import(db, branch, user, b"Name\nAline\n", plan_id=monthly_plan.id)

    summary = run_pending_member_imports(db)

    assert summary.processed == [first.id, second.id]


def test_unexpected_error_fails_the_job_and_the_run_continues(db, branch, user, monthly_plan, monkeypatch):
    first = _queue_import(db, branch, user, b"Name\nJean\n", plan_id=monthly_plan.id)
    second = _queue_import(db, branch, user, b"Name\nAline\n", plan_id=monthly_plan.id)
    original_collection = MemberImporter.collection

    def collection(self, rows):
        if self.import_id == first.id:
            raise RuntimeError("database went away")
        return original_collection(self, rows)

    monkeypatch.setattr(MemberImporter, "collection", collection)

    summary = run_pending_member_imports(db)

    db.refresh(first)
    db.refresh(second)
    assert summary.failed == [first.id]
    assert summary.processed == [second.id]
    assert first.status == ImportStatus.FAILED.value
    assert first.data == {"error": "database went away"}
    assert first.completed_at is not None
    assert second.status == ImportStatus.COMPLETED.value


def test_failed_rows_export_error_still_finishes_the_job(db, branch, user, monthly_plan, monkeypatch):
    def store_failed_rows(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(import_export_service, "store_failed_rows", store_failed_rows)
    record = _queue_import(
        db, branch, user,
        b"Name,Email\nBad Row,not-an-email\n",
        plan_id=monthly_plan.id,
    )

    run_pending_member_imports(db)

    db.refresh(record)
    assert record.status == ImportStatus.COMPLETED_WITH_ERRORS.value
    assert record.failed_import_file is None
    assert record.data["failed_count"] == 1
    assert record.data["export_error"] == "disk full"
    assert record.completed_at is not None

    later = _queue_import(db, branch, user, b"Name\nAline\n", plan_id=monthly_plan.id)
    summary = run_pending_member_imports(db)

    assert summary.skipped is False
    assert summary.processed == [later.id]


def test_nothing_pending(db):
    summary = run_pending_member_imports(db)

    assert summary.skipped is False
    assert summary.processed == []
    assert summary.failed == []
