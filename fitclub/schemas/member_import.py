"""Pydantic schemas for member import jobs."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class MemberImportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    status: str
    original_filename: str | None
    branch_id: int
    plan_id: int | None
    company_subscription_id: int | None
    created_by_id: int
    data: dict | None
    failed_import_file: str | None
    created_at: datetime
    completed_at: datetime | None


class MemberImportLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_import_id: int
    row_number: int
    log_message: str
    data: dict | None
    is_resolved: bool
    created_at: datetime


class MemberImportLogUpdate(BaseModel):
    is_resolved: bool = True
