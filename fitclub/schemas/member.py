"""Pydantic schemas for members and imported member rows."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from fitclub.utils.normalization import is_known_gender, normalize_email


class MemberImportRow(BaseModel):
    """One spreadsheet row of a member import, after column mapping."""

    model_config = ConfigDict(str_strip_whitespace=True)

    reference: str | None = Field(None, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    gender: str | None = None
    national_id_number: str | None = Field(None, max_length=50)
    date_of_birth: str | None = None
    phone: str | None = None
    email: EmailStr | None = None
    address: str | None = None
    membership_start_date: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v: str | None) -> str | None:
        if not is_known_gender(v):
            raise ValueError("Gender must be one of male, female, m, f or other")
        return v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str | None) -> str | None:
        return normalize_email(v)

