"""
Domain models for the ward shift marketplace.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator

from tasukeai.timeutil import FormatError, parse_iso_date, parse_time_to_decimal_hours


class Department(StrEnum):
    WARD_2A = "2A病棟"
    WARD_3A = "3A病棟"
    WARD_3B = "3B病棟"
    WARD_4A = "4A病棟"
    OTHER = "その他"


# Timeline row order
WARDS = (
    Department.WARD_2A,
    Department.WARD_3A,
    Department.WARD_3B,
    Department.WARD_4A,
)


class JobRole(StrEnum):
    NURSE = "看護師"
    ASSISTANT = "看護補助者"
    OTHER = "その他"


class ShiftStatus(StrEnum):
    OPEN = "OPEN"  # Accepting applicants
    FILLED = "FILLED"  # An applicant was approved
    COMPLETED = "COMPLETED"  # Worked and closed


class UserRole(StrEnum):
    EMPLOYEE = "EMPLOYEE"
    HR_ADMIN = "HR_ADMIN"


class RangeMode(StrEnum):
    DAY = "day"
    WEEK = "week"
    TWO_WEEKS = "2weeks"

    @property
    def days(self) -> int:
        return {"day": 1, "week": 7, "2weeks": 14}[self.value]


class Shift(BaseModel):
    id: str
    title: str
    department: Department
    job_role: JobRole
    date: str  # "YYYY-MM-DD"
    start_time: str  # "HH:MM"
    end_time: str  # "HH:MM", may be earlier than start_time (overnight)
    hourly_rate_boost: int = Field(ge=0)  # Extra yen per hour
    description: str = ""
    requirements: str = ""
    status: ShiftStatus = ShiftStatus.OPEN
    applicant_ids: list[str] = []
    assigned_user_id: str | None = None  # Set only by approval

    @model_validator(mode="after")
    def _assigned_iff_approved(self) -> "Shift":
        if self.status == ShiftStatus.OPEN and self.assigned_user_id is not None:
            raise ValueError("an OPEN shift cannot have an assigned user")
        if self.status != ShiftStatus.OPEN and self.assigned_user_id is None:
            raise ValueError(f"a {self.status} shift must have an assigned user")
        return self


class User(BaseModel):
    id: str  # Also the login id
    name: str
    department: Department
    role: UserRole
    password: str | None = None


class ShiftCreate(BaseModel):
    """Admin request body for posting a new shift."""

    title: str = Field(min_length=1)
    department: Department
    job_role: JobRole
    date: str
    start_time: str
    end_time: str
    hourly_rate_boost: int = Field(default=0, ge=0)
    description: str = ""
    requirements: str = ""

    @field_validator("date")
    @classmethod
    def _iso_date(cls, value: str) -> str:
        try:
            parse_iso_date(value)
        except FormatError as e:
            raise ValueError(str(e)) from e
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _clock_time(cls, value: str) -> str:
        try:
            parse_time_to_decimal_hours(value)
        except FormatError as e:
            raise ValueError(str(e)) from e
        return value

    def to_shift(self, shift_id: str) -> Shift:
        return Shift(
            id=shift_id,
            status=ShiftStatus.OPEN,
            applicant_ids=[],
            **self.model_dump(),
        )


class UserUpdate(BaseModel):
    """Partial edit of a user record. Unset fields are left untouched."""

    name: str | None = None
    department: Department | None = None
    role: UserRole | None = None
    password: str | None = None


class PolicyDraft(BaseModel):
    title: str
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
