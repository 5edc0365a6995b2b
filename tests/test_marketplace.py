import pytest
import pytest_asyncio
from pydantic import ValidationError

from tasukeai.database import Database, StoreWriteError
from tasukeai.marketplace import (
    AlreadyAppliedError,
    AuthenticationError,
    NotAnApplicantError,
    ShiftNotFoundError,
    ShiftNotOpenError,
    apply_to_shift,
    approve_applicant,
    authenticate,
    create_shift,
    delete_shift,
    search_users,
)
from tasukeai.models import (
    Department,
    JobRole,
    Shift,
    ShiftCreate,
    ShiftStatus,
    User,
    UserRole,
)


def shift_payload(**overrides) -> dict:
    data = {
        "title": "準夜帯フリー業務",
        "department": Department.WARD_3A,
        "job_role": JobRole.NURSE,
        "date": "2025-07-01",
        "start_time": "18:00",
        "end_time": "22:00",
        "hourly_rate_boost": 800,
    }
    data.update(overrides)
    return data


@pytest_asyncio.fixture
async def db() -> Database:
    db = Database()
    for user in (
        User(id="ADM001", name="管理者1", department=Department.OTHER, role=UserRole.HR_ADMIN, password="admin"),
        User(id="NS001", name="看護師1", department=Department.WARD_3A, role=UserRole.EMPLOYEE, password="0000"),
        User(id="AS001", name="助手1", department=Department.WARD_4A, role=UserRole.EMPLOYEE),
    ):
        await db.user_store.update(user)
    await db.shift_store.create(Shift(id="s1", **shift_payload()))
    return db


@pytest.mark.asyncio
async def test_create_shift_starts_open(db: Database) -> None:
    shift = await create_shift(db.shift_store, ShiftCreate(**shift_payload(title="新規")))

    stored = db.snapshot.find_shift(shift.id)
    assert stored.status == ShiftStatus.OPEN
    assert stored.applicant_ids == []
    assert stored.assigned_user_id is None


@pytest.mark.parametrize("end_time", ["24:00", "99:00"])
def test_shift_create_rejects_hours_past_23(end_time: str) -> None:
    with pytest.raises(ValidationError):
        ShiftCreate(**shift_payload(end_time=end_time))


def test_shift_create_validates_times() -> None:
    with pytest.raises(ValidationError):
        ShiftCreate(**shift_payload(start_time="25"))
    with pytest.raises(ValidationError):
        ShiftCreate(**shift_payload(date="2025-02-30"))
    with pytest.raises(ValidationError):
        ShiftCreate(**shift_payload(hourly_rate_boost=-1))


def test_open_shift_cannot_be_assigned() -> None:
    with pytest.raises(ValidationError):
        Shift(id="x", assigned_user_id="NS001", **shift_payload())


@pytest.mark.parametrize("status", [ShiftStatus.FILLED, ShiftStatus.COMPLETED])
def test_approved_shift_requires_assignee(status: ShiftStatus) -> None:
    with pytest.raises(ValidationError):
        Shift(id="x", status=status, **shift_payload())

    shift = Shift(id="x", status=status, assigned_user_id="NS001", **shift_payload())
    assert shift.assigned_user_id == "NS001"


@pytest.mark.asyncio
async def test_apply_appends_once(db: Database) -> None:
    await apply_to_shift(db.shift_store, db.snapshot, "s1", "NS001")
    assert db.snapshot.find_shift("s1").applicant_ids == ["NS001"]

    with pytest.raises(AlreadyAppliedError):
        await apply_to_shift(db.shift_store, db.snapshot, "s1", "NS001")
    assert db.snapshot.find_shift("s1").applicant_ids == ["NS001"]


@pytest.mark.asyncio
async def test_apply_does_not_touch_previous_snapshot(db: Database) -> None:
    before = db.snapshot.shifts

    await apply_to_shift(db.shift_store, db.snapshot, "s1", "NS001")

    assert before[0].applicant_ids == []
    assert db.snapshot.shifts is not before


@pytest.mark.asyncio
async def test_apply_unknown_shift(db: Database) -> None:
    with pytest.raises(ShiftNotFoundError):
        await apply_to_shift(db.shift_store, db.snapshot, "missing", "NS001")


@pytest.mark.asyncio
async def test_apply_store_failure_surfaces(db: Database) -> None:
    db.shift_store.fail_writes = True
    with pytest.raises(StoreWriteError):
        await apply_to_shift(db.shift_store, db.snapshot, "s1", "NS001")
    assert db.snapshot.find_shift("s1").applicant_ids == []


@pytest.mark.asyncio
async def test_approve_fills_shift(db: Database) -> None:
    await apply_to_shift(db.shift_store, db.snapshot, "s1", "NS001")
    await apply_to_shift(db.shift_store, db.snapshot, "s1", "AS001")

    await approve_applicant(db.shift_store, db.snapshot, "s1", "AS001")

    shift = db.snapshot.find_shift("s1")
    assert shift.status == ShiftStatus.FILLED
    assert shift.assigned_user_id == "AS001"
    assert shift.applicant_ids == ["NS001", "AS001"]


@pytest.mark.asyncio
async def test_approve_requires_applicant(db: Database) -> None:
    with pytest.raises(NotAnApplicantError):
        await approve_applicant(db.shift_store, db.snapshot, "s1", "NS001")
    assert db.snapshot.find_shift("s1").assigned_user_id is None


@pytest.mark.asyncio
async def test_filled_shift_rejects_applications(db: Database) -> None:
    await apply_to_shift(db.shift_store, db.snapshot, "s1", "NS001")
    await approve_applicant(db.shift_store, db.snapshot, "s1", "NS001")

    with pytest.raises(ShiftNotOpenError):
        await apply_to_shift(db.shift_store, db.snapshot, "s1", "AS001")
    with pytest.raises(ShiftNotOpenError):
        await approve_applicant(db.shift_store, db.snapshot, "s1", "NS001")


@pytest.mark.asyncio
async def test_delete_shift(db: Database) -> None:
    await delete_shift(db.shift_store, db.snapshot, "s1")
    assert db.snapshot.find_shift("s1") is None

    with pytest.raises(ShiftNotFoundError):
        await delete_shift(db.shift_store, db.snapshot, "s1")


@pytest.mark.asyncio
async def test_authenticate(db: Database) -> None:
    assert authenticate(db.snapshot, "ADM001", "admin").role == UserRole.HR_ADMIN

    with pytest.raises(AuthenticationError, match="パスワード"):
        authenticate(db.snapshot, "NS001", "wrong")
    with pytest.raises(AuthenticationError, match="ID"):
        authenticate(db.snapshot, "NS999", "0000")
    # No password stored never matches a supplied one
    with pytest.raises(AuthenticationError):
        authenticate(db.snapshot, "AS001", "")


@pytest.mark.asyncio
async def test_search_users(db: Database) -> None:
    users = db.snapshot.users
    assert [u.id for u in search_users(users, "看護師")] == ["NS001"]
    assert [u.id for u in search_users(users, "4A")] == ["AS001"]
    assert [u.id for u in search_users(users, "ADM")] == ["ADM001"]
    assert search_users(users, "none") == []
