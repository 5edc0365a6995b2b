from pathlib import Path

import pytest

from tasukeai.database import (
    Database,
    InMemoryShiftStore,
    InMemoryUserStore,
    LiveCollection,
    Snapshot,
    StoreWriteError,
    generate_seed_users,
    load_sample_data,
)
from tasukeai.models import Department, JobRole, Shift, User, UserRole

SAMPLE_DATA = Path(__file__).parent.parent / "sample_data.json"


def make_shift(shift_id: str = "s1", **overrides) -> Shift:
    data = {
        "id": shift_id,
        "title": "入浴介助ヘルプ",
        "department": Department.WARD_2A,
        "job_role": JobRole.ASSISTANT,
        "date": "2025-07-01",
        "start_time": "09:00",
        "end_time": "12:00",
        "hourly_rate_boost": 500,
    }
    data.update(overrides)
    return Shift(**data)


def test_subscribe_pushes_current_snapshot_immediately() -> None:
    collection: LiveCollection[str, Shift] = LiveCollection()
    received = []

    collection.subscribe(received.append)

    assert received == [()]


def test_unsubscribe_stops_updates() -> None:
    collection: LiveCollection[str, Shift] = LiveCollection()
    received = []
    unsubscribe = collection.subscribe(received.append)

    unsubscribe()
    collection.put("s1", make_shift())
    collection.publish()

    assert received == [()]
    unsubscribe()  # second call is harmless


@pytest.mark.asyncio
async def test_create_pushes_full_snapshot() -> None:
    store = InMemoryShiftStore()
    received = []
    store.subscribe(received.append)

    await store.create(make_shift("s1"))
    await store.create(make_shift("s2"))

    assert len(received) == 3
    assert [s.id for s in received[-1]] == ["s1", "s2"]


@pytest.mark.asyncio
async def test_snapshots_are_isolated_from_store() -> None:
    store = InMemoryShiftStore()
    received = []
    store.subscribe(received.append)
    await store.create(make_shift("s1"))

    received[-1][0].applicant_ids.append("NS001")

    assert store.shifts.get("s1").applicant_ids == []


@pytest.mark.asyncio
async def test_update_keeps_collection_order() -> None:
    store = InMemoryShiftStore()
    snapshot = Snapshot(store, InMemoryUserStore())
    await store.create(make_shift("s1"))
    await store.create(make_shift("s2"))

    await store.update(make_shift("s1", title="changed"))

    assert [s.id for s in snapshot.shifts] == ["s1", "s2"]
    assert snapshot.find_shift("s1").title == "changed"


@pytest.mark.asyncio
async def test_update_missing_shift_fails() -> None:
    store = InMemoryShiftStore()
    with pytest.raises(StoreWriteError):
        await store.update(make_shift("nope"))


@pytest.mark.asyncio
async def test_delete_publishes() -> None:
    store = InMemoryShiftStore()
    snapshot = Snapshot(store, InMemoryUserStore())
    await store.create(make_shift("s1"))

    await store.delete("s1")

    assert snapshot.shifts == ()
    assert snapshot.find_shift("s1") is None


@pytest.mark.asyncio
async def test_failed_write_leaves_snapshot_untouched() -> None:
    store = InMemoryShiftStore()
    snapshot = Snapshot(store, InMemoryUserStore())
    await store.create(make_shift("s1"))
    before = snapshot.shifts

    store.fail_writes = True
    with pytest.raises(StoreWriteError):
        await store.delete("s1")

    assert snapshot.shifts is before


@pytest.mark.asyncio
async def test_snapshot_close_unsubscribes() -> None:
    store = InMemoryShiftStore()
    snapshot = Snapshot(store, InMemoryUserStore())
    snapshot.close()

    await store.create(make_shift("s1"))

    assert snapshot.shifts == ()


@pytest.mark.asyncio
async def test_users_sorted_by_id() -> None:
    store = InMemoryUserStore()
    snapshot = Snapshot(InMemoryShiftStore(), store)

    for user_id in ("NS002", "ADM001", "AS001"):
        await store.update(
            User(id=user_id, name=user_id, department=Department.OTHER, role=UserRole.EMPLOYEE)
        )

    assert [u.id for u in snapshot.users] == ["ADM001", "AS001", "NS002"]


@pytest.mark.asyncio
async def test_user_update_merges() -> None:
    store = InMemoryUserStore()
    await store.update(
        User(
            id="NS001",
            name="看護師1",
            department=Department.WARD_3A,
            role=UserRole.EMPLOYEE,
            password="0000",
        )
    )

    await store.update(
        User(id="NS001", name="看護師1", department=Department.WARD_4A, role=UserRole.EMPLOYEE)
    )

    user = store.users.get("NS001")
    assert user.department == Department.WARD_4A
    assert user.password == "0000"


@pytest.mark.asyncio
async def test_seed_if_empty_runs_once() -> None:
    store = InMemoryUserStore()
    snapshot = Snapshot(InMemoryShiftStore(), store)

    assert await store.seed_if_empty(generate_seed_users(1, 2, 2)) is True
    assert await store.seed_if_empty(generate_seed_users()) is False
    assert len(snapshot.users) == 5


def test_generate_seed_users() -> None:
    users = generate_seed_users()
    by_id = {u.id: u for u in users}

    assert len(users) == 133
    assert by_id["ADM001"].role == UserRole.HR_ADMIN
    assert by_id["ADM001"].password == "admin"
    assert by_id["NS070"].name == "看護師70"
    assert by_id["AS060"].name == "助手60"
    assert by_id["NS001"].department == Department.WARD_3A
    assert by_id["NS004"].department == Department.WARD_2A
    assert by_id["AS001"].password == "0000"
    assert sum(1 for u in users if u.role == UserRole.HR_ADMIN) == 3


def test_load_sample_data() -> None:
    db = Database()
    load_sample_data(db, SAMPLE_DATA)

    assert [s.id for s in db.snapshot.shifts][:2] == ["demo1", "demo2"]
    assert db.snapshot.find_user("ADM001").role == UserRole.HR_ADMIN


def test_database_clear() -> None:
    db = Database()
    load_sample_data(db, SAMPLE_DATA)

    db.clear()

    assert db.snapshot.shifts == ()
    assert db.snapshot.users == ()
