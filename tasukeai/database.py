from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator, MutableMapping
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from tasukeai.models import Department, Shift, User, UserRole, WARDS

K = TypeVar("K")
V = TypeVar("V")

Unsubscribe = Callable[[], None]

logger = logging.getLogger(__name__)


class StoreWriteError(RuntimeError):
    """The backing store rejected a write."""


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def delete(self, key: K) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __iter__(self) -> Iterator[V]:
        return iter(self._store.values())

    def __len__(self) -> int:
        return len(self._store)


class LiveCollection(Generic[K, V]):
    """
    Key/value collection that pushes a full snapshot to every subscriber
    whenever it changes.

    Snapshots are tuples of deep copies, so subscribers can never mutate
    the stored records.
    """

    def __init__(self, sort_key: Callable[[V], object] | None = None) -> None:
        self._items: InMemoryKeyValueDatabase[K, V] = InMemoryKeyValueDatabase()
        self._subscribers: list[Callable[[tuple[V, ...]], None]] = []
        self._sort_key = sort_key

    def snapshot(self) -> tuple[V, ...]:
        items = [item.model_copy(deep=True) for item in self._items]
        if self._sort_key is not None:
            items.sort(key=self._sort_key)
        return tuple(items)

    def subscribe(self, on_change: Callable[[tuple[V, ...]], None]) -> Unsubscribe:
        self._subscribers.append(on_change)
        on_change(self.snapshot())

        def unsubscribe() -> None:
            if on_change in self._subscribers:
                self._subscribers.remove(on_change)

        return unsubscribe

    def publish(self) -> None:
        snapshot = self.snapshot()
        for on_change in list(self._subscribers):
            on_change(snapshot)

    def get(self, key: K) -> V | None:
        return self._items.get(key)

    def put(self, key: K, value: V) -> None:
        self._items.put(key, value)

    def delete(self, key: K) -> None:
        self._items.delete(key)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class ShiftStore(Protocol):
    def subscribe(
        self, on_change: Callable[[tuple[Shift, ...]], None]
    ) -> Unsubscribe: ...

    async def create(self, shift: Shift) -> None: ...

    async def update(self, shift: Shift) -> None: ...

    async def delete(self, shift_id: str) -> None: ...


class UserStore(Protocol):
    def subscribe(
        self, on_change: Callable[[tuple[User, ...]], None]
    ) -> Unsubscribe: ...

    async def update(self, user: User) -> None: ...

    async def seed_if_empty(self, users: list[User]) -> bool: ...


class _WriteGate:
    """Lets tests and offline demos make every store write fail."""

    fail_writes: bool = False

    def _check_writable(self, action: str) -> None:
        if self.fail_writes:
            raise StoreWriteError(f"Store rejected {action}")


class InMemoryShiftStore(_WriteGate):
    """Offline shift store. Writes become visible through the next snapshot."""

    def __init__(self) -> None:
        self.shifts: LiveCollection[str, Shift] = LiveCollection()

    def subscribe(
        self, on_change: Callable[[tuple[Shift, ...]], None]
    ) -> Unsubscribe:
        return self.shifts.subscribe(on_change)

    async def create(self, shift: Shift) -> None:
        self._check_writable("create")
        self.shifts.put(shift.id, shift.model_copy(deep=True))
        self.shifts.publish()

    async def update(self, shift: Shift) -> None:
        self._check_writable("update")
        if self.shifts.get(shift.id) is None:
            raise StoreWriteError(f"Shift {shift.id} does not exist")
        self.shifts.put(shift.id, shift.model_copy(deep=True))
        self.shifts.publish()

    async def delete(self, shift_id: str) -> None:
        self._check_writable("delete")
        self.shifts.delete(shift_id)
        self.shifts.publish()


class InMemoryUserStore(_WriteGate):
    """Offline user store, ordered by user id like the hosted collection."""

    def __init__(self) -> None:
        self.users: LiveCollection[str, User] = LiveCollection(
            sort_key=lambda u: u.id
        )

    def subscribe(
        self, on_change: Callable[[tuple[User, ...]], None]
    ) -> Unsubscribe:
        return self.users.subscribe(on_change)

    async def update(self, user: User) -> None:
        """Merge `user` into the stored record, creating it if needed."""
        self._check_writable("update")
        existing = self.users.get(user.id)
        if existing is not None:
            merged = existing.model_copy(
                update=user.model_dump(exclude_none=True), deep=True
            )
        else:
            merged = user.model_copy(deep=True)
        self.users.put(user.id, merged)
        self.users.publish()

    async def seed_if_empty(self, users: list[User]) -> bool:
        if len(self.users):
            return False
        self._check_writable("seed")
        logger.info(f"Seeding user store with {len(users)} users")
        for user in users:
            self.users.put(user.id, user.model_copy(deep=True))
        self.users.publish()
        return True


class Snapshot:
    """
    The latest pushed shift and user collections.

    Holds the subscriptions open until `close()`.
    """

    def __init__(self, shift_store: ShiftStore, user_store: UserStore) -> None:
        self.shifts: tuple[Shift, ...] = ()
        self.users: tuple[User, ...] = ()
        self._unsubscribers = [
            shift_store.subscribe(self._on_shifts),
            user_store.subscribe(self._on_users),
        ]

    def _on_shifts(self, shifts: tuple[Shift, ...]) -> None:
        self.shifts = shifts

    def _on_users(self, users: tuple[User, ...]) -> None:
        self.users = users

    def find_shift(self, shift_id: str) -> Shift | None:
        for shift in self.shifts:
            if shift.id == shift_id:
                return shift
        return None

    def find_user(self, user_id: str) -> User | None:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


class Database:
    """Container for the stores and the live snapshot over them."""

    def __init__(self) -> None:
        self.shift_store = InMemoryShiftStore()
        self.user_store = InMemoryUserStore()
        self.snapshot = Snapshot(self.shift_store, self.user_store)

    def clear(self) -> None:
        self.shift_store.shifts.clear()
        self.shift_store.shifts.publish()
        self.user_store.users.clear()
        self.user_store.users.publish()


_db: Database | None = None


def get_db() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


def generate_seed_users(
    admins: int = 3, nurses: int = 70, assistants: int = 60
) -> list[User]:
    """Initial staff roster: HR admins, then nurses and assistants spread over the wards."""
    users = [
        User(
            id=f"ADM{i:03d}",
            name=f"管理者{i}",
            department=Department.OTHER,
            role=UserRole.HR_ADMIN,
            password="admin",
        )
        for i in range(1, admins + 1)
    ]
    for prefix, label, count in (("NS", "看護師", nurses), ("AS", "助手", assistants)):
        users.extend(
            User(
                id=f"{prefix}{i:03d}",
                name=f"{label}{i}",
                department=WARDS[i % len(WARDS)],
                role=UserRole.EMPLOYEE,
                password="0000",
            )
            for i in range(1, count + 1)
        )
    return users


def load_sample_data(db: Database | None = None, path: Path | str | None = None) -> None:
    """Load sample data from sample_data.json into the database."""
    if db is None:
        db = get_db()

    sample_data_path = (
        Path(path) if path else Path(__file__).parent.parent / "sample_data.json"
    )
    with open(sample_data_path, encoding="utf-8") as f:
        data = json.load(f)

    for user_data in data.get("users", []):
        user = User(**user_data)
        db.user_store.users.put(user.id, user)

    for shift_data in data["shifts"]:
        shift = Shift(**shift_data)
        db.shift_store.shifts.put(shift.id, shift)

    db.user_store.users.publish()
    db.shift_store.shifts.publish()
