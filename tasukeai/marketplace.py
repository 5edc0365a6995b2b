"""
Shift marketplace operations.

Each operation reads the latest snapshot, builds the new record and hands
it to the store. The snapshot itself is never modified; the result shows up
with the next pushed snapshot.
"""

import logging
import uuid
from collections.abc import Iterable

from tasukeai.database import ShiftStore, Snapshot
from tasukeai.models import Shift, ShiftCreate, ShiftStatus, User

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Base class for rejected marketplace operations."""


class ShiftNotFoundError(MarketplaceError):
    pass


class UserNotFoundError(MarketplaceError):
    pass


class ShiftNotOpenError(MarketplaceError):
    pass


class AlreadyAppliedError(MarketplaceError):
    pass


class NotAnApplicantError(MarketplaceError):
    pass


class AuthenticationError(MarketplaceError):
    pass


def _require_shift(snapshot: Snapshot, shift_id: str) -> Shift:
    shift = snapshot.find_shift(shift_id)
    if shift is None:
        raise ShiftNotFoundError(f"Shift {shift_id} not found")
    return shift


async def create_shift(store: ShiftStore, payload: ShiftCreate) -> Shift:
    shift = payload.to_shift(uuid.uuid4().hex)
    await store.create(shift)
    logger.info(f"Shift posted | ID: {shift.id} | {shift.department} {shift.date}")
    return shift


async def apply_to_shift(
    store: ShiftStore, snapshot: Snapshot, shift_id: str, user_id: str
) -> Shift:
    """Add `user_id` to the applicants of an open shift."""
    shift = _require_shift(snapshot, shift_id)

    if shift.status != ShiftStatus.OPEN:
        raise ShiftNotOpenError(f"Shift {shift_id} is no longer open")
    if user_id in shift.applicant_ids:
        raise AlreadyAppliedError(f"User {user_id} already applied to {shift_id}")

    updated = shift.model_copy(
        update={"applicant_ids": [*shift.applicant_ids, user_id]}
    )
    await store.update(updated)
    logger.info(f"Application | Shift: {shift_id} | User: {user_id}")
    return updated


async def approve_applicant(
    store: ShiftStore, snapshot: Snapshot, shift_id: str, user_id: str
) -> Shift:
    shift = _require_shift(snapshot, shift_id)

    if shift.status != ShiftStatus.OPEN:
        raise ShiftNotOpenError(f"Shift {shift_id} is no longer open")
    if user_id not in shift.applicant_ids:
        raise NotAnApplicantError(f"User {user_id} did not apply to {shift_id}")

    updated = shift.model_copy(
        update={"status": ShiftStatus.FILLED, "assigned_user_id": user_id}
    )
    await store.update(updated)
    logger.info(f"Approval | Shift: {shift_id} | User: {user_id}")
    return updated


async def delete_shift(store: ShiftStore, snapshot: Snapshot, shift_id: str) -> None:
    _require_shift(snapshot, shift_id)
    await store.delete(shift_id)
    logger.info(f"Shift deleted | ID: {shift_id}")


def authenticate(snapshot: Snapshot, user_id: str, password: str) -> User:
    """Plain comparison against the stored password; no hashing."""
    user = snapshot.find_user(user_id)
    if user is None:
        raise AuthenticationError("IDが見つかりません")
    if user.password != password:
        raise AuthenticationError("パスワードが間違っています")
    return user


def search_users(users: Iterable[User], term: str) -> list[User]:
    return [
        u
        for u in users
        if term in u.name or term in u.id or term in u.department.value
    ]
