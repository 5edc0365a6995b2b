"""
Dashboard range selection: which shifts a day / week / two-week view shows,
how they group by date, and how the view pages through time.
"""

from collections import Counter
from collections.abc import Iterable

from tasukeai.models import Department, RangeMode, Shift, ShiftStatus
from tasukeai.timeutil import add_days, parse_iso_date


def range_end_date(display_date: str, mode: RangeMode) -> str:
    """Last calendar date (inclusive) covered by the view."""
    return add_days(display_date, mode.days - 1)


def filter_shifts(
    shifts: Iterable[Shift], display_date: str, mode: RangeMode
) -> list[Shift]:
    """
    Shifts visible in the view starting at `display_date`.

    Multi-day views are ordered by date; shifts on the same date keep their
    snapshot order.
    """
    if mode == RangeMode.DAY:
        parse_iso_date(display_date)
        return [s for s in shifts if s.date == display_date]

    end_date = range_end_date(display_date, mode)
    # Zero-padded ISO dates compare correctly as strings
    visible = [s for s in shifts if display_date <= s.date <= end_date]
    return sorted(visible, key=lambda s: s.date)


def group_by_date(shifts: Iterable[Shift]) -> dict[str, list[Shift]]:
    groups: dict[str, list[Shift]] = {}
    for shift in shifts:
        groups.setdefault(shift.date, []).append(shift)
    return groups


def move_date(display_date: str, direction: int, mode: RangeMode) -> str:
    """
    Page the view backwards (-1) or forwards (+1).

    Week views move a week at a time, so two-week views overlap by one week.
    """
    if direction not in (-1, 1):
        raise ValueError(f"direction must be -1 or 1, got {direction}")
    step = 1 if mode == RangeMode.DAY else 7
    return add_days(display_date, direction * step)


def dates_in_range(display_date: str, mode: RangeMode) -> list[str]:
    return [add_days(display_date, offset) for offset in range(mode.days)]


def count_by_department(shifts: Iterable[Shift]) -> dict[Department, int]:
    counts = Counter(s.department for s in shifts)
    return {dept: counts[dept] for dept in Department if counts[dept]}


def shift_stats(shifts: Iterable[Shift]) -> dict[str, int]:
    """Headline numbers for the admin panel."""
    shifts = list(shifts)
    return {
        "total": len(shifts),
        "open": sum(1 for s in shifts if s.status == ShiftStatus.OPEN),
        "filled": sum(1 for s in shifts if s.status == ShiftStatus.FILLED),
        "applicants": sum(len(s.applicant_ids) for s in shifts),
    }
