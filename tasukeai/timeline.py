"""
Ward timetable layout.

The timetable shows one operational shift-day, 08:00 to 08:00 the next
morning. Clock times before 08:00 belong to the tail of the band, so the
band runs over decimal hours 8..32.
"""

import logging
from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from tasukeai.models import WARDS, Department, JobRole, Shift
from tasukeai.timeutil import FormatError, parse_iso_date, parse_time_to_decimal_hours

logger = logging.getLogger(__name__)

BAND_START_HOUR = 8
BAND_END_HOUR = 32
BAND_TOTAL_HOURS = BAND_END_HOUR - BAND_START_HOUR

WEEKDAY_LABELS = ["月", "火", "水", "木", "金", "土", "日"]


class InvalidIntervalError(ValueError):
    """A shift interval has no positive length on the band."""


class TimeBand(StrEnum):
    DAY = "day"  # 08:00-18:00
    SEMI_NIGHT = "semi_night"  # 18:00-24:00
    DEEP_NIGHT = "deep_night"  # 00:00-08:00


class TimelinePosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    left: float  # percent of band width
    width: float  # percent of band width

    def css(self) -> dict[str, str]:
        return {"left": f"{self.left}%", "width": f"{self.width}%"}


def get_position(start_time: str, end_time: str) -> TimelinePosition:
    """
    Place a shift on the 08:00 -> 08:00 band.

    Raises FormatError for malformed times and InvalidIntervalError when the
    interval cannot be laid out with a positive width.
    """
    start = parse_time_to_decimal_hours(start_time)
    end = parse_time_to_decimal_hours(end_time)

    # 00:00-07:59 is the early-morning tail of the band
    if start < BAND_START_HOUR:
        start += 24

    if end < start:
        end += 24

    # Night shift ending at plain "08:00"
    if end == BAND_START_HOUR and start > 12:
        end = BAND_END_HOUR

    if end <= start:
        raise InvalidIntervalError(
            f"Interval {start_time}-{end_time} does not fit the shift-day band"
        )

    left = ((start - BAND_START_HOUR) / BAND_TOTAL_HOURS) * 100
    width = ((end - start) / BAND_TOTAL_HOURS) * 100

    return TimelinePosition(left=max(0.0, left), width=min(100.0, width))


def band_for_hour(hour: int) -> TimeBand:
    """Band for a band hour (8..31)."""
    if hour >= 24:
        return TimeBand.DEEP_NIGHT
    if hour >= 18:
        return TimeBand.SEMI_NIGHT
    return TimeBand.DAY


def hour_labels() -> list[str]:
    """Header labels for the 25 gridlines 08:00 .. 08:00."""
    labels = []
    for offset in range(BAND_TOTAL_HOURS + 1):
        hour = BAND_START_HOUR + offset
        labels.append(f"{hour - 24 if hour >= 24 else hour}:00")
    return labels


class TimelineBar(BaseModel):
    shift_id: str
    title: str
    start_time: str
    end_time: str
    job_role: JobRole
    position: TimelinePosition


class WardRow(BaseModel):
    department: Department
    bars: list[TimelineBar] = []


class DayTimeline(BaseModel):
    date: str
    weekday_label: str
    is_weekend: bool
    rows: list[WardRow]
    skipped_ids: list[str] = []  # Shifts left off the chart


def build_day_timeline(shifts: Iterable[Shift], display_date: str) -> DayTimeline:
    """
    Lay out every shift of `display_date` on its ward row.

    A shift with unusable times is left off the chart and logged; the rest
    of the day still renders.
    """
    weekday = parse_iso_date(display_date).weekday()
    rows = {dept: WardRow(department=dept) for dept in WARDS}
    skipped: list[str] = []

    for shift in shifts:
        if shift.date != display_date or shift.department not in rows:
            continue
        try:
            position = get_position(shift.start_time, shift.end_time)
        except (FormatError, InvalidIntervalError) as e:
            logger.warning(f"Timeline skip | Shift: {shift.id} | {e}")
            skipped.append(shift.id)
            continue

        rows[shift.department].bars.append(
            TimelineBar(
                shift_id=shift.id,
                title=shift.title,
                start_time=shift.start_time,
                end_time=shift.end_time,
                job_role=shift.job_role,
                position=position,
            )
        )

    return DayTimeline(
        date=display_date,
        weekday_label=WEEKDAY_LABELS[weekday],
        is_weekend=weekday >= 5,
        rows=list(rows.values()),
        skipped_ids=skipped,
    )
