"""
Payroll CSV export.

One row per shift with worked hours and allowance totals. Spreadsheet tools
used by payroll only detect UTF-8 (and so the Japanese ward names) when the
file starts with a byte-order mark, so the BOM is on by default.
"""

import csv
import logging
from collections.abc import Iterable
from datetime import date
from pathlib import Path

import pandas as pd
from pydantic import BaseModel

from tasukeai.models import Shift, ShiftStatus, User
from tasukeai.timeutil import shift_duration_hours

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "シフトID",
    "日付",
    "部署",
    "業務名",
    "職種",
    "担当者ID",
    "担当者名",
    "開始時間",
    "終了時間",
    "実働時間",
    "手当単価",
    "手当合計",
    "ステータス",
]

STATUS_APPROVED = "承認済"
STATUS_PENDING = "未完了"


class ExportRow(BaseModel):
    shift_id: str
    date: str
    department: str
    title: str
    job_role: str
    assigned_user_id: str
    assigned_user_name: str  # Empty when the assignee is unknown
    start_time: str
    end_time: str
    hours: float  # Unrounded
    hourly_rate_boost: int
    allowance_total: float  # hours * hourly_rate_boost, unrounded
    status_label: str

    def cells(self) -> list[str]:
        return [
            self.shift_id,
            self.date,
            self.department,
            self.title,
            self.job_role,
            self.assigned_user_id,
            self.assigned_user_name,
            self.start_time,
            self.end_time,
            f"{self.hours:.2f}",
            str(self.hourly_rate_boost),
            _format_number(self.allowance_total),
            self.status_label,
        ]


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(value)


def status_label(status: ShiftStatus) -> str:
    # COMPLETED is reported the same as FILLED
    if status == ShiftStatus.OPEN:
        return STATUS_PENDING
    return STATUS_APPROVED


def build_export_rows(
    shifts: Iterable[Shift], users: Iterable[User]
) -> list[ExportRow]:
    names = {u.id: u.name for u in users}
    rows = []
    for shift in shifts:
        hours = shift_duration_hours(shift.start_time, shift.end_time)
        assigned = shift.assigned_user_id or ""
        if assigned and assigned not in names:
            logger.info(f"Export: unknown assignee {assigned} on shift {shift.id}")

        rows.append(
            ExportRow(
                shift_id=shift.id,
                date=shift.date,
                department=shift.department.value,
                title=shift.title,
                job_role=shift.job_role.value,
                assigned_user_id=assigned,
                assigned_user_name=names.get(assigned, ""),
                start_time=shift.start_time,
                end_time=shift.end_time,
                hours=hours,
                hourly_rate_boost=shift.hourly_rate_boost,
                allowance_total=hours * shift.hourly_rate_boost,
                status_label=status_label(shift.status),
            )
        )
    return rows


def total_allowance(rows: Iterable[ExportRow]) -> float:
    return sum(row.allowance_total for row in rows)


def render_csv(rows: Iterable[ExportRow], include_bom: bool = True) -> bytes:
    df = pd.DataFrame(
        [row.cells() for row in rows], columns=EXPORT_COLUMNS, dtype=str
    )
    text = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return text.encode("utf-8-sig" if include_bom else "utf-8")


def export_filename(prefix: str, on: date) -> str:
    return f"{prefix}_export_{on.isoformat()}.csv"


def write_export(
    rows: Iterable[ExportRow],
    directory: Path | str,
    prefix: str,
    on: date,
    include_bom: bool = True,
) -> Path:
    """Write the export into `directory` and return the file path."""
    path = Path(directory) / export_filename(prefix, on)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(render_csv(rows, include_bom=include_bom))
    logger.info(f"Export written: {path}")
    return path
