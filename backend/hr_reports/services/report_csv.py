from __future__ import annotations

import csv
import io
from collections.abc import Mapping, Sequence
from datetime import date, datetime

from hr_reports.models.enums import RecordType
from hr_reports.schemas.report import ReportDataset
from hr_reports.services.report_labels import humanize, language_label
from hr_reports.services.text_safety import neutralize_formula


UTF8_BOM = "\ufeff"

TIME_ENTRY_HEADERS = [
    "Employee Name",
    "Department",
    "Position",
    "Date",
    "Clock In",
    "Clock Out",
    "Hours",
    "Hour Type",
    "Status",
    "Notes",
    "Created At",
]

TASK_HEADERS = [
    "Employee Name",
    "Department",
    "Task Title",
    "Description",
    "Priority",
    "Status",
    "Due Date",
    "Estimated Hours",
    "Actual Hours",
    "Quality Rating",
    "Self Assessment",
    "Comments",
    "Created At",
    "Updated At",
]

GOAL_HEADERS = [
    "Employee Name",
    "Department",
    "Goal Title",
    "Description",
    "Category",
    "Status",
    "Target Date",
    "Progress",
    "Notes",
    "Created At",
    "Updated At",
]


def format_timestamp(value: date | datetime | None) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return value.isoformat()


def _cell(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (date, datetime)):
        return format_timestamp(value)
    return neutralize_formula(value)


def time_entry_table(dataset: ReportDataset) -> tuple[list[str], list[dict[str, object]]]:
    rows: list[dict[str, object]] = []
    for entry in dataset.time_entries:
        emp = dataset.employee(entry.employee_id)
        rows.append(
            dict(
                zip(
                    TIME_ENTRY_HEADERS,
                    [
                        dataset.employee_name(entry.employee_id),
                        emp.department if emp else "",
                        emp.position if emp else "",
                        entry.entry_date,
                        entry.clock_in or "",
                        entry.clock_out or "",
                        entry.hours,
                        humanize(entry.hour_type, ""),
                        humanize(entry.status, ""),
                        entry.notes or "",
                        entry.created_at,
                    ],
                )
            )
        )
    return list(TIME_ENTRY_HEADERS), rows


def task_table(dataset: ReportDataset) -> tuple[list[str], list[dict[str, object]]]:
    rows: list[dict[str, object]] = []
    for task in dataset.tasks:
        emp = dataset.employee(task.employee_id)
        rows.append(
            dict(
                zip(
                    TASK_HEADERS,
                    [
                        dataset.employee_name(task.employee_id),
                        emp.department if emp else "",
                        task.title,
                        task.description or "",
                        humanize(task.priority, ""),
                        humanize(task.status, ""),
                        task.due_date,
                        task.estimated_hours,
                        task.actual_hours,
                        task.quality_rating,
                        task.self_assessment or "",
                        task.comments or "",
                        task.created_at,
                        task.updated_at,
                    ],
                )
            )
        )
    return list(TASK_HEADERS), rows


def goal_table(dataset: ReportDataset) -> tuple[list[str], list[dict[str, object]]]:
    rows: list[dict[str, object]] = []
    for goal in dataset.goals:
        emp = dataset.employee(goal.employee_id)
        rows.append(
            dict(
                zip(
                    GOAL_HEADERS,
                    [
                        dataset.employee_name(goal.employee_id),
                        emp.department if emp else "",
                        goal.title,
                        goal.description or "",
                        goal.category or "",
                        humanize(goal.status, ""),
                        goal.target_date,
                        goal.effective_progress,
                        goal.notes or "",
                        goal.created_at,
                        goal.updated_at,
                    ],
                )
            )
        )
    return list(GOAL_HEADERS), rows


TABLE_BUILDERS = {
    RecordType.TIME_ENTRIES: time_entry_table,
    RecordType.TASKS: task_table,
    RecordType.GOALS: goal_table,
}


def to_csv(
    rows: Sequence[Mapping[str, object]],
    headers: Sequence[str],
    *,
    language: str = "en",
    generated_at: datetime | None = None,
) -> str:
    """
    Encode one record collection as CSV text, BOM first.

    Fields are quoted only when they contain a delimiter, quote or line break.
    """
    generated_at = generated_at or datetime.now()
    stream = io.StringIO()
    writer = csv.writer(stream, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow([f"# Report language: {language_label(language)}"])
    writer.writerow([f"# Generated at: {format_timestamp(generated_at)}"])
    writer.writerow([])
    writer.writerow([neutralize_formula(header) for header in headers])
    for row in rows:
        writer.writerow([_cell(row.get(header)) for header in headers])
    return UTF8_BOM + stream.getvalue()
