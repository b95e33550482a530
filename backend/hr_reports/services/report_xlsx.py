from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from datetime import date, datetime

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.formatting.rule import DataBarRule
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from hr_reports.models.enums import GoalStatus, RecordType, TaskStatus, TimeEntryStatus
from hr_reports.schemas.report import ReportDataset, ReportFilters
from hr_reports.services.export_errors import ExportError
from hr_reports.services.report_csv import TABLE_BUILDERS, format_timestamp
from hr_reports.services.report_labels import RECORD_TYPE_LABELS, humanize, language_label
from hr_reports.services.report_stats import (
    HOUR_TYPE_ORDER,
    PRIORITY_ORDER,
    ReportStats,
    compute_employee_performance,
)
from hr_reports.services.text_safety import neutralize_formula


logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TITLE_FONT = Font(bold=True, size=16, color="1F4E78")
SECTION_FONT = Font(bold=True, size=12, color="1F4E78")
HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
STRIPE_FILL = PatternFill(start_color="EEF3FA", end_color="EEF3FA", fill_type="solid")
LABEL_FILL = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
OVER_ESTIMATE_FONT = Font(bold=True, color="C00000")
UNDER_ESTIMATE_FONT = Font(bold=True, color="00803C")
BAR_FONT = Font(color="5B9BD5")
DATA_BAR_COLOR = "5B9BD5"
BAR_WIDTH = 20

thin = Side(style="thin", color="B4C6E7")
CELL_BORDER = Border(left=thin, right=thin, top=thin, bottom=thin)

# lower bound -> fill, checked top down
PROGRESS_TIERS: tuple[tuple[int, str], ...] = (
    (80, "63BE7B"),
    (60, "B5D884"),
    (40, "FFEB84"),
    (20, "FBAA77"),
    (0, "F8696B"),
)

SHEET_TITLES = {
    RecordType.TIME_ENTRIES: "Time Entries",
    RecordType.TASKS: "Tasks",
    RecordType.GOALS: "Goals",
}


def _sheet_text(value: object) -> object:
    """Drop characters worksheets cannot hold, then guard formula prefixes."""
    if isinstance(value, str):
        value = ILLEGAL_CHARACTERS_RE.sub("", value)
    return neutralize_formula(value)


def _xlsx_value(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return value
    return _sheet_text(value)


def progress_fill(progress: float) -> PatternFill:
    for lower, color in PROGRESS_TIERS:
        if progress >= lower:
            return PatternFill(start_color=color, end_color=color, fill_type="solid")
    color = PROGRESS_TIERS[-1][1]
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


def _text_bar(value: float, maximum: float) -> str:
    if maximum <= 0 or value <= 0:
        return ""
    return "█" * max(1, round(value / maximum * BAR_WIDTH))


def _write_header(ws: Worksheet, row: int, headers: Sequence[str], start_col: int = 1) -> None:
    for offset, header in enumerate(headers):
        cell = ws.cell(row=row, column=start_col + offset, value=_sheet_text(header))
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = CELL_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _autosize(ws: Worksheet, minimum: int = 10, maximum: int = 50) -> None:
    widths: dict[int, int] = {}
    for row in ws.iter_rows():
        for cell in row:
            if cell.value is None:
                continue
            length = len(str(cell.value))
            widths[cell.column] = max(widths.get(cell.column, 0), length)
    for col_idx, width in widths.items():
        ws.column_dimensions[get_column_letter(col_idx)].width = max(minimum, min(maximum, width + 2))


def _write_metric_block(ws: Worksheet, row: int, title: str, metrics: Sequence[tuple[str, float]]) -> int:
    """
    Write a label / value / bar block and give it its own data bar.

    Returns the next free row.
    """
    ws.cell(row=row, column=1, value=title).font = SECTION_FONT
    row += 1
    _write_header(ws, row, ["Metric", "Value", "Visual"])
    row += 1

    first = row
    maximum = max((value for _, value in metrics), default=0)
    for label, value in metrics:
        label_cell = ws.cell(row=row, column=1, value=_sheet_text(label))
        label_cell.fill = LABEL_FILL
        label_cell.border = CELL_BORDER
        value_cell = ws.cell(row=row, column=2, value=value)
        value_cell.border = CELL_BORDER
        value_cell.alignment = Alignment(horizontal="right")
        bar_cell = ws.cell(row=row, column=3, value=_text_bar(value, maximum))
        bar_cell.font = BAR_FONT
        bar_cell.border = CELL_BORDER
        row += 1
    last = row - 1

    if last >= first:
        # min/max come from this block's cells only
        ws.conditional_formatting.add(
            f"B{first}:B{last}",
            DataBarRule(start_type="min", end_type="max", color=DATA_BAR_COLOR, showValue=True),
        )
    return row + 1


def _employee_label(dataset: ReportDataset, filters: ReportFilters) -> str:
    if not filters.single_employee:
        return "All Employees"
    return dataset.employee_name(filters.employee_id, default=f"Employee {filters.employee_id}")


def _summary_sheet(ws: Worksheet, dataset: ReportDataset, stats: ReportStats, filters: ReportFilters, generated_at: datetime) -> None:
    ws.title = "Summary"
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=3)
    title_cell = ws.cell(row=1, column=1, value="HR Report")
    title_cell.font = TITLE_FONT
    title_cell.alignment = Alignment(horizontal="center", vertical="center")

    meta = [
        ("Generated At", format_timestamp(generated_at)),
        ("Period", f"{filters.start_date.isoformat()} to {filters.end_date.isoformat()}"),
        ("Employee", _employee_label(dataset, filters)),
        ("Record Type", RECORD_TYPE_LABELS[filters.record_type]),
        ("Language", language_label(filters.locale)),
    ]
    row = 3
    for label, value in meta:
        ws.cell(row=row, column=1, value=label).font = Font(bold=True)
        ws.cell(row=row, column=2, value=_sheet_text(value))
        row += 1
    row += 1

    if filters.includes(RecordType.TIME_ENTRIES):
        row = _write_metric_block(
            ws,
            row,
            "Time Tracking",
            [
                ("Total Records", stats.time.total_records),
                ("Total Hours", float(stats.time.total_hours)),
                ("Approved", stats.time.approved),
                ("Pending", stats.time.pending),
                ("Rejected", stats.time.rejected),
            ],
        )
    if filters.includes(RecordType.TASKS):
        row = _write_metric_block(
            ws,
            row,
            "Workload",
            [
                ("Total Tasks", stats.tasks.total_records),
                ("Completed", stats.tasks.completed),
                ("In Progress", stats.tasks.in_progress),
                ("Pending", stats.tasks.pending),
                ("Completion Rate (%)", stats.tasks.completion_rate),
                ("Average Quality", float(stats.tasks.average_quality)),
                ("Estimated Hours", stats.tasks.estimated_hours),
                ("Actual Hours", stats.tasks.actual_hours),
            ],
        )
    if filters.includes(RecordType.GOALS):
        row = _write_metric_block(
            ws,
            row,
            "Goals",
            [
                ("Total Goals", stats.goals.total_records),
                ("Completed", stats.goals.completed),
                ("In Progress", stats.goals.in_progress),
                ("Pending", stats.goals.pending),
                ("Completion Rate (%)", stats.goals.completion_rate),
                ("Average Progress (%)", stats.goals.average_progress),
            ],
        )

    ws.column_dimensions["A"].width = 26
    ws.column_dimensions["B"].width = 28
    ws.column_dimensions["C"].width = BAR_WIDTH + 4


def _performance_sheet(ws: Worksheet, dataset: ReportDataset, filters: ReportFilters) -> None:
    perf = compute_employee_performance(dataset, filters.employee_id)
    emp = dataset.employee(filters.employee_id)

    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=3)
    ws.cell(row=1, column=1, value="Employee Performance").font = TITLE_FONT

    details = [
        ("Employee", perf.name),
        ("Department", emp.department if emp and emp.department else "-"),
        ("Position", emp.position if emp and emp.position else "-"),
    ]
    row = 3
    for label, value in details:
        ws.cell(row=row, column=1, value=label).font = Font(bold=True)
        ws.cell(row=row, column=2, value=_sheet_text(value))
        row += 1
    row += 1

    _write_header(ws, row, ["Component", "Score (%)", "Notes"])
    row += 1
    components = [
        ("Time Approval Rate", perf.time_approval_rate, "Approved / all time entries"),
        ("Task Completion Rate", perf.task_completion_rate, "Completed / all tasks"),
        ("Goal Average Progress", perf.goal_average_progress, "Completed goals count as 100"),
    ]
    for label, value, note in components:
        ws.cell(row=row, column=1, value=label).fill = LABEL_FILL
        score_cell = ws.cell(row=row, column=2, value=value if value is not None else "N/A")
        if value is not None:
            score_cell.fill = progress_fill(value)
        ws.cell(row=row, column=3, value=note)
        for col in range(1, 4):
            ws.cell(row=row, column=col).border = CELL_BORDER
        row += 1

    row += 1
    ws.cell(row=row, column=1, value="Overall Score").font = Font(bold=True, size=12)
    overall = ws.cell(row=row, column=2, value=perf.overall_score)
    overall.font = Font(bold=True, size=12)
    overall.fill = progress_fill(perf.overall_score)
    row += 1
    ws.cell(row=row, column=1, value="Rating").font = Font(bold=True)
    ws.cell(row=row, column=2, value=f"{perf.band.star_text} {perf.band.label}")

    ws.column_dimensions["A"].width = 26
    ws.column_dimensions["B"].width = 26
    ws.column_dimensions["C"].width = 34


def _write_count_table(ws: Worksheet, row: int, title: str, value_header: str, items: Sequence[tuple[str, float]]) -> int:
    ws.cell(row=row, column=1, value=title).font = SECTION_FONT
    row += 1
    _write_header(ws, row, ["Category", value_header])
    row += 1
    for label, value in items:
        ws.cell(row=row, column=1, value=_sheet_text(label)).border = CELL_BORDER
        ws.cell(row=row, column=2, value=value).border = CELL_BORDER
        row += 1
    return row + 1


def _ordered(counts: dict[str, float], order: Sequence[str]) -> list[tuple[str, float]]:
    keys = [key for key in order if key in counts] + sorted(key for key in counts if key not in order)
    return [(humanize(key), counts[key]) for key in keys]


def _charts_sheet(ws: Worksheet, dataset: ReportDataset, stats: ReportStats, filters: ReportFilters) -> None:
    row = 1
    if filters.includes(RecordType.TIME_ENTRIES):
        row = _write_count_table(ws, row, "Hours by Type", "Hours", _ordered(stats.time.hours_by_type, HOUR_TYPE_ORDER))
        row = _write_count_table(
            ws,
            row,
            "Time Entry Status",
            "Count",
            _ordered(stats.time.status_counts, [member.value for member in TimeEntryStatus]),
        )
    if filters.includes(RecordType.TASKS):
        row = _write_count_table(
            ws, row, "Task Status", "Count", _ordered(stats.tasks.status_counts, [m.value for m in TaskStatus])
        )
        row = _write_count_table(ws, row, "Task Priority", "Count", _ordered(stats.tasks.priority_counts, PRIORITY_ORDER))
    if filters.includes(RecordType.GOALS):
        row = _write_count_table(
            ws, row, "Goal Status", "Count", _ordered(stats.goals.status_counts, [m.value for m in GoalStatus])
        )
    if not filters.single_employee and stats.employees:
        row = _write_count_table(
            ws, row, "Hours by Employee", "Hours", [(item.name, item.total_hours) for item in stats.employees]
        )
    ws.column_dimensions["A"].width = 30
    ws.column_dimensions["B"].width = 14


def _record_sheet(ws: Worksheet, record_type: RecordType, dataset: ReportDataset) -> None:
    headers, rows = TABLE_BUILDERS[record_type](dataset)
    if record_type == RecordType.TASKS:
        headers = headers + ["Hour Variance"]
        rows = [{**row, "Hour Variance": task.hour_variance} for row, task in zip(rows, dataset.tasks)]

    _write_header(ws, 1, headers)
    variance_col = headers.index("Hour Variance") + 1 if "Hour Variance" in headers else None
    progress_col = headers.index("Progress") + 1 if record_type == RecordType.GOALS else None

    for idx, row_values in enumerate(rows):
        row = idx + 2
        for col_idx, header in enumerate(headers, start=1):
            cell = ws.cell(row=row, column=col_idx, value=_xlsx_value(row_values.get(header)))
            cell.border = CELL_BORDER
            if idx % 2 == 1:
                cell.fill = STRIPE_FILL
        if variance_col is not None:
            variance = row_values.get("Hour Variance") or 0
            cell = ws.cell(row=row, column=variance_col)
            if variance > 0:
                cell.font = OVER_ESTIMATE_FONT
            elif variance < 0:
                cell.font = UNDER_ESTIMATE_FONT
        if progress_col is not None:
            ws.cell(row=row, column=progress_col).fill = progress_fill(row_values.get("Progress") or 0)

    last_row = len(rows) + 1
    ws.freeze_panes = "A2"
    ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}{last_row}"
    _autosize(ws)


def build_report_workbook(
    dataset: ReportDataset,
    stats: ReportStats,
    filters: ReportFilters,
    *,
    generated_at: datetime | None = None,
) -> bytes:
    """Render the report as a multi-sheet .xlsx file."""
    generated_at = generated_at or datetime.now()
    try:
        wb = Workbook()
        _summary_sheet(wb.active, dataset, stats, filters, generated_at)
        if filters.single_employee:
            _performance_sheet(wb.create_sheet("Performance"), dataset, filters)
        _charts_sheet(wb.create_sheet("Charts Data"), dataset, stats, filters)

        collections = {
            RecordType.TIME_ENTRIES: dataset.time_entries,
            RecordType.TASKS: dataset.tasks,
            RecordType.GOALS: dataset.goals,
        }
        for record_type, records in collections.items():
            if records and filters.includes(record_type):
                _record_sheet(wb.create_sheet(SHEET_TITLES[record_type]), record_type, dataset)

        bio = io.BytesIO()
        wb.save(bio)
    except Exception as exc:
        logger.exception("Workbook export failed")
        raise ExportError(f"Could not build the Excel report: {exc}", export_format="xlsx") from exc
    return bio.getvalue()
