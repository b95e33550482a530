from __future__ import annotations

import io
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from hr_reports.models.enums import RecordType
from hr_reports.schemas.report import GoalRecord, ReportDataset, ReportFilters, TaskRecord, TimeEntryRecord
from hr_reports.services.export_errors import ExportError
from hr_reports.services.report_csv import format_timestamp
from hr_reports.services.report_fonts import DocumentFont, FontState
from hr_reports.services.report_labels import RECORD_TYPE_LABELS, humanize
from hr_reports.services.report_stats import ReportStats, compute_employee_performance


logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

ROWS_PER_TABLE_ALL = 20
ROWS_PER_TABLE_SINGLE = 50

MARGIN = 0.75 * inch
ROW_HEIGHT = 16
MIN_GLYPH_RATIO = 0.1
HEADER_HEIGHT = 18
FOOTER_HEIGHT = 0.5 * inch
HEADER_FILL = colors.HexColor("#1F4E78")
STRIPE_FILL = colors.HexColor("#EEF3FA")
BOX_FILL = colors.HexColor("#F2F2F2")


@dataclass(frozen=True)
class Column:
    title: str
    weight: float
    value: Callable[[object], object]
    align_right: bool = False


def _num(value: float) -> str:
    return f"{value:g}"


def _time_columns(dataset: ReportDataset) -> list[Column]:
    return [
        Column("Employee", 2.2, lambda e: dataset.employee_name(e.employee_id)),
        Column("Date", 1.3, lambda e: e.entry_date.isoformat()),
        Column("Hours", 0.8, lambda e: _num(e.hours), align_right=True),
        Column("Type", 1.4, lambda e: humanize(e.hour_type)),
        Column("Status", 1.1, lambda e: humanize(e.status)),
        Column("Notes", 2.6, lambda e: e.notes or ""),
    ]


def _task_columns(dataset: ReportDataset) -> list[Column]:
    return [
        Column("Employee", 1.9, lambda t: dataset.employee_name(t.employee_id)),
        Column("Title", 2.6, lambda t: t.title),
        Column("Priority", 1.0, lambda t: humanize(t.priority)),
        Column("Status", 1.2, lambda t: humanize(t.status)),
        Column("Due", 1.2, lambda t: t.due_date.isoformat() if t.due_date else "-"),
        Column("Est.", 0.7, lambda t: _num(t.estimated_hours), align_right=True),
        Column("Actual", 0.8, lambda t: _num(t.actual_hours), align_right=True),
        Column("Quality", 0.8, lambda t: f"{t.quality_rating}/5" if t.quality_rating else "-", align_right=True),
    ]


def _goal_columns(dataset: ReportDataset) -> list[Column]:
    return [
        Column("Employee", 2.0, lambda g: dataset.employee_name(g.employee_id)),
        Column("Title", 2.8, lambda g: g.title),
        Column("Category", 1.4, lambda g: g.category or "-"),
        Column("Status", 1.2, lambda g: humanize(g.status)),
        Column("Target", 1.2, lambda g: g.target_date.isoformat() if g.target_date else "-"),
        Column("Progress", 0.9, lambda g: f"{g.effective_progress}%", align_right=True),
    ]


class ReportCanvas:
    """Page and text bookkeeping on top of a reportlab canvas."""

    def __init__(self, stream: io.BytesIO, font: DocumentFont, footer_label: str) -> None:
        if font.state == FontState.NOT_LOADED:
            raise ValueError("Resolve the document font before rendering")
        self.font = font
        self.footer_label = footer_label
        self.c = canvas.Canvas(stream, pagesize=letter)
        self.width, self.height = letter
        self.content_width = self.width - 2 * MARGIN
        self.bottom = MARGIN + FOOTER_HEIGHT
        self.y = self.height - MARGIN
        self.page = 1

    def text_width(self, value: str, size: float, bold: bool = False) -> float:
        return pdfmetrics.stringWidth(value, self.font.name(bold), size)

    def fit(self, value: object, width: float, size: float, bold: bool = False) -> str:
        """Clip text to `width`, ending with "..." when anything was cut."""
        text = self.font.text(value)
        # no glyph is narrower than a tenth of the font size
        clipped = text[: int(width / (size * MIN_GLYPH_RATIO)) + 1]
        if len(clipped) == len(text) and self.text_width(text, size, bold) <= width:
            return text
        ellipsis = "..."
        lo, hi = 0, len(clipped)
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if self.text_width(clipped[:mid] + ellipsis, size, bold) <= width:
                lo = mid
            else:
                hi = mid - 1
        return clipped[:lo] + ellipsis if lo else ""

    def draw(self, x: float, y: float, value: object, *, size: float = 10, bold: bool = False,
             color=colors.black, width: float | None = None, right: bool = False) -> None:
        text = self.fit(value, width, size, bold) if width is not None else self.font.text(value)
        self.c.setFont(self.font.name(bold), size)
        self.c.setFillColor(color)
        if right:
            self.c.drawRightString(x, y, text)
        else:
            self.c.drawString(x, y, text)
        self.c.setFillColor(colors.black)

    def _footer(self) -> None:
        y = MARGIN / 2
        self.draw(MARGIN, y, self.footer_label, size=8, color=colors.grey, width=self.content_width * 0.7)
        self.draw(self.width - MARGIN, y, f"Page {self.page}", size=8, color=colors.grey, right=True)

    def new_page(self) -> None:
        self._footer()
        self.c.showPage()
        self.page += 1
        self.y = self.height - MARGIN

    def ensure_space(self, needed: float) -> bool:
        """Start a new page when `needed` points do not fit; True if it did."""
        if self.y - needed < self.bottom:
            self.new_page()
            return True
        return False

    def finish(self) -> None:
        self._footer()
        self.c.save()


def _draw_cover(rc: ReportCanvas, dataset: ReportDataset, filters: ReportFilters, generated_at: datetime) -> None:
    rc.draw(MARGIN, rc.y, "HR Report", size=20, bold=True, color=HEADER_FILL)
    rc.y -= 0.4 * inch
    employee = (
        dataset.employee_name(filters.employee_id, default=f"Employee {filters.employee_id}")
        if filters.single_employee
        else "All Employees"
    )
    lines = [
        ("Generated", format_timestamp(generated_at)),
        ("Period", f"{filters.start_date.isoformat()} to {filters.end_date.isoformat()}"),
        ("Employee", employee),
        ("Records", RECORD_TYPE_LABELS[filters.record_type]),
    ]
    for label, value in lines:
        rc.draw(MARGIN, rc.y, f"{label}:", size=10, bold=True)
        rc.draw(MARGIN + 1.1 * inch, rc.y, value, size=10, width=rc.content_width - 1.1 * inch)
        rc.y -= 0.22 * inch
    rc.y -= 0.15 * inch


def _summary_lines(dataset: ReportDataset, stats: ReportStats, filters: ReportFilters) -> list[tuple[str, str]]:
    lines: list[tuple[str, str]] = []
    if filters.includes(RecordType.TIME_ENTRIES):
        t = stats.time
        lines.append(
            (
                "Time Tracking",
                f"{t.total_records} entries, {t.total_hours} hours "
                f"(approved {t.approved}, pending {t.pending}, rejected {t.rejected})",
            )
        )
    if filters.includes(RecordType.TASKS):
        k = stats.tasks
        lines.append(
            (
                "Workload",
                f"{k.total_records} tasks, {k.completion_rate}% completed, average quality {k.average_quality}/5",
            )
        )
    if filters.includes(RecordType.GOALS):
        g = stats.goals
        lines.append(
            ("Goals", f"{g.total_records} goals, {g.completion_rate}% completed, average progress {g.average_progress:g}%")
        )
    if filters.single_employee:
        perf = compute_employee_performance(dataset, filters.employee_id)
        lines.append(("Overall Score", f"{perf.overall_score:g} - {perf.band.label} ({perf.band.stars}/5)"))
    return lines


def _draw_summary_box(rc: ReportCanvas, lines: Sequence[tuple[str, str]]) -> None:
    box_height = 0.35 * inch + len(lines) * 0.24 * inch
    rc.ensure_space(box_height + 0.2 * inch)
    top = rc.y
    rc.c.setFillColor(BOX_FILL)
    rc.c.setStrokeColor(colors.HexColor("#BFBFBF"))
    rc.c.rect(MARGIN, top - box_height, rc.content_width, box_height, stroke=1, fill=1)
    rc.c.setFillColor(colors.black)

    y = top - 0.25 * inch
    rc.draw(MARGIN + 8, y, "Summary", size=12, bold=True)
    y -= 0.26 * inch
    for label, value in lines:
        rc.draw(MARGIN + 8, y, f"{label}:", size=9, bold=True)
        rc.draw(MARGIN + 1.3 * inch, y, value, size=9, width=rc.content_width - 1.3 * inch - 8)
        y -= 0.24 * inch
    rc.y = top - box_height - 0.35 * inch


def _draw_table_header(rc: ReportCanvas, columns: Sequence[Column], widths: Sequence[float]) -> None:
    rc.c.setFillColor(HEADER_FILL)
    rc.c.rect(MARGIN, rc.y - HEADER_HEIGHT + 4, rc.content_width, HEADER_HEIGHT, stroke=0, fill=1)
    x = MARGIN
    for column, width in zip(columns, widths):
        text_x = x + width - 3 if column.align_right else x + 3
        rc.draw(text_x, rc.y - 9, column.title, size=8, bold=True, color=colors.white, width=width - 6,
                right=column.align_right)
        x += width
    rc.y -= HEADER_HEIGHT


def _draw_table(
    rc: ReportCanvas,
    title: str,
    columns: Sequence[Column],
    records: Sequence[TimeEntryRecord | TaskRecord | GoalRecord],
    limit: int,
) -> None:
    shown = list(records[:limit])
    # title, header and at least one row stay together
    rc.ensure_space(0.35 * inch + HEADER_HEIGHT + ROW_HEIGHT)
    rc.draw(MARGIN, rc.y, f"{title} ({len(records)})", size=13, bold=True, color=HEADER_FILL)
    rc.y -= 0.25 * inch

    total_weight = sum(column.weight for column in columns)
    widths = [rc.content_width * column.weight / total_weight for column in columns]
    _draw_table_header(rc, columns, widths)

    for idx, record in enumerate(shown):
        if rc.ensure_space(ROW_HEIGHT):
            _draw_table_header(rc, columns, widths)
        if idx % 2 == 1:
            rc.c.setFillColor(STRIPE_FILL)
            rc.c.rect(MARGIN, rc.y - ROW_HEIGHT + 4, rc.content_width, ROW_HEIGHT, stroke=0, fill=1)
            rc.c.setFillColor(colors.black)
        x = MARGIN
        for column, width in zip(columns, widths):
            text_x = x + width - 3 if column.align_right else x + 3
            rc.draw(text_x, rc.y - 8, column.value(record), size=8, width=width - 6, right=column.align_right)
            x += width
        rc.y -= ROW_HEIGHT

    if len(records) > len(shown):
        rc.ensure_space(0.3 * inch)
        rc.y -= 4
        rc.draw(
            MARGIN,
            rc.y - 8,
            f"Showing {len(shown)} of {len(records)} records. Use the CSV export for the complete data set.",
            size=8,
            color=colors.grey,
            width=rc.content_width,
        )
        rc.y -= 0.2 * inch
    rc.y -= 0.3 * inch


def build_report_pdf(
    dataset: ReportDataset,
    stats: ReportStats,
    filters: ReportFilters,
    *,
    font: DocumentFont,
    generated_at: datetime | None = None,
) -> bytes:
    """
    Render the report as a paginated PDF.

    Tables are capped per call: 20 rows each when every record type is
    exported, 50 when a single type is selected.
    """
    generated_at = generated_at or datetime.now()
    limit = ROWS_PER_TABLE_ALL if filters.record_type == RecordType.ALL else ROWS_PER_TABLE_SINGLE
    try:
        bio = io.BytesIO()
        rc = ReportCanvas(bio, font, footer_label=f"HR Report - generated {format_timestamp(generated_at)}")
        rc.c.setTitle("HR Report")
        _draw_cover(rc, dataset, filters, generated_at)
        _draw_summary_box(rc, _summary_lines(dataset, stats, filters))

        tables = [
            (RecordType.TIME_ENTRIES, "Time Entries", _time_columns(dataset), dataset.time_entries),
            (RecordType.TASKS, "Tasks", _task_columns(dataset), dataset.tasks),
            (RecordType.GOALS, "Goals", _goal_columns(dataset), dataset.goals),
        ]
        drawn = 0
        for record_type, title, columns, records in tables:
            if records and filters.includes(record_type):
                _draw_table(rc, title, columns, records, limit)
                drawn += 1
        if not drawn:
            rc.draw(MARGIN, rc.y, "No records found for the selected filters.", size=10, color=colors.grey)
        rc.finish()
    except ExportError:
        raise
    except Exception as exc:
        logger.exception("PDF export failed")
        raise ExportError(f"Could not build the PDF report: {exc}", export_format="pdf") from exc
    return bio.getvalue()
