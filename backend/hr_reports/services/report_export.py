from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

from hr_reports.models.enums import RecordType
from hr_reports.schemas.report import ReportDataset, ReportFilters
from hr_reports.services.export_errors import ExportBusyError, ExportError
from hr_reports.services.report_csv import TABLE_BUILDERS, to_csv
from hr_reports.services.report_fonts import FontLoader, resolve_document_font
from hr_reports.services.report_labels import RECORD_TYPE_LABELS
from hr_reports.services.report_pdf import PDF_MEDIA_TYPE, build_report_pdf
from hr_reports.services.report_stats import ReportStats
from hr_reports.services.report_xlsx import XLSX_MEDIA_TYPE, build_report_workbook
from hr_reports.services.text_safety import safe_filename_part, transliterate_ascii


logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
ZIP_MEDIA_TYPE = "application/zip"
REPORT_PREFIX = "HR_Report"


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    media_type: str
    content: bytes


@dataclass(frozen=True)
class ExportOutcome:
    export_format: str
    artifact: ExportArtifact | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.artifact is not None


Exporter = Callable[[ReportDataset, ReportStats, ReportFilters], Awaitable[ExportArtifact]]


def csv_record_type(filters: ReportFilters) -> RecordType:
    # CSV carries one collection; "all" exports the time entries
    if filters.record_type == RecordType.ALL:
        return RecordType.TIME_ENTRIES
    return filters.record_type


def _employee_part(dataset: ReportDataset, filters: ReportFilters, default: str | None) -> str | None:
    if not filters.single_employee:
        return default
    return safe_filename_part(dataset.employee_name(filters.employee_id, default=f"employee_{filters.employee_id}"))


def _period_part(filters: ReportFilters) -> str:
    return f"{filters.start_date.isoformat()}_to_{filters.end_date.isoformat()}"


def csv_filename(dataset: ReportDataset, filters: ReportFilters) -> str:
    parts = [safe_filename_part(RECORD_TYPE_LABELS[csv_record_type(filters)])]
    employee = _employee_part(dataset, filters, default=None)
    if employee:
        parts.append(employee)
    parts.extend([_period_part(filters), filters.locale.upper()])
    return "_".join(parts) + ".csv"


def report_filename(dataset: ReportDataset, filters: ReportFilters, extension: str) -> str:
    employee = _employee_part(dataset, filters, default="All_Employees")
    return f"{REPORT_PREFIX}_{employee}_{_period_part(filters)}_{filters.locale.upper()}.{extension}"


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and the UTF-8 name."""
    fallback = transliterate_ascii(filename).replace(" ", "_").replace('"', "") or "report"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


async def export_csv(
    dataset: ReportDataset,
    stats: ReportStats,
    filters: ReportFilters,
    *,
    generated_at: datetime | None = None,
) -> ExportArtifact:
    try:
        headers, rows = TABLE_BUILDERS[csv_record_type(filters)](dataset)
        text = to_csv(rows, headers, language=filters.locale, generated_at=generated_at)
    except Exception as exc:
        logger.exception("CSV export failed")
        raise ExportError(f"Could not build the CSV export: {exc}", export_format="csv") from exc
    return ExportArtifact(csv_filename(dataset, filters), CSV_MEDIA_TYPE, text.encode("utf-8"))


async def export_xlsx(
    dataset: ReportDataset,
    stats: ReportStats,
    filters: ReportFilters,
    *,
    generated_at: datetime | None = None,
) -> ExportArtifact:
    content = await asyncio.to_thread(build_report_workbook, dataset, stats, filters, generated_at=generated_at)
    return ExportArtifact(report_filename(dataset, filters, "xlsx"), XLSX_MEDIA_TYPE, content)


async def export_pdf(
    dataset: ReportDataset,
    stats: ReportStats,
    filters: ReportFilters,
    *,
    generated_at: datetime | None = None,
    font_loaders: Sequence[tuple[str, FontLoader]] | None = None,
) -> ExportArtifact:
    font = await resolve_document_font(filters.locale, loaders=font_loaders)
    # rendering is CPU bound; keep it off the event loop
    content = await asyncio.to_thread(build_report_pdf, dataset, stats, filters, font=font, generated_at=generated_at)
    return ExportArtifact(report_filename(dataset, filters, "pdf"), PDF_MEDIA_TYPE, content)


DEFAULT_EXPORTERS: tuple[tuple[str, Exporter], ...] = (
    ("csv", export_csv),
    ("xlsx", export_xlsx),
    ("pdf", export_pdf),
)


async def export_all(
    dataset: ReportDataset,
    stats: ReportStats,
    filters: ReportFilters,
    *,
    exporters: Sequence[tuple[str, Exporter]] = DEFAULT_EXPORTERS,
) -> list[ExportOutcome]:
    """
    Run each exporter to completion before starting the next.

    A failing exporter is recorded in its outcome and does not stop the rest.
    """
    outcomes: list[ExportOutcome] = []
    for export_format, exporter in exporters:
        try:
            artifact = await exporter(dataset, stats, filters)
        except Exception as exc:
            logger.warning("%s export failed during export-all: %s", export_format, exc)
            outcomes.append(ExportOutcome(export_format, error=str(exc)))
            continue
        outcomes.append(ExportOutcome(export_format, artifact=artifact))
    return outcomes


def bundle_outcomes(outcomes: Sequence[ExportOutcome], filename: str) -> ExportArtifact:
    if not any(outcome.ok for outcome in outcomes):
        errors = "; ".join(f"{o.export_format}: {o.error}" for o in outcomes)
        raise ExportError(f"All exports failed: {errors}", export_format="zip")
    bio = io.BytesIO()
    with zipfile.ZipFile(bio, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for outcome in outcomes:
            if outcome.artifact is not None:
                zf.writestr(outcome.artifact.filename, outcome.artifact.content)
        failed = [o for o in outcomes if not o.ok]
        if failed:
            zf.writestr("errors.txt", "\n".join(f"{o.export_format}: {o.error}" for o in failed) + "\n")
    return ExportArtifact(filename, ZIP_MEDIA_TYPE, bio.getvalue())


class ExportGate:
    """
    Busy flag for running exports.

    A second request under the same key while one is running is refused, not
    queued; the flag is always cleared when the export ends.
    """

    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._active

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        if key in self._active:
            raise ExportBusyError("An export is already in progress")
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)


export_gate = ExportGate()
