from __future__ import annotations

import io
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from hr_reports.api.deps import get_record_source, get_report_filters
from hr_reports.schemas.report import ReportDataset, ReportFilters
from hr_reports.services.export_errors import ExportBusyError, ExportError
from hr_reports.services.report_data import RecordSource, fetch_report_data
from hr_reports.services.report_export import (
    Exporter,
    ExportArtifact,
    bundle_outcomes,
    content_disposition,
    export_all,
    export_csv,
    export_gate,
    export_pdf,
    export_xlsx,
    report_filename,
)
from hr_reports.services.report_stats import ReportStats, compute_report_stats


logger = logging.getLogger(__name__)

router = APIRouter()


def _gate_key(request: Request, export_format: str) -> str:
    client = request.client.host if request.client else "local"
    return f"{client}:{export_format}"


def _download(artifact: ExportArtifact) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(artifact.content),
        media_type=artifact.media_type,
        headers={"Content-Disposition": content_disposition(artifact.filename)},
    )


async def _run_export(
    request: Request,
    export_format: str,
    filters: ReportFilters,
    source: RecordSource,
    exporter: Exporter,
) -> StreamingResponse:
    try:
        with export_gate.hold(_gate_key(request, export_format)):
            dataset = await fetch_report_data(source, filters)
            stats = compute_report_stats(dataset)
            artifact = await exporter(dataset, stats, filters)
    except ExportBusyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ExportError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    logger.info("Exported %s (%d bytes)", artifact.filename, len(artifact.content))
    return _download(artifact)


async def _export_bundle(dataset: ReportDataset, stats: ReportStats, filters: ReportFilters) -> ExportArtifact:
    outcomes = await export_all(dataset, stats, filters)
    return bundle_outcomes(outcomes, report_filename(dataset, filters, "zip"))


@router.get("/report.csv")
async def export_report_csv(
    request: Request,
    filters: ReportFilters = Depends(get_report_filters),
    source: RecordSource = Depends(get_record_source),
):
    return await _run_export(request, "csv", filters, source, export_csv)


@router.get("/report.xlsx")
async def export_report_xlsx(
    request: Request,
    filters: ReportFilters = Depends(get_report_filters),
    source: RecordSource = Depends(get_record_source),
):
    return await _run_export(request, "xlsx", filters, source, export_xlsx)


@router.get("/report.pdf")
async def export_report_pdf(
    request: Request,
    filters: ReportFilters = Depends(get_report_filters),
    source: RecordSource = Depends(get_record_source),
):
    return await _run_export(request, "pdf", filters, source, export_pdf)


@router.get("/report-all.zip")
async def export_report_all(
    request: Request,
    filters: ReportFilters = Depends(get_report_filters),
    source: RecordSource = Depends(get_record_source),
):
    return await _run_export(request, "all", filters, source, _export_bundle)
