from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder

from hr_reports.api.deps import get_record_source, get_report_filters
from hr_reports.schemas.report import ReportFilters
from hr_reports.services.report_data import RecordSource, fetch_report_data
from hr_reports.services.report_stats import compute_employee_performance, compute_report_stats


router = APIRouter()


@router.get("/data")
async def report_data(
    filters: ReportFilters = Depends(get_report_filters),
    source: RecordSource = Depends(get_record_source),
) -> dict:
    dataset = await fetch_report_data(source, filters)
    stats = compute_report_stats(dataset)
    return jsonable_encoder(
        {
            "filters": filters,
            "time_entries": list(dataset.time_entries),
            "tasks": list(dataset.tasks),
            "goals": list(dataset.goals),
            "employees": list(dataset.employees),
            "stats": stats,
        }
    )


@router.get("/stats")
async def report_stats(
    filters: ReportFilters = Depends(get_report_filters),
    source: RecordSource = Depends(get_record_source),
) -> dict:
    dataset = await fetch_report_data(source, filters)
    payload: dict = {"filters": filters, "stats": compute_report_stats(dataset)}
    if filters.single_employee:
        payload["performance"] = compute_employee_performance(dataset, filters.employee_id)
    return jsonable_encoder(payload)
