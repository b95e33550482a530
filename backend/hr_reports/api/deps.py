from __future__ import annotations

from datetime import date

from fastapi import Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_reports.config import settings
from hr_reports.db import get_db
from hr_reports.models.enums import RecordType
from hr_reports.schemas.report import ReportFilters
from hr_reports.services.report_data import DATE_RANGE_PRESETS, RecordSource, SqlRecordSource, resolve_date_range


async def get_record_source(db: AsyncSession = Depends(get_db)) -> RecordSource:
    return SqlRecordSource(db)


def get_report_filters(
    date_range: str = Query(default="this-month"),
    start_date: date | None = None,
    end_date: date | None = None,
    employee_id: str = "all",
    record_type: RecordType = RecordType.ALL,
    locale: str | None = None,
    status_filter: str = Query(default="all", alias="status"),
    hour_type: str = "all",
    task_status: str = "all",
    goal_status: str = "all",
) -> ReportFilters:
    if date_range not in DATE_RANGE_PRESETS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown date range")
    if start_date is not None and end_date is not None:
        date_range = "custom"
    try:
        start, end = resolve_date_range(date_range, date.today(), start_date, end_date)
        return ReportFilters(
            start_date=start,
            end_date=end,
            employee_id=employee_id,
            record_type=record_type,
            locale=locale or settings.REPORT_DEFAULT_LOCALE,
            status=status_filter,
            hour_type=hour_type,
            task_status=task_status,
            goal_status=goal_status,
        )
    except (ValueError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
