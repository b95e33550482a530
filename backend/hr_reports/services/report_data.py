from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import date, timedelta
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_reports.models.employee import Employee
from hr_reports.models.enums import RecordType
from hr_reports.models.performance_goal import PerformanceGoal
from hr_reports.models.time_entry import TimeEntry
from hr_reports.models.workload_task import WorkloadTask
from hr_reports.schemas.report import (
    EmployeeRecord,
    GoalRecord,
    ReportDataset,
    ReportFilters,
    TaskRecord,
    TimeEntryRecord,
)


logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

DATE_RANGE_PRESETS = ("today", "this-week", "this-month", "last-month", "this-quarter", "this-year", "custom")


class RecordSource(Protocol):
    async def fetch_employees(self) -> Iterable[Any]: ...

    async def fetch_time_entries(self, start_date: date, end_date: date) -> Iterable[Any]: ...

    async def fetch_tasks(self) -> Iterable[Any]: ...

    async def fetch_goals(self) -> Iterable[Any]: ...


class SqlRecordSource:
    """Read-only queries against the hosted HR tables."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def fetch_employees(self) -> list[Employee]:
        stmt = select(Employee).where(Employee.status == "Active").order_by(Employee.name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def fetch_time_entries(self, start_date: date, end_date: date) -> list[TimeEntry]:
        stmt = (
            select(TimeEntry)
            .where(TimeEntry.entry_date >= start_date, TimeEntry.entry_date <= end_date)
            .order_by(TimeEntry.entry_date.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def fetch_tasks(self) -> list[WorkloadTask]:
        stmt = select(WorkloadTask).order_by(WorkloadTask.created_at.desc())
        return list((await self.db.execute(stmt)).scalars().all())

    async def fetch_goals(self) -> list[PerformanceGoal]:
        stmt = select(PerformanceGoal).order_by(PerformanceGoal.created_at.desc())
        return list((await self.db.execute(stmt)).scalars().all())


def matches_employee(record_employee_id: object, selected_employee_id: object) -> bool:
    """Compare ids as text; the store mixes numeric and string ids."""
    if selected_employee_id is None or str(selected_employee_id) == "all":
        return True
    return str(record_employee_id) == str(selected_employee_id)


def matches_filter(value: enum.Enum | None, selected: str) -> bool:
    if selected == "all":
        return True
    return value is not None and value.value == selected


def _raw_employee_id(row: Any) -> object:
    if isinstance(row, Mapping):
        return row.get("employee_id")
    return getattr(row, "employee_id", None)


def normalize_rows(rows: Iterable[Any], model: type[RecordT], label: str) -> list[RecordT]:
    out: list[RecordT] = []
    for row in rows or ():
        try:
            out.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping invalid %s row: %s", label, exc.errors(include_url=False))
    return out


async def _guarded_fetch(label: str, fetch: Callable[[], Awaitable[Iterable[Any]]]) -> list[Any]:
    try:
        return list(await fetch() or [])
    except Exception:
        logger.exception("Error fetching %s", label)
        return []


async def fetch_report_data(source: RecordSource, filters: ReportFilters) -> ReportDataset:
    """
    Fetch and normalize everything a report export needs.

    Each record type is fetched on its own; a failure empties that collection
    and the other fetches carry on. Status and hour type filters compare the
    normalized values, since stored labels vary in spelling.
    """
    employee_rows = await _guarded_fetch("employees", source.fetch_employees)

    time_rows: list[Any] = []
    task_rows: list[Any] = []
    goal_rows: list[Any] = []
    if filters.includes(RecordType.TIME_ENTRIES):
        time_rows = await _guarded_fetch(
            "time entries", lambda: source.fetch_time_entries(filters.start_date, filters.end_date)
        )
    # tasks and goals are ongoing work, not scoped to the date range
    if filters.includes(RecordType.TASKS):
        task_rows = await _guarded_fetch("tasks", source.fetch_tasks)
    if filters.includes(RecordType.GOALS):
        goal_rows = await _guarded_fetch("goals", source.fetch_goals)

    def _scoped(rows: list[Any]) -> list[Any]:
        return [row for row in rows if matches_employee(_raw_employee_id(row), filters.employee_id)]

    time_entries = [
        entry
        for entry in normalize_rows(_scoped(time_rows), TimeEntryRecord, "time entry")
        if filters.start_date <= entry.entry_date <= filters.end_date
        and matches_filter(entry.status, filters.status)
        and matches_filter(entry.hour_type, filters.hour_type)
    ]
    tasks = [
        task
        for task in normalize_rows(_scoped(task_rows), TaskRecord, "task")
        if matches_filter(task.status, filters.task_status)
    ]
    goals = [
        goal
        for goal in normalize_rows(_scoped(goal_rows), GoalRecord, "goal")
        if matches_filter(goal.status, filters.goal_status)
    ]
    return ReportDataset(
        time_entries=tuple(time_entries),
        tasks=tuple(tasks),
        goals=tuple(goals),
        employees=tuple(normalize_rows(employee_rows, EmployeeRecord, "employee")),
    )


def resolve_date_range(preset: str, today: date, start: date | None = None, end: date | None = None) -> tuple[date, date]:
    if preset == "today":
        return today, today
    if preset == "this-week":
        # weeks start on Sunday
        return today - timedelta(days=(today.weekday() + 1) % 7), today
    if preset == "this-month":
        return today.replace(day=1), today
    if preset == "last-month":
        last_day = today.replace(day=1) - timedelta(days=1)
        return last_day.replace(day=1), last_day
    if preset == "this-quarter":
        quarter_month = ((today.month - 1) // 3) * 3 + 1
        return date(today.year, quarter_month, 1), today
    if preset == "this-year":
        return date(today.year, 1, 1), today
    if preset == "custom":
        if start is None or end is None:
            raise ValueError("custom range needs start and end dates")
        return start, end
    raise ValueError(f"Unknown date range preset: {preset}")
