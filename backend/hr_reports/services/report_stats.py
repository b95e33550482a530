from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field

from hr_reports.models.enums import GoalStatus, HourType, TaskPriority, TaskStatus, TimeEntryStatus
from hr_reports.schemas.report import GoalRecord, ReportDataset, TaskRecord, TimeEntryRecord


@dataclass(frozen=True)
class TimeStats:
    total_records: int = 0
    total_hours: str = "0.0"
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    hours_by_type: dict[str, float] = field(default_factory=dict)
    status_counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskStats:
    total_records: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    completion_rate: int = 0
    average_quality: str = "0"
    rated: int = 0
    estimated_hours: float = 0.0
    actual_hours: float = 0.0
    priority_counts: dict[str, int] = field(default_factory=dict)
    status_counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class GoalStats:
    total_records: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    completion_rate: int = 0
    average_progress: float = 0.0
    status_counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class EmployeeStats:
    employee_id: str
    name: str
    total_hours: float = 0.0
    time_entries: int = 0
    tasks: int = 0
    tasks_completed: int = 0
    goals: int = 0
    average_goal_progress: float = 0.0


@dataclass(frozen=True)
class ReportStats:
    time: TimeStats
    tasks: TaskStats
    goals: GoalStats
    employees: tuple[EmployeeStats, ...] = ()

    # flat accessors for the time-tracking view
    @property
    def total_hours(self) -> str:
        return self.time.total_hours

    @property
    def approved(self) -> int:
        return self.time.approved

    @property
    def pending(self) -> int:
        return self.time.pending


@dataclass(frozen=True)
class ScoreBand:
    label: str
    stars: int

    @property
    def star_text(self) -> str:
        return "★" * self.stars + "☆" * (5 - self.stars)


@dataclass(frozen=True)
class EmployeePerformance:
    employee_id: str
    name: str
    time_approval_rate: float | None
    task_completion_rate: float | None
    goal_average_progress: float | None
    overall_score: float
    band: ScoreBand


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def percentage(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(round_half_up(part / total * 100))


def format_rating(value: float) -> str:
    """Whole number when integral, otherwise one decimal place."""
    rounded = round_half_up(value, 1)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.1f}"


def _value(enum_member) -> str:
    return enum_member.value if enum_member is not None else "unknown"


def time_stats(entries: tuple[TimeEntryRecord, ...] | list[TimeEntryRecord]) -> TimeStats:
    total = sum(entry.hours for entry in entries)
    statuses = Counter(_value(entry.status) for entry in entries)
    by_type: dict[str, float] = {}
    for entry in entries:
        key = _value(entry.hour_type)
        by_type[key] = round(by_type.get(key, 0.0) + entry.hours, 2)
    return TimeStats(
        total_records=len(entries),
        total_hours=f"{round_half_up(total, 1):.1f}",
        approved=statuses.get(TimeEntryStatus.APPROVED.value, 0),
        pending=statuses.get(TimeEntryStatus.PENDING.value, 0),
        rejected=statuses.get(TimeEntryStatus.REJECTED.value, 0),
        hours_by_type=by_type,
        status_counts=dict(statuses),
    )


def task_stats(tasks: tuple[TaskRecord, ...] | list[TaskRecord]) -> TaskStats:
    statuses = Counter(_value(task.status) for task in tasks)
    rated = [task.quality_rating for task in tasks if task.quality_rating > 0]
    completed = statuses.get(TaskStatus.COMPLETED.value, 0)
    return TaskStats(
        total_records=len(tasks),
        completed=completed,
        in_progress=statuses.get(TaskStatus.IN_PROGRESS.value, 0),
        pending=statuses.get(TaskStatus.PENDING.value, 0),
        completion_rate=percentage(completed, len(tasks)),
        average_quality=format_rating(sum(rated) / len(rated)) if rated else "0",
        rated=len(rated),
        estimated_hours=round(sum(task.estimated_hours for task in tasks), 2),
        actual_hours=round(sum(task.actual_hours for task in tasks), 2),
        priority_counts=dict(Counter(_value(task.priority) for task in tasks)),
        status_counts=dict(statuses),
    )


def average_goal_progress(goals: tuple[GoalRecord, ...] | list[GoalRecord]) -> float:
    if not goals:
        return 0.0
    return round_half_up(sum(goal.effective_progress for goal in goals) / len(goals), 1)


def goal_stats(goals: tuple[GoalRecord, ...] | list[GoalRecord]) -> GoalStats:
    statuses = Counter(_value(goal.status) for goal in goals)
    completed = statuses.get(GoalStatus.COMPLETED.value, 0)
    return GoalStats(
        total_records=len(goals),
        completed=completed,
        in_progress=statuses.get(GoalStatus.IN_PROGRESS.value, 0),
        pending=statuses.get(GoalStatus.PENDING.value, 0),
        completion_rate=percentage(completed, len(goals)),
        average_progress=average_goal_progress(goals),
        status_counts=dict(statuses),
    )


def employee_breakdown(dataset: ReportDataset) -> tuple[EmployeeStats, ...]:
    ids: list[str] = []
    for record in (*dataset.time_entries, *dataset.tasks, *dataset.goals):
        key = str(record.employee_id)
        if key not in ids:
            ids.append(key)

    out: list[EmployeeStats] = []
    for key in ids:
        entries = [e for e in dataset.time_entries if str(e.employee_id) == key]
        tasks = [t for t in dataset.tasks if str(t.employee_id) == key]
        goals = [g for g in dataset.goals if str(g.employee_id) == key]
        out.append(
            EmployeeStats(
                employee_id=key,
                name=dataset.employee_name(key),
                total_hours=round(sum(e.hours for e in entries), 2),
                time_entries=len(entries),
                tasks=len(tasks),
                tasks_completed=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
                goals=len(goals),
                average_goal_progress=average_goal_progress(goals),
            )
        )
    return tuple(sorted(out, key=lambda item: item.name.lower()))


def compute_report_stats(dataset: ReportDataset) -> ReportStats:
    return ReportStats(
        time=time_stats(dataset.time_entries),
        tasks=task_stats(dataset.tasks),
        goals=goal_stats(dataset.goals),
        employees=employee_breakdown(dataset),
    )


SCORE_BANDS: tuple[tuple[float, ScoreBand], ...] = (
    (90, ScoreBand("Outstanding", 5)),
    (80, ScoreBand("Excellent", 4)),
    (70, ScoreBand("Good", 3)),
    (60, ScoreBand("Satisfactory", 2)),
)
LOWEST_BAND = ScoreBand("Needs Improvement", 1)


def score_band(score: float) -> ScoreBand:
    for threshold, band in SCORE_BANDS:
        if score >= threshold:
            return band
    return LOWEST_BAND


def compute_employee_performance(dataset: ReportDataset, employee_id: object) -> EmployeePerformance:
    key = str(employee_id)
    entries = [e for e in dataset.time_entries if str(e.employee_id) == key]
    tasks = [t for t in dataset.tasks if str(t.employee_id) == key]
    goals = [g for g in dataset.goals if str(g.employee_id) == key]

    approval = (
        float(percentage(sum(1 for e in entries if e.status == TimeEntryStatus.APPROVED), len(entries)))
        if entries
        else None
    )
    completion = (
        float(percentage(sum(1 for t in tasks if t.status == TaskStatus.COMPLETED), len(tasks))) if tasks else None
    )
    progress = average_goal_progress(goals) if goals else None

    components = [value for value in (approval, completion, progress) if value is not None]
    overall = round_half_up(sum(components) / len(components), 1) if components else 0.0
    return EmployeePerformance(
        employee_id=key,
        name=dataset.employee_name(key),
        time_approval_rate=approval,
        task_completion_rate=completion,
        goal_average_progress=progress,
        overall_score=overall,
        band=score_band(overall),
    )


HOUR_TYPE_ORDER = [member.value for member in HourType]
PRIORITY_ORDER = [member.value for member in TaskPriority]
