from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from hr_reports.models.enums import GoalStatus, HourType, RecordType, TaskPriority, TaskStatus, TimeEntryStatus
from hr_reports.services.hour_types import normalize_hour_type


SUPPORTED_LOCALES = ("en", "vi", "de", "es", "fr", "ja", "ko", "ru", "th")


def _lower_or_none(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


def _enum_or_none(enum_cls, value: object):
    text = _lower_or_none(value)
    if text is None:
        return None
    try:
        return enum_cls(text)
    except ValueError:
        return None


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True, populate_by_name=True)

    id: int | str
    employee_id: int | str

    @field_validator("employee_id", mode="before")
    @classmethod
    def _employee_id_present(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("employee_id is required")
        return value


class EmployeeRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    kind: Literal["employee"] = "employee"
    id: int | str
    name: str = ""
    department: str | None = None
    position: str | None = None
    email: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name_text(cls, value: object) -> str:
        return "" if value is None else str(value).strip()


class TimeEntryRecord(_Record):
    kind: Literal["time_entry"] = "time_entry"
    entry_date: date = Field(validation_alias=AliasChoices("date", "entry_date"))
    clock_in: str | None = None
    clock_out: str | None = None
    hours: float = 0.0
    hour_type: HourType | None = None
    status: TimeEntryStatus | None = None
    notes: str | None = None
    created_at: datetime | None = None

    @field_validator("hours", mode="before")
    @classmethod
    def _hours(cls, value: object) -> object:
        return 0.0 if value is None or value == "" else value

    @field_validator("hours")
    @classmethod
    def _hours_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("hours must be >= 0")
        return value

    @field_validator("hour_type", mode="before")
    @classmethod
    def _hour_type(cls, value: object) -> HourType | None:
        return normalize_hour_type(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: object) -> TimeEntryStatus | None:
        return _enum_or_none(TimeEntryStatus, value)


class TaskRecord(_Record):
    kind: Literal["task"] = "task"
    title: str = ""
    description: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    due_date: date | None = None
    estimated_hours: float = 0.0
    actual_hours: float = 0.0
    quality_rating: int = 0
    self_assessment: str | None = None
    comments: str | None = Field(default=None, validation_alias=AliasChoices("performance_comments", "comments"))
    created_by: int | str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: object) -> TaskPriority | None:
        return _enum_or_none(TaskPriority, value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: object) -> TaskStatus | None:
        text = _lower_or_none(value)
        if text == "in_progress":
            text = TaskStatus.IN_PROGRESS.value
        return _enum_or_none(TaskStatus, text)

    @field_validator("estimated_hours", "actual_hours", mode="before")
    @classmethod
    def _hours(cls, value: object) -> object:
        return 0.0 if value is None or value == "" else value

    @field_validator("quality_rating", mode="before")
    @classmethod
    def _rating(cls, value: object) -> int:
        if value is None or value == "":
            return 0
        return max(0, min(5, int(round(float(value)))))

    @property
    def hour_variance(self) -> float:
        return round(self.actual_hours - self.estimated_hours, 2)


class GoalRecord(_Record):
    kind: Literal["goal"] = "goal"
    title: str = ""
    description: str | None = None
    category: str | None = None
    status: GoalStatus | None = None
    progress: int = 0
    target_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: object) -> GoalStatus | None:
        text = _lower_or_none(value)
        if text == "in-progress":
            text = GoalStatus.IN_PROGRESS.value
        return _enum_or_none(GoalStatus, text)

    @field_validator("progress", mode="before")
    @classmethod
    def _progress(cls, value: object) -> int:
        if value is None or value == "":
            return 0
        return max(0, min(100, int(round(float(value)))))

    @property
    def effective_progress(self) -> int:
        # A completed goal counts as fully done whatever percentage was stored.
        if self.status == GoalStatus.COMPLETED:
            return 100
        return self.progress


class ReportFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    employee_id: str = "all"
    record_type: RecordType = RecordType.ALL
    locale: str = "en"
    status: str = "all"
    hour_type: str = "all"
    task_status: str = "all"
    goal_status: str = "all"

    @field_validator("employee_id", mode="before")
    @classmethod
    def _employee_id(cls, value: object) -> str:
        text = "" if value is None else str(value).strip()
        return text or "all"

    @field_validator("locale", mode="before")
    @classmethod
    def _locale(cls, value: object) -> str:
        text = (str(value) if value else "en").strip().lower().replace("_", "-")
        base = text.split("-", 1)[0]
        return base if base in SUPPORTED_LOCALES else "en"

    @field_validator("status", mode="before")
    @classmethod
    def _status_filter(cls, value: object) -> str:
        return _lower_or_none(value) or "all"

    @field_validator("hour_type", mode="before")
    @classmethod
    def _hour_type_filter(cls, value: object) -> str:
        text = _lower_or_none(value) or "all"
        if text == "all":
            return text
        hour_type = normalize_hour_type(text)
        return hour_type.value if hour_type is not None else text

    @field_validator("task_status", mode="before")
    @classmethod
    def _task_status_filter(cls, value: object) -> str:
        text = _lower_or_none(value) or "all"
        return TaskStatus.IN_PROGRESS.value if text == "in_progress" else text

    @field_validator("goal_status", mode="before")
    @classmethod
    def _goal_status_filter(cls, value: object) -> str:
        text = _lower_or_none(value) or "all"
        return GoalStatus.IN_PROGRESS.value if text == "in-progress" else text

    @model_validator(mode="after")
    def _range_order(self) -> ReportFilters:
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    @property
    def single_employee(self) -> bool:
        return self.employee_id != "all"

    def includes(self, record_type: RecordType) -> bool:
        return self.record_type in (RecordType.ALL, record_type)


@dataclass(frozen=True)
class ReportDataset:
    time_entries: tuple[TimeEntryRecord, ...] = ()
    tasks: tuple[TaskRecord, ...] = ()
    goals: tuple[GoalRecord, ...] = ()
    employees: tuple[EmployeeRecord, ...] = ()
    _names: dict[str, EmployeeRecord] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._names.update({str(emp.id): emp for emp in self.employees})

    def employee(self, employee_id: object) -> EmployeeRecord | None:
        return self._names.get(str(employee_id))

    def employee_name(self, employee_id: object, default: str = "Unknown") -> str:
        emp = self.employee(employee_id)
        return emp.name if emp is not None and emp.name else default
