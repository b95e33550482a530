from __future__ import annotations

import enum


class HourType(str, enum.Enum):
    REGULAR = "regular"
    HOLIDAY = "holiday"
    WEEKEND = "weekend"
    OVERTIME = "overtime"
    BONUS = "bonus"
    WFH = "wfh"
    ON_LEAVE = "on_leave"


class TimeEntryStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class GoalStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RecordType(str, enum.Enum):
    ALL = "all"
    TIME_ENTRIES = "time_entries"
    TASKS = "tasks"
    GOALS = "goals"
