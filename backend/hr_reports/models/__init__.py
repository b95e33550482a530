from hr_reports.models.employee import Employee
from hr_reports.models.performance_goal import PerformanceGoal
from hr_reports.models.time_entry import TimeEntry
from hr_reports.models.workload_task import WorkloadTask

__all__ = [
    "Employee",
    "PerformanceGoal",
    "TimeEntry",
    "WorkloadTask",
]
