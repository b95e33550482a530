import unittest
from datetime import date

from hr_reports.schemas.report import EmployeeRecord, GoalRecord, ReportDataset, TaskRecord, TimeEntryRecord
from hr_reports.services.report_stats import (
    compute_employee_performance,
    compute_report_stats,
    format_rating,
    goal_stats,
    percentage,
    score_band,
    task_stats,
    time_stats,
)


def _entry(id, hours, hour_type, status, day, employee_id=7):
    return TimeEntryRecord.model_validate(
        {"id": id, "employee_id": employee_id, "date": day, "hours": hours, "hour_type": hour_type, "status": status}
    )


def _task(id, status, rating=0, employee_id=7, estimated=0, actual=0, priority="medium"):
    return TaskRecord.model_validate(
        {
            "id": id,
            "employee_id": employee_id,
            "title": f"Task {id}",
            "status": status,
            "priority": priority,
            "quality_rating": rating,
            "estimated_hours": estimated,
            "actual_hours": actual,
        }
    )


def _goal(id, status, progress, employee_id=7):
    return GoalRecord.model_validate(
        {"id": id, "employee_id": employee_id, "title": f"Goal {id}", "status": status, "progress": progress}
    )


class TestTimeStats(unittest.TestCase):
    def test_january_scenario(self) -> None:
        entries = [
            _entry(1, 3.5, "regular", "approved", date(2024, 1, 5)),
            _entry(2, 2, "overtime", "pending", date(2024, 1, 10)),
        ]
        stats = compute_report_stats(ReportDataset(time_entries=tuple(entries)))
        self.assertEqual(stats.total_hours, "5.5")
        self.assertEqual(stats.approved, 1)
        self.assertEqual(stats.pending, 1)
        self.assertEqual(stats.time.hours_by_type, {"regular": 3.5, "overtime": 2.0})

    def test_total_hours_matches_sum(self) -> None:
        entries = [_entry(i, h, "regular", "approved", date(2024, 2, 1)) for i, h in enumerate([1.25, 2.5, 0.75, 8])]
        self.assertEqual(time_stats(entries).total_hours, f"{sum([1.25, 2.5, 0.75, 8]):.1f}")

    def test_empty(self) -> None:
        stats = time_stats([])
        self.assertEqual(stats.total_hours, "0.0")
        self.assertEqual(stats.total_records, 0)


class TestTaskStats(unittest.TestCase):
    def test_completion_rate_and_quality(self) -> None:
        tasks = [
            _task(1, "completed", rating=4),
            _task(2, "completed", rating=5),
            _task(3, "in_progress", rating=4),
        ]
        stats = task_stats(tasks)
        self.assertEqual(stats.completed, 2)
        self.assertEqual(stats.in_progress, 1)
        self.assertEqual(stats.completion_rate, 67)
        self.assertEqual(stats.average_quality, "4.3")

    def test_unrated_tasks_are_ignored_for_quality(self) -> None:
        stats = task_stats([_task(1, "pending", rating=0), _task(2, "completed", rating=4)])
        self.assertEqual(stats.average_quality, "4")
        self.assertEqual(stats.rated, 1)

    def test_empty(self) -> None:
        stats = task_stats([])
        self.assertEqual(stats.completion_rate, 0)
        self.assertEqual(stats.average_quality, "0")


class TestGoalStats(unittest.TestCase):
    def test_completed_goal_counts_as_full(self) -> None:
        goals = [_goal(1, "completed", 30), _goal(2, "in_progress", 50)]
        self.assertEqual(goal_stats(goals).average_progress, 75)

    def test_completed_with_low_stored_progress(self) -> None:
        self.assertEqual(goal_stats([_goal(1, "completed", 40)]).average_progress, 100)

    def test_empty(self) -> None:
        self.assertEqual(goal_stats([]).average_progress, 0)


class TestFormatting(unittest.TestCase):
    def test_percentage_rounds_half_up(self) -> None:
        self.assertEqual(percentage(1, 8), 13)
        self.assertEqual(percentage(1, 2), 50)
        self.assertEqual(percentage(3, 0), 0)

    def test_format_rating(self) -> None:
        self.assertEqual(format_rating(4.0), "4")
        self.assertEqual(format_rating(13 / 3), "4.3")
        self.assertEqual(format_rating(4.25), "4.3")


class TestEmployeePerformance(unittest.TestCase):
    def test_score_bands(self) -> None:
        self.assertEqual(score_band(95).label, "Outstanding")
        self.assertEqual(score_band(90).stars, 5)
        self.assertEqual(score_band(85).label, "Excellent")
        self.assertEqual(score_band(70).label, "Good")
        self.assertEqual(score_band(60).label, "Satisfactory")
        self.assertEqual(score_band(59.9).label, "Needs Improvement")
        self.assertEqual(score_band(0).stars, 1)

    def test_overall_score_uses_available_components(self) -> None:
        dataset = ReportDataset(
            time_entries=(
                _entry(1, 8, "regular", "approved", date(2024, 1, 2)),
                _entry(2, 8, "regular", "pending", date(2024, 1, 3)),
            ),
            goals=(_goal(1, "completed", 10),),
            employees=(EmployeeRecord(id=7, name="Lan"),),
        )
        perf = compute_employee_performance(dataset, "7")
        self.assertEqual(perf.time_approval_rate, 50)
        self.assertIsNone(perf.task_completion_rate)
        self.assertEqual(perf.goal_average_progress, 100)
        self.assertEqual(perf.overall_score, 75)
        self.assertEqual(perf.band.label, "Good")
        self.assertEqual(perf.name, "Lan")

    def test_no_data_scores_zero(self) -> None:
        perf = compute_employee_performance(ReportDataset(), "7")
        self.assertEqual(perf.overall_score, 0)
        self.assertEqual(perf.band.label, "Needs Improvement")

    def test_breakdown_groups_mixed_id_types(self) -> None:
        dataset = ReportDataset(
            time_entries=(
                _entry(1, 2, "regular", "approved", date(2024, 1, 2), employee_id=7),
                _entry(2, 3, "regular", "approved", date(2024, 1, 3), employee_id="7"),
            ),
            employees=(EmployeeRecord(id=7, name="Lan"),),
        )
        breakdown = compute_report_stats(dataset).employees
        self.assertEqual(len(breakdown), 1)
        self.assertEqual(breakdown[0].total_hours, 5)
        self.assertEqual(breakdown[0].time_entries, 2)


if __name__ == "__main__":
    unittest.main()
