import io
import unittest
import zipfile
from datetime import date

from hr_reports.models.enums import RecordType
from hr_reports.schemas.report import EmployeeRecord, ReportDataset, ReportFilters, TimeEntryRecord
from hr_reports.services.export_errors import ExportBusyError, ExportError
from hr_reports.services.report_export import (
    ExportArtifact,
    ExportGate,
    ExportOutcome,
    bundle_outcomes,
    content_disposition,
    csv_filename,
    export_all,
    export_csv,
    export_pdf,
    report_filename,
)
from hr_reports.services.report_stats import compute_report_stats


def _dataset() -> ReportDataset:
    return ReportDataset(
        time_entries=(
            TimeEntryRecord.model_validate(
                {"id": 1, "employee_id": 7, "date": date(2024, 1, 5), "hours": 3.5, "status": "approved"}
            ),
        ),
        employees=(EmployeeRecord(id=7, name="Nguyễn Văn Đức"),),
    )


def _filters(**overrides) -> ReportFilters:
    values = {"start_date": date(2024, 1, 1), "end_date": date(2024, 1, 31)}
    values.update(overrides)
    return ReportFilters(**values)


class TestFilenames(unittest.TestCase):
    def test_csv_filename_for_all_employees(self) -> None:
        name = csv_filename(_dataset(), _filters(record_type=RecordType.TASKS, locale="de"))
        self.assertEqual(name, "Tasks_2024-01-01_to_2024-01-31_DE.csv")

    def test_csv_filename_for_one_employee(self) -> None:
        name = csv_filename(_dataset(), _filters(employee_id="7"))
        self.assertEqual(name, "Time_Entries_Nguyễn_Văn_Đức_2024-01-01_to_2024-01-31_EN.csv")

    def test_report_filename(self) -> None:
        self.assertEqual(
            report_filename(_dataset(), _filters(), "xlsx"),
            "HR_Report_All_Employees_2024-01-01_to_2024-01-31_EN.xlsx",
        )
        self.assertEqual(
            report_filename(_dataset(), _filters(employee_id="99", locale="vi"), "pdf"),
            "HR_Report_employee_99_2024-01-01_to_2024-01-31_VI.pdf",
        )

    def test_content_disposition_has_ascii_fallback(self) -> None:
        header = content_disposition("HR_Report_Nguyễn_2024.pdf")
        self.assertTrue(header.startswith('attachment; filename="HR_Report_Nguyen_2024.pdf"'))
        self.assertIn("filename*=UTF-8''HR_Report_Nguy%E1%BB%85n_2024.pdf", header)


class TestExporters(unittest.IsolatedAsyncioTestCase):
    async def test_csv_artifact(self) -> None:
        dataset = _dataset()
        artifact = await export_csv(dataset, compute_report_stats(dataset), _filters())
        self.assertEqual(artifact.media_type, "text/csv; charset=utf-8")
        self.assertTrue(artifact.content.startswith("\ufeff".encode("utf-8")))
        self.assertIn("Nguyễn Văn Đức".encode("utf-8"), artifact.content)

    async def test_pdf_falls_back_without_font_sources(self) -> None:
        dataset = _dataset()
        with self.assertLogs("hr_reports.services.report_fonts", level="WARNING"):
            artifact = await export_pdf(dataset, compute_report_stats(dataset), _filters(), font_loaders=[])
        self.assertTrue(artifact.content.startswith(b"%PDF"))
        self.assertTrue(artifact.filename.endswith("_EN.pdf"))


class TestExportAll(unittest.IsolatedAsyncioTestCase):
    async def test_each_exporter_runs_once_in_order(self) -> None:
        calls = []

        def stub(name):
            async def exporter(dataset, stats, filters):
                calls.append(name)
                return ExportArtifact(f"report.{name}", "application/octet-stream", name.encode())

            return exporter

        dataset = _dataset()
        outcomes = await export_all(
            dataset,
            compute_report_stats(dataset),
            _filters(),
            exporters=[("csv", stub("csv")), ("xlsx", stub("xlsx")), ("pdf", stub("pdf"))],
        )
        self.assertEqual(calls, ["csv", "xlsx", "pdf"])
        self.assertTrue(all(outcome.ok for outcome in outcomes))

    async def test_failure_does_not_block_the_rest(self) -> None:
        calls = []

        async def ok(dataset, stats, filters):
            calls.append("ok")
            return ExportArtifact("report.csv", "text/csv", b"a,b\r\n")

        async def broken(dataset, stats, filters):
            calls.append("broken")
            raise ExportError("workbook exploded", export_format="xlsx")

        dataset = _dataset()
        with self.assertLogs("hr_reports.services.report_export", level="WARNING"):
            outcomes = await export_all(
                dataset,
                compute_report_stats(dataset),
                _filters(),
                exporters=[("csv", ok), ("xlsx", broken), ("pdf", ok)],
            )
        self.assertEqual(calls, ["ok", "broken", "ok"])
        self.assertEqual([outcome.ok for outcome in outcomes], [True, False, True])
        self.assertEqual(outcomes[1].error, "workbook exploded")

    async def test_real_exporters_run_in_sequence(self) -> None:
        dataset = _dataset()
        stats = compute_report_stats(dataset)
        filters = _filters()
        with self.assertLogs("hr_reports.services.report_fonts", level="WARNING"):
            outcomes = await export_all(
                dataset,
                stats,
                filters,
                exporters=[
                    ("csv", export_csv),
                    ("pdf", lambda d, s, f: export_pdf(d, s, f, font_loaders=[])),
                ],
            )
        self.assertEqual([outcome.export_format for outcome in outcomes], ["csv", "pdf"])
        self.assertTrue(all(outcome.ok for outcome in outcomes))


class TestBundleOutcomes(unittest.TestCase):
    def test_zip_lists_failures(self) -> None:
        outcomes = [
            ExportOutcome("csv", artifact=ExportArtifact("a.csv", "text/csv", b"x")),
            ExportOutcome("pdf", error="no font"),
        ]
        artifact = bundle_outcomes(outcomes, "bundle.zip")
        with zipfile.ZipFile(io.BytesIO(artifact.content)) as zf:
            self.assertEqual(sorted(zf.namelist()), ["a.csv", "errors.txt"])
            self.assertEqual(zf.read("errors.txt").decode(), "pdf: no font\n")

    def test_all_failed_raises(self) -> None:
        with self.assertRaises(ExportError):
            bundle_outcomes([ExportOutcome("csv", error="boom")], "bundle.zip")


class TestExportGate(unittest.TestCase):
    def test_second_hold_is_refused(self) -> None:
        gate = ExportGate()
        with gate.hold("client:pdf"):
            self.assertTrue(gate.is_busy("client:pdf"))
            with self.assertRaises(ExportBusyError):
                with gate.hold("client:pdf"):
                    pass
            with gate.hold("client:csv"):
                pass
        self.assertFalse(gate.is_busy("client:pdf"))

    def test_released_after_failure(self) -> None:
        gate = ExportGate()
        with self.assertRaises(ExportError):
            with gate.hold("client:xlsx"):
                raise ExportError("failed")
        self.assertFalse(gate.is_busy("client:xlsx"))


if __name__ == "__main__":
    unittest.main()
